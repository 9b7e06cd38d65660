"""Build a static start page of new posts from RSS/Atom feeds."""
