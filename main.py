"""Thin shim for IDEs and direct execution."""

from rss_startpage.cli import main

if __name__ == "__main__":
    import sys

    # Default to debug logging when run directly; an explicit --log-level wins.
    if not any(arg.startswith("--log-level") for arg in sys.argv):
        sys.argv.extend(["--log-level", "DEBUG"])

    sys.exit(main())
