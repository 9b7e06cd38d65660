"""Exception hierarchy for rss_startpage."""

from __future__ import annotations

from typing import Optional

from .models import FeedSource


class StartPageError(Exception):
    """Base class for all application errors."""


class ConfigError(StartPageError):
    """The feed list or application config could not be loaded."""


class FeedError(StartPageError):
    """A single feed source produced no post this run."""

    def __init__(self, source: FeedSource, message: str):
        super().__init__(message)
        self.source = source


class NoUpdateError(FeedError):
    """No entry in the feed falls inside the time window."""


class FetchError(FeedError):
    """The feed could not be retrieved or parsed."""

    def __init__(
        self, source: FeedSource, message: str, timed_out: bool = False
    ):
        super().__init__(source, message)
        self.timed_out = timed_out


class RenderError(StartPageError):
    """The start page template could not be rendered."""


class PublishError(StartPageError):
    """The rendered page could not be written or uploaded."""

    def __init__(self, message: str, target: Optional[str] = None):
        super().__init__(message)
        self.target = target
