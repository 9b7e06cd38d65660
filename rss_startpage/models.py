"""Shared data models for rss_startpage."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urlsplit


WEB_SCHEMES = ("http", "https")


def is_web_url(value: Optional[str]) -> bool:
    """Return True for absolute http(s) URLs; rejects javascript:, data: and the like."""
    if not value:
        return False
    parts = urlsplit(value.strip())
    return parts.scheme.lower() in WEB_SCHEMES and bool(parts.netloc)


@dataclass(frozen=True)
class FeedSource:
    """A single feed endpoint, optionally with a display name."""

    url: str
    name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.name or self.url


@dataclass(frozen=True)
class Post:
    """One qualifying entry extracted from a feed."""

    source: str
    title: str
    url: str
    published: Optional[datetime] = None


@dataclass
class StartPageData:
    """Posts collected in a single run, in the order they were gathered."""

    posts: List[Post] = field(default_factory=list)
    generated_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
