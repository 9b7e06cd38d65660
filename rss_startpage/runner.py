"""High-level orchestration for the rss_startpage application."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from .aggregator import collect
from .config import ORDERS, parse_feed_list
from .errors import ConfigError
from .models import Post, StartPageData
from .publishing import S3Target, put_object, write_local
from .renderers import build_startpage_html

logger = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class RunConfig:
    """Runtime options for executing the application."""

    feeds_file: str
    window_hours: float = 48.0
    timeout_seconds: float = 3.0
    concurrency: Optional[int] = None
    order: str = "arrival"
    template_path: Optional[str] = None
    output_path: Optional[str] = None
    s3: Optional[S3Target] = None


@dataclass
class RunResult:
    """Returned data after executing the app."""

    data: StartPageData
    html: str
    output_path: Optional[str] = None
    published_to: Optional[str] = None


def order_posts(posts: List[Post], order: str) -> List[Post]:
    """Return ``posts`` arranged for display.

    ``arrival`` keeps the order fetches finished in, ``source`` sorts by
    source name then title, ``newest`` puts the most recent posts first.
    """
    if order == "arrival":
        return list(posts)
    if order == "source":
        return sorted(posts, key=lambda post: (post.source.casefold(), post.title))
    if order == "newest":
        return sorted(posts, key=lambda post: post.published or _OLDEST, reverse=True)
    raise ConfigError(f"Unsupported post order '{order}' (expected one of {', '.join(ORDERS)})")


def execute(config: RunConfig) -> RunResult:
    """Run the application logic and return the result payload."""
    if config.window_hours <= 0:
        raise ConfigError("Time window must be positive.")
    if config.timeout_seconds <= 0:
        raise ConfigError("Fetch timeout must be positive.")
    if config.order not in ORDERS:
        raise ConfigError(f"Unsupported post order '{config.order}'")

    sources = parse_feed_list(config.feeds_file)
    if not sources:
        raise ConfigError("No feeds found in the configuration.")

    window = timedelta(hours=config.window_hours)
    logger.info(
        "Checking %d feeds for posts newer than %s", len(sources), window
    )
    data = collect(
        sources,
        timeout=config.timeout_seconds,
        window=window,
        max_workers=config.concurrency,
    )
    data.posts = order_posts(data.posts, config.order)

    html = build_startpage_html(data, config.template_path)

    output_path = None
    if config.output_path:
        output_path = str(write_local(html, config.output_path))

    published_to = None
    if config.s3:
        put_object(html, config.s3)
        published_to = config.s3.uri

    return RunResult(
        data=data, html=html, output_path=output_path, published_to=published_to
    )
