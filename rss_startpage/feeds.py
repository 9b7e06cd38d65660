"""Feed retrieval and recent-post detection."""

from __future__ import annotations

import calendar
import logging
import re
import socket
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import feedparser
import requests
from bs4 import BeautifulSoup

from .errors import FetchError, NoUpdateError
from .models import FeedSource, Post, is_web_url

logger = logging.getLogger(__name__)

USER_AGENT = "rss-startpage/0.1"
CHUNK_SIZE = 16 * 1024

_DATE_FIELDS = ("published_parsed", "updated_parsed", "created_parsed")


def to_datetime(value: Optional[time.struct_time]) -> Optional[datetime]:
    """Convert feedparser's UTC struct_time to an aware datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)


def fetch_latest_post(
    source: FeedSource,
    timeout: float,
    window: timedelta,
    now: Optional[datetime] = None,
) -> Post:
    """Return the first entry of ``source`` published within ``window``.

    The whole retrieval is bounded by ``timeout`` seconds. Raises
    ``NoUpdateError`` when nothing qualifies and ``FetchError`` when the
    feed cannot be downloaded or parsed.
    """
    content = _download(source, timeout)
    # Relative entry links resolve against the feed URL.
    parsed = feedparser.parse(
        content, response_headers={"content-location": source.url}
    )
    if parsed.bozo and not parsed.entries:
        raise FetchError(
            source, f"malformed feed document: {parsed.get('bozo_exception')}"
        )

    cutoff = (now or datetime.now(timezone.utc)) - window
    source_name = source.name or parsed.feed.get("title") or source.url

    for entry in parsed.entries:
        published = _entry_published(entry)
        if published is None:
            logger.debug("Skipping undated entry in feed %s", source.url)
            continue
        if published <= cutoff:
            continue

        link = entry.get("link")
        if not is_web_url(link):
            logger.debug("Skipping entry without an http(s) link in feed %s", source.url)
            continue

        title = _strip_html(entry.get("title") or "") or link
        logger.debug("Found post '%s' in feed %s (%s)", title, source.url, published)
        return Post(source=source_name, title=title, url=link, published=published)

    raise NoUpdateError(source, f"no posts newer than {cutoff.isoformat()}")


def _download(source: FeedSource, timeout: float) -> bytes:
    """Fetch the raw feed body, enforcing a total deadline.

    Socket timeouts bound connect and the response headers. Once the body
    starts streaming, a watchdog timer shuts the connection down when the
    remaining budget runs out, so a server trickling bytes cannot hold the
    read open past the deadline.
    """
    logger.info("Fetching feed %s", source.label)
    deadline = time.monotonic() + timeout
    expired = threading.Event()
    chunks = []
    try:
        with requests.get(
            source.url,
            timeout=(timeout, timeout),
            stream=True,
            headers={"User-Agent": USER_AGENT},
        ) as response:
            response.raise_for_status()
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise _deadline_error(source, timeout)

            watchdog = threading.Timer(remaining, _abort, args=(response, expired))
            watchdog.daemon = True
            watchdog.start()
            try:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if expired.is_set() or time.monotonic() > deadline:
                        raise _deadline_error(source, timeout)
                    chunks.append(chunk)
            finally:
                watchdog.cancel()
            if expired.is_set():
                raise _deadline_error(source, timeout)
    except requests.Timeout as exc:
        raise FetchError(
            source, f"timed out after {timeout:.1f}s: {exc}", timed_out=True
        ) from exc
    except requests.RequestException as exc:
        # A connection cut by the watchdog surfaces as a broken read.
        if expired.is_set() or time.monotonic() >= deadline:
            raise _deadline_error(source, timeout) from exc
        raise FetchError(source, f"request failed: {exc}") from exc
    except (OSError, ValueError) as exc:
        if not expired.is_set():
            raise
        raise _deadline_error(source, timeout) from exc

    return b"".join(chunks)


def _deadline_error(source: FeedSource, timeout: float) -> FetchError:
    return FetchError(
        source, f"deadline of {timeout:.1f}s exceeded while reading body", timed_out=True
    )


def _abort(response: Any, expired: threading.Event) -> None:
    """Cut a streamed response short from the watchdog thread."""
    expired.set()
    connection = getattr(getattr(response, "raw", None), "_connection", None)
    sock = getattr(connection, "sock", None)
    if sock is None:
        response.close()
        return
    try:
        # shutdown wakes a recv blocked in another thread; close does not.
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        logger.debug("Connection already closed while aborting %s", response.url)


def _entry_published(entry: Any) -> Optional[datetime]:
    for attr in _DATE_FIELDS:
        value = entry.get(attr)
        if value:
            return to_datetime(value)
    return None


def _strip_html(raw_value: str) -> str:
    """Return text content extracted from HTML fragments."""
    soup = BeautifulSoup(raw_value, "html.parser")
    text = soup.get_text(separator=" ", strip=True)
    text = re.sub(r"\s+([.,;:!?])", r"\1", text)
    text = re.sub(r"\s{2,}", " ", text)
    return text.strip()
