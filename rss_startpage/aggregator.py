"""Concurrent fan-out/fan-in over the configured feed sources."""

from __future__ import annotations

import concurrent.futures
import logging
import queue
import threading
from datetime import timedelta
from typing import Callable, Optional, Sequence, Set

from .errors import FetchError, NoUpdateError
from .feeds import fetch_latest_post
from .models import FeedSource, Post, StartPageData

logger = logging.getLogger(__name__)

FetchCallable = Callable[[FeedSource, float, timedelta], Post]
FailureReporter = Callable[[FeedSource, Exception], None]

# Slack on top of the per-source timeout before a task is abandoned.
BARRIER_GRACE_SECONDS = 0.5


def log_failure(source: FeedSource, exc: Exception) -> None:
    """Default failure reporter: log through the module logger."""
    if isinstance(exc, NoUpdateError):
        logger.info("No updates found for %s: %s", source.label, exc)
    elif isinstance(exc, FetchError):
        logger.warning("Failed to fetch %s: %s", source.label, exc)
    else:
        logger.error(
            "Unexpected error while processing %s",
            source.label,
            exc_info=(type(exc), exc, exc.__traceback__),
        )


def collect(
    sources: Sequence[FeedSource],
    timeout: float,
    window: timedelta,
    max_workers: Optional[int] = None,
    on_failure: Optional[FailureReporter] = None,
    fetch: FetchCallable = fetch_latest_post,
) -> StartPageData:
    """Fetch every source concurrently and gather the posts they produce.

    Each source contributes at most one post. Failures are handed to
    ``on_failure`` and never affect sibling sources. Posts appear in the
    order their fetches finished, which varies between runs.
    """
    report = on_failure or log_failure
    if not sources:
        logger.info("No feed sources configured; nothing to collect")
        return StartPageData()

    # One slot per source, so put_nowait can never raise queue.Full.
    results: "queue.Queue[Post]" = queue.Queue(maxsize=len(sources))
    # Tasks settle under the lock; once the channel is closed nothing else
    # may deposit or report.
    lock = threading.Lock()
    closed = threading.Event()
    settled: Set[int] = set()

    def settle(index: int, post: Optional[Post] = None) -> bool:
        with lock:
            if closed.is_set():
                return False
            settled.add(index)
            if post is not None:
                results.put_nowait(post)
            return True

    def process_source(index: int, source: FeedSource) -> None:
        try:
            post = fetch(source, timeout, window)
        except Exception as exc:  # noqa: BLE001
            if settle(index):
                report(source, exc)
            else:
                logger.debug("Ignoring late failure for %s: %s", source.label, exc)
            return
        if not settle(index, post):
            logger.debug("Discarding late post from %s", source.label)

    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=max_workers or len(sources),
        thread_name_prefix="feed-fetch",
    )
    try:
        futures = [
            executor.submit(process_source, index, source)
            for index, source in enumerate(sources)
        ]
        concurrent.futures.wait(futures, timeout=timeout + BARRIER_GRACE_SECONDS)
        with lock:
            closed.set()
            abandoned = [i for i in range(len(sources)) if i not in settled]
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    for index in abandoned:
        source = sources[index]
        report(
            source,
            FetchError(
                source, f"abandoned after {timeout:.1f}s deadline", timed_out=True
            ),
        )

    posts = []
    while True:
        try:
            posts.append(results.get_nowait())
        except queue.Empty:
            break

    logger.info(
        "Collected %d new posts from %d sources (%d abandoned)",
        len(posts),
        len(sources),
        len(abandoned),
    )
    return StartPageData(posts=posts)
