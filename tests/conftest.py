import logging
import socket
import threading
import time
from datetime import datetime, timezone
from email.utils import format_datetime

import pytest
import requests

from rss_startpage import feeds


class FakeResponse:
    """Minimal stand-in for a streamed ``requests.Response``."""

    def __init__(self, content=b"", status_code=200, chunk_delay=0.0, endless=False):
        self.content = content
        self.status_code = status_code
        self.chunk_delay = chunk_delay
        self.endless = endless
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def iter_content(self, chunk_size=1):
        if self.endless:
            while True:
                time.sleep(self.chunk_delay)
                yield b" "
        for start in range(0, len(self.content), chunk_size):
            if self.chunk_delay:
                time.sleep(self.chunk_delay)
            yield self.content[start : start + chunk_size]

    def close(self):
        self.closed = True


def build_rss(title, items):
    """Return RSS 2.0 bytes; ``items`` are ``(title, link, published)`` tuples."""
    rendered = []
    for item_title, link, published in items:
        pub_date = (
            f"<pubDate>{format_datetime(published, usegmt=True)}</pubDate>"
            if published
            else ""
        )
        rendered.append(
            f"<item><title>{item_title}</title><link>{link}</link>{pub_date}</item>"
        )
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<rss version="2.0"><channel>'
        f"<title>{title}</title><link>https://example.com/</link>"
        "<description>Test feed</description>"
        f"{''.join(rendered)}"
        "</channel></rss>"
    ).encode("utf-8")


@pytest.fixture
def now():
    return datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FeedServer:
    def __init__(self):
        self.routes = {}
        self.calls = []


@pytest.fixture
def serve_feeds(monkeypatch):
    """Route ``requests.get`` in the feeds module to canned responses by URL.

    Values may be ``FakeResponse`` objects or exceptions to raise.
    """
    server = FeedServer()

    def fake_get(url, timeout=None, stream=False, headers=None):
        server.calls.append({"url": url, "timeout": timeout, "stream": stream, "headers": headers})
        response = server.routes.get(url)
        if response is None:
            raise requests.ConnectionError(f"Failed to resolve {url}")
        if isinstance(response, BaseException):
            raise response
        return response

    monkeypatch.setattr(feeds.requests, "get", fake_get)
    return server


@pytest.fixture
def restore_root_logging():
    root_logger = logging.getLogger()
    original_handlers = list(root_logger.handlers)
    original_level = root_logger.level
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    try:
        yield root_logger
    finally:
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()
        for handler in original_handlers:
            root_logger.addHandler(handler)
        root_logger.setLevel(original_level)


@pytest.fixture
def trickle_server(monkeypatch):
    """A real local HTTP server that promises a large body and sends one byte at a time.

    Yields the feed URL; the server keeps trickling until the test ends.
    """
    for key in ("HTTP_PROXY", "http_proxy", "ALL_PROXY", "all_proxy"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("NO_PROXY", "127.0.0.1,localhost")

    stop = threading.Event()
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    listener.settimeout(5)

    def serve():
        try:
            conn, _ = listener.accept()
        except OSError:
            return
        with conn:
            conn.recv(65536)
            conn.sendall(
                b"HTTP/1.1 200 OK\r\n"
                b"Content-Type: application/rss+xml\r\n"
                b"Content-Length: 100000\r\n\r\n"
            )
            while not stop.wait(0.1):
                try:
                    conn.sendall(b" ")
                except OSError:
                    return

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{listener.getsockname()[1]}/feed.xml"
    finally:
        stop.set()
        listener.close()
        thread.join(timeout=2)
