"""Jinja2 environment for rss_startpage templates."""

from __future__ import annotations

from datetime import datetime
from importlib import resources
from urllib.parse import urlsplit

from jinja2 import Environment, FileSystemLoader, select_autoescape

_ENV: Environment | None = None


def _hostname(value: str | None) -> str:
    """Return the host part of a URL without a leading ``www.``."""
    if not value:
        return ""
    host = urlsplit(value).hostname or ""
    return host[4:] if host.startswith("www.") else host


def _format_datetime(value: datetime | None, fmt: str = "%Y-%m-%d %H:%M UTC") -> str:
    if value is None:
        return ""
    return value.strftime(fmt)


def get_environment() -> Environment:
    """Return a cached Jinja environment configured for package templates."""
    global _ENV
    if _ENV is None:
        template_dir = resources.files(__package__) / "templates"
        loader = FileSystemLoader(str(template_dir))
        _ENV = Environment(
            loader=loader,
            autoescape=select_autoescape(["html", "xml", "j2"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        _ENV.filters["hostname"] = _hostname
        _ENV.filters["datetime"] = _format_datetime
    return _ENV
