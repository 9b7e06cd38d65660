"""Configuration loading for feed lists and application settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional
from xml.etree import ElementTree as ET

from .errors import ConfigError
from .models import FeedSource, is_web_url

logger = logging.getLogger(__name__)

OPML_SUFFIXES = (".xml", ".opml")
ORDERS = ("arrival", "source", "newest")


@dataclass
class S3Config:
    enabled: bool = False
    bucket: Optional[str] = None
    key: Optional[str] = None
    region: Optional[str] = None
    content_type: str = "text/html"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class AppConfig:
    feeds_file: str
    env_file: Optional[str] = None
    window_hours: float = 48.0
    timeout_seconds: float = 3.0
    concurrency: Optional[int] = None
    order: str = "arrival"
    template: Optional[str] = None
    output: Optional[str] = None
    s3: S3Config = field(default_factory=S3Config)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_preset(cls, name: str, feeds_file: str) -> "AppConfig":
        """Build a config from one of the named ``PRESETS``."""
        try:
            preset = PRESETS[name]
        except KeyError:
            raise ConfigError(
                f"Unknown preset '{name}' (expected one of {', '.join(PRESETS)})"
            ) from None
        return replace(
            preset,
            feeds_file=feeds_file,
            s3=replace(preset.s3),
            logging=replace(preset.logging),
        )


# The scheduled run publishes the last two days to S3; the ad-hoc run
# looks back far enough to show the latest post of every feed.
PRESETS: Dict[str, AppConfig] = {
    "scheduled": AppConfig(
        feeds_file="feeds.txt",
        window_hours=48.0,
        timeout_seconds=3.0,
        output="/tmp/startpage.html",
        s3=S3Config(enabled=True),
    ),
    "adhoc": AppConfig(
        feeds_file="feeds.txt",
        window_hours=27 * 365 * 24.0,
        timeout_seconds=5.0,
        output="startpage.html",
    ),
}


def parse_feed_list(path: str) -> List[FeedSource]:
    """Load feed sources from an OPML file or a newline-delimited list."""
    if Path(path).suffix.lower() in OPML_SUFFIXES:
        return parse_opml_feeds(path)
    return parse_text_feeds(path)


def parse_text_feeds(path: str) -> List[FeedSource]:
    """Parse one feed per line, optionally as ``Name | URL``.

    Blank lines and lines starting with ``#`` are ignored.
    """
    logger.info("Loading feed list from %s", path)
    try:
        lines = Path(path).read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise ConfigError(f"Could not read feed list {path}: {exc}") from exc

    feeds: List[FeedSource] = []
    for number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        name: Optional[str] = None
        url = line
        if "|" in line:
            # URLs may contain "|" themselves; only split off a name when
            # what follows the first pipe is a URL.
            head, tail = (part.strip() for part in line.split("|", 1))
            if is_web_url(tail):
                name, url = head, tail
        if not is_web_url(url):
            raise ConfigError(f"{path}:{number}: not an http(s) feed URL: '{url}'")
        feeds.append(FeedSource(url=url, name=name or None))
        logger.debug("Registered feed '%s'", url)

    logger.info("Loaded %d feed endpoints from configuration", len(feeds))
    return feeds


def parse_opml_feeds(path: str) -> List[FeedSource]:
    """Parse an OPML subscription list and return feed definitions."""
    logger.info("Loading feed configuration from %s", path)
    try:
        tree = ET.parse(path)
    except (OSError, ET.ParseError) as exc:
        raise ConfigError(f"Could not parse OPML feed list {path}: {exc}") from exc

    body = tree.getroot().find("body")
    if body is None:
        raise ConfigError(f"{path} is missing the <body> section.")

    feeds: List[FeedSource] = []

    def walk(outline: ET.Element) -> None:
        title = outline.attrib.get("title") or outline.attrib.get("text")
        feed_url = outline.attrib.get("xmlUrl")
        if outline.attrib.get("type") == "rss" and feed_url:
            if not is_web_url(feed_url):
                raise ConfigError(f"{path}: not an http(s) feed URL: '{feed_url}'")
            feeds.append(FeedSource(url=feed_url, name=title or None))
            logger.debug("Registered feed '%s'", feed_url)
            return
        for child in outline.findall("outline"):
            walk(child)

    for outline in body.findall("outline"):
        walk(outline)

    logger.info("Loaded %d feed endpoints from configuration", len(feeds))
    return feeds


def _resolve_path(base_path: Path, target_path: str) -> str:
    """Resolve a path relative to the base config file if it's not absolute."""
    target = Path(target_path)
    if target.is_absolute():
        return str(target)
    return str((base_path.parent / target).resolve())


def parse_env_config(path: str) -> Dict[str, str]:
    """Parse environment variables from XML."""
    env_vars: Dict[str, str] = {}
    if not path:
        return env_vars

    logger.info("Loading environment configuration from %s", path)
    try:
        root = ET.parse(path).getroot()
    except (OSError, ET.ParseError) as exc:
        raise ConfigError(f"Failed to load environment config {path}: {exc}") from exc

    for var in root.findall("variable"):
        name = var.attrib.get("name")
        value = var.text
        if name and value:
            env_vars[name] = value.strip()
    return env_vars


def _positive_number(root: ET.Element, tag: str, default: float) -> float:
    text = root.findtext(tag)
    if text is None or not text.strip():
        return default
    try:
        value = float(text)
    except ValueError:
        raise ConfigError(f"<{tag}> must be a number, got '{text.strip()}'") from None
    if value <= 0:
        raise ConfigError(f"<{tag}> must be positive.")
    return value


def _flag(node: ET.Element, tag: str, default: bool) -> bool:
    return node.findtext(tag, str(default)).strip().lower() == "true"


def parse_app_config(path: str) -> AppConfig:
    """Parse the main application configuration XML."""
    config_path = Path(path).resolve()
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {path}")

    logger.info("Loading application configuration from %s", config_path)
    try:
        root = ET.parse(config_path).getroot()
    except ET.ParseError as exc:
        raise ConfigError(f"Config file is not valid XML: {exc}") from exc

    feeds_text = root.findtext("feeds")
    if not feeds_text or not feeds_text.strip():
        raise ConfigError("Config missing <feeds> path")
    feeds_file = _resolve_path(config_path, feeds_text.strip())

    env_text = root.findtext("env")
    env_file = _resolve_path(config_path, env_text.strip()) if env_text else None

    window_hours = _positive_number(root, "window-hours", 48.0)
    timeout_seconds = _positive_number(root, "timeout-seconds", 3.0)

    concurrency: Optional[int] = None
    if root.findtext("concurrency"):
        concurrency = int(_positive_number(root, "concurrency", 1))

    order = root.findtext("order", "arrival").strip().lower()
    if order not in ORDERS:
        raise ConfigError(f"<order> must be one of {', '.join(ORDERS)}")

    template_text = root.findtext("template")
    template = _resolve_path(config_path, template_text.strip()) if template_text else None
    output_text = root.findtext("output")
    output = _resolve_path(config_path, output_text.strip()) if output_text else None

    # S3
    s3_node = root.find("s3")
    s3 = S3Config()
    if s3_node is not None:
        s3.enabled = _flag(s3_node, "enabled", True)
        s3.bucket = s3_node.findtext("bucket") or None
        s3.key = s3_node.findtext("key") or None
        s3.region = s3_node.findtext("region") or None
        s3.content_type = s3_node.findtext("content-type") or s3.content_type

    # Logging
    log_node = root.find("logging")
    logging_config = LoggingConfig()
    if log_node is not None:
        logging_config.level = log_node.findtext("level", "INFO")
        log_file = log_node.findtext("file")
        if log_file:
            logging_config.file = _resolve_path(config_path, log_file)

    return AppConfig(
        feeds_file=feeds_file,
        env_file=env_file,
        window_hours=window_hours,
        timeout_seconds=timeout_seconds,
        concurrency=concurrency,
        order=order,
        template=template,
        output=output,
        s3=s3,
        logging=logging_config,
    )
