"""Command-line interface for the rss_startpage application."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import pprint
from pathlib import Path
from typing import List, Optional

from .config import ORDERS, PRESETS, AppConfig, parse_app_config, parse_env_config
from .errors import ConfigError, StartPageError
from .publishing import S3Target
from .runner import RunConfig, execute

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Build a start page of new posts from RSS/Atom feeds."
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the main configuration XML file.",
    )
    parser.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        default="adhoc",
        help="Built-in settings to use when no --config is given.",
    )
    parser.add_argument(
        "--feeds",
        metavar="PATH",
        help="Feed list (one URL per line, or OPML). Overrides config.",
    )

    # Overrides for the run itself
    parser.add_argument("--window-hours", type=float, default=None)
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-feed fetch timeout in seconds.",
    )
    parser.add_argument("--order", choices=ORDERS, default=None)
    parser.add_argument("--template", metavar="PATH", default=None)
    parser.add_argument(
        "--output",
        metavar="PATH",
        default=None,
        help="Write the rendered page to PATH.",
    )
    parser.add_argument(
        "--no-publish",
        action="store_true",
        help="Skip the S3 upload even if the config enables it.",
    )

    # Overrides for logging/debugging
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g. DEBUG, INFO, WARNING). Overrides config.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Optional path to a log file. Overrides config.",
    )
    return parser


def configure_logging(level_name: str, log_file: Optional[str] = None) -> None:
    """Initialise logging according to options."""
    log_level = getattr(logging, level_name.upper(), None)
    if not isinstance(log_level, int):
        raise ValueError(f"Unsupported log level: {level_name}")

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(log_level)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if log_file:
        log_path = Path(log_file)
        if log_path.parent and not log_path.parent.exists():
            log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        logger.debug(
            "Logger initialised with level %s and file output to %s",
            level_name.upper(),
            log_path,
        )
    else:
        logger.debug(
            "Logger initialised with console output at level %s", level_name.upper()
        )


def load_app_config(args: argparse.Namespace) -> AppConfig:
    """Load the config file or preset and apply CLI overrides."""
    if args.config:
        app_config = parse_app_config(args.config)
    else:
        app_config = AppConfig.from_preset(args.preset, args.feeds or "feeds.txt")

    if args.feeds:
        app_config.feeds_file = args.feeds
    if args.window_hours is not None:
        app_config.window_hours = args.window_hours
    if args.timeout is not None:
        app_config.timeout_seconds = args.timeout
    if args.order:
        app_config.order = args.order
    if args.template:
        app_config.template = args.template
    if args.output:
        app_config.output = args.output
    if args.no_publish:
        app_config.s3.enabled = False
    return app_config


def resolve_s3_target(app_config: AppConfig) -> Optional[S3Target]:
    """Combine S3 settings from the config with ``S3_*`` environment variables."""
    if not app_config.s3.enabled:
        return None

    from_env = S3Target.from_env()
    bucket = app_config.s3.bucket or (from_env.bucket if from_env else None)
    key = app_config.s3.key or (from_env.key if from_env else None)
    if not bucket or not key:
        raise ConfigError(
            "S3 publishing is enabled but no bucket/key is configured "
            "(set S3_BUCKET and S3_FILE_KEY or use --no-publish)."
        )
    return S3Target(
        bucket=bucket,
        key=key,
        region=app_config.s3.region or os.environ.get("S3_BUCKET_REGION") or None,
        content_type=app_config.s3.content_type,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        app_config = load_app_config(args)

        if app_config.env_file:
            os.environ.update(parse_env_config(app_config.env_file))

        # CLI overrides config
        log_level = args.log_level or app_config.logging.level
        log_file = args.log_file or app_config.logging.file
        configure_logging(log_level, log_file)

        config = RunConfig(
            feeds_file=app_config.feeds_file,
            window_hours=app_config.window_hours,
            timeout_seconds=app_config.timeout_seconds,
            concurrency=app_config.concurrency,
            order=app_config.order,
            template_path=app_config.template,
            output_path=app_config.output,
            s3=resolve_s3_target(app_config),
        )
        logger.info(
            "Active Configuration:\n%s", pprint.pformat(dataclasses.asdict(config))
        )

        result = execute(config)
    except (ConfigError, ValueError) as exc:
        parser.error(str(exc))
    except StartPageError as exc:
        logger.error("%s", exc)
        return 1
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error during execution.")
        return 1

    destinations = [d for d in (result.output_path, result.published_to) if d]
    print(
        f"{len(result.data.posts)} new posts"
        + (f" -> {', '.join(destinations)}" if destinations else "")
    )
    return 0
