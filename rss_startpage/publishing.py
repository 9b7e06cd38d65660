"""Delivery of the rendered start page to disk or S3."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import PublishError

logger = logging.getLogger(__name__)


@dataclass
class S3Target:
    """Where the start page is uploaded."""

    bucket: str
    key: str
    region: Optional[str] = None
    content_type: str = "text/html"

    @property
    def uri(self) -> str:
        return f"s3://{self.bucket}/{self.key}"

    @classmethod
    def from_env(cls) -> Optional["S3Target"]:
        """Build a target from ``S3_BUCKET``, ``S3_FILE_KEY`` and friends."""
        bucket = os.environ.get("S3_BUCKET")
        key = os.environ.get("S3_FILE_KEY")
        if not bucket or not key:
            return None
        return cls(
            bucket=bucket,
            key=key,
            region=os.environ.get("S3_BUCKET_REGION") or None,
            content_type=os.environ.get("S3_CONTENT_TYPE") or "text/html",
        )


def write_local(html: str, path: str) -> Path:
    """Write the page to ``path``, creating parent directories."""
    location = Path(path)
    try:
        if location.parent and not location.parent.exists():
            location.parent.mkdir(parents=True, exist_ok=True)
        location.write_text(html, encoding="utf-8")
    except OSError as exc:
        raise PublishError(f"Could not write start page: {exc}", target=str(location)) from exc
    logger.info("Wrote start page to %s", location)
    return location


def put_object(html: str, target: S3Target) -> None:
    """Upload the page to S3 using the default boto3 credential chain."""
    try:
        client = boto3.client("s3", region_name=target.region)
        client.put_object(
            Bucket=target.bucket,
            Key=target.key,
            Body=html.encode("utf-8"),
            ContentType=target.content_type,
        )
    except (BotoCoreError, ClientError) as exc:
        raise PublishError(f"Error uploading object to S3: {exc}", target=target.uri) from exc
    logger.info("Successfully updated start page at %s", target.uri)
