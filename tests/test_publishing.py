from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from rss_startpage import publishing
from rss_startpage.errors import PublishError
from rss_startpage.publishing import S3Target


@pytest.fixture
def clean_env(monkeypatch):
    for key in ("S3_BUCKET", "S3_FILE_KEY", "S3_BUCKET_REGION", "S3_CONTENT_TYPE"):
        monkeypatch.delenv(key, raising=False)


def test_write_local_creates_parent_directories(tmp_path):
    target = tmp_path / "site" / "start" / "index.html"

    written = publishing.write_local("<p>hi</p>", str(target))

    assert written == target
    assert target.read_text(encoding="utf-8") == "<p>hi</p>"


def test_write_local_wraps_os_errors(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("", encoding="utf-8")

    with pytest.raises(PublishError) as excinfo:
        publishing.write_local("<p>hi</p>", str(blocker / "index.html"))

    assert excinfo.value.target == str(blocker / "index.html")


@patch("rss_startpage.publishing.boto3")
def test_put_object_uploads_html(mock_boto3):
    mock_s3 = MagicMock()
    mock_boto3.client.return_value = mock_s3
    target = S3Target(bucket="pages", key="start/index.html", region="us-east-2")

    publishing.put_object("<p>hi</p>", target)

    mock_boto3.client.assert_called_once_with("s3", region_name="us-east-2")
    mock_s3.put_object.assert_called_once_with(
        Bucket="pages",
        Key="start/index.html",
        Body=b"<p>hi</p>",
        ContentType="text/html",
    )


@patch("rss_startpage.publishing.boto3")
def test_put_object_wraps_client_errors(mock_boto3):
    mock_s3 = MagicMock()
    mock_s3.put_object.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "PutObject"
    )
    mock_boto3.client.return_value = mock_s3

    with pytest.raises(PublishError, match="AccessDenied") as excinfo:
        publishing.put_object("<p>hi</p>", S3Target(bucket="pages", key="index.html"))

    assert excinfo.value.target == "s3://pages/index.html"


def test_s3_target_from_env(clean_env, monkeypatch):
    monkeypatch.setenv("S3_BUCKET", "pages")
    monkeypatch.setenv("S3_FILE_KEY", "start/index.html")
    monkeypatch.setenv("S3_BUCKET_REGION", "eu-central-1")

    target = S3Target.from_env()

    assert target == S3Target(
        bucket="pages",
        key="start/index.html",
        region="eu-central-1",
        content_type="text/html",
    )
    assert target.uri == "s3://pages/start/index.html"


def test_s3_target_from_env_requires_bucket_and_key(clean_env, monkeypatch):
    monkeypatch.setenv("S3_BUCKET", "pages")

    assert S3Target.from_env() is None
