import os

import boto3
import pytest
from moto import mock_aws

from S3ML.core.logging_config import configure_logging
from S3ML.core.settings import get_settings
from tests.consts import TEST_BUCKET_NAME, TEST_REGION

configure_logging("DEBUG", log_to_file=False)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never touches a real account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", TEST_REGION)
    monkeypatch.delenv("AWS_PROFILE", raising=False)


@pytest.fixture
def mocked_aws(aws_credentials):
    """moto-backed S3 with the test bucket already created."""
    with mock_aws():
        s3_client = boto3.client("s3", region_name=TEST_REGION)
        s3_client.create_bucket(Bucket=TEST_BUCKET_NAME)
        yield s3_client


@pytest.fixture
def sample_files(tmp_path):
    """One text file, one PNG-prefixed file and one empty file."""
    text = tmp_path / "file1.txt"
    text.write_text("This is a sample text file for testing S3 uploads.\n", encoding="utf-8")

    image = tmp_path / "logo.png"
    image.write_bytes(b"\x89PNG\r\n\x1a\n" + bytes(range(256)))

    empty = tmp_path / "empty.bin"
    empty.write_bytes(b"")

    return [text, image, empty]
