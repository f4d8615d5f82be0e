from types import SimpleNamespace
from urllib.parse import parse_qs, urlparse

import boto3
import pytest
from botocore.stub import Stubber

from docnotes.services.storage import InMemoryStorage, S3Storage, StorageError


def _config(**overrides):
    fields = dict(
        s3_bucket="docnotes-test",
        s3_region="ap-south-1",
        s3_endpoint_url=None,
        s3_upload_url_expire_seconds=600,
        s3_download_url_expire_seconds=3600,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        region_name="ap-south-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


def test_presigned_upload_url_expires_in_ten_minutes(s3_client):
    storage = S3Storage(_config(), client=s3_client)

    url = storage.presigned_upload_url("patients/p1/abc.pdf", "application/pdf", 1024)

    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    assert parsed.path.endswith("patients/p1/abc.pdf")
    assert "docnotes-test" in url
    assert query["X-Amz-Expires"] == ["600"]


def test_presigned_download_url_sets_attachment_name(s3_client):
    storage = S3Storage(_config(), client=s3_client)

    url = storage.presigned_download_url("patients/p1/abc.pdf", "blood panel.pdf")

    query = parse_qs(urlparse(url).query)
    assert query["X-Amz-Expires"] == ["3600"]
    assert query["response-content-disposition"] == ['attachment; filename="blood%20panel.pdf"']


def test_custom_endpoint_uses_path_style_addressing(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    storage = S3Storage(_config(s3_endpoint_url="http://minio:9000"))

    url = storage.presigned_download_url("k.pdf", "k.pdf")

    assert url.startswith("http://minio:9000/docnotes-test/k.pdf")


@pytest.mark.anyio
async def test_delete_object_calls_s3(s3_client):
    storage = S3Storage(_config(), client=s3_client)
    with Stubber(s3_client) as stubber:
        stubber.add_response("delete_object", {}, {"Bucket": "docnotes-test", "Key": "k.pdf"})
        await storage.delete_object("k.pdf")
        stubber.assert_no_pending_responses()


@pytest.mark.anyio
async def test_delete_object_failure_raises_storage_error(s3_client):
    storage = S3Storage(_config(), client=s3_client)
    with Stubber(s3_client) as stubber:
        stubber.add_client_error("delete_object", service_error_code="AccessDenied", http_status_code=403)
        with pytest.raises(StorageError):
            await storage.delete_object("k.pdf")


@pytest.mark.anyio
async def test_in_memory_storage_records_deletes():
    storage = InMemoryStorage()
    storage.objects["k.pdf"] = b"%PDF"

    await storage.delete_object("k.pdf")

    assert storage.objects == {}
    assert storage.deleted == ["k.pdf"]
