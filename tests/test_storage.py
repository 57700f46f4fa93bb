"""
Tests for the S3-backed blob store.
"""
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from storage import BlobNotFoundError, BlobStore


def _client_error(code, operation="GetObject"):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class TestBlobStoreClient:
    """boto3 client construction and S3 call shapes"""

    def test_builds_s3_client_from_settings(self):
        with patch("storage.boto3.client") as mock_client:
            BlobStore(
                "builds-bucket",
                endpoint_url="http://minio:9000",
                access_key="key",
                secret_key="secret",
                region="eu-west-1",
            )

        args, kwargs = mock_client.call_args
        assert args == ("s3",)
        assert kwargs["endpoint_url"] == "http://minio:9000"
        assert kwargs["aws_access_key_id"] == "key"
        assert kwargs["aws_secret_access_key"] == "secret"
        assert kwargs["region_name"] == "eu-west-1"

    def test_requires_bucket(self):
        with pytest.raises(ValueError):
            BlobStore("", client=MagicMock())

    def test_put_object_arguments(self):
        client = MagicMock()
        store = BlobStore("b", client=client, public_url="https://cdn.example.com/")

        url = store.put("feedbacks.json", b"[]")

        client.put_object.assert_called_once_with(
            Bucket="b",
            Key="feedbacks.json",
            Body=b"[]",
            ContentType="application/json",
        )
        assert url == "https://cdn.example.com/feedbacks.json"

    def test_unknown_extension_is_octet_stream(self):
        client = MagicMock()
        BlobStore("b", client=client).put("builds/blob.zzunknown", b"x")

        assert client.put_object.call_args.kwargs["ContentType"] == "application/octet-stream"

    def test_other_client_errors_propagate(self):
        client = MagicMock()
        client.get_object.side_effect = _client_error("AccessDenied")
        client.head_object.side_effect = _client_error("403", "HeadObject")
        store = BlobStore("b", client=client)

        with pytest.raises(ClientError):
            store.get("feedbacks.json")
        with pytest.raises(ClientError):
            store.exists("feedbacks.json")

    @pytest.mark.parametrize("code", ["NoSuchKey", "404", "NotFound"])
    def test_missing_codes_map_to_not_found(self, code):
        client = MagicMock()
        client.get_object.side_effect = _client_error(code)
        client.head_object.side_effect = _client_error(code, "HeadObject")
        store = BlobStore("b", client=client)

        with pytest.raises(BlobNotFoundError):
            store.open("nope")
        assert store.exists("nope") is False


class TestBlobStore:
    """Key mapping, CRUD and key validation"""

    def test_put_returns_url(self, store):
        url = store.put("builds/app.apk", b"APK")

        assert url == "/blobs/builds/app.apk"
        assert store.get("builds/app.apk") == b"APK"
        assert store.exists("builds/app.apk")

    def test_put_overwrites(self, store):
        store.put("feedbacks.json", b"[]")
        store.put("feedbacks.json", b"[1]")

        assert store.get("feedbacks.json") == b"[1]"

    def test_open_exposes_metadata(self, store):
        store.put("feedbacks.json", b"[]")

        obj = store.open("feedbacks.json")

        assert obj["ContentType"] == "application/json"
        assert obj["ContentLength"] == 2
        assert obj["Body"].read() == b"[]"

    def test_missing_key(self, store):
        assert not store.exists("nope")
        with pytest.raises(BlobNotFoundError):
            store.get("nope")
        with pytest.raises(BlobNotFoundError):
            store.open("nope")

    def test_list_with_prefix(self, store):
        store.put("builds/b.ipa", b"1")
        store.put("builds/a.apk", b"2")
        store.put("feedbacks.json", b"[]")

        assert store.list("builds/") == ["builds/a.apk", "builds/b.ipa"]
        assert len(store.list()) == 3
        assert store.list("nothing/") == []

    def test_delete_is_idempotent(self, store):
        store.put("x.bin", b"1")

        store.delete("x.bin")
        store.delete("x.bin")

        assert not store.exists("x.bin")

    def test_leading_slash_is_stripped(self, store):
        assert store.url("/builds/app.apk") == "/blobs/builds/app.apk"

    @pytest.mark.parametrize(
        "key", ["../escape.txt", "builds/../../escape.txt", "", "/", "a//b", "a\\b", "./x"]
    )
    def test_rejects_invalid_keys(self, store, key):
        with pytest.raises(ValueError):
            store.put(key, b"x")
