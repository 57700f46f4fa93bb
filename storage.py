import logging
import mimetypes
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

# Error codes S3 and S3-compatible servers use for a missing object
_MISSING_CODES = ("NoSuchKey", "404", "NotFound")


class BlobNotFoundError(KeyError):
    pass


def _is_missing(e: ClientError) -> bool:
    return str(e.response.get("Error", {}).get("Code")) in _MISSING_CODES


class BlobStore:
    """
    Object store on any S3-compatible service (AWS S3, MinIO, R2).

    Keys are slash-separated names ("builds/1700000000000-ab12cd.apk",
    "feedbacks.json"); each key maps to one object in the bucket and to a
    public URL under public_url.
    """

    def __init__(
        self,
        bucket: str,
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        region: str = "us-east-1",
        public_url: str = "/blobs",
        client=None,
    ):
        if not bucket:
            raise ValueError("Blob bucket must be set")

        self.bucket = bucket
        self.public_url = (public_url or "/blobs").rstrip("/")
        self.client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url or None,
            aws_access_key_id=access_key or None,
            aws_secret_access_key=secret_key or None,
            region_name=region,
            config=BotoConfig(retries={"max_attempts": 3, "mode": "standard"}),
        )

    @staticmethod
    def validate_key(key: str) -> str:
        key = (key or "").strip("/")
        if not key:
            raise ValueError("Blob key must not be empty")
        if "\\" in key or any(part in ("", ".", "..") for part in key.split("/")):
            raise ValueError(f"Invalid blob key: {key!r}")
        return key

    def url(self, key: str) -> str:
        return f"{self.public_url}/{self.validate_key(key)}"

    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        key = self.validate_key(key)
        content_type = content_type or mimetypes.guess_type(key)[0] or "application/octet-stream"

        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except ClientError as e:
            logger.error("Upload of blob %s failed: %s", key, e)
            raise

        logger.info("Stored blob %s (%d bytes)", key, len(data))
        return self.url(key)

    def open(self, key: str) -> Dict[str, Any]:
        """
        Raw get_object response; the caller reads or streams ["Body"].
        """
        key = self.validate_key(key)
        try:
            return self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_missing(e):
                raise BlobNotFoundError(key) from e
            logger.error("Download of blob %s failed: %s", key, e)
            raise

    def get(self, key: str) -> bytes:
        body = self.open(key)["Body"]
        try:
            return body.read()
        finally:
            body.close()

    def exists(self, key: str) -> bool:
        key = self.validate_key(key)
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if _is_missing(e):
                return False
            raise

    def list(self, prefix: str = "") -> List[str]:
        keys: List[str] = []
        paginator = self.client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
        return sorted(keys)

    def delete(self, key: str) -> None:
        # DeleteObject succeeds for missing keys too
        key = self.validate_key(key)
        self.client.delete_object(Bucket=self.bucket, Key=key)
        logger.info("Deleted blob %s", key)
