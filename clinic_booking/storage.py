"""
Object storage for booking attachments (medical documents, payment screenshots).
Files go to a private Cloudflare R2 bucket; only the storage key is persisted.
"""

import logging
import secrets
import time
from typing import Optional

import boto3
from botocore.config import Config

from .config import R2_ACCESS_KEY_ID, R2_ACCOUNT_ID, R2_BUCKET_NAME, R2_SECRET_ACCESS_KEY

logger = logging.getLogger(__name__)

# Presigned URL expiration time (1 hour)
PRESIGNED_URL_EXPIRATION = 3600

ATTACHMENT_PREFIX = "medical-documents"


def get_r2_client():
    """Create and return an R2 client."""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
        region_name="auto",
    )


def generate_storage_key(extension: str, now_ms: Optional[int] = None) -> str:
    """
    Build a collision-resistant key: millisecond timestamp, random suffix, original extension.

    Example: medical-documents/1760782345123-9f3a1c2b.pdf
    """
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    ext = (extension or "bin").lower().lstrip(".")
    return f"{ATTACHMENT_PREFIX}/{now_ms}-{secrets.token_hex(4)}.{ext}"


class ObjectStorage:
    """Write-only access to the attachments bucket"""

    def __init__(self, client=None, bucket: str = R2_BUCKET_NAME):
        self._client = client
        self.bucket = bucket

    @property
    def client(self):
        if self._client is None:
            self._client = get_r2_client()
        return self._client

    def upload(self, key: str, content: bytes, content_type: str) -> str:
        """Upload bytes under the given key and return the key"""
        logger.info(f"📤 Uploading attachment {key} ({len(content)} bytes)")
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=content,
            ContentType=content_type,
        )
        return key

    def generate_presigned_url(self, key: str, expiration: int = PRESIGNED_URL_EXPIRATION) -> str:
        """Generate a presigned URL for accessing a private object in R2."""
        params = {"Bucket": self.bucket, "Key": key}
        if key.lower().endswith((".jpg", ".jpeg", ".png", ".webp", ".gif", ".heic", ".heif", ".pdf")):
            params["ResponseContentDisposition"] = "inline"

        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params=params,
                ExpiresIn=expiration,
            )
        except Exception as e:
            logger.error(f"❌ Failed to generate presigned URL for key {key}: {e}")
            raise
