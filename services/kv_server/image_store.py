"""Image backends for the KV server: inline records in the KV table, or S3."""

import base64
import json
import logging
import random
import string
import time
from datetime import datetime, timezone
from typing import Optional, Tuple

import boto3
from botocore.exceptions import ClientError

from shared.config import get_aws_config
from shared.kv_store import KeyValueStore
from services.storage.image_codec import parse_data_url

logger = logging.getLogger(__name__)

IMAGE_KEY_PREFIX = "image:"
DEFAULT_CONTENT_TYPE = "image/jpeg"

_NAME_ALPHABET = string.ascii_lowercase + string.digits


def generate_file_name(original_name: Optional[str]) -> str:
    """Unique upload name: upload_<ms timestamp>_<random>.<ext>."""
    extension = "jpg"
    if original_name and "." in original_name:
        extension = original_name.rsplit(".", 1)[-1] or "jpg"
    suffix = "".join(random.choices(_NAME_ALPHABET, k=11))
    return f"upload_{int(time.time() * 1000)}_{suffix}.{extension}"


class KVImageStore:
    """Stores each image as a JSON record with an inline data URL."""

    storage_name = "kv_store"

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def put(self, file_name: str, original_name: str, content_type: str, data: bytes) -> None:
        content_type = content_type or DEFAULT_CONTENT_TYPE
        record = {
            "fileName": file_name,
            "originalName": original_name,
            "contentType": content_type,
            "size": len(data),
            "dataUrl": f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}",
            "uploadedAt": datetime.now(timezone.utc).isoformat(),
        }
        self.store.set_item(f"{IMAGE_KEY_PREFIX}{file_name}", json.dumps(record))
        logger.info(f"Stored image {file_name} in KV store ({len(data)} bytes)")

    async def get(self, file_name: str) -> Optional[Tuple[str, bytes]]:
        """
        Load an image.

        Returns:
            Tuple of (content type, binary data), or None if not found
        """
        raw = self.store.get_item(f"{IMAGE_KEY_PREFIX}{file_name}")
        if raw is None:
            return None
        record = json.loads(raw)
        content_type, data = parse_data_url(record["dataUrl"])
        return record.get("contentType") or content_type, data


class S3ImageStore:
    """Stores images as objects in an S3 bucket."""

    storage_name = "s3"

    def __init__(
        self,
        bucket_name: str,
        region: str = "us-east-1",
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        key_prefix: str = "images/"
    ):
        """
        Initialize S3 client.

        Args:
            bucket_name: S3 bucket name
            region: AWS region
            access_key_id: AWS access key ID (optional, uses default credentials if not provided)
            secret_access_key: AWS secret access key (optional)
            key_prefix: Object key prefix for uploaded images
        """
        self.bucket_name = bucket_name
        self.region = region
        self.key_prefix = key_prefix

        if access_key_id and secret_access_key:
            self.s3_client = boto3.client(
                's3',
                region_name=region,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key
            )
        else:
            self.s3_client = boto3.client('s3', region_name=region)

    def _object_key(self, file_name: str) -> str:
        return f"{self.key_prefix}{file_name}"

    async def put(self, file_name: str, original_name: str, content_type: str, data: bytes) -> None:
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=self._object_key(file_name),
                Body=data,
                ContentType=content_type or DEFAULT_CONTENT_TYPE,
                Metadata={"original-name": original_name or ""}
            )
            logger.info(f"Successfully uploaded image to S3: {self._object_key(file_name)}")
        except ClientError as e:
            logger.error(f"Failed to upload image to S3: {e}", exc_info=True)
            raise

    async def get(self, file_name: str) -> Optional[Tuple[str, bytes]]:
        try:
            response = self.s3_client.get_object(
                Bucket=self.bucket_name,
                Key=self._object_key(file_name)
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return None
            logger.error(f"Failed to read image from S3: {e}", exc_info=True)
            raise
        return response.get("ContentType") or DEFAULT_CONTENT_TYPE, response["Body"].read()


def image_store_from_env(store: KeyValueStore):
    """S3 when AWS_S3_BUCKET is set, otherwise the KV table."""
    aws = get_aws_config()
    if aws["s3_bucket"]:
        logger.info(f"Using S3 image storage: {aws['s3_bucket']}")
        return S3ImageStore(
            bucket_name=aws["s3_bucket"],
            region=aws["region"],
            access_key_id=aws["access_key_id"],
            secret_access_key=aws["secret_access_key"]
        )
    return KVImageStore(store)
