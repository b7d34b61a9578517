"""
S3-compatible object storage (AWS S3, MinIO, LocalStack).

boto3 is synchronous, so every call is pushed to a worker thread. Object URLs
are built from 'public_base_url' when given (CDN or public bucket endpoint),
otherwise from the endpoint URL or the regional AWS host. The object key is the
deletion handle.
"""

import asyncio
from typing import Any

import boto3
from botocore.config import Config
from loguru import logger

from chat_toolkit.storage.base import ObjectStorage, StoredObject


class S3ObjectStorage(ObjectStorage):
    def __init__(
        self,
        bucket_name: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        public_base_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
    ) -> None:
        self.bucket_name = bucket_name
        self.region = region
        self.endpoint_url = endpoint_url
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

        client_kwargs: dict[str, Any] = {
            "service_name": "s3",
            "region_name": region,
            "config": Config(signature_version="s3v4", retries={"max_attempts": 3, "mode": "adaptive"}),
        }
        if access_key_id and secret_access_key:
            client_kwargs["aws_access_key_id"] = access_key_id
            client_kwargs["aws_secret_access_key"] = secret_access_key
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url
            logger.info(f"Using custom S3 endpoint: {endpoint_url}")
        self.client = boto3.client(**client_kwargs)

    def object_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{key}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{key}"

    async def upload(self, data: bytes, key: str, content_type: str) -> StoredObject:
        await asyncio.to_thread(
            self.client.put_object,
            Bucket=self.bucket_name,
            Key=key,
            Body=data,
            ContentType=content_type or "application/octet-stream",
        )
        logger.debug(f"Uploaded s3://{self.bucket_name}/{key} ({len(data)} bytes)")
        return StoredObject(url=self.object_url(key), deletion_handle=key)

    async def delete(self, deletion_handle: str) -> bool:
        await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket_name, Key=deletion_handle)
        return True
