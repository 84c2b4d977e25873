"""Binary object storage for episode artifacts.

``R2Storage`` writes to Cloudflare R2 (or any S3-compatible store) with
boto3; ``LocalFileStorage`` writes to a directory for development. Both
return the URL the stored object can be fetched from.
"""

import asyncio
import logging
import os
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError, EndpointConnectionError

from newscast.errors import CollaboratorError, TransientError

logger = logging.getLogger(__name__)


def _normalize_key(key: str) -> str:
    key = key.strip().lstrip("/")
    if not key or ".." in key.split("/"):
        raise ValueError(f"Invalid storage key: {key!r}")
    return key


class R2Storage:
    """S3-compatible object storage.

    Example:
        storage = R2Storage(
            bucket_name="newscast",
            endpoint_url="https://<account>.r2.cloudflarestorage.com",
            aws_access_key_id="...",
            aws_secret_access_key="...",
            public_base_url="https://media.example.com",
        )
        url = await storage.put("episodes/x/audio.wav", data, "audio/wav")
    """

    def __init__(
        self,
        bucket_name: str,
        endpoint_url: str,
        aws_access_key_id: str,
        aws_secret_access_key: str,
        public_base_url: str = "",
        client=None,
    ):
        if client is None:
            if not all([endpoint_url, aws_access_key_id, aws_secret_access_key]):
                raise ValueError(
                    "S3_ENDPOINT_URL, AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY are required for R2 storage"
                )
            client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=aws_access_key_id,
                aws_secret_access_key=aws_secret_access_key,
                region_name="auto",
            )
        self.client = client
        self.bucket_name = bucket_name
        self.endpoint_url = endpoint_url.rstrip("/")
        self.public_base_url = public_base_url.rstrip("/")

    def url_for(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"{self.endpoint_url}/{self.bucket_name}/{key}"

    def _put_sync(self, key: str, data: bytes, content_type: str) -> None:
        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except EndpointConnectionError as e:
            raise TransientError(f"Upload of {key} failed: {e}") from e
        except ClientError as e:
            status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            message = f"Upload of {key} failed: {e}"
            if status is not None and status >= 500:
                raise TransientError(message, status=status) from e
            raise CollaboratorError(message, status=status) from e
        except BotoCoreError as e:
            raise TransientError(f"Upload of {key} failed: {e}") from e

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        key = _normalize_key(key)
        await asyncio.to_thread(self._put_sync, key, data, content_type)
        url = self.url_for(key)
        logger.info(f"Stored {key} ({len(data)} bytes) in bucket {self.bucket_name}")
        return url


class LocalFileStorage:
    """Stores objects as files under a local directory."""

    def __init__(self, directory: str, public_base_url: str = ""):
        self.directory = Path(directory)
        self.public_base_url = public_base_url.rstrip("/")
        os.makedirs(self.directory, exist_ok=True)

    def url_for(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return (self.directory / key).resolve().as_uri()

    def _put_sync(self, key: str, data: bytes) -> None:
        path = self.directory / key
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        key = _normalize_key(key)
        await asyncio.to_thread(self._put_sync, key, data)
        logger.info(f"Stored {key} ({len(data)} bytes, {content_type}) in {self.directory}")
        return self.url_for(key)
