"""Photo object storage: local filesystem for development, S3 in production."""
import asyncio
import logging
import os
from urllib.parse import urlparse

from app.config import settings

logger = logging.getLogger(__name__)

LOCAL_MEDIA_URL = "/media"


class ObjectStoreError(Exception):
    pass


def build_object_key(filename: str) -> str:
    prefix = settings.s3_prefix
    if prefix and not prefix.endswith("/"):
        prefix = f"{prefix}/"
    return f"{prefix}{filename}"


class ObjectStore:
    async def put(self, key: str, data: bytes, content_type: str) -> str:
        raise NotImplementedError

    async def get(self, key: str) -> bytes:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    def key_from_url(self, url: str) -> str:
        parsed = urlparse(url)
        return parsed.path.lstrip("/")


class LocalObjectStore(ObjectStore):
    def __init__(self, root: str, base_url: str = LOCAL_MEDIA_URL):
        self.root = os.path.abspath(root)
        self.base_url = base_url.rstrip("/")

    def _path(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.root, key))
        if os.path.commonpath([self.root, path]) != self.root:
            raise ObjectStoreError(f"Key escapes storage root: {key}")
        return path

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)
        return f"{self.base_url}/{key}"

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        if not os.path.exists(path):
            raise ObjectStoreError(f"Object not found: {key}")
        with open(path, "rb") as f:
            return f.read()

    async def delete(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)

    def key_from_url(self, url: str) -> str:
        path = urlparse(url).path
        if path.startswith(f"{self.base_url}/"):
            return path[len(self.base_url) + 1:]
        return path.lstrip("/")


class S3ObjectStore(ObjectStore):
    def __init__(self, bucket: str, region: str):
        import boto3

        self.bucket = bucket
        self.region = region
        self.client = boto3.client("s3", region_name=region or None)

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except Exception as e:
            raise ObjectStoreError(f"Failed to upload {key}: {e}") from e
        return self.public_url(key)

    async def get(self, key: str) -> bytes:
        try:
            response = await asyncio.to_thread(self.client.get_object, Bucket=self.bucket, Key=key)
            return await asyncio.to_thread(response["Body"].read)
        except Exception as e:
            raise ObjectStoreError(f"Failed to fetch {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        except Exception as e:
            raise ObjectStoreError(f"Failed to delete {key}: {e}") from e


def local_media_root() -> str:
    return os.path.join(settings.data_dir, "media")


_store: ObjectStore | None = None


def get_object_store() -> ObjectStore:
    global _store
    if _store is None:
        if settings.storage_backend == "s3":
            _store = S3ObjectStore(bucket=settings.s3_bucket, region=settings.s3_region)
        else:
            _store = LocalObjectStore(local_media_root())
        logger.info("Using %s object store", settings.storage_backend)
    return _store
