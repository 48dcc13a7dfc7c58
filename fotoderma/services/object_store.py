"""S3-compatible blob storage for consultation photos."""

from __future__ import annotations

import io
from dataclasses import dataclass
from urllib.parse import quote

import urllib3
from minio import Minio
from minio.error import MinioException

from fotoderma.core.config import settings

_PUBLIC_READ = {"x-amz-acl": "public-read"}


class ObjectStoreError(Exception):
    """Raised when the object store rejects or fails an operation."""


@dataclass(frozen=True)
class StoredObject:
    name: str
    url: str


def get_minio_client() -> Minio:
    """Return a MinIO client whose HTTP pool is bounded by the storage timeout."""

    timeout = urllib3.Timeout(
        connect=min(5.0, settings.storage_timeout_seconds),
        read=settings.storage_timeout_seconds,
    )
    http_client = urllib3.PoolManager(
        timeout=timeout,
        retries=urllib3.Retry(
            total=2, backoff_factor=0.2, status_forcelist=[500, 502, 503, 504]
        ),
    )
    return Minio(
        settings.storage_endpoint,
        access_key=settings.storage_access_key,
        secret_key=settings.storage_secret_key,
        secure=settings.storage_secure,
        http_client=http_client,
    )


class ObjectStore:
    """Thin wrapper that stores publicly readable blobs in one bucket."""

    def __init__(self, client: Minio, bucket: str, public_url: str) -> None:
        self.client = client
        self.bucket = bucket
        self.public_url = public_url.rstrip("/")

    def url_for(self, name: str) -> str:
        return f"{self.public_url}/{self.bucket}/{quote(name)}"

    def put(self, name: str, data: bytes, content_type: str) -> StoredObject:
        try:
            self.client.put_object(
                self.bucket,
                name,
                io.BytesIO(data),
                length=len(data),
                content_type=content_type,
                metadata=_PUBLIC_READ,
            )
        except (MinioException, urllib3.exceptions.HTTPError) as exc:
            raise ObjectStoreError(f"Failed to store {name}") from exc
        return StoredObject(name=name, url=self.url_for(name))

    def remove(self, name: str) -> None:
        try:
            self.client.remove_object(self.bucket, name)
        except (MinioException, urllib3.exceptions.HTTPError) as exc:
            raise ObjectStoreError(f"Failed to remove {name}") from exc


def build_object_store() -> ObjectStore:
    return ObjectStore(
        get_minio_client(), settings.storage_bucket, settings.storage_public_url
    )
