"""Blob storage for audio files (local filesystem or Cloudflare R2).

Storage backend is determined by environment variables:
- EMOSET_STORAGE=r2 → R2Storage (production)
- otherwise → LocalStorage (development)

R2Config in config.yaml is required only if EMOSET_STORAGE=r2.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Protocol

import boto3

from .config import Config, R2Config

WAV_CONTENT_TYPE = "audio/wav"


class StorageError(Exception):
    """Raised when a blob operation fails."""


class BlobExistsError(StorageError):
    """Raised when uploading to an existing key without upsert."""


class StorageBackend(Protocol):
    """Protocol for storage backends."""

    def upload_bytes(
        self, key: str, data: bytes, content_type: str = WAV_CONTENT_TYPE, upsert: bool = False
    ) -> str:
        """Store bytes under a key and return the key."""
        ...

    def download(self, key: str) -> bytes:
        """Fetch the bytes stored under a key."""
        ...

    def delete(self, key: str) -> None:
        """Delete a blob (missing keys are ignored)."""
        ...

    def get_signed_url(self, key: str, expires_in: int = 3600) -> str:
        """Get a time-limited URL for reading a blob."""
        ...


class LocalStorage:
    """Local filesystem storage backend."""

    def __init__(self, root: Path | str = "media"):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise StorageError(f"Key escapes storage root: {key}")
        return path

    def upload_bytes(
        self, key: str, data: bytes, content_type: str = WAV_CONTENT_TYPE, upsert: bool = False
    ) -> str:
        """Write bytes to ``root/key``."""
        path = self._path(key)
        if path.exists() and not upsert:
            raise BlobExistsError(f"Blob already exists: {key}")
        path.parent.mkdir(parents=True, exist_ok=True)
        _ = path.write_bytes(data)
        return key

    def download(self, key: str) -> bytes:
        path = self._path(key)
        if not path.is_file():
            raise StorageError(f"Blob not found: {key}")
        return path.read_bytes()

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.is_file():
            path.unlink()

    def get_signed_url(self, key: str, expires_in: int = 3600) -> str:
        """Local files are served by the /media static router; no signing needed."""
        return f"/media/{key}"


class R2Storage:
    """Cloudflare R2 storage backend."""

    def __init__(self, r2_config: R2Config):
        """Initialize R2 storage with configuration."""
        self.config = r2_config
        self.s3_client = boto3.client(
            "s3",
            endpoint_url=f"https://{r2_config.account_id}.r2.cloudflarestorage.com",
            aws_access_key_id=r2_config.access_key_id,
            aws_secret_access_key=r2_config.secret_access_key,
            region_name="auto",
        )

    def _exists(self, key: str) -> bool:
        from botocore.exceptions import ClientError

        try:
            _ = self.s3_client.head_object(Bucket=self.config.bucket_name, Key=key)
        except ClientError:
            return False
        return True

    def upload_bytes(
        self, key: str, data: bytes, content_type: str = WAV_CONTENT_TYPE, upsert: bool = False
    ) -> str:
        """Upload bytes to R2, refusing to overwrite unless ``upsert``."""
        if not upsert and self._exists(key):
            raise BlobExistsError(f"Blob already exists: {key}")

        import hashlib

        _ = self.s3_client.put_object(
            Bucket=self.config.bucket_name,
            Key=key,
            Body=data,
            ContentType=content_type,
            Metadata={"sha256": hashlib.sha256(data).hexdigest()},
        )
        return key

    def download(self, key: str) -> bytes:
        from botocore.exceptions import ClientError

        try:
            response = self.s3_client.get_object(Bucket=self.config.bucket_name, Key=key)
        except ClientError as e:
            raise StorageError(f"Could not download {key}: {e}") from e
        return response["Body"].read()

    def delete(self, key: str) -> None:
        _ = self.s3_client.delete_object(Bucket=self.config.bucket_name, Key=key)

    def get_signed_url(self, key: str, expires_in: int = 3600) -> str:
        """Get presigned URL for reading a blob."""
        return self.s3_client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.config.bucket_name, "Key": key},
            ExpiresIn=expires_in,
        )


# Global storage instance
_storage: StorageBackend | None = None


def get_storage(config: Config | None = None) -> StorageBackend:
    """Get the configured storage backend.

    Determined by EMOSET_STORAGE environment variable:
    - "r2": Use R2Storage (R2Config must be present in config.yaml)
    - anything else: Use LocalStorage rooted at config.media_root
    """
    global _storage

    if _storage is not None:
        return _storage

    if config is None:
        from .config import get_config

        config = get_config()

    if os.getenv("EMOSET_STORAGE", "local").lower() == "r2":
        if config.r2 is None:
            msg = "EMOSET_STORAGE=r2 but R2 config is missing in config.yaml"
            raise ValueError(msg)
        _storage = R2Storage(config.r2)
    else:
        _storage = LocalStorage(config.media_root)

    return _storage


def set_storage(storage: StorageBackend | None) -> None:
    """Replace the global storage backend (used by tests)."""
    global _storage
    _storage = storage
