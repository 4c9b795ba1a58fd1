from __future__ import annotations

from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path
from typing import IO, Optional

from mangareader.core.config import get_settings
from mangareader.core.paths import get_artifacts_root


class StorageService(ABC):
    """Abstract interface for a storage service."""

    @abstractmethod
    def save_artifact(self, artifact_name: str, data: IO[bytes] | bytes) -> str:
        """Save an artifact and return its storage key."""
        pass

    @abstractmethod
    def get_artifact(self, storage_key: str) -> IO[bytes]:
        """Retrieve an artifact as a file-like object."""
        pass

    @abstractmethod
    def get_public_url(self, storage_key: str) -> str:
        """Return a stable URL under which the artifact can be served to readers."""
        pass


class LocalStorageService(StorageService):
    """Storage service for local development, using the filesystem."""

    def __init__(self, root: Optional[Path] = None) -> None:
        self._root = Path(root) if root is not None else get_artifacts_root()

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, storage_key: str) -> Path:
        root = self._root.resolve()
        path = (root / storage_key).resolve()
        if path == root or root not in path.parents:
            raise ValueError(f"Storage key escapes the artifacts root: {storage_key!r}")
        return path

    def save_artifact(self, artifact_name: str, data: IO[bytes] | bytes) -> str:
        artifact_path = self._resolve(artifact_name)
        artifact_path.parent.mkdir(parents=True, exist_ok=True)
        with open(artifact_path, "wb") as f:
            if hasattr(data, "read"):
                f.write(data.read())  # type: ignore[union-attr]
            else:
                f.write(data)  # type: ignore[arg-type]
        # The storage key for local is the path relative to the artifacts root.
        return str(artifact_path.relative_to(self._root.resolve())).replace("\\", "/")

    def get_artifact(self, storage_key: str) -> IO[bytes]:
        path = self._resolve(storage_key)
        if not path.exists():
            raise FileNotFoundError(f"Artifact not found at {path}")
        return open(path, "rb")

    def get_public_url(self, storage_key: str) -> str:
        # Exposed under the FastAPI StaticFiles mount at /artifacts
        return f"/artifacts/{storage_key}"


class CloudStorageService(StorageService):
    """Storage service for production, using Cloudflare R2."""

    def __init__(self):
        # Lazy import so local dev doesn't require boto3
        import boto3
        from botocore.config import Config

        settings = get_settings()
        if not (settings.r2_endpoint_url and settings.r2_bucket_name and settings.r2_access_key_id and settings.r2_secret_access_key):
            raise RuntimeError("R2 configuration is incomplete. Ensure R2_ACCOUNT_ID (or R2_S3_ENDPOINT), R2_BUCKET_NAME, R2_ACCESS_KEY_ID, and R2_SECRET_ACCESS_KEY are set.")
        if not settings.r2_public_base_url:
            raise RuntimeError("R2_PUBLIC_BASE_URL is required to publish translated pages")

        self._bucket = settings.r2_bucket_name
        self._public_base = settings.r2_public_base_url.rstrip("/")
        # Use path-style addressing for R2 default endpoint
        self._s3 = boto3.client(
            "s3",
            endpoint_url=settings.r2_endpoint_url,
            aws_access_key_id=settings.r2_access_key_id,
            aws_secret_access_key=settings.r2_secret_access_key,
            region_name="auto",
            config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
        )

    def save_artifact(self, artifact_name: str, data: IO[bytes] | bytes) -> str:
        import mimetypes

        content_type, _ = mimetypes.guess_type(artifact_name)
        body = data.read() if hasattr(data, "read") else data
        self._s3.put_object(
            Bucket=self._bucket,
            Key=artifact_name,
            Body=body,  # type: ignore[arg-type]
            ContentType=content_type or "application/octet-stream",
        )
        return artifact_name

    def get_artifact(self, storage_key: str) -> IO[bytes]:
        import io

        obj = self._s3.get_object(Bucket=self._bucket, Key=storage_key)
        payload: bytes = obj["Body"].read()
        return io.BytesIO(payload)

    def get_public_url(self, storage_key: str) -> str:
        return f"{self._public_base}/{storage_key}"


def translated_page_key(chapter_id: str, page_index: int, language: str) -> str:
    """Deterministic storage key for a composited page (page_index is 1-based)."""
    return f"translated/{chapter_id}_{page_index}_{language}.png"


@lru_cache(maxsize=1)
def get_storage_service() -> StorageService:
    """
    Factory function to get the appropriate storage service based on the environment.
    This is used as a FastAPI dependency.
    """
    settings = get_settings()
    if settings.app_env == "production":
        return CloudStorageService()
    return LocalStorageService()
