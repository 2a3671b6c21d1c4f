"""
Blob storage for issue photos and resolution proofs.

Two backends share the same ``upload(path, data, content_type) -> url``
call: a local directory (served by the API under ``/uploads``) and a
Supabase storage bucket.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import httpx

from campusfix.core.config import Settings

logger = logging.getLogger(__name__)


def _clean_path(path: str) -> str:
    parts = [p for p in path.replace("\\", "/").split("/") if p not in ("", ".", "..")]
    if not parts:
        raise ValueError(f"Invalid storage path: {path!r}")
    return "/".join(parts)


class LocalBlobStorage:
    """Stores files under a directory and returns URLs below a public base."""

    def __init__(self, root_dir: str, public_base_url: str):
        self.root = Path(root_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def _write(self, relative: str, data: bytes) -> None:
        target = self.root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream"
    ) -> str:
        relative = _clean_path(path)
        await asyncio.to_thread(self._write, relative, data)
        logger.info(f"Stored {len(data)} bytes at {relative}")
        return f"{self.public_base_url}/{relative}"


class SupabaseBlobStorage:
    """
    Uploads to a public Supabase storage bucket.

    API Documentation: https://supabase.com/docs/reference/api/storage
    """

    def __init__(
        self,
        base_url: str,
        service_key: str,
        bucket: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        if not service_key:
            raise ValueError("Supabase service key is required")

        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={
                    "Authorization": f"Bearer {self.service_key}",
                    "apikey": self.service_key,
                },
                transport=self._transport
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{_clean_path(path)}"

    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream"
    ) -> str:
        relative = _clean_path(path)
        client = self._get_client()
        response = await client.post(
            f"{self.base_url}/storage/v1/object/{self.bucket}/{relative}",
            content=data,
            headers={"Content-Type": content_type},
        )
        response.raise_for_status()
        logger.info(f"Uploaded {len(data)} bytes to {self.bucket}/{relative}")
        return self.public_url(relative)


def create_storage(settings: Settings):
    """Pick the storage backend from settings."""
    if settings.supabase_url and settings.supabase_service_key:
        return SupabaseBlobStorage(
            base_url=settings.supabase_url,
            service_key=settings.supabase_service_key,
            bucket=settings.issue_images_bucket,
        )
    return LocalBlobStorage(settings.storage_dir, settings.storage_public_base_url)
