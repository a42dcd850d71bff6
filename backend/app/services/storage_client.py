"""File storage adapters for receipt uploads."""

import asyncio
import logging
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote, urlparse

import httpx

from app.config import settings
from app.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)


class FileStorage(Protocol):
    async def store(self, data: bytes, path: str, content_type: str | None = None) -> str:
        """Persist bytes under ``path`` and return a durable URL."""
        ...

    async def delete(self, url: str) -> None:
        ...


class HttpFileStorage:
    """Object-storage REST adapter (bucket/path layout, bearer API key)."""

    def __init__(
        self,
        base_url: str,
        bucket: str,
        api_key: str = "",
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/object/public/{self.bucket}/{path}"

    def _path_from_url(self, url: str) -> str:
        prefix = f"{self.base_url}/object/public/{self.bucket}/"
        if not url.startswith(prefix):
            raise ValueError(f"URL {url} does not belong to bucket {self.bucket}")
        return url[len(prefix):]

    async def store(self, data: bytes, path: str, content_type: str | None = None) -> str:
        client = await self._get_client()
        try:
            resp = await client.post(
                f"/object/{self.bucket}/{path}",
                content=data,
                headers={"Content-Type": content_type or "application/octet-stream"},
            )
            resp.raise_for_status()
        except httpx.TimeoutException as e:
            raise StorageUnavailableError(f"Storage upload timed out for {path}") from e
        except httpx.HTTPStatusError as e:
            raise StorageUnavailableError(
                f"Storage rejected upload for {path}: {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise StorageUnavailableError(f"Storage unreachable: {e}") from e
        return self.public_url(path)

    async def delete(self, url: str) -> None:
        path = self._path_from_url(url)
        client = await self._get_client()
        try:
            resp = await client.delete(f"/object/{self.bucket}/{path}")
            resp.raise_for_status()
        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            raise StorageUnavailableError(f"Storage delete failed for {path}: {e}") from e

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None


class LocalFileStorage:
    """Development fallback when no storage endpoint is configured."""

    def __init__(self, root: Path):
        self.root = root

    async def store(self, data: bytes, path: str, content_type: str | None = None) -> str:
        target = self.root / path
        try:
            await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(target.write_bytes, data)
        except OSError as e:
            raise StorageUnavailableError(f"Local storage write failed for {path}: {e}") from e
        return target.resolve().as_uri()

    async def delete(self, url: str) -> None:
        parsed = urlparse(url)
        if parsed.scheme != "file":
            raise ValueError(f"URL {url} is not a local file URL")
        target = Path(unquote(parsed.path))
        try:
            await asyncio.to_thread(target.unlink, True)
        except OSError as e:
            raise StorageUnavailableError(f"Local storage delete failed for {url}: {e}") from e


def build_storage() -> FileStorage:
    if settings.storage_base_url:
        return HttpFileStorage(
            settings.storage_base_url,
            settings.storage_bucket,
            api_key=settings.storage_api_key,
            timeout=settings.storage_timeout_seconds,
        )
    logger.warning("storage_base_url not set — receipts are written to the local uploads/ directory")
    return LocalFileStorage(Path(__file__).resolve().parent.parent.parent / "uploads")


file_storage = build_storage()
