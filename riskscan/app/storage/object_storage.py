from __future__ import annotations

import logging
from typing import Optional, Protocol
from urllib.parse import quote

import httpx

from riskscan.app.errors import StorageFailure
from riskscan.app.schemas.assets import Asset
from riskscan.app.supabase_client import SupabaseEndpoint

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    async def fetch_asset(self, asset: Asset) -> bytes:
        """Return the full asset payload or raise StorageFailure."""
        ...


class SupabaseObjectStorage:
    """
    Downloads assets through short-lived signed URLs.

    A signed URL is requested from the Storage API and the bytes are then
    fetched over it. Any failure along the way is fatal for the scan.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        endpoint: SupabaseEndpoint,
        default_bucket: str = "uploads",
        signed_url_ttl_seconds: int = 60,
        max_size_bytes: Optional[int] = None,
    ) -> None:
        self._client = client
        self._endpoint = endpoint
        self._default_bucket = default_bucket
        self._ttl = signed_url_ttl_seconds
        self._max_size_bytes = max_size_bytes

    async def create_signed_url(self, bucket: str, path: str) -> str:
        object_path = quote(f"{bucket}/{path.lstrip('/')}")
        try:
            response = await self._client.post(
                self._endpoint.storage_url(f"object/sign/{object_path}"),
                json={"expiresIn": self._ttl},
                headers=self._endpoint.headers(),
            )
            response.raise_for_status()
            signed = response.json().get("signedURL")
        except httpx.HTTPStatusError as exc:
            raise StorageFailure(
                f"Signed URL request for {bucket}/{path} returned "
                f"HTTP {exc.response.status_code}"
            ) from exc
        except (httpx.RequestError, ValueError) as exc:
            raise StorageFailure(
                f"Signed URL request for {bucket}/{path} failed: {exc}"
            ) from exc

        if not signed:
            raise StorageFailure(f"No signed URL returned for {bucket}/{path}")

        return self._endpoint.storage_url(signed)

    async def fetch_asset(self, asset: Asset) -> bytes:
        bucket = asset.storage_bucket or self._default_bucket
        url = await self.create_signed_url(bucket, asset.storage_path)

        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise StorageFailure(
                f"Asset download for {asset.id} returned HTTP "
                f"{exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise StorageFailure(f"Asset download for {asset.id} failed: {exc}") from exc

        data = response.content
        if not data:
            raise StorageFailure(f"Asset {asset.id} is empty")
        if self._max_size_bytes is not None and len(data) > self._max_size_bytes:
            raise StorageFailure(
                f"Asset {asset.id} exceeds the maximum size of "
                f"{self._max_size_bytes} bytes"
            )

        logger.info("Fetched asset %s (%d bytes)", asset.id, len(data))
        return data
