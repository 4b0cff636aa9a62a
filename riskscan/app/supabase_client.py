"""
Connection settings shared by the Supabase adapters.

The datastore (PostgREST), object storage and realtime broadcast APIs
live under one project URL and accept the same service role key. The
adapters share a single httpx.AsyncClient created at startup.
"""

from __future__ import annotations

from typing import Dict

from pydantic import BaseModel, ConfigDict, SecretStr

from riskscan.app.config import RiskScanConfig


class SupabaseEndpoint(BaseModel):
    url: str
    service_key: SecretStr

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def from_config(cls, config: RiskScanConfig) -> "SupabaseEndpoint":
        if not config.SUPABASE_URL:
            raise RuntimeError("SUPABASE_URL is not configured.")
        return cls(
            url=config.SUPABASE_URL.rstrip("/"),
            service_key=config.SUPABASE_SERVICE_ROLE_KEY,
        )

    def headers(self) -> Dict[str, str]:
        key = self.service_key.get_secret_value()
        return {
            "apikey": key,
            "Authorization": f"Bearer {key}",
        }

    def rest_url(self, table: str) -> str:
        return f"{self.url}/rest/v1/{table}"

    def storage_url(self, path: str) -> str:
        return f"{self.url}/storage/v1/{path.lstrip('/')}"

    def realtime_broadcast_url(self) -> str:
        return f"{self.url}/realtime/v1/api/broadcast"
