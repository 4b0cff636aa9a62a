"""
PostgREST-backed ScanRepository.

Talks to the Supabase REST API with the service role key. Conditional
status transitions are expressed as PATCH requests filtered on the current
status with ``Prefer: return=representation``; the number of returned rows
tells whether the transition happened.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import httpx

from riskscan.app.errors import NotFound, PersistenceFailure
from riskscan.app.persistence.repository import provenance_details_row
from riskscan.app.schemas.assets import Asset, BrandGuideline
from riskscan.app.schemas.findings import ScanFinding
from riskscan.app.schemas.provenance import ProvenanceReport
from riskscan.app.schemas.scans import Scan, ScanOutcome, ScanStatus, VideoFrameRecord
from riskscan.app.supabase_client import SupabaseEndpoint

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SupabaseScanRepository:
    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        endpoint: SupabaseEndpoint,
    ) -> None:
        self._client = client
        self._endpoint = endpoint

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        returning: bool = False,
    ) -> List[Dict[str, Any]]:
        headers = self._endpoint.headers()
        if returning:
            headers["Prefer"] = "return=representation"
        else:
            headers["Prefer"] = "return=minimal"

        try:
            response = await self._client.request(
                method,
                self._endpoint.rest_url(table),
                params=params,
                json=json,
                headers=headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "%s %s: HTTP %s body=%s",
                method,
                table,
                exc.response.status_code,
                exc.response.text[:200],
            )
            raise PersistenceFailure(
                f"{method} {table} returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            logger.error("%s %s: connection error: %s", method, table, exc)
            raise PersistenceFailure(f"{method} {table} failed: {exc}") from exc

        if not response.content:
            return []
        try:
            body = response.json()
        except ValueError as exc:
            raise PersistenceFailure(f"{method} {table} returned invalid JSON") from exc
        return body if isinstance(body, list) else [body]

    async def _get_one(self, table: str, row_id: str, label: str) -> Dict[str, Any]:
        rows = await self._request(
            "GET",
            table,
            params={"id": f"eq.{row_id}", "select": "*", "limit": "1"},
        )
        if not rows:
            raise NotFound(f"{label} not found: {row_id}")
        return rows[0]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_scan(self, scan_id: str) -> Scan:
        return Scan.model_validate(await self._get_one("scans", scan_id, "Scan"))

    async def get_asset(self, asset_id: str) -> Asset:
        return Asset.model_validate(await self._get_one("assets", asset_id, "Asset"))

    async def get_brand_guideline(self, guideline_id: str) -> BrandGuideline:
        return BrandGuideline.model_validate(
            await self._get_one("brand_guidelines", guideline_id, "Brand guideline")
        )

    async def list_pending_scan_ids(self, limit: int) -> List[str]:
        rows = await self._request(
            "GET",
            "scans",
            params={
                "status": f"eq.{ScanStatus.PENDING.value}",
                "select": "id",
                "order": "created_at.asc",
                "limit": str(limit),
            },
        )
        return [row["id"] for row in rows]

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def claim_scan(self, scan_id: str) -> bool:
        now = _now()
        rows = await self._request(
            "PATCH",
            "scans",
            params={
                "id": f"eq.{scan_id}",
                "status": f"eq.{ScanStatus.PENDING.value}",
            },
            json={
                "status": ScanStatus.PROCESSING.value,
                "started_at": now,
                "updated_at": now,
            },
            returning=True,
        )
        return len(rows) == 1

    async def complete_scan(
        self,
        scan: Scan,
        outcome: ScanOutcome,
        *,
        findings: Sequence[ScanFinding],
        frames: Sequence[VideoFrameRecord],
        provenance: ProvenanceReport,
    ) -> None:
        """
        Write child rows, then flip the scan to complete.

        PostgREST gives no multi-request transaction, so if any step fails
        the child rows already inserted for this scan are deleted before
        the failure propagates.
        """
        written: List[str] = []
        try:
            if frames:
                await self._request(
                    "POST", "video_frames", json=[frame.to_row() for frame in frames]
                )
                written.append("video_frames")

            if findings:
                await self._request(
                    "POST", "scan_findings", json=[finding.to_row() for finding in findings]
                )
                written.append("scan_findings")

            details = provenance_details_row(scan, provenance)
            if details is not None:
                await self._request("POST", "provenance_details", json=details)
                written.append("provenance_details")

            update = outcome.to_row()
            update["updated_at"] = _now()
            rows = await self._request(
                "PATCH",
                "scans",
                params={
                    "id": f"eq.{scan.id}",
                    "status": f"eq.{ScanStatus.PROCESSING.value}",
                },
                json=update,
                returning=True,
            )
            if not rows:
                raise PersistenceFailure(
                    f"Scan {scan.id} was no longer processing at completion"
                )
        except PersistenceFailure:
            await self._discard_children(scan.id, written)
            raise

    async def _discard_children(self, scan_id: str, tables: Sequence[str]) -> None:
        # Newest first; each table is attempted even if an earlier delete fails
        for table in reversed(tables):
            try:
                await self._request(
                    "DELETE", table, params={"scan_id": f"eq.{scan_id}"}
                )
            except PersistenceFailure as exc:
                logger.error(
                    "Could not remove %s rows of scan %s: %s", table, scan_id, exc
                )

    async def fail_scan(self, scan_id: str, error_message: str) -> None:
        await self._request(
            "PATCH",
            "scans",
            params={
                "id": f"eq.{scan_id}",
                "status": (
                    f"in.({ScanStatus.PENDING.value},{ScanStatus.PROCESSING.value})"
                ),
            },
            json={
                "status": ScanStatus.FAILED.value,
                "error_message": error_message,
                "updated_at": _now(),
            },
        )
