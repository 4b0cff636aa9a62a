"""
Content provenance (C2PA) verification.

Reads the embedded content credentials of an asset and reduces them to a
single status:

- missing: no manifest store, or no active manifest
- invalid: a manifest was found but failed validation
- caution: the manifest validates but its signing credential is not on a
  trust list
- valid: the manifest validates and no failure was reported
- error: the verification process itself failed

The status is derived from validation results only, never from a score.
Verification failures are recovered here: the verifier returns an
``error`` report instead of raising.
"""

from __future__ import annotations

import asyncio
import json
import logging
import mimetypes
import os
import tempfile
from typing import Any, Dict, List, Optional, Protocol, Tuple

from c2pa import C2paError, Reader

from riskscan.app.errors import VerificationFailure
from riskscan.app.schemas.provenance import (
    C2PAStatus,
    ProvenanceHistoryEntry,
    ProvenanceReport,
)

logger = logging.getLogger(__name__)

UNTRUSTED_CREDENTIAL_CODE = "signingCredential.untrusted"

# Informational codes some reader versions list beside failures
_SUCCESS_SUFFIXES = (".validated", ".trusted", ".match", ".insideValidity")


# ---------------------------------------------------------------------------
# Manifest reading
# ---------------------------------------------------------------------------


class ContentCredentialReader(Protocol):
    def read(self, path: str) -> Optional[Dict[str, Any]]:
        """
        Return the manifest store report as a dict, or None when the file
        carries no content credentials.

        Any other problem raises VerificationFailure.
        """
        ...


class C2paManifestReader:
    """
    ContentCredentialReader backed by the c2pa-python library.
    """

    def read(self, path: str) -> Optional[Dict[str, Any]]:
        try:
            with Reader(path) as reader:
                raw = reader.json()
        except C2paError as exc:
            if _is_manifest_not_found(exc):
                return None
            raise VerificationFailure(f"C2PA read failed: {exc}") from exc
        except (OSError, ValueError) as exc:
            raise VerificationFailure(f"C2PA read failed: {exc}") from exc

        if not raw:
            return None

        try:
            return json.loads(raw)
        except ValueError as exc:
            raise VerificationFailure("C2PA reader returned invalid JSON") from exc


def _is_manifest_not_found(exc: Exception) -> bool:
    marker = "manifestnotfound"
    return (
        marker in type(exc).__name__.lower()
        or marker in str(exc).replace(" ", "").lower()
    )


# ---------------------------------------------------------------------------
# Status mapping
# ---------------------------------------------------------------------------


def _failure_codes(store: Dict[str, Any]) -> List[str]:
    codes: List[str] = []

    for entry in store.get("validation_status") or []:
        code = entry.get("code") if isinstance(entry, dict) else None
        if code and not code.endswith(_SUCCESS_SUFFIXES):
            codes.append(code)

    results = store.get("validation_results") or {}
    active = results.get("activeManifest") or {}
    for entry in active.get("failure") or []:
        code = entry.get("code") if isinstance(entry, dict) else None
        if code and code not in codes:
            codes.append(code)

    return codes


def active_manifest(store: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    label = store.get("active_manifest")
    manifests = store.get("manifests") or {}
    if not label or label not in manifests:
        return None
    return manifests[label]


def determine_status(store: Optional[Dict[str, Any]]) -> C2PAStatus:
    if not store or active_manifest(store) is None:
        return C2PAStatus.MISSING

    codes = _failure_codes(store)
    state = str(store.get("validation_state") or "").lower()

    if state == "invalid" or any(c != UNTRUSTED_CREDENTIAL_CODE for c in codes):
        return C2PAStatus.INVALID

    if UNTRUSTED_CREDENTIAL_CODE in codes:
        return C2PAStatus.CAUTION

    return C2PAStatus.VALID


# ---------------------------------------------------------------------------
# Metadata extraction
# ---------------------------------------------------------------------------


def _assertion(manifest: Dict[str, Any], label: str) -> Optional[Dict[str, Any]]:
    for assertion in manifest.get("assertions") or []:
        if assertion.get("label", "").startswith(label):
            return assertion.get("data") or {}
    return None


def _creator(manifest: Dict[str, Any]) -> Optional[str]:
    work = _assertion(manifest, "stds.schema-org.CreativeWork")
    if work:
        authors = work.get("author") or []
        if isinstance(authors, dict):
            authors = [authors]
        for author in authors:
            if isinstance(author, dict) and author.get("name"):
                return author["name"]
    return None


def _tool(manifest: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    info = manifest.get("claim_generator_info") or []
    if isinstance(info, list) and info and isinstance(info[0], dict):
        return info[0].get("name"), info[0].get("version")

    generator = manifest.get("claim_generator")
    if not generator:
        return None, None
    # "Adobe_Photoshop/25.0 c2pa-rs/0.28" -> ("Adobe_Photoshop", "25.0")
    head = generator.split(" ")[0]
    name, _, version = head.partition("/")
    return name, version or None


def _agent_name(agent: Any) -> Optional[str]:
    if isinstance(agent, dict):
        return agent.get("name")
    return agent


def _history(manifest: Dict[str, Any]) -> List[ProvenanceHistoryEntry]:
    actions = _assertion(manifest, "c2pa.actions") or {}
    return [
        ProvenanceHistoryEntry(
            action=str(action.get("action", "unknown")),
            tool=_agent_name(action.get("softwareAgent")),
            date=action.get("when"),
        )
        for action in actions.get("actions") or []
        if isinstance(action, dict)
    ]


def build_report(store: Optional[Dict[str, Any]]) -> ProvenanceReport:
    status = determine_status(store)
    if status == C2PAStatus.MISSING:
        return ProvenanceReport(status=status)

    manifest = active_manifest(store) or {}
    signature = manifest.get("signature_info") or {}
    tool, tool_version = _tool(manifest)

    return ProvenanceReport(
        status=status,
        creator=_creator(manifest),
        tool=tool,
        tool_version=tool_version,
        timestamp=signature.get("time"),
        issuer=signature.get("issuer"),
        serial=signature.get("cert_serial_number"),
        history=_history(manifest),
        validation_errors=_failure_codes(store),
        raw_manifest=store,
    )


# ---------------------------------------------------------------------------
# Verifier
# ---------------------------------------------------------------------------


class ProvenanceVerifier:
    """
    Async front end for a ContentCredentialReader.

    Reading is blocking (native library, file I/O) and runs in a worker
    thread.
    """

    def __init__(self, reader: Optional[ContentCredentialReader] = None) -> None:
        self._reader = reader if reader is not None else C2paManifestReader()

    async def verify(self, path: str) -> ProvenanceReport:
        try:
            store = await asyncio.to_thread(self._reader.read, path)
            return build_report(store)
        except VerificationFailure as exc:
            logger.warning("Provenance verification failed for %s: %s", path, exc)
            return ProvenanceReport(status=C2PAStatus.ERROR, error=str(exc))
        except Exception as exc:
            logger.warning(
                "Unexpected provenance verification error for %s", path, exc_info=True
            )
            return ProvenanceReport(status=C2PAStatus.ERROR, error=str(exc))

    async def verify_bytes(self, data: bytes, mime_type: str) -> ProvenanceReport:
        """
        Verify an in-memory asset via a temporary file.

        The suffix follows the MIME type; the reader detects the container
        format from it.
        """
        suffix = mimetypes.guess_extension(mime_type or "") or ".bin"
        fd, path = tempfile.mkstemp(prefix="riskscan_", suffix=suffix)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            return await self.verify(path)
        finally:
            try:
                os.remove(path)
            except OSError:
                logger.debug("Temporary file already removed: %s", path)
