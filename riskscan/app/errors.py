"""
Error taxonomy for the scan pipeline.

Every fatal pipeline error derives from ScanPipelineError so the
orchestrator can convert it into a failed scan without inspecting
library-specific exception types. VerificationFailure is the one
recoverable member: the provenance verifier turns it into an ``error``
provenance status.
"""

from __future__ import annotations


class ScanPipelineError(RuntimeError):
    """Base class for scan pipeline failures."""


class NotFound(ScanPipelineError):
    """Raised when a scan, asset or brand guideline does not exist."""


class UpstreamServiceFailure(ScanPipelineError):
    """Raised when the vision service fails or returns an unusable response."""


class VerificationFailure(ScanPipelineError):
    """Raised when the content credential check itself cannot run."""


class PersistenceFailure(ScanPipelineError):
    """Raised when a datastore read or write fails."""


class StorageFailure(ScanPipelineError):
    """Raised when an asset cannot be located or downloaded."""


class MediaProcessingFailure(ScanPipelineError):
    """Raised when video frames cannot be extracted."""
