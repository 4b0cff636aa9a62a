"""
Input records read by the scan pipeline.

Assets and brand guidelines are owned by the upload flow; the pipeline
only reads them. Both models ignore unknown datastore columns so schema
additions upstream do not break scanning.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


_DEFAULT_MIME_TYPES = {
    MediaKind.IMAGE: "image/jpeg",
    MediaKind.VIDEO: "video/mp4",
}


class Asset(BaseModel):
    """
    Immutable record of an uploaded media file.
    """

    id: str
    tenant_id: Optional[str] = None
    filename: Optional[str] = None
    file_type: MediaKind = MediaKind.IMAGE
    mime_type: Optional[str] = None
    file_size: Optional[int] = Field(None, ge=0)
    storage_path: str
    storage_bucket: Optional[str] = None
    sha256_checksum: Optional[str] = None

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
    )

    @property
    def resolved_mime_type(self) -> str:
        """MIME type used for analysis, falling back on the declared file type."""
        return self.mime_type or _DEFAULT_MIME_TYPES[self.file_type]

    @property
    def media_kind(self) -> MediaKind:
        if self.mime_type:
            if self.mime_type.startswith("video/"):
                return MediaKind.VIDEO
            return MediaKind.IMAGE
        return self.file_type


class BrandGuideline(BaseModel):
    """
    Tenant-defined brand rules.

    Guidelines only shape the analysis prompts; they never alter the
    scoring rules.
    """

    id: str
    tenant_id: Optional[str] = None
    name: str
    industry: Optional[str] = None
    prohibitions: List[str] = Field(default_factory=list)
    requirements: List[str] = Field(default_factory=list)
    context_modifiers: List[str] = Field(default_factory=list)
    target_markets: List[str] = Field(default_factory=list)
    target_platforms: List[str] = Field(default_factory=list)

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
    )
