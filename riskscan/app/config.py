"""
Runtime configuration for the RiskScan service.

This module centralizes environment-driven configuration: pipeline limits,
media tooling, the vision provider and the Supabase datastore, storage and
realtime endpoints.

Configuration is read once at startup and is immutable afterwards. None of
these values participate in score computation; the scoring rules are fixed
in code.
"""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, SecretStr, ValidationInfo, field_validator


class RiskScanConfig(BaseModel):
    """
    Runtime configuration for the RiskScan service.
    """

    # ------------------------------------------------------------------
    # Pipeline limits
    # ------------------------------------------------------------------

    VIDEO_FRAME_SAMPLE_COUNT: int = Field(
        5,
        ge=1,
        le=30,
        description="Number of evenly spaced frames analyzed per video",
    )

    FINDING_DISCLOSURE_THRESHOLD: int = Field(
        50,
        ge=0,
        le=100,
        description="Sub-score above which a dedicated finding is recorded",
    )

    PENDING_BATCH_LIMIT: int = Field(
        10,
        ge=1,
        description="Maximum number of pending scans processed per batch",
    )

    MAX_ASSET_SIZE_MB: int = Field(
        200,
        ge=1,
        description="Maximum allowed asset size in megabytes",
    )

    # ------------------------------------------------------------------
    # Media tooling
    # ------------------------------------------------------------------

    FFMPEG_BINARY: str = Field("ffmpeg", description="ffmpeg executable")

    FFPROBE_BINARY: str = Field("ffprobe", description="ffprobe executable")

    FRAME_WIDTH_PX: int = Field(
        640,
        ge=16,
        description="Width of sampled video frames (height keeps aspect)",
    )

    FRAME_EXTRACTION_TIMEOUT_SECONDS: int = Field(
        60,
        ge=1,
        description="Timeout for a single ffmpeg/ffprobe invocation",
    )

    # ------------------------------------------------------------------
    # Datastore / storage / realtime (Supabase)
    # ------------------------------------------------------------------

    SUPABASE_URL: str = Field("", description="Supabase project URL")

    SUPABASE_SERVICE_ROLE_KEY: SecretStr = Field(
        SecretStr(""),
        description="Service role key used for server-side access",
    )

    STORAGE_BUCKET: str = Field(
        "uploads",
        description="Default storage bucket for assets",
    )

    SIGNED_URL_TTL_SECONDS: int = Field(
        60,
        ge=1,
        description="Lifetime of signed asset download URLs",
    )

    ENABLE_REALTIME_PROGRESS: bool = Field(
        False,
        validate_default=True,
        description="Broadcast scan progress over Supabase Realtime",
    )

    PROGRESS_QUEUE_SIZE: int = Field(
        256,
        ge=1,
        description="Bound of the in-process side-effect queue",
    )

    # ------------------------------------------------------------------
    # Vision analysis
    # ------------------------------------------------------------------

    VISION_MODEL_PROVIDER: str = Field(
        "disabled",
        description="Vision analysis provider identifier",
    )

    AZURE_OPENAI_ENDPOINT: str = Field("", description="Azure OpenAI endpoint URL")

    AZURE_OPENAI_DEPLOYMENT: str = Field(
        "",
        description="Azure OpenAI vision-capable deployment name",
    )

    AZURE_OPENAI_API_VERSION: str = Field(
        "",
        validate_default=True,
        description="Azure OpenAI API version",
    )

    VISION_TIMEOUT_SECONDS: float = Field(
        60.0,
        gt=0,
        description="Timeout for a single vision request",
    )

    # ------------------------------------------------------------------
    # Validators (Pydantic v2)
    # ------------------------------------------------------------------

    @field_validator("ENABLE_REALTIME_PROGRESS")
    @classmethod
    def realtime_requires_supabase(
        cls, v: bool, info: ValidationInfo
    ) -> bool:
        if v:
            key = info.data.get("SUPABASE_SERVICE_ROLE_KEY")
            if not info.data.get("SUPABASE_URL") or not (
                key and key.get_secret_value()
            ):
                raise ValueError(
                    "ENABLE_REALTIME_PROGRESS requires SUPABASE_URL and "
                    "SUPABASE_SERVICE_ROLE_KEY."
                )
        return v

    @field_validator("VISION_MODEL_PROVIDER")
    @classmethod
    def validate_vision_provider(cls, v: str) -> str:
        allowed = {"disabled", "azure_openai"}
        if v not in allowed:
            raise ValueError(
                f"Unsupported VISION_MODEL_PROVIDER '{v}'. "
                f"Allowed values: {sorted(allowed)}"
            )
        return v

    @field_validator("AZURE_OPENAI_API_VERSION")
    @classmethod
    def azure_settings_required(
        cls, v: str, info: ValidationInfo
    ) -> str:
        if info.data.get("VISION_MODEL_PROVIDER") == "azure_openai":
            missing = [
                name
                for name, value in (
                    ("AZURE_OPENAI_ENDPOINT", info.data.get("AZURE_OPENAI_ENDPOINT")),
                    ("AZURE_OPENAI_DEPLOYMENT", info.data.get("AZURE_OPENAI_DEPLOYMENT")),
                    ("AZURE_OPENAI_API_VERSION", v),
                )
                if not value
            ]
            if missing:
                raise ValueError(
                    "VISION_MODEL_PROVIDER=azure_openai but "
                    f"{', '.join(missing)} not configured."
                )
        return v

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def max_asset_size_bytes(self) -> int:
        return self.MAX_ASSET_SIZE_MB * 1024 * 1024

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "RiskScanConfig":
        """
        Load configuration from environment variables.

        All values are parsed once at startup and must remain immutable.
        """

        def env_bool(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.lower() in {"1", "true", "yes", "on"}

        return cls(
            VIDEO_FRAME_SAMPLE_COUNT=int(
                os.getenv("RISKSCAN_VIDEO_FRAME_SAMPLE_COUNT", "5")
            ),
            FINDING_DISCLOSURE_THRESHOLD=int(
                os.getenv("RISKSCAN_FINDING_DISCLOSURE_THRESHOLD", "50")
            ),
            PENDING_BATCH_LIMIT=int(
                os.getenv("RISKSCAN_PENDING_BATCH_LIMIT", "10")
            ),
            MAX_ASSET_SIZE_MB=int(
                os.getenv("RISKSCAN_MAX_ASSET_SIZE_MB", "200")
            ),
            FFMPEG_BINARY=os.getenv("RISKSCAN_FFMPEG_BINARY", "ffmpeg"),
            FFPROBE_BINARY=os.getenv("RISKSCAN_FFPROBE_BINARY", "ffprobe"),
            FRAME_WIDTH_PX=int(
                os.getenv("RISKSCAN_FRAME_WIDTH_PX", "640")
            ),
            FRAME_EXTRACTION_TIMEOUT_SECONDS=int(
                os.getenv("RISKSCAN_FRAME_EXTRACTION_TIMEOUT_SECONDS", "60")
            ),
            SUPABASE_URL=os.getenv("SUPABASE_URL", "").rstrip("/"),
            SUPABASE_SERVICE_ROLE_KEY=SecretStr(
                os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
            ),
            STORAGE_BUCKET=os.getenv("RISKSCAN_STORAGE_BUCKET", "uploads"),
            SIGNED_URL_TTL_SECONDS=int(
                os.getenv("RISKSCAN_SIGNED_URL_TTL_SECONDS", "60")
            ),
            ENABLE_REALTIME_PROGRESS=env_bool(
                "RISKSCAN_ENABLE_REALTIME_PROGRESS", False
            ),
            PROGRESS_QUEUE_SIZE=int(
                os.getenv("RISKSCAN_PROGRESS_QUEUE_SIZE", "256")
            ),
            VISION_MODEL_PROVIDER=os.getenv(
                "RISKSCAN_VISION_MODEL_PROVIDER", "disabled"
            ),
            AZURE_OPENAI_ENDPOINT=os.getenv("AZURE_OPENAI_ENDPOINT", ""),
            AZURE_OPENAI_DEPLOYMENT=os.getenv("AZURE_OPENAI_DEPLOYMENT", ""),
            AZURE_OPENAI_API_VERSION=os.getenv("AZURE_OPENAI_API_VERSION", ""),
            VISION_TIMEOUT_SECONDS=float(
                os.getenv("RISKSCAN_VISION_TIMEOUT_SECONDS", "60")
            ),
        )

    model_config = {
        "frozen": True,
    }
