"""Audit configuration via environment variables."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, field_validator

VALID_THINKING_LEVELS = {"minimal", "low", "medium", "high"}

DEFAULT_SCORE_BANDS: list[tuple[int, int]] = [(0, 60), (5000, 85)]


def parse_score_bands(raw: str) -> list[tuple[int, int]]:
    """Parse ``"0:60,5000:85"`` into ``[(0, 60), (5000, 85)]``.

    Raises:
        ValueError: If an entry is not ``<min_plays>:<score>``.
    """
    bands: list[tuple[int, int]] = []
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        plays, sep, score = entry.partition(":")
        if not sep:
            raise ValueError(f"Invalid score band '{entry}', expected <min_plays>:<score>")
        bands.append((int(plays.strip()), int(score.strip())))
    return bands


class AuditConfig(BaseModel):
    """Runtime configuration resolved from environment."""

    gemini_api_key: str = Field(default="")
    scoring_model: str = Field(default="gemini-3-flash-preview")
    transcription_model: str = Field(default="gemini-3-flash-preview")
    thinking_level: str = Field(default="low")
    temperature: float = Field(default=0.2)
    youtube_api_key: str = Field(default="")
    tiktok_api_url: str = Field(default="https://www.tikwm.com/api/")
    tiktok_api_key: str = Field(default="")
    tiktok_api_host: str = Field(default="")
    metadata_timeout_seconds: float = Field(default=15.0)
    frame_timeout_seconds: float = Field(default=20.0)
    transcription_timeout_seconds: float = Field(default=90.0)
    scoring_timeout_seconds: float = Field(default=60.0)
    max_frame_bytes: int = Field(default=20 * 1024 * 1024)
    max_audio_bytes: int = Field(default=25 * 1024 * 1024)
    min_face_size: int = Field(default=40)
    detector_pool_size: int = Field(default=2)
    frame_seek_ms: int = Field(default=1000)
    score_bands: list[tuple[int, int]] = Field(default_factory=lambda: list(DEFAULT_SCORE_BANDS))
    retry_max_attempts: int = Field(default=3)
    retry_base_delay: float = Field(default=1.0)
    retry_max_delay: float = Field(default=30.0)
    tracing_enabled: bool = Field(default=False)
    mlflow_tracking_uri: str = Field(default="")
    mlflow_experiment_name: str = Field(default="video-audit-mcp")

    @field_validator("thinking_level")
    @classmethod
    def validate_thinking_level(cls, value: str) -> str:
        level = value.strip().lower()
        if level not in VALID_THINKING_LEVELS:
            allowed = ", ".join(sorted(VALID_THINKING_LEVELS))
            raise ValueError(f"Invalid thinking level '{value}'. Allowed: {allowed}")
        return level

    @field_validator(
        "metadata_timeout_seconds",
        "frame_timeout_seconds",
        "transcription_timeout_seconds",
        "scoring_timeout_seconds",
        "retry_base_delay",
        "retry_max_delay",
    )
    @classmethod
    def validate_positive_floats(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Timeouts and retry delays must be > 0")
        return value

    @field_validator(
        "max_frame_bytes", "max_audio_bytes", "min_face_size",
        "detector_pool_size", "retry_max_attempts",
    )
    @classmethod
    def validate_positive_ints(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Configuration values must be >= 1")
        return value

    @field_validator("score_bands")
    @classmethod
    def validate_score_bands(cls, value: list[tuple[int, int]]) -> list[tuple[int, int]]:
        """Bands must start at 0 plays, ascend, and never lower the score."""
        if not value:
            raise ValueError("score_bands must contain at least one band")
        bands = sorted(value)
        if bands[0][0] != 0:
            raise ValueError("The first score band must start at 0 plays")
        previous = -1
        for plays, score in bands:
            if plays < 0:
                raise ValueError("Score band thresholds must be >= 0")
            if not 0 <= score <= 100:
                raise ValueError(f"Score band value {score} is outside [0, 100]")
            if score < previous:
                raise ValueError("Score band values must be non-decreasing in play count")
            previous = score
        return bands

    @classmethod
    def from_env(cls) -> AuditConfig:
        """Build config from environment variables."""
        tracking_uri = os.getenv("MLFLOW_TRACKING_URI", "")
        tracing_flag = os.getenv("AUDIT_TRACING_ENABLED", "")
        raw_bands = os.getenv("AUDIT_SCORE_BANDS", "")
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            scoring_model=os.getenv("AUDIT_SCORING_MODEL", "gemini-3-flash-preview"),
            transcription_model=os.getenv("AUDIT_TRANSCRIPTION_MODEL", "gemini-3-flash-preview"),
            thinking_level=os.getenv("AUDIT_THINKING_LEVEL", "low"),
            temperature=float(os.getenv("AUDIT_TEMPERATURE", "0.2")),
            youtube_api_key=os.getenv("YOUTUBE_API_KEY", ""),
            tiktok_api_url=os.getenv("TIKTOK_API_URL", "https://www.tikwm.com/api/"),
            tiktok_api_key=os.getenv("TIKTOK_API_KEY", ""),
            tiktok_api_host=os.getenv("TIKTOK_API_HOST", ""),
            metadata_timeout_seconds=float(os.getenv("AUDIT_METADATA_TIMEOUT", "15")),
            frame_timeout_seconds=float(os.getenv("AUDIT_FRAME_TIMEOUT", "20")),
            transcription_timeout_seconds=float(os.getenv("AUDIT_TRANSCRIPTION_TIMEOUT", "90")),
            scoring_timeout_seconds=float(os.getenv("AUDIT_SCORING_TIMEOUT", "60")),
            max_frame_bytes=int(os.getenv("AUDIT_MAX_FRAME_BYTES", str(20 * 1024 * 1024))),
            max_audio_bytes=int(os.getenv("AUDIT_MAX_AUDIO_BYTES", str(25 * 1024 * 1024))),
            min_face_size=int(os.getenv("AUDIT_MIN_FACE_SIZE", "40")),
            detector_pool_size=int(os.getenv("AUDIT_DETECTOR_POOL_SIZE", "2")),
            frame_seek_ms=int(os.getenv("AUDIT_FRAME_SEEK_MS", "1000")),
            score_bands=parse_score_bands(raw_bands) if raw_bands.strip() else list(DEFAULT_SCORE_BANDS),
            retry_max_attempts=int(os.getenv("AUDIT_RETRY_MAX_ATTEMPTS", "3")),
            retry_base_delay=float(os.getenv("AUDIT_RETRY_BASE_DELAY", "1.0")),
            retry_max_delay=float(os.getenv("AUDIT_RETRY_MAX_DELAY", "30.0")),
            # Explicit "false" wins; otherwise tracing follows the tracking URI.
            tracing_enabled=tracing_flag.lower() != "false" and bool(tracking_uri),
            mlflow_tracking_uri=tracking_uri,
            mlflow_experiment_name=os.getenv("MLFLOW_EXPERIMENT_NAME", "video-audit-mcp"),
        )


_config: AuditConfig | None = None


def get_config() -> AuditConfig:
    """Return the process config singleton, creating it on first access."""
    global _config
    if _config is None:
        _config = AuditConfig.from_env()
    return _config
