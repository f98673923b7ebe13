"""
Configuration management for genmedia.

Centralizes all configuration including:
- API key and endpoint
- Model selections
- Polling cadence and deadline
- Artifact download behavior

Configuration is immutable. Build one Config per client and override
per call through GenerationConfig / PipelineOptions.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return float(value)


@dataclass(frozen=True)
class APIConfig:
    """API configuration for the Gemini generation service."""

    api_key: str = ""
    base_url: Optional[str] = None

    # Artifact retrieval (plain HTTP GET, not through the SDK)
    download_timeout: float = 600.0  # Videos can be large


@dataclass(frozen=True)
class ModelConfig:
    """Model selection configuration."""

    video_model: str = "veo-2.0-generate-001"   # Veo 2.0
    image_model: str = "imagen-3.0-generate-002"  # Imagen 3.0


@dataclass(frozen=True)
class PollingConfig:
    """How long-running jobs are waited on."""

    interval_seconds: float = 10.0  # Fixed, no backoff
    timeout_seconds: Optional[float] = None  # None waits until the job is done


@dataclass(frozen=True)
class DownloadConfig:
    """How result artifacts are written to disk."""

    chunk_size: int = 64 * 1024
    max_concurrent: int = 1  # 1 keeps downloads strictly sequential
    allow_partial_results: bool = False  # False = all or nothing


@dataclass(frozen=True)
class Config:
    """Main configuration class."""

    api: APIConfig = field(default_factory=APIConfig)
    models: ModelConfig = field(default_factory=ModelConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    download: DownloadConfig = field(default_factory=DownloadConfig)

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        api_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY", "")

        polling = PollingConfig()
        interval = _env_float("GENMEDIA_POLL_INTERVAL")
        if interval is not None:
            polling = PollingConfig(interval_seconds=interval)
        timeout = _env_float("GENMEDIA_POLL_TIMEOUT")
        if timeout is not None:
            polling = PollingConfig(
                interval_seconds=polling.interval_seconds,
                timeout_seconds=timeout,
            )

        return cls(api=APIConfig(api_key=api_key), polling=polling)

    def validate(self) -> list[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if not self.api.api_key:
            issues.append("No API key configured (GEMINI_API_KEY or GOOGLE_API_KEY)")

        if self.polling.interval_seconds < 0:
            issues.append("Polling interval must not be negative")

        if self.polling.timeout_seconds is not None and self.polling.timeout_seconds <= 0:
            issues.append("Polling timeout must be positive when set")

        if self.download.max_concurrent < 1:
            issues.append("download.max_concurrent must be at least 1")

        if self.download.chunk_size < 1:
            issues.append("download.chunk_size must be at least 1")

        return issues
