# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings: remote AI
providers, cache and audit storage, quota ledger, image preprocessing,
OCR and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Remote AI providers ===
    # Comma-separated preference order; "none" disables the remote tier.
    ai_provider: str = "openai,gemini"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"

    # === Remote retry policy ===
    remote_max_retries: int = 2
    remote_retry_base_delay_s: float = 1.0
    remote_retry_backoff_factor: float = 2.0

    # === Result cache / audit log ===
    cache_enabled: bool = True
    cache_backend: Literal["memory", "json", "sqlite"] = "json"
    cache_root: Path = Path("~/.stockscan/cache")
    cache_ttl_days: int = 30
    audit_max_entries: int = 200

    # === Quota ledger ===
    quota_backend: Literal["memory", "redis", "local"] = "local"
    quota_redis_url: str = ""
    quota_default_limit: int | None = None
    quota_account_limits: str = ""
    quota_timezone: str = "UTC"

    # === Image preprocessing ===
    image_max_edge: int = 1024
    image_quality: int = 70
    image_mime_type: Literal["image/webp", "image/jpeg"] = "image/webp"

    # === Local OCR ===
    ocr_languages: str = "spa,eng"
    ocr_psm: int = 6

    # === Pipeline ===
    single_flight_enabled: bool = False

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("quota_default_limit", mode="before")
    @classmethod
    def empty_limit_is_unlimited(cls, v: object) -> object:  # noqa: N805
        """An empty QUOTA_DEFAULT_LIMIT means no limit."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("cache_ttl_days", "audit_max_entries", "image_max_edge")
    @classmethod
    def validate_positive(cls, v: int) -> int:  # noqa: N805
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("image_quality")
    @classmethod
    def validate_quality(cls, v: int) -> int:  # noqa: N805
        if not 1 <= v <= 100:
            raise ValueError("image_quality must be within 1..100")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.quota_backend == "redis" and not self.quota_redis_url:
            errors.append("QUOTA_BACKEND=redis requires QUOTA_REDIS_URL")

        if self.quota_default_limit is not None and self.quota_default_limit < 0:
            errors.append("QUOTA_DEFAULT_LIMIT must be >= 0")

        try:
            ZoneInfo(self.quota_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"QUOTA_TIMEZONE is not a known zone: {self.quota_timezone!r}")

        try:
            self.quota_account_limits_map  # noqa: B018
        except ValueError as e:
            errors.append(str(e))

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def ai_provider_list(self) -> list[str]:
        """Parse comma-separated provider preference."""
        return [p.strip().lower() for p in self.ai_provider.split(",") if p.strip()]

    @property
    def ocr_languages_list(self) -> list[str]:
        """Parse comma-separated OCR languages."""
        return [lang.strip() for lang in self.ocr_languages.split(",") if lang.strip()]

    @property
    def quota_account_limits_map(self) -> dict[str, int]:
        """Parse 'email:limit,email:limit' into a lower-cased mapping."""
        limits: dict[str, int] = {}
        for pair in self.quota_account_limits.split(","):
            pair = pair.strip()
            if not pair:
                continue
            email, sep, value = pair.rpartition(":")
            if not sep or not email.strip():
                raise ValueError(f"QUOTA_ACCOUNT_LIMITS entry is not 'email:limit': {pair!r}")
            try:
                limits[email.strip().lower()] = int(value)
            except ValueError as e:
                raise ValueError(
                    f"QUOTA_ACCOUNT_LIMITS limit is not an integer: {pair!r}"
                ) from e
        return limits

    @property
    def cache_ttl_ms(self) -> int:
        return self.cache_ttl_days * 24 * 60 * 60 * 1000


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-tenant config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
