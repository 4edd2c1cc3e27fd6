"""
Application configuration.

Settings are grouped into nested sections and read from the environment
(prefix ``REGION_``, nested delimiter ``__``) and an optional ``.env`` file:

    REGION_SYSTEM__LOG_LEVEL=DEBUG
    REGION_ORACLE__API_KEY=sk-...
    REGION_EXTRACTION__HYBRID_PIXEL_STRATEGIES='["contour", "ui_cards"]'
"""

from functools import lru_cache
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.constants import ImageConstants, OverlapThresholds, RefineDefaults, SystemConstants
from core.enums import HYBRID_PIXEL_STRATEGIES, ExtractionMode


class SystemConfig(BaseModel):
    """Process-level settings."""

    log_level: str = Field(default=SystemConstants.LOG_LEVEL_DEFAULT)
    debug: bool = False

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level


class ApiConfig(BaseModel):
    """HTTP server settings."""

    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    cors_enabled: bool = True
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])


class ExtractionConfig(BaseModel):
    """Pipeline defaults applied when a request does not override them."""

    max_image_mb: float = Field(default=ImageConstants.DEFAULT_MAX_IMAGE_MB, gt=0)
    crop_padding: int = Field(default=ImageConstants.DEFAULT_CROP_PADDING, ge=0, le=100)
    refine_threshold: int = Field(default=RefineDefaults.THRESHOLD, ge=1, le=255)
    hybrid_refine_threshold: int = Field(default=RefineDefaults.HYBRID_THRESHOLD, ge=1, le=255)
    reconcile_threshold: float = Field(default=OverlapThresholds.RECONCILE, gt=0.0, le=1.0)
    hybrid_pixel_strategies: List[ExtractionMode] = Field(
        default_factory=lambda: [ExtractionMode.CONTOUR]
    )

    @field_validator("hybrid_pixel_strategies")
    @classmethod
    def _pixel_only(cls, value: List[ExtractionMode]) -> List[ExtractionMode]:
        invalid = [mode.value for mode in value if mode not in HYBRID_PIXEL_STRATEGIES]
        if invalid:
            raise ValueError(f"Not usable as hybrid pixel strategies: {invalid}")
        return value


class OracleConfig(BaseModel):
    """Vision-completion provider (OpenAI compatible)."""

    enabled: bool = True
    api_key: Optional[str] = Field(default=None, repr=False)
    model: str = "gpt-4o"
    base_url: Optional[str] = None
    timeout_seconds: float = Field(default=60.0, gt=0)
    max_tokens: int = Field(default=4096, ge=1)

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.api_key)


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix="REGION_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = "development"
    system: SystemConfig = Field(default_factory=SystemConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    oracle: OracleConfig = Field(default_factory=OracleConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Settings as plain data, without secrets."""
        return self.model_dump(mode="json", exclude={"oracle": {"api_key"}})


@lru_cache()
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()
