"""
Tests for application settings
"""

import pytest
from pydantic import ValidationError

from config import ExtractionConfig, OracleConfig, Settings, SystemConfig
from core.enums import ExtractionMode


class TestSettings:
    """Test settings defaults and environment overrides"""

    def test_defaults(self, monkeypatch):
        """Test default settings"""
        monkeypatch.delenv("REGION_ORACLE__API_KEY", raising=False)
        settings = Settings(_env_file=None)

        assert settings.extraction.crop_padding == 2
        assert settings.extraction.hybrid_pixel_strategies == [ExtractionMode.CONTOUR]
        assert settings.api.port == 8000
        assert settings.oracle.is_configured is False

    def test_nested_environment_override(self, monkeypatch):
        """Test nested environment variables"""
        monkeypatch.setenv("REGION_SYSTEM__LOG_LEVEL", "debug")
        monkeypatch.setenv("REGION_EXTRACTION__CROP_PADDING", "5")
        monkeypatch.setenv("REGION_EXTRACTION__HYBRID_PIXEL_STRATEGIES", '["contour", "ui_cards"]')

        settings = Settings(_env_file=None)

        assert settings.system.log_level == "DEBUG"
        assert settings.extraction.crop_padding == 5
        assert settings.extraction.hybrid_pixel_strategies == [
            ExtractionMode.CONTOUR,
            ExtractionMode.UI_CARDS,
        ]

    def test_to_dict_hides_api_key(self):
        """The API key never leaves the settings object"""
        settings = Settings(_env_file=None, oracle=OracleConfig(api_key="sk-secret"))
        data = settings.to_dict()

        assert "api_key" not in data["oracle"]
        assert data["oracle"]["model"] == "gpt-4o"
        assert "sk-secret" not in repr(settings.oracle)

    def test_oracle_configured(self):
        """The oracle needs a key and must be enabled"""
        assert OracleConfig(api_key="sk-test").is_configured
        assert not OracleConfig(api_key="sk-test", enabled=False).is_configured

    def test_invalid_log_level(self):
        """Test unknown log level"""
        with pytest.raises(ValidationError):
            SystemConfig(log_level="LOUD")

    def test_hybrid_strategies_must_be_pixel_modes(self):
        """Only pixel strategies may feed hybrid mode"""
        with pytest.raises(ValidationError):
            ExtractionConfig(hybrid_pixel_strategies=["grid"])
