"""Tests for settings validation"""
import pytest
from pydantic import ValidationError

from gamification_service.config import Settings, get_settings


class TestSettings:

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.GAMIFICATION_ENABLED is True
        assert settings.XP_RATE_MULTIPLIER == 1.0
        assert settings.BUSINESS_TIMEZONE == "Europe/Paris"

    @pytest.mark.parametrize("rate", [0.05, 5.5])
    def test_xp_rate_bounds(self, rate):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, XP_RATE_MULTIPLIER=rate)

    def test_invalid_timezone(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, BUSINESS_TIMEZONE="Mars/Olympus_Mons")

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("XP_RATE_MULTIPLIER", "2.5")
        monkeypatch.setenv("GAMIFICATION_ENABLED", "false")

        settings = Settings(_env_file=None)

        assert settings.XP_RATE_MULTIPLIER == 2.5
        assert settings.GAMIFICATION_ENABLED is False

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
