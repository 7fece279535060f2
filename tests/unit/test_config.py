"""Tests for Settings loading and validation."""

import pytest
from pydantic import ValidationError

from focusq.config import Settings


class TestSettings:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("FOCUSQ_MONITORED_CHANNELS", "C1, C2,")
        monkeypatch.setenv("FOCUSQ_VIP_CONTACTS", "UVIP")
        monkeypatch.setenv("FOCUSQ_TIMEZONE", "Europe/Berlin")
        monkeypatch.setenv("FOCUSQ_DIGEST_ENABLED", "true")
        monkeypatch.setenv("FOCUSQ_USER_EMAIL", "pm@example.com")
        monkeypatch.setenv("FOCUSQ_MARK_SUGGESTED_POLICY", "delivered")

        settings = Settings.from_env()

        assert settings.monitored_channels == ["C1", "C2"]
        assert settings.vip_contacts == ["UVIP"]
        assert settings.tz.key == "Europe/Berlin"
        assert settings.digest_enabled is True
        assert settings.mark_suggested_policy == "delivered"

    def test_invalid_timezone_rejected(self):
        with pytest.raises(ValidationError):
            Settings(primary_timezone="Mars/Olympus_Mons")

    def test_invalid_policy_rejected(self):
        with pytest.raises(ValidationError):
            Settings(primary_timezone="UTC", mark_suggested_policy="sometimes")

    def test_empty_timezone_uses_tz_variable(self, monkeypatch):
        monkeypatch.setenv("TZ", "America/New_York")

        settings = Settings()

        assert settings.primary_timezone == "America/New_York"
        assert settings.tz.key == "America/New_York"

    def test_empty_timezone_uses_localtime_link(self, monkeypatch, tmp_path):
        zone_file = tmp_path / "zoneinfo" / "Europe" / "Berlin"
        zone_file.parent.mkdir(parents=True)
        zone_file.write_bytes(b"")
        link = tmp_path / "localtime"
        link.symlink_to(zone_file)
        monkeypatch.delenv("TZ", raising=False)
        monkeypatch.setattr("focusq.config.LOCALTIME_PATH", link)

        assert Settings().primary_timezone == "Europe/Berlin"

    def test_undetermined_timezone_stays_empty(self, monkeypatch, tmp_path):
        monkeypatch.delenv("TZ", raising=False)
        monkeypatch.setattr("focusq.config.LOCALTIME_PATH", tmp_path / "missing")

        settings = Settings()

        assert settings.primary_timezone == ""
        assert settings.tz.key == "UTC"

    def test_save_and_load(self, tmp_path, settings):
        path = tmp_path / "nested" / "settings.json"
        settings.save(path)

        assert Settings.load(path) == settings

    def test_load_missing_file_gives_defaults(self, tmp_path):
        loaded = Settings.load(tmp_path / "missing.json")
        assert loaded.digest_enabled is False
        assert loaded.monitored_channels == []
