"""Tests for notification settings and local SQLite state."""
import pytest

from medistream.db import get_favorites, get_json, set_json, set_meta, toggle_favorite
from medistream.models import MEDICATIONS, PHARMA_TACTICS, NotificationSettings
from medistream.settings import AUDIBLE_DEFAULT_VOLUME, SETTINGS_KEY, SettingsStore


class TestSettingsStore:

    def test_defaults(self, settings_store):
        assert settings_store.settings == NotificationSettings(enabled=True, volume=0.5, tone="default")

    def test_zero_volume_disables(self, settings_store):
        settings = settings_store.update(volume=0)
        assert settings.volume == 0
        assert settings.enabled is False

    def test_enabling_at_zero_volume_restores_default(self, settings_store):
        settings_store.update(volume=0)
        settings = settings_store.update(enabled=True)
        assert settings.enabled is True
        assert settings.volume == AUDIBLE_DEFAULT_VOLUME

    def test_raising_volume_does_not_reenable(self, settings_store):
        settings_store.update(volume=0)
        settings = settings_store.update(volume=0.8)
        assert settings.enabled is False
        assert settings.volume == 0.8

    def test_volume_is_clamped(self, settings_store):
        assert settings_store.update(volume=3).volume == 1.0
        assert settings_store.update(volume=-1).volume == 0.0

    def test_unknown_tone_rejected(self, settings_store):
        with pytest.raises(ValueError):
            settings_store.update(tone="siren")
        assert settings_store.settings.tone == "default"

    def test_persisted_across_instances(self, conn, settings_store):
        settings_store.update(tone="chime", volume=0.7)
        reloaded = SettingsStore(conn).settings
        assert (reloaded.enabled, reloaded.volume, reloaded.tone) == (True, 0.7, "chime")
        assert get_json(conn, SETTINGS_KEY) == {"enabled": True, "volume": 0.7, "tone": "chime"}

    def test_returned_settings_are_copies(self, settings_store):
        settings = settings_store.settings
        settings.volume = 0.9
        assert settings_store.settings.volume == 0.5

    def test_legacy_sound_type_key(self, conn):
        set_json(conn, SETTINGS_KEY, {"enabled": False, "volume": 0.2, "soundType": "ding"})
        settings = SettingsStore(conn).settings
        assert (settings.enabled, settings.volume, settings.tone) == (False, 0.2, "ding")

    def test_unreadable_settings_fall_back(self, conn):
        set_meta(conn, SETTINGS_KEY, "{not json")
        assert SettingsStore(conn).settings == NotificationSettings()

    def test_stored_unknown_tone_sanitized(self, conn):
        set_json(conn, SETTINGS_KEY, {"enabled": True, "volume": 0.4, "tone": "siren"})
        assert SettingsStore(conn).settings.tone == "default"


class TestFavorites:

    def test_toggle(self, conn):
        assert toggle_favorite(conn, MEDICATIONS, 42) is True
        assert get_favorites(conn, MEDICATIONS) == {"42"}
        assert toggle_favorite(conn, MEDICATIONS, "42") is False
        assert get_favorites(conn, MEDICATIONS) == set()

    def test_favorites_are_per_dataset(self, conn):
        toggle_favorite(conn, MEDICATIONS, 1)
        toggle_favorite(conn, PHARMA_TACTICS, 2)
        assert get_favorites(conn, MEDICATIONS) == {"1"}
        assert get_favorites(conn, PHARMA_TACTICS) == {"2"}
