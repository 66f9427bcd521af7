"""Notification settings with their invariants, persisted on every change."""

import logging
import sqlite3
import threading
from dataclasses import replace
from typing import Optional

from .db import get_json, set_json
from .models import NotificationSettings
from .tones import TONE_NAMES

logger = logging.getLogger(__name__)

SETTINGS_KEY = "notification_settings"
AUDIBLE_DEFAULT_VOLUME = 0.5


class SettingsStore:
    """Holds the current NotificationSettings and writes them through to SQLite."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn
        self._lock = threading.Lock()
        self._settings = self._load()

    def _load(self) -> NotificationSettings:
        data = get_json(self._conn, SETTINGS_KEY)
        if not isinstance(data, dict):
            return NotificationSettings()
        try:
            settings = NotificationSettings.from_dict(data)
        except (TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable notification settings: {e}")
            return NotificationSettings()
        if settings.tone not in TONE_NAMES:
            settings.tone = "default"
        settings.volume = min(1.0, max(0.0, settings.volume))
        return settings

    @property
    def settings(self) -> NotificationSettings:
        with self._lock:
            return replace(self._settings)

    def update(
        self,
        enabled: Optional[bool] = None,
        volume: Optional[float] = None,
        tone: Optional[str] = None,
    ) -> NotificationSettings:
        """
        Apply a partial update and persist the result.

        Volume is clamped to 0..1. A volume of 0 switches playback off;
        switching playback on while the volume is 0 restores an audible
        default so that "enabled" never means "silent".

        Raises:
            ValueError: If ``tone`` is not a known preset.
        """
        if tone is not None and tone not in TONE_NAMES:
            raise ValueError(f"Unknown tone {tone!r} (expected one of {', '.join(TONE_NAMES)})")

        with self._lock:
            updated = replace(self._settings)
            if volume is not None:
                updated.volume = min(1.0, max(0.0, float(volume)))
                if updated.volume == 0:
                    updated.enabled = False
            if enabled is not None:
                updated.enabled = bool(enabled)
                if updated.enabled and updated.volume == 0:
                    updated.volume = AUDIBLE_DEFAULT_VOLUME
            if tone is not None:
                updated.tone = tone

            set_json(self._conn, SETTINGS_KEY, updated.to_dict())
            self._settings = updated
            logger.debug(f"Notification settings saved: {updated}")
            return replace(updated)
