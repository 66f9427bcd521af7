"""Turns raw change events into user-visible notifications, without repeats."""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from .models import (
    MEDICATIONS,
    PHARMA_TACTICS,
    UNMET_NEEDS,
    ChangeEvent,
    NotificationDetails,
    NotificationRecord,
    get_dataset_table,
)
from .notifier import DesktopNotifier
from .settings import SettingsStore
from .tones import ToneSynthesizer

logger = logging.getLogger(__name__)

MAX_RECORDS = 20
KIND_COOLDOWN_SECONDS = 3.0
DUPLICATE_WINDOW_SECONDS = 5.0
PROCESSED_ID_TTL_SECONDS = 30.0
RELEASE_DELAY_SECONDS = 0.5
ANONYMOUS_USER = "usuario no identificado"

# (title, message) per dataset; message takes the number of new rows
MESSAGE_TEMPLATES: Dict[str, Tuple[str, str]] = {
    MEDICATIONS: (
        "💊 Nuevos fármacos en DrugDealer",
        "Se han añadido {delta} nuevo(s) registro(s) de fármacos",
    ),
    UNMET_NEEDS: (
        "🎯 Nuevas Unmet Needs",
        "Se han añadido {delta} nueva(s) necesidad(es) no cubierta(s)",
    ),
    PHARMA_TACTICS: (
        "📋 Nuevas Pharma Tactics",
        "Se han añadido {delta} nueva(s) táctica(s)",
    ),
}


def format_message(kind: str, delta: int) -> Tuple[str, str]:
    title, message = MESSAGE_TEMPLATES[kind]
    return title, message.format(delta=delta)


def build_details(kind: str, row: Optional[dict], user_email: Optional[str]) -> NotificationDetails:
    """
    Pick the human labels out of the newest row.

    Medication notifications carry only the laboratory; the other datasets
    also carry the drug name.
    """
    table = get_dataset_table(kind)
    row = row or {}
    details = NotificationDetails(
        user_email=user_email or ANONYMOUS_USER,
        laboratory=row.get(table.lab_field) or None,
    )
    if kind != MEDICATIONS:
        details.drug = row.get(table.drug_field) or None
    return details


class NotificationCenter:
    """
    The single consumer of change events.

    For each event: drop it if another is still being processed; drop it if
    the same dataset notified less than 3 s ago; drop it if an identical
    (dataset, count, delta) record was stored in the last 5 s. Survivors
    become a NotificationRecord at the front of a 20-item list and trigger
    the desktop notification and tone, when enabled. Drops are final.
    """

    def __init__(
        self,
        settings: SettingsStore,
        synthesizer: ToneSynthesizer,
        notifier: DesktopNotifier,
        user_email: Optional[str] = None,
        clock: Callable[[], float] = time.time,
        release_delay: float = RELEASE_DELAY_SECONDS,
    ):
        self.settings = settings
        self.synthesizer = synthesizer
        self.notifier = notifier
        self.user_email = user_email
        self.clock = clock
        self.release_delay = release_delay

        self._processing = threading.Lock()
        self._state_lock = threading.Lock()
        self._records: List[NotificationRecord] = []
        self._last_emitted: Dict[str, float] = {}
        self._processed: Dict[str, float] = {}
        self._release_timer: Optional[threading.Timer] = None

    @property
    def records(self) -> List[NotificationRecord]:
        with self._state_lock:
            return list(self._records)

    @property
    def processed_ids(self) -> List[str]:
        """Recently processed notification ids (diagnostics only)."""
        with self._state_lock:
            self._expire_processed(self.clock())
            return list(self._processed)

    def clear(self) -> None:
        with self._state_lock:
            self._records.clear()
        logger.info("Notifications cleared")

    def __call__(self, event: ChangeEvent) -> Optional[NotificationRecord]:
        return self.handle(event)

    def handle(self, event: ChangeEvent) -> Optional[NotificationRecord]:
        """
        Process one change event.

        Returns:
            The stored record, or None if the event was dropped.
        """
        if not self._processing.acquire(blocking=False):
            logger.debug(f"Dropping {event.kind} event: another event is being processed")
            return None

        now = self.clock()
        last = self._last_emitted.get(event.kind)
        if last is not None and now - last < KIND_COOLDOWN_SECONDS:
            logger.debug(f"Dropping {event.kind} event: last notification {now - last:.2f}s ago")
            self._processing.release()
            return None

        try:
            return self._process(event, now)
        finally:
            self._schedule_release()

    def _process(self, event: ChangeEvent, now: float) -> Optional[NotificationRecord]:
        self._last_emitted[event.kind] = now
        notification_id = f"{event.kind}-{event.count}-{event.delta}-{int(now * 1000)}"
        title, message = format_message(event.kind, event.delta)
        details = build_details(event.kind, event.latest_row, self.user_email)

        with self._state_lock:
            self._expire_processed(now)
            self._processed[notification_id] = now

            for existing in self._records:
                if now - existing.timestamp >= DUPLICATE_WINDOW_SECONDS:
                    continue
                if (existing.kind, existing.count, existing.delta) == (event.kind, event.count, event.delta):
                    logger.debug(f"Suppressing duplicate notification {notification_id}")
                    return None

            record = NotificationRecord(
                id=notification_id,
                kind=event.kind,
                title=title,
                message=message,
                details=details,
                timestamp=now,
                count=event.count,
                delta=event.delta,
            )
            self._records.insert(0, record)
            del self._records[MAX_RECORDS:]

        logger.info(f"Notification: {title} - {message}")
        self._deliver(record)
        return record

    def _deliver(self, record: NotificationRecord) -> None:
        settings = self.settings.settings
        if not settings.enabled:
            return
        try:
            self.notifier.notify(record.title, record.message)
        except Exception as e:
            logger.warning(f"Desktop notification failed: {e}")
        self.synthesizer.play(settings.tone, settings.volume)

    def _expire_processed(self, now: float) -> None:
        expired = [key for key, seen in self._processed.items() if now - seen >= PROCESSED_ID_TTL_SECONDS]
        for key in expired:
            del self._processed[key]

    def _schedule_release(self) -> None:
        if self.release_delay <= 0:
            self._processing.release()
            return
        timer = threading.Timer(self.release_delay, self._processing.release)
        timer.daemon = True
        self._release_timer = timer
        timer.start()

    def dispose(self) -> None:
        timer = self._release_timer
        if timer is None:
            return
        timer.cancel()
        if self._processing.locked():
            try:
                self._processing.release()
            except RuntimeError:
                # the timer fired between the check and the release
                pass
