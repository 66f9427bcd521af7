"""Periodic dataset polling with growth detection."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple

from .events import ChangeEventBus
from .models import ChangeEvent, DatasetSnapshot, Row
from .store_client import DatasetRepository, StoreError

logger = logging.getLogger(__name__)

POLLER_COOLDOWN_SECONDS = 5.0


class PeriodicTask(ABC):
    """
    Runs ``fetch`` immediately on ``start`` and then every ``interval`` seconds
    on a daemon thread until ``stop`` is called.

    Ticks on one task never overlap: the loop waits for a fetch to finish
    before sleeping again, and manual ``refresh`` calls share the same lock.
    """

    name = "task"

    def __init__(self, interval: float, clock: Callable[[], float] = time.time):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = interval
        self.clock = clock
        self._fetch_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @abstractmethod
    def _fetch(self):
        """Perform one tick; called with the fetch lock held."""
        pass

    def fetch(self):
        with self._fetch_lock:
            return self._fetch()

    def refresh(self):
        """Manual retry, outside the timer schedule."""
        logger.info(f"Manual refresh of {self.name}")
        return self.fetch()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, interval: Optional[float] = None) -> None:
        if self.running:
            logger.debug(f"{self.name} already started")
            return
        if interval is not None:
            if interval <= 0:
                raise ValueError(f"interval must be positive, got {interval}")
            self.interval = interval

        # one event per run: a loop that outlived stop() keeps its own, already set
        self._stop_event = threading.Event()
        self.fetch()
        self._thread = threading.Thread(
            target=self._run, args=(self._stop_event,), name=f"poll-{self.name}", daemon=True
        )
        self._thread.start()
        logger.info(f"Started polling {self.name} every {self.interval:g}s")

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            try:
                self.fetch()
            except Exception as e:
                # fetch implementations handle their own errors; this keeps the timer alive
                logger.error(f"Unexpected error while polling {self.name}: {e}", exc_info=True)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            logger.info(f"Stopped polling {self.name}")


class DatasetPoller(PeriodicTask):
    """
    Keeps a best-effort view of one dataset and publishes a ChangeEvent when
    its row count grows.

    The first successful fetch only records the count. Afterwards, any
    increase over the previous count is published, unless this poller
    published less than 5 s ago. The previous count always moves to the new
    count after a successful fetch, so suppressed or shrinking ticks are
    simply absorbed. A failed fetch changes nothing except ``error``.
    """

    def __init__(
        self,
        repository: DatasetRepository,
        bus: ChangeEventBus,
        interval: float = 30.0,
        clock: Callable[[], float] = time.time,
        cooldown: float = POLLER_COOLDOWN_SECONDS,
    ):
        super().__init__(interval, clock)
        self.repository = repository
        self.bus = bus
        self.cooldown = cooldown
        self.kind = repository.dataset.kind
        self.name = self.kind

        self.snapshot: Optional[DatasetSnapshot] = None
        self.error: Optional[str] = None
        self.last_updated: Optional[float] = None
        self.last_attempt: Optional[float] = None
        self.previous_count = 0
        self.initialized = False
        self._last_emitted: Optional[float] = None

    @property
    def rows(self) -> List[Row]:
        return list(self.snapshot.rows) if self.snapshot else []

    def _fetch(self) -> Tuple[List[Row], Optional[str]]:
        self.last_attempt = self.clock()
        try:
            rows = self.repository.list()
        except StoreError as e:
            logger.error(f"Error fetching {self.kind} data: {e}")
            self.error = str(e)
            return self.rows, self.error

        now = self.clock()
        logger.info(f"{self.kind} data fetched successfully: {len(rows)} records")
        event = self._detect_growth(rows, now)

        self.snapshot = DatasetSnapshot(kind=self.kind, rows=rows, fetched_at=now)
        self.last_updated = now
        self.error = None

        if event is not None:
            self.bus.publish(event)
        return rows, None

    def _detect_growth(self, rows: List[Row], now: float) -> Optional[ChangeEvent]:
        new_count = len(rows)
        if not self.initialized:
            self.previous_count = new_count
            self.initialized = True
            return None

        event = None
        if self.previous_count > 0 and new_count > self.previous_count:
            delta = new_count - self.previous_count
            if self._last_emitted is None or now - self._last_emitted >= self.cooldown:
                logger.info(f"New {self.kind} data detected: {delta} new records")
                self._last_emitted = now
                event = ChangeEvent(
                    kind=self.kind,
                    count=new_count,
                    delta=delta,
                    latest_row=rows[0] if rows else None,
                    emitted_at=now,
                )
            else:
                logger.debug(f"Skipping {self.kind} change event: too soon since the last one")

        self.previous_count = new_count
        return event
