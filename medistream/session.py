"""Wires the change-detection and notification pipeline for one application session."""

import logging
import sqlite3
import time
from typing import Callable, Dict, Optional

from .area_classifier import AreaClassifier
from .config import AppConfig
from .db import init_db
from .deduplicator import NotificationCenter
from .events import ChangeEventBus
from .llm import create_llm_client
from .models import DATASET_TABLES, MEDICATIONS, PHARMA_TACTICS, UNMET_NEEDS
from .notifier import CommandNotifier, DesktopNotifier
from .poller import DatasetPoller
from .settings import SettingsStore
from .store_client import DataStoreClient, DatasetRepository
from .tones import AudioSink, ToneSynthesizer
from .workflows import WorkflowProxyClient, WorkflowStatusMonitor

logger = logging.getLogger(__name__)


class MedistreamSession:
    """
    Owns every pipeline component: pollers -> bus -> notification center ->
    {desktop notification, tone}. Nothing here is process-global; build one
    with ``create`` and tear it down with ``dispose``.
    """

    def __init__(
        self,
        config: AppConfig,
        conn: sqlite3.Connection,
        store: DataStoreClient,
        proxy: WorkflowProxyClient,
        notifier: DesktopNotifier,
        sink: Optional[AudioSink] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.conn = conn
        self.store = store
        self.proxy = proxy

        self.bus = ChangeEventBus()
        self.settings = SettingsStore(conn)
        self.synthesizer = ToneSynthesizer(sink=sink, clock=clock)
        self.notifications = NotificationCenter(
            settings=self.settings,
            synthesizer=self.synthesizer,
            notifier=notifier,
            user_email=config.user_email,
            clock=clock,
        )
        self._unsubscribe = self.bus.subscribe(self.notifications)

        intervals = {
            MEDICATIONS: config.polling.medications_seconds,
            UNMET_NEEDS: config.polling.unmet_needs_seconds,
            PHARMA_TACTICS: config.polling.tactics_seconds,
        }
        self.repositories: Dict[str, DatasetRepository] = {
            kind: DatasetRepository(store, table) for kind, table in DATASET_TABLES.items()
        }
        self.pollers: Dict[str, DatasetPoller] = {
            kind: DatasetPoller(repo, self.bus, interval=intervals[kind], clock=clock)
            for kind, repo in self.repositories.items()
        }
        self.workflows = WorkflowStatusMonitor(
            proxy,
            config.proxy.workflows,
            interval=config.polling.workflow_seconds,
            clock=clock,
        )

        self.area_classifier: Optional[AreaClassifier] = None
        if config.llm.enabled:
            self.area_classifier = AreaClassifier(create_llm_client(config.llm), config.llm)

        self._disposed = False

    @classmethod
    def create(
        cls,
        config: AppConfig,
        notifier: Optional[DesktopNotifier] = None,
        sink: Optional[AudioSink] = None,
    ) -> "MedistreamSession":
        logger.info(f"Initializing local state at {config.db_path}...")
        conn = init_db(config.db_path)
        return cls(
            config=config,
            conn=conn,
            store=DataStoreClient(config.store),
            proxy=WorkflowProxyClient(config.proxy),
            notifier=notifier or CommandNotifier(),
            sink=sink,
        )

    def start(self, with_workflows: bool = True) -> None:
        for poller in self.pollers.values():
            poller.start()
        if with_workflows and self.config.proxy.workflows:
            self.workflows.start()

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        for poller in self.pollers.values():
            poller.stop()
        self.workflows.stop()
        self._unsubscribe()
        self.bus.dispose()
        self.notifications.dispose()
        self.synthesizer.dispose()
        self.proxy.close()
        self.conn.close()
        logger.info("Session disposed")

    def __enter__(self) -> "MedistreamSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()
