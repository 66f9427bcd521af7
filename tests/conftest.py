"""
Pytest configuration and shared fixtures for Medistream tests.
"""
import logging

import pytest

from medistream.db import init_db
from medistream.notifier import DEFAULT, DENIED, GRANTED, DesktopNotifier
from medistream.settings import SettingsStore
from medistream.tones import AudioSink, ToneSynthesizer

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSink(AudioSink):
    def __init__(self, fail: bool = False):
        self.played = []
        self.fail = fail

    def play(self, wav_bytes: bytes) -> None:
        self.played.append(wav_bytes)
        if self.fail:
            raise OSError("audio device busy")


class RecordingNotifier(DesktopNotifier):
    def __init__(self, permission: str = GRANTED, grant_on_request: bool = True):
        self._permission = permission
        self.grant_on_request = grant_on_request
        self.requests = 0
        self.shown = []

    @property
    def permission(self) -> str:
        return self._permission

    def request_permission(self) -> str:
        self.requests += 1
        if self._permission == DEFAULT:
            self._permission = GRANTED if self.grant_on_request else DENIED
        return self._permission

    def show(self, title: str, message: str) -> None:
        self.shown.append((title, message))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def conn():
    connection = init_db(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def settings_store(conn):
    return SettingsStore(conn)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def synthesizer(sink, clock):
    return ToneSynthesizer(sink=sink, clock=clock, background=False, release_delay=0)
