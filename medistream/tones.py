"""Short notification tones: synthesis, playback and global mutual exclusion."""

import io
import logging
import math
import os
import shutil
import struct
import subprocess
import sys
import tempfile
import threading
import time
import wave
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# (frequency Hz, duration s, gap after s)
Note = Tuple[float, float, float]

TONE_PRESETS: Dict[str, List[Note]] = {
    "ding": [(800.0, 0.5, 0.0)],
    "notification": [(440.0, 0.1, 0.1), (440.0, 0.1, 0.0)],
    "chime": [(523.25, 0.2, 0.05), (659.25, 0.2, 0.05), (783.99, 0.3, 0.0)],
    "default": [(600.0, 0.3, 0.0)],
}
TONE_NAMES = tuple(TONE_PRESETS)

ATTACK_SECONDS = 0.01
DECAY_FLOOR = 0.01
SAMPLE_RATE = 22050

# A new tone is refused while one plays or within this window of the last start
RETRIGGER_WINDOW_SECONDS = 3.0
RELEASE_DELAY_SECONDS = 1.5


class AudioUnavailableError(RuntimeError):
    """No way to play audio on this machine."""


class AudioSink(ABC):
    """Something that can play a WAV buffer to completion."""

    @abstractmethod
    def play(self, wav_bytes: bytes) -> None:
        """Play the buffer and return once playback has finished."""
        pass


class CommandAudioSink(AudioSink):
    """Plays WAV data through the platform's command-line player."""

    PLAYERS = ("paplay", "aplay", "afplay")

    def __init__(self, player: Optional[str] = None, timeout: float = 10.0):
        self.player = player
        self.timeout = timeout

    def _find_player(self) -> Optional[str]:
        if self.player:
            return self.player
        for candidate in self.PLAYERS:
            path = shutil.which(candidate)
            if path:
                return path
        return None

    def play(self, wav_bytes: bytes) -> None:
        if sys.platform == "win32":
            import winsound
            winsound.PlaySound(wav_bytes, winsound.SND_MEMORY)
            return

        player = self._find_player()
        if not player:
            raise AudioUnavailableError(
                f"No audio player found (looked for {', '.join(self.PLAYERS)})"
            )

        fd, path = tempfile.mkstemp(prefix="medistream_tone_", suffix=".wav")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(wav_bytes)
            subprocess.run(
                [player, path],
                check=True,
                timeout=self.timeout,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        finally:
            try:
                os.unlink(path)
            except OSError:
                pass


def _note_samples(frequency: float, duration: float, volume: float, sample_rate: int) -> List[float]:
    """
    One sine note with a linear attack and an exponential decay.

    The gain ramps from 0 to ``volume`` over the first 10 ms, then decays
    exponentially to a near-zero floor at the end of the note.
    """
    n_samples = int(duration * sample_rate)
    attack = min(int(ATTACK_SECONDS * sample_rate), n_samples)
    decay = max(n_samples - attack, 1)
    floor = min(DECAY_FLOOR, volume)
    ratio = floor / volume if volume > 0 else 0.0

    samples = []
    for i in range(n_samples):
        if i < attack:
            gain = volume * i / attack
        else:
            gain = volume * ratio ** ((i - attack) / decay)
        samples.append(gain * math.sin(2 * math.pi * frequency * i / sample_rate))
    return samples


def render_tone(tone: str, volume: float, sample_rate: int = SAMPLE_RATE) -> bytes:
    """
    Synthesize a preset as 16-bit mono WAV bytes.

    Unknown tone names fall back to the default beep.
    """
    volume = min(1.0, max(0.0, volume))
    notes = TONE_PRESETS.get(tone, TONE_PRESETS["default"])

    samples: List[float] = []
    for frequency, duration, gap in notes:
        samples.extend(_note_samples(frequency, duration, volume, sample_rate))
        samples.extend([0.0] * int(gap * sample_rate))

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(b"".join(struct.pack("<h", int(32767 * s)) for s in samples))
    return buffer.getvalue()


class ToneSynthesizer:
    """
    Plays one tone at a time.

    ``play`` is fire-and-forget: the tone is rendered and handed to the sink
    on a background thread. While a tone is playing, and for 3 s after the
    last one started, further requests are ignored. The guard is released
    1.5 s after playback ends (or fails).
    """

    def __init__(
        self,
        sink: Optional[AudioSink] = None,
        clock: Callable[[], float] = time.time,
        background: bool = True,
        release_delay: float = RELEASE_DELAY_SECONDS,
    ):
        self.sink = sink or CommandAudioSink()
        self.clock = clock
        self.background = background
        self.release_delay = release_delay
        self._lock = threading.Lock()
        self._playing = False
        self._last_started: Optional[float] = None
        self._release_timer: Optional[threading.Timer] = None

    @property
    def is_playing(self) -> bool:
        with self._lock:
            return self._playing

    def play(self, tone: str, volume: float) -> bool:
        """
        Request playback of ``tone`` at ``volume`` (0.0-1.0).

        Returns:
            True if playback was started, False if the request was coalesced.
        """
        if volume <= 0:
            logger.debug(f"Skipping tone {tone!r}: volume is 0")
            return False

        now = self.clock()
        with self._lock:
            if self._playing:
                logger.debug(f"Skipping tone {tone!r}: another tone is playing")
                return False
            if self._last_started is not None and now - self._last_started < RETRIGGER_WINDOW_SECONDS:
                logger.debug(f"Skipping tone {tone!r}: last tone started {now - self._last_started:.2f}s ago")
                return False
            self._playing = True
            self._last_started = now

        logger.info(f"Playing notification tone {tone!r} at volume {volume:.2f}")
        if self.background:
            threading.Thread(target=self._play_and_release, args=(tone, volume), daemon=True).start()
        else:
            self._play_and_release(tone, volume)
        return True

    def _play_and_release(self, tone: str, volume: float) -> None:
        try:
            self.sink.play(render_tone(tone, volume))
        except AudioUnavailableError as e:
            logger.warning(f"Cannot play notification tone: {e}")
        except Exception as e:
            logger.error(f"Error playing notification tone {tone!r}: {e}")
        finally:
            self._schedule_release()

    def _schedule_release(self) -> None:
        if self.release_delay <= 0:
            self._release()
            return
        timer = threading.Timer(self.release_delay, self._release)
        timer.daemon = True
        self._release_timer = timer
        timer.start()

    def _release(self) -> None:
        with self._lock:
            self._playing = False

    def dispose(self) -> None:
        timer = self._release_timer
        if timer is not None:
            timer.cancel()
        self._release()
