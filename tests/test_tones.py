"""Tests for tone synthesis and the one-tone-at-a-time guard."""
import io
import wave

import pytest

from medistream.tones import (
    SAMPLE_RATE,
    TONE_NAMES,
    TONE_PRESETS,
    AudioUnavailableError,
    CommandAudioSink,
    ToneSynthesizer,
    render_tone,
)

from conftest import RecordingSink


def _duration(wav_bytes):
    with wave.open(io.BytesIO(wav_bytes), "rb") as wav_file:
        assert wav_file.getnchannels() == 1
        assert wav_file.getsampwidth() == 2
        assert wav_file.getframerate() == SAMPLE_RATE
        return wav_file.getnframes() / wav_file.getframerate()


class TestRenderTone:

    @pytest.mark.parametrize("tone", TONE_NAMES)
    def test_presets_render_expected_length(self, tone):
        expected = sum(duration + gap for _, duration, gap in TONE_PRESETS[tone])
        assert _duration(render_tone(tone, 0.5)) == pytest.approx(expected, abs=0.01)

    def test_unknown_tone_falls_back_to_default(self):
        assert render_tone("siren", 0.5) == render_tone("default", 0.5)

    def test_louder_volume_gives_larger_samples(self):
        quiet = render_tone("ding", 0.1)
        loud = render_tone("ding", 1.0)
        assert max(loud[44:]) >= max(quiet[44:])
        assert loud != quiet


class TestToneSynthesizer:

    def test_plays_once(self, synthesizer, sink):
        assert synthesizer.play("chime", 0.5) is True
        assert len(sink.played) == 1
        assert not synthesizer.is_playing

    def test_second_request_within_window_is_ignored(self, synthesizer, sink, clock):
        assert synthesizer.play("ding", 0.5)
        clock.advance(1)
        assert synthesizer.play("ding", 0.5) is False
        assert len(sink.played) == 1

    def test_plays_again_after_window(self, synthesizer, sink, clock):
        synthesizer.play("ding", 0.5)
        clock.advance(3)
        assert synthesizer.play("notification", 0.5)
        assert len(sink.played) == 2

    def test_zero_volume_is_silent(self, synthesizer, sink):
        assert synthesizer.play("ding", 0) is False
        assert sink.played == []

    def test_busy_synthesizer_refuses(self, synthesizer, sink, clock):
        synthesizer._playing = True
        clock.advance(10)
        assert synthesizer.play("ding", 0.5) is False
        synthesizer.dispose()
        assert synthesizer.play("ding", 0.5) is True

    def test_sink_failure_is_swallowed_and_releases(self, clock):
        synthesizer = ToneSynthesizer(sink=RecordingSink(fail=True), clock=clock, background=False, release_delay=0)
        assert synthesizer.play("ding", 0.5) is True
        assert not synthesizer.is_playing

    def test_guard_held_until_release_delay(self, sink, clock):
        synthesizer = ToneSynthesizer(sink=sink, clock=clock, background=False, release_delay=0.05)
        synthesizer.play("ding", 0.5)
        assert synthesizer.is_playing
        synthesizer._release_timer.join(2)
        assert not synthesizer.is_playing


class TestCommandAudioSink:

    def test_missing_player_raises(self, monkeypatch):
        monkeypatch.setattr("medistream.tones.sys.platform", "linux")
        monkeypatch.setattr("medistream.tones.shutil.which", lambda name: None)
        with pytest.raises(AudioUnavailableError):
            CommandAudioSink().play(b"RIFF")

    def test_runs_player_on_temp_file(self, monkeypatch):
        calls = []

        def fake_run(args, **kwargs):
            calls.append(args)
            with open(args[1], "rb") as handle:
                assert handle.read() == b"RIFFdata"

        monkeypatch.setattr("medistream.tones.sys.platform", "linux")
        monkeypatch.setattr("medistream.tones.subprocess.run", fake_run)
        CommandAudioSink(player="aplay").play(b"RIFFdata")
        assert calls and calls[0][0] == "aplay"
