# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from config import AppConfig, VoiceTuning
from constants import ms_to_samples, samples_to_ms


def test_tuning_defaults():
    tuning = VoiceTuning()

    assert tuning.turn_rms_threshold == 0.025
    assert tuning.interrupt_rms_threshold == 0.01
    assert tuning.silence_ms == 800
    assert tuning.min_utterance_ms == 500
    assert tuning.interrupt_frames_required == 2
    assert tuning.dedup_window_ms == 3000
    assert tuning.cooldown_ms == 200
    assert tuning.flush_silence_frames == 10


@pytest.mark.parametrize(
    "kwargs",
    [
        {"turn_rms_threshold": 0.0},
        {"interrupt_rms_threshold": 1.5},
        {"silence_ms": 0},
        {"interrupt_frames_required": 0},
        {"min_utterance_ms": -1},
        {"cooldown_ms": -5},
    ],
)
def test_tuning_rejects_out_of_range(kwargs):
    with pytest.raises(ValueError):
        VoiceTuning(**kwargs)


def test_tuning_from_env(monkeypatch):
    monkeypatch.setenv("VOICE_SILENCE_MS", "600")
    monkeypatch.setenv("VOICE_INTERRUPT_RMS_THRESHOLD", "0.02")

    tuning = VoiceTuning.load_from_env()

    assert tuning.silence_ms == 600
    assert tuning.interrupt_rms_threshold == 0.02
    assert tuning.min_utterance_ms == 500


def test_malformed_env_raises(monkeypatch):
    monkeypatch.setenv("VOICE_SILENCE_MS", "soon")

    with pytest.raises(ValueError):
        VoiceTuning.load_from_env()


def test_app_config_from_env(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "groq")
    monkeypatch.setenv("DEFAULT_VOICE", "theo")
    monkeypatch.delenv("WHISPER_DEVICE", raising=False)
    monkeypatch.delenv("TTS_FALLBACK_PROVIDER", raising=False)

    config = AppConfig.load_from_env()

    assert config.llm_provider == "groq"
    assert config.default_voice == "theo"
    assert config.whisper_device is None
    assert config.tts_fallback_provider == "openai"
    assert isinstance(config.tuning, VoiceTuning)


def test_duration_helpers():
    assert ms_to_samples(20, 16000) == 320
    assert ms_to_samples(-1, 16000) == 0
    assert samples_to_ms(320, 16000) == 20.0
    assert samples_to_ms(0, 16000) == 0.0
