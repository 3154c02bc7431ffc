"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide typed, immutable config objects

Non-responsibilities:
- No orchestration logic
- No wire-format constants
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    DEDUP_WINDOW_MS_DEFAULT,
    DEFAULT_LANGUAGE,
    DEFAULT_LANGUAGE_NAME,
    DEFAULT_VOICE,
    FLUSH_SILENCE_FRAMES_DEFAULT,
    INTERRUPT_CAPTURE_MAX_S_DEFAULT,
    INTERRUPT_FRAMES_REQUIRED_DEFAULT,
    INTERRUPT_MIN_SPEECH_MS_DEFAULT,
    INTERRUPT_RMS_THRESHOLD_DEFAULT,
    MIN_UTTERANCE_MS_DEFAULT,
    PLAYBACK_SUB_FRAME_MS_DEFAULT,
    POST_SPEECH_COOLDOWN_MS_DEFAULT,
    TTS_MIN_CHUNK_CHARS_DEFAULT,
    TURN_RMS_THRESHOLD_DEFAULT,
    TURN_SILENCE_MS_DEFAULT,
)


@dataclass(frozen=True)
class VoiceTuning:
    """
    Tuning knobs for turn-taking and barge-in.

    Thresholds are normalized RMS levels in (0, 1].
    Durations are milliseconds of *audio* (counted from frame durations,
    not wall clock), except dedup_window_ms and cooldown_ms which are
    wall-clock.
    """

    turn_rms_threshold: float = TURN_RMS_THRESHOLD_DEFAULT
    silence_ms: int = TURN_SILENCE_MS_DEFAULT
    min_utterance_ms: int = MIN_UTTERANCE_MS_DEFAULT

    interrupt_rms_threshold: float = INTERRUPT_RMS_THRESHOLD_DEFAULT
    interrupt_frames_required: int = INTERRUPT_FRAMES_REQUIRED_DEFAULT
    interrupt_min_speech_ms: int = INTERRUPT_MIN_SPEECH_MS_DEFAULT
    capture_max_s: float = INTERRUPT_CAPTURE_MAX_S_DEFAULT

    dedup_window_ms: int = DEDUP_WINDOW_MS_DEFAULT
    cooldown_ms: int = POST_SPEECH_COOLDOWN_MS_DEFAULT

    sub_frame_ms: int = PLAYBACK_SUB_FRAME_MS_DEFAULT
    flush_silence_frames: int = FLUSH_SILENCE_FRAMES_DEFAULT
    min_chunk_chars: int = TTS_MIN_CHUNK_CHARS_DEFAULT

    def __post_init__(self) -> None:
        for name in ("turn_rms_threshold", "interrupt_rms_threshold"):
            value = getattr(self, name)
            if not 0.0 < value <= 1.0:
                raise ValueError(f"{name} must be in (0, 1], got {value}")

        for name in (
            "silence_ms",
            "interrupt_frames_required",
            "capture_max_s",
            "sub_frame_ms",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")

        for name in (
            "min_utterance_ms",
            "interrupt_min_speech_ms",
            "dedup_window_ms",
            "cooldown_ms",
            "flush_silence_frames",
            "min_chunk_chars",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")

    @staticmethod
    def load_from_env() -> VoiceTuning:
        """
        Build tuning from VOICE_* environment variables.

        Unset variables keep their defaults.

        Raises:
            ValueError if a variable is set but malformed or out of range.
        """
        env = os.environ
        return VoiceTuning(
            turn_rms_threshold=float(env.get("VOICE_TURN_RMS_THRESHOLD", TURN_RMS_THRESHOLD_DEFAULT)),
            silence_ms=int(env.get("VOICE_SILENCE_MS", TURN_SILENCE_MS_DEFAULT)),
            min_utterance_ms=int(env.get("VOICE_MIN_UTTERANCE_MS", MIN_UTTERANCE_MS_DEFAULT)),
            interrupt_rms_threshold=float(
                env.get("VOICE_INTERRUPT_RMS_THRESHOLD", INTERRUPT_RMS_THRESHOLD_DEFAULT)
            ),
            interrupt_frames_required=int(
                env.get("VOICE_INTERRUPT_FRAMES", INTERRUPT_FRAMES_REQUIRED_DEFAULT)
            ),
            interrupt_min_speech_ms=int(
                env.get("VOICE_INTERRUPT_MIN_MS", INTERRUPT_MIN_SPEECH_MS_DEFAULT)
            ),
            capture_max_s=float(env.get("VOICE_CAPTURE_MAX_S", INTERRUPT_CAPTURE_MAX_S_DEFAULT)),
            dedup_window_ms=int(env.get("VOICE_DEDUP_WINDOW_MS", DEDUP_WINDOW_MS_DEFAULT)),
            cooldown_ms=int(env.get("VOICE_COOLDOWN_MS", POST_SPEECH_COOLDOWN_MS_DEFAULT)),
            sub_frame_ms=int(env.get("VOICE_SUB_FRAME_MS", PLAYBACK_SUB_FRAME_MS_DEFAULT)),
            flush_silence_frames=int(
                env.get("VOICE_FLUSH_SILENCE_FRAMES", FLUSH_SILENCE_FRAMES_DEFAULT)
            ),
            min_chunk_chars=int(env.get("VOICE_MIN_CHUNK_CHARS", TTS_MIN_CHUNK_CHARS_DEFAULT)),
        )


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the app factory and gateway.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # Transcription
    # ------------------------------------------------------------------

    whisper_model: str
    whisper_device: str | None
    whisper_compute_type: str | None

    # ------------------------------------------------------------------
    # Reply generation
    # ------------------------------------------------------------------

    llm_provider: str
    llm_model: str
    openai_api_key: str | None
    groq_api_key: str | None

    # ------------------------------------------------------------------
    # Speech synthesis
    # ------------------------------------------------------------------

    speechmatics_api_key: str | None
    # "openai" or "none"
    tts_fallback_provider: str
    openai_tts_model: str
    openai_tts_voice: str

    # ------------------------------------------------------------------
    # Participant defaults
    # ------------------------------------------------------------------

    default_language: str
    default_language_name: str
    default_voice: str

    # ------------------------------------------------------------------
    # Turn-taking
    # ------------------------------------------------------------------

    tuning: VoiceTuning

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if tuning variables are malformed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            whisper_model=os.environ.get("WHISPER_MODEL", "base"),
            whisper_device=os.environ.get("WHISPER_DEVICE"),
            whisper_compute_type=os.environ.get("WHISPER_COMPUTE_TYPE"),

            llm_provider=os.environ.get("LLM_PROVIDER", "openai"),
            llm_model=os.environ.get("LLM_MODEL", "gpt-4o-mini"),
            openai_api_key=os.environ.get("OPENAI_API_KEY"),
            groq_api_key=os.environ.get("GROQ_API_KEY"),

            speechmatics_api_key=os.environ.get("SPEECHMATICS_API_KEY"),
            tts_fallback_provider=os.environ.get("TTS_FALLBACK_PROVIDER", "openai"),
            openai_tts_model=os.environ.get("OPENAI_TTS_MODEL", "gpt-4o-mini-tts"),
            openai_tts_voice=os.environ.get("OPENAI_TTS_VOICE", "alloy"),

            default_language=os.environ.get("DEFAULT_LANGUAGE", DEFAULT_LANGUAGE),
            default_language_name=os.environ.get("DEFAULT_LANGUAGE_NAME", DEFAULT_LANGUAGE_NAME),
            default_voice=os.environ.get("DEFAULT_VOICE", DEFAULT_VOICE),

            tuning=VoiceTuning.load_from_env(),
        )
