"""
Voice session container.

- One per remote participant identity
- Owns that participant's turn state, audio buffers, detectors and
  conversation window
- Mutated only by that participant's own task (frame consumer + turn task)
- NOT a state machine: transitions live in orchestrator.turns
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass, field
from typing import Any, Mapping

from audio.buffers import InterruptCaptureBuffer, RecordingBuffer
from audio.vad import InterruptDetector, VADProfile, VoiceActivityDetector
from config import VoiceTuning
from constants import (
    AUDIO_SAMPLE_RATE_HZ,
    DEFAULT_LANGUAGE,
    DEFAULT_LANGUAGE_NAME,
    DEFAULT_VOICE,
)
from context.conversation import ConversationContext
from observability.logger import log_event
from orchestrator.cancellation import ActiveSynthesisHandle
from orchestrator.enums.state import TurnState
from orchestrator.errors import InvariantViolation


# ---------------------------------------------------------------------
# Per-participant settings
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class SessionSettings:
    """
    Participant preferences carried in join metadata.

    language:
        Language hint for transcription and reply generation ("en", "hi", ...).
    language_name:
        Human-readable language name used in the reply prompt.
    voice:
        Synthesizer voice id.
    """
    language: str = DEFAULT_LANGUAGE
    language_name: str = DEFAULT_LANGUAGE_NAME
    voice: str = DEFAULT_VOICE

    @classmethod
    def from_metadata(
        cls,
        metadata: str | Mapping[str, Any] | None,
        *,
        defaults: SessionSettings | None = None,
        identity: str | None = None,
    ) -> SessionSettings:
        """
        Parse participant metadata.

        Accepts a JSON string or an already-decoded mapping with optional
        keys `language`, `languageName` and `voiceId`. Missing keys keep
        their defaults; malformed metadata falls back to defaults entirely
        (logged).
        """
        base = defaults or cls()
        if metadata is None or metadata == "":
            return base

        data: Any = metadata
        if isinstance(metadata, str):
            try:
                data = json.loads(metadata)
            except ValueError as exc:
                log_event({
                    "event_type": "SESSION_METADATA_INVALID",
                    "identity": identity,
                    "reason": f"{type(exc).__name__}: {exc}",
                })
                return base

        if not isinstance(data, Mapping):
            log_event({
                "event_type": "SESSION_METADATA_INVALID",
                "identity": identity,
                "reason": f"expected object, got {type(data).__name__}",
            })
            return base

        return cls(
            language=str(data.get("language") or base.language),
            language_name=str(data.get("languageName") or base.language_name),
            voice=str(data.get("voiceId") or base.voice),
        )


# ---------------------------------------------------------------------
# VoiceSession
# ---------------------------------------------------------------------


@dataclass
class VoiceSession:
    """Mutable runtime container for a single participant."""

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------

    identity: str
    settings: SessionSettings = field(default_factory=SessionSettings)
    tuning: VoiceTuning = field(default_factory=VoiceTuning)
    sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ
    created_at: float = field(default_factory=time.time)

    # ------------------------------------------------------------------
    # Turn state (mutated by orchestrator.turns only)
    # ------------------------------------------------------------------

    state: TurnState = TurnState.IDLE
    silence_ms: float = 0.0
    last_fingerprint: str | None = None
    last_fingerprint_at: float | None = None
    frames_dropped: int = 0

    # ------------------------------------------------------------------
    # Owned objects (built in __post_init__)
    # ------------------------------------------------------------------

    recording: RecordingBuffer = field(init=False)
    capture: InterruptCaptureBuffer = field(init=False)
    turn_detector: VoiceActivityDetector = field(init=False)
    interrupt_detector: InterruptDetector = field(init=False)
    conversation: ConversationContext = field(init=False)

    # ------------------------------------------------------------------
    # Synthesis
    # ------------------------------------------------------------------

    handle: ActiveSynthesisHandle | None = None
    last_run_id: int = 0

    # ------------------------------------------------------------------
    # Tasks / wiring (attached by the gateway)
    # ------------------------------------------------------------------

    turn_task: asyncio.Task[None] | None = None
    consumer_task: asyncio.Task[None] | None = None
    ingest_queue: asyncio.Queue[Any] | None = None
    machine: Any = None  # Type: orchestrator.turns.TurnStateMachine

    def __post_init__(self) -> None:
        tuning = self.tuning
        self.recording = RecordingBuffer(sample_rate_hz=self.sample_rate_hz)
        self.capture = InterruptCaptureBuffer(
            sample_rate_hz=self.sample_rate_hz,
            max_seconds=tuning.capture_max_s,
        )
        self.turn_detector = VoiceActivityDetector(
            VADProfile(
                threshold=tuning.turn_rms_threshold,
                silence_ms=tuning.silence_ms,
            )
        )
        self.interrupt_detector = InterruptDetector(
            VoiceActivityDetector(
                VADProfile(
                    threshold=tuning.interrupt_rms_threshold,
                    frames_required=tuning.interrupt_frames_required,
                    min_speech_ms=tuning.interrupt_min_speech_ms,
                )
            )
        )
        self.conversation = ConversationContext(identity=self.identity)

    # ------------------------------------------------------------------
    # Synthesis handle lifecycle
    # ------------------------------------------------------------------

    def next_run_id(self) -> int:
        """Monotonic per-session synthesis run id (starts at 1)."""
        self.last_run_id += 1
        return self.last_run_id

    def begin_synthesis(self, text: str) -> ActiveSynthesisHandle:
        """
        Create the session's one live synthesis handle.

        Any prior live handle is cancelled and replaced, never stacked.
        """
        prior = self.handle
        if prior is not None and prior.live:
            prior.cancel("superseded")
            log_event({
                "event_type": "SYNTHESIS_SUPERSEDED",
                **self.log_context(),
                "prior_run_id": prior.run_id,
            })
        self.handle = ActiveSynthesisHandle(run_id=self.next_run_id(), text=text)
        return self.handle

    def release_handle(self, handle: ActiveSynthesisHandle) -> bool:
        """
        Finish and detach `handle` if it is still the session's handle.

        Returns:
            True if the session owned it.
        """
        handle.finish()
        if self.handle is handle:
            self.handle = None
            return True
        return False

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def reset_turn(self) -> None:
        """Clear per-turn audio state. Conversation and settings survive."""
        self.recording.clear()
        self.capture.clear()
        self.interrupt_detector.reset()
        self.silence_ms = 0.0

    def reset(self) -> None:
        """
        Hard reset to IDLE.

        Cancels the live synthesis handle (if any) and clears per-turn
        audio. Tasks are the owner's business.
        """
        if self.handle is not None:
            self.handle.cancel("session_reset")
            self.handle.finish()
            self.handle = None
        self.reset_turn()
        self.state = TurnState.IDLE

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------

    def check_invariants(self) -> None:
        """
        Raise InvariantViolation if the mutual-exclusion rules are broken.

        - SPEAKING  <=> a live synthesis handle
        - RECORDING <=> a non-empty recording buffer
        """
        speaking = self.state is TurnState.SPEAKING
        live = self.handle is not None and self.handle.live

        if speaking and not live:
            raise InvariantViolation(f"{self.identity}: SPEAKING without a live synthesis handle")
        if live and not speaking:
            raise InvariantViolation(
                f"{self.identity}: live synthesis handle while {self.state.value}"
            )

        recording = self.state is TurnState.RECORDING
        if recording and self.recording.is_empty():
            raise InvariantViolation(f"{self.identity}: RECORDING with an empty buffer")
        if not recording and not self.recording.is_empty():
            raise InvariantViolation(
                f"{self.identity}: recording buffer holds audio while {self.state.value}"
            )

    # ------------------------------------------------------------------
    # Observability helpers (read-only)
    # ------------------------------------------------------------------

    def log_context(self) -> dict[str, Any]:
        """Standard logging context for this session."""
        return {
            "identity": self.identity,
            "state": self.state.value,
        }
