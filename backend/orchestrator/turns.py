"""
Turn state machine.

Decides, frame by frame, whose turn it is for ONE participant session and
sequences transcription -> reply generation -> synthesis/playback.

States and transitions:

    IDLE/LISTENING --turn VAD speech------------------------> RECORDING
    RECORDING --sustained silence, buffer >= floor----------> PROCESSING
    RECORDING --sustained silence, buffer <  floor----------> LISTENING (noise)
    PROCESSING --empty / duplicate transcript / failure-----> LISTENING
    PROCESSING --reply ready--------------------------------> SPEAKING
    SPEAKING --interrupt VAD confirms speech (barge-in)-----> RECORDING
    SPEAKING --playback drained + cooldown------------------> LISTENING

Two execution contexts touch a session, never concurrently in the same
event-loop step:

- the frame path (handle_frame), driven by the participant's consumer
  task strictly in arrival order. It never suspends, so every frame is
  handled atomically, including the SPEAKING -> RECORDING barge-in.
- the turn task, spawned on RECORDING -> PROCESSING. It owns the
  provider calls and playback. After each suspension it only moves the
  session if the session is still where it left it (PROCESSING, or
  SPEAKING with its own handle).

Silence and utterance lengths are measured in audio time (sum of frame
durations), so timing is deterministic for a given frame sequence. The
deduplication window and cooldown are wall-clock.

Provider failures become state transitions here and never propagate.
InvariantViolation resets the session to IDLE.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from typing import Callable

import numpy as np

from adapters.asr.base import Transcriber
from adapters.llm.base import ReplyGenerationError, ReplyGenerator, ReplyRequest
from adapters.memory.null import NullMemory
from audio.frames import AudioFrame
from constants import AUDIO_SAMPLE_RATE_HZ, FALLBACK_UTTERANCE, MEMORY_SEARCH_LIMIT
from observability.logger import log_event
from observability.metrics import record_metric, timed
from orchestrator.cancellation import ActiveSynthesisHandle, run_cancellable
from orchestrator.enums.state import TurnState
from orchestrator.errors import InvariantViolation
from orchestrator.interrupts import InterruptContextTracker
from orchestrator.playback import SynthesisPlaybackPipeline
from orchestrator.protocols import MemoryProvider, TranscriptRole, TranscriptSink
from session.voice_session import VoiceSession


def transcript_fingerprint(text: str) -> str:
    """Case- and whitespace-insensitive fingerprint used for deduplication."""
    normalized = " ".join(text.lower().split())
    return hashlib.sha1(normalized.encode("utf-8")).hexdigest()


class TurnStateMachine:
    """One per VoiceSession. Owns every transition of session.state."""

    def __init__(
        self,
        session: VoiceSession,
        *,
        transcriber: Transcriber,
        generator: ReplyGenerator,
        pipeline: SynthesisPlaybackPipeline,
        interrupts: InterruptContextTracker,
        transcripts: TranscriptSink | None = None,
        memory: MemoryProvider | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session = session
        self._transcriber = transcriber
        self._generator = generator
        self._pipeline = pipeline
        self._interrupts = interrupts
        self._transcripts = transcripts
        self._memory: MemoryProvider = memory or NullMemory()
        self._clock = clock

    @property
    def session(self) -> VoiceSession:
        return self._session

    @property
    def state(self) -> TurnState:
        return self._session.state

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Participant joined: IDLE -> LISTENING."""
        if self._session.state is TurnState.IDLE:
            self._transition(TurnState.LISTENING, reason="joined")

    async def shutdown(self) -> None:
        """
        Participant left: cancel synthesis and the in-flight turn, reset.

        Safe to call more than once.
        """
        s = self._session
        if s.handle is not None:
            s.handle.cancel("participant_left")

        task = s.turn_task
        s.turn_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        s.reset()
        self._interrupts.discard(s.identity)
        log_event({"event_type": "TURN_MACHINE_SHUTDOWN", **s.log_context()})

    # ------------------------------------------------------------------
    # Frame path
    # ------------------------------------------------------------------

    def handle_frame(self, frame: AudioFrame) -> None:
        """
        Process one inbound frame. Never suspends.

        An InvariantViolation (raised here or found by the post-frame
        check) resets the session to IDLE.
        """
        s = self._session
        try:
            self._on_frame(frame)
            s.check_invariants()
        except InvariantViolation as exc:
            self._fail_session(exc)

    def _on_frame(self, frame: AudioFrame) -> None:
        state = self._session.state
        if state is TurnState.IDLE or state is TurnState.LISTENING:
            self._on_listening_frame(frame)
        elif state is TurnState.RECORDING:
            self._on_recording_frame(frame)
        elif state is TurnState.PROCESSING:
            # Dropped, not buffered: it must not pollute the next turn
            self._session.frames_dropped += 1
        elif state is TurnState.SPEAKING:
            self._on_speaking_frame(frame)

    def _on_listening_frame(self, frame: AudioFrame) -> None:
        s = self._session
        result = s.turn_detector.classify(frame)
        if not result.is_speech:
            if s.state is TurnState.IDLE:
                self._transition(TurnState.LISTENING, reason="first_frame")
            return

        s.recording.append(frame.samples)
        s.silence_ms = 0.0
        self._transition(TurnState.RECORDING, reason="speech_start", level=round(result.level, 4))

    def _on_recording_frame(self, frame: AudioFrame) -> None:
        s = self._session
        result = s.turn_detector.classify(frame)
        s.recording.append(frame.samples)

        if result.is_speech:
            s.silence_ms = 0.0
            return

        s.silence_ms += frame.duration_ms
        if s.silence_ms >= s.turn_detector.profile.silence_ms:
            self._end_utterance()

    def _end_utterance(self) -> None:
        s = self._session
        # Trailing silence does not count toward the floor
        voiced_ms = s.recording.duration_ms() - s.silence_ms
        if voiced_ms < s.tuning.min_utterance_ms:
            s.recording.clear()
            s.silence_ms = 0.0
            log_event({
                "event_type": "TURN_DISCARDED_NOISE",
                **s.log_context(),
                "voiced_ms": round(voiced_ms, 1),
                "floor_ms": s.tuning.min_utterance_ms,
            })
            self._transition(TurnState.LISTENING, reason="below_floor")
            return

        samples = s.recording.drain()
        s.silence_ms = 0.0
        self._transition(TurnState.PROCESSING, reason="end_of_utterance", voiced_ms=round(voiced_ms, 1))
        s.turn_task = asyncio.create_task(self._run_turn(samples), name=f"turn:{s.identity}")

    def _on_speaking_frame(self, frame: AudioFrame) -> None:
        s = self._session
        s.capture.append(frame.samples)
        confirmed, result = s.interrupt_detector.observe(frame)
        if confirmed:
            self._barge_in(level=result.level)

    def _barge_in(self, *, level: float) -> None:
        """SPEAKING -> RECORDING, atomically."""
        s = self._session
        handle = s.handle
        if handle is None:
            raise InvariantViolation(f"{s.identity}: barge-in while SPEAKING without a handle")

        handle.cancel("barge_in")
        if not handle.played_out:
            self._interrupts.set(s.identity, handle.text)
        s.release_handle(handle)

        # Audio spoken during the interruption seeds the next utterance
        seed = s.capture.take()
        s.interrupt_detector.reset()
        s.recording.clear()
        s.recording.append(seed)
        s.silence_ms = 0.0

        log_event({
            "event_type": "BARGE_IN",
            **s.log_context(),
            "run_id": handle.run_id,
            "level": round(level, 4),
            "seed_ms": round(s.recording.duration_ms(), 1),
            "played_out": handle.played_out,
        })
        self._transition(TurnState.RECORDING, reason="barge_in", run_id=handle.run_id)

    # ------------------------------------------------------------------
    # Turn task
    # ------------------------------------------------------------------

    async def _run_turn(self, samples: np.ndarray) -> None:
        s = self._session
        start_ns = time.monotonic_ns()
        try:
            await self._process(samples)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "TURN_FAILED",
                "level": "ERROR",
                **s.log_context(),
                "reason": f"{type(exc).__name__}: {exc}",
            })
            self._recover_to_listening("turn_failed", s.handle)
        finally:
            record_metric(
                "turn_total_ms",
                (time.monotonic_ns() - start_ns) / 1_000_000,
                identity=s.identity,
            )

    async def _process(self, samples: np.ndarray) -> None:
        s = self._session

        text = await self._transcribe(samples)
        if text is None:
            return
        if not text:
            log_event({"event_type": "TURN_EMPTY_TRANSCRIPT", **s.log_context()})
            self._recover_to_listening("empty_transcript")
            return
        if self._is_duplicate(text):
            log_event({"event_type": "TURN_DUPLICATE_TRANSCRIPT", **s.log_context(), "text": text})
            self._recover_to_listening("duplicate_transcript")
            return

        await self._publish("user", text)

        reply, generated = await self._generate(text)
        if s.state is not TurnState.PROCESSING:
            return

        if generated:
            s.conversation.add_user_turn(text)
            s.conversation.add_assistant_turn(reply)
        await self._publish("agent", reply)
        if generated:
            await self._remember(text, reply)

        if s.state is not TurnState.PROCESSING:
            return
        await self._speak(reply)

    async def _transcribe(self, samples: np.ndarray) -> str | None:
        """Returns the stripped transcript, or None after a failure (already recovered)."""
        s = self._session
        try:
            with timed("stt_latency_ms", identity=s.identity, details={"samples": int(samples.shape[0])}):
                text = await self._transcriber.transcribe(
                    samples,
                    sample_rate_hz=s.sample_rate_hz,
                    language=s.settings.language,
                )
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "TURN_STT_FAILED",
                "level": "WARN",
                **s.log_context(),
                "reason": f"{type(exc).__name__}: {exc}",
            })
            self._recover_to_listening("stt_failed")
            return None
        return (text or "").strip()

    def _is_duplicate(self, text: str) -> bool:
        s = self._session
        fingerprint = transcript_fingerprint(text)
        now = self._clock()
        duplicate = (
            fingerprint == s.last_fingerprint
            and s.last_fingerprint_at is not None
            and (now - s.last_fingerprint_at) * 1000 < s.tuning.dedup_window_ms
        )
        if not duplicate:
            s.last_fingerprint = fingerprint
            s.last_fingerprint_at = now
        return duplicate

    async def _generate(self, text: str) -> tuple[str, bool]:
        """
        Returns (reply, generated). Failure yields the fallback utterance
        with generated=False.
        """
        s = self._session
        interrupted = self._interrupts.take_and_clear(s.identity)
        memories = await self._search_memory(text)

        request = ReplyRequest(
            identity=s.identity,
            transcript=text,
            recent_turns=tuple(s.conversation.serialize()),
            memories=tuple(memories),
            interrupted_text=interrupted,
            language=s.settings.language,
            language_name=s.settings.language_name,
        )
        try:
            with timed("generation_latency_ms", identity=s.identity):
                reply = await self._generator.generate(request)
            reply = (reply or "").strip()
            if not reply:
                raise ReplyGenerationError("empty reply")
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "TURN_GENERATION_FAILED",
                "level": "WARN",
                **s.log_context(),
                "reason": f"{type(exc).__name__}: {exc}",
            })
            return FALLBACK_UTTERANCE, False
        return reply, True

    async def _speak(self, reply: str) -> None:
        s = self._session
        handle = s.begin_synthesis(reply)
        s.capture.clear()
        s.interrupt_detector.reset()
        self._transition(TurnState.SPEAKING, reason="reply_ready", run_id=handle.run_id)

        try:
            result = await self._pipeline.play(handle, voice=s.settings.voice)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "TURN_PLAYBACK_FAILED",
                "level": "WARN",
                **s.log_context(),
                "run_id": handle.run_id,
                "reason": f"{type(exc).__name__}: {exc}",
            })
            self._recover_to_listening("playback_failed", handle)
            return

        if not result.completed:
            # Barge-in (or a reset) already moved the session on
            if s.handle is handle:
                self._recover_to_listening("playback_cancelled", handle)
            else:
                handle.finish()
            return

        sink = self._pipeline.sink
        cancelled, _ = await run_cancellable(sink.wait_for_playout(), handle.token)
        if cancelled:
            await sink.flush_silence(
                s.tuning.flush_silence_frames,
                run_id=handle.run_id,
                sample_rate_hz=AUDIO_SAMPLE_RATE_HZ,
            )
            handle.finish()
            return

        handle.played_out = True
        s.capture.clear()
        await asyncio.sleep(s.tuning.cooldown_ms / 1000)

        if s.state is TurnState.SPEAKING and s.handle is handle:
            s.release_handle(handle)
            s.capture.clear()
            s.interrupt_detector.reset()
            self._transition(TurnState.LISTENING, reason="playback_complete", run_id=handle.run_id)
        else:
            handle.finish()

    # ------------------------------------------------------------------
    # Collaborators (failures logged, never raised)
    # ------------------------------------------------------------------

    async def _search_memory(self, text: str) -> list[str]:
        s = self._session
        try:
            found = await self._memory.search(s.identity, text, MEMORY_SEARCH_LIMIT)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "MEMORY_SEARCH_FAILED",
                "level": "WARN",
                "identity": s.identity,
                "reason": f"{type(exc).__name__}: {exc}",
            })
            return []
        return [m for m in found if m]

    async def _remember(self, text: str, reply: str) -> None:
        s = self._session
        try:
            await self._memory.record(s.identity, "user", text)
            await self._memory.record(s.identity, "agent", reply)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "MEMORY_RECORD_FAILED",
                "level": "WARN",
                "identity": s.identity,
                "reason": f"{type(exc).__name__}: {exc}",
            })

    async def _publish(self, role: TranscriptRole, text: str) -> None:
        if self._transcripts is None:
            return
        s = self._session
        try:
            await self._transcripts.publish(s.identity, role, text)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "TRANSCRIPT_PUBLISH_FAILED",
                "level": "WARN",
                "identity": s.identity,
                "role": role,
                "reason": f"{type(exc).__name__}: {exc}",
            })

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _recover_to_listening(self, reason: str, handle: ActiveSynthesisHandle | None = None) -> None:
        """
        Return to LISTENING from the turn task.

        No-op unless the session is still where the turn task left it.
        """
        s = self._session
        owns_speaking = s.state is TurnState.SPEAKING and handle is not None and s.handle is handle
        if handle is not None:
            handle.cancel(reason)
        if s.state is not TurnState.PROCESSING and not owns_speaking:
            if handle is not None:
                handle.finish()
            return

        if handle is not None:
            s.release_handle(handle)
        s.capture.clear()
        s.interrupt_detector.reset()
        self._transition(TurnState.LISTENING, reason=reason)

    def _transition(self, new_state: TurnState, *, reason: str, **details: object) -> None:
        s = self._session
        old_state = s.state
        s.state = new_state
        log_event({
            "event_type": "TURN_STATE",
            "identity": s.identity,
            "from": old_state.value,
            "to": new_state.value,
            "reason": reason,
            **details,
        })

    def _fail_session(self, exc: InvariantViolation) -> None:
        s = self._session
        log_event({
            "event_type": "SESSION_INVARIANT_VIOLATION",
            "level": "ERROR",
            **s.log_context(),
            "reason": str(exc),
        })
        task = s.turn_task
        s.turn_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        s.reset()
