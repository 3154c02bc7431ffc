"""
Voice gateway.

Responsibilities:
- Owns the SessionRegistry and the shared InterruptContextTracker
- Maps participant lifecycle events to session create/remove
- Runs ONE consumer task per participant that drains a bounded frame
  queue strictly in arrival order (backpressure: `await queue.put`)
- Wires each session to its TurnStateMachine and playback pipeline

NOT responsible for:
- Any turn-taking decision (orchestrator.turns)
- Wire formats (protocol.binary, server.sinks)
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Mapping

from adapters.asr.base import Transcriber
from adapters.llm.base import ReplyGenerator
from adapters.tts.base import SpeechSynthesizer
from audio.frames import AudioFrame
from constants import INGEST_QUEUE_MAX_FRAMES
from observability.logger import log_event
from orchestrator.interrupts import InterruptContextTracker
from orchestrator.playback import SynthesisPlaybackPipeline
from orchestrator.protocols import AudioSink, MemoryProvider, TranscriptSink
from orchestrator.turns import TurnStateMachine
from session.registry import SessionRegistry
from session.voice_session import SessionSettings, VoiceSession


class VoiceGateway:
    """
    One gateway per process, many participants.

    Sessions are partitioned by identity; the only shared state is the
    registry map (create/remove) and the interrupt tracker (keyed by
    identity).
    """

    def __init__(
        self,
        *,
        registry: SessionRegistry,
        transcriber: Transcriber,
        generator: ReplyGenerator,
        synthesizer: SpeechSynthesizer,
        memory: MemoryProvider | None = None,
        interrupts: InterruptContextTracker | None = None,
        sink_factory: Callable[[str], AudioSink] | None = None,
        queue_max_frames: int = INGEST_QUEUE_MAX_FRAMES,
    ) -> None:
        self._registry = registry
        self._transcriber = transcriber
        self._generator = generator
        self._synthesizer = synthesizer
        self._memory = memory
        self._interrupts = interrupts or InterruptContextTracker()
        self._sink_factory = sink_factory
        self._queue_max_frames = queue_max_frames

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def interrupts(self) -> InterruptContextTracker:
        return self._interrupts

    # ------------------------------------------------------------------
    # Lifecycle events
    # ------------------------------------------------------------------

    async def on_participant_joined(
        self,
        identity: str,
        *,
        audio_sink: AudioSink,
        transcript_sink: TranscriptSink | None = None,
        metadata: str | Mapping[str, Any] | None = None,
    ) -> VoiceSession:
        """
        Create (or refresh) the participant's session and start its
        frame consumer.

        A re-join with new metadata updates settings in place; an already
        running session keeps its wiring.
        """
        settings = SessionSettings.from_metadata(
            metadata,
            defaults=self._registry.default_settings,
            identity=identity,
        )
        session = self._registry.get_or_create(identity, settings=settings)
        if session.machine is not None:
            return session

        pipeline = SynthesisPlaybackPipeline(
            synthesizer=self._synthesizer,
            sink=audio_sink,
            tuning=session.tuning,
            identity=identity,
        )
        machine = TurnStateMachine(
            session,
            transcriber=self._transcriber,
            generator=self._generator,
            pipeline=pipeline,
            interrupts=self._interrupts,
            transcripts=transcript_sink,
            memory=self._memory,
        )
        session.machine = machine
        session.ingest_queue = asyncio.Queue(maxsize=self._queue_max_frames)
        session.consumer_task = asyncio.create_task(
            self._consume(session),
            name=f"frames:{identity}",
        )
        machine.start()

        log_event({
            "event_type": "PARTICIPANT_JOINED",
            **session.log_context(),
            "language": session.settings.language,
            "voice": session.settings.voice,
        })
        return session

    async def on_audio_frame(self, identity: str, frame: AudioFrame) -> None:
        """
        Enqueue one inbound frame for the participant.

        Suspends while the participant's queue is full. Frames for an
        unknown identity create the session when a sink_factory is
        configured, otherwise they are dropped.
        """
        session = self._registry.get(identity)
        if session is None or session.ingest_queue is None:
            if self._sink_factory is None:
                log_event({
                    "event_type": "FRAME_UNKNOWN_PARTICIPANT",
                    "identity": identity,
                    "sequence_num": frame.sequence_num,
                })
                return
            session = await self.on_participant_joined(identity, audio_sink=self._sink_factory(identity))

        assert session.ingest_queue is not None
        await session.ingest_queue.put(frame)

    async def on_participant_left(self, identity: str, *, reason: str = "left") -> None:
        """Tear down everything the participant owns. Idempotent."""
        session = self._registry.remove(identity)
        if session is None:
            self._interrupts.discard(identity)
            return

        consumer = session.consumer_task
        session.consumer_task = None
        if consumer is not None and not consumer.done():
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass

        if session.machine is not None:
            await session.machine.shutdown()
        else:
            self._interrupts.discard(identity)

        log_event({
            "event_type": "PARTICIPANT_LEFT",
            "identity": identity,
            "reason": reason,
            "frames_dropped": session.frames_dropped,
        })

    async def close(self) -> None:
        """Remove every participant (process shutdown)."""
        for identity in self._registry.identities():
            await self.on_participant_left(identity, reason="shutdown")

    # ------------------------------------------------------------------
    # Per-participant consumer
    # ------------------------------------------------------------------

    async def _consume(self, session: VoiceSession) -> None:
        """Drain the participant's frames strictly in arrival order."""
        queue = session.ingest_queue
        machine = session.machine
        assert queue is not None and machine is not None

        while True:
            frame = await queue.get()
            try:
                machine.handle_frame(frame)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "event_type": "FRAME_HANDLER_ERROR",
                    "level": "ERROR",
                    **session.log_context(),
                    "exception": type(exc).__name__,
                    "message": str(exc),
                })
            finally:
                queue.task_done()
