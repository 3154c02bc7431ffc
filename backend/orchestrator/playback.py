"""
Synthesis/playback cancellation pipeline.

Streams one generated reply to a session's outbound audio sink while
staying interruptible at sub-frame granularity.

Algorithm (per reply):
1. Split the reply into utterance chunks (orchestrator.chunking).
2. Per chunk: checkpoint, then synthesize (the call receives the token).
3. Checkpoint again as soon as synthesis returns.
4. Emit the chunk's audio in small sub-frames, checkpointing before every
   sub-frame and yielding to the event loop after each one, so a
   concurrently arriving inbound frame can flip the token in between.
5. On cancellation at any checkpoint: stop, flush silence, report
   "not completed" with the full reply text.
6. Otherwise report "completed". Waiting for playout drain is the caller's
   job.

A chunk whose synthesis fails is logged and skipped; the rest of the
reply still plays. Failures observed while the token is cancelled count
as cancellation.

Checkpoints are the ONLY places cancellation is observed. None of them
may be skipped.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

from adapters.tts.base import SpeechSynthesizer, SynthesisOutcome
from audio.frame_generator import split_pcm_into_sub_frames
from audio.frames import AudioFrame
from config import VoiceTuning
from constants import AUDIO_SAMPLE_RATE_HZ
from observability.logger import log_event, now_ms
from observability.metrics import record_metric, timed
from orchestrator.cancellation import ActiveSynthesisHandle
from orchestrator.chunking import split_into_utterances
from orchestrator.protocols import AudioSink


@dataclass(frozen=True)
class PlaybackResult:
    """
    Outcome of one play() call.

    text is always the FULL original reply, so an interrupted playback can
    be stored as interrupted context.
    """
    completed: bool
    text: str
    chunks_total: int = 0
    chunks_spoken: int = 0
    chunks_failed: int = 0
    sub_frames_emitted: int = 0


class SynthesisPlaybackPipeline:
    """
    One pipeline per session (it owns that session's sink exclusively).

    Stateless across replies apart from its collaborators, so the same
    instance serves every turn of the session.
    """

    def __init__(
        self,
        *,
        synthesizer: SpeechSynthesizer,
        sink: AudioSink,
        tuning: VoiceTuning | None = None,
        identity: str | None = None,
    ) -> None:
        self._synthesizer = synthesizer
        self._sink = sink
        self._tuning = tuning or VoiceTuning()
        self._identity = identity

    @property
    def sink(self) -> AudioSink:
        return self._sink

    async def play(self, handle: ActiveSynthesisHandle, *, voice: str) -> PlaybackResult:
        """
        Synthesize and stream handle.text, observing handle.token.

        Never raises for provider failures; asyncio.CancelledError
        propagates.
        """
        token = handle.token
        chunks = split_into_utterances(handle.text, min_chars=self._tuning.min_chunk_chars)

        spoken = 0
        failed = 0
        emitted = 0
        sample_rate_hz = 0

        log_event({
            "event_type": "PLAYBACK_START",
            "identity": self._identity,
            "run_id": handle.run_id,
            "chunks": len(chunks),
            "chars": len(handle.text),
        })

        for index, chunk in enumerate(chunks):
            # Checkpoint: between chunks
            if token.cancelled:
                return await self._abort(handle, len(chunks), spoken, failed, emitted, sample_rate_hz)

            try:
                with timed(
                    "synthesis_latency_ms",
                    identity=self._identity,
                    details={"run_id": handle.run_id, "chunk_index": index, "chars": len(chunk)},
                ):
                    result = await self._synthesizer.synthesize(text=chunk, voice=voice, token=token)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # pylint: disable=broad-exception-caught
                if token.cancelled:
                    return await self._abort(handle, len(chunks), spoken, failed, emitted, sample_rate_hz)
                failed += 1
                self._log_chunk_failed(handle, index, f"{type(exc).__name__}: {exc}")
                continue

            # Checkpoint: synthesis returned (a cancelled call may still return audio)
            if token.cancelled or result.outcome is SynthesisOutcome.CANCELLED:
                return await self._abort(handle, len(chunks), spoken, failed, emitted, sample_rate_hz)

            if result.outcome is SynthesisOutcome.FAILED:
                failed += 1
                self._log_chunk_failed(handle, index, result.reason or "unknown")
                continue

            sample_rate_hz = result.sample_rate_hz
            sub_frames = split_pcm_into_sub_frames(
                result.pcm_bytes,
                sample_rate_hz=result.sample_rate_hz,
                sub_frame_ms=self._tuning.sub_frame_ms,
            )
            for pcm in sub_frames:
                # Checkpoint: before every sub-frame
                if token.cancelled:
                    return await self._abort(handle, len(chunks), spoken, failed, emitted, sample_rate_hz)

                await self._sink.emit(
                    AudioFrame(
                        pcm_bytes=pcm,
                        sample_rate_hz=result.sample_rate_hz,
                        sequence_num=emitted,
                        ts_ms=now_ms(),
                        run_id=handle.run_id,
                    )
                )
                emitted += 1
                await asyncio.sleep(0)

            spoken += 1

        log_event({
            "event_type": "PLAYBACK_COMPLETE",
            "identity": self._identity,
            "run_id": handle.run_id,
            "chunks_spoken": spoken,
            "chunks_failed": failed,
            "sub_frames": emitted,
        })
        return PlaybackResult(
            completed=True,
            text=handle.text,
            chunks_total=len(chunks),
            chunks_spoken=spoken,
            chunks_failed=failed,
            sub_frames_emitted=emitted,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _abort(
        self,
        handle: ActiveSynthesisHandle,
        total: int,
        spoken: int,
        failed: int,
        emitted: int,
        sample_rate_hz: int,
    ) -> PlaybackResult:
        await self._sink.flush_silence(
            self._tuning.flush_silence_frames,
            run_id=handle.run_id,
            sample_rate_hz=sample_rate_hz or AUDIO_SAMPLE_RATE_HZ,
        )

        cancelled_at_ns = handle.token.cancelled_at_ns
        if cancelled_at_ns is not None:
            record_metric(
                "barge_in_to_silence_ms",
                (time.monotonic_ns() - cancelled_at_ns) / 1_000_000,
                identity=self._identity,
                details={"run_id": handle.run_id},
            )

        log_event({
            "event_type": "PLAYBACK_CANCELLED",
            "identity": self._identity,
            "run_id": handle.run_id,
            "reason": handle.token.reason,
            "chunks_spoken": spoken,
            "sub_frames": emitted,
        })
        return PlaybackResult(
            completed=False,
            text=handle.text,
            chunks_total=total,
            chunks_spoken=spoken,
            chunks_failed=failed,
            sub_frames_emitted=emitted,
        )

    def _log_chunk_failed(self, handle: ActiveSynthesisHandle, index: int, reason: str) -> None:
        log_event({
            "event_type": "TTS_CHUNK_FAILED",
            "identity": self._identity,
            "run_id": handle.run_id,
            "chunk_index": index,
            "reason": reason,
        })
