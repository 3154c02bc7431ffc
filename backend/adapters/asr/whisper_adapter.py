# pyright: reportUnknownVariableType=false
# pyright: reportUnknownMemberType=false
# pyright: reportUnknownArgumentType=false
"""
faster-whisper transcription adapter.

This module is deliberately "dumb":
- Accepts one complete utterance of int16 samples
- Converts to Whisper input format (float32, 16kHz)
- Runs transcription off the event loop
- Returns text

Must NOT:
- Perform endpointing / silence detection
- Know about turn state
- Manage timers beyond the optional call timeout

Determinism note:
- Whisper is not bitwise-deterministic across executions.
  The engine guarantees behavioral determinism (ordering, gating,
  cancellation), not identical transcripts across runs.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import numpy as np

from adapters.asr.base import Transcriber, TranscriptionError
from audio.pcm import int16_to_float32, resample_linear
from observability.logger import log_event

WHISPER_SAMPLE_RATE_HZ = 16_000


@dataclass(frozen=True)
class WhisperSegment:
    """
    One timestamped segment of recognized speech.

    Times are in milliseconds relative to the start of the utterance.
    """
    start_ms: int
    end_ms: int
    text: str


class WhisperTranscriber(Transcriber):
    """
    faster-whisper backed Transcriber.

    Assumptions:
    - Input is int16 mono (caller guarantees)
    - Inference is blocking (100-500ms typical for the base model), so it
      runs in a worker thread
    """

    def __init__(
        self,
        *,
        model: str = "base",
        device: str | None = None,
        compute_type: str | None = None,
        timeout_s: float | None = 15.0,
        backend: Any = None,
    ) -> None:
        """
        Args:
            backend:
                Pre-built model object exposing faster-whisper's
                `transcribe(audio, **kwargs) -> (segments, info)`. When None,
                a `faster_whisper.WhisperModel` is loaded.
        """
        self._timeout_s = timeout_s

        if backend is not None:
            self._backend = backend
            return

        from faster_whisper import WhisperModel  # type: ignore pylint: disable=import-outside-toplevel

        kwargs: dict[str, Any] = {}
        if device is not None:
            kwargs["device"] = device
        if compute_type is not None:
            kwargs["compute_type"] = compute_type
        self._backend = WhisperModel(model, **kwargs)

    async def transcribe(
        self,
        samples: np.ndarray,
        *,
        sample_rate_hz: int,
        language: str | None = None,
    ) -> str:
        if samples.size == 0:
            return ""

        audio = resample_linear(int16_to_float32(samples), sample_rate_hz, WHISPER_SAMPLE_RATE_HZ)

        try:
            call = asyncio.to_thread(self._transcribe_sync, audio, language)
            if self._timeout_s is None:
                segments = await call
            else:
                segments = await asyncio.wait_for(call, timeout=self._timeout_s)
        except asyncio.TimeoutError as exc:
            raise TranscriptionError(f"timeout after {self._timeout_s}s") from exc
        except Exception as exc:
            raise TranscriptionError(f"Whisper transcription failed: {exc!r}") from exc

        text = " ".join(s.text for s in segments if s.text).strip()
        log_event({
            "event_type": "ASR_RESULT",
            "language": language,
            "audio_ms": int(audio.shape[0] * 1000 / WHISPER_SAMPLE_RATE_HZ),
            "segments": len(segments),
            "chars": len(text),
        })
        return text

    # -------------------------------------------------------------------------
    # Backend call (worker thread)
    # -------------------------------------------------------------------------

    def _transcribe_sync(self, audio: np.ndarray, language: str | None) -> list[WhisperSegment]:
        segments_iter, _info = self._backend.transcribe(
            audio,
            language=language,
            beam_size=1,
            temperature=0.0,
            vad_filter=False,  # endpointing is NOT this module's job
        )

        segments: list[WhisperSegment] = []
        for seg in segments_iter:
            seg_text = str(getattr(seg, "text", "")).strip()
            segments.append(
                WhisperSegment(
                    start_ms=int(seg.start * 1000),
                    end_ms=int(seg.end * 1000),
                    text=seg_text,
                )
            )
        return segments
