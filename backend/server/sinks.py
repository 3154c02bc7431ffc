"""
WebSocket-backed collaborator sinks.

- WebSocketAudioSink: outbound speech as binary frames
  (u32 seq + u32 run_id + PCM16), paced to at most `max_lead_ms` ahead of
  real time, with playout tracking for wait_for_playout()
- WebSocketTranscriptSink: transcript events as JSON text frames

On a cancelled playback the audio sink first tells the client to drop
anything buffered for that run (AUDIO_STOP), then sends the silence frames.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any

from fastapi import WebSocket

from audio.frame_generator import silence_pcm
from audio.frames import AudioFrame
from constants import AUDIO_FRAME_MS, SEQ_NUM_MAX, SEQ_NUM_START
from orchestrator.protocols import TranscriptRole
from protocol.binary import encode_s2c_frame

PLAYBACK_MAX_LEAD_MS = 300


class WebSocketAudioSink:
    """Per-connection outbound audio track."""

    def __init__(
        self,
        ws: WebSocket,
        *,
        max_lead_ms: float = PLAYBACK_MAX_LEAD_MS,
        clock: Any = time.monotonic,
    ) -> None:
        self._ws = ws
        self._max_lead_s = max_lead_ms / 1000
        self._clock = clock
        self._seq = SEQ_NUM_START
        self._playout_deadline = 0.0

    async def emit(self, frame: AudioFrame) -> None:
        await self._send(frame.run_id, frame.pcm_bytes, frame.duration_ms)

        lead = self._playout_deadline - self._clock()
        if lead > self._max_lead_s:
            await asyncio.sleep(lead - self._max_lead_s)

    async def flush_silence(self, num_frames: int, *, run_id: int, sample_rate_hz: int) -> None:
        await self._ws.send_text(json.dumps({"type": "AUDIO_STOP", "run_id": run_id}))
        # Client drops what it had buffered, so playout restarts from now
        self._playout_deadline = self._clock()

        pcm = silence_pcm(sample_rate_hz=sample_rate_hz, duration_ms=AUDIO_FRAME_MS)
        if not pcm:
            return
        for _ in range(num_frames):
            await self._send(run_id, pcm, AUDIO_FRAME_MS)

    async def wait_for_playout(self) -> None:
        remaining = self._playout_deadline - self._clock()
        if remaining > 0:
            await asyncio.sleep(remaining)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _send(self, run_id: int, pcm_bytes: bytes, duration_ms: float) -> None:
        await self._ws.send_bytes(
            encode_s2c_frame(sequence_num=self._seq, run_id=run_id, pcm_bytes=pcm_bytes)
        )
        self._seq = SEQ_NUM_START if self._seq == SEQ_NUM_MAX else self._seq + 1
        self._playout_deadline = max(self._playout_deadline, self._clock()) + duration_ms / 1000


class WebSocketTranscriptSink:
    """Publishes "user said X" / "agent said Y" to the client UI."""

    def __init__(self, ws: WebSocket) -> None:
        self._ws = ws

    async def publish(self, identity: str, role: TranscriptRole, text: str) -> None:
        await self._ws.send_text(json.dumps({
            "type": "transcript",
            "identity": identity,
            "role": role,
            "text": text,
        }, ensure_ascii=False))
