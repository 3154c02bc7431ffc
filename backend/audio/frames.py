"""
Audio frame primitives.

Pure data containers only.
No queues, no timing logic.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from constants import (
    AUDIO_CHANNELS,
    AUDIO_SAMPLE_RATE_HZ,
    AUDIO_SAMPLE_WIDTH_BYTES,
)


@dataclass(frozen=True)
class AudioFrame:
    """
    Canonical audio frame used for both directions of the pipeline.

    pcm_bytes:
        Raw PCM16 little-endian signed samples. Immutable once delivered.

    sample_rate_hz / channels:
        Format of pcm_bytes. Inbound frames are 16kHz mono; outbound
        frames carry whatever rate the synthesizer produced.

    sequence_num:
        Monotonic sequence number provided by the sender (client or playback).
        Used for gap detection and debugging only.

    ts_ms:
        Wall-clock timestamp (milliseconds) when the frame was received
        or produced. Observability only, never control logic.

    run_id:
        0 = inbound (participant → engine), >0 = synthesis run that
        produced an outbound frame.
    """
    pcm_bytes: bytes
    sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ
    channels: int = AUDIO_CHANNELS
    sequence_num: int = 0
    ts_ms: int = 0
    run_id: int = 0

    @property
    def samples_per_frame(self) -> int:
        """Samples per channel carried by this frame."""
        return len(self.pcm_bytes) // (AUDIO_SAMPLE_WIDTH_BYTES * self.channels)

    @property
    def duration_ms(self) -> float:
        """Audio duration of this frame in milliseconds."""
        if self.sample_rate_hz <= 0:
            return 0.0
        return self.samples_per_frame * 1000.0 / self.sample_rate_hz

    @property
    def samples(self) -> np.ndarray:
        """Read-only int16 view over pcm_bytes (interleaved if multichannel)."""
        usable = len(self.pcm_bytes) - (len(self.pcm_bytes) % AUDIO_SAMPLE_WIDTH_BYTES)
        return np.frombuffer(self.pcm_bytes[:usable], dtype="<i2")
