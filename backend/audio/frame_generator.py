"""
PCM frame splitting utilities (pure).

Purpose:
- Cut a synthesized PCM blob into small playback sub-frames (a few ms each)
  so the playback pipeline can check for barge-in between emissions.
- Build silence frames used to flush downstream jitter buffers after a
  barge-in.

Invariants:
- PCM16 signed, little-endian, mono
- Sub-frame size derived from sample rate and duration

Design:
- Pure functions only (no queues, no timing, no IO).
- The trailing partial sub-frame is KEPT (short last emission), unlike
  fixed-size transport framing: dropping it would clip the end of speech.
"""

from __future__ import annotations

from constants import AUDIO_SAMPLE_WIDTH_BYTES, AUDIO_CHANNELS


def sub_frame_bytes(
    *,
    sample_rate_hz: int,
    sub_frame_ms: int,
    channels: int = AUDIO_CHANNELS,
    sample_width_bytes: int = AUDIO_SAMPLE_WIDTH_BYTES,
) -> int:
    """
    Bytes in one sub-frame of the given duration.

    Raises:
        ValueError if parameters are invalid or the sub-frame would be empty.
    """
    if sample_rate_hz <= 0:
        raise ValueError("sample_rate_hz must be > 0")
    if sub_frame_ms <= 0:
        raise ValueError("sub_frame_ms must be > 0")
    if channels <= 0:
        raise ValueError("channels must be > 0")
    if sample_width_bytes <= 0:
        raise ValueError("sample_width_bytes must be > 0")

    samples = (sample_rate_hz * sub_frame_ms) // 1000
    size = samples * channels * sample_width_bytes
    if size <= 0:
        raise ValueError("sub-frame must contain at least one sample")
    return size


def split_pcm_into_sub_frames(
    pcm_bytes: bytes,
    *,
    sample_rate_hz: int,
    sub_frame_ms: int,
    channels: int = AUDIO_CHANNELS,
) -> list[bytes]:
    """
    Split raw PCM16 bytes into sub-frames of `sub_frame_ms` each.

    Returns:
        Ordered list of byte strings. All but the last are exactly one
        sub-frame long; the last may be shorter. A dangling odd byte
        (half a sample) is dropped.

    Notes:
        This function does NOT:
        - validate WAV headers (input must already be raw PCM)
        - resample audio
        - pad trailing audio
    """
    size = sub_frame_bytes(
        sample_rate_hz=sample_rate_hz,
        sub_frame_ms=sub_frame_ms,
        channels=channels,
    )

    usable = len(pcm_bytes) - (len(pcm_bytes) % AUDIO_SAMPLE_WIDTH_BYTES)
    if usable <= 0:
        return []

    return [pcm_bytes[offset : min(offset + size, usable)] for offset in range(0, usable, size)]


def silence_pcm(
    *,
    sample_rate_hz: int,
    duration_ms: int,
    channels: int = AUDIO_CHANNELS,
) -> bytes:
    """Zero-valued PCM16 bytes of the requested duration."""
    if duration_ms <= 0:
        return b""
    samples = (sample_rate_hz * duration_ms) // 1000
    return b"\x00" * (samples * channels * AUDIO_SAMPLE_WIDTH_BYTES)
