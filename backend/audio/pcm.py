"""PCM conversion utilities."""
import numpy as np

from constants import PCM16_FULL_SCALE


def int16_to_float32(samples: np.ndarray) -> np.ndarray:
    """
    Convert int16 samples to float32 in [-1.0, 1.0).

    No resampling. No channel mixing.
    """
    return samples.astype(np.float32) / PCM16_FULL_SCALE


def resample_linear(audio_f32: np.ndarray, src_rate_hz: int, dst_rate_hz: int) -> np.ndarray:
    """
    Linear-interpolation resampler.

    Good enough for speech recognition input and for bringing a fallback
    provider's audio to the session rate; not a high-fidelity resampler.
    """
    if src_rate_hz == dst_rate_hz or audio_f32.size == 0:
        return audio_f32
    if src_rate_hz <= 0 or dst_rate_hz <= 0:
        raise ValueError("sample rates must be > 0")

    duration_s = audio_f32.shape[0] / src_rate_hz
    n_out = max(1, int(round(duration_s * dst_rate_hz)))
    src_t = np.arange(audio_f32.shape[0], dtype=np.float64) / src_rate_hz
    dst_t = np.arange(n_out, dtype=np.float64) / dst_rate_hz
    return np.interp(dst_t, src_t, audio_f32).astype(np.float32)


def float32_to_int16(audio_f32: np.ndarray) -> np.ndarray:
    """Convert float32 samples in [-1.0, 1.0] back to int16, clipping."""
    scaled = np.clip(audio_f32, -1.0, 1.0) * (PCM16_FULL_SCALE - 1)
    return np.round(scaled).astype("<i2")
