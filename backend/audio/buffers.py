"""
Session-owned sample buffers.

RecordingBuffer:
    Accumulates inbound samples while a participant is speaking.
    Amortized growth (capacity doubling), so appending N frames is O(N)
    rather than the O(N^2) of repeated concatenation.

InterruptCaptureBuffer:
    Pre-sized ring buffer that records inbound audio while the agent is
    speaking. When full, the oldest samples are overwritten. On a confirmed
    barge-in its contents seed the next RecordingBuffer so the words spoken
    over the agent are not lost.

Both hold int16 mono samples and are mutated only by their session's task.
"""

from __future__ import annotations

import numpy as np

from constants import ms_to_samples, samples_to_ms

_INITIAL_CAPACITY_SAMPLES = 16_000


class RecordingBuffer:
    """Growable int16 sample buffer for one utterance."""

    def __init__(self, *, sample_rate_hz: int, initial_capacity: int = _INITIAL_CAPACITY_SAMPLES) -> None:
        if sample_rate_hz <= 0:
            raise ValueError("sample_rate_hz must be > 0")
        self._sample_rate_hz = sample_rate_hz
        self._data = np.zeros(max(1, initial_capacity), dtype=np.int16)
        self._size = 0

    # -------------------------
    # Core operations
    # -------------------------

    def append(self, samples: np.ndarray) -> None:
        """Append int16 samples, growing capacity geometrically when needed."""
        n = int(samples.shape[0])
        if n == 0:
            return
        needed = self._size + n
        if needed > self._data.shape[0]:
            capacity = self._data.shape[0]
            while capacity < needed:
                capacity *= 2
            grown = np.zeros(capacity, dtype=np.int16)
            grown[: self._size] = self._data[: self._size]
            self._data = grown
        self._data[self._size:needed] = samples
        self._size = needed

    def drain(self) -> np.ndarray:
        """Return a copy of the buffered samples and clear the buffer."""
        out = self._data[: self._size].copy()
        self.clear()
        return out

    def clear(self) -> None:
        """Drop all buffered samples (capacity is kept)."""
        self._size = 0

    # -------------------------
    # Introspection helpers
    # -------------------------

    def __len__(self) -> int:
        return self._size

    def is_empty(self) -> bool:
        """Check if the buffer holds no samples."""
        return self._size == 0

    @property
    def sample_rate_hz(self) -> int:
        return self._sample_rate_hz

    def duration_ms(self) -> float:
        """Buffered audio duration in milliseconds."""
        return samples_to_ms(self._size, self._sample_rate_hz)


class InterruptCaptureBuffer:
    """Fixed-capacity int16 ring buffer, overwritten oldest-first."""

    def __init__(self, *, sample_rate_hz: int, max_seconds: float) -> None:
        if sample_rate_hz <= 0:
            raise ValueError("sample_rate_hz must be > 0")
        if max_seconds <= 0:
            raise ValueError("max_seconds must be > 0")
        self._sample_rate_hz = sample_rate_hz
        self._capacity = max(1, ms_to_samples(max_seconds * 1000, sample_rate_hz))
        self._data = np.zeros(self._capacity, dtype=np.int16)
        self._write = 0
        self._size = 0
        self.overwritten = 0

    def append(self, samples: np.ndarray) -> None:
        """Record samples, overwriting the oldest when the ring is full."""
        n = int(samples.shape[0])
        if n == 0:
            return

        if n >= self._capacity:
            # Only the newest `capacity` samples can survive
            self.overwritten += self._size + (n - self._capacity)
            self._data[:] = samples[-self._capacity:]
            self._write = 0
            self._size = self._capacity
            return

        overflow = self._size + n - self._capacity
        if overflow > 0:
            self.overwritten += overflow

        end = self._write + n
        if end <= self._capacity:
            self._data[self._write:end] = samples
        else:
            first = self._capacity - self._write
            self._data[self._write:] = samples[:first]
            self._data[: n - first] = samples[first:]
        self._write = end % self._capacity
        self._size = min(self._capacity, self._size + n)

    def snapshot(self) -> np.ndarray:
        """Chronologically ordered copy of the captured samples."""
        start = (self._write - self._size) % self._capacity
        if start + self._size <= self._capacity:
            return self._data[start:start + self._size].copy()
        return np.concatenate((self._data[start:], self._data[:start]))[: self._size]

    def take(self) -> np.ndarray:
        """Return the captured samples in order and clear the ring."""
        out = self.snapshot()
        self.clear()
        return out

    def clear(self) -> None:
        """Discard all captured audio."""
        self._write = 0
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def is_empty(self) -> bool:
        """Check if nothing has been captured."""
        return self._size == 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def duration_ms(self) -> float:
        """Captured audio duration in milliseconds."""
        return samples_to_ms(self._size, self._sample_rate_hz)
