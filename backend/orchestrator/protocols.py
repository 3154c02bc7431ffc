"""
Collaborator protocols consumed by the turn engine.

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation

Provider contracts with behavior attached (transcription, reply
generation, speech synthesis) live in adapters/*/base.py as ABCs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from audio.frames import AudioFrame


TranscriptRole = Literal["user", "agent"]


# ---------------------------------------------------------------------
# Outbound audio
# ---------------------------------------------------------------------

@runtime_checkable
class AudioSink(Protocol):
    """
    Per-session outbound audio track.

    Contract:
    - Mutated only by that session's playback pipeline
    - emit() must not itself introduce multi-hundred-millisecond latency
    - flush_silence() is called exactly once per cancelled playback, after
      the last voice sub-frame
    """

    async def emit(self, frame: AudioFrame) -> None: ...

    async def flush_silence(self, num_frames: int, *, run_id: int, sample_rate_hz: int) -> None:
        """Push `num_frames` frames of silence to clear downstream jitter buffers."""

    async def wait_for_playout(self) -> None:
        """Return once everything emitted so far has been played out."""


# ---------------------------------------------------------------------
# Transcript / UI events
# ---------------------------------------------------------------------

@runtime_checkable
class TranscriptSink(Protocol):
    async def publish(self, identity: str, role: TranscriptRole, text: str) -> None: ...


# ---------------------------------------------------------------------
# Long-term memory
# ---------------------------------------------------------------------

@runtime_checkable
class MemoryProvider(Protocol):
    """
    Long-term memory collaborator.

    Embedding, vector search and archiving live behind this seam.
    Failures are allowed to raise; the engine logs them and carries on.
    """

    async def search(self, identity: str, text: str, limit: int) -> Sequence[str]: ...

    async def record(self, identity: str, role: TranscriptRole, text: str) -> None: ...
