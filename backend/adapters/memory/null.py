"""No-op long-term memory (default when no memory backend is configured)."""

from __future__ import annotations

from typing import Sequence

from orchestrator.protocols import TranscriptRole


class NullMemory:
    """MemoryProvider that remembers nothing."""

    async def search(self, identity: str, text: str, limit: int) -> Sequence[str]:
        return ()

    async def record(self, identity: str, role: TranscriptRole, text: str) -> None:
        return None
