"""
Interrupted-context tracking.

Single-entry-per-session store of "what the agent was saying when it was
last interrupted". Written by the turn engine on barge-in, consumed
(read-and-cleared) by the next reply-generation request.

Sessions share one tracker; entries are partitioned by participant
identity. All methods are synchronous, so each is atomic with respect
to the event loop.
"""

from __future__ import annotations

from observability.logger import log_event


class InterruptContextTracker:
    """At most one interrupted reply per identity."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def set(self, identity: str, text: str) -> None:
        """Store the interrupted reply, overwriting any previous entry."""
        replaced = identity in self._entries
        self._entries[identity] = text
        log_event({
            "event_type": "INTERRUPT_CONTEXT_SET",
            "identity": identity,
            "chars": len(text),
            "replaced": replaced,
        })

    def take_and_clear(self, identity: str) -> str | None:
        """Return the stored text (or None) and remove it."""
        return self._entries.pop(identity, None)

    def peek(self, identity: str) -> str | None:
        """Read without consuming. Observability and tests only."""
        return self._entries.get(identity)

    def discard(self, identity: str) -> None:
        """Drop any entry for a departing participant."""
        self._entries.pop(identity, None)

    def __contains__(self, identity: object) -> bool:
        return identity in self._entries

    def __len__(self) -> int:
        return len(self._entries)
