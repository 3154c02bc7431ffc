"""
Conversation context management.

Responsibilities:
- Store ordered user/agent turns for one participant
- Enforce truncation rules:
  - Max 10 turns OR max 6,000 characters (whichever is hit first)
  - Drop oldest turns until constraints are satisfied
  - Allow a single oversized turn (with warning)
- Provide a serializable representation for reply generation

Non-responsibilities:
- No prompt formatting
- No orchestration decisions
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from constants import MAX_CONTEXT_CHARS, MAX_CONTEXT_TURNS
from observability.logger import log_event


Role = Literal["user", "assistant"]


@dataclass(frozen=True)
class Turn:
    """Single conversation turn."""
    role: Role
    text: str
    turn_id: int


class ConversationContext:
    """
    Rolling window of recent turns.

    Invariants:
    - Turns are stored in chronological order
    - turn_id is monotonic
    """

    def __init__(
        self,
        identity: str | None = None,
        *,
        max_turns: int = MAX_CONTEXT_TURNS,
        max_chars: int = MAX_CONTEXT_CHARS,
    ) -> None:
        self._identity = identity
        self._max_turns = max_turns
        self._max_chars = max_chars
        self._turns: list[Turn] = []
        self._next_turn_id = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add_user_turn(self, text: str) -> None:
        """Add a user turn and enforce truncation rules."""
        self._append("user", text)

    def add_assistant_turn(self, text: str) -> None:
        """Add an agent turn and enforce truncation rules."""
        self._append("assistant", text)

    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def serialize(self) -> list[dict[str, str]]:
        """
        Serialize turns into a role/content structure.

        Output format:
        [
          {"role": "user", "content": "..."},
          {"role": "assistant", "content": "..."},
        ]
        """
        return [
            {"role": t.role, "content": t.text}
            for t in self._turns
        ]

    def clear(self) -> None:
        self._turns.clear()

    def __len__(self) -> int:
        return len(self._turns)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _append(self, role: Role, text: str) -> None:
        self._turns.append(Turn(role=role, text=text, turn_id=self._next_turn_id))
        self._next_turn_id += 1
        self._truncate()

    def _truncate(self) -> None:
        while self._violates_limits():
            # If only one turn remains, allow it even if oversized
            if len(self._turns) == 1:
                log_event({
                    "event_type": "context_single_turn_oversized",
                    "identity": self._identity,
                    "turn_id": self._turns[0].turn_id,
                    "char_count": len(self._turns[0].text),
                })
                break

            dropped = self._turns.pop(0)
            log_event({
                "event_type": "context_turn_dropped",
                "identity": self._identity,
                "turn_id": dropped.turn_id,
                "role": dropped.role,
                "char_count": len(dropped.text),
            })

    def _violates_limits(self) -> bool:
        if len(self._turns) > self._max_turns:
            return True

        total_chars = sum(len(t.text) for t in self._turns)
        return total_chars > self._max_chars
