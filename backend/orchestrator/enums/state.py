"""
Authoritative turn state enumeration.

Rules:
- This enum defines ONLY the per-session turn states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in orchestrator.turns.
"""

from __future__ import annotations

from enum import Enum


class TurnState(str, Enum):
    """
    Whose turn it is for a single participant session.

    Exactly one state holds at a time:

        IDLE -> LISTENING -> RECORDING -> PROCESSING -> SPEAKING
                    ^             ^                         |
                    |             +---- barge-in -----------+
                    +--------------- playback completed ----+
    """

    IDLE = "IDLE"
    LISTENING = "LISTENING"
    RECORDING = "RECORDING"
    PROCESSING = "PROCESSING"
    SPEAKING = "SPEAKING"
