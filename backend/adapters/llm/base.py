"""
Reply-generation adapter contract.

Purpose:
- Define the interface for generating one complete spoken reply.
- Keep orchestration, retries, timing and cancellation semantics OUT of
  the adapter.

Rules:
- This file contains NO provider logic.
- No retries.
- No chunking.
- No knowledge of TTS, transport, or the turn state machine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from constants import DEFAULT_LANGUAGE, DEFAULT_LANGUAGE_NAME


class ReplyGenerationError(RuntimeError):
    """Provider failure, timeout, or an unusable (empty) reply."""


@dataclass(frozen=True)
class ReplyRequest:
    """
    Everything reply generation gets for one turn.

    recent_turns:
        Rolling conversation window, oldest first, role/content dicts.
    memories:
        Retrieved long-term memory snippets (may be empty).
    interrupted_text:
        Full text the agent was speaking when last interrupted, or None.
    """
    identity: str
    transcript: str
    recent_turns: Sequence[Mapping[str, str]] = field(default_factory=tuple)
    memories: Sequence[str] = field(default_factory=tuple)
    interrupted_text: str | None = None
    language: str = DEFAULT_LANGUAGE
    language_name: str = DEFAULT_LANGUAGE_NAME


class ReplyGenerator(ABC):
    """
    Abstract base class for reply generators.

    The adapter is a *dumb pipe*:
    request -> vendor -> reply text.

    Orchestrator responsibilities (NOT here):
    - When to call
    - Retry policy (there is none: failure yields a fallback utterance)
    - What to do with the reply
    """

    @abstractmethod
    async def generate(self, request: ReplyRequest) -> str:
        """
        Generate one complete reply.

        Contract:
        - Returns non-empty reply text.
        - Raises ReplyGenerationError (or lets provider errors propagate);
          the caller treats any exception as a failed generation.
        - Must NOT retry internally.
        - Must NOT block the event loop.
        """
        raise NotImplementedError
