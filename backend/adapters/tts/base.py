"""
TTS adapter contract.

This module defines the *interface only*: no chunking policy, no frame
splitting, no retries, timers, or orchestration decisions live here.

Key invariants:
- Chunking is orchestrator-owned and deterministic. Synthesizers receive
  pre-chunked text and must not implement independent chunking logic.
- Cancellation is explicit: every call receives the active synthesis
  handle's CancellationToken and must stop producing output as quickly as
  possible once it fires.
- Cancellation is a normal result (SynthesisOutcome.CANCELLED), not an
  exception.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from constants import AUDIO_SAMPLE_RATE_HZ

if TYPE_CHECKING:
    from orchestrator.cancellation import CancellationToken


class SynthesisOutcome(str, Enum):
    AUDIO = "AUDIO"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class SynthesisResult:
    """
    Terminal result of synthesizing one text chunk.

    pcm_bytes:
        PCM16 mono at sample_rate_hz (AUDIO only; empty otherwise).
    reason:
        Provider error description (FAILED only).
    status_code:
        HTTP status of the provider error, when it carried one (FAILED only).
    """
    outcome: SynthesisOutcome
    pcm_bytes: bytes = b""
    sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ
    reason: str | None = None
    status_code: int | None = None

    @classmethod
    def audio(cls, pcm_bytes: bytes, sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ) -> SynthesisResult:
        return cls(SynthesisOutcome.AUDIO, pcm_bytes=pcm_bytes, sample_rate_hz=sample_rate_hz)

    @classmethod
    def cancelled(cls) -> SynthesisResult:
        return cls(SynthesisOutcome.CANCELLED)

    @classmethod
    def failed(cls, reason: str, status_code: int | None = None) -> SynthesisResult:
        return cls(SynthesisOutcome.FAILED, reason=reason, status_code=status_code)


def provider_status_code(exc: BaseException) -> int | None:
    """HTTP status attached to a provider SDK exception, if any."""
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    return None


class SpeechSynthesizer(ABC):
    """
    Abstract interface for a chunked (non-streaming) speech synthesizer.

    Implementations are responsible for:
    - Calling the provider for exactly one pre-chunked text segment
    - Converting the response to PCM16 mono
    - Observing the cancellation token while waiting on the provider

    Non-responsibilities:
    - No chunking policy decisions (text is pre-chunked by the orchestrator)
    - No sub-frame splitting (the playback pipeline does that)
    - No state machine logic
    - No direct interaction with the transport
    """

    @abstractmethod
    async def synthesize(
        self,
        *,
        text: str,
        voice: str,
        token: CancellationToken,
    ) -> SynthesisResult:
        """
        Synthesize a single pre-chunked text segment.

        Contract:
        - Returns exactly one terminal SynthesisResult.
        - Returns CANCELLED (never raises) when the token fires first.
        - Returns FAILED for provider errors it can classify; unexpected
          exceptions may propagate and are treated as FAILED upstream.
        - MUST NOT retry internally. Routing to another provider is the job
          of FallbackSynthesizer.
        """
        raise NotImplementedError
