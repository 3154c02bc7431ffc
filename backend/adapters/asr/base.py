"""
Transcription adapter contract.

This module defines the *interface only*: no buffering, endpointing,
retries, timers, or orchestration decisions live here.

Key invariants:
- The turn state machine owns endpointing (silence detection) and hands
  over one complete utterance per call.
- Silence-only or very short input returns "" rather than raising.
- The adapter never touches session state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np


class TranscriptionError(RuntimeError):
    """Raised when the transcription backend fails or times out."""


class Transcriber(ABC):
    """
    Abstract interface for utterance (non-streaming) transcription.

    Non-responsibilities:
    - No state machine logic (LISTENING/RECORDING/etc.)
    - No endpointing policy
    - No deduplication
    - No direct interaction with the transport
    """

    @abstractmethod
    async def transcribe(
        self,
        samples: np.ndarray,
        *,
        sample_rate_hz: int,
        language: str | None = None,
    ) -> str:
        """
        Transcribe one complete utterance.

        Args:
            samples: int16 mono samples.
            sample_rate_hz: Rate of `samples`.
            language: Language hint ("en", "hi", ...) or None for auto.

        Returns:
            Recognized text, stripped. "" for silence/no speech.

        Raises:
            TranscriptionError on backend failure.
        """
        raise NotImplementedError
