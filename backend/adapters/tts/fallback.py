"""
Primary/secondary synthesizer routing.

FallbackSynthesizer wraps two SpeechSynthesizers:

- Every chunk goes to the primary first.
- A FAILED result (or an exception) from the primary sends the same chunk
  to the secondary, unless the token has fired in the meantime.
- CANCELLED is returned as-is; the secondary is never tried for it.
- An auth or quota failure (401/403/429 by default) switches to the
  secondary for the rest of the process lifetime.

The switch is process-wide: one FallbackSynthesizer is shared by every
session.
"""
from __future__ import annotations

from typing import Collection

from adapters.tts.base import SpeechSynthesizer, SynthesisOutcome, SynthesisResult, provider_status_code
from observability.logger import log_event
from orchestrator.cancellation import CancellationToken

STICKY_STATUS_CODES = frozenset({401, 403, 429})


class FallbackSynthesizer(SpeechSynthesizer):

    def __init__(
        self,
        *,
        primary: SpeechSynthesizer,
        secondary: SpeechSynthesizer,
        primary_name: str = "primary",
        secondary_name: str = "secondary",
        sticky_status_codes: Collection[int] = STICKY_STATUS_CODES,
    ) -> None:
        self._primary = primary
        self._secondary = secondary
        self._primary_name = primary_name
        self._secondary_name = secondary_name
        self._sticky_status_codes = frozenset(sticky_status_codes)
        self._primary_disabled = False

    @property
    def primary_disabled(self) -> bool:
        return self._primary_disabled

    async def synthesize(
        self,
        *,
        text: str,
        voice: str,
        token: CancellationToken,
    ) -> SynthesisResult:
        if self._primary_disabled:
            return await self._secondary.synthesize(text=text, voice=voice, token=token)

        try:
            result = await self._primary.synthesize(text=text, voice=voice, token=token)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            result = SynthesisResult.failed(f"{type(exc).__name__}: {exc}", provider_status_code(exc))

        if result.outcome is not SynthesisOutcome.FAILED:
            return result
        if token.cancelled:
            return SynthesisResult.cancelled()

        if result.status_code in self._sticky_status_codes:
            self._primary_disabled = True
            log_event({
                "event_type": "TTS_PRIMARY_DISABLED",
                "provider": self._primary_name,
                "fallback": self._secondary_name,
                "status_code": result.status_code,
            })

        log_event({
            "event_type": "TTS_FALLBACK",
            "provider": self._primary_name,
            "fallback": self._secondary_name,
            "chars": len(text),
            "status_code": result.status_code,
            "reason": result.reason,
        })
        return await self._secondary.synthesize(text=text, voice=voice, token=token)
