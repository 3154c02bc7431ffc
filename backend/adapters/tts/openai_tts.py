"""
OpenAI TTS adapter.

Chunked, non-streaming synthesizer on the OpenAI audio speech endpoint.
Used as the secondary provider behind FallbackSynthesizer.

- Requests raw PCM (24kHz PCM16 mono) and resamples it to the session
  rate, so the transport never sees a second sample rate.
- Provider errors become SynthesisResult.failed() with the HTTP status
  when the SDK reports one.
- The call is raced against the cancellation token like the primary.
"""
from __future__ import annotations

import numpy as np
from openai import AsyncOpenAI

from adapters.tts.base import SpeechSynthesizer, SynthesisResult, provider_status_code
from audio.pcm import float32_to_int16, int16_to_float32, resample_linear
from constants import AUDIO_SAMPLE_RATE_HZ, PROVIDER_CHUNK_SIZE
from observability.logger import log_event
from orchestrator.cancellation import CancellationToken, run_cancellable

OPENAI_PCM_SAMPLE_RATE_HZ = 24000


class OpenAISynthesizer(SpeechSynthesizer):
    """Secondary synthesizer; unknown voice names map to `default_voice`."""

    _VOICES = frozenset({
        "alloy", "ash", "ballad", "coral", "echo", "fable",
        "nova", "onyx", "sage", "shimmer",
    })

    def __init__(
        self,
        *,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini-tts",
        default_voice: str = "alloy",
        output_rate_hz: int = AUDIO_SAMPLE_RATE_HZ,
    ) -> None:
        self._client = client
        self._model = model
        self._default_voice = default_voice
        self._output_rate_hz = output_rate_hz

    async def synthesize(
        self,
        *,
        text: str,
        voice: str,
        token: CancellationToken,
    ) -> SynthesisResult:
        if token.cancelled:
            return SynthesisResult.cancelled()

        try:
            cancelled, pcm = await run_cancellable(
                self._fetch_pcm(text=text, voice=self._resolve_voice(voice), token=token),
                token,
            )
        except Exception as exc:  # pylint: disable=broad-exception-caught
            if token.cancelled:
                return SynthesisResult.cancelled()
            status_code = provider_status_code(exc)
            log_event({
                "event_type": "TTS_PROVIDER_ERROR",
                "provider": "openai",
                "chars": len(text),
                "status_code": status_code,
                "reason": f"{type(exc).__name__}: {exc}",
            })
            return SynthesisResult.failed(f"{type(exc).__name__}: {exc}", status_code)

        if cancelled or token.cancelled or pcm is None:
            return SynthesisResult.cancelled()
        if not pcm:
            return SynthesisResult.failed("provider returned no audio")
        return SynthesisResult.audio(self._to_output_rate(pcm), self._output_rate_hz)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _fetch_pcm(self, *, text: str, voice: str, token: CancellationToken) -> bytes | None:
        parts: list[bytes] = []
        async with self._client.audio.speech.with_streaming_response.create(
            model=self._model,
            voice=voice,
            input=text,
            response_format="pcm",
        ) as response:
            async for chunk in response.iter_bytes(PROVIDER_CHUNK_SIZE):
                if token.cancelled:
                    return None
                parts.append(chunk)

        data = b"".join(parts)
        if len(data) % 2 == 1:
            data = data[:-1]
        return data

    def _to_output_rate(self, pcm: bytes) -> bytes:
        if self._output_rate_hz == OPENAI_PCM_SAMPLE_RATE_HZ:
            return pcm
        samples = np.frombuffer(pcm, dtype="<i2")
        resampled = resample_linear(
            int16_to_float32(samples), OPENAI_PCM_SAMPLE_RATE_HZ, self._output_rate_hz
        )
        return float32_to_int16(resampled).tobytes()

    def _resolve_voice(self, voice: str) -> str:
        name = voice.lower()
        return name if name in self._VOICES else self._default_voice
