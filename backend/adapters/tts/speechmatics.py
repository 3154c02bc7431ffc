"""
Speechmatics TTS adapter.

Implements a chunked, non-streaming speech synthesizer on top of the
Speechmatics async TTS API.

Role in the system:
- Receives *pre-chunked* text segments from the playback pipeline.
- Performs one TTS synthesis call per chunk.
- Requests provider output as raw PCM16 16kHz mono.
- Returns exactly one SynthesisResult per chunk.

Architectural constraints:
- Chunking policy is orchestrator-owned and deterministic.
- Sub-frame splitting is NOT handled here.
- No retries, timers, or backpressure logic live in this adapter.
- No state machine transitions or orchestration decisions.

Cancellation:
- The whole provider call is raced against the token (run_cancellable),
  so a stalled request is abandoned the moment barge-in fires.
- The token is also checked between provider response chunks.
- A cancelled call returns SynthesisResult.cancelled(), never raises.
"""
from __future__ import annotations

from speechmatics.tts import AsyncClient, OutputFormat, Voice # pyright: ignore[reportMissingTypeStubs] # pylint: disable=no-name-in-module, import-error

from adapters.tts.base import SpeechSynthesizer, SynthesisResult, provider_status_code
from constants import AUDIO_SAMPLE_RATE_HZ, PROVIDER_CHUNK_SIZE
from observability.logger import log_event
from orchestrator.cancellation import CancellationToken, run_cancellable


class SpeechmaticsSynthesizer(SpeechSynthesizer):
    """
    Speechmatics chunked (non-streaming) synthesizer.

    One provider request per call; nothing is shared between calls except
    the API key.
    """

    _VOICE_MAP: dict[str, Voice] = {
        "sarah": Voice.SARAH,
        "theo": Voice.THEO,
        "megan": Voice.MEGAN,
    }

    def __init__(self, *, api_key: str) -> None:
        self._api_key = api_key

    # ------------------------------------------------------------------
    # Public API (SpeechSynthesizer contract)
    # ------------------------------------------------------------------

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
                "provider": "speechmatics",
                "chars": len(text),
                "status_code": status_code,
                "reason": f"{type(exc).__name__}: {exc}",
            })
            return SynthesisResult.failed(f"{type(exc).__name__}: {exc}", status_code)

        if cancelled or token.cancelled or pcm is None:
            return SynthesisResult.cancelled()
        if not pcm:
            return SynthesisResult.failed("provider returned no audio")
        return SynthesisResult.audio(pcm, AUDIO_SAMPLE_RATE_HZ)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _fetch_pcm(self, *, text: str, voice: Voice, token: CancellationToken) -> bytes | None:
        """
        Download the full PCM blob for one chunk.

        Returns None if the token fired mid-download.
        """
        parts: list[bytes] = []
        async with AsyncClient(api_key=self._api_key) as client:
            async with await client.generate(
                text=text,
                voice=voice,
                output_format=OutputFormat.RAW_PCM_16000,
            ) as response:
                async for chunk in response.content.iter_chunked(PROVIDER_CHUNK_SIZE):
                    if token.cancelled:
                        return None
                    parts.append(chunk)

        data = b"".join(parts)
        if len(data) % 2 == 1:
            data = data[:-1]
        return data

    @classmethod
    def _resolve_voice(cls, voice: str) -> Voice:
        """
        Convert user-facing voice string to Speechmatics Voice enum.

        Defaults to SARAH if unknown.
        """
        return cls._VOICE_MAP.get(voice.lower(), Voice.SARAH)
