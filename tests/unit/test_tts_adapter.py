# pylint: disable=missing-module-docstring,missing-function-docstring,protected-access

import pytest
from speechmatics.tts import Voice  # pylint: disable=no-name-in-module,import-error

from adapters.tts.base import SynthesisOutcome, SynthesisResult
from adapters.tts.speechmatics import SpeechmaticsSynthesizer
from orchestrator.cancellation import CancellationToken


def test_voice_resolution_defaults_to_sarah():
    assert SpeechmaticsSynthesizer._resolve_voice("Theo") is Voice.THEO
    assert SpeechmaticsSynthesizer._resolve_voice("megan") is Voice.MEGAN
    assert SpeechmaticsSynthesizer._resolve_voice("unknown") is Voice.SARAH


@pytest.mark.asyncio
async def test_cancelled_token_returns_cancelled_without_a_request():
    token = CancellationToken()
    token.cancel("barge_in")

    result = await SpeechmaticsSynthesizer(api_key="unused").synthesize(text="Hi.", voice="sarah", token=token)

    assert result.outcome is SynthesisOutcome.CANCELLED
    assert result.pcm_bytes == b""


def test_result_constructors():
    assert SynthesisResult.audio(b"\x00\x00", 24000).sample_rate_hz == 24000
    failed = SynthesisResult.failed("quota")
    assert failed.outcome is SynthesisOutcome.FAILED
    assert failed.reason == "quota"
