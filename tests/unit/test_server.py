# pylint: disable=missing-module-docstring,missing-function-docstring,protected-access

import json
from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

from adapters.tts.fallback import FallbackSynthesizer
from adapters.tts.speechmatics import SpeechmaticsSynthesizer
from audio.frames import AudioFrame
from config import AppConfig, VoiceTuning
from constants import SEQ_NUM_MAX
from protocol.binary import decode_s2c_frame
from server.app import build_gateway, build_llm_client, build_synthesizer, create_app
from server.sinks import WebSocketAudioSink, WebSocketTranscriptSink
from session.gateway import VoiceGateway
from session.registry import SessionRegistry

from fakes import FakeClock, FakeGenerator, FakeSynthesizer, FakeTranscriber


def app_config(**overrides) -> AppConfig:
    values = dict(
        env="test",
        log_level="INFO",
        whisper_model="base",
        whisper_device=None,
        whisper_compute_type=None,
        llm_provider="openai",
        llm_model="gpt-4o-mini",
        openai_api_key=None,
        groq_api_key=None,
        speechmatics_api_key=None,
        tts_fallback_provider="openai",
        openai_tts_model="gpt-4o-mini-tts",
        openai_tts_voice="alloy",
        default_language="en",
        default_language_name="English",
        default_voice="sarah",
        tuning=VoiceTuning(),
    )
    values.update(overrides)
    return AppConfig(**values)


def fake_gateway() -> VoiceGateway:
    return VoiceGateway(
        registry=SessionRegistry(),
        transcriber=FakeTranscriber(),
        generator=FakeGenerator(),
        synthesizer=FakeSynthesizer(),
    )


class FakeWebSocket:
    def __init__(self) -> None:
        self.sent: list[tuple[str, object]] = []

    async def send_bytes(self, data: bytes) -> None:
        self.sent.append(("bytes", data))

    async def send_text(self, data: str) -> None:
        self.sent.append(("text", data))


# ---------------------------------------------------------------------
# App / routes
# ---------------------------------------------------------------------

def test_health_reports_sessions(log_events):
    with TestClient(create_app(config=app_config(), gateway=fake_gateway())) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "sessions": 0}
    kinds = [e["event_type"] for e in log_events]
    assert "APP_STARTED" in kinds and "APP_STOPPED" in kinds


def test_websocket_join_sends_session_init():
    gateway = fake_gateway()
    metadata = quote(json.dumps({"voiceId": "theo"}))

    with TestClient(create_app(config=app_config(), gateway=gateway)) as client:
        with client.websocket_connect(f"/ws?identity=bob&metadata={metadata}") as ws:
            init = ws.receive_json()

            assert init["type"] == "SESSION_INIT"
            assert init["identity"] == "bob"
            assert init["voice"] == "theo"
            assert init["audio_format"]["sample_rate"] == 16000
            assert "bob" in gateway.registry


def test_build_gateway_requires_tts_key():
    with pytest.raises(RuntimeError, match="SPEECHMATICS_API_KEY"):
        build_gateway(app_config())


def test_build_llm_client_requires_provider_key():
    with pytest.raises(RuntimeError, match="GROQ_API_KEY"):
        build_llm_client(app_config(llm_provider="groq"))
    with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
        build_llm_client(app_config())


def test_build_llm_client_groq_base_url():
    client = build_llm_client(app_config(llm_provider="Groq", groq_api_key="k"))

    assert "api.groq.com" in str(client.base_url)


def test_build_synthesizer_wraps_speechmatics_with_openai_fallback():
    synth = build_synthesizer(app_config(speechmatics_api_key="sm", openai_api_key="oa"))

    assert isinstance(synth, FallbackSynthesizer)
    assert not synth.primary_disabled


def test_build_synthesizer_without_fallback(log_events):
    disabled = build_synthesizer(app_config(speechmatics_api_key="sm", tts_fallback_provider="none"))
    keyless = build_synthesizer(app_config(speechmatics_api_key="sm"))

    assert isinstance(disabled, SpeechmaticsSynthesizer)
    assert isinstance(keyless, SpeechmaticsSynthesizer)
    assert [e["event_type"] for e in log_events] == ["TTS_FALLBACK_UNAVAILABLE"]


def test_build_synthesizer_rejects_unknown_fallback():
    with pytest.raises(RuntimeError, match="TTS_FALLBACK_PROVIDER"):
        build_synthesizer(app_config(speechmatics_api_key="sm", tts_fallback_provider="google"))


# ---------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_audio_sink_emits_binary_frames_with_sequence():
    ws = FakeWebSocket()
    sink = WebSocketAudioSink(ws, clock=FakeClock())

    for _ in range(3):
        await sink.emit(AudioFrame(pcm_bytes=b"\x01\x00" * 80, run_id=4))

    decoded = [decode_s2c_frame(data) for _, data in ws.sent]
    assert [(seq, run_id) for seq, run_id, _ in decoded] == [(1, 4), (2, 4), (3, 4)]
    assert all(len(pcm) == 160 for _, _, pcm in decoded)


@pytest.mark.asyncio
async def test_audio_sink_flush_sends_stop_then_silence():
    ws = FakeWebSocket()
    sink = WebSocketAudioSink(ws, clock=FakeClock())
    await sink.emit(AudioFrame(pcm_bytes=b"\x01\x00" * 80, run_id=2))

    await sink.flush_silence(3, run_id=2, sample_rate_hz=16000)

    kind, text = ws.sent[1]
    assert kind == "text"
    assert json.loads(text) == {"type": "AUDIO_STOP", "run_id": 2}
    silence = [decode_s2c_frame(data) for _, data in ws.sent[2:]]
    assert len(silence) == 3
    assert all(run_id == 2 and set(pcm) == {0} and len(pcm) == 640 for _, run_id, pcm in silence)


@pytest.mark.asyncio
async def test_audio_sink_sequence_wraps():
    ws = FakeWebSocket()
    sink = WebSocketAudioSink(ws, clock=FakeClock())
    sink._seq = SEQ_NUM_MAX

    await sink.emit(AudioFrame(pcm_bytes=b"\x00\x00", run_id=1))
    await sink.emit(AudioFrame(pcm_bytes=b"\x00\x00", run_id=1))

    assert [decode_s2c_frame(data)[0] for _, data in ws.sent] == [SEQ_NUM_MAX, 1]


@pytest.mark.asyncio
async def test_wait_for_playout_returns_once_audio_has_played():
    clock = FakeClock()
    sink = WebSocketAudioSink(FakeWebSocket(), clock=clock)
    await sink.emit(AudioFrame(pcm_bytes=b"\x00\x00" * 320, run_id=1))

    clock.advance(1.0)
    await sink.wait_for_playout()


@pytest.mark.asyncio
async def test_transcript_sink_publishes_json():
    ws = FakeWebSocket()

    await WebSocketTranscriptSink(ws).publish("alice", "agent", "héllo")

    assert json.loads(ws.sent[0][1]) == {
        "type": "transcript",
        "identity": "alice",
        "role": "agent",
        "text": "héllo",
    }
