# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio

import pytest

from orchestrator.enums.state import TurnState
from session.gateway import VoiceGateway
from session.registry import SessionRegistry

from fakes import (
    LOUD,
    SILENT,
    TEST_TUNING,
    FakeGenerator,
    FakeSynthesizer,
    FakeTranscriber,
    FakeTranscriptSink,
    RecordingSink,
    frame,
)


def build_gateway(**kwargs) -> VoiceGateway:
    return VoiceGateway(
        registry=SessionRegistry(tuning=TEST_TUNING),
        transcriber=FakeTranscriber(),
        generator=FakeGenerator(),
        synthesizer=FakeSynthesizer(chunk_ms=20),
        **kwargs,
    )


async def send_utterance(gateway: VoiceGateway, identity: str) -> None:
    for seq in range(1, 101):
        await gateway.on_audio_frame(identity, frame(LOUD, seq=seq))
    for seq in range(101, 141):
        await gateway.on_audio_frame(identity, frame(SILENT, seq=seq))


@pytest.mark.asyncio
async def test_join_creates_listening_session(log_events):
    gateway = build_gateway()

    session = await gateway.on_participant_joined(
        "alice",
        audio_sink=RecordingSink(),
        metadata='{"language": "hi", "languageName": "Hindi", "voiceId": "theo"}',
    )

    assert session.state is TurnState.LISTENING
    assert session.settings.voice == "theo"
    assert session.consumer_task is not None
    assert "alice" in gateway.registry
    assert any(e["event_type"] == "PARTICIPANT_JOINED" for e in log_events)

    await gateway.close()


@pytest.mark.asyncio
async def test_rejoin_keeps_running_session():
    gateway = build_gateway()
    first = await gateway.on_participant_joined("alice", audio_sink=RecordingSink())
    consumer = first.consumer_task

    again = await gateway.on_participant_joined("alice", audio_sink=RecordingSink(), metadata={"voiceId": "megan"})

    assert again is first
    assert again.consumer_task is consumer
    assert again.settings.voice == "megan"

    await gateway.close()


@pytest.mark.asyncio
async def test_frames_drive_a_full_turn():
    gateway = build_gateway()
    sink = RecordingSink()
    transcripts = FakeTranscriptSink()
    session = await gateway.on_participant_joined("alice", audio_sink=sink, transcript_sink=transcripts)

    await send_utterance(gateway, "alice")
    await session.ingest_queue.join()
    await asyncio.wait_for(session.turn_task, timeout=2.0)

    assert session.state is TurnState.LISTENING
    assert sink.voice_count() > 0
    assert [role for _, role, _ in transcripts.published] == ["user", "agent"]

    await gateway.close()


@pytest.mark.asyncio
async def test_participants_are_isolated():
    gateway = build_gateway()
    alice = await gateway.on_participant_joined("alice", audio_sink=RecordingSink())
    bob = await gateway.on_participant_joined("bob", audio_sink=RecordingSink())

    for _ in range(10):
        await gateway.on_audio_frame("alice", frame(LOUD))
    await alice.ingest_queue.join()

    assert alice.state is TurnState.RECORDING
    assert bob.state is TurnState.LISTENING
    assert bob.recording.is_empty()

    await gateway.close()


@pytest.mark.asyncio
async def test_unknown_participant_frame_is_dropped(log_events):
    gateway = build_gateway()

    await gateway.on_audio_frame("ghost", frame(LOUD, seq=9))

    assert len(gateway.registry) == 0
    dropped = [e for e in log_events if e["event_type"] == "FRAME_UNKNOWN_PARTICIPANT"]
    assert dropped[0]["sequence_num"] == 9


@pytest.mark.asyncio
async def test_sink_factory_creates_session_on_first_frame():
    sinks: dict[str, RecordingSink] = {}

    def factory(identity: str) -> RecordingSink:
        sinks[identity] = RecordingSink()
        return sinks[identity]

    gateway = build_gateway(sink_factory=factory)

    await gateway.on_audio_frame("carol", frame(LOUD))
    session = gateway.registry.get("carol")
    await session.ingest_queue.join()

    assert "carol" in sinks
    assert session.state is TurnState.RECORDING

    await gateway.close()


@pytest.mark.asyncio
async def test_leave_tears_down_and_is_idempotent(log_events):
    gateway = build_gateway()
    session = await gateway.on_participant_joined("alice", audio_sink=RecordingSink())
    consumer = session.consumer_task
    gateway.interrupts.set("alice", "stale reply")

    await gateway.on_participant_left("alice")
    await gateway.on_participant_left("alice")

    assert "alice" not in gateway.registry
    assert consumer.cancelled()
    assert session.state is TurnState.IDLE
    assert gateway.interrupts.peek("alice") is None
    assert [e["event_type"] for e in log_events].count("PARTICIPANT_LEFT") == 1


@pytest.mark.asyncio
async def test_consumer_survives_handler_errors(monkeypatch, log_events):
    gateway = build_gateway()
    session = await gateway.on_participant_joined("alice", audio_sink=RecordingSink())

    def boom(_frame):
        raise RuntimeError("bad frame")

    monkeypatch.setattr(session.machine, "handle_frame", boom)
    await gateway.on_audio_frame("alice", frame(LOUD))
    await gateway.on_audio_frame("alice", frame(LOUD))
    await session.ingest_queue.join()

    errors = [e for e in log_events if e["event_type"] == "FRAME_HANDLER_ERROR"]
    assert len(errors) == 2
    assert errors[0]["level"] == "ERROR"
    assert not session.consumer_task.done()

    await gateway.close()
