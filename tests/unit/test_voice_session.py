# pylint: disable=missing-module-docstring,missing-function-docstring

import json

import pytest

from config import VoiceTuning
from orchestrator.enums.state import TurnState
from orchestrator.errors import InvariantViolation
from session.registry import SessionRegistry
from session.voice_session import SessionSettings, VoiceSession

from fakes import LOUD, frame


# ---------------------------------------------------------------------
# SessionSettings
# ---------------------------------------------------------------------

def test_settings_from_json_metadata():
    metadata = json.dumps({"language": "hi", "languageName": "Hindi", "voiceId": "theo"})

    settings = SessionSettings.from_metadata(metadata)

    assert settings == SessionSettings(language="hi", language_name="Hindi", voice="theo")


def test_settings_missing_keys_keep_defaults():
    defaults = SessionSettings(language="en", language_name="English", voice="megan")

    settings = SessionSettings.from_metadata({"language": "es"}, defaults=defaults)

    assert settings.language == "es"
    assert settings.voice == "megan"


def test_settings_malformed_metadata_falls_back(log_events):
    assert SessionSettings.from_metadata("{not json", identity="alice") == SessionSettings()
    assert SessionSettings.from_metadata("[1, 2]") == SessionSettings()
    assert SessionSettings.from_metadata(None) == SessionSettings()

    invalid = [e for e in log_events if e["event_type"] == "SESSION_METADATA_INVALID"]
    assert len(invalid) == 2
    assert invalid[0]["identity"] == "alice"


# ---------------------------------------------------------------------
# VoiceSession
# ---------------------------------------------------------------------

def test_new_session_is_idle_and_consistent():
    session = VoiceSession(identity="alice")

    assert session.state is TurnState.IDLE
    assert session.handle is None
    session.check_invariants()


def test_session_detectors_follow_tuning():
    tuning = VoiceTuning(turn_rms_threshold=0.5, interrupt_frames_required=3, capture_max_s=1.0)
    session = VoiceSession(identity="alice", tuning=tuning)

    assert session.turn_detector.profile.threshold == 0.5
    assert session.capture.capacity == 16000
    # 0.24 RMS is below the raised turn threshold
    assert not session.turn_detector.classify(frame(LOUD)).is_speech


def test_run_ids_are_monotonic():
    session = VoiceSession(identity="alice")

    first = session.begin_synthesis("one")
    session.release_handle(first)
    second = session.begin_synthesis("two")

    assert (first.run_id, second.run_id) == (1, 2)


def test_begin_synthesis_supersedes_live_handle(log_events):
    session = VoiceSession(identity="alice")

    first = session.begin_synthesis("one")
    second = session.begin_synthesis("two")

    assert first.token.cancelled
    assert first.token.reason == "superseded"
    assert session.handle is second
    assert any(e["event_type"] == "SYNTHESIS_SUPERSEDED" for e in log_events)


def test_release_handle_only_detaches_own_handle():
    session = VoiceSession(identity="alice")
    stale = session.begin_synthesis("one")
    current = session.begin_synthesis("two")

    assert session.release_handle(stale) is False
    assert session.handle is current
    assert session.release_handle(current) is True
    assert session.handle is None
    assert current.finished


def test_speaking_without_live_handle_violates():
    session = VoiceSession(identity="alice")
    session.state = TurnState.SPEAKING

    with pytest.raises(InvariantViolation):
        session.check_invariants()


def test_live_handle_outside_speaking_violates():
    session = VoiceSession(identity="alice", state=TurnState.LISTENING)
    session.begin_synthesis("hi")

    with pytest.raises(InvariantViolation):
        session.check_invariants()


def test_recording_requires_buffered_audio():
    session = VoiceSession(identity="alice", state=TurnState.RECORDING)
    with pytest.raises(InvariantViolation):
        session.check_invariants()

    session.recording.append(frame(LOUD).samples)
    session.check_invariants()

    session.state = TurnState.LISTENING
    with pytest.raises(InvariantViolation):
        session.check_invariants()


def test_reset_returns_to_idle_and_cancels_handle():
    session = VoiceSession(identity="alice", state=TurnState.SPEAKING)
    handle = session.begin_synthesis("hi")
    session.capture.append(frame(LOUD).samples)
    session.conversation.add_user_turn("kept")

    session.reset()

    assert session.state is TurnState.IDLE
    assert session.handle is None
    assert handle.token.cancelled
    assert session.capture.is_empty()
    assert len(session.conversation) == 1
    session.check_invariants()


# ---------------------------------------------------------------------
# SessionRegistry
# ---------------------------------------------------------------------

def test_registry_get_or_create_is_idempotent(log_events):
    registry = SessionRegistry()

    first = registry.get_or_create("alice")
    again = registry.get_or_create("alice")

    assert first is again
    assert len(registry) == 1
    assert "alice" in registry
    assert [e["event_type"] for e in log_events].count("SESSION_CREATED") == 1


def test_registry_applies_defaults_and_tuning():
    tuning = VoiceTuning(silence_ms=600)
    defaults = SessionSettings(voice="theo")
    registry = SessionRegistry(tuning=tuning, default_settings=defaults)

    session = registry.get_or_create("alice")

    assert session.tuning is tuning
    assert session.settings.voice == "theo"


def test_registry_rejoin_updates_settings_only():
    registry = SessionRegistry()
    session = registry.get_or_create("alice")
    session.state = TurnState.LISTENING

    registry.get_or_create("alice", settings=SessionSettings(language="de", language_name="German"))

    assert session.settings.language == "de"
    assert session.state is TurnState.LISTENING


def test_registry_sessions_are_independent():
    registry = SessionRegistry()
    alice = registry.get_or_create("alice")
    bob = registry.get_or_create("bob")

    alice.recording.append(frame(LOUD).samples)

    assert bob.recording.is_empty()
    assert sorted(registry.identities()) == ["alice", "bob"]
    assert {s.identity for s in registry} == {"alice", "bob"}


def test_registry_remove():
    registry = SessionRegistry()
    session = registry.get_or_create("alice")

    assert registry.remove("alice") is session
    assert registry.remove("alice") is None
    assert registry.get("alice") is None
    assert len(registry) == 0
