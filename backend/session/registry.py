"""
Session registry.

Maps participant identity -> VoiceSession. Created on join (or first
audio frame), destroyed on leave.

create/remove are plain synchronous dict operations, so each is atomic
on the event loop; sessions never need cross-session locking because
they are partitioned by identity.
"""

from __future__ import annotations

from typing import Iterator

from config import VoiceTuning
from observability.logger import log_event
from session.voice_session import SessionSettings, VoiceSession


class SessionRegistry:
    """Explicit owner of all live sessions (injected, never global)."""

    def __init__(
        self,
        *,
        tuning: VoiceTuning | None = None,
        default_settings: SessionSettings | None = None,
    ) -> None:
        self._tuning = tuning or VoiceTuning()
        self._default_settings = default_settings or SessionSettings()
        self._sessions: dict[str, VoiceSession] = {}

    @property
    def default_settings(self) -> SessionSettings:
        return self._default_settings

    def get_or_create(self, identity: str, *, settings: SessionSettings | None = None) -> VoiceSession:
        """
        Return the identity's session, creating it if needed.

        When `settings` is given for an existing session (re-join with new
        metadata) the session's settings are replaced; turn state is not
        touched.
        """
        session = self._sessions.get(identity)
        if session is not None:
            if settings is not None and settings != session.settings:
                session.settings = settings
                log_event({
                    "event_type": "SESSION_SETTINGS_UPDATED",
                    **session.log_context(),
                    "language": settings.language,
                    "voice": settings.voice,
                })
            return session

        session = VoiceSession(
            identity=identity,
            settings=settings or self._default_settings,
            tuning=self._tuning,
        )
        self._sessions[identity] = session
        log_event({
            "event_type": "SESSION_CREATED",
            **session.log_context(),
            "language": session.settings.language,
            "voice": session.settings.voice,
            "sessions": len(self._sessions),
        })
        return session

    def get(self, identity: str) -> VoiceSession | None:
        return self._sessions.get(identity)

    def remove(self, identity: str) -> VoiceSession | None:
        """Forget a session. Returns it (for teardown) or None if unknown."""
        session = self._sessions.pop(identity, None)
        if session is not None:
            log_event({
                "event_type": "SESSION_REMOVED",
                **session.log_context(),
                "sessions": len(self._sessions),
            })
        return session

    def identities(self) -> list[str]:
        return list(self._sessions)

    def __contains__(self, identity: object) -> bool:
        return identity in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[VoiceSession]:
        return iter(list(self._sessions.values()))
