"""
Route registration for the voice API.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Map WebSocket lifecycle to participant joined/left
- Decode inbound binary audio and hand it to the gateway
- Pull dependencies from app.state
"""

from __future__ import annotations

from uuid import uuid4

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from observability.logger import log_event, now_ms
from protocol.binary import BinaryProtocolError, check_sequence_gap, decode_c2s_frame
from server.sinks import WebSocketAudioSink, WebSocketTranscriptSink
from session.gateway import VoiceGateway


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, object]: # pyright: ignore[reportUnusedFunction]
        gateway: VoiceGateway = app.state.gateway
        return {"status": "ok", "sessions": len(gateway.registry)}

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        gateway: VoiceGateway = app.state.gateway
        identity = ws.query_params.get("identity") or f"anon_{uuid4().hex[:12]}"
        metadata = ws.query_params.get("metadata")

        last_seq: int | None = None
        reason = "client_disconnect"

        try:
            session = await gateway.on_participant_joined(
                identity,
                audio_sink=WebSocketAudioSink(ws),
                transcript_sink=WebSocketTranscriptSink(ws),
                metadata=metadata,
            )
            await ws.send_json({
                "type": "SESSION_INIT",
                "identity": identity,
                "language": session.settings.language,
                "voice": session.settings.voice,
                "audio_format": {
                    "sample_rate": 16000,
                    "sample_width": 2,
                    "channels": 1,
                    "frame_duration_ms": 20,
                },
            })

            while True:
                msg = await ws.receive()
                if msg.get("type") == "websocket.disconnect":
                    break

                payload = msg.get("bytes")
                if payload is None:
                    # Text control messages are not part of this protocol
                    continue

                try:
                    frame = decode_c2s_frame(payload, ts_ms=now_ms())
                except BinaryProtocolError as exc:
                    log_event({
                        "event_type": "FRAME_DECODE_ERROR",
                        "identity": identity,
                        "reason": str(exc),
                        "length": len(payload),
                    })
                    continue

                gap = check_sequence_gap(last_seq=last_seq, current_seq=frame.sequence_num)
                if gap.gap:
                    log_event({
                        "event_type": "seq_gap_detected",
                        "identity": identity,
                        "expected": gap.expected,
                        "actual": gap.actual,
                        "gap_size": gap.gap_size,
                    })
                last_seq = frame.sequence_num

                await gateway.on_audio_frame(identity, frame)

        except WebSocketDisconnect:
            pass

        except Exception as exc:  # pylint: disable=broad-exception-caught
            reason = "server_error"
            log_event({
                "event_type": "WS_FATAL_ERROR",
                "level": "ERROR",
                "identity": identity,
                "exception": type(exc).__name__,
                "message": str(exc),
            })

        finally:
            await gateway.on_participant_left(identity, reason=reason)
