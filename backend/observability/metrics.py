"""
Metrics and timing helpers.

Responsibilities:
- Measure durations using monotonic time (immune to clock changes)
- Emit metrics as JSONL events via observability.logger
- Never aggregate: one metric = one log event

Per-turn metrics emitted by the engine:
- stt_latency_ms
- generation_latency_ms
- synthesis_latency_ms (one per utterance chunk)
- barge_in_to_silence_ms   (headline metric)
- turn_total_ms
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

from observability.logger import log_event


def record_metric(
    name: str,
    value_ms: float,
    *,
    identity: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit an already-measured duration as a METRIC_TIMER event."""
    log_event({
        "event_type": "METRIC_TIMER",
        "metric": name,
        "value_ms": round(value_ms, 3),
        "identity": identity,
        "details": details or {},
    })


@contextmanager
def timed(
    name: str,
    *,
    identity: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[None]:
    """
    Context manager for measuring durations safely.

    Guarantees:
    - Metric is emitted exactly once, even if the block raises
    - Exceptions inside the block are NOT suppressed

    Usage:
        with timed("stt_latency_ms", identity=session.identity):
            text = await transcriber.transcribe(...)
    """
    start_ns = time.monotonic_ns()
    try:
        yield
    finally:
        record_metric(
            name,
            (time.monotonic_ns() - start_ns) / 1_000_000,
            identity=identity,
            details=details,
        )
