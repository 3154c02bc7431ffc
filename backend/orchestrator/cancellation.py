"""
Cooperative cancellation for speech synthesis and playback.

Responsibilities:
- CancellationToken: an explicit, awaitable cancel flag passed into every
  collaborator call and checked at the playback pipeline's checkpoints
- ActiveSynthesisHandle: one in-flight synthesis (token + full reply text)
- run_cancellable: race an awaitable against a token so a stalled provider
  call can be abandoned the moment the token fires

Non-responsibilities:
- NO state machine decisions
- NO knowledge of who owns the handle

Cancellation is cooperative, not preemptive: a cancelled call may still
produce a result, which the caller must discard.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, TypeVar

T = TypeVar("T")


class CancellationToken:
    """
    One-shot cancel flag.

    cancel() is idempotent. Once cancelled, a token never resets; a new
    synthesis gets a new token.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._cancelled_at_ns: int | None = None
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def cancelled_at_ns(self) -> int | None:
        """Monotonic time of the first cancel() call."""
        return self._cancelled_at_ns

    def cancel(self, reason: str = "cancelled") -> bool:
        """
        Signal cancellation.

        Returns:
            True if this call flipped the token, False if already cancelled.
        """
        if self._event.is_set():
            return False
        self._cancelled_at_ns = time.monotonic_ns()
        self.reason = reason
        self._event.set()
        return True

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        await self._event.wait()


@dataclass
class ActiveSynthesisHandle:
    """
    One in-flight synthesis/playback call for a session.

    run_id:
        Monotonic per-session id, stamped onto outbound audio frames.
    text:
        The FULL reply being spoken (not just the current chunk); this is
        what lands in the interrupted context on barge-in.
    played_out:
        Every sub-frame was emitted and played out; nothing was cut off.
    finished:
        Set when the handle is released (completed or abandoned). A handle
        is live while it is neither finished nor cancelled.
    """
    run_id: int
    text: str
    token: CancellationToken = field(default_factory=CancellationToken)
    played_out: bool = False
    finished: bool = False

    @property
    def live(self) -> bool:
        return not self.finished and not self.token.cancelled

    def cancel(self, reason: str = "cancelled") -> bool:
        """Cancel this handle's token. Idempotent."""
        return self.token.cancel(reason)

    def finish(self) -> None:
        """Mark playback as fully done."""
        self.finished = True


async def run_cancellable(aw: Awaitable[T], token: CancellationToken) -> tuple[bool, T | None]:
    """
    Await `aw` unless `token` fires first.

    Returns:
        (True, None) if the token fired first (the inner task is cancelled
        and awaited so nothing is orphaned), else (False, result).

    Exceptions raised by `aw` propagate unchanged. If the caller itself is
    cancelled, the inner task is cancelled too.
    """
    if token.cancelled:
        if asyncio.iscoroutine(aw):
            aw.close()
        return True, None

    work: asyncio.Future[T] = asyncio.ensure_future(aw)
    waiter = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        waiter.cancel()

    if work.done():
        # A result that raced a late cancel is still returned; the caller
        # re-checks the token at its own checkpoint.
        return False, work.result()

    work.cancel()
    try:
        await work
    except asyncio.CancelledError:
        pass
    return True, None
