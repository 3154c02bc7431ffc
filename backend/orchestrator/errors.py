"""Engine-level error types."""

from __future__ import annotations


class InvariantViolation(RuntimeError):
    """
    A session's mutual-exclusion invariant was found broken.

    Examples: SPEAKING without a live synthesis handle, RECORDING with an
    empty recording buffer. Fatal to the session (it is reset to IDLE),
    never to the process.
    """
