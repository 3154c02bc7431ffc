"""
Energy-based Voice Activity Detection.

Two pieces:

- VoiceActivityDetector: stateless per-frame classification against a
  VADProfile (RMS level normalized to PCM16 full scale).
- InterruptDetector: a small accumulator that confirms barge-in only after
  enough consecutive speech frames (or enough accumulated speech audio),
  giving basic temporal smoothing against single-frame spikes.

The turn-detection and interrupt-detection profiles are independent:
the turn profile uses a higher threshold (ignores breathing and room
noise), the interrupt profile is deliberately sensitive so barge-in is
confirmed within one or two frame periods.

Nothing here knows about session state. The caller decides what a
classification means.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from audio.frames import AudioFrame
from constants import PCM16_FULL_SCALE


def rms_level(samples: np.ndarray) -> float:
    """
    Root-mean-square amplitude of int16 samples, normalized to [0, 1].

    Empty input returns 0.0.
    """
    if samples.size == 0:
        return 0.0
    as_float = samples.astype(np.float64)
    return float(np.sqrt(np.mean(np.square(as_float)))) / PCM16_FULL_SCALE


@dataclass(frozen=True)
class VADProfile:
    """
    Threshold/duration profile for one detector.

    threshold:
        Normalized RMS level a frame must exceed to count as speech.
    frames_required:
        Consecutive speech frames needed to confirm (interrupt profile).
    min_speech_ms:
        Alternatively, accumulated speech audio that confirms (interrupt
        profile). 0 disables the duration path.
    silence_ms:
        Sustained silence after speech that ends an utterance (turn profile).
    """
    threshold: float
    frames_required: int = 1
    min_speech_ms: int = 0
    silence_ms: int = 0


@dataclass(frozen=True)
class VADResult:
    """Classification of a single frame."""
    is_speech: bool
    level: float


class VoiceActivityDetector:
    """
    Stateless frame classifier.

    Holds only its profile, so a participant that goes quiet for a long
    time leaves nothing to clean up here.
    """

    def __init__(self, profile: VADProfile) -> None:
        self._profile = profile

    @property
    def profile(self) -> VADProfile:
        return self._profile

    def classify(self, frame: AudioFrame) -> VADResult:
        """
        Classify one frame as speech or silence.

        A frame is speech when its normalized RMS level is strictly above
        the profile threshold.
        """
        level = rms_level(frame.samples)
        return VADResult(is_speech=level > self._profile.threshold, level=level)


class InterruptDetector:
    """
    Sustained-speech accumulator for barge-in confirmation.

    Feed it every inbound frame while the agent is speaking. It reports
    True once at least `frames_required` consecutive frames (including this
    one) classified as speech, or once consecutive speech has lasted
    `min_speech_ms` of audio. Any silent frame resets the run.

    After a confirmation the accumulator resets itself, so the next
    confirmation requires a fresh run.
    """

    def __init__(self, detector: VoiceActivityDetector) -> None:
        self._detector = detector
        self._count = 0
        self._speech_ms = 0.0

    @property
    def consecutive_frames(self) -> int:
        return self._count

    def observe(self, frame: AudioFrame) -> tuple[bool, VADResult]:
        """
        Observe one frame and update the run.

        Returns:
            (confirmed, classification)
        """
        result = self._detector.classify(frame)
        if not result.is_speech:
            self.reset()
            return False, result

        self._count += 1
        self._speech_ms += frame.duration_ms

        profile = self._detector.profile
        confirmed = self._count >= profile.frames_required or (
            profile.min_speech_ms > 0 and self._speech_ms >= profile.min_speech_ms
        )
        if confirmed:
            self.reset()
        return confirmed, result

    def reset(self) -> None:
        """
        Clear the consecutive-speech run.

        Subsequent detection requires a fresh run of qualifying frames.
        """
        self._count = 0
        self._speech_ms = 0.0
