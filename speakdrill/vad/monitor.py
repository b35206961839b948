from __future__ import annotations

"""Amplitude-based voice activity detection.

The monitor sees one amplitude observation per tick (a scalar or a frame
of 0-255 bin magnitudes) and reports speaking/silence transitions. It knows
nothing about recognition; the arbiter decides what a transition means.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import numpy as np

VOICE_THRESHOLD = 30
MIN_SPEECH_DURATION_MS = 1000

BAR_MIN_HEIGHT = 10
BAR_MAX_HEIGHT = 60

Sample = Union[float, int, Sequence[float], np.ndarray]


@dataclass(frozen=True)
class SpeechStarted:
    at_ms: float


@dataclass(frozen=True)
class SpeechEnded:
    at_ms: float
    duration_ms: float
    qualifying: bool


SpeakingEvent = Union[SpeechStarted, SpeechEnded]


@dataclass
class SpeechWindow:
    is_speaking: bool = False
    speech_start_ms: Optional[float] = None


def frame_average(sample: Sample) -> float:
    """Mean amplitude of a frame; a bare scalar is its own average."""
    arr = np.asarray(sample, dtype="float32")
    if arr.size == 0:
        return 0.0
    return float(arr.mean())


def level_bars(sample: Sample, count: int) -> List[int]:
    """Bar heights for a level meter with ``count`` bars.

    Each bar samples the bin at its proportional position in the frame and
    maps 0-255 onto the 10..60 height range.
    """
    arr = np.atleast_1d(np.asarray(sample, dtype="float32"))
    if count <= 0:
        return []
    if arr.size == 0:
        return [BAR_MIN_HEIGHT] * count
    idx = (np.arange(count) * arr.size) // count
    heights = np.clip(arr[idx] / 255.0 * BAR_MAX_HEIGHT, BAR_MIN_HEIGHT, BAR_MAX_HEIGHT)
    return [int(h) for h in heights]


class AmplitudeMonitor:
    """Turns amplitude observations into SpeechStarted / SpeechEnded events."""

    def __init__(
        self,
        threshold: float = VOICE_THRESHOLD,
        min_speech_ms: float = MIN_SPEECH_DURATION_MS,
        clock=None,
    ) -> None:
        self.threshold = float(threshold)
        self.min_speech_ms = float(min_speech_ms)
        self.clock = clock
        self.window = SpeechWindow()
        self.last_average = 0.0

    @property
    def active(self) -> bool:
        """Whether the most recent observation was above the voice threshold."""
        return self.last_average > self.threshold

    def is_loud(self, sample: Sample) -> bool:
        return frame_average(sample) > self.threshold

    def observe(self, sample: Sample, now_ms: Optional[float] = None) -> Optional[SpeakingEvent]:
        if now_ms is None:
            if self.clock is None:
                raise ValueError("observe() needs now_ms when the monitor has no clock")
            now_ms = self.clock.now_ms()

        self.last_average = frame_average(sample)
        loud = self.last_average > self.threshold
        w = self.window

        if loud and not w.is_speaking:
            w.is_speaking = True
            w.speech_start_ms = now_ms
            return SpeechStarted(at_ms=now_ms)

        if not loud and w.is_speaking:
            start = w.speech_start_ms if w.speech_start_ms is not None else now_ms
            duration = now_ms - start
            w.is_speaking = False
            w.speech_start_ms = None
            return SpeechEnded(at_ms=now_ms, duration_ms=duration, qualifying=duration >= self.min_speech_ms)

        return None

    def reset(self) -> None:
        self.window = SpeechWindow()
        self.last_average = 0.0
