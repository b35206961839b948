from __future__ import annotations

"""Recognition arbiter: one attempt at a time, exactly one outcome each.

Provider events and amplitude events both arrive here. The first terminal
provider event fills the attempt's resolution slot; anything after that is
ignored. A qualifying end of speech arms a grace timer that asks the
provider to stop if it has not finished on its own.
"""

import itertools
from enum import Enum
from typing import Callable, Optional

from ..app.explain import trace as xtrace
from ..audio.source import AudioUnavailable
from ..vad.monitor import SpeakingEvent, SpeechEnded, SpeechStarted
from .outcomes import (
    ABORTED,
    NO_SPEECH,
    Aborted,
    AttemptOutcome,
    Error,
    NoSpeech,
    ProviderEnd,
    ProviderError,
    ProviderEvent,
    ProviderNoSpeech,
    ProviderResult,
    Result,
)
from .provider import RecognitionUnavailable, SpeechProvider

GRACE_PERIOD_MS = 1500

_attempt_ids = itertools.count(1)


class AttemptInFlight(RuntimeError):
    """A new attempt was requested while another one is still listening."""


class AttemptState(Enum):
    IDLE = "idle"
    LISTENING = "listening"
    RESOLVED = "resolved"


class RecognitionAttempt:
    """Per-attempt state. Never reused; a retry gets a fresh instance."""

    def __init__(self, arbiter: "RecognitionArbiter", on_resolved: Callable[[AttemptOutcome], None]) -> None:
        self.id = next(_attempt_ids)
        self.state = AttemptState.IDLE
        self.outcome: Optional[AttemptOutcome] = None
        self.speech_detected = False
        self.force_stopped = False
        self.grace = None
        self.lifetime = None
        self._arbiter = arbiter
        self._on_resolved = on_resolved

    @property
    def terminal(self) -> bool:
        return self.state is AttemptState.RESOLVED

    def deliver(self, event: ProviderEvent) -> None:
        self._arbiter._on_provider_event(self, event)

    def __repr__(self) -> str:
        return f"RecognitionAttempt(id={self.id}, state={self.state.value})"


class RecognitionArbiter:
    def __init__(
        self,
        provider: Optional[SpeechProvider],
        timers,
        audio=None,
        grace_ms: float = GRACE_PERIOD_MS,
        max_attempt_ms: Optional[float] = None,
    ) -> None:
        self.provider = provider
        self.timers = timers
        self.audio = audio
        self.grace_ms = float(grace_ms)
        self.max_attempt_ms = float(max_attempt_ms) if max_attempt_ms else None
        self.current: Optional[RecognitionAttempt] = None
        self._released_capture = False

    @property
    def listening(self) -> bool:
        return self.current is not None and self.current.state is AttemptState.LISTENING

    def start(self, on_resolved: Callable[[AttemptOutcome], None]) -> RecognitionAttempt:
        if self.listening:
            raise AttemptInFlight(f"attempt {self.current.id} is still listening")
        if self.provider is None or not self.provider.available():
            raise RecognitionUnavailable("no speech recognition provider is available")

        attempt = RecognitionAttempt(self, on_resolved)
        self.current = attempt
        self._release_capture()
        attempt.state = AttemptState.LISTENING
        xtrace("attempt_started", {"attempt": attempt.id, "provider": self.provider.name})
        try:
            self.provider.start(attempt)
        except BaseException as e:
            # Whatever went wrong, the attempt must not stay in flight
            attempt.state = AttemptState.RESOLVED
            self._cancel_timers(attempt)
            if self.current is attempt:
                self.current = None
            self._restore_capture()
            xtrace("attempt_refused", {"attempt": attempt.id, "error": type(e).__name__})
            raise
        if self.max_attempt_ms and attempt.state is AttemptState.LISTENING:
            attempt.lifetime = self.timers.call_later(
                self.max_attempt_ms, lambda: self._lifetime_elapsed(attempt), label="attempt_lifetime"
            )
        return attempt

    def on_speaking_event(self, event: SpeakingEvent) -> None:
        attempt = self.current
        if attempt is None or attempt.state is not AttemptState.LISTENING:
            return
        if isinstance(event, SpeechStarted):
            if attempt.grace is not None and attempt.grace.pending:
                attempt.grace.cancel()
                attempt.grace = None
                xtrace("grace_cancelled", {"attempt": attempt.id, "reason": "speech_resumed"})
            return
        if isinstance(event, SpeechEnded) and event.qualifying:
            attempt.speech_detected = True
            if attempt.grace is None or not attempt.grace.pending:
                attempt.grace = self.timers.call_later(
                    self.grace_ms, lambda: self._grace_elapsed(attempt), label="force_stop"
                )
                xtrace("grace_armed", {"attempt": attempt.id, "speech_ms": int(event.duration_ms)})

    def cancel(self, reason: str = "") -> None:
        """Tear down the listening attempt without producing an outcome."""
        attempt = self.current
        if attempt is None:
            return
        self.current = None
        was_listening = attempt.state is AttemptState.LISTENING
        attempt.state = AttemptState.RESOLVED
        self._cancel_timers(attempt)
        if was_listening and self.provider is not None:
            self.provider.abort(attempt)
        self._restore_capture()
        xtrace("attempt_cancelled", {"attempt": attempt.id, "reason": reason})

    # --- internals ---

    def _grace_elapsed(self, attempt: RecognitionAttempt) -> None:
        attempt.grace = None
        if attempt is not self.current or attempt.state is not AttemptState.LISTENING:
            return
        attempt.force_stopped = True
        xtrace("force_stop", {"attempt": attempt.id})
        self.provider.stop(attempt)

    def _lifetime_elapsed(self, attempt: RecognitionAttempt) -> None:
        attempt.lifetime = None
        if attempt is not self.current or attempt.state is not AttemptState.LISTENING:
            return
        xtrace("attempt_expired", {"attempt": attempt.id, "after_ms": self.max_attempt_ms})
        self.provider.abort(attempt)
        self._resolve(attempt, Aborted(speech_detected=attempt.speech_detected))

    def _on_provider_event(self, attempt: RecognitionAttempt, event: ProviderEvent) -> None:
        if attempt.state is not AttemptState.LISTENING:
            xtrace("late_event_ignored", {"attempt": attempt.id, "event": type(event).__name__})
            return

        outcome: AttemptOutcome
        if isinstance(event, ProviderResult):
            outcome = Result(transcript=event.transcript, confidence=float(event.confidence))
        elif isinstance(event, ProviderNoSpeech):
            outcome = NoSpeech(speech_detected=attempt.speech_detected)
        elif isinstance(event, ProviderError):
            if event.code == ABORTED:
                outcome = Aborted(speech_detected=attempt.speech_detected)
            elif event.code == NO_SPEECH:
                outcome = NoSpeech(speech_detected=attempt.speech_detected)
            else:
                outcome = Error(code=event.code)
        elif isinstance(event, ProviderEnd):
            # Ended without ever producing a result
            outcome = NoSpeech(speech_detected=attempt.speech_detected)
        else:
            raise TypeError(f"unknown provider event: {event!r}")

        self._resolve(attempt, outcome)

    def _resolve(self, attempt: RecognitionAttempt, outcome: AttemptOutcome) -> None:
        attempt.outcome = outcome
        attempt.state = AttemptState.RESOLVED
        self._cancel_timers(attempt)
        if self.current is attempt:
            self.current = None
        self._restore_capture()
        xtrace(
            "attempt_resolved",
            {"attempt": attempt.id, "outcome": type(outcome).__name__, "forced": attempt.force_stopped},
        )
        attempt._on_resolved(outcome)

    @staticmethod
    def _cancel_timers(attempt: RecognitionAttempt) -> None:
        if attempt.grace is not None:
            attempt.grace.cancel()
            attempt.grace = None
        if attempt.lifetime is not None:
            attempt.lifetime.cancel()
            attempt.lifetime = None

    def _release_capture(self) -> None:
        audio = self.audio
        if audio is not None and audio.release_during_recognition and audio.capturing:
            audio.stop_capture()
            self._released_capture = True
            xtrace("capture_released", {})

    def _restore_capture(self) -> None:
        if not self._released_capture:
            return
        self._released_capture = False
        try:
            self.audio.start_capture()
        except AudioUnavailable as e:
            xtrace("capture_restore_failed", {"code": e.code})
