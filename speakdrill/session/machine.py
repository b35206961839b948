from __future__ import annotations

"""Session state machine: prompt sequencing, bounded retries, one record per prompt.

Idle -> Presenting(i) -> AwaitingAttempt(i, retry) -> Evaluating(i)
     -> Presenting(i+1) | Complete

The machine never touches audio or the recognizer directly; it asks the
arbiter for an attempt and reacts to the single outcome it gets back.
"""

from enum import Enum
from typing import List, Optional, Sequence

from ..app.events import EventBus
from ..app.explain import trace as xtrace
from ..recognition.arbiter import RecognitionArbiter, RecognitionAttempt
from ..recognition.outcomes import AttemptOutcome, Error, Result, is_silence
from ..recognition.provider import RecognitionUnavailable
from ..scoring.scorer import PARTIAL_THRESHOLD, classify, normalize, score
from ..stats.stats import SessionSummary, summarize
from . import feedback as fb
from .models import Progress, Prompt, PromptRecord, PromptView

MAX_RETRIES = 3


class InvalidTransition(RuntimeError):
    pass


class SessionState(Enum):
    IDLE = "idle"
    PRESENTING = "presenting"
    AWAITING_ATTEMPT = "awaiting_attempt"
    EVALUATING = "evaluating"
    COMPLETE = "complete"


class SessionStateMachine:
    def __init__(
        self,
        prompts: Sequence[Prompt],
        arbiter: RecognitionArbiter,
        *,
        max_retries: int = MAX_RETRIES,
        partial_threshold: float = PARTIAL_THRESHOLD,
        bus: Optional[EventBus] = None,
    ) -> None:
        if not prompts:
            raise ValueError("a session needs at least one prompt")
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self.prompts = tuple(prompts)
        self.arbiter = arbiter
        self.max_retries = int(max_retries)
        self.partial_threshold = float(partial_threshold)
        self.bus = bus or EventBus()

        self.state = SessionState.IDLE
        self.index = 0
        self.retries = 0
        self.summary: Optional[SessionSummary] = None
        self._log: List[PromptRecord] = []
        self._attempt: Optional[RecognitionAttempt] = None
        # Bumped on start/restart so outcomes from a torn-down session are dropped
        self._generation = 0
        # Set when the provider reports a permission error; blocks further attempts
        self.access_denied: Optional[str] = None

    # --- read-only views ---

    @property
    def log(self) -> tuple[PromptRecord, ...]:
        return tuple(self._log)

    @property
    def total(self) -> int:
        return len(self.prompts)

    @property
    def current_prompt(self) -> Optional[Prompt]:
        if self.state in (SessionState.IDLE, SessionState.COMPLETE):
            return None
        return self.prompts[self.index]

    @property
    def attempt_active(self) -> bool:
        return self._attempt is not None and not self._attempt.terminal

    def progress(self) -> Progress:
        if self.state is SessionState.IDLE:
            fraction = 0.0
        elif self.state is SessionState.COMPLETE:
            fraction = 1.0
        else:
            fraction = (self.index + 1) / self.total
        correct = sum(1 for r in self._log if r.status == "correct")
        return Progress(fraction=fraction, correct=correct, total=self.total)

    # --- transitions ---

    def start(self) -> None:
        self._teardown("start")
        self._generation += 1
        self._log = []
        self.access_denied = None
        self.summary = None
        xtrace("session_started", {"prompts": self.total, "max_retries": self.max_retries})
        self._present(0)

    def begin_attempt(self) -> RecognitionAttempt:
        if self.state not in (SessionState.PRESENTING, SessionState.AWAITING_ATTEMPT):
            raise InvalidTransition(f"cannot begin an attempt while {self.state.value}")
        if self.access_denied is not None:
            # Already reported once; nothing more can happen until access is granted
            raise RecognitionUnavailable(f"microphone access denied ({self.access_denied})")
        previous = self.state
        self.state = SessionState.AWAITING_ATTEMPT
        generation, index = self._generation, self.index
        try:
            attempt = self.arbiter.start(lambda outcome: self._on_outcome(generation, index, outcome))
        except RecognitionUnavailable as e:
            self.state = previous
            self.bus.emit("feedback", fb.for_unavailable(str(e)))
            raise
        except BaseException:
            self.state = previous
            raise
        self._attempt = attempt
        xtrace("attempt_begun", {"index": index, "retry": self.retries, "attempt": attempt.id})
        return attempt

    def advance(self) -> None:
        if self.state is not SessionState.EVALUATING:
            raise InvalidTransition(f"cannot advance while {self.state.value}")
        nxt = self.index + 1
        if nxt < self.total:
            self._present(nxt)
            return
        self.state = SessionState.COMPLETE
        self.summary = summarize(self._log, self.total)
        xtrace("session_complete", {"correct": self.summary.correct, "score": self.summary.score_percentage})
        self.bus.emit("progress", self.progress())
        self.bus.emit("complete", self.summary)

    def restart(self) -> None:
        self._teardown("restart")
        self._generation += 1
        self.state = SessionState.IDLE
        self.index = 0
        self.retries = 0
        self._log = []
        self.access_denied = None
        self.summary = None
        xtrace("session_restarted", {})
        self.bus.emit("restart", None)

    # --- internals ---

    def _present(self, index: int) -> None:
        self.index = index
        self.retries = 0
        self._attempt = None
        self.state = SessionState.PRESENTING
        prompt = self.prompts[index]
        xtrace("prompt_presented", {"index": index, "prompt": prompt.id})
        self.bus.emit("prompt", PromptView(index=index, total=self.total, prompt=prompt))
        self.bus.emit("progress", self.progress())

    def _teardown(self, reason: str) -> None:
        self.arbiter.cancel(reason)
        self._attempt = None

    def _on_outcome(self, generation: int, index: int, outcome: AttemptOutcome) -> None:
        if generation != self._generation or index != self.index or self.state is not SessionState.AWAITING_ATTEMPT:
            xtrace("stale_outcome_ignored", {"index": index, "outcome": type(outcome).__name__})
            return
        prompt = self.prompts[index]

        if isinstance(outcome, Result):
            transcript = normalize(outcome.transcript)
            result = score(transcript, prompt.expected_answer)
            status = classify(result, self.partial_threshold)
            record = PromptRecord(
                prompt_id=prompt.id,
                transcript=transcript,
                confidence=outcome.confidence,
                status=status,
                similarity=result.similarity,
                retries=self.retries,
            )
            self._finalize(record, fb.for_grade(prompt, status, transcript))
            return

        if is_silence(outcome):
            self.retries += 1
            if self.retries < self.max_retries:
                xtrace("retry", {"index": index, "retries": self.retries})
                self.bus.emit("retry", self.retries)
                self.bus.emit(
                    "feedback", fb.for_retry(self.retries, self.max_retries, outcome.speech_detected)
                )
                return
            record = PromptRecord(
                prompt_id=prompt.id,
                transcript="",
                confidence=0.0,
                status="skipped",
                similarity=None,
                retries=self.max_retries,
            )
            self._finalize(record, fb.for_skip(self.max_retries))
            return

        if isinstance(outcome, Error) and outcome.is_permission:
            # No record: the prompt was never really attempted
            self.access_denied = outcome.code
            self.state = SessionState.PRESENTING
            xtrace("access_denied", {"index": index, "code": outcome.code})
            self.bus.emit("feedback", fb.for_permission(outcome.code))
            return

        if isinstance(outcome, Error):
            record = PromptRecord(
                prompt_id=prompt.id,
                transcript="",
                confidence=0.0,
                status="micError",
                similarity=None,
                retries=self.retries,
                error=outcome.code,
            )
            self._finalize(record, fb.for_error(outcome.code))
            return

        raise TypeError(f"unknown attempt outcome: {outcome!r}")

    def _finalize(self, record: PromptRecord, feedback: fb.Feedback) -> None:
        self._log.append(record)
        self.state = SessionState.EVALUATING
        xtrace("prompt_finalized", {"index": self.index, "status": record.status, "retries": record.retries})
        self.bus.emit("record", record)
        self.bus.emit("feedback", feedback)
        self.bus.emit("progress", self.progress())
