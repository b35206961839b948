from __future__ import annotations

"""Session value types: prompts, per-prompt records and renderer views."""

from dataclasses import dataclass
from typing import Literal, Optional

Status = Literal["correct", "partial", "incorrect", "skipped", "micError"]
STATUSES = ("correct", "partial", "incorrect", "skipped", "micError")


@dataclass(frozen=True)
class Prompt:
    id: int
    source_text: str
    expected_answer: str
    pronunciation_hint: str = ""


@dataclass(frozen=True)
class PromptRecord:
    prompt_id: int
    transcript: str
    confidence: float
    status: Status
    similarity: Optional[float]
    retries: int
    error: Optional[str] = None

    @property
    def speech_detected(self) -> bool:
        return self.status not in ("skipped", "micError")


@dataclass(frozen=True)
class PromptView:
    """What the renderer needs to show the current prompt."""

    index: int
    total: int
    prompt: Prompt


@dataclass(frozen=True)
class Progress:
    fraction: float
    correct: int
    total: int

    @property
    def score_text(self) -> str:
        return f"Score: {self.correct}/{self.total}"
