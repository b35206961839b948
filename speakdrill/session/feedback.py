from __future__ import annotations

"""User-facing feedback lines for each way a prompt can end."""

from dataclasses import dataclass
from typing import Literal

from .models import Prompt

Category = Literal["correct", "warning", "incorrect", "error"]


@dataclass(frozen=True)
class Feedback:
    text: str
    category: Category


def for_grade(prompt: Prompt, status: str, transcript: str) -> Feedback:
    if status == "correct":
        return Feedback(f'Correct! "{prompt.source_text}" → "{prompt.expected_answer}"', "correct")
    if status == "partial":
        return Feedback(f'Close! You said "{transcript}". Correct answer: "{prompt.expected_answer}"', "warning")
    return Feedback(f'Incorrect. You said "{transcript}". Correct answer: "{prompt.expected_answer}"', "incorrect")


def for_retry(retries: int, max_retries: int, speech_detected: bool = False) -> Feedback:
    lead = "Couldn't make that out" if speech_detected else "No speech detected"
    return Feedback(f"{lead}. Try again ({retries}/{max_retries})", "warning")


def for_skip(max_retries: int) -> Feedback:
    return Feedback(f"No speech detected after {max_retries} attempts. Moving to next question.", "warning")


def for_error(code: str) -> Feedback:
    return Feedback(f"Microphone error: {code}. Continue to the next question.", "error")


def for_unavailable(reason: str) -> Feedback:
    return Feedback(f"Speech recognition not available: {reason}", "error")


def for_permission(code: str) -> Feedback:
    return Feedback(
        f"Microphone access denied ({code}). Allow microphone access and restart the session.", "error"
    )
