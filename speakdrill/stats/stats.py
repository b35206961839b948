from __future__ import annotations

"""Session aggregation over the prompt log, and a readable summary."""

from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from ..session.models import STATUSES, Prompt, PromptRecord

RECORD_COLUMNS = ["prompt_id", "transcript", "confidence", "status", "similarity", "retries", "error"]


@dataclass(frozen=True)
class SessionSummary:
    total: int
    total_attempts: int
    correct: int
    partial: int
    incorrect: int
    skipped: int
    errors: int
    total_retries: int
    avg_confidence: float
    accuracy_rate: float
    score_percentage: float


def records_frame(records: Iterable[PromptRecord]) -> pd.DataFrame:
    """One row per PromptRecord with numeric confidence/retries columns."""
    df = pd.DataFrame([asdict(r) for r in records], columns=RECORD_COLUMNS)
    df["confidence"] = df["confidence"].astype("float64")
    df["retries"] = df["retries"].astype("int64")
    return df


def summarize(records: Sequence[PromptRecord], total_prompts: int) -> SessionSummary:
    """Counts per status, mean confidence over records with confidence > 0,
    accuracy (correct / records) and score (correct / prompts, in percent)."""
    df = records_frame(records)
    unknown = set(df["status"]) - set(STATUSES)
    if unknown:
        raise ValueError(f"unknown record status: {sorted(unknown)}")
    counts = df["status"].value_counts().reindex(list(STATUSES), fill_value=0)

    def n(status: str) -> int:
        return int(counts.get(status, 0))

    confident = df.loc[df["confidence"] > 0, "confidence"]
    attempts = int(len(df))
    correct = n("correct")
    return SessionSummary(
        total=int(total_prompts),
        total_attempts=attempts,
        correct=correct,
        partial=n("partial"),
        incorrect=n("incorrect"),
        skipped=n("skipped"),
        errors=n("micError"),
        total_retries=int(df["retries"].sum()),
        avg_confidence=float(confident.mean()) if not confident.empty else 0.0,
        accuracy_rate=(correct / attempts) if attempts else 0.0,
        score_percentage=(correct / total_prompts * 100.0) if total_prompts else 0.0,
    )


def format_summary(
    summary: SessionSummary,
    records: Sequence[PromptRecord] = (),
    prompts: Optional[Sequence[Prompt]] = None,
) -> str:
    """Return a human-readable summary, optionally followed by one line per prompt."""
    lines: List[str] = [
        f"Final Score: {summary.correct}/{summary.total} ({summary.score_percentage:.1f}%)",
        f"Accuracy Rate: {summary.accuracy_rate * 100:.1f}%",
        f"Correct: {summary.correct}",
        f"Partial/Close: {summary.partial}",
        f"Incorrect: {summary.incorrect}",
        f"Skipped: {summary.skipped}",
    ]
    if summary.errors > 0:
        lines.append(f"Errors: {summary.errors}")
    lines.append(f"Avg Confidence: {summary.avg_confidence * 100:.1f}%")

    by_id: Dict[int, Prompt] = {p.id: p for p in (prompts or [])}
    for r in records:
        p = by_id.get(r.prompt_id)
        head = f"{p.source_text} → {p.expected_answer}" if p else f"#{r.prompt_id}"
        said = r.transcript or "No response"
        line = f"[{r.status}] {head} | You said: \"{said}\""
        if r.confidence > 0:
            line += f" ({round(r.confidence * 100)}% confidence)"
        if r.retries > 0:
            line += f" [{r.retries} retries]"
        lines.append(line)
    return "\n".join(lines)
