from __future__ import annotations

"""Build the session report from a finished log and write it as JSON."""

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from ..app.explain import trace as xtrace
from ..session.models import Prompt, PromptRecord
from ..stats.stats import SessionSummary
from .schema import GameInfo, ReportRecord, ReportSummary, SessionReport


def _slug(title: str) -> str:
    s = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return s or "session"


def make_session_id(title: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{_slug(title)}-{now.strftime('%Y-%m-%d')}-{int(now.timestamp() * 1000)}"


def build_report(
    records: Sequence[PromptRecord],
    summary: SessionSummary,
    prompts: Sequence[Prompt],
    *,
    title: str = "Speaking Practice",
    platform: str = "speakdrill",
    now: Optional[datetime] = None,
) -> SessionReport:
    now = now or datetime.now(timezone.utc)
    by_id = {p.id: p for p in prompts}
    results = []
    for r in records:
        p = by_id[r.prompt_id]
        results.append(
            ReportRecord(
                prompt_id=r.prompt_id,
                question=p.source_text,
                expected=p.expected_answer,
                pronunciation=p.pronunciation_hint,
                transcript=r.transcript,
                confidence=r.confidence,
                confidence_percent=round(r.confidence * 100),
                speech_detected=r.speech_detected,
                status=r.status,
                similarity=r.similarity,
                retries=r.retries,
                error=r.error,
            )
        )
    report_summary = ReportSummary(
        total=summary.total,
        total_attempts=summary.total_attempts,
        correct=summary.correct,
        partial=summary.partial,
        incorrect=summary.incorrect,
        skipped=summary.skipped,
        errors=summary.errors,
        total_retries=summary.total_retries,
        avg_confidence=round(summary.avg_confidence, 4),
        avg_confidence_percent=round(summary.avg_confidence * 100, 2),
        accuracy_rate=round(summary.accuracy_rate, 4),
        accuracy_rate_percent=round(summary.accuracy_rate * 100, 2),
        score_percentage=round(summary.score_percentage, 2),
    )
    return SessionReport(
        session_id=make_session_id(title, now),
        timestamp=now,
        game_info=GameInfo(title=title, platform=platform, total_questions=len(prompts)),
        results=results,
        summary=report_summary,
    )


def write_report(report: SessionReport, output_dir: str | Path) -> Path:
    """Write ``<session_id>.json`` under output_dir and return its path."""
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    path = out / f"{report.session_id}.json"
    path.write_text(report.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    xtrace("report_written", {"path": str(path)})
    return path
