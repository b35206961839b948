from __future__ import annotations

"""Pydantic models for the exportable session report.

Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class _ReportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GameInfo(_ReportModel):
    title: str
    platform: str
    total_questions: int = Field(ge=1)


class ReportRecord(_ReportModel):
    prompt_id: int
    question: str
    expected: str
    pronunciation: str = ""
    transcript: str = ""
    confidence: float = Field(ge=0.0, le=1.0)
    confidence_percent: int = Field(ge=0, le=100)
    speech_detected: bool
    status: Literal["correct", "partial", "incorrect", "skipped", "micError"]
    similarity: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    retries: int = Field(ge=0)
    error: Optional[str] = None

    @model_validator(mode="after")
    def _status_consistency(self) -> "ReportRecord":
        if self.status == "skipped" and self.transcript:
            raise ValueError("skipped records carry no transcript")
        if self.status == "micError" and not self.error:
            raise ValueError("micError records must name the error code")
        return self


class ReportSummary(_ReportModel):
    total: int = Field(ge=0)
    total_attempts: int = Field(ge=0)
    correct: int = Field(ge=0)
    partial: int = Field(ge=0)
    incorrect: int = Field(ge=0)
    skipped: int = Field(ge=0)
    errors: int = Field(ge=0)
    total_retries: int = Field(ge=0)
    avg_confidence: float = Field(ge=0.0, le=1.0)
    avg_confidence_percent: float = Field(ge=0.0, le=100.0)
    accuracy_rate: float = Field(ge=0.0, le=1.0)
    accuracy_rate_percent: float = Field(ge=0.0, le=100.0)
    score_percentage: float = Field(ge=0.0, le=100.0)

    @model_validator(mode="after")
    def _counts_add_up(self) -> "ReportSummary":
        parts = self.correct + self.partial + self.incorrect + self.skipped + self.errors
        if parts != self.total_attempts:
            raise ValueError("status counts must add up to total_attempts")
        return self


class SessionReport(_ReportModel):
    session_id: str
    timestamp: datetime
    game_info: GameInfo
    results: List[ReportRecord]
    summary: ReportSummary

    @field_validator("timestamp")
    @classmethod
    def _ensure_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)
