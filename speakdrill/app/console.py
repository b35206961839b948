from __future__ import annotations

"""Console renderer: a read-only observer of the session event bus."""

import sys
from typing import Optional, TextIO

from ..session.feedback import Feedback
from ..session.models import Progress, PromptRecord, PromptView
from ..stats.stats import SessionSummary
from ..vad.monitor import BAR_MAX_HEIGHT
from .events import EventBus

_MARKS = {"correct": "[OK]", "warning": "[..]", "incorrect": "[XX]", "error": "[!!]"}
_GLYPHS = " ▁▂▃▄▅▆▇█"


class ConsoleRenderer:
    def __init__(self, stream: Optional[TextIO] = None, *, show_levels: bool = True) -> None:
        self.out = stream or sys.stdout
        self.show_levels = show_levels
        self._meter_drawn = False

    def _handlers(self):
        handlers = {
            "prompt": self.on_prompt,
            "progress": self.on_progress,
            "feedback": self.on_feedback,
            "record": self.on_record,
            "complete": self.on_complete,
        }
        if self.show_levels:
            handlers["levels"] = self.on_levels
        return handlers

    def attach(self, bus: EventBus) -> None:
        for topic, handler in self._handlers().items():
            bus.subscribe(topic, handler)

    def detach(self, bus: EventBus) -> None:
        for topic, handler in self._handlers().items():
            bus.unsubscribe(topic, handler)

    def _line(self, text: str) -> None:
        if self._meter_drawn:
            self.out.write("\n")
            self._meter_drawn = False
        print(text, file=self.out)

    def on_prompt(self, view: PromptView) -> None:
        p = view.prompt
        self._line("")
        self._line(f"Question {view.index + 1}/{view.total}: {p.source_text}")
        if p.pronunciation_hint:
            self._line(f"  (say: {p.pronunciation_hint})")

    def on_progress(self, progress: Progress) -> None:
        filled = int(round(progress.fraction * 20))
        self._line(f"[{'#' * filled}{'-' * (20 - filled)}] {progress.score_text}")

    def on_feedback(self, feedback: Feedback) -> None:
        self._line(f"{_MARKS.get(feedback.category, '[..]')} {feedback.text}")

    def on_record(self, record: PromptRecord) -> None:
        if record.status in ("correct", "partial", "incorrect"):
            self._line(f"  heard: {record.transcript!r} ({record.confidence * 100:.0f}% confidence)")

    def on_complete(self, summary: SessionSummary) -> None:
        self._line(f"Session complete: {summary.correct}/{summary.total} ({summary.score_percentage:.0f}%)")

    def on_levels(self, levels) -> None:
        if not levels.listening:
            return
        top = len(_GLYPHS) - 1
        meter = "".join(_GLYPHS[min(top, int(h / BAR_MAX_HEIGHT * top))] for h in levels.bars)
        state = "speaking" if levels.active else "listening"
        self.out.write(f"\r{meter} {state:<9}")
        self.out.flush()
        self._meter_drawn = True
