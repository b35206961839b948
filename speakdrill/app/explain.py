from __future__ import annotations

"""Explain mode: terse one-line JSON traces at session milestones.

Off by default; the CLI turns it on with ``--explain``. Tests may redirect
the output stream with :func:`set_stream`.
"""

import json
import sys
from typing import Any, Dict, Optional, TextIO

_ENABLED = False
_STREAM: Optional[TextIO] = None


def enable(flag: bool = True) -> None:
    global _ENABLED
    _ENABLED = bool(flag)


def enabled() -> bool:
    return _ENABLED


def set_stream(stream: Optional[TextIO]) -> None:
    """Send traces to ``stream`` instead of stdout (None restores stdout)."""
    global _STREAM
    _STREAM = stream


def trace(event: str, payload: Dict[str, Any] | None = None) -> None:
    if not _ENABLED:
        return
    out = _STREAM or sys.stdout
    try:
        line = json.dumps(payload or {}, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        line = "{}"
    print(f"[EXPLAIN] {event} :: {line}", file=out)
