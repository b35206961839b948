from __future__ import annotations

"""Tiny pub/sub bus between the session core and read-only observers.

Topics used by the core: ``prompt``, ``progress``, ``feedback``, ``levels``,
``record``, ``retry``, ``complete``, ``restart``.
"""

from typing import Any, Callable, Dict, List

from .explain import trace as xtrace

Handler = Callable[[Any], None]


class EventBus:
    def __init__(self) -> None:
        self._subs: Dict[str, List[Handler]] = {}

    def subscribe(self, event: str, handler: Handler) -> None:
        self._subs.setdefault(event, []).append(handler)

    def unsubscribe(self, event: str, handler: Handler) -> None:
        handlers = self._subs.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, payload: Any = None) -> None:
        for h in list(self._subs.get(event, [])):
            try:
                h(payload)
            except Exception as e:
                # Observers must never break the session; note it and move on
                xtrace("observer_failed", {"event": event, "error": repr(e)})
