from __future__ import annotations

"""Speech-to-text provider interface.

Concrete providers implement ``start``/``stop`` for one attempt at a time
and report back through ``attempt.deliver(event)``. Providers that work on
background threads derive from :class:`QueuedProvider` and post events to
an inbox; the session tick drains it with ``pump()`` so delivery happens on
the same context as the rest of the core.
"""

import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Tuple

from .outcomes import ProviderEvent


class RecognitionUnavailable(RuntimeError):
    """No provider, or the provider refused to start an attempt."""


@dataclass
class RecognitionConfig:
    language: str = "en-US"
    # Always single-shot, final-only recognition
    interim_results: bool = False
    continuous: bool = False
    max_alternatives: int = 5
    listen_timeout_s: float = 3.0
    phrase_time_limit_s: float = 5.0


class SpeechProvider:
    """Abstract-like provider interface."""

    name = "base"

    def __init__(self, config: RecognitionConfig | None = None) -> None:
        self.config = config or RecognitionConfig()

    def available(self) -> bool:
        return True

    def start(self, attempt) -> None:
        """Begin listening for ``attempt``; raise RecognitionUnavailable if impossible."""
        raise NotImplementedError

    def stop(self, attempt) -> None:
        """Ask the engine to finish with what it has captured so far."""
        raise NotImplementedError

    def abort(self, attempt) -> None:
        """Drop ``attempt`` without caring about its result."""
        self.stop(attempt)

    def pump(self) -> int:
        """Deliver queued events; synchronous providers have nothing to do."""
        return 0

    def close(self) -> None:
        pass


class QueuedProvider(SpeechProvider):
    """Base for providers whose engine runs on a worker thread."""

    def __init__(self, config: RecognitionConfig | None = None) -> None:
        super().__init__(config)
        self._inbox: "queue.Queue[Tuple[Any, ProviderEvent]]" = queue.Queue()

    def post(self, attempt, event: ProviderEvent) -> None:
        """Thread-safe: called from worker threads."""
        self._inbox.put((attempt, event))

    def pump(self) -> int:
        delivered = 0
        while True:
            try:
                attempt, event = self._inbox.get_nowait()
            except queue.Empty:
                break
            attempt.deliver(event)
            delivered += 1
        return delivered

    def _spawn(self, target: Callable[..., None], *args: Any, name: str = "stt-worker") -> threading.Thread:
        t = threading.Thread(target=target, args=args, name=name, daemon=True)
        t.start()
        return t
