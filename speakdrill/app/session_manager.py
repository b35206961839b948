from __future__ import annotations

"""Session Manager: the cooperative run loop.

Wires the audio source, amplitude monitor, timer queue, recognition
arbiter and session state machine together. Everything that mutates
session state happens inside ``tick()`` on the caller's thread; worker
threads owned by providers only post into an inbox drained here.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..audio.source import AudioSource, AudioUnavailable
from ..recognition.arbiter import RecognitionArbiter, RecognitionAttempt
from ..recognition.provider import RecognitionUnavailable, SpeechProvider
from ..session.machine import SessionState, SessionStateMachine
from ..session.models import Prompt
from ..stats.stats import SessionSummary
from ..util.timers import MonotonicClock, TimerQueue
from ..vad.monitor import AmplitudeMonitor, level_bars
from .events import EventBus
from .explain import trace as xtrace


@dataclass(frozen=True)
class Levels:
    """Visualization signal published on every sampled tick."""

    bars: List[int]
    active: bool
    listening: bool


@dataclass(frozen=True)
class SessionContext:
    started_at: datetime
    prompt_set: str
    provider: str
    device_profile: str


class SessionManager:
    def __init__(
        self,
        cfg: Dict[str, Any],
        prompts: Sequence[Prompt],
        audio: AudioSource,
        provider: SpeechProvider,
        *,
        bus: Optional[EventBus] = None,
        clock=None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.cfg = cfg
        self.audio = audio
        self.provider = provider
        self.bus = bus or EventBus()
        self.clock = clock or MonotonicClock()
        self._sleep = sleep or time.sleep

        vad = cfg.get("vad", {})
        session = cfg.get("session", {})
        self.tick_ms = float(vad.get("tick_ms", 16))
        self.bar_count = int(cfg.get("ui", {}).get("bars", 20))
        self.auto_advance = bool(session.get("auto_advance", False))

        self.timers = TimerQueue(self.clock)
        self.monitor = AmplitudeMonitor(
            threshold=float(vad.get("voice_threshold", 30)),
            min_speech_ms=float(vad.get("min_speech_ms", 1000)),
            clock=self.clock,
        )
        self.arbiter = RecognitionArbiter(
            provider,
            self.timers,
            audio=audio,
            grace_ms=float(vad.get("grace_ms", 1500)),
            max_attempt_ms=vad.get("max_attempt_ms"),
        )
        self.machine = SessionStateMachine(
            prompts,
            self.arbiter,
            max_retries=int(session.get("max_retries", 3)),
            partial_threshold=float(session.get("partial_threshold", 0.7)),
            bus=self.bus,
        )
        self.ctx: Optional[SessionContext] = None
        self.levels_enabled = False

    # --- lifecycle ---

    def open(self) -> bool:
        """Start sampling. Returns False when the level meter is unavailable."""
        try:
            self.audio.start_capture()
        except AudioUnavailable as e:
            self.levels_enabled = False
            xtrace("audio_unavailable", {"code": e.code, "error": str(e)})
            return False
        self.levels_enabled = True
        xtrace("audio_opened", {"source": type(self.audio).__name__})
        return True

    def start_session(self) -> None:
        self.ctx = SessionContext(
            started_at=datetime.now(timezone.utc),
            prompt_set=str(self.cfg.get("session", {}).get("prompt_set", "")),
            provider=self.provider.name,
            device_profile=str(self.cfg.get("device_profile", "desktop")),
        )
        self.monitor.reset()
        self.machine.start()
        xtrace("session_opened", {"set": self.ctx.prompt_set, "provider": self.ctx.provider})

    def close(self) -> None:
        """Tear down: stop sampling, cancel the attempt and every pending timer."""
        self.arbiter.cancel("close")
        self.timers.cancel_all()
        if self.audio.capturing:
            self.audio.stop_capture()
        self.levels_enabled = False
        self.provider.close()
        xtrace("session_closed", {})

    def restart(self) -> None:
        self.timers.cancel_all()
        self.monitor.reset()
        self.machine.restart()
        self.ctx = None

    # --- the loop ---

    def tick(self) -> None:
        now = self.clock.now_ms()
        self.provider.pump()
        if self.audio.capturing:
            frame = self.audio.read_frame()
            if frame is not None:
                event = self.monitor.observe(frame, now)
                self.bus.emit(
                    "levels",
                    Levels(
                        bars=level_bars(frame, self.bar_count),
                        active=self.monitor.active,
                        listening=self.arbiter.listening,
                    ),
                )
                if event is not None and self.arbiter.listening:
                    self.arbiter.on_speaking_event(event)
        self.timers.run_due(now)

    def listen(self) -> RecognitionAttempt:
        """Begin one attempt and tick until the arbiter resolves it."""
        self.monitor.reset()
        attempt = self.machine.begin_attempt()
        while not attempt.terminal:
            self.tick()
            if attempt.terminal:
                break
            self._sleep(self.tick_ms / 1000.0)
        if self.machine.access_denied is not None:
            raise RecognitionUnavailable(f"microphone access denied ({self.machine.access_denied})")
        return attempt

    def run(self, ui: Dict[str, Callable[[str], Any]]) -> Optional[SessionSummary]:
        """Drive the whole session from the terminal.

        ``ui`` callbacks: ``ready`` is called before each attempt (a reply of
        ``q`` quits), ``ask`` waits between prompts, ``inform`` prints.
        Returns the summary, or None if the user quit early.
        """
        ready = ui.get("ready", lambda _msg: "")
        ask = ui.get("ask", lambda _msg: "")
        inform = ui.get("inform", lambda _msg: None)

        if self.ctx is None:
            self.start_session()

        def quit_requested(reply: Any) -> bool:
            if str(reply or "").strip().lower() != "q":
                return False
            inform("Session stopped.")
            xtrace("session_quit", {"index": machine.index})
            return True

        machine = self.machine
        while machine.state is not SessionState.COMPLETE:
            if machine.state in (SessionState.PRESENTING, SessionState.AWAITING_ATTEMPT):
                if quit_requested(ready("Press Enter and answer aloud (q to quit)... ")):
                    return None
                self.listen()
            elif machine.state is SessionState.EVALUATING:
                if not self.auto_advance and quit_requested(ask("Press Enter for the next prompt (q to quit)... ")):
                    return None
                machine.advance()
            else:
                raise RuntimeError(f"session is {machine.state.value}; call start_session() first")
        return machine.summary
