from __future__ import annotations

"""Concrete speech providers and the config factory."""

import threading
from typing import Any, Callable, Dict, Optional

import numpy as np

from ..app.explain import trace as xtrace
from .outcomes import (
    ABORTED,
    AUDIO_CAPTURE,
    NETWORK,
    ProviderEnd,
    ProviderError,
    ProviderNoSpeech,
    ProviderResult,
)
from .provider import QueuedProvider, RecognitionConfig, RecognitionUnavailable, SpeechProvider


class TypedProvider(SpeechProvider):
    """Stand-in recognizer: the user types what they would have said.

    Answers are read synchronously when the attempt starts, so the outcome
    is delivered before ``start`` returns. An empty line counts as silence.
    """

    name = "typed"

    def __init__(self, config: RecognitionConfig | None = None, input_fn: Optional[Callable[[str], str]] = None) -> None:
        super().__init__(config)
        self._input = input_fn or input

    def start(self, attempt) -> None:
        try:
            text = self._input("Say it (type your answer, Enter for silence): ")
        except EOFError:
            attempt.deliver(ProviderError(ABORTED))
            return
        text = (text or "").strip()
        if text:
            attempt.deliver(ProviderResult(transcript=text, confidence=1.0))
        else:
            attempt.deliver(ProviderNoSpeech())
        attempt.deliver(ProviderEnd())

    def stop(self, attempt) -> None:
        # Nothing is ever left running
        pass


def _best_alternative(response: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(response, dict):
        return None
    alternatives = response.get("alternative") or []
    for alt in alternatives:
        if str(alt.get("transcript", "")).strip():
            return alt
    return None


class _Capture:
    """Per-attempt control shared with the worker thread."""

    def __init__(self) -> None:
        self.stop = threading.Event()
        self.aborted = False


_SAMPLE_DTYPES = {1: np.int8, 2: np.int16, 4: np.int32}


def _rms(frame_data: bytes, sample_width: int) -> float:
    samples = np.frombuffer(frame_data, dtype=_SAMPLE_DTYPES.get(sample_width, np.int16))
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(samples.astype(np.float64)))))


class GoogleWebProvider(QueuedProvider):
    """Google Web Speech through the speech_recognition package.

    A worker thread reads microphone chunks until ``stop`` is requested or
    ``listen_timeout_s + phrase_time_limit_s`` have elapsed, then sends what
    it captured to the recognizer. Audio whose energy never rises above the
    recognizer's threshold is reported as no speech without a network call.
    Events reach the arbiter through the inbox drained by ``pump()``.
    """

    name = "google"

    def __init__(self, config: RecognitionConfig | None = None, device_index: Optional[int] = None) -> None:
        super().__init__(config)
        try:
            import speech_recognition  # type: ignore
        except Exception as e:  # pragma: no cover - runtime dependency
            raise RuntimeError("SpeechRecognition is not installed") from e
        self._sr = speech_recognition
        self._recognizer = speech_recognition.Recognizer()
        self._device_index = device_index
        self._lock = threading.Lock()
        self._captures: Dict[int, _Capture] = {}

    def start(self, attempt) -> None:
        try:
            mic = self._sr.Microphone(device_index=self._device_index)
        except (AssertionError, AttributeError, OSError) as e:
            # AssertionError: bad device index; AttributeError: PyAudio missing; OSError: no input device
            raise RecognitionUnavailable(f"microphone unavailable: {e}") from e
        with self._lock:
            self._captures[attempt.id] = _Capture()
        self._spawn(self._listen, attempt, mic, name=f"stt-{attempt.id}")

    def stop(self, attempt) -> None:
        capture = self._capture_for(attempt)
        if capture is not None:
            capture.stop.set()
            xtrace("provider_stop_requested", {"attempt": attempt.id})

    def abort(self, attempt) -> None:
        capture = self._capture_for(attempt)
        if capture is not None:
            capture.aborted = True
            capture.stop.set()

    def pending_attempts(self) -> int:
        with self._lock:
            return len(self._captures)

    def _capture_for(self, attempt) -> Optional[_Capture]:
        with self._lock:
            return self._captures.get(attempt.id)

    def _release(self, attempt) -> None:
        with self._lock:
            self._captures.pop(attempt.id, None)

    def _record(self, source, capture: _Capture) -> bytes:
        cfg = self.config
        max_chunks = int((cfg.listen_timeout_s + cfg.phrase_time_limit_s) * source.SAMPLE_RATE / source.CHUNK) + 1
        chunks = []
        while len(chunks) < max_chunks and not capture.stop.is_set():
            chunks.append(source.stream.read(source.CHUNK))
        return b"".join(chunks)

    def _listen(self, attempt, mic) -> None:
        capture = self._capture_for(attempt) or _Capture()
        try:
            self._transcribe(attempt, mic, capture)
        finally:
            self._release(attempt)

    def _transcribe(self, attempt, mic, capture: _Capture) -> None:
        sr = self._sr
        cfg = self.config
        try:
            with mic as source:
                frame_data = self._record(source, capture)
                sample_rate, sample_width = source.SAMPLE_RATE, source.SAMPLE_WIDTH
        except OSError as e:
            xtrace("provider_capture_failed", {"attempt": attempt.id, "error": str(e)})
            self.post(attempt, ProviderError(AUDIO_CAPTURE))
            return

        if capture.aborted:
            self.post(attempt, ProviderError(ABORTED))
            return

        if _rms(frame_data, sample_width) <= float(self._recognizer.energy_threshold):
            self.post(attempt, ProviderNoSpeech())
            self.post(attempt, ProviderEnd())
            return

        audio = sr.AudioData(frame_data, sample_rate, sample_width)
        try:
            response = self._recognizer.recognize_google(audio, language=cfg.language, show_all=True)
        except sr.RequestError as e:
            xtrace("provider_request_failed", {"attempt": attempt.id, "error": str(e)})
            self.post(attempt, ProviderError(NETWORK))
            return

        best = _best_alternative(response)
        if best is None:
            self.post(attempt, ProviderNoSpeech())
        else:
            self.post(
                attempt,
                ProviderResult(
                    transcript=str(best["transcript"]).strip().lower(),
                    confidence=float(best.get("confidence", 0.0)),
                ),
            )
        self.post(attempt, ProviderEnd())


def make_provider_from_config(cfg: Dict, input_fn: Optional[Callable[[str], str]] = None) -> SpeechProvider:
    """Factory for SpeechProvider from config dict."""
    recog = cfg.get("recognition", {})
    rc = RecognitionConfig(
        language=str(recog.get("language", "en-US")),
        max_alternatives=int(recog.get("max_alternatives", 5)),
        listen_timeout_s=float(recog.get("listen_timeout_s", 3.0)),
        phrase_time_limit_s=float(recog.get("phrase_time_limit_s", 5.0)),
    )
    name = recog.get("provider", "typed")
    if name == "typed":
        return TypedProvider(rc, input_fn=input_fn)
    if name == "google":
        device = cfg.get("audio", {}).get("device")
        return GoogleWebProvider(rc, device_index=device if isinstance(device, int) else None)
    raise ValueError(f"Unsupported recognition provider: {name}")
