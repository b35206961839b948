from __future__ import annotations

"""Microphone capture via sounddevice."""

import threading
from typing import Any, Dict, Optional

import numpy as np

from .analyser import SpectrumAnalyser
from .source import DEVICE_UNAVAILABLE, PERMISSION_DENIED, AudioSource, AudioUnavailable, SilentSource


class SoundDeviceSource(AudioSource):
    """Concrete AudioSource using a sounddevice input stream.

    The stream callback only copies samples into a ring buffer; spectrum
    frames are computed on the caller's thread in ``read_frame``.
    """

    def __init__(
        self,
        sample_rate: int = 48000,
        fft_size: int = 256,
        smoothing: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0,
        device: Any = None,
        release_during_recognition: bool = False,
    ) -> None:
        super().__init__(release_during_recognition=release_during_recognition)
        try:
            import sounddevice  # type: ignore
        except Exception as e:  # pragma: no cover - runtime dependency
            raise RuntimeError("sounddevice is not installed") from e

        self._sd = sounddevice
        self.sample_rate = int(sample_rate)
        self.device = device
        self.analyser = SpectrumAnalyser(fft_size, smoothing, min_decibels, max_decibels)
        self._ring = np.zeros(self.analyser.fft_size, dtype=np.float32)
        self._lock = threading.Lock()
        self._stream = None

    def _record_callback(self, indata, frames, time_info, status) -> None:
        block = np.asarray(indata, dtype=np.float32)
        if block.ndim > 1:
            block = block[:, 0]
        with self._lock:
            n = block.size
            size = self._ring.size
            if n >= size:
                self._ring[:] = block[-size:]
            elif n:
                self._ring = np.roll(self._ring, -n)
                self._ring[-n:] = block

    def start_capture(self) -> None:
        if self._capturing:
            return
        try:
            stream = self._sd.InputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                blocksize=self.analyser.fft_size,
                device=self.device,
                callback=self._record_callback,
            )
            stream.start()
        except self._sd.PortAudioError as e:
            code = PERMISSION_DENIED if "permission" in str(e).lower() else DEVICE_UNAVAILABLE
            raise AudioUnavailable(code, str(e)) from e
        self._stream = stream
        self.analyser.reset()
        self._capturing = True

    def stop_capture(self) -> None:
        stream, self._stream = self._stream, None
        self._capturing = False
        if stream is not None:
            try:
                stream.stop()
            finally:
                stream.close()

    def read_frame(self) -> Optional[np.ndarray]:
        if not self._capturing:
            return None
        with self._lock:
            samples = self._ring.copy()
        return self.analyser.frame(samples)


def make_audio_source_from_config(cfg: Dict) -> AudioSource:
    """Factory for AudioSource from config dict."""
    audio = cfg.get("audio", {})
    backend = audio.get("backend", "none")
    release = bool(audio.get("release_during_recognition", False))
    if backend == "sounddevice":
        return SoundDeviceSource(
            sample_rate=int(audio.get("sample_rate", 48000)),
            fft_size=int(audio.get("fft_size", 256)),
            smoothing=float(audio.get("smoothing", 0.8)),
            min_decibels=float(audio.get("min_decibels", -100)),
            max_decibels=float(audio.get("max_decibels", -30)),
            device=audio.get("device"),
            release_during_recognition=release,
        )
    if backend == "none":
        return SilentSource(bins=int(audio.get("fft_size", 256)) // 2, release_during_recognition=release)
    raise ValueError(f"Unsupported audio backend: {backend}")
