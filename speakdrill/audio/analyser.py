from __future__ import annotations

"""PCM -> 0-255 frequency magnitude frames.

Mirrors the behavior of a Web Audio analyser node: Blackman window,
magnitude spectrum scaled by FFT size, exponential smoothing between
frames, and a linear map of the [min_db, max_db] decibel range onto 0-255.
"""

import numpy as np


class SpectrumAnalyser:
    def __init__(
        self,
        fft_size: int = 256,
        smoothing: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0,
    ) -> None:
        if fft_size < 2 or fft_size & (fft_size - 1):
            raise ValueError("fft_size must be a power of two")
        if min_decibels >= max_decibels:
            raise ValueError("min_decibels must be below max_decibels")
        self.fft_size = int(fft_size)
        self.smoothing = float(smoothing)
        self.min_decibels = float(min_decibels)
        self.max_decibels = float(max_decibels)
        self._window = np.blackman(self.fft_size).astype(np.float32)
        self._smoothed = np.zeros(self.bin_count, dtype=np.float32)

    @property
    def bin_count(self) -> int:
        return self.fft_size // 2

    def reset(self) -> None:
        self._smoothed[:] = 0.0

    def frame(self, samples: np.ndarray) -> np.ndarray:
        """Byte frequency data for the last ``fft_size`` samples (zero-padded if short)."""
        buf = np.zeros(self.fft_size, dtype=np.float32)
        s = np.asarray(samples, dtype=np.float32).reshape(-1)[-self.fft_size:]
        buf[self.fft_size - s.size:] = s
        spectrum = np.abs(np.fft.rfft(buf * self._window))[: self.bin_count] / self.fft_size
        self._smoothed = (self.smoothing * self._smoothed + (1.0 - self.smoothing) * spectrum).astype(np.float32)
        db = 20.0 * np.log10(np.maximum(self._smoothed, 1e-12))
        scaled = (db - self.min_decibels) / (self.max_decibels - self.min_decibels) * 255.0
        return np.clip(scaled, 0, 255).astype(np.uint8)
