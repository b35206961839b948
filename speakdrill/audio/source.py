from __future__ import annotations

"""Audio source interface.

A source hands the session one amplitude frame per tick (0-255 bin
magnitudes) while capture is running. Device specifics stay in concrete
subclasses; the only policy the core reads is ``release_during_recognition``.
"""

from typing import Optional

import numpy as np

PERMISSION_DENIED = "permission-denied"
DEVICE_UNAVAILABLE = "device-unavailable"


class AudioUnavailable(OSError):
    """Capture could not be started; ``code`` says why."""

    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or code)
        self.code = code


class AudioSource:
    """Abstract-like capture interface."""

    def __init__(self, release_during_recognition: bool = False) -> None:
        # Some devices cannot share the microphone with the recognizer
        self.release_during_recognition = bool(release_during_recognition)
        self._capturing = False

    @property
    def capturing(self) -> bool:
        return self._capturing

    def start_capture(self) -> None:
        raise NotImplementedError

    def stop_capture(self) -> None:
        raise NotImplementedError

    def read_frame(self) -> Optional[np.ndarray]:
        """Latest frame, or None when not capturing / nothing new."""
        raise NotImplementedError

    def close(self) -> None:
        if self._capturing:
            self.stop_capture()


class SilentSource(AudioSource):
    """Source for setups without a microphone: always-quiet frames."""

    def __init__(self, bins: int = 128, release_during_recognition: bool = False) -> None:
        super().__init__(release_during_recognition=release_during_recognition)
        self.bins = int(bins)

    def start_capture(self) -> None:
        self._capturing = True

    def stop_capture(self) -> None:
        self._capturing = False

    def read_frame(self) -> Optional[np.ndarray]:
        if not self._capturing:
            return None
        return np.zeros(self.bins, dtype=np.uint8)
