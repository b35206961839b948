from __future__ import annotations

"""Provider events (raw signals) and resolved attempt outcomes."""

from dataclasses import dataclass
from typing import Union

# Provider error codes, following the Web Speech API vocabulary
NO_SPEECH = "no-speech"
ABORTED = "aborted"
NOT_ALLOWED = "not-allowed"
SERVICE_NOT_ALLOWED = "service-not-allowed"
NETWORK = "network"
AUDIO_CAPTURE = "audio-capture"

PERMISSION_CODES = frozenset({NOT_ALLOWED, SERVICE_NOT_ALLOWED})


# --- provider -> arbiter ---

@dataclass(frozen=True)
class ProviderResult:
    transcript: str
    confidence: float


@dataclass(frozen=True)
class ProviderNoSpeech:
    pass


@dataclass(frozen=True)
class ProviderError:
    code: str


@dataclass(frozen=True)
class ProviderEnd:
    pass


ProviderEvent = Union[ProviderResult, ProviderNoSpeech, ProviderError, ProviderEnd]


# --- arbiter -> session ---

@dataclass(frozen=True)
class Result:
    transcript: str
    confidence: float


@dataclass(frozen=True)
class NoSpeech:
    speech_detected: bool = False


@dataclass(frozen=True)
class Error:
    code: str

    @property
    def is_permission(self) -> bool:
        return self.code in PERMISSION_CODES


@dataclass(frozen=True)
class Aborted:
    speech_detected: bool = False


AttemptOutcome = Union[Result, NoSpeech, Error, Aborted]


def is_silence(outcome: AttemptOutcome) -> bool:
    """NoSpeech and Aborted both count as a retryable silent attempt."""
    return isinstance(outcome, (NoSpeech, Aborted))
