from __future__ import annotations

"""Device profiles: per-platform capture and recognition policy.

A profile only sets values the user did not set explicitly in their
config file. This is where platform differences live; the core reads the
resulting policy values and never inspects the platform itself.
"""

DEVICE_PROFILES = {
    "desktop": {
        "audio": {"release_during_recognition": False, "smoothing": 0.8},
        "recognition": {"max_alternatives": 5},
    },
    "android": {
        # The recognizer needs the microphone to itself
        "audio": {"release_during_recognition": True, "smoothing": 0.85, "sample_rate": 48000},
        "recognition": {"max_alternatives": 3},
    },
    "ios": {
        "audio": {"release_during_recognition": False, "smoothing": 0.85, "sample_rate": 48000},
        "recognition": {"max_alternatives": 3},
    },
}
