from __future__ import annotations

"""Configuration loading and validation for speakdrill.

Loads YAML configuration, merges the chosen device profile, applies
defaults, and validates enumerations and numeric ranges. Unsupported values
fall back with a warning; an unreadable config file is fatal.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import sys

import yaml

from ..app.presets import DEVICE_PROFILES

ALLOWED_PROVIDERS = {"typed", "google"}
ALLOWED_AUDIO_BACKENDS = {"none", "sounddevice"}
ALLOWED_FFT_SIZES = {32, 64, 128, 256, 512, 1024, 2048}


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        print(f"ERROR: Config file not found: {path}", file=sys.stderr)
        sys.exit(1)
    except yaml.YAMLError as e:
        print(f"ERROR: Config file {path} is not valid YAML: {e}", file=sys.stderr)
        sys.exit(1)


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML or the packaged defaults.

    Args:
        path: Optional path to a YAML config. If None, use package defaults.

    Returns:
        A dictionary with configuration values.
    """
    if path:
        return _load_yaml(Path(path))
    return _load_yaml(Path(__file__).with_name("defaults.yml"))


def _apply_profile(cfg: Dict[str, Any]) -> None:
    name = str(cfg.get("device_profile") or "desktop")
    if name not in DEVICE_PROFILES:
        print(f"WARNING: Unknown device_profile '{name}', using 'desktop'.")
        name = "desktop"
    cfg["device_profile"] = name
    for section, values in DEVICE_PROFILES[name].items():
        target = cfg.setdefault(section, {})
        for k, v in values.items():
            target.setdefault(k, v)


def _clamp_number(section: Dict[str, Any], key: str, default: float, lo: float, hi: float, label: str) -> None:
    try:
        value = float(section.get(key, default))
    except (TypeError, ValueError):
        print(f"WARNING: {label}.{key} is not a number, using {default}.")
        section[key] = default
        return
    if not (lo <= value <= hi):
        print(f"WARNING: {label}.{key}={value} out of range [{lo}, {hi}], using {default}.")
        value = default
    section[key] = type(default)(value)


def validate_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply defaults and validate configuration values.

    Args:
        cfg: The raw configuration dictionary.

    Returns:
        The validated and merged configuration dictionary.
    """
    for section in ("vad", "session", "recognition", "audio", "report", "ui"):
        if not isinstance(cfg.get(section), dict):
            cfg[section] = {}

    # Profile first so explicit user values win over it, and it wins over defaults
    _apply_profile(cfg)

    vad = cfg["vad"]
    session = cfg["session"]
    recog = cfg["recognition"]
    audio = cfg["audio"]
    report = cfg["report"]
    ui = cfg["ui"]

    vad.setdefault("voice_threshold", 30.0)
    vad.setdefault("min_speech_ms", 1000.0)
    vad.setdefault("grace_ms", 1500.0)
    vad.setdefault("tick_ms", 16.0)
    vad.setdefault("max_attempt_ms", 15000.0)

    session.setdefault("prompt_set", "french_months")
    session.setdefault("max_retries", 3)
    session.setdefault("partial_threshold", 0.7)
    session.setdefault("auto_advance", False)

    recog.setdefault("provider", "typed")
    recog.setdefault("language", "en-US")
    recog.setdefault("max_alternatives", 5)
    recog.setdefault("listen_timeout_s", 3.0)
    recog.setdefault("phrase_time_limit_s", 5.0)
    # Single-shot, final-only recognition is not configurable
    recog["interim_results"] = False
    recog["continuous"] = False

    audio.setdefault("backend", "none")
    audio.setdefault("device", None)
    audio.setdefault("sample_rate", 48000)
    audio.setdefault("fft_size", 256)
    audio.setdefault("smoothing", 0.8)
    audio.setdefault("min_decibels", -100)
    audio.setdefault("max_decibels", -30)
    audio.setdefault("release_during_recognition", False)

    report.setdefault("enabled", True)
    report.setdefault("output_dir", "./reports")
    report.setdefault("title", "French Months")
    report.setdefault("platform", "speakdrill")

    ui.setdefault("bars", 20)
    ui.setdefault("show_levels", True)

    # Enum validations
    if recog.get("provider") not in ALLOWED_PROVIDERS:
        print(f"WARNING: Unsupported recognition provider '{recog.get('provider')}', using 'typed'.")
        recog["provider"] = "typed"

    if audio.get("backend") not in ALLOWED_AUDIO_BACKENDS:
        print(f"WARNING: Unsupported audio backend '{audio.get('backend')}', using 'none'.")
        audio["backend"] = "none"

    try:
        fft_size = int(audio.get("fft_size"))
    except (TypeError, ValueError):
        fft_size = 0
    if fft_size not in ALLOWED_FFT_SIZES:
        print(f"WARNING: Unsupported fft_size '{audio.get('fft_size')}', using 256.")
        fft_size = 256
    audio["fft_size"] = fft_size

    # Numeric ranges
    _clamp_number(vad, "voice_threshold", 30.0, 0, 255, "vad")
    _clamp_number(vad, "min_speech_ms", 1000.0, 0, 60000, "vad")
    _clamp_number(vad, "grace_ms", 1500.0, 0, 60000, "vad")
    _clamp_number(vad, "tick_ms", 16.0, 1, 1000, "vad")
    _clamp_number(vad, "max_attempt_ms", 15000.0, 0, 600000, "vad")
    _clamp_number(session, "max_retries", 3, 1, 10, "session")
    _clamp_number(session, "partial_threshold", 0.7, 0.0, 1.0, "session")
    _clamp_number(recog, "max_alternatives", 5, 1, 10, "recognition")
    _clamp_number(audio, "smoothing", 0.8, 0.0, 0.99, "audio")

    if float(audio["min_decibels"]) >= float(audio["max_decibels"]):
        print("WARNING: audio.min_decibels must be below max_decibels, using -100/-30.")
        audio["min_decibels"], audio["max_decibels"] = -100, -30

    audio["release_during_recognition"] = bool(audio["release_during_recognition"])
    session["auto_advance"] = bool(session["auto_advance"])
    return cfg
