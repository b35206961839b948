"""speakdrill: spoken-answer practice sessions with amplitude-based voice detection."""

__version__ = "0.1.0"

__all__ = ["__version__"]
