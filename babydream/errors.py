from __future__ import annotations


class BabyDreamError(Exception):
    """Base error for the BabyDream core."""


class InputValidationError(BabyDreamError, ValueError):
    """Raised for bad sample rates, durations or malformed config payloads."""


class NotFoundError(BabyDreamError, KeyError):
    """Raised when a sound key is not registered."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "not found"


class InvalidConfigError(BabyDreamError):
    """Raised when a nap config leaves no awake time in the day."""


class PlaybackError(BabyDreamError):
    """Raised when no audio sink is available."""
