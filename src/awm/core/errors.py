# src/awm/core/errors.py

from __future__ import annotations


class AWMError(Exception):
    """Base class for errors raised by the work manager."""


class InvalidDuration(AWMError, ValueError):
    """A duration literal did not match `<integer><s|m|h|d>` or `daily`."""

    def __init__(self, text: object) -> None:
        self.text = text
        super().__init__(f"Invalid duration: {text!r}")


class StaleWriteError(AWMError):
    """A save was rejected because the row's version stamp moved since it was read."""

    def __init__(self, kind: str, key: str, expected_version: int) -> None:
        self.kind = kind
        self.key = key
        self.expected_version = expected_version
        super().__init__(f"Stale {kind} write for {key!r} (expected version {expected_version})")


class ChannelConfigError(AWMError):
    """The agent -> channel map is unreadable or misses a required agent."""
