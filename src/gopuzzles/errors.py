"""Typed errors raised by the tracker engines and stores."""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for errors reported back to the caller."""
    code = "error"


class NotFound(TrackerError):
    """Referenced puzzle or collection does not exist (or is not visible)."""
    code = "not_found"


class InvalidArgument(TrackerError, ValueError):
    """Out-of-range value, malformed grid or move, unknown category."""
    code = "invalid_argument"


class Conflict(TrackerError):
    """Duplicate like from the same visitor."""
    code = "conflict"


class Unauthorized(TrackerError):
    code = "unauthorized"
