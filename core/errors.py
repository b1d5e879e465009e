"""Error taxonomy for the scheduler.

Construction errors are raised synchronously to the caller and the
registration never happens. Callback failures are never raised; they are
reported through the event bus (see scheduler.engine).
"""

from __future__ import annotations

from typing import Any


class SkedulaError(Exception):
    """Base class for every error raised by this package."""


class InvalidFieldError(SkedulaError):
    """A field value, range or step is not legal for its field."""

    def __init__(self, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} field {value!r}: {reason}")


class UnsatisfiableExpressionError(SkedulaError):
    """The fields are individually valid but can never match together."""


class InvalidExpressionError(SkedulaError):
    """Cron text that cannot be split into fields."""
