"""Matcher -- decides whether a calendar instant satisfies an expression.

Pure functions only; called once per registered task per tick.

Every present field must match (logical AND). Day-of-month and
day-of-week are ANDed too, unlike the OR rule some cron dialects use.
An expression without a seconds field only matches at second 0.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from scheduler.fields import (
    FieldKind,
    Interval,
    Range,
    Shape,
    TemporalField,
    Value,
    Wildcard,
)

if TYPE_CHECKING:
    from scheduler.expression import Expression


class Instant(BaseModel):
    """One tick's calendar components, as produced by the tick source."""

    model_config = ConfigDict(frozen=True)

    second: int
    minute: int
    hour: int
    day: int
    month: int
    day_of_week: int  # 0=Sun, 6=Sat
    year: int

    @classmethod
    def from_datetime(cls, dt: datetime) -> Instant:
        return cls(
            second=dt.second,
            minute=dt.minute,
            hour=dt.hour,
            day=dt.day,
            month=dt.month,
            day_of_week=dt.isoweekday() % 7,
            year=dt.year,
        )

    def as_datetime(self) -> datetime:
        """Naive datetime for the same wall-clock second."""
        return datetime(self.year, self.month, self.day, self.hour, self.minute, self.second)

    def component(self, kind: FieldKind) -> int:
        return getattr(self, _COMPONENTS[kind])


_COMPONENTS = {
    FieldKind.SECOND: "second",
    FieldKind.MINUTE: "minute",
    FieldKind.HOUR: "hour",
    FieldKind.DAY_OF_MONTH: "day",
    FieldKind.MONTH: "month",
    FieldKind.DAY_OF_WEEK: "day_of_week",
}


def matches(expression: Expression, instant: Instant | datetime) -> bool:
    """Check if an instant satisfies every field of an expression."""
    if isinstance(instant, datetime):
        instant = Instant.from_datetime(instant)

    if not expression.has_seconds and instant.second != 0:
        return False

    for kind, allowed in expression.value_sets.items():
        if instant.component(kind) not in allowed:
            return False
    return True


def field_matches(field: TemporalField, value: int) -> bool:
    """Check a single field component against a bound field."""
    return shape_matches(field.kind, field.spec, value)


def shape_matches(kind: FieldKind, shape: Shape, value: int) -> bool:
    if isinstance(shape, Wildcard):
        return True

    if isinstance(shape, Value):
        return value == shape.value

    if isinstance(shape, Range):
        if shape.wraps:
            return value >= shape.start or value <= shape.end
        return shape.start <= value <= shape.end

    if isinstance(shape, Interval):
        base = shape.base
        if isinstance(base, Wildcard):
            return (value - kind.minimum) % shape.step == 0
        if isinstance(base, Value):
            # N/S runs from N up to the field maximum
            if value < base.value:
                return False
            return (value - base.value) % shape.step == 0
        if not shape_matches(kind, base, value):
            return False
        # Distance from the range start, counted through the wrap for day_of_week
        offset = (value - base.start) % kind.size
        return offset % shape.step == 0

    raise TypeError(f"Unknown field shape: {shape!r}")


def field_values(field: TemporalField) -> frozenset[int]:
    """All legal values of the field's kind that the field matches."""
    kind = field.kind
    return frozenset(
        v for v in range(kind.minimum, kind.maximum + 1)
        if shape_matches(kind, field.spec, v)
    )
