"""Temporal fields -- the six schedulable time components and their shapes.

A field holds exactly one shape:

    Wildcard                every legal value
    Value(value=N)          exactly N
    Range(start=A, end=B)   A..B inclusive (day_of_week may wrap, e.g. FRI-MON)
    Interval(base, step)    every step-th value from base; base is a
                            Wildcard, a Value (open-ended: N..max) or a Range

Shapes are plain values. They are checked against a field's legal domain
whenever they are bound to a kind in a TemporalField, which raises
InvalidFieldError.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.errors import InvalidFieldError


class FieldKind(str, Enum):
    SECOND = "second"
    MINUTE = "minute"
    HOUR = "hour"
    DAY_OF_MONTH = "day_of_month"
    MONTH = "month"
    DAY_OF_WEEK = "day_of_week"

    @property
    def minimum(self) -> int:
        return DOMAINS[self][0]

    @property
    def maximum(self) -> int:
        return DOMAINS[self][1]

    @property
    def size(self) -> int:
        return self.maximum - self.minimum + 1


# Legal (min, max) per kind. Day of week: 0=Sunday .. 6=Saturday.
DOMAINS: dict[FieldKind, tuple[int, int]] = {
    FieldKind.SECOND: (0, 59),
    FieldKind.MINUTE: (0, 59),
    FieldKind.HOUR: (0, 23),
    FieldKind.DAY_OF_MONTH: (1, 31),
    FieldKind.MONTH: (1, 12),
    FieldKind.DAY_OF_WEEK: (0, 6),
}

# Field order inside an expression, coarse-to-fine is the reverse.
FIELD_ORDER = (
    FieldKind.SECOND,
    FieldKind.MINUTE,
    FieldKind.HOUR,
    FieldKind.DAY_OF_MONTH,
    FieldKind.MONTH,
    FieldKind.DAY_OF_WEEK,
)


# ---------------------------------------------------------------------------
# Shapes
# ---------------------------------------------------------------------------

class Wildcard(BaseModel):
    model_config = ConfigDict(frozen=True)

    shape: Literal["wildcard"] = "wildcard"

    def __str__(self) -> str:
        return "*"


class Value(BaseModel):
    model_config = ConfigDict(frozen=True)

    shape: Literal["value"] = "value"
    value: int

    def __str__(self) -> str:
        return str(self.value)


class Range(BaseModel):
    model_config = ConfigDict(frozen=True)

    shape: Literal["range"] = "range"
    start: int
    end: int

    @property
    def wraps(self) -> bool:
        return self.start > self.end

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


class Interval(BaseModel):
    model_config = ConfigDict(frozen=True)

    shape: Literal["interval"] = "interval"
    base: Union[Wildcard, Value, Range] = Field(default_factory=Wildcard)
    step: int

    def __str__(self) -> str:
        return f"{self.base}/{self.step}"


Shape = Union[Wildcard, Value, Range, Interval]

WILDCARD = Wildcard()


# ---------------------------------------------------------------------------
# Bound field
# ---------------------------------------------------------------------------

class TemporalField(BaseModel):
    """A shape bound to one field kind.

    The shape is checked against the kind's domain on construction, so a
    TemporalField that exists is always legal. InvalidFieldError is not a
    ValueError and reaches the caller unwrapped.
    """

    model_config = ConfigDict(frozen=True)

    kind: FieldKind
    spec: Shape

    @model_validator(mode="after")
    def _check_domain(self) -> TemporalField:
        validate_shape(self.kind, self.spec)
        return self

    @classmethod
    def of(cls, kind: FieldKind, spec: Any = None) -> TemporalField:
        """Coerce a field specification for the given kind and bind it.

        Accepts a shape, a bare int (single value), "*" or None (wildcard).
        """
        return cls(kind=kind, spec=coerce_shape(kind, spec))

    @property
    def is_wildcard(self) -> bool:
        return isinstance(self.spec, Wildcard)

    def __str__(self) -> str:
        return str(self.spec)


def coerce_shape(kind: FieldKind, spec: Any) -> Shape:
    """Turn caller input into a shape without checking its domain."""
    if spec is None or spec == "*":
        return WILDCARD
    if isinstance(spec, (Wildcard, Value, Range, Interval)):
        return spec
    # bool is an int subclass but never a meaningful field value
    if isinstance(spec, int) and not isinstance(spec, bool):
        return Value(value=spec)
    raise InvalidFieldError(kind.value, spec, "expected an int, '*', Value, Range or Interval")


def validate_shape(kind: FieldKind, shape: Shape) -> None:
    """Check a shape against the legal domain of ``kind``."""
    if isinstance(shape, Wildcard):
        return
    if isinstance(shape, Value):
        _check_bounds(kind, shape, shape.value)
        return
    if isinstance(shape, Range):
        _check_bounds(kind, shape, shape.start)
        _check_bounds(kind, shape, shape.end)
        if shape.wraps and kind is not FieldKind.DAY_OF_WEEK:
            raise InvalidFieldError(
                kind.value, str(shape), f"range start {shape.start} is after end {shape.end}",
            )
        return
    if isinstance(shape, Interval):
        if shape.step <= 0:
            raise InvalidFieldError(kind.value, str(shape), f"step must be positive, got {shape.step}")
        validate_shape(kind, shape.base)
        return
    raise InvalidFieldError(kind.value, shape, "unknown field shape")


def _check_bounds(kind: FieldKind, shape: Shape, value: int) -> None:
    lo, hi = DOMAINS[kind]
    if not lo <= value <= hi:
        raise InvalidFieldError(kind.value, str(shape), f"{value} is outside [{lo}, {hi}]")
