"""Expression -- six temporal fields with cross-field validation.

Build expressions with build_expression() or the every_* helpers; both
validate every field and reject combinations that can never fire.

Seconds absent and seconds="*" are different schedules:

    build_expression(minute=5)              fires once, at hh:05:00
    build_expression(second="*", minute=5)  fires 60 times, hh:05:00..hh:05:59
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, PrivateAttr, model_validator

from core.errors import InvalidFieldError, UnsatisfiableExpressionError
from scheduler.fields import FIELD_ORDER, FieldKind, Interval, TemporalField
from scheduler.matcher import field_values

# Longest possible length of each month (February counts leap years).
MONTH_DAYS = {
    1: 31, 2: 29, 3: 31, 4: 30, 5: 31, 6: 30,
    7: 31, 8: 31, 9: 30, 10: 31, 11: 30, 12: 31,
}

MONTH_NAMES = {
    1: "January", 2: "February", 3: "March", 4: "April", 5: "May", 6: "June",
    7: "July", 8: "August", 9: "September", 10: "October", 11: "November", 12: "December",
}


class Expression(BaseModel):
    """Ordered (second?, minute, hour, day_of_month, month, day_of_week)."""

    model_config = ConfigDict(frozen=True)

    second: TemporalField | None = None
    minute: TemporalField
    hour: TemporalField
    day_of_month: TemporalField
    month: TemporalField
    day_of_week: TemporalField

    _value_sets: dict[FieldKind, frozenset[int]] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def _check_kinds(self) -> Expression:
        for name, field in self._named_fields():
            if field is not None and field.kind.value != name:
                raise ValueError(f"{name} slot holds a {field.kind.value} field")
        return self

    def model_post_init(self, __context: Any) -> None:
        self._value_sets = {field.kind: field_values(field) for field in self.fields()}

    @property
    def has_seconds(self) -> bool:
        return self.second is not None

    @property
    def value_sets(self) -> dict[FieldKind, frozenset[int]]:
        """Matching values per present field, precomputed for the matcher."""
        return self._value_sets

    def fields(self) -> tuple[TemporalField, ...]:
        """Present fields in order; seconds is left out when absent."""
        return tuple(field for _, field in self._named_fields() if field is not None)

    def field(self, kind: FieldKind) -> TemporalField | None:
        return getattr(self, kind.value)

    def _named_fields(self) -> list[tuple[str, TemporalField | None]]:
        return [(kind.value, getattr(self, kind.value)) for kind in FIELD_ORDER]

    def __str__(self) -> str:
        """Classic cron text: five fields, or six when seconds are present."""
        return " ".join(str(field) for field in self.fields())


def build_expression(
    second: Any = None,
    minute: Any = None,
    hour: Any = None,
    day_of_month: Any = None,
    month: Any = None,
    day_of_week: Any = None,
) -> Expression:
    """Assemble and validate an Expression.

    Each argument may be a shape, a bare int, "*" or None. None means
    wildcard for every field except ``second``, where None means absent
    (minute granularity, fires at second 0).

    Raises:
        InvalidFieldError: a field is out of its legal domain.
        UnsatisfiableExpressionError: the fields can never match together.
    """
    expression = Expression(
        second=TemporalField.of(FieldKind.SECOND, second) if second is not None else None,
        minute=TemporalField.of(FieldKind.MINUTE, minute),
        hour=TemporalField.of(FieldKind.HOUR, hour),
        day_of_month=TemporalField.of(FieldKind.DAY_OF_MONTH, day_of_month),
        month=TemporalField.of(FieldKind.MONTH, month),
        day_of_week=TemporalField.of(FieldKind.DAY_OF_WEEK, day_of_week),
    )
    check_satisfiable(expression)
    return expression


def check_satisfiable(expression: Expression) -> None:
    """Reject expressions that cannot fire in any calendar year.

    Only day-of-month against month needs checking: every (month, day)
    pair, Feb 29 included, lands on each weekday somewhere in the 28-year
    calendar cycle, so a non-empty day-of-week set never makes a valid
    date impossible.
    """
    sets = expression.value_sets
    for kind, allowed in sets.items():
        if not allowed:
            raise UnsatisfiableExpressionError(f"{kind.value} field matches no legal value")

    days = sets[FieldKind.DAY_OF_MONTH]
    months = sets[FieldKind.MONTH]
    if any(day <= MONTH_DAYS[month] for month in months for day in days):
        return

    month_list = ", ".join(MONTH_NAMES[m] for m in sorted(months))
    raise UnsatisfiableExpressionError(
        f"Day of month {expression.day_of_month} never occurs in {month_list}"
    )


# ---------------------------------------------------------------------------
# Convenience constructors
#
# The stepped field repeats; finer fields are pinned to their minimum and
# coarser fields stay wildcard. every_days steps the day of the month, so
# the cycle restarts on the 1st of every month, as in cron.
# ---------------------------------------------------------------------------

def every_seconds(n: int) -> Expression:
    return build_expression(second=_step(FieldKind.SECOND, n))


def every_minutes(n: int) -> Expression:
    return build_expression(minute=_step(FieldKind.MINUTE, n))


def every_hours(n: int) -> Expression:
    return build_expression(minute=0, hour=_step(FieldKind.HOUR, n))


def every_days(n: int) -> Expression:
    return build_expression(minute=0, hour=0, day_of_month=_step(FieldKind.DAY_OF_MONTH, n))


def _step(kind: FieldKind, n: Any) -> Interval:
    # bool is an int subclass; True must not pass as a step of 1
    if not isinstance(n, int) or isinstance(n, bool):
        raise InvalidFieldError(kind.value, n, "step must be an int")
    if n <= 0:
        raise InvalidFieldError(kind.value, n, f"step must be positive, got {n}")
    return Interval(step=n)
