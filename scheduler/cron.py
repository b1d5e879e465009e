"""Cron text <-> Expression.

Supports 5-field cron (minute hour day_of_month month day_of_week) and
6-field cron with a leading seconds field.

Per field: *, N, N-M, */S, N/S, N-M/S. Month names (JAN-DEC) and weekday
names (SUN-SAT) are accepted. Lists (N,M) are not: an expression holds one
shape per field, so register one task per value instead.

Examples:
    "0 16 * * 1-5"     -> weekdays at 4pm
    "0 9 * * SUN"      -> Sundays at 9am
    "*/5 * * * *"      -> every 5 minutes
    "*/10 * * * * *"   -> every 10 seconds
    "0 0 * * FRI-MON"  -> midnight, Friday through Monday
"""

from __future__ import annotations

from datetime import datetime

from core.errors import InvalidExpressionError, InvalidFieldError
from scheduler.expression import Expression, build_expression
from scheduler.fields import FieldKind, Interval, Range, Shape, Value, WILDCARD
from scheduler.matcher import matches

_MONTH_NAMES = {
    name: index + 1
    for index, name in enumerate(
        ["JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC"]
    )
}
_WEEKDAY_NAMES = {
    name: index
    for index, name in enumerate(["SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT"])
}
_NAMES = {
    FieldKind.MONTH: _MONTH_NAMES,
    FieldKind.DAY_OF_WEEK: _WEEKDAY_NAMES,
}

_FIVE_FIELDS = (
    FieldKind.MINUTE,
    FieldKind.HOUR,
    FieldKind.DAY_OF_MONTH,
    FieldKind.MONTH,
    FieldKind.DAY_OF_WEEK,
)


def parse_cron(expression: str) -> Expression:
    """Parse 5- or 6-field cron text into a validated Expression."""
    parts = expression.strip().split()
    if len(parts) == 5:
        kinds = _FIVE_FIELDS
    elif len(parts) == 6:
        kinds = (FieldKind.SECOND,) + _FIVE_FIELDS
    else:
        raise InvalidExpressionError(
            f"Invalid cron expression (need 5 or 6 fields, got {len(parts)}): {expression!r}"
        )

    shapes = {kind.value: _parse_field(part, kind) for kind, part in zip(kinds, parts)}
    return build_expression(**shapes)


def cron_matches(expression: str, dt: datetime) -> bool:
    """Check if a datetime matches a cron expression."""
    return matches(parse_cron(expression), dt)


def _parse_field(field: str, kind: FieldKind) -> Shape:
    if "," in field:
        raise InvalidFieldError(kind.value, field, "lists are not supported")

    # Step: base/S
    if "/" in field:
        base_text, step_text = field.split("/", 1)
        return Interval(
            base=_parse_base(base_text, kind, field),
            step=_parse_value(step_text, kind, field, names=False),
        )

    return _parse_base(field, kind, field)


def _parse_base(text: str, kind: FieldKind, field: str) -> Shape:
    # Wildcard
    if text == "*":
        return WILDCARD

    # Range: N-M
    if "-" in text:
        start, end = text.split("-", 1)
        return Range(
            start=_parse_value(start, kind, field),
            end=_parse_value(end, kind, field),
        )

    # Exact value
    return Value(value=_parse_value(text, kind, field))


def _parse_value(text: str, kind: FieldKind, field: str, names: bool = True) -> int:
    token = text.strip().upper()
    if names and token in _NAMES.get(kind, {}):
        return _NAMES[kind][token]
    try:
        return int(token)
    except ValueError:
        raise InvalidFieldError(kind.value, field, f"{text!r} is not a number") from None
