"""
Five-field cron expressions: minute hour day-of-month month day-of-week.

Parsing and matching are done by croniter. Expressions are limited to the
classic five fields (no seconds column, no @aliases), and day-of-month and
day-of-week must both match. A malformed expression never matches.
"""

from datetime import datetime

from croniter import croniter


def _is_five_field(expr: str) -> bool:
    return len(expr.split()) == 5


def cron_matches(expr: str, when: datetime) -> bool:
    if not _is_five_field(expr) or not croniter.is_valid(expr):
        return False
    # Matched on wall-clock fields in whatever zone the caller converted to
    return bool(croniter.match(expr, when.replace(tzinfo=None), day_or=False))


def validate_expression(expr: str) -> None:
    """Raise ValueError when the expression is not a valid five-field cron schedule."""
    parts = expr.split()
    if len(parts) != 5:
        raise ValueError(f"Cron expression must have 5 fields, got {len(parts)}: {expr!r}")
    if not croniter.is_valid(expr):
        raise ValueError(f"Invalid cron expression: {expr!r}")
