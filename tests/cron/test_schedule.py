from datetime import datetime

import pytest

from agenthaus.cron.schedule import cron_matches, validate_expression

# Monday 2026-01-05 09:30
MONDAY = datetime(2026, 1, 5, 9, 30)
SUNDAY = datetime(2026, 1, 4, 12, 0)


@pytest.mark.parametrize(
    "expr, when, expected",
    [
        ("* * * * *", MONDAY, True),
        ("30 9 * * *", MONDAY, True),
        ("31 9 * * *", MONDAY, False),
        ("*/15 * * * *", MONDAY, True),
        ("*/7 * * * *", MONDAY, False),
        ("0,30 8-10 * * *", MONDAY, True),
        ("20-40/10 * * * *", MONDAY, True),
        ("25-40/10 * * * *", MONDAY, False),
        ("* * * * 1-5", MONDAY, True),
        ("* * * * 1-5", SUNDAY, False),
        ("0 12 * * 0", SUNDAY, True),
        ("0 12 * * 7", SUNDAY, True),
        ("* * 5 1 *", MONDAY, True),
        ("* * * 2 *", MONDAY, False),
        ("* * * *", MONDAY, False),
        ("every minute", MONDAY, False),
        ("* * 5 * 0", MONDAY, False),
        ("0 30 9 * * *", MONDAY, False),
    ],
)
def test_cron_matches(expr, when, expected):
    assert cron_matches(expr, when) is expected


@pytest.mark.parametrize("expr", ["*/5 * * * *", "0 9 * * 1-5", "0,15,30,45 * 1 * *", "0 0 * * 7"])
def test_valid_expressions(expr):
    validate_expression(expr)


@pytest.mark.parametrize(
    "expr, message",
    [
        ("* * * *", "5 fields"),
        ("0 0 * * * *", "5 fields"),
        ("60 * * * *", "Invalid cron expression"),
        ("* 24 * * *", "Invalid cron expression"),
        ("* * 0 * *", "Invalid cron expression"),
        ("a * * * *", "Invalid cron expression"),
    ],
)
def test_invalid_expressions(expr, message):
    with pytest.raises(ValueError, match=message):
        validate_expression(expr)
