from datetime import datetime

import pytest

from core.date_helper import (
    calculate_renewal_dates,
    day_window,
    is_lease_overdue,
    parse_boolean_field,
    parse_spreadsheet_date,
    renewal_deadline,
)
from models.enums import PaymentCycle


@pytest.mark.parametrize(
    "end, cycle, expected_start, expected_end",
    [
        # Jan 31 + 1 month clamps to the end of February.
        (datetime(2024, 1, 31), PaymentCycle.MONTHLY, datetime(2024, 2, 1), datetime(2024, 2, 29)),
        (datetime(2023, 1, 31), PaymentCycle.MONTHLY, datetime(2023, 2, 1), datetime(2023, 2, 28)),
        (datetime(2024, 1, 30), PaymentCycle.MONTHLY, datetime(2024, 1, 31), datetime(2024, 2, 28)),
        (datetime(2024, 12, 31), PaymentCycle.ANNUAL, datetime(2025, 1, 1), datetime(2025, 12, 31)),
        (datetime(2024, 6, 10), PaymentCycle.DAILY, datetime(2024, 6, 11), datetime(2024, 6, 12)),
    ],
)
def test_calculate_renewal_dates(end, cycle, expected_start, expected_end):
    assert calculate_renewal_dates(end, cycle) == (expected_start, expected_end)


def test_renewal_starts_the_day_after_the_original_ends():
    start, end = calculate_renewal_dates(datetime(2025, 3, 15), "MONTHLY")
    assert start == datetime(2025, 3, 16)
    assert end == datetime(2025, 4, 15)


def test_renewal_deadline_subtracts_notice_days():
    assert renewal_deadline(datetime(2024, 12, 31), 30) == datetime(2024, 12, 1)


def test_day_window_covers_one_calendar_day():
    start, end = day_window(datetime(2025, 6, 1, 15, 45), 3)
    assert start == datetime(2025, 6, 4)
    assert end == datetime(2025, 6, 5)


def test_lease_overdue_only_after_grace_deadline():
    start = datetime(2025, 1, 1)
    assert not is_lease_overdue(start, 5, datetime(2025, 1, 6))
    assert is_lease_overdue(start, 5, datetime(2025, 1, 6, 0, 0, 1))
    assert not is_lease_overdue(start, None, datetime(2030, 1, 1))


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2025-02-14", datetime(2025, 2, 14)),
        ("2025-02-14T17:30:00Z", datetime(2025, 2, 14)),
        (45000, datetime(2023, 3, 15)),
        (datetime(2025, 2, 14, 9, 30), datetime(2025, 2, 14)),
        ("not a date", None),
        ("", None),
        (None, None),
        (True, None),
        (float("nan"), None),
        (float("inf"), None),
    ],
)
def test_parse_spreadsheet_date(value, expected):
    assert parse_spreadsheet_date(value) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("TRUE", True),
        ("yes", True),
        ("1", True),
        (True, True),
        ("false", False),
        ("no", False),
        ("", False),
        (None, False),
    ],
)
def test_parse_boolean_field(value, expected):
    assert parse_boolean_field(value) is expected
