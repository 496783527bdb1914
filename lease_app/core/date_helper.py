from datetime import date, datetime, timedelta, timezone
from typing import Any, Tuple

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from models.enums import PaymentCycle

EXCEL_EPOCH = datetime(1899, 12, 30)


def to_midnight(value: datetime | date) -> datetime:
    if isinstance(value, datetime):
        return value.replace(hour=0, minute=0, second=0, microsecond=0)
    return datetime(value.year, value.month, value.day)


def calculate_renewal_dates(
    original_end_date: datetime, payment_cycle: PaymentCycle
) -> Tuple[datetime, datetime]:
    """Start the day after the original lease ends and run for one cycle.

    Month and year steps clamp to the last valid day of the target month
    (Jan 31 + 1 month is Feb 28/29), then step back one day so the new lease
    ends the day before the next cycle would begin. A daily cycle keeps the
    one-day step without the step back.
    """
    start = original_end_date + timedelta(days=1)
    cycle = PaymentCycle(payment_cycle)

    if cycle == PaymentCycle.DAILY:
        return start, start + timedelta(days=1)

    if cycle == PaymentCycle.MONTHLY:
        return start, start + relativedelta(months=1) - timedelta(days=1)

    return start, start + relativedelta(years=1) - timedelta(days=1)


def renewal_deadline(end_date: datetime, notice_days: int) -> datetime:
    return end_date - timedelta(days=notice_days)


def day_window(now: datetime, days_offset: int) -> Tuple[datetime, datetime]:
    target = to_midnight(now + timedelta(days=days_offset))
    return target, target + timedelta(days=1)


def grace_period_deadline(start_date: datetime, grace_period_days: int) -> datetime:
    return start_date + timedelta(days=grace_period_days)


def is_lease_overdue(
    start_date: datetime, grace_period_days: int | None, now: datetime
) -> bool:
    if grace_period_days is None:
        return False
    return now > grace_period_deadline(start_date, grace_period_days)


def parse_spreadsheet_date(value: Any) -> datetime | None:
    if value is None or value == "" or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return to_midnight(value)

    if isinstance(value, date):
        return to_midnight(value)

    if isinstance(value, (int, float)):
        try:
            return to_midnight(EXCEL_EPOCH + timedelta(days=float(value)))
        except (OverflowError, ValueError):
            return None

    if isinstance(value, str):
        try:
            parsed = date_parser.parse(value.strip())
        except (ValueError, OverflowError):
            return None
        if parsed.tzinfo is not None:
            parsed = parsed.replace(tzinfo=None)
        return to_midnight(parsed)

    return None


def parse_boolean_field(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return False


def utc_now() -> datetime:
    """Wall clock as naive UTC. Only entry points (actors, routes) call this."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
