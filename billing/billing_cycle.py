"""
Billing-cycle date arithmetic.

Subscriptions bill on a day-of-month anchor (1-31). When the anchor does not
exist in a month (the 31st in April, the 30th in February) the date is
clamped to that month's last day; it never rolls over into the next month.

Orders bill on a frequency (weekly through annually, or every N days).
"""

import calendar
from datetime import date, timedelta
from typing import List, Optional, Tuple

from dateutil.relativedelta import relativedelta

MIN_BILLING_DAY = 1
MAX_BILLING_DAY = 31
MAX_SCHEDULE_COUNT = 20
MAX_CUSTOM_DAYS = 365


class Frequency:
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUALLY = "ANNUALLY"
    CUSTOM = "CUSTOM"


FIXED_DAY_STEPS = {
    Frequency.WEEKLY: 7,
    Frequency.BIWEEKLY: 14,
}

MONTH_STEPS = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.ANNUALLY: 12,
}

ANNUAL_OCCURRENCES = {
    Frequency.WEEKLY: 52,
    Frequency.BIWEEKLY: 26,
    Frequency.MONTHLY: 12,
    Frequency.QUARTERLY: 4,
    Frequency.ANNUALLY: 1,
}

FREQUENCY_LABELS = {
    Frequency.WEEKLY: "Weekly",
    Frequency.BIWEEKLY: "Every 2 weeks",
    Frequency.MONTHLY: "Monthly",
    Frequency.QUARTERLY: "Quarterly",
    Frequency.ANNUALLY: "Annually",
}


def _validate_billing_day(billing_day: int) -> None:
    if not MIN_BILLING_DAY <= billing_day <= MAX_BILLING_DAY:
        raise ValueError(f"billing_day must be between 1 and 31, got {billing_day}")


def anchored_date(year: int, month: int, billing_day: int) -> date:
    """Return the billing date for a month, clamped to the month's last day."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(billing_day, last_day))


def next_billing_date(billing_day: int, reference: date) -> date:
    """
    Compute the next billing date strictly after ``reference``.

    The candidate is the anchor day in the reference month; if that is on or
    before the reference, the anchor day in the following month is used.

    >>> next_billing_date(10, date(2025, 7, 10))
    datetime.date(2025, 8, 10)
    >>> next_billing_date(31, date(2025, 2, 1))
    datetime.date(2025, 2, 28)
    """
    _validate_billing_day(billing_day)

    candidate = anchored_date(reference.year, reference.month, billing_day)
    if candidate <= reference:
        following = reference.replace(day=1) + relativedelta(months=1)
        candidate = anchored_date(following.year, following.month, billing_day)
    return candidate


def advance_billing_date(billing_day: int, current: date) -> date:
    """Return the cycle after ``current``, keeping the original anchor day."""
    return next_billing_date(billing_day, current)


def due_window(today: date, days: int) -> Tuple[date, date]:
    if days < 0:
        raise ValueError("days must be zero or positive")
    return today, today + timedelta(days=days)


def _validate_custom_days(frequency: str, custom_days: Optional[int]) -> None:
    if frequency == Frequency.CUSTOM:
        if not custom_days or not 1 <= custom_days <= MAX_CUSTOM_DAYS:
            raise ValueError("custom_days must be between 1 and 365 for a custom frequency")


def occurrence_after(
    frequency: str,
    anchor: date,
    current: date,
    custom_days: Optional[int] = None,
) -> date:
    """
    First occurrence strictly after ``current`` of the schedule anchored on ``anchor``.

    Month-based occurrences are always ``anchor`` plus a whole number of
    steps, so an anchor on the 31st returns to the 31st after passing through
    shorter months.

    >>> occurrence_after("MONTHLY", date(2025, 1, 31), date(2025, 2, 28))
    datetime.date(2025, 3, 31)
    """
    _validate_custom_days(frequency, custom_days)
    if current < anchor:
        return anchor

    if frequency in MONTH_STEPS:
        step = MONTH_STEPS[frequency]
        elapsed_months = (current.year - anchor.year) * 12 + current.month - anchor.month
        n = elapsed_months // step
        candidate = anchor + relativedelta(months=step * n)
        while candidate <= current:
            n += 1
            candidate = anchor + relativedelta(months=step * n)
        return candidate

    if frequency in FIXED_DAY_STEPS:
        days = FIXED_DAY_STEPS[frequency]
    elif frequency == Frequency.CUSTOM:
        days = custom_days
    else:
        raise ValueError(f"Unknown frequency: {frequency}")
    elapsed_days = (current - anchor).days
    return anchor + timedelta(days=(elapsed_days // days + 1) * days)


def occurrence_on_or_after(
    frequency: str,
    anchor: date,
    reference: date,
    custom_days: Optional[int] = None,
) -> date:
    return occurrence_after(frequency, anchor, reference - timedelta(days=1), custom_days)


def occurrence_schedule(
    frequency: str,
    start: date,
    count: int,
    custom_days: Optional[int] = None,
    anchor: Optional[date] = None,
) -> List[date]:
    """
    List ``count`` consecutive occurrences beginning with ``start``.

    Occurrences after the first follow the schedule anchored on ``anchor``
    (``start`` when not given).
    """
    if not 1 <= count <= MAX_SCHEDULE_COUNT:
        raise ValueError(f"count must be between 1 and {MAX_SCHEDULE_COUNT}")
    _validate_custom_days(frequency, custom_days)

    anchor = anchor or start
    dates = [start]
    while len(dates) < count:
        dates.append(occurrence_after(frequency, anchor, dates[-1], custom_days))
    return dates


def annual_occurrences(frequency: str, custom_days: Optional[int] = None) -> int:
    if frequency == Frequency.CUSTOM:
        _validate_custom_days(frequency, custom_days)
        return 365 // custom_days
    return ANNUAL_OCCURRENCES[frequency]


def frequency_display(frequency: str, custom_days: Optional[int] = None) -> str:
    if frequency == Frequency.CUSTOM:
        if custom_days == 1:
            return "Daily"
        return f"Every {custom_days} days"
    return FREQUENCY_LABELS.get(frequency, frequency)
