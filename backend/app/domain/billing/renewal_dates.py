"""
Renewal period arithmetic.

A renewal period runs from its first day up to the day before the same
calendar day N months later. Month addition clamps to the last day of the
target month, so 31 Jan + 1 month is 28 Feb (29 Feb in leap years).
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from backend.app.core.exceptions import ValidationError


@dataclass(frozen=True)
class RenewalPeriod:
    start: Optional[date]
    end: Optional[date]

    @property
    def is_empty(self) -> bool:
        return self.start is None or self.end is None


EMPTY_PERIOD = RenewalPeriod(start=None, end=None)


def add_months(value: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _check_months(period_months) -> int:
    if isinstance(period_months, bool) or not isinstance(period_months, int) or period_months < 1:
        raise ValidationError({"period_months": "Renewal period must be a whole number of months (1 or more)"})
    return period_months


class RenewalDateCalculator:

    @staticmethod
    def from_last_invoice(last_period_end: Optional[date], period_months: int) -> RenewalPeriod:
        """
        Continue right after the last billed period.

        Returns EMPTY_PERIOD when there is no previous period; callers must
        check `is_empty` before using the dates.
        """
        months = _check_months(period_months)
        if last_period_end is None:
            return EMPTY_PERIOD
        start = last_period_end + timedelta(days=1)
        return RenewalPeriod(start=start, end=add_months(start, months) - timedelta(days=1))

    @staticmethod
    def from_today(period_months: int, today: Optional[date] = None) -> RenewalPeriod:
        """Start a fresh period today."""
        months = _check_months(period_months)
        start = today or date.today()
        return RenewalPeriod(start=start, end=add_months(start, months) - timedelta(days=1))
