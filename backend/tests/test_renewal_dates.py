"""
Renewal period arithmetic tests.
"""

from datetime import date

import pytest

from backend.app.core.exceptions import ValidationError
from backend.app.domain.billing.renewal_dates import EMPTY_PERIOD, RenewalDateCalculator, add_months


def test_from_last_invoice_starts_day_after_previous_end():
    period = RenewalDateCalculator.from_last_invoice(date(2024, 3, 31), 1)
    assert period.start == date(2024, 4, 1)
    assert period.end == date(2024, 4, 30)


def test_from_last_invoice_without_previous_period_is_empty():
    period = RenewalDateCalculator.from_last_invoice(None, 1)
    assert period is EMPTY_PERIOD
    assert period.is_empty


def test_from_today_uses_given_day():
    period = RenewalDateCalculator.from_today(3, today=date(2024, 1, 15))
    assert period.start == date(2024, 1, 15)
    assert period.end == date(2024, 4, 14)


def test_from_today_defaults_to_current_date():
    period = RenewalDateCalculator.from_today(1)
    assert period.start == date.today()
    assert period.end > period.start


def test_month_end_clamps_to_shorter_month():
    """31 Jan + 1 month lands on the last day of February."""
    assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)


def test_period_starting_jan_31_ends_day_before_clamped_date():
    period = RenewalDateCalculator.from_today(1, today=date(2023, 1, 31))
    assert period.end == date(2023, 2, 27)


def test_yearly_period_across_leap_day():
    period = RenewalDateCalculator.from_last_invoice(date(2024, 2, 28), 12)
    assert period.start == date(2024, 2, 29)
    assert period.end == date(2025, 2, 27)


def test_add_months_rolls_over_year():
    assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)


@pytest.mark.parametrize("months", [0, -1, 1.5, "1", True, None])
def test_invalid_period_months_rejected(months):
    with pytest.raises(ValidationError) as exc:
        RenewalDateCalculator.from_today(months, today=date(2024, 1, 1))
    assert "period_months" in exc.value.fields
