from datetime import date, timedelta

import pytest

from billing.billing_cycle import (
    annual_occurrences,
    anchored_date,
    due_window,
    frequency_display,
    next_billing_date,
    occurrence_after,
    occurrence_on_or_after,
    occurrence_schedule,
)


class TestNextBillingDate:
    def test_same_day_moves_to_next_month(self):
        assert next_billing_date(10, date(2025, 7, 10)) == date(2025, 8, 10)

    def test_anchor_later_this_month(self):
        assert next_billing_date(10, date(2025, 7, 5)) == date(2025, 7, 10)

    def test_anchor_passed_this_month(self):
        assert next_billing_date(10, date(2025, 7, 25)) == date(2025, 8, 10)

    def test_clamps_to_end_of_short_month(self):
        assert next_billing_date(31, date(2025, 4, 1)) == date(2025, 4, 30)
        assert next_billing_date(31, date(2025, 1, 31)) == date(2025, 2, 28)

    def test_leap_february(self):
        assert next_billing_date(30, date(2024, 1, 30)) == date(2024, 2, 29)

    def test_year_rollover(self):
        assert next_billing_date(15, date(2025, 12, 20)) == date(2026, 1, 15)

    def test_always_after_reference(self):
        reference = date(2024, 1, 1)
        while reference < date(2025, 1, 1):
            for day in range(1, 32):
                assert next_billing_date(day, reference) > reference
            reference += timedelta(days=1)

    def test_never_rolls_into_following_month(self):
        result = next_billing_date(31, date(2025, 2, 1))
        assert result.month == 2

    @pytest.mark.parametrize("day", [0, 32, -1])
    def test_rejects_out_of_range_day(self, day):
        with pytest.raises(ValueError):
            next_billing_date(day, date(2025, 1, 1))

    def test_anchored_date(self):
        assert anchored_date(2025, 6, 31) == date(2025, 6, 30)
        assert anchored_date(2025, 7, 31) == date(2025, 7, 31)


class TestDueWindow:
    def test_inclusive_bounds(self):
        assert due_window(date(2025, 8, 1), 7) == (date(2025, 8, 1), date(2025, 8, 8))

    def test_zero_days_is_today_only(self):
        assert due_window(date(2025, 8, 1), 0) == (date(2025, 8, 1), date(2025, 8, 1))

    def test_negative_days_rejected(self):
        with pytest.raises(ValueError):
            due_window(date(2025, 8, 1), -1)


class TestFrequencies:
    @pytest.mark.parametrize(
        "frequency, expected",
        [
            ("WEEKLY", date(2025, 1, 22)),
            ("BIWEEKLY", date(2025, 1, 29)),
            ("MONTHLY", date(2025, 2, 15)),
            ("QUARTERLY", date(2025, 4, 15)),
            ("ANNUALLY", date(2026, 1, 15)),
        ],
    )
    def test_first_step_from_anchor(self, frequency, expected):
        assert occurrence_after(frequency, date(2025, 1, 15), date(2025, 1, 15)) == expected

    def test_custom_days(self):
        assert occurrence_after("CUSTOM", date(2025, 1, 15), date(2025, 1, 15), custom_days=10) == date(2025, 1, 25)

    def test_custom_requires_days(self):
        with pytest.raises(ValueError):
            occurrence_after("CUSTOM", date(2025, 1, 15), date(2025, 1, 15))

    def test_unknown_frequency(self):
        with pytest.raises(ValueError):
            occurrence_after("HOURLY", date(2025, 1, 15), date(2025, 1, 15))

    def test_monthly_schedule_keeps_anchor(self):
        assert occurrence_schedule("MONTHLY", date(2025, 1, 31), 4) == [
            date(2025, 1, 31),
            date(2025, 2, 28),
            date(2025, 3, 31),
            date(2025, 4, 30),
        ]

    @pytest.mark.parametrize(
        "current, expected",
        [
            (date(2025, 2, 28), date(2025, 3, 31)),
            (date(2025, 3, 30), date(2025, 3, 31)),
            (date(2025, 4, 30), date(2025, 5, 31)),
            (date(2024, 12, 1), date(2025, 1, 31)),
        ],
    )
    def test_monthly_steps_stay_on_anchor(self, current, expected):
        assert occurrence_after("MONTHLY", date(2025, 1, 31), current) == expected

    def test_fixed_steps_stay_on_anchor(self):
        assert occurrence_after("BIWEEKLY", date(2025, 1, 1), date(2025, 1, 20)) == date(2025, 1, 29)
        assert occurrence_after("CUSTOM", date(2025, 1, 1), date(2025, 1, 10), custom_days=10) == date(2025, 1, 11)

    def test_on_or_after_includes_reference(self):
        assert occurrence_on_or_after("WEEKLY", date(2025, 1, 1), date(2025, 1, 15)) == date(2025, 1, 15)
        assert occurrence_on_or_after("WEEKLY", date(2025, 1, 1), date(2025, 1, 16)) == date(2025, 1, 22)

    def test_schedule_from_mid_cycle_follows_anchor(self):
        assert occurrence_schedule("MONTHLY", date(2025, 2, 28), 3, anchor=date(2025, 1, 31)) == [
            date(2025, 2, 28),
            date(2025, 3, 31),
            date(2025, 4, 30),
        ]

    def test_weekly_schedule(self):
        assert occurrence_schedule("WEEKLY", date(2025, 1, 1), 3) == [
            date(2025, 1, 1),
            date(2025, 1, 8),
            date(2025, 1, 15),
        ]

    @pytest.mark.parametrize("count", [0, 21])
    def test_schedule_count_bounds(self, count):
        with pytest.raises(ValueError):
            occurrence_schedule("MONTHLY", date(2025, 1, 1), count)

    def test_annual_occurrences(self):
        assert annual_occurrences("WEEKLY") == 52
        assert annual_occurrences("QUARTERLY") == 4
        assert annual_occurrences("CUSTOM", 30) == 12

    def test_frequency_display(self):
        assert frequency_display("BIWEEKLY") == "Every 2 weeks"
        assert frequency_display("CUSTOM", 1) == "Daily"
        assert frequency_display("CUSTOM", 45) == "Every 45 days"
