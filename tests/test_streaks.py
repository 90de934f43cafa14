from datetime import date, timedelta

import pytest

from stepper.api.steps.models import DailySummary
from stepper.api.steps.streaks import (
    current_streak, longest_streak, month_range, period_totals, week_range
)

TODAY = date(2024, 3, 13)  # a Wednesday
GOAL = 10000


def day(days_ago: int, steps: int, distance: float = 0.0) -> DailySummary:
    return DailySummary(
        date=TODAY - timedelta(days=days_ago),
        total_steps=steps,
        total_distance_meters=distance,
        entry_count=1,
    )


class TestCurrentStreak:
    def test_counts_consecutive_days_including_today(self):
        summaries = [day(0, 12000), day(1, 10000), day(2, 15000), day(4, 20000)]
        assert current_streak(summaries, GOAL, TODAY) == 3

    def test_missing_today_starts_from_yesterday(self):
        summaries = [day(1, 10000), day(2, 11000)]
        assert current_streak(summaries, GOAL, TODAY) == 2

    def test_today_below_goal_breaks_streak(self):
        summaries = [day(0, 500), day(1, 10000), day(2, 11000)]
        assert current_streak(summaries, GOAL, TODAY) == 0

    def test_gap_before_yesterday_breaks_streak(self):
        summaries = [day(2, 10000), day(3, 11000)]
        assert current_streak(summaries, GOAL, TODAY) == 0

    def test_gap_inside_run_ends_it(self):
        summaries = [day(0, 10000), day(1, 10000), day(3, 10000)]
        assert current_streak(summaries, GOAL, TODAY) == 2

    def test_input_order_does_not_matter(self):
        summaries = [day(2, 10000), day(0, 10000), day(1, 10000)]
        assert current_streak(summaries, GOAL, TODAY) == 3

    def test_empty(self):
        assert current_streak([], GOAL, TODAY) == 0


class TestLongestStreak:
    def test_longest_run_wins(self):
        summaries = [
            day(10, 10000), day(9, 10000), day(8, 10000),
            day(7, 100),
            day(6, 10000), day(5, 10000),
        ]
        assert longest_streak(summaries, GOAL) == 3

    def test_date_gap_resets_run(self):
        summaries = [day(5, 10000), day(3, 10000), day(2, 10000)]
        assert longest_streak(summaries, GOAL) == 2

    def test_nothing_meets_goal(self):
        assert longest_streak([day(0, 10), day(1, 20)], GOAL) == 0


class TestRanges:
    def test_week_runs_monday_to_sunday(self):
        assert week_range(TODAY) == (date(2024, 3, 11), date(2024, 3, 17))
        assert week_range(date(2024, 3, 11)) == (date(2024, 3, 11), date(2024, 3, 17))
        assert week_range(date(2024, 3, 17)) == (date(2024, 3, 11), date(2024, 3, 17))

    @pytest.mark.parametrize("today, expected", [
        (date(2024, 2, 10), (date(2024, 2, 1), date(2024, 2, 29))),
        (date(2023, 12, 31), (date(2023, 12, 1), date(2023, 12, 31))),
        (date(2024, 4, 1), (date(2024, 4, 1), date(2024, 4, 30))),
    ])
    def test_month_range(self, today, expected):
        assert month_range(today) == expected

    def test_period_totals_only_counts_days_in_range(self):
        summaries = [day(0, 100, 80.0), day(1, 200, 160.0), day(9, 5000, 4000.0)]
        assert period_totals(summaries, TODAY - timedelta(days=1), TODAY) == (300, 240.0)
