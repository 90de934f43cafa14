"""
Aggregation helpers over daily step summaries.

Pure functions so stats, user activity and the milestone engine share
one definition of a streak.
"""

from datetime import date, timedelta
from typing import Iterable, Tuple

from stepper.api.steps.models import DailySummary

ONE_DAY = timedelta(days=1)


def week_range(today: date) -> Tuple[date, date]:
    """Monday to Sunday of the week containing today."""
    start = today - timedelta(days=today.weekday())
    return start, start + timedelta(days=6)


def month_range(today: date) -> Tuple[date, date]:
    start = today.replace(day=1)
    if start.month == 12:
        next_month = start.replace(year=start.year + 1, month=1)
    else:
        next_month = start.replace(month=start.month + 1)
    return start, next_month - ONE_DAY


def period_totals(summaries: Iterable[DailySummary], start: date, end: date) -> Tuple[int, float]:
    steps, distance = 0, 0.0
    for summary in summaries:
        if start <= summary.date <= end:
            steps += summary.total_steps
            distance += summary.total_distance_meters
    return steps, distance


def current_streak(summaries: Iterable[DailySummary], daily_goal: int, today: date) -> int:
    """
    Consecutive goal-met days ending today.

    A day with no summary yet for today does not break the streak, so
    the walk may start at yesterday. Any later gap or missed day ends it.
    """
    ordered = sorted(summaries, key=lambda s: s.date, reverse=True)
    streak = 0
    expected = today

    for summary in ordered:
        if summary.date > expected:
            continue
        if summary.date == expected or (streak == 0 and expected == today and summary.date == today - ONE_DAY):
            if summary.total_steps < daily_goal:
                break
            streak += 1
            expected = summary.date - ONE_DAY
        else:
            break

    return streak


def longest_streak(summaries: Iterable[DailySummary], daily_goal: int) -> int:
    longest = 0
    run = 0
    previous = None

    for summary in sorted(summaries, key=lambda s: s.date):
        if summary.total_steps >= daily_goal:
            if previous is not None and summary.date - previous == ONE_DAY and run > 0:
                run += 1
            else:
                run = 1
            longest = max(longest, run)
        else:
            run = 0
        previous = summary.date

    return longest
