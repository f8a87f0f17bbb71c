"""
Session calendar: map session order onto study days.

Sessions are spread evenly over the available weekdays: with N sessions
per week and D available days the gap is max(1, D // N) days, rolled
forward to the next available day when it lands on a weekend that is
excluded.
"""

from __future__ import annotations

from datetime import date, timedelta

WEEKDAYS = (0, 1, 2, 3, 4)
ALL_DAYS = (0, 1, 2, 3, 4, 5, 6)


class SessionCalendar:
    """Dates and day offsets for an ordered list of sessions."""

    def __init__(self, start: date, sessions_per_week: int = 3, include_weekends: bool = False):
        self.available_days = ALL_DAYS if include_weekends else WEEKDAYS
        self.sessions_per_week = sessions_per_week
        self.start = start
        self.first = self.roll_forward(start)

    @property
    def days_between(self) -> int:
        if self.sessions_per_week >= len(self.available_days):
            return 1
        return len(self.available_days) // self.sessions_per_week

    def is_available(self, day: date) -> bool:
        return day.weekday() in self.available_days

    def roll_forward(self, day: date) -> date:
        while not self.is_available(day):
            day += timedelta(days=1)
        return day

    def next_session(self, current: date) -> date:
        return self.roll_forward(current + timedelta(days=self.days_between))

    def session_dates(self, count: int) -> list[date]:
        dates = []
        current = self.first
        for _ in range(count):
            dates.append(current)
            current = self.next_session(current)
        return dates

    def after(self, day: date, days: int) -> date:
        """First available day at least ``days`` after ``day``."""
        return self.roll_forward(day + timedelta(days=days))

    def offset(self, day: date) -> int:
        """Days since the plan start."""
        return (day - self.start).days
