"""
Work Calendar and Date Arithmetic.

Day-granular calendar: a Sunday-first weekly working pattern plus date
exceptions, with working-day-aware date calculations.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from ..config.settings import settings
from ..schemas.project import CalendarInput, STANDARD_WORK_WEEK

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def pattern_index(day: date) -> int:
    """Index of a date in a Sunday-first weekly pattern."""
    # Python weekday() 0-6 (Mon-Sun) -> 0-6 (Sun-Sat)
    return (day.weekday() + 1) % 7


@dataclass
class WorkCalendar:
    """
    Work calendar with a weekly pattern and exceptions.

    Exceptions take precedence over the weekly pattern. A calendar with no
    working weekday and no working exception is degenerate and falls back to
    calendar-day arithmetic. Otherwise the search for the next working day is
    bounded by search_limit_days.
    """

    calendar_id: str
    name: str = ""
    hours_per_day: float = 8.0

    # Working flags per weekday, Sunday first
    work_week: tuple[bool, ...] = STANDARD_WORK_WEEK

    # Exception dates: date -> is working
    exceptions: dict[date, bool] = field(default_factory=dict)

    search_limit_days: int = field(default_factory=lambda: settings.CALENDAR_SEARCH_LIMIT_DAYS)

    def __post_init__(self):
        if len(self.work_week) != 7:
            raise ValueError(f"Calendar {self.calendar_id}: work_week needs 7 entries, got {len(self.work_week)}")
        self.work_week = tuple(bool(d) for d in self.work_week)
        self._working_per_week = sum(self.work_week)
        self._degenerate = self._working_per_week == 0 and not any(self.exceptions.values())
        if self._degenerate:
            logger.info(f"Calendar {self.calendar_id} has no working days, using calendar days")

    @classmethod
    def from_schema(cls, calendar: CalendarInput) -> 'WorkCalendar':
        """Build a WorkCalendar from a validated input record."""
        exceptions = {}
        for exc in calendar.exceptions:
            exceptions[exc.exception_date] = exc.is_working

        return cls(
            calendar_id=calendar.id,
            name=calendar.name,
            hours_per_day=calendar.hours_per_day,
            work_week=calendar.week_days,
            exceptions=exceptions,
        )

    @classmethod
    def standard(cls, calendar_id: str = 'default') -> 'WorkCalendar':
        """Standard Mon-Fri calendar without exceptions."""
        return cls(calendar_id=calendar_id, name='Standard 5-Day')

    @property
    def is_degenerate(self) -> bool:
        return self._degenerate

    def is_working_day(self, day: date) -> bool:
        """Check if a date is a working day."""
        if day in self.exceptions:
            return self.exceptions[day]
        return self.work_week[pattern_index(day)]

    def _step_to_working_day(self, day: date, step: timedelta) -> date:
        """Nearest working day strictly after (or before) day."""
        if self._degenerate:
            return day + step

        candidate = day + step
        for _ in range(self.search_limit_days):
            if self.is_working_day(candidate):
                return candidate
            candidate += step

        logger.warning(
            f"Calendar {self.calendar_id}: no working day within {self.search_limit_days} days "
            f"of {day}, stepping one calendar day"
        )
        return day + step

    def next_working_day(self, day: date) -> date:
        """First working day strictly after day."""
        return self._step_to_working_day(day, ONE_DAY)

    def previous_working_day(self, day: date) -> date:
        """Last working day strictly before day."""
        return self._step_to_working_day(day, -ONE_DAY)

    def first_working_day_on_or_after(self, day: date) -> date:
        if self._degenerate or self.is_working_day(day):
            return day
        return self.next_working_day(day)

    def last_working_day_on_or_before(self, day: date) -> date:
        if self._degenerate or self.is_working_day(day):
            return day
        return self.previous_working_day(day)

    def add_working_duration(self, start: date, days: int) -> date:
        """
        Advance start by a number of working days.

        Non-working days are skipped. days=0 returns start unchanged;
        negative days subtract.
        """
        if days == 0:
            return start
        if days < 0:
            return self.subtract_working_duration(start, -days)

        current = start
        for _ in range(days):
            current = self.next_working_day(current)
        return current

    def subtract_working_duration(self, finish: date, days: int) -> date:
        """Move finish back by a number of working days (inverse of add_working_duration)."""
        if days == 0:
            return finish
        if days < 0:
            return self.add_working_duration(finish, -days)

        current = finish
        for _ in range(days):
            current = self.previous_working_day(current)
        return current

    def working_days_between(self, start: date, end: date) -> int:
        """
        Signed count of working days separating two dates.

        Counts working days in [start, end) when end >= start, and the
        negated count of [end, start) otherwise.
        """
        if start == end:
            return 0
        if end < start:
            return -self.working_days_between(end, start)
        if self._degenerate:
            return (end - start).days

        full_weeks, remainder = divmod((end - start).days, 7)
        count = full_weeks * self._working_per_week

        tail_start = start + timedelta(days=full_weeks * 7)
        for offset in range(remainder):
            if self.work_week[pattern_index(tail_start + timedelta(days=offset))]:
                count += 1

        # Correct the weekly count for exceptions inside the range
        for exc_date, is_working in self.exceptions.items():
            if start <= exc_date < end:
                weekly = self.work_week[pattern_index(exc_date)]
                if is_working and not weekly:
                    count += 1
                elif weekly and not is_working:
                    count -= 1

        return count

    def apply_lag(self, boundary: date, lag: int) -> date:
        """
        Shift a date boundary by a signed number of working days.

        A boundary is the start of a day. A positive lag lets that many working
        days elapse from the boundary. A negative lag moves back so that many
        working days lie between the result and the boundary.
        """
        if lag == 0:
            return boundary
        if lag > 0:
            return self.add_working_duration(self.first_working_day_on_or_after(boundary), lag)
        return self.subtract_working_duration(self.previous_working_day(boundary), -lag - 1)

    def count_working_days(self, start: date, end: date) -> int:
        """Count working days between two dates (inclusive)."""
        if end < start:
            return 0
        return self.working_days_between(start, end + ONE_DAY)

    def __repr__(self) -> str:
        return (f"WorkCalendar({self.calendar_id}, {self._working_per_week}-day week, "
                f"{len(self.exceptions)} exceptions)")
