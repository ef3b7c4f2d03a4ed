"""
P6 Calendar Parser.

Parses P6's nested clndr_data format into day-granular calendar input. Only
whether a day is worked matters; work periods within a day are not kept.
"""

import re
from datetime import date, timedelta
from typing import Optional

from ..schemas.project import CalendarInput, CalendarException, STANDARD_WORK_WEEK


# Excel epoch: December 30, 1899
EXCEL_EPOCH = date(1899, 12, 30)

DAY_ENTRY_PATTERN = re.compile(r'\(0\|\|([1-7])\(\)')
EXCEPTION_PATTERN = re.compile(r'\(0\|\|\d+\(d\|(\d+)\)\((.*?)\)\)', re.DOTALL)
WORK_PERIOD_PATTERN = re.compile(r'\([sf]\|\d{1,2}:\d{2}\|[sf]\|\d{1,2}:\d{2}\)')


def excel_serial_to_date(serial: int) -> date:
    """Convert Excel serial date number to Python date."""
    return EXCEL_EPOCH + timedelta(days=serial)


def date_to_excel_serial(dt: date) -> int:
    """Convert Python date to Excel serial date number."""
    return (dt - EXCEL_EPOCH).days


def extract_section(data: str, marker: str) -> Optional[str]:
    """Extract a section using balanced parentheses counting."""
    start_idx = data.find(marker)
    if start_idx < 0:
        return None

    start_idx += len(marker)
    depth = 1
    end_idx = start_idx

    while depth > 0 and end_idx < len(data):
        if data[end_idx] == '(':
            depth += 1
        elif data[end_idx] == ')':
            depth -= 1
        end_idx += 1

    # Don't include the final closing parenthesis
    return data[start_idx:end_idx - 1]


def parse_days_of_week(dow_data: str) -> tuple[bool, ...]:
    """
    Parse a DaysOfWeek section into Sunday-first working flags.

    Day with no work: (0||1()())
    Day with work: (0||2()( (0||0(s|08:00|f|16:00)()) ))
    P6 numbers days 1=Sunday through 7=Saturday. Days not listed are not worked.
    """
    week = [False] * 7
    for match in DAY_ENTRY_PATTERN.finditer(dow_data):
        day_num = int(match.group(1))
        start = match.start()

        # Count parens to find the end of this day entry
        depth = 0
        end = start
        for i in range(start, len(dow_data)):
            if dow_data[i] == '(':
                depth += 1
            elif dow_data[i] == ')':
                depth -= 1
                if depth == 0:
                    end = i + 1
                    break

        entry = dow_data[start:end]
        week[day_num - 1] = bool(WORK_PERIOD_PATTERN.search(entry))
    return tuple(week)


def parse_exceptions(exc_data: str) -> list[CalendarException]:
    """
    Parse an Exceptions section.

    Holiday: (0||0(d|44525)())
    Modified day: (0||1(d|44578)( (0||0(s|08:00|f|16:00)()) ))
    """
    exceptions = []
    for match in EXCEPTION_PATTERN.finditer(exc_data):
        exc_date = excel_serial_to_date(int(match.group(1)))
        is_working = bool(WORK_PERIOD_PATTERN.search(match.group(2)))
        exceptions.append(CalendarException(exception_date=exc_date, is_working=is_working))
    return exceptions


def parse_p6_calendar(clndr_id: str, clndr_data: str, day_hr_cnt: float = 8.0,
                      clndr_name: str = '', is_default: bool = False) -> CalendarInput:
    """
    Parse P6 calendar data string into calendar input.

    Args:
        clndr_id: Calendar ID
        clndr_data: P6's nested calendar format string
        day_hr_cnt: Hours per day
        clndr_name: Calendar name
        is_default: P6 default_flag
    """
    week_days = STANDARD_WORK_WEEK
    exceptions = []

    if clndr_data:
        dow_data = extract_section(clndr_data, 'DaysOfWeek()(')
        if dow_data is not None:
            week_days = parse_days_of_week(dow_data)

        exc_data = extract_section(clndr_data, 'Exceptions()(')
        if exc_data:
            exceptions = parse_exceptions(exc_data)

    return CalendarInput(
        id=clndr_id,
        name=clndr_name,
        week_days=week_days,
        hours_per_day=day_hr_cnt if day_hr_cnt > 0 else 8.0,
        is_default=is_default,
        exceptions=exceptions,
    )
