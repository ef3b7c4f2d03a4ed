"""
Input schemas for the scheduling engine.
"""

from .project import (
    STANDARD_WORK_WEEK,
    RelationType,
    ConstraintType,
    ActivityType,
    Predecessor,
    ActivityInput,
    CalendarException,
    CalendarInput,
    WbsNodeInput,
    ProjectMeta,
    ProjectInput,
    parse_predecessor_string,
    parse_predecessor_list,
    format_predecessor,
)
from .validator import ScheduleValidationError, validate_project, coerce_project

__all__ = [
    'STANDARD_WORK_WEEK',
    'RelationType',
    'ConstraintType',
    'ActivityType',
    'Predecessor',
    'ActivityInput',
    'CalendarException',
    'CalendarInput',
    'WbsNodeInput',
    'ProjectMeta',
    'ProjectInput',
    'parse_predecessor_string',
    'parse_predecessor_list',
    'format_predecessor',
    'ScheduleValidationError',
    'validate_project',
    'coerce_project',
]
