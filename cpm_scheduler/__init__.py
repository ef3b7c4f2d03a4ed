"""
Calendar-aware CPM scheduling engine.

Computes early/late dates, float, the critical path and WBS roll-ups for a
project of activities linked by FS/SS/FF/SF relationships with lags.
"""

from .cpm import (
    CPMEngine,
    ScheduleResult,
    ScheduledActivity,
    WbsSummary,
    WorkCalendar,
    calculate_schedule,
)
from .schemas import (
    ConstraintType,
    ProjectInput,
    RelationType,
    ScheduleValidationError,
)
from .loaders import load_project, load_xer_project

__version__ = '0.1.0'

__all__ = [
    'CPMEngine',
    'ScheduleResult',
    'ScheduledActivity',
    'WbsSummary',
    'WorkCalendar',
    'calculate_schedule',
    'ConstraintType',
    'ProjectInput',
    'RelationType',
    'ScheduleValidationError',
    'load_project',
    'load_xer_project',
]
