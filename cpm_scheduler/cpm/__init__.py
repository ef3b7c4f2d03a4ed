"""
CPM (Critical Path Method) scheduling engine.

This module provides:
- Work calendars and working-day date arithmetic
- Activity network construction with reference and cycle repair
- Forward/backward pass CPM calculations with date constraints
- Float, critical path and WBS roll-up
"""

from .models import (
    ScheduledActivity,
    Dependency,
    WbsSummary,
    DroppedReference,
    CycleRecord,
    ScheduleDiagnostics,
    ScheduleResult,
    ActivityImpactResult,
    CriticalPathResult,
)
from .calendar import WorkCalendar
from .network import ActivityNetwork
from .engine import CPMEngine, calculate_schedule
from .wbs import aggregate_wbs

__all__ = [
    'ScheduledActivity',
    'Dependency',
    'WbsSummary',
    'DroppedReference',
    'CycleRecord',
    'ScheduleDiagnostics',
    'ScheduleResult',
    'ActivityImpactResult',
    'CriticalPathResult',
    'WorkCalendar',
    'ActivityNetwork',
    'CPMEngine',
    'calculate_schedule',
    'aggregate_wbs',
]
