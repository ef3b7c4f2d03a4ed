"""
Data models for CPM calculations.

Defines dataclasses for scheduled activities, dependencies, WBS summaries,
diagnostics, and analysis results.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

import pandas as pd

from ..schemas.project import (
    ActivityInput,
    ActivityType,
    ConstraintType,
    Predecessor,
    RelationType,
    format_predecessor,
)


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class ScheduledActivity:
    """An activity with engine-computed dates."""

    activity_id: str
    name: str
    wbs_id: Optional[str]
    duration: int                  # working days, 0 = milestone
    calendar_id: str               # resolved calendar
    predecessors: list[Predecessor] = field(default_factory=list)
    constraint_type: ConstraintType = ConstraintType.NONE
    constraint_date: Optional[date] = None
    activity_type: ActivityType = ActivityType.TASK

    # CPM Results (calculated by engine)
    early_start: Optional[date] = None
    early_finish: Optional[date] = None
    late_start: Optional[date] = None
    late_finish: Optional[date] = None
    total_float: Optional[int] = None
    free_float: Optional[int] = None
    is_critical: bool = False

    @classmethod
    def from_input(cls, activity: ActivityInput, calendar_id: str) -> 'ScheduledActivity':
        """Create a fresh, unscheduled copy of an input activity."""
        return cls(
            activity_id=activity.id,
            name=activity.name,
            wbs_id=activity.wbs_id,
            duration=activity.duration,
            calendar_id=calendar_id,
            predecessors=list(activity.predecessors),
            constraint_type=activity.constraint_type,
            constraint_date=activity.constraint_date,
            activity_type=activity.activity_type,
        )

    @property
    def start_date(self) -> Optional[date]:
        """Display start (alias of early start)."""
        return self.early_start

    @property
    def end_date(self) -> Optional[date]:
        """Display finish (alias of early finish)."""
        return self.early_finish

    def is_milestone(self) -> bool:
        """Check if activity is a milestone (zero duration)."""
        return self.duration == 0

    def to_dict(self) -> dict:
        """Serialize using the output contract's camelCase keys."""
        return {
            'id': self.activity_id,
            'name': self.name,
            'wbsId': self.wbs_id,
            'duration': self.duration,
            'calendarId': self.calendar_id,
            'activityType': self.activity_type.value,
            'predecessors': [
                {'activityId': p.activity_id, 'type': p.type.value, 'lag': p.lag}
                for p in self.predecessors
            ],
            'constraintType': self.constraint_type.value,
            'constraintDate': _iso(self.constraint_date),
            'earlyStart': _iso(self.early_start),
            'earlyFinish': _iso(self.early_finish),
            'lateStart': _iso(self.late_start),
            'lateFinish': _iso(self.late_finish),
            'startDate': _iso(self.start_date),
            'endDate': _iso(self.end_date),
            'totalFloat': self.total_float,
            'freeFloat': self.free_float,
            'isCritical': self.is_critical,
        }


@dataclass
class Dependency:
    """Represents a predecessor-successor relationship."""

    pred_activity_id: str
    succ_activity_id: str
    relation_type: RelationType
    lag_days: int

    def is_finish_to_start(self) -> bool:
        return self.relation_type == RelationType.FS

    def is_start_to_start(self) -> bool:
        return self.relation_type == RelationType.SS

    def is_finish_to_finish(self) -> bool:
        return self.relation_type == RelationType.FF

    def is_start_to_finish(self) -> bool:
        return self.relation_type == RelationType.SF

    def drives_successor_start(self) -> bool:
        """FS and SS bound the successor's start; FF and SF its finish."""
        return self.relation_type in (RelationType.FS, RelationType.SS)

    def from_predecessor_finish(self) -> bool:
        """FS and FF measure from the predecessor's finish; SS and SF from its start."""
        return self.relation_type in (RelationType.FS, RelationType.FF)


@dataclass
class WbsSummary:
    """Rolled-up dates for a WBS node."""

    start_date: date
    end_date: date
    duration: int                  # working days on the project calendar
    activity_count: int = 0        # activities anywhere beneath the node

    def is_empty(self) -> bool:
        """True for nodes with no activities beneath them (sentinel summary)."""
        return self.activity_count == 0

    def to_dict(self) -> dict:
        return {
            'startDate': _iso(self.start_date),
            'endDate': _iso(self.end_date),
            'duration': self.duration,
            'activityCount': self.activity_count,
        }


@dataclass
class DroppedReference:
    """A predecessor link whose activity id did not resolve."""

    activity_id: str
    predecessor_id: str


@dataclass
class CycleRecord:
    """A dependency cycle and the edge removed to break it."""

    activity_ids: list[str]
    removed_predecessor_id: str
    removed_successor_id: str


@dataclass
class ScheduleDiagnostics:
    """Repairs and fallbacks applied while scheduling."""

    dropped_references: list[DroppedReference] = field(default_factory=list)
    cycles: list[CycleRecord] = field(default_factory=list)
    calendar_fallbacks: dict[str, str] = field(default_factory=dict)   # activity_id -> requested calendar
    unassigned_activities: list[str] = field(default_factory=list)     # unknown wbs_id
    ignored_constraints: list[str] = field(default_factory=list)       # constraint type without date

    def has_issues(self) -> bool:
        return bool(
            self.dropped_references or self.cycles or self.calendar_fallbacks
            or self.unassigned_activities or self.ignored_constraints
        )

    def to_dict(self) -> dict:
        return {
            'droppedReferences': [
                {'activityId': d.activity_id, 'predecessorId': d.predecessor_id}
                for d in self.dropped_references
            ],
            'cycles': [
                {
                    'activityIds': list(c.activity_ids),
                    'removedEdge': {
                        'predecessorId': c.removed_predecessor_id,
                        'successorId': c.removed_successor_id,
                    },
                }
                for c in self.cycles
            ],
            'calendarFallbacks': dict(self.calendar_fallbacks),
            'unassignedActivities': list(self.unassigned_activities),
            'ignoredConstraints': list(self.ignored_constraints),
        }


@dataclass
class ScheduleResult:
    """Results from a CPM calculation."""

    activities: list[ScheduledActivity]        # input order
    wbs_map: dict[str, WbsSummary]
    project_start: date
    project_finish: Optional[date]
    critical_path: list[str]                   # activity ids in topological order
    diagnostics: ScheduleDiagnostics = field(default_factory=ScheduleDiagnostics)

    def get_activity(self, activity_id: str) -> Optional[ScheduledActivity]:
        """Get a scheduled activity by id."""
        for activity in self.activities:
            if activity.activity_id == activity_id:
                return activity
        return None

    def get_critical_activities(self) -> list[ScheduledActivity]:
        """Get activities on the critical path, in execution order."""
        by_id = {a.activity_id: a for a in self.activities}
        return [by_id[aid] for aid in self.critical_path if aid in by_id]

    def get_activities_by_float(self, max_float: int = None) -> list[ScheduledActivity]:
        """Get activities sorted by total float (ascending)."""
        activities = [a for a in self.activities if a.total_float is not None]
        if max_float is not None:
            activities = [a for a in activities if a.total_float <= max_float]
        return sorted(activities, key=lambda a: a.total_float)

    def to_dict(self) -> dict:
        """Serialize to the output contract."""
        return {
            'activities': [a.to_dict() for a in self.activities],
            'wbsMap': {wbs_id: summary.to_dict() for wbs_id, summary in self.wbs_map.items()},
            'projectStart': _iso(self.project_start),
            'projectFinish': _iso(self.project_finish),
            'criticalPath': list(self.critical_path),
            'diagnostics': self.diagnostics.to_dict(),
        }

    def to_dataframe(self) -> pd.DataFrame:
        """One row per activity, suitable for CSV export."""
        rows = []
        for a in self.activities:
            rows.append({
                'activity_id': a.activity_id,
                'name': a.name,
                'wbs_id': a.wbs_id,
                'duration': a.duration,
                'calendar_id': a.calendar_id,
                'predecessors': ','.join(format_predecessor(p) for p in a.predecessors),
                'constraint_type': a.constraint_type.value,
                'constraint_date': a.constraint_date,
                'early_start': a.early_start,
                'early_finish': a.early_finish,
                'late_start': a.late_start,
                'late_finish': a.late_finish,
                'total_float': a.total_float,
                'free_float': a.free_float,
                'is_critical': a.is_critical,
            })
        return pd.DataFrame(rows, columns=ACTIVITY_COLUMNS)


ACTIVITY_COLUMNS = [
    'activity_id', 'name', 'wbs_id', 'duration', 'calendar_id', 'predecessors',
    'constraint_type', 'constraint_date', 'early_start', 'early_finish',
    'late_start', 'late_finish', 'total_float', 'free_float', 'is_critical',
]


@dataclass
class ActivityImpactResult:
    """Results from single activity what-if analysis."""

    activity_id: str
    activity_name: str
    duration_delta: int
    original_finish: Optional[date]
    new_finish: Optional[date]
    slip_days: int                       # working days on the project calendar
    affected_activity_ids: list[str]
    original_critical_path: list[str]
    new_critical_path: list[str]
    critical_path_changed: bool

    def get_slip_summary(self) -> str:
        """Get human-readable slip summary."""
        if self.slip_days <= 0:
            return "No impact on project finish"
        return f"{self.slip_days} working days slip ({self.original_finish} -> {self.new_finish})"


@dataclass
class CriticalPathResult:
    """Results from critical path analysis."""

    critical_path: list[ScheduledActivity]
    near_critical_activities: list[ScheduledActivity]
    float_distribution: dict[str, int]  # float_bucket -> count
    project_finish: Optional[date]
    near_critical_threshold_days: int
    total_activities: int

    def get_critical_path_length(self) -> int:
        """Number of activities on critical path."""
        return len(self.critical_path)

    def get_risk_summary(self) -> str:
        """Get summary of schedule risk."""
        critical = len(self.critical_path)
        near_critical = len(self.near_critical_activities)
        return (f"{critical} critical activities, {near_critical} near-critical "
                f"(<= {self.near_critical_threshold_days} days float)")
