"""
Project input schemas.

Validated input contract for the scheduling engine: project meta, WBS nodes,
activities with predecessor logic, and work calendars. Keys are accepted in
camelCase (as produced by the surrounding application) or snake_case.
"""

import re
from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# Sunday-first working-day pattern: Mon-Fri working
STANDARD_WORK_WEEK = (False, True, True, True, True, True, False)

PREDECESSOR_PATTERN = re.compile(r'^([A-Za-z0-9.\-_]+?)(FS|SS|FF|SF)?([+-]\d+)?$')


class RelationType(str, Enum):
    """Predecessor relationship types."""
    FS = 'FS'
    SS = 'SS'
    FF = 'FF'
    SF = 'SF'


class ConstraintType(str, Enum):
    """Date constraint types, using the display names the application stores."""
    NONE = 'None'
    START_ON = 'Start On'
    START_ON_OR_AFTER = 'Start On or After'
    START_ON_OR_BEFORE = 'Start On or Before'
    FINISH_ON = 'Finish On'
    FINISH_ON_OR_AFTER = 'Finish On or After'
    FINISH_ON_OR_BEFORE = 'Finish On or Before'
    MANDATORY_START = 'Mandatory Start'
    MANDATORY_FINISH = 'Mandatory Finish'

    @classmethod
    def _missing_(cls, value):
        # Accept member names and case variants ("START_ON_OR_AFTER", "start on or after")
        if isinstance(value, str):
            normalized = value.strip().replace('_', ' ').lower()
            for member in cls:
                if member.value.lower() == normalized:
                    return member
        return None


class ActivityType(str, Enum):
    """Activity types. Informational; milestone behavior follows duration 0."""
    TASK = 'Task'
    START_MILESTONE = 'Start Milestone'
    FINISH_MILESTONE = 'Finish Milestone'


class ScheduleModel(BaseModel):
    """Base for input records: camelCase aliases, immutable once validated."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Predecessor(ScheduleModel):
    """A predecessor link on the successor activity."""
    activity_id: str = Field(min_length=1, description="Predecessor activity id")
    type: RelationType = Field(default=RelationType.FS, description="Relationship type")
    lag: int = Field(default=0, description="Signed lag in working days")


class ActivityInput(ScheduleModel):
    """
    An activity as supplied by the caller.

    Predecessors may be given as records or in the compact notation used by
    the grid editor ("A10", "A10SS+2", "A10FF-1", comma-separated).
    """
    id: str = Field(min_length=1, description="Unique activity id")
    name: str = Field(default='', description="Activity name")
    wbs_id: Optional[str] = Field(default=None, description="Owning WBS node id")
    duration: int = Field(ge=0, description="Duration in working days (0 = milestone)")
    calendar_id: Optional[str] = Field(default=None, description="Calendar id (project default if unset)")
    predecessors: list[Predecessor] = Field(default_factory=list, description="Ordered predecessor links")
    constraint_type: ConstraintType = Field(default=ConstraintType.NONE, description="Date constraint type")
    constraint_date: Optional[date] = Field(default=None, description="Date the constraint applies to")
    activity_type: ActivityType = Field(default=ActivityType.TASK, description="Task or milestone type")

    @field_validator('predecessors', mode='before')
    @classmethod
    def _parse_compact_predecessors(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return parse_predecessor_list(value)
        return [parse_predecessor_string(v) if isinstance(v, str) else v for v in value]

    @field_validator('constraint_type', mode='before')
    @classmethod
    def _default_constraint(cls, value):
        if value is None or value == '':
            return ConstraintType.NONE
        if isinstance(value, str):
            return ConstraintType(value)
        return value

    @property
    def is_milestone(self) -> bool:
        return self.duration == 0


class CalendarException(ScheduleModel):
    """A date whose working status overrides the weekly pattern."""
    exception_date: date = Field(alias='date', description="Exception date")
    is_working: bool = Field(default=False, description="True if the date is worked")


class CalendarInput(ScheduleModel):
    """A work calendar: weekly pattern plus date exceptions."""
    id: str = Field(min_length=1, description="Calendar id")
    name: str = Field(default='', description="Calendar name")
    week_days: tuple[bool, ...] = Field(
        default=STANDARD_WORK_WEEK,
        description="Working-day flags, Sunday first",
    )
    hours_per_day: float = Field(default=8.0, gt=0, description="Work hours per day")
    is_default: bool = Field(default=False, description="Marked as default in the application")
    exceptions: list[CalendarException] = Field(default_factory=list, description="Date exceptions")

    @field_validator('week_days')
    @classmethod
    def _seven_days(cls, value):
        if len(value) != 7:
            raise ValueError(f'week_days must have 7 entries (Sunday first), got {len(value)}')
        return value


class WbsNodeInput(ScheduleModel):
    """A node of the work breakdown structure."""
    id: str = Field(min_length=1, description="WBS node id")
    name: str = Field(default='', description="WBS node name")
    parent_id: Optional[str] = Field(default=None, description="Parent node id (None for roots)")


class ProjectMeta(ScheduleModel):
    """Project-level settings."""
    project_start_date: date = Field(description="Anchor date for unconstrained activities")
    default_calendar_id: str = Field(default='default', description="Calendar used when unset or unresolved")
    target_finish_date: Optional[date] = Field(default=None, description="Explicit backward-pass anchor")
    title: str = Field(default='', description="Project title")
    project_code: str = Field(default='', description="Project code")


class ProjectInput(ScheduleModel):
    """Complete engine input."""
    meta: ProjectMeta
    wbs: list[WbsNodeInput] = Field(default_factory=list)
    activities: list[ActivityInput] = Field(default_factory=list)
    calendars: list[CalendarInput] = Field(default_factory=list)

    def get_activity(self, activity_id: str) -> Optional[ActivityInput]:
        """Get an activity by id."""
        for activity in self.activities:
            if activity.id == activity_id:
                return activity
        return None


def parse_predecessor_string(text: str) -> Predecessor:
    """
    Parse compact predecessor notation.

    "A10" -> A10 FS 0, "A10SS+2" -> A10 SS 2, "A10FF-1" -> A10 FF -1.
    Ids ending in "-<digits>" are read as a lag; use the record form for those.

    Raises:
        ValueError: If the token does not match the notation
    """
    token = text.strip()
    match = PREDECESSOR_PATTERN.match(token)
    if not match:
        raise ValueError(f"Invalid predecessor notation: {text!r}")

    activity_id, relation, lag = match.groups()
    return Predecessor(
        activity_id=activity_id,
        type=RelationType(relation or 'FS'),
        lag=int(lag or 0),
    )


def parse_predecessor_list(text: str) -> list[Predecessor]:
    """Parse a comma-separated list of compact predecessor tokens."""
    return [parse_predecessor_string(token) for token in text.split(',') if token.strip()]


def format_predecessor(predecessor: Predecessor) -> str:
    """Render a predecessor in compact notation (FS and zero lag omitted)."""
    text = predecessor.activity_id
    if predecessor.type != RelationType.FS:
        text += predecessor.type.value
    if predecessor.lag:
        text += f'{predecessor.lag:+d}'
    return text
