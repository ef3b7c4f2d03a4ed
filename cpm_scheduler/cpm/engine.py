"""
CPM (Critical Path Method) Engine.

Implements forward and backward pass calculations with per-activity calendars.

Dates are inclusive: an activity of duration d > 0 starting on early_start
finishes on early_finish, its last working day. Relationship logic is
evaluated on boundaries. The start boundary is the start date. The finish
boundary is the day after the finish date, or the start date for milestones.
Lags are applied on the predecessor's calendar.
"""

import logging
import time
from datetime import date
from typing import Any, Mapping, Optional, Union

from .models import ScheduledActivity, Dependency, ScheduleDiagnostics, ScheduleResult
from .calendar import WorkCalendar, ONE_DAY
from .network import ActivityNetwork
from .wbs import aggregate_wbs
from ..schemas.project import ConstraintType, ProjectInput
from ..schemas.validator import coerce_project

logger = logging.getLogger(__name__)

# Constraint types that act on each pass
FORWARD_START_FLOORS = (ConstraintType.START_ON, ConstraintType.START_ON_OR_AFTER)
FORWARD_FINISH_FLOORS = (ConstraintType.FINISH_ON, ConstraintType.FINISH_ON_OR_AFTER)
BACKWARD_START_CEILINGS = (ConstraintType.START_ON, ConstraintType.START_ON_OR_BEFORE)
BACKWARD_FINISH_CEILINGS = (ConstraintType.FINISH_ON, ConstraintType.FINISH_ON_OR_BEFORE)


def finish_from_start(calendar: WorkCalendar, start: date, duration: int) -> date:
    """Inclusive finish date of work starting on start."""
    if duration <= 0:
        return start
    return calendar.add_working_duration(start, duration - 1)


def start_from_finish(calendar: WorkCalendar, finish: date, duration: int) -> date:
    """Start date of work finishing (inclusive) on finish."""
    if duration <= 0:
        return finish
    return calendar.subtract_working_duration(finish, duration - 1)


def early_finish_boundary(activity: ScheduledActivity) -> date:
    if activity.is_milestone():
        return activity.early_start
    return activity.early_finish + ONE_DAY


def late_finish_boundary(activity: ScheduledActivity) -> date:
    if activity.is_milestone():
        return activity.late_start
    return activity.late_finish + ONE_DAY


class CPMEngine:
    """
    CPM calculation engine.

    Performs forward pass (early dates), backward pass (late dates),
    float calculation, and critical path identification. An engine instance
    belongs to a single calculation and is discarded afterwards.
    """

    def __init__(self, network: ActivityNetwork, calendars: dict[str, WorkCalendar],
                 default_calendar_id: str, project_start: date,
                 target_finish: Optional[date] = None,
                 diagnostics: Optional[ScheduleDiagnostics] = None):
        """
        Initialize CPM engine.

        Args:
            network: Repaired activity network to calculate
            calendars: Dict mapping calendar_id to WorkCalendar
            default_calendar_id: Calendar to use for activities with missing calendar
            project_start: Anchor date for activities without predecessors
            target_finish: Explicit backward-pass anchor (inclusive finish date)
            diagnostics: Collector for repairs made during the calculation
        """
        self.network = network
        self.calendars = calendars
        self.project_start = project_start
        self.target_finish = target_finish
        self.diagnostics = diagnostics or ScheduleDiagnostics()
        self._default_calendar_id = default_calendar_id

        if self._default_calendar_id not in calendars:
            raise ValueError(f"Default calendar {default_calendar_id} not in calendars")

    def get_calendar(self, calendar_id: Optional[str]) -> WorkCalendar:
        """Get calendar by ID, falling back to default if needed."""
        if calendar_id and calendar_id in self.calendars:
            return self.calendars[calendar_id]
        return self.calendars[self._default_calendar_id]

    def forward_pass(self) -> None:
        """
        Calculate early start and early finish for all activities.

        Processes activities in topological order. Each predecessor edge gives
        a floor on the start (FS, SS) or on the finish (FF, SF); the latest
        floor wins, and no activity starts before the project start.
        """
        for activity_id in self.network.topological_sort():
            activity = self.network.activities[activity_id]
            calendar = self.get_calendar(activity.calendar_id)

            start_floor = self.project_start
            finish_floor = None

            for dep in self.network.get_predecessors(activity_id):
                pred = self.network.activities[dep.pred_activity_id]
                candidate = self._get_driven_early_date(pred, dep)
                if dep.drives_successor_start():
                    start_floor = max(start_floor, candidate)
                elif finish_floor is None or candidate > finish_floor:
                    finish_floor = candidate

            early_start = calendar.first_working_day_on_or_after(start_floor)
            if finish_floor is not None:
                early_start = max(early_start, self._start_for_finish_floor(calendar, finish_floor, activity.duration))

            early_start = self._apply_forward_constraint(activity, calendar, early_start)

            activity.early_start = early_start
            activity.early_finish = finish_from_start(calendar, early_start, activity.duration)

    def _get_driven_early_date(self, pred: ScheduledActivity, dep: Dependency) -> date:
        """
        Boundary a predecessor relationship imposes on its successor.

        FS/SS give the earliest successor start, FF/SF the earliest successor
        finish boundary. The lag runs on the predecessor's calendar.
        """
        pred_calendar = self.get_calendar(pred.calendar_id)
        if dep.from_predecessor_finish():
            base = early_finish_boundary(pred)
        else:
            base = pred.early_start
        return pred_calendar.apply_lag(base, dep.lag_days)

    def _start_for_finish_floor(self, calendar: WorkCalendar, boundary: date, duration: int) -> date:
        """Earliest start that keeps the finish boundary at or after boundary."""
        if duration <= 0:
            return calendar.first_working_day_on_or_after(boundary)
        earliest_finish = calendar.first_working_day_on_or_after(boundary - ONE_DAY)
        return start_from_finish(calendar, earliest_finish, duration)

    def _apply_forward_constraint(self, activity: ScheduledActivity, calendar: WorkCalendar,
                                  early_start: date) -> date:
        """Apply the activity's date constraint to its early start."""
        ctype = activity.constraint_type
        cdate = activity.constraint_date
        if ctype == ConstraintType.NONE:
            return early_start
        if cdate is None:
            if activity.activity_id not in self.diagnostics.ignored_constraints:
                self.diagnostics.ignored_constraints.append(activity.activity_id)
                logger.info(f"Activity {activity.activity_id}: '{ctype.value}' has no date, ignored")
            return early_start

        if ctype in FORWARD_START_FLOORS:
            return max(early_start, calendar.first_working_day_on_or_after(cdate))
        if ctype in FORWARD_FINISH_FLOORS:
            earliest_finish = calendar.first_working_day_on_or_after(cdate)
            return max(early_start, start_from_finish(calendar, earliest_finish, activity.duration))
        if ctype == ConstraintType.MANDATORY_START:
            return calendar.first_working_day_on_or_after(cdate)
        if ctype == ConstraintType.MANDATORY_FINISH:
            return start_from_finish(calendar, calendar.last_working_day_on_or_before(cdate), activity.duration)
        return early_start

    def get_project_finish_boundary(self) -> Optional[date]:
        """
        Backward-pass anchor as a finish boundary.

        The target finish if one was given, otherwise the latest finish
        boundary among activities without successors.
        """
        if self.target_finish is not None:
            return self.target_finish + ONE_DAY

        anchor = None
        for activity_id in self.network.get_end_activities():
            boundary = early_finish_boundary(self.network.activities[activity_id])
            if anchor is None or boundary > anchor:
                anchor = boundary
        return anchor

    def backward_pass(self) -> None:
        """
        Calculate late start and late finish for all activities.

        Processes activities in reverse topological order. Each successor edge
        gives a ceiling on the finish (FS, FF) or on the start (SS, SF); the
        earliest ceiling wins. Activities without successors finish at the
        project anchor.
        """
        anchor = self.get_project_finish_boundary()
        if anchor is None:
            return

        for activity_id in self.network.reverse_topological_sort():
            activity = self.network.activities[activity_id]
            calendar = self.get_calendar(activity.calendar_id)
            successors = self.network.get_successors(activity_id)

            finish_ceiling = None
            start_ceiling = None
            if not successors:
                finish_ceiling = anchor
            for dep in successors:
                succ = self.network.activities[dep.succ_activity_id]
                candidate = self._get_driven_late_date(succ, dep, calendar)
                if dep.from_predecessor_finish():
                    if finish_ceiling is None or candidate < finish_ceiling:
                        finish_ceiling = candidate
                elif start_ceiling is None or candidate < start_ceiling:
                    start_ceiling = candidate

            late_finish = None
            if finish_ceiling is not None:
                late_finish = self._finish_for_finish_ceiling(calendar, finish_ceiling, activity.duration)
            if start_ceiling is not None:
                latest_start = calendar.last_working_day_on_or_before(start_ceiling)
                driven = finish_from_start(calendar, latest_start, activity.duration)
                if late_finish is None or driven < late_finish:
                    late_finish = driven

            late_finish = self._apply_backward_constraint(activity, calendar, late_finish)

            activity.late_finish = late_finish
            activity.late_start = start_from_finish(calendar, late_finish, activity.duration)

    def _get_driven_late_date(self, succ: ScheduledActivity, dep: Dependency,
                              calendar: WorkCalendar) -> date:
        """
        Boundary a successor relationship imposes on its predecessor.

        Mirror of _get_driven_early_date: FS/FF give the latest predecessor
        finish boundary, SS/SF its latest start.
        """
        if dep.drives_successor_start():
            base = succ.late_start
        else:
            base = late_finish_boundary(succ)
        return calendar.apply_lag(base, -dep.lag_days)

    def _finish_for_finish_ceiling(self, calendar: WorkCalendar, boundary: date, duration: int) -> date:
        """Latest inclusive finish that keeps the finish boundary at or before boundary.

        A milestone takes the first working day on or after boundary.
        """
        if duration <= 0:
            return calendar.first_working_day_on_or_after(boundary)
        return calendar.last_working_day_on_or_before(boundary - ONE_DAY)

    def _apply_backward_constraint(self, activity: ScheduledActivity, calendar: WorkCalendar,
                                   late_finish: date) -> date:
        """Apply the activity's date constraint to its late finish."""
        ctype = activity.constraint_type
        cdate = activity.constraint_date
        if ctype == ConstraintType.NONE or cdate is None:
            return late_finish

        if ctype in BACKWARD_START_CEILINGS:
            latest_start = calendar.last_working_day_on_or_before(cdate)
            return min(late_finish, finish_from_start(calendar, latest_start, activity.duration))
        if ctype in BACKWARD_FINISH_CEILINGS:
            return min(late_finish, calendar.last_working_day_on_or_before(cdate))
        if ctype == ConstraintType.MANDATORY_START:
            return finish_from_start(calendar, calendar.first_working_day_on_or_after(cdate), activity.duration)
        if ctype == ConstraintType.MANDATORY_FINISH:
            return calendar.last_working_day_on_or_before(cdate)
        return late_finish

    def calculate_float(self) -> None:
        """
        Calculate total float and free float for all activities.

        Total Float = working days from early start to late start
        Free Float = slack before the nearest successor relationship binds
        """
        for activity in self.network.activities.values():
            if activity.early_start is None or activity.late_start is None:
                continue

            calendar = self.get_calendar(activity.calendar_id)

            # Total float (negative when the network is infeasible)
            activity.total_float = calendar.working_days_between(activity.early_start, activity.late_start)

            # Mark as critical if float <= 0
            activity.is_critical = activity.total_float <= 0

            successors = self.network.get_successors(activity.activity_id)
            if not successors:
                activity.free_float = max(0, activity.total_float)
                continue

            min_free_float = None
            for dep in successors:
                succ = self.network.activities[dep.succ_activity_id]
                if dep.drives_successor_start():
                    allowed = calendar.apply_lag(succ.early_start, -dep.lag_days)
                else:
                    allowed = calendar.apply_lag(early_finish_boundary(succ), -dep.lag_days)
                if dep.from_predecessor_finish():
                    own = early_finish_boundary(activity)
                else:
                    own = activity.early_start
                gap = calendar.working_days_between(own, allowed)
                if min_free_float is None or gap < min_free_float:
                    min_free_float = gap

            activity.free_float = max(0, min_free_float)

    def get_critical_path(self) -> list[str]:
        """
        Return activity IDs on the critical path in execution order.

        Critical activities are those with total_float <= 0.
        """
        return [aid for aid in self.network.topological_sort() if self.network.activities[aid].is_critical]

    def get_project_finish(self) -> Optional[date]:
        """Get the latest early finish."""
        finishes = [a.early_finish for a in self.network.activities.values() if a.early_finish]
        return max(finishes) if finishes else None

    def run(self) -> list[str]:
        """
        Execute full CPM calculation.

        Returns:
            Critical path activity IDs in execution order
        """
        started = time.perf_counter()

        self.forward_pass()
        self.backward_pass()
        self.calculate_float()
        critical_path = self.get_critical_path()

        logger.debug(
            f"CPM run: {len(self.network)} activities, {len(critical_path)} critical, "
            f"{(time.perf_counter() - started) * 1000:.1f} ms"
        )
        return critical_path


def _resolve_default_calendar(project: ProjectInput, calendars: dict[str, WorkCalendar]) -> str:
    """Pick the project default calendar, adding a standard one if none resolves."""
    default_id = project.meta.default_calendar_id
    if default_id in calendars:
        return default_id

    for cal in project.calendars:
        if cal.is_default:
            logger.info(f"Default calendar {default_id} not found, using {cal.id} (marked default)")
            return cal.id

    if calendars:
        first_id = next(iter(calendars))
        logger.info(f"Default calendar {default_id} not found, using {first_id}")
        return first_id

    logger.info(f"No calendars supplied, using standard 5-day calendar as {default_id}")
    calendars[default_id] = WorkCalendar.standard(default_id)
    return default_id


def build_calendars(project: ProjectInput) -> tuple[dict[str, WorkCalendar], str]:
    """Build work calendars for a project and resolve its default calendar id."""
    calendars: dict[str, WorkCalendar] = {}
    for cal in project.calendars:
        if cal.id not in calendars:
            calendars[cal.id] = WorkCalendar.from_schema(cal)
    return calendars, _resolve_default_calendar(project, calendars)


def calculate_schedule(project: Union[ProjectInput, Mapping[str, Any]]) -> ScheduleResult:
    """
    Schedule a project.

    Pure and synchronous: the input is never modified and every call builds
    fresh output, so identical input gives identical output.

    Args:
        project: ProjectInput or a mapping following the input contract

    Returns:
        ScheduleResult with computed activities, WBS summaries and diagnostics

    Raises:
        ScheduleValidationError: If a duration is missing or negative, or an
            activity id is duplicated
    """
    project = coerce_project(project)
    diagnostics = ScheduleDiagnostics()

    calendars, default_calendar_id = build_calendars(project)

    activities = []
    for item in project.activities:
        calendar_id = item.calendar_id
        if not calendar_id:
            calendar_id = default_calendar_id
        elif calendar_id not in calendars:
            diagnostics.calendar_fallbacks[item.id] = calendar_id
            logger.info(f"Activity {item.id}: calendar {calendar_id} not found, using {default_calendar_id}")
            calendar_id = default_calendar_id
        activities.append(ScheduledActivity.from_input(item, calendar_id))

    network = ActivityNetwork.build(activities)
    diagnostics.dropped_references.extend(network.dropped_references)
    diagnostics.cycles.extend(network.cycles)
    logger.debug(f"Network statistics: {network.get_statistics()}")

    project_calendar = calendars[default_calendar_id]
    project_start = project_calendar.first_working_day_on_or_after(project.meta.project_start_date)

    engine = CPMEngine(
        network,
        calendars,
        default_calendar_id,
        project_start=project.meta.project_start_date,
        target_finish=project.meta.target_finish_date,
        diagnostics=diagnostics,
    )
    critical_path = engine.run()

    wbs_map, unassigned = aggregate_wbs(project.wbs, activities, project_calendar, project_start)
    diagnostics.unassigned_activities.extend(unassigned)

    return ScheduleResult(
        activities=activities,
        wbs_map=wbs_map,
        project_start=project_start,
        project_finish=engine.get_project_finish(),
        critical_path=critical_path,
        diagnostics=diagnostics,
    )
