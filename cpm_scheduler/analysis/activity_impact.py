"""
Single Activity Impact Analysis.

Analyze the schedule impact of changing a single activity's duration.
Used for what-if scenarios and sensitivity analysis.
"""

import logging
from typing import Any, Mapping, Optional, Union

from ..cpm.engine import calculate_schedule, build_calendars
from ..cpm.models import ActivityImpactResult
from ..schemas.project import ProjectInput
from ..schemas.validator import coerce_project

logger = logging.getLogger(__name__)


def analyze_activity_impact(
    project: Union[ProjectInput, Mapping[str, Any]],
    activity_id: str,
    duration_delta: int,
) -> ActivityImpactResult:
    """
    Calculate impact of changing one activity's duration.

    Args:
        project: Project input (will not be modified)
        activity_id: ID of activity to modify
        duration_delta: Change in working days (positive = increase)

    Returns:
        ActivityImpactResult with original vs new finish dates and affected activities
    """
    project = coerce_project(project)
    activity = project.get_activity(activity_id)
    if activity is None:
        raise ValueError(f"Activity {activity_id} not found in project")

    # Run baseline CPM
    baseline = calculate_schedule(project)

    # Copy project with the modified activity
    new_duration = max(0, activity.duration + duration_delta)
    modified_activities = [
        a.model_copy(update={'duration': new_duration}) if a.id == activity_id else a
        for a in project.activities
    ]
    modified = calculate_schedule(project.model_copy(update={'activities': modified_activities}))

    # Find affected activities (activities whose early_finish changed)
    affected = []
    for baseline_activity, modified_activity in zip(baseline.activities, modified.activities):
        if baseline_activity.early_finish != modified_activity.early_finish:
            affected.append(modified_activity.activity_id)

    # Slip in working days on the project calendar
    calendars, default_calendar_id = build_calendars(project)
    slip_days = _working_day_slip(calendars[default_calendar_id], baseline.project_finish, modified.project_finish)

    # Check if critical path changed
    cp_changed = set(baseline.critical_path) != set(modified.critical_path)

    logger.debug(f"Impact of {activity_id} {duration_delta:+d}d: {slip_days} working days slip")

    return ActivityImpactResult(
        activity_id=activity_id,
        activity_name=activity.name,
        duration_delta=duration_delta,
        original_finish=baseline.project_finish,
        new_finish=modified.project_finish,
        slip_days=slip_days,
        affected_activity_ids=affected,
        original_critical_path=baseline.critical_path,
        new_critical_path=modified.critical_path,
        critical_path_changed=cp_changed,
    )


def _working_day_slip(calendar, original_finish, new_finish) -> int:
    if original_finish is None or new_finish is None:
        return 0
    return calendar.working_days_between(original_finish, new_finish)


def analyze_activity_sensitivity(
    project: Union[ProjectInput, Mapping[str, Any]],
    activity_ids: Optional[list[str]] = None,
    duration_delta: int = 5,
) -> list[ActivityImpactResult]:
    """
    Analyze sensitivity of multiple activities.

    Tests the impact of increasing each activity's duration by the same amount.
    Useful for identifying which activities carry the most schedule risk.

    Args:
        project: Project input
        activity_ids: Activities to analyze (default: all with non-zero duration)
        duration_delta: Duration increase to test, in working days

    Returns:
        List of ActivityImpactResult sorted by slip_days (descending)
    """
    project = coerce_project(project)
    if activity_ids is None:
        activity_ids = [a.id for a in project.activities if a.duration > 0]

    results = [analyze_activity_impact(project, aid, duration_delta) for aid in activity_ids]

    # Sort by slip impact (descending)
    results.sort(key=lambda r: r.slip_days, reverse=True)
    return results
