"""
Input validation for the scheduling engine.

Malformed graph data (dangling predecessors, cycles, unknown calendars) is
repaired by the engine. Malformed records are not: a missing or negative
duration, or a duplicated activity id, fails before scheduling begins.
"""

import logging
from collections import Counter
from typing import Any, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .project import ProjectInput

logger = logging.getLogger(__name__)


class ScheduleValidationError(ValueError):
    """Raised when project input cannot be scheduled."""

    def __init__(self, message: str, issues: Optional[List[str]] = None):
        super().__init__(message)
        self.issues = issues or []

    def __str__(self) -> str:
        message = super().__str__()
        if not self.issues:
            return message
        return message + '\n' + '\n'.join(f'  - {issue}' for issue in self.issues)


def _format_pydantic_errors(error: PydanticValidationError) -> List[str]:
    """Flatten pydantic errors into 'location: message' strings."""
    issues = []
    for err in error.errors():
        location = '.'.join(str(part) for part in err.get('loc', ()))
        issues.append(f"{location}: {err.get('msg', 'invalid value')}")
    return issues


def validate_project(project: ProjectInput) -> List[str]:
    """
    Check a parsed project for input errors the engine will not repair.

    Returns:
        List of issues found (empty if valid)
    """
    issues = []

    for idx, activity in enumerate(project.activities):
        # model_construct() skips field validation, so check again here
        if activity.duration is None:
            issues.append(f'activities.{idx} ({activity.id}): duration is missing')
        elif activity.duration < 0:
            issues.append(
                f'activities.{idx} ({activity.id}): duration must be >= 0, got {activity.duration}'
            )

    counts = Counter(activity.id for activity in project.activities)
    for activity_id, count in counts.items():
        if count > 1:
            issues.append(f'activity id {activity_id!r} is used {count} times')

    return issues


def coerce_project(data: Union[ProjectInput, Mapping[str, Any]]) -> ProjectInput:
    """
    Parse and validate engine input.

    Args:
        data: A ProjectInput or a mapping following the input contract

    Returns:
        Validated ProjectInput

    Raises:
        ScheduleValidationError: If the input is malformed
    """
    if isinstance(data, ProjectInput):
        project = data
    else:
        try:
            project = ProjectInput.model_validate(data)
        except PydanticValidationError as e:
            issues = _format_pydantic_errors(e)
            raise ScheduleValidationError(
                f'Project input failed validation with {len(issues)} issue(s)', issues
            ) from e

    issues = validate_project(project)
    if issues:
        logger.error(f'Project input rejected: {len(issues)} issue(s)')
        raise ScheduleValidationError(
            f'Project input failed validation with {len(issues)} issue(s)', issues
        )

    return project
