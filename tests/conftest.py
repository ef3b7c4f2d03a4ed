"""Pytest configuration and fixtures."""
from datetime import date
from typing import Any, Dict, List

import pytest

from cpm_scheduler.cpm.calendar import WorkCalendar
from cpm_scheduler.schemas.project import ProjectInput


# Monday
PROJECT_START = date(2024, 1, 1)

STANDARD_CALENDAR = {
    'id': 'std',
    'name': 'Standard 5-Day',
    'weekDays': [False, True, True, True, True, True, False],
    'hoursPerDay': 8,
    'isDefault': True,
    'exceptions': [],
}


def build_project_data(activities: List[Dict[str, Any]], wbs: List[Dict[str, Any]] = None,
                       calendars: List[Dict[str, Any]] = None, **meta) -> Dict[str, Any]:
    """Build an input mapping around a list of activity records."""
    meta_data = {
        'projectStartDate': PROJECT_START.isoformat(),
        'defaultCalendarId': 'std',
    }
    meta_data.update(meta)
    return {
        'meta': meta_data,
        'wbs': wbs if wbs is not None else [],
        'activities': activities,
        'calendars': calendars if calendars is not None else [dict(STANDARD_CALENDAR)],
    }


@pytest.fixture
def standard_calendar() -> WorkCalendar:
    """Mon-Fri calendar without exceptions."""
    return WorkCalendar.standard('std')


@pytest.fixture
def make_project():
    """Factory for input mappings."""
    return build_project_data


@pytest.fixture
def scenario_data() -> Dict[str, Any]:
    """
    Small network on a Mon-Fri calendar starting Monday 2024-01-01.

    A(3) -> B(2) -> D(1) -> M(milestone)
    A(3) -> C(4) -> D
    """
    return build_project_data(
        activities=[
            {'id': 'A', 'name': 'Site preparation', 'wbsId': 'W1.1', 'duration': 3},
            {'id': 'B', 'name': 'Foundations', 'wbsId': 'W1.1', 'duration': 2, 'predecessors': 'A'},
            {'id': 'C', 'name': 'Utilities', 'wbsId': 'W1.2', 'duration': 4,
             'predecessors': [{'activityId': 'A', 'type': 'FS', 'lag': 0}]},
            {'id': 'D', 'name': 'Inspection', 'wbsId': 'W1.2', 'duration': 1, 'predecessors': 'B,C'},
            {'id': 'M', 'name': 'Handover', 'wbsId': 'W1.2', 'duration': 0, 'predecessors': 'D',
             'activityType': 'Finish Milestone'},
        ],
        wbs=[
            {'id': 'W1', 'name': 'Project', 'parentId': None},
            {'id': 'W1.1', 'name': 'Civil', 'parentId': 'W1'},
            {'id': 'W1.2', 'name': 'Services', 'parentId': 'W1'},
            {'id': 'W1.3', 'name': 'Landscaping', 'parentId': 'W1'},
        ],
    )


@pytest.fixture
def scenario_project(scenario_data) -> ProjectInput:
    """Validated scenario project."""
    return ProjectInput.model_validate(scenario_data)
