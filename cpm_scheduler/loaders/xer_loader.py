"""
XER Project Loader.

Maps the tables of a Primavera P6 XER export onto engine input: PROJECT to
meta, PROJWBS to the WBS forest, TASK to activities, TASKPRED to predecessor
links and CALENDAR to work calendars. P6 stores durations and lags in hours;
they are converted to working days with the calendar's hours per day.
"""

import logging
from datetime import date
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from ..config.settings import settings
from ..schemas.project import (
    ActivityType,
    ConstraintType,
    ProjectInput,
    RelationType,
)
from ..schemas.validator import ScheduleValidationError, coerce_project
from .p6_calendar import parse_p6_calendar
from .xer_parser import XERParser

logger = logging.getLogger(__name__)

# P6 TASKPRED.pred_type
RELATION_TYPES = {
    'PR_FS': RelationType.FS,
    'PR_SS': RelationType.SS,
    'PR_FF': RelationType.FF,
    'PR_SF': RelationType.SF,
}

# TASK.cstr_type codes and the CST_* labels some exports carry instead
CONSTRAINT_TYPES = {
    'CS_MSO': ConstraintType.START_ON,
    'CS_MSOA': ConstraintType.START_ON_OR_AFTER,
    'CS_MSOB': ConstraintType.START_ON_OR_BEFORE,
    'CS_MEO': ConstraintType.FINISH_ON,
    'CS_MEOA': ConstraintType.FINISH_ON_OR_AFTER,
    'CS_MEOB': ConstraintType.FINISH_ON_OR_BEFORE,
    'CS_MANDSTART': ConstraintType.MANDATORY_START,
    'CS_MANDFIN': ConstraintType.MANDATORY_FINISH,
    'CST_StartOn': ConstraintType.START_ON,
    'CST_StartOnOrAfter': ConstraintType.START_ON_OR_AFTER,
    'CST_StartOnOrBefore': ConstraintType.START_ON_OR_BEFORE,
    'CST_FinishOn': ConstraintType.FINISH_ON,
    'CST_FinishOnOrAfter': ConstraintType.FINISH_ON_OR_AFTER,
    'CST_FinishOnOrBefore': ConstraintType.FINISH_ON_OR_BEFORE,
    'CST_MandStart': ConstraintType.MANDATORY_START,
    'CST_MandFin': ConstraintType.MANDATORY_FINISH,
}

# TASK.task_type
ACTIVITY_TYPES = {
    'TT_Mile': ActivityType.FINISH_MILESTONE,
    'TT_FinMile': ActivityType.FINISH_MILESTONE,
    'TT_StartMile': ActivityType.START_MILESTONE,
}


def _text(row: pd.Series, key: str) -> str:
    value = row.get(key, '')
    if value is None or pd.isna(value):
        return ''
    return str(value).strip()


def _float(row: pd.Series, key: str, default: float = 0.0) -> float:
    text = _text(row, key)
    if not text:
        return default
    try:
        return float(text)
    except ValueError:
        logger.warning(f"Unreadable number {text!r} in column {key}, using {default}")
        return default


def _date(row: pd.Series, key: str) -> Optional[date]:
    text = _text(row, key)
    if not text:
        return None
    parsed = pd.to_datetime(text, errors='coerce')
    if pd.isna(parsed):
        logger.warning(f"Unreadable date {text!r} in column {key}")
        return None
    return parsed.date()


def _rows(table: Optional[pd.DataFrame], proj_id: Optional[str] = None) -> list[pd.Series]:
    """Rows of a table, limited to one project when the table has proj_id."""
    if table is None:
        return []
    if proj_id is not None and 'proj_id' in table.columns:
        table = table[table['proj_id'] == proj_id]
    return [row for _, row in table.iterrows()]


def _select_project(tables: dict[str, pd.DataFrame], project_id: Optional[str]) -> pd.Series:
    projects = _rows(tables.get('PROJECT'))
    if not projects:
        raise ScheduleValidationError('XER file has no PROJECT table', ['PROJECT: table missing or empty'])

    if project_id is None:
        if len(projects) > 1:
            logger.info(f"XER file has {len(projects)} projects, loading the first")
        return projects[0]

    for row in projects:
        if project_id in (_text(row, 'proj_id'), _text(row, 'proj_short_name')):
            return row
    raise ScheduleValidationError(
        f'Project {project_id} not found in XER file',
        [f"PROJECT: no proj_id or proj_short_name {project_id!r}"],
    )


def build_project_data(tables: dict[str, pd.DataFrame], project_id: Optional[str] = None) -> dict:
    """
    Map parsed XER tables to the engine's input mapping.

    Args:
        tables: Table name -> DataFrame, as returned by XERParser.parse()
        project_id: proj_id or proj_short_name to load (default: first project)

    Returns:
        Dict following the input contract (camelCase keys)
    """
    project = _select_project(tables, project_id)
    proj_id = _text(project, 'proj_id')

    # Calendars
    calendars = []
    hours_per_day: dict[str, float] = {}
    for row in _rows(tables.get('CALENDAR')):
        calendar = parse_p6_calendar(
            clndr_id=_text(row, 'clndr_id'),
            clndr_data=_text(row, 'clndr_data'),
            day_hr_cnt=_float(row, 'day_hr_cnt', settings.DEFAULT_HOURS_PER_DAY),
            clndr_name=_text(row, 'clndr_name'),
            is_default=_text(row, 'default_flag') == 'Y',
        )
        calendars.append(calendar.model_dump(by_alias=True))
        hours_per_day[calendar.id] = calendar.hours_per_day

    default_calendar_id = _text(project, 'clndr_id')
    if not default_calendar_id:
        default_calendar_id = next((c['id'] for c in calendars if c['isDefault']), 'default')

    def day_hours(calendar_id: str) -> float:
        return hours_per_day.get(calendar_id or default_calendar_id,
                                 hours_per_day.get(default_calendar_id, settings.DEFAULT_HOURS_PER_DAY))

    # WBS (project node is the root)
    wbs = []
    for row in _rows(tables.get('PROJWBS'), proj_id):
        is_root = _text(row, 'proj_node_flag') == 'Y'
        wbs.append({
            'id': _text(row, 'wbs_id'),
            'name': _text(row, 'wbs_name') or _text(row, 'wbs_short_name'),
            'parentId': None if is_root else (_text(row, 'parent_wbs_id') or None),
        })

    # Activities, keyed by P6's internal task_id for relationship mapping
    activities = []
    task_codes: dict[str, str] = {}
    by_task_id: dict[str, dict] = {}
    for row in _rows(tables.get('TASK'), proj_id):
        task_id = _text(row, 'task_id')
        code = _text(row, 'task_code') or task_id
        calendar_id = _text(row, 'clndr_id') or None
        activity_type = ACTIVITY_TYPES.get(_text(row, 'task_type'), ActivityType.TASK)

        duration = round(_float(row, 'target_drtn_hr_cnt') / day_hours(calendar_id))
        if activity_type != ActivityType.TASK:
            duration = 0

        constraint_type = CONSTRAINT_TYPES.get(_text(row, 'cstr_type'))
        if constraint_type is None:
            constraint_type = CONSTRAINT_TYPES.get(_text(row, 'task_control_type_code'), ConstraintType.NONE)
        constraint_date = _date(row, 'cstr_date') if constraint_type != ConstraintType.NONE else None

        activity = {
            'id': code,
            'name': _text(row, 'task_name'),
            'wbsId': _text(row, 'wbs_id') or None,
            'duration': duration,
            'calendarId': calendar_id,
            'predecessors': [],
            'constraintType': constraint_type.value,
            'constraintDate': constraint_date,
            'activityType': activity_type.value,
        }
        activities.append(activity)
        task_codes[task_id] = code
        by_task_id[task_id] = activity

    # Relationships (only between activities of this project)
    skipped = 0
    for row in _rows(tables.get('TASKPRED')):
        succ = by_task_id.get(_text(row, 'task_id'))
        pred_code = task_codes.get(_text(row, 'pred_task_id'))
        if succ is None or pred_code is None:
            skipped += 1
            continue
        pred_calendar = by_task_id[_text(row, 'pred_task_id')]['calendarId']
        succ['predecessors'].append({
            'activityId': pred_code,
            'type': RELATION_TYPES.get(_text(row, 'pred_type'), RelationType.FS).value,
            'lag': round(_float(row, 'lag_hr_cnt') / day_hours(pred_calendar)),
        })
    if skipped:
        logger.info(f"Skipped {skipped} relationships outside project {proj_id}")

    project_start = _date(project, 'plan_start_date') or _date(project, 'last_recalc_date')
    if project_start is None:
        raise ScheduleValidationError(
            f'Project {proj_id} has no start date',
            ['PROJECT.plan_start_date: missing or unreadable'],
        )

    return {
        'meta': {
            'projectStartDate': project_start,
            'defaultCalendarId': default_calendar_id,
            'title': _text(project, 'proj_short_name') or 'Imported Project',
            'projectCode': _text(project, 'proj_short_name'),
        },
        'wbs': wbs,
        'activities': activities,
        'calendars': calendars,
    }


def load_xer_project(path: Union[str, Path], project_id: Optional[str] = None) -> ProjectInput:
    """
    Load a Primavera P6 XER export as validated engine input.

    Args:
        path: Path to the .xer file
        project_id: proj_id or proj_short_name to load (default: first project)

    Returns:
        Validated ProjectInput

    Raises:
        ScheduleValidationError: If the file lacks a project or holds invalid records
    """
    parser = XERParser(path)
    tables = parser.parse()
    data = build_project_data(tables, project_id)

    logger.info(
        f"Loaded {Path(path).name}: {len(data['activities'])} activities, "
        f"{len(data['wbs'])} WBS nodes, {len(data['calendars'])} calendars"
    )
    return coerce_project(data)
