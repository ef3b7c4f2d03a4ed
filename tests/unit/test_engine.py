"""
Unit tests for the CPM engine: forward/backward pass, float, constraints
and repair diagnostics.
"""

import copy
from datetime import date, timedelta

import pytest

from cpm_scheduler.cpm.calendar import WorkCalendar
from cpm_scheduler.cpm.engine import calculate_schedule
from cpm_scheduler.cpm.models import ACTIVITY_COLUMNS
from cpm_scheduler.schemas.validator import ScheduleValidationError


def d(day: int, month: int = 1) -> date:
    return date(2024, month, day)


def dates(result, activity_id):
    a = result.get_activity(activity_id)
    return a.early_start, a.early_finish, a.late_start, a.late_finish


class TestScenario:
    """The reference network from conftest."""

    def test_early_and_late_dates(self, scenario_data):
        result = calculate_schedule(scenario_data)
        assert dates(result, 'A') == (d(1), d(3), d(1), d(3))
        assert dates(result, 'B') == (d(4), d(5), d(8), d(9))
        assert dates(result, 'C') == (d(4), d(9), d(4), d(9))
        assert dates(result, 'D') == (d(10), d(10), d(10), d(10))
        assert dates(result, 'M') == (d(11), d(11), d(11), d(11))

    def test_float_and_critical_path(self, scenario_data):
        result = calculate_schedule(scenario_data)
        assert result.get_activity('B').total_float == 2
        assert not result.get_activity('B').is_critical
        for activity_id in ('A', 'C', 'D', 'M'):
            assert result.get_activity(activity_id).total_float == 0
            assert result.get_activity(activity_id).is_critical
        assert result.critical_path == ['A', 'C', 'D', 'M']

    def test_free_float(self, scenario_data):
        result = calculate_schedule(scenario_data)
        assert result.get_activity('A').free_float == 0
        assert result.get_activity('B').free_float == 2
        assert result.get_activity('M').free_float == 0

    def test_project_dates(self, scenario_data):
        result = calculate_schedule(scenario_data)
        assert result.project_start == d(1)
        assert result.project_finish == d(11)

    def test_activities_keep_input_order(self, scenario_data):
        result = calculate_schedule(scenario_data)
        assert [a.activity_id for a in result.activities] == ['A', 'B', 'C', 'D', 'M']

    def test_wbs_roll_up(self, scenario_data):
        result = calculate_schedule(scenario_data)
        civil = result.wbs_map['W1.1']
        assert (civil.start_date, civil.end_date, civil.duration, civil.activity_count) == (d(1), d(5), 5, 2)
        services = result.wbs_map['W1.2']
        assert (services.start_date, services.end_date, services.duration) == (d(4), d(11), 5)
        project = result.wbs_map['W1']
        assert (project.start_date, project.end_date, project.duration, project.activity_count) == (d(1), d(11), 8, 5)

    def test_empty_wbs_node_gets_sentinel(self, scenario_data):
        result = calculate_schedule(scenario_data)
        empty = result.wbs_map['W1.3']
        assert empty.is_empty()
        assert (empty.start_date, empty.end_date, empty.duration) == (d(1), d(1), 0)


class TestProperties:
    """Relationships between computed values that hold for every activity."""

    def test_duration_and_float_identities(self, scenario_data):
        """Finish dates are inclusive, so duration counts working days in [ES, EF + 1 day)."""
        result = calculate_schedule(scenario_data)
        calendar = WorkCalendar.standard('std')
        for a in result.activities:
            assert a.early_start <= a.late_start
            assert a.early_finish <= a.late_finish
            if a.duration > 0:
                assert calendar.working_days_between(a.early_start, a.early_finish + timedelta(days=1)) == a.duration
            else:
                assert a.early_start == a.early_finish
            assert a.total_float == calendar.working_days_between(a.early_start, a.late_start)
            assert a.total_float == calendar.working_days_between(a.early_finish, a.late_finish)
            assert a.is_critical == (a.total_float <= 0)
            assert 0 <= a.free_float <= max(a.total_float, 0)

    def test_fs_successor_starts_after_predecessor_finishes(self, scenario_data):
        result = calculate_schedule(scenario_data)
        by_id = {a.activity_id: a for a in result.activities}
        for a in result.activities:
            for pred in a.predecessors:
                assert by_id[pred.activity_id].early_finish < a.early_start or by_id[pred.activity_id].is_milestone()

    def test_identical_input_gives_identical_output(self, scenario_data):
        assert calculate_schedule(scenario_data).to_dict() == calculate_schedule(scenario_data).to_dict()

    def test_input_is_not_modified(self, scenario_data):
        snapshot = copy.deepcopy(scenario_data)
        calculate_schedule(scenario_data)
        assert scenario_data == snapshot

    def test_accepts_validated_project(self, scenario_project):
        result = calculate_schedule(scenario_project)
        assert result.project_finish == d(11)


class TestRelationships:
    """Test the four relationship types with lags."""

    def test_fs_positive_lag(self, make_project):
        result = calculate_schedule(make_project([
            {'id': 'A', 'duration': 3},
            {'id': 'B', 'duration': 1, 'predecessors': 'AFS+2'},
        ]))
        assert result.get_activity('B').early_start == d(8)

    def test_fs_negative_lag(self, make_project):
        result = calculate_schedule(make_project([
            {'id': 'A', 'duration': 3},
            {'id': 'B', 'duration': 1, 'predecessors': 'A-1'},
        ]))
        assert result.get_activity('B').early_start == d(3)

    def test_ss_lag(self, make_project):
        result = calculate_schedule(make_project([
            {'id': 'A', 'duration': 3},
            {'id': 'B', 'duration': 2, 'predecessors': 'ASS+1'},
        ]))
        assert (result.get_activity('B').early_start, result.get_activity('B').early_finish) == (d(2), d(3))

    def test_ff(self, make_project):
        result = calculate_schedule(make_project([
            {'id': 'A', 'duration': 3},
            {'id': 'B', 'duration': 1, 'predecessors': 'AFF'},
        ]))
        assert (result.get_activity('B').early_start, result.get_activity('B').early_finish) == (d(3), d(3))

    def test_ff_does_not_start_before_project(self, make_project):
        result = calculate_schedule(make_project([
            {'id': 'A', 'duration': 3},
            {'id': 'B', 'duration': 5, 'predecessors': 'AFF'},
        ]))
        assert (result.get_activity('B').early_start, result.get_activity('B').early_finish) == (d(1), d(5))

    def test_sf_lag(self, make_project):
        result = calculate_schedule(make_project([
            {'id': 'A', 'duration': 3},
            {'id': 'B', 'duration': 2, 'predecessors': 'ASF+3'},
        ]))
        assert (result.get_activity('B').early_start, result.get_activity('B').early_finish) == (d(2), d(3))

    def test_milestone_predecessor(self, make_project):
        result = calculate_schedule(make_project([
            {'id': 'M', 'duration': 0},
            {'id': 'A', 'duration': 2, 'predecessors': 'M'},
        ]))
        assert result.get_activity('M').early_start == d(1)
        assert result.get_activity('A').early_start == d(1)

    def test_milestone_after_friday_finish(self, make_project):
        result = calculate_schedule(make_project([
            {'id': 'A', 'duration': 5},
            {'id': 'M', 'duration': 0, 'predecessors': 'A'},
        ]))
        assert result.get_activity('M').early_start == d(8)
        assert result.get_activity('M').total_float == 0

    def test_milestone_keeps_float_of_parallel_branch(self, make_project):
        activities = [
            {'id': 'A', 'duration': 3},
            {'id': 'B', 'duration': 5},
        ]
        without = calculate_schedule(make_project(activities))
        result = calculate_schedule(make_project(activities + [{'id': 'M', 'duration': 0, 'predecessors': 'A'}]))

        assert without.get_activity('A').total_float == 2
        assert result.get_activity('A').total_float == 2
        m = result.get_activity('M')
        # late date falls after the weekend, same as a milestone following a Friday finish
        assert (m.early_start, m.late_start, m.late_finish) == (d(4), d(8), d(8))
        assert m.total_float == 2
        assert not m.is_critical
        assert result.critical_path == ['B']


class TestCalendars:
    """Test calendar handling during scheduling."""

    def test_holiday_extends_activity(self, make_project):
        calendar = {'id': 'std', 'exceptions': [{'date': '2024-01-02', 'isWorking': False}]}
        result = calculate_schedule(make_project([{'id': 'A', 'duration': 3}], calendars=[calendar]))
        assert result.get_activity('A').early_finish == d(4)

    def test_non_working_wednesday_shifts_finish(self, make_project):
        calendar = {'id': 'std', 'exceptions': [{'date': '2024-01-03', 'isWorking': False}]}
        result = calculate_schedule(make_project([{'id': 'A', 'duration': 3}], calendars=[calendar]))
        assert result.get_activity('A').early_finish == d(4)

    def test_worked_saturday(self, make_project):
        calendar = {'id': 'std', 'exceptions': [{'date': '2024-01-06', 'isWorking': True}]}
        result = calculate_schedule(make_project([
            {'id': 'A', 'duration': 5},
            {'id': 'B', 'duration': 2, 'predecessors': 'A'},
        ], calendars=[calendar]))
        assert (result.get_activity('B').early_start, result.get_activity('B').early_finish) == (d(6), d(8))

    def test_weekend_project_start_snaps_forward(self, make_project):
        result = calculate_schedule(make_project([{'id': 'A', 'duration': 1}], projectStartDate='2023-12-30'))
        assert result.project_start == d(1)
        assert result.get_activity('A').early_start == d(1)

    def test_activities_on_different_calendars(self, make_project):
        calendars = [
            {'id': 'std'},
            {'id': '7day', 'weekDays': [True] * 7},
        ]
        result = calculate_schedule(make_project([
            {'id': 'A', 'duration': 3},
            {'id': 'B', 'duration': 3, 'calendarId': '7day', 'predecessors': 'A'},
            {'id': 'C', 'duration': 1, 'predecessors': 'B'},
        ], calendars=calendars))
        assert (result.get_activity('B').early_start, result.get_activity('B').early_finish) == (d(4), d(6))
        assert result.get_activity('C').early_start == d(8)

    def test_unknown_calendar_falls_back_to_default(self, make_project):
        result = calculate_schedule(make_project([{'id': 'A', 'duration': 1, 'calendarId': 'night'}]))
        assert result.get_activity('A').calendar_id == 'std'
        assert result.diagnostics.calendar_fallbacks == {'A': 'night'}

    def test_no_calendars_uses_standard_week(self, make_project):
        result = calculate_schedule(make_project([{'id': 'A', 'duration': 6}], calendars=[]))
        assert result.get_activity('A').early_finish == d(8)

    def test_default_calendar_marked_in_list(self, make_project):
        calendars = [
            {'id': '7day', 'weekDays': [True] * 7},
            {'id': 'five', 'isDefault': True},
        ]
        result = calculate_schedule(make_project([{'id': 'A', 'duration': 6}], calendars=calendars,
                                                 defaultCalendarId='missing'))
        assert result.get_activity('A').calendar_id == 'five'
        assert result.get_activity('A').early_finish == d(8)


class TestConstraints:
    """Test date constraints on both passes."""

    def test_start_on_or_after(self, scenario_data):
        scenario_data['activities'][1].update(constraintType='Start On or After', constraintDate='2024-01-06')
        result = calculate_schedule(scenario_data)
        b = result.get_activity('B')
        assert (b.early_start, b.early_finish) == (d(8), d(9))
        assert b.total_float == 0

    def test_finish_on_or_before_gives_negative_float(self, scenario_data):
        scenario_data['activities'][2].update(constraintType='Finish On or Before', constraintDate='2024-01-08')
        result = calculate_schedule(scenario_data)
        c = result.get_activity('C')
        assert (c.late_start, c.late_finish) == (d(3), d(8))
        assert c.total_float == -1
        assert result.get_activity('A').total_float == -1
        assert 'C' in result.critical_path

    def test_mandatory_start_overrides_logic(self, scenario_data):
        scenario_data['activities'][1].update(constraintType='Mandatory Start', constraintDate='2024-01-02')
        result = calculate_schedule(scenario_data)
        b = result.get_activity('B')
        assert (b.early_start, b.early_finish, b.late_start, b.late_finish) == (d(2), d(3), d(2), d(3))

    def test_mandatory_finish(self, make_project):
        result = calculate_schedule(make_project([
            {'id': 'A', 'duration': 2, 'constraintType': 'Mandatory Finish', 'constraintDate': '2024-01-12'},
        ]))
        a = result.get_activity('A')
        assert (a.early_start, a.early_finish) == (d(11), d(12))

    def test_constraint_without_date_is_ignored(self, scenario_data):
        scenario_data['activities'][1].update(constraintType='Start On')
        result = calculate_schedule(scenario_data)
        assert result.get_activity('B').early_start == d(4)
        assert result.diagnostics.ignored_constraints == ['B']


class TestTargetFinish:
    """Test the explicit backward-pass anchor."""

    def test_later_target_adds_float(self, scenario_data):
        scenario_data['meta']['targetFinishDate'] = '2024-01-15'
        result = calculate_schedule(scenario_data)
        assert result.get_activity('D').total_float == 3
        assert result.get_activity('M').total_float == 3
        assert result.critical_path == []
        assert result.project_finish == d(11)

    def test_earlier_target_gives_negative_float(self, scenario_data):
        scenario_data['meta']['targetFinishDate'] = '2024-01-08'
        result = calculate_schedule(scenario_data)
        assert result.get_activity('D').total_float == -2
        assert result.get_activity('M').total_float == -2


class TestRepair:
    """Test that malformed graph data is repaired and reported."""

    def test_dangling_predecessor_is_dropped(self, make_project):
        result = calculate_schedule(make_project([
            {'id': 'A', 'duration': 2},
            {'id': 'B', 'duration': 1, 'predecessors': 'X'},
        ]))
        assert result.get_activity('B').early_start == d(1)
        dropped = result.diagnostics.dropped_references
        assert [(r.activity_id, r.predecessor_id) for r in dropped] == [('B', 'X')]

    def test_cycle_is_broken(self, make_project):
        result = calculate_schedule(make_project([
            {'id': 'A', 'duration': 1, 'predecessors': 'C'},
            {'id': 'B', 'duration': 1, 'predecessors': 'A'},
            {'id': 'C', 'duration': 1, 'predecessors': 'B'},
        ]))
        assert [result.get_activity(x).early_start for x in 'ABC'] == [d(1), d(2), d(3)]
        assert result.project_finish == d(3)
        assert len(result.diagnostics.cycles) == 1

    def test_unknown_wbs_is_reported(self, make_project):
        result = calculate_schedule(make_project([{'id': 'A', 'duration': 1, 'wbsId': 'nowhere'}]))
        assert result.diagnostics.unassigned_activities == ['A']
        assert result.diagnostics.has_issues()

    def test_empty_project(self, make_project):
        result = calculate_schedule(make_project([]))
        assert result.activities == []
        assert result.project_finish is None
        assert result.critical_path == []


class TestValidation:
    """Test that malformed records fail before scheduling."""

    def test_negative_duration(self, make_project):
        with pytest.raises(ScheduleValidationError) as exc_info:
            calculate_schedule(make_project([{'id': 'A', 'duration': -1}]))
        assert 'duration' in str(exc_info.value)

    def test_missing_duration(self, make_project):
        with pytest.raises(ScheduleValidationError):
            calculate_schedule(make_project([{'id': 'A'}]))

    def test_duplicate_ids(self, make_project):
        with pytest.raises(ScheduleValidationError) as exc_info:
            calculate_schedule(make_project([{'id': 'A', 'duration': 1}, {'id': 'A', 'duration': 2}]))
        assert exc_info.value.issues == ["activity id 'A' is used 2 times"]


class TestOutput:
    """Test result serialization."""

    def test_to_dict_uses_camel_case(self, scenario_data):
        output = calculate_schedule(scenario_data).to_dict()
        assert set(output) == {'activities', 'wbsMap', 'projectStart', 'projectFinish',
                               'criticalPath', 'diagnostics'}
        first = output['activities'][0]
        assert first['earlyStart'] == '2024-01-01'
        assert first['endDate'] == '2024-01-03'
        assert first['isCritical'] is True
        assert output['wbsMap']['W1.1']['duration'] == 5

    def test_to_dataframe(self, scenario_data):
        df = calculate_schedule(scenario_data).to_dataframe()
        assert list(df.columns) == ACTIVITY_COLUMNS
        assert len(df) == 5
        assert df.loc[df['activity_id'] == 'D', 'predecessors'].iloc[0] == 'B,C'

    def test_get_activities_by_float(self, scenario_data):
        result = calculate_schedule(scenario_data)
        assert [a.activity_id for a in result.get_activities_by_float(max_float=0)] == ['A', 'C', 'D', 'M']
        assert result.get_activities_by_float()[-1].activity_id == 'B'
