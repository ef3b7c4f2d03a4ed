"""
Integration tests for the command line interface.

Runs main() end to end against project files written to tmp_path.
"""

import json

import pandas as pd
import pytest

from cpm_scheduler.cli import main


@pytest.fixture
def project_file(tmp_path, scenario_data):
    path = tmp_path / 'project.json'
    path.write_text(json.dumps(scenario_data), encoding='utf-8')
    return path


class TestCli:
    """Test the cpm-schedule entry point."""

    def test_csv_output(self, project_file, tmp_path):
        output = tmp_path / 'out' / 'schedule.csv'
        assert main([str(project_file), '-o', str(output)]) == 0

        df = pd.read_csv(output)
        assert list(df['activity_id']) == ['A', 'B', 'C', 'D', 'M']
        assert df.loc[df['activity_id'] == 'B', 'total_float'].iloc[0] == 2
        assert df.loc[df['activity_id'] == 'M', 'early_finish'].iloc[0] == '2024-01-11'

    def test_json_output(self, project_file, tmp_path):
        output = tmp_path / 'schedule.json'
        assert main([str(project_file), '-o', str(output)]) == 0

        data = json.loads(output.read_text(encoding='utf-8'))
        assert data['projectFinish'] == '2024-01-11'
        assert data['criticalPath'] == ['A', 'C', 'D', 'M']
        assert data['wbsMap']['W1']['duration'] == 8

    def test_table_and_report(self, project_file, capsys):
        assert main([str(project_file), '--report', '--near-critical-days', '3']) == 0
        out = capsys.readouterr().out
        assert 'Project: 2024-01-01 -> 2024-01-11' in out
        assert 'CRITICAL PATH ANALYSIS REPORT' in out
        assert 'Near-Critical Activities (<= 3 days float): 1' in out

    def test_date_overrides(self, project_file, tmp_path):
        output = tmp_path / 'schedule.json'
        assert main([str(project_file), '-o', str(output),
                     '--project-start', '2024-01-08', '--target-finish', '2024-01-22']) == 0

        data = json.loads(output.read_text(encoding='utf-8'))
        assert data['projectStart'] == '2024-01-08'
        assert data['projectFinish'] == '2024-01-18'
        assert data['criticalPath'] == []

    def test_missing_input(self, tmp_path):
        assert main([str(tmp_path / 'nope.json')]) == 1

    def test_invalid_project(self, tmp_path, make_project):
        path = tmp_path / 'bad.json'
        path.write_text(json.dumps(make_project([{'id': 'A', 'duration': -2}])), encoding='utf-8')
        assert main([str(path)]) == 1

    def test_malformed_json(self, tmp_path):
        path = tmp_path / 'broken.json'
        path.write_text('{"meta": ', encoding='utf-8')
        assert main([str(path)]) == 1

    def test_invalid_date_argument(self, project_file):
        with pytest.raises(SystemExit):
            main([str(project_file), '--project-start', '08/01/2024'])

    def test_xer_input(self, tmp_path):
        path = tmp_path / 'demo.xer'
        path.write_text('\n'.join([
            '%T\tPROJECT',
            '%F\tproj_id\tproj_short_name\tplan_start_date',
            '%R\t100\tDEMO\t2024-01-01 08:00',
            '%T\tTASK',
            '%F\ttask_id\tproj_id\ttask_code\ttask_name\ttarget_drtn_hr_cnt',
            '%R\t1\t100\tA10\tDesign\t16',
            '%R\t2\t100\tA20\tBuild\t24',
            '%T\tTASKPRED',
            '%F\ttask_id\tpred_task_id\tpred_type\tlag_hr_cnt',
            '%R\t2\t1\tPR_FS\t0',
            '%E',
        ]) + '\n', encoding='utf-8')
        output = tmp_path / 'schedule.json'
        assert main([str(path), '-o', str(output)]) == 0

        data = json.loads(output.read_text(encoding='utf-8'))
        assert data['projectFinish'] == '2024-01-05'
        assert data['criticalPath'] == ['A10', 'A20']

    def test_invalid_settings(self, project_file, monkeypatch):
        from cpm_scheduler.config.settings import Settings
        monkeypatch.setattr(Settings, 'DEFAULT_HOURS_PER_DAY', 0.0)
        assert main([str(project_file)]) == 1
