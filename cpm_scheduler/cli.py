"""
CLI interface for the CPM scheduler.

Schedules a project from an application JSON file or a Primavera P6 XER
export and writes the computed dates as CSV, JSON or a printed table.
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from .analysis.critical_path import analyze_critical_path, print_critical_path_report
from .config.settings import settings
from .cpm.engine import calculate_schedule
from .cpm.models import ScheduleResult
from .loaders.project_loader import load_project
from .loaders.xer_loader import load_xer_project
from .schemas.project import ProjectInput
from .schemas.validator import ScheduleValidationError
from .utils.logger import configure_logging

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    package_logger = configure_logging('cpm_scheduler')
    if verbose:
        package_logger.setLevel(logging.DEBUG)


def parse_date(value: str) -> date:
    """argparse type for YYYY-MM-DD dates."""
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYY-MM-DD")


def load_input(input_path: Path) -> ProjectInput:
    """Load a project from .json or .xer."""
    if input_path.suffix.lower() == '.xer':
        return load_xer_project(input_path)
    return load_project(input_path)


def apply_overrides(project: ProjectInput, project_start: Optional[date] = None,
                    target_finish: Optional[date] = None) -> ProjectInput:
    """Return a copy of project with command line date overrides applied."""
    updates = {}
    if project_start is not None:
        updates['project_start_date'] = project_start
    if target_finish is not None:
        updates['target_finish_date'] = target_finish
    if not updates:
        return project
    return project.model_copy(update={'meta': project.meta.model_copy(update=updates)})


def write_output(result: ScheduleResult, output_path: Optional[Path]) -> None:
    """Write the schedule to CSV or JSON, or print it as a table."""
    if output_path is None:
        df = result.to_dataframe()
        print(df[['activity_id', 'name', 'duration', 'early_start', 'early_finish',
                  'late_start', 'late_finish', 'total_float', 'is_critical']].to_string(index=False))
        print(f"\nProject: {result.project_start} -> {result.project_finish}")
        return

    output_path.parent.mkdir(parents=True, exist_ok=True)
    if output_path.suffix.lower() == '.csv':
        result.to_dataframe().to_csv(output_path, index=False)
    else:
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(result.to_dict(), f, indent=2)
    logger.info(f"Saved schedule to {output_path}")


def log_diagnostics(result: ScheduleResult) -> None:
    """Summarize repairs the engine made to the input."""
    diagnostics = result.diagnostics
    if not diagnostics.has_issues():
        return
    logger.warning(
        f"Input repaired: {len(diagnostics.dropped_references)} dropped references, "
        f"{len(diagnostics.cycles)} cycles broken, "
        f"{len(diagnostics.calendar_fallbacks)} calendar fallbacks, "
        f"{len(diagnostics.unassigned_activities)} unassigned activities, "
        f"{len(diagnostics.ignored_constraints)} ignored constraints"
    )


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Calculate a CPM schedule for a project",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print the schedule table
  cpm-schedule project.json

  # Import a P6 export and save the full output as JSON
  cpm-schedule schedule.xer -o output/schedule.json

  # CSV output with a critical path report
  cpm-schedule project.json -o schedule.csv --report --near-critical-days 10
""",
    )

    parser.add_argument(
        "input",
        type=Path,
        help="Project file (.json or .xer)",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        dest="output",
        help="Output path (.csv for the activity table, .json for the full schedule)",
    )
    parser.add_argument(
        "--project-start",
        type=parse_date,
        help="Override the project start date (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--target-finish",
        type=parse_date,
        help="Finish date to schedule late dates against (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--report",
        action="store_true",
        help="Print the critical path report",
    )
    parser.add_argument(
        "--near-critical-days",
        type=int,
        default=settings.NEAR_CRITICAL_THRESHOLD_DAYS,
        help=f"Float threshold for near-critical activities (default: {settings.NEAR_CRITICAL_THRESHOLD_DAYS})",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    problems = settings.validate_required_settings()
    if problems:
        for problem in problems:
            logger.error(f"Invalid setting: {problem}")
        return 1

    if not args.input.exists():
        logger.error(f"Input file not found: {args.input}")
        return 1

    try:
        project = load_input(args.input)
        project = apply_overrides(project, args.project_start, args.target_finish)
        result = calculate_schedule(project)
    except ScheduleValidationError as e:
        logger.error(str(e))
        return 1
    except ValueError as e:
        logger.error(f"Could not load {args.input}: {e}")
        return 1

    log_diagnostics(result)
    write_output(result, args.output)

    if args.report:
        print_critical_path_report(analyze_critical_path(result, args.near_critical_days))

    return 0


if __name__ == "__main__":
    sys.exit(main())
