"""
Critical Path Analysis.

Identifies critical and near-critical activities, analyzes float distribution,
and groups critical work by WBS.
"""

from collections import defaultdict
from datetime import date
from typing import Optional

from ..config.settings import settings
from ..cpm.models import ScheduledActivity, ScheduleResult, CriticalPathResult


def _float_bucket(total_float: int) -> str:
    if total_float <= 0:
        return '0 (critical)'
    if total_float <= 5:
        return '1-5 days'
    if total_float <= 10:
        return '6-10 days'
    if total_float <= 20:
        return '11-20 days'
    return '> 20 days'


def analyze_critical_path(
    result: ScheduleResult,
    near_critical_threshold_days: Optional[int] = None,
) -> CriticalPathResult:
    """
    Analyze critical path and near-critical activities.

    Args:
        result: Calculated schedule
        near_critical_threshold_days: Float threshold for near-critical
            classification (defaults to NEAR_CRITICAL_THRESHOLD_DAYS)

    Returns:
        CriticalPathResult with critical path, near-critical activities, and statistics
    """
    if near_critical_threshold_days is None:
        near_critical_threshold_days = settings.NEAR_CRITICAL_THRESHOLD_DAYS

    critical = []
    near_critical = []
    float_buckets = defaultdict(int)

    for activity in result.activities:
        if activity.total_float is None:
            float_buckets['unknown'] += 1
            continue

        float_buckets[_float_bucket(activity.total_float)] += 1
        if activity.total_float <= 0:
            critical.append(activity)
        elif activity.total_float <= near_critical_threshold_days:
            near_critical.append(activity)

    # Sort critical path by early start
    critical.sort(key=lambda a: a.early_start or date.max)
    near_critical.sort(key=lambda a: a.total_float)

    return CriticalPathResult(
        critical_path=critical,
        near_critical_activities=near_critical,
        float_distribution=dict(float_buckets),
        project_finish=result.project_finish,
        near_critical_threshold_days=near_critical_threshold_days,
        total_activities=len(result.activities),
    )


def get_critical_path_by_wbs(result: ScheduleResult) -> dict[Optional[str], list[ScheduledActivity]]:
    """
    Get critical activities grouped by WBS.

    Returns:
        Dict mapping WBS id to list of critical activities (None for unassigned)
    """
    by_wbs = defaultdict(list)
    for activity in result.activities:
        if activity.is_critical:
            by_wbs[activity.wbs_id].append(activity)

    # Sort activities within each group
    for wbs_key in by_wbs:
        by_wbs[wbs_key].sort(key=lambda a: a.early_start or date.max)

    return dict(by_wbs)


def print_critical_path_report(result: CriticalPathResult) -> None:
    """Print a formatted critical path report."""
    print("=" * 80)
    print("CRITICAL PATH ANALYSIS REPORT")
    print("=" * 80)

    print(f"\nProject Finish: {result.project_finish}")
    print(f"Total Activities: {result.total_activities}")
    print(f"Critical Activities: {len(result.critical_path)}")
    print(f"Near-Critical Activities (<= {result.near_critical_threshold_days} days float): "
          f"{len(result.near_critical_activities)}")

    print("\n--- Float Distribution ---")
    for bucket, count in sorted(result.float_distribution.items()):
        pct = count / result.total_activities * 100 if result.total_activities else 0.0
        bar = '#' * int(pct / 2)
        print(f"  {bucket:25s}: {count:5d} ({pct:5.1f}%) {bar}")

    print("\n--- Critical Path (first 20 activities) ---")
    for i, activity in enumerate(result.critical_path[:20]):
        print(f"  {i+1:3d}. {activity.activity_id:20s} | {activity.name[:40]:40s} | "
              f"{activity.duration}d | {activity.early_start} -> {activity.early_finish}")

    if len(result.critical_path) > 20:
        print(f"  ... and {len(result.critical_path) - 20} more critical activities")

    print("\n--- Near-Critical Activities (first 10) ---")
    for i, activity in enumerate(result.near_critical_activities[:10]):
        print(f"  {i+1:3d}. {activity.activity_id:20s} | Float: {activity.total_float:3d}d | "
              f"{activity.name[:35]:35s}")

    print("\n" + "=" * 80)
