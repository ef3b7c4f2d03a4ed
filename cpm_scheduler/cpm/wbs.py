"""
WBS roll-up.

Aggregates scheduled activity dates up the WBS tree. Each node spans from the
earliest start to the latest finish of every activity beneath it.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from .calendar import WorkCalendar, ONE_DAY
from .models import ScheduledActivity, WbsSummary
from ..schemas.project import WbsNodeInput

logger = logging.getLogger(__name__)


@dataclass
class _Span:
    start: date
    end: date
    boundary: date         # finish boundary, day after end (start for milestones)
    count: int

    def merge(self, other: '_Span') -> None:
        self.start = min(self.start, other.start)
        self.end = max(self.end, other.end)
        self.boundary = max(self.boundary, other.boundary)
        self.count += other.count


def _activity_span(activity: ScheduledActivity) -> Optional[_Span]:
    if activity.early_start is None or activity.early_finish is None:
        return None
    boundary = activity.early_start if activity.is_milestone() else activity.early_finish + ONE_DAY
    return _Span(activity.early_start, activity.early_finish, boundary, 1)


def aggregate_wbs(wbs_nodes: list[WbsNodeInput], activities: list[ScheduledActivity],
                  project_calendar: WorkCalendar,
                  project_start: date) -> tuple[dict[str, WbsSummary], list[str]]:
    """
    Roll activity dates up the WBS tree.

    Children are visited before parents with an explicit stack, and each node
    at most once, so malformed parent links (self-parenting, parent cycles)
    cannot loop. Nodes whose parent is missing or unknown are roots; nodes
    only reachable through a parent cycle are handled after the roots.

    Args:
        wbs_nodes: WBS nodes in input order
        activities: Scheduled activities
        project_calendar: Calendar for node durations
        project_start: Dates reported for nodes with no activities

    Returns:
        (summary per WBS id, ids of activities whose wbs_id is unknown)
    """
    nodes = []
    children: dict[str, list[str]] = {}
    for node in wbs_nodes:
        if node.id in children:
            logger.warning(f"Duplicate WBS node {node.id}, keeping the first")
            continue
        nodes.append(node)
        children[node.id] = []
    node_ids = [node.id for node in nodes]

    roots = []
    for node in nodes:
        parent = node.parent_id
        if parent is None or parent not in children:
            roots.append(node.id)
        elif parent != node.id:
            if node.id not in children[parent]:
                children[parent].append(node.id)

    spans: dict[str, Optional[_Span]] = {node_id: None for node_id in node_ids}
    unassigned = []
    for activity in activities:
        if activity.wbs_id is None:
            continue
        if activity.wbs_id not in spans:
            unassigned.append(activity.activity_id)
            logger.info(f"Activity {activity.activity_id}: WBS {activity.wbs_id} not found")
            continue
        span = _activity_span(activity)
        if span is None:
            continue
        if spans[activity.wbs_id] is None:
            spans[activity.wbs_id] = span
        else:
            spans[activity.wbs_id].merge(span)

    visited: set[str] = set()
    done: set[str] = set()

    def roll_up(root: str) -> None:
        stack = [(root, False)]
        while stack:
            node_id, expanded = stack.pop()
            if expanded:
                done.add(node_id)
                for child in children[node_id]:
                    child_span = spans[child]
                    if child not in done or child_span is None:
                        continue
                    if spans[node_id] is None:
                        spans[node_id] = _Span(child_span.start, child_span.end, child_span.boundary, child_span.count)
                    else:
                        spans[node_id].merge(child_span)
                continue
            if node_id in visited:
                continue
            visited.add(node_id)
            stack.append((node_id, True))
            for child in reversed(children[node_id]):
                if child not in visited:
                    stack.append((child, False))

    for root in roots:
        roll_up(root)
    for node_id in node_ids:
        if node_id not in visited:
            logger.warning(f"WBS node {node_id} is part of a parent cycle")
            roll_up(node_id)

    wbs_map = {}
    for node_id in node_ids:
        span = spans[node_id]
        if span is None:
            wbs_map[node_id] = WbsSummary(project_start, project_start, 0, 0)
        else:
            duration = project_calendar.working_days_between(span.start, span.boundary)
            wbs_map[node_id] = WbsSummary(span.start, span.end, duration, span.count)

    return wbs_map, unassigned
