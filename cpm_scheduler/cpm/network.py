"""
Activity Network for CPM calculations.

Manages activities and dependencies with repair of dangling references and
cycles, deterministic topological sorting, and network traversal.
"""

import heapq
import logging
from collections import defaultdict
from typing import Optional

from .models import ScheduledActivity, Dependency, DroppedReference, CycleRecord

logger = logging.getLogger(__name__)

WHITE, GRAY, BLACK = 0, 1, 2


class ActivityNetwork:
    """
    Activity dependency network for CPM calculations.

    Maintains activities and their predecessor/successor relationships with
    efficient lookups. Activity insertion order is kept and used to break
    ties, so every traversal is deterministic.
    """

    def __init__(self):
        self.activities: dict[str, ScheduledActivity] = {}
        self.dependencies: list[Dependency] = []
        self.dropped_references: list[DroppedReference] = []
        self.cycles: list[CycleRecord] = []
        self._index: dict[str, int] = {}
        self._successors: dict[str, list[Dependency]] = defaultdict(list)
        self._predecessors: dict[str, list[Dependency]] = defaultdict(list)

    @classmethod
    def build(cls, activities: list[ScheduledActivity]) -> 'ActivityNetwork':
        """
        Build a repaired, acyclic network from activities.

        Predecessor links to unknown activities are dropped. Each cycle found
        loses the single edge that closes it. Both repairs are logged and kept
        on the network for diagnostics.
        """
        network = cls()
        for activity in activities:
            network.add_activity(activity)

        for activity in activities:
            for pred in activity.predecessors:
                dep = Dependency(
                    pred_activity_id=pred.activity_id,
                    succ_activity_id=activity.activity_id,
                    relation_type=pred.type,
                    lag_days=pred.lag,
                )
                if not network.add_dependency_safe(dep):
                    network.dropped_references.append(
                        DroppedReference(activity.activity_id, pred.activity_id)
                    )
                    logger.warning(
                        f"Dropped predecessor {pred.activity_id} of {activity.activity_id}: "
                        f"unknown activity"
                    )

        network.break_cycles()
        return network

    def add_activity(self, activity: ScheduledActivity) -> None:
        """Add an activity to the network."""
        if activity.activity_id not in self._index:
            self._index[activity.activity_id] = len(self._index)
        self.activities[activity.activity_id] = activity

    def add_dependency(self, dep: Dependency) -> None:
        """
        Add a dependency to the network.

        Both predecessor and successor activities must exist in the network.
        """
        if dep.pred_activity_id not in self.activities:
            raise ValueError(f"Predecessor activity {dep.pred_activity_id} not in network")
        if dep.succ_activity_id not in self.activities:
            raise ValueError(f"Successor activity {dep.succ_activity_id} not in network")

        self.dependencies.append(dep)
        self._successors[dep.pred_activity_id].append(dep)
        self._predecessors[dep.succ_activity_id].append(dep)

    def add_dependency_safe(self, dep: Dependency) -> bool:
        """
        Add a dependency only if both activities exist.

        Returns True if added, False if skipped.
        """
        if dep.pred_activity_id not in self.activities or dep.succ_activity_id not in self.activities:
            return False
        self.add_dependency(dep)
        return True

    def remove_dependency(self, dep: Dependency) -> None:
        """Remove one dependency (by identity, duplicates are kept)."""
        self.dependencies = [d for d in self.dependencies if d is not dep]
        self._successors[dep.pred_activity_id] = [
            d for d in self._successors[dep.pred_activity_id] if d is not dep
        ]
        self._predecessors[dep.succ_activity_id] = [
            d for d in self._predecessors[dep.succ_activity_id] if d is not dep
        ]

    def break_cycles(self) -> list[CycleRecord]:
        """
        Remove cycle-closing edges using three-color depth-first search.

        Roots are visited in activity order and successor edges in insertion
        order. Each back-edge found is dropped; the gray path from its target
        to its source is recorded as the cycle. Iterative, so deep networks
        do not hit the recursion limit.

        Returns:
            Cycles found during this call
        """
        color = {aid: WHITE for aid in self.activities}
        found = []

        for root in self.activities:
            if color[root] != WHITE:
                continue

            color[root] = GRAY
            path = [root]
            stack = [(root, iter(list(self._successors.get(root, []))))]

            while stack:
                node, edges = stack[-1]
                dep = next(edges, None)

                if dep is None:
                    color[node] = BLACK
                    stack.pop()
                    path.pop()
                    continue

                succ = dep.succ_activity_id
                if color[succ] == WHITE:
                    color[succ] = GRAY
                    path.append(succ)
                    stack.append((succ, iter(list(self._successors.get(succ, [])))))
                elif color[succ] == GRAY:
                    cycle_ids = path[path.index(succ):]
                    self.remove_dependency(dep)
                    record = CycleRecord(
                        activity_ids=cycle_ids,
                        removed_predecessor_id=dep.pred_activity_id,
                        removed_successor_id=dep.succ_activity_id,
                    )
                    found.append(record)
                    logger.warning(
                        f"Circular dependency {' -> '.join(cycle_ids + [succ])}: "
                        f"dropped {dep.pred_activity_id} -> {dep.succ_activity_id}"
                    )

        self.cycles.extend(found)
        return found

    def get_activity(self, activity_id: str) -> Optional[ScheduledActivity]:
        """Get an activity by ID."""
        return self.activities.get(activity_id)

    def get_successors(self, activity_id: str) -> list[Dependency]:
        """Get dependencies where activity_id is the predecessor."""
        return self._successors.get(activity_id, [])

    def get_predecessors(self, activity_id: str) -> list[Dependency]:
        """Get dependencies where activity_id is the successor."""
        return self._predecessors.get(activity_id, [])

    def get_start_activities(self) -> list[str]:
        """Get activity IDs with no predecessors."""
        return [aid for aid in self.activities if not self._predecessors.get(aid)]

    def get_end_activities(self) -> list[str]:
        """Get activity IDs with no successors."""
        return [aid for aid in self.activities if not self._successors.get(aid)]

    def topological_sort(self) -> list[str]:
        """
        Return activity IDs in topological order (predecessors before successors).

        Uses Kahn's algorithm; among activities that are ready at the same
        time, the one listed first in the input goes first. Raises ValueError
        if a circular dependency remains.
        """
        in_degree = {aid: len(self._predecessors.get(aid, [])) for aid in self.activities}

        ready = [(self._index[aid], aid) for aid, deg in in_degree.items() if deg == 0]
        heapq.heapify(ready)
        result = []

        while ready:
            _, activity_id = heapq.heappop(ready)
            result.append(activity_id)

            for dep in self._successors.get(activity_id, []):
                in_degree[dep.succ_activity_id] -= 1
                if in_degree[dep.succ_activity_id] == 0:
                    heapq.heappush(ready, (self._index[dep.succ_activity_id], dep.succ_activity_id))

        if len(result) != len(self.activities):
            done = set(result)
            remaining = [aid for aid in self.activities if aid not in done]
            raise ValueError(f"Circular dependency detected involving {len(remaining)} activities: "
                             f"{remaining[:5]}...")

        return result

    def reverse_topological_sort(self) -> list[str]:
        """Return activity IDs in reverse topological order (successors before predecessors)."""
        return list(reversed(self.topological_sort()))

    def get_all_successors(self, activity_id: str, include_self: bool = False) -> set[str]:
        """Get all successor activity IDs (transitive closure)."""
        result = set()
        if include_self:
            result.add(activity_id)

        visited = set()
        queue = [activity_id]

        while queue:
            current = queue.pop(0)
            if current in visited:
                continue
            visited.add(current)

            for dep in self._successors.get(current, []):
                result.add(dep.succ_activity_id)
                queue.append(dep.succ_activity_id)

        return result

    def get_statistics(self) -> dict:
        """Get network statistics."""
        relation_types = defaultdict(int)
        for dep in self.dependencies:
            relation_types[dep.relation_type.value] += 1

        return {
            'total_activities': len(self.activities),
            'total_dependencies': len(self.dependencies),
            'start_activities': len(self.get_start_activities()),
            'end_activities': len(self.get_end_activities()),
            'milestones': sum(1 for a in self.activities.values() if a.is_milestone()),
            'relation_types': dict(relation_types),
            'dropped_references': len(self.dropped_references),
            'cycles_broken': len(self.cycles),
        }

    def __len__(self) -> int:
        return len(self.activities)

    def __contains__(self, activity_id: str) -> bool:
        return activity_id in self.activities

    def __repr__(self) -> str:
        return f"ActivityNetwork({len(self.activities)} activities, {len(self.dependencies)} dependencies)"
