"""
CPM: Critical Path Method, forward & backward pass over the dependency network.
https://en.wikipedia.org/wiki/Critical_path_method

Works in relative day numbers (``Decimal``), day 0 being the start of the network, so it
ignores calendar dates and constraints. Summary tasks are left out, their duration is
derived from the children that are part of the network.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Set
from ganttengine.store.task_model import Dependency, DependencyType, ZERO
from ganttengine.store.task_store import TaskStore
from ganttengine.schedule.cycle_detection import topological_order

logger = logging.getLogger(__name__)

@dataclass
class ActivityTiming:
    task_id: str
    duration: Decimal
    predecessors: List[Dependency] = field(default_factory=list)
    successors: List[Dependency] = field(default_factory=list)

    es: Decimal = field(default=ZERO)  # Earliest Start
    ef: Decimal = field(default=ZERO)  # Earliest Finish
    ls: Optional[Decimal] = None       # Latest  Start
    lf: Optional[Decimal] = None       # Latest  Finish
    total_float: Optional[Decimal] = None
    free_float: Optional[Decimal] = None

@dataclass
class CriticalPathAnalysis:
    timings: Dict[str, ActivityTiming]
    project_duration: Decimal

    def critical_task_ids(self) -> List[str]:
        crit = [t for t in self.timings.values() if t.total_float == ZERO]
        crit.sort(key=lambda t: t.es)
        return [t.task_id for t in crit]

    def obtain_critical_path(self) -> List[str]:
        """
        Identifies *a* critical path through the network. There might
        be multiple critical paths in a network; this method returns one.
        """
        crit_nodes = [t for t in self.timings.values() if t.total_float == ZERO]
        if not crit_nodes:
            return []

        final_path: List[str] = []
        processed: Set[str] = set()
        min_es = min(n.es for n in crit_nodes)
        current: Optional[ActivityTiming] = sorted(
            [n for n in crit_nodes if n.es == min_es], key=lambda x: x.task_id
        )[0]

        while current:
            if current.task_id in processed:
                break
            final_path.append(current.task_id)
            processed.add(current.task_id)
            next_on_path: List[ActivityTiming] = []

            for link in current.successors:
                succ = self.timings[link.successor_id]
                if succ.total_float != ZERO or succ.task_id in processed:
                    continue
                lag = link.lag_value
                drives = {
                    DependencyType.FS: succ.es == current.ef + lag,
                    DependencyType.SS: succ.es == current.es + lag,
                    DependencyType.FF: succ.ef == current.ef + lag,
                    DependencyType.SF: succ.ef == current.es + lag,
                }[link.type]
                if drives:
                    next_on_path.append(succ)

            if next_on_path:
                next_on_path.sort(key=lambda x: (x.es, x.task_id))
                current = next_on_path[0]
            else:
                current = None
        return final_path

    def to_csv(self, *, sep: str = ";") -> str:
        """Test friendly dump, one row per task sorted by id."""
        def _d(val: Optional[Decimal]) -> str:
            if val is None:
                return ""
            return format(val.normalize(), "f")

        header = sep.join(("Task", "Duration", "ES", "EF", "LS", "LF", "TotalFloat", "FreeFloat"))
        rows = [
            sep.join([t.task_id] + [_d(v) for v in (t.duration, t.es, t.ef, t.ls, t.lf, t.total_float, t.free_float)])
            for t in sorted(self.timings.values(), key=lambda t: t.task_id)
        ]
        return "\n".join([header, *rows])

def compute_critical_path(store: TaskStore) -> CriticalPathAnalysis:
    """
    :raises: ValidationError when the dependency graph has a cycle.
    """
    network_ids = [task.id for task in store if not (task.is_summary and task.children)]
    in_network = set(network_ids)
    timings: Dict[str, ActivityTiming] = {
        task_id: ActivityTiming(task_id=task_id, duration=store.require(task_id).duration)
        for task_id in network_ids
    }
    if not timings:
        return CriticalPathAnalysis(timings={}, project_duration=ZERO)

    for edge in store.dependencies:
        if edge.predecessor_id in in_network and edge.successor_id in in_network:
            timings[edge.predecessor_id].successors.append(edge)
            timings[edge.successor_id].predecessors.append(edge)

    topo = [timings[task_id] for task_id in topological_order(store) if task_id in in_network]

    # ── Forward pass ────────────────────────────────────────────
    for node in topo:
        if not node.predecessors:  # start node
            node.es = ZERO
        else:
            node.es = max(
                {
                    DependencyType.FS: lambda p, lag: p.ef + lag,
                    DependencyType.SS: lambda p, lag: p.es + lag,
                    DependencyType.FF: lambda p, lag: p.ef + lag - node.duration,
                    DependencyType.SF: lambda p, lag: p.es + lag - node.duration,
                }[link.type](timings[link.predecessor_id], link.lag_value)
                for link in node.predecessors
            )
        node.ef = node.es + node.duration

    project_duration = max(t.ef for t in timings.values())

    # ── Backward pass ───────────────────────────────────────────
    for node in reversed(topo):
        if not node.successors:  # end node
            node.lf = project_duration
        else:
            node.lf = min(
                {
                    DependencyType.FS: lambda s, lag: s.ls - lag,
                    DependencyType.SS: lambda s, lag: s.ls - lag + node.duration,
                    DependencyType.FF: lambda s, lag: s.lf - lag,
                    DependencyType.SF: lambda s, lag: s.lf - lag + node.duration,
                }[link.type](timings[link.successor_id], link.lag_value)
                for link in node.successors
            )
        node.ls = node.lf - node.duration
        node.total_float = node.ls - node.es

    # ── Free float: slip allowed without moving any successor's early dates ──
    for node in topo:
        if not node.successors:
            free = project_duration - node.ef
        else:
            free = min(
                {
                    DependencyType.FS: lambda s, lag: s.es - lag - node.ef,
                    DependencyType.SS: lambda s, lag: s.es - lag - node.es,
                    DependencyType.FF: lambda s, lag: s.ef - lag - node.ef,
                    DependencyType.SF: lambda s, lag: s.ef - lag - node.es,
                }[link.type](timings[link.successor_id], link.lag_value)
                for link in node.successors
            )
        node.free_float = max(ZERO, min(free, node.total_float))

    logger.debug(f"compute_critical_path() {len(timings)} tasks, project duration {project_duration}")
    return CriticalPathAnalysis(timings=timings, project_duration=project_duration)
