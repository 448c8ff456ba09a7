"""Coverage tracking for the guided per-action review.

Every in-scope control action is reviewed once per analysis type. The review
order is a state machine over positions: a :class:`Cursor` pointing at one
(controller, action, analysis type, instance) cell, or :data:`TERMINAL` once the
last cell has been passed. :class:`TraversalPlan` holds the pure transition
functions; :class:`CoverageTracker` owns the mutable session state (cursor,
cell states, extra instances) and reports every state change as an event.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Iterator, Mapping, Sequence

import logging

from .config import DEFAULT_ANALYSIS_TYPES
from .hierarchy import Hierarchy, Movement
from .snapshot import AnalysisSnapshot

logger = logging.getLogger(__name__)

Triple = tuple[str, str, str]


class CellState(str, Enum):
    """Review state of a coverage cell."""

    UNVISITED = "unvisited"
    COMPLETED = "completed"
    SKIPPED = "skipped"


@dataclass(frozen=True, order=True)
class CellKey:
    """Identity of a coverage cell."""

    controller_id: str
    action_id: str
    analysis_type: str
    instance: int = 0

    @property
    def triple(self) -> Triple:
        return (self.controller_id, self.action_id, self.analysis_type)


@dataclass(frozen=True)
class CoverageCell:
    """A cell together with its current state."""

    key: CellKey
    state: CellState = CellState.UNVISITED


@dataclass(frozen=True)
class CoverageEvent:
    """State transition reported to the external store."""

    session_id: str | None
    key: CellKey
    state: CellState
    previous: CellState


@dataclass(frozen=True)
class CoverageSummary:
    """Counts over the in-scope cells (instance 0) plus extra instances."""

    total: int
    completed: int
    skipped: int
    extra_instances: int

    @property
    def remaining(self) -> int:
        return self.total - self.completed - self.skipped


@dataclass(frozen=True)
class Cursor:
    """Position on a cell; ``type_index`` indexes the plan's analysis types."""

    controller_id: str
    action_id: str
    type_index: int
    instance: int = 0


class _Terminal:
    """Position past the last cell."""

    _instance: "_Terminal | None" = None

    def __new__(cls) -> "_Terminal":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "TERMINAL"

    def __bool__(self) -> bool:
        return False


TERMINAL = _Terminal()
Position = Cursor | _Terminal


class TraversalPlan:
    """Static review order derived from a hierarchy and a snapshot.

    Controllers follow :attr:`Hierarchy.sequence`; within a controller, in-scope
    actions are ordered by id; within an action, analysis types follow the
    configured order. ``instances`` arguments map a (controller, action, type)
    triple to its number of instances; missing triples have one.
    """

    def __init__(
        self,
        hierarchy: Hierarchy,
        snapshot: AnalysisSnapshot,
        analysis_types: Sequence[str] = DEFAULT_ANALYSIS_TYPES,
    ) -> None:
        if not analysis_types:
            raise ValueError("At least one analysis type is required")
        self.hierarchy = hierarchy
        self.analysis_types = tuple(analysis_types)
        grouped = snapshot.actions_by_controller()
        self._actions: dict[str, tuple[str, ...]] = {
            controller_id: tuple(action.id for action in grouped.get(controller_id, []))
            for controller_id in hierarchy.sequence
        }
        self._type_index = {name: index for index, name in enumerate(self.analysis_types)}

    @property
    def total_cells(self) -> int:
        return sum(len(actions) for actions in self._actions.values()) * len(self.analysis_types)

    def actions_for(self, controller_id: str) -> tuple[str, ...]:
        return self._actions.get(controller_id, ())

    def contains(self, key: CellKey) -> bool:
        return (
            key.action_id in self.actions_for(key.controller_id)
            and key.analysis_type in self._type_index
            and key.instance >= 0
        )

    def key_for(self, cursor: Cursor) -> CellKey:
        return CellKey(
            cursor.controller_id,
            cursor.action_id,
            self.analysis_types[cursor.type_index],
            cursor.instance,
        )

    def cursor_for(self, key: CellKey) -> Cursor:
        return Cursor(key.controller_id, key.action_id, self._type_index[key.analysis_type], key.instance)

    def iter_base_keys(self) -> Iterator[CellKey]:
        """Instance-0 keys in traversal order."""

        for controller_id in self.hierarchy.sequence:
            for action_id in self._actions[controller_id]:
                for analysis_type in self.analysis_types:
                    yield CellKey(controller_id, action_id, analysis_type)

    def _count(self, instances: Mapping[Triple, int], controller_id: str, action_id: str, type_index: int) -> int:
        return max(instances.get((controller_id, action_id, self.analysis_types[type_index]), 1), 1)

    def _tail(self, instances: Mapping[Triple, int], controller_id: str, action_id: str) -> Cursor:
        last_type = len(self.analysis_types) - 1
        return Cursor(
            controller_id,
            action_id,
            last_type,
            self._count(instances, controller_id, action_id, last_type) - 1,
        )

    def first(self) -> Position:
        step = self.hierarchy.next_controller(None)
        if step is None:
            return TERMINAL
        return Cursor(step.controller_id, self._actions[step.controller_id][0], 0, 0)

    def last(self, instances: Mapping[Triple, int]) -> Position:
        controller_id = self.hierarchy.last()
        if controller_id is None:
            return TERMINAL
        return self._tail(instances, controller_id, self._actions[controller_id][-1])

    def next_position(
        self, position: Position, instances: Mapping[Triple, int]
    ) -> tuple[Position, Movement | None]:
        """Return the position after ``position`` and the controller movement, if any."""

        if not isinstance(position, Cursor):
            return TERMINAL, None
        c, a, t = position.controller_id, position.action_id, position.type_index
        if position.instance + 1 < self._count(instances, c, a, t):
            return replace(position, instance=position.instance + 1), None
        if t + 1 < len(self.analysis_types):
            return Cursor(c, a, t + 1, 0), None
        actions = self._actions[c]
        index = actions.index(a)
        if index + 1 < len(actions):
            return Cursor(c, actions[index + 1], 0, 0), None
        step = self.hierarchy.next_controller(c)
        if step is None:
            return TERMINAL, None
        return Cursor(step.controller_id, self._actions[step.controller_id][0], 0, 0), step.movement

    def previous_position(self, position: Position, instances: Mapping[Triple, int]) -> Position:
        """Inverse of :meth:`next_position`; the first cell maps to itself."""

        if not isinstance(position, Cursor):
            return self.last(instances)
        c, a, t = position.controller_id, position.action_id, position.type_index
        if position.instance > 0:
            return replace(position, instance=position.instance - 1)
        if t > 0:
            return Cursor(c, a, t - 1, self._count(instances, c, a, t - 1) - 1)
        actions = self._actions[c]
        index = actions.index(a)
        if index > 0:
            return self._tail(instances, c, actions[index - 1])
        step = self.hierarchy.previous_controller(c)
        if step is None:
            return position
        return self._tail(instances, step.controller_id, self._actions[step.controller_id][-1])


class CoverageTracker:
    """Session-scoped coverage state and guided traversal.

    Not thread-safe: a tracker belongs to exactly one review session.
    """

    def __init__(
        self,
        snapshot: AnalysisSnapshot,
        hierarchy: Hierarchy,
        analysis_types: Sequence[str] = DEFAULT_ANALYSIS_TYPES,
        sink: Callable[[CoverageEvent], None] | None = None,
        session_id: str | None = None,
    ) -> None:
        self._plan = TraversalPlan(hierarchy, snapshot, analysis_types)
        self._sink = sink
        self.session_id = session_id
        self._states: dict[CellKey, CellState] = {}
        self._instances: dict[Triple, int] = {}
        self._position: Position = self._plan.first()
        self.last_movement: Movement | None = Movement.INITIAL if self._position else None

    @property
    def plan(self) -> TraversalPlan:
        return self._plan

    @property
    def position(self) -> Position:
        return self._position

    def _cell(self, key: CellKey) -> CoverageCell:
        return CoverageCell(key, self._states.get(key, CellState.UNVISITED))

    def _as_key(self, cell: CoverageCell | CellKey) -> CellKey:
        return cell.key if isinstance(cell, CoverageCell) else cell

    def current_cell(self) -> CoverageCell | None:
        if not isinstance(self._position, Cursor):
            return None
        return self._cell(self._plan.key_for(self._position))

    def advance(self) -> CoverageCell | None:
        """Move to the next cell; returns None once the traversal is exhausted."""

        position, movement = self._plan.next_position(self._position, self._instances)
        self._position = position
        if movement is not None:
            self.last_movement = movement
            logger.debug("coverage_controller_changed", extra={"movement": movement.value})
        if not isinstance(position, Cursor):
            logger.info("coverage_traversal_finished", extra={"session_id": self.session_id})
        return self.current_cell()

    def retreat(self) -> CoverageCell | None:
        """Move to the previous cell; a no-op on the very first cell."""

        self._position = self._plan.previous_position(self._position, self._instances)
        return self.current_cell()

    def seek(self, cell: CoverageCell | CellKey) -> CoverageCell | None:
        """Jump to a specific in-scope cell."""

        key = self._as_key(cell)
        if not self._in_scope(key, "seek") or key.instance >= self._instance_count(key.triple):
            return None
        self._position = self._plan.cursor_for(key)
        return self.current_cell()

    def _instance_count(self, triple: Triple) -> int:
        return self._instances.get(triple, 1)

    def _in_scope(self, key: CellKey, operation: str) -> bool:
        if self._plan.contains(key):
            return True
        logger.warning(
            "coverage_out_of_scope",
            extra={
                "operation": operation,
                "controller_id": key.controller_id,
                "action_id": key.action_id,
                "analysis_type": key.analysis_type,
            },
        )
        return False

    def _mark(self, cell: CoverageCell | CellKey, state: CellState) -> bool:
        key = self._as_key(cell)
        if not self._in_scope(key, f"mark_{state.value}"):
            return False
        count = self._instance_count(key.triple)
        if key.instance > count:
            # Only the next instance may be created by marking it.
            logger.warning(
                "coverage_instance_out_of_range",
                extra={"action_id": key.action_id, "instance": key.instance, "instances": count},
            )
            return False
        if key.instance == count:
            self._instances[key.triple] = count + 1
        previous = self._states.get(key, CellState.UNVISITED)
        self._states[key] = state
        if previous is not state and self._sink is not None:
            self._sink(CoverageEvent(self.session_id, key, state, previous))
        return True

    def mark_completed(self, cell: CoverageCell | CellKey) -> bool:
        """Record a saved finding for ``cell``; False if the cell is out of scope."""

        return self._mark(cell, CellState.COMPLETED)

    def mark_skipped(self, cell: CoverageCell | CellKey) -> bool:
        """Mark ``cell`` as not applicable; False if the cell is out of scope."""

        return self._mark(cell, CellState.SKIPPED)

    def add_instance(self, cell: CoverageCell | CellKey | None = None) -> CoverageCell | None:
        """Create the next instance for a cell's (controller, action, type) triple.

        Defaults to the current cell. When the triple is the one under the
        cursor, the cursor moves onto the new instance.
        """

        if cell is None:
            current = self.current_cell()
            if current is None:
                return None
            key = current.key
        else:
            key = self._as_key(cell)
        if not self._in_scope(key, "add_instance"):
            return None
        count = self._instance_count(key.triple)
        self._instances[key.triple] = count + 1
        new_key = replace(key, instance=count)
        current = self.current_cell()
        if current is not None and current.key.triple == key.triple:
            self._position = self._plan.cursor_for(new_key)
        return self._cell(new_key)

    def instance_count(self, cell: CoverageCell | CellKey) -> int:
        return self._instance_count(self._as_key(cell).triple)

    def state_of(self, cell: CoverageCell | CellKey) -> CellState:
        return self._states.get(self._as_key(cell), CellState.UNVISITED)

    def cells(self) -> list[CoverageCell]:
        """All in-scope cells, including extra instances, in traversal order."""

        result = []
        for key in self._plan.iter_base_keys():
            for instance in range(self._instance_count(key.triple)):
                result.append(self._cell(replace(key, instance=instance)))
        return result

    def summary(self) -> CoverageSummary:
        completed = skipped = extra = 0
        for key, state in self._states.items():
            if not self._plan.contains(key) or state is CellState.UNVISITED:
                continue
            if key.instance > 0:
                extra += 1
            elif state is CellState.COMPLETED:
                completed += 1
            else:
                skipped += 1
        return CoverageSummary(
            total=self._plan.total_cells, completed=completed, skipped=skipped, extra_instances=extra
        )

    def completion_ratio(self) -> float:
        """Visited share of the instance-0 cells; extra instances are not counted."""

        summary = self.summary()
        if summary.total == 0:
            return 1.0
        return (summary.completed + summary.skipped) / summary.total

    def is_complete(self) -> bool:
        return self.summary().remaining == 0

    def rescope(self, snapshot: AnalysisSnapshot, hierarchy: Hierarchy) -> None:
        """Rebuild the plan after scope changes, keeping recorded states.

        Cells whose action left the scope keep their state but stop counting
        towards coverage. If the cursor's cell left the scope, the cursor
        returns to the first cell.
        """

        self._plan = TraversalPlan(hierarchy, snapshot, self._plan.analysis_types)
        if isinstance(self._position, Cursor) and not self._plan.contains(self._plan.key_for(self._position)):
            logger.warning(
                "coverage_cursor_reset",
                extra={"controller_id": self._position.controller_id, "action_id": self._position.action_id},
            )
            self._position = self._plan.first()
            self.last_movement = Movement.INITIAL if self._position else None


class SessionRegistry:
    """Independent coverage trackers keyed by session id."""

    def __init__(self) -> None:
        self._trackers: dict[str, CoverageTracker] = {}

    def get(self, session_id: str, factory: Callable[[], CoverageTracker]) -> CoverageTracker:
        tracker = self._trackers.get(session_id)
        if tracker is None:
            tracker = factory()
            tracker.session_id = session_id
            self._trackers[session_id] = tracker
        return tracker

    def close(self, session_id: str) -> CoverageTracker | None:
        return self._trackers.pop(session_id, None)

    def sessions(self) -> list[str]:
        return sorted(self._trackers)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._trackers

    def __len__(self) -> int:
        return len(self._trackers)
