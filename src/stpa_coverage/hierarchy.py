"""Control-structure hierarchy levelling and visiting order.

Controllers are reviewed bottom-up and left to right: first every controller
that directly commands physical or software components (level 0), then the
controllers supervising them, and so on up to the top of the structure. The
level of a controller is the longest chain of controlled sub-controllers below
it, so a supervisor is always visited after everything it governs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import logging
import math

from .errors import GraphCycleError
from .snapshot import AnalysisSnapshot

logger = logging.getLogger(__name__)


class Movement(str, Enum):
    """How the guided review moved between two controllers."""

    INITIAL = "initial"
    LATERAL = "lateral"
    UPWARD = "upward"
    DOWNWARD = "downward"


@dataclass(frozen=True)
class HierarchyStep:
    """Result of moving to another controller in the visiting sequence."""

    controller_id: str
    movement: Movement
    level: int


@dataclass(frozen=True)
class Hierarchy:
    """Levelled view of the control structure.

    Attributes:
        levels: Level -> controller ids in lateral order, for every controller.
        level_index: Controller id -> level.
        sequence: Bottom-up, left-to-right visiting order of in-scope controllers.
    """

    levels: dict[int, tuple[str, ...]]
    level_index: dict[str, int]
    sequence: tuple[str, ...]
    _positions: dict[str, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_positions", {cid: idx for idx, cid in enumerate(self.sequence)})

    def level_of(self, controller_id: str) -> int | None:
        return self.level_index.get(controller_id)

    def first(self) -> str | None:
        return self.sequence[0] if self.sequence else None

    def last(self) -> str | None:
        return self.sequence[-1] if self.sequence else None

    def position(self, controller_id: str) -> int | None:
        return self._positions.get(controller_id)

    def next_controller(self, current: str | None) -> HierarchyStep | None:
        """Return the controller after ``current`` or None when the sequence is exhausted."""

        if current is None:
            first = self.first()
            if first is None:
                return None
            return HierarchyStep(first, Movement.INITIAL, self.level_index[first])
        index = self._positions.get(current)
        if index is None or index + 1 >= len(self.sequence):
            return None
        candidate = self.sequence[index + 1]
        level = self.level_index[candidate]
        movement = Movement.LATERAL if level == self.level_index[current] else Movement.UPWARD
        return HierarchyStep(candidate, movement, level)

    def previous_controller(self, current: str) -> HierarchyStep | None:
        """Inverse of :meth:`next_controller`; None at the first controller."""

        index = self._positions.get(current)
        if index is None or index == 0:
            return None
        candidate = self.sequence[index - 1]
        level = self.level_index[candidate]
        movement = Movement.LATERAL if level == self.level_index[current] else Movement.DOWNWARD
        return HierarchyStep(candidate, movement, level)


class HierarchyBuilder:
    """Compute hierarchy levels and lateral order from a snapshot."""

    def __init__(self, snapshot: AnalysisSnapshot) -> None:
        self._snapshot = snapshot

    def _controller_edges(self) -> tuple[dict[str, set[str]], dict[str, set[str]]]:
        ids = {controller.id for controller in self._snapshot.controllers}
        children: dict[str, set[str]] = {cid: set() for cid in ids}
        parents: dict[str, set[str]] = {cid: set() for cid in ids}
        for path in self._snapshot.control_paths:
            if path.source_controller_id not in ids:
                logger.debug("control_path_unknown_source", extra={"source": path.source_controller_id})
                continue
            # Edges to controlled components do not affect levels.
            if path.target_id not in ids:
                continue
            children[path.source_controller_id].add(path.target_id)
            parents[path.target_id].add(path.source_controller_id)
        return children, parents

    def build(self) -> Hierarchy:
        children, parents = self._controller_edges()

        # Longest-path labelling, peeling leaves first (Kahn on the reversed graph).
        remaining = {cid: len(kids) for cid, kids in children.items()}
        levels: dict[str, int] = {cid: 0 for cid in children}
        ready = sorted(cid for cid, count in remaining.items() if count == 0)
        processed = 0
        while ready:
            current = ready.pop()
            processed += 1
            for parent in parents[current]:
                levels[parent] = max(levels[parent], levels[current] + 1)
                remaining[parent] -= 1
                if remaining[parent] == 0:
                    ready.append(parent)

        if processed != len(children):
            stuck = {cid for cid, count in remaining.items() if count > 0}
            cycle = self._find_cycle(stuck, children)
            logger.error("hierarchy_cycle_detected", extra={"cycle": list(cycle)})
            raise GraphCycleError(cycle)

        grouped: dict[int, list[str]] = {}
        for cid, level in levels.items():
            grouped.setdefault(level, []).append(cid)

        # Rank top-down so each controller's governing parents are already placed.
        rank: dict[str, int] = {}
        ordered_levels: dict[int, tuple[str, ...]] = {}
        for level in sorted(grouped, reverse=True):
            ordered = sorted(grouped[level], key=lambda cid: self._lateral_key(cid, parents, rank))
            for cid in ordered:
                rank[cid] = len(rank)
            ordered_levels[level] = tuple(ordered)

        in_scope = set(self._snapshot.in_scope_controller_ids())
        sequence = tuple(
            cid
            for level in sorted(ordered_levels)
            for cid in ordered_levels[level]
            if cid in in_scope
        )
        logger.info(
            "hierarchy_built",
            extra={"controllers": len(levels), "levels": len(ordered_levels), "sequence": len(sequence)},
        )
        return Hierarchy(
            levels={level: ordered_levels[level] for level in sorted(ordered_levels)},
            level_index=levels,
            sequence=sequence,
        )

    def _lateral_key(
        self, cid: str, parents: dict[str, set[str]], rank: dict[str, int]
    ) -> tuple[int, int, float, str]:
        controller = self._snapshot.controller(cid)
        layout_x = controller.layout_x if controller and controller.layout_x is not None else math.inf
        governing = [rank[parent] for parent in parents[cid]]
        if governing:
            return (0, min(governing), layout_x, cid)
        # Unsupervised controllers follow the supervised ones on their level.
        return (1, 0, layout_x, cid)

    @staticmethod
    def _find_cycle(stuck: set[str], children: dict[str, set[str]]) -> list[str]:
        # Every stuck node has a stuck child, so walking always closes a loop.
        start = min(stuck)
        path: list[str] = []
        seen: dict[str, int] = {}
        current = start
        while current not in seen:
            seen[current] = len(path)
            path.append(current)
            current = min(child for child in children[current] if child in stuck)
        return path[seen[current]:]


def build_hierarchy(snapshot: AnalysisSnapshot) -> Hierarchy:
    """Convenience wrapper around :class:`HierarchyBuilder`."""

    return HierarchyBuilder(snapshot).build()
