"""Enumeration of candidate unsafe control-action combinations.

A candidate is a set of two or more in-scope control actions issued by at least
two different controllers. Candidates are enumerated lazily from index
combinations over the sorted action list so large action sets never have to be
materialised at once, and so the output order depends only on the ids in the
snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from itertools import combinations
from typing import Iterator, Sequence

import logging
import math

from .config import EnumerationConfig
from .errors import InsufficientControllersError, InvalidConfigurationError
from .snapshot import AnalysisSnapshot, ControlAction

logger = logging.getLogger(__name__)


class AbstractionLevel(str, Enum):
    """Whether all participating controllers belong to a single Team."""

    SAME_TEAM = "same-team"
    CROSS_CONTROLLER = "cross-controller"


class CombinationType(str, Enum):
    """What the combination is evaluated for."""

    CO_OCCURRENCE = "co-occurrence"
    TEMPORAL_ORDERING = "temporal-ordering"


@dataclass(frozen=True)
class CandidateCombination:
    """Candidate unsafe combination of control actions.

    ``members`` holds (controller_id, action_id) pairs sorted by controller then
    action id. ``score`` and ``rationale`` are filled in by the risk scorer.
    """

    members: tuple[tuple[str, str], ...]
    abstraction: AbstractionLevel
    kind: CombinationType
    score: int = 0
    rationale: str = ""

    @property
    def controller_ids(self) -> tuple[str, ...]:
        return tuple(sorted({controller_id for controller_id, _ in self.members}))

    @property
    def action_ids(self) -> tuple[str, ...]:
        return tuple(sorted(action_id for _, action_id in self.members))

    @property
    def signature(self) -> tuple[tuple[str, ...], tuple[str, ...]]:
        """Canonical ordering key: sorted controller ids, then sorted action ids."""

        return self.controller_ids, self.action_ids

    @property
    def key(self) -> str:
        """Content-derived identity, stable across recomputations."""

        parts = "|".join(f"{controller_id}:{action_id}" for controller_id, action_id in self.members)
        return f"{self.kind.value}|{parts}"

    def with_score(self, score: int, rationale: str) -> "CandidateCombination":
        return replace(self, score=score, rationale=rationale)


Member = tuple[str, str]


def parse_key(key: str) -> tuple[CombinationType, tuple[Member, ...]]:
    """Split a candidate key into its kind and sorted (controller, action) members.

    Raises:
        ValueError: the key is malformed or names fewer than two controllers.
    """

    kind_text, _, rest = key.strip().partition("|")
    try:
        kind = CombinationType(kind_text)
    except ValueError:
        raise ValueError(f"Unknown combination type in key {key!r}") from None
    members = []
    for part in rest.split("|") if rest else []:
        controller_id, sep, action_id = part.partition(":")
        if not sep or not controller_id or not action_id:
            raise ValueError(f"Malformed member {part!r} in key {key!r}")
        members.append((controller_id, action_id))
    if len({controller_id for controller_id, _ in members}) < 2:
        raise ValueError(f"Key {key!r} must name at least two controllers")
    return kind, tuple(sorted(set(members)))


def canonical_key(key: str) -> str:
    """Normalise member order so equal candidates compare equal by key."""

    kind, members = parse_key(key)
    return CandidateCombination(members, AbstractionLevel.CROSS_CONTROLLER, kind).key


class SubsetIndexSequence:
    """Restartable, lazy sequence of index combinations.

    Iterating yields every tuple of strictly increasing indices into a list of
    ``n`` items, for sizes ``min_size`` through ``max_size`` in order. Each call
    to ``iter()`` starts a fresh pass; nothing is materialised up front.
    """

    def __init__(self, n: int, min_size: int, max_size: int) -> None:
        if n < 0:
            raise ValueError("n must be non-negative")
        if min_size < 1:
            raise ValueError("min_size must be positive")
        self.n = n
        self.min_size = min_size
        self.max_size = min(max_size, n)

    def __iter__(self) -> Iterator[tuple[int, ...]]:
        for size in range(self.min_size, self.max_size + 1):
            yield from combinations(range(self.n), size)

    def __len__(self) -> int:
        return sum(math.comb(self.n, size) for size in range(self.min_size, self.max_size + 1))


class CombinationGenerator:
    """Enumerate candidate combinations from an analysis snapshot."""

    def __init__(self, snapshot: AnalysisSnapshot, config: EnumerationConfig | None = None) -> None:
        self._snapshot = snapshot
        self._config = config or EnumerationConfig()
        self._action_index = {action.id: action for action in snapshot.control_actions}
        self._representatives = {
            controller_id: min(group)
            for group in self._config.interchangeable_groups
            for controller_id in group
        }
        self.pruned = 0
        self._teams = sorted(
            (controller for controller in snapshot.controllers if controller.is_team),
            key=lambda controller: controller.id,
        )

    @property
    def config(self) -> EnumerationConfig:
        return self._config

    def _kinds(self) -> list[CombinationType]:
        kinds: list[CombinationType] = []
        if self._config.include_co_occurrence_type:
            kinds.append(CombinationType.CO_OCCURRENCE)
        if self._config.include_temporal_ordering_type:
            kinds.append(CombinationType.TEMPORAL_ORDERING)
        return kinds

    def _abstraction_enabled(self, abstraction: AbstractionLevel) -> bool:
        if abstraction is AbstractionLevel.SAME_TEAM:
            return self._config.include_same_team_abstraction
        return self._config.include_cross_controller_abstraction

    def classify(self, controller_ids: Sequence[str]) -> AbstractionLevel:
        """Same-team when one Team controller covers every participant."""

        participants = set(controller_ids)
        for team in self._teams:
            if participants <= (team.member_ids | {team.id}):
                return AbstractionLevel.SAME_TEAM
        return AbstractionLevel.CROSS_CONTROLLER

    def equivalence_key(self, candidate: CandidateCombination) -> tuple:
        """Identity of a candidate up to swaps within interchangeable groups.

        Controllers outside every group keep their own action ids; grouped
        controllers are replaced by the group's lowest id and their actions by
        the action label, so an equivalent action of a peer compares equal.
        """

        parts = []
        for controller_id, action_id in candidate.members:
            representative = self._representatives.get(controller_id)
            if representative is None:
                parts.append((controller_id, action_id))
            else:
                parts.append((representative, self._action_index[action_id].label))
        return candidate.kind.value, candidate.abstraction.value, tuple(sorted(parts))

    def candidate_from_key(self, key: str) -> CandidateCombination:
        """Build an unscored candidate for an explicit key.

        Any known action may be named, in scope or not; abstraction and kind
        switches do not apply.

        Raises:
            InvalidConfigurationError: malformed key or unknown controller/action.
        """

        try:
            kind, members = parse_key(key)
        except ValueError as exc:
            raise InvalidConfigurationError(str(exc)) from exc
        for controller_id, action_id in members:
            action = self._action_index.get(action_id)
            known = action is not None and self._snapshot.controller(controller_id) is not None
            if not known or action.controller_id != controller_id:
                raise InvalidConfigurationError(f"Key {key!r} names unknown action {controller_id}:{action_id}")
        abstraction = self.classify(sorted({controller_id for controller_id, _ in members}))
        return CandidateCombination(members=members, abstraction=abstraction, kind=kind)

    def validate(self, max_size: int) -> list[ControlAction]:
        """Check preconditions and return the sorted in-scope actions.

        Raises:
            InsufficientControllersError: fewer than two in-scope controllers.
            InvalidConfigurationError: ``max_size`` outside 2..controller count.
        """

        actions = self._snapshot.in_scope_actions()
        controller_count = len({action.controller_id for action in actions})
        if controller_count < 2:
            raise InsufficientControllersError(controller_count)
        if max_size < 2:
            raise InvalidConfigurationError(f"max combination size must be >= 2, got {max_size}")
        if max_size > controller_count:
            raise InvalidConfigurationError(
                f"max combination size {max_size} exceeds the {controller_count} in-scope controllers"
            )
        return actions

    def iter_candidates(self, max_size: int | None = None) -> Iterator[CandidateCombination]:
        """Validate eagerly, then lazily yield unscored candidates in deterministic order."""

        size = self._config.max_combination_size if max_size is None else max_size
        actions = self.validate(size)
        return self._enumerate(actions, size)

    def _enumerate(self, actions: list[ControlAction], size: int) -> Iterator[CandidateCombination]:
        kinds = self._kinds()
        seen: set[tuple] = set()
        self.pruned = 0
        for indices in SubsetIndexSequence(len(actions), 2, size):
            chosen = [actions[index] for index in indices]
            controller_ids = {action.controller_id for action in chosen}
            if len(controller_ids) < 2:
                continue
            abstraction = self.classify(sorted(controller_ids))
            if not self._abstraction_enabled(abstraction):
                continue
            members = tuple((action.controller_id, action.id) for action in chosen)
            for kind in kinds:
                candidate = CandidateCombination(members=members, abstraction=abstraction, kind=kind)
                if self._representatives:
                    equivalence = self.equivalence_key(candidate)
                    if equivalence in seen:
                        self.pruned += 1
                        continue
                    seen.add(equivalence)
                yield candidate

    def generate(self, max_size: int | None = None, *, strict: bool = False) -> list[CandidateCombination]:
        """Return all candidates.

        With fewer than two in-scope controllers an empty list is returned, as
        this is the normal state early in an analysis; pass ``strict=True`` to
        raise :class:`InsufficientControllersError` instead.
        """

        try:
            candidates = list(self.iter_candidates(max_size))
        except InsufficientControllersError as exc:
            if strict:
                raise
            logger.warning("insufficient_controllers", extra={"in_scope_controllers": exc.count})
            return []
        logger.info("combinations_generated", extra={"candidates": len(candidates), "pruned": self.pruned})
        return candidates
