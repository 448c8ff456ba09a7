"""Deterministic risk heuristic for candidate combinations.

Scores are a fixed, additive rule set over properties of the participating
controllers and actions, clamped to ``[0, RiskWeights.ceiling]``. The weights
are versioned configuration (:class:`~stpa_coverage.config.RiskWeights`) so a
rule change never silently alters historical scores.
"""

from __future__ import annotations

from typing import Iterable

from .combinations import CandidateCombination
from .config import RiskWeights
from .snapshot import AnalysisSnapshot, Controller, ControllerType


class RiskScorer:
    """Score candidates against a snapshot."""

    def __init__(self, snapshot: AnalysisSnapshot, weights: RiskWeights | None = None) -> None:
        self._snapshot = snapshot
        self._weights = weights or RiskWeights()
        self._flagged = snapshot.flagged_action_ids()

    @property
    def weights(self) -> RiskWeights:
        return self._weights

    def _controllers(self, candidate: CandidateCombination) -> list[Controller]:
        controllers = []
        for controller_id in candidate.controller_ids:
            controller = self._snapshot.controller(controller_id)
            if controller is None:
                raise KeyError(f"Unknown controller {controller_id}")
            controllers.append(controller)
        return controllers

    def score(self, candidate: CandidateCombination) -> tuple[int, str]:
        """Return ``(value, rationale)`` for a candidate."""

        weights = self._weights
        controllers = self._controllers(candidate)
        types = {controller.ctrl_type for controller in controllers}
        teams = [controller for controller in controllers if controller.is_team]
        multi_role_teams = [team for team in teams if len(team.roles) >= 2]
        flagged = [action_id for action_id in candidate.action_ids if action_id in self._flagged]

        value = 0
        value += weights.extra_controller * max(len(controllers) - 1, 0)
        value += weights.controller_type * max(len(types) - 1, 0)
        if teams:
            value += weights.team_present
        if ControllerType.ORGANIZATION in types:
            value += weights.organization_present
        value += weights.flagged_action * len(flagged)
        value += weights.multi_role_team * len(multi_role_teams)
        value = max(0, min(value, weights.ceiling))

        reasons: list[str] = []
        if len(controllers) > 2:
            reasons.append(f"multiple controllers ({len(controllers)}) involved")
        if teams:
            reasons.append("team coordination required")
        if ControllerType.ORGANIZATION in types:
            reasons.append("organizational policy interaction")
        if ControllerType.HUMAN in types and ControllerType.SOFTWARE in types:
            reasons.append("human-software interaction")
        if multi_role_teams:
            reasons.append(f"{len(multi_role_teams)} team(s) with multiple roles")
        if flagged:
            reasons.append(f"{len(flagged)} action(s) already flagged")
        rationale = "; ".join(reasons) or "cross-controller interaction detected"
        return value, rationale

    def apply(self, candidate: CandidateCombination) -> CandidateCombination:
        value, rationale = self.score(candidate)
        return candidate.with_score(value, rationale)

    def apply_all(self, candidates: Iterable[CandidateCombination]) -> list[CandidateCombination]:
        return [self.apply(candidate) for candidate in candidates]
