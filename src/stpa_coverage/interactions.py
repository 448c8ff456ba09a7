"""Analyst overrides applied to a scored candidate list.

Special interactions let an analyst force known-dangerous combinations into the
ranking, drop combinations already ruled out, and nudge individual scores. All
entries are candidate keys (``"<type>|<controller>:<action>|..."``); member
order inside a key does not matter.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import hashlib
import logging

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .combinations import CandidateCombination, CombinationGenerator, canonical_key
from .scoring import RiskScorer

logger = logging.getLogger(__name__)


class SpecialInteractions(BaseModel):
    """Mandatory, excluded and score-adjusted candidates."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    mandatory: tuple[str, ...] = Field(default=(), description="Candidates that must be ranked")
    excluded: tuple[str, ...] = Field(default=(), description="Candidates removed from the ranking")
    priority_adjustments: dict[str, int] = Field(default_factory=dict, description="Score delta per candidate")

    @field_validator("mandatory", "excluded")
    @classmethod
    def _canonical_keys(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(dict.fromkeys(canonical_key(key) for key in value))

    @field_validator("priority_adjustments")
    @classmethod
    def _canonical_adjustments(cls, value: dict[str, int]) -> dict[str, int]:
        adjusted: dict[str, int] = {}
        for key, delta in value.items():
            canonical = canonical_key(key)
            adjusted[canonical] = adjusted.get(canonical, 0) + delta
        return adjusted

    def is_empty(self) -> bool:
        return not (self.mandatory or self.excluded or self.priority_adjustments)

    def fingerprint(self) -> str:
        return hashlib.sha1(self.model_dump_json().encode("utf-8")).hexdigest()


def apply_special_interactions(
    candidates: Iterable[CandidateCombination],
    interactions: SpecialInteractions,
    generator: CombinationGenerator,
    scorer: RiskScorer,
) -> list[CandidateCombination]:
    """Add mandatory candidates, drop excluded ones, then adjust scores.

    Exclusion wins over a mandatory entry for the same key. Adjusted scores are
    clamped to ``[0, scorer.weights.ceiling]``.
    """

    by_key = {candidate.key: candidate for candidate in candidates}
    added = 0
    for key in interactions.mandatory:
        if key not in by_key:
            by_key[key] = scorer.apply(generator.candidate_from_key(key))
            added += 1
    removed = 0
    for key in interactions.excluded:
        if by_key.pop(key, None) is not None:
            removed += 1

    ceiling = scorer.weights.ceiling
    result = []
    for key, candidate in by_key.items():
        delta = interactions.priority_adjustments.get(key, 0)
        if delta:
            score = max(0, min(candidate.score + delta, ceiling))
            candidate = candidate.with_score(score, f"{candidate.rationale}; priority adjusted by {delta:+d}")
        result.append(candidate)
    unmatched = set(interactions.priority_adjustments) - set(by_key)
    if unmatched:
        logger.warning("priority_adjustment_unmatched", extra={"keys": sorted(unmatched)})
    logger.info("special_interactions_applied", extra={"added": added, "removed": removed})
    return result


def load_interactions(path: str | Path) -> SpecialInteractions:
    """Read and validate a JSON special-interactions document."""

    return SpecialInteractions.model_validate_json(Path(path).read_text())
