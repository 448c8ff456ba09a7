"""Total ordering of scored candidates."""

from __future__ import annotations

from typing import Iterable

from .combinations import CandidateCombination


def priority_key(candidate: CandidateCombination) -> tuple[int, tuple[str, ...], tuple[str, ...], str]:
    # Highest score first; equal scores fall back to the canonical signature.
    controller_ids, action_ids = candidate.signature
    return (-candidate.score, controller_ids, action_ids, candidate.kind.value)


def prioritize(candidates: Iterable[CandidateCombination]) -> list[CandidateCombination]:
    """Order candidates by score descending with a deterministic tie-break."""

    return sorted(candidates, key=priority_key)
