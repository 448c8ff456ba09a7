"""Accept / reject / skip decisions on ranked candidate combinations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable

import logging

from .combinations import CandidateCombination

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ReviewEvent:
    """Decision reported to the external store for persistence."""

    key: str
    decision: Decision
    previous: Decision
    candidate: CandidateCombination


@dataclass(frozen=True)
class ReviewProgress:
    total: int
    accepted: int
    rejected: int
    skipped: int

    @property
    def pending(self) -> int:
        return self.total - self.accepted - self.rejected - self.skipped

    @property
    def ratio(self) -> float:
        if self.total == 0:
            return 1.0
        return (self.total - self.pending) / self.total


class CandidateReview:
    """Review state over one ranked candidate list.

    Decisions can be changed at any time; the latest one wins.
    """

    def __init__(
        self,
        candidates: Iterable[CandidateCombination],
        sink: Callable[[ReviewEvent], None] | None = None,
    ) -> None:
        self._candidates = {candidate.key: candidate for candidate in candidates}
        self._order = list(self._candidates)
        self._decisions: dict[str, Decision] = {}
        self._sink = sink

    def _decide(self, key: str, decision: Decision) -> ReviewEvent:
        if key not in self._candidates:
            raise KeyError(f"Unknown candidate {key}")
        previous = self._decisions.get(key, Decision.PENDING)
        self._decisions[key] = decision
        event = ReviewEvent(key=key, decision=decision, previous=previous, candidate=self._candidates[key])
        logger.debug("candidate_decided", extra={"candidate": key, "decision": decision.value})
        if self._sink is not None and previous is not decision:
            self._sink(event)
        return event

    def accept(self, key: str) -> ReviewEvent:
        return self._decide(key, Decision.ACCEPTED)

    def reject(self, key: str) -> ReviewEvent:
        return self._decide(key, Decision.REJECTED)

    def skip(self, key: str) -> ReviewEvent:
        return self._decide(key, Decision.SKIPPED)

    def decision_of(self, key: str) -> Decision:
        if key not in self._candidates:
            raise KeyError(f"Unknown candidate {key}")
        return self._decisions.get(key, Decision.PENDING)

    def _with(self, decision: Decision) -> list[CandidateCombination]:
        return [self._candidates[key] for key in self._order if self.decision_of(key) is decision]

    def pending(self) -> list[CandidateCombination]:
        """Undecided candidates, still in ranked order."""

        return self._with(Decision.PENDING)

    def accepted(self) -> list[CandidateCombination]:
        return self._with(Decision.ACCEPTED)

    def next_pending(self) -> CandidateCombination | None:
        pending = self.pending()
        return pending[0] if pending else None

    def progress(self) -> ReviewProgress:
        values = list(self._decisions.values())
        return ReviewProgress(
            total=len(self._order),
            accepted=values.count(Decision.ACCEPTED),
            rejected=values.count(Decision.REJECTED),
            skipped=values.count(Decision.SKIPPED),
        )
