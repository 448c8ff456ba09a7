import pytest

from stpa_coverage.combinations import AbstractionLevel, CandidateCombination, CombinationType
from stpa_coverage.review import CandidateReview, Decision, ReviewEvent


def _candidates() -> list[CandidateCombination]:
    return [
        CandidateCombination((("A", "a1"), ("B", "b1")), AbstractionLevel.CROSS_CONTROLLER, CombinationType.CO_OCCURRENCE, 40),
        CandidateCombination((("A", "a1"), ("C", "c1")), AbstractionLevel.CROSS_CONTROLLER, CombinationType.CO_OCCURRENCE, 30),
        CandidateCombination((("B", "b1"), ("C", "c1")), AbstractionLevel.SAME_TEAM, CombinationType.TEMPORAL_ORDERING, 20),
    ]


def test_decisions_and_progress() -> None:
    events: list[ReviewEvent] = []
    candidates = _candidates()
    review = CandidateReview(candidates, sink=events.append)
    assert review.next_pending() == candidates[0]

    review.accept(candidates[0].key)
    review.reject(candidates[1].key)
    assert review.decision_of(candidates[0].key) is Decision.ACCEPTED
    assert review.pending() == [candidates[2]]
    assert review.accepted() == [candidates[0]]

    progress = review.progress()
    assert (progress.total, progress.accepted, progress.rejected, progress.pending) == (3, 1, 1, 1)
    assert progress.ratio == pytest.approx(2 / 3)
    assert [event.decision for event in events] == [Decision.ACCEPTED, Decision.REJECTED]


def test_redeciding_overwrites_without_duplicate_events() -> None:
    events: list[ReviewEvent] = []
    candidates = _candidates()
    review = CandidateReview(candidates, sink=events.append)
    key = candidates[2].key
    review.skip(key)
    review.skip(key)
    event = review.accept(key)
    assert event.previous is Decision.SKIPPED
    assert review.decision_of(key) is Decision.ACCEPTED
    assert len(events) == 2
    assert review.progress().skipped == 0


def test_unknown_candidate_raises() -> None:
    review = CandidateReview(_candidates())
    with pytest.raises(KeyError):
        review.accept("co-occurrence|X:x1|Y:y1")
    with pytest.raises(KeyError):
        review.decision_of("missing")


def test_empty_review_is_complete() -> None:
    review = CandidateReview([])
    assert review.next_pending() is None
    assert review.progress().ratio == 1.0
