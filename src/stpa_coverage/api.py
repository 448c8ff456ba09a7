"""Public API facade for the coverage engine.

This module provides a single entry point that wires hierarchy building,
combination enumeration, scoring and prioritisation together, memoises the
results per snapshot content, and hands out one coverage tracker per review
session.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import logging

from .combinations import CandidateCombination, CombinationGenerator
from .config import EngineSettings
from .coverage import CoverageEvent, CoverageTracker, SessionRegistry
from .export import CandidateRecord, render, to_records
from .hierarchy import Hierarchy, HierarchyBuilder
from .interactions import SpecialInteractions, apply_special_interactions
from .logging_utils import configure_logging
from .prioritization import prioritize
from .review import CandidateReview, ReviewEvent
from .scoring import RiskScorer
from .snapshot import AnalysisSnapshot


@dataclass(frozen=True)
class RankingResult:
    """Ranked candidates for one snapshot."""

    snapshot_hash: str
    candidates: tuple[CandidateCombination, ...]

    def records(self) -> list[CandidateRecord]:
        return to_records(self.candidates)


class CoverageEngine:
    """Memoising pipeline over analysis snapshots.

    Hierarchies and rankings are cached by ``(snapshot content hash, settings
    fingerprint)``; recomputation on an unchanged snapshot is a dictionary hit.
    """

    def __init__(
        self,
        settings: EngineSettings | None = None,
        logger: logging.Logger | None = None,
        cache_size: int = 16,
    ) -> None:
        self.settings = settings or EngineSettings()
        self._logger = logger or logging.getLogger(__name__)
        self._cache_size = cache_size
        self._hierarchies: dict[tuple[str, str], Hierarchy] = {}
        self._rankings: dict[tuple[str, str], RankingResult] = {}
        self._sessions = SessionRegistry()
        self._session_hashes: dict[str, str] = {}

    def _cache_key(self, snapshot: AnalysisSnapshot) -> tuple[str, str]:
        return snapshot.content_hash(), self.settings.fingerprint()

    def _remember(self, cache: dict, key: tuple[str, str], value: object) -> None:
        # Drop the oldest entry once the cache is full.
        if len(cache) >= self._cache_size:
            cache.pop(next(iter(cache)))
        cache[key] = value

    def hierarchy(self, snapshot: AnalysisSnapshot) -> Hierarchy:
        """Return the levelled hierarchy; raises GraphCycleError on cycles."""

        key = self._cache_key(snapshot)
        cached = self._hierarchies.get(key)
        if cached is not None:
            return cached
        hierarchy = HierarchyBuilder(snapshot).build()
        self._remember(self._hierarchies, key, hierarchy)
        return hierarchy

    def rank(self, snapshot: AnalysisSnapshot, interactions: SpecialInteractions | None = None) -> RankingResult:
        """Generate, score and order candidate combinations.

        ``interactions`` are applied after scoring and before ordering.
        """

        key = self._cache_key(snapshot)
        if interactions is not None and not interactions.is_empty():
            key = (key[0], f"{key[1]}:{interactions.fingerprint()}")
        cached = self._rankings.get(key)
        if cached is not None:
            self._logger.debug("ranking_cache_hit", extra={"snapshot": key[0]})
            return cached
        # Cycles halt analysis before any enumeration happens.
        self.hierarchy(snapshot)
        generator = CombinationGenerator(snapshot, self.settings.enumeration)
        scorer = RiskScorer(snapshot, self.settings.risk)
        scored = scorer.apply_all(generator.generate())
        if interactions is not None and not interactions.is_empty():
            scored = apply_special_interactions(scored, interactions, generator, scorer)
        ranked = prioritize(scored)
        result = RankingResult(snapshot_hash=key[0], candidates=tuple(ranked))
        self._remember(self._rankings, key, result)
        self._logger.info(
            "ranking_computed",
            extra={"snapshot": key[0], "candidates": len(ranked), "weights_version": self.settings.risk.version},
        )
        return result

    def export(
        self, snapshot: AnalysisSnapshot, fmt: str = "json", interactions: SpecialInteractions | None = None
    ) -> str:
        return render(self.rank(snapshot, interactions).records(), fmt)

    def review(
        self,
        snapshot: AnalysisSnapshot,
        sink: Callable[[ReviewEvent], None] | None = None,
        interactions: SpecialInteractions | None = None,
    ) -> CandidateReview:
        return CandidateReview(self.rank(snapshot, interactions).candidates, sink=sink)

    def tracker(
        self,
        session_id: str,
        snapshot: AnalysisSnapshot,
        sink: Callable[[CoverageEvent], None] | None = None,
    ) -> CoverageTracker:
        """Return the session's tracker, creating it on first use.

        When ``snapshot`` differs from the one the session was last built on,
        the tracker is rescoped to it; recorded cell states are kept.
        """

        def factory() -> CoverageTracker:
            return CoverageTracker(
                snapshot,
                self.hierarchy(snapshot),
                analysis_types=self.settings.coverage.analysis_types,
                sink=sink,
            )

        content_hash = snapshot.content_hash()
        tracker = self._sessions.get(session_id, factory)
        previous = self._session_hashes.get(session_id)
        if previous is not None and previous != content_hash:
            tracker.rescope(snapshot, self.hierarchy(snapshot))
            self._logger.info("coverage_session_rescoped", extra={"session_id": session_id, "snapshot": content_hash})
        self._session_hashes[session_id] = content_hash
        return tracker

    def close_session(self, session_id: str) -> CoverageTracker | None:
        self._session_hashes.pop(session_id, None)
        return self._sessions.close(session_id)

    @property
    def sessions(self) -> SessionRegistry:
        return self._sessions


def build_engine(settings: EngineSettings | None = None, logger: logging.Logger | None = None) -> CoverageEngine:
    """Create a CoverageEngine with logging configured from settings."""

    settings = settings or EngineSettings()
    configure_logging(settings.logging)
    return CoverageEngine(settings=settings, logger=logger)
