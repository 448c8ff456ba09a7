import json
import logging

import pytest
from pydantic import ValidationError

from stpa_coverage.api import CoverageEngine
from stpa_coverage.combinations import CombinationGenerator
from stpa_coverage.config import EngineSettings, EnumerationConfig
from stpa_coverage.errors import InvalidConfigurationError
from stpa_coverage.interactions import SpecialInteractions, apply_special_interactions, load_interactions
from stpa_coverage.scoring import RiskScorer
from stpa_coverage.snapshot import AnalysisSnapshot, ControlAction, Controller, ControllerType

PAIRS_ONLY = EnumerationConfig(max_combination_size=2, include_temporal_ordering_type=False)


def _snapshot() -> AnalysisSnapshot:
    controllers = [Controller(id=cid, name=cid, ctrl_type=ControllerType.SOFTWARE) for cid in ("A", "B", "C")]
    actions = [ControlAction(id=f"{cid.lower()}1", controller_id=cid, verb="go") for cid in ("A", "B", "C")]
    return AnalysisSnapshot.build(controllers, actions)


def _apply(interactions: SpecialInteractions) -> dict[str, int]:
    snapshot = _snapshot()
    generator = CombinationGenerator(snapshot, PAIRS_ONLY)
    scorer = RiskScorer(snapshot)
    result = apply_special_interactions(scorer.apply_all(generator.generate()), interactions, generator, scorer)
    return {candidate.key: candidate.score for candidate in result}


def test_keys_are_normalised_on_load() -> None:
    interactions = SpecialInteractions(
        mandatory=["co-occurrence|B:b1|A:a1", "co-occurrence|A:a1|B:b1"],
        priority_adjustments={"co-occurrence|C:c1|A:a1": 5},
    )
    assert interactions.mandatory == ("co-occurrence|A:a1|B:b1",)
    assert interactions.priority_adjustments == {"co-occurrence|A:a1|C:c1": 5}


def test_malformed_keys_fail_validation() -> None:
    with pytest.raises(ValidationError):
        SpecialInteractions(excluded=["co-occurrence|A:a1"])


def test_mandatory_candidates_are_added_and_scored() -> None:
    scores = _apply(SpecialInteractions(mandatory=["temporal-ordering|A:a1|B:b1"]))
    assert len(scores) == 4
    # Two software controllers: one extra controller, no other bonus.
    assert scores["temporal-ordering|A:a1|B:b1"] == 10


def test_excluded_candidates_are_removed_and_win_over_mandatory() -> None:
    scores = _apply(
        SpecialInteractions(
            mandatory=["temporal-ordering|A:a1|C:c1"],
            excluded=["co-occurrence|B:b1|A:a1", "temporal-ordering|A:a1|C:c1"],
        )
    )
    assert sorted(scores) == ["co-occurrence|A:a1|C:c1", "co-occurrence|B:b1|C:c1"]


def test_adjustments_are_clamped(caplog: pytest.LogCaptureFixture) -> None:
    interactions = SpecialInteractions(
        priority_adjustments={
            "co-occurrence|B:b1|C:c1": 95,
            "co-occurrence|A:a1|C:c1": -50,
            "co-occurrence|A:a1|B:b1": 0,
            "temporal-ordering|A:a1|B:b1": 3,
        }
    )
    with caplog.at_level(logging.WARNING, logger="stpa_coverage.interactions"):
        scores = _apply(interactions)
    assert scores == {
        "co-occurrence|A:a1|B:b1": 10,
        "co-occurrence|A:a1|C:c1": 0,
        "co-occurrence|B:b1|C:c1": 100,
    }
    assert "priority_adjustment_unmatched" in [record.getMessage() for record in caplog.records]


def test_unknown_mandatory_action_is_a_configuration_error() -> None:
    with pytest.raises(InvalidConfigurationError):
        _apply(SpecialInteractions(mandatory=["co-occurrence|A:a1|Z:z1"]))


def test_engine_ranks_with_interactions() -> None:
    engine = CoverageEngine(EngineSettings(enumeration=PAIRS_ONLY))
    plain = engine.rank(_snapshot())
    interactions = SpecialInteractions(priority_adjustments={"co-occurrence|B:b1|C:c1": 7})
    adjusted = engine.rank(_snapshot(), interactions)
    assert adjusted is not plain
    assert engine.rank(_snapshot()) is plain
    top = adjusted.candidates[0]
    assert top.key == "co-occurrence|B:b1|C:c1"
    assert top.score == 17
    assert top.rationale.endswith("priority adjusted by +7")
    assert engine.rank(_snapshot(), SpecialInteractions()) is plain


def test_load_interactions_from_file(tmp_path) -> None:
    path = tmp_path / "interactions.json"
    path.write_text(json.dumps({"excluded": ["co-occurrence|C:c1|B:b1"]}))
    interactions = load_interactions(path)
    assert interactions.excluded == ("co-occurrence|B:b1|C:c1",)
    assert interactions.mandatory == ()
