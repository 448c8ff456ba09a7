import pytest

from stpa_coverage.combinations import AbstractionLevel, CandidateCombination, CombinationGenerator, CombinationType
from stpa_coverage.config import RiskWeights
from stpa_coverage.scoring import RiskScorer
from stpa_coverage.snapshot import AnalysisSnapshot, ControlAction, Controller, ControllerType, Finding, Role


def _snapshot(findings: list[Finding] | None = None) -> AnalysisSnapshot:
    controllers = [
        Controller(
            id="A",
            name="Ops team",
            ctrl_type=ControllerType.TEAM,
            roles=(Role("lead"), Role("operator")),
        ),
        Controller(id="B", name="Autopilot", ctrl_type=ControllerType.SOFTWARE),
        Controller(id="C", name="Monitor", ctrl_type=ControllerType.SOFTWARE),
        Controller(id="H", name="Pilot", ctrl_type=ControllerType.HUMAN),
        Controller(id="O", name="Regulator", ctrl_type=ControllerType.ORGANIZATION),
    ]
    actions = [ControlAction(id=f"{c.id.lower()}1", controller_id=c.id, verb="act") for c in controllers]
    return AnalysisSnapshot.build(controllers, actions, findings=findings or [])


def _candidate(*controller_ids: str) -> CandidateCombination:
    members = tuple((cid, f"{cid.lower()}1") for cid in sorted(controller_ids))
    return CandidateCombination(members, AbstractionLevel.CROSS_CONTROLLER, CombinationType.CO_OCCURRENCE)


def test_team_with_roles_and_software_scores_38() -> None:
    value, rationale = RiskScorer(_snapshot()).score(_candidate("A", "B"))
    assert value == 38
    assert rationale == "team coordination required; 1 team(s) with multiple roles"


def test_flagged_actions_add_to_score() -> None:
    scorer = RiskScorer(_snapshot([Finding("f1", "a1"), Finding("f2", "a1"), Finding("f3", "b1")]))
    value, rationale = scorer.score(_candidate("A", "B"))
    assert value == 38 + 20
    assert rationale.endswith("2 action(s) already flagged")


def test_three_controllers_mention_count() -> None:
    value, rationale = RiskScorer(_snapshot()).score(_candidate("A", "B", "C"))
    assert value == 20 + 5 + 15 + 8
    assert rationale.startswith("multiple controllers (3) involved")


def test_human_software_pair() -> None:
    value, rationale = RiskScorer(_snapshot()).score(_candidate("B", "H"))
    assert value == 15
    assert rationale == "human-software interaction"


def test_plain_software_pair_uses_fallback_rationale() -> None:
    value, rationale = RiskScorer(_snapshot()).score(_candidate("B", "C"))
    assert value == 10
    assert rationale == "cross-controller interaction detected"


def test_organization_bonus() -> None:
    value, rationale = RiskScorer(_snapshot()).score(_candidate("B", "O"))
    assert value == 10 + 5 + 20
    assert "organizational policy interaction" in rationale


def test_score_is_clamped() -> None:
    findings = [Finding(f"f-{c}", f"{c}1") for c in "abcho"]
    scorer = RiskScorer(_snapshot(findings))
    value, _ = scorer.score(_candidate("A", "B", "C", "H", "O"))
    assert value == 100


def test_all_generated_scores_are_bounded() -> None:
    snapshot = _snapshot([Finding("f1", "a1")])
    scorer = RiskScorer(snapshot)
    for candidate in CombinationGenerator(snapshot).generate(max_size=4):
        scored = scorer.apply(candidate)
        assert 0 <= scored.score <= 100
        assert scored.rationale


def test_custom_weights_change_scores() -> None:
    weights = RiskWeights(version="2", extra_controller=1, controller_type=0, team_present=0, multi_role_team=0)
    value, _ = RiskScorer(_snapshot(), weights).score(_candidate("A", "B"))
    assert value == 1


def test_unknown_controller_raises() -> None:
    with pytest.raises(KeyError):
        RiskScorer(_snapshot()).score(_candidate("B", "Z"))


def test_scorer_exposes_weights() -> None:
    assert RiskScorer(_snapshot()).weights == RiskWeights()
    custom = RiskWeights(version="3", ceiling=50)
    assert RiskScorer(_snapshot(), custom).weights is custom
