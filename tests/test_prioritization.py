from stpa_coverage.combinations import AbstractionLevel, CandidateCombination, CombinationGenerator, CombinationType
from stpa_coverage.export import to_json, to_records
from stpa_coverage.prioritization import prioritize
from stpa_coverage.scoring import RiskScorer
from stpa_coverage.snapshot import AnalysisSnapshot, ControlAction, Controller, ControllerType, Finding


def _scored(score: int, *members: tuple[str, str], kind: CombinationType = CombinationType.CO_OCCURRENCE) -> CandidateCombination:
    return CandidateCombination(members, AbstractionLevel.CROSS_CONTROLLER, kind, score=score, rationale="r")


def test_orders_by_score_descending() -> None:
    low = _scored(10, ("A", "a1"), ("B", "b1"))
    high = _scored(40, ("C", "c1"), ("D", "d1"))
    assert prioritize([low, high]) == [high, low]


def test_ties_break_on_signature_then_kind() -> None:
    first = _scored(20, ("A", "a1"), ("B", "b1"))
    second = _scored(20, ("A", "a1"), ("C", "c1"))
    third = _scored(20, ("A", "a2"), ("C", "c1"))
    temporal = _scored(20, ("A", "a1"), ("B", "b1"), kind=CombinationType.TEMPORAL_ORDERING)
    ordered = prioritize([temporal, third, second, first])
    assert ordered == [first, temporal, second, third]


def test_pipeline_output_is_byte_identical_across_runs() -> None:
    controllers = [
        Controller(id="A", name="A", ctrl_type=ControllerType.HUMAN),
        Controller(id="B", name="B", ctrl_type=ControllerType.SOFTWARE),
        Controller(id="C", name="C", ctrl_type=ControllerType.ORGANIZATION),
    ]
    actions = [
        ControlAction(id="a1", controller_id="A", verb="x"),
        ControlAction(id="a2", controller_id="A", verb="y"),
        ControlAction(id="b1", controller_id="B", verb="z"),
        ControlAction(id="c1", controller_id="C", verb="w"),
    ]
    snapshot = AnalysisSnapshot.build(controllers, actions, findings=[Finding("f", "b1")])

    def run() -> str:
        candidates = CombinationGenerator(snapshot).generate()
        return to_json(to_records(prioritize(RiskScorer(snapshot).apply_all(candidates))))

    assert run() == run()
