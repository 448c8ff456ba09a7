import csv
import io
import json

import pytest

from stpa_coverage.combinations import AbstractionLevel, CandidateCombination, CombinationType
from stpa_coverage.export import CandidateRecord, render, to_csv, to_json, to_records


def _ranked() -> list[CandidateCombination]:
    return [
        CandidateCombination(
            (("A", "a1"), ("B", "b1"), ("C", "c1")),
            AbstractionLevel.CROSS_CONTROLLER,
            CombinationType.TEMPORAL_ORDERING,
            score=48,
            rationale="multiple controllers (3) involved; team coordination required",
        ),
        CandidateCombination(
            (("A", "a1"), ("B", "b1")),
            AbstractionLevel.SAME_TEAM,
            CombinationType.CO_OCCURRENCE,
            score=38,
            rationale="team coordination required",
        ),
    ]


def test_records_are_ranked_from_one() -> None:
    records = to_records(_ranked())
    assert [record.rank for record in records] == [1, 2]
    assert records[0].controller_ids == ["A", "B", "C"]
    assert records[0].type == "temporal-ordering"
    assert records[1].abstraction == "same-team"


def test_json_field_order_is_stable() -> None:
    payload = json.loads(to_json(to_records(_ranked())))
    assert list(payload[0]) == [
        "rank",
        "key",
        "controller_ids",
        "action_ids",
        "abstraction",
        "type",
        "score",
        "rationale",
    ]
    assert payload[1]["score"] == 38


def test_csv_joins_ids() -> None:
    rows = list(csv.reader(io.StringIO(to_csv(to_records(_ranked())))))
    assert rows[0] == list(CandidateRecord.model_fields)
    assert rows[1][2] == "A;B;C"
    assert rows[1][3] == "a1;b1;c1"
    assert rows[2][6] == "38"


def test_render_rejects_unknown_format() -> None:
    assert render([], "json") == "[]\n"
    with pytest.raises(ValueError):
        render([], "xml")
