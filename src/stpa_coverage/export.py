"""Serialisation of ranked candidates for reports.

Field order is fixed by :class:`CandidateRecord` and scores are integers, so two
exports of the same ranking are byte-identical.
"""

from __future__ import annotations

from typing import Iterable, Sequence

import csv
import io
import json

from pydantic import BaseModel, ConfigDict

from .combinations import CandidateCombination

CSV_LIST_SEPARATOR = ";"


class CandidateRecord(BaseModel):
    """Flat, ordered export row for one ranked candidate."""

    model_config = ConfigDict(frozen=True)

    rank: int
    key: str
    controller_ids: list[str]
    action_ids: list[str]
    abstraction: str
    type: str
    score: int
    rationale: str

    @classmethod
    def from_candidate(cls, rank: int, candidate: CandidateCombination) -> "CandidateRecord":
        return cls(
            rank=rank,
            key=candidate.key,
            controller_ids=list(candidate.controller_ids),
            action_ids=list(candidate.action_ids),
            abstraction=candidate.abstraction.value,
            type=candidate.kind.value,
            score=candidate.score,
            rationale=candidate.rationale,
        )


def to_records(ranked: Iterable[CandidateCombination]) -> list[CandidateRecord]:
    """Number candidates from 1 in the order given."""

    return [CandidateRecord.from_candidate(rank, candidate) for rank, candidate in enumerate(ranked, start=1)]


def to_json(records: Sequence[CandidateRecord]) -> str:
    return json.dumps([record.model_dump() for record in records], indent=2, ensure_ascii=False) + "\n"


def to_csv(records: Sequence[CandidateRecord]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(list(CandidateRecord.model_fields))
    for record in records:
        row = record.model_dump()
        row["controller_ids"] = CSV_LIST_SEPARATOR.join(record.controller_ids)
        row["action_ids"] = CSV_LIST_SEPARATOR.join(record.action_ids)
        writer.writerow(list(row.values()))
    return buffer.getvalue()


def render(records: Sequence[CandidateRecord], fmt: str) -> str:
    if fmt == "json":
        return to_json(records)
    if fmt == "csv":
        return to_csv(records)
    raise ValueError(f"Unsupported export format {fmt!r}")
