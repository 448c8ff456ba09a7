"""Command-line entry point for ranking and coverage planning."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Sequence

from pydantic import ValidationError

from .api import build_engine
from .config import EngineSettings
from .errors import CoverageEngineError
from .interactions import load_interactions
from .models import load_snapshot


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stpa-coverage", description="Rank UCCA candidates and plan UCA coverage")
    parser.add_argument("--config", help="Path to TOML configuration file")
    sub = parser.add_subparsers(dest="command", required=True)

    rank = sub.add_parser("rank", help="Print ranked candidate combinations")
    rank.add_argument("snapshot", help="Path to JSON snapshot document")
    rank.add_argument("--format", choices=("json", "csv"), default="json", help="Output format")
    rank.add_argument("--max-size", type=int, help="Override the maximum combination size")
    rank.add_argument("--interactions", help="Path to JSON special-interactions document")

    hierarchy = sub.add_parser("hierarchy", help="Print controller levels and visiting order")
    hierarchy.add_argument("snapshot", help="Path to JSON snapshot document")

    coverage = sub.add_parser("coverage", help="Print the coverage cell plan")
    coverage.add_argument("snapshot", help="Path to JSON snapshot document")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _parser().parse_args(argv)

    try:
        settings = EngineSettings.from_toml(args.config) if args.config else EngineSettings()
        if getattr(args, "max_size", None) is not None:
            settings.enumeration = settings.enumeration.model_copy(update={"max_combination_size": args.max_size})
        engine = build_engine(settings)
        snapshot = load_snapshot(args.snapshot)

        if args.command == "rank":
            interactions = load_interactions(args.interactions) if args.interactions else None
            sys.stdout.write(engine.export(snapshot, args.format, interactions))
        elif args.command == "hierarchy":
            result = engine.hierarchy(snapshot)
            payload = {
                "levels": {str(level): list(ids) for level, ids in result.levels.items()},
                "sequence": list(result.sequence),
            }
            sys.stdout.write(json.dumps(payload, indent=2) + "\n")
        else:
            tracker = engine.tracker("cli", snapshot)
            for cell in tracker.cells():
                key = cell.key
                sys.stdout.write(f"{key.controller_id}\t{key.action_id}\t{key.analysis_type}\t{key.instance}\n")
    except (CoverageEngineError, ValidationError, OSError) as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
