#!/usr/bin/env python
"""Check analyzed battles (output of analyze_replays.py) against the engine's invariants.

Exits with status 1 when any battle breaks an invariant.
"""
import argparse
import logging
import sys
from pathlib import Path

from replay_analysis.data.validation import BattleValidator


def print_counts(title, counts):
    if not counts:
        return
    print(f"\n{title}:")
    for name, count in sorted(counts.items(), key=lambda x: -x[1]):
        print(f"  {name}: {count}")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("input", help="Analyzed battles JSONL")
    parser.add_argument("--min-turns", type=int, default=3, help="Warn below this many turns")
    parser.add_argument("--max-turns", type=int, default=500, help="Warn above this many turns")
    parser.add_argument("--show", type=int, default=10, help="List up to this many invalid battles")
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING)

    report = BattleValidator(args.min_turns, args.max_turns).validate_file(Path(args.input))

    share = 100 * report.valid_battles / report.total_battles if report.total_battles else 0.0
    print(f"{report.valid_battles}/{report.total_battles} battles valid ({share:.1f}%)")
    print_counts("Broken invariants", report.error_counts)
    print_counts("Warnings", report.warning_counts)

    if report.invalid and args.show:
        print("\nInvalid battles:")
        for result in report.invalid[: args.show]:
            print(f"  {result.battle_id}: {', '.join(result.errors)}")

    sys.exit(1 if report.invalid_battles else 0)


if __name__ == "__main__":
    main()
