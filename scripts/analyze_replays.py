#!/usr/bin/env python
"""Analyze scraped replays into Battle summaries (JSONL in, JSONL out)."""
import argparse
import json
import logging
from pathlib import Path
from tqdm import tqdm

from replay_analysis.engine import BattleAnalyzer
from replay_analysis.errors import AnalysisError

logger = logging.getLogger(__name__)

def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("input", help="Input JSONL file of replay JSON (with a 'log' field)")
    parser.add_argument("--output", help="Output JSONL file")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    input_path = Path(args.input)
    output_path = Path(args.output) if args.output else input_path.with_suffix(".analyzed.jsonl")

    analyzer = BattleAnalyzer()
    success = 0
    failed = 0
    failures = {}

    with open(input_path) as f_in, open(output_path, "w") as f_out:
        for line in tqdm(f_in, desc="Analyzing"):
            replay = json.loads(line)
            try:
                report = analyzer.analyze(replay.get("log", ""), replay.get("id"))
            except AnalysisError as e:
                logger.warning(f"Failed to analyze {replay.get('id', 'unknown')}: [{e.code}] {e}")
                failures[e.code] = failures.get(e.code, 0) + 1
                failed += 1
                continue

            f_out.write(json.dumps(report.battle.to_api()) + "\n")
            success += 1

    print(f"Analyzed {success} battles, {failed} failed")
    for code, count in sorted(failures.items(), key=lambda x: -x[1]):
        print(f"  {code}: {count}")

if __name__ == "__main__":
    main()
