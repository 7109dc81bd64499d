#!/usr/bin/env python
"""Download replay JSON from the replay host into a JSONL file.

Scrapes the recent replays of a format, or with --user the replays of one
player (newest first).
"""
import argparse
import json
import logging
from pathlib import Path

from replay_analysis.config import FetcherConfig
from replay_analysis.data.scraper import ReplayClient
from replay_analysis.errors import UpstreamFetchFailure

logger = logging.getLogger(__name__)


def save_user_replays(client: ReplayClient, username: str, max_replays: int, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    output_file = output_dir / f"{username.lower()}_replays.jsonl"
    count = 0
    page = 1

    with open(output_file, "w") as f:
        while count < max_replays:
            results = client.search_replays(username=username, format=client.config.format, page=page)
            if not results:
                break
            for meta in results[: max_replays - count]:
                try:
                    replay = client.get_replay(meta["id"])
                except UpstreamFetchFailure as e:
                    logger.warning(f"Failed to fetch {meta.get('id')}: [{e.code}] {e}")
                    continue
                f.write(json.dumps(replay) + "\n")
                count += 1
            page += 1

    logger.info(f"Saved {count} replays of {username}")
    return output_file


def main():
    parser = argparse.ArgumentParser(description="Download Pokemon Showdown replays")
    parser.add_argument("--format", default="gen9ou", help="Format id")
    parser.add_argument("--user", help="Only this player's replays")
    parser.add_argument("--max-replays", type=int, default=1000)
    parser.add_argument("--min-rating", type=int, help="Skip replays rated below this (format mode)")
    parser.add_argument("--output-dir", default="data/raw/replays")
    parser.add_argument("--rate", type=float, default=1.0, help="Requests per second")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    client = ReplayClient(FetcherConfig(
        format=args.format,
        output_dir=args.output_dir,
        requests_per_second=args.rate,
    ))

    if args.user:
        output_file = save_user_replays(client, args.user, args.max_replays, Path(args.output_dir))
    else:
        output_file = client.save_replays(max_replays=args.max_replays, min_rating=args.min_rating)
    print(f"Saved to: {output_file}")


if __name__ == "__main__":
    main()
