"""Client for the Pokemon Showdown replay host."""
import re
import json
import time
import logging
from pathlib import Path
from typing import Iterator, Optional

import requests

from ..config import FetcherConfig, config as global_config
from ..errors import InvalidInput, ReplayNotFound, UpstreamFetchFailure

logger = logging.getLogger(__name__)

REPLAY_ID_PATTERN = re.compile(r"^[a-z0-9]+-\d+(-[a-z0-9]+pw)?$")
URL_PREFIX_PATTERN = re.compile(r"^(?:https?://)?(?:replay\.)?pokemonshowdown\.com/", re.IGNORECASE)


def normalize_replay_id(value: str) -> str:
    """Normalize a replay id or replay URL to a bare id.

    "https://replay.pokemonshowdown.com/gen9ou-123.json" -> "gen9ou-123"

    Raises:
        InvalidInput: the value is not a replay id or replay URL
    """
    candidate = (value or "").strip()
    candidate = URL_PREFIX_PATTERN.sub("", candidate)
    candidate = candidate.split("?", 1)[0].rstrip("/")
    for suffix in (".json", ".log"):
        if candidate.endswith(suffix):
            candidate = candidate[: -len(suffix)]
    candidate = candidate.lower()
    if not REPLAY_ID_PATTERN.match(candidate):
        raise InvalidInput(f"Invalid replay id: {value!r}", {"replayId": value})
    return candidate


def looks_like_log(text: str) -> bool:
    """True if the text contains at least one protocol line."""
    return any(line.startswith("|") for line in text.splitlines())


class ReplayClient:
    """Rate-limited client for replay JSON and replay search."""

    def __init__(self, config: Optional[FetcherConfig] = None):
        self.config = config or global_config.fetcher
        self.base_url = self.config.base_url.rstrip("/")
        self.session = requests.Session()
        self.last_request_time = 0.0

    def _rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        elapsed = time.time() - self.last_request_time
        sleep_time = (1.0 / self.config.requests_per_second) - elapsed
        if sleep_time > 0:
            time.sleep(sleep_time)
        self.last_request_time = time.time()

    def _get_json(self, url: str, params: Optional[dict] = None, what: str = "") -> object:
        self._rate_limit()
        try:
            response = self.session.get(url, params=params, timeout=self.config.timeout)
        except requests.RequestException as e:
            raise UpstreamFetchFailure(f"Could not reach replay host: {e}", {"url": url})

        if response.status_code == 404:
            raise ReplayNotFound(f"{what or 'Resource'} not found", {"url": url})
        try:
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as e:
            raise UpstreamFetchFailure(f"Replay host error: {e}", {"url": url, "status": response.status_code})
        except ValueError as e:
            raise UpstreamFetchFailure(f"Replay host returned invalid JSON: {e}", {"url": url})

    def get_replay(self, replay_id: str) -> dict:
        """Fetch full replay data.

        Args:
            replay_id: The replay ID (e.g., "gen9ou-12345678")

        Returns:
            Full replay data including log
        """
        replay_id = normalize_replay_id(replay_id)
        url = f"{self.base_url}/{replay_id}.json"
        data = self._get_json(url, what=f"Replay {replay_id}")
        if not isinstance(data, dict):
            raise UpstreamFetchFailure(f"Unexpected replay payload for {replay_id}", {"url": url})
        return data

    def fetch_raw_log(self, source: str) -> str:
        """Return log text for a replay id, a replay URL, or log text itself."""
        if looks_like_log(source or ""):
            return source
        replay = self.get_replay(source)
        log = replay.get("log")
        if not log:
            raise UpstreamFetchFailure(f"Replay {replay.get('id', source)} has no log")
        return log

    def search_replays(
        self,
        username: Optional[str] = None,
        format: Optional[str] = None,
        page: int = 1,
    ) -> list:
        """Search for replays by player and/or format.

        Args:
            username: Player name filter
            format: Format id filter (e.g. "gen9ou")
            page: Page number (1-indexed)

        Returns:
            List of replay metadata dicts, most recent first
        """
        params = {"page": page}
        if username:
            params["user"] = username
        if format:
            params["format"] = format
        results = self._get_json(f"{self.base_url}/search.json", params=params, what="Search page")
        return results if isinstance(results, list) else []

    def scrape_replays(self, max_replays: int = 10000, min_rating: Optional[int] = None) -> Iterator[dict]:
        """Scrape replays of the configured format up to max count.

        Yields:
            Replay data dicts
        """
        page = 1
        count = 0

        while count < max_replays:
            logger.info(f"Fetching page {page}...")
            results = self.search_replays(format=self.config.format, page=page)

            if not results:
                logger.info("No more replays found")
                break

            for meta in results:
                if count >= max_replays:
                    break

                if min_rating and (meta.get("rating") or 0) < min_rating:
                    continue

                try:
                    replay = self.get_replay(meta["id"])
                except UpstreamFetchFailure as e:
                    logger.warning(f"Failed to fetch {meta.get('id')}: {e}")
                    continue

                count += 1
                yield replay

                if count % 100 == 0:
                    logger.info(f"Scraped {count} replays")

            page += 1

    def save_replays(self, max_replays: int = 10000, min_rating: Optional[int] = None) -> Path:
        """Scrape and save replays to a JSONL file.

        Returns:
            Path to output file
        """
        output_dir = Path(self.config.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        output_file = output_dir / f"{self.config.format}_replays.jsonl"

        with open(output_file, "w") as f:
            for replay in self.scrape_replays(max_replays, min_rating):
                f.write(json.dumps(replay) + "\n")

        logger.info(f"Saved replays to {output_file}")
        return output_file
