"""Analysis service: fetch, analyze, cache and store replays."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..config import ServerConfig, config as global_config
from ..data.models import Battle
from ..data.scraper import ReplayClient, normalize_replay_id
from ..engine import AnalysisReport, BattleAnalyzer
from ..errors import AnalysisError, InvalidInput, ReplayNotFound, UpstreamFetchFailure
from ..evaluation.summary import make_battle_id
from .cache import SingleFlightCache
from .store import ReplayStore, StoredReplay

logger = logging.getLogger(__name__)


@dataclass
class AnalysisOutcome:
    battle: Battle
    parse_time_ms: float
    analysis_time_ms: float
    cached: bool

    def to_api(self) -> dict:
        return {
            "status": "success",
            "battleId": self.battle.id,
            "data": self.battle.to_api(),
            "metadata": {
                "parseTimeMs": self.parse_time_ms,
                "analysisTimeMs": self.analysis_time_ms,
                "cached": self.cached,
            },
        }


@dataclass
class _Analyzed:
    raw_log: str
    report: AnalysisReport


class AnalysisService:
    """Entry point of the serving layer.

    Upstream fetches run in a worker thread under a timeout. Analyses are
    coalesced per battle id by a single-flight cache and every analyzed
    battle is kept in the replay store.
    """

    def __init__(
        self,
        client: Optional[ReplayClient] = None,
        analyzer: Optional[BattleAnalyzer] = None,
        store: Optional[ReplayStore] = None,
        config: Optional[ServerConfig] = None,
    ):
        self.config = config or global_config.server
        self.client = client or ReplayClient()
        self.analyzer = analyzer or BattleAnalyzer()
        self.store = store or ReplayStore()
        self.cache = SingleFlightCache(self.config.cache_size)

    async def analyze_replay(self, replay_id: str, is_private: bool = False) -> AnalysisOutcome:
        replay_id = normalize_replay_id(replay_id)

        async def compute() -> _Analyzed:
            raw_log = await self._upstream(self.client.fetch_raw_log, replay_id)
            report = await asyncio.to_thread(self.analyzer.analyze, raw_log, replay_id)
            return _Analyzed(raw_log, report)

        analyzed, cached = await self.cache.get(replay_id, compute)
        return self._finish(analyzed, is_private, cached)

    async def analyze_raw(self, raw_log: str, is_private: bool = False) -> AnalysisOutcome:
        if not raw_log or not raw_log.strip():
            raise InvalidInput("rawLog is empty")
        battle_id = make_battle_id(raw_log)

        async def compute() -> _Analyzed:
            report = await asyncio.to_thread(self.analyzer.analyze, raw_log)
            return _Analyzed(raw_log, report)

        analyzed, cached = await self.cache.get(battle_id, compute)
        return self._finish(analyzed, is_private, cached)

    async def analyze_username(
        self,
        username: str,
        format: Optional[str] = None,
        limit: int = 1,
        is_private: bool = False,
    ) -> AnalysisOutcome:
        """Analyze a player's most recent replays; returns the most recent one."""
        if not username or not username.strip():
            raise InvalidInput("username is required")
        limit = max(1, min(limit, self.config.max_username_battles))

        results = await self._upstream(self.client.search_replays, username, format)
        ids = [meta["id"] for meta in sorted(results, key=lambda m: m.get("uploadtime", 0), reverse=True) if meta.get("id")]
        if not ids:
            raise ReplayNotFound(f"No replays found for {username}", {"username": username, "format": format})

        outcomes = await asyncio.gather(
            *(self.analyze_replay(replay_id, is_private) for replay_id in ids[:limit]),
            return_exceptions=True,
        )
        for replay_id, outcome in zip(ids, outcomes):
            if isinstance(outcome, AnalysisError):
                logger.warning(f"Skipping {replay_id} for {username}: [{outcome.code}] {outcome}")
            elif isinstance(outcome, BaseException):
                raise outcome

        successes: List[AnalysisOutcome] = [o for o in outcomes if isinstance(o, AnalysisOutcome)]
        if not successes:
            # Every analysis failed: surface the most recent replay's error
            raise outcomes[0]
        return successes[0]

    async def get_replay(self, battle_id: str) -> AnalysisOutcome:
        """A stored battle, or a fresh analysis of a replay id."""
        stored = self.store.get(battle_id)
        if stored is not None:
            return AnalysisOutcome(stored.battle, stored.parse_time_ms, stored.analysis_time_ms, cached=True)
        if battle_id.startswith("raw-"):
            raise ReplayNotFound(f"Replay {battle_id} not found", {"battleId": battle_id})
        return await self.analyze_replay(battle_id)

    async def _upstream(self, call: Callable, *args):
        try:
            return await asyncio.wait_for(asyncio.to_thread(call, *args), self.config.fetch_timeout)
        except asyncio.TimeoutError:
            raise UpstreamFetchFailure(
                f"Replay host did not answer within {self.config.fetch_timeout}s",
                {"timeout": self.config.fetch_timeout},
            )

    def _finish(self, analyzed: _Analyzed, is_private: bool, cached: bool) -> AnalysisOutcome:
        report = analyzed.report
        battle = report.battle
        if not cached or self.store.get(battle.id) is None:
            self.store.put(StoredReplay(
                battle=battle,
                raw_log=analyzed.raw_log,
                is_private=is_private,
                parse_time_ms=report.parse_time_ms,
                analysis_time_ms=report.analysis_time_ms,
            ))
        logger.info(
            f"Analysis {battle.id}: parse {report.parse_time_ms}ms, "
            f"analysis {report.analysis_time_ms}ms, cached={cached}"
        )
        return AnalysisOutcome(battle, report.parse_time_ms, report.analysis_time_ms, cached)
