"""Tests for the analysis service."""
import asyncio

import pytest

from replay_analysis.config import ServerConfig
from replay_analysis.engine import BattleAnalyzer
from replay_analysis.errors import (
    InvalidInput, MalformedLog, ReplayNotFound, UpstreamFetchFailure,
)
from replay_analysis.service.analysis import AnalysisService


def test_analyze_replay_stores_the_battle(service):
    outcome = asyncio.run(service.analyze_replay("https://replay.pokemonshowdown.com/gen9ou-100"))

    assert outcome.battle.id == "gen9ou-100"
    assert not outcome.cached
    assert service.store.get("gen9ou-100") is not None

    data = outcome.to_api()
    assert data["status"] == "success"
    assert data["battleId"] == "gen9ou-100"
    assert set(data["metadata"]) == {"parseTimeMs", "analysisTimeMs", "cached"}


def test_repeat_requests_are_cached(service, fake_client):
    async def main():
        first = await service.analyze_replay("gen9ou-100")
        second = await service.analyze_replay("gen9ou-100")
        return first, second

    first, second = asyncio.run(main())

    assert (first.cached, second.cached) == (False, True)
    assert first.battle is second.battle
    assert fake_client.fetched == ["gen9ou-100"]


def test_concurrent_requests_fetch_once(service, fake_client):
    fake_client.delay = 0.2

    async def main():
        return await asyncio.gather(*(service.analyze_replay("gen9ou-100") for _ in range(4)))

    outcomes = asyncio.run(main())

    assert fake_client.fetched == ["gen9ou-100"]
    assert service.cache.computations == 1
    assert len({id(o.battle) for o in outcomes}) == 1


def test_invalid_replay_id_is_rejected_before_fetching(service, fake_client):
    with pytest.raises(InvalidInput):
        asyncio.run(service.analyze_replay("definitely not a replay"))
    assert fake_client.fetched == []


def test_slow_upstream_times_out(fake_client, dex):
    fake_client.delay = 0.3
    service = AnalysisService(
        client=fake_client,
        analyzer=BattleAnalyzer(dex=dex),
        config=ServerConfig(fetch_timeout=0.05),
    )

    with pytest.raises(UpstreamFetchFailure) as exc_info:
        asyncio.run(service.analyze_replay("gen9ou-100"))
    assert exc_info.value.details == {"timeout": 0.05}
    assert not service.cache.in_flight("gen9ou-100")


def test_failed_analyses_are_not_cached(service, fake_client, sample_log):
    fake_client.logs["gen9ou-100"] = "|turn|2\n"
    with pytest.raises(MalformedLog):
        asyncio.run(service.analyze_replay("gen9ou-100"))

    fake_client.logs["gen9ou-100"] = sample_log
    outcome = asyncio.run(service.analyze_replay("gen9ou-100"))
    assert outcome.battle.winner == "player1"


def test_analyze_raw(service, forfeit_log):
    outcome = asyncio.run(service.analyze_raw(forfeit_log, is_private=True))

    assert outcome.battle.id.startswith("raw-")
    assert service.store.get(outcome.battle.id).is_private
    with pytest.raises(InvalidInput):
        asyncio.run(service.analyze_raw("   "))


def test_username_returns_most_recent(service):
    outcome = asyncio.run(service.analyze_username("Ash", limit=2))

    assert outcome.battle.id == "gen9ou-200"
    assert outcome.battle.winner == "player2"
    assert len(service.store) == 2


def test_username_defaults_to_one_battle(service, fake_client):
    asyncio.run(service.analyze_username("Ash"))
    assert fake_client.fetched == ["gen9ou-200"]


def test_username_skips_failed_battles(service, fake_client):
    fake_client.logs["gen9ou-200"] = "|turn|2\n"
    outcome = asyncio.run(service.analyze_username("Ash", limit=2))
    assert outcome.battle.id == "gen9ou-100"


def test_username_with_every_battle_failing(service, fake_client):
    fake_client.logs.clear()
    with pytest.raises(ReplayNotFound):
        asyncio.run(service.analyze_username("Ash", limit=2))


def test_username_without_replays(service, fake_client):
    fake_client.search_results = []
    with pytest.raises(ReplayNotFound):
        asyncio.run(service.analyze_username("Nobody"))


def test_unexpected_errors_propagate(service, fake_client):
    fake_client.logs["gen9ou-200"] = RuntimeError("boom")
    with pytest.raises(RuntimeError):
        asyncio.run(service.analyze_username("Ash", limit=2))


def test_get_replay(service):
    async def main():
        fresh = await service.get_replay("gen9ou-100")
        stored = await service.get_replay("gen9ou-100")
        return fresh, stored

    fresh, stored = asyncio.run(main())
    assert not fresh.cached
    assert stored.cached
    with pytest.raises(ReplayNotFound):
        asyncio.run(service.get_replay("raw-0123456789abcdef"))
