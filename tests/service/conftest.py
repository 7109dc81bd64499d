"""Fixtures for the serving layer."""
import asyncio
import time

import pytest
from aiohttp.test_utils import TestClient, TestServer

from replay_analysis.config import ServerConfig
from replay_analysis.engine import BattleAnalyzer
from replay_analysis.errors import ReplayNotFound
from replay_analysis.service.analysis import AnalysisService
from replay_analysis.service.api import create_app


class FakeReplayClient:
    """Stands in for ReplayClient. Values may be log text or an exception to raise."""

    def __init__(self, logs, search_results=None, delay=0.0):
        self.logs = dict(logs)
        self.search_results = list(search_results or [])
        self.delay = delay
        self.fetched = []

    def fetch_raw_log(self, source):
        if self.delay:
            time.sleep(self.delay)
        self.fetched.append(source)
        value = self.logs.get(source)
        if value is None:
            raise ReplayNotFound(f"Replay {source} not found", {"replayId": source})
        if isinstance(value, Exception):
            raise value
        return value

    def search_replays(self, username=None, format=None, page=1):
        return list(self.search_results)


@pytest.fixture
def server_config():
    return ServerConfig(fetch_timeout=2.0)


@pytest.fixture
def fake_client(sample_log, forfeit_log):
    return FakeReplayClient(
        {"gen9ou-100": sample_log, "gen9ou-200": forfeit_log},
        search_results=[
            {"id": "gen9ou-100", "uploadtime": 1700000000},
            {"id": "gen9ou-200", "uploadtime": 1700005000},
        ],
    )


@pytest.fixture
def service(fake_client, dex, server_config):
    return AnalysisService(
        client=fake_client,
        analyzer=BattleAnalyzer(dex=dex),
        config=server_config,
    )


@pytest.fixture
def run_api(service, server_config):
    """Run ``scenario(client)`` against a live test server and return its result."""
    def run(scenario):
        async def main():
            app = create_app(service, server_config)
            async with TestClient(TestServer(app)) as client:
                return await scenario(client)
        return asyncio.run(main())
    return run
