"""HTTP API for battle analysis (aiohttp)."""
import json
import logging
from typing import Optional

from aiohttp import web

from ..config import ServerConfig, config as global_config
from ..data.models import Battle
from ..errors import (
    AnalysisError, IncompleteLog, InvalidInput, InvalidRequest, MalformedLog,
    ReplayNotFound, UpstreamFetchFailure,
)
from .analysis import AnalysisService
from .store import ReplayFilter

logger = logging.getLogger(__name__)

SERVICE = web.AppKey("service", AnalysisService)
CONFIG = web.AppKey("config", ServerConfig)

# Most specific first
HTTP_STATUS = [
    (InvalidRequest, 400),
    (InvalidInput, 400),
    (ReplayNotFound, 404),
    (UpstreamFetchFailure, 502),
    (MalformedLog, 422),
    (IncompleteLog, 422),
]

ANALYSIS_TYPES = ("replayId", "username", "rawLog")


def http_status(error: AnalysisError) -> int:
    for error_type, status in HTTP_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


def error_response(status: int, error: str, code: str, details: Optional[dict] = None) -> web.Response:
    body = {"error": error, "code": code}
    if details:
        body["details"] = details
    return web.json_response(body, status=status)


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Map analysis failures to ``{error, code, details?}`` responses."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except AnalysisError as e:
        status = http_status(e)
        logger.warning(f"{request.method} {request.path} failed [{e.code}]: {e.message}")
        return error_response(status, e.message, e.code, e.details)
    except Exception:
        logger.exception(f"{request.method} {request.path} failed unexpectedly")
        return error_response(500, "Internal server error", "INTERNAL_ERROR")


def _int_param(value, default: int, minimum: int, maximum: Optional[int] = None) -> int:
    """Parse an integer parameter; invalid values fall back to the default."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number < minimum:
        return default
    if maximum is not None:
        number = min(number, maximum)
    return number


def _bool_param(value: Optional[str]) -> Optional[bool]:
    if value is None or value == "":
        return None
    return value.lower() == "true"


async def healthz(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


async def analyze(request: web.Request) -> web.Response:
    """POST /api/showdown/analyze"""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidRequest("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise InvalidRequest("Request body must be a JSON object")

    service = request.app[SERVICE]
    analysis_type = body.get("analysisType")
    is_private = bool(body.get("isPrivate", False))

    if analysis_type == "replayId":
        replay_id = body.get("replayId")
        if not isinstance(replay_id, str) or not replay_id:
            raise InvalidRequest("replayId is required for replayId analysis")
        outcome = await service.analyze_replay(replay_id, is_private)

    elif analysis_type == "username":
        username = body.get("username")
        if not isinstance(username, str) or not username:
            raise InvalidRequest("username is required for username analysis")
        limit = _int_param(body.get("limit"), 1, 1, request.app[CONFIG].max_username_battles)
        outcome = await service.analyze_username(username, body.get("format") or None, limit, is_private)

    elif analysis_type == "rawLog":
        raw_log = body.get("rawLog")
        if not isinstance(raw_log, str) or not raw_log.strip():
            raise InvalidRequest("rawLog is required for rawLog analysis")
        outcome = await service.analyze_raw(raw_log, is_private)

    else:
        raise InvalidRequest(
            f"analysisType must be one of: {', '.join(ANALYSIS_TYPES)}",
            {"analysisType": analysis_type},
        )

    return web.json_response(outcome.to_api())


async def list_replays(request: web.Request) -> web.Response:
    """GET /api/showdown/replays"""
    server_config = request.app[CONFIG]
    query = request.query
    limit = _int_param(query.get("limit"), server_config.default_page_size, 1, server_config.max_page_size)
    offset = _int_param(query.get("offset"), 0, 0)
    filters = ReplayFilter(
        username=query.get("username") or None,
        format=query.get("format") or None,
        is_private=_bool_param(query.get("isPrivate")),
    )
    logger.info(f"Listing replays: {filters} limit={limit} offset={offset}")

    replays, total = request.app[SERVICE].store.list(filters, limit, offset)
    return web.json_response({
        "status": "success",
        "data": [replay.list_item().to_api() for replay in replays],
        "pagination": {"limit": limit, "offset": offset, "total": total},
    })


async def get_replay(request: web.Request) -> web.Response:
    """GET /api/showdown/replays/{replay_id}"""
    outcome = await request.app[SERVICE].get_replay(request.match_info["replay_id"])
    return web.json_response(outcome.to_api())


def turn_analysis(battle: Battle) -> dict:
    """Turn-by-turn view of a battle for step-through navigation."""
    def archetype(player):
        if player.archetype is None:
            return {"archetype": "Unclassified", "description": "", "tags": []}
        return {
            "archetype": player.archetype.archetype,
            "description": player.archetype.description,
            "tags": list(player.archetype.tags),
        }

    return {
        "status": "success",
        "battleId": battle.id,
        "format": battle.format,
        "player1": battle.player1.name,
        "player2": battle.player2.name,
        "winner": battle.winner,
        "turns": [
            {
                "turnNumber": turn.turn_number,
                "events": [event.to_api() for event in turn.events],
                "boardState": turn.state_after.to_api(),
                "positionScore": turn.position_score.to_api() if turn.position_score else None,
            }
            for turn in battle.turns
        ],
        "archetypes": {
            "player1": archetype(battle.player1),
            "player2": archetype(battle.player2),
        },
    }


async def get_turns(request: web.Request) -> web.Response:
    """GET /api/showdown/replays/{replay_id}/turns"""
    outcome = await request.app[SERVICE].get_replay(request.match_info["replay_id"])
    return web.json_response(turn_analysis(outcome.battle))


def create_app(service: Optional[AnalysisService] = None, config: Optional[ServerConfig] = None) -> web.Application:
    """Build the aiohttp application."""
    config = config or global_config.server
    app = web.Application(middlewares=[error_middleware])
    app[CONFIG] = config
    app[SERVICE] = service or AnalysisService(config=config)

    app.router.add_get("/healthz", healthz)
    app.router.add_post("/api/showdown/analyze", analyze)
    app.router.add_get("/api/showdown/replays", list_replays)
    app.router.add_get("/api/showdown/replays/{replay_id}", get_replay)
    app.router.add_get("/api/showdown/replays/{replay_id}/turns", get_turns)
    return app


def run(config: Optional[ServerConfig] = None) -> None:
    config = config or global_config.server
    logger.info(f"Starting analysis API on {config.host}:{config.port}")
    web.run_app(create_app(config=config), host=config.host, port=config.port)
