"""Pokemon Showdown battle replay analysis."""
from .engine import AnalysisReport, BattleAnalyzer, analyze_log
from .errors import (
    AnalysisError,
    EventError,
    IncompleteLog,
    InvalidEvent,
    InvalidInput,
    InvalidRequest,
    MalformedLog,
    ReplayNotFound,
    UnknownPokemon,
    UpstreamFetchFailure,
)

__all__ = [
    "AnalysisReport",
    "BattleAnalyzer",
    "analyze_log",
    "AnalysisError",
    "EventError",
    "IncompleteLog",
    "InvalidEvent",
    "InvalidInput",
    "InvalidRequest",
    "MalformedLog",
    "ReplayNotFound",
    "UnknownPokemon",
    "UpstreamFetchFailure",
]
