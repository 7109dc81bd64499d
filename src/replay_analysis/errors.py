"""Error taxonomy for replay analysis.

Fatal errors abort the analysis of one battle and propagate to the caller
with a stable ``code``. ``EventError`` subclasses are recovered inside the
parser: the offending line is skipped and counted.
"""
from typing import Optional


class AnalysisError(Exception):
    """Base for all analysis failures."""

    code = "ANALYSIS_ERROR"

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidInput(AnalysisError):
    """Malformed replay identifier or URL, rejected before parsing."""

    code = "INVALID_INPUT"


class UpstreamFetchFailure(AnalysisError):
    """The replay log could not be retrieved from the replay host."""

    code = "UPSTREAM_FETCH_FAILURE"


class ReplayNotFound(UpstreamFetchFailure):
    code = "NOT_FOUND"


class MalformedLog(AnalysisError):
    """Turn ordering could not be established."""

    code = "MALFORMED_LOG"


class IncompleteLog(AnalysisError):
    """No winner could be determined and no draw marker was present."""

    code = "INCOMPLETE_LOG"


class EventError(AnalysisError):
    """A single event could not be applied. Recovered by skipping it."""

    code = "EVENT_ERROR"


class UnknownPokemon(EventError):
    code = "UNKNOWN_POKEMON"

    def __init__(self, ident: str, side: Optional[str] = None):
        where = f" on {side}" if side else ""
        super().__init__(f"Unknown Pokemon '{ident}'{where}", {"ident": ident, "side": side})
        self.ident = ident
        self.side = side


class InvalidEvent(EventError):
    code = "INVALID_EVENT"


class InvalidRequest(AnalysisError):
    """A malformed API request body or missing discriminator fields."""

    code = "INVALID_REQUEST"
