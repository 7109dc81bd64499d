"""Log parsing: tokenizer, classifier, board state tracking and turn assembly."""
from .parser import BattleLogParser, ParsedLog, ParseDiagnostics, parse_log
from .tokenizer import ProtocolLine, TurnStream, tokenize

__all__ = [
    "BattleLogParser",
    "ParsedLog",
    "ParseDiagnostics",
    "parse_log",
    "ProtocolLine",
    "TurnStream",
    "tokenize",
]
