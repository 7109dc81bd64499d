"""Tokenizer for Pokemon Showdown battle logs.

Splits a raw log into ``(turn_number, line)`` pairs. Lines before the first
``|turn|`` marker belong to turn 0 (players, team preview, leads).
"""
import re
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from ..errors import MalformedLog

TURN_PATTERN = re.compile(r"^\|turn\|(.*)$")


@dataclass(frozen=True)
class ProtocolLine:
    """A single protocol line split into command and arguments."""
    raw: str
    command: str
    args: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def parse(cls, raw: str) -> "ProtocolLine":
        line = raw.rstrip("\r")
        if not line.startswith("|"):
            return cls(raw=line, command="")
        parts = line.split("|")
        return cls(raw=line, command=parts[1], args=tuple(parts[2:]))

    def arg(self, index: int, default: str = "") -> str:
        if index < len(self.args):
            return self.args[index]
        return default

    @property
    def is_protocol(self) -> bool:
        return self.raw.startswith("|")

    @property
    def tags(self) -> List[str]:
        """Trailing ``[from] ...`` style tags."""
        return [a for a in self.args if a.startswith("[")]


class TurnStream:
    """Lazy, restartable stream of ``(turn_number, line)`` pairs.

    Every iteration re-scans the source text, so the stream can be consumed
    more than once.
    """

    def __init__(self, raw_log: str):
        self.raw_log = raw_log

    def __iter__(self) -> Iterator[Tuple[int, str]]:
        for turn, line in self._with_boundaries():
            if line is not None:
                yield turn, line

    def iter_turns(self) -> Iterator[Tuple[int, List[str]]]:
        """Group lines by turn. Turn 0 is always yielded first."""
        current = 0
        lines: List[str] = []
        saw_turn = False

        for turn, line in self._with_boundaries():
            if turn != current:
                yield current, lines
                current, lines = turn, []
                saw_turn = True
            if line is not None:
                lines.append(line)

        if not saw_turn:
            raise MalformedLog("Log contains no turn markers")
        yield current, lines

    def _with_boundaries(self) -> Iterator[Tuple[int, Optional[str]]]:
        """Yield ``(turn, None)`` at each marker, then ``(turn, line)`` pairs."""
        turn = 0
        for line_no, line in enumerate(self.raw_log.splitlines(), start=1):
            if match := TURN_PATTERN.match(line):
                turn = self._next_turn(turn, match.group(1), line_no)
                yield turn, None
                continue
            yield turn, line

    @staticmethod
    def _next_turn(previous: int, value: str, line_no: int) -> int:
        value = value.strip()
        if not value.isdigit():
            raise MalformedLog(
                f"Non-numeric turn marker on line {line_no}: {value!r}",
                {"line": line_no},
            )
        turn = int(value)
        if turn != previous + 1:
            raise MalformedLog(
                f"Turn {turn} on line {line_no} does not follow turn {previous}",
                {"line": line_no, "expected": previous + 1, "found": turn},
            )
        return turn


def tokenize(raw_log: str) -> TurnStream:
    """Tokenize a raw battle log."""
    return TurnStream(raw_log)
