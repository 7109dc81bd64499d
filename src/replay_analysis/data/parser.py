"""Parser for Pokemon Showdown battle logs.

Drives one log through tokenizer, classifier, tracker and turn aggregator.
All mutable state of a parse lives in a ``ParseContext`` created per call,
so concurrent parses share nothing.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..errors import EventError, InvalidEvent
from .aggregator import TurnBuilder
from .classifier import EventClassifier
from .dex import Dex, get_dex
from .models import BattleEvent, FieldState, Player, Side, Turn
from .tokenizer import ProtocolLine, tokenize
from .tracker import BoardStateTracker

logger = logging.getLogger(__name__)

MAX_DIAGNOSTIC_MESSAGES = 50


@dataclass
class ParseDiagnostics:
    """Recovered per-event errors of one parse."""
    skipped_events: int = 0
    errors_by_code: Dict[str, int] = field(default_factory=dict)
    messages: List[str] = field(default_factory=list)

    def record(self, turn: int, line: str, error: EventError) -> None:
        self.skipped_events += 1
        self.errors_by_code[error.code] = self.errors_by_code.get(error.code, 0) + 1
        if len(self.messages) < MAX_DIAGNOSTIC_MESSAGES:
            self.messages.append(f"turn {turn}: {error} ({line})")

    def to_dict(self) -> dict:
        return {
            "skippedEvents": self.skipped_events,
            "errorsByCode": dict(self.errors_by_code),
            "messages": list(self.messages),
        }


@dataclass
class BattleMetadata:
    """Battle-level facts read from non-event lines."""
    format: str = "unknown"
    gen: Optional[int] = None
    first_timestamp: Optional[int] = None
    last_timestamp: Optional[int] = None
    winner_name: Optional[str] = None
    tie: bool = False


@dataclass
class ParsedLog:
    """Output of a parse, consumed by the summary assembler."""
    turns: List[Turn]
    fields: List[FieldState]  # field context after each turn, same order as turns
    player1: Player
    player2: Player
    metadata: BattleMetadata
    diagnostics: ParseDiagnostics

    def player(self, side: Side) -> Player:
        return self.player1 if side is Side.PLAYER1 else self.player2


class ParseContext:
    """Mutable state of a single parse."""

    def __init__(self, dex: Optional[Dex] = None):
        self.tracker = BoardStateTracker(dex)
        self.classifier = EventClassifier(self.tracker)
        self.metadata = BattleMetadata()
        self.diagnostics = ParseDiagnostics()
        self.turns: List[Turn] = []
        self.fields: List[FieldState] = []
        self.turn = 0
        self._fixed_dex = dex is not None
        self._builder: Optional[TurnBuilder] = None

    def set_generation(self, gen: int) -> None:
        self.metadata.gen = gen
        if not self._fixed_dex:
            self.tracker.dex = get_dex(gen)

    def begin_turn(self, turn: int) -> None:
        self.turn = turn
        self.tracker.turn = turn
        # The preamble updates the tracker but is not a turn of its own
        self._builder = TurnBuilder(turn, self.tracker.dex) if turn > 0 else None

    def emit(self, event: BattleEvent) -> None:
        if self._builder is not None:
            self._builder.add(event)

    def end_turn(self) -> None:
        if self._builder is None:
            return
        self.turns.append(self._builder.build(self.tracker.snapshot()))
        self.fields.append(self.tracker.field_snapshot())
        self._builder = None

    def result(self) -> ParsedLog:
        return ParsedLog(
            turns=self.turns,
            fields=self.fields,
            player1=self.tracker.player(Side.PLAYER1),
            player2=self.tracker.player(Side.PLAYER2),
            metadata=self.metadata,
            diagnostics=self.diagnostics,
        )


class BattleLogParser:
    """Parser for Pokemon Showdown battle logs."""

    def __init__(self, dex: Optional[Dex] = None):
        self.dex = dex
        self._metadata_handlers: Dict[str, Callable[[ParseContext, ProtocolLine], None]] = {
            "player": self._on_player,
            "teamsize": self._on_team_size,
            "poke": self._on_preview,
            "showteam": self._on_team_sheet,
            "gen": self._on_gen,
            "tier": self._on_tier,
            "t:": self._on_timestamp,
            "win": self._on_win,
            "tie": self._on_tie,
        }

    def parse(self, raw_log: str) -> ParsedLog:
        """Parse a raw battle log.

        Args:
            raw_log: Newline-delimited protocol text

        Returns:
            ParsedLog with one Turn per turn marker

        Raises:
            MalformedLog: turn markers are missing or out of order
        """
        context = ParseContext(self.dex)

        for turn, lines in tokenize(raw_log).iter_turns():
            context.begin_turn(turn)
            for raw in lines:
                self._process_line(context, raw)
            context.end_turn()

        if context.diagnostics.skipped_events:
            logger.info(
                f"Parsed {len(context.turns)} turns, skipped "
                f"{context.diagnostics.skipped_events} events: {context.diagnostics.errors_by_code}"
            )
        return context.result()

    def _process_line(self, context: ParseContext, raw: str) -> None:
        """Process a single log line. Per-event errors are logged and skipped."""
        line = ProtocolLine.parse(raw)
        try:
            handler = self._metadata_handlers.get(line.command) if line.is_protocol else None
            if handler is not None:
                handler(context, line)
                return

            event = context.classifier.classify(line)
            if event is None:
                return
            derived = context.tracker.apply_event(event)
        except EventError as e:
            logger.warning(f"Skipping line in turn {context.turn}: {e} [{raw}]")
            context.diagnostics.record(context.turn, raw, e)
            return

        context.emit(event)
        for extra in derived:
            context.emit(extra)

    # Metadata lines

    @staticmethod
    def _side(line: ProtocolLine) -> Side:
        try:
            return Side.from_protocol(line.arg(0))
        except ValueError:
            raise InvalidEvent(f"Unknown side in {line.raw!r}")

    def _on_player(self, context: ParseContext, line: ProtocolLine) -> None:
        side = self._side(line)
        name = line.arg(1)
        if not name:
            return
        rating = line.arg(3)
        context.tracker.set_player(side, name, int(rating) if rating.isdigit() else None)

    def _on_team_size(self, context: ParseContext, line: ProtocolLine) -> None:
        side = self._side(line)
        size = line.arg(1)
        if not size.isdigit():
            raise InvalidEvent(f"Non-numeric team size {size!r}")
        context.tracker.set_team_size(side, int(size))

    def _on_preview(self, context: ParseContext, line: ProtocolLine) -> None:
        if not line.arg(1):
            raise InvalidEvent(f"Preview line without details: {line.raw!r}")
        context.tracker.add_preview(self._side(line), line.arg(1))

    def _on_team_sheet(self, context: ParseContext, line: ProtocolLine) -> None:
        packed = "|".join(line.args[1:])
        context.tracker.add_team_sheet(self._side(line), packed)

    def _on_gen(self, context: ParseContext, line: ProtocolLine) -> None:
        gen = line.arg(0)
        if gen.isdigit():
            context.set_generation(int(gen))

    def _on_tier(self, context: ParseContext, line: ProtocolLine) -> None:
        if line.arg(0):
            context.metadata.format = line.arg(0)

    def _on_timestamp(self, context: ParseContext, line: ProtocolLine) -> None:
        value = line.arg(0)
        if not value.isdigit():
            return
        stamp = int(value)
        if context.metadata.first_timestamp is None:
            context.metadata.first_timestamp = stamp
        context.metadata.last_timestamp = stamp

    def _on_win(self, context: ParseContext, line: ProtocolLine) -> None:
        context.metadata.winner_name = line.arg(0)

    def _on_tie(self, context: ParseContext, line: ProtocolLine) -> None:
        context.metadata.tie = True


def parse_log(raw_log: str, dex: Optional[Dex] = None) -> ParsedLog:
    """Parse a raw battle log with a fresh parser."""
    return BattleLogParser(dex).parse(raw_log)
