"""Classifier mapping protocol lines to typed battle events."""
import re
import logging
from typing import Callable, Dict, Optional, Tuple

from ..errors import EventError, InvalidEvent
from .dex import to_id
from .models import BattleEvent, EventResult, EventType, Side, Status
from .tokenizer import ProtocolLine
from .tracker import TERRAINS, BoardStateTracker, RosterMember, effect_name, split_ident

logger = logging.getLogger(__name__)

HP_PATTERN = re.compile(r"^(\d+)(?:/(\d+))?(?:\s+(\w+))?$")
IDENT_PATTERN = re.compile(r"^p[12][a-d]?: ")

# Lines with no battle meaning (chat, timers, bookkeeping, metadata)
IGNORED_COMMANDS = {
    "", "upkeep", "t:", "j", "J", "l", "L", "n", "N", "c", "c:", "chat",
    "raw", "html", "uhtml", "uhtmlchange", "inactive", "inactiveoff",
    "timer", "debug", "seed", "done", "title", "badge", "gametype", "gen",
    "tier", "rated", "rule", "player", "teamsize", "poke", "showteam",
    "clearpoke", "teampreview", "start", "win", "tie", "bigerror", "error",
}

SWITCH_ACTIONS = {"switch": "switched in", "drag": "dragged in"}
STATUS_ACTIONS = {"-status": "status", "-curestatus": "curestatus", "-cureteam": "cureteam"}


def parse_hp(text: str) -> Tuple[int, Optional[int]]:
    """Parse an HP field: "65/100", "0 fnt", "88/100 tox"."""
    match = HP_PATTERN.match(text.strip())
    if not match:
        raise InvalidEvent(f"Unparseable HP value {text!r}")
    hp = int(match.group(1))
    max_hp = int(match.group(2)) if match.group(2) else None
    if max_hp is not None and (max_hp <= 0 or hp > max_hp):
        raise InvalidEvent(f"Inconsistent HP value {text!r}")
    return hp, max_hp


def _scaled_hp(member: RosterMember, max_hp: Optional[int]) -> int:
    """Member HP expressed on the scale of ``max_hp``."""
    if not max_hp or max_hp == member.max_hp or member.max_hp <= 0:
        return member.hp
    return round(member.hp * max_hp / member.max_hp)


def _from_tag(line: ProtocolLine) -> Optional[str]:
    for tag in line.tags:
        if tag.startswith("[from]"):
            return tag[len("[from]"):].strip()
    return None


class EventClassifier:
    """Classifies log lines of one battle, in file order.

    Side attribution and HP deltas consult the tracker's current state, so
    every line must be classified and applied before the next one. Result
    markers (``-crit``, ``-supereffective``, ...) come out as plain "other"
    events; the turn builder folds them into the move they follow.
    """

    def __init__(self, tracker: BoardStateTracker):
        self.tracker = tracker
        self._handlers: Dict[str, Callable[[ProtocolLine], Optional[BattleEvent]]] = {
            "move": self._move,
            "switch": self._switch,
            "drag": self._switch,
            "replace": self._replace,
            "faint": self._faint,
            "-damage": self._damage,
            "-heal": self._heal,
            "-sethp": self._set_hp,
            "-status": self._status,
            "-curestatus": self._status,
            "-cureteam": self._status,
            "-weather": self._weather,
            "-fieldstart": self._field,
            "-fieldend": self._field,
            "-sidestart": self._side_condition,
            "-sideend": self._side_condition,
            "-enditem": self._end_item,
            "-item": self._pokemon_effect,
            "-ability": self._pokemon_effect,
            "-terastallize": self._pokemon_effect,
            "-boost": self._boost,
            "-unboost": self._boost,
            "detailschange": self._details_change,
        }

    def classify(self, line: ProtocolLine) -> Optional[BattleEvent]:
        """Classify one line. Returns None for lines with no battle meaning.

        Raises:
            UnknownPokemon: the acting Pokemon is not on its side's roster
            InvalidEvent: a known command with unparseable arguments
        """
        if not line.is_protocol or line.command in IGNORED_COMMANDS:
            return None

        handler = self._handlers.get(line.command)
        if handler is None:
            return self._other(line)
        return handler(line)

    def _move(self, line: ProtocolLine) -> BattleEvent:
        ident, move = line.arg(0), line.arg(1)
        if not move:
            raise InvalidEvent(f"Move line without a move: {line.raw!r}")
        side, member = self.tracker.resolve(ident)

        target_ident = line.arg(2)
        target, target_side = None, None
        if target_ident and not target_ident.startswith("["):
            try:
                target_side, target_member = self.tracker.resolve(target_ident)
                target = target_member.name
            except EventError:
                target_side, _, target = split_ident(target_ident)

        event = BattleEvent(
            type=EventType.MOVE,
            pokemon=member.name,
            action=move,
            target=target,
            player_side=side,
            slot=ident,
            target_side=target_side,
        )
        if "[miss]" in line.tags:
            event = event.annotated(EventResult.MISS)
        if "[notarget]" in line.tags:
            event = event.annotated(EventResult.FAIL)
        return event

    def _switch(self, line: ProtocolLine) -> BattleEvent:
        ident, details = line.arg(0), line.arg(1)
        side, _, name = split_ident(ident)
        if not name or not details:
            raise InvalidEvent(f"Incomplete switch line: {line.raw!r}")
        hp, max_hp = parse_hp(line.arg(2)) if line.arg(2) else (None, None)
        return BattleEvent(
            type=EventType.SWITCH,
            pokemon=name,
            action=SWITCH_ACTIONS.get(line.command, line.command),
            details=details,
            player_side=side,
            slot=ident,
            species=details,
            hp=hp,
            max_hp=max_hp,
        )

    def _replace(self, line: ProtocolLine) -> BattleEvent:
        """Illusion ending. Nobody chose it, so it is not a switch."""
        return self._switch(line).model_copy(update={"type": EventType.OTHER})

    def _faint(self, line: ProtocolLine) -> Optional[BattleEvent]:
        side, member = self.tracker.resolve(line.arg(0))
        if member.fainted:
            # Already recorded when its HP reached zero
            return None
        return BattleEvent(
            type=EventType.FAINT,
            pokemon=member.name,
            action="fainted",
            result=EventResult.FAINT,
            player_side=side,
            slot=line.arg(0),
        )

    def _damage(self, line: ProtocolLine) -> BattleEvent:
        ident = line.arg(0)
        side, member = self.tracker.resolve(ident)
        hp, max_hp = parse_hp(line.arg(1))
        amount = max(0, _scaled_hp(member, max_hp) - hp)
        return BattleEvent(
            type=EventType.DAMAGE,
            pokemon=member.name,
            action="took damage",
            details=_from_tag(line),
            player_side=side,
            amount=amount,
            slot=ident,
            hp=hp,
            max_hp=max_hp,
        )

    def _heal(self, line: ProtocolLine) -> BattleEvent:
        ident = line.arg(0)
        side, member = self.tracker.resolve(ident)
        hp, max_hp = parse_hp(line.arg(1))
        ceiling = max_hp or member.max_hp
        amount = max(0, min(hp, ceiling) - _scaled_hp(member, max_hp))
        return BattleEvent(
            type=EventType.HEAL,
            pokemon=member.name,
            action="healed",
            details=_from_tag(line),
            player_side=side,
            amount=amount,
            slot=ident,
            hp=hp,
            max_hp=max_hp,
        )

    def _set_hp(self, line: ProtocolLine) -> BattleEvent:
        """Absolute HP change (Pain Split). ``amount`` is the signed delta."""
        ident = line.arg(0)
        side, member = self.tracker.resolve(ident)
        hp, max_hp = parse_hp(line.arg(1))
        return BattleEvent(
            type=EventType.OTHER,
            pokemon=member.name,
            action=line.command,
            details=_from_tag(line),
            player_side=side,
            amount=hp - _scaled_hp(member, max_hp),
            slot=ident,
            hp=hp,
            max_hp=max_hp,
        )

    def _status(self, line: ProtocolLine) -> BattleEvent:
        ident = line.arg(0)
        side, member = self.tracker.resolve(ident)
        action = STATUS_ACTIONS[line.command]
        code = line.arg(1)
        details = None
        if action == "status":
            try:
                details = Status.from_protocol(code).value
            except ValueError as e:
                raise InvalidEvent(str(e))
        return BattleEvent(
            type=EventType.STATUS,
            pokemon=member.name,
            action=action,
            details=details,
            player_side=side,
            slot=ident,
            value=code,
        )

    def _weather(self, line: ProtocolLine) -> BattleEvent:
        weather = line.arg(0)
        if not weather:
            raise InvalidEvent(f"Weather line without weather: {line.raw!r}")
        if "[upkeep]" in line.tags:
            action = "continues"
        elif weather.lower() == "none":
            action = "end"
        else:
            action = "start"
        return BattleEvent(
            type=EventType.WEATHER,
            action=action,
            details=_from_tag(line),
            player_side=self._of_side(line),
            value=weather,
        )

    def _field(self, line: ProtocolLine) -> BattleEvent:
        name = effect_name(line.arg(0))
        if not name:
            raise InvalidEvent(f"Field line without effect: {line.raw!r}")
        if to_id(name) in TERRAINS:
            return BattleEvent(
                type=EventType.TERRAIN,
                action="start" if line.command == "-fieldstart" else "end",
                details=name,
                player_side=self._of_side(line),
                value=name,
            )
        return BattleEvent(
            type=EventType.OTHER,
            action=line.command,
            details=name,
            player_side=self._of_side(line),
            value=name,
        )

    def _side_condition(self, line: ProtocolLine) -> BattleEvent:
        token = line.arg(0)
        try:
            side = Side.from_protocol(token)
        except ValueError:
            raise InvalidEvent(f"Malformed side in {line.raw!r}")
        condition = effect_name(line.arg(1))
        return BattleEvent(
            type=EventType.OTHER,
            action=line.command,
            details=condition,
            player_side=side,
            slot=token,
            value=condition,
        )

    def _end_item(self, line: ProtocolLine) -> BattleEvent:
        ident, item = line.arg(0), line.arg(1)
        side, member = self.tracker.resolve(ident)
        source = _from_tag(line)
        consumed = "[eat]" in line.tags or source is None
        return BattleEvent(
            type=EventType.ITEM if consumed else EventType.OTHER,
            pokemon=member.name,
            action="used item" if consumed else line.command,
            details=item,
            player_side=side,
            slot=ident,
            value=item,
        )

    def _pokemon_effect(self, line: ProtocolLine) -> BattleEvent:
        ident, value = line.arg(0), line.arg(1)
        side, member = self.tracker.resolve(ident)
        return BattleEvent(
            type=EventType.OTHER,
            pokemon=member.name,
            action=line.command,
            details=value,
            player_side=side,
            slot=ident,
            value=value,
        )

    def _boost(self, line: ProtocolLine) -> BattleEvent:
        ident, stat, stages = line.arg(0), line.arg(1), line.arg(2)
        side, member = self.tracker.resolve(ident)
        try:
            amount = int(stages)
        except ValueError:
            raise InvalidEvent(f"Unparseable boost amount {stages!r}")
        if line.command == "-unboost":
            amount = -amount
        return BattleEvent(
            type=EventType.OTHER,
            pokemon=member.name,
            action=line.command,
            details=f"{stat} {amount:+d}",
            player_side=side,
            amount=amount,
            slot=ident,
            value=stat,
        )

    def _details_change(self, line: ProtocolLine) -> BattleEvent:
        ident, details = line.arg(0), line.arg(1)
        side, member = self.tracker.resolve(ident)
        return BattleEvent(
            type=EventType.OTHER,
            pokemon=member.name,
            action=line.command,
            details=details,
            player_side=side,
            slot=ident,
            species=details,
        )

    def _other(self, line: ProtocolLine) -> BattleEvent:
        """Unrecognized line: kept verbatim, best-effort side attribution."""
        first = line.arg(0)
        side, pokemon = None, ""
        if IDENT_PATTERN.match(first):
            side, _, pokemon = split_ident(first)
        return BattleEvent(
            type=EventType.OTHER,
            pokemon=pokemon,
            action=line.command,
            details=line.raw,
            player_side=side,
        )

    @staticmethod
    def _of_side(line: ProtocolLine) -> Optional[Side]:
        """Side named by an ``[of] p1a: Name`` tag, if any."""
        for tag in line.tags:
            if tag.startswith("[of]"):
                try:
                    return Side.from_protocol(tag[len("[of]"):].strip())
                except ValueError:
                    return None
        return None
