"""Board state tracker: the single mutator of HP and status during a parse."""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from ..errors import InvalidEvent, UnknownPokemon
from .dex import Dex, get_dex, to_id
from .models import (
    ActivePokemon, BattleEvent, BoardState, EventResult, EventType, FieldState, Move,
    Player, Pokemon, RosterEntry, Side, SideConditions, SideState, Status,
)

logger = logging.getLogger(__name__)

MAX_TEAM_SIZE = 6

TERRAINS = {"electricterrain", "grassyterrain", "mistyterrain", "psychicterrain"}

SIDE_CONDITIONS = {
    "stealthrock": "stealth_rock",
    "spikes": "spikes",
    "toxicspikes": "toxic_spikes",
    "stickyweb": "sticky_web",
    "reflect": "reflect",
    "lightscreen": "light_screen",
    "auroraveil": "aurora_veil",
    "tailwind": "tailwind",
}
LAYER_LIMITS = {"spikes": 3, "toxic_spikes": 2}


def effect_name(value: str) -> str:
    """Strip an effect prefix: "move: Stealth Rock" -> "Stealth Rock"."""
    if ": " in value:
        return value.split(": ", 1)[1]
    return value


@dataclass
class Details:
    """Parsed ``Species, L50, M, shiny`` details string."""
    species: str
    level: int = 100
    gender: str = ""
    shiny: bool = False
    tera_type: str = ""

    @classmethod
    def parse(cls, details: str) -> "Details":
        parts = [p.strip() for p in details.split(",")]
        result = cls(species=parts[0])
        for part in parts[1:]:
            if part.startswith("L") and part[1:].isdigit():
                result.level = int(part[1:])
            elif part in ("M", "F"):
                result.gender = part
            elif part == "shiny":
                result.shiny = True
            elif part.startswith("tera:"):
                result.tera_type = part[len("tera:"):]
        return result


@dataclass
class RosterMember:
    """Mutable per-member state, owned by the tracker."""
    species: str
    name: str = ""
    level: int = 100
    gender: str = ""
    shiny: bool = False
    happiness: int = 255
    item: str = ""
    ability: str = ""
    tera_type: str = ""
    terastallized: bool = False
    team_moves: List[str] = field(default_factory=list)
    revealed_moves: List[str] = field(default_factory=list)
    hp: int = 100
    max_hp: int = 100
    status: Status = Status.NONE
    fainted: bool = False
    revealed: bool = False
    is_lead: bool = False
    boosts: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        if not self.name:
            self.name = self.species

    def matches_species(self, species: str) -> bool:
        if to_id(self.species) == to_id(species):
            return True
        # Team preview hides some formes: "Urshifu-*"
        if self.species.endswith("-*"):
            return to_id(species).startswith(to_id(self.species[:-2]))
        return False


@dataclass
class SideTracker:
    side: Side
    name: str = ""
    rating: Optional[int] = None
    declared_size: Optional[int] = None
    has_preview: bool = False
    members: List[RosterMember] = field(default_factory=list)
    active: Dict[str, int] = field(default_factory=dict)  # slot letter -> member index
    losses: int = 0

    @property
    def team_size(self) -> int:
        if self.declared_size:
            return self.declared_size
        if self.has_preview and self.members:
            return len(self.members)
        return MAX_TEAM_SIZE

    @property
    def total_left(self) -> int:
        return self.team_size - self.losses

    def find(self, name: str) -> Optional[int]:
        for index, member in enumerate(self.members):
            if member.revealed and member.name == name:
                return index
        for index, member in enumerate(self.members):
            if member.name == name or member.matches_species(name):
                return index
        return None


def split_ident(ident: str) -> Tuple[Side, str, str]:
    """Split ``p1a: Name`` into (side, slot letter, name)."""
    position, _, name = ident.partition(": ")
    position = position.strip()
    try:
        side = Side.from_protocol(position)
    except ValueError:
        raise InvalidEvent(f"Malformed Pokemon identifier {ident!r}")
    slot = position[2:3] or ""
    return side, slot, name.strip()


class BoardStateTracker:
    """Tracks per-side rosters, active slots and field conditions.

    ``apply_event`` is the only state transition. It dispatches on the event
    type and returns any events derived from the transition (an implicit
    faint when HP reaches zero).
    """

    def __init__(self, dex: Optional[Dex] = None):
        self.dex = dex or get_dex()
        self.sides = {
            Side.PLAYER1: SideTracker(Side.PLAYER1),
            Side.PLAYER2: SideTracker(Side.PLAYER2),
        }
        self.field = FieldState()
        self.turn = 0
        self._handlers: Dict[EventType, Callable[[BattleEvent], List[BattleEvent]]] = {
            EventType.MOVE: self._on_move,
            EventType.SWITCH: self._on_switch,
            EventType.FAINT: self._on_faint,
            EventType.STATUS: self._on_status,
            EventType.WEATHER: self._on_weather,
            EventType.TERRAIN: self._on_terrain,
            EventType.DAMAGE: self._on_damage,
            EventType.HEAL: self._on_heal,
            EventType.ITEM: self._on_item,
            EventType.OTHER: self._on_other,
        }
        # Supplementary effects carried by "other" events, keyed by command
        self._other_handlers: Dict[str, Callable[[BattleEvent], Optional[List[BattleEvent]]]] = {
            "-sethp": self._set_hp,
            "replace": self._replace,
            "-sidestart": self._side_start,
            "-sideend": self._side_end,
            "-fieldstart": self._field_start,
            "-fieldend": self._field_end,
            "-terastallize": self._terastallize,
            "-boost": self._boost,
            "-unboost": self._boost,
            "-item": self._reveal_item,
            "-enditem": self._lose_item,
            "-ability": self._reveal_ability,
            "detailschange": self._details_change,
        }

    # Roster setup

    def set_player(self, side: Side, name: str, rating: Optional[int] = None) -> None:
        tracker = self.sides[side]
        tracker.name = name
        if rating is not None:
            tracker.rating = rating

    def set_team_size(self, side: Side, size: int) -> None:
        self.sides[side].declared_size = max(1, min(size, MAX_TEAM_SIZE))

    def add_preview(self, side: Side, details: str) -> None:
        """Register a team preview (``|poke|``) entry."""
        tracker = self.sides[side]
        parsed = Details.parse(details)
        if len(tracker.members) >= MAX_TEAM_SIZE:
            logger.warning(f"Ignoring preview entry {details!r}: {side.value} roster is full")
            return
        tracker.has_preview = True
        tracker.members.append(RosterMember(
            species=parsed.species,
            level=parsed.level,
            gender=parsed.gender,
            shiny=parsed.shiny,
            tera_type=parsed.tera_type,
        ))

    def add_team_sheet(self, side: Side, packed: str) -> None:
        """Merge a packed ``|showteam|`` team into the roster."""
        tracker = self.sides[side]
        for entry in packed.split("]"):
            fields = entry.split("|")
            if len(fields) < 5 or not fields[0]:
                continue
            nickname = fields[0]
            species = fields[1] or nickname
            index = tracker.find(species)
            if index is None:
                if len(tracker.members) >= MAX_TEAM_SIZE:
                    continue
                tracker.members.append(RosterMember(species=species))
                tracker.has_preview = True
                index = len(tracker.members) - 1
            member = tracker.members[index]
            member.item = fields[2]
            member.ability = fields[3]
            member.team_moves = [m for m in fields[4].split(",") if m]
            if len(fields) > 7 and fields[7]:
                member.gender = fields[7]
            if len(fields) > 9:
                member.shiny = fields[9] == "S"
            if len(fields) > 10 and fields[10].isdigit():
                member.level = int(fields[10])
            if len(fields) > 11:
                extras = fields[11].split(",")
                if extras[0].isdigit():
                    member.happiness = int(extras[0])
                if len(extras) > 5 and extras[5]:
                    member.tera_type = extras[5]

    # Lookups (read-only, used by the classifier)

    def resolve(self, ident: str) -> Tuple[Side, RosterMember]:
        """Find the roster member an identifier like ``p2a: Name`` refers to."""
        side, slot, name = split_ident(ident)
        tracker = self.sides[side]
        if slot and slot in tracker.active:
            member = tracker.members[tracker.active[slot]]
            if member.name == name or member.matches_species(name):
                return side, member
        index = tracker.find(name)
        if index is None:
            raise UnknownPokemon(ident, side.value)
        return side, tracker.members[index]

    def side_of(self, ident: str) -> Side:
        return self.resolve(ident)[0]

    # State transition

    def apply_event(self, event: BattleEvent) -> List[BattleEvent]:
        """Apply one classified event. Raises EventError if it cannot apply."""
        return self._handlers[event.type](event)

    def _on_switch(self, event: BattleEvent) -> List[BattleEvent]:
        side, slot, name = split_ident(event.slot or "")
        tracker = self.sides[side]
        details = Details.parse(event.species or name)

        index = tracker.find(name)
        if index is None:
            index = tracker.find(details.species)
        if index is None:
            revealed = sum(1 for m in tracker.members if m.revealed)
            if tracker.has_preview or revealed >= tracker.team_size:
                raise UnknownPokemon(event.slot or name, side.value)
            tracker.members.append(RosterMember(species=details.species))
            index = len(tracker.members) - 1

        member = tracker.members[index]
        if member.fainted:
            raise InvalidEvent(f"{member.name} switched in after fainting")

        previous = tracker.active.get(slot or "a")
        if previous is not None and previous != index:
            tracker.members[previous].boosts.clear()

        if not member.revealed:
            member.is_lead = self.turn == 0
        member.revealed = True
        member.name = name
        member.species = details.species
        member.level = details.level
        member.gender = details.gender or member.gender
        member.shiny = member.shiny or details.shiny
        if event.hp is not None:
            member.max_hp = event.max_hp or member.max_hp
            member.hp = min(event.hp, member.max_hp)
        tracker.active[slot or "a"] = index
        return []

    def _on_move(self, event: BattleEvent) -> List[BattleEvent]:
        _, member = self.resolve(event.slot or "")
        if event.action and event.action not in member.revealed_moves:
            member.revealed_moves.append(event.action)
        return []

    def _on_damage(self, event: BattleEvent) -> List[BattleEvent]:
        side, member = self.resolve(event.slot or "")
        if member.fainted:
            raise InvalidEvent(f"Damage to fainted {member.name}")
        if event.max_hp:
            member.max_hp = event.max_hp
        member.hp = max(0, min(event.hp if event.hp is not None else member.hp, member.max_hp))
        if member.hp == 0:
            return [self._faint(side, member)]
        return []

    def _on_heal(self, event: BattleEvent) -> List[BattleEvent]:
        _, member = self.resolve(event.slot or "")
        if member.fainted:
            raise InvalidEvent(f"Heal on fainted {member.name}")
        if event.max_hp:
            member.max_hp = event.max_hp
        if event.hp is not None:
            member.hp = max(member.hp, min(event.hp, member.max_hp))
        return []

    def _on_faint(self, event: BattleEvent) -> List[BattleEvent]:
        side, member = self.resolve(event.slot or "")
        if not member.fainted:
            self._faint(side, member)
        return []

    def _faint(self, side: Side, member: RosterMember) -> BattleEvent:
        member.hp = 0
        member.fainted = True
        member.status = Status.NONE
        member.boosts.clear()
        self.sides[side].losses += 1
        return BattleEvent(
            type=EventType.FAINT,
            pokemon=member.name,
            action="fainted",
            result=EventResult.FAINT,
            player_side=side,
            implicit=True,
        )

    def _on_status(self, event: BattleEvent) -> List[BattleEvent]:
        if event.action == "cureteam":
            side, _ = self.resolve(event.slot or "")
            for member in self.sides[side].members:
                member.status = Status.NONE
            return []
        _, member = self.resolve(event.slot or "")
        if member.fainted:
            raise InvalidEvent(f"Status change on fainted {member.name}")
        if event.action != "status":
            member.status = Status.NONE
            return []
        try:
            member.status = Status.from_protocol(event.value or "")
        except ValueError as e:
            raise InvalidEvent(str(e))
        return []

    def _on_weather(self, event: BattleEvent) -> List[BattleEvent]:
        weather = event.value or ""
        self.field.weather = None if weather.lower() in ("", "none") else weather
        return []

    def _on_terrain(self, event: BattleEvent) -> List[BattleEvent]:
        self.field.terrain = event.value if event.action == "start" else None
        return []

    def _on_item(self, event: BattleEvent) -> List[BattleEvent]:
        _, member = self.resolve(event.slot or "")
        member.item = ""
        return []

    def _on_other(self, event: BattleEvent) -> List[BattleEvent]:
        handler = self._other_handlers.get(event.action)
        if handler is None:
            return []
        return handler(event) or []

    def _set_hp(self, event: BattleEvent) -> List[BattleEvent]:
        side, member = self.resolve(event.slot or "")
        if member.fainted:
            raise InvalidEvent(f"HP set on fainted {member.name}")
        if event.max_hp:
            member.max_hp = event.max_hp
        member.hp = max(0, min(event.hp if event.hp is not None else member.hp, member.max_hp))
        if member.hp == 0:
            return [self._faint(side, member)]
        return []

    def _replace(self, event: BattleEvent) -> None:
        """The disguise drops: the real member takes the slot and keeps its boosts."""
        side, slot, _ = split_ident(event.slot or "")
        tracker = self.sides[side]
        previous = tracker.active.get(slot or "a")
        boosts = dict(tracker.members[previous].boosts) if previous is not None else {}
        self._on_switch(event)
        tracker.members[tracker.active[slot or "a"]].boosts = boosts

    def _side_start(self, event: BattleEvent) -> None:
        conditions = self.field.side(Side.from_protocol(event.slot or ""))
        attr = SIDE_CONDITIONS.get(to_id(event.value or ""))
        if attr is None:
            return
        if attr in LAYER_LIMITS:
            setattr(conditions, attr, min(getattr(conditions, attr) + 1, LAYER_LIMITS[attr]))
        else:
            setattr(conditions, attr, True)

    def _side_end(self, event: BattleEvent) -> None:
        conditions = self.field.side(Side.from_protocol(event.slot or ""))
        attr = SIDE_CONDITIONS.get(to_id(event.value or ""))
        if attr is None:
            return
        setattr(conditions, attr, 0 if attr in LAYER_LIMITS else False)

    def _field_start(self, event: BattleEvent) -> None:
        if event.value and event.value not in self.field.pseudo_weather:
            self.field.pseudo_weather.append(event.value)

    def _field_end(self, event: BattleEvent) -> None:
        if event.value in self.field.pseudo_weather:
            self.field.pseudo_weather.remove(event.value)

    def _terastallize(self, event: BattleEvent) -> None:
        _, member = self.resolve(event.slot or "")
        member.tera_type = event.value or member.tera_type
        member.terastallized = True

    def _boost(self, event: BattleEvent) -> None:
        _, member = self.resolve(event.slot or "")
        stat = event.value or ""
        member.boosts[stat] = max(-6, min(6, member.boosts.get(stat, 0) + event.amount))

    def _reveal_item(self, event: BattleEvent) -> None:
        _, member = self.resolve(event.slot or "")
        member.item = event.value or member.item

    def _lose_item(self, event: BattleEvent) -> None:
        _, member = self.resolve(event.slot or "")
        member.item = ""

    def _reveal_ability(self, event: BattleEvent) -> None:
        _, member = self.resolve(event.slot or "")
        member.ability = event.value or member.ability

    def _details_change(self, event: BattleEvent) -> None:
        _, member = self.resolve(event.slot or "")
        if event.species:
            member.species = Details.parse(event.species).species

    # Snapshots

    def snapshot(self) -> BoardState:
        """Deep copy of the board. Later mutation never reaches it."""
        return BoardState(
            player1=self._side_state(self.sides[Side.PLAYER1]),
            player2=self._side_state(self.sides[Side.PLAYER2]),
        )

    def field_snapshot(self) -> FieldState:
        return self.field.model_copy(deep=True)

    def _side_state(self, tracker: SideTracker) -> SideState:
        active = []
        for slot in sorted(tracker.active):
            member = tracker.members[tracker.active[slot]]
            if member.fainted:
                continue
            active.append(ActivePokemon(
                species=member.species,
                nickname=member.name,
                position=ord(slot) - ord("a"),
                hp=member.hp,
                max_hp=member.max_hp,
                status=member.status,
                is_lead=member.is_lead,
                tera_type=member.tera_type if member.terastallized else "",
                boosts=dict(member.boosts),
            ))
        return SideState(
            active=active,
            alive=[m.name for m in tracker.members if not m.fainted],
            team=[
                RosterEntry(
                    name=m.name,
                    species=m.species,
                    hp=m.hp,
                    max_hp=m.max_hp,
                    status=m.status,
                    fainted=m.fainted,
                    revealed=m.revealed,
                )
                for m in tracker.members
            ],
            losses=tracker.losses,
            total_left=tracker.total_left,
            team_size=tracker.team_size,
        )

    def player(self, side: Side) -> Player:
        """Final view of one player, built from the tracked roster."""
        tracker = self.sides[side]
        active_index = tracker.active.get("a")
        if active_index is not None and tracker.members[active_index].fainted:
            active_index = None
        return Player(
            name=tracker.name,
            rating=tracker.rating,
            team=[self._pokemon(m) for m in tracker.members],
            team_size=tracker.team_size,
            losses=tracker.losses,
            total_left=tracker.total_left,
            active_index=active_index,
        )

    def _pokemon(self, member: RosterMember) -> Pokemon:
        moves = member.team_moves or member.revealed_moves
        return Pokemon(
            id=to_id(member.species),
            name=member.species,
            nickname=member.name,
            level=member.level,
            gender=member.gender,
            ability=member.ability,
            item=member.item,
            tera_type=member.tera_type if member.terastallized else "",
            moves=[Move(id=to_id(m), name=m, type=self.dex.move_type(m)) for m in moves],
            current_hp=member.hp,
            max_hp=member.max_hp,
            status=member.status,
            happiness=member.happiness,
            shiny=member.shiny,
            fainted=member.fainted,
            types=self.dex.species_types(member.species),
        )
