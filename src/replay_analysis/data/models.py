"""Data models for analyzed battle data."""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for models that travel over the API (camelCase on the wire)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_api(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class FrozenModel(ApiModel):
    """API model that cannot change after construction. Use ``model_copy(update=...)``."""
    model_config = ConfigDict(frozen=True)


class Side(str, Enum):
    PLAYER1 = "player1"
    PLAYER2 = "player2"

    @classmethod
    def from_protocol(cls, token: str) -> "Side":
        """Map a protocol side token ("p1", "p2a: Name", ...) to a Side."""
        if token.startswith("p1"):
            return cls.PLAYER1
        if token.startswith("p2"):
            return cls.PLAYER2
        raise ValueError(f"Not a side token: {token!r}")

    @property
    def opponent(self) -> "Side":
        return Side.PLAYER2 if self is Side.PLAYER1 else Side.PLAYER1


class ActionType(str, Enum):
    MOVE = "move"
    SWITCH = "switch"
    ITEM = "item"


class EventType(str, Enum):
    MOVE = "move"
    SWITCH = "switch"
    FAINT = "faint"
    STATUS = "status"
    WEATHER = "weather"
    TERRAIN = "terrain"
    DAMAGE = "damage"
    HEAL = "heal"
    ITEM = "item"
    OTHER = "other"


class EventResult(str, Enum):
    FAINT = "faint"
    CRITICAL_HIT = "critical-hit"
    MISS = "miss"
    SUPER_EFFECTIVE = "super-effective"
    NOT_VERY_EFFECTIVE = "not-very-effective"
    IMMUNE = "immune"
    FAIL = "fail"
    SUCCESS = "success"


# Highest priority first
RESULT_PRIORITY = [
    EventResult.FAINT,
    EventResult.CRITICAL_HIT,
    EventResult.MISS,
    EventResult.SUPER_EFFECTIVE,
    EventResult.NOT_VERY_EFFECTIVE,
    EventResult.IMMUNE,
    EventResult.FAIL,
    EventResult.SUCCESS,
]


class Status(str, Enum):
    NONE = ""
    BURN = "burn"
    FREEZE = "freeze"
    PARALYSIS = "paralysis"
    POISON = "poison"
    SLEEP = "sleep"

    @classmethod
    def from_protocol(cls, code: str) -> "Status":
        """Map a protocol status code (brn, par, tox, ...) to a Status."""
        try:
            return _STATUS_CODES[code.strip().lower()]
        except KeyError:
            raise ValueError(f"Unknown status code: {code!r}")


_STATUS_CODES = {
    "": Status.NONE,
    "brn": Status.BURN,
    "frz": Status.FREEZE,
    "par": Status.PARALYSIS,
    "psn": Status.POISON,
    "tox": Status.POISON,
    "slp": Status.SLEEP,
}


class KeyMomentType(str, Enum):
    SWITCH = "switch"
    KO = "ko"
    STATUS = "status"
    WEATHER = "weather"
    TURNING_POINT = "turning_point"
    OTHER = "other"


Winner = Literal["player1", "player2", "draw"]
Momentum = Literal["player1", "player2", "neutral"]


class Move(FrozenModel):
    id: str
    name: str
    type: str = ""


class Pokemon(FrozenModel):
    """A roster member and its state at the end of the battle."""
    id: str  # normalized species id, e.g. "ursalunabloodmoon"
    name: str  # species display name
    nickname: str = ""
    level: int = 100
    gender: str = ""
    ability: str = ""
    item: str = ""
    tera_type: str = ""
    moves: Tuple[Move, ...] = ()
    current_hp: int = 100
    max_hp: int = 100
    status: Status = Status.NONE
    happiness: int = 255
    shiny: bool = False
    fainted: bool = False
    types: Tuple[str, ...] = ()


class TeamClassification(FrozenModel):
    """Archetype of a team, derived from its roster."""
    archetype: str = "Unclassified"
    description: str = ""
    tags: Tuple[str, ...] = ()
    weather_type: str = ""
    trick_room_users: Tuple[str, ...] = ()
    tailwind_users: Tuple[str, ...] = ()
    weather_setters: Tuple[str, ...] = ()
    psy_terrain_users: Tuple[str, ...] = ()
    choice_users: Tuple[str, ...] = ()
    has_balance_bros: bool = False


class Player(FrozenModel):
    name: str
    rating: Optional[int] = None
    team: Tuple[Pokemon, ...] = ()
    team_size: int = 0  # members brought to the battle
    losses: int = 0
    total_left: int = 0
    active_index: Optional[int] = None
    archetype: Optional[TeamClassification] = None


class ActivePokemon(FrozenModel):
    species: str
    nickname: str = ""
    position: int = 0  # slot index, 0 for "a"
    hp: int = 100
    max_hp: int = 100
    status: Status = Status.NONE
    is_lead: bool = False
    tera_type: str = ""
    boosts: Dict[str, int] = Field(default_factory=dict)


class RosterEntry(FrozenModel):
    name: str
    species: str
    hp: int = 100
    max_hp: int = 100
    status: Status = Status.NONE
    fainted: bool = False
    revealed: bool = False

    @property
    def hp_fraction(self) -> float:
        if self.fainted or self.max_hp <= 0:
            return 0.0
        return self.hp / self.max_hp


class SideState(FrozenModel):
    """One side of the board after a turn."""
    active: Tuple[ActivePokemon, ...] = ()
    alive: Tuple[str, ...] = ()
    team: Tuple[RosterEntry, ...] = ()
    losses: int = 0
    total_left: int = 0
    team_size: int = 0


class BoardState(FrozenModel):
    """Complete board state at a point in time."""
    player1: SideState = Field(default_factory=SideState)
    player2: SideState = Field(default_factory=SideState)

    def side(self, side: Side) -> SideState:
        return self.player1 if side is Side.PLAYER1 else self.player2


class SideConditions(ApiModel):
    """Entry hazards and screens on one side."""
    stealth_rock: bool = False
    spikes: int = 0  # 0-3 layers
    toxic_spikes: int = 0  # 0-2 layers
    sticky_web: bool = False
    reflect: bool = False
    light_screen: bool = False
    aurora_veil: bool = False
    tailwind: bool = False


class FieldState(ApiModel):
    """State of battlefield conditions. Owned and mutated by the tracker."""
    weather: Optional[str] = None
    terrain: Optional[str] = None
    pseudo_weather: List[str] = Field(default_factory=list)
    player1: SideConditions = Field(default_factory=SideConditions)
    player2: SideConditions = Field(default_factory=SideConditions)

    def side(self, side: Side) -> SideConditions:
        return self.player1 if side is Side.PLAYER1 else self.player2


class BattleEvent(FrozenModel):
    """A single classified log line."""
    type: EventType
    pokemon: str = ""
    action: str = ""
    target: Optional[str] = None
    result: Optional[EventResult] = None
    details: Optional[str] = None
    player_side: Optional[Side] = None
    amount: int = 0  # HP delta for damage/heal
    implicit: bool = False
    markers: Tuple[EventResult, ...] = ()  # every result seen, in order

    # Tracker inputs, not part of the wire format
    slot: Optional[str] = Field(default=None, exclude=True)
    target_side: Optional[Side] = Field(default=None, exclude=True)
    species: Optional[str] = Field(default=None, exclude=True)
    value: Optional[str] = Field(default=None, exclude=True)
    hp: Optional[int] = Field(default=None, exclude=True)
    max_hp: Optional[int] = Field(default=None, exclude=True)

    def annotated(self, result: EventResult) -> "BattleEvent":
        """Copy with ``result`` recorded; ``result`` keeps the highest-priority one."""
        markers = self.markers if result in self.markers else self.markers + (result,)
        best = self.result
        if best is None or RESULT_PRIORITY.index(result) < RESULT_PRIORITY.index(best):
            best = result
        return self.model_copy(update={"markers": markers, "result": best})


class StatChange(FrozenModel):
    pokemon: str
    stat: str
    stages: int


class MoveImpact(FrozenModel):
    """What one move did, read from the events that followed it."""
    damage_dealt: int = 0
    healing_done: int = 0
    fainted: Tuple[str, ...] = ()
    status_inflicted: Optional[str] = None
    stat_changes: Tuple[StatChange, ...] = ()
    weather_set: Optional[str] = None
    terrain_set: Optional[str] = None
    protect: bool = False
    fake_out: bool = False
    speed_control: Optional[str] = None  # tailwind, trick-room, speed-drop, paralysis, flinch
    critical: bool = False
    missed: bool = False
    effectiveness: Optional[str] = None  # super-effective, not-very-effective, immune


class Action(FrozenModel):
    """An action taken by a player."""
    player: Side
    action_type: ActionType
    pokemon: str = ""
    move: Optional[Move] = None
    target: Optional[str] = None
    switch_to: Optional[str] = None
    item: Optional[str] = None
    result: Optional[EventResult] = None
    order_in_turn: int = 0
    impact: Optional[MoveImpact] = None
    details: str = ""


class PositionScore(FrozenModel):
    player1_score: float
    player2_score: float
    momentum_player: Momentum = "neutral"


class Turn(FrozenModel):
    """Record of a single turn."""
    turn_number: int
    actions: Tuple[Action, ...] = ()
    events: Tuple[BattleEvent, ...] = ()
    damage_dealt: Dict[str, int] = Field(default_factory=dict)
    healing_done: Dict[str, int] = Field(default_factory=dict)
    state_after: BoardState
    position_score: Optional[PositionScore] = None


class TurningPoint(FrozenModel):
    turn_number: int
    score1_before: float
    score1_after: float
    score2_before: float
    score2_after: float
    momentum_shift: float  # positive favors player 1
    significance: int
    description: str = ""


class KeyMoment(FrozenModel):
    turn_number: int
    description: str
    type: KeyMomentType
    significance: int


class EffectivenessStats(FrozenModel):
    super_effective: int = 0
    not_very_effective: int = 0
    neutral: int = 0


class PlayerStats(FrozenModel):
    move_count: int = 0
    switch_count: int = 0
    damage_dealt: int = 0
    damage_taken: int = 0
    healing_done: int = 0
    healing_received: int = 0
    moves_by_type: Dict[str, int] = Field(default_factory=dict)
    effectiveness: EffectivenessStats = Field(default_factory=EffectivenessStats)


class BattleStats(FrozenModel):
    total_turns: int = 0
    move_frequency: Dict[str, int] = Field(default_factory=dict)
    type_coverage: Dict[str, int] = Field(default_factory=dict)
    switches: int = 0
    critical_hits: int = 0
    super_effective: int = 0
    not_very_effective: int = 0
    avg_damage_per_turn: float = 0.0
    avg_heal_per_turn: float = 0.0
    player1_stats: PlayerStats = Field(default_factory=PlayerStats)
    player2_stats: PlayerStats = Field(default_factory=PlayerStats)
    turning_points: Tuple[TurningPoint, ...] = ()


class Battle(FrozenModel):
    """A fully analyzed battle. Immutable once assembled, down to every turn."""
    id: str
    format: str = "unknown"
    timestamp: Optional[datetime] = None
    duration: int = 0  # seconds
    player1: Player
    player2: Player
    winner: Winner
    turns: Tuple[Turn, ...]
    stats: BattleStats = Field(default_factory=BattleStats)
    key_moments: Tuple[KeyMoment, ...] = ()

    def player(self, side: Side) -> Player:
        return self.player1 if side is Side.PLAYER1 else self.player2

    def ranked_key_moments(self, limit: Optional[int] = None) -> List[KeyMoment]:
        """Key moments by significance (highest first), ties by turn."""
        ranked = sorted(self.key_moments, key=lambda m: (-m.significance, m.turn_number))
        return ranked[:limit] if limit is not None else ranked
