"""Groups the events of one turn into a Turn record."""
from typing import Dict, List, Optional, Sequence

from .dex import Dex, to_id
from .models import (
    Action, ActionType, BattleEvent, BoardState, EventResult, EventType, Move,
    MoveImpact, Side, StatChange, Turn,
)

ACTION_EVENTS = {EventType.MOVE, EventType.SWITCH, EventType.ITEM}

RESULT_MARKERS = {
    "-crit": EventResult.CRITICAL_HIT,
    "-miss": EventResult.MISS,
    "-supereffective": EventResult.SUPER_EFFECTIVE,
    "-resisted": EventResult.NOT_VERY_EFFECTIVE,
    "-immune": EventResult.IMMUNE,
    "-fail": EventResult.FAIL,
}

EFFECTIVENESS = {
    EventResult.SUPER_EFFECTIVE: "super-effective",
    EventResult.NOT_VERY_EFFECTIVE: "not-very-effective",
    EventResult.IMMUNE: "immune",
}

PROTECT_MOVES = {
    "protect", "detect", "banefulbunker", "kingsshield", "spikyshield",
    "silktrap", "burningbulwark", "obstruct", "maxguard",
}

SPEED_CONTROL_MOVES = {
    "fakeout": "flinch",
    "tailwind": "tailwind",
    "trickroom": "trick-room",
    "icywind": "speed-drop",
    "electroweb": "speed-drop",
    "bulldoze": "speed-drop",
    "thunderwave": "paralysis",
}

SPEED_CONTROL_DETAILS = {
    "flinch": "flinch",
    "tailwind": "tailwind blew",
    "trick-room": "dimensions twisted",
    "speed-drop": "speed lowered",
    "paralysis": "paralysis",
}

# Heals caused by the move itself rather than by held items or abilities
MOVE_HEAL_SOURCES = {None, "drain"}


class TurnBuilder:
    """Accumulates events for a single turn.

    Each move, switch or item event yields exactly one action, in log order.
    Result markers annotate the latest move of the turn; without one they are
    kept as ordinary events. Damage is credited to the side opposing the
    damaged Pokemon; healing to the healed side.
    """

    def __init__(self, turn_number: int, dex: Dex):
        self.turn_number = turn_number
        self.dex = dex
        self.events: List[BattleEvent] = []
        self.damage_dealt: Dict[str, int] = {side.value: 0 for side in Side}
        self.healing_done: Dict[str, int] = {side.value: 0 for side in Side}
        self._last_move: Optional[int] = None  # index into events

    @property
    def last_move(self) -> Optional[BattleEvent]:
        return self.events[self._last_move] if self._last_move is not None else None

    def add(self, event: BattleEvent) -> None:
        if event.type is EventType.OTHER and event.action in RESULT_MARKERS and self._last_move is not None:
            self._annotate_last_move(RESULT_MARKERS[event.action])
            return

        if event.type is EventType.MOVE:
            self._last_move = len(self.events)
        self.events.append(event)
        if event.player_side is None:
            return

        if event.type is EventType.DAMAGE:
            self.damage_dealt[event.player_side.opponent.value] += event.amount
            move = self.last_move
            # Damage with a [from] source is residual, not the move's doing
            if move is not None and event.details is None and move.target_side is event.player_side:
                self._annotate_last_move(EventResult.SUCCESS)
                if event.hp == 0:
                    self._annotate_last_move(EventResult.FAINT)
        elif event.type is EventType.HEAL:
            self.healing_done[event.player_side.value] += event.amount

    def _annotate_last_move(self, result: EventResult) -> None:
        self.events[self._last_move] = self.events[self._last_move].annotated(result)

    def build(self, state_after: BoardState) -> Turn:
        """Finish the turn. Move results are read now, after all markers applied."""
        actions = []
        for index, event in enumerate(self.events):
            action = self.to_action(event, order=len(actions))
            if action is None:
                continue
            if action.action_type is ActionType.MOVE:
                impact = move_impact(event, self._follow_up(index))
                action = action.model_copy(update={"impact": impact, "details": describe_impact(impact)})
            actions.append(action)
        return Turn(
            turn_number=self.turn_number,
            actions=actions,
            events=self.events,
            damage_dealt=self.damage_dealt,
            healing_done=self.healing_done,
            state_after=state_after,
        )

    def _follow_up(self, index: int) -> List[BattleEvent]:
        """Events after the move at ``index`` up to the next move or switch."""
        following = []
        for event in self.events[index + 1:]:
            if event.type in (EventType.MOVE, EventType.SWITCH):
                break
            following.append(event)
        return following

    def to_action(self, event: BattleEvent, order: int = 0) -> Optional[Action]:
        if event.type not in ACTION_EVENTS or event.player_side is None:
            return None
        if event.type is EventType.MOVE:
            return Action(
                player=event.player_side,
                action_type=ActionType.MOVE,
                pokemon=event.pokemon,
                move=Move(id=to_id(event.action), name=event.action, type=self.dex.move_type(event.action)),
                target=event.target,
                result=event.result,
                order_in_turn=order,
            )
        if event.type is EventType.SWITCH:
            return Action(
                player=event.player_side,
                action_type=ActionType.SWITCH,
                pokemon=event.pokemon,
                switch_to=event.pokemon,
                order_in_turn=order,
            )
        return Action(
            player=event.player_side,
            action_type=ActionType.ITEM,
            pokemon=event.pokemon,
            item=event.value or event.details,
            order_in_turn=order,
        )


def move_impact(move: BattleEvent, following: Sequence[BattleEvent]) -> MoveImpact:
    """What ``move`` did, judged from the events between it and the next action.

    Damage counts only when dealt to the other side without a [from] source,
    so a spread move sums over every foe it hit and residual damage is left
    out. Faints count for Pokemon the move damaged.
    """
    side = move.player_side
    foe = side.opponent if side is not None else None
    move_id = to_id(move.action)

    damage = 0
    healing = 0
    hit = set()
    fainted = []
    status = None
    stat_changes = []
    weather = None
    terrain = None
    speed_control = SPEED_CONTROL_MOVES.get(move_id)

    for event in following:
        if event.type is EventType.DAMAGE and event.details is None and event.player_side is foe:
            damage += event.amount
            hit.add((event.player_side, event.pokemon))
        elif event.type is EventType.HEAL and event.player_side is side and event.details in MOVE_HEAL_SOURCES:
            healing += event.amount
        elif event.type is EventType.FAINT and (event.player_side, event.pokemon) in hit:
            fainted.append(event.pokemon)
        elif event.type is EventType.STATUS and event.action == "status" and event.player_side is foe:
            status = event.details
        elif event.type is EventType.WEATHER and event.action == "start":
            weather = event.value
        elif event.type is EventType.TERRAIN and event.action == "start":
            terrain = event.value
        elif event.type is EventType.OTHER and event.action in ("-boost", "-unboost"):
            stat_changes.append(StatChange(pokemon=event.pokemon, stat=event.value or "", stages=event.amount))
        elif event.type is EventType.OTHER and to_id(event.value or "") == "trickroom" and event.action == "-fieldstart":
            speed_control = "trick-room"
        elif event.type is EventType.OTHER and to_id(event.value or "") == "tailwind" and event.action == "-sidestart":
            speed_control = "tailwind"

    effectiveness = next((EFFECTIVENESS[m] for m in move.markers if m in EFFECTIVENESS), None)
    return MoveImpact(
        damage_dealt=damage,
        healing_done=healing,
        fainted=fainted,
        status_inflicted=status,
        stat_changes=stat_changes,
        weather_set=weather,
        terrain_set=terrain,
        protect=move_id in PROTECT_MOVES,
        fake_out=move_id == "fakeout",
        speed_control=speed_control,
        critical=EventResult.CRITICAL_HIT in move.markers,
        missed=EventResult.MISS in move.markers,
        effectiveness=effectiveness,
    )


def describe_impact(impact: MoveImpact) -> str:
    """Short human-readable summary, e.g. "critical hit, super effective, 60 damage"."""
    parts = []
    if impact.missed:
        parts.append("missed")
    if impact.critical:
        parts.append("critical hit")
    if impact.effectiveness:
        parts.append(impact.effectiveness.replace("-", " "))
    if impact.damage_dealt:
        parts.append(f"{impact.damage_dealt} damage")
    if impact.healing_done:
        parts.append(f"healed {impact.healing_done}")
    for name in impact.fainted:
        parts.append(f"knocked out {name}")
    if impact.status_inflicted:
        parts.append(f"inflicted {impact.status_inflicted}")
    for change in impact.stat_changes:
        parts.append(f"{change.pokemon} {change.stat} {change.stages:+d}")
    if impact.weather_set:
        parts.append(f"set {impact.weather_set}")
    if impact.terrain_set:
        parts.append(f"set {impact.terrain_set}")
    if impact.protect:
        parts.append("protected")
    if impact.speed_control:
        parts.append(SPEED_CONTROL_DETAILS[impact.speed_control])
    return ", ".join(parts)
