"""Statistics aggregated over the turns of one battle."""
from dataclasses import asdict, dataclass, field
from typing import Dict, Sequence

from .models import (
    ActionType, BattleStats, EffectivenessStats, EventResult, EventType, PlayerStats,
    Side, Turn, TurningPoint,
)

EFFECTIVENESS_MARKERS = {
    EventResult.SUPER_EFFECTIVE,
    EventResult.NOT_VERY_EFFECTIVE,
    EventResult.IMMUNE,
}


def _increment(counts: Dict[str, int], key: str) -> None:
    counts[key] = counts.get(key, 0) + 1


@dataclass
class PlayerTally:
    """Running per-player counters."""
    move_count: int = 0
    switch_count: int = 0
    damage_dealt: int = 0
    damage_taken: int = 0
    healing_done: int = 0
    healing_received: int = 0
    moves_by_type: Dict[str, int] = field(default_factory=dict)
    super_effective: int = 0
    not_very_effective: int = 0
    neutral: int = 0

    def to_stats(self) -> PlayerStats:
        counts = asdict(self)
        effectiveness = EffectivenessStats(
            super_effective=counts.pop("super_effective"),
            not_very_effective=counts.pop("not_very_effective"),
            neutral=counts.pop("neutral"),
        )
        return PlayerStats(effectiveness=effectiveness, **counts)


class StatisticsCollector:
    """Collect battle statistics turn by turn."""

    def __init__(self):
        self.total_turns = 0
        self.move_frequency: Dict[str, int] = {}
        self.type_coverage: Dict[str, int] = {}
        self.switches = 0
        self.critical_hits = 0
        self.super_effective = 0
        self.not_very_effective = 0
        self.players = {side: PlayerTally() for side in Side}
        self._total_damage = 0
        self._total_healing = 0

    def process_turn(self, turn: Turn) -> None:
        self.total_turns += 1

        for action in turn.actions:
            player = self.players[action.player]
            if action.action_type is ActionType.MOVE and action.move is not None:
                player.move_count += 1
                _increment(self.move_frequency, action.move.id)
                if action.move.type:
                    _increment(self.type_coverage, action.move.type)
                    _increment(player.moves_by_type, action.move.type)
            elif action.action_type is ActionType.SWITCH:
                player.switch_count += 1
                self.switches += 1

        for event in turn.events:
            if event.type is EventType.MOVE and event.player_side is not None:
                self._process_move_event(event.player_side, event.markers)

        for side in Side:
            dealt = turn.damage_dealt.get(side.value, 0)
            healed = turn.healing_done.get(side.value, 0)
            self.players[side].damage_dealt += dealt
            self.players[side.opponent].damage_taken += dealt
            self.players[side].healing_done += healed
            self.players[side].healing_received += healed
            self._total_damage += dealt
            self._total_healing += healed

    def _process_move_event(self, side: Side, markers: Sequence[EventResult]) -> None:
        player = self.players[side]
        if EventResult.CRITICAL_HIT in markers:
            self.critical_hits += 1
        if EventResult.SUPER_EFFECTIVE in markers:
            self.super_effective += 1
            player.super_effective += 1
        elif EventResult.NOT_VERY_EFFECTIVE in markers:
            self.not_very_effective += 1
            player.not_very_effective += 1
        elif EventResult.SUCCESS in markers and not EFFECTIVENESS_MARKERS.intersection(markers):
            # Connected without an effectiveness message
            player.neutral += 1

    def finish(self, turning_points: Sequence[TurningPoint] = ()) -> BattleStats:
        turns = self.total_turns
        return BattleStats(
            total_turns=turns,
            move_frequency=dict(self.move_frequency),
            type_coverage=dict(self.type_coverage),
            switches=self.switches,
            critical_hits=self.critical_hits,
            super_effective=self.super_effective,
            not_very_effective=self.not_very_effective,
            avg_damage_per_turn=round(self._total_damage / turns, 2) if turns else 0.0,
            avg_heal_per_turn=round(self._total_healing / turns, 2) if turns else 0.0,
            player1_stats=self.players[Side.PLAYER1].to_stats(),
            player2_stats=self.players[Side.PLAYER2].to_stats(),
            turning_points=tuple(turning_points),
        )


def compute_battle_stats(turns: Sequence[Turn], turning_points: Sequence[TurningPoint] = ()) -> BattleStats:
    """Aggregate statistics over a turn series."""
    collector = StatisticsCollector()
    for turn in turns:
        collector.process_turn(turn)
    return collector.finish(turning_points)
