"""Turning point and key moment detection over an analyzed turn series."""
from typing import Dict, List, Optional, Sequence

from ..config import ScoringConfig, config as global_config
from ..data.models import (
    BattleEvent, EventType, KeyMoment, KeyMomentType, Side, Status, Turn, TurningPoint,
)

KO_SIGNIFICANCE = 7
KO_LAST_TWO_SIGNIFICANCE = 9
KO_LAST_SIGNIFICANCE = 10
SWITCH_SIGNIFICANCE = 3
REPLACEMENT_SIGNIFICANCE = 2
STATUS_SIGNIFICANCE = 5
DISABLING_STATUS_SIGNIFICANCE = 6
FIELD_START_SIGNIFICANCE = 4
FIELD_END_SIGNIFICANCE = 2

DISABLING_STATUSES = {Status.SLEEP.value, Status.FREEZE.value}


def shift_significance(shift: float, points_per_step: float) -> int:
    """Map a score shift to 1-10, one step per ``points_per_step`` points."""
    steps = int(abs(shift) / points_per_step + 0.5)
    return max(1, min(10, steps))


def detect_turning_points(
    turns: Sequence[Turn],
    config: Optional[ScoringConfig] = None,
    names: Optional[Dict[Side, str]] = None,
) -> List[TurningPoint]:
    """Find turns where player 1's score moved by more than the threshold.

    Args:
        turns: Scored turns in order
        config: Threshold and significance scale
        names: Player names for descriptions

    Returns:
        Turning points in turn order, at most ``len(turns) - 1``
    """
    config = config or global_config.scoring
    points = []

    for previous, current in zip(turns, turns[1:]):
        before, after = previous.position_score, current.position_score
        if before is None or after is None:
            continue
        shift = round(after.player1_score - before.player1_score, 2)
        if abs(shift) <= config.turning_point_threshold:
            continue

        favored = Side.PLAYER1 if shift > 0 else Side.PLAYER2
        points.append(TurningPoint(
            turn_number=current.turn_number,
            score1_before=before.player1_score,
            score1_after=after.player1_score,
            score2_before=before.player2_score,
            score2_after=after.player2_score,
            momentum_shift=shift,
            significance=shift_significance(shift, config.points_per_significance),
            description=f"Momentum swung toward {_name(names, favored)} ({shift:+.1f} points)",
        ))

    return points


def _name(names: Optional[Dict[Side, str]], side: Optional[Side]) -> str:
    if side is None:
        return "the field"
    if names and names.get(side):
        return names[side]
    return side.value


class KeyMomentDetector:
    """Derives key moments from the events of each turn. Read-only."""

    def __init__(self, names: Optional[Dict[Side, str]] = None):
        self.names = names or {}

    def detect(self, turns: Sequence[Turn], turning_points: Sequence[TurningPoint] = ()) -> List[KeyMoment]:
        points_by_turn: Dict[int, List[TurningPoint]] = {}
        for point in turning_points:
            points_by_turn.setdefault(point.turn_number, []).append(point)

        remaining: Dict[Side, int] = {}
        if turns:
            remaining = {side: turns[0].state_after.side(side).team_size for side in Side}

        moments: List[KeyMoment] = []
        for turn in turns:
            pending_replacements = {side: 0 for side in Side}
            for event in turn.events:
                moment = self._from_event(turn.turn_number, event, remaining, pending_replacements)
                if moment is not None:
                    moments.append(moment)
            for point in points_by_turn.get(turn.turn_number, []):
                moments.append(KeyMoment(
                    turn_number=point.turn_number,
                    description=point.description,
                    type=KeyMomentType.TURNING_POINT,
                    significance=point.significance,
                ))
            for side in Side:
                remaining[side] = turn.state_after.side(side).total_left
        return moments

    def _from_event(
        self,
        turn_number: int,
        event: BattleEvent,
        remaining: Dict[Side, int],
        pending_replacements: Dict[Side, int],
    ) -> Optional[KeyMoment]:
        side = event.player_side

        if event.type is EventType.FAINT and side is not None:
            remaining[side] = max(0, remaining.get(side, 0) - 1)
            pending_replacements[side] += 1
            if remaining[side] == 0:
                significance = KO_LAST_SIGNIFICANCE
            elif remaining[side] == 1:
                significance = KO_LAST_TWO_SIGNIFICANCE
            else:
                significance = KO_SIGNIFICANCE
            return KeyMoment(
                turn_number=turn_number,
                description=f"{event.pokemon} fainted ({_name(self.names, side)} has {remaining[side]} left)",
                type=KeyMomentType.KO,
                significance=significance,
            )

        if event.type is EventType.SWITCH and side is not None:
            significance = SWITCH_SIGNIFICANCE
            if pending_replacements[side] > 0:
                pending_replacements[side] -= 1
                significance = REPLACEMENT_SIGNIFICANCE
            return KeyMoment(
                turn_number=turn_number,
                description=f"{_name(self.names, side)} sent out {event.pokemon}",
                type=KeyMomentType.SWITCH,
                significance=significance,
            )

        if event.type is EventType.STATUS and event.action == "status":
            status = event.details or ""
            return KeyMoment(
                turn_number=turn_number,
                description=f"{event.pokemon} was inflicted with {status}",
                type=KeyMomentType.STATUS,
                significance=DISABLING_STATUS_SIGNIFICANCE if status in DISABLING_STATUSES else STATUS_SIGNIFICANCE,
            )

        if event.type in (EventType.WEATHER, EventType.TERRAIN) and event.action in ("start", "end"):
            label = "Weather" if event.type is EventType.WEATHER else "Terrain"
            if event.action == "start":
                description = f"{label} changed to {event.value}"
                significance = FIELD_START_SIGNIFICANCE
            else:
                description = f"{label} ended"
                significance = FIELD_END_SIGNIFICANCE
            return KeyMoment(
                turn_number=turn_number,
                description=description,
                type=KeyMomentType.WEATHER,
                significance=significance,
            )

        return None


def detect_key_moments(
    turns: Sequence[Turn],
    turning_points: Sequence[TurningPoint] = (),
    names: Optional[Dict[Side, str]] = None,
) -> List[KeyMoment]:
    """Key moments of a battle in chronological order."""
    return KeyMomentDetector(names).detect(turns, turning_points)
