"""Heuristic position scoring."""
import math
from typing import Dict, List, Optional, Tuple

from ..config import ScoringConfig, config as global_config
from ..data.dex import Dex, get_dex, to_id
from ..data.models import (
    ActivePokemon, BoardState, FieldState, Momentum, PositionScore, Side, SideState,
)

# Multipliers below this are treated as this when comparing matchups (immunities)
MIN_MULTIPLIER = 0.125

HAZARD_PENALTIES = {
    "stealth_rock": 3.0,
    "spikes": 1.5,  # per layer
    "toxic_spikes": 1.0,  # per layer
    "sticky_web": 2.0,
}
SUPPORT_BONUSES = {
    "reflect": 2.0,
    "light_screen": 2.0,
    "aurora_veil": 2.0,
    "tailwind": 2.0,
}
WEATHER_BONUS = 2.0
WEATHER_TYPES: Dict[str, Tuple[str, ...]] = {
    "raindance": ("Water",),
    "primordialsea": ("Water",),
    "sunnyday": ("Fire",),
    "desolateland": ("Fire",),
    "sandstorm": ("Rock", "Ground", "Steel"),
    "snow": ("Ice",),
    "snowscape": ("Ice",),
    "hail": ("Ice",),
}


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def momentum_for(p1_score: float, p2_score: float, neutral_band: float) -> Momentum:
    """Side favored by the score differential, or neutral inside the band."""
    diff = p1_score - p2_score
    if diff > neutral_band:
        return "player1"
    if diff < -neutral_band:
        return "player2"
    return "neutral"


class PositionScorer:
    """Scores a board state from each side's point of view.

    Per side:
        roster_weight * remaining roster fraction
        + hp_weight * aggregate HP fraction
        + type matchup of the active Pokemon (capped)
        + field conditions (capped)

    clamped to [0, 100]. A side with nothing left scores 0. The score is a
    pure function of its inputs.
    """

    def __init__(self, config: Optional[ScoringConfig] = None, dex: Optional[Dex] = None):
        self.config = config or global_config.scoring
        self.dex = dex or get_dex()

    def score(self, state: BoardState, field: Optional[FieldState] = None) -> PositionScore:
        field = field or FieldState()
        p1 = self.side_score(Side.PLAYER1, state, field)
        p2 = self.side_score(Side.PLAYER2, state, field)
        return PositionScore(
            player1_score=p1,
            player2_score=p2,
            momentum_player=momentum_for(p1, p2, self.config.neutral_band),
        )

    def side_score(self, side: Side, state: BoardState, field: FieldState) -> float:
        own = state.side(side)
        if own.total_left <= 0 or own.team_size <= 0:
            return 0.0

        value = (
            self.config.roster_weight * self.roster_fraction(own)
            + self.config.hp_weight * self.hp_fraction(own)
            + self.matchup_adjustment(own, state.side(side.opponent))
            + self.field_adjustment(side, own, field)
        )
        return round(_clamp(value, 0.0, 100.0), 2)

    @staticmethod
    def roster_fraction(state: SideState) -> float:
        return _clamp(state.total_left / state.team_size, 0.0, 1.0)

    @staticmethod
    def hp_fraction(state: SideState) -> float:
        """HP fraction over the members brought; unseen members count as full."""
        revealed = [entry for entry in state.team if entry.revealed]
        unseen = max(0, state.team_size - len(revealed))
        total = sum(entry.hp_fraction for entry in revealed) + unseen
        return _clamp(total / state.team_size, 0.0, 1.0)

    def active_types(self, active: ActivePokemon) -> List[str]:
        if active.tera_type:
            return [active.tera_type]
        return self.dex.species_types(active.species)

    def _best_multiplier(self, attackers: List[ActivePokemon], defenders: List[ActivePokemon]) -> float:
        best = 0.0
        for attacker in attackers:
            attack_types = self.active_types(attacker)
            for defender in defenders:
                defend_types = self.active_types(defender)
                for attack_type in attack_types or [""]:
                    best = max(best, self.dex.effectiveness(attack_type, defend_types))
        return best

    def matchup_adjustment(self, own: SideState, opponent: SideState) -> float:
        if not own.active or not opponent.active:
            return 0.0
        offense = max(self._best_multiplier(own.active, opponent.active), MIN_MULTIPLIER)
        defense = max(self._best_multiplier(opponent.active, own.active), MIN_MULTIPLIER)
        cap = self.config.matchup_cap
        # log2 ratio lies in [-5, 5]; four doublings saturate the cap
        return _clamp((math.log2(offense) - math.log2(defense)) * cap / 4, -cap, cap)

    def field_adjustment(self, side: Side, own: SideState, field: FieldState) -> float:
        conditions = field.side(side)
        value = 0.0
        for name, penalty in HAZARD_PENALTIES.items():
            value -= penalty * float(getattr(conditions, name))
        for name, bonus in SUPPORT_BONUSES.items():
            if getattr(conditions, name):
                value += bonus

        favored = WEATHER_TYPES.get(to_id(field.weather or ""), ())
        if favored and any(t in favored for a in own.active for t in self.active_types(a)):
            value += WEATHER_BONUS

        cap = self.config.field_cap
        return _clamp(value, -cap, cap)
