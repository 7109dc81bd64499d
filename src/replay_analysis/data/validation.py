"""Invariant checks for analyzed battles."""
import logging
from dataclasses import dataclass, field
from typing import Dict, List
from pathlib import Path

from .models import Battle, Side

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of validating a single battle."""
    battle_id: str
    valid: bool
    errors: List[str]
    warnings: List[str]


@dataclass
class ValidationReport:
    """Aggregate validation report."""
    total_battles: int
    valid_battles: int
    invalid_battles: int
    error_counts: Dict[str, int]
    warning_counts: Dict[str, int]
    invalid: List[ValidationResult] = field(default_factory=list)


class BattleValidator:
    """Validator for analyzed battles.

    Errors are broken invariants (the analysis is wrong); warnings flag
    battles that are valid but unusual.
    """

    def __init__(self, min_turns: int = 3, max_turns: int = 500):
        self.min_turns = min_turns
        self.max_turns = max_turns

    def validate(self, battle: Battle) -> ValidationResult:
        """Validate a single analyzed battle."""
        errors: List[str] = []
        warnings: List[str] = []

        if not battle.id:
            errors.append("missing_battle_id")

        if not battle.turns:
            errors.append("no_turns")

        if battle.turns and len(battle.turns) < self.min_turns:
            warnings.append("too_few_turns")
        if len(battle.turns) > self.max_turns:
            warnings.append("too_many_turns")

        for i, turn in enumerate(battle.turns):
            if turn.turn_number != i + 1:
                errors.append(f"turn_mismatch_{i}")
                break

        if any(t.position_score is None for t in battle.turns):
            warnings.append("unscored_turns")
        for turn in battle.turns:
            score = turn.position_score
            if score is None:
                continue
            if not (0 <= score.player1_score <= 100 and 0 <= score.player2_score <= 100):
                errors.append("score_out_of_range")
                break

        for side in Side:
            errors.extend(self._check_roster(battle, side))

        if battle.turns and len(battle.stats.turning_points) > len(battle.turns) - 1:
            errors.append("too_many_turning_points")

        if any(not 1 <= m.significance <= 10 for m in battle.key_moments):
            errors.append("significance_out_of_range")

        if battle.stats.total_turns != len(battle.turns):
            errors.append("stats_turn_count_mismatch")

        return ValidationResult(
            battle_id=battle.id,
            valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
        )

    def _check_roster(self, battle: Battle, side: Side) -> List[str]:
        """Roster accounting and faint irreversibility for one side."""
        tag = "p1" if side is Side.PLAYER1 else "p2"
        errors = []
        previous_left = None
        fainted = set()

        for turn in battle.turns:
            state = turn.state_after.side(side)
            if state.losses + state.total_left != state.team_size:
                errors.append(f"roster_count_mismatch_{tag}")
                break
            if previous_left is not None and state.total_left > previous_left:
                errors.append(f"total_left_increased_{tag}")
                break
            previous_left = state.total_left

            revived = [i for i in fainted if i < len(state.team) and state.team[i].hp > 0]
            if revived:
                errors.append(f"fainted_revived_{tag}")
                break
            fainted.update(i for i, entry in enumerate(state.team) if entry.hp == 0 or entry.fainted)

        player = battle.player(side)
        if not 1 <= len(player.team) <= 6:
            errors.append(f"team_size_invalid_{tag}")
        if player.losses + player.total_left != player.team_size:
            errors.append(f"final_count_mismatch_{tag}")
        return errors

    def validate_file(self, path: Path) -> ValidationReport:
        """Validate all battles in a JSONL file."""
        results = []

        with open(path) as f:
            for line_no, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    battle = Battle.model_validate_json(line)
                except ValueError as e:
                    logger.warning(f"Line {line_no}: could not load battle: {e}")
                    results.append(ValidationResult(
                        battle_id="unknown",
                        valid=False,
                        errors=["parse_error"],
                        warnings=[],
                    ))
                    continue
                results.append(self.validate(battle))

        error_counts: Dict[str, int] = {}
        warning_counts: Dict[str, int] = {}

        for r in results:
            for e in r.errors:
                error_counts[e] = error_counts.get(e, 0) + 1
            for w in r.warnings:
                warning_counts[w] = warning_counts.get(w, 0) + 1

        return ValidationReport(
            total_battles=len(results),
            valid_battles=sum(1 for r in results if r.valid),
            invalid_battles=sum(1 for r in results if not r.valid),
            error_counts=error_counts,
            warning_counts=warning_counts,
            invalid=[r for r in results if not r.valid],
        )
