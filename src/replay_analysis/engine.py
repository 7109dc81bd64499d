"""Battle analysis engine: raw log in, immutable Battle out."""
import time
import logging
from dataclasses import dataclass
from typing import Optional

from .config import ScoringConfig, config as global_config
from .data.dex import Dex, get_dex
from .data.models import Battle, Side
from .data.parser import BattleLogParser, ParseDiagnostics
from .data.statistics import compute_battle_stats
from .evaluation.scoring import PositionScorer
from .evaluation.summary import assemble_battle, make_battle_id
from .evaluation.turning_points import detect_key_moments, detect_turning_points

logger = logging.getLogger(__name__)


@dataclass
class AnalysisReport:
    """A Battle plus how it was produced."""
    battle: Battle
    diagnostics: ParseDiagnostics
    parse_time_ms: float
    analysis_time_ms: float


class BattleAnalyzer:
    """Runs the full analysis pipeline.

    The analyzer holds configuration only; every ``analyze`` call builds its
    own parse context, so one analyzer can serve concurrent callers.
    """

    def __init__(self, config: Optional[ScoringConfig] = None, dex: Optional[Dex] = None):
        self.config = config or global_config.scoring
        self.dex = dex

    def analyze(self, raw_log: str, replay_id: Optional[str] = None) -> AnalysisReport:
        """Analyze one raw battle log.

        Raises:
            MalformedLog: turn markers missing or out of order
            IncompleteLog: no winner could be determined
        """
        start = time.perf_counter()
        parsed = BattleLogParser(self.dex).parse(raw_log)
        parsed_at = time.perf_counter()

        dex = self.dex or get_dex(parsed.metadata.gen or 9)
        scorer = PositionScorer(self.config, dex)
        turns = [
            turn.model_copy(update={"position_score": scorer.score(turn.state_after, field)})
            for turn, field in zip(parsed.turns, parsed.fields)
        ]

        names = {Side.PLAYER1: parsed.player1.name, Side.PLAYER2: parsed.player2.name}
        turning_points = detect_turning_points(turns, self.config, names)
        key_moments = detect_key_moments(turns, turning_points, names)
        stats = compute_battle_stats(turns, turning_points)

        battle = assemble_battle(
            parsed,
            battle_id=make_battle_id(raw_log, replay_id),
            turns=turns,
            stats=stats,
            key_moments=key_moments,
        )
        finished = time.perf_counter()

        report = AnalysisReport(
            battle=battle,
            diagnostics=parsed.diagnostics,
            parse_time_ms=round((parsed_at - start) * 1000, 3),
            analysis_time_ms=round((finished - parsed_at) * 1000, 3),
        )
        logger.debug(
            f"Analyzed {battle.id}: {len(battle.turns)} turns, winner {battle.winner}, "
            f"{parsed.diagnostics.skipped_events} skipped events"
        )
        return report


def analyze_log(raw_log: str, replay_id: Optional[str] = None) -> Battle:
    """Analyze a raw log with the default configuration."""
    return BattleAnalyzer().analyze(raw_log, replay_id).battle
