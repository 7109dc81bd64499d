"""Assembly of the final, immutable Battle."""
import hashlib
import logging
from datetime import datetime, timezone
from typing import List, Optional

from ..data.dex import to_id
from ..data.models import (
    Battle, BattleStats, KeyMoment, Player, Side, Turn, Winner,
)
from ..data.parser import BattleMetadata, ParsedLog
from ..errors import IncompleteLog
from .archetypes import classify_team

logger = logging.getLogger(__name__)


def make_battle_id(raw_log: str, replay_id: Optional[str] = None) -> str:
    """The replay id when known, otherwise a digest of the log text."""
    if replay_id:
        return replay_id
    digest = hashlib.sha1(raw_log.encode("utf-8")).hexdigest()
    return f"raw-{digest[:16]}"


def determine_winner(player1: Player, player2: Player, metadata: BattleMetadata) -> Winner:
    """Winner from the end-of-battle marker, else from who has nothing left.

    Raises:
        IncompleteLog: no marker and no side is out of Pokemon
    """
    if metadata.winner_name is not None:
        winner = to_id(metadata.winner_name)
        for side, player in ((Side.PLAYER1, player1), (Side.PLAYER2, player2)):
            if player.name and to_id(player.name) == winner:
                return side.value
        logger.warning(f"Winner {metadata.winner_name!r} matches neither player")

    if metadata.tie:
        return "draw"

    p1_out = player1.total_left <= 0
    p2_out = player2.total_left <= 0
    if p1_out and not p2_out:
        return Side.PLAYER2.value
    if p2_out and not p1_out:
        return Side.PLAYER1.value

    raise IncompleteLog(
        "Could not determine a winner",
        {"player1Left": player1.total_left, "player2Left": player2.total_left},
    )


def _timestamp(metadata: BattleMetadata) -> Optional[datetime]:
    if metadata.first_timestamp is None:
        return None
    return datetime.fromtimestamp(metadata.first_timestamp, tz=timezone.utc)


def _duration(metadata: BattleMetadata) -> int:
    if metadata.first_timestamp is None or metadata.last_timestamp is None:
        return 0
    return max(0, metadata.last_timestamp - metadata.first_timestamp)


def _with_archetype(player: Player) -> Player:
    return player.model_copy(update={"archetype": classify_team(player.team)})


def assemble_battle(
    parsed: ParsedLog,
    battle_id: str,
    turns: List[Turn],
    stats: BattleStats,
    key_moments: List[KeyMoment],
) -> Battle:
    """Combine parse output, scores and detections into one Battle."""
    winner = determine_winner(parsed.player1, parsed.player2, parsed.metadata)
    return Battle(
        id=battle_id,
        format=parsed.metadata.format,
        timestamp=_timestamp(parsed.metadata),
        duration=_duration(parsed.metadata),
        player1=_with_archetype(parsed.player1),
        player2=_with_archetype(parsed.player2),
        winner=winner,
        turns=turns,
        stats=stats,
        key_moments=key_moments,
    )
