"""In-memory store of analyzed replays."""
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from ..data.dex import to_id
from ..data.models import ApiModel, Battle, Winner


class ReplayListItem(ApiModel):
    id: str
    format: str
    timestamp: Optional[datetime] = None
    player1: str
    player2: str
    winner: Optional[Winner] = None
    is_private: bool = False


@dataclass
class StoredReplay:
    battle: Battle
    raw_log: str
    is_private: bool
    parse_time_ms: float
    analysis_time_ms: float
    sequence: int = 0

    def list_item(self) -> ReplayListItem:
        return ReplayListItem(
            id=self.battle.id,
            format=self.battle.format,
            timestamp=self.battle.timestamp,
            player1=self.battle.player1.name,
            player2=self.battle.player2.name,
            winner=self.battle.winner,
            is_private=self.is_private,
        )


@dataclass
class ReplayFilter:
    username: Optional[str] = None
    format: Optional[str] = None
    is_private: Optional[bool] = None

    def matches(self, replay: StoredReplay) -> bool:
        battle = replay.battle
        if self.username:
            wanted = to_id(self.username)
            if wanted not in (to_id(battle.player1.name), to_id(battle.player2.name)):
                return False
        if self.format and to_id(self.format) != to_id(battle.format):
            return False
        if self.is_private is not None and replay.is_private != self.is_private:
            return False
        return True


class ReplayStore:
    """Thread-safe store keyed by battle id. Re-storing an id replaces it."""

    def __init__(self):
        self._lock = threading.Lock()
        self._replays: Dict[str, StoredReplay] = {}
        self._sequence = 0

    def put(self, replay: StoredReplay) -> StoredReplay:
        with self._lock:
            self._sequence += 1
            replay.sequence = self._sequence
            self._replays[replay.battle.id] = replay
            return replay

    def get(self, battle_id: str) -> Optional[StoredReplay]:
        with self._lock:
            return self._replays.get(battle_id)

    def list(
        self,
        filters: Optional[ReplayFilter] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[StoredReplay], int]:
        """Matching replays, newest first, and the total match count."""
        filters = filters or ReplayFilter()
        with self._lock:
            matches = [r for r in self._replays.values() if filters.matches(r)]
        matches.sort(key=lambda r: r.sequence, reverse=True)
        return matches[offset:offset + limit], len(matches)

    def __len__(self) -> int:
        with self._lock:
            return len(self._replays)
