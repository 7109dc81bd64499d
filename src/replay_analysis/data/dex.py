"""Species, move and type-chart lookups backed by poke-env's GenData."""
import logging
from functools import lru_cache
from typing import Iterable, List

from poke_env.data import GenData, to_id_str

logger = logging.getLogger(__name__)

MIN_GEN = 4
MAX_GEN = 9


def to_id(name: str) -> str:
    """Normalize a species or move name to a Showdown id."""
    return to_id_str(name or "")


class Dex:
    """Read-only reference data for one generation."""

    def __init__(self, gen: int = MAX_GEN):
        self.gen = min(max(gen, MIN_GEN), MAX_GEN)
        self._data = GenData.from_gen(self.gen)

    def species_types(self, species: str) -> List[str]:
        """Types of a species, e.g. ["Fire", "Flying"]. Empty if unknown."""
        entry = self._data.pokedex.get(to_id(species))
        if entry is None and "-" in species:
            # Fall back to the base forme ("Urshifu-*" -> "Urshifu")
            entry = self._data.pokedex.get(to_id(species.split("-")[0]))
        if entry is None:
            logger.debug(f"No dex entry for species {species!r}")
            return []
        return list(entry.get("types", []))

    def move_type(self, move: str) -> str:
        entry = self._data.moves.get(to_id(move))
        if entry is None:
            return ""
        return entry.get("type", "")

    def move_category(self, move: str) -> str:
        entry = self._data.moves.get(to_id(move))
        if entry is None:
            return ""
        return entry.get("category", "")

    def effectiveness(self, attack_type: str, defender_types: Iterable[str]) -> float:
        """Damage multiplier of an attacking type against defending types."""
        if not attack_type:
            return 1.0
        chart = self._data.type_chart
        attacking = attack_type.strip().upper()
        multiplier = 1.0
        for defending in defender_types:
            if not defending:
                continue
            row = chart.get(defending.strip().upper())
            if row is None:
                continue
            multiplier *= row.get(attacking, 1.0)
        return multiplier


@lru_cache(maxsize=None)
def get_dex(gen: int = MAX_GEN) -> Dex:
    """Shared Dex per generation. Dex instances are never mutated."""
    return Dex(gen)
