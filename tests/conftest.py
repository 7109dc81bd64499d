"""Pytest configuration and shared fixtures."""

import pytest

from replay_analysis.data.aggregator import TurnBuilder
from replay_analysis.data.dex import get_dex
from replay_analysis.data.classifier import EventClassifier
from replay_analysis.data.tokenizer import ProtocolLine
from replay_analysis.data.tracker import BoardStateTracker

# Three turns. Ash's Pikachu faints on turn 2, Gary's only Pokemon on turn 3.
SAMPLE_LOG = """\
|j|Ash
|j|Gary
|player|p1|Ash|1|1500
|player|p2|Gary|2|1480
|teamsize|p1|2
|teamsize|p2|1
|gen|9
|tier|[Gen 9] OU
|t:|1700000000
|start
|switch|p1a: Pikachu|Pikachu, L50, M|100/100
|switch|p2a: Charizard|Charizard, L50, F|100/100
|turn|1
|move|p1a: Pikachu|Thunderbolt|p2a: Charizard
|-supereffective|p2a: Charizard
|-damage|p2a: Charizard|40/100
|move|p2a: Charizard|Flamethrower|p1a: Pikachu
|-damage|p1a: Pikachu|55/100
|upkeep
|turn|2
|move|p2a: Charizard|Flamethrower|p1a: Pikachu
|-crit|p1a: Pikachu
|-damage|p1a: Pikachu|0 fnt
|faint|p1a: Pikachu
|upkeep
|switch|p1a: Snorlax|Snorlax, L50, M|100/100
|turn|3
|move|p1a: Snorlax|Body Slam|p2a: Charizard
|-damage|p2a: Charizard|0 fnt
|faint|p2a: Charizard
|t:|1700000300
|win|Ash
"""

# Ash forfeits on turn 2 while ahead on the board.
FORFEIT_LOG = """\
|player|p1|Ash|1|
|player|p2|Gary|2|
|teamsize|p1|3
|teamsize|p2|3
|gen|9
|tier|[Gen 9] OU
|start
|switch|p1a: Garchomp|Garchomp, L100, M|100/100
|switch|p2a: Blissey|Blissey, L100, F|100/100
|turn|1
|move|p1a: Garchomp|Earthquake|p2a: Blissey
|-damage|p2a: Blissey|30/100
|move|p2a: Blissey|Seismic Toss|p1a: Garchomp
|-damage|p1a: Garchomp|90/100
|upkeep
|turn|2
|-message|Ash forfeited.
|win|Gary
"""

# Same battle as FORFEIT_LOG with two broken lines in turn 2.
CORRUPT_LOG = """\
|player|p1|Ash|1|
|player|p2|Gary|2|
|teamsize|p1|3
|teamsize|p2|3
|gen|9
|start
|switch|p1a: Garchomp|Garchomp, L100, M|100/100
|switch|p2a: Blissey|Blissey, L100, F|100/100
|turn|1
|move|p1a: Garchomp|Earthquake|p2a: Blissey
|-damage|p2a: Blissey|30/100
|upkeep
|turn|2
|move|p1a: Mewtwo|Psystrike|p2a: Blissey
|-damage|p2a: Blissey|not-a-number
|move|p2a: Blissey|Seismic Toss|p1a: Garchomp
|-damage|p1a: Garchomp|90/100
|upkeep
|turn|3
|move|p1a: Garchomp|Earthquake|p2a: Blissey
|-damage|p2a: Blissey|0 fnt
|faint|p2a: Blissey
|upkeep
|turn|4
|win|Ash
"""

# Team preview with open team sheets, hazards, weather and status.
PREVIEW_LOG = """\
|player|p1|Misty|1|
|player|p2|Brock|2|
|teamsize|p1|2
|teamsize|p2|2
|gen|9
|tier|[Gen 9] OU
|clearpoke
|poke|p1|Pelipper, L100, F|
|poke|p1|Barraskewda, L100, M|
|poke|p2|Tyranitar, L100, M|
|poke|p2|Excadrill, L100, F|
|showteam|p1|Pelipper||Damp Rock|Drizzle|Hurricane,Surf,U-turn,Roost|||F|||100|,,,,,Water]Barraskewda||Choice Band|Swift Swim|Liquidation,Close Combat,Psychic Fangs,Aqua Jet|||M|||100|,,,,,Water
|teampreview
|start
|switch|p1a: Pelipper|Pelipper, L100, F|100/100
|switch|p2a: Tyranitar|Tyranitar, L100, M|100/100
|-weather|RainDance|[from] ability: Drizzle|[of] p1a: Pelipper
|-weather|Sandstorm|[from] ability: Sand Stream|[of] p2a: Tyranitar
|turn|1
|move|p2a: Tyranitar|Stealth Rock|p1a: Pelipper
|-sidestart|p1: Misty|move: Stealth Rock
|move|p1a: Pelipper|U-turn|p2a: Tyranitar
|-resisted|p2a: Tyranitar
|-damage|p2a: Tyranitar|90/100
|switch|p1a: Barraskewda|Barraskewda, L100, M|100/100
|-damage|p1a: Barraskewda|88/100|[from] Stealth Rock
|-weather|Sandstorm|[upkeep]
|-damage|p1a: Barraskewda|82/100|[from] Sandstorm
|upkeep
|turn|2
|move|p1a: Barraskewda|Close Combat|p2a: Tyranitar
|-supereffective|p2a: Tyranitar
|-damage|p2a: Tyranitar|0 fnt
|faint|p2a: Tyranitar
|-unboost|p1a: Barraskewda|def|1
|-unboost|p1a: Barraskewda|spd|1
|upkeep
|switch|p2a: Excadrill|Excadrill, L100, F|100/100
|turn|3
|move|p2a: Excadrill|Toxic|p1a: Barraskewda
|-status|p1a: Barraskewda|tox
|move|p1a: Barraskewda|Liquidation|p2a: Excadrill
|-damage|p2a: Excadrill|0 fnt
|faint|p2a: Excadrill
|win|Misty
"""


@pytest.fixture
def sample_log():
    return SAMPLE_LOG


@pytest.fixture
def forfeit_log():
    return FORFEIT_LOG


@pytest.fixture
def corrupt_log():
    return CORRUPT_LOG


@pytest.fixture
def preview_log():
    return PREVIEW_LOG


@pytest.fixture(scope="session")
def dex():
    return get_dex(9)


class LineFeeder:
    """Classifies and applies lines the way the parser does, for unit tests."""

    def __init__(self, dex):
        self.dex = dex
        self.tracker = BoardStateTracker(dex)
        self.classifier = EventClassifier(self.tracker)
        self.start_turn()

    def start_turn(self):
        self.builder = TurnBuilder(1, self.dex)

    @property
    def last_move(self):
        return self.builder.last_move

    def feed(self, raw):
        event = self.classifier.classify(ProtocolLine.parse(raw))
        if event is None:
            return None, []
        derived = self.tracker.apply_event(event)
        for emitted in [event, *derived]:
            self.builder.add(emitted)
        return event, derived

    def feed_all(self, lines):
        events = []
        for raw in lines.strip().splitlines():
            event, derived = self.feed(raw)
            if event is not None:
                events.append(event)
            events.extend(derived)
        return events


@pytest.fixture
def feeder(dex):
    return LineFeeder(dex)
