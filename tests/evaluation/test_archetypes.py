"""Tests for team archetype classification."""
import pytest

from replay_analysis.data.dex import to_id
from replay_analysis.data.models import Move, Pokemon
from replay_analysis.engine import BattleAnalyzer
from replay_analysis.evaluation.archetypes import archetype_description, classify_team


def mon(species, moves=(), ability="", item=""):
    return Pokemon(
        id=to_id(species),
        name=species,
        ability=ability,
        item=item,
        moves=[Move(id=to_id(m), name=m) for m in moves],
    )


@pytest.mark.parametrize("team, archetype", [
    ([mon("Indeedee-F", ["Trick Room"]), mon("Farigiraf", ["Trick Room"])], "Hard Trick Room"),
    ([mon("Whimsicott", ["Tailwind"]), mon("Porygon2", ["Trick Room"])], "TailRoom"),
    ([mon("Torkoal", ability="Drought"), mon("Lilligant")], "Sun Offense"),
    ([mon("Pelipper", ability="Drizzle"), mon("Barraskewda")], "Rain Offense"),
    ([mon("Incineroar"), mon("Rillaboom")], "Balance Bros"),
    ([mon("Indeedee", ["Psychic Terrain"]), mon("Armarouge", ["Expanding Force"])], "Psy-Spam"),
    ([mon("Tornadus", ["Tailwind"]), mon("Chi-Yu", item="Choice Specs")], "Tailwind Hyper Offense"),
    ([mon("Tornadus", ["Tailwind"])], "Tailwind"),
    ([mon("Porygon2", ["Trick Room"])], "Trick Room"),
    ([mon("Tyranitar", ability="Sand Stream")], "Sand"),
    ([mon("Abomasnow", ability="Snow Warning")], "Snow"),
    ([mon("Garchomp", ["Earthquake"])], "Unclassified"),
    ([], "Unclassified"),
])
def test_archetype_priority(team, archetype):
    assert classify_team(team).archetype == archetype


def test_tags_and_members():
    team = [
        mon("Pelipper", ["Hurricane", "Tailwind"], ability="Drizzle"),
        mon("Barraskewda", ["Liquidation"], item="Choice Band"),
    ]
    result = classify_team(team)

    assert result.weather_type == "rain"
    assert result.weather_setters == ("Pelipper",)
    assert result.tailwind_users == ("Pelipper",)
    assert result.choice_users == ("Barraskewda",)
    assert result.tags == ("tailwind", "weather-rain", "choice-items")
    assert result.archetype == "Rain Offense"
    assert result.description == archetype_description("Rain Offense")


def test_weather_move_setter():
    result = classify_team([mon("Ninetales", ["Sunny Day"])])
    assert result.archetype == "Sun Offense"
    assert result.weather_setters == ("Ninetales",)


def test_unknown_archetype_description():
    assert archetype_description("Stall") == "A unique team composition"
    assert "Trick Room" in archetype_description("Hard Trick Room")


def test_classification_from_team_sheet(preview_log, dex):
    battle = BattleAnalyzer(dex=dex).analyze(preview_log).battle

    assert battle.player1.archetype.archetype == "Rain Offense"
    assert battle.player1.archetype.tags == ("weather-rain", "choice-items")
    assert battle.player2.archetype.archetype == "Unclassified"
