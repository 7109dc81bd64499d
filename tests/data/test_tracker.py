"""Tests for the board state tracker."""
import pytest

from replay_analysis.data.models import Side, Status
from replay_analysis.data.tracker import BoardStateTracker, Details, split_ident
from replay_analysis.errors import InvalidEvent, UnknownPokemon

TEAM_SHEET = (
    "Pelipper||Damp Rock|Drizzle|Hurricane,Surf,U-turn,Roost|||F|||100|,,,,,Water]"
    "Barraskewda||Choice Band|Swift Swim|Liquidation,Close Combat,Psychic Fangs,Aqua Jet|||M|||100|,,,,,Water"
)


def test_parse_full_details():
    details = Details.parse("Ogerpon-Wellspring, L50, F, shiny, tera:Water")
    assert details.species == "Ogerpon-Wellspring"
    assert details.level == 50
    assert details.gender == "F"
    assert details.shiny
    assert details.tera_type == "Water"


def test_parse_species_only():
    details = Details.parse("Ditto")
    assert (details.species, details.level, details.gender) == ("Ditto", 100, "")


def test_split_ident():
    assert split_ident("p2a: Mr. Mime") == (Side.PLAYER2, "a", "Mr. Mime")
    assert split_ident("p1: Ash") == (Side.PLAYER1, "", "Ash")
    with pytest.raises(InvalidEvent):
        split_ident("Pikachu")


def test_team_size_defaults(dex):
    tracker = BoardStateTracker(dex)
    assert tracker.sides[Side.PLAYER1].team_size == 6

    tracker.add_preview(Side.PLAYER1, "Pelipper, L100, F")
    tracker.add_preview(Side.PLAYER1, "Barraskewda, L100, M")
    assert tracker.sides[Side.PLAYER1].team_size == 2

    tracker.set_team_size(Side.PLAYER1, 4)
    assert tracker.sides[Side.PLAYER1].team_size == 4


def test_declared_size_is_clamped(dex):
    tracker = BoardStateTracker(dex)
    tracker.set_team_size(Side.PLAYER2, 12)
    assert tracker.sides[Side.PLAYER2].team_size == 6


def test_team_sheet_merges_into_preview(dex):
    tracker = BoardStateTracker(dex)
    tracker.add_preview(Side.PLAYER1, "Pelipper, L100, F")
    tracker.add_preview(Side.PLAYER1, "Barraskewda, L100, M")
    tracker.add_team_sheet(Side.PLAYER1, TEAM_SHEET)

    members = tracker.sides[Side.PLAYER1].members
    assert len(members) == 2
    assert members[0].item == "Damp Rock"
    assert members[0].ability == "Drizzle"
    assert members[0].team_moves == ["Hurricane", "Surf", "U-turn", "Roost"]
    assert members[0].tera_type == "Water"
    assert members[1].item == "Choice Band"


def test_switch_without_preview_reveals_members(feeder):
    feeder.feed("|switch|p1a: Sparky|Pikachu, L50, M|100/100")
    side = feeder.tracker.sides[Side.PLAYER1]

    assert len(side.members) == 1
    assert side.members[0].name == "Sparky"
    assert side.members[0].species == "Pikachu"
    assert side.members[0].is_lead


def test_switch_beyond_team_size_is_unknown(feeder):
    feeder.tracker.set_team_size(Side.PLAYER1, 1)
    feeder.feed("|switch|p1a: Pikachu|Pikachu, L50, M|100/100")
    with pytest.raises(UnknownPokemon):
        feeder.feed("|switch|p1a: Raichu|Raichu, L50, M|100/100")


def test_switch_outside_preview_is_unknown(feeder):
    feeder.tracker.add_preview(Side.PLAYER2, "Tyranitar, L100, M")
    with pytest.raises(UnknownPokemon):
        feeder.feed("|switch|p2a: Garchomp|Garchomp, L100, M|100/100")


def test_hidden_forme_matches_preview(feeder):
    feeder.tracker.add_preview(Side.PLAYER2, "Urshifu-*, L100, M")
    feeder.feed("|switch|p2a: Urshifu|Urshifu-Rapid-Strike, L100, M|100/100")

    members = feeder.tracker.sides[Side.PLAYER2].members
    assert len(members) == 1
    assert members[0].species == "Urshifu-Rapid-Strike"


def test_fainted_pokemon_cannot_switch_in(feeder):
    feeder.feed_all("""
|switch|p1a: Pikachu|Pikachu, L50, M|100/100
|-damage|p1a: Pikachu|0 fnt
""")
    with pytest.raises(InvalidEvent):
        feeder.feed("|switch|p1a: Pikachu|Pikachu, L50, M|100/100")


def test_only_turn_zero_switches_are_leads(feeder):
    feeder.feed("|switch|p1a: Pikachu|Pikachu, L50, M|100/100")
    feeder.tracker.turn = 1
    feeder.feed("|switch|p1a: Snorlax|Snorlax, L50, M|100/100")

    leads = {m.name: m.is_lead for m in feeder.tracker.sides[Side.PLAYER1].members}
    assert leads == {"Pikachu": True, "Snorlax": False}


def test_losses_and_total_left(feeder):
    feeder.tracker.set_team_size(Side.PLAYER1, 3)
    events = feeder.feed_all("""
|switch|p1a: Pikachu|Pikachu, L50, M|100/100
|-damage|p1a: Pikachu|0 fnt
|faint|p1a: Pikachu
""")
    side = feeder.tracker.sides[Side.PLAYER1]

    assert [e.type.value for e in events] == ["switch", "damage", "faint"]
    assert events[-1].implicit
    assert side.losses == 1
    assert side.total_left == 2


def test_damage_to_fainted_pokemon_is_invalid(feeder):
    feeder.feed_all("""
|switch|p1a: Pikachu|Pikachu, L50, M|100/100
|-damage|p1a: Pikachu|0 fnt
""")
    with pytest.raises(InvalidEvent):
        feeder.feed("|-damage|p1a: Pikachu|0 fnt")


def test_boosts_are_clamped_and_cleared_on_switch(feeder):
    feeder.feed_all("""
|switch|p1a: Pikachu|Pikachu, L50, M|100/100
|-boost|p1a: Pikachu|spa|4
|-boost|p1a: Pikachu|spa|4
""")
    pikachu = feeder.tracker.resolve("p1a: Pikachu")[1]
    assert pikachu.boosts == {"spa": 6}

    feeder.feed("|switch|p1a: Snorlax|Snorlax, L50, M|100/100")
    assert pikachu.boosts == {}


def test_replace_keeps_boosts_on_the_real_pokemon(feeder):
    feeder.feed_all("""
|switch|p2a: Charizard|Charizard, L50, F|100/100
|-boost|p2a: Charizard|spa|2
|replace|p2a: Zoroark|Zoroark, L50, M|100/100
""")
    side = feeder.tracker.sides[Side.PLAYER2]
    zoroark = side.members[side.active["a"]]

    assert zoroark.species == "Zoroark"
    assert zoroark.boosts == {"spa": 2}
    assert feeder.tracker.snapshot().player2.active[0].species == "Zoroark"


def test_pain_split_cannot_revive(feeder):
    feeder.feed_all("""
|switch|p1a: Slowbro|Slowbro, L50, M|100/100
|-damage|p1a: Slowbro|0 fnt
""")
    with pytest.raises(InvalidEvent):
        feeder.feed("|-sethp|p1a: Slowbro|50/100|[from] move: Pain Split")


def test_hazard_layers_are_capped(feeder):
    feeder.feed_all("""
|-sidestart|p2: Gary|Spikes
|-sidestart|p2: Gary|Spikes
|-sidestart|p2: Gary|Spikes
|-sidestart|p2: Gary|Spikes
|-sidestart|p2: Gary|move: Stealth Rock
""")
    conditions = feeder.tracker.field.side(Side.PLAYER2)
    assert conditions.spikes == 3
    assert conditions.stealth_rock

    feeder.feed("|-sideend|p2: Gary|Spikes|[from] move: Rapid Spin|[of] p1a: Excadrill")
    assert conditions.spikes == 0
    assert conditions.stealth_rock


def test_cureteam_clears_whole_side(feeder):
    feeder.feed_all("""
|switch|p1a: Pikachu|Pikachu, L50, M|100/100
|-status|p1a: Pikachu|par
|switch|p1a: Snorlax|Snorlax, L50, M|100/100
|-status|p1a: Snorlax|slp
|-cureteam|p1a: Snorlax|[from] move: Heal Bell
""")
    statuses = [m.status for m in feeder.tracker.sides[Side.PLAYER1].members]
    assert statuses == [Status.NONE, Status.NONE]


def test_terastallize_sets_tera_type(feeder):
    feeder.feed_all("""
|switch|p1a: Pikachu|Pikachu, L50, M|100/100
|-terastallize|p1a: Pikachu|Flying
""")
    snapshot = feeder.tracker.snapshot()
    assert snapshot.player1.active[0].tera_type == "Flying"


def test_snapshot_is_isolated_from_later_changes(feeder):
    feeder.feed("|switch|p1a: Pikachu|Pikachu, L50, M|100/100")
    before = feeder.tracker.snapshot()
    feeder.feed("|-damage|p1a: Pikachu|20/100")

    assert before.player1.active[0].hp == 100
    assert feeder.tracker.snapshot().player1.active[0].hp == 20


def test_fainted_pokemon_leave_active_slots(feeder):
    feeder.feed_all("""
|switch|p1a: Pikachu|Pikachu, L50, M|100/100
|-damage|p1a: Pikachu|0 fnt
""")
    state = feeder.tracker.snapshot().player1

    assert state.active == ()
    assert state.alive == ()
    assert state.team[0].fainted
    assert state.losses == 1


def test_field_snapshot_is_a_copy(feeder):
    feeder.feed("|-weather|RainDance")
    snapshot = feeder.tracker.field_snapshot()
    feeder.feed("|-weather|none")

    assert snapshot.weather == "RainDance"
    assert feeder.tracker.field.weather is None


def test_final_player_view(feeder):
    feeder.tracker.set_player(Side.PLAYER1, "Ash", 1500)
    feeder.feed_all("""
|switch|p1a: Pikachu|Pikachu, L50, M|100/100
|move|p1a: Pikachu|Thunderbolt|p1a: Pikachu
|-damage|p1a: Pikachu|0 fnt
""")
    player = feeder.tracker.player(Side.PLAYER1)

    assert player.name == "Ash"
    assert player.rating == 1500
    assert player.active_index is None
    assert player.losses == 1
    assert player.team[0].id == "pikachu"
    assert player.team[0].types == ("Electric",)
    assert [m.name for m in player.team[0].moves] == ["Thunderbolt"]
    assert player.team[0].moves[0].type == "Electric"
