"""End-to-end tests for the analysis pipeline."""
import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from replay_analysis.data.parser import BattleMetadata
from replay_analysis.data.models import Player
from replay_analysis.engine import BattleAnalyzer
from replay_analysis.errors import IncompleteLog, MalformedLog
from replay_analysis.evaluation.summary import determine_winner, make_battle_id


@pytest.fixture
def analyzer(dex):
    return BattleAnalyzer(dex=dex)


def test_analyze_sample_battle(analyzer, sample_log):
    report = analyzer.analyze(sample_log, "gen9ou-123")
    battle = report.battle

    assert battle.id == "gen9ou-123"
    assert battle.winner == "player1"
    assert battle.format == "[Gen 9] OU"
    assert battle.timestamp == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
    assert battle.duration == 300
    assert len(battle.turns) == 3
    assert battle.stats.total_turns == 3
    assert all(t.position_score is not None for t in battle.turns)
    assert report.parse_time_ms >= 0
    assert report.analysis_time_ms >= 0


def test_position_scores_follow_the_battle(analyzer, sample_log):
    turns = analyzer.analyze(sample_log).battle.turns

    assert turns[0].position_score.momentum_player == "player1"
    assert turns[1].position_score.player1_score == 45.0
    assert turns[1].position_score.player2_score == 69.0
    assert turns[1].position_score.momentum_player == "player2"
    assert turns[2].position_score.player2_score == 0.0


def test_turning_points(analyzer, sample_log):
    points = analyzer.analyze(sample_log).battle.stats.turning_points

    assert len(points) == 1
    assert points[0].turn_number == 2
    assert points[0].significance == 8
    assert points[0].momentum_shift < -15


def test_analysis_is_idempotent(analyzer, sample_log):
    first = json.dumps(analyzer.analyze(sample_log).battle.to_api(), sort_keys=True)
    second = json.dumps(analyzer.analyze(sample_log).battle.to_api(), sort_keys=True)
    assert first == second


def test_api_shape_is_camel_case(analyzer, sample_log):
    data = analyzer.analyze(sample_log).battle.to_api()

    assert {"id", "format", "player1", "player2", "winner", "turns", "stats", "keyMoments"} <= set(data)
    turn = data["turns"][0]
    assert {"turnNumber", "actions", "events", "damageDealt", "stateAfter", "positionScore"} <= set(turn)
    assert "slot" not in turn["events"][0]
    assert data["timestamp"].startswith("2023-11-14T22:13:20")


def test_move_actions_carry_impact(analyzer, sample_log):
    data = analyzer.analyze(sample_log).battle.to_api()
    thunderbolt, flamethrower = data["turns"][0]["actions"]

    assert thunderbolt["orderInTurn"] == 0
    assert thunderbolt["impact"]["damageDealt"] == 60
    assert thunderbolt["impact"]["effectiveness"] == "super-effective"
    assert thunderbolt["details"] == "super effective, 60 damage"
    assert flamethrower["orderInTurn"] == 1
    assert flamethrower["impact"]["damageDealt"] == 45


def test_battle_is_immutable(analyzer, sample_log):
    battle = analyzer.analyze(sample_log).battle
    with pytest.raises(ValidationError):
        battle.winner = "player2"


@pytest.mark.parametrize("mutate", [
    lambda b: setattr(b.turns[0], "position_score", None),
    lambda b: setattr(b.player1, "losses", 99),
    lambda b: setattr(b.turns[0].state_after.player1, "total_left", 6),
    lambda b: setattr(b.turns[1].events[0], "result", None),
    lambda b: setattr(b.stats, "total_turns", 0),
    lambda b: setattr(b.key_moments[0], "significance", 1),
])
def test_nested_models_are_immutable(analyzer, sample_log, mutate):
    battle = analyzer.analyze(sample_log).battle
    with pytest.raises(ValidationError):
        mutate(battle)


def test_sequences_cannot_grow(analyzer, sample_log):
    battle = analyzer.analyze(sample_log).battle

    with pytest.raises(AttributeError):
        battle.turns.append(battle.turns[0])
    with pytest.raises(AttributeError):
        battle.player1.team.append(battle.player1.team[0])
    assert [t.turn_number for t in battle.turns] == [1, 2, 3]
    assert all(t.to_api()["positionScore"] is not None for t in battle.turns)


def test_raw_logs_get_content_ids(analyzer, sample_log):
    battle = analyzer.analyze(sample_log).battle

    assert battle.id.startswith("raw-")
    assert len(battle.id) == len("raw-") + 16
    assert battle.id == make_battle_id(sample_log)


def test_forfeit_winner_overrides_the_board(analyzer, forfeit_log):
    battle = analyzer.analyze(forfeit_log).battle

    final = battle.turns[-1].position_score
    assert final.player1_score > final.player2_score
    assert battle.winner == "player2"
    assert battle.turns[-1].events[0].action == "-message"


def test_corrupt_lines_do_not_abort(analyzer, corrupt_log):
    report = analyzer.analyze(corrupt_log)

    assert report.battle.winner == "player1"
    assert len(report.battle.turns) == 4
    assert report.diagnostics.skipped_events == 2


def test_winner_inferred_without_marker(analyzer, sample_log):
    battle = analyzer.analyze(sample_log.replace("|win|Ash\n", "")).battle
    assert battle.winner == "player1"


def test_unknown_winner_name_falls_back(analyzer, sample_log):
    battle = analyzer.analyze(sample_log.replace("|win|Ash", "|win|Misty")).battle
    assert battle.winner == "player1"


def test_tie_is_a_draw(analyzer, forfeit_log):
    battle = analyzer.analyze(forfeit_log.replace("|win|Gary", "|tie")).battle
    assert battle.winner == "draw"


def test_unfinished_battle_is_incomplete(analyzer, forfeit_log):
    with pytest.raises(IncompleteLog) as exc_info:
        analyzer.analyze(forfeit_log.replace("|win|Gary\n", ""))
    assert exc_info.value.details == {"player1Left": 3, "player2Left": 3}


def test_malformed_log_propagates(analyzer):
    with pytest.raises(MalformedLog):
        analyzer.analyze("|player|p1|Ash|1|\n|turn|2\n")


def test_ranked_key_moments(analyzer, sample_log):
    ranked = analyzer.analyze(sample_log).battle.ranked_key_moments(limit=2)
    assert [m.significance for m in ranked] == [10, 9]


@pytest.mark.parametrize("name, expected", [
    ("Ash", "player1"),
    ("ash", "player1"),
    ("G A R Y", "player2"),
])
def test_determine_winner_by_name(name, expected):
    p1 = Player(name="Ash", team_size=6, total_left=6)
    p2 = Player(name="Gary", team_size=6, total_left=6)
    assert determine_winner(p1, p2, BattleMetadata(winner_name=name)) == expected
