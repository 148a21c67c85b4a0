"""
tests/test_pipeline.py — Tests for edge_pipeline.py

Validates:
  - analyze_game wiring (Elo → rules → ensemble, velocity as telemetry)
  - Bayesian probability used as the rules base when supplied
  - Only actionable picks reach the writer; suppressed picks stay unreleased
  - Slate loop logs and continues past a failing game
  - Pick sheet passes the output schema gate; DRY_RUN skips the write
"""

from datetime import datetime, timedelta, timezone

import pandas as pd
import pytest

import edge_pipeline
from edge_config import DEFAULT_THRESHOLDS
from edge_elo import RatingStore
from edge_models import BET, BLOCKED, PASS, STRONG_BET, CandidateArtifact, GameData
from edge_output_schemas import validate_output
from edge_pipeline import PipelineComponents, analyze_game, run_slate
from edge_temporal import TeamSchedule
from edge_velocity import LineSnapshot

TIP = datetime(2025, 1, 16, 0, 30, tzinfo=timezone.utc)


@pytest.fixture
def store():
    s = RatingStore(league="NBA")
    s.register("Boston Celtics", 1650)
    s.register("Los Angeles Lakers", 1500)
    s.register("Denver Nuggets", 1400)
    s.register("Miami Heat", 1500)
    return s


@pytest.fixture
def components():
    return PipelineComponents.from_thresholds(DEFAULT_THRESHOLDS)


def make_game(game_id="g1", home="Boston Celtics", away="Los Angeles Lakers", **kwargs):
    params = dict(
        game_id=game_id, league="NBA", home_team=home, away_team=away,
        start_time=TIP, spread=-7.5, total=224.5,
    )
    params.update(kwargs)
    return GameData(**params)


def good_writer(game, analysis, prior_issues):
    return CandidateArtifact(
        pick=f"{game.home_team} {game.spread:g}",
        reasoning=f"{game.home_team} lay {abs(game.spread):g} points tonight.",
        broadcast=f"{game.home_team} {game.spread:g}",
    )


def bad_writer(game, analysis, prior_issues):
    return CandidateArtifact(pick="x", reasoning="Laying 1 point, 80 ppg offense.", broadcast="")


class TestAnalyzeGame:
    def test_strong_home_favourite(self, store, components):
        a = analyze_game(make_game(), store, components=components)
        assert a.elo.recommendation == "HOME"
        assert a.rules.recommendation == BET
        assert a.ensemble.final_recommendation == STRONG_BET
        assert a.actionable
        assert a.base_probability == pytest.approx(a.elo.home_win_prob)
        assert a.velocity.summary == "No line history available"
        assert a.temporal is None

    def test_public_fade_blocks(self, store, components):
        game = make_game(public_bet_pct=75.0, sharp_action=False)
        a = analyze_game(game, store, components=components)
        assert a.rules.recommendation == BLOCKED
        assert a.ensemble.final_recommendation == BLOCKED
        assert not a.actionable

    def test_bayes_probability_is_rules_base(self, store, components):
        a = analyze_game(make_game(), store, bayes_prob=0.52, bayes_rec="PASS",
                         components=components)
        assert a.base_probability == 0.52
        assert a.rules.adjusted_probability == pytest.approx(0.52)
        assert a.ensemble.final_recommendation == PASS
        assert len(a.ensemble.votes) == 3

    def test_schedules_feed_rules_and_temporal(self, store, components):
        home = TeamSchedule(previous_games=(TIP - timedelta(days=3),), time_zone="ET")
        away = TeamSchedule(previous_games=(TIP - timedelta(hours=22),), time_zone="PT",
                            traveled=True)
        a = analyze_game(make_game(), store, home_schedule=home, away_schedule=away,
                         components=components)
        fired = [v.rule for v in a.rules.violations]
        assert "REST_DISADVANTAGE" in fired
        assert "TRAVEL_B2B" in fired
        assert a.temporal is not None
        assert a.temporal.schedule_spot == "TRAVEL_B2B"

    def test_velocity_reported(self, store, components):
        snaps = [
            LineSnapshot(TIP - timedelta(hours=4), -9.0, 224.5),
            LineSnapshot(TIP - timedelta(hours=2), -7.5, 224.5),
        ]
        a = analyze_game(make_game(), store, snapshots=snaps, components=components)
        assert a.velocity.is_steam_move
        assert a.to_flat_dict()["steam_direction"] == "HOME"


class TestRunSlate:
    def test_pick_sheet_written(self, store, tmp_path):
        out = tmp_path / "pick_sheet.csv"
        games = [
            make_game("g1"),
            make_game("g2", home="Denver Nuggets", away="Miami Heat", spread=-1.5),
        ]
        result = run_slate(games, store, generate=good_writer,
                           thresholds=DEFAULT_THRESHOLDS, out_path=out)

        assert out.exists()
        sheet = pd.read_csv(out, dtype={"game_id": str})
        assert validate_output(sheet, "pick_sheet") == []
        assert list(sheet["game_id"]) == ["g1", "g2"]

        assert set(result.outcomes) == {"g1"}
        assert [o.game_id for o in result.released] == ["g1"]
        row = sheet.set_index("game_id").loc["g1"]
        assert row["released"] == 1
        assert row["verify_attempts"] == 1
        assert "verified" not in sheet.columns

    def test_non_actionable_never_generated(self, store, tmp_path):
        calls = []

        def writer(game, analysis, prior_issues):
            calls.append(game.game_id)
            return good_writer(game, analysis, prior_issues)

        game = make_game("g3", home="Denver Nuggets", away="Miami Heat")
        run_slate([game], store, generate=writer, thresholds=DEFAULT_THRESHOLDS,
                  out_path=tmp_path / "s.csv")
        assert calls == []

    def test_failed_verification_suppressed(self, store, tmp_path):
        result = run_slate([make_game()], store, generate=bad_writer,
                           thresholds=DEFAULT_THRESHOLDS, out_path=tmp_path / "s.csv")
        outcome = result.outcomes["g1"]
        assert not outcome.released
        assert outcome.artifact is None
        assert outcome.attempt_count == 3
        assert result.released == []
        assert len(result.verification_frame()) == 3

    def test_failing_game_skipped(self, store, tmp_path):
        bad_tz = {"Boston Celtics": TeamSchedule(time_zone="XX"),
                  "Los Angeles Lakers": TeamSchedule(time_zone="PT")}
        games = [make_game("g1"), make_game("g2", home="Denver Nuggets", away="Miami Heat")]
        result = run_slate(games, store, schedules=bad_tz,
                           thresholds=DEFAULT_THRESHOLDS, out_path=tmp_path / "s.csv")
        assert result.failed == ["g1"]
        assert [a.game.game_id for a in result.analyses] == ["g2"]

    def test_final_games_skipped(self, store, tmp_path):
        done = make_game(status="final", home_score=110, away_score=100)
        result = run_slate([done], store, thresholds=DEFAULT_THRESHOLDS,
                           out_path=tmp_path / "s.csv")
        assert result.analyses == []
        assert not (tmp_path / "s.csv").exists()

    def test_bayes_and_line_history_by_game_id(self, store, tmp_path):
        history = pd.DataFrame([
            {"game_id": "g1", "timestamp": "2025-01-15T20:00:00Z", "spread": -9.0, "total": 224.5},
            {"game_id": "g1", "timestamp": "2025-01-15T22:00:00Z", "spread": -7.5, "total": 224.5},
        ])
        result = run_slate([make_game()], store, line_history=history,
                           bayes={"g1": (0.52, "PASS")},
                           thresholds=DEFAULT_THRESHOLDS, out_path=tmp_path / "s.csv")
        a = result.analyses[0]
        assert a.velocity.is_steam_move
        assert a.base_probability == 0.52

    def test_dry_run_skips_write(self, store, tmp_path, monkeypatch):
        monkeypatch.setattr(edge_pipeline, "DRY_RUN", True)
        out = tmp_path / "s.csv"
        result = run_slate([make_game()], store, thresholds=DEFAULT_THRESHOLDS, out_path=out)
        assert len(result.analyses) == 1
        assert not out.exists()

    def test_threshold_overrides_applied(self, store, tmp_path):
        thresholds = dict(DEFAULT_THRESHOLDS, public_fade_threshold=80.0)
        game = make_game(public_bet_pct=75.0)
        result = run_slate([game], store, thresholds=thresholds, out_path=tmp_path / "s.csv")
        assert result.analyses[0].ensemble.final_recommendation == STRONG_BET

    def test_side_frames(self, store, tmp_path):
        result = run_slate([make_game(public_bet_pct=90.0)], store,
                           thresholds=DEFAULT_THRESHOLDS, out_path=tmp_path / "s.csv")
        assert validate_output(result.violations_frame(), "rules_violations") == []
        assert validate_output(result.velocity_frame(), "line_velocity") == []
        assert list(result.violations_frame()["rule"]) == ["PUBLIC_FADE"]
