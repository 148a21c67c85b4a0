"""
tests/test_velocity.py — Tests for edge_velocity.py
"""

from datetime import datetime, timedelta, timezone

import pandas as pd
import pytest

from edge_velocity import (
    NO_DATA,
    NO_DATA_SUMMARY,
    LineSnapshot,
    VelocityConfig,
    VelocityTracker,
    format_for_context,
    get_steam_direction,
    has_late_movement,
    has_steam,
    snapshots_from_frame,
)

T0 = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def snap(hours, spread, total=220.0):
    return LineSnapshot(timestamp=T0 + timedelta(hours=hours), spread=spread, total=total)


@pytest.fixture
def tracker():
    return VelocityTracker()


class TestNoData:
    def test_empty_history(self, tracker):
        a = tracker.analyze([])
        assert a is NO_DATA
        assert a.summary == NO_DATA_SUMMARY
        assert a.spread_velocity == 0.0
        assert not a.is_steam_move
        assert a.steam_direction is None

    def test_single_snapshot(self, tracker):
        assert tracker.analyze([snap(0, -3.0)]) is NO_DATA

    def test_too_short_window(self, tracker):
        assert tracker.analyze([snap(0, -3.0), snap(0.05, -5.0)]) is NO_DATA

    def test_no_data_context(self):
        assert NO_DATA_SUMMARY in format_for_context(NO_DATA)


class TestSteam:
    def test_spread_steam_toward_home(self, tracker):
        a = tracker.analyze([snap(0, -3.0), snap(2, -1.0)])
        assert a.spread_velocity == pytest.approx(1.0)
        assert has_steam(a)
        assert get_steam_direction(a) == "HOME"
        assert "STEAM MOVE: HOME" in a.summary

    def test_spread_steam_toward_away(self, tracker):
        a = tracker.analyze([snap(0, -3.0), snap(1, -4.0)])
        assert get_steam_direction(a) == "AWAY"

    def test_spread_outranks_total(self, tracker):
        a = tracker.analyze([snap(0, -3.0, 220.0), snap(1, -4.0, 224.0)])
        assert a.steam_direction == "AWAY"

    def test_total_steam_when_spread_quiet(self, tracker):
        a = tracker.analyze([snap(0, -3.0, 220.0), snap(2, -3.0, 216.0)])
        assert a.is_steam_move
        assert a.steam_direction == "UNDER"

    def test_slow_drift_is_not_steam(self, tracker):
        a = tracker.analyze([snap(0, -3.0), snap(10, -4.0)])
        assert not a.is_steam_move
        assert a.spread_moved == pytest.approx(-1.0)

    def test_unsorted_input_sorted(self, tracker):
        a = tracker.analyze([snap(2, -1.0), snap(0, -3.0)])
        assert a.spread_moved == pytest.approx(2.0)

    def test_custom_threshold(self):
        t = VelocityTracker(VelocityConfig(steam_threshold=2.0))
        assert not t.analyze([snap(0, -3.0), snap(2, -1.0)]).is_steam_move


class TestLateMovement:
    def test_move_inside_window(self, tracker):
        a = tracker.analyze([snap(0, -3.0), snap(9, -3.0), snap(10, -4.0)])
        assert has_late_movement(a)

    def test_early_move_only(self, tracker):
        a = tracker.analyze([snap(0, -3.0), snap(1, -5.0), snap(10, -5.0)])
        assert not has_late_movement(a)

    def test_single_point_in_window(self, tracker):
        a = tracker.analyze([snap(0, -3.0), snap(10, -5.0)])
        assert not a.late_movement


def test_snapshots_from_frame_filters_and_skips_bad_rows():
    df = pd.DataFrame([
        {"game_id": "g1", "timestamp": "2025-01-15T12:00:00Z", "spread": -3.0, "total": 220.0},
        {"game_id": "g1", "timestamp": "2025-01-15T14:00:00Z", "spread": -1.0, "total": 221.0},
        {"game_id": "g1", "timestamp": None, "spread": -1.0, "total": 221.0},
        {"game_id": "g2", "timestamp": "2025-01-15T14:00:00Z", "spread": 5.0, "total": 200.0},
    ])
    snaps = snapshots_from_frame(df, "g1")
    assert len(snaps) == 2
    assert VelocityTracker().analyze(snaps).steam_direction == "HOME"


def test_flat_dict_keys():
    row = VelocityTracker().analyze([snap(0, -3.0), snap(2, -1.0)]).to_flat_dict()
    assert row["is_steam_move"] == 1
    assert row["steam_direction"] == "HOME"
