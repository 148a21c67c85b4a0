"""
Edge Pipeline — Line Velocity Tracker
edge_velocity.py

Reads a game's line history and answers three questions:
  - How far and how fast did the spread / total move?
  - Was it a steam move (≥ STEAM_THRESHOLD pts/hour)?
  - Did it move late (≥ LATE_MOVE_THRESHOLD inside the final window)?

Spread steam outranks total steam: if the spread crossed the threshold the
total is not consulted. Velocities are measured first-to-last snapshot.

Fewer than two snapshots, or under six minutes of history, yields the
canonical no-data result rather than an error.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from edge_config import (
    LATE_MOVE_THRESHOLD,
    LATE_WINDOW_HOURS,
    MIN_TRACKED_HOURS,
    STEAM_THRESHOLD,
)
from edge_models import AWAY, HOME, parse_time

log = logging.getLogger(__name__)

NO_DATA_SUMMARY = "No line history available"


@dataclass(frozen=True)
class LineSnapshot:
    timestamp: datetime
    spread:    float
    total:     float
    home_ml:   float = 0.0
    away_ml:   float = 0.0


@dataclass(frozen=True)
class VelocityAnalysis:
    spread_velocity: float    # pts/hour
    total_velocity:  float
    spread_moved:    float
    total_moved:     float
    hours_tracked:   float
    is_steam_move:   bool
    steam_direction: Optional[str]    # HOME / AWAY / OVER / UNDER
    late_movement:   bool
    summary:         str

    def to_flat_dict(self) -> dict:
        return {
            "spread_velocity": self.spread_velocity,
            "total_velocity":  self.total_velocity,
            "spread_moved":    self.spread_moved,
            "total_moved":     self.total_moved,
            "hours_tracked":   self.hours_tracked,
            "is_steam_move":   int(self.is_steam_move),
            "steam_direction": self.steam_direction or "",
            "late_movement":   int(self.late_movement),
        }


NO_DATA = VelocityAnalysis(
    spread_velocity=0.0, total_velocity=0.0,
    spread_moved=0.0, total_moved=0.0, hours_tracked=0.0,
    is_steam_move=False, steam_direction=None, late_movement=False,
    summary=NO_DATA_SUMMARY,
)


@dataclass
class VelocityConfig:
    steam_threshold:     float = STEAM_THRESHOLD
    late_window_hours:   float = LATE_WINDOW_HOURS
    late_move_threshold: float = LATE_MOVE_THRESHOLD
    min_tracked_hours:   float = MIN_TRACKED_HOURS


class VelocityTracker:
    """
    Usage:
        analysis = VelocityTracker().analyze(snapshots)
        if analysis.is_steam_move: ...
    """

    def __init__(self, config: VelocityConfig = None):
        self.config = config or VelocityConfig()

    def analyze(self, snapshots: Iterable[LineSnapshot]) -> VelocityAnalysis:
        ordered = sorted(snapshots, key=lambda s: s.timestamp)
        if len(ordered) < 2:
            return NO_DATA

        first, last = ordered[0], ordered[-1]
        hours = (last.timestamp - first.timestamp).total_seconds() / 3600.0
        if hours < self.config.min_tracked_hours:
            return NO_DATA

        spread_moved = last.spread - first.spread
        total_moved  = last.total - first.total
        spread_vel   = spread_moved / hours
        total_vel    = total_moved / hours

        is_steam, direction = self._detect_steam(spread_vel, total_vel)
        late = self._detect_late_movement(ordered)

        summary = self._summarize(spread_moved, total_moved, hours, is_steam, direction, late)
        if is_steam:
            log.info(f"Steam move {direction}: spread {spread_vel:+.2f}/h total {total_vel:+.2f}/h")

        return VelocityAnalysis(
            spread_velocity = round(spread_vel, 2),
            total_velocity  = round(total_vel, 2),
            spread_moved    = round(spread_moved, 1),
            total_moved     = round(total_moved, 1),
            hours_tracked   = round(hours, 1),
            is_steam_move   = is_steam,
            steam_direction = direction,
            late_movement   = late,
            summary         = summary,
        )

    def _detect_steam(self, spread_vel: float, total_vel: float) -> Tuple[bool, Optional[str]]:
        if abs(spread_vel) >= self.config.steam_threshold:
            return True, HOME if spread_vel > 0 else AWAY
        if abs(total_vel) >= self.config.steam_threshold:
            return True, "OVER" if total_vel > 0 else "UNDER"
        return False, None

    def _detect_late_movement(self, ordered: List[LineSnapshot]) -> bool:
        last   = ordered[-1]
        cutoff = last.timestamp - timedelta(hours=self.config.late_window_hours)
        recent = [s for s in ordered if s.timestamp >= cutoff]
        if len(recent) < 2:
            return False
        spread_change = abs(last.spread - recent[0].spread)
        total_change  = abs(last.total - recent[0].total)
        return (spread_change >= self.config.late_move_threshold
                or total_change >= self.config.late_move_threshold)

    def _summarize(
        self,
        spread_moved: float,
        total_moved: float,
        hours: float,
        is_steam: bool,
        direction: Optional[str],
        late: bool,
    ) -> str:
        parts = []
        if abs(spread_moved) >= 0.5:
            toward = "toward HOME" if spread_moved > 0 else "toward AWAY"
            parts.append(f"Spread moved {abs(spread_moved):.1f} pts {toward} in {hours:.1f}h")
        if abs(total_moved) >= 0.5:
            parts.append(f"Total moved {abs(total_moved):.1f} pts {'UP' if total_moved > 0 else 'DOWN'}")
        if is_steam:
            parts.append(f"STEAM MOVE: {direction}")
        if late:
            parts.append(f"Late movement (last {self.config.late_window_hours:g}h)")
        return " | ".join(parts) if parts else "Line stable - minimal movement"


# ── Helpers ───────────────────────────────────────────────────────────────────

def has_steam(analysis: VelocityAnalysis) -> bool:
    return analysis.is_steam_move


def get_steam_direction(analysis: VelocityAnalysis) -> Optional[str]:
    return analysis.steam_direction


def has_late_movement(analysis: VelocityAnalysis) -> bool:
    return analysis.late_movement


def format_for_context(analysis: VelocityAnalysis) -> str:
    if analysis.hours_tracked == 0:
        return f"=== LINE VELOCITY ===\n{NO_DATA_SUMMARY}"
    lines = ["=== LINE VELOCITY ===", analysis.summary]
    if analysis.is_steam_move:
        lines.append(f"VELOCITY: {abs(analysis.spread_velocity):.2f} pts/hour")
    return "\n".join(lines)


def snapshots_from_frame(df: pd.DataFrame, game_id: Optional[str] = None) -> List[LineSnapshot]:
    """
    line_history.csv rows → snapshots. Expects timestamp, spread, total;
    moneylines optional. Rows with an unreadable timestamp or line are skipped.
    """
    if df is None or df.empty:
        return []
    if game_id is not None and "game_id" in df.columns:
        df = df[df["game_id"].astype(str) == str(game_id)]

    snaps = []
    for _, row in df.iterrows():
        try:
            snaps.append(LineSnapshot(
                timestamp = parse_time(row["timestamp"]),
                spread    = float(row["spread"]),
                total     = float(row["total"]),
                home_ml   = float(row.get("home_ml", 0) or 0),
                away_ml   = float(row.get("away_ml", 0) or 0),
            ))
        except (KeyError, TypeError, ValueError) as exc:
            log.warning(f"Skipping line snapshot row: {exc}")
    return snaps
