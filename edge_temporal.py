"""
Edge Pipeline — Temporal Engine
edge_temporal.py

Rest, schedule density, and body-clock factors from the schedule alone.
These are the inputs behind most "trap game" spots: a road team on the
second night of a back-to-back, the fourth game in five nights, a west
coast team tipping at 1pm eastern.

Everything here is pure and deterministic. No I/O.

  analyze_rest()                   → RestAnalysis    (one team)
  detect_schedule_spot()           → NORMAL / B2B / 3_IN_4 / 4_IN_5 / TRAVEL_B2B
  calculate_circadian_disruption() → probability penalty (≤ 0)
  get_temporal_factors()           → TemporalFactors (combined adjustment)
  build_game_context()             → GameContext for the rules engine
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

import numpy as np

from edge_config import (
    B2B_PENALTY,
    CROSS_COUNTRY_PENALTY,
    EARLY_GAME_HOUR,
    FULL_REST_DAYS,
    HOME_RECOVERY_FACTOR,
    LOCAL_TZ,
    SCHEDULE_RISK_THRESHOLD,
    SPOT_PENALTIES,
)
from edge_models import (
    GameContext,
    GameData,
    SPOT_3_IN_4,
    SPOT_4_IN_5,
    SPOT_B2B,
    SPOT_NORMAL,
    SPOT_TRAVEL_B2B,
)

log = logging.getLogger(__name__)

# Hours behind eastern time
TZ_OFFSETS = {"ET": 0, "CT": 1, "MT": 2, "PT": 3}
TZ_ZONES = {
    "ET": ZoneInfo("America/New_York"),
    "CT": ZoneInfo("America/Chicago"),
    "MT": ZoneInfo("America/Denver"),
    "PT": ZoneInfo("America/Los_Angeles"),
}

FATIGUE_SCALE = 10.0


@dataclass(frozen=True)
class RestAnalysis:
    rest_days:       int
    is_back_to_back: bool
    is_full_rest:    bool
    fatigue_score:   float    # 0 fresh … 1 exhausted
    adjustment:      float


@dataclass(frozen=True)
class TemporalFactors:
    rest_days:         int
    schedule_spot:     str
    fatigue_score:     float
    circadian_penalty: float
    total_adjustment:  float
    description:       str


@dataclass(frozen=True)
class TeamSchedule:
    """
    What the schedule feed knows about one side going into tonight.

    previous_games: start times of earlier games (any order)
    time_zone:      team's home time zone (ET / CT / MT / PT)
    traveled:       changed cities since the previous game
    """
    previous_games: Tuple[datetime, ...] = field(default_factory=tuple)
    time_zone:      str = "ET"
    traveled:       bool = False

    @property
    def last_game(self) -> Optional[datetime]:
        return max(self.previous_games) if self.previous_games else None


def _local_date(dt: datetime) -> date:
    if dt.tzinfo is not None:
        dt = dt.astimezone(LOCAL_TZ)
    return dt.date()


def _tz_offset(label: str) -> int:
    try:
        return TZ_OFFSETS[label.upper()]
    except (KeyError, AttributeError):
        raise ValueError(f"Unknown time zone label: {label!r}") from None


class TemporalEngine:
    """Schedule-driven situational factors. Stateless; call on the class."""

    @staticmethod
    def analyze_rest(
        last_game: Optional[datetime],
        current_game: datetime,
        is_home: bool,
    ) -> RestAnalysis:
        """
        Rest days are whole 24h periods between tip-offs. No previous game
        on record means fully rested.
        """
        if last_game is None:
            return RestAnalysis(
                rest_days=FULL_REST_DAYS, is_back_to_back=False,
                is_full_rest=True, fatigue_score=0.0, adjustment=0.0,
            )

        rest_days = max(0, (current_game - last_game) // timedelta(days=1))
        is_b2b    = rest_days == 0

        if is_b2b:
            fatigue = 1.0
        elif rest_days == 1:
            fatigue = 0.5
        else:
            fatigue = 0.0

        # Home teams recover faster (own bed, no travel day)
        if is_home and fatigue > 0:
            fatigue *= HOME_RECOVERY_FACTOR

        return RestAnalysis(
            rest_days       = int(rest_days),
            is_back_to_back = is_b2b,
            is_full_rest    = rest_days >= FULL_REST_DAYS,
            fatigue_score   = round(fatigue, 3),
            adjustment      = B2B_PENALTY if is_b2b else 0.0,
        )

    @staticmethod
    def detect_schedule_spot(
        recent_games: Sequence[datetime],
        next_game: datetime,
        traveled: bool = False,
    ) -> str:
        """
        Windows are calendar days that include tonight's game, so 3_IN_4
        means two earlier games in the three days before. 4_IN_5 is checked
        first since every 4-in-5 also contains a 3-in-4.
        """
        tonight = _local_date(next_game)
        days_before = [
            (tonight - _local_date(g)).days
            for g in recent_games
            if g < next_game
        ]

        games_in_five = 1 + sum(1 for d in days_before if d <= 4)
        games_in_four = 1 + sum(1 for d in days_before if d <= 3)

        if games_in_five >= 4:
            return SPOT_4_IN_5
        if games_in_four >= 3:
            return SPOT_3_IN_4

        if any(d <= 1 for d in days_before):
            return SPOT_TRAVEL_B2B if traveled else SPOT_B2B
        return SPOT_NORMAL

    @staticmethod
    def calculate_circadian_disruption(
        team_timezone: str,
        game_timezone: str,
        game_hour: int,
    ) -> float:
        """
        West-to-east only. A PT team at a 7pm ET tip plays at 4pm body time
        (fine); at a 1pm ET tip it plays at 10am body time.
        """
        hours_ahead = _tz_offset(team_timezone) - _tz_offset(game_timezone)
        if hours_ahead > 0 and game_hour < EARLY_GAME_HOUR:
            return round(hours_ahead * CROSS_COUNTRY_PENALTY, 3)
        return 0.0

    @classmethod
    def get_temporal_factors(
        cls,
        rest: RestAnalysis,
        schedule_spot: str,
        circadian_penalty: float,
    ) -> TemporalFactors:
        total = rest.adjustment + circadian_penalty + SPOT_PENALTIES.get(schedule_spot, 0.0)
        return TemporalFactors(
            rest_days         = rest.rest_days,
            schedule_spot     = schedule_spot,
            fatigue_score     = rest.fatigue_score,
            circadian_penalty = circadian_penalty,
            total_adjustment  = round(total, 3),
            description       = cls._describe(rest, schedule_spot, circadian_penalty),
        )

    @staticmethod
    def _describe(rest: RestAnalysis, spot: str, circadian: float) -> str:
        parts = []
        if rest.is_back_to_back:
            parts.append("BACK-TO-BACK")
        elif rest.rest_days == 1:
            parts.append("1 day rest")
        elif rest.is_full_rest:
            parts.append("Full rest")

        if spot == SPOT_4_IN_5:
            parts.append("4-in-5 games")
        elif spot == SPOT_3_IN_4:
            parts.append("3-in-4 games")
        elif spot == SPOT_TRAVEL_B2B:
            parts.append("Travel back-to-back")

        if circadian < 0:
            parts.append("Circadian disadvantage")

        return " | ".join(parts) if parts else "Normal schedule"


def has_schedule_spot_risk(factors: TemporalFactors) -> bool:
    return factors.total_adjustment < SCHEDULE_RISK_THRESHOLD


def format_temporal_context(factors: TemporalFactors) -> str:
    return f"TEMPORAL: {factors.description} ({factors.total_adjustment * 100:.1f}% adj)"


# ═══════════════════════════════════════════════════════════════════════════════
# CONTEXT ASSEMBLY
# ═══════════════════════════════════════════════════════════════════════════════

def build_game_context(
    game: GameData,
    home_schedule: Optional[TeamSchedule] = None,
    away_schedule: Optional[TeamSchedule] = None,
) -> GameContext:
    """
    Derive the rules-engine view of one game.

    Rest fields stay None when the schedule feed had nothing for a side,
    so rest rules do not fire on missing data. The schedule spot recorded
    is the away team's (the side that travels).
    """
    home_rest = away_rest = None
    if home_schedule is not None:
        home_rest = TemporalEngine.analyze_rest(home_schedule.last_game, game.start_time, True)
    if away_schedule is not None:
        away_rest = TemporalEngine.analyze_rest(away_schedule.last_game, game.start_time, False)

    spot = None
    if away_schedule is not None:
        spot = TemporalEngine.detect_schedule_spot(
            away_schedule.previous_games, game.start_time, away_schedule.traveled,
        )

    fatigue = None
    if home_rest is not None and away_rest is not None:
        diff    = (away_rest.fatigue_score - home_rest.fatigue_score) * FATIGUE_SCALE
        fatigue = round(float(np.clip(diff, -FATIGUE_SCALE, FATIGUE_SCALE)), 1)

    tz_shift   = 0
    early      = False
    circadian  = "NONE"
    if home_schedule is not None and away_schedule is not None:
        game_tz   = home_schedule.time_zone
        tz_shift  = _tz_offset(away_schedule.time_zone) - _tz_offset(game_tz)
        local_hr  = game.start_time.astimezone(TZ_ZONES[game_tz.upper()]).hour
        early     = local_hr < EARLY_GAME_HOUR
        penalty   = TemporalEngine.calculate_circadian_disruption(
            away_schedule.time_zone, game_tz, local_hr,
        )
        if penalty < 0:
            circadian = "AWAY"

    ctx = GameContext(
        home_team         = game.home_team,
        away_team         = game.away_team,
        home_rest_days    = home_rest.rest_days if home_rest else None,
        away_rest_days    = away_rest.rest_days if away_rest else None,
        home_back_to_back = bool(home_rest and home_rest.is_back_to_back),
        away_back_to_back = bool(away_rest and away_rest.is_back_to_back),
        schedule_spot     = spot,
        fatigue_score     = fatigue,
        time_zone_shift   = tz_shift,
        is_early_game     = early,
        circadian_disadvantage = circadian,
        public_bet_pct    = game.public_bet_pct,
        sharp_action      = game.sharp_action,
    )
    log.debug(f"Context {game.away_team} @ {game.home_team}: spot={spot} "
              f"fatigue={fatigue} circadian={circadian}")
    return ctx
