"""
Shared data model for the pick-gating core.

GameData is the immutable per-game snapshot handed over by the ingestion
layer. GameContext is the situational view rebuilt every evaluation cycle
(see edge_temporal.build_game_context). CandidateArtifact is what the
external writer produces and the fact checker reads.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import pandas as pd

# ── Recommendation tags ───────────────────────────────────────────────────────
STRONG_BET = "STRONG_BET"
BET        = "BET"
LEAN       = "LEAN"
PASS       = "PASS"
FADE       = "FADE"
BLOCKED    = "BLOCKED"

# Elo side tags double as votes
HOME    = "HOME"
AWAY    = "AWAY"
NEUTRAL = "NEUTRAL"

RECOMMENDATIONS = (STRONG_BET, BET, LEAN, PASS, FADE, BLOCKED)
ACTIONABLE      = (STRONG_BET, BET)

# ── Schedule spots ────────────────────────────────────────────────────────────
SPOT_NORMAL     = "NORMAL"
SPOT_B2B        = "B2B"
SPOT_3_IN_4     = "3_IN_4"
SPOT_4_IN_5     = "4_IN_5"
SPOT_TRAVEL_B2B = "TRAVEL_B2B"


def _safe_float(val: Any, default: Optional[float] = None) -> Optional[float]:
    try:
        if val is None or pd.isna(val):
            return default
        return float(val)
    except (TypeError, ValueError):
        return default


def parse_time(val: Any) -> datetime:
    """ISO string / datetime / Timestamp → tz-aware datetime (UTC if naive)."""
    ts = pd.Timestamp(val) if val is not None else pd.NaT
    if pd.isna(ts):
        raise ValueError(f"Unparseable game time: {val!r}")
    if ts.tzinfo is None:
        ts = ts.tz_localize(timezone.utc)
    return ts.to_pydatetime()


@dataclass(frozen=True)
class GameData:
    """
    Immutable per-game snapshot. Spread convention: negative = home favoured.
    public_bet_pct is in percentage points (0–100).
    """
    game_id:    str
    league:     str
    home_team:  str
    away_team:  str
    start_time: datetime
    spread:     float
    total:      float
    home_ml:    float = 0.0
    away_ml:    float = 0.0
    home_abbr:  str = ""
    away_abbr:  str = ""
    status:     str = "scheduled"     # scheduled / live / final
    home_score: Optional[float] = None
    away_score: Optional[float] = None
    public_bet_pct: Optional[float] = None
    sharp_action:   bool = False

    @property
    def is_final(self) -> bool:
        return (self.status == "final"
                and self.home_score is not None
                and self.away_score is not None)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "GameData":
        """Build from a games.csv row / ingestion dict."""
        sharp = row.get("sharp_action", False)
        if isinstance(sharp, str):
            sharp = sharp.strip().lower() in ("1", "true", "yes")
        return cls(
            game_id    = str(row.get("game_id", "")),
            league     = str(row.get("league", "NBA")).upper(),
            home_team  = str(row.get("home_team", "")),
            away_team  = str(row.get("away_team", "")),
            start_time = parse_time(row.get("start_time")),
            spread     = _safe_float(row.get("spread"), 0.0),
            total      = _safe_float(row.get("total"), 0.0),
            home_ml    = _safe_float(row.get("home_ml"), 0.0),
            away_ml    = _safe_float(row.get("away_ml"), 0.0),
            home_abbr  = str(row.get("home_abbr", "") or ""),
            away_abbr  = str(row.get("away_abbr", "") or ""),
            status     = str(row.get("status", "scheduled") or "scheduled").lower(),
            home_score = _safe_float(row.get("home_score")),
            away_score = _safe_float(row.get("away_score")),
            public_bet_pct = _safe_float(row.get("public_bet_pct")),
            sharp_action   = bool(sharp) if not pd.isna(sharp) else False,
        )


@dataclass(frozen=True)
class GameContext:
    """
    Situational view consumed by the rules engine.

    Every field beyond the team names is optional: a rule whose inputs are
    missing simply does not fire. fatigue_score runs −10…+10, positive means
    the away side carries more fatigue.
    """
    home_team: str
    away_team: str
    home_rest_days: Optional[int] = None
    away_rest_days: Optional[int] = None
    home_back_to_back: bool = False
    away_back_to_back: bool = False
    schedule_spot:  Optional[str] = None
    fatigue_score:  Optional[float] = None
    time_zone_shift: int = 0
    is_early_game:  bool = False
    circadian_disadvantage: str = "NONE"    # HOME / AWAY / NONE
    public_bet_pct: Optional[float] = None
    sharp_action:   bool = False


@dataclass(frozen=True)
class CandidateArtifact:
    """Generated write-up for one pick. Read-only to the core."""
    pick:        str
    reasoning:   str
    broadcast:   str
    confidence:  float = 0.0
    key_factors: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ValidationResult:
    passed: bool
    issues: Tuple[str, ...] = field(default_factory=tuple)
