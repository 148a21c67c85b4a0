"""
Pick-gating configuration shared across the edge_* modules.
All thresholds and environment overrides in one place.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict
from zoneinfo import ZoneInfo

log = logging.getLogger(__name__)

# ── Paths ────────────────────────────────────────────────────────────────────
DATA_DIR          = Path(os.getenv("EDGE_DATA_DIR", "data"))
PICK_SHEET_CSV    = DATA_DIR / "pick_sheet_latest.csv"
ELO_RATINGS_CSV   = DATA_DIR / "elo_ratings.csv"
RESULTS_LOG_CSV   = DATA_DIR / "results_log.csv"
OVERRIDES_PATH    = DATA_DIR / "threshold_overrides.json"

# Game times are reported in this zone when a weekday or "tonight" matters.
LOCAL_TZ = ZoneInfo(os.getenv("EDGE_LOCAL_TZ", "America/New_York"))

# ── Elo rating model ─────────────────────────────────────────────────────────
BASE_ELO             = float(os.getenv("EDGE_BASE_ELO",        "1500"))
ELO_K_FACTOR         = float(os.getenv("EDGE_ELO_K_FACTOR",    "20"))
ELO_HOME_ADVANTAGE   = float(os.getenv("EDGE_ELO_HOME_ADV",    "100"))
ELO_PER_MARGIN_POINT = 25.0     # 25 elo ≈ 1 point of margin
ELO_SCALE            = 400.0
MOV_MULTIPLIER_CAP   = 2.0
ELO_HOME_PICK_PROB   = 0.55
ELO_AWAY_PICK_PROB   = 0.45

# ── Temporal engine ──────────────────────────────────────────────────────────
FULL_REST_DAYS        = 2
B2B_PENALTY           = -0.03
CROSS_COUNTRY_PENALTY = -0.02   # per hour of west-to-east shift
EARLY_GAME_HOUR       = 17      # local start before 5pm = early body clock
HOME_RECOVERY_FACTOR  = 0.8
SPOT_PENALTIES = {
    "4_IN_5": -0.04,
    "3_IN_4": -0.02,
}
SCHEDULE_RISK_THRESHOLD = -0.03

# ── Line velocity ────────────────────────────────────────────────────────────
STEAM_THRESHOLD      = float(os.getenv("EDGE_STEAM_THRESHOLD", "0.5"))   # pts/hour
LATE_WINDOW_HOURS    = float(os.getenv("EDGE_LATE_WINDOW_HOURS", "2"))
LATE_MOVE_THRESHOLD  = float(os.getenv("EDGE_LATE_MOVE_PTS",   "0.5"))
MIN_TRACKED_HOURS    = 0.1

# ── Rules engine ─────────────────────────────────────────────────────────────
PUBLIC_FADE_THRESHOLD      = float(os.getenv("EDGE_PUBLIC_FADE_PCT", "70"))
REST_CRITICAL_DIFF         = int(os.getenv("EDGE_REST_CRITICAL_DIFF", "2"))
FATIGUE_SEVERE_THRESHOLD   = 7.0
FATIGUE_MODERATE_THRESHOLD = 4.0

# Recommendation bands over the adjusted probability
BET_PROB_MIN   = 0.58
LEAN_PROB_MIN  = 0.54
FADE_PROB_MAX  = 0.42

# ── Ensemble voter ───────────────────────────────────────────────────────────
STRONG_BET_THRESHOLD   = float(os.getenv("EDGE_STRONG_BET_PROB", "0.60"))
HIGH_CONFIDENCE_EDGE   = 0.15
MEDIUM_CONFIDENCE_EDGE = 0.08

# ── Verification ─────────────────────────────────────────────────────────────
SPREAD_TOLERANCE   = 0.5
MAX_PPG_CLAIM      = 45.0
MAX_WIN_PCT_CLAIM  = 100.0
MAX_VERIFY_RETRIES = int(os.getenv("EDGE_MAX_VERIFY_RETRIES", "2"))

# ── Pipeline metadata ────────────────────────────────────────────────────────
PARSE_VERSION = "v1.0.0"
DRY_RUN       = os.getenv("DRY_RUN", "0").strip().lower() in ("1", "true", "yes")

DEFAULT_THRESHOLDS: Dict[str, float] = {
    "elo_k_factor":          ELO_K_FACTOR,
    "elo_home_advantage":    ELO_HOME_ADVANTAGE,
    "strong_bet_threshold":  STRONG_BET_THRESHOLD,
    "steam_threshold":       STEAM_THRESHOLD,
    "late_move_threshold":   LATE_MOVE_THRESHOLD,
    "public_fade_threshold": PUBLIC_FADE_THRESHOLD,
    "rest_critical_diff":    REST_CRITICAL_DIFF,
}


def load_threshold_overrides(path: Path = None) -> Dict[str, Any]:
    """Defaults merged with data/threshold_overrides.json, when readable."""
    path = path or OVERRIDES_PATH
    thresholds: Dict[str, Any] = dict(DEFAULT_THRESHOLDS)
    if path.exists() and path.stat().st_size > 2:
        try:
            payload = json.loads(path.read_text())
            overrides = payload.get("thresholds", payload)
            if isinstance(overrides, dict):
                thresholds.update({
                    k: float(v) for k, v in overrides.items() if k in DEFAULT_THRESHOLDS
                })
        except (OSError, json.JSONDecodeError, TypeError, ValueError) as exc:
            log.warning(f"Ignoring unreadable threshold overrides {path}: {exc}")
    return thresholds
