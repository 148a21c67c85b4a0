"""
edge_results_tracker.py — Final scores → ratings, picks → graded record

Runs once games go final. Two jobs:

1. Feed each final score into the rating store (update_elo), once per
   game_id. Games with an unregistered team are left alone; the store
   reports that as a no-op.
2. Grade the pick sheet against the final margin and append the graded rows
   to data/results_log.csv.

GRADING
─────────────────────────────────────────────────────────────────────────────
Side taken from the ensemble recommendation:
  STRONG_BET / BET → HOME      FADE → AWAY      anything else → no pick
Graded against the spread (home-perspective, negative = home favoured):
  home covers when  margin + spread > 0,  push when it equals 0.

Ties (possible in the NFL) are graded but do not move ratings, since a
rating update needs a winner.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

import pandas as pd

from edge_config import (
    ELO_HOME_ADVANTAGE,
    ELO_K_FACTOR,
    ELO_RATINGS_CSV,
    RESULTS_LOG_CSV,
    load_threshold_overrides,
)
from edge_elo import RatingStore, update_elo
from edge_models import ACTIONABLE, AWAY, FADE, HOME, GameData
from edge_output_schemas import validate_output

log = logging.getLogger(__name__)

WIN  = "WIN"
LOSS = "LOSS"
PUSH = "PUSH"

RESULTS_LOG_COLUMNS = [
    "game_id", "home_team", "away_team", "home_score", "away_score",
    "home_won", "margin", "spread", "pick_side", "ens_recommendation",
    "ens_probability", "pick_result", "elo_updated",
]


# ═══════════════════════════════════════════════════════════════════════════════
# RATINGS
# ═══════════════════════════════════════════════════════════════════════════════

def apply_final_results(
    games: Iterable[GameData],
    store: RatingStore,
    k_factor: float = ELO_K_FACTOR,
    home_advantage: float = ELO_HOME_ADVANTAGE,
) -> Dict[str, bool]:
    """
    Update the store from every final game. Returns game_id → whether the
    result is reflected in the ratings. A game already in
    store.applied_games is reported True without being applied again.
    """
    applied: Dict[str, bool] = {}
    for game in games:
        if not game.is_final:
            continue
        if game.game_id in store.applied_games:
            log.debug(f"{game.game_id} already applied — ratings unchanged")
            applied[game.game_id] = True
            continue
        margin = game.home_score - game.away_score
        if margin == 0:
            log.info(f"{game.game_id} ended level — ratings unchanged")
            applied[game.game_id] = False
            continue
        updated = update_elo(
            store, game.home_team, game.away_team,
            home_won          = margin > 0,
            margin_of_victory = abs(margin),
            k_factor          = k_factor,
            home_advantage    = home_advantage,
        )
        if updated:
            with store.lock:
                store.applied_games.add(game.game_id)
        else:
            log.warning(f"{game.game_id}: {game.away_team} @ {game.home_team} "
                        f"not in {store.league or 'rating'} table — skipped")
        applied[game.game_id] = updated

    n_up = sum(applied.values())
    log.info(f"Applied {n_up}/{len(applied)} final results to ratings")
    return applied


# ═══════════════════════════════════════════════════════════════════════════════
# GRADING
# ═══════════════════════════════════════════════════════════════════════════════

def pick_side(recommendation: str) -> Optional[str]:
    if recommendation in ACTIONABLE:
        return HOME
    if recommendation == FADE:
        return AWAY
    return None


def grade_ats(side: Optional[str], margin: float, spread: float) -> str:
    """WIN / LOSS / PUSH for the side taken, "" when no pick."""
    if side is None:
        return ""
    cover = margin + spread
    if cover == 0:
        return PUSH
    home_covered = cover > 0
    if side == HOME:
        return WIN if home_covered else LOSS
    return LOSS if home_covered else WIN


def grade_picks(
    games: Iterable[GameData],
    pick_sheet: pd.DataFrame,
    elo_updates: Optional[Dict[str, bool]] = None,
) -> pd.DataFrame:
    """
    Match pick-sheet rows to final games by game_id and grade them.
    Picks whose game is not final yet are left out.
    """
    elo_updates = elo_updates or {}
    finals = {g.game_id: g for g in games if g.is_final}
    if pick_sheet is None or pick_sheet.empty or not finals:
        return pd.DataFrame(columns=RESULTS_LOG_COLUMNS)

    rows = []
    for _, pick in pick_sheet.iterrows():
        game = finals.get(str(pick.get("game_id", "")))
        if game is None:
            continue
        rec    = str(pick.get("ens_recommendation", "") or "")
        side   = pick_side(rec)
        margin = game.home_score - game.away_score
        rows.append({
            "game_id":            game.game_id,
            "home_team":          game.home_team,
            "away_team":          game.away_team,
            "home_score":         game.home_score,
            "away_score":         game.away_score,
            "home_won":           int(margin > 0),
            "margin":             margin,
            "spread":             game.spread,
            "pick_side":          side or "",
            "ens_recommendation": rec,
            "ens_probability":    pick.get("ens_probability"),
            "pick_result":        grade_ats(side, margin, game.spread),
            "elo_updated":        int(elo_updates.get(game.game_id, False)),
        })

    return pd.DataFrame(rows, columns=RESULTS_LOG_COLUMNS)


def summarize_results(log_df: pd.DataFrame) -> pd.DataFrame:
    """W / L / P and win% (pushes excluded) per recommendation."""
    cols = ["ens_recommendation", "picks", "wins", "losses", "pushes", "win_pct"]
    if log_df is None or log_df.empty:
        return pd.DataFrame(columns=cols)
    graded = log_df[log_df["pick_result"].isin([WIN, LOSS, PUSH])]
    rows = []
    for rec, grp in graded.groupby("ens_recommendation"):
        wins   = int((grp["pick_result"] == WIN).sum())
        losses = int((grp["pick_result"] == LOSS).sum())
        pushes = int((grp["pick_result"] == PUSH).sum())
        decided = wins + losses
        rows.append({
            "ens_recommendation": rec,
            "picks":   len(grp),
            "wins":    wins,
            "losses":  losses,
            "pushes":  pushes,
            "win_pct": round(wins / decided * 100, 1) if decided else 0.0,
        })
    return pd.DataFrame(rows, columns=cols)


# ═══════════════════════════════════════════════════════════════════════════════
# PERSISTENCE
# ═══════════════════════════════════════════════════════════════════════════════

def append_results_log(graded: pd.DataFrame, path: Path = RESULTS_LOG_CSV) -> pd.DataFrame:
    """Append graded rows, replacing any earlier rows for the same game_id."""
    path = Path(path)
    validate_output(graded, "results_log")
    if path.exists() and path.stat().st_size > 0:
        existing = pd.read_csv(path, dtype={"game_id": str})
        existing = existing[~existing["game_id"].isin(graded["game_id"])]
        combined = pd.concat([existing, graded], ignore_index=True)
    else:
        combined = graded
    path.parent.mkdir(parents=True, exist_ok=True)
    combined.to_csv(path, index=False)
    log.info(f"Results log: {len(graded)} new / {len(combined)} total → {path}")
    return combined


def logged_rating_updates(path: Path = RESULTS_LOG_CSV) -> Set[str]:
    """game_ids the results log marks with elo_updated=1."""
    path = Path(path)
    if not path.exists() or path.stat().st_size == 0:
        return set()
    logged = pd.read_csv(path, dtype={"game_id": str})
    if "elo_updated" not in logged.columns:
        return set()
    done = logged[logged["elo_updated"].fillna(0).astype(int) == 1]
    return set(done["game_id"])


def process_results(
    games: List[GameData],
    store: RatingStore,
    pick_sheet: pd.DataFrame,
    log_path: Path = RESULTS_LOG_CSV,
    ratings_path: Path = ELO_RATINGS_CSV,
    thresholds: Optional[Dict[str, float]] = None,
) -> pd.DataFrame:
    """
    apply_final_results → grade_picks → append log → persist ratings.
    Games the log already records as applied are not fed to the store
    again, so re-running a day's finals is safe.
    """
    t = thresholds if thresholds is not None else load_threshold_overrides()
    store.applied_games.update(logged_rating_updates(log_path))
    updates = apply_final_results(
        games, store,
        k_factor       = t["elo_k_factor"],
        home_advantage = t["elo_home_advantage"],
    )
    graded  = grade_picks(games, pick_sheet, updates)
    if not graded.empty:
        append_results_log(graded, log_path)
    store.save_csv(ratings_path)
    return graded
