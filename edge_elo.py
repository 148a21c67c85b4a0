"""
Edge Pipeline — Elo Rating Model
edge_elo.py

Team power ratings → head-to-head win probability.

RATING STORE
─────────────────────────────────────────────────────────────────────────────
Ratings live in an explicit RatingStore rather than module state. The
orchestrator owns its lifecycle: seed it once per league with
RatingStore.for_league(), reload it from elo_ratings.csv with from_csv(),
persist it with save_csv(). Updates are read-modify-write on two entries,
so they run under the store's lock.

NAME RESOLUTION
─────────────────────────────────────────────────────────────────────────────
Ingestion feeds send "Boston Celtics", "celtics", "BOS Celtics". Lookup is:
  1. case-insensitive exact key
  2. substring containment either way ("boston celtics" ⊃ "celtics")
  3. BASE_ELO default
When several keys contain / are contained by the name, the longest key wins
and ties go alphabetical, so resolution never depends on insertion order.

MATH
─────────────────────────────────────────────────────────────────────────────
  P(home) = 1 / (1 + 10^((R_away − (R_home + HFA)) / 400))
  margin  = (R_home + HFA − R_away) / 25
  Δ       = K × min(2, 1 + 0.5·log10(|MOV| + 1)) × (actual − expected)
"""

import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Set

import pandas as pd

from edge_config import (
    BASE_ELO,
    ELO_AWAY_PICK_PROB,
    ELO_HOME_ADVANTAGE,
    ELO_HOME_PICK_PROB,
    ELO_K_FACTOR,
    ELO_PER_MARGIN_POINT,
    ELO_SCALE,
    LOCAL_TZ,
    MOV_MULTIPLIER_CAP,
)
from edge_models import AWAY, HOME, NEUTRAL
from edge_output_schemas import write_output

log = logging.getLogger(__name__)

# ── Preseason seeds (prior-season finish) ────────────────────────────────────
NBA_SEED_RATINGS: Dict[str, float] = {
    # Elite
    "Celtics": 1650, "Thunder": 1620, "Nuggets": 1600,
    # Contenders
    "Bucks": 1580, "Timberwolves": 1575, "Cavaliers": 1570,
    "Knicks": 1560, "Suns": 1550, "Mavericks": 1545,
    # Playoff
    "Clippers": 1530, "Pacers": 1525, "Heat": 1520,
    "Magic": 1515, "Kings": 1510, "76ers": 1505,
    "Pelicans": 1500, "Lakers": 1495,
    # Bubble
    "Warriors": 1480, "Hawks": 1475, "Bulls": 1470,
    "Rockets": 1465, "Grizzlies": 1460,
    # Rebuilding
    "Jazz": 1450, "Raptors": 1445, "Nets": 1440,
    "Spurs": 1435, "Trail Blazers": 1430, "Hornets": 1425,
    "Pistons": 1420, "Wizards": 1410,
}

NFL_SEED_RATINGS: Dict[str, float] = {
    "Chiefs": 1650, "Eagles": 1620, "49ers": 1610, "Lions": 1600,
    "Bills": 1580, "Ravens": 1575, "Cowboys": 1560, "Dolphins": 1550,
    "Bengals": 1545, "Texans": 1540, "Packers": 1535, "Steelers": 1525,
    "Browns": 1515, "Rams": 1510, "Seahawks": 1505, "Jaguars": 1500,
    "Jets": 1495, "Chargers": 1490, "Broncos": 1485, "Vikings": 1480,
    "Saints": 1470, "Colts": 1465, "Falcons": 1460, "Raiders": 1455,
    "Bears": 1450, "Titans": 1445, "Buccaneers": 1440, "Giants": 1435,
    "Cardinals": 1425, "Patriots": 1420, "Commanders": 1415, "Panthers": 1410,
}

LEAGUE_SEEDS: Dict[str, Dict[str, float]] = {
    "NBA": NBA_SEED_RATINGS,
    "NFL": NFL_SEED_RATINGS,
}


# ═══════════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class TeamRating:
    """One row of the rating table. Mutated only through RatingStore."""
    team:         str
    rating:       float = BASE_ELO
    games:        int = 0
    last_updated: str = ""


@dataclass(frozen=True)
class EloResult:
    home_elo:        float
    away_elo:        float
    home_win_prob:   float
    expected_margin: float     # positive = home by that many
    recommendation:  str       # HOME / AWAY / NEUTRAL


# ═══════════════════════════════════════════════════════════════════════════════
# RATING STORE
# ═══════════════════════════════════════════════════════════════════════════════

class RatingStore:
    """
    Team-name → rating table with deterministic fuzzy lookup.

    Usage:
        store = RatingStore.for_league("NBA")
        store.rating_for("Boston Celtics")   # → 1650.0
    """

    def __init__(self, league: str = "", default_rating: float = BASE_ELO):
        self.league = league
        self.default_rating = default_rating
        self._ratings: Dict[str, TeamRating] = {}
        self.lock = threading.Lock()
        # game_ids whose final score is already in the ratings
        self.applied_games: Set[str] = set()

    @classmethod
    def for_league(cls, league: str) -> "RatingStore":
        store = cls(league=league.upper())
        seeds = LEAGUE_SEEDS.get(store.league)
        if seeds is None:
            log.warning(f"No seed ratings for league {league!r} — every team at {BASE_ELO:.0f}")
            return store
        for team, rating in seeds.items():
            store.register(team, rating)
        log.debug(f"Seeded {len(store)} {store.league} ratings")
        return store

    def __len__(self) -> int:
        return len(self._ratings)

    def __contains__(self, name: str) -> bool:
        return self.resolve(name) is not None

    def register(
        self,
        team: str,
        rating: float = BASE_ELO,
        games: int = 0,
        last_updated: Optional[str] = None,
    ) -> None:
        self._ratings[team.strip().lower()] = TeamRating(
            team=team.strip(),
            rating=float(rating),
            games=int(games),
            last_updated=last_updated or datetime.now(LOCAL_TZ).isoformat(),
        )

    def resolve(self, name: str) -> Optional[str]:
        """Registry key for a team name, or None if nothing matches."""
        normalized = (name or "").strip().lower()
        if not normalized:
            return None
        if normalized in self._ratings:
            return normalized
        matches = [
            key for key in self._ratings
            if key in normalized or normalized in key
        ]
        if not matches:
            return None
        if len(matches) > 1:
            log.debug(f"Ambiguous team name {name!r} → {sorted(matches)}")
        return min(matches, key=lambda k: (-len(k), k))

    def get(self, name: str) -> Optional[TeamRating]:
        key = self.resolve(name)
        return self._ratings.get(key) if key else None

    def rating_for(self, name: str) -> float:
        record = self.get(name)
        return record.rating if record else self.default_rating

    def all_ratings(self) -> List[TeamRating]:
        """All ratings, strongest first."""
        return sorted(self._ratings.values(), key=lambda r: r.rating, reverse=True)

    def top_teams(self, n: int) -> List[TeamRating]:
        return self.all_ratings()[:n]

    # ── Persistence ───────────────────────────────────────────────────────────

    def to_frame(self) -> pd.DataFrame:
        rows = [
            {"league": self.league, "team": r.team, "rating": round(r.rating, 2),
             "games": r.games, "last_updated": r.last_updated}
            for r in self.all_ratings()
        ]
        return pd.DataFrame(rows, columns=["league", "team", "rating", "games", "last_updated"])

    def save_csv(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self.lock:
            df = self.to_frame()
        write_output(df, "elo_ratings", path)

    @classmethod
    def from_csv(cls, path: Path, league: str = "") -> "RatingStore":
        df = pd.read_csv(path)
        if not league and "league" in df.columns and len(df):
            league = str(df["league"].iloc[0])
        store = cls(league=league.upper())
        for _, row in df.iterrows():
            games   = row.get("games")
            updated = row.get("last_updated")
            store.register(
                str(row["team"]),
                float(row["rating"]),
                int(games) if pd.notna(games) else 0,
                str(updated) if pd.notna(updated) else None,
            )
        log.info(f"Loaded {len(store)} ratings ← {path}")
        return store


# ═══════════════════════════════════════════════════════════════════════════════
# ELO MATH
# ═══════════════════════════════════════════════════════════════════════════════

def expected_win_probability(rating_a: float, rating_b: float) -> float:
    """P(A beats B) = 1 / (1 + 10^((Rb − Ra) / 400))"""
    return 1.0 / (1.0 + math.pow(10.0, (rating_b - rating_a) / ELO_SCALE))


def elo_to_margin(elo_diff: float) -> float:
    return elo_diff / ELO_PER_MARGIN_POINT


def mov_multiplier(margin: float) -> float:
    """Blowouts count more, capped at 2×."""
    return min(MOV_MULTIPLIER_CAP, 1.0 + math.log10(abs(margin) + 1.0) * 0.5)


def predict_game(
    store: RatingStore,
    home_team: str,
    away_team: str,
    home_advantage: float = ELO_HOME_ADVANTAGE,
) -> EloResult:
    """Head-to-head prediction with the home offset applied."""
    home_elo = store.rating_for(home_team)
    away_elo = store.rating_for(away_team)

    adjusted_home = home_elo + home_advantage
    home_prob     = expected_win_probability(adjusted_home, away_elo)
    margin        = elo_to_margin(adjusted_home - away_elo)

    if home_prob > ELO_HOME_PICK_PROB:
        recommendation = HOME
    elif home_prob < ELO_AWAY_PICK_PROB:
        recommendation = AWAY
    else:
        recommendation = NEUTRAL

    return EloResult(
        home_elo        = home_elo,
        away_elo        = away_elo,
        home_win_prob   = home_prob,
        expected_margin = round(margin, 1),
        recommendation  = recommendation,
    )


def update_elo(
    store: RatingStore,
    home_team: str,
    away_team: str,
    home_won: bool,
    margin_of_victory: float = 0.0,
    k_factor: float = ELO_K_FACTOR,
    home_advantage: float = ELO_HOME_ADVANTAGE,
) -> bool:
    """
    Apply one final result. Zero-sum: home gains what away loses.
    Returns False (and changes nothing) when either team is unregistered.
    """
    with store.lock:
        home = store.get(home_team)
        away = store.get(away_team)
        if home is None or away is None:
            log.debug(f"update_elo skipped — unregistered team in {home_team!r} vs {away_team!r}")
            return False

        expected_home = expected_win_probability(home.rating + home_advantage, away.rating)
        actual_home   = 1.0 if home_won else 0.0
        change        = k_factor * mov_multiplier(margin_of_victory) * (actual_home - expected_home)

        stamp = datetime.now(LOCAL_TZ).isoformat()
        home.rating += change
        home.games  += 1
        home.last_updated = stamp
        away.rating -= change
        away.games  += 1
        away.last_updated = stamp

    log.debug(f"Elo {home.team} {change:+.1f} / {away.team} {-change:+.1f}")
    return True


def format_elo_context(result: EloResult, home_team: str, away_team: str) -> str:
    """One line for prompt context."""
    return (
        f"ELO: {home_team} {result.home_elo:.0f} vs {away_team} {result.away_elo:.0f} | "
        f"Predicted: {result.home_win_prob * 100:.1f}% HOME | "
        f"Margin: {result.expected_margin:+.1f} | "
        f"REC: {result.recommendation}"
    )
