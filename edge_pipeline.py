"""
Edge Pipeline — Slate Orchestrator
edge_pipeline.py

Sequences the components for one game or a whole slate:

  GameData ─┬─ predict_game ─────────────────────────┐
            ├─ build_game_context ── RulesEngine ────┤
            └─ VelocityTracker (line history)        ├─ EnsembleVoter
  bayes (optional, external) ────────────────────────┘        │
                                                   STRONG_BET / BET only
                                                              │
                                           VerificationGate(generate, game)
                                                              │
                                                  pick_sheet_latest.csv

The rules engine starts from the Bayesian probability when one is supplied,
otherwise from the Elo probability. Non-actionable games never reach the
writer. Velocity is telemetry: it is reported on the pick sheet but does
not move the vote.

run_slate() logs and skips a game that raises; analyze_game() propagates.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from edge_config import DRY_RUN, PARSE_VERSION, PICK_SHEET_CSV, load_threshold_overrides
from edge_elo import EloResult, RatingStore, predict_game
from edge_ensemble import EnsembleConfig, EnsembleResult, EnsembleVoter
from edge_models import GameContext, GameData
from edge_output_schemas import write_output
from edge_rules import RulesConfig, RulesEngine, RulesResult
from edge_temporal import (
    TeamSchedule,
    TemporalEngine,
    TemporalFactors,
    TZ_ZONES,
    build_game_context,
)
from edge_velocity import (
    LineSnapshot,
    VelocityAnalysis,
    VelocityConfig,
    VelocityTracker,
    snapshots_from_frame,
)
from edge_verification import (
    Generator,
    VerificationGate,
    VerificationOutcome,
    outcomes_to_frame,
)

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# COMPONENTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class PipelineComponents:
    """Everything analyze_game needs besides the game and the rating store."""
    rules:          RulesEngine
    voter:          EnsembleVoter
    tracker:        VelocityTracker
    gate:           VerificationGate
    home_advantage: float

    @classmethod
    def from_thresholds(cls, thresholds: Optional[Mapping[str, Any]] = None) -> "PipelineComponents":
        """Build from load_threshold_overrides() output (read fresh when None)."""
        t = dict(thresholds) if thresholds is not None else load_threshold_overrides()
        return cls(
            rules   = RulesEngine(RulesConfig(
                public_fade_threshold = t["public_fade_threshold"],
                rest_critical_diff    = int(t["rest_critical_diff"]),
            )),
            voter   = EnsembleVoter(EnsembleConfig(
                strong_bet_threshold = t["strong_bet_threshold"],
            )),
            tracker = VelocityTracker(VelocityConfig(
                steam_threshold     = t["steam_threshold"],
                late_move_threshold = t["late_move_threshold"],
            )),
            gate    = VerificationGate(),
            home_advantage = t["elo_home_advantage"],
        )


@dataclass(frozen=True)
class GameAnalysis:
    """One game's full evaluation, before any writing happens."""
    game:     GameData
    elo:      EloResult
    context:  GameContext
    temporal: Optional[TemporalFactors]
    rules:    RulesResult
    ensemble: EnsembleResult
    velocity: VelocityAnalysis
    base_probability: float

    @property
    def actionable(self) -> bool:
        return self.ensemble.actionable

    def to_flat_dict(self) -> Dict:
        g = self.game
        row = {
            "game_id":    g.game_id,
            "league":     g.league,
            "home_team":  g.home_team,
            "away_team":  g.away_team,
            "start_time": g.start_time.isoformat(),
            "spread":     g.spread,
            "total":      g.total,
            "elo_home":   round(self.elo.home_elo, 1),
            "elo_away":   round(self.elo.away_elo, 1),
            "elo_prob":   round(self.elo.home_win_prob, 3),
            "elo_rec":    self.elo.recommendation,
            "elo_margin": self.elo.expected_margin,
            "base_prob":  round(self.base_probability, 3),
            "rules_prob": self.rules.adjusted_probability,
            "rules_rec":  self.rules.recommendation,
            "rules_violation_count": len(self.rules.violations),
            "schedule_spot": self.context.schedule_spot or "",
            "fatigue_score": self.context.fatigue_score,
            "temporal_adj":  self.temporal.total_adjustment if self.temporal else None,
            "parse_version": PARSE_VERSION,
        }
        row.update(self.ensemble.to_flat_dict())
        row.update(self.velocity.to_flat_dict())
        return row


# ═══════════════════════════════════════════════════════════════════════════════
# SINGLE GAME
# ═══════════════════════════════════════════════════════════════════════════════

def _away_temporal_factors(
    game: GameData,
    home_schedule: Optional[TeamSchedule],
    away_schedule: Optional[TeamSchedule],
) -> Optional[TemporalFactors]:
    """Combined schedule adjustment for the travelling side."""
    if away_schedule is None:
        return None
    rest = TemporalEngine.analyze_rest(away_schedule.last_game, game.start_time, is_home=False)
    spot = TemporalEngine.detect_schedule_spot(
        away_schedule.previous_games, game.start_time, away_schedule.traveled,
    )
    circadian = 0.0
    if home_schedule is not None:
        local_hour = game.start_time.astimezone(TZ_ZONES[home_schedule.time_zone.upper()]).hour
        circadian = TemporalEngine.calculate_circadian_disruption(
            away_schedule.time_zone, home_schedule.time_zone, local_hour,
        )
    return TemporalEngine.get_temporal_factors(rest, spot, circadian)


def analyze_game(
    game: GameData,
    store: RatingStore,
    snapshots: Iterable[LineSnapshot] = (),
    home_schedule: Optional[TeamSchedule] = None,
    away_schedule: Optional[TeamSchedule] = None,
    bayes_prob: Optional[float] = None,
    bayes_rec: Optional[str] = None,
    components: Optional[PipelineComponents] = None,
) -> GameAnalysis:
    """
    Rate, contextualise, apply rules and vote for one game. The only I/O is
    reading threshold overrides when no components are passed in.
    """
    components = components or PipelineComponents.from_thresholds()

    elo      = predict_game(store, game.home_team, game.away_team,
                            home_advantage=components.home_advantage)
    context  = build_game_context(game, home_schedule, away_schedule)
    temporal = _away_temporal_factors(game, home_schedule, away_schedule)

    has_bayes = bayes_prob is not None and bayes_rec is not None
    base  = bayes_prob if has_bayes else elo.home_win_prob
    rules = components.rules.evaluate(context, base)

    ensemble = components.voter.vote(
        bayes_prob, bayes_rec,
        elo.home_win_prob, elo.recommendation,
        rules.adjusted_probability, rules.recommendation,
    )
    velocity = components.tracker.analyze(snapshots)

    log.info(f"{game.away_team} @ {game.home_team}: {ensemble.final_recommendation} "
             f"({ensemble.final_probability:.3f})")

    return GameAnalysis(
        game     = game,
        elo      = elo,
        context  = context,
        temporal = temporal,
        rules    = rules,
        ensemble = ensemble,
        velocity = velocity,
        base_probability = float(base),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# SLATE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class SlateResult:
    analyses: List[GameAnalysis] = field(default_factory=list)
    outcomes: Dict[str, VerificationOutcome] = field(default_factory=dict)
    failed:   List[str] = field(default_factory=list)

    @property
    def released(self) -> List[VerificationOutcome]:
        return [o for o in self.outcomes.values() if o.released]

    def pick_sheet(self) -> pd.DataFrame:
        rows = []
        for a in self.analyses:
            row = a.to_flat_dict()
            outcome = self.outcomes.get(a.game.game_id)
            row["released"]        = int(bool(outcome and outcome.released))
            row["verify_attempts"] = outcome.attempt_count if outcome else 0
            row["pick_text"]       = outcome.artifact.pick if outcome and outcome.artifact else ""
            rows.append(row)
        return pd.DataFrame(rows)

    def violations_frame(self) -> pd.DataFrame:
        rows = [
            {"game_id": a.game.game_id, "rule": v.rule, "team": v.team,
             "adjustment": v.adjustment, "severity": v.severity, "message": v.message}
            for a in self.analyses
            for v in a.rules.violations
        ]
        return pd.DataFrame(rows, columns=["game_id", "rule", "team", "adjustment", "severity", "message"])

    def velocity_frame(self) -> pd.DataFrame:
        rows = [{"game_id": a.game.game_id, **a.velocity.to_flat_dict()} for a in self.analyses]
        return pd.DataFrame(rows)

    def verification_frame(self) -> pd.DataFrame:
        return outcomes_to_frame(list(self.outcomes.values()))


def run_slate(
    games: Sequence[GameData],
    store: RatingStore,
    generate: Optional[Generator] = None,
    line_history: Optional[pd.DataFrame] = None,
    schedules: Optional[Mapping[str, TeamSchedule]] = None,
    bayes: Optional[Mapping[str, Tuple[float, str]]] = None,
    thresholds: Optional[Mapping[str, Any]] = None,
    out_path: Optional[Path] = None,
) -> SlateResult:
    """
    Evaluate every scheduled game on the slate.

    schedules maps team name → TeamSchedule; bayes maps game_id →
    (probability, recommendation). Actionable picks go through the
    verification gate when a writer is supplied. The pick sheet is written
    to out_path (default PICK_SHEET_CSV) unless DRY_RUN is set.
    """
    components = PipelineComponents.from_thresholds(thresholds)
    schedules  = schedules or {}
    bayes      = bayes or {}
    result     = SlateResult()

    for game in games:
        if game.is_final:
            log.debug(f"{game.game_id} already final — skipped")
            continue
        try:
            b_prob, b_rec = bayes.get(game.game_id, (None, None))
            snapshots = snapshots_from_frame(line_history, game.game_id) if line_history is not None else []
            analysis = analyze_game(
                game, store,
                snapshots     = snapshots,
                home_schedule = schedules.get(game.home_team),
                away_schedule = schedules.get(game.away_team),
                bayes_prob    = b_prob,
                bayes_rec     = b_rec,
                components    = components,
            )
            result.analyses.append(analysis)

            if analysis.actionable and generate is not None:
                result.outcomes[game.game_id] = components.gate.run(generate, game, analysis)
        except Exception as exc:
            log.error(f"Slate evaluation failed for {game.game_id} "
                      f"({game.away_team} @ {game.home_team}): {exc}")
            result.failed.append(game.game_id)

    n_act = sum(1 for a in result.analyses if a.actionable)
    log.info(f"Slate: {len(result.analyses)} analysed, {n_act} actionable, "
             f"{len(result.released)} released, {len(result.failed)} failed")

    if DRY_RUN:
        log.info("DRY_RUN set — pick sheet not written")
        return result

    if result.analyses:
        path = Path(out_path) if out_path is not None else PICK_SHEET_CSV
        path.parent.mkdir(parents=True, exist_ok=True)
        write_output(result.pick_sheet(), "pick_sheet", path)
    return result
