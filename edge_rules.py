"""
Edge Pipeline — Situational Rules Engine
edge_rules.py

Deterministic handicapping filter applied on top of a model probability.

RULE BATTERY (evaluated in this order, each fires at most once)
─────────────────────────────────────────────────────────────────────────────
  REST_DISADVANTAGE   0 days rest vs 2+ for the opponent     −0.05 critical
                      home on 0 vs away on 1                  −0.03 warning
  PUBLIC_FADE         >70% public, no sharp confirmation       auto-block
  TRAVEL_B2B          travelled on the second night           −0.04 critical
  FATIGUE_SEVERE      |fatigue score| ≥ 7                      −0.03 critical
  FATIGUE_MODERATE    |fatigue score| ≥ 4                      −0.02 warning
  CIRCADIAN           west coast road team, early tip          −0.02 warning
  SCHEDULE_3_IN_4     third game in four nights                −0.02 warning
  SCHEDULE_4_IN_5     fourth game in five nights               −0.03 critical

Adjustments are SUMMED (stacked red flags compound), added to the base
probability and clamped to [0, 1]. Every violation is kept on the result for
audit. An auto-block forces BLOCKED no matter where the probability lands.

Recommendation bands (when not blocked):
  ≥ 0.58 BET   ≥ 0.54 LEAN   ≤ 0.42 FADE   otherwise PASS
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np

from edge_config import (
    BET_PROB_MIN,
    FADE_PROB_MAX,
    FATIGUE_MODERATE_THRESHOLD,
    FATIGUE_SEVERE_THRESHOLD,
    LEAN_PROB_MIN,
    PUBLIC_FADE_THRESHOLD,
    REST_CRITICAL_DIFF,
)
from edge_models import (
    BET,
    BLOCKED,
    FADE,
    GameContext,
    LEAN,
    PASS,
    SPOT_3_IN_4,
    SPOT_4_IN_5,
    SPOT_TRAVEL_B2B,
)

log = logging.getLogger(__name__)

WARNING    = "warning"
CRITICAL   = "critical"
AUTO_BLOCK = "auto-block"
SEVERITIES = (WARNING, CRITICAL, AUTO_BLOCK)


@dataclass(frozen=True)
class RuleViolation:
    rule:       str
    team:       str      # "home" / "away"
    adjustment: float
    severity:   str
    message:    str


@dataclass(frozen=True)
class RulesResult:
    violations:           Tuple[RuleViolation, ...]
    adjusted_probability: float
    recommendation:       str
    summary:              str

    @property
    def blocked(self) -> bool:
        return self.recommendation == BLOCKED


@dataclass
class RulesConfig:
    public_fade_threshold: float = PUBLIC_FADE_THRESHOLD
    rest_critical_diff:    int = REST_CRITICAL_DIFF
    fatigue_severe:        float = FATIGUE_SEVERE_THRESHOLD
    fatigue_moderate:      float = FATIGUE_MODERATE_THRESHOLD
    bet_min:               float = BET_PROB_MIN
    lean_min:              float = LEAN_PROB_MIN
    fade_max:              float = FADE_PROB_MAX


RuleCheck = Callable[[GameContext, RulesConfig], Optional[RuleViolation]]


# ═══════════════════════════════════════════════════════════════════════════════
# RULES
# ═══════════════════════════════════════════════════════════════════════════════

def rest_disadvantage(ctx: GameContext, cfg: RulesConfig) -> Optional[RuleViolation]:
    if ctx.home_rest_days is None or ctx.away_rest_days is None:
        return None
    home, away = ctx.home_rest_days, ctx.away_rest_days

    if home == 0 and away >= cfg.rest_critical_diff:
        return RuleViolation("REST_DISADVANTAGE", "home", -0.05, CRITICAL,
                             f"Home on 0 days rest vs {away}+ for away")
    if away == 0 and home >= cfg.rest_critical_diff:
        return RuleViolation("REST_DISADVANTAGE", "away", -0.05, CRITICAL,
                             f"Away on 0 days rest vs {home}+ for home")
    if home == 0 and away >= 1:
        return RuleViolation("REST_DISADVANTAGE", "home", -0.03, WARNING,
                             "Home on back-to-back")
    return None


def public_fade(ctx: GameContext, cfg: RulesConfig) -> Optional[RuleViolation]:
    if ctx.public_bet_pct is None:
        return None
    if ctx.public_bet_pct > cfg.public_fade_threshold and not ctx.sharp_action:
        # Public money usually sits on the home favourite
        return RuleViolation("PUBLIC_FADE", "home", 0.0, AUTO_BLOCK,
                             f"{ctx.public_bet_pct:g}% public with no sharp confirmation - FADE")
    return None


def travel_back_to_back(ctx: GameContext, cfg: RulesConfig) -> Optional[RuleViolation]:
    if ctx.schedule_spot == SPOT_TRAVEL_B2B:
        return RuleViolation("TRAVEL_B2B", "away", -0.04, CRITICAL,
                             "Cross-country travel back-to-back penalty")
    return None


def fatigue_penalty(ctx: GameContext, cfg: RulesConfig) -> Optional[RuleViolation]:
    if ctx.fatigue_score is None:
        return None
    score = abs(ctx.fatigue_score)
    side  = "away" if ctx.fatigue_score > 0 else "home"

    if score >= cfg.fatigue_severe:
        return RuleViolation("FATIGUE_SEVERE", side, -0.03, CRITICAL,
                             f"Severe fatigue disadvantage (score: {ctx.fatigue_score:g})")
    if score >= cfg.fatigue_moderate:
        return RuleViolation("FATIGUE_MODERATE", side, -0.02, WARNING,
                             f"Moderate fatigue disadvantage (score: {ctx.fatigue_score:g})")
    return None


def circadian_penalty(ctx: GameContext, cfg: RulesConfig) -> Optional[RuleViolation]:
    if ctx.circadian_disadvantage == "AWAY" and ctx.is_early_game:
        return RuleViolation("CIRCADIAN", "away", -0.02, WARNING,
                             "West coast team with early eastern game")
    return None


def schedule_spot_penalty(ctx: GameContext, cfg: RulesConfig) -> Optional[RuleViolation]:
    if ctx.schedule_spot == SPOT_3_IN_4:
        return RuleViolation("SCHEDULE_3_IN_4", "away", -0.02, WARNING,
                             "3 games in 4 nights - fatigue risk")
    if ctx.schedule_spot == SPOT_4_IN_5:
        return RuleViolation("SCHEDULE_4_IN_5", "away", -0.03, CRITICAL,
                             "4 games in 5 nights - severe fatigue")
    return None


ALL_RULES: List[RuleCheck] = [
    rest_disadvantage,
    public_fade,
    travel_back_to_back,
    fatigue_penalty,
    circadian_penalty,
    schedule_spot_penalty,
]


# ═══════════════════════════════════════════════════════════════════════════════
# ENGINE
# ═══════════════════════════════════════════════════════════════════════════════

class RulesEngine:
    """
    Usage:
        result = RulesEngine().evaluate(ctx, base_probability=0.57)
        if result.blocked: ...
    """

    def __init__(self, config: RulesConfig = None, rules: List[RuleCheck] = None):
        self.config = config or RulesConfig()
        self.rules  = list(rules) if rules is not None else list(ALL_RULES)

    def evaluate(self, ctx: GameContext, base_probability: float) -> RulesResult:
        violations: List[RuleViolation] = []
        for rule in self.rules:
            violation = rule(ctx, self.config)
            if violation is not None:
                log.debug(f"{ctx.away_team} @ {ctx.home_team}: {violation.rule} "
                          f"[{violation.severity}] {violation.adjustment:+.2f}")
                violations.append(violation)

        total_adj = sum(v.adjustment for v in violations)
        # banded on the same rounded value that is reported
        adjusted  = round(float(np.clip(base_probability + total_adj, 0.0, 1.0)), 3)
        blocked   = any(v.severity == AUTO_BLOCK for v in violations)

        recommendation = BLOCKED if blocked else self.prob_to_recommendation(adjusted)
        if blocked:
            log.warning(f"{ctx.away_team} @ {ctx.home_team} BLOCKED by rules")

        return RulesResult(
            violations           = tuple(violations),
            adjusted_probability = adjusted,
            recommendation       = recommendation,
            summary              = self._summarize(violations, adjusted, blocked),
        )

    def prob_to_recommendation(self, prob: float) -> str:
        if prob >= self.config.bet_min:
            return BET
        if prob >= self.config.lean_min:
            return LEAN
        if prob <= self.config.fade_max:
            return FADE
        return PASS

    @staticmethod
    def _summarize(violations: List[RuleViolation], adjusted: float, blocked: bool) -> str:
        if blocked:
            reason = next(v.message for v in violations if v.severity == AUTO_BLOCK)
            return f"RULES: BLOCKED | {reason}"
        if not violations:
            return "RULES: CLEAR | No violations detected"
        critical = sum(1 for v in violations if v.severity == CRITICAL)
        warnings = sum(1 for v in violations if v.severity == WARNING)
        return f"RULES: {critical} critical, {warnings} warnings | Adjusted: {adjusted * 100:.1f}%"


def format_for_context(result: RulesResult) -> str:
    lines = ["=== RULES CHECK ===", result.summary]
    if result.violations:
        lines.append("Violations:")
        for v in result.violations:
            tag = {CRITICAL: "[!]", AUTO_BLOCK: "[X]"}.get(v.severity, "[~]")
            lines.append(f"  {tag} [{v.team.upper()}] {v.rule}: {v.message}")
    return "\n".join(lines)


def is_blocked(result: RulesResult) -> bool:
    return result.recommendation == BLOCKED


def get_total_penalty(result: RulesResult) -> float:
    """Sum of absolute adjustments across every violation."""
    return round(sum(abs(v.adjustment) for v in result.violations), 3)
