"""
Edge Pipeline — Ensemble Voter
edge_ensemble.py

Three independent votes, one gated recommendation.

ENSEMBLE MEMBERS
─────────────────────────────────────────────────────────────────────────────
bayes   External Bradley-Terry win probability. Optional: when the feed is
        down the ensemble runs on two votes and every count below is taken
        over that reduced set.
elo     edge_elo.predict_game — votes HOME / AWAY / NEUTRAL.
rules   edge_rules.RulesEngine — votes BET / LEAN / PASS / FADE / BLOCKED.

Each vote carries a confidence tier from its distance to a coin flip:
edge > 0.15 high, > 0.08 medium, otherwise low. A BLOCKED rules vote is
always high.

DECISION
─────────────────────────────────────────────────────────────────────────────
Any BLOCKED vote ends the vote: BLOCKED, consensus, final probability = the
rules probability. Nothing else is consulted.

Otherwise votes are tallied into bet (BET/HOME), pass (PASS/NEUTRAL) and
fade (FADE/AWAY). LEAN counts in none of them. Final probability is the
plain mean of the vote probabilities. Top-down:

  bet ≥ 2 and mean > 0.60   STRONG_BET
  bet ≥ 2                   BET
  fade ≥ 2                  FADE
  bet == 1 and pass ≤ 1     LEAN
  otherwise                 PASS

consensus is True whenever any tally reaches 2, whichever rung fired. That
means consensus can sit next to LEAN or PASS (two PASS votes is consensus
on passing). Downstream reporting relies on this.

Usage:
    from edge_ensemble import EnsembleVoter
    result = EnsembleVoter().vote(0.65, "BET", 0.62, "HOME", 0.60, "BET")
    result.final_recommendation   # → "STRONG_BET"
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import numpy as np

from edge_config import (
    HIGH_CONFIDENCE_EDGE,
    LOCAL_TZ,
    MEDIUM_CONFIDENCE_EDGE,
    STRONG_BET_THRESHOLD,
)
from edge_models import (
    ACTIONABLE,
    AWAY,
    BET,
    BLOCKED,
    FADE,
    HOME,
    LEAN,
    NEUTRAL,
    PASS,
    STRONG_BET,
)

log = logging.getLogger(__name__)

MODEL_NAMES = ["bayes", "elo", "rules"]

BET_TAGS  = (BET, HOME)
PASS_TAGS = (PASS, NEUTRAL)
FADE_TAGS = (FADE, AWAY)

CONFIDENCE_SCORES = {"high": 1.0, "medium": 0.6, "low": 0.3}


# ═══════════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ModelVote:
    """One model's say in the ensemble."""
    model:          str      # bayes / elo / rules
    probability:    float
    recommendation: str
    confidence:     str      # high / medium / low


@dataclass(frozen=True)
class EnsembleResult:
    """Terminal output of one voting cycle."""
    votes:                Tuple[ModelVote, ...]
    consensus:            bool
    final_probability:    float
    final_recommendation: str
    agreement:            str
    summary:              str
    voted_at:             str = ""

    @property
    def actionable(self) -> bool:
        return self.final_recommendation in ACTIONABLE

    def to_flat_dict(self) -> Dict:
        """Flatten to one CSV row."""
        row = {
            "ens_recommendation": self.final_recommendation,
            "ens_probability":    self.final_probability,
            "ens_consensus":      int(self.consensus),
            "ens_agreement":      self.agreement,
            "ens_vote_count":     len(self.votes),
            "voted_at":           self.voted_at,
        }
        for name in MODEL_NAMES:
            row[f"{name}_prob"] = None
            row[f"{name}_rec"]  = ""
            row[f"{name}_conf"] = ""
        for v in self.votes:
            row[f"{v.model}_prob"] = v.probability
            row[f"{v.model}_rec"]  = v.recommendation
            row[f"{v.model}_conf"] = v.confidence
        return row


@dataclass
class EnsembleConfig:
    """
    Voting thresholds. Defaults come from edge_config so an env override
    (EDGE_STRONG_BET_PROB) reaches every voter built without a config.
    """
    strong_bet_threshold:   float = STRONG_BET_THRESHOLD
    high_confidence_edge:   float = HIGH_CONFIDENCE_EDGE
    medium_confidence_edge: float = MEDIUM_CONFIDENCE_EDGE
    min_votes_for_consensus: int = 2


# ═══════════════════════════════════════════════════════════════════════════════
# VOTER
# ═══════════════════════════════════════════════════════════════════════════════

def _clamp(p: float) -> float:
    return float(np.clip(p, 0.0, 1.0))


class EnsembleVoter:
    """Combines bayes / elo / rules votes into one recommendation."""

    def __init__(self, config: EnsembleConfig = None):
        self.config = config or EnsembleConfig()

    def get_confidence(self, prob: float) -> str:
        # rounded so 0.35 and 0.65 sit on the boundary, not past it
        edge = round(abs(prob - 0.5), 9)
        if edge > self.config.high_confidence_edge:
            return "high"
        if edge > self.config.medium_confidence_edge:
            return "medium"
        return "low"

    def vote(
        self,
        bayes_prob: Optional[float],
        bayes_rec:  Optional[str],
        elo_prob:   float,
        elo_rec:    str,
        rules_prob: float,
        rules_rec:  str,
    ) -> EnsembleResult:
        """
        Parameters
        ----------
        bayes_prob, bayes_rec : external Bayesian vote; either None drops it
        elo_prob, elo_rec     : Elo home win probability and HOME/AWAY/NEUTRAL
        rules_prob, rules_rec : rules-adjusted probability and band / BLOCKED
        """
        votes: List[ModelVote] = []
        if bayes_prob is not None and bayes_rec is not None:
            p = _clamp(bayes_prob)
            votes.append(ModelVote("bayes", p, bayes_rec, self.get_confidence(p)))

        p = _clamp(elo_prob)
        votes.append(ModelVote("elo", p, elo_rec, self.get_confidence(p)))

        p = _clamp(rules_prob)
        rules_conf = "high" if rules_rec == BLOCKED else self.get_confidence(p)
        votes.append(ModelVote("rules", p, rules_rec, rules_conf))

        voted_at = datetime.now(LOCAL_TZ).isoformat()

        # ── Hard block short-circuit ──────────────────────────────────────────
        if any(v.recommendation == BLOCKED for v in votes):
            log.info("Ensemble BLOCKED — rules override")
            return EnsembleResult(
                votes                = tuple(votes),
                consensus            = True,
                final_probability    = round(_clamp(rules_prob), 3),
                final_recommendation = BLOCKED,
                agreement            = "BLOCKED by rules",
                summary              = "ENSEMBLE: BLOCKED - rules override",
                voted_at             = voted_at,
            )

        # ── Tally ─────────────────────────────────────────────────────────────
        bet_votes  = sum(1 for v in votes if v.recommendation in BET_TAGS)
        pass_votes = sum(1 for v in votes if v.recommendation in PASS_TAGS)
        fade_votes = sum(1 for v in votes if v.recommendation in FADE_TAGS)

        n        = len(votes)
        avg_prob = round(_clamp(float(np.mean([v.probability for v in votes]))), 3)
        need     = self.config.min_votes_for_consensus
        consensus = bet_votes >= need or pass_votes >= need or fade_votes >= need

        # ── Decision ladder ───────────────────────────────────────────────────
        if bet_votes >= need and avg_prob > self.config.strong_bet_threshold:
            final     = STRONG_BET
            agreement = f"{bet_votes}/{n} models agree BET"
        elif bet_votes >= need:
            final     = BET
            agreement = f"{bet_votes}/{n} models agree BET"
        elif fade_votes >= need:
            final     = FADE
            agreement = f"{fade_votes}/{n} models agree FADE"
        elif bet_votes == 1 and pass_votes <= 1:
            final     = LEAN
            agreement = f"Split decision - {bet_votes} BET, {pass_votes} PASS"
        else:
            final     = PASS
            agreement = f"No consensus - {bet_votes} BET, {pass_votes} PASS, {fade_votes} FADE"

        summary = f"ENSEMBLE: {final} ({avg_prob * 100:.1f}%) | {agreement}"
        log.debug(summary)

        return EnsembleResult(
            votes                = tuple(votes),
            consensus            = consensus,
            final_probability    = avg_prob,
            final_recommendation = final,
            agreement            = agreement,
            summary              = summary,
            voted_at             = voted_at,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# HELPERS & OUTPUT
# ═══════════════════════════════════════════════════════════════════════════════

def should_bet(result: EnsembleResult) -> bool:
    return result.final_recommendation in ACTIONABLE


def confidence_to_score(confidence: str) -> float:
    return CONFIDENCE_SCORES[confidence]


def format_for_context(result: EnsembleResult) -> str:
    lines = [result.summary]
    for v in result.votes:
        lines.append(f"  {v.model.upper()}: {v.probability * 100:.1f}% | "
                     f"{v.recommendation} ({v.confidence})")
    return "\n".join(lines)
