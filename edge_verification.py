"""
Edge Pipeline — Verification Gate
edge_verification.py

generate → fact-check → regenerate, with a hard retry budget.

The writer is an injected callable:

    generate(game, analysis, prior_issues) -> CandidateArtifact

prior_issues is every issue reported so far for this game, oldest first,
so the writer can correct all of them at once. One first attempt plus at
most max_retries regenerations. If nothing passes the outcome is suppressed:
released=False and artifact=None. An artifact that failed its last check is
never handed back.

Writer exceptions propagate. A batch caller (edge_pipeline.run_slate) logs
them per game and moves on.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

import pandas as pd

from edge_config import MAX_VERIFY_RETRIES
from edge_fact_checker import FactChecker
from edge_models import CandidateArtifact, GameData, ValidationResult

log = logging.getLogger(__name__)

Generator = Callable[[GameData, Any, List[str]], CandidateArtifact]


@dataclass(frozen=True)
class VerificationAttempt:
    attempt:  int
    passed:   bool
    issues:   Tuple[str, ...]


@dataclass(frozen=True)
class VerificationOutcome:
    game_id:  str
    released: bool
    artifact: Optional[CandidateArtifact]
    attempts: Tuple[VerificationAttempt, ...] = field(default_factory=tuple)

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def all_issues(self) -> List[str]:
        return [issue for a in self.attempts for issue in a.issues]

    def to_log_rows(self) -> List[dict]:
        """One verification_log row per attempt."""
        return [
            {
                "game_id":     self.game_id,
                "attempt":     a.attempt,
                "passed":      int(a.passed),
                "issue_count": len(a.issues),
                "issues":      " | ".join(a.issues),
                "released":    int(self.released),
            }
            for a in self.attempts
        ]


class VerificationGate:
    """
    Usage:
        gate = VerificationGate()
        outcome = gate.run(writer, game, analysis)
        if outcome.released:
            publish(outcome.artifact)
    """

    def __init__(self, checker: FactChecker = None, max_retries: int = MAX_VERIFY_RETRIES):
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        self.checker     = checker or FactChecker()
        self.max_retries = max_retries

    def run(self, generate: Generator, game: GameData, analysis: Any = None) -> VerificationOutcome:
        prior_issues: List[str] = []
        attempts: List[VerificationAttempt] = []

        for attempt in range(1, self.max_retries + 2):
            artifact = generate(game, analysis, list(prior_issues))
            result: ValidationResult = self.checker.validate(artifact, game)
            attempts.append(VerificationAttempt(attempt, result.passed, result.issues))

            if result.passed:
                log.info(f"{game.game_id}: verified on attempt {attempt}")
                return VerificationOutcome(game.game_id, True, artifact, tuple(attempts))

            log.warning(f"{game.game_id}: attempt {attempt} failed verification — "
                        f"{'; '.join(result.issues)}")
            prior_issues.extend(result.issues)

        log.warning(f"{game.game_id}: retry budget exhausted after {len(attempts)} "
                    f"attempts — output suppressed")
        return VerificationOutcome(game.game_id, False, None, tuple(attempts))


def outcomes_to_frame(outcomes: List[VerificationOutcome]) -> pd.DataFrame:
    rows = [row for o in outcomes for row in o.to_log_rows()]
    return pd.DataFrame(rows, columns=[
        "game_id", "attempt", "passed", "issue_count", "issues", "released",
    ])
