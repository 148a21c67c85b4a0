"""
tests/test_verification.py — Tests for edge_verification.py
"""

from datetime import datetime, timezone

import pytest

from edge_models import CandidateArtifact, GameData
from edge_verification import VerificationGate, outcomes_to_frame

TIP = datetime(2025, 1, 16, 0, 30, tzinfo=timezone.utc)

GOOD = CandidateArtifact(
    pick="Celtics -7.5",
    reasoning="Boston Celtics lay 7.5 points against a tired opponent.",
    broadcast="Celtics -7.5 tonight",
)
BAD = CandidateArtifact(
    pick="Celtics -3.5",
    reasoning="Boston Celtics lay 3.5 points, Tatum scoring 55 ppg.",
    broadcast="Celtics -3.5 tonight",
)


@pytest.fixture
def game():
    return GameData(
        game_id="g1", league="NBA",
        home_team="Boston Celtics", away_team="Los Angeles Lakers",
        start_time=TIP, spread=-7.5, total=224.5,
    )


class ScriptedWriter:
    """Returns artifacts in order and records the issues it was handed."""

    def __init__(self, *artifacts):
        self.artifacts = list(artifacts)
        self.calls = []

    def __call__(self, game, analysis, prior_issues):
        self.calls.append(list(prior_issues))
        return self.artifacts[min(len(self.calls), len(self.artifacts)) - 1]


def test_first_attempt_passes(game):
    writer = ScriptedWriter(GOOD)
    outcome = VerificationGate().run(writer, game)
    assert outcome.released
    assert outcome.artifact is GOOD
    assert outcome.attempt_count == 1
    assert writer.calls == [[]]


def test_regenerates_with_issues(game):
    writer = ScriptedWriter(BAD, GOOD)
    outcome = VerificationGate().run(writer, game)
    assert outcome.released
    assert outcome.artifact is GOOD
    assert outcome.attempt_count == 2
    assert writer.calls[0] == []
    assert len(writer.calls[1]) == 2
    assert any("Spread mismatch" in i for i in writer.calls[1])


def test_issues_accumulate_across_retries(game):
    writer = ScriptedWriter(BAD, BAD, GOOD)
    VerificationGate().run(writer, game)
    assert [len(c) for c in writer.calls] == [0, 2, 4]


def test_budget_exhausted_suppresses(game):
    writer = ScriptedWriter(BAD)
    outcome = VerificationGate(max_retries=2).run(writer, game)
    assert not outcome.released
    assert outcome.artifact is None
    assert outcome.attempt_count == 3
    assert len(writer.calls) == 3
    assert len(outcome.all_issues) == 6


def test_zero_retries(game):
    writer = ScriptedWriter(BAD, GOOD)
    outcome = VerificationGate(max_retries=0).run(writer, game)
    assert not outcome.released
    assert len(writer.calls) == 1


def test_negative_retries_rejected():
    with pytest.raises(ValueError):
        VerificationGate(max_retries=-1)


def test_analysis_passed_through(game):
    seen = []

    def writer(g, analysis, prior_issues):
        seen.append(analysis)
        return GOOD

    VerificationGate().run(writer, game, analysis={"rec": "BET"})
    assert seen == [{"rec": "BET"}]


def test_writer_errors_propagate(game):
    def writer(g, analysis, prior_issues):
        raise RuntimeError("writer down")

    with pytest.raises(RuntimeError, match="writer down"):
        VerificationGate().run(writer, game)


def test_log_frame(game):
    outcome = VerificationGate().run(ScriptedWriter(BAD, GOOD), game)
    df = outcomes_to_frame([outcome])
    assert list(df["attempt"]) == [1, 2]
    assert list(df["passed"]) == [0, 1]
    assert list(df["released"]) == [1, 1]
