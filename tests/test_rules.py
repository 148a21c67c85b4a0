"""
tests/test_rules.py — Tests for edge_rules.py

Validates:
  - Each rule fires on its trigger and stays quiet without its inputs
  - Adjustments stack and the result is clamped to [0, 1]
  - Public-fade auto-block forces BLOCKED regardless of probability
  - Recommendation bands at their boundaries
"""

import pytest

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
from edge_rules import (
    AUTO_BLOCK,
    CRITICAL,
    WARNING,
    RulesConfig,
    RulesEngine,
    format_for_context,
    get_total_penalty,
    is_blocked,
)


def ctx(**kwargs):
    return GameContext(home_team="Boston Celtics", away_team="Los Angeles Lakers", **kwargs)


@pytest.fixture
def engine():
    return RulesEngine()


def rules_fired(result):
    return [v.rule for v in result.violations]


class TestIndividualRules:
    def test_clean_context(self, engine):
        r = engine.evaluate(ctx(), 0.60)
        assert r.violations == ()
        assert r.adjusted_probability == pytest.approx(0.60)
        assert r.recommendation == BET
        assert "CLEAR" in r.summary

    def test_home_rest_disadvantage_critical(self, engine):
        r = engine.evaluate(ctx(home_rest_days=0, away_rest_days=3), 0.60)
        assert rules_fired(r) == ["REST_DISADVANTAGE"]
        assert r.violations[0].severity == CRITICAL
        assert r.adjusted_probability < 0.60
        assert r.adjusted_probability == pytest.approx(0.55)

    def test_home_rest_disadvantage_warning(self, engine):
        r = engine.evaluate(ctx(home_rest_days=0, away_rest_days=1), 0.60)
        assert r.violations[0].severity == WARNING
        assert r.adjusted_probability == pytest.approx(0.57)

    def test_away_rest_disadvantage(self, engine):
        r = engine.evaluate(ctx(home_rest_days=2, away_rest_days=0), 0.60)
        assert r.violations[0].team == "away"

    def test_rest_rule_needs_both_sides(self, engine):
        r = engine.evaluate(ctx(home_rest_days=0), 0.60)
        assert r.violations == ()

    def test_travel_back_to_back(self, engine):
        r = engine.evaluate(ctx(schedule_spot=SPOT_TRAVEL_B2B), 0.60)
        assert rules_fired(r) == ["TRAVEL_B2B"]
        assert r.adjusted_probability == pytest.approx(0.56)

    @pytest.mark.parametrize("score,rule", [
        (8.0, "FATIGUE_SEVERE"),
        (-7.0, "FATIGUE_SEVERE"),
        (5.0, "FATIGUE_MODERATE"),
    ])
    def test_fatigue_bands(self, engine, score, rule):
        r = engine.evaluate(ctx(fatigue_score=score), 0.60)
        assert rules_fired(r) == [rule]

    def test_low_fatigue_ignored(self, engine):
        assert engine.evaluate(ctx(fatigue_score=3.0), 0.60).violations == ()

    def test_fatigue_side(self, engine):
        r = engine.evaluate(ctx(fatigue_score=-8.0), 0.60)
        assert r.violations[0].team == "home"

    def test_circadian_requires_early_game(self, engine):
        late  = engine.evaluate(ctx(circadian_disadvantage="AWAY"), 0.60)
        early = engine.evaluate(ctx(circadian_disadvantage="AWAY", is_early_game=True), 0.60)
        assert late.violations == ()
        assert rules_fired(early) == ["CIRCADIAN"]

    @pytest.mark.parametrize("spot,rule,adj", [
        (SPOT_3_IN_4, "SCHEDULE_3_IN_4", -0.02),
        (SPOT_4_IN_5, "SCHEDULE_4_IN_5", -0.03),
    ])
    def test_schedule_spots(self, engine, spot, rule, adj):
        r = engine.evaluate(ctx(schedule_spot=spot), 0.60)
        assert rules_fired(r) == [rule]
        assert r.violations[0].adjustment == pytest.approx(adj)


class TestPublicFade:
    def test_heavy_public_without_sharps_blocks(self, engine):
        r = engine.evaluate(ctx(public_bet_pct=75.0, sharp_action=False), 0.70)
        assert r.recommendation == BLOCKED
        assert r.blocked
        assert is_blocked(r)
        assert r.violations[0].severity == AUTO_BLOCK
        assert r.summary.startswith("RULES: BLOCKED")

    def test_sharp_confirmation_clears(self, engine):
        r = engine.evaluate(ctx(public_bet_pct=75.0, sharp_action=True), 0.70)
        assert r.recommendation == BET

    def test_threshold_is_exclusive(self, engine):
        r = engine.evaluate(ctx(public_bet_pct=70.0), 0.70)
        assert not r.blocked

    def test_block_wins_over_other_violations(self, engine):
        r = engine.evaluate(ctx(public_bet_pct=80.0, schedule_spot=SPOT_4_IN_5), 0.90)
        assert r.recommendation == BLOCKED
        assert len(r.violations) == 2

    def test_configurable_threshold(self):
        engine = RulesEngine(RulesConfig(public_fade_threshold=80.0))
        assert not engine.evaluate(ctx(public_bet_pct=75.0), 0.70).blocked


class TestStackingAndClamp:
    def test_adjustments_sum(self, engine):
        r = engine.evaluate(ctx(
            home_rest_days=2, away_rest_days=0,
            schedule_spot=SPOT_TRAVEL_B2B,
            fatigue_score=8.0,
        ), 0.60)
        assert rules_fired(r) == ["REST_DISADVANTAGE", "TRAVEL_B2B", "FATIGUE_SEVERE"]
        assert r.adjusted_probability == pytest.approx(0.60 - 0.05 - 0.04 - 0.03)
        assert get_total_penalty(r) == pytest.approx(0.12)

    def test_clamped_at_zero(self, engine):
        r = engine.evaluate(ctx(home_rest_days=0, away_rest_days=3, fatigue_score=9.0), 0.02)
        assert r.adjusted_probability == 0.0
        assert r.recommendation == FADE

    def test_clamped_at_one(self, engine):
        assert engine.evaluate(ctx(), 1.4).adjusted_probability == 1.0

    def test_context_formatting(self, engine):
        r = engine.evaluate(ctx(home_rest_days=0, away_rest_days=3), 0.60)
        text = format_for_context(r)
        assert "=== RULES CHECK ===" in text
        assert "[HOME] REST_DISADVANTAGE" in text


@pytest.mark.parametrize("prob,expected", [
    (0.58, BET),
    (0.579, LEAN),
    (0.54, LEAN),
    (0.539, PASS),
    (0.43, PASS),
    (0.42, FADE),
    (0.10, FADE),
])
def test_recommendation_bands(prob, expected):
    assert RulesEngine().prob_to_recommendation(prob) == expected


def test_band_follows_reported_probability(engine):
    # 0.59 - 0.05 sums to 0.5399999999999999 before rounding
    r = engine.evaluate(ctx(home_rest_days=0, away_rest_days=3), 0.59)
    assert r.adjusted_probability == 0.54
    assert r.recommendation == LEAN
