"""Tests for the fixed priority/confidence rules."""
import pytest
from novel_insights.services import policy
from novel_insights.services.policy import ConfidenceRule, PriorityRule


def test_genre_demand_rule_for_isekai_ratio():
    """120 reads over 8 novels: ratio 15 -> high priority, confidence 0.65."""
    ratio = 120 / 8
    assert policy.GENRE_DEMAND.priority.priority_for(ratio) == policy.PRIORITY_HIGH
    assert policy.GENRE_DEMAND.confidence.score(ratio) == pytest.approx(0.65)


@pytest.mark.parametrize(
    "ratio, expected",
    [(10.0, policy.PRIORITY_MEDIUM), (10.01, policy.PRIORITY_HIGH), (5.0, policy.PRIORITY_LOW), (5.5, policy.PRIORITY_MEDIUM)],
)
def test_genre_demand_tiers_are_strict(ratio, expected):
    assert policy.GENRE_DEMAND.priority.priority_for(ratio) == expected


def test_author_rule_is_inclusive_at_four():
    assert policy.AUTHOR_ENGAGEMENT.priority.priority_for(4.0) == policy.PRIORITY_HIGH
    assert policy.AUTHOR_ENGAGEMENT.priority.priority_for(3.9) == policy.PRIORITY_MEDIUM


def test_tag_demand_confidence_is_capped():
    """12 votes gives a raw 1.1, reported as the 0.95 cap."""
    assert policy.TAG_DEMAND.confidence.score(12) == pytest.approx(0.95)
    assert policy.TAG_DEMAND.confidence.score(5) == pytest.approx(0.75)


def test_fixed_confidence_rules_ignore_value():
    assert policy.LOW_QUALITY.confidence.score() == pytest.approx(0.85)
    assert policy.GLOBAL_ABANDONMENT.confidence.score(99) == pytest.approx(0.90)
    assert policy.LENGTH_PREFERENCE.confidence.score() == pytest.approx(0.75)


def test_confidence_never_negative():
    rule = ConfidenceRule(base=0.1, per_unit=-1.0)
    assert rule.score(5) == 0.0


def test_priority_rule_without_tiers_returns_default():
    assert PriorityRule(default=policy.PRIORITY_MEDIUM).priority_for(1000) == policy.PRIORITY_MEDIUM
