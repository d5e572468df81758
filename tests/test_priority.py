"""
Tests for priority classification
"""
from datetime import datetime, timedelta, timezone
from itertools import product

import pytest

from support_engine.models import Impact, PriorityTier, Scope, Urgency
from support_engine.services import InvalidInputError, PriorityPolicy, PriorityService


class TestCompute:
    """Test PriorityService.compute"""

    def test_network_outage_for_department_is_urgent(self, priority):
        """Weight 3 + high + department + immediate = 13 → urgent"""
        tier = priority.compute(3, Impact.HIGH, Scope.DEPARTMENT, Urgency.IMMEDIATE)
        assert tier == PriorityTier.URGENT

    def test_minimal_inputs_are_low(self, priority):
        tier = priority.compute(1, Impact.LOW, Scope.INDIVIDUAL, Urgency.LOW)
        assert tier == PriorityTier.LOW

    def test_maximal_inputs_are_urgent(self, priority):
        tier = priority.compute(3, Impact.CRITICAL, Scope.ORGANIZATION, Urgency.IMMEDIATE)
        assert tier == PriorityTier.URGENT

    def test_accepts_string_values(self, priority):
        assert priority.compute(2, "medium", "team", "high") == \
            priority.compute(2, Impact.MEDIUM, Scope.TEAM, Urgency.HIGH)

    def test_deterministic_over_all_inputs(self, priority):
        """Same inputs always give the same tier, consistent with the score"""
        for weight, impact, scope, urgency in product(
            range(0, 4), Impact, Scope, Urgency
        ):
            first = priority.compute(weight, impact, scope, urgency)
            second = priority.compute(weight, impact, scope, urgency)
            assert first == second

            breakdown = priority.score(weight, impact, scope, urgency)
            assert breakdown.tier == first
            assert breakdown.score == (
                weight + breakdown.impact_weight
                + breakdown.scope_weight + breakdown.urgency_weight
            )

    def test_breakdown(self, priority):
        breakdown = priority.score(2, Impact.MEDIUM, Scope.TEAM, Urgency.HIGH)
        assert breakdown.category_weight == 2
        assert breakdown.impact_weight == 2
        assert breakdown.scope_weight == 2
        assert breakdown.urgency_weight == 3
        assert breakdown.score == 9
        assert breakdown.tier == PriorityTier.NORMAL
        assert breakdown.sla_hours == 24


class TestThresholds:
    """Boundary scores land in the tier that starts there"""

    @pytest.mark.parametrize("score,expected", [
        (4, PriorityTier.LOW),
        (6, PriorityTier.LOW),
        (7, PriorityTier.NORMAL),
        (9, PriorityTier.NORMAL),
        (10, PriorityTier.HIGH),
        (12, PriorityTier.HIGH),
        (13, PriorityTier.URGENT),
        (16, PriorityTier.URGENT),
    ])
    def test_tier_for(self, priority, score, expected):
        assert priority.tier_for(score) == expected

    def test_score_exactly_at_low_normal_boundary(self, priority):
        """1 + low(1) + team(2) + high(3) = 7 → normal"""
        breakdown = priority.score(1, Impact.LOW, Scope.TEAM, Urgency.HIGH)
        assert breakdown.score == 7
        assert breakdown.tier == PriorityTier.NORMAL

    def test_score_just_below_boundary(self, priority):
        breakdown = priority.score(0, Impact.LOW, Scope.TEAM, Urgency.HIGH)
        assert breakdown.score == 6
        assert breakdown.tier == PriorityTier.LOW

    def test_score_exactly_at_high_boundary(self, priority):
        breakdown = priority.score(1, Impact.HIGH, Scope.DEPARTMENT, Urgency.HIGH)
        assert breakdown.score == 10
        assert breakdown.tier == PriorityTier.HIGH


class TestInvalidInput:
    """Out-of-set values are rejected"""

    def test_unknown_impact(self, priority):
        with pytest.raises(InvalidInputError, match="impact"):
            priority.compute(1, "severe", Scope.TEAM, Urgency.LOW)

    def test_unknown_scope(self, priority):
        with pytest.raises(InvalidInputError, match="scope"):
            priority.compute(1, Impact.LOW, "planet", Urgency.LOW)

    def test_unknown_urgency(self, priority):
        with pytest.raises(InvalidInputError, match="urgency"):
            priority.compute(1, Impact.LOW, Scope.TEAM, "yesterday")

    @pytest.mark.parametrize("weight", [-1, 2.5, "3", True, None])
    def test_bad_category_weight(self, priority, weight):
        with pytest.raises(InvalidInputError):
            priority.compute(weight, Impact.LOW, Scope.TEAM, Urgency.LOW)


class TestPolicy:
    """Test PriorityPolicy"""

    def test_thresholds_must_ascend(self):
        with pytest.raises(InvalidInputError):
            PriorityPolicy(thresholds=(
                (10, PriorityTier.HIGH),
                (7, PriorityTier.NORMAL),
            ))

    def test_weight_tables_are_read_only(self):
        policy = PriorityPolicy()
        with pytest.raises(TypeError):
            policy.impact_weights[Impact.LOW] = 10

    def test_custom_policy(self):
        policy = PriorityPolicy(urgency_coefficient=2)
        service = PriorityService(policy)
        breakdown = service.score(1, Impact.LOW, Scope.INDIVIDUAL, Urgency.IMMEDIATE)
        assert breakdown.score == 1 + 1 + 1 + 8

    @pytest.mark.parametrize("tier,hours", [
        (PriorityTier.URGENT, 2),
        (PriorityTier.HIGH, 4),
        (PriorityTier.NORMAL, 24),
        (PriorityTier.LOW, 72),
    ])
    def test_sla_target(self, priority, tier, hours):
        start = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)
        assert priority.sla_target(tier, start) == start + timedelta(hours=hours)
