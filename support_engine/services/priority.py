"""
Support Priority Service

Static priority classification from the submission form.

Formula: score = category_weight×w0 + impact×w1 + scope×w2 + urgency×w3

The score is bucketed into tiers with thresholds closed at their
lower bound: a score equal to a threshold lands in the tier that
starts there.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Tuple, Type, TypeVar, Union

from ..models.ticket import Impact, Scope, Urgency, PriorityTier
from .errors import InvalidInputError

E = TypeVar("E", bound=Enum)


def _frozen(mapping: dict) -> Mapping:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class PriorityPolicy:
    """
    Weight tables, coefficients, thresholds and SLAs.

    Impact / Scope / Urgency weights:
    - low / individual / low: 1
    - medium / team / medium: 2
    - high / department / high: 3
    - critical / organization / immediate: 4

    Coefficients (w0..w3): all 1.

    Tiers:
    - Low: score < 7
    - Normal: 7 <= score < 10
    - High: 10 <= score < 13
    - Urgent: score >= 13

    SLA: Urgent 2h, High 4h, Normal 24h, Low 72h
    """

    impact_weights: Mapping[Impact, int] = field(default_factory=lambda: _frozen({
        Impact.LOW: 1,
        Impact.MEDIUM: 2,
        Impact.HIGH: 3,
        Impact.CRITICAL: 4,
    }))
    scope_weights: Mapping[Scope, int] = field(default_factory=lambda: _frozen({
        Scope.INDIVIDUAL: 1,
        Scope.TEAM: 2,
        Scope.DEPARTMENT: 3,
        Scope.ORGANIZATION: 4,
    }))
    urgency_weights: Mapping[Urgency, int] = field(default_factory=lambda: _frozen({
        Urgency.LOW: 1,
        Urgency.MEDIUM: 2,
        Urgency.HIGH: 3,
        Urgency.IMMEDIATE: 4,
    }))

    category_coefficient: int = 1
    impact_coefficient: int = 1
    scope_coefficient: int = 1
    urgency_coefficient: int = 1

    # (minimum score, tier), ascending. Anything below the first is LOW.
    thresholds: Tuple[Tuple[int, PriorityTier], ...] = (
        (7, PriorityTier.NORMAL),
        (10, PriorityTier.HIGH),
        (13, PriorityTier.URGENT),
    )

    sla_hours: Mapping[PriorityTier, int] = field(default_factory=lambda: _frozen({
        PriorityTier.URGENT: 2,
        PriorityTier.HIGH: 4,
        PriorityTier.NORMAL: 24,
        PriorityTier.LOW: 72,
    }))

    def __post_init__(self):
        minimums = [minimum for minimum, _ in self.thresholds]
        if minimums != sorted(set(minimums)):
            raise InvalidInputError("Priority thresholds must be strictly ascending.")


DEFAULT_POLICY = PriorityPolicy()


@dataclass(frozen=True)
class PriorityScore:
    """Breakdown of priority calculation."""
    category_weight: int
    impact_weight: int
    scope_weight: int
    urgency_weight: int
    score: int
    tier: PriorityTier
    sla_hours: int


def _coerce(enum_cls: Type[E], value: Union[E, str], field_name: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidInputError(
            f"Invalid {field_name}: {value!r}. Expected one of: {allowed}."
        ) from None


class PriorityService:
    """
    Pure, deterministic priority classification.

    Example:
    Network (3) + High impact (3) + Department (3) + Immediate (4) = 13 → Urgent
    """

    def __init__(self, policy: PriorityPolicy = DEFAULT_POLICY):
        self.policy = policy

    def score(
        self,
        category_weight: int,
        impact: Union[Impact, str],
        scope: Union[Scope, str],
        urgency: Union[Urgency, str]
    ) -> PriorityScore:
        """
        Calculate the full score breakdown.
        """
        if (
            isinstance(category_weight, bool)
            or not isinstance(category_weight, int)
            or category_weight < 0
        ):
            raise InvalidInputError(
                f"Invalid category weight: {category_weight!r}. "
                "Expected a non-negative integer."
            )

        impact = _coerce(Impact, impact, "impact")
        scope = _coerce(Scope, scope, "scope")
        urgency = _coerce(Urgency, urgency, "urgency")

        policy = self.policy
        impact_weight = policy.impact_weights[impact]
        scope_weight = policy.scope_weights[scope]
        urgency_weight = policy.urgency_weights[urgency]

        total = (
            category_weight * policy.category_coefficient
            + impact_weight * policy.impact_coefficient
            + scope_weight * policy.scope_coefficient
            + urgency_weight * policy.urgency_coefficient
        )
        tier = self.tier_for(total)

        return PriorityScore(
            category_weight=category_weight,
            impact_weight=impact_weight,
            scope_weight=scope_weight,
            urgency_weight=urgency_weight,
            score=total,
            tier=tier,
            sla_hours=policy.sla_hours[tier]
        )

    def compute(
        self,
        category_weight: int,
        impact: Union[Impact, str],
        scope: Union[Scope, str],
        urgency: Union[Urgency, str]
    ) -> PriorityTier:
        """Priority tier for the given classification."""
        return self.score(category_weight, impact, scope, urgency).tier

    def tier_for(self, score: int) -> PriorityTier:
        tier = PriorityTier.LOW
        for minimum, candidate in self.policy.thresholds:
            if score >= minimum:
                tier = candidate
            else:
                break
        return tier

    def sla_target(self, tier: PriorityTier, start: datetime) -> datetime:
        """Deadline for a ticket of this tier created at start."""
        return start + timedelta(hours=self.policy.sla_hours[tier])
