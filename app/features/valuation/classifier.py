"""Condition classification.

Two ways to reach a ConditionTier, and the engine cannot tell them apart:

- `classify(assessment)` from the raw checklist the customer fills in
- `tier_from_device_condition(cond)` from the single excellent/good/fair/poor grade
"""

from __future__ import annotations

from dataclasses import dataclass

from app.features.catalog.types import ConditionTier, DeviceCondition

_ACCEPTABLE = frozenset({DeviceCondition.EXCELLENT, DeviceCondition.GOOD})

_DEVICE_CONDITION_TIERS = {
    DeviceCondition.EXCELLENT: ConditionTier.GOOD,
    DeviceCondition.GOOD: ConditionTier.GOOD,
    DeviceCondition.FAIR: ConditionTier.AVERAGE,
    DeviceCondition.POOR: ConditionTier.BELOW_AVERAGE,
}


@dataclass(frozen=True)
class ConditionAssessment:
    powers_on: bool = True
    display_condition: DeviceCondition = DeviceCondition.GOOD
    body_condition: DeviceCondition = DeviceCondition.GOOD
    touch_working: bool = True
    screen_original: bool = True
    battery_healthy: bool = True
    can_make_calls: bool = True


def count_negative_signals(a: ConditionAssessment) -> int:
    flags = (
        DeviceCondition(a.display_condition) not in _ACCEPTABLE,
        DeviceCondition(a.body_condition) not in _ACCEPTABLE,
        not a.touch_working,
        not a.screen_original,
        not a.battery_healthy,
        not a.can_make_calls,
    )
    return sum(1 for f in flags if f)


def classify(a: ConditionAssessment) -> ConditionTier:
    # A dead device is below average no matter what else is reported.
    if not a.powers_on:
        return ConditionTier.BELOW_AVERAGE

    n = count_negative_signals(a)
    if n == 0:
        return ConditionTier.GOOD
    if n <= 2:
        return ConditionTier.AVERAGE
    return ConditionTier.BELOW_AVERAGE


def tier_from_device_condition(cond: DeviceCondition) -> ConditionTier:
    return _DEVICE_CONDITION_TIERS[DeviceCondition(cond)]
