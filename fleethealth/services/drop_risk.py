"""
Drop-risk scoring for drivers.

A driver's drop risk is the weighted share of their triggered flags:

    score = clamp(0, 100, max(0, sum(+w for negative flags, -w for positive flags))
                          / sum(all configured weights) * 100)

Weights are looked up by flag rule id. A flag whose rule has no weight
contributes nothing, and an all-zero weight configuration scores 0.
"""

from typing import Dict, Iterable

from fleethealth.models.schemas import DriverFlag


def calculate_drop_risk(flags: Iterable[DriverFlag], weights: Dict[str, float]) -> float:
    """
    Weighted drop-risk score of a driver.

    Args:
        flags: Triggered flags of the driver
        weights: Weight per flag rule id

    Returns:
        Score in [0, 100]
    """
    total_weight = sum(weights.values())
    if total_weight <= 0:
        return 0.0

    score = 0.0
    for flag in flags:
        weight = weights.get(flag.rule.value, 0.0)
        score += -weight if flag.positive else weight

    return min(100.0, max(0.0, score) / total_weight * 100)


__all__ = ['calculate_drop_risk']
