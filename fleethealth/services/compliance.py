"""
Dispatcher compliance scoring.

Each compliance metric is normalized to a 0-100 score relative to the peer
pool, then combined with the configured weights:

    higher is better:  value / max * 100
    lower is better:   (1 - value / max) * 100
    as-is:             value (already a percentage)

max is taken over the non-null values of the whole peer pool and floored at 1,
so a pool of all zeros scores 100 on every lower-is-better metric. Tenure is
scored separately for OO and LOO and the available scores are averaged.

The composite is sum(weight * score) / sum(weight), where both sums only run
over the metrics that have data for the dispatcher (dynamic denominator). A
dispatcher with no usable metric scores 0.

Scores are always computed over the full, unfiltered peer pool and are then
looked up by the caller, so a dispatcher's score does not depend on the view
filter it is displayed in.
"""

from typing import Dict, Iterable, List, Optional, Tuple

from fleethealth.models.enums import ComplianceMetric, MetricDirection
from fleethealth.models.schemas import Dispatcher, DispatcherMetrics
from fleethealth.services.stats import mean


# =============================================================================
# Metric Catalog
# =============================================================================

# metric -> (direction, accessors). Most metrics read a single field; tenure
# reads the OO and LOO medians.
METRIC_CATALOG: Dict[ComplianceMetric, Tuple[MetricDirection, Tuple[str, ...]]] = {
    ComplianceMetric.GOOD_MOVES: (MetricDirection.HIGHER_IS_BETTER, ('good_moves',)),
    ComplianceMetric.BAD_MOVES: (MetricDirection.LOWER_IS_BETTER, ('bad_moves',)),
    ComplianceMetric.HIDDEN_MILES: (MetricDirection.LOWER_IS_BETTER, ('hidden_miles',)),
    ComplianceMetric.LOW_RPM: (MetricDirection.LOWER_IS_BETTER, ('low_rpm',)),
    ComplianceMetric.OVERDUE_LOADS: (MetricDirection.LOWER_IS_BETTER, ('overdue_loads',)),
    ComplianceMetric.TUESDAY_OPEN: (MetricDirection.LOWER_IS_BETTER, ('tuesday_open',)),
    ComplianceMetric.MISSING_PAPERWORK: (MetricDirection.LOWER_IS_BETTER, ('missing_paperwork',)),
    ComplianceMetric.WELLNESS: (MetricDirection.AS_IS, ('wellness',)),
    ComplianceMetric.RETENTION: (MetricDirection.HIGHER_IS_BETTER, ('retention',)),
    ComplianceMetric.TENURE: (MetricDirection.HIGHER_IS_BETTER, ('tenure_oo', 'tenure_loo')),
    ComplianceMetric.TRAILER_DROPS: (MetricDirection.LOWER_IS_BETTER, ('trailer_drops',)),
    ComplianceMetric.TRAILER_RECOVERIES: (MetricDirection.HIGHER_IS_BETTER, ('trailer_recoveries',)),
    ComplianceMetric.CALCULATOR_ACTIVITY: (MetricDirection.HIGHER_IS_BETTER, ('calculator_activity',)),
    ComplianceMetric.RC_ENTRY: (MetricDirection.LOWER_IS_BETTER, ('rc_entry',)),
}

DEFAULT_COMPLIANCE_WEIGHTS: Dict[str, float] = {
    ComplianceMetric.GOOD_MOVES.value: 5,
    ComplianceMetric.BAD_MOVES.value: 10,
    ComplianceMetric.HIDDEN_MILES.value: 10,
    ComplianceMetric.LOW_RPM.value: 10,
    ComplianceMetric.OVERDUE_LOADS.value: 10,
    ComplianceMetric.TUESDAY_OPEN.value: 5,
    ComplianceMetric.MISSING_PAPERWORK.value: 5,
    ComplianceMetric.WELLNESS.value: 10,
    ComplianceMetric.RETENTION.value: 10,
    ComplianceMetric.TENURE.value: 5,
    ComplianceMetric.TRAILER_DROPS.value: 5,
    ComplianceMetric.TRAILER_RECOVERIES.value: 5,
    ComplianceMetric.CALCULATOR_ACTIVITY.value: 5,
    ComplianceMetric.RC_ENTRY.value: 5,
}


# =============================================================================
# Normalization
# =============================================================================


def normalize_metric(value: float, max_value: float, direction: MetricDirection) -> float:
    """
    Normalize one raw value to a 0-100 score.

    Args:
        value: Raw metric value
        max_value: Maximum of the peer pool (already floored at 1)
        direction: Normalization direction

    Returns:
        Score clamped to [0, 100]
    """
    if direction is MetricDirection.AS_IS:
        score = value
    else:
        proportion = value / max_value
        score = proportion * 100 if direction is MetricDirection.HIGHER_IS_BETTER else (1 - proportion) * 100
    return min(100.0, max(0.0, score))


def _pool_max(values: Iterable[Optional[float]]) -> float:
    present = [value for value in values if value is not None]
    return max(present + [1.0])


def metric_scores(
    pool: Dict[str, DispatcherMetrics],
    metric: ComplianceMetric,
) -> Dict[str, float]:
    """
    Normalized scores of one metric for every dispatcher that has data for it.

    Args:
        pool: Dispatcher name -> raw metrics, for the full peer pool
        metric: Metric to score

    Returns:
        Dispatcher name -> score; dispatchers without data are absent
    """
    direction, fields = METRIC_CATALOG[metric]
    maxima = {
        field_name: _pool_max(getattr(metrics, field_name) for metrics in pool.values())
        for field_name in fields
    }

    scores: Dict[str, float] = {}
    for name, metrics in pool.items():
        partials: List[float] = []
        for field_name in fields:
            value = getattr(metrics, field_name)
            if value is not None:
                partials.append(normalize_metric(value, maxima[field_name], direction))
        if partials:
            scores[name] = mean(partials)
    return scores


# =============================================================================
# Composite Score
# =============================================================================


def calculate_compliance_scores(
    pool: Dict[str, DispatcherMetrics],
    weights: Dict[str, float],
) -> Dict[str, float]:
    """
    Composite compliance score of every dispatcher in the peer pool.

    Unknown metric ids in weights are ignored.

    Args:
        pool: Dispatcher name -> raw metrics, for the full peer pool
        weights: Metric id -> weight

    Returns:
        Dispatcher name -> score in [0, 100]
    """
    weighted: Dict[str, float] = {name: 0.0 for name in pool}
    denominators: Dict[str, float] = {name: 0.0 for name in pool}

    for metric in ComplianceMetric:
        weight = weights.get(metric.value, 0.0)
        if weight <= 0:
            continue
        for name, score in metric_scores(pool, metric).items():
            weighted[name] += weight * score
            denominators[name] += weight

    return {
        name: (weighted[name] / denominators[name] if denominators[name] > 0 else 0.0)
        for name in pool
    }


def apply_compliance_scores(
    dispatchers: List[Dispatcher],
    weights: Dict[str, float],
) -> List[Dispatcher]:
    """
    Score a full peer pool of dispatcher aggregates in place.

    Returns:
        The same list, with compliance_score set on every dispatcher
    """
    scores = calculate_compliance_scores({d.name: d.metrics for d in dispatchers}, weights)
    for dispatcher in dispatchers:
        dispatcher.compliance_score = scores.get(dispatcher.name, 0.0)
    return dispatchers


__all__ = [
    'METRIC_CATALOG',
    'DEFAULT_COMPLIANCE_WEIGHTS',
    'normalize_metric',
    'metric_scores',
    'calculate_compliance_scores',
    'apply_compliance_scores',
]
