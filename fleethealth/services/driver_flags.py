"""
Driver Flag Engine for the fleet health core.

Evaluates the configurable flag rules for one driver against their pay stub
history and current loads. Each triggered rule yields a DriverFlag carrying
the rule id (used for weighting), display label/color and a detail payload
explaining why the flag fired.

Rules:
- highTolls: driver's average expected tolls sit in the top N percent of the
  peer distribution over the same pay dates
- heavyLoads: average weight of the driver's loads exceeds a threshold
- dispatcherHopper: driver worked for more than N distinct dispatchers
- tenure: "New Hire" below N stubs, positive "Veteran" at or above M stubs
- negative: outstanding balance plus unsettled PO deductions exceed a threshold
- lowRpm / lowGross / lowNet: share of stubs below a threshold reaches a minimum

Stub selection:
- Only stubs with pay date <= as_of are considered (point-in-time evaluation)
- A "weeks" lookback keeps stubs paid within N*7 days of as_of; "allTime" keeps all
- Lookback-scoped rules only count stubs with positive miles

The driver's contract type comes from their most recent stub that has one,
falling back to the configured default (LOO).
"""

import logging
import math
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from fleethealth.core.config import get_settings
from fleethealth.models.enums import FlagRule, LoadStatus
from fleethealth.models.schemas import (
    DriverFlag,
    DriverHealthSettings,
    FlagRuleConfig,
    LiveLoad,
    Lookback,
    PayStub,
    ThresholdConfig,
)
from fleethealth.services.thresholds import resolve_threshold


logger = logging.getLogger(__name__)


# =============================================================================
# Default Rule Catalog
# =============================================================================

# Load statuses that never count towards the heavy loads average
HEAVY_LOAD_EXCLUDED_STATUSES = frozenset({
    LoadStatus.CANCELED.value,
    LoadStatus.TONU.value,
    LoadStatus.LAYOVER.value,
})

# Stub fields inspected by the low metric rules
LOW_METRIC_FIELDS: Dict[FlagRule, str] = {
    FlagRule.LOW_RPM: 'rpm_all',
    FlagRule.LOW_GROSS: 'driver_gross',
    FlagRule.LOW_NET: 'net_pay',
}

DEFAULT_DRIVER_HEALTH_SETTINGS = DriverHealthSettings(
    flags={
        FlagRule.HIGH_TOLLS: FlagRuleConfig(
            label='High Tolls',
            color='#f97316',
            lookback=Lookback(type='weeks', value=8),
            thresholds=ThresholdConfig(default=10),
            min_stubs=3,
        ),
        FlagRule.HEAVY_LOADS: FlagRuleConfig(
            label='Heavy Loads',
            color='#a855f7',
            thresholds=ThresholdConfig(default=40000),
            min_loads=2,
        ),
        FlagRule.DISPATCHER_HOPPER: FlagRuleConfig(
            label='Dispatcher Hopper',
            color='#eab308',
            lookback=Lookback(type='weeks', value=12),
            thresholds=ThresholdConfig(default=2),
        ),
        FlagRule.TENURE: FlagRuleConfig(
            label='New Hire',
            color='#3b82f6',
            lookback=Lookback(type='allTime', value=0),
            new_hire_thresholds=ThresholdConfig(default=4),
            veteran_thresholds=ThresholdConfig(default=26),
            positive_label='Veteran',
            positive_color='#22c55e',
        ),
        FlagRule.NEGATIVE: FlagRuleConfig(
            label='Negative Balance',
            color='#ef4444',
            thresholds=ThresholdConfig(default=1000),
            min_stubs=1,
        ),
        FlagRule.LOW_RPM: FlagRuleConfig(
            label='Low RPM',
            color='#dc2626',
            lookback=Lookback(type='weeks', value=6),
            thresholds=ThresholdConfig(default=1.5, by_contract={'OO': 1.6}),
            min_stubs=3,
            min_percentage_of_stubs=50,
        ),
        FlagRule.LOW_GROSS: FlagRuleConfig(
            label='Low Gross',
            color='#b91c1c',
            lookback=Lookback(type='weeks', value=6),
            thresholds=ThresholdConfig(default=3000, by_contract={'OO': 5000}),
            min_stubs=3,
            min_percentage_of_stubs=50,
        ),
        FlagRule.LOW_NET: FlagRuleConfig(
            label='Low Net',
            color='#991b1b',
            lookback=Lookback(type='weeks', value=6),
            thresholds=ThresholdConfig(default=800),
            min_stubs=3,
            min_percentage_of_stubs=50,
        ),
    },
    weights={
        FlagRule.HIGH_TOLLS.value: 10,
        FlagRule.HEAVY_LOADS.value: 5,
        FlagRule.DISPATCHER_HOPPER.value: 20,
        FlagRule.TENURE.value: 20,
        FlagRule.NEGATIVE.value: 15,
        FlagRule.LOW_RPM.value: 10,
        FlagRule.LOW_GROSS.value: 10,
        FlagRule.LOW_NET.value: 10,
    },
)


# =============================================================================
# Helpers
# =============================================================================


def driver_contract_type(stubs_desc: Sequence[PayStub]) -> str:
    """
    Contract type of a driver: that of the most recent stub carrying one.

    Args:
        stubs_desc: Driver's stubs sorted by pay date descending

    Returns:
        Raw contract type string, or the configured default
    """
    for stub in stubs_desc:
        if stub.contract_type:
            return stub.contract_type
    return get_settings().default_contract_type


def stubs_in_lookback(stubs_desc: Sequence[PayStub], lookback: Lookback, as_of: date) -> List[PayStub]:
    """Stubs with positive miles inside the lookback ending at as_of."""
    if lookback.type == 'weeks':
        cutoff = as_of - timedelta(days=7 * lookback.value)
        stubs_desc = [stub for stub in stubs_desc if stub.pay_date >= cutoff]
    return [stub for stub in stubs_desc if stub.total_miles > 0]


def lookback_label(lookback: Lookback) -> str:
    return 'All Time' if lookback.type == 'allTime' else f'{lookback.value} wks'


def balance_liability(stub: PayStub) -> float:
    """Outstanding balance plus unsettled purchase-order deductions on a stub."""
    return abs(stub.balance + stub.balance_settle) + (stub.po_deductions - stub.po_settle)


def _flag(rule: FlagRule, config: FlagRuleConfig, **detail) -> DriverFlag:
    return DriverFlag(rule=rule, label=config.label, color=config.color, detail=detail)


# =============================================================================
# Rule Evaluators
# =============================================================================


def evaluate_high_tolls(
    driver_name: str,
    relevant_stubs: Sequence[PayStub],
    peer_stubs: Iterable[PayStub],
    config: FlagRuleConfig,
    contract_type: str,
) -> Optional[DriverFlag]:
    """
    Percentile rank of the driver's average tolls among all drivers paid on the
    same pay dates.

    The cut-off is the value at index floor((1 - pct/100) * (n - 1)) of the
    ascending per-driver averages; the driver is flagged at or above it.
    """
    if not relevant_stubs or len(relevant_stubs) < config.min_stubs:
        return None

    pay_dates = {stub.pay_date for stub in relevant_stubs}
    totals: Dict[str, List[float]] = {}
    for stub in peer_stubs:
        if stub.pay_date in pay_dates and stub.total_miles > 0:
            entry = totals.setdefault(stub.driver_name, [0.0, 0])
            entry[0] += stub.total_expected_tolls
            entry[1] += 1

    averages = {name: total / count for name, (total, count) in totals.items() if count}
    driver_avg = averages.get(driver_name)
    if not driver_avg or driver_avg <= 0:
        return None

    ordered = sorted(averages.values())
    top_percent = resolve_threshold(config.thresholds, contract_type)
    index = math.floor((1 - top_percent / 100) * (len(ordered) - 1))
    index = min(max(index, 0), len(ordered) - 1)

    if driver_avg >= ordered[index]:
        return _flag(
            FlagRule.HIGH_TOLLS,
            config,
            avg_tolls=round(driver_avg, 2),
            lookback=lookback_label(config.lookback),
        )
    return None


def evaluate_heavy_loads(loads: Sequence[LiveLoad], config: FlagRuleConfig) -> Optional[DriverFlag]:
    """Average weight of valid loads over the contract threshold."""
    weighted = [
        load for load in loads
        if load.status not in HEAVY_LOAD_EXCLUDED_STATUSES and load.weight > 0
    ]
    if not weighted or len(weighted) < config.min_loads:
        return None

    avg_weight = sum(load.weight for load in weighted) / len(weighted)
    threshold = resolve_threshold(config.thresholds, weighted[0].contract_type)
    if avg_weight > threshold:
        return _flag(FlagRule.HEAVY_LOADS, config, avg_weight=round(avg_weight), loads=len(weighted))
    return None


def evaluate_dispatcher_hopper(
    relevant_stubs: Sequence[PayStub],
    config: FlagRuleConfig,
    contract_type: str,
) -> Optional[DriverFlag]:
    dispatchers = {stub.stub_dispatcher for stub in relevant_stubs if stub.stub_dispatcher}
    threshold = resolve_threshold(config.thresholds, contract_type)
    if len(dispatchers) > threshold:
        return _flag(
            FlagRule.DISPATCHER_HOPPER,
            config,
            dispatchers=len(dispatchers),
            lookback=lookback_label(config.lookback),
        )
    return None


def evaluate_tenure(
    stubs_desc: Sequence[PayStub],
    config: FlagRuleConfig,
    contract_type: str,
) -> Optional[DriverFlag]:
    """
    New hire below the new-hire threshold, positive veteran flag at or above
    the veteran threshold. Counts every stub with positive miles.
    """
    stub_count = sum(1 for stub in stubs_desc if stub.total_miles > 0)
    if stub_count <= 0:
        return None

    if config.new_hire_thresholds is not None:
        new_hire = resolve_threshold(config.new_hire_thresholds, contract_type)
        if stub_count < new_hire:
            return _flag(FlagRule.TENURE, config, stubs=stub_count)

    if config.veteran_thresholds is not None and config.positive_label:
        veteran = resolve_threshold(config.veteran_thresholds, contract_type)
        if stub_count >= veteran:
            return DriverFlag(
                rule=FlagRule.TENURE,
                label=config.positive_label,
                color=config.positive_color or config.color,
                positive=True,
                detail={'stubs': stub_count},
            )
    return None


def evaluate_negative(stubs_desc: Sequence[PayStub], config: FlagRuleConfig) -> Optional[DriverFlag]:
    """Liability on the most recent stub over the threshold for its contract."""
    if not stubs_desc or len(stubs_desc) < config.min_stubs:
        return None

    latest = stubs_desc[0]
    liability = balance_liability(latest)
    threshold = resolve_threshold(config.thresholds, latest.contract_type)
    if liability > threshold:
        return _flag(FlagRule.NEGATIVE, config, amount=round(liability, 2))
    return None


def evaluate_low_metric(
    rule: FlagRule,
    relevant_stubs: Sequence[PayStub],
    config: FlagRuleConfig,
) -> Optional[DriverFlag]:
    """
    Share of lookback stubs whose metric falls below the threshold.

    The threshold uses the contract of the most recent relevant stub.
    """
    if not relevant_stubs or len(relevant_stubs) < config.min_stubs:
        return None

    field_name = LOW_METRIC_FIELDS[rule]
    threshold = resolve_threshold(config.thresholds, relevant_stubs[0].contract_type)
    below = sum(1 for stub in relevant_stubs if getattr(stub, field_name) < threshold)
    percentage = below / len(relevant_stubs) * 100
    if percentage >= config.min_percentage_of_stubs:
        return _flag(
            rule,
            config,
            percentage=round(percentage, 1),
            threshold=threshold,
            lookback=lookback_label(config.lookback),
        )
    return None


# =============================================================================
# Entry Point
# =============================================================================


def evaluate_driver_flags(
    driver_name: str,
    stubs: Iterable[PayStub],
    loads: Iterable[LiveLoad],
    settings: DriverHealthSettings,
    as_of: date,
    peer_stubs: Optional[Iterable[PayStub]] = None,
) -> List[DriverFlag]:
    """
    Evaluate every enabled flag rule for one driver.

    Args:
        driver_name: Driver key
        stubs: The driver's (enriched) pay stubs; other drivers' stubs are ignored
        loads: The driver's loads in the evaluated window
        settings: Flag rule catalog
        as_of: Pay date of the evaluated window; later stubs are ignored
        peer_stubs: All drivers' stubs, for the high tolls percentile.
            Defaults to the driver's own stubs.

    Returns:
        Triggered flags in rule catalog order
    """
    driver_stubs = sorted(
        (stub for stub in stubs if stub.driver_name == driver_name and stub.pay_date <= as_of),
        key=lambda stub: stub.pay_date,
        reverse=True,
    )
    driver_loads = [load for load in loads if load.driver == driver_name]
    contract_type = driver_contract_type(driver_stubs)
    peers = list(peer_stubs) if peer_stubs is not None else driver_stubs

    flags: List[DriverFlag] = []
    for rule, config in settings.flags.items():
        if not config.enabled:
            continue

        relevant = stubs_in_lookback(driver_stubs, config.lookback, as_of)
        if rule is FlagRule.HIGH_TOLLS:
            flag = evaluate_high_tolls(driver_name, relevant, peers, config, contract_type)
        elif rule is FlagRule.HEAVY_LOADS:
            flag = evaluate_heavy_loads(driver_loads, config)
        elif rule is FlagRule.DISPATCHER_HOPPER:
            flag = evaluate_dispatcher_hopper(relevant, config, contract_type)
        elif rule is FlagRule.TENURE:
            flag = evaluate_tenure(driver_stubs, config, contract_type)
        elif rule is FlagRule.NEGATIVE:
            flag = evaluate_negative(driver_stubs, config)
        elif rule in LOW_METRIC_FIELDS:
            flag = evaluate_low_metric(rule, relevant, config)
        else:
            logger.warning(f"No evaluator for flag rule {rule!r}")
            flag = None

        if flag is not None:
            flags.append(flag)

    return flags


__all__ = [
    'DEFAULT_DRIVER_HEALTH_SETTINGS',
    'HEAVY_LOAD_EXCLUDED_STATUSES',
    'LOW_METRIC_FIELDS',
    'driver_contract_type',
    'stubs_in_lookback',
    'balance_liability',
    'evaluate_high_tolls',
    'evaluate_heavy_loads',
    'evaluate_dispatcher_hopper',
    'evaluate_tenure',
    'evaluate_negative',
    'evaluate_low_metric',
    'evaluate_driver_flags',
]
