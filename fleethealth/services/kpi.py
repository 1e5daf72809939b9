"""
Team KPI aggregation for the dashboard header.

KPIs are computed for the drivers and dispatchers of the current view. The
live window aggregates the week's loads; historical windows aggregate the
stubs paid on the window's pay date.

KPIs:
- total_gross: live sum(price); historical sum(driver_gross + margin)
- team_rpm: total_gross / total miles (live trip + deadhead miles), 0 without miles
- team_margin: live sum(cut); historical sum(margin)
- active_trucks: distinct drivers in the contract-filtered data
- dispatcher_count: dispatchers in the view
- median_drop_risk: rounded median of the view's driver drop risks
- balance: per view driver, liability on their most recent stub
- canceled_loads: canceled loads in the window
- median_wellness / median_compliance: medians over the view's dispatchers
- trailer_drops: drops in the window by the view's dispatchers
- retention (+ counts): live-view retention or the pay date's Active share

Empty medians report 0; an empty retention pool reports None.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, Union

from fleethealth.models.enums import ContractFilter, ContractType, LoadStatus, TrendDirection
from fleethealth.models.schemas import (
    Dispatcher,
    Driver,
    KpiBundle,
    LiveLoad,
    PayStub,
    RosterEntry,
)
from fleethealth.services.aggregates import WindowContext
from fleethealth.services.driver_flags import balance_liability
from fleethealth.services.enrichment import latest_stub_per_driver
from fleethealth.services.retention import calculate_global_retention, calculate_live_view_retention
from fleethealth.services.stats import median
from fleethealth.services.thresholds import normalize_contract


# =============================================================================
# Contract Filter
# =============================================================================


def matches_contract_filter(
    raw_contract: Optional[str],
    contract_filter: Union[ContractFilter, str],
) -> bool:
    """
    Check a raw contract type against a view contract filter.

    Raises:
        ValueError: If the filter is not "all", "oo" or "loo"
    """
    contract_filter = ContractFilter(contract_filter)
    if contract_filter is ContractFilter.ALL:
        return True
    contract = normalize_contract(raw_contract)
    if contract_filter is ContractFilter.OO:
        return contract is ContractType.OO
    return contract is ContractType.LOO


# =============================================================================
# Team KPIs
# =============================================================================


def compute_team_kpis(
    context: WindowContext,
    drivers: Sequence[Driver],
    dispatchers: Sequence[Dispatcher],
    contract_filter: Union[ContractFilter, str] = ContractFilter.ALL,
    stub_in_view: Optional[Callable[[PayStub], bool]] = None,
    load_in_view: Optional[Callable[[LiveLoad], bool]] = None,
    roster_in_view: Optional[Callable[[RosterEntry], bool]] = None,
) -> KpiBundle:
    """
    Header KPIs for the current view.

    Args:
        context: Window context
        drivers: Drivers of the view (already filtered)
        dispatchers: Dispatchers of the view, scored against the full pool
        contract_filter: "all", "oo" or "loo"
        stub_in_view: Predicate selecting the view's stubs
        load_in_view: Predicate selecting the view's loads
        roster_in_view: Predicate telling whether a live roster row is still
            in the view (transfers out of the view count against retention)

    Returns:
        KpiBundle

    Raises:
        ValueError: If contract_filter is unknown
    """
    contract_filter = ContractFilter(contract_filter)
    stub_in_view = stub_in_view or (lambda stub: True)
    load_in_view = load_in_view or (lambda load: True)

    kpis = KpiBundle(dispatcher_count=len(dispatchers))
    view_stubs = [
        stub for stub in context.stubs
        if stub_in_view(stub) and matches_contract_filter(stub.contract_type, contract_filter)
    ]

    if context.is_live:
        base_loads = [load for load in context.window_loads if load_in_view(load)]
        active_loads = [
            load for load in base_loads
            if load.status != LoadStatus.CANCELED.value
            and matches_contract_filter(load.contract_type, contract_filter)
        ]
        kpis.total_gross = sum(load.price for load in active_loads)
        total_miles = sum(load.trip_miles + load.deadhead_miles for load in active_loads)
        kpis.team_margin = sum(load.cut for load in active_loads)
        kpis.active_trucks = len({load.driver for load in active_loads})
        kpis.canceled_loads = sum(1 for load in base_loads if load.status == LoadStatus.CANCELED.value)
        balance_source: Iterable[PayStub] = context.stubs
    else:
        base_stubs = [
            stub for stub in context.stubs_at_pay_date() if stub_in_view(stub)
        ]
        active_stubs = [
            stub for stub in base_stubs
            if stub.stub_team and stub.total_miles > 0
            and matches_contract_filter(stub.contract_type, contract_filter)
        ]
        kpis.total_gross = sum(stub.driver_gross + stub.margin for stub in active_stubs)
        total_miles = sum(stub.total_miles for stub in active_stubs)
        kpis.team_margin = sum(stub.margin for stub in active_stubs)
        kpis.active_trucks = len({stub.driver_name for stub in active_stubs})
        balance_source = base_stubs

    kpis.team_rpm = kpis.total_gross / total_miles if total_miles > 0 else 0.0

    risks = [driver.drop_risk for driver in drivers]
    kpis.median_drop_risk = float(round(median(risks))) if risks else 0.0

    latest = latest_stub_per_driver(balance_source, on_or_before=context.pay_date)
    kpis.balance = sum(
        balance_liability(latest[driver.name]) for driver in drivers if driver.name in latest
    )

    wellness = [d.metrics.wellness for d in dispatchers if d.metrics.wellness is not None]
    kpis.median_wellness = median(wellness)
    kpis.median_compliance = median([d.compliance_score for d in dispatchers])

    names = {d.name for d in dispatchers}
    kpis.trailer_drops = sum(
        1 for event in context.snapshot.trailer_drops
        if context.window.contains(event.drop_time)
        and event.dropped_by in names
    )

    if context.is_live:
        retention = calculate_live_view_retention(
            view_stubs,
            context.previous_pay_date,
            context.snapshot.contract_statuses,
            context.snapshot.roster,
            roster_in_view,
        )
    else:
        retention = calculate_global_retention(view_stubs, context.pay_date)
    kpis.retention = retention.percentage
    kpis.active_drivers = retention.active
    kpis.terminated_drivers = retention.terminated
    kpis.transferred_drivers = retention.transferred
    kpis.retention_pool = retention.total

    return kpis


# =============================================================================
# Trends
# =============================================================================


@dataclass
class KpiTrend:
    """Change of a KPI against the previous window."""
    change: Optional[float]
    direction: TrendDirection
    is_good: Optional[bool] = None


def kpi_change(
    current: Optional[float],
    previous: Optional[float],
    kind: str = 'number',
    lower_is_better: bool = False,
) -> KpiTrend:
    """
    Trend of a KPI between two windows.

    Changes smaller than the kind's threshold report no change: 0.05 for
    percentages, 0.005 for RPM and 0.5 for everything else.

    Args:
        current: Value in the selected window
        previous: Value in the window before
        kind: "percentage", "rpm" or "number"
        lower_is_better: Whether a decrease is an improvement

    Returns:
        KpiTrend; change is None when either value is missing
    """
    if current is None or previous is None:
        return KpiTrend(change=None, direction=TrendDirection.NO_CHANGE)

    change = current - previous
    threshold = {'percentage': 0.05, 'rpm': 0.005}.get(kind, 0.5)
    if abs(change) < threshold:
        return KpiTrend(change=change, direction=TrendDirection.NO_CHANGE)

    direction = TrendDirection.UP if change > 0 else TrendDirection.DOWN
    is_good = change < 0 if lower_is_better else change > 0
    return KpiTrend(change=change, direction=direction, is_good=is_good)


__all__ = [
    'matches_contract_filter',
    'compute_team_kpis',
    'KpiTrend',
    'kpi_change',
]
