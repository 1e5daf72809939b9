"""
Per-driver and per-dispatcher aggregates for one payroll window.

Everything here is computed from a WindowContext: the resolved window, its pay
dates, the enriched stub set and, for the live window, the live retention
signals. Building the context once per view keeps enrichment out of the
per-entity loops.

Live vs historical:
- The live window (weeks ago 0) reads money and identity from the week's
  loads, the roster and live contract statuses. Retention pools drivers at the
  previous pay date and resolves them against live signals.
- Historical windows read money and identity from the stubs paid on the
  window's pay date. Retention pools drivers at that pay date and resolves
  them against the stubs of the following pool weeks.

Key Functions:
- build_window_context: resolve a window and precompute shared inputs
- compute_driver_aggregate: Driver with flags and drop risk
- compute_dispatcher_aggregate: Dispatcher with raw metrics, retention, tenure
  and (given a peer pool) a compliance score
- build_dispatcher_pool: every dispatcher active in the window, scored
  against each other
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from fleethealth.models.enums import ContractType, LoadStatus, RetentionStatus
from fleethealth.models.schemas import (
    Dispatcher,
    Driver,
    EngineConfig,
    FleetSnapshot,
    LiveLoad,
    PayStub,
)
from fleethealth.services.compliance import apply_compliance_scores, calculate_compliance_scores
from fleethealth.services.dispatcher_metrics import (
    compute_dispatcher_metrics,
    count_canceled,
    dispatcher_loads,
    new_start_drivers,
)
from fleethealth.services.driver_flags import driver_contract_type, evaluate_driver_flags
from fleethealth.services.drop_risk import calculate_drop_risk
from fleethealth.services.enrichment import enrich_stubs, latest_by_key, load_sort_key
from fleethealth.services.payroll_calendar import (
    PayrollWindow,
    pay_date_from_window,
    resolve_window,
    utc_today,
    window_id,
)
from fleethealth.services.retention import LiveRetentionContext, attribute_retention, build_live_context
from fleethealth.services.tenure import median_tenure
from fleethealth.services.thresholds import normalize_contract


logger = logging.getLogger(__name__)


# =============================================================================
# Window Context
# =============================================================================


@dataclass
class WindowContext:
    """
    Shared inputs for every aggregate of one window.

    Attributes:
        weeks_ago: Offset of the window (0 = live)
        window: Resolved payroll window
        pay_date: Pay date of the window
        previous_pay_date: Pay date of the week before
        snapshot: Raw inputs
        stubs: Enriched stubs, ascending by pay date
        window_loads: Loads whose delivery (or pickup) date falls in the window
        live_context: Live retention signals; None for historical windows
    """
    weeks_ago: int
    window: PayrollWindow
    pay_date: date
    previous_pay_date: date
    snapshot: FleetSnapshot
    stubs: List[PayStub]
    window_loads: List[LiveLoad]
    live_context: Optional[LiveRetentionContext] = None
    _stubs_by_driver: Dict[str, List[PayStub]] = field(default_factory=dict, repr=False)

    @property
    def is_live(self) -> bool:
        return self.weeks_ago == 0

    @property
    def window_id(self) -> str:
        return window_id(self.weeks_ago)

    def stubs_for(self, driver_name: str) -> List[PayStub]:
        if not self._stubs_by_driver:
            for stub in self.stubs:
                self._stubs_by_driver.setdefault(stub.driver_name, []).append(stub)
        return self._stubs_by_driver.get(driver_name, [])

    def stubs_at_pay_date(self) -> List[PayStub]:
        return [stub for stub in self.stubs if stub.pay_date == self.pay_date]


def build_window_context(snapshot: FleetSnapshot, weeks_ago: int) -> WindowContext:
    """
    Resolve the window for a weeks-ago offset and precompute shared inputs.

    Args:
        snapshot: Raw inputs; snapshot.as_of pins "today" (defaults to UTC today)
        weeks_ago: 0 for the live window

    Returns:
        WindowContext

    Raises:
        ValueError: If weeks_ago is negative
    """
    today = snapshot.as_of or utc_today()
    window = resolve_window(weeks_ago, today)
    window_loads = [load for load in snapshot.loads if window.contains(load.activity_date)]

    context = WindowContext(
        weeks_ago=weeks_ago,
        window=window,
        pay_date=pay_date_from_window(window),
        previous_pay_date=pay_date_from_window(window.shifted(-1)),
        snapshot=snapshot,
        stubs=enrich_stubs(snapshot.stubs),
        window_loads=window_loads,
    )
    if context.is_live:
        context.live_context = build_live_context(
            snapshot.contract_statuses, snapshot.roster, snapshot.loads, window
        )
    logger.debug(
        f"Window context {context.window_id}: {window.start}..{window.end}, "
        f"{len(context.stubs)} stubs, {len(window_loads)} loads"
    )
    return context


# =============================================================================
# Driver Aggregate
# =============================================================================


def _sum(values) -> float:
    return float(sum(values))


def compute_driver_aggregate(driver_name: str, context: WindowContext, config: EngineConfig) -> Driver:
    """
    Driver view for one window: identity, money, flags and drop risk.

    Flags are evaluated as of the window's pay date, so stubs paid later never
    influence a historical window.

    Args:
        driver_name: Driver key
        context: Window context
        config: Domain configuration

    Returns:
        Driver
    """
    stubs = context.stubs_for(driver_name)
    loads = [load for load in context.window_loads if load.driver == driver_name]

    flags = evaluate_driver_flags(
        driver_name,
        stubs,
        loads,
        config.driver_health,
        as_of=context.pay_date,
        peer_stubs=context.stubs,
    )
    driver = Driver(
        name=driver_name,
        flags=flags,
        drop_risk=calculate_drop_risk(flags, config.driver_health.weights),
    )

    prior_stubs = sorted(
        (stub for stub in stubs if stub.pay_date <= context.pay_date),
        key=lambda stub: stub.pay_date,
        reverse=True,
    )
    latest_stub = prior_stubs[0] if prior_stubs else None
    driver.contract_type = normalize_contract(driver_contract_type(prior_stubs)).value
    if latest_stub is not None:
        driver.dispatcher = latest_stub.stub_dispatcher
        driver.team = latest_stub.stub_team
        driver.company_name = latest_stub.company_name
        driver.franchise_name = latest_stub.franchise_name
        driver.status = latest_stub.retention_status
        driver.equipment = latest_stub.trailer_type

    if context.is_live:
        _apply_live_identity(driver, loads, context)
        billable = [load for load in loads if load.status != LoadStatus.CANCELED.value]
        driver.gross = _sum(load.price for load in billable)
        driver.margin = _sum(load.cut for load in billable)
        driver.miles = _sum(load.trip_miles + load.deadhead_miles for load in billable)
        driver.rpm = driver.gross / driver.miles if driver.miles > 0 else 0.0
    else:
        week_stubs = [stub for stub in stubs if stub.pay_date == context.pay_date]
        driver.gross = _sum(stub.driver_gross for stub in week_stubs)
        driver.margin = _sum(stub.margin for stub in week_stubs)
        driver.miles = _sum(stub.total_miles for stub in week_stubs)
        driver.rpm = week_stubs[-1].rpm_all if week_stubs else 0.0

    return driver


def _apply_live_identity(driver: Driver, loads: Sequence[LiveLoad], context: WindowContext) -> None:
    roster = {entry.driver_name: entry for entry in context.snapshot.roster}
    entry = roster.get(driver.name)
    if entry is not None:
        driver.dispatcher = entry.dispatcher_name or driver.dispatcher
        driver.team = entry.dispatcher_team or driver.team
        driver.company_name = entry.company_name or driver.company_name
        driver.franchise_name = entry.franchise_name or driver.franchise_name
        if entry.contract_type:
            driver.contract_type = normalize_contract(entry.contract_type).value

    if loads:
        latest = max(loads, key=load_sort_key)
        driver.dispatcher = latest.dispatcher or driver.dispatcher
        driver.team = latest.team or driver.team
        driver.company_name = latest.company_name or driver.company_name
        driver.franchise_name = latest.franchise_name or driver.franchise_name

    if context.live_context is not None and context.live_context.is_terminated(driver.name):
        driver.status = RetentionStatus.TERMINATED.value


def window_driver_names(context: WindowContext) -> List[str]:
    """
    Drivers active in the window.

    Live: drivers with a load in the window or on the roster.
    Historical: drivers with a stub on the window's pay date.
    """
    if context.is_live:
        names = {load.driver for load in context.window_loads}
        names.update(entry.driver_name for entry in context.snapshot.roster)
    else:
        names = {stub.driver_name for stub in context.stubs_at_pay_date()}
    return sorted(names)


# =============================================================================
# Dispatcher Aggregate
# =============================================================================


def _roster_drivers(dispatcher: str, context: WindowContext) -> List[Tuple[str, Optional[str]]]:
    """(driver, raw contract) pairs currently assigned to the dispatcher."""
    if context.is_live:
        return [
            (entry.driver_name, entry.contract_type)
            for entry in context.snapshot.roster
            if entry.dispatcher_name == dispatcher
        ]
    latest = latest_by_key(
        (stub for stub in context.stubs_at_pay_date() if stub.stub_dispatcher == dispatcher),
        key=lambda stub: stub.driver_name,
        sort_key=lambda stub: stub.pay_date,
    )
    return [(name, stub.contract_type) for name, stub in sorted(latest.items())]


def _dispatcher_identity(dispatcher: str, context: WindowContext, aggregate: Dispatcher) -> None:
    for entry in context.snapshot.roster:
        if entry.dispatcher_name == dispatcher and entry.dispatcher_team:
            aggregate.team = entry.dispatcher_team
            aggregate.company_name = entry.company_name
            return
    for load in context.window_loads:
        if load.dispatcher == dispatcher and load.team:
            aggregate.team = load.team
            aggregate.company_name = load.company_name
            return
    for stub in reversed(context.stubs):
        if stub.stub_dispatcher == dispatcher and stub.stub_team:
            aggregate.team = stub.stub_team
            aggregate.company_name = stub.company_name
            return


def compute_dispatcher_aggregate(
    dispatcher: str,
    context: WindowContext,
    config: EngineConfig,
    peer_pool: Optional[Sequence[Dispatcher]] = None,
) -> Dispatcher:
    """
    Dispatcher view for one window.

    Args:
        dispatcher: Dispatcher name
        context: Window context
        config: Domain configuration
        peer_pool: Full peer pool of dispatcher aggregates for the window.
            When given, the compliance score is normalized against it
            (with this dispatcher's own metrics replacing any pool entry of
            the same name); otherwise compliance_score is left at 0.

    Returns:
        Dispatcher
    """
    aggregate = Dispatcher(name=dispatcher)
    _dispatcher_identity(dispatcher, context, aggregate)

    roster = _roster_drivers(dispatcher, context)
    aggregate.all_trucks = len(roster)
    aggregate.oo_trucks = sum(1 for _, contract in roster if normalize_contract(contract) is ContractType.OO)
    aggregate.loo_trucks = aggregate.all_trucks - aggregate.oo_trucks

    loads = dispatcher_loads(dispatcher, context.window, context.snapshot.loads)
    aggregate.loads = len(loads)
    aggregate.canceled = count_canceled(loads)
    aggregate.new_starts = len(new_start_drivers(loads))

    metrics = compute_dispatcher_metrics(dispatcher, context.window, context.snapshot, config.thresholds)

    if context.is_live:
        retention = attribute_retention(
            dispatcher, context.previous_pay_date, context.stubs, live_context=context.live_context
        )
        tenure_kwargs = {
            'live_loads': context.window_loads,
            'live_pay_date': context.pay_date,
        }
    else:
        retention = attribute_retention(dispatcher, context.pay_date, context.stubs)
        tenure_kwargs = {}
    aggregate.retention = retention
    metrics.retention = retention.percentage

    metrics.tenure_oo = median_tenure(
        dispatcher, ContractType.OO, roster, context.stubs, context.pay_date, **tenure_kwargs
    )
    metrics.tenure_loo = median_tenure(
        dispatcher, ContractType.LOO, roster, context.stubs, context.pay_date, **tenure_kwargs
    )
    aggregate.metrics = metrics

    if peer_pool is not None:
        pool = {peer.name: peer.metrics for peer in peer_pool}
        pool[dispatcher] = metrics
        aggregate.compliance_score = calculate_compliance_scores(pool, config.compliance_weights)[dispatcher]

    return aggregate


def window_dispatcher_names(context: WindowContext) -> List[str]:
    """
    Dispatchers active in the window.

    Live: roster dispatchers, dispatchers with loads in the window and the
    dispatchers of record at the previous pay date (so last week's pools are
    still scored). Historical: dispatchers of record at the pay date and
    dispatchers with loads in the window.
    """
    names = {load.dispatcher for load in context.window_loads if load.dispatcher}
    if context.is_live:
        names.update(entry.dispatcher_name for entry in context.snapshot.roster if entry.dispatcher_name)
        names.update(
            stub.stub_dispatcher
            for stub in context.stubs
            if stub.pay_date == context.previous_pay_date and stub.stub_dispatcher
        )
    else:
        names.update(stub.stub_dispatcher for stub in context.stubs_at_pay_date() if stub.stub_dispatcher)
    return sorted(names)


def build_dispatcher_pool(context: WindowContext, config: EngineConfig) -> List[Dispatcher]:
    """
    Every dispatcher active in the window, with compliance scored over the
    whole pool.
    """
    pool = [
        compute_dispatcher_aggregate(name, context, config)
        for name in window_dispatcher_names(context)
    ]
    apply_compliance_scores(pool, config.compliance_weights)
    logger.debug(f"Scored {len(pool)} dispatchers for {context.window_id}")
    return pool


__all__ = [
    'WindowContext',
    'build_window_context',
    'compute_driver_aggregate',
    'window_driver_names',
    'compute_dispatcher_aggregate',
    'window_dispatcher_names',
    'build_dispatcher_pool',
]
