"""
Retention attribution for dispatchers.

Retention answers: of the drivers a dispatcher had at a pay date, how many are
still with them? Each pooled driver is resolved to exactly one outcome:

- retained: still with the pooling dispatcher
- terminated: left the company while under the pooling dispatcher
- transferred: now with another dispatcher (or terminated under another one)

Pool (pay date P, dispatcher D):
    Distinct drivers with a stub paid exactly on P whose dispatcher of record
    is D and whose retention status is Active, Terminated or Start.

Historical resolution:
    The driver's most recent stub within the pool window, i.e. the
    `retention_pool_weeks` payroll weeks starting at P.

Live resolution (LiveRetentionContext):
    A live contract status of Terminated wins. The termination is attributed
    to the dispatcher of the driver's most recent stub, so it only counts as
    terminated for D when that stub is D's; otherwise it is a transfer.
    Without a termination the current dispatcher comes from the live loads
    (latest load wins) and falls back to the live roster.

Key Functions:
- attribute_retention: RetentionBreakdown for one dispatcher and pay date
- build_live_context: assemble live signals from contract statuses, roster and loads
- calculate_global_retention: Active vs Terminated share at one pay date
- calculate_live_view_retention: previous-week pool vs the current view
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from fleethealth.core.config import get_settings
from fleethealth.models.enums import RetentionOutcome, RetentionStatus
from fleethealth.models.schemas import (
    ContractStatusRecord,
    LiveLoad,
    PayStub,
    RetentionBreakdown,
    RosterEntry,
    TransferDetail,
)
from fleethealth.services.enrichment import build_live_dispatcher_map, latest_by_key
from fleethealth.services.payroll_calendar import PayrollWindow


logger = logging.getLogger(__name__)

POOL_STATUSES = frozenset({
    RetentionStatus.ACTIVE.value,
    RetentionStatus.TERMINATED.value,
    RetentionStatus.START.value,
})


# =============================================================================
# Live Signals
# =============================================================================


@dataclass
class LiveRetentionContext:
    """
    Live signals used to resolve pooled drivers in the live window.

    Attributes:
        contract_statuses: driver -> live contract status
        live_dispatchers: driver -> dispatcher of their latest live load
        roster_dispatchers: driver -> dispatcher on the live roster
    """
    contract_statuses: Dict[str, str] = field(default_factory=dict)
    live_dispatchers: Dict[str, str] = field(default_factory=dict)
    roster_dispatchers: Dict[str, str] = field(default_factory=dict)

    def current_dispatcher(self, driver_name: str) -> Optional[str]:
        return self.live_dispatchers.get(driver_name) or self.roster_dispatchers.get(driver_name)

    def is_terminated(self, driver_name: str) -> bool:
        return self.contract_statuses.get(driver_name) == RetentionStatus.TERMINATED.value


def build_live_context(
    contract_statuses: Iterable[ContractStatusRecord],
    roster: Iterable[RosterEntry],
    loads: Iterable[LiveLoad],
    window: Optional[PayrollWindow] = None,
) -> LiveRetentionContext:
    """
    Assemble the live retention signals.

    Later records win for both contract statuses and roster rows.

    Args:
        contract_statuses: Live contract status rows
        roster: Live driver count rows
        loads: Live loads
        window: Live window; when given only loads active in it are used

    Returns:
        LiveRetentionContext
    """
    statuses = {
        record.driver_name: record.contract_status
        for record in contract_statuses
        if record.contract_status
    }
    roster_dispatchers = {
        entry.driver_name: entry.dispatcher_name
        for entry in roster
        if entry.dispatcher_name
    }
    return LiveRetentionContext(
        contract_statuses=statuses,
        live_dispatchers=build_live_dispatcher_map(loads, window),
        roster_dispatchers=roster_dispatchers,
    )


# =============================================================================
# Pool & Resolution
# =============================================================================


def retention_pool(dispatcher: str, pay_date: date, stubs: Iterable[PayStub]) -> List[str]:
    """
    Drivers pooled by a dispatcher at a pay date.

    Args:
        dispatcher: Pooling dispatcher
        pay_date: Pool pay date
        stubs: Enriched pay stubs

    Returns:
        Sorted distinct driver names
    """
    return sorted({
        stub.driver_name
        for stub in stubs
        if stub.pay_date == pay_date
        and stub.stub_dispatcher == dispatcher
        and (stub.retention_status or '') in POOL_STATUSES
    })


def _resolve_historical(dispatcher: str, latest: PayStub):
    if latest.retention_status == RetentionStatus.TERMINATED.value:
        if latest.stub_dispatcher == dispatcher:
            return RetentionOutcome.TERMINATED, None
        return RetentionOutcome.TRANSFERRED, latest.stub_dispatcher
    if latest.stub_dispatcher != dispatcher:
        return RetentionOutcome.TRANSFERRED, latest.stub_dispatcher
    return RetentionOutcome.RETAINED, None


def _resolve_live(
    dispatcher: str,
    driver_name: str,
    latest: Optional[PayStub],
    context: LiveRetentionContext,
):
    if context.is_terminated(driver_name):
        last_dispatcher = latest.stub_dispatcher if latest is not None else None
        if last_dispatcher is None or last_dispatcher == dispatcher:
            return RetentionOutcome.TERMINATED, None
        return RetentionOutcome.TRANSFERRED, last_dispatcher

    current = context.current_dispatcher(driver_name)
    if current is None:
        # no live trace, fall back to stub evidence
        if latest is not None:
            return _resolve_historical(dispatcher, latest)
        return RetentionOutcome.RETAINED, None
    if current != dispatcher:
        return RetentionOutcome.TRANSFERRED, current
    return RetentionOutcome.RETAINED, None


def attribute_retention(
    dispatcher: str,
    pay_date: date,
    stubs: Sequence[PayStub],
    live_context: Optional[LiveRetentionContext] = None,
    pool_weeks: Optional[int] = None,
) -> RetentionBreakdown:
    """
    Retention breakdown of one dispatcher at one pay date.

    Args:
        dispatcher: Pooling dispatcher
        pay_date: Pool pay date
        stubs: Enriched pay stubs of every driver
        live_context: Live signals; when given, pooled drivers are resolved
            against them instead of later stubs
        pool_weeks: Weeks in the historical resolution window
            (defaults to settings.retention_pool_weeks)

    Returns:
        RetentionBreakdown; percentage is None for an empty pool
    """
    if pool_weeks is None:
        pool_weeks = get_settings().retention_pool_weeks
    window_end = pay_date + timedelta(days=7 * max(pool_weeks - 1, 0))

    pool = retention_pool(dispatcher, pay_date, stubs)
    breakdown = RetentionBreakdown(dispatcher=dispatcher, pay_date=pay_date, pool_size=len(pool))
    if not pool:
        return breakdown

    pooled = set(pool)
    pool_stubs = [stub for stub in stubs if stub.driver_name in pooled]
    if live_context is None:
        pool_stubs = [stub for stub in pool_stubs if pay_date <= stub.pay_date <= window_end]
    latest = latest_by_key(pool_stubs, key=lambda stub: stub.driver_name, sort_key=lambda stub: stub.pay_date)

    for driver_name in pool:
        if live_context is None:
            outcome, to_dispatcher = _resolve_historical(dispatcher, latest[driver_name])
        else:
            outcome, to_dispatcher = _resolve_live(dispatcher, driver_name, latest.get(driver_name), live_context)

        breakdown.outcomes[driver_name] = outcome
        if outcome is RetentionOutcome.RETAINED:
            breakdown.retained_drivers.append(driver_name)
        elif outcome is RetentionOutcome.TERMINATED:
            breakdown.terminated_drivers.append(driver_name)
        else:
            breakdown.transferred_drivers.append(
                TransferDetail(driver_name=driver_name, to_dispatcher=to_dispatcher)
            )

    breakdown.retained = len(breakdown.retained_drivers)
    breakdown.terminated = len(breakdown.terminated_drivers)
    breakdown.transferred = len(breakdown.transferred_drivers)
    breakdown.percentage = breakdown.retained / breakdown.pool_size * 100
    return breakdown


# =============================================================================
# Team-level Retention
# =============================================================================


@dataclass
class RetentionSummary:
    """Team-level retention counts for the KPI header."""
    percentage: Optional[float] = None
    active: int = 0
    terminated: int = 0
    transferred: int = 0
    total: int = 0


def calculate_global_retention(stubs: Iterable[PayStub], pay_date: date) -> RetentionSummary:
    """
    Active vs Terminated share of the drivers paid on one pay date.

    Start-status drivers do not count. An empty pool yields percentage None.
    """
    active = set()
    terminated = set()
    for stub in stubs:
        if stub.pay_date != pay_date:
            continue
        if stub.retention_status == RetentionStatus.ACTIVE.value:
            active.add(stub.driver_name)
        elif stub.retention_status == RetentionStatus.TERMINATED.value:
            terminated.add(stub.driver_name)

    total = len(active) + len(terminated)
    return RetentionSummary(
        percentage=len(active) / total * 100 if total else None,
        active=len(active),
        terminated=len(terminated),
        total=total,
    )


def calculate_live_view_retention(
    stubs: Iterable[PayStub],
    previous_pay_date: date,
    contract_statuses: Iterable[ContractStatusRecord],
    roster: Iterable[RosterEntry],
    in_view: Optional[Callable[[RosterEntry], bool]] = None,
) -> RetentionSummary:
    """
    Live retention of the current view.

    The pool is every Active or Start driver paid on the previous pay date
    (stubs are expected to be pre-filtered to the view). A pooled driver is
    terminated when their live contract status says so, and transferred when
    their live roster row falls outside the view.

    Args:
        stubs: Enriched stubs already filtered to the view
        previous_pay_date: Pay date of the last settled week
        contract_statuses: Live contract status rows
        roster: Live roster rows
        in_view: Predicate telling whether a roster row is still in the view

    Returns:
        RetentionSummary; percentage is None for an empty pool
    """
    pool = sorted({
        stub.driver_name
        for stub in stubs
        if stub.pay_date == previous_pay_date
        and stub.retention_status in (RetentionStatus.ACTIVE.value, RetentionStatus.START.value)
    })
    statuses = {record.driver_name: record.contract_status for record in contract_statuses}
    roster_by_driver = {entry.driver_name: entry for entry in roster}

    terminated = 0
    transferred = 0
    for driver_name in pool:
        if statuses.get(driver_name) == RetentionStatus.TERMINATED.value:
            terminated += 1
            continue
        entry = roster_by_driver.get(driver_name)
        if in_view is not None and entry is not None and not in_view(entry):
            transferred += 1

    total = len(pool)
    active = total - terminated - transferred
    logger.debug(f"Live view retention: pool={total} terminated={terminated} transferred={transferred}")
    return RetentionSummary(
        percentage=active / total * 100 if total else None,
        active=active,
        terminated=terminated,
        transferred=transferred,
        total=total,
    )


__all__ = [
    'POOL_STATUSES',
    'LiveRetentionContext',
    'build_live_context',
    'retention_pool',
    'attribute_retention',
    'RetentionSummary',
    'calculate_global_retention',
    'calculate_live_view_retention',
]
