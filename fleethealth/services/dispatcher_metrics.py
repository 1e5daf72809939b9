"""
Raw per-dispatcher metrics for one payroll window.

These are the unnormalized inputs of the compliance score, derived from the
dispatcher's loads in the window and from the operational event feeds.

Load-derived metrics:
- wellness: share of wellness-checked loads (GOOD / FAIL / '-') that passed
  (GOOD or '-'); None when no load was checked
- goodMoves / badMoves: loads moved to Monday, split on whether the driver's
  gross without the moved load stayed under the good-move threshold
- hiddenMiles: loads with hidden miles found
- lowRpm: loads under the low RPM threshold for their contract

Event-derived metrics:
- overdueLoads: total days past delivery of overdue loads delivered in the window
- tuesdayOpen: loads left open at the cutoff; Tuesday events count for the
  week that just closed
- missingPaperwork: loads delivered in the window without paperwork
- trailerDrops / trailerRecoveries: drops and recoveries inside the window
- calculatorActivity: percentage of the 7 window days with calculator use
- rcEntry: median rate confirmation entry time; None without entries

Load-derived metrics are None for a dispatcher with no loads in the window.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from fleethealth.models.enums import LoadStatus
from fleethealth.models.schemas import (
    DispatcherMetrics,
    FleetSnapshot,
    LiveLoad,
    ThresholdSettings,
)
from fleethealth.services.payroll_calendar import PayrollWindow, as_utc
from fleethealth.services.stats import median
from fleethealth.services.thresholds import resolve_threshold


WELLNESS_CHECKED = frozenset({'GOOD', 'FAIL', '-'})
WELLNESS_PASSED = frozenset({'GOOD', '-'})

_TUESDAY = 1


def dispatcher_loads(dispatcher: str, window: PayrollWindow, loads: Iterable[LiveLoad]) -> List[LiveLoad]:
    """Loads booked by the dispatcher and delivered inside the window."""
    return [load for load in loads if load.dispatcher == dispatcher and window.contains(load.do_date)]


def count_canceled(loads: Iterable[LiveLoad]) -> int:
    return sum(1 for load in loads if load.status == LoadStatus.CANCELED.value)


def new_start_drivers(loads: Iterable[LiveLoad]) -> List[str]:
    """Distinct drivers whose first load with the company is among the loads."""
    return sorted({load.driver for load in loads if load.new_start})


def wellness_percentage(loads: Iterable[LiveLoad]) -> Optional[float]:
    checked = [load for load in loads if load.wellness_fail in WELLNESS_CHECKED]
    if not checked:
        return None
    passed = sum(1 for load in checked if load.wellness_fail in WELLNESS_PASSED)
    return passed / len(checked) * 100


def _tuesday_adjusted(moment: datetime) -> datetime:
    moment = as_utc(moment)
    if moment.weekday() == _TUESDAY:
        return moment - timedelta(days=1)
    return moment


def calculator_activity(dispatcher: str, window: PayrollWindow, snapshot: FleetSnapshot) -> float:
    """Percentage of the window's seven days on which the calculator was used."""
    active_days = {
        as_utc(event.date).date()
        for event in snapshot.calculator_usage
        if event.dispatcher == dispatcher and event.minutes > 0
    }
    visited = sum(1 for day in window.days() if day in active_days)
    return visited / 7 * 100


def compute_dispatcher_metrics(
    dispatcher: str,
    window: PayrollWindow,
    snapshot: FleetSnapshot,
    thresholds: ThresholdSettings,
) -> DispatcherMetrics:
    """
    Raw compliance inputs of one dispatcher for one window.

    Retention and tenure are left unset; the dispatcher aggregate fills them in.

    Args:
        dispatcher: Dispatcher name
        window: Payroll window
        snapshot: Loads and event feeds
        thresholds: Low RPM and good-move thresholds

    Returns:
        DispatcherMetrics with load- and event-derived values
    """
    metrics = DispatcherMetrics()

    loads = dispatcher_loads(dispatcher, window, snapshot.loads)
    if loads:
        moved = [load for load in loads if load.moved_monday]
        good_moves = sum(
            1 for load in moved
            if load.driver_gross_without_moved < resolve_threshold(thresholds.good_move, load.contract_type)
        )
        metrics.good_moves = good_moves
        metrics.bad_moves = len(moved) - good_moves
        metrics.hidden_miles = sum(1 for load in loads if load.hidden_miles)
        metrics.low_rpm = sum(
            1 for load in loads
            if load.rpm_all < resolve_threshold(thresholds.low_rpm, load.contract_type)
        )
        metrics.wellness = wellness_percentage(loads)

    metrics.overdue_loads = sum(
        event.days_past_do
        for event in snapshot.overdue_loads
        if event.dispatcher == dispatcher and window.contains(event.delivery_date)
    )
    metrics.tuesday_open = sum(
        1 for event in snapshot.tuesday_open
        if event.dispatcher == dispatcher and window.contains(_tuesday_adjusted(event.date))
    )
    metrics.missing_paperwork = sum(
        1 for event in snapshot.missing_paperwork
        if event.dispatcher == dispatcher and window.contains(event.do_date)
    )
    metrics.trailer_drops = sum(
        1 for event in snapshot.trailer_drops
        if event.dropped_by == dispatcher and window.contains(event.drop_time)
    )
    metrics.trailer_recoveries = sum(
        1 for event in snapshot.trailer_drops
        if event.recovered_by == dispatcher and window.contains(event.recovery_time)
    )
    metrics.calculator_activity = calculator_activity(dispatcher, window, snapshot)

    entry_minutes = [
        event.entry_minutes
        for event in snapshot.rc_entries
        if event.dispatcher == dispatcher and window.contains(event.date)
    ]
    metrics.rc_entry = median(entry_minutes) if entry_minutes else None

    return metrics


__all__ = [
    'WELLNESS_CHECKED',
    'WELLNESS_PASSED',
    'dispatcher_loads',
    'count_canceled',
    'new_start_drivers',
    'wellness_percentage',
    'calculator_activity',
    'compute_dispatcher_metrics',
]
