"""
Pay stub enrichment and "latest record wins" reducers.

Stubs exported from payroll sometimes lack the dispatcher, team or company of
record. enrich_stubs forward-fills those fields per driver from the most
recent earlier stub that had them, without ever touching the caller's records.

The reducers in this module make the ordering rule explicit: records are
folded in ascending date order and the last write for a key wins.
"""

from datetime import date, datetime, timezone
from typing import Callable, Dict, Hashable, Iterable, List, Optional, TypeVar

from fleethealth.models.schemas import LiveLoad, PayStub
from fleethealth.services.payroll_calendar import PayrollWindow, as_utc


T = TypeVar('T')

_FILLED_FIELDS = ('stub_dispatcher', 'stub_team', 'company_name')


def enrich_stubs(stubs: Iterable[PayStub]) -> List[PayStub]:
    """
    Forward-fill dispatcher, team and company per driver.

    Stubs are processed in ascending pay date order. For each stub:
    - dispatcher = stub_dispatcher, else current_dispatcher
    - team = stub_team, else current_team
    - company = company_name
    and whichever of these is still empty is filled from the driver's
    last-known value. A value is only ever carried forward in time.

    Args:
        stubs: Raw pay stubs (left unmodified)

    Returns:
        New list of enriched stub copies, sorted by pay date ascending
    """
    ordered = sorted(stubs, key=lambda stub: stub.pay_date)
    last_known: Dict[str, Dict[str, Optional[str]]] = {}
    enriched: List[PayStub] = []

    for stub in ordered:
        history = last_known.setdefault(stub.driver_name, {})
        own = {
            'stub_dispatcher': stub.stub_dispatcher or stub.current_dispatcher,
            'stub_team': stub.stub_team or stub.current_team,
            'company_name': stub.company_name,
        }
        update = {}
        for field_name in _FILLED_FIELDS:
            value = own[field_name] or history.get(field_name)
            if value:
                history[field_name] = value
            update[field_name] = value
        enriched.append(stub.model_copy(update=update))

    return enriched


def latest_by_key(
    records: Iterable[T],
    key: Callable[[T], Hashable],
    sort_key: Callable[[T], object],
) -> Dict[Hashable, T]:
    """
    Fold records in ascending sort_key order; the last record per key wins.

    Ties keep their input order (the sort is stable), so among records sharing
    a sort key the later one in the input wins.
    """
    latest: Dict[Hashable, T] = {}
    for record in sorted(records, key=sort_key):
        latest[key(record)] = record
    return latest


def latest_stub_per_driver(
    stubs: Iterable[PayStub],
    on_or_before: Optional[date] = None,
) -> Dict[str, PayStub]:
    """Most recent stub per driver, optionally capped at a pay date."""
    if on_or_before is not None:
        stubs = [stub for stub in stubs if stub.pay_date <= on_or_before]
    return latest_by_key(stubs, key=lambda stub: stub.driver_name, sort_key=lambda stub: stub.pay_date)


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def load_sort_key(load: LiveLoad) -> datetime:
    """Delivery (or pickup) timestamp in UTC; undated loads sort first."""
    moment = load.activity_date
    return as_utc(moment) if moment is not None else _EPOCH


def build_live_dispatcher_map(
    loads: Iterable[LiveLoad],
    window: Optional[PayrollWindow] = None,
) -> Dict[str, str]:
    """
    Current dispatcher per driver from live loads.

    Loads are folded in ascending delivery date order (pickup date when no
    delivery date) and the last load wins. Loads without a dispatcher are
    ignored; when a window is given only loads active in it are considered.
    """
    candidates = [load for load in loads if load.dispatcher]
    if window is not None:
        candidates = [load for load in candidates if window.contains(load.activity_date)]
    latest = latest_by_key(candidates, key=lambda load: load.driver, sort_key=load_sort_key)
    return {driver: load.dispatcher for driver, load in latest.items()}


__all__ = [
    'enrich_stubs',
    'latest_by_key',
    'latest_stub_per_driver',
    'load_sort_key',
    'build_live_dispatcher_map',
]
