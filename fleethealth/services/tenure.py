"""
Median tenure of a dispatcher's drivers.

A driver's tenure with a dispatcher is the number of distinct weekly stubs
(pay dates with positive miles) attributed to that dispatcher, paid on or
before a cutoff date T. A dispatcher's tenure for a contract type is the
median of those counts over their roster drivers of that contract type,
ignoring drivers with no attributed weeks.

In the live window the cutoff is pushed far past the live pay date so every
settled stub counts, and a driver who is already hauling for the dispatcher
this week without a stub for the live pay date is credited one extra week.
"""

from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from fleethealth.core.config import get_settings
from fleethealth.models.enums import ContractType
from fleethealth.models.schemas import LiveLoad, PayStub
from fleethealth.services.stats import median
from fleethealth.services.thresholds import normalize_contract


def count_tenure_weeks(driver_name: str, dispatcher: str, stubs: Iterable[PayStub], cutoff: date) -> int:
    """Distinct pay dates on or before cutoff with a stub under the dispatcher."""
    return len({
        stub.pay_date
        for stub in stubs
        if stub.driver_name == driver_name
        and stub.stub_dispatcher == dispatcher
        and stub.total_miles > 0
        and stub.pay_date <= cutoff
    })


def median_tenure(
    dispatcher: str,
    contract_type: ContractType,
    roster_drivers: Iterable[Tuple[str, Optional[str]]],
    stubs: Sequence[PayStub],
    as_of: date,
    live_loads: Optional[Iterable[LiveLoad]] = None,
    live_pay_date: Optional[date] = None,
) -> Optional[float]:
    """
    Median tenure (in weeks) of a dispatcher's roster drivers of one contract type.

    Args:
        dispatcher: Dispatcher name
        contract_type: OO or LOO
        roster_drivers: (driver_name, raw contract type) pairs on the dispatcher's roster
        stubs: Enriched pay stubs
        as_of: Cutoff pay date T for historical windows
        live_loads: Current-week loads; given only when evaluating the live window
        live_pay_date: Pay date of the live window (required with live_loads)

    Returns:
        Median of the non-zero counts, or None when no driver has any

    Note:
        The live extra week is credited when the driver has no stub under the
        dispatcher at the live pay date itself. Settled stubs from earlier weeks
        (any stub at or before T) do not block the credit.
    """
    contract = normalize_contract(contract_type)
    is_live = live_loads is not None
    cutoff = as_of
    hauling_now = set()
    if is_live:
        cutoff = as_of + timedelta(days=get_settings().live_tenure_horizon_days)
        hauling_now = {load.driver for load in live_loads if load.dispatcher == dispatcher}

    counts: List[int] = []
    seen = set()
    for driver_name, raw_contract in roster_drivers:
        if driver_name in seen or normalize_contract(raw_contract) is not contract:
            continue
        seen.add(driver_name)

        weeks = count_tenure_weeks(driver_name, dispatcher, stubs, cutoff)
        if is_live and driver_name in hauling_now:
            has_live_stub = any(
                stub.driver_name == driver_name
                and stub.stub_dispatcher == dispatcher
                and stub.pay_date == live_pay_date
                for stub in stubs
            )
            if not has_live_stub:
                weeks += 1
        if weeks > 0:
            counts.append(weeks)

    if not counts:
        return None
    return median(counts)


__all__ = [
    'count_tenure_weeks',
    'median_tenure',
]
