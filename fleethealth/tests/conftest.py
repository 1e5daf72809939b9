"""
Pytest Configuration and Shared Fixtures for the Fleet Health Core Tests.

This module provides fixtures and configuration for all tests, supporting:
- A pinned "today" (Thursday 2026-10-15) so payroll windows are deterministic
- Factories for pay stubs, live loads and roster rows with realistic defaults
- A small fleet snapshot covering retention, transfers and terminations
- Settings cache isolation between tests

Payroll calendar for AS_OF (2026-10-15):
- live    (weeks ago 0): Tue 2026-10-13 .. Mon 2026-10-19, pay date 2026-10-22
- week_1  (weeks ago 1): Tue 2026-10-06 .. Mon 2026-10-12, pay date 2026-10-15
- week_2  (weeks ago 2): Tue 2026-09-29 .. Mon 2026-10-05, pay date 2026-10-08
"""

from datetime import date, datetime, timezone
from typing import Any, Callable, Generator

import pytest

from fleethealth.core.config import get_settings
from fleethealth.models.schemas import (
    ContractStatusRecord,
    FleetSnapshot,
    LiveLoad,
    OverdueLoadEvent,
    PayStub,
    RosterEntry,
    TrailerDropEvent,
)
from fleethealth.services.fleet_health import default_engine_config


AS_OF = date(2026, 10, 15)
LIVE_PAY_DATE = date(2026, 10, 22)
LAST_PAY_DATE = date(2026, 10, 15)
TWO_WEEKS_PAY_DATE = date(2026, 10, 8)
THREE_WEEKS_PAY_DATE = date(2026, 10, 1)

# A Wednesday inside the live window
LIVE_DELIVERY = datetime(2026, 10, 14, 15, 0, tzinfo=timezone.utc)


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Configure custom pytest markers for test organization.

    Custom markers defined:
    - scenario: End-to-end engine scenarios over the shared fleet snapshot
    - ingestion: Tests that go through the pandas adapters

    Args:
        config: Pytest configuration object
    """
    config.addinivalue_line(
        'markers',
        'scenario: marks end-to-end engine scenarios over the shared fleet snapshot'
    )
    config.addinivalue_line(
        'markers',
        'ingestion: marks tests that parse DataFrame exports'
    )


# ============================================================
# SETTINGS FIXTURES
# ============================================================

@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """
    Drop the cached Settings before and after every test so environment
    overrides set with monkeypatch take effect and never leak.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def as_of() -> date:
    """Pinned "today" for every window computation."""
    return AS_OF


@pytest.fixture
def engine_config():
    """Fresh default engine configuration."""
    return default_engine_config()


# ============================================================
# RECORD FACTORIES
# ============================================================

@pytest.fixture
def make_stub() -> Callable[..., PayStub]:
    """
    Factory for PayStub records.

    Defaults describe an active LOO driver under Alice (team Alpha) with a
    healthy week paid on LAST_PAY_DATE. Any field can be overridden.
    """
    def _make(
        driver_name: str = 'John Smith',
        pay_date: date = LAST_PAY_DATE,
        dispatcher: str = 'Alice',
        **overrides: Any,
    ) -> PayStub:
        values = {
            'driver_name': driver_name,
            'pay_date': pay_date,
            'stub_dispatcher': dispatcher,
            'stub_team': 'Alpha',
            'company_name': 'Acme Logistics',
            'contract_type': 'LOO',
            'total_miles': 2500,
            'driver_gross': 6000,
            'margin': 800,
            'net_pay': 2500,
            'rpm_all': 2.4,
            'retention_status': 'Active',
        }
        values.update(overrides)
        return PayStub(**values)

    return _make


@pytest.fixture
def make_load() -> Callable[..., LiveLoad]:
    """Factory for LiveLoad records delivered inside the live window."""
    def _make(driver: str = 'John Smith', dispatcher: str = 'Alice', **overrides: Any) -> LiveLoad:
        values = {
            'driver': driver,
            'dispatcher': dispatcher,
            'team': 'Alpha',
            'company_name': 'Acme Logistics',
            'contract_type': 'LOO',
            'price': 2500,
            'cut': 300,
            'trip_miles': 900,
            'deadhead_miles': 100,
            'weight': 30000,
            'rpm_all': 2.5,
            'driver_gross_without_moved': 0,
            'status': 'Delivered',
            'pu_date': datetime(2026, 10, 13, 8, 0, tzinfo=timezone.utc),
            'do_date': LIVE_DELIVERY,
        }
        values.update(overrides)
        return LiveLoad(**values)

    return _make


@pytest.fixture
def make_roster_entry() -> Callable[..., RosterEntry]:
    def _make(driver_name: str, dispatcher: str = 'Alice', **overrides: Any) -> RosterEntry:
        values = {
            'driver_name': driver_name,
            'dispatcher_name': dispatcher,
            'dispatcher_team': 'Alpha',
            'company_name': 'Acme Logistics',
            'contract_type': 'LOO',
        }
        values.update(overrides)
        return RosterEntry(**values)

    return _make


# ============================================================
# FLEET SNAPSHOT
# ============================================================

@pytest.fixture
def fleet_snapshot(make_stub, make_load, make_roster_entry) -> FleetSnapshot:
    """
    Small fleet with two dispatchers.

    - Dan Driver: LOO, with Alice (Alpha) since 2026-10-01
    - Olive Owner: OO, with Alice since 2026-10-08
    - Tom Transfer: with Alice on 2026-10-08, moved to Bob (Beta) on 2026-10-15
    - Terry Term: with Bob, terminated on 2026-10-15
    """
    beta = {'stub_team': 'Beta'}
    stubs = [
        make_stub('Dan Driver', THREE_WEEKS_PAY_DATE),
        make_stub('Dan Driver', TWO_WEEKS_PAY_DATE),
        make_stub('Dan Driver', LAST_PAY_DATE, driver_gross=5000, margin=500, total_miles=2000),
        make_stub('Olive Owner', TWO_WEEKS_PAY_DATE, contract_type='OO'),
        make_stub('Olive Owner', LAST_PAY_DATE, contract_type='OO'),
        make_stub('Tom Transfer', TWO_WEEKS_PAY_DATE),
        make_stub('Tom Transfer', LAST_PAY_DATE, 'Bob', **beta),
        make_stub('Terry Term', TWO_WEEKS_PAY_DATE, 'Bob', **beta),
        make_stub('Terry Term', LAST_PAY_DATE, 'Bob', retention_status='Terminated', **beta),
    ]
    loads = [
        make_load('Dan Driver', 'Alice'),
        make_load('Olive Owner', 'Alice', contract_type='OO'),
        make_load('Tom Transfer', 'Bob', team='Beta'),
    ]
    roster = [
        make_roster_entry('Dan Driver', 'Alice'),
        make_roster_entry('Olive Owner', 'Alice', contract_type='OO'),
        make_roster_entry('Tom Transfer', 'Bob', dispatcher_team='Beta'),
    ]
    return FleetSnapshot(
        stubs=stubs,
        loads=loads,
        roster=roster,
        contract_statuses=[ContractStatusRecord(driver_name='Terry Term', contract_status='Terminated')],
        overdue_loads=[OverdueLoadEvent(dispatcher='Alice', delivery_date=LIVE_DELIVERY, days_past_do=2)],
        trailer_drops=[TrailerDropEvent(dropped_by='Bob', drop_time=LIVE_DELIVERY)],
        as_of=AS_OF,
    )
