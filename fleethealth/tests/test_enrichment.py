"""
Stub Enrichment Test Module

Forward-fill of dispatcher, team and company per driver, and the
"latest record wins" reducers.
"""

from datetime import datetime, timezone

from fleethealth.services.enrichment import (
    build_live_dispatcher_map,
    enrich_stubs,
    latest_by_key,
    latest_stub_per_driver,
)
from fleethealth.services.payroll_calendar import resolve_window
from fleethealth.tests.conftest import (
    AS_OF,
    LAST_PAY_DATE,
    THREE_WEEKS_PAY_DATE,
    TWO_WEEKS_PAY_DATE,
)


class TestEnrichStubs:
    """Forward-fill semantics of enrich_stubs."""

    def test_missing_fields_filled_from_earlier_stub(self, make_stub):
        stubs = [
            make_stub('Dan', LAST_PAY_DATE, dispatcher=None, stub_team=None, company_name=None),
            make_stub('Dan', TWO_WEEKS_PAY_DATE),
        ]
        enriched = enrich_stubs(stubs)
        assert [stub.pay_date for stub in enriched] == [TWO_WEEKS_PAY_DATE, LAST_PAY_DATE]
        latest = enriched[-1]
        assert latest.stub_dispatcher == 'Alice'
        assert latest.stub_team == 'Alpha'
        assert latest.company_name == 'Acme Logistics'

    def test_current_assignment_used_before_history(self, make_stub):
        """current_dispatcher / current_team fill a stub before last-known values do."""
        stubs = [
            make_stub('Dan', TWO_WEEKS_PAY_DATE),
            make_stub('Dan', LAST_PAY_DATE, dispatcher=None, stub_team=None,
                      current_dispatcher='Bob', current_team='Beta'),
        ]
        latest = enrich_stubs(stubs)[-1]
        assert latest.stub_dispatcher == 'Bob'
        assert latest.stub_team == 'Beta'

    def test_values_never_filled_backwards(self, make_stub):
        stubs = [
            make_stub('Dan', THREE_WEEKS_PAY_DATE, dispatcher=None),
            make_stub('Dan', LAST_PAY_DATE),
        ]
        assert enrich_stubs(stubs)[0].stub_dispatcher is None

    def test_drivers_filled_independently(self, make_stub):
        stubs = [
            make_stub('Dan', TWO_WEEKS_PAY_DATE),
            make_stub('Eve', LAST_PAY_DATE, dispatcher=None),
        ]
        eve = [stub for stub in enrich_stubs(stubs) if stub.driver_name == 'Eve'][0]
        assert eve.stub_dispatcher is None

    def test_inputs_left_untouched(self, make_stub):
        stubs = [
            make_stub('Dan', TWO_WEEKS_PAY_DATE),
            make_stub('Dan', LAST_PAY_DATE, dispatcher=None),
        ]
        enrich_stubs(stubs)
        assert stubs[1].stub_dispatcher is None


class TestLatestWins:
    """Ordering rules of the reducers."""

    def test_latest_by_key_ties_keep_input_order(self):
        records = [('a', 1, 'first'), ('a', 1, 'second'), ('a', 0, 'older')]
        latest = latest_by_key(records, key=lambda r: r[0], sort_key=lambda r: r[1])
        assert latest['a'][2] == 'second'

    def test_latest_stub_per_driver_caps_at_pay_date(self, make_stub):
        stubs = [
            make_stub('Dan', TWO_WEEKS_PAY_DATE, dispatcher='Alice'),
            make_stub('Dan', LAST_PAY_DATE, dispatcher='Bob'),
        ]
        assert latest_stub_per_driver(stubs)['Dan'].stub_dispatcher == 'Bob'
        capped = latest_stub_per_driver(stubs, on_or_before=TWO_WEEKS_PAY_DATE)
        assert capped['Dan'].stub_dispatcher == 'Alice'

    def test_live_dispatcher_map_last_load_wins(self, make_load):
        loads = [
            make_load('Dan', 'Bob', do_date=datetime(2026, 10, 15, 9, 0, tzinfo=timezone.utc)),
            make_load('Dan', 'Alice', do_date=datetime(2026, 10, 14, 9, 0, tzinfo=timezone.utc)),
            make_load('Dan', None, do_date=datetime(2026, 10, 16, 9, 0, tzinfo=timezone.utc)),
        ]
        assert build_live_dispatcher_map(loads) == {'Dan': 'Bob'}

    def test_live_dispatcher_map_respects_window(self, make_load):
        """Loads outside the window are ignored when a window is given."""
        loads = [
            make_load('Dan', 'Alice', do_date=datetime(2026, 10, 14, 9, 0, tzinfo=timezone.utc)),
            make_load('Dan', 'Bob', do_date=datetime(2026, 10, 21, 9, 0, tzinfo=timezone.utc)),
        ]
        window = resolve_window(0, AS_OF)
        assert build_live_dispatcher_map(loads, window) == {'Dan': 'Alice'}

    def test_naive_and_aware_dates_mix(self, make_load):
        """Naive timestamps are treated as UTC so they sort against aware ones."""
        loads = [
            make_load('Dan', 'Alice', do_date=datetime(2026, 10, 15, 10, 0)),
            make_load('Dan', 'Bob', do_date=datetime(2026, 10, 15, 9, 0, tzinfo=timezone.utc)),
        ]
        assert build_live_dispatcher_map(loads) == {'Dan': 'Alice'}
