"""
Median Tenure Test Module

Tenure counts distinct positive-mile pay dates under a dispatcher up to a
cutoff; the dispatcher's tenure is the median over drivers with any weeks.
"""

from datetime import timedelta

from fleethealth.models.enums import ContractType
from fleethealth.services.tenure import count_tenure_weeks, median_tenure
from fleethealth.tests.conftest import LAST_PAY_DATE, LIVE_PAY_DATE


def _weeks(make_stub, driver, count, dispatcher='Alice', **overrides):
    return [
        make_stub(driver, LAST_PAY_DATE - timedelta(days=7 * week), dispatcher, **overrides)
        for week in range(count)
    ]


class TestCountTenureWeeks:

    def test_counts_distinct_pay_dates(self, make_stub):
        stubs = _weeks(make_stub, 'Dan', 3) + [make_stub('Dan', LAST_PAY_DATE)]
        assert count_tenure_weeks('Dan', 'Alice', stubs, LAST_PAY_DATE) == 3

    def test_ignores_other_dispatchers_and_empty_weeks(self, make_stub):
        stubs = (
            _weeks(make_stub, 'Dan', 2)
            + [make_stub('Dan', LAST_PAY_DATE - timedelta(days=14), 'Bob')]
            + [make_stub('Dan', LAST_PAY_DATE - timedelta(days=21), total_miles=0)]
        )
        assert count_tenure_weeks('Dan', 'Alice', stubs, LAST_PAY_DATE) == 2

    def test_cutoff_excludes_later_stubs(self, make_stub):
        stubs = _weeks(make_stub, 'Dan', 2) + [make_stub('Dan', LIVE_PAY_DATE)]
        assert count_tenure_weeks('Dan', 'Alice', stubs, LAST_PAY_DATE) == 2


class TestMedianTenure:

    def test_median_skips_drivers_without_weeks(self, make_stub):
        """Drivers with 3, 5 and 0 weeks give a median of 4."""
        stubs = (
            _weeks(make_stub, 'Dan', 3)
            + _weeks(make_stub, 'Eve', 5)
            + _weeks(make_stub, 'Fay', 4, dispatcher='Bob')
        )
        roster = [('Dan', 'LOO'), ('Eve', 'LOO'), ('Fay', 'LOO')]
        assert median_tenure('Alice', ContractType.LOO, roster, stubs, LAST_PAY_DATE) == 4.0

    def test_no_drivers(self, make_stub):
        assert median_tenure('Alice', ContractType.OO, [], [make_stub()], LAST_PAY_DATE) is None

    def test_contract_types_split(self, make_stub):
        stubs = _weeks(make_stub, 'Dan', 3) + _weeks(make_stub, 'Olive', 6, contract_type='OO')
        roster = [('Dan', 'LOO'), ('Olive', 'OO')]
        assert median_tenure('Alice', ContractType.OO, roster, stubs, LAST_PAY_DATE) == 6.0
        assert median_tenure('Alice', ContractType.LOO, roster, stubs, LAST_PAY_DATE) == 3.0

    def test_unknown_contract_counts_as_lease(self, make_stub):
        stubs = _weeks(make_stub, 'Dan', 2)
        assert median_tenure('Alice', ContractType.LOO, [('Dan', 'MCLOO')], stubs, LAST_PAY_DATE) == 2.0

    def test_live_credit_for_current_week(self, make_stub, make_load):
        """A driver hauling for the dispatcher this week without a live stub gets one extra week."""
        stubs = _weeks(make_stub, 'Dan', 2)
        loads = [make_load('Dan', 'Alice')]
        tenure = median_tenure(
            'Alice', ContractType.LOO, [('Dan', 'LOO')], stubs, LIVE_PAY_DATE,
            live_loads=loads, live_pay_date=LIVE_PAY_DATE,
        )
        assert tenure == 3.0

    def test_no_live_credit_with_live_stub(self, make_stub, make_load):
        stubs = _weeks(make_stub, 'Dan', 2) + [make_stub('Dan', LIVE_PAY_DATE)]
        tenure = median_tenure(
            'Alice', ContractType.LOO, [('Dan', 'LOO')], stubs, LIVE_PAY_DATE,
            live_loads=[make_load('Dan', 'Alice')], live_pay_date=LIVE_PAY_DATE,
        )
        assert tenure == 3.0

    def test_no_live_credit_for_other_dispatcher(self, make_stub, make_load):
        stubs = _weeks(make_stub, 'Dan', 2)
        tenure = median_tenure(
            'Alice', ContractType.LOO, [('Dan', 'LOO')], stubs, LIVE_PAY_DATE,
            live_loads=[make_load('Dan', 'Bob')], live_pay_date=LIVE_PAY_DATE,
        )
        assert tenure == 2.0
