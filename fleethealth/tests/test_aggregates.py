"""
Window Aggregates Test Module

Driver and dispatcher aggregates over the shared fleet snapshot, for the live
window and for settled weeks.
"""

import pytest

from fleethealth.models.enums import FlagRule, RetentionOutcome
from fleethealth.services.aggregates import (
    build_dispatcher_pool,
    build_window_context,
    compute_dispatcher_aggregate,
    compute_driver_aggregate,
    window_dispatcher_names,
    window_driver_names,
)
from fleethealth.tests.conftest import LAST_PAY_DATE, LIVE_PAY_DATE, TWO_WEEKS_PAY_DATE


class TestWindowContext:

    def test_historical_context(self, fleet_snapshot):
        context = build_window_context(fleet_snapshot, 1)
        assert not context.is_live
        assert context.window_id == 'week_1'
        assert context.pay_date == LAST_PAY_DATE
        assert context.previous_pay_date == TWO_WEEKS_PAY_DATE
        assert context.live_context is None

    def test_live_context(self, fleet_snapshot):
        context = build_window_context(fleet_snapshot, 0)
        assert context.is_live
        assert context.pay_date == LIVE_PAY_DATE
        assert context.previous_pay_date == LAST_PAY_DATE
        assert len(context.window_loads) == 3
        assert context.live_context.is_terminated('Terry Term')

    def test_negative_offset_rejected(self, fleet_snapshot):
        with pytest.raises(ValueError):
            build_window_context(fleet_snapshot, -1)


class TestDriverAggregate:

    def test_historical_money_from_pay_date_stub(self, fleet_snapshot, engine_config):
        context = build_window_context(fleet_snapshot, 1)
        driver = compute_driver_aggregate('Dan Driver', context, engine_config)
        assert driver.gross == 5000
        assert driver.margin == 500
        assert driver.miles == 2000
        assert driver.rpm == 2.4
        assert driver.dispatcher == 'Alice'
        assert driver.contract_type == 'LOO'

    def test_flags_and_drop_risk(self, fleet_snapshot, engine_config):
        """Three stubs make Dan a new hire, weighted 20 out of 100."""
        context = build_window_context(fleet_snapshot, 1)
        driver = compute_driver_aggregate('Dan Driver', context, engine_config)
        assert [flag.rule for flag in driver.flags] == [FlagRule.TENURE]
        assert driver.drop_risk == pytest.approx(20.0)

    def test_historical_identity_is_point_in_time(self, fleet_snapshot, engine_config):
        context = build_window_context(fleet_snapshot, 2)
        assert compute_driver_aggregate('Tom Transfer', context, engine_config).dispatcher == 'Alice'
        context = build_window_context(fleet_snapshot, 1)
        assert compute_driver_aggregate('Tom Transfer', context, engine_config).dispatcher == 'Bob'

    def test_live_money_from_loads(self, fleet_snapshot, engine_config):
        context = build_window_context(fleet_snapshot, 0)
        driver = compute_driver_aggregate('Tom Transfer', context, engine_config)
        assert driver.gross == 2500
        assert driver.margin == 300
        assert driver.miles == 1000
        assert driver.rpm == pytest.approx(2.5)
        assert driver.dispatcher == 'Bob'
        assert driver.team == 'Beta'

    def test_live_canceled_loads_excluded(self, fleet_snapshot, engine_config, make_load):
        fleet_snapshot.loads.append(make_load('Dan Driver', 'Alice', status='Canceled', price=9000))
        context = build_window_context(fleet_snapshot, 0)
        assert compute_driver_aggregate('Dan Driver', context, engine_config).gross == 2500

    def test_live_termination_sets_status(self, fleet_snapshot, engine_config):
        context = build_window_context(fleet_snapshot, 0)
        driver = compute_driver_aggregate('Terry Term', context, engine_config)
        assert driver.status == 'Terminated'
        assert driver.gross == 0

    def test_window_driver_names(self, fleet_snapshot):
        assert window_driver_names(build_window_context(fleet_snapshot, 0)) == [
            'Dan Driver', 'Olive Owner', 'Tom Transfer',
        ]
        assert window_driver_names(build_window_context(fleet_snapshot, 1)) == [
            'Dan Driver', 'Olive Owner', 'Terry Term', 'Tom Transfer',
        ]


class TestDispatcherAggregate:

    def test_historical_retention_and_trucks(self, fleet_snapshot, engine_config):
        context = build_window_context(fleet_snapshot, 1)
        alice = compute_dispatcher_aggregate('Alice', context, engine_config)
        assert (alice.all_trucks, alice.oo_trucks, alice.loo_trucks) == (2, 1, 1)
        assert alice.team == 'Alpha'
        assert alice.retention.percentage == 100.0
        assert alice.metrics.retention == 100.0

    def test_transfer_lowers_previous_dispatcher_retention(self, fleet_snapshot, engine_config):
        context = build_window_context(fleet_snapshot, 2)
        alice = compute_dispatcher_aggregate('Alice', context, engine_config)
        assert alice.retention.pool_size == 3
        assert alice.retention.outcomes['Tom Transfer'] is RetentionOutcome.TRANSFERRED
        assert alice.retention.percentage == pytest.approx(200 / 3)

    def test_tenure_split_by_contract(self, fleet_snapshot, engine_config):
        context = build_window_context(fleet_snapshot, 1)
        alice = compute_dispatcher_aggregate('Alice', context, engine_config)
        assert alice.metrics.tenure_loo == 3.0
        assert alice.metrics.tenure_oo == 2.0

    def test_live_retention_uses_previous_pay_date(self, fleet_snapshot, engine_config):
        context = build_window_context(fleet_snapshot, 0)
        bob = compute_dispatcher_aggregate('Bob', context, engine_config)
        assert bob.retention.pay_date == LAST_PAY_DATE
        assert bob.retention.outcomes == {
            'Terry Term': RetentionOutcome.TERMINATED,
            'Tom Transfer': RetentionOutcome.RETAINED,
        }
        assert bob.metrics.retention == 50.0

    def test_live_load_counts(self, fleet_snapshot, engine_config):
        context = build_window_context(fleet_snapshot, 0)
        alice = compute_dispatcher_aggregate('Alice', context, engine_config)
        assert alice.loads == 2
        assert alice.metrics.overdue_loads == 2

    def test_window_dispatcher_names(self, fleet_snapshot):
        assert window_dispatcher_names(build_window_context(fleet_snapshot, 1)) == ['Alice', 'Bob']


class TestDispatcherPool:

    def test_pool_scores_bounded(self, fleet_snapshot, engine_config):
        pool = build_dispatcher_pool(build_window_context(fleet_snapshot, 1), engine_config)
        assert [d.name for d in pool] == ['Alice', 'Bob']
        for dispatcher in pool:
            assert 0.0 <= dispatcher.compliance_score <= 100.0

    def test_single_aggregate_matches_pool_score(self, fleet_snapshot, engine_config):
        """Scoring one dispatcher against the pool gives the same score as scoring the pool."""
        context = build_window_context(fleet_snapshot, 0)
        pool = build_dispatcher_pool(context, engine_config)
        for dispatcher in pool:
            single = compute_dispatcher_aggregate(dispatcher.name, context, engine_config, peer_pool=pool)
            assert single.compliance_score == pytest.approx(dispatcher.compliance_score)

    def test_without_peer_pool_score_left_unset(self, fleet_snapshot, engine_config):
        context = build_window_context(fleet_snapshot, 1)
        assert compute_dispatcher_aggregate('Alice', context, engine_config).compliance_score == 0.0
