"""
Fleet Health Engine Test Module

End-to-end team views over the shared fleet snapshot: filters, cache
behavior and invalidation on snapshot or configuration changes.
"""

import pytest

from fleethealth.models.schemas import FleetSnapshot, ViewFilters
from fleethealth.services.fleet_health import AggregateCache, CacheKey, FleetHealthEngine
from fleethealth.tests.conftest import AS_OF, LAST_PAY_DATE, LIVE_PAY_DATE


pytestmark = pytest.mark.scenario


@pytest.fixture
def engine(fleet_snapshot) -> FleetHealthEngine:
    return FleetHealthEngine(snapshot=fleet_snapshot)


def _names(items):
    return [item.name for item in items]


class TestTeamView:

    def test_historical_view(self, engine):
        view = engine.team_view(ViewFilters(weeks_ago=1))
        assert view.window_id == 'week_1'
        assert view.window_label == 'Oct 6 - Oct 12'
        assert view.pay_date == LAST_PAY_DATE
        assert _names(view.drivers) == ['Dan Driver', 'Olive Owner', 'Terry Term', 'Tom Transfer']
        assert _names(view.dispatchers) == ['Alice', 'Bob']
        assert view.kpis.retention == 75.0

    def test_live_view(self, engine):
        view = engine.team_view()
        assert view.window_id == 'live'
        assert view.window_label == 'LIVE (Oct 13 - Oct 19)'
        assert view.pay_date == LIVE_PAY_DATE
        assert _names(view.drivers) == ['Dan Driver', 'Olive Owner', 'Tom Transfer']
        bob = [d for d in view.dispatchers if d.name == 'Bob'][0]
        assert bob.retention.percentage == 50.0

    def test_team_filter(self, engine):
        view = engine.team_view(ViewFilters(weeks_ago=1, team='Alpha'))
        assert _names(view.drivers) == ['Dan Driver', 'Olive Owner']
        assert _names(view.dispatchers) == ['Alice']
        assert view.kpis.dispatcher_count == 1

    def test_contract_filter(self, engine):
        view = engine.team_view(ViewFilters(weeks_ago=1, contract_filter='oo'))
        assert _names(view.drivers) == ['Olive Owner']

    def test_access_restriction_case_insensitive(self, engine):
        view = engine.team_view(ViewFilters(weeks_ago=1, access_restriction='ALICE'))
        assert _names(view.dispatchers) == ['Alice']
        assert _names(view.drivers) == ['Dan Driver', 'Olive Owner']

    def test_compliance_independent_of_filter(self, engine):
        """A dispatcher is scored against the full pool whatever the view filter."""
        full = {d.name: d.compliance_score for d in engine.team_view(ViewFilters(weeks_ago=1)).dispatchers}
        filtered = engine.team_view(ViewFilters(weeks_ago=1, team='Alpha')).dispatchers
        assert filtered[0].compliance_score == full['Alice']

    def test_recomputation_is_deterministic(self, fleet_snapshot):
        """Two engines over the same snapshot produce identical views."""
        filters = ViewFilters(weeks_ago=1)
        first = FleetHealthEngine(snapshot=fleet_snapshot).team_view(filters)
        second = FleetHealthEngine(snapshot=fleet_snapshot).team_view(filters)
        assert first == second

    def test_filter_matching_nothing(self, engine):
        """A view with no dispatchers reports no fleet-wide event counts."""
        view = engine.team_view(ViewFilters(weeks_ago=0, team='NoSuchTeam'))
        assert view.dispatchers == []
        assert view.kpis.dispatcher_count == 0
        assert view.kpis.trailer_drops == 0

    def test_empty_snapshot(self):
        engine = FleetHealthEngine(snapshot=FleetSnapshot(as_of=AS_OF))
        view = engine.team_view()
        assert view.drivers == []
        assert view.dispatchers == []
        assert view.kpis.retention is None
        assert view.kpis.median_compliance == 0.0


class TestAggregateCache:

    def test_hit_returns_same_view(self, engine):
        filters = ViewFilters(weeks_ago=1)
        cold = engine.team_view(filters)
        warm = engine.team_view(filters)
        assert warm == cold
        assert engine.cache.hits == 1
        assert engine.cache.misses == 3  # view, drivers, dispatcher pool

    def test_hits_are_copies(self, engine):
        filters = ViewFilters(weeks_ago=1)
        first = engine.team_view(filters)
        first.drivers.clear()
        first.kpis.total_gross = -1
        second = engine.team_view(filters)
        assert len(second.drivers) == 4
        assert second.kpis.total_gross > 0

    def test_distinct_filters_cached_separately(self, engine):
        engine.team_view(ViewFilters(weeks_ago=1))
        engine.team_view(ViewFilters(weeks_ago=1, team='Alpha'))
        assert CacheKey.from_filters(ViewFilters(weeks_ago=1)) in engine.cache
        assert CacheKey.from_filters(ViewFilters(weeks_ago=1, team='Alpha')) in engine.cache

    def test_cache_key_normalizes_restriction(self):
        upper = CacheKey.from_filters(ViewFilters(access_restriction='ALICE'))
        lower = CacheKey.from_filters(ViewFilters(access_restriction='alice'))
        assert upper == lower

    def test_load_snapshot_invalidates(self, engine):
        engine.team_view(ViewFilters(weeks_ago=1))
        assert len(engine.cache) > 0
        engine.load_snapshot(FleetSnapshot(as_of=AS_OF))
        assert len(engine.cache) == 0
        assert engine.team_view(ViewFilters(weeks_ago=1)).drivers == []

    def test_update_config_invalidates(self, engine):
        filters = ViewFilters(weeks_ago=1)
        before = engine.team_view(filters)
        assert any(driver.drop_risk > 0 for driver in before.drivers)

        config = engine.config
        config.driver_health.weights = {rule: 0.0 for rule in config.driver_health.weights}
        engine.update_config(config)
        after = engine.team_view(filters)
        assert all(driver.drop_risk == 0.0 for driver in after.drivers)

    def test_config_property_is_a_copy(self, engine):
        engine.config.compliance_weights['retention'] = 0
        assert engine.config.compliance_weights['retention'] > 0

    def test_cache_disabled_by_settings(self, fleet_snapshot, monkeypatch):
        monkeypatch.setenv('ENABLE_AGGREGATE_CACHE', 'false')
        engine = FleetHealthEngine(snapshot=fleet_snapshot)
        engine.team_view(ViewFilters(weeks_ago=1))
        assert len(engine.cache) == 0

    def test_shared_cache_instance(self, fleet_snapshot):
        cache = AggregateCache()
        engine = FleetHealthEngine(snapshot=fleet_snapshot, cache=cache)
        engine.team_view()
        assert engine.cache is cache
        assert len(cache) == 3
        cache.invalidate()
        assert len(cache) == 0
        engine.team_view()
        assert (len(cache), cache.hits, cache.misses) == (3, 0, 6)
