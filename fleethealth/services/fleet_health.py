"""
Fleet health engine: view assembly and the aggregate cache.

FleetHealthEngine owns the current snapshot, the domain configuration and an
AggregateCache. A team view (drivers, dispatchers, KPIs) is computed once per
CacheKey and served from the cache until the snapshot or configuration
changes, at which point the whole cache is invalidated.

Compliance scores are computed over the full dispatcher pool of a window
before any view filter is applied, so a dispatcher keeps the same score in
every view of the same window.

Cache hits return deep copies; callers may mutate what they get back without
affecting later hits.

Usage:
    engine = FleetHealthEngine(snapshot=snapshot)
    view = engine.team_view(ViewFilters(weeks_ago=1, team='Alpha'))
"""

import logging
from typing import Any, Callable, Dict, Hashable, List, NamedTuple, Optional

from fleethealth.core.config import get_settings
from fleethealth.models.enums import ContractFilter
from fleethealth.models.schemas import (
    Dispatcher,
    Driver,
    EngineConfig,
    FleetSnapshot,
    LiveLoad,
    PayStub,
    RosterEntry,
    TeamView,
    ViewFilters,
)
from fleethealth.services.aggregates import (
    WindowContext,
    build_dispatcher_pool,
    build_window_context,
    compute_driver_aggregate,
    window_driver_names,
)
from fleethealth.services.compliance import DEFAULT_COMPLIANCE_WEIGHTS
from fleethealth.services.driver_flags import DEFAULT_DRIVER_HEALTH_SETTINGS
from fleethealth.services.kpi import compute_team_kpis, matches_contract_filter
from fleethealth.services.payroll_calendar import window_id, window_label


logger = logging.getLogger(__name__)


def default_engine_config() -> EngineConfig:
    """Fresh copy of the built-in flag catalog, weights and thresholds."""
    return EngineConfig(
        driver_health=DEFAULT_DRIVER_HEALTH_SETTINGS.model_copy(deep=True),
        compliance_weights=dict(DEFAULT_COMPLIANCE_WEIGHTS),
    )


# =============================================================================
# Aggregate Cache
# =============================================================================


class CacheKey(NamedTuple):
    """Everything that changes the content of a team view."""
    window_id: str
    team: Optional[str]
    contract_filter: str
    company: Optional[str]
    franchise: Optional[str]
    access_restriction: Optional[str]

    @classmethod
    def from_filters(cls, filters: ViewFilters) -> 'CacheKey':
        return cls(
            window_id=window_id(filters.weeks_ago),
            team=filters.team,
            contract_filter=ContractFilter(filters.contract_filter).value,
            company=filters.company,
            franchise=filters.franchise,
            access_restriction=filters.access_restriction.lower() if filters.access_restriction else None,
        )


class AggregateCache:
    """
    Memoized aggregates with wholesale invalidation.

    Values are expected to be Pydantic models (or lists of them) and are
    deep-copied on the way in and on the way out.
    """

    def __init__(self) -> None:
        self._entries: Dict[Hashable, Any] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        if key in self._entries:
            self.hits += 1
            logger.debug(f"Aggregate cache hit: {key}")
        else:
            self.misses += 1
            logger.debug(f"Aggregate cache miss: {key}")
            self._entries[key] = _copy(compute())
        return _copy(self._entries[key])

    def invalidate(self) -> None:
        if self._entries:
            logger.info(f"Invalidating {len(self._entries)} cached aggregates")
        self._entries.clear()


def _copy(value: Any) -> Any:
    if isinstance(value, list):
        return [_copy(item) for item in value]
    return value.model_copy(deep=True)


# =============================================================================
# View Predicates
# =============================================================================


def _same_dispatcher(name: Optional[str], restriction: Optional[str]) -> bool:
    return restriction is None or (name or '').lower() == restriction.lower()


def stub_in_view(filters: ViewFilters) -> Callable[[PayStub], bool]:
    def predicate(stub: PayStub) -> bool:
        return (
            _same_dispatcher(stub.stub_dispatcher, filters.access_restriction)
            and (filters.team is None or stub.stub_team == filters.team)
            and (filters.company is None or stub.company_name == filters.company)
            and (filters.franchise is None or stub.franchise_name == filters.franchise)
        )
    return predicate


def load_in_view(filters: ViewFilters) -> Callable[[LiveLoad], bool]:
    def predicate(load: LiveLoad) -> bool:
        return (
            _same_dispatcher(load.dispatcher, filters.access_restriction)
            and (filters.team is None or load.team == filters.team)
            and (filters.company is None or load.company_name == filters.company)
            and (filters.franchise is None or load.franchise_name == filters.franchise)
        )
    return predicate


def roster_in_view(filters: ViewFilters) -> Callable[[RosterEntry], bool]:
    def predicate(entry: RosterEntry) -> bool:
        return (
            _same_dispatcher(entry.dispatcher_name, filters.access_restriction)
            and (filters.team is None or entry.dispatcher_team == filters.team)
            and (filters.company is None or entry.company_name == filters.company)
            and (filters.franchise is None or entry.franchise_name in (None, filters.franchise))
        )
    return predicate


def driver_in_view(driver: Driver, filters: ViewFilters) -> bool:
    return (
        _same_dispatcher(driver.dispatcher, filters.access_restriction)
        and (filters.team is None or driver.team == filters.team)
        and (filters.company is None or driver.company_name == filters.company)
        and (filters.franchise is None or driver.franchise_name == filters.franchise)
        and matches_contract_filter(driver.contract_type, filters.contract_filter)
    )


def dispatcher_in_view(dispatcher: Dispatcher, filters: ViewFilters) -> bool:
    return (
        _same_dispatcher(dispatcher.name, filters.access_restriction)
        and (filters.team is None or dispatcher.team == filters.team)
        and (filters.company is None or dispatcher.company_name == filters.company)
    )


# =============================================================================
# Engine
# =============================================================================


class FleetHealthEngine:
    """
    Owner of the snapshot, configuration and aggregate cache.

    Args:
        snapshot: Initial raw inputs (empty when omitted)
        config: Domain configuration (built-in defaults when omitted)
        cache: Cache instance; a fresh one when omitted
    """

    def __init__(
        self,
        snapshot: Optional[FleetSnapshot] = None,
        config: Optional[EngineConfig] = None,
        cache: Optional[AggregateCache] = None,
    ) -> None:
        self._snapshot = snapshot or FleetSnapshot()
        self._config = config or default_engine_config()
        self.cache = cache if cache is not None else AggregateCache()
        self._use_cache = get_settings().enable_aggregate_cache

    @property
    def snapshot(self) -> FleetSnapshot:
        return self._snapshot

    @property
    def config(self) -> EngineConfig:
        """Copy of the current configuration, to edit and pass to update_config."""
        return self._config.model_copy(deep=True)

    def load_snapshot(self, snapshot: FleetSnapshot) -> None:
        """Replace the raw inputs and drop every cached aggregate."""
        self._snapshot = snapshot
        self.cache.invalidate()
        logger.info(
            f"Loaded snapshot: {len(snapshot.stubs)} stubs, {len(snapshot.loads)} loads, "
            f"{len(snapshot.roster)} roster rows"
        )

    def update_config(self, config: EngineConfig) -> None:
        """Replace the domain configuration and drop every cached aggregate."""
        self._config = config.model_copy(deep=True)
        self.cache.invalidate()
        logger.info("Engine configuration updated")

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def _cached(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        if not self._use_cache:
            return compute()
        return self.cache.get_or_compute(key, compute)

    def window_context(self, weeks_ago: int) -> WindowContext:
        return build_window_context(self._snapshot, weeks_ago)

    def dispatcher_pool(self, weeks_ago: int, context: Optional[WindowContext] = None) -> List[Dispatcher]:
        """Full, unfiltered dispatcher pool of a window with compliance scores."""
        def compute() -> List[Dispatcher]:
            return build_dispatcher_pool(context or self.window_context(weeks_ago), self._config)
        return self._cached(('dispatcher_pool', window_id(weeks_ago)), compute)

    def drivers(self, weeks_ago: int, context: Optional[WindowContext] = None) -> List[Driver]:
        """Every driver active in a window, unfiltered."""
        def compute() -> List[Driver]:
            ctx = context or self.window_context(weeks_ago)
            return [compute_driver_aggregate(name, ctx, self._config) for name in window_driver_names(ctx)]
        return self._cached(('drivers', window_id(weeks_ago)), compute)

    def team_view(self, filters: Optional[ViewFilters] = None) -> TeamView:
        """
        Drivers, dispatchers and KPIs for one view selection.

        Args:
            filters: View selection (live window, no filters when omitted)

        Returns:
            TeamView

        Raises:
            ValueError: If the contract filter is unknown
        """
        filters = filters or ViewFilters()
        key = CacheKey.from_filters(filters)
        return self._cached(key, lambda: self._build_team_view(filters))

    def _build_team_view(self, filters: ViewFilters) -> TeamView:
        context = self.window_context(filters.weeks_ago)
        drivers = [
            driver for driver in self.drivers(filters.weeks_ago, context)
            if driver_in_view(driver, filters)
        ]
        dispatchers = [
            dispatcher for dispatcher in self.dispatcher_pool(filters.weeks_ago, context)
            if dispatcher_in_view(dispatcher, filters)
        ]
        kpis = compute_team_kpis(
            context,
            drivers,
            dispatchers,
            filters.contract_filter,
            stub_in_view=stub_in_view(filters),
            load_in_view=load_in_view(filters),
            roster_in_view=roster_in_view(filters),
        )
        return TeamView(
            window_id=context.window_id,
            window_label=window_label(filters.weeks_ago, context.snapshot.as_of),
            pay_date=context.pay_date,
            drivers=drivers,
            dispatchers=dispatchers,
            kpis=kpis,
        )


__all__ = [
    'default_engine_config',
    'CacheKey',
    'AggregateCache',
    'stub_in_view',
    'load_in_view',
    'roster_in_view',
    'driver_in_view',
    'dispatcher_in_view',
    'FleetHealthEngine',
]
