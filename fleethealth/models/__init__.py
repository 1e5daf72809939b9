"""
Package initialization file for fleet health models.

Re-exports the Pydantic schemas and enumerations so other modules can write:

    from fleethealth.models import PayStub, LiveLoad, ContractType
"""

from fleethealth.models.enums import (
    ComplianceMetric,
    ContractFilter,
    ContractType,
    FlagRule,
    LoadStatus,
    MetricDirection,
    PayDelay,
    RetentionOutcome,
    RetentionStatus,
    TrendDirection,
)

from fleethealth.models.schemas import (
    # Input records
    PayStub,
    LiveLoad,
    ContractStatusRecord,
    RosterEntry,
    OverdueLoadEvent,
    TuesdayOpenEvent,
    MissingPaperworkEvent,
    TrailerDropEvent,
    CalculatorUsageEvent,
    RcEntryEvent,
    # Configuration
    Lookback,
    ThresholdConfig,
    FlagRuleConfig,
    DriverHealthSettings,
    ThresholdSettings,
    EngineConfig,
    # Snapshot / view
    FleetSnapshot,
    ViewFilters,
    # Results
    DriverFlag,
    TransferDetail,
    RetentionBreakdown,
    Driver,
    DispatcherMetrics,
    Dispatcher,
    KpiBundle,
    TeamView,
    # Helpers
    parse_amount,
)

__all__ = [
    "ComplianceMetric",
    "ContractFilter",
    "ContractType",
    "FlagRule",
    "LoadStatus",
    "MetricDirection",
    "PayDelay",
    "RetentionOutcome",
    "RetentionStatus",
    "TrendDirection",
    "PayStub",
    "LiveLoad",
    "ContractStatusRecord",
    "RosterEntry",
    "OverdueLoadEvent",
    "TuesdayOpenEvent",
    "MissingPaperworkEvent",
    "TrailerDropEvent",
    "CalculatorUsageEvent",
    "RcEntryEvent",
    "Lookback",
    "ThresholdConfig",
    "FlagRuleConfig",
    "DriverHealthSettings",
    "ThresholdSettings",
    "EngineConfig",
    "FleetSnapshot",
    "ViewFilters",
    "DriverFlag",
    "TransferDetail",
    "RetentionBreakdown",
    "Driver",
    "DispatcherMetrics",
    "Dispatcher",
    "KpiBundle",
    "TeamView",
    "parse_amount",
]
