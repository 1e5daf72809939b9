"""
Enumeration definitions for the fleet health core.

All enums inherit from both `str` and `Enum` so they serialize cleanly inside
Pydantic models and compare equal to the raw strings found in pay stub and
load exports.

Contents:
- ContractType: Owner-operator vs lease-owner-operator
- RetentionStatus: Employment status recorded on a pay stub
- LoadStatus: Load lifecycle states that matter to scoring
- PayDelay: Pay delay class (1 or 2 weeks)
- FlagRule: Identifiers of the driver flag rules (also the risk weight keys)
- RetentionOutcome: Per-driver retention resolution
- ComplianceMetric: Identifiers of the dispatcher compliance metrics
- MetricDirection: How a compliance metric is normalized
- ContractFilter: View filter over contract types
- TrendDirection: KPI trend indicator
"""

from enum import Enum


class ContractType(str, Enum):
    """
    Driver contract type.

    Values:
    - OO: Owner-operator
    - LOO: Lease owner-operator

    Any contract string other than "OO" resolves to LOO, so the two values
    partition the whole fleet.
    """
    OO = "OO"
    LOO = "LOO"


class RetentionStatus(str, Enum):
    """
    Employment status recorded on a pay stub (retention_status column).

    Only ACTIVE, TERMINATED and START drivers join a dispatcher's retention pool.
    """
    ACTIVE = "Active"
    TERMINATED = "Terminated"
    START = "Start"


class LoadStatus(str, Enum):
    """
    Load statuses that change how a load is scored.

    CANCELED loads are excluded from live KPIs and counted separately.
    CANCELED, TONU and LAYOVER loads carry no meaningful weight and are
    ignored by the heavy loads rule.
    """
    CANCELED = "Canceled"
    TONU = "TONU"
    LAYOVER = "Layover"


class PayDelay(int, Enum):
    """
    Pay delay class of a driver.

    - STANDARD: Paid the Thursday after the period closes
    - DELAYED: Paid one week later
    """
    STANDARD = 1
    DELAYED = 2


class FlagRule(str, Enum):
    """
    Driver flag rule identifiers.

    The values double as the keys of the drop-risk weight configuration, so
    a flag is weighted by its rule id and never by its display label.
    """
    HIGH_TOLLS = "highTolls"
    HEAVY_LOADS = "heavyLoads"
    DISPATCHER_HOPPER = "dispatcherHopper"
    TENURE = "tenure"
    NEGATIVE = "negative"
    LOW_RPM = "lowRpm"
    LOW_GROSS = "lowGross"
    LOW_NET = "lowNet"


class RetentionOutcome(str, Enum):
    """Resolution of a pooled driver relative to the pooling dispatcher."""
    RETAINED = "retained"
    TERMINATED = "terminated"
    TRANSFERRED = "transferred"


class ComplianceMetric(str, Enum):
    """
    Dispatcher compliance metric identifiers (keys of the compliance weights).
    """
    GOOD_MOVES = "goodMoves"
    BAD_MOVES = "badMoves"
    HIDDEN_MILES = "hiddenMiles"
    LOW_RPM = "lowRpm"
    OVERDUE_LOADS = "overdueLoads"
    TUESDAY_OPEN = "tuesdayOpen"
    MISSING_PAPERWORK = "missingPaperwork"
    WELLNESS = "wellness"
    RETENTION = "retention"
    TENURE = "tenure"
    TRAILER_DROPS = "trailerDrops"
    TRAILER_RECOVERIES = "trailerRecoveries"
    CALCULATOR_ACTIVITY = "calculatorActivity"
    RC_ENTRY = "rcEntry"


class MetricDirection(str, Enum):
    """
    Normalization direction for a compliance metric.

    - HIGHER_IS_BETTER: value / max * 100
    - LOWER_IS_BETTER: (1 - value / max) * 100
    - AS_IS: value is already a 0-100 percentage
    """
    HIGHER_IS_BETTER = "higher"
    LOWER_IS_BETTER = "lower"
    AS_IS = "as_is"


class ContractFilter(str, Enum):
    """View filter over driver contract types."""
    ALL = "all"
    OO = "oo"
    LOO = "loo"


class TrendDirection(str, Enum):
    """Direction of a KPI change between two windows."""
    UP = "up"
    DOWN = "down"
    NO_CHANGE = "no_change"


__all__ = [
    "ContractType",
    "RetentionStatus",
    "LoadStatus",
    "PayDelay",
    "FlagRule",
    "RetentionOutcome",
    "ComplianceMetric",
    "MetricDirection",
    "ContractFilter",
    "TrendDirection",
]
