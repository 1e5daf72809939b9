"""
Pydantic models for the fleet health core.

This module provides type-safe data validation for every record the core reads
(pay stubs, live loads, contract status rows, the live roster and the dispatcher
event feeds), the user-editable domain configuration (threshold configs, flag
rule catalog, score weights) and every computed result (driver and dispatcher
aggregates, retention breakdowns, KPI bundles).

Input records tolerate the messy values found in spreadsheet exports: numeric
fields accept thousands separators, blanks, None and "-", and anything that
cannot be parsed is coerced to 0.0 so it contributes nothing to sums.

All models use Pydantic v2 syntax.
"""

from datetime import date as DateType, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fleethealth.models.enums import (
    ContractFilter,
    FlagRule,
    RetentionOutcome,
)


# =============================================================================
# Value Coercion
# =============================================================================


def parse_amount(value: Any) -> float:
    """
    Parse a numeric cell from an export into a float.

    Strips thousands separators and currency signs. Blank, missing and
    unparseable values become 0.0.

    Args:
        value: Raw cell value (number, string or None)

    Returns:
        Parsed float, or 0.0 when the value is malformed
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        if value != value:  # NaN
            return 0.0
        return float(value)
    text = str(value).strip().replace(',', '').replace('$', '')
    if not text or text == '-':
        return 0.0
    try:
        parsed = float(text)
    except ValueError:
        return 0.0
    if parsed != parsed:
        return 0.0
    return parsed


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    return value


# =============================================================================
# Input Records
# =============================================================================


class PayStub(BaseModel):
    """
    One settled weekly pay stub for a driver.

    stub_dispatcher / stub_team are the point-in-time dispatcher and team of
    record for the week; current_dispatcher / current_team are the driver's
    assignment at export time and are only a fallback during enrichment.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "driver_name": "John Smith",
                "pay_date": "2026-10-15",
                "stub_dispatcher": "Alice",
                "stub_team": "Alpha",
                "company_name": "Acme Logistics",
                "contract_type": "OO",
                "total_miles": 2850,
                "driver_gross": 7200.5,
                "margin": 950,
                "net_pay": 3100,
                "rpm_all": 2.53,
                "retention_status": "Active",
            }
        },
    )

    driver_name: str = Field(..., description="Driver full name (driver key)")
    pay_date: DateType = Field(..., description="Pay date of the stub")
    stub_dispatcher: Optional[str] = Field(None, description="Dispatcher of record for the week")
    current_dispatcher: Optional[str] = Field(None, description="Dispatcher at export time")
    stub_team: Optional[str] = Field(None, description="Team of record for the week")
    current_team: Optional[str] = Field(None, description="Team at export time")
    company_name: Optional[str] = Field(None, description="Company the driver hauls for")
    franchise_name: Optional[str] = Field(None, description="Franchise the driver belongs to")
    contract_type: Optional[str] = Field(None, description="Raw contract type string")
    total_miles: float = Field(0.0, description="Miles driven in the week")
    driver_gross: float = Field(0.0, description="Driver gross pay")
    margin: float = Field(0.0, description="Company margin on the week")
    net_pay: float = Field(0.0, description="Driver net pay")
    rpm_all: float = Field(0.0, description="Revenue per mile, all miles")
    balance: float = Field(0.0, description="Outstanding balance")
    balance_settle: float = Field(0.0, description="Balance settled this week")
    po_deductions: float = Field(0.0, description="Purchase-order deductions")
    po_settle: float = Field(0.0, description="Purchase-order amount settled")
    total_expected_tolls: float = Field(0.0, description="Expected tolls for the week")
    retention_status: Optional[str] = Field(None, description="Active / Terminated / Start")
    trailer_type: Optional[str] = Field(None, description="Equipment type")

    @field_validator(
        'total_miles', 'driver_gross', 'margin', 'net_pay', 'rpm_all', 'balance',
        'balance_settle', 'po_deductions', 'po_settle', 'total_expected_tolls',
        mode='before',
    )
    @classmethod
    def _coerce_amount(cls, value: Any) -> float:
        return parse_amount(value)

    @field_validator(
        'stub_dispatcher', 'current_dispatcher', 'stub_team', 'current_team',
        'company_name', 'franchise_name', 'contract_type', 'retention_status',
        'trailer_type',
        mode='before',
    )
    @classmethod
    def _coerce_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)


class LiveLoad(BaseModel):
    """
    One in-progress or recently delivered load for the current payroll week.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    driver: str = Field(..., description="Driver full name (driver key)")
    dispatcher: Optional[str] = Field(None, description="Dispatcher who booked the load")
    team: Optional[str] = Field(None, description="Dispatcher team")
    company_name: Optional[str] = None
    franchise_name: Optional[str] = None
    contract_type: Optional[str] = None
    price: float = Field(0.0, description="Load price")
    cut: float = Field(0.0, description="Company cut of the load")
    trip_miles: float = Field(0.0, description="Loaded miles")
    deadhead_miles: float = Field(0.0, description="Empty miles to pickup")
    weight: float = Field(0.0, description="Cargo weight in lbs")
    rpm_all: float = Field(0.0, description="Revenue per mile including deadhead")
    driver_gross_without_moved: float = Field(
        0.0, description="Driver gross for the week excluding the moved load"
    )
    status: Optional[str] = Field(None, description="Load status (Canceled, TONU, ...)")
    pu_date: Optional[datetime] = Field(None, description="Pickup date")
    do_date: Optional[datetime] = Field(None, description="Delivery date")
    wellness_fail: Optional[str] = Field(None, description="GOOD / FAIL / '-' wellness check")
    moved_monday: bool = Field(False, description="Load was moved to Monday")
    hidden_miles: bool = Field(False, description="Hidden miles were found on the load")
    new_start: bool = Field(False, description="Load is the driver's first with the company")

    @field_validator(
        'price', 'cut', 'trip_miles', 'deadhead_miles', 'weight', 'rpm_all',
        'driver_gross_without_moved',
        mode='before',
    )
    @classmethod
    def _coerce_amount(cls, value: Any) -> float:
        return parse_amount(value)

    @field_validator(
        'dispatcher', 'team', 'company_name', 'franchise_name', 'contract_type',
        'status', 'wellness_fail',
        mode='before',
    )
    @classmethod
    def _coerce_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @property
    def activity_date(self) -> Optional[datetime]:
        """Delivery date, falling back to pickup date."""
        return self.do_date or self.pu_date


class ContractStatusRecord(BaseModel):
    """Live contract status of a driver (e.g. Terminated)."""
    model_config = ConfigDict(str_strip_whitespace=True)

    driver_name: str
    contract_status: Optional[str] = None


class RosterEntry(BaseModel):
    """Row of the live driver count: a driver's current dispatcher assignment."""
    model_config = ConfigDict(str_strip_whitespace=True)

    driver_name: str
    dispatcher_name: Optional[str] = None
    dispatcher_team: Optional[str] = None
    company_name: Optional[str] = None
    franchise_name: Optional[str] = None
    contract_type: Optional[str] = None


class OverdueLoadEvent(BaseModel):
    """Load delivered but not closed on time."""
    dispatcher: str
    delivery_date: datetime
    days_past_do: float = 0.0

    @field_validator('days_past_do', mode='before')
    @classmethod
    def _coerce_amount(cls, value: Any) -> float:
        return parse_amount(value)


class TuesdayOpenEvent(BaseModel):
    """Load left open past the Tuesday payroll cutoff."""
    dispatcher: str
    date: datetime


class MissingPaperworkEvent(BaseModel):
    """Delivered load without its paperwork."""
    dispatcher: str
    do_date: datetime


class TrailerDropEvent(BaseModel):
    """Trailer dropped by one dispatcher and possibly recovered by another."""
    dropped_by: Optional[str] = None
    drop_time: Optional[datetime] = None
    recovered_by: Optional[str] = None
    recovery_time: Optional[datetime] = None


class CalculatorUsageEvent(BaseModel):
    """Minutes a dispatcher spent in the rate calculator on a given day."""
    dispatcher: str
    date: datetime
    minutes: float = 0.0

    @field_validator('minutes', mode='before')
    @classmethod
    def _coerce_amount(cls, value: Any) -> float:
        return parse_amount(value)


class RcEntryEvent(BaseModel):
    """Time it took a dispatcher to enter a rate confirmation."""
    dispatcher: str
    date: datetime
    entry_minutes: float = 0.0

    @field_validator('entry_minutes', mode='before')
    @classmethod
    def _coerce_amount(cls, value: Any) -> float:
        return parse_amount(value)


# =============================================================================
# Domain Configuration
# =============================================================================


class Lookback(BaseModel):
    """Lookback of a flag rule: all stubs, or the last N weeks of pay dates."""
    type: Literal['allTime', 'weeks'] = 'weeks'
    value: int = Field(4, ge=0)


class ThresholdConfig(BaseModel):
    """
    Threshold with per-contract overrides.

    The effective threshold for a contract type is by_contract[contract]
    when present, else default.
    """
    default: float = 0.0
    by_contract: Dict[str, float] = Field(default_factory=dict)
    lookback: Optional[Lookback] = None
    min_sample: Optional[int] = None


class FlagRuleConfig(BaseModel):
    """
    Configuration of one driver flag rule.

    Not every field applies to every rule: the tenure rule reads
    new_hire_thresholds / veteran_thresholds, the low metric rules read
    min_percentage_of_stubs, the heavy loads rule reads min_loads.
    """
    enabled: bool = True
    label: str
    color: str = "#ef4444"
    lookback: Lookback = Field(default_factory=Lookback)
    thresholds: ThresholdConfig = Field(default_factory=ThresholdConfig)
    min_stubs: int = 0
    min_loads: int = 0
    min_percentage_of_stubs: float = 0.0
    new_hire_thresholds: Optional[ThresholdConfig] = None
    veteran_thresholds: Optional[ThresholdConfig] = None
    positive_label: Optional[str] = None
    positive_color: Optional[str] = None


class DriverHealthSettings(BaseModel):
    """Driver flag rule catalog plus the drop-risk weights keyed by rule id."""
    flags: Dict[FlagRule, FlagRuleConfig]
    weights: Dict[str, float] = Field(default_factory=dict)


class ThresholdSettings(BaseModel):
    """Dispatcher-side thresholds used to derive compliance metric inputs."""
    low_rpm: ThresholdConfig = Field(default_factory=lambda: ThresholdConfig(default=1.5))
    good_move: ThresholdConfig = Field(
        default_factory=lambda: ThresholdConfig(
            default=6000, by_contract={"OO": 5500, "LOO": 6500}
        )
    )


class EngineConfig(BaseModel):
    """
    All user-editable domain configuration in one object.

    Edits are read-modify-write: callers take a copy, change it and hand it
    back through FleetHealthEngine.update_config.
    """
    driver_health: DriverHealthSettings
    compliance_weights: Dict[str, float] = Field(default_factory=dict)
    thresholds: ThresholdSettings = Field(default_factory=ThresholdSettings)


# =============================================================================
# Snapshot & View Filters
# =============================================================================


class FleetSnapshot(BaseModel):
    """
    Everything the core reads for one recomputation.

    as_of pins "today" so repeated evaluations of the same snapshot are
    identical; it defaults to the current UTC date at the call site.
    """
    stubs: List[PayStub] = Field(default_factory=list)
    loads: List[LiveLoad] = Field(default_factory=list)
    contract_statuses: List[ContractStatusRecord] = Field(default_factory=list)
    roster: List[RosterEntry] = Field(default_factory=list)
    overdue_loads: List[OverdueLoadEvent] = Field(default_factory=list)
    tuesday_open: List[TuesdayOpenEvent] = Field(default_factory=list)
    missing_paperwork: List[MissingPaperworkEvent] = Field(default_factory=list)
    trailer_drops: List[TrailerDropEvent] = Field(default_factory=list)
    calculator_usage: List[CalculatorUsageEvent] = Field(default_factory=list)
    rc_entries: List[RcEntryEvent] = Field(default_factory=list)
    as_of: Optional[DateType] = None


class ViewFilters(BaseModel):
    """
    Dashboard view selection.

    access_restriction names the only dispatcher a restricted user may see;
    it is part of the cache key because it changes the visible set.
    """
    model_config = ConfigDict(frozen=True)

    weeks_ago: int = Field(0, ge=0)
    team: Optional[str] = None
    contract_filter: ContractFilter = ContractFilter.ALL
    company: Optional[str] = None
    franchise: Optional[str] = None
    access_restriction: Optional[str] = None


# =============================================================================
# Computed Results
# =============================================================================


class DriverFlag(BaseModel):
    """A triggered driver flag; positive flags lower drop risk."""
    rule: FlagRule
    label: str
    color: str
    positive: bool = False
    detail: Dict[str, Any] = Field(default_factory=dict)


class TransferDetail(BaseModel):
    """A pooled driver who ended up with another dispatcher."""
    driver_name: str
    to_dispatcher: Optional[str] = None


class RetentionBreakdown(BaseModel):
    """
    Retention of one dispatcher's pool at one pay date.

    retained + terminated + transferred always equals pool_size; percentage
    is None for an empty pool.
    """
    dispatcher: str
    pay_date: DateType
    pool_size: int = 0
    retained: int = 0
    terminated: int = 0
    transferred: int = 0
    percentage: Optional[float] = None
    outcomes: Dict[str, RetentionOutcome] = Field(default_factory=dict)
    retained_drivers: List[str] = Field(default_factory=list)
    terminated_drivers: List[str] = Field(default_factory=list)
    transferred_drivers: List[TransferDetail] = Field(default_factory=list)


class Driver(BaseModel):
    """Computed per-driver view for one window."""
    name: str
    dispatcher: Optional[str] = None
    team: Optional[str] = None
    company_name: Optional[str] = None
    franchise_name: Optional[str] = None
    contract_type: str = "LOO"
    status: Optional[str] = None
    equipment: Optional[str] = None
    gross: float = 0.0
    margin: float = 0.0
    miles: float = 0.0
    rpm: float = 0.0
    flags: List[DriverFlag] = Field(default_factory=list)
    drop_risk: float = 0.0


class DispatcherMetrics(BaseModel):
    """
    Raw per-dispatcher values feeding the compliance score.

    None means the metric has no data for this dispatcher and is skipped;
    zero counts are legitimate values.
    """
    good_moves: Optional[float] = None
    bad_moves: Optional[float] = None
    hidden_miles: Optional[float] = None
    low_rpm: Optional[float] = None
    overdue_loads: Optional[float] = None
    tuesday_open: Optional[float] = None
    missing_paperwork: Optional[float] = None
    wellness: Optional[float] = None
    retention: Optional[float] = None
    tenure_oo: Optional[float] = None
    tenure_loo: Optional[float] = None
    trailer_drops: Optional[float] = None
    trailer_recoveries: Optional[float] = None
    calculator_activity: Optional[float] = None
    rc_entry: Optional[float] = None


class Dispatcher(BaseModel):
    """Computed per-dispatcher view for one window."""
    name: str
    team: Optional[str] = None
    company_name: Optional[str] = None
    all_trucks: int = 0
    oo_trucks: int = 0
    loo_trucks: int = 0
    loads: int = 0
    canceled: int = 0
    new_starts: int = 0
    metrics: DispatcherMetrics = Field(default_factory=DispatcherMetrics)
    retention: Optional[RetentionBreakdown] = None
    compliance_score: float = 0.0


class KpiBundle(BaseModel):
    """Team header KPIs for the current view."""
    total_gross: float = 0.0
    team_rpm: float = 0.0
    team_margin: float = 0.0
    active_trucks: int = 0
    dispatcher_count: int = 0
    median_drop_risk: float = 0.0
    balance: float = 0.0
    canceled_loads: int = 0
    median_wellness: float = 0.0
    median_compliance: float = 0.0
    trailer_drops: int = 0
    retention: Optional[float] = None
    active_drivers: int = 0
    terminated_drivers: int = 0
    transferred_drivers: int = 0
    retention_pool: int = 0


class TeamView(BaseModel):
    """Everything the dashboard needs for one view selection."""
    window_id: str
    window_label: str
    pay_date: DateType
    drivers: List[Driver] = Field(default_factory=list)
    dispatchers: List[Dispatcher] = Field(default_factory=list)
    kpis: KpiBundle = Field(default_factory=KpiBundle)


__all__ = [
    "parse_amount",
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
]
