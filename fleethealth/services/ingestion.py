"""
DataFrame ingestion adapters for the fleet health core.

Raw data arrives as spreadsheet / warehouse exports. These adapters turn
pandas DataFrames into the typed records the scoring services consume:

- Column names are lowercased and stripped, and known aliases from the
  upstream feeds (deliveryDate, droppedByDispatcher, ...) are renamed
- Numeric columns drop thousands separators and are coerced with
  pd.to_numeric(errors='coerce').fillna(0)
- Date columns are parsed with pd.to_datetime(errors='coerce', utc=True)
- Flag columns carrying marker strings ('Moved Monday Load',
  'Hidden Miles Found!', 'NEW START') become booleans
- Rows missing their key (driver, pay date, dispatcher) are dropped with a warning

Key Functions:
- stubs_from_frame: pay stub export -> List[PayStub]
- loads_from_frame: live loads export -> List[LiveLoad]
- contract_statuses_from_frame / roster_from_frame: live driver status feeds
- events_from_frame: dispatcher event feeds (overdue loads, trailer drops, ...)
- snapshot_from_frames: build a FleetSnapshot from any subset of frames
"""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type, TypeVar

import numpy as np
import pandas as pd
from pydantic import BaseModel

from fleethealth.models.schemas import (
    CalculatorUsageEvent,
    ContractStatusRecord,
    FleetSnapshot,
    LiveLoad,
    MissingPaperworkEvent,
    OverdueLoadEvent,
    PayStub,
    RcEntryEvent,
    RosterEntry,
    TrailerDropEvent,
    TuesdayOpenEvent,
)


# Configure module logger
logger = logging.getLogger(__name__)

ModelT = TypeVar('ModelT', bound=BaseModel)


# =============================================================================
# COLUMN DEFINITIONS
# =============================================================================

STUB_NUMERIC_COLUMNS = [
    'total_miles', 'driver_gross', 'margin', 'net_pay', 'rpm_all', 'balance',
    'balance_settle', 'po_deductions', 'po_settle', 'total_expected_tolls',
]

LOAD_NUMERIC_COLUMNS = [
    'price', 'cut', 'trip_miles', 'deadhead_miles', 'weight', 'rpm_all',
    'driver_gross_without_moved',
]

# Marker strings the loads export uses instead of booleans
LOAD_FLAG_MARKERS: Dict[str, str] = {
    'moved_monday': 'Moved Monday Load',
    'hidden_miles': 'Hidden Miles Found!',
    'new_start': 'NEW START',
}

# Upstream feed column names -> record field names (after lowercasing)
COLUMN_ALIASES: Dict[str, str] = {
    'deliverydate': 'delivery_date',
    'dayspastdo': 'days_past_do',
    'dispatch': 'dispatcher',
    'droppedbydispatcher': 'dropped_by',
    'droptime': 'drop_time',
    'recoveredbydispatcher': 'recovered_by',
    'recoverytime': 'recovery_time',
}

# Event model -> (date columns, numeric columns, required columns)
EVENT_COLUMNS: Dict[Type[BaseModel], Dict[str, List[str]]] = {
    OverdueLoadEvent: {'dates': ['delivery_date'], 'numeric': ['days_past_do'], 'required': ['dispatcher', 'delivery_date']},
    TuesdayOpenEvent: {'dates': ['date'], 'numeric': [], 'required': ['dispatcher', 'date']},
    MissingPaperworkEvent: {'dates': ['do_date'], 'numeric': [], 'required': ['dispatcher', 'do_date']},
    TrailerDropEvent: {'dates': ['drop_time', 'recovery_time'], 'numeric': [], 'required': []},
    CalculatorUsageEvent: {'dates': ['date'], 'numeric': ['minutes'], 'required': ['dispatcher', 'date']},
    RcEntryEvent: {'dates': ['date'], 'numeric': ['entry_minutes'], 'required': ['dispatcher', 'date']},
}


# =============================================================================
# NORMALIZATION
# =============================================================================


def _normalize_dataframe(
    df: pd.DataFrame,
    numeric_columns: Sequence[str] = (),
    date_columns: Sequence[str] = (),
) -> pd.DataFrame:
    """
    Normalize DataFrame column names and data types for processing.

    Args:
        df: Input DataFrame
        numeric_columns: Columns to coerce to numbers (malformed -> 0)
        date_columns: Columns to parse as UTC timestamps (malformed -> NaT)

    Returns:
        Normalized copy with lowercase column names and coerced types
    """
    df_normalized = df.copy()
    df_normalized.columns = df_normalized.columns.str.lower().str.strip()
    df_normalized = df_normalized.rename(columns=COLUMN_ALIASES)

    for col in numeric_columns:
        if col in df_normalized.columns:
            cleaned = (
                df_normalized[col].astype(str)
                .str.replace(',', '', regex=False)
                .str.replace('$', '', regex=False)
                .str.strip()
            )
            df_normalized[col] = pd.to_numeric(cleaned, errors='coerce').fillna(0)

    for col in date_columns:
        if col in df_normalized.columns:
            df_normalized[col] = pd.to_datetime(df_normalized[col], errors='coerce', utc=True)

    return df_normalized


def _drop_incomplete(df: pd.DataFrame, required: Iterable[str], source: str) -> pd.DataFrame:
    required = [col for col in required if col in df.columns]
    if not required:
        return df
    mask = df[required].notna().all(axis=1)
    for col in required:
        if pd.api.types.is_object_dtype(df[col]) or pd.api.types.is_string_dtype(df[col]):
            mask &= df[col].astype(str).str.strip() != ''
    dropped = int((~mask).sum())
    if dropped:
        logger.warning(f"Dropped {dropped} {source} rows missing {required}")
    return df[mask]


def _clean_value(value: Any) -> Any:
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and np.isnan(value):
        return None
    return value


def _records(df: pd.DataFrame, model: Type[ModelT]) -> List[ModelT]:
    fields = set(model.model_fields)
    columns = [col for col in df.columns if col in fields]
    records: List[ModelT] = []
    for row in df[columns].itertuples(index=False, name=None):
        payload = {col: _clean_value(value) for col, value in zip(columns, row)}
        payload = {key: value for key, value in payload.items() if value is not None}
        records.append(model(**payload))
    return records


# =============================================================================
# ADAPTERS
# =============================================================================


def stubs_from_frame(df: pd.DataFrame) -> List[PayStub]:
    """
    Convert a pay stub export into PayStub records.

    Args:
        df: Pay stub export (one row per driver per pay date)

    Returns:
        List of PayStub; rows without driver_name or pay_date are dropped
    """
    frame = _normalize_dataframe(df, STUB_NUMERIC_COLUMNS, ['pay_date'])
    frame = _drop_incomplete(frame, ['driver_name', 'pay_date'], 'pay stub')
    if 'pay_date' in frame.columns:
        frame = frame.assign(pay_date=frame['pay_date'].dt.date)
    stubs = _records(frame, PayStub)
    logger.info(f"Parsed {len(stubs)} pay stubs from {len(df)} rows")
    return stubs


def _flag_column(series: pd.Series, marker: str) -> pd.Series:
    if series.dtype == bool:
        return series
    text = series.astype(str).str.strip()
    return (text == marker) | text.str.lower().isin(['true', '1', 'yes'])


def loads_from_frame(df: pd.DataFrame) -> List[LiveLoad]:
    """
    Convert a live loads export into LiveLoad records.

    Args:
        df: Loads export (one row per load)

    Returns:
        List of LiveLoad; rows without a driver are dropped
    """
    frame = _normalize_dataframe(df, LOAD_NUMERIC_COLUMNS, ['pu_date', 'do_date'])
    frame = _drop_incomplete(frame, ['driver'], 'load')
    for col, marker in LOAD_FLAG_MARKERS.items():
        if col in frame.columns:
            frame = frame.assign(**{col: _flag_column(frame[col], marker)})
    loads = _records(frame, LiveLoad)
    logger.info(f"Parsed {len(loads)} loads from {len(df)} rows")
    return loads


def contract_statuses_from_frame(df: pd.DataFrame) -> List[ContractStatusRecord]:
    frame = _drop_incomplete(_normalize_dataframe(df), ['driver_name'], 'contract status')
    return _records(frame, ContractStatusRecord)


def roster_from_frame(df: pd.DataFrame) -> List[RosterEntry]:
    """Live driver count export -> RosterEntry records."""
    frame = _drop_incomplete(_normalize_dataframe(df), ['driver_name'], 'roster')
    return _records(frame, RosterEntry)


def events_from_frame(df: pd.DataFrame, model: Type[ModelT]) -> List[ModelT]:
    """
    Convert a dispatcher event feed into records of the given event model.

    Args:
        df: Event feed export
        model: One of the event models (OverdueLoadEvent, TrailerDropEvent, ...)

    Returns:
        List of event records; rows missing the dispatcher or event date are dropped

    Raises:
        ValueError: If model is not an event model
    """
    columns = EVENT_COLUMNS.get(model)
    if columns is None:
        raise ValueError(f"{model.__name__} is not a dispatcher event model")
    frame = _normalize_dataframe(df, columns['numeric'], columns['dates'])
    frame = _drop_incomplete(frame, columns['required'], model.__name__)
    events = _records(frame, model)
    logger.info(f"Parsed {len(events)} {model.__name__} rows from {len(df)} rows")
    return events


def snapshot_from_frames(
    stubs: Optional[pd.DataFrame] = None,
    loads: Optional[pd.DataFrame] = None,
    contract_statuses: Optional[pd.DataFrame] = None,
    roster: Optional[pd.DataFrame] = None,
    overdue_loads: Optional[pd.DataFrame] = None,
    tuesday_open: Optional[pd.DataFrame] = None,
    missing_paperwork: Optional[pd.DataFrame] = None,
    trailer_drops: Optional[pd.DataFrame] = None,
    calculator_usage: Optional[pd.DataFrame] = None,
    rc_entries: Optional[pd.DataFrame] = None,
    as_of: Optional[date] = None,
) -> FleetSnapshot:
    """Build a FleetSnapshot from whichever exports are available."""
    snapshot = FleetSnapshot(as_of=as_of)
    if stubs is not None:
        snapshot.stubs = stubs_from_frame(stubs)
    if loads is not None:
        snapshot.loads = loads_from_frame(loads)
    if contract_statuses is not None:
        snapshot.contract_statuses = contract_statuses_from_frame(contract_statuses)
    if roster is not None:
        snapshot.roster = roster_from_frame(roster)

    event_frames = {
        'overdue_loads': (overdue_loads, OverdueLoadEvent),
        'tuesday_open': (tuesday_open, TuesdayOpenEvent),
        'missing_paperwork': (missing_paperwork, MissingPaperworkEvent),
        'trailer_drops': (trailer_drops, TrailerDropEvent),
        'calculator_usage': (calculator_usage, CalculatorUsageEvent),
        'rc_entries': (rc_entries, RcEntryEvent),
    }
    for attribute, (frame, model) in event_frames.items():
        if frame is not None:
            setattr(snapshot, attribute, events_from_frame(frame, model))
    return snapshot


__all__ = [
    'STUB_NUMERIC_COLUMNS',
    'LOAD_NUMERIC_COLUMNS',
    'LOAD_FLAG_MARKERS',
    'COLUMN_ALIASES',
    'stubs_from_frame',
    'loads_from_frame',
    'contract_statuses_from_frame',
    'roster_from_frame',
    'events_from_frame',
    'snapshot_from_frames',
]
