"""
Payroll week resolution for the fleet health core.

A payroll week runs Tuesday 00:00 UTC through the following Monday end of day.
Week 0 ("live") is the week that contains today; week N is N weeks earlier.
Pay dates are derived from the period-end Monday:

- Pay delay 1 (standard): end Monday + 3 days (the following Thursday)
- Pay delay 2 (delayed): end Monday + 10 days

pay_date_from_window and window_from_pay_date are mutual inverses for both
delay classes, so stubs (keyed by pay date) and loads (keyed by delivery
date) can always be mapped onto the same window.

Key Functions:
- resolve_window: weeks-ago offset -> PayrollWindow
- pay_date_from_window: PayrollWindow -> pay date
- window_from_pay_date: pay date -> PayrollWindow
- window_id / weeks_ago_from_id: "live" / "week_N" identifiers used by views
- window_label: human-readable label ("LIVE (Oct 14 - Oct 20)")
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

from fleethealth.core.config import get_settings
from fleethealth.models.enums import PayDelay


LIVE_WINDOW_ID = 'live'

# Python weekday numbers
_MONDAY = 0
_TUESDAY = 1


# =============================================================================
# PayrollWindow
# =============================================================================


@dataclass(frozen=True)
class PayrollWindow:
    """
    Inclusive Tuesday..Monday payroll week, expressed as UTC calendar dates.

    Attributes:
        start: Tuesday that opens the week
        end: Monday that closes the week (start + 6 days)

    Raises:
        ValueError: If start is not a Tuesday or end is not start + 6 days
    """
    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start.weekday() != _TUESDAY:
            raise ValueError(f"Payroll window must start on a Tuesday, got {self.start.isoformat()}")
        if self.end - self.start != timedelta(days=6):
            raise ValueError(
                f"Payroll window must span Tuesday..Monday, got "
                f"{self.start.isoformat()}..{self.end.isoformat()}"
            )

    def contains(self, value: Union[date, datetime, None]) -> bool:
        """
        Check whether a date or timestamp falls inside the window.

        Aware datetimes are converted to UTC first; naive datetimes are taken
        to already be UTC. None is never contained.
        """
        if value is None:
            return False
        return self.start <= _to_utc_date(value) <= self.end

    def days(self):
        """The seven calendar dates of the window, Tuesday first."""
        return [self.start + timedelta(days=offset) for offset in range(7)]

    def shifted(self, weeks: int) -> 'PayrollWindow':
        """Window `weeks` payroll weeks later (negative for earlier)."""
        delta = timedelta(days=7 * weeks)
        return PayrollWindow(start=self.start + delta, end=self.end + delta)


def _to_utc_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def as_utc(value: datetime) -> datetime:
    """Aware UTC copy of a timestamp; naive timestamps are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_today() -> date:
    """Current calendar date in UTC."""
    return datetime.now(timezone.utc).date()


# =============================================================================
# Resolution
# =============================================================================


def resolve_window(weeks_ago: int, today: Optional[date] = None) -> PayrollWindow:
    """
    Resolve a weeks-ago offset to a payroll window.

    The live week ends on the next Monday on or after today; each week back
    shifts the window by seven days.

    Args:
        weeks_ago: 0 for the live week, 1 for last week, etc.
        today: Reference date (UTC). Defaults to the current UTC date.

    Returns:
        PayrollWindow for the requested week

    Raises:
        ValueError: If weeks_ago is negative
    """
    if weeks_ago < 0:
        raise ValueError(f"weeks_ago must be >= 0, got {weeks_ago}")

    if today is None:
        today = utc_today()
    elif isinstance(today, datetime):
        today = _to_utc_date(today)

    days_until_next_monday = (_MONDAY - today.weekday()) % 7
    end = today + timedelta(days=days_until_next_monday - 7 * weeks_ago)
    start = end - timedelta(days=6)
    return PayrollWindow(start=start, end=end)


def _pay_offset(delay: int) -> timedelta:
    try:
        delay_class = PayDelay(delay)
    except ValueError:
        raise ValueError(f"Pay delay must be 1 or 2, got {delay!r}") from None

    settings = get_settings()
    if delay_class is PayDelay.STANDARD:
        return timedelta(days=settings.standard_pay_offset_days)
    return timedelta(days=settings.delayed_pay_offset_days)


def pay_date_from_window(window: PayrollWindow, delay: int = 1) -> date:
    """
    Pay date of a payroll window for a pay delay class.

    Args:
        window: Payroll window
        delay: 1 (standard) or 2 (delayed)

    Returns:
        Pay date (end Monday + 3 days, or + 10 days)

    Raises:
        ValueError: If delay is not 1 or 2
    """
    return window.end + _pay_offset(delay)


def window_from_pay_date(pay_date: date, delay: int = 1) -> PayrollWindow:
    """
    Inverse of pay_date_from_window.

    Args:
        pay_date: Pay date printed on a stub
        delay: 1 (standard) or 2 (delayed)

    Returns:
        The payroll window the pay date settles

    Raises:
        ValueError: If delay is not 1 or 2, or the pay date does not land on
            a valid period end for that delay
    """
    end = _to_utc_date(pay_date) - _pay_offset(delay)
    return PayrollWindow(start=end - timedelta(days=6), end=end)


# =============================================================================
# Identifiers & Labels
# =============================================================================


def window_id(weeks_ago: int) -> str:
    """View identifier of a week: "live" for week 0, "week_N" otherwise."""
    if weeks_ago < 0:
        raise ValueError(f"weeks_ago must be >= 0, got {weeks_ago}")
    return LIVE_WINDOW_ID if weeks_ago == 0 else f'week_{weeks_ago}'


def weeks_ago_from_id(identifier: str) -> int:
    """
    Parse a view identifier back into a weeks-ago offset.

    Raises:
        ValueError: If the identifier is neither "live" nor "week_N"
    """
    if identifier == LIVE_WINDOW_ID:
        return 0
    prefix, _, number = identifier.partition('_')
    if prefix != 'week' or not number.isdigit():
        raise ValueError(f"Unknown payroll window id: {identifier!r}")
    return int(number)


def _short_date(value: date) -> str:
    return f"{value:%b} {value.day}"


def window_label(weeks_ago: int, today: Optional[date] = None) -> str:
    """Display label, e.g. "LIVE (Oct 14 - Oct 20)" or "Oct 7 - Oct 13"."""
    window = resolve_window(weeks_ago, today)
    span = f"{_short_date(window.start)} - {_short_date(window.end)}"
    return f"LIVE ({span})" if weeks_ago == 0 else span


__all__ = [
    'LIVE_WINDOW_ID',
    'PayrollWindow',
    'as_utc',
    'utc_today',
    'resolve_window',
    'pay_date_from_window',
    'window_from_pay_date',
    'window_id',
    'weeks_ago_from_id',
    'window_label',
]
