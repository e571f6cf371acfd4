"""
Settlement Period Calculator

Maps a transaction timestamp onto the fixed-length settlement period it
belongs to. Periods are counted from a fixed epoch date:

    days_since_epoch = (transaction_date - epoch_date).days
    period_number    = floor(days_since_epoch / period_days)
    start            = epoch_date + period_number * period_days
    end              = start + (period_days - 1)

Only the calendar date matters, time-of-day is dropped before computing, so
every transaction made on the same day lands in the same period. Dates before
the epoch follow the same floor rule and produce periods counted backwards.

Example Usage:
    from gobuddy.utils.period_calculator import calculate_period

    period = calculate_period("2025-11-06T14:32:00Z")
    # SettlementPeriod(start=date(2025, 11, 6), end=date(2025, 11, 10))
"""
import re
from datetime import date, datetime, timedelta
from typing import NamedTuple, Union

from gobuddy.core.exceptions import InvalidDateError

DEFAULT_EPOCH_DATE = date(2024, 1, 1)
DEFAULT_PERIOD_DAYS = 5

TimestampLike = Union[date, datetime, str]

# Fractional seconds of any length; fromisoformat() before 3.11 takes only 3 or 6 digits
_FRACTION = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")


class SettlementPeriod(NamedTuple):
    start: date
    end: date

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


def parse_transaction_date(value: TimestampLike) -> date:
    """
    Normalize a timestamp to its calendar date.

    Accepts date, datetime (naive or aware) and ISO-8601 strings such as
    "2025-11-06", "2025-11-06T08:15:00Z" or "2025-11-06 08:15:00+08:00".
    Aware datetimes keep the date of their own offset; no UTC conversion.

    Raises:
        InvalidDateError: If the value is None, empty or not a valid date.
    """
    if value is None:
        raise InvalidDateError("Transaction timestamp is missing")

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    if not isinstance(value, str):
        raise InvalidDateError(f"Unsupported timestamp type: {type(value).__name__}")

    text = value.strip()
    if not text:
        raise InvalidDateError("Transaction timestamp is empty")

    # fromisoformat() on older interpreters rejects a trailing "Z"
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}", text, count=1)

    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text).date()
    except ValueError as e:
        raise InvalidDateError(f"Cannot parse transaction timestamp: {value!r}") from e


def calculate_period(
    transaction_timestamp: TimestampLike,
    epoch_date: date = DEFAULT_EPOCH_DATE,
    period_days: int = DEFAULT_PERIOD_DAYS,
) -> SettlementPeriod:
    """
    Return the settlement period containing the given timestamp.

    Args:
        transaction_timestamp: When the transaction happened
        epoch_date: First day of period 0 (default: 2024-01-01)
        period_days: Length of every period in days (default: 5)

    Returns:
        SettlementPeriod with inclusive start and end dates

    Raises:
        InvalidDateError: If the timestamp is missing or unparseable
        ValueError: If period_days is not positive

    Example:
        >>> calculate_period("2025-11-06")
        SettlementPeriod(start=datetime.date(2025, 11, 6), end=datetime.date(2025, 11, 10))
    """
    if period_days <= 0:
        raise ValueError(f"period_days must be positive, got {period_days}")

    transaction_date = parse_transaction_date(transaction_timestamp)
    epoch = parse_transaction_date(epoch_date)

    days_since_epoch = (transaction_date - epoch).days
    period_number = days_since_epoch // period_days

    start = epoch + timedelta(days=period_number * period_days)
    end = start + timedelta(days=period_days - 1)
    return SettlementPeriod(start=start, end=end)


def is_overdue(period_end: TimestampLike, today: TimestampLike) -> bool:
    """A period is overdue from the day after its end date."""
    return parse_transaction_date(period_end) < parse_transaction_date(today)


def days_overdue(period_end: TimestampLike, today: TimestampLike) -> int:
    """Number of full days since the period ended (0 while it is still open)."""
    delta = (parse_transaction_date(today) - parse_transaction_date(period_end)).days
    return max(delta, 0)
