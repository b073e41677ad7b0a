"""
format_utils.py

Formatting helpers shared by the aggregation engine and the output writers:
2-decimal rounding, ramp-up duration strings, time-of-day / date-time labels
for epoch-millisecond timestamps and human-readable values with units.
"""

import math
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

import pytz

Number = Union[int, float]

_TWO_PLACES = Decimal("0.01")


def round2(value: Optional[Number]) -> float:
    """
    Round to 2 decimal places, half away from zero on the exact binary value.

    Non-finite or missing values collapse to 0.0 so that NaN/Infinity never
    reach the report.
    """
    if value is None:
        return 0.0
    value = float(value)
    if not math.isfinite(value):
        return 0.0
    return float(Decimal(value).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def format_duration(ms: Optional[Number]) -> str:
    """
    Format a millisecond duration as '1h 2m 3s', '2m 3s' or '3s'.

    Leading zero units are omitted; zero, negative or invalid input gives '0s'.
    """
    if ms is None:
        return "0s"
    ms = float(ms)
    if not math.isfinite(ms) or ms <= 0:
        return "0s"

    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    remaining_minutes = minutes % 60
    remaining_seconds = seconds % 60

    if hours > 0:
        return f"{hours}h {remaining_minutes}m {remaining_seconds}s"
    if minutes > 0:
        return f"{minutes}m {remaining_seconds}s"
    return f"{seconds}s"


def _to_local_datetime(epoch_ms: Number, time_zone: str) -> datetime:
    dt = datetime.fromtimestamp(epoch_ms / 1000.0, tz=timezone.utc)
    return dt.astimezone(pytz.timezone(time_zone))


def format_time_of_day(epoch_ms: Number, time_zone: str = "UTC", fmt: str = "%H:%M:%S") -> str:
    """24h time-of-day label used for time series rows ('' when out of range)."""
    try:
        return _to_local_datetime(epoch_ms, time_zone).strftime(fmt)
    except (OverflowError, OSError, ValueError):
        return ""


def format_datetime(epoch_ms: Optional[Number], time_zone: str = "UTC",
                    fmt: str = "%d/%m/%Y, %H:%M:%S") -> str:
    """Date-time label for the report start/end times ('' when unknown or out of range)."""
    if epoch_ms is None:
        return ""
    try:
        return _to_local_datetime(epoch_ms, time_zone).strftime(fmt)
    except (OverflowError, OSError, ValueError):
        return ""


def format_value_with_unit(value: Optional[Number], value_type: str = "time") -> str:
    """
    Format a metric with a readable unit.

    'time' values are milliseconds (ms / s / min), 'bytes' values are bytes
    (B / KB / MB); any other type is printed with 2 decimals.
    """
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "N/A"
    if value_type == "time":
        if value >= 60000:
            return f"{value / 60000:.2f} min"
        if value >= 1000:
            return f"{value / 1000:.2f} s"
        return f"{value:.2f} ms"
    if value_type == "bytes":
        if value >= 1048576:
            return f"{value / 1048576:.2f} MB"
        if value >= 1024:
            return f"{value / 1024:.2f} KB"
        return f"{value:.2f} B"
    return f"{value:.2f}"
