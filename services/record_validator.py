# services/record_validator.py
"""
Normalizes raw JTL rows into SampleRecord instances.

A row is rejected (None) only when its timeStamp is missing, blank, zero, not
a finite number or outside the range a date-time label can represent. Every
other field is coerced to a safe default so that a single bad cell never
aborts an analysis run.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

DEFAULT_LABEL = "Unknown"

# epoch-ms bounds of datetime, one day inside so any time zone still converts
_DAY_MS = 86_400_000
MIN_TIMESTAMP_MS = datetime.min.replace(tzinfo=timezone.utc).timestamp() * 1000 + _DAY_MS
MAX_TIMESTAMP_MS = datetime.max.replace(tzinfo=timezone.utc).timestamp() * 1000 - _DAY_MS

# JTL (CSV) column names
COL_TIMESTAMP = "timeStamp"
COL_LABEL = "label"
COL_ELAPSED = "elapsed"
COL_SUCCESS = "success"
COL_THREADS = "allThreads"
COL_LATENCY = "Latency"
COL_BYTES = "bytes"
COL_SENT_BYTES = "sentBytes"
COL_RESPONSE_CODE = "responseCode"
COL_RESPONSE_MESSAGE = "responseMessage"

JTL_COLUMNS = [
    COL_TIMESTAMP, COL_LABEL, COL_ELAPSED, COL_SUCCESS, COL_THREADS,
    COL_LATENCY, COL_BYTES, COL_SENT_BYTES, COL_RESPONSE_CODE, COL_RESPONSE_MESSAGE,
]


@dataclass(frozen=True)
class SampleRecord:
    """One accepted JTL sample."""
    timestamp: Union[int, float]
    label: str
    elapsed_ms: float
    # success is True only for a literal "true"; is_error only for a literal "false".
    # Anything else is neither, but still counts as non-success globally.
    success: bool
    is_error: bool
    concurrency: int
    latency_ms: float
    bytes_received: float
    bytes_sent: float
    response_code: Optional[str] = None
    response_message: Optional[str] = None


def _to_number(value: Any) -> Optional[float]:
    """Parse a numeric cell; None when blank, unparseable or not finite."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        # float() accepts "1_000" digit grouping, JTL numbers never use it
        if not text or "_" in text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if not math.isfinite(number):
        return None
    return number


def _non_negative(value: Any) -> float:
    number = _to_number(value)
    if number is None or number < 0:
        return 0
    return int(number) if number.is_integer() else number


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def _success_flag(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def parse_timestamp(value: Any) -> Optional[Union[int, float]]:
    """Epoch-ms timestamp, or None when the row must be rejected."""
    number = _to_number(value)
    if number is None or number == 0:
        return None
    if not MIN_TIMESTAMP_MS <= number <= MAX_TIMESTAMP_MS:
        return None
    return int(number) if number.is_integer() else number


def validate_row(raw: Mapping[str, Any]) -> Optional[SampleRecord]:
    """
    Validate a raw row (mapping of JTL column name to string/number).

    Args:
        raw: Row as produced by csv.DictReader or any header-driven parser.

    Returns:
        SampleRecord, or None when the timestamp is unusable.
    """
    timestamp = parse_timestamp(raw.get(COL_TIMESTAMP))
    if timestamp is None:
        return None

    label = raw.get(COL_LABEL)
    label = str(label) if label not in (None, "") else DEFAULT_LABEL

    success = _success_flag(raw.get(COL_SUCCESS))

    return SampleRecord(
        timestamp=timestamp,
        label=label,
        elapsed_ms=_non_negative(raw.get(COL_ELAPSED)),
        success=success == "true",
        is_error=success == "false",
        concurrency=int(_non_negative(raw.get(COL_THREADS))),
        latency_ms=_non_negative(raw.get(COL_LATENCY)),
        bytes_received=_non_negative(raw.get(COL_BYTES)),
        bytes_sent=_non_negative(raw.get(COL_SENT_BYTES)),
        response_code=_optional_text(raw.get(COL_RESPONSE_CODE)),
        response_message=_optional_text(raw.get(COL_RESPONSE_MESSAGE)),
    )
