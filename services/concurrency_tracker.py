# services/concurrency_tracker.py
"""
Concurrency tracking and ramp-up detection.

Per raw timestamp (not bucket) the tracker keeps the highest allThreads value
seen for each label; the total concurrent users at that instant is the sum
across labels. Ramp-up runs from the first instant with any users to the
first instant the peak total is reached.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Union

from utils.format_utils import format_duration

Timestamp = Union[int, float]


@dataclass
class RampUpSummary:
    users: int = 0
    users_per_test: int = 0
    ramp_start: Optional[Timestamp] = None
    ramp_end: Optional[Timestamp] = None
    duration_ms: Timestamp = 0
    duration: str = "0s"

    def to_dict(self) -> Dict[str, object]:
        """Shape consumed by the report (rampUpInfo)."""
        return {
            "users": self.users,
            "usersPerTest": self.users_per_test,
            "duration": self.duration,
        }


class ConcurrencyTracker:
    def __init__(self):
        self.max_per_label: Dict[str, int] = {}
        self.per_timestamp: Dict[Timestamp, Dict[str, int]] = {}

    def observe(self, timestamp: Timestamp, label: str, concurrency: int) -> None:
        if concurrency <= 0:
            return
        at_ts = self.per_timestamp.setdefault(timestamp, {})
        at_ts[label] = max(at_ts.get(label, 0), concurrency)
        self.max_per_label[label] = max(self.max_per_label.get(label, 0), concurrency)

    def totals_by_timestamp(self) -> Dict[Timestamp, int]:
        """Total concurrent users per raw timestamp, ascending."""
        return {ts: sum(self.per_timestamp[ts].values()) for ts in sorted(self.per_timestamp)}

    def finalize(self) -> RampUpSummary:
        totals = self.totals_by_timestamp()
        users = max(totals.values(), default=0)
        users_per_test = max(self.max_per_label.values(), default=0)

        ramp_start = next((ts for ts, total in totals.items() if total > 0), None)
        ramp_end = next((ts for ts, total in totals.items() if total == users), None) if users > 0 else None

        # ramp_start may legitimately be 0, so compare against None
        if ramp_start is not None and ramp_end is not None:
            duration_ms = max(ramp_end - ramp_start, 0)
        else:
            duration_ms = 0

        return RampUpSummary(
            users=users,
            users_per_test=users_per_test,
            ramp_start=ramp_start,
            ramp_end=ramp_end,
            duration_ms=duration_ms,
            duration=format_duration(duration_ms),
        )
