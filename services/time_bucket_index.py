# services/time_bucket_index.py
"""
Time-bucketed series for charting.

Each record lands in the one-second bucket floor(timestamp / 1000) * 1000,
which is what the per-second field names assume.
A bucket is created lazily; at creation it gets zeroed counters for every
label seen so far in the stream. Labels discovered later are NOT backfilled
into buckets that already exist: they only get counters in an older bucket
when one of their own records lands there.
"""

import math
from typing import Any, Callable, Dict, List, Optional

from utils.format_utils import round2

ELAPSED_MODE_LAST = "last"
ELAPSED_MODE_MEAN = "mean"

BUCKET_MS = 1000

# Per-label series fields, in emission order
SERIES_PREFIXES = [
    "requestsPerSecond_",
    "errorsPerSecond_",
    "activeThreads_",
    "bytes_",
    "sentBytes_",
    "elapsed_",
    "latency_",
    "checksPerSecond_",
    "errorDetails_",
]


class _LabelCounters:
    __slots__ = (
        "requests", "errors", "checks", "active_threads", "bytes", "sent_bytes",
        "elapsed", "latency", "elapsed_sum", "latency_sum", "error_details",
    )

    def __init__(self):
        self.requests = 0
        self.errors = 0
        self.checks = 0
        self.active_threads = 0
        self.bytes = 0
        self.sent_bytes = 0
        self.elapsed = 0
        self.latency = 0
        self.elapsed_sum = 0
        self.latency_sum = 0
        self.error_details: Dict[str, int] = {}


class TimeBucketIndex:
    """Per-bucket, per-label counters keyed by bucket start (epoch ms)."""

    def __init__(self, elapsed_mode: str = ELAPSED_MODE_LAST):
        if elapsed_mode not in (ELAPSED_MODE_LAST, ELAPSED_MODE_MEAN):
            raise ValueError(f"Unknown elapsed mode '{elapsed_mode}'")
        self.elapsed_mode = elapsed_mode
        self.labels: Dict[str, None] = {}
        self.buckets: Dict[int, Dict[str, _LabelCounters]] = {}

    def bucket_key(self, timestamp: float) -> int:
        return int(math.floor(timestamp / BUCKET_MS)) * BUCKET_MS

    def update(self, timestamp: float, label: str, is_success: bool, is_error: bool,
               concurrency: int, bytes_in: float, bytes_out: float,
               elapsed: float, latency: float, error_key: Optional[str] = None) -> None:
        self.labels.setdefault(label, None)

        key = self.bucket_key(timestamp)
        bucket = self.buckets.get(key)
        if bucket is None:
            bucket = {known: _LabelCounters() for known in self.labels}
            self.buckets[key] = bucket

        counters = bucket.get(label)
        if counters is None:
            counters = bucket[label] = _LabelCounters()

        counters.requests += 1
        if is_error:
            counters.errors += 1
            if error_key is not None:
                counters.error_details[error_key] = counters.error_details.get(error_key, 0) + 1
        if is_success:
            counters.checks += 1
        counters.active_threads = max(counters.active_threads, concurrency)
        counters.bytes += bytes_in
        counters.sent_bytes += bytes_out

        # NOTE: last-write-wins is a faithful copy of the dashboard behaviour, not
        # a sound statistic; the chart shows whichever sample arrived last in the
        # second. elapsed_mode="mean" is the opt-in alternative.
        counters.elapsed = elapsed
        counters.latency = latency
        counters.elapsed_sum += elapsed
        counters.latency_sum += latency

    def _elapsed_values(self, counters: _LabelCounters):
        if self.elapsed_mode == ELAPSED_MODE_MEAN and counters.requests:
            return (round2(counters.elapsed_sum / counters.requests),
                    round2(counters.latency_sum / counters.requests))
        return counters.elapsed, counters.latency

    def finalize(self, time_formatter: Callable[[int], str]) -> List[Dict[str, Any]]:
        """
        Emit one row per bucket, ascending by bucket start.

        Args:
            time_formatter: Converts a bucket start (epoch ms) to a time-of-day label.

        Returns:
            List of dicts with 'time', 'originalTime', the per-label series fields
            and 'totalActiveThreads'.
        """
        rows = []
        for key in sorted(self.buckets):
            entry: Dict[str, Any] = {"time": time_formatter(key), "originalTime": key}
            total_threads = 0
            for label, counters in self.buckets[key].items():
                elapsed, latency = self._elapsed_values(counters)
                entry[f"requestsPerSecond_{label}"] = counters.requests
                entry[f"errorsPerSecond_{label}"] = counters.errors
                entry[f"activeThreads_{label}"] = counters.active_threads
                entry[f"bytes_{label}"] = counters.bytes
                entry[f"sentBytes_{label}"] = counters.sent_bytes
                entry[f"elapsed_{label}"] = elapsed
                entry[f"latency_{label}"] = latency
                entry[f"checksPerSecond_{label}"] = counters.checks
                entry[f"errorDetails_{label}"] = dict(counters.error_details)
                total_threads += counters.active_threads
            entry["totalActiveThreads"] = total_threads
            rows.append(entry)
        return rows
