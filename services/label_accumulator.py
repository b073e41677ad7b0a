# services/label_accumulator.py
"""
Per-label running aggregate used to build the aggregate report.

Sums, min/max and the error count are maintained incrementally. Elapsed and
latency samples are appended per record and sorted exactly once when the
label is finalized, so percentiles are exact (floor-indexed, not
interpolated).
"""

import math
from typing import Any, Dict, List, Optional, Sequence

from utils.format_utils import round2


def floor_index_value(sorted_values: Sequence[float], fraction: float) -> float:
    """
    Value at index floor(n * fraction) of an ascending list.

    fraction=0.5 gives the upper median for even-length lists. Empty lists
    and out-of-range indexes give 0.
    """
    n = len(sorted_values)
    if n == 0:
        return 0
    idx = int(math.floor(n * fraction))
    if idx < 0 or idx >= n:
        return 0
    return sorted_values[idx]


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0


class LabelAccumulator:
    """Running statistics for a single request label."""

    def __init__(self, label: str):
        self.label = label
        self.count = 0
        self.errors = 0
        self.total_elapsed = 0
        self.total_latency = 0
        self.total_bytes = 0
        self.total_sent_bytes = 0
        self.min_elapsed: Optional[float] = None
        self.max_elapsed: Optional[float] = None
        self.response_times: List[float] = []
        self.latency_times: List[float] = []

    def update(self, elapsed: float, latency: float, bytes_in: float, bytes_out: float,
               is_error: bool) -> None:
        self.count += 1
        self.total_elapsed += elapsed
        self.total_latency += latency
        self.total_bytes += bytes_in
        self.total_sent_bytes += bytes_out
        if self.min_elapsed is None or elapsed < self.min_elapsed:
            self.min_elapsed = elapsed
        if self.max_elapsed is None or elapsed > self.max_elapsed:
            self.max_elapsed = elapsed
        if is_error:
            self.errors += 1
        self.response_times.append(elapsed)
        self.latency_times.append(latency)

    def finalize(self, duration_seconds: float) -> Dict[str, Any]:
        """
        Build the aggregate report row for this label.

        Args:
            duration_seconds: (global max timestamp - global min timestamp) / 1000.
                A zero duration is treated as one second.

        Returns:
            dict with label, average, median, p90, p95, min, max, errorRate,
            throughput, count, averageLatency, medianLatency, bytes, sentBytes.
        """
        self.response_times.sort()
        self.latency_times.sort()

        count = self.count
        throughput = _ratio(count, duration_seconds or 1)

        return {
            "label": self.label,
            "average": round2(_ratio(self.total_elapsed, count)),
            "median": round2(floor_index_value(self.response_times, 0.5)),
            "p90": round2(floor_index_value(self.response_times, 0.9)),
            "p95": round2(floor_index_value(self.response_times, 0.95)),
            "min": round2(self.min_elapsed if count else 0),
            "max": round2(self.max_elapsed if count else 0),
            "errorRate": round2(_ratio(self.errors, count) * 100),
            "throughput": round2(throughput),
            "count": count,
            "averageLatency": round2(_ratio(self.total_latency, count)),
            "medianLatency": round2(floor_index_value(self.latency_times, 0.5)),
            # bytes/sentBytes are per-sample averages
            "bytes": round2(_ratio(self.total_bytes, count)),
            "sentBytes": round2(_ratio(self.total_sent_bytes, count)),
        }
