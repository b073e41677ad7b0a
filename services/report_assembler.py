# services/report_assembler.py
"""
Marshals finalized accumulator state into the analysis result payload.

No statistics are computed here apart from summarize_series(), which derives
the per-chart summary (avg/min/max/median/p90/p95) from an already built
time series.
"""

from typing import Any, Dict, List, Optional

from services.concurrency_tracker import RampUpSummary
from services.label_accumulator import floor_index_value
from utils.format_utils import round2


def assemble_report(
    success_count: int,
    error_count: int,
    start_time: str,
    end_time: str,
    ramp_up: RampUpSummary,
    aggregate_report: List[Dict[str, Any]],
    time_series: List[Dict[str, Any]],
    error_details: List[Dict[str, Any]],
    labels: List[str],
) -> Dict[str, Any]:
    """
    Build the result dict consumed by renderers.

    Returns:
        {successCount, errorCount, startTime, endTime, rampUpInfo,
         aggregateReport, timeSeriesData, errorDetails, labels}
    """
    return {
        "successCount": success_count,
        "errorCount": error_count,
        "startTime": start_time,
        "endTime": end_time,
        "rampUpInfo": ramp_up.to_dict(),
        "aggregateReport": aggregate_report,
        "timeSeriesData": time_series,
        "errorDetails": error_details,
        "labels": labels,
    }


def empty_series_summary() -> Dict[str, Any]:
    return {"avg": 0.0, "min": 0.0, "max": 0.0, "median": 0.0, "p90": 0.0, "p95": 0.0, "count": 0}


def summarize_series(time_series: List[Dict[str, Any]], prefix: str,
                     labels: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Summarize every numeric, non-zero '<prefix>*' value across all series rows.

    Zeros are treated like missing values and left out.

    Args:
        time_series: timeSeriesData rows.
        prefix: Series field prefix, e.g. 'elapsed_' or 'requestsPerSecond_'.
        labels: Optional subset of labels to include.

    Returns:
        dict with avg, min, max, median, p90, p95 (floor-indexed) and count.
    """
    if labels is not None:
        wanted = {f"{prefix}{label}" for label in labels}
    values = []
    for row in time_series:
        for key, value in row.items():
            if not key.startswith(prefix):
                continue
            if labels is not None and key not in wanted:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value == 0:
                continue
            values.append(value)

    if not values:
        return empty_series_summary()

    values.sort()
    return {
        "avg": round2(sum(values) / len(values)),
        "min": round2(values[0]),
        "max": round2(values[-1]),
        "median": round2(floor_index_value(values, 0.5)),
        "p90": round2(floor_index_value(values, 0.9)),
        "p95": round2(floor_index_value(values, 0.95)),
        "count": len(values),
    }
