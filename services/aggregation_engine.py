# services/aggregation_engine.py
"""
Single-pass aggregation engine for JTL samples.

One AggregationEngine instance owns the full accumulator set for one analysis
run (label statistics, time buckets, concurrency tracking, error tallies and
the global counters). Instances share nothing, so concurrent runs never see
each other's state.

Typical use:

    engine = AggregationEngine(settings)
    engine.consume(rows)           # raw rows from utils.jtl_reader
    result = engine.build_report()
"""

import logging
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional

from services.concurrency_tracker import ConcurrencyTracker
from services.error_classifier import ErrorClassifier
from services.label_accumulator import LabelAccumulator
from services.record_validator import SampleRecord, validate_row
from services.report_assembler import assemble_report
from services.time_bucket_index import TimeBucketIndex
from utils.config import AnalysisSettings
from utils.format_utils import format_datetime, format_time_of_day

logger = logging.getLogger(__name__)

# how often (in rows) the cancellation token is polled
CANCEL_CHECK_INTERVAL = 1000


class AnalysisCancelledError(Exception):
    """Raised when a run is cancelled mid-stream; partial state is discarded."""


class AggregationEngine:
    def __init__(self, settings: Optional[AnalysisSettings] = None):
        self.settings = settings or AnalysisSettings()
        self._reset()

    def _reset(self) -> None:
        self.success_count = 0
        self.error_count = 0
        self.rows_seen = 0
        self.rows_rejected = 0
        self.min_timestamp = None
        self.max_timestamp = None
        self.label_stats: Dict[str, LabelAccumulator] = {}
        self.time_buckets = TimeBucketIndex(elapsed_mode=self.settings.bucket_elapsed_mode)
        self.concurrency = ConcurrencyTracker()
        self.errors = ErrorClassifier(fallback_message=self.settings.unspecified_error_message)

    # -----------------------------------------------
    # Ingestion
    # -----------------------------------------------
    def add_row(self, raw: Mapping[str, Any]) -> bool:
        """Validate and ingest one raw row. Returns False when the row was dropped."""
        self.rows_seen += 1
        record = validate_row(raw)
        if record is None:
            self.rows_rejected += 1
            logger.debug("Dropped row %d: unusable timeStamp %r", self.rows_seen, raw.get("timeStamp"))
            return False
        self.add_record(record)
        return True

    def add_record(self, record: SampleRecord) -> None:
        """Fan one validated record out to every accumulator."""
        ts = record.timestamp
        if self.min_timestamp is None or ts < self.min_timestamp:
            self.min_timestamp = ts
        if self.max_timestamp is None or ts > self.max_timestamp:
            self.max_timestamp = ts

        if record.success:
            self.success_count += 1
        else:
            self.error_count += 1

        label = record.label
        stats = self.label_stats.get(label)
        if stats is None:
            stats = self.label_stats[label] = LabelAccumulator(label)
        stats.update(record.elapsed_ms, record.latency_ms, record.bytes_received,
                     record.bytes_sent, record.is_error)

        error_key = None
        if record.is_error:
            error_key = self.errors.record(record.response_code, record.response_message)

        self.time_buckets.update(
            ts, label,
            is_success=record.success,
            is_error=record.is_error,
            concurrency=record.concurrency,
            bytes_in=record.bytes_received,
            bytes_out=record.bytes_sent,
            elapsed=record.elapsed_ms,
            latency=record.latency_ms,
            error_key=error_key,
        )
        self.concurrency.observe(ts, label, record.concurrency)

    def consume(self, rows: Iterable[Mapping[str, Any]],
                cancel_event: Optional[threading.Event] = None) -> "AggregationEngine":
        """
        Ingest every row of an iterable in a single pass.

        Args:
            rows: Raw rows (mappings of JTL column name to value).
            cancel_event: Optional token; when set, ingestion stops and
                AnalysisCancelledError is raised.

        Returns:
            self, for chaining into build_report().
        """
        for i, raw in enumerate(rows):
            if cancel_event is not None and i % CANCEL_CHECK_INTERVAL == 0 and cancel_event.is_set():
                self._reset()
                raise AnalysisCancelledError(f"Analysis cancelled after {i} rows")
            self.add_row(raw)
        if cancel_event is not None and cancel_event.is_set():
            seen = self.rows_seen
            self._reset()
            raise AnalysisCancelledError(f"Analysis cancelled after {seen} rows")
        logger.info(
            "Ingested %d rows (%d accepted, %d dropped, %d labels)",
            self.rows_seen, self.rows_seen - self.rows_rejected, self.rows_rejected, len(self.label_stats),
        )
        return self

    # -----------------------------------------------
    # Finalization
    # -----------------------------------------------
    @property
    def accepted_rows(self) -> int:
        return self.success_count + self.error_count

    @property
    def labels(self) -> List[str]:
        return list(self.label_stats)

    def duration_seconds(self) -> float:
        if self.min_timestamp is None:
            return 0
        return (self.max_timestamp - self.min_timestamp) / 1000

    def build_report(self) -> Dict[str, Any]:
        """Finalize every accumulator and assemble the result payload."""
        settings = self.settings
        duration = self.duration_seconds()

        aggregate_report = [stats.finalize(duration) for stats in self.label_stats.values()]
        time_series = self.time_buckets.finalize(
            lambda ts: format_time_of_day(ts, settings.time_zone, settings.time_format)
        )

        return assemble_report(
            success_count=self.success_count,
            error_count=self.error_count,
            start_time=format_datetime(self.min_timestamp, settings.time_zone, settings.datetime_format),
            end_time=format_datetime(self.max_timestamp, settings.time_zone, settings.datetime_format),
            ramp_up=self.concurrency.finalize(),
            aggregate_report=aggregate_report,
            time_series=time_series,
            error_details=self.errors.finalize(),
            labels=self.labels,
        )


def analyze_rows(rows: Iterable[Mapping[str, Any]], settings: Optional[AnalysisSettings] = None,
                 cancel_event: Optional[threading.Event] = None) -> Dict[str, Any]:
    """Run a fresh engine over rows and return the report."""
    return AggregationEngine(settings).consume(rows, cancel_event).build_report()
