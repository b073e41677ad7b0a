from services.concurrency_tracker import RampUpSummary
from services.report_assembler import assemble_report, summarize_series


SERIES = [
    {"time": "10:00:00", "originalTime": 0, "elapsed_A": 100, "elapsed_B": 300,
     "errorDetails_A": {}, "totalActiveThreads": 2},
    {"time": "10:00:01", "originalTime": 1000, "elapsed_A": 200,
     "errorDetails_A": {"500: Internal Server Error": 1}, "totalActiveThreads": 1},
    {"time": "10:00:02", "originalTime": 2000, "elapsed_A": 400, "elapsed_B": 500,
     "totalActiveThreads": 2},
]


class TestAssembleReport:
    def test_marshals_fields(self):
        ramp = RampUpSummary(users=4, users_per_test=2, ramp_start=0, ramp_end=2000,
                             duration_ms=2000, duration="2s")
        report = assemble_report(3, 1, "start", "end", ramp, [{"label": "A"}], SERIES,
                                 [{"code": "500", "message": "Internal Server Error", "count": 1}], ["A"])
        assert report["successCount"] == 3
        assert report["errorCount"] == 1
        assert report["startTime"] == "start"
        assert report["endTime"] == "end"
        assert report["rampUpInfo"] == {"users": 4, "usersPerTest": 2, "duration": "2s"}
        assert report["timeSeriesData"] is SERIES
        assert report["labels"] == ["A"]


class TestSummarizeSeries:
    def test_all_labels(self):
        summary = summarize_series(SERIES, "elapsed_")
        # values sorted: 100, 200, 300, 400, 500
        assert summary == {"avg": 300.0, "min": 100.0, "max": 500.0, "median": 300.0,
                           "p90": 500.0, "p95": 500.0, "count": 5}

    def test_label_subset(self):
        summary = summarize_series(SERIES, "elapsed_", labels=["B"])
        assert summary["count"] == 2
        assert summary["avg"] == 400.0
        assert summary["median"] == 500.0

    def test_zero_values_ignored(self):
        series = [{"elapsed_A": 100}, {"elapsed_A": 0}, {"elapsed_A": 300}]
        assert summarize_series(series, "elapsed_") == {"avg": 200.0, "min": 100.0, "max": 300.0, "median": 300.0,
                                                        "p90": 300.0, "p95": 300.0, "count": 2}

    def test_non_numeric_values_ignored(self):
        assert summarize_series(SERIES, "errorDetails_")["count"] == 0

    def test_empty(self):
        assert summarize_series([], "latency_") == {"avg": 0.0, "min": 0.0, "max": 0.0, "median": 0.0,
                                                    "p90": 0.0, "p95": 0.0, "count": 0}
