import csv
import json

import pytest

from services import jtl_analyzer
from conftest import BASE_TS, make_row, write_jtl

pytestmark = pytest.mark.asyncio


def _run_rows():
    return [
        make_row(BASE_TS, "Login", elapsed=100, threads=1),
        make_row(BASE_TS + 500, "Login", elapsed=200, threads=2),
        make_row(BASE_TS + 1200, "Search", elapsed=300, success="false", threads=2, code="503", message=""),
        make_row(None, "Login"),
        make_row(BASE_TS + 2500, "Search", elapsed=250, threads=2),
    ]


def _place_run_jtl(artifacts_dir, run_id, rows, name=None):
    jmeter_dir = artifacts_dir / run_id / "jmeter"
    jmeter_dir.mkdir(parents=True)
    return write_jtl(jmeter_dir / (name or f"{run_id}.jtl"), rows)


class TestResolveRunJtl:
    async def test_prefers_run_named_file(self, artifacts_dir):
        _place_run_jtl(artifacts_dir, "r1", [], name="aaa.jtl")
        write_jtl(artifacts_dir / "r1" / "jmeter" / "r1.jtl", [])
        assert jtl_analyzer.resolve_run_jtl("r1").name == "r1.jtl"

    async def test_falls_back_to_any_jtl(self, artifacts_dir):
        _place_run_jtl(artifacts_dir, "r2", [], name="results.jtl")
        assert jtl_analyzer.resolve_run_jtl("r2").name == "results.jtl"

    async def test_none_when_missing(self, artifacts_dir):
        assert jtl_analyzer.resolve_run_jtl("missing") is None


class TestAnalyzeJtlResults:
    async def test_writes_outputs_and_returns_summary(self, artifacts_dir, ctx):
        _place_run_jtl(artifacts_dir, "run42", _run_rows())

        result = await jtl_analyzer.analyze_jtl_results("run42", ctx)

        assert result["status"] == "success"
        summary = result["summary"]
        assert summary["total_samples"] == 4
        assert summary["success_count"] == 3
        assert summary["error_count"] == 1
        assert summary["error_rate"] == 25.0
        assert summary["labels"] == ["Login", "Search"]
        assert summary["ramp_up"] == {"users": 2, "usersPerTest": 2, "duration": "0s"}
        assert summary["top_errors"] == [{"code": "503", "message": "Service Unavailable", "count": 1}]
        assert result["row_stats"]["rows_rejected"] == 1

        analysis_dir = artifacts_dir / "run42" / "analysis"
        for key in ("json", "aggregate_csv", "time_series_csv", "error_details_csv", "markdown"):
            assert result["output_files"][key].startswith(str(analysis_dir))

        saved = json.loads((analysis_dir / "jtl_analysis.json").read_text(encoding="utf-8"))
        assert saved["test_run_id"] == "run42"
        assert saved["source_file"] == "run42.jtl"
        assert saved["result"]["aggregateReport"][0]["label"] == "Login"

        with open(analysis_dir / "jtl_aggregate_report.csv", newline="", encoding="utf-8") as f:
            aggregate = list(csv.DictReader(f))
        assert [row["label"] for row in aggregate] == ["Login", "Search"]
        assert aggregate[0]["average"] == "150.0"

        with open(analysis_dir / "jtl_time_series.csv", newline="", encoding="utf-8") as f:
            series = list(csv.DictReader(f))
        assert len(series) == 3
        assert series[0]["requestsPerSecond_Search"] == ""
        assert json.loads(series[1]["errorDetails_Search"]) == {"503: Service Unavailable": 1}

        markdown = (analysis_dir / "jtl_analysis.md").read_text(encoding="utf-8")
        assert "# JTL Analysis Report - Run run42" in markdown
        assert "| 503 | Service Unavailable | 1 |" in markdown
        assert ctx.levels()[-1] == "info"

    async def test_missing_jtl_is_prerequisite_error(self, artifacts_dir, ctx):
        result = await jtl_analyzer.analyze_jtl_results("nothing-here", ctx)
        assert result["status"] == "prerequisite_missing"
        assert "error" in ctx.levels()


class TestAnalyzeJtlPath:
    async def test_unreadable_file_is_terminal_error(self, artifacts_dir, ctx, tmp_path):
        bad = tmp_path / "bad.jtl"
        bad.write_text("label,elapsed\nLogin,100\n", encoding="utf-8")

        result = await jtl_analyzer.analyze_jtl_path(str(bad), "bad-run", ctx)

        assert result["status"] == "failed"
        assert "could not be read" in result["error"]
        assert not (artifacts_dir / "bad-run" / "analysis").exists()

    async def test_empty_result_is_not_an_error(self, artifacts_dir, ctx, tmp_path):
        path = write_jtl(tmp_path / "empty.jtl", [make_row(None)])

        result = await jtl_analyzer.analyze_jtl_path(str(path), "empty-run", ctx)

        assert result["status"] == "success"
        assert result["summary"]["total_samples"] == 0
        assert result["summary"]["error_rate"] == 0.0
        with open(result["output_files"]["aggregate_csv"], newline="", encoding="utf-8") as f:
            assert next(csv.reader(f))[0] == "label"

    async def test_large_file_warning(self, artifacts_dir, ctx, tmp_path, monkeypatch):
        path = write_jtl(tmp_path / "big.jtl", _run_rows())
        monkeypatch.setattr(jtl_analyzer, "CONFIG", {"jtl_analysis": {"large_file_warning_mb": 0}})

        result = await jtl_analyzer.analyze_jtl_path(str(path), "big-run", ctx)

        assert result["status"] == "success"
        assert "warning" in ctx.levels()


class TestSummarizeTimeSeries:
    async def test_summary_from_saved_analysis(self, artifacts_dir, ctx):
        _place_run_jtl(artifacts_dir, "run7", _run_rows())
        await jtl_analyzer.analyze_jtl_results("run7", ctx)

        result = await jtl_analyzer.summarize_time_series_metric("run7", "requestsPerSecond", ctx)

        assert result["status"] == "success"
        assert result["metric"] == "requestsPerSecond"
        # buckets: {Login: 2}, {Login: 0, Search: 1}, {Login: 0, Search: 1}; zeros skipped
        assert result["summary"]["count"] == 3
        assert result["summary"]["max"] == 2.0
        assert result["summary"]["min"] == 1.0

    async def test_unknown_metric(self, artifacts_dir, ctx):
        result = await jtl_analyzer.summarize_time_series_metric("run7", "cpu", ctx)
        assert result["status"] == "invalid_metric"

    async def test_requires_saved_analysis(self, artifacts_dir, ctx):
        result = await jtl_analyzer.summarize_time_series_metric("never-ran", "elapsed", ctx)
        assert result["status"] == "prerequisite_missing"
