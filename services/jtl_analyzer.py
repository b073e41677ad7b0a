# services/jtl_analyzer.py
"""
JTL Analysis service for the JTL Analysis MCP Server.

Locates a JMeter JTL results file, runs it through the single-pass
AggregationEngine and writes the results for downstream report/chart tools.

Inputs:
    - <artifacts>/<run_id>/jmeter/<run_id>.jtl (or any .jtl in that folder)
    - or an explicit JTL path

Outputs (all under artifacts/<run_id>/analysis/):
    - jtl_analysis.json
    - jtl_aggregate_report.csv
    - jtl_time_series.csv
    - jtl_error_details.csv
    - jtl_analysis.md
"""

import asyncio
import datetime
import os
import traceback
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastmcp import Context     # ✅ FastMCP 2.x import

from services.aggregation_engine import AggregationEngine
from services.report_assembler import summarize_series
from services.time_bucket_index import SERIES_PREFIXES
from utils.config import AnalysisSettings, load_config
from utils.file_processor import (
    AGGREGATE_COLUMNS,
    ERROR_DETAIL_COLUMNS,
    flatten_time_series_for_csv,
    format_jtl_analysis_markdown,
    read_json_input,
    time_series_columns,
    write_csv_output,
    write_json_output,
    write_markdown_output,
)
from utils.jtl_reader import JtlUnreadableError, find_jtl_files, get_file_size_mb, read_jtl_file

# ---------------------------------------------------------------------------
# Module-level configuration
# ---------------------------------------------------------------------------
load_dotenv()
CONFIG = load_config()
ARTIFACTS_CONFIG = CONFIG.get("artifacts", {})
ARTIFACTS_PATH = Path(ARTIFACTS_CONFIG.get("artifacts_path", "./artifacts"))
MCP_VERSION = (CONFIG.get("general") or {}).get("mcp_version", "unknown")

ANALYSIS_JSON = "jtl_analysis.json"


def get_settings() -> AnalysisSettings:
    return AnalysisSettings.from_config(CONFIG)


def resolve_run_jtl(test_run_id: str, artifacts_path: Optional[Path] = None) -> Optional[Path]:
    """
    Find the JTL for a run: <run_id>.jtl first, else the first .jtl in the folder.
    """
    jmeter_dir = (artifacts_path or ARTIFACTS_PATH) / str(test_run_id) / "jmeter"
    preferred = jmeter_dir / f"{test_run_id}.jtl"
    if preferred.is_file():
        return preferred
    candidates = find_jtl_files(str(jmeter_dir))
    return Path(candidates[0]) if candidates else None


def run_jtl_analysis(jtl_path: Path, settings: Optional[AnalysisSettings] = None) -> Dict[str, Any]:
    """
    Synchronously analyze one JTL file with a fresh engine.

    Returns:
        dict with 'report' (the analysis result) and 'stats' (row counters).

    Raises:
        JtlUnreadableError: If the file cannot be read.
    """
    settings = settings or get_settings()
    engine = AggregationEngine(settings)
    engine.consume(read_jtl_file(str(jtl_path), encoding=settings.file_encoding))
    return {
        "report": engine.build_report(),
        "stats": {
            "rows_read": engine.rows_seen,
            "rows_accepted": engine.accepted_rows,
            "rows_rejected": engine.rows_rejected,
            "labels": len(engine.label_stats),
            "time_buckets": len(engine.time_buckets.buckets),
        },
    }


# ============================================================================
# PUBLIC API  (called from jtlanalysis.py)
# ============================================================================

async def analyze_jtl_results(test_run_id: str, ctx: Context) -> Dict[str, Any]:
    """
    Analyze the JTL file stored under the run's jmeter artifacts folder.

    Args:
        test_run_id: The unique test run identifier
        ctx: FastMCP workflow context

    Returns:
        dict suitable for returning directly from an MCP tool.
    """
    jtl_path = resolve_run_jtl(test_run_id)
    if jtl_path is None:
        msg = f"No JTL file found under {ARTIFACTS_PATH / str(test_run_id) / 'jmeter'}. Run the JMeter test first."
        await ctx.error(msg)
        return {"error": msg, "status": "prerequisite_missing"}
    return await analyze_jtl_path(str(jtl_path), test_run_id, ctx)


async def analyze_jtl_path(jtl_path: str, test_run_id: str, ctx: Context) -> Dict[str, Any]:
    """
    Analyze an explicit JTL file and write outputs for the given run.

    Args:
        jtl_path: Path to the JTL (CSV) results file
        test_run_id: Run identifier used for the output folder
        ctx: FastMCP workflow context

    Returns:
        dict with status, summary, row stats and output file paths, or an
        error dict when the file cannot be read.
    """
    try:
        await ctx.info(f"JTL Analysis: starting analysis of {jtl_path} for run {test_run_id}")
        settings = get_settings()

        size_mb = get_file_size_mb(jtl_path)
        if size_mb is not None and size_mb > settings.large_file_warning_mb:
            await ctx.warning(f"Large JTL file ({size_mb:.2f} MB). Processing may take a while.")

        analysis = await asyncio.to_thread(run_jtl_analysis, Path(jtl_path), settings)
        report = analysis["report"]
        stats = analysis["stats"]
        await ctx.info(
            f"JTL Analysis: {stats['rows_accepted']} samples accepted, "
            f"{stats['rows_rejected']} rows dropped, {stats['labels']} labels, "
            f"{stats['time_buckets']} time buckets"
        )

        analysis_path = ARTIFACTS_PATH / str(test_run_id) / "analysis"
        analysis_path.mkdir(parents=True, exist_ok=True)
        output_files = await write_analysis_outputs(report, analysis_path, test_run_id, jtl_path)

        await ctx.info(f"JTL Analysis Complete: files saved to {analysis_path}")
        return {
            "status": "success",
            "test_run_id": test_run_id,
            "jtl_path": jtl_path,
            "summary": build_summary(report),
            "row_stats": stats,
            "output_files": output_files,
        }

    except JtlUnreadableError as e:
        msg = f"JTL file could not be read: {e}"
        await ctx.error(msg)
        return {"error": msg, "status": "failed"}
    except Exception as e:
        msg = f"JTL analysis failed: {e}"
        await ctx.error(msg)
        return {"error": msg, "status": "failed", "traceback": traceback.format_exc()}


async def summarize_time_series_metric(test_run_id: str, metric: str, ctx: Context,
                                       labels: Optional[list] = None) -> Dict[str, Any]:
    """
    Summarize one time series metric (e.g. 'elapsed') of a saved analysis.

    Args:
        test_run_id: Run whose jtl_analysis.json should be read
        metric: Series name with or without the trailing underscore
        ctx: FastMCP workflow context
        labels: Optional subset of labels

    Returns:
        dict with avg/min/max/median/p90/p95/count for the metric.
    """
    prefix = metric if metric.endswith("_") else f"{metric}_"
    if prefix not in SERIES_PREFIXES or prefix == "errorDetails_":
        valid = ", ".join(p.rstrip("_") for p in SERIES_PREFIXES if p != "errorDetails_")
        msg = f"Unknown metric '{metric}'. Valid metrics: {valid}"
        await ctx.error(msg)
        return {"error": msg, "status": "invalid_metric"}

    json_file = ARTIFACTS_PATH / str(test_run_id) / "analysis" / ANALYSIS_JSON
    if not json_file.exists():
        msg = f"{ANALYSIS_JSON} not found for run {test_run_id}. Run 'analyze_jtl_results' first."
        await ctx.error(msg)
        return {"error": msg, "status": "prerequisite_missing", "expected_file": str(json_file)}

    try:
        saved = await read_json_input(json_file)
        report = saved.get("result", saved)
        summary = summarize_series(report.get("timeSeriesData", []), prefix, labels)
        return {
            "status": "success",
            "test_run_id": test_run_id,
            "metric": prefix.rstrip("_"),
            "labels": labels or report.get("labels", []),
            "summary": summary,
        }
    except Exception as e:
        msg = f"Time series summary failed: {e}"
        await ctx.error(msg)
        return {"error": msg, "status": "failed"}


# ============================================================================
# OUTPUTS
# ============================================================================

def build_summary(report: Dict[str, Any]) -> Dict[str, Any]:
    """Compact summary for the MCP tool response (full data lives in the JSON)."""
    total = report["successCount"] + report["errorCount"]
    return {
        "total_samples": total,
        "success_count": report["successCount"],
        "error_count": report["errorCount"],
        "error_rate": round(report["errorCount"] / total * 100, 2) if total else 0.0,
        "start_time": report["startTime"],
        "end_time": report["endTime"],
        "ramp_up": report["rampUpInfo"],
        "labels": report["labels"],
        "top_errors": report["errorDetails"][:5],
    }


async def write_analysis_outputs(report: Dict[str, Any], analysis_path: Path, test_run_id: str,
                                 source_file: str = "N/A") -> Dict[str, str]:
    """Write JSON, CSV and Markdown outputs."""
    output_files: Dict[str, str] = {}
    generated_at = datetime.datetime.now().isoformat()

    # --- JSON ---
    json_file = analysis_path / ANALYSIS_JSON
    await write_json_output({
        "test_run_id": test_run_id,
        "source_file": os.path.basename(source_file),
        "analysis_timestamp": generated_at,
        "mcp_version": MCP_VERSION,
        "result": report,
    }, json_file)
    output_files["json"] = str(json_file)

    # --- CSV ---
    aggregate_csv = analysis_path / "jtl_aggregate_report.csv"
    await write_csv_output(report["aggregateReport"], aggregate_csv, AGGREGATE_COLUMNS)
    output_files["aggregate_csv"] = str(aggregate_csv)

    series_csv = analysis_path / "jtl_time_series.csv"
    labels = report["labels"]
    await write_csv_output(
        flatten_time_series_for_csv(report["timeSeriesData"], labels),
        series_csv,
        time_series_columns(labels),
    )
    output_files["time_series_csv"] = str(series_csv)

    errors_csv = analysis_path / "jtl_error_details.csv"
    await write_csv_output(report["errorDetails"], errors_csv, ERROR_DETAIL_COLUMNS)
    output_files["error_details_csv"] = str(errors_csv)

    # --- Markdown ---
    md_file = analysis_path / "jtl_analysis.md"
    md_content = format_jtl_analysis_markdown(report, test_run_id, os.path.basename(source_file), generated_at)
    await write_markdown_output(md_content, md_file)
    output_files["markdown"] = str(md_file)

    return output_files
