# jtlanalysis.py
from fastmcp import FastMCP, Context    # ✅ FastMCP 2.x import
from typing import Optional, List, Dict, Any

from services.jtl_analyzer import (
    analyze_jtl_results as run_jtl_results_analysis,
    analyze_jtl_path,
    summarize_time_series_metric,
    CONFIG,
)
from utils.config import setup_logging

mcp = FastMCP(name="jtlanalysis")

@mcp.tool()
async def analyze_jtl_results(test_run_id: str, ctx: Context) -> Dict[str, Any]:
    """
    Analyze the JMeter JTL results stored for a test run.

    Looks under:
        <artifacts_root>/<test_run_id>/jmeter

    Args:
        test_run_id: The unique test run identifier
        ctx: FastMCP workflow context for chaining

    Returns:
        Dictionary with sample counts, ramp-up info, top errors and the paths of
        the JSON/CSV/Markdown outputs written to <artifacts_root>/<test_run_id>/analysis
    """
    return await run_jtl_results_analysis(test_run_id, ctx)

@mcp.tool()
async def analyze_jtl_file(jtl_path: str, test_run_id: str, ctx: Context) -> Dict[str, Any]:
    """
    Analyze an arbitrary JTL (CSV) file.

    Args:
        jtl_path: Path to the JTL file
        test_run_id: Identifier used for the output folder
        ctx: FastMCP workflow context for chaining

    Returns:
        Same shape as analyze_jtl_results
    """
    return await analyze_jtl_path(jtl_path, test_run_id, ctx)

@mcp.tool()
async def summarize_time_series(test_run_id: str, metric: str = "elapsed",
                                labels: Optional[List[str]] = None, ctx: Context = None) -> Dict[str, Any]:
    """
    Summarize a per-second series (avg, min, max, median, p90, p95) of a finished analysis

    Args:
        test_run_id: The unique test run identifier
        metric: requestsPerSecond, errorsPerSecond, activeThreads, bytes, sentBytes,
                elapsed, latency or checksPerSecond
        labels: Optional subset of labels (default: all)
        ctx: FastMCP workflow context for chaining

    Returns:
        Dictionary containing the series summary
    """
    return await summarize_time_series_metric(test_run_id, metric, ctx, labels)

if __name__ == "__main__":
    setup_logging(CONFIG)
    try:
        mcp.run("stdio")
    except KeyboardInterrupt:
        print("Shutting down JTL Analysis MCP…")
