# utils/file_processor.py
import json
import pandas as pd
from pathlib import Path
from typing import Dict, List, Any, Optional
import aiofiles

from services.time_bucket_index import SERIES_PREFIXES
from utils.format_utils import format_value_with_unit

AGGREGATE_COLUMNS = [
    'label', 'count', 'average', 'median', 'p90', 'p95', 'min', 'max',
    'errorRate', 'throughput', 'averageLatency', 'medianLatency', 'bytes', 'sentBytes',
]
ERROR_DETAIL_COLUMNS = ['code', 'message', 'count']

# -----------------------------------------------
# File writing functions
# -----------------------------------------------
async def write_json_output(data: Dict[str, Any], file_path: Path) -> None:
    """Write data to JSON file asynchronously"""
    try:
        async with aiofiles.open(file_path, 'w', encoding='utf-8') as f:
            await f.write(json.dumps(data, indent=2, ensure_ascii=False))
    except Exception as e:
        raise Exception(f"Failed to write JSON file {file_path}: {str(e)}")

async def write_csv_output(data: List[Dict[str, Any]], file_path: Path,
                          headers: Optional[List[str]] = None) -> None:
    """Write data to CSV file asynchronously (header-only when data is empty)"""
    try:
        df = pd.DataFrame(data, columns=headers) if headers else pd.DataFrame(data)
        async with aiofiles.open(file_path, 'w', newline='', encoding='utf-8') as f:
            await f.write(df.to_csv(index=False))
    except Exception as e:
        raise Exception(f"Failed to write CSV file {file_path}: {str(e)}")

async def write_markdown_output(content: str, file_path: Path) -> None:
    """Write markdown content to file asynchronously"""
    try:
        async with aiofiles.open(file_path, 'w', encoding='utf-8') as f:
            await f.write(content)
    except Exception as e:
        raise Exception(f"Failed to write Markdown file {file_path}: {str(e)}")

async def read_json_input(file_path: Path) -> Dict[str, Any]:
    """Read a JSON artifact asynchronously"""
    async with aiofiles.open(file_path, 'r', encoding='utf-8') as f:
        return json.loads(await f.read())

# -----------------------------------------------
# Analysis CSV flattening
# -----------------------------------------------
def flatten_time_series_for_csv(time_series: List[Dict[str, Any]], labels: List[str]) -> List[Dict[str, Any]]:
    """
    One CSV row per bucket with a stable column set.

    Labels absent from a bucket are left blank; per-bucket error maps are
    JSON-encoded so they fit in a single cell.
    """
    rows = []
    for entry in time_series:
        row = {'time': entry.get('time'), 'originalTime': entry.get('originalTime')}
        for label in labels:
            for prefix in SERIES_PREFIXES:
                key = f"{prefix}{label}"
                value = entry.get(key)
                if prefix == "errorDetails_" and value is not None:
                    value = json.dumps(value, ensure_ascii=False, sort_keys=True)
                row[key] = value
        row['totalActiveThreads'] = entry.get('totalActiveThreads', 0)
        rows.append(row)
    return rows

def time_series_columns(labels: List[str]) -> List[str]:
    columns = ['time', 'originalTime']
    for label in labels:
        columns.extend(f"{prefix}{label}" for prefix in SERIES_PREFIXES)
    columns.append('totalActiveThreads')
    return columns

# -----------------------------------------------
# Formatting functions
# -----------------------------------------------
def format_jtl_analysis_markdown(report: Dict[str, Any], test_run_id: str,
                                 source_file: str = "N/A", generated_at: str = "N/A") -> str:
    """Format the JTL analysis result as a markdown report"""
    success = report.get('successCount', 0)
    errors = report.get('errorCount', 0)
    total = success + errors
    success_rate = (success / total * 100) if total else 0.0
    ramp = report.get('rampUpInfo', {})

    md_content = f"""# JTL Analysis Report - Run {test_run_id}

## Test Summary
- **Source File**: {source_file}
- **Total Samples**: {total:,}
- **Successful Samples**: {success:,}
- **Failed Samples**: {errors:,}
- **Success Rate**: {success_rate:.2f}%
- **Start Time**: {report.get('startTime') or 'N/A'}
- **End Time**: {report.get('endTime') or 'N/A'}

## Ramp-Up
- **Peak Concurrent Users**: {ramp.get('users', 0)}
- **Max Users per Label**: {ramp.get('usersPerTest', 0)}
- **Ramp-Up Duration**: {ramp.get('duration', '0s')}

"""

    aggregate = report.get('aggregateReport', [])
    if aggregate:
        md_content += "## Aggregate Report\n\n"
        md_content += "| Label | Samples | Average | Median | P90 | P95 | Min | Max | Error % | Throughput (req/s) | Avg Bytes |\n"
        md_content += "|-------|---------|---------|--------|-----|-----|-----|-----|---------|--------------------|-----------|\n"
        for row in aggregate:
            label = row['label']
            md_content += f"| {label[:50]}{'...' if len(label) > 50 else ''} | {row['count']:,} "
            md_content += f"| {format_value_with_unit(row['average'])} | {format_value_with_unit(row['median'])} "
            md_content += f"| {format_value_with_unit(row['p90'])} | {format_value_with_unit(row['p95'])} "
            md_content += f"| {format_value_with_unit(row['min'])} | {format_value_with_unit(row['max'])} "
            md_content += f"| {row['errorRate']:.2f}% | {row['throughput']:.2f} "
            md_content += f"| {format_value_with_unit(row['bytes'], 'bytes')} |\n"
        md_content += "\n"

    error_details = report.get('errorDetails', [])
    if error_details:
        md_content += "## Errors\n\n"
        md_content += "| Code | Message | Count |\n"
        md_content += "|------|---------|-------|\n"
        for detail in error_details:
            md_content += f"| {detail['code']} | {detail['message']} | {detail['count']:,} |\n"
        md_content += "\n"
    else:
        md_content += "## Errors\n\nNo failed samples.\n\n"

    md_content += f"\n---\n*Generated: {generated_at}*"

    return md_content
