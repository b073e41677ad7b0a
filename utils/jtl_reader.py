"""
jtl_reader.py

Streams rows out of a JMeter JTL (CSV) results file.

The reader is header-driven: column order is irrelevant and unknown columns
are ignored by the engine. It does no validation beyond making sure the file
can be opened and has a header row; per-row checks belong to
services.record_validator.
"""

import csv
import logging
import os
from typing import Dict, Iterator, List, Optional, TextIO

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["timeStamp"]


class JtlUnreadableError(Exception):
    """The JTL source cannot be read at all; no partial report is produced."""


def iter_jtl_rows(stream: TextIO) -> Iterator[Dict[str, str]]:
    """
    Yield one dict per data row of an open JTL text stream.

    Raises:
        JtlUnreadableError: If the header row is missing, undecodable or has no
            timeStamp column.
    """
    reader = csv.DictReader(stream)
    try:
        header = reader.fieldnames
    except (csv.Error, UnicodeDecodeError) as e:
        raise JtlUnreadableError(f"Unable to read JTL header: {e}")

    if not header:
        raise JtlUnreadableError("JTL file is empty or has no header row")
    if header[0].startswith("\ufeff"):
        # BOM left in place by a plain utf-8 decode
        header = reader.fieldnames = [header[0].lstrip("\ufeff")] + header[1:]
    missing = [col for col in REQUIRED_COLUMNS if col not in header]
    if missing:
        raise JtlUnreadableError(f"JTL header is missing required column(s): {', '.join(missing)}")

    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            # one bad line; the reader resumes on the next one
            logger.warning("Skipping unparseable JTL line %d: %s", reader.line_num, e)
            continue
        if not any(value for key, value in row.items() if key is not None):
            continue
        yield row


def read_jtl_file(jtl_path: str, encoding: str = "utf-8-sig") -> Iterator[Dict[str, str]]:
    """
    Open a JTL file and stream its rows.

    Args:
        jtl_path: Path to the .jtl / .csv results file.
        encoding: Text encoding (undecodable bytes are replaced). The default
            also drops a leading UTF-8 BOM.

    Raises:
        JtlUnreadableError: If the file does not exist, cannot be opened or has
            no usable header.
    """
    if not os.path.isfile(jtl_path):
        raise JtlUnreadableError(f"JTL file not found: {jtl_path}")
    try:
        f = open(jtl_path, newline="", encoding=encoding, errors="replace")
    except (OSError, LookupError) as e:
        raise JtlUnreadableError(f"Unable to open JTL file {jtl_path}: {e}")

    with f:
        yield from iter_jtl_rows(f)


def find_jtl_files(directory: str) -> List[str]:
    """Sorted list of .jtl files in a directory (empty when it does not exist)."""
    if not os.path.isdir(directory):
        return []
    return sorted(
        os.path.join(directory, name)
        for name in os.listdir(directory)
        if name.lower().endswith(".jtl")
    )


def get_file_size_mb(path: str) -> Optional[float]:
    try:
        return os.path.getsize(path) / (1024 * 1024)
    except OSError:
        return None
