"""Tabular file reader: CSV through DuckDB, Excel through openpyxl.

Both paths produce the same shape: a list of ``{header: text-or-None}`` rows
with surrounding whitespace stripped and empty cells turned into ``None``.
"""

import os
import zipfile
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import duckdb
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from pds_api.core.exceptions import ValidationError

Row = Dict[str, Optional[str]]

SUPPORTED_EXTENSIONS = (".csv", ".xlsx")


def _get_connection(memory_limit: str = "512MB") -> duckdb.DuckDBPyConnection:
    """Create a new in-memory DuckDB connection with safety limits."""
    conn = duckdb.connect(":memory:")
    conn.execute(f"SET memory_limit='{memory_limit}'")
    conn.execute("SET threads=2")
    return conn


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        text = "TRUE" if value else "FALSE"
    elif isinstance(value, float) and value.is_integer():
        text = str(int(value))
    elif isinstance(value, datetime):
        text = value.date().isoformat() if value.time() == datetime.min.time() else value.isoformat()
    elif isinstance(value, date):
        text = value.isoformat()
    else:
        text = str(value)
    text = text.strip()
    return text or None


def read_csv_rows(file_path: str) -> List[Row]:
    """Read a CSV with a header row, every column as text."""
    escaped_path = file_path.replace("'", "''")
    conn = _get_connection()
    try:
        result = conn.execute(
            f"SELECT * FROM read_csv('{escaped_path}', header=true, all_varchar=true)"
        )
        columns = [desc[0].strip() for desc in result.description]
        return [
            {col: _clean(val) for col, val in zip(columns, row)}
            for row in result.fetchall()
        ]
    except duckdb.Error as e:
        raise ValidationError(f"Could not parse file: {e}")
    finally:
        conn.close()


def read_excel_rows(file_path: str) -> List[Row]:
    """Read the first worksheet; row 1 holds the headers."""
    try:
        workbook = load_workbook(file_path, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, OSError, KeyError) as e:
        raise ValidationError(f"Could not parse file: {e}")

    try:
        sheet = workbook.worksheets[0]
        values = sheet.iter_rows(values_only=True)
        header = next(values, None)
        if not header:
            return []
        columns = [_clean(h) or f"column_{i + 1}" for i, h in enumerate(header)]
        rows = []
        for raw in values:
            if raw is None or all(v is None for v in raw):
                continue
            rows.append({
                col: _clean(raw[i]) if i < len(raw) else None
                for i, col in enumerate(columns)
            })
        return rows
    finally:
        workbook.close()


def read_rows(file_path: str) -> List[Row]:
    """Dispatch on extension to the matching reader."""
    ext = os.path.splitext(file_path)[1].lower()
    if ext == ".csv":
        return read_csv_rows(file_path)
    if ext == ".xlsx":
        return read_excel_rows(file_path)
    raise ValidationError(
        f"Unsupported file type '{ext}'. Allowed: {', '.join(SUPPORTED_EXTENSIONS)}"
    )
