"""
Uniform table shape shared by every file parser.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

import pandas as pd


@dataclass
class ParsedTable:
    """Column names plus raw row dicts, in file order."""
    headers: list[str] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return len(self.rows) == 0


def find_column(row: dict[str, Any], column_name: Optional[str]) -> Any:
    """
    Look up a column value ignoring case.

    Returns None when the column is not configured or not present.
    """
    if not column_name or not row:
        return None

    if column_name in row:
        return row[column_name]

    wanted = column_name.strip().lower()
    for key, value in row.items():
        if str(key).strip().lower() == wanted:
            return value
    return None


def clean_cell(value: Any) -> Any:
    """
    Convert a pandas cell to a plain Python value.

    NaN/NaT -> None, Timestamp -> datetime, numpy scalars -> int/float.
    """
    if value is None:
        return None
    if isinstance(value, (list, dict)):
        return value
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        return value
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, (datetime, date, str, bool, int, float)):
        return value
    if hasattr(value, "item"):
        return value.item()
    return value


def dataframe_to_table(df: pd.DataFrame) -> ParsedTable:
    """Build a ParsedTable from a DataFrame whose header is the first row."""
    headers = [str(col) for col in df.columns]
    rows = []
    for values in df.itertuples(index=False, name=None):
        rows.append({
            header: clean_cell(value)
            for header, value in zip(headers, values)
        })
    return ParsedTable(headers=headers, rows=rows)
