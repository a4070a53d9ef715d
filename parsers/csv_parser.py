"""
CSV parser for accounting-system exports.

Every cell is read as text. Empty cells are kept as empty strings so the
mapper can tell "present but blank" apart from "column missing".
"""

from io import BytesIO
import structlog

import pandas as pd

from exceptions import FileParseError
from parsers.tabular import ParsedTable, dataframe_to_table

logger = structlog.get_logger(__name__)

# Aspel and Microsip exports are usually UTF-8 or Windows latin-1
ENCODINGS = ["utf-8-sig", "latin-1"]
SEPARATORS = [",", ";", "\t", "|"]


def parse_csv(content: bytes) -> ParsedTable:
    """
    Parse a delimited text file.

    Args:
        content: Raw file bytes

    Returns:
        ParsedTable with header columns and text rows

    Raises:
        FileParseError: If the content is not valid delimited text
    """
    logger.info("parsing_csv", size=len(content))

    if not content.strip():
        return ParsedTable()

    last_error = None

    for encoding in ENCODINGS:
        try:
            separator = _detect_separator(content, encoding)
            df = pd.read_csv(
                BytesIO(content),
                sep=separator,
                encoding=encoding,
                dtype=str,
                keep_default_na=False,
                skipinitialspace=True,
                on_bad_lines="error",
            )
        except UnicodeDecodeError as e:
            last_error = e
            continue
        except pd.errors.EmptyDataError:
            return ParsedTable()
        except Exception as e:
            logger.error("csv_read_failed", encoding=encoding, error=str(e))
            raise FileParseError(
                file_format="CSV",
                message="Failed to read CSV file",
                details={"original_error": str(e)}
            )

        # Extra fields on the first data row become an implicit index
        if len(df.index) and not isinstance(df.index, pd.RangeIndex):
            logger.error("csv_row_has_extra_fields", encoding=encoding, separator=separator)
            raise FileParseError(
                file_format="CSV",
                message="Data rows have more fields than the header",
                details={"header_columns": len(df.columns)}
            )

        df.columns = [str(col).strip() for col in df.columns]
        table = dataframe_to_table(df)

        logger.info(
            "csv_parsed",
            encoding=encoding,
            separator=separator,
            columns=len(table.headers),
            rows=table.row_count
        )
        return table

    raise FileParseError(
        file_format="CSV",
        message="Could not decode CSV file",
        details={"original_error": str(last_error)}
    )


def _detect_separator(content: bytes, encoding: str) -> str:
    """Pick the separator that appears most often in the header line."""
    header = content.decode(encoding).splitlines()[0] if content else ""
    counts = {sep: header.count(sep) for sep in SEPARATORS}
    best = max(counts, key=counts.get)
    return best if counts[best] > 0 else ","
