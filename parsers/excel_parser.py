"""
Excel parser for accounting-system exports.

Reads the first sheet of an .xlsx workbook. The first row is the header;
every following row becomes a raw row dict. Empty cells become None and
date cells keep their native datetime value.
"""

from io import BytesIO
import structlog

import pandas as pd

from exceptions import FileParseError
from parsers.tabular import ParsedTable, dataframe_to_table

logger = structlog.get_logger(__name__)


def parse_excel(content: bytes) -> ParsedTable:
    """
    Parse an Excel workbook.

    Args:
        content: Raw .xlsx bytes

    Returns:
        ParsedTable with the first sheet's columns and rows

    Raises:
        FileParseError: If the workbook cannot be read
    """
    logger.info("parsing_excel", size=len(content))

    try:
        excel = pd.ExcelFile(BytesIO(content), engine="openpyxl")
    except Exception as e:
        logger.error("excel_read_failed", error=str(e))
        raise FileParseError(
            file_format="EXCEL",
            message="Failed to read Excel file",
            details={"original_error": str(e)}
        )

    if not excel.sheet_names:
        return ParsedTable()

    try:
        df = excel.parse(excel.sheet_names[0])
    except Exception as e:
        logger.error("excel_sheet_read_failed", sheet=excel.sheet_names[0], error=str(e))
        raise FileParseError(
            file_format="EXCEL",
            message=f"Failed to read sheet {excel.sheet_names[0]}",
            details={"original_error": str(e)}
        )

    # Rows where every cell is empty carry no data
    df = df.dropna(how="all")

    table = dataframe_to_table(df)

    logger.info(
        "excel_parsed",
        sheet=excel.sheet_names[0],
        columns=len(table.headers),
        rows=table.row_count
    )

    return table
