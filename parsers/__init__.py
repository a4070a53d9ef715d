"""
File parsers module.

Every parser turns raw bytes into a ParsedTable. parse_file picks the
parser from the mapping's format tag.
"""

from typing import Callable, Optional, Union

from exceptions import FileTooLargeError, UnsupportedFormatError
from models.mapping import FileFormat
from parsers.tabular import ParsedTable, find_column
from parsers.excel_parser import parse_excel
from parsers.csv_parser import parse_csv
from parsers.xml_parser import parse_xml

PARSERS: dict[FileFormat, Callable[[bytes], ParsedTable]] = {
    FileFormat.EXCEL: parse_excel,
    FileFormat.CSV: parse_csv,
    FileFormat.XML: parse_xml,
}


def get_parser(file_format: Union[FileFormat, str]) -> Callable[[bytes], ParsedTable]:
    """
    Get the parser for a format tag.

    Raises:
        UnsupportedFormatError: If the tag is unknown
    """
    try:
        return PARSERS[FileFormat(file_format)]
    except (ValueError, KeyError):
        raise UnsupportedFormatError(str(file_format))


def parse_file(
    content: bytes,
    file_format: Union[FileFormat, str],
    max_bytes: Optional[int] = None
) -> ParsedTable:
    """
    Parse a whole file once.

    Raises:
        FileTooLargeError: Content exceeds max_bytes
        UnsupportedFormatError: Unknown format tag
        FileParseError: Malformed payload
    """
    if max_bytes is not None and len(content) > max_bytes:
        raise FileTooLargeError(len(content), max_bytes)

    parser = get_parser(file_format)
    return parser(content)


__all__ = [
    "ParsedTable",
    "find_column",
    "parse_excel",
    "parse_csv",
    "parse_xml",
    "get_parser",
    "parse_file",
]
