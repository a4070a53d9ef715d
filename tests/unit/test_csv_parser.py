"""
Unit tests for the CSV parser and format dispatch.

Run: pytest tests/unit/test_csv_parser.py -v
"""

import pytest

from parsers.csv_parser import parse_csv
from parsers import parse_file, get_parser, find_column
from exceptions import FileParseError, FileTooLargeError, UnsupportedFormatError


class TestParseCsv:
    """Tests for parse_csv."""

    def test_reads_header_and_rows_as_text(self):
        content = b'FOLIO,ORIGEN,PRECIO\nF-00010,CDMX,"45,000.00"\n'

        table = parse_csv(content)

        assert table.headers == ["FOLIO", "ORIGEN", "PRECIO"]
        assert table.rows == [{"FOLIO": "F-00010", "ORIGEN": "CDMX", "PRECIO": "45,000.00"}]

    def test_empty_cells_are_empty_strings(self):
        table = parse_csv(b"FOLIO,NOTAS\nF-1,\n")

        assert table.rows[0]["NOTAS"] == ""

    def test_semicolon_separator_is_detected(self):
        table = parse_csv(b"FOLIO;ORIGEN;DESTINO\nF-1;CDMX;Monterrey\n")

        assert table.headers == ["FOLIO", "ORIGEN", "DESTINO"]
        assert table.rows[0]["DESTINO"] == "Monterrey"

    def test_utf8_bom_is_stripped_from_first_header(self):
        content = "FOLIO,ORIGEN\nF-1,CDMX\n".encode("utf-8-sig")

        table = parse_csv(content)

        assert table.headers[0] == "FOLIO"

    def test_latin1_file_is_decoded(self):
        content = "FOLIO,DESTINO\nF-1,Querétaro\n".encode("latin-1")

        table = parse_csv(content)

        assert table.rows[0]["DESTINO"] == "Querétaro"

    def test_empty_payload_gives_empty_table(self):
        table = parse_csv(b"   \n")

        assert table.is_empty
        assert table.headers == []

    def test_header_only_file_has_columns_but_no_rows(self):
        table = parse_csv(b"FOLIO,ORIGEN\n")

        assert table.headers == ["FOLIO", "ORIGEN"]
        assert table.is_empty

    def test_malformed_rows_raise_parse_error(self):
        with pytest.raises(FileParseError):
            parse_csv(b"A,B\n1,2,3,4\n")

    def test_extra_field_on_later_row_raises_parse_error(self):
        with pytest.raises(FileParseError):
            parse_csv(b"FOLIO,ORIGEN\nF-1,CDMX\nF-2,Puebla,EXTRA\n")

    def test_extra_fields_are_not_shifted_into_columns(self):
        content = b"FOLIO,ORIGEN\nF-1,CDMX,900\nF-2,Puebla,700\n"

        with pytest.raises(FileParseError) as exc_info:
            parse_csv(content)

        assert exc_info.value.details["header_columns"] == 2


class TestFormatDispatch:
    """Tests for get_parser / parse_file."""

    def test_unknown_format_is_rejected(self):
        with pytest.raises(UnsupportedFormatError):
            get_parser("PDF")

    def test_size_limit_is_checked_before_parsing(self):
        with pytest.raises(FileTooLargeError) as exc_info:
            parse_file(b"FOLIO\nF-1\n", "CSV", max_bytes=4)

        assert exc_info.value.details["limit"] == 4

    def test_within_limit_parses(self):
        table = parse_file(b"FOLIO\nF-1\n", "CSV", max_bytes=1024)

        assert table.rows == [{"FOLIO": "F-1"}]


class TestFindColumn:
    """Column lookup used by the mapper."""

    def test_lookup_ignores_case(self):
        assert find_column({"Folio": "F-1"}, "FOLIO") == "F-1"

    def test_exact_match_wins(self):
        assert find_column({"folio": "a", "FOLIO": "b"}, "FOLIO") == "b"

    def test_missing_column_is_none(self):
        assert find_column({"FOLIO": "F-1"}, "ORIGEN") is None
        assert find_column({"FOLIO": "F-1"}, None) is None
