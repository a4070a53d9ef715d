"""
Row mapping between external file columns and canonical freight fields.

map_row goes file -> canonical (import, preview, reconciliation).
extract_field_value goes canonical -> file cell text (export).
"""

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional, Union
import structlog

import pandas as pd

from config import settings
from models.freight import CanonicalRecord, FreightRecord
from models.mapping import CanonicalField, MappingDefinition
from parsers.tabular import find_column
from services.customer_service import CustomerResolver
from utils.text_utils import sanitize_text

logger = structlog.get_logger(__name__)

DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%d/%m/%Y",
    "%Y/%m/%d",
    "%d-%m-%Y",
    "%m/%d/%Y",
]


# ===================
# VALUE PARSING
# ===================

def parse_decimal(value: Any) -> Optional[Decimal]:
    """
    Parse a number cell.

    Grouping commas and a leading currency sign are stripped:
    "1,234.50" -> Decimal("1234.50"). Unparseable -> None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        return value if value.is_finite() else None

    if isinstance(value, (int, float)):
        if isinstance(value, float) and pd.isna(value):
            return None
        text = str(value)
    else:
        text = str(value).strip().replace(",", "").lstrip("$").strip()

    if not text:
        return None

    try:
        number = Decimal(text)
    except InvalidOperation:
        return None

    return number if number.is_finite() else None


def parse_int(value: Any) -> Optional[int]:
    """Parse an integer id cell. "12.0" -> 12, "12.5" -> None."""
    number = parse_decimal(value)
    if number is None or number != number.to_integral_value():
        return None
    return int(number)


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse a date cell.

    Accepts datetime/date objects (Excel) and common text formats.
    Aware values are converted to naive UTC so dates stay comparable.
    """
    if value is None:
        return None

    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if not text:
            return None
        parsed = _parse_date_text(text)
        if parsed is None:
            return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _parse_date_text(text: str) -> Optional[datetime]:
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    try:
        parsed = pd.to_datetime(text)
    except (ValueError, TypeError, OverflowError):
        return None

    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def parse_text(value: Any) -> Optional[str]:
    """Trimmed text; integral floats lose their ".0" (Excel folios)."""
    if value is None:
        return None
    if isinstance(value, float):
        if pd.isna(value):
            return None
        if value.is_integer():
            value = int(value)
    text = str(value).strip()
    return text or None


# ===================
# FIELD TABLES
# ===================

# Canonical field -> (record attribute, parser). Customer name and notes
# are handled separately (resolution and sanitizing).
IMPORT_FIELDS: dict[CanonicalField, tuple[str, Callable[[Any], Any]]] = {
    CanonicalField.FOLIO: ("folio", parse_text),
    CanonicalField.QUOTE_ID: ("quote_id", parse_int),
    CanonicalField.ORIGIN: ("origin", parse_text),
    CanonicalField.DESTINATION: ("destination", parse_text),
    CanonicalField.CLIENT_PRICE: ("client_price", parse_decimal),
    CanonicalField.ACTUAL_KM: ("actual_km", parse_decimal),
    CanonicalField.START_DATE: ("start_date", parse_date),
    CanonicalField.END_DATE: ("end_date", parse_date),
    CanonicalField.STATUS: ("status", parse_text),
}


def _format_decimal(value: Optional[Decimal]) -> str:
    if value is None:
        return ""
    return f"{Decimal(value):.2f}"


def _format_date(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d")


def _format_text(value: Any) -> str:
    return "" if value is None else str(value)


EXPORT_FORMATTERS: dict[CanonicalField, Callable[[Any], str]] = {
    CanonicalField.FOLIO: lambda r: _format_text(r.folio),
    CanonicalField.CUSTOMER_NAME: lambda r: _format_text(r.customer_name),
    CanonicalField.QUOTE_ID: lambda r: _format_text(r.quote_id),
    CanonicalField.ORIGIN: lambda r: _format_text(r.origin),
    CanonicalField.DESTINATION: lambda r: _format_text(r.destination),
    CanonicalField.CLIENT_PRICE: lambda r: _format_decimal(r.client_price),
    CanonicalField.ACTUAL_KM: lambda r: _format_decimal(r.actual_km),
    CanonicalField.START_DATE: lambda r: _format_date(r.start_date),
    CanonicalField.END_DATE: lambda r: _format_date(r.end_date),
    CanonicalField.STATUS: lambda r: _format_text(r.status),
    CanonicalField.NOTES: lambda r: _format_text(r.notes),
}


def extract_field_value(
    record: Union[FreightRecord, CanonicalRecord],
    field: Union[CanonicalField, str]
) -> str:
    """
    Render one canonical field as cell text for export.

    Decimals use two places, dates use YYYY-MM-DD, missing values and
    unknown fields give "".
    """
    try:
        formatter = EXPORT_FORMATTERS[CanonicalField(field)]
    except (ValueError, KeyError):
        return ""

    try:
        return formatter(record)
    except (AttributeError, TypeError, ValueError, InvalidOperation) as e:
        logger.warning("export_field_format_failed", field=str(field), error=str(e))
        return ""


# ===================
# MAPPER
# ===================

class MapperService:
    """
    Maps raw file rows to CanonicalRecords.

    The customer resolver decides whether unknown customer names are
    created (import) or only flagged (preview). Without a resolver the
    name is kept and left unresolved.
    """

    def __init__(
        self,
        customer_resolver: Optional[CustomerResolver] = None,
        notes_max_length: Optional[int] = None
    ):
        self.customer_resolver = customer_resolver
        self.notes_max_length = notes_max_length or settings.notes_max_length

    def map_row(
        self,
        row: dict[str, Any],
        mapping: MappingDefinition,
        tenant_id: int
    ) -> CanonicalRecord:
        """
        Map one raw row.

        Fields without a configured column, or whose column is absent
        from the row, stay None. Values that fail to parse also become
        None and are left to the validator.

        Raises:
            DatabaseError: If customer resolution fails
        """
        values: dict[str, Any] = {}

        for field, (attribute, parser) in IMPORT_FIELDS.items():
            column = mapping.column_for(field)
            if column is None:
                continue
            values[attribute] = parser(find_column(row, column))

        notes_column = mapping.column_for(CanonicalField.NOTES)
        if notes_column is not None:
            values["notes"] = sanitize_text(find_column(row, notes_column), self.notes_max_length)

        name_column = mapping.column_for(CanonicalField.CUSTOMER_NAME)
        if name_column is not None:
            name = sanitize_text(find_column(row, name_column), self.notes_max_length)
            values["customer_name"] = name
            if name and self.customer_resolver is not None:
                customer_id = self.customer_resolver.resolve(name, tenant_id)
                values["customer_id"] = customer_id
                if customer_id is None:
                    values["unresolved_customer"] = True

        return CanonicalRecord(**values)
