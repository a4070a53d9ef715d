"""
Export service - Render freight records as files for accounting systems.

The mapping definition is applied in reverse: every configured canonical
field becomes one column (or XML tag) named after the external column.
"""

import re
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import Any, Optional, Sequence, Union
import xml.etree.ElementTree as ET

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font
import structlog

from exceptions import AppError, UnsupportedFormatError
from models.freight import CanonicalRecord, FreightRecord
from models.integration import ExportFile, ExportRequest
from models.mapping import FILE_EXTENSIONS, MEDIA_TYPES, CanonicalField, FileFormat, MappingDefinition
from models.operation_log import OperationKind, OperationLogCreate
from services.freight_service import FreightService
from services.mapper_service import extract_field_value
from services.mapping_config_service import MappingConfigService
from services.operation_log_service import OperationLogService

logger = structlog.get_logger(__name__)

SHEET_TITLE = "Fletes"
XML_ROOT = "Fletes"
XML_RECORD = "Flete"
COLUMN_WIDTH = 20
DATE_FORMAT = "yyyy-mm-dd"
NUMBER_FORMAT = "0.00"
CENTS = Decimal("0.01")

# Canonical field -> record attribute, written as native Excel cells
NUMBER_FIELDS = {
    CanonicalField.CLIENT_PRICE: "client_price",
    CanonicalField.ACTUAL_KM: "actual_km",
}
DATE_FIELDS = {
    CanonicalField.START_DATE: "start_date",
    CanonicalField.END_DATE: "end_date",
}

Record = Union[FreightRecord, CanonicalRecord]


# ===================
# RENDERING
# ===================

def build_rows(records: Sequence[Record], mapping: MappingDefinition) -> tuple[list[str], list[list[str]]]:
    """Headers (external column names) and cell text, in mapping and record order."""
    fields = mapping.configured_fields()
    headers = [mapping.mappings[field] for field in fields]
    rows = [
        [extract_field_value(record, field) for field in fields]
        for record in records
    ]
    return headers, rows


def build_excel_rows(records: Sequence[Record], mapping: MappingDefinition) -> tuple[list[str], list[list[Any]]]:
    """Like build_rows, but numbers and dates stay native so spreadsheets can sum and sort them."""
    fields = mapping.configured_fields()
    headers = [mapping.mappings[field] for field in fields]
    rows = [
        [excel_value(record, field) for field in fields]
        for record in records
    ]
    return headers, rows


def excel_value(record: Record, field: CanonicalField) -> Any:
    if field in NUMBER_FIELDS:
        value = getattr(record, NUMBER_FIELDS[field])
        return None if value is None else Decimal(value).quantize(CENTS)
    if field in DATE_FIELDS:
        value = getattr(record, DATE_FIELDS[field])
        return None if value is None else datetime(value.year, value.month, value.day)
    return extract_field_value(record, field)


def render_excel(headers: list[str], rows: list[list[Any]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
        ws.column_dimensions[cell.column_letter].width = COLUMN_WIDTH

    for row in rows:
        ws.append(row)
        for cell in ws[ws.max_row]:
            if isinstance(cell.value, datetime):
                cell.number_format = DATE_FORMAT
            elif isinstance(cell.value, (Decimal, int, float)):
                cell.number_format = NUMBER_FORMAT

    output = BytesIO()
    wb.save(output)
    return output.getvalue()


def render_csv(headers: list[str], rows: list[list[str]]) -> bytes:
    df = pd.DataFrame(rows, columns=headers, dtype=str)
    return df.to_csv(index=False).encode("utf-8")


def render_xml(headers: list[str], rows: list[list[str]]) -> bytes:
    """<Fletes><Flete><COLUMN>value</COLUMN>...</Flete></Fletes>"""
    tags = [xml_tag(header) for header in headers]

    root = ET.Element(XML_ROOT)
    for row in rows:
        record = ET.SubElement(root, XML_RECORD)
        for tag, value in zip(tags, row):
            ET.SubElement(record, tag).text = value

    ET.indent(root)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def xml_tag(name: str) -> str:
    """Make a column name usable as an element name: 'Precio Cliente' -> 'Precio_Cliente'."""
    tag = re.sub(r"[^\w.-]", "_", name.strip())
    if not tag or not (tag[0].isalpha() or tag[0] == "_"):
        tag = f"_{tag}"
    return tag


RENDERERS = {
    FileFormat.EXCEL: render_excel,
    FileFormat.CSV: render_csv,
    FileFormat.XML: render_xml,
}


def render(
    records: Sequence[Record],
    mapping: MappingDefinition,
    file_format: Union[FileFormat, str]
) -> bytes:
    """
    Serialize records with a mapping. Pure: same input, same bytes.

    Raises:
        UnsupportedFormatError: Unknown format tag
    """
    try:
        renderer = RENDERERS[FileFormat(file_format)]
    except (ValueError, KeyError):
        raise UnsupportedFormatError(str(file_format))

    if FileFormat(file_format) == FileFormat.EXCEL:
        headers, rows = build_excel_rows(records, mapping)
    else:
        headers, rows = build_rows(records, mapping)
    return renderer(headers, rows)


def export_filename(file_format: FileFormat, now: Optional[datetime] = None) -> str:
    """fletes_export_<epoch ms>.<ext>"""
    now = now or datetime.now()
    return f"fletes_export_{int(now.timestamp() * 1000)}.{FILE_EXTENSIONS[file_format]}"


# ===================
# SERVICE
# ===================

class ExportService:
    """Exports stored freight records through a mapping configuration."""

    def __init__(self):
        self.mapping_configs = MappingConfigService()
        self.freights = FreightService()
        self.operation_logs = OperationLogService()

    def export_freights(
        self,
        request: ExportRequest,
        tenant_id: int,
        user_id: Optional[int] = None
    ) -> ExportFile:
        """
        Load the requested freight records and render them.

        Raises:
            MappingConfigNotFoundError, MappingConfigInactiveError
        """
        definition = self.mapping_configs.get_active_definition(request.mapping_config_id, tenant_id)

        records = self.freights.get_all(
            tenant_id,
            status=request.status,
            customer_id=request.customer_id,
            date_from=request.date_from,
            date_to=request.date_to,
            freight_ids=request.freight_ids,
        )

        content = render(records, definition, request.file_format)
        filename = export_filename(request.file_format)

        logger.info(
            "freights_exported",
            config_id=request.mapping_config_id,
            file_format=request.file_format.value,
            records=len(records),
            filename=filename
        )

        try:
            self.operation_logs.record(OperationLogCreate(
                tenant_id=tenant_id,
                user_id=user_id,
                mapping_config_id=request.mapping_config_id,
                kind=OperationKind.EXPORTACION,
                file_name=filename,
                file_format=request.file_format,
                total_rows=len(records),
                succeeded=len(records),
            ))
        except AppError as e:
            logger.error("export_log_not_recorded", filename=filename, error=e.message)

        return ExportFile(
            content=content,
            filename=filename,
            media_type=MEDIA_TYPES[request.file_format],
            record_count=len(records),
        )


# Singleton instance
_export_service: Optional[ExportService] = None


def get_export_service() -> ExportService:
    """Get or create ExportService instance."""
    global _export_service
    if _export_service is None:
        _export_service = ExportService()
    return _export_service
