"""
Reconciliation and selective sync between an external file and the store.

reconcile() hash-joins the file records and the tenant's freight records
by folio and classifies every difference. sync() re-reads the file and
pushes the selected folios into the store.
"""

from decimal import Decimal
from io import BytesIO
from typing import Any, Optional
import structlog

from openpyxl import Workbook
from openpyxl.styles import Font

from config import settings
from exceptions import AppError
from models.freight import CanonicalRecord, FreightRecord, MUTABLE_FIELDS
from models.integration import (
    ConflictKind,
    DiffEntry,
    ExpenseItem,
    ExpenseSummary,
    ReconciliationResult,
    SyncResult,
)
from models.mapping import CanonicalField, MappingDefinition
from models.operation_log import OperationKind, OperationLogCreate
from parsers import parse_file
from services.customer_service import CustomerService
from services.freight_service import FreightService
from services.mapper_service import MapperService
from services.mapping_config_service import MappingConfigService
from services.operation_log_service import OperationLogService

logger = structlog.get_logger(__name__)

# (record attribute, canonical field) compared by exact text match
TEXT_FIELDS = (
    ("origin", CanonicalField.ORIGIN),
    ("destination", CanonicalField.DESTINATION),
)


class ReconciliationService:
    """
    Compares external files against stored freight records.
    """

    def __init__(self):
        self.mapping_configs = MappingConfigService()
        self.customers = CustomerService()
        self.freights = FreightService()
        self.operation_logs = OperationLogService()
        self.price_tolerance = Decimal(str(settings.price_tolerance))
        self.distance_tolerance = Decimal(str(settings.distance_tolerance))

    # ===================
    # FILE INDEX
    # ===================

    def index_file(
        self,
        content: bytes,
        definition: MappingDefinition,
        tenant_id: int
    ) -> dict[str, CanonicalRecord]:
        """
        Parse and map a whole file keyed by folio.

        Rows without folio are ignored; on duplicate folios the last row wins.
        Customer names are kept but not resolved.
        """
        table = parse_file(content, definition.file_format, settings.max_upload_bytes)

        mapper = MapperService()
        index: dict[str, CanonicalRecord] = {}
        for row in table.rows:
            record = mapper.map_row(row, definition, tenant_id)
            if record.folio:
                index[record.folio] = record

        return index

    # ===================
    # RECONCILE
    # ===================

    def reconcile(self, content: bytes, config_id: int, tenant_id: int) -> ReconciliationResult:
        """
        Diff a file against every stored record of the tenant.

        Read-only: customers are neither resolved nor created.
        """
        definition = self.mapping_configs.get_active_definition(config_id, tenant_id)
        file_index = self.index_file(content, definition, tenant_id)
        store_index = self.freights.index_by_folio(tenant_id)

        differences: list[DiffEntry] = []
        only_in_file: list[str] = []
        matched: list[FreightRecord] = []
        matching = 0
        differing = 0

        for folio, file_record in file_index.items():
            stored = store_index.get(folio)
            if stored is None:
                only_in_file.append(folio)
                continue

            matched.append(stored)
            field_diffs = self.compare(folio, file_record, stored)
            if field_diffs:
                differences.extend(field_diffs)
                differing += 1
            else:
                matching += 1

        only_in_store = [folio for folio in store_index if folio not in file_index]

        result = ReconciliationResult(
            total_in_file=len(file_index),
            total_in_store=len(store_index),
            matching=matching,
            differing=differing,
            only_in_file=only_in_file,
            only_in_store=only_in_store,
            differences=differences,
            expenses_by_folio=self._expenses_by_folio(matched),
        )

        logger.info(
            "reconciliation_completed",
            config_id=config_id,
            in_file=result.total_in_file,
            in_store=result.total_in_store,
            matching=matching,
            differing=differing,
            only_in_file=len(only_in_file),
            only_in_store=len(only_in_store)
        )

        return result

    def compare(
        self,
        folio: str,
        file_record: CanonicalRecord,
        stored: FreightRecord
    ) -> list[DiffEntry]:
        """
        Field-level differences for one folio.

        Fields the file leaves empty are not compared. Numbers differ only
        when the gap exceeds the field tolerance.
        """
        diffs: list[DiffEntry] = []

        def add(field: CanonicalField, store_value: Any, file_value: Any):
            diffs.append(DiffEntry(
                folio=folio,
                freight_id=stored.id,
                field=field.value,
                store_value=store_value,
                file_value=file_value,
                conflict=(
                    ConflictKind.MISSING_IN_STORE if store_value is None
                    else ConflictKind.VALUE_MISMATCH
                ),
            ))

        for attribute, field in TEXT_FIELDS:
            file_value = getattr(file_record, attribute)
            store_value = getattr(stored, attribute)
            if file_value and file_value != store_value:
                add(field, store_value, file_value)

        numeric_fields = (
            ("client_price", CanonicalField.CLIENT_PRICE, self.price_tolerance),
            ("actual_km", CanonicalField.ACTUAL_KM, self.distance_tolerance),
        )
        for attribute, field, tolerance in numeric_fields:
            file_value = getattr(file_record, attribute)
            if file_value is None:
                continue
            store_value = getattr(stored, attribute)
            if store_value is None or abs(file_value - store_value) > tolerance:
                add(field, _number(store_value), _number(file_value))

        return diffs

    def _expenses_by_folio(self, freights: list[FreightRecord]) -> dict[str, ExpenseSummary]:
        """Expense summaries for matched folios that have any expenses."""
        expenses = self.freights.get_expenses([freight.id for freight in freights])

        summaries: dict[str, ExpenseSummary] = {}
        for freight in freights:
            rows = expenses.get(freight.id)
            if not rows:
                continue
            items = [
                ExpenseItem(
                    id=row["id"],
                    kind=row.get("tipo_gasto"),
                    amount=float(row.get("monto") or 0),
                    description=row.get("descripcion"),
                    expense_date=str(row["fecha"]) if row.get("fecha") else None,
                )
                for row in rows
            ]
            summaries[freight.folio] = ExpenseSummary(
                total=round(sum(item.amount for item in items), 2),
                count=len(items),
                items=items,
            )
        return summaries

    # ===================
    # SYNC
    # ===================

    def sync(
        self,
        content: bytes,
        file_name: str,
        config_id: int,
        folios: list[str],
        tenant_id: int,
        user_id: Optional[int] = None
    ) -> SyncResult:
        """
        Push the selected folios from the file into the store.

        The file is parsed again; earlier reconciliation results are not
        trusted. Values the file leaves empty keep their stored value.
        Problems with one folio are reported as messages and never stop
        the others.
        """
        definition = self.mapping_configs.get_active_definition(config_id, tenant_id)
        selected = list(dict.fromkeys(folio.strip() for folio in folios if folio and folio.strip()))

        file_index = self.index_file(content, definition, tenant_id)

        updated = 0
        errors: list[str] = []

        for folio in selected:
            file_record = file_index.get(folio)
            if file_record is None:
                errors.append(f"Folio {folio} not found in file")
                continue

            try:
                stored = self.freights.get_by_folio(folio, tenant_id)
                if stored is None:
                    errors.append(f"Folio {folio} does not exist in the store")
                    continue

                file_record = self._resolve_customer(file_record, tenant_id)
                values = file_record.to_row(MUTABLE_FIELDS, skip_none=True)
                self.freights.update_fields(stored.id, tenant_id, values)
                updated += 1

            except AppError as e:
                logger.warning("sync_folio_failed", folio=folio, error=e.message)
                errors.append(f"Error updating {folio}: {e.message}")

        self._record_log(OperationLogCreate(
            tenant_id=tenant_id,
            user_id=user_id,
            mapping_config_id=config_id,
            kind=OperationKind.SINCRONIZACION,
            file_name=file_name,
            file_format=definition.file_format,
            total_rows=len(selected),
            succeeded=0,
            updated=updated,
            failed=len(errors),
            error_details=[{"error": message} for message in errors],
        ))

        logger.info(
            "sync_completed",
            config_id=config_id,
            selected=len(selected),
            updated=updated,
            errors=len(errors)
        )

        return SyncResult(updated=updated, errors=errors)

    def _resolve_customer(self, record: CanonicalRecord, tenant_id: int) -> CanonicalRecord:
        """Resolve (or create) the customer of a record about to be written."""
        if not record.customer_name:
            return record
        customer_id = self.customers.resolve(record.customer_name, tenant_id)
        return record.model_copy(update={"customer_id": customer_id})

    def _record_log(self, log: OperationLogCreate) -> Optional[int]:
        try:
            return self.operation_logs.record(log)
        except AppError as e:
            logger.error("sync_log_not_recorded", file_name=log.file_name, error=e.message)
            return None

    # ===================
    # COMPARISON WORKBOOK
    # ===================

    def export_comparison(self, result: ReconciliationResult) -> bytes:
        """
        Render a reconciliation result as an xlsx workbook.

        Sheets: Resumen, Diferencias, Solo en Archivo, Solo en LogiProfit
        (each only when non-empty) and Gastos Detallados.
        """
        wb = Workbook()

        ws = wb.active
        ws.title = "Resumen"
        ws.append(["RESUMEN DE COMPARACIÓN"])
        ws["A1"].font = Font(bold=True)
        ws.append([])
        ws.append(["Total Folios en Archivo", result.total_in_file])
        ws.append(["Total Folios en LogiProfit", result.total_in_store])
        ws.append(["Folios Coincidentes", result.matching])
        ws.append(["Folios con Diferencias", result.differing])
        ws.append(["Folios Solo en Archivo", len(result.only_in_file)])
        ws.append(["Folios Solo en LogiProfit", len(result.only_in_store)])
        ws.column_dimensions["A"].width = 30

        if result.differences:
            ws = _add_sheet(wb, "Diferencias", [
                "Folio", "Campo", "Valor Aspel/Microsip", "Valor LogiProfit",
                "Gastos Totales", "Cantidad Gastos",
            ])
            for diff in result.differences:
                expenses = result.expenses_by_folio.get(diff.folio)
                ws.append([
                    diff.folio,
                    diff.field,
                    _cell(diff.file_value),
                    _cell(diff.store_value),
                    expenses.total if expenses else 0,
                    expenses.count if expenses else 0,
                ])

        if result.only_in_file:
            ws = _add_sheet(wb, "Solo en Archivo", ["Folio"])
            for folio in result.only_in_file:
                ws.append([folio])

        if result.only_in_store:
            ws = _add_sheet(wb, "Solo en LogiProfit", ["Folio"])
            for folio in result.only_in_store:
                ws.append([folio])

        ws = _add_sheet(wb, "Gastos Detallados", [
            "Folio", "Total Gastos", "Cantidad Gastos", "Tipo Gasto", "Monto", "Descripción",
        ])
        for folio, summary in result.expenses_by_folio.items():
            for position, item in enumerate(summary.items):
                first = position == 0
                ws.append([
                    folio if first else "",
                    summary.total if first else "",
                    summary.count if first else "",
                    item.kind or "",
                    item.amount,
                    item.description or "",
                ])

        output = BytesIO()
        wb.save(output)

        logger.info(
            "comparison_exported",
            differences=len(result.differences),
            sheets=len(wb.sheetnames)
        )

        return output.getvalue()


def _add_sheet(wb: Workbook, title: str, headers: list[str]):
    ws = wb.create_sheet(title)
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for column in range(1, len(headers) + 1):
        ws.column_dimensions[ws.cell(row=1, column=column).column_letter].width = 20
    return ws


def _number(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _cell(value: Any) -> Any:
    """openpyxl accepts str/int/float/None; anything else becomes text."""
    if value is None or isinstance(value, (str, int, float)):
        return value
    return str(value)


# Singleton instance
_reconciliation_service: Optional[ReconciliationService] = None


def get_reconciliation_service() -> ReconciliationService:
    """Get or create ReconciliationService instance."""
    global _reconciliation_service
    if _reconciliation_service is None:
        _reconciliation_service = ReconciliationService()
    return _reconciliation_service
