"""
Import, reconciliation, sync and export result schemas.

Field aliases are the keys the frontend already consumes.
"""

from dataclasses import dataclass
from pydantic import Field
from typing import Any, Optional
from enum import Enum
from datetime import date

from models.base import AliasedSchema
from models.freight import FreightStatus
from models.mapping import FileFormat


# ===================
# VALIDATION
# ===================

class ValidationIssue(AliasedSchema):
    """A single line-scoped problem found while importing."""

    line: int = Field(..., alias="linea")
    field: str = Field(..., alias="campo")
    error: str = Field(..., alias="error")


# ===================
# IMPORT
# ===================

class ImportResult(AliasedSchema):
    """Outcome of importing one file."""

    log_id: Optional[int] = Field(None, alias="logId")
    total_rows: int = Field(..., alias="totalRegistros")
    succeeded: int = Field(..., alias="exitosos")
    updated: int = Field(..., alias="actualizados")
    failed: int = Field(..., alias="errores")
    error_details: list[ValidationIssue] = Field(default_factory=list, alias="detallesErrores")


class PreviewRow(AliasedSchema):
    """Raw row next to what it maps to."""

    line: int = Field(..., alias="linea")
    raw: dict[str, Any] = Field(..., alias="datosOriginales")
    mapped: dict[str, Any] = Field(..., alias="datosMapeados")
    errors: list[ValidationIssue] = Field(default_factory=list, alias="errores")


class PreviewResult(AliasedSchema):
    """First rows of a file mapped without touching the store."""

    total_rows: int = Field(..., alias="totalRegistros")
    headers: list[str] = Field(default_factory=list, alias="headers")
    current_mapping: dict[str, str] = Field(default_factory=dict, alias="mapeoActual")
    preview: list[PreviewRow] = Field(default_factory=list, alias="preview")


# ===================
# RECONCILIATION
# ===================

class ConflictKind(str, Enum):
    """How a file record and a stored record disagree."""
    VALUE_MISMATCH = "diferencia"
    MISSING_IN_STORE = "faltante_logiprofit"


class DiffEntry(AliasedSchema):
    """One differing field of one folio."""

    folio: str = Field(..., alias="folio")
    freight_id: Optional[int] = Field(None, alias="fleteId")
    field: str = Field(..., alias="campo")
    store_value: Any = Field(None, alias="valorLogiProfit")
    file_value: Any = Field(None, alias="valorArchivo")
    conflict: ConflictKind = Field(ConflictKind.VALUE_MISMATCH, alias="tipoConflicto")


class ExpenseItem(AliasedSchema):
    """Expense attached to a stored freight."""

    id: int = Field(..., alias="id")
    kind: Optional[str] = Field(None, alias="tipo")
    amount: float = Field(0, alias="monto")
    description: Optional[str] = Field(None, alias="descripcion")
    expense_date: Optional[str] = Field(None, alias="fecha")


class ExpenseSummary(AliasedSchema):
    """Expense totals for one folio."""

    total: float = Field(0, alias="totalGastos")
    count: int = Field(0, alias="cantidadGastos")
    items: list[ExpenseItem] = Field(default_factory=list, alias="gastos")


class ReconciliationResult(AliasedSchema):
    """Classified diff between a file and the store."""

    total_in_file: int = Field(..., alias="totalFletesArchivo")
    total_in_store: int = Field(..., alias="totalFletesLogiProfit")
    matching: int = Field(..., alias="fletesCoincidentes")
    differing: int = Field(..., alias="fletesConDiferencias")
    only_in_file: list[str] = Field(default_factory=list, alias="fletesSoloEnArchivo")
    only_in_store: list[str] = Field(default_factory=list, alias="fletesSoloEnLogiProfit")
    differences: list[DiffEntry] = Field(default_factory=list, alias="diferencias")
    expenses_by_folio: dict[str, ExpenseSummary] = Field(default_factory=dict, alias="gastosPorFolio")


# ===================
# SYNC
# ===================

class SyncResult(AliasedSchema):
    """Outcome of syncing selected folios from a file."""

    updated: int = Field(0, alias="actualizados")
    errors: list[str] = Field(default_factory=list, alias="errores")


# ===================
# EXPORT
# ===================

class ExportRequest(AliasedSchema):
    """Which freight records to export, and how."""

    mapping_config_id: int = Field(..., alias="configuracionMapeoId")
    file_format: FileFormat = Field(..., alias="formato")
    freight_ids: Optional[list[int]] = Field(None, alias="fleteIds")
    status: Optional[FreightStatus] = Field(None, alias="estado")
    customer_id: Optional[int] = Field(None, alias="clienteId")
    date_from: Optional[date] = Field(None, alias="fechaDesde")
    date_to: Optional[date] = Field(None, alias="fechaHasta")


@dataclass
class ExportFile:
    """Rendered export payload."""
    content: bytes
    filename: str
    media_type: str
    record_count: int = 0

