"""
Operation log schemas.

One entry is written per import, export or sync. Entries are never updated.
"""

from pydantic import Field
from typing import Any, Optional
from enum import Enum
from datetime import datetime

from models.base import AliasedSchema
from models.mapping import FileFormat


class OperationKind(str, Enum):
    """Kind of top-level operation being audited."""
    IMPORTACION = "IMPORTACION"
    EXPORTACION = "EXPORTACION"
    SINCRONIZACION = "SINCRONIZACION"


class OperationLogCreate(AliasedSchema):
    """Data captured at the end of an operation."""

    tenant_id: int = Field(..., alias="empresaId")
    user_id: Optional[int] = Field(None, alias="usuarioId")
    mapping_config_id: Optional[int] = Field(None, alias="configuracionMapeoId")
    kind: OperationKind = Field(..., alias="tipoOperacion")
    file_name: str = Field(..., alias="nombreArchivo", max_length=255)
    file_format: FileFormat = Field(..., alias="formato")
    total_rows: int = Field(default=0, ge=0, alias="totalRegistros")
    succeeded: int = Field(default=0, ge=0, alias="registrosExitosos")
    updated: int = Field(default=0, ge=0, alias="registrosActualizados")
    failed: int = Field(default=0, ge=0, alias="registrosErrores")
    error_details: list[dict[str, Any]] = Field(default_factory=list, alias="detallesErrores")


class OperationLogResponse(OperationLogCreate):
    """Stored operation log entry."""

    id: int
    created_at: datetime = Field(..., alias="createdAt")
