"""
Integration API routes: mapping configurations, import, reconciliation,
sync, export and operation logs.

The tenant comes from the X-Empresa-Id header; X-Usuario-Id is optional
and only recorded in operation logs.
"""

import json
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, File, Form, Header, UploadFile
from fastapi.responses import JSONResponse, Response
import structlog

from models.integration import (
    ExportRequest,
    ImportResult,
    PreviewResult,
    ReconciliationResult,
    SyncResult,
)
from models.mapping import (
    MappingConfigCreate,
    MappingConfigResponse,
    MappingConfigUpdate,
    MEDIA_TYPES,
    FileFormat,
)
from models.operation_log import OperationLogResponse
from services.export_service import get_export_service
from services.import_service import get_import_service
from services.mapping_config_service import get_mapping_config_service
from services.operation_log_service import get_operation_log_service
from services.reconciliation_service import get_reconciliation_service
from exceptions import AppError, ValidationError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/integrations", tags=["Integrations"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


def download(content: bytes, filename: str, media_type: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def parse_folios(values: list[str]) -> list[str]:
    """
    Accept folios as repeated form fields or as one JSON array string.

    Raises:
        ValidationError: If nothing usable was sent
    """
    folios: list[str] = []
    for value in values:
        text = value.strip()
        if text.startswith("["):
            try:
                decoded = json.loads(text)
            except json.JSONDecodeError:
                raise ValidationError(
                    code="INVALID_FOLIOS",
                    message="folios must be a JSON array of strings",
                    details={"provided": text[:200]}
                )
            folios.extend(str(item) for item in decoded)
        elif text:
            folios.append(text)

    if not folios:
        raise ValidationError(
            code="INVALID_FOLIOS",
            message="At least one folio must be selected"
        )
    return folios


# ===================
# MAPPING CONFIGURATIONS
# ===================

@router.get("/mappings", response_model=list[MappingConfigResponse])
async def list_mapping_configs(
    empresa_id: int = Header(..., alias="X-Empresa-Id"),
    active_only: bool = False
):
    """List mapping configurations of the company, newest first."""
    try:
        return get_mapping_config_service().get_all(empresa_id, active_only=active_only)
    except Exception as e:
        return handle_error(e)


@router.post("/mappings", response_model=MappingConfigResponse, status_code=201)
async def create_mapping_config(
    data: MappingConfigCreate,
    empresa_id: int = Header(..., alias="X-Empresa-Id")
):
    """Create a mapping configuration."""
    try:
        return get_mapping_config_service().create(data, empresa_id)
    except Exception as e:
        return handle_error(e)


@router.get("/mappings/{config_id}", response_model=MappingConfigResponse)
async def get_mapping_config(
    config_id: int,
    empresa_id: int = Header(..., alias="X-Empresa-Id")
):
    """Get a mapping configuration by id."""
    try:
        return get_mapping_config_service().get_by_id(config_id, empresa_id)
    except Exception as e:
        return handle_error(e)


@router.patch("/mappings/{config_id}", response_model=MappingConfigResponse)
async def update_mapping_config(
    config_id: int,
    data: MappingConfigUpdate,
    empresa_id: int = Header(..., alias="X-Empresa-Id")
):
    """
    Update a mapping configuration.

    Only provided fields are updated.
    """
    try:
        return get_mapping_config_service().update(config_id, empresa_id, data)
    except Exception as e:
        return handle_error(e)


@router.delete("/mappings/{config_id}", status_code=204)
async def delete_mapping_config(
    config_id: int,
    empresa_id: int = Header(..., alias="X-Empresa-Id")
):
    """Delete a mapping configuration."""
    try:
        get_mapping_config_service().delete(config_id, empresa_id)
        return Response(status_code=204)
    except Exception as e:
        return handle_error(e)


# ===================
# IMPORT
# ===================

@router.post("/import/preview", response_model=PreviewResult)
async def preview_import(
    file: UploadFile = File(...),
    configuracion_mapeo_id: int = Form(..., alias="configuracionMapeoId"),
    empresa_id: int = Header(..., alias="X-Empresa-Id")
):
    """
    Show how the first rows of a file would be imported.

    Nothing is written: unknown customers are flagged, not created.
    """
    try:
        content = await file.read()
        return get_import_service().preview(content, configuracion_mapeo_id, empresa_id)
    except Exception as e:
        return handle_error(e)


@router.post("/import", response_model=ImportResult)
async def import_file(
    file: UploadFile = File(...),
    configuracion_mapeo_id: int = Form(..., alias="configuracionMapeoId"),
    empresa_id: int = Header(..., alias="X-Empresa-Id"),
    usuario_id: Optional[int] = Header(None, alias="X-Usuario-Id")
):
    """
    Import freight records from a file.

    Existing folios are updated, new ones created. Rows with errors are
    skipped and reported with their line number.
    """
    try:
        content = await file.read()
        return get_import_service().import_file(
            content,
            file.filename or "archivo",
            configuracion_mapeo_id,
            empresa_id,
            usuario_id
        )
    except Exception as e:
        return handle_error(e)


# ===================
# RECONCILIATION
# ===================

@router.post("/compare", response_model=ReconciliationResult)
async def compare_file(
    file: UploadFile = File(...),
    configuracion_mapeo_id: int = Form(..., alias="configuracionMapeoId"),
    empresa_id: int = Header(..., alias="X-Empresa-Id")
):
    """Compare a file against stored freight records by folio."""
    try:
        content = await file.read()
        return get_reconciliation_service().reconcile(content, configuracion_mapeo_id, empresa_id)
    except Exception as e:
        return handle_error(e)


@router.post("/compare/export")
async def export_comparison(result: ReconciliationResult):
    """Download a comparison result as an Excel workbook."""
    try:
        content = get_reconciliation_service().export_comparison(result)
        filename = f"comparacion_{int(datetime.now().timestamp() * 1000)}.xlsx"
        return download(content, filename, MEDIA_TYPES[FileFormat.EXCEL])
    except Exception as e:
        return handle_error(e)


@router.post("/sync", response_model=SyncResult)
async def sync_differences(
    file: UploadFile = File(...),
    configuracion_mapeo_id: int = Form(..., alias="configuracionMapeoId"),
    folios: list[str] = Form(...),
    empresa_id: int = Header(..., alias="X-Empresa-Id"),
    usuario_id: Optional[int] = Header(None, alias="X-Usuario-Id")
):
    """
    Overwrite the selected folios with the values in the file.

    Empty values in the file never erase stored data.
    """
    try:
        selected = parse_folios(folios)
        content = await file.read()
        return get_reconciliation_service().sync(
            content,
            file.filename or "archivo",
            configuracion_mapeo_id,
            selected,
            empresa_id,
            usuario_id
        )
    except Exception as e:
        return handle_error(e)


# ===================
# EXPORT
# ===================

@router.post("/export")
async def export_freights(
    request: ExportRequest,
    empresa_id: int = Header(..., alias="X-Empresa-Id"),
    usuario_id: Optional[int] = Header(None, alias="X-Usuario-Id")
):
    """Download freight records in the format of a mapping configuration."""
    try:
        export = get_export_service().export_freights(request, empresa_id, usuario_id)
        return download(export.content, export.filename, export.media_type)
    except Exception as e:
        return handle_error(e)


# ===================
# OPERATION LOGS
# ===================

@router.get("/logs", response_model=list[OperationLogResponse])
async def list_operation_logs(
    empresa_id: int = Header(..., alias="X-Empresa-Id"),
    limit: int = 100
):
    """List import, export and sync logs, most recent first."""
    try:
        return get_operation_log_service().list_for_tenant(empresa_id, limit=limit)
    except Exception as e:
        return handle_error(e)


@router.get("/logs/{log_id}", response_model=OperationLogResponse)
async def get_operation_log(
    log_id: int,
    empresa_id: int = Header(..., alias="X-Empresa-Id")
):
    """Get one operation log."""
    try:
        return get_operation_log_service().get(log_id, empresa_id)
    except Exception as e:
        return handle_error(e)
