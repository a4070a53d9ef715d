"""
Audit trail of imports, exports and syncs.

Entries are insert-only: one per top-level operation.
"""
import structlog
from typing import Optional

from config import get_supabase_client
from exceptions import DatabaseError, OperationLogNotFoundError
from models.operation_log import OperationLogCreate, OperationLogResponse

logger = structlog.get_logger(__name__)

# Keep stored error lists bounded
MAX_STORED_ERRORS = 1000


class OperationLogService:
    def __init__(self):
        self.db = get_supabase_client()
        self.table = "integracion_logs"

    def record(self, log: OperationLogCreate) -> int:
        """Persist one log entry. Returns its id."""
        row = {
            "empresa_id": log.tenant_id,
            "usuario_id": log.user_id,
            "configuracion_mapeo_id": log.mapping_config_id,
            "tipo_operacion": log.kind.value,
            "nombre_archivo": log.file_name,
            "formato": log.file_format.value,
            "total_registros": log.total_rows,
            "registros_exitosos": log.succeeded,
            "registros_actualizados": log.updated,
            "registros_errores": log.failed,
            "detalles_errores": log.error_details[:MAX_STORED_ERRORS],
        }

        try:
            result = self.db.table(self.table).insert(row).execute()
            log_id = result.data[0]["id"]
        except Exception as e:
            logger.error("operation_log_insert_failed", kind=log.kind.value, error=str(e))
            raise DatabaseError("insert", str(e))

        logger.info(
            "operation_logged",
            log_id=log_id,
            kind=log.kind.value,
            file_name=log.file_name,
            total=log.total_rows,
            failed=log.failed,
        )
        return log_id

    def list_for_tenant(self, tenant_id: int, limit: int = 100) -> list[OperationLogResponse]:
        """Most recent entries first."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("empresa_id", tenant_id)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            logger.error("operation_log_list_failed", tenant_id=tenant_id, error=str(e))
            raise DatabaseError("select", str(e))

        return [self._row_to_response(row) for row in result.data]

    def get(self, log_id: int, tenant_id: int) -> OperationLogResponse:
        """Raises OperationLogNotFoundError when absent or owned by another tenant."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", log_id)
                .eq("empresa_id", tenant_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("operation_log_get_failed", log_id=log_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise OperationLogNotFoundError(log_id)
        return self._row_to_response(result.data[0])

    def _row_to_response(self, row: dict) -> OperationLogResponse:
        return OperationLogResponse(
            id=row["id"],
            tenant_id=row["empresa_id"],
            user_id=row.get("usuario_id"),
            mapping_config_id=row.get("configuracion_mapeo_id"),
            kind=row["tipo_operacion"],
            file_name=row["nombre_archivo"],
            file_format=row["formato"],
            total_rows=row.get("total_registros") or 0,
            succeeded=row.get("registros_exitosos") or 0,
            updated=row.get("registros_actualizados") or 0,
            failed=row.get("registros_errores") or 0,
            error_details=row.get("detalles_errores") or [],
            created_at=row["created_at"],
        )


_service: Optional[OperationLogService] = None


def get_operation_log_service() -> OperationLogService:
    global _service
    if _service is None:
        _service = OperationLogService()
    return _service
