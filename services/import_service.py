"""
Import / upsert engine.

parse -> map -> validate -> upsert by folio, one row at a time in file
order. A bad row is recorded and skipped; it never stops the batch.
"""

from typing import Optional
import structlog

from config import settings
from exceptions import AppError
from models.freight import CanonicalRecord, MUTABLE_FIELDS
from models.integration import ImportResult, PreviewResult, PreviewRow, ValidationIssue
from models.mapping import MappingDefinition
from models.operation_log import OperationKind, OperationLogCreate
from parsers import ParsedTable, parse_file
from services.customer_service import CustomerService, ReadOnlyCustomerResolver
from services.freight_service import FreightService
from services.mapper_service import MapperService
from services.mapping_config_service import MappingConfigService
from services.operation_log_service import OperationLogService
from services.validator_service import ValidatorService

logger = structlog.get_logger(__name__)

# The header occupies line 1
FIRST_DATA_LINE = 2
GENERAL_FIELD = "general"


class ImportService:
    """
    Imports freight records from external files.

    Every public operation resolves its mapping snapshot and parses the
    file exactly once before touching any row.
    """

    def __init__(self):
        self.mapping_configs = MappingConfigService()
        self.customers = CustomerService()
        self.freights = FreightService()
        self.validator = ValidatorService(self.customers)
        self.operation_logs = OperationLogService()

    def load(
        self,
        content: bytes,
        config_id: int,
        tenant_id: int
    ) -> tuple[MappingDefinition, ParsedTable]:
        """
        Resolve the active mapping and parse the file with it.

        Raises:
            MappingConfigNotFoundError, MappingConfigInactiveError,
            FileTooLargeError, UnsupportedFormatError, FileParseError
        """
        definition = self.mapping_configs.get_active_definition(config_id, tenant_id)
        table = parse_file(content, definition.file_format, settings.max_upload_bytes)
        return definition, table

    # ===================
    # PREVIEW
    # ===================

    def preview(self, content: bytes, config_id: int, tenant_id: int) -> PreviewResult:
        """
        Map and validate the first rows without writing anything.

        Unknown customers are flagged instead of created.
        """
        definition, table = self.load(content, config_id, tenant_id)
        mapper = MapperService(ReadOnlyCustomerResolver(self.customers))

        rows = []
        for index, row in enumerate(table.rows[:settings.preview_rows]):
            line = index + FIRST_DATA_LINE
            record = mapper.map_row(row, definition, tenant_id)
            rows.append(PreviewRow(
                line=line,
                raw=row,
                mapped=record.model_dump(mode="json", by_alias=True, exclude_none=True),
                errors=self.validator.validate(record, line, tenant_id),
            ))

        logger.info(
            "import_preview_built",
            config_id=config_id,
            total_rows=table.row_count,
            previewed=len(rows)
        )

        return PreviewResult(
            total_rows=table.row_count,
            headers=table.headers,
            current_mapping=definition.as_api_mappings(),
            preview=rows,
        )

    # ===================
    # IMPORT
    # ===================

    def import_file(
        self,
        content: bytes,
        file_name: str,
        config_id: int,
        tenant_id: int,
        user_id: Optional[int] = None
    ) -> ImportResult:
        """
        Import every row of a file.

        Existing folios are updated, new ones created. Invalid rows and
        rows whose persistence fails are counted in `failed` with their
        line-scoped errors.

        Returns:
            ImportResult with the id of the operation log written
        """
        definition, table = self.load(content, config_id, tenant_id)
        mapper = MapperService(self.customers)

        logger.info(
            "import_started",
            config_id=config_id,
            file_name=file_name,
            rows=table.row_count
        )

        succeeded = 0
        updated = 0
        failed = 0
        errors: list[ValidationIssue] = []

        for index, row in enumerate(table.rows):
            line = index + FIRST_DATA_LINE

            try:
                record = mapper.map_row(row, definition, tenant_id)
                issues = self.validator.validate(record, line, tenant_id)

                if issues:
                    errors.extend(issues)
                    failed += 1
                    continue

                if self._upsert(record, tenant_id):
                    updated += 1
                else:
                    succeeded += 1

            except Exception as e:
                message = e.message if isinstance(e, AppError) else str(e)
                logger.warning("import_row_failed", line=line, error=message)
                errors.append(ValidationIssue(line=line, field=GENERAL_FIELD, error=message))
                failed += 1

        log_id = self._record_log(
            OperationLogCreate(
                tenant_id=tenant_id,
                user_id=user_id,
                mapping_config_id=config_id,
                kind=OperationKind.IMPORTACION,
                file_name=file_name,
                file_format=definition.file_format,
                total_rows=table.row_count,
                succeeded=succeeded,
                updated=updated,
                failed=failed,
                error_details=[issue.to_api() for issue in errors],
            )
        )

        logger.info(
            "import_completed",
            config_id=config_id,
            total=table.row_count,
            succeeded=succeeded,
            updated=updated,
            failed=failed
        )

        return ImportResult(
            log_id=log_id,
            total_rows=table.row_count,
            succeeded=succeeded,
            updated=updated,
            failed=failed,
            error_details=errors,
        )

    def _upsert(self, record: CanonicalRecord, tenant_id: int) -> bool:
        """Create or update by folio. Returns True when an existing record was updated."""
        existing = self.freights.get_by_folio(record.folio, tenant_id) if record.folio else None

        if existing is None:
            self.freights.create(record, tenant_id)
            return False

        self.freights.update_fields(
            existing.id,
            tenant_id,
            record.to_row(MUTABLE_FIELDS, skip_none=True)
        )
        return True

    def _record_log(self, log: OperationLogCreate) -> Optional[int]:
        """Write the operation log. Rows are already persisted, so a failure here only loses the audit entry."""
        try:
            return self.operation_logs.record(log)
        except AppError as e:
            logger.error("import_log_not_recorded", file_name=log.file_name, error=e.message)
            return None


# Singleton instance
_import_service: Optional[ImportService] = None


def get_import_service() -> ImportService:
    """Get or create ImportService instance."""
    global _import_service
    if _import_service is None:
        _import_service = ImportService()
    return _import_service
