"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    AliasedSchema,
    TimestampMixin,
)
from models.mapping import (
    FileFormat,
    SourceSystem,
    CanonicalField,
    FILE_EXTENSIONS,
    MEDIA_TYPES,
    MappingConfigCreate,
    MappingConfigUpdate,
    MappingConfigResponse,
    MappingDefinition,
)
from models.freight import (
    FreightStatus,
    CanonicalRecord,
    FreightRecord,
    MUTABLE_FIELDS,
)
from models.operation_log import (
    OperationKind,
    OperationLogCreate,
    OperationLogResponse,
)
from models.integration import (
    ValidationIssue,
    ImportResult,
    PreviewRow,
    PreviewResult,
    ConflictKind,
    DiffEntry,
    ExpenseItem,
    ExpenseSummary,
    ReconciliationResult,
    SyncResult,
    ExportRequest,
    ExportFile,
)

__all__ = [
    # Base
    "BaseSchema",
    "AliasedSchema",
    "TimestampMixin",

    # Mapping
    "FileFormat",
    "SourceSystem",
    "CanonicalField",
    "FILE_EXTENSIONS",
    "MEDIA_TYPES",
    "MappingConfigCreate",
    "MappingConfigUpdate",
    "MappingConfigResponse",
    "MappingDefinition",

    # Freight
    "FreightStatus",
    "CanonicalRecord",
    "FreightRecord",
    "MUTABLE_FIELDS",

    # Operation log
    "OperationKind",
    "OperationLogCreate",
    "OperationLogResponse",

    # Integration results
    "ValidationIssue",
    "ImportResult",
    "PreviewRow",
    "PreviewResult",
    "ConflictKind",
    "DiffEntry",
    "ExpenseItem",
    "ExpenseSummary",
    "ReconciliationResult",
    "SyncResult",
    "ExportRequest",
    "ExportFile",
]
