"""
Mapping configuration schemas.

A mapping configuration translates canonical freight fields to the column
(or XML tag) names used by one external accounting system.
"""

from pydantic import Field, field_validator
from typing import Optional
from enum import Enum

from models.base import BaseSchema, AliasedSchema, TimestampMixin


class FileFormat(str, Enum):
    """Supported tabular file formats."""
    EXCEL = "EXCEL"
    CSV = "CSV"
    XML = "XML"


# File extension and MIME type per format (used by exports)
FILE_EXTENSIONS = {
    FileFormat.EXCEL: "xlsx",
    FileFormat.CSV: "csv",
    FileFormat.XML: "xml",
}

MEDIA_TYPES = {
    FileFormat.EXCEL: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    FileFormat.CSV: "text/csv",
    FileFormat.XML: "application/xml",
}


class SourceSystem(str, Enum):
    """External accounting systems that produce or consume files."""
    ASPEL = "ASPEL"
    MICROSIP = "MICROSIP"
    OTRO = "OTRO"


class CanonicalField(str, Enum):
    """
    Closed set of freight fields a mapping can reference.

    Values are the keys stored in the mapping JSON.
    """
    FOLIO = "folio"
    CUSTOMER_NAME = "clienteNombre"
    QUOTE_ID = "cotizacionId"
    ORIGIN = "origen"
    DESTINATION = "destino"
    CLIENT_PRICE = "precioCliente"
    ACTUAL_KM = "kmReales"
    START_DATE = "fechaInicio"
    END_DATE = "fechaFin"
    STATUS = "estado"
    NOTES = "notas"


def _clean_mappings(v: Optional[dict]) -> Optional[dict]:
    """Drop entries without a column name, keep configured order."""
    if v is None:
        return v
    cleaned = {}
    for field, column in v.items():
        if column is None:
            continue
        column = str(column).strip()
        if column:
            cleaned[field] = column
    return cleaned


class MappingConfigCreate(AliasedSchema):
    """Create a mapping configuration."""

    name: str = Field(..., alias="nombre", min_length=1, max_length=200)
    description: Optional[str] = Field(None, alias="descripcion", max_length=1000)
    system: SourceSystem = Field(..., alias="sistema")
    file_format: FileFormat = Field(..., alias="tipoArchivo")
    active: bool = Field(default=True, alias="activa")
    mappings: dict[CanonicalField, str] = Field(
        ...,
        alias="mapeos",
        description="Canonical field -> external column name",
        examples=[{
            "folio": "FOLIO",
            "clienteNombre": "NOMBRE_CLIENTE",
            "origen": "ORIGEN",
            "destino": "DESTINO",
            "precioCliente": "PRECIO",
        }],
    )

    @field_validator("mappings")
    @classmethod
    def clean_mappings(cls, v: dict) -> dict:
        v = _clean_mappings(v)
        if not v:
            raise ValueError("At least one field must be mapped")
        return v


class MappingConfigUpdate(AliasedSchema):
    """
    Update a mapping configuration.

    All fields optional - only provided fields are updated.
    """

    name: Optional[str] = Field(None, alias="nombre", min_length=1, max_length=200)
    description: Optional[str] = Field(None, alias="descripcion", max_length=1000)
    system: Optional[SourceSystem] = Field(None, alias="sistema")
    file_format: Optional[FileFormat] = Field(None, alias="tipoArchivo")
    active: Optional[bool] = Field(None, alias="activa")
    mappings: Optional[dict[CanonicalField, str]] = Field(None, alias="mapeos")

    @field_validator("mappings")
    @classmethod
    def clean_mappings(cls, v: Optional[dict]) -> Optional[dict]:
        v = _clean_mappings(v)
        if v is not None and not v:
            raise ValueError("At least one field must be mapped")
        return v


class MappingConfigResponse(AliasedSchema, TimestampMixin):
    """Mapping configuration as stored."""

    id: int
    tenant_id: int = Field(..., alias="empresaId")
    name: str = Field(..., alias="nombre")
    description: Optional[str] = Field(None, alias="descripcion")
    system: SourceSystem = Field(..., alias="sistema")
    file_format: FileFormat = Field(..., alias="tipoArchivo")
    active: bool = Field(default=True, alias="activa")
    mappings: dict[CanonicalField, str] = Field(default_factory=dict, alias="mapeos")

    def to_definition(self) -> "MappingDefinition":
        """Snapshot used for the duration of one operation."""
        return MappingDefinition(
            id=self.id,
            tenant_id=self.tenant_id,
            system=self.system,
            file_format=self.file_format,
            active=self.active,
            mappings=dict(self.mappings),
        )


class MappingDefinition(BaseSchema):
    """
    Immutable mapping snapshot passed through one import, export,
    reconciliation or sync run.
    """
    model_config = BaseSchema.model_config | {"frozen": True, "validate_assignment": False}

    id: Optional[int] = None
    tenant_id: Optional[int] = None
    system: SourceSystem = SourceSystem.OTRO
    file_format: FileFormat
    active: bool = True
    mappings: dict[CanonicalField, str]

    def column_for(self, field: CanonicalField) -> Optional[str]:
        """External column configured for a field, or None."""
        return self.mappings.get(field)

    def configured_fields(self) -> list[CanonicalField]:
        """Fields with a column, in configured order."""
        return list(self.mappings.keys())

    def as_api_mappings(self) -> dict[str, str]:
        """Mapping JSON as clients see it."""
        return {field.value: column for field, column in self.mappings.items()}
