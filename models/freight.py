"""
Freight (flete) schemas.

CanonicalRecord is the shape produced by mapping one file row; it is
partial until validated. FreightRecord is a row of the `fletes` table.
"""

from pydantic import Field
from typing import Optional
from enum import Enum
from datetime import datetime
from decimal import Decimal

from models.base import AliasedSchema, TimestampMixin


class FreightStatus(str, Enum):
    """Freight lifecycle values (owned by the surrounding application)."""
    PLANEADO = "PLANEADO"
    EN_CURSO = "EN_CURSO"
    COMPLETADO = "COMPLETADO"
    CERRADO = "CERRADO"
    CANCELADO = "CANCELADO"


# Fields overwritten when an import or sync hits an existing folio
MUTABLE_FIELDS = (
    "origin",
    "destination",
    "client_price",
    "actual_km",
    "start_date",
    "end_date",
    "notes",
    "customer_id",
)

# Python field name -> `fletes` column
COLUMN_NAMES = {
    "folio": "folio",
    "customer_id": "cliente_id",
    "quote_id": "cotizacion_id",
    "origin": "origen",
    "destination": "destino",
    "client_price": "precio_cliente",
    "actual_km": "km_reales",
    "start_date": "fecha_inicio",
    "end_date": "fecha_fin",
    "status": "estado",
    "notes": "notas",
}


class CanonicalRecord(AliasedSchema):
    """
    Freight data mapped from one external row.

    Every field is optional; the validator decides what is acceptable.
    """

    folio: Optional[str] = Field(None, alias="folio")
    customer_id: Optional[int] = Field(None, alias="clienteId")
    customer_name: Optional[str] = Field(None, alias="clienteNombre")
    quote_id: Optional[int] = Field(None, alias="cotizacionId")
    origin: Optional[str] = Field(None, alias="origen")
    destination: Optional[str] = Field(None, alias="destino")
    client_price: Optional[Decimal] = Field(None, alias="precioCliente")
    actual_km: Optional[Decimal] = Field(None, alias="kmReales")
    start_date: Optional[datetime] = Field(None, alias="fechaInicio")
    end_date: Optional[datetime] = Field(None, alias="fechaFin")
    status: Optional[str] = Field(None, alias="estado")
    notes: Optional[str] = Field(None, alias="notas")

    # Set when a no-create resolver could not match the customer name
    unresolved_customer: bool = Field(default=False, alias="clienteSinResolver")

    def to_row(self, fields: Optional[tuple[str, ...]] = None, skip_none: bool = False) -> dict:
        """
        Convert to a `fletes` row dict.

        Args:
            fields: Restrict to these field names (default: all columns)
            skip_none: Leave out fields whose value is None
        """
        row = {}
        for name in fields or tuple(COLUMN_NAMES):
            value = getattr(self, name)
            if value is None and skip_none:
                continue
            row[COLUMN_NAMES[name]] = _to_db_value(value)
        return row


class FreightRecord(AliasedSchema, TimestampMixin):
    """Freight row as stored, with the customer name joined in."""

    id: int
    tenant_id: int = Field(..., alias="empresaId")
    folio: Optional[str] = Field(None, alias="folio")
    customer_id: Optional[int] = Field(None, alias="clienteId")
    customer_name: Optional[str] = Field(None, alias="clienteNombre")
    quote_id: Optional[int] = Field(None, alias="cotizacionId")
    origin: Optional[str] = Field(None, alias="origen")
    destination: Optional[str] = Field(None, alias="destino")
    client_price: Optional[Decimal] = Field(None, alias="precioCliente")
    actual_km: Optional[Decimal] = Field(None, alias="kmReales")
    start_date: Optional[datetime] = Field(None, alias="fechaInicio")
    end_date: Optional[datetime] = Field(None, alias="fechaFin")
    status: Optional[str] = Field(None, alias="estado")
    notes: Optional[str] = Field(None, alias="notas")


def _to_db_value(value):
    """Make a value JSON-serializable for the Supabase client."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value
