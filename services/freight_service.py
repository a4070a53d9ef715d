"""
Freight (flete) store access for the integration engine.

Freight records are owned by the surrounding application; this service
only reads them, creates them from imported rows and overwrites the
mutable fields. Folios are unique per tenant.
"""

from typing import Any, Optional
from decimal import Decimal
from datetime import date, datetime, timezone
import structlog

from config import get_supabase_client
from models.freight import CanonicalRecord, FreightRecord, FreightStatus
from exceptions import DatabaseError, FreightNotFoundError

logger = structlog.get_logger(__name__)

FOLIO_PREFIX = "F-"


class FreightService:
    """
    Freight business logic.

    Handles lookups by folio, filtered listing, creation and field updates.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "fletes"

    # ===================
    # READ OPERATIONS
    # ===================

    def get_all(
        self,
        tenant_id: int,
        status: Optional[FreightStatus] = None,
        customer_id: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        freight_ids: Optional[list[int]] = None
    ) -> list[FreightRecord]:
        """
        Get all freight records of a tenant with optional filters.

        Args:
            tenant_id: Owning company
            status: Filter by estado
            customer_id: Filter by customer
            date_from: fecha_inicio on or after this day
            date_to: fecha_inicio on or before this day
            freight_ids: Restrict to these ids

        Returns:
            Records ordered by id
        """
        logger.info(
            "getting_freights",
            tenant_id=tenant_id,
            status=status,
            customer_id=customer_id,
            ids=len(freight_ids) if freight_ids else None
        )

        try:
            query = (
                self.db.table(self.table)
                .select("*, clientes(nombre)")
                .eq("empresa_id", tenant_id)
            )

            if status:
                query = query.eq("estado", status.value)
            if customer_id:
                query = query.eq("cliente_id", customer_id)
            if date_from:
                query = query.gte("fecha_inicio", date_from.isoformat())
            if date_to:
                query = query.lte("fecha_inicio", f"{date_to.isoformat()}T23:59:59")
            if freight_ids:
                query = query.in_("id", freight_ids)

            result = query.order("id").execute()

            freights = [self._row_to_record(row) for row in result.data]

            logger.info("freights_retrieved", count=len(freights))

            return freights

        except Exception as e:
            logger.error("get_freights_failed", tenant_id=tenant_id, error=str(e))
            raise DatabaseError("select", str(e))

    def get_by_folio(self, folio: str, tenant_id: int) -> Optional[FreightRecord]:
        """
        Get a freight record by folio within a tenant.

        Returns:
            FreightRecord or None if not found
        """
        logger.debug("getting_freight_by_folio", folio=folio, tenant_id=tenant_id)

        try:
            result = (
                self.db.table(self.table)
                .select("*, clientes(nombre)")
                .eq("empresa_id", tenant_id)
                .eq("folio", folio)
                .limit(1)
                .execute()
            )

            if not result.data:
                return None

            return self._row_to_record(result.data[0])

        except Exception as e:
            logger.error("get_freight_by_folio_failed", folio=folio, error=str(e))
            raise DatabaseError("select", str(e))

    def index_by_folio(self, tenant_id: int) -> dict[str, FreightRecord]:
        """Load every record of a tenant keyed by folio. Records without folio are skipped."""
        return {
            freight.folio: freight
            for freight in self.get_all(tenant_id)
            if freight.folio
        }

    def get_expenses(self, freight_ids: list[int]) -> dict[int, list[dict]]:
        """
        Load expenses (gastos) for several freights in one query.

        Returns:
            freight id -> expense rows ordered by date
        """
        if not freight_ids:
            return {}

        try:
            result = (
                self.db.table("gastos")
                .select("id, flete_id, tipo_gasto, monto, descripcion, fecha")
                .in_("flete_id", freight_ids)
                .order("fecha")
                .execute()
            )

            expenses: dict[int, list[dict]] = {}
            for row in result.data:
                expenses.setdefault(row["flete_id"], []).append(row)

            logger.debug("expenses_loaded", freights=len(expenses), rows=len(result.data))

            return expenses

        except Exception as e:
            logger.error("get_expenses_failed", error=str(e))
            raise DatabaseError("select", str(e))

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, record: CanonicalRecord, tenant_id: int) -> FreightRecord:
        """
        Create a freight record from a validated canonical record.

        The folio is taken from the record; when absent the store assigns
        the next one in the F-00001 sequence.

        Raises:
            DatabaseError: If insert fails
        """
        folio = record.folio or self.next_folio(tenant_id)

        logger.info("creating_freight", folio=folio, tenant_id=tenant_id)

        row = record.to_row()
        row["folio"] = folio
        row["empresa_id"] = tenant_id
        row["estado"] = row.get("estado") or FreightStatus.PLANEADO.value

        try:
            result = self.db.table(self.table).insert(row).execute()

            if not result.data:
                raise DatabaseError("insert", "No data returned from insert")

            created = self._row_to_record(result.data[0])

            logger.info("freight_created", freight_id=created.id, folio=folio)

            return created

        except DatabaseError:
            raise
        except Exception as e:
            logger.error("create_freight_failed", folio=folio, error=str(e))
            raise DatabaseError("insert", str(e))

    def update_fields(self, freight_id: int, tenant_id: int, values: dict[str, Any]) -> None:
        """
        Overwrite columns of one freight record.

        Args:
            freight_id: Record id
            tenant_id: Owning company
            values: Column -> new value, already converted for the store

        Raises:
            FreightNotFoundError: If no row was updated
            DatabaseError: If update fails
        """
        if not values:
            return

        logger.info("updating_freight", freight_id=freight_id, fields=sorted(values))

        payload = dict(values)
        payload["updated_at"] = datetime.now(timezone.utc).isoformat()

        try:
            result = (
                self.db.table(self.table)
                .update(payload)
                .eq("id", freight_id)
                .eq("empresa_id", tenant_id)
                .execute()
            )

            if not result.data:
                raise FreightNotFoundError(str(freight_id))

            logger.info("freight_updated", freight_id=freight_id)

        except FreightNotFoundError:
            raise
        except Exception as e:
            logger.error("update_freight_failed", freight_id=freight_id, error=str(e))
            raise DatabaseError("update", str(e))

    # ===================
    # HELPER METHODS
    # ===================

    def count(self, tenant_id: int) -> int:
        """Count freight records of a tenant."""
        try:
            result = (
                self.db.table(self.table)
                .select("id", count="exact")
                .eq("empresa_id", tenant_id)
                .execute()
            )
            return result.count or 0

        except Exception as e:
            logger.error("count_freights_failed", tenant_id=tenant_id, error=str(e))
            raise DatabaseError("select", str(e))

    def next_folio(self, tenant_id: int) -> str:
        """
        Next store-assigned folio, e.g. F-00042.

        Starts at count + 1 and skips numbers already taken by folios that
        came from imported files.
        """
        number = self.count(tenant_id) + 1
        while self.get_by_folio(_format_folio(number), tenant_id) is not None:
            number += 1
        return _format_folio(number)

    def _row_to_record(self, row: dict) -> FreightRecord:
        """Convert database row to FreightRecord."""
        customer = row.get("clientes") or {}
        return FreightRecord(
            id=row["id"],
            tenant_id=row["empresa_id"],
            folio=row.get("folio"),
            customer_id=row.get("cliente_id"),
            customer_name=customer.get("nombre") if isinstance(customer, dict) else None,
            quote_id=row.get("cotizacion_id"),
            origin=row.get("origen"),
            destination=row.get("destino"),
            client_price=Decimal(str(row["precio_cliente"])) if row.get("precio_cliente") is not None else None,
            actual_km=Decimal(str(row["km_reales"])) if row.get("km_reales") is not None else None,
            start_date=row.get("fecha_inicio"),
            end_date=row.get("fecha_fin"),
            status=row.get("estado"),
            notes=row.get("notas"),
            created_at=row["created_at"],
            updated_at=row.get("updated_at"),
        )


def _format_folio(number: int) -> str:
    return f"{FOLIO_PREFIX}{number:05d}"


# Singleton instance
_freight_service: Optional[FreightService] = None


def get_freight_service() -> FreightService:
    """Get or create FreightService instance."""
    global _freight_service
    if _freight_service is None:
        _freight_service = FreightService()
    return _freight_service
