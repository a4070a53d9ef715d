"""
Customer lookups used while mapping imported rows.

Customer names in external files are resolved to `clientes` ids through a
CustomerResolver. CustomerService creates missing customers (a write);
ReadOnlyCustomerResolver never does and is used for import previews.
"""

from typing import Optional, Protocol
import structlog

from config import get_supabase_client
from exceptions import CustomerResolutionError, DatabaseError

logger = structlog.get_logger(__name__)

LIKE_SPECIALS = ("\\", "%", "_")


def contains_pattern(name: str) -> str:
    """ILIKE pattern matching `name` as a literal substring: "100%" -> "%100\\%%"."""
    for char in LIKE_SPECIALS:
        name = name.replace(char, "\\" + char)
    return f"%{name}%"


class CustomerResolver(Protocol):
    """Resolves a customer name to an id within a tenant."""

    def resolve(self, name: str, tenant_id: int) -> Optional[int]:
        ...


class CustomerService:
    """
    Customer queries against the `clientes` table.

    Implements CustomerResolver in create mode.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "clientes"

    def find_by_name(self, name: str, tenant_id: int) -> Optional[dict]:
        """
        Find a customer whose name contains `name`, ignoring case.

        Returns the lowest id on multiple matches, or None.
        """
        logger.debug("finding_customer_by_name", name=name, tenant_id=tenant_id)

        try:
            result = (
                self.db.table(self.table)
                .select("id, nombre")
                .eq("empresa_id", tenant_id)
                .ilike("nombre", contains_pattern(name))
                .order("id")
                .limit(1)
                .execute()
            )
            return result.data[0] if result.data else None

        except Exception as e:
            logger.error("find_customer_failed", name=name, error=str(e))
            raise DatabaseError("select", str(e))

    def exists(self, customer_id: int, tenant_id: int) -> bool:
        """Check a customer id belongs to the tenant."""
        try:
            result = (
                self.db.table(self.table)
                .select("id")
                .eq("empresa_id", tenant_id)
                .eq("id", customer_id)
                .limit(1)
                .execute()
            )
            return bool(result.data)

        except Exception as e:
            logger.error("customer_exists_check_failed", customer_id=customer_id, error=str(e))
            raise DatabaseError("select", str(e))

    def create_minimal(self, name: str, tenant_id: int) -> int:
        """Create an active customer with only a name. Returns its id."""
        try:
            result = (
                self.db.table(self.table)
                .insert({
                    "empresa_id": tenant_id,
                    "nombre": name,
                    "activo": True,
                })
                .execute()
            )
            customer_id = result.data[0]["id"]

            logger.info(
                "customer_created_from_import",
                customer_id=customer_id,
                name=name,
                tenant_id=tenant_id
            )

            return customer_id

        except Exception as e:
            logger.error("create_customer_failed", name=name, error=str(e))
            raise DatabaseError("insert", str(e))

    def resolve(self, name: str, tenant_id: int) -> Optional[int]:
        """
        Resolve a customer name, creating the customer when absent.

        Side effect: may insert into `clientes`.

        Raises:
            CustomerResolutionError: If the name is empty
        """
        if not name or not name.strip():
            raise CustomerResolutionError(name, "Customer name cannot be empty")

        existing = self.find_by_name(name, tenant_id)
        if existing:
            return existing["id"]

        return self.create_minimal(name, tenant_id)


class ReadOnlyCustomerResolver:
    """Resolves existing customers only. Never writes."""

    def __init__(self, customers: Optional[CustomerService] = None):
        self.customers = customers or CustomerService()

    def resolve(self, name: str, tenant_id: int) -> Optional[int]:
        if not name or not name.strip():
            return None
        existing = self.customers.find_by_name(name, tenant_id)
        return existing["id"] if existing else None


# Singleton instance
_customer_service: Optional[CustomerService] = None


def get_customer_service() -> CustomerService:
    """Get or create CustomerService instance."""
    global _customer_service
    if _customer_service is None:
        _customer_service = CustomerService()
    return _customer_service
