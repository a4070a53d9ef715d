"""
Validation of mapped freight records before they are persisted.

Problems are returned as line-scoped ValidationIssues, never raised, so one
bad row does not stop an import.
"""

from typing import Optional
import structlog

from config import get_supabase_client
from exceptions import DatabaseError
from models.freight import CanonicalRecord
from models.integration import ValidationIssue
from models.mapping import CanonicalField
from services.customer_service import CustomerService

logger = structlog.get_logger(__name__)


class ValidatorService:
    """
    Checks a CanonicalRecord against business rules.

    Rules:
        - origin and destination are required
        - price is required and must be positive
        - customer must be present and belong to the tenant
        - quote, when given, must belong to the tenant
        - end date cannot precede start date
        - km cannot be negative
    """

    def __init__(self, customers: Optional[CustomerService] = None):
        self.db = get_supabase_client()
        self.customers = customers or CustomerService()

    def validate(
        self,
        record: CanonicalRecord,
        line: int,
        tenant_id: int
    ) -> list[ValidationIssue]:
        """
        Validate one mapped record.

        Args:
            record: Mapped record
            line: 1-based file line (header is line 1)
            tenant_id: Owning company

        Returns:
            Issues found, empty if the record is valid

        Raises:
            DatabaseError: If a reference lookup fails
        """
        issues: list[ValidationIssue] = []

        def issue(field: CanonicalField, message: str):
            issues.append(ValidationIssue(line=line, field=field.value, error=message))

        if not record.origin:
            issue(CanonicalField.ORIGIN, "Origin is required")

        if not record.destination:
            issue(CanonicalField.DESTINATION, "Destination is required")

        if record.client_price is None:
            issue(CanonicalField.CLIENT_PRICE, "Price is required")
        elif record.client_price <= 0:
            issue(CanonicalField.CLIENT_PRICE, "Price must be greater than zero")

        if record.customer_id is None:
            if record.unresolved_customer:
                issue(CanonicalField.CUSTOMER_NAME, f"Customer '{record.customer_name}' not found")
            else:
                issue(CanonicalField.CUSTOMER_NAME, "Customer is required")
        elif not self.customers.exists(record.customer_id, tenant_id):
            issue(CanonicalField.CUSTOMER_NAME, f"Customer {record.customer_id} does not exist")

        if record.quote_id is not None and not self._quote_exists(record.quote_id, tenant_id):
            issue(CanonicalField.QUOTE_ID, f"Quote {record.quote_id} does not exist")

        if record.start_date and record.end_date and record.end_date < record.start_date:
            issue(CanonicalField.END_DATE, "End date cannot be earlier than start date")

        if record.actual_km is not None and record.actual_km < 0:
            issue(CanonicalField.ACTUAL_KM, "Kilometers cannot be negative")

        if issues:
            logger.debug("record_invalid", line=line, issues=len(issues))

        return issues

    def _quote_exists(self, quote_id: int, tenant_id: int) -> bool:
        try:
            result = (
                self.db.table("cotizaciones")
                .select("id")
                .eq("empresa_id", tenant_id)
                .eq("id", quote_id)
                .limit(1)
                .execute()
            )
            return bool(result.data)

        except Exception as e:
            logger.error("quote_lookup_failed", quote_id=quote_id, error=str(e))
            raise DatabaseError("select", str(e))


# Singleton instance
_validator_service: Optional[ValidatorService] = None


def get_validator_service() -> ValidatorService:
    """Get or create ValidatorService instance."""
    global _validator_service
    if _validator_service is None:
        _validator_service = ValidatorService()
    return _validator_service
