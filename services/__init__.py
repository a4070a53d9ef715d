"""
Business logic services.

Each service handles one domain area.
"""

from services.customer_service import CustomerService, ReadOnlyCustomerResolver, get_customer_service
from services.freight_service import FreightService, get_freight_service
from services.mapping_config_service import MappingConfigService, get_mapping_config_service
from services.operation_log_service import OperationLogService, get_operation_log_service
from services.mapper_service import MapperService
from services.validator_service import ValidatorService, get_validator_service
from services.import_service import ImportService, get_import_service
from services.reconciliation_service import ReconciliationService, get_reconciliation_service
from services.export_service import ExportService, get_export_service

__all__ = [
    "CustomerService",
    "ReadOnlyCustomerResolver",
    "get_customer_service",
    "FreightService",
    "get_freight_service",
    "MappingConfigService",
    "get_mapping_config_service",
    "OperationLogService",
    "get_operation_log_service",
    "MapperService",
    "ValidatorService",
    "get_validator_service",
    "ImportService",
    "get_import_service",
    "ReconciliationService",
    "get_reconciliation_service",
    "ExportService",
    "get_export_service",
]
