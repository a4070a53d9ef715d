"""
Custom exception classes for the application.

Only conditions that abort a whole operation are raised. Row-scoped and
key-scoped problems are collected into result objects instead.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "MAPPING_CONFIG_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# MAPPING CONFIGURATION ERRORS
# ===================

class MappingConfigNotFoundError(NotFoundError):
    """Mapping configuration not found for this tenant."""

    def __init__(self, config_id: int):
        super().__init__(
            resource="Mapping configuration",
            identifier=str(config_id),
            code="MAPPING_CONFIG_NOT_FOUND"
        )


class MappingConfigInactiveError(ValidationError):
    """Mapping configuration exists but is disabled."""

    def __init__(self, config_id: int):
        super().__init__(
            code="MAPPING_CONFIG_INACTIVE",
            message="Mapping configuration is inactive",
            details={"id": config_id}
        )


# ===================
# FILE ERRORS
# ===================

class UnsupportedFormatError(ValidationError):
    """File format tag is not one of EXCEL, CSV, XML."""

    def __init__(self, file_format: str):
        super().__init__(
            code="UNSUPPORTED_FILE_FORMAT",
            message=f"Unsupported file format: {file_format}",
            details={"provided": file_format, "valid": ["EXCEL", "CSV", "XML"]}
        )


class FileParseError(ValidationError):
    """Payload could not be decoded at all."""

    def __init__(
        self,
        file_format: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="FILE_PARSE_ERROR",
            message=message,
            details={"format": file_format, **(details or {})}
        )


class FileTooLargeError(ValidationError):
    """Uploaded file exceeds the configured size limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            code="FILE_TOO_LARGE",
            message=f"File exceeds the {limit // (1024 * 1024)} MB limit",
            details={"size": size, "limit": limit}
        )


# ===================
# FREIGHT ERRORS
# ===================

class FreightNotFoundError(NotFoundError):
    """Freight record not found."""

    def __init__(self, identifier: str):
        super().__init__(
            resource="Freight",
            identifier=identifier,
            code="FREIGHT_NOT_FOUND"
        )


class CustomerResolutionError(ValidationError):
    """Customer name could not be resolved or created."""

    def __init__(self, name: Optional[str], reason: str):
        super().__init__(
            code="CUSTOMER_RESOLUTION_FAILED",
            message=reason,
            details={"customer_name": name}
        )


# ===================
# OPERATION LOG ERRORS
# ===================

class OperationLogNotFoundError(NotFoundError):
    """Operation log entry not found."""

    def __init__(self, log_id: int):
        super().__init__(
            resource="Operation log",
            identifier=str(log_id),
            code="OPERATION_LOG_NOT_FOUND"
        )
