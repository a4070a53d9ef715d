"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    DatabaseError,

    # Mapping configurations
    MappingConfigNotFoundError,
    MappingConfigInactiveError,

    # Files
    UnsupportedFormatError,
    FileParseError,
    FileTooLargeError,

    # Freight records
    FreightNotFoundError,
    CustomerResolutionError,

    # Operation logs
    OperationLogNotFoundError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "DatabaseError",

    # Mapping configurations
    "MappingConfigNotFoundError",
    "MappingConfigInactiveError",

    # Files
    "UnsupportedFormatError",
    "FileParseError",
    "FileTooLargeError",

    # Freight records
    "FreightNotFoundError",
    "CustomerResolutionError",

    # Operation logs
    "OperationLogNotFoundError",
]
