"""
AUTHLIFECYCLE - Logging

Module de logging structuré avec:
- Format JSON structuré
- Champs obligatoires: timestamp, level, correlation_id, component, message
- Timestamp ISO 8601 UTC
- Masquage des tokens et identifiants
"""

from .interfaces import (
    # Enums
    LogLevel,
    # Dataclasses
    LogEntry,
    LogConfig,
    # Interfaces
    IStructuredLogger,
    ISensitiveMasker,
)
from .sensitive_masker import (
    SensitiveMasker,
)
from .structured_logger import (
    StructuredLogger,
    ContextualLogger,
    # Exceptions
    MissingRequiredFieldError,
)

__all__ = [
    # Enums
    "LogLevel",
    # Dataclasses
    "LogEntry",
    "LogConfig",
    # Interfaces
    "IStructuredLogger",
    "ISensitiveMasker",
    # Implementations
    "SensitiveMasker",
    "StructuredLogger",
    "ContextualLogger",
    # Exceptions
    "MissingRequiredFieldError",
]
