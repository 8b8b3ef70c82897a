"""
Observability for certscope.

Provides logging configuration and collector lifecycle events.
"""

from certscope.observability.logging import (
    HumanReadableFormatter,
    InventoryLogger,
    StructuredFormatter,
    configure_logging,
    get_logger,
)

__all__ = [
    "HumanReadableFormatter",
    "InventoryLogger",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
]
