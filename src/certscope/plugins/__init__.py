"""
Collector registry and inventory runner for certscope.
"""

from certscope.plugins.base import (
    CollectorInfo,
    InvalidPluginError,
    PluginError,
    PluginNotFoundError,
)
from certscope.plugins.manager import (
    CollectorReport,
    InventoryManager,
    InventoryReport,
)
from certscope.plugins.registry import (
    CollectorRegistry,
    get_registry,
    register_builtin_collectors,
)

__all__ = [
    # Errors
    "PluginError",
    "PluginNotFoundError",
    "InvalidPluginError",
    # Registry
    "CollectorInfo",
    "CollectorRegistry",
    "get_registry",
    "register_builtin_collectors",
    # Manager
    "CollectorReport",
    "InventoryManager",
    "InventoryReport",
]
