"""
Configuration for certscope.
"""

from certscope.config.settings import (
    CollectorJob,
    InventoryConfiguration,
    load_config_from_env,
)

__all__ = [
    "CollectorJob",
    "InventoryConfiguration",
    "load_config_from_env",
]
