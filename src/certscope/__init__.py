"""
certscope: TLS certificate inventory collectors.

Collects certificates from cloud services, clusters, configuration files,
keystores, host trust stores and live endpoints, and normalizes them into
a single CertificateRecord shape.

Quick Start:
    >>> import asyncio
    >>> from certscope import InventoryManager
    >>> from certscope.config import CollectorJob
    >>>
    >>> jobs = [CollectorJob("cert-folder", options={"folders": "/etc/ssl/certs"})]
    >>> inventory = asyncio.run(InventoryManager().run(jobs))
    >>> print(inventory.summary())
"""

from __future__ import annotations

__version__ = "0.1.0"

from certscope.collectors import BaseCollector, CollectionResult
from certscope.models import CertificateRecord
from certscope.plugins import (
    CollectorRegistry,
    InventoryManager,
    InventoryReport,
    get_registry,
)

__all__ = [
    "__version__",
    "BaseCollector",
    "CertificateRecord",
    "CollectionResult",
    "CollectorRegistry",
    "InventoryManager",
    "InventoryReport",
    "get_registry",
]
