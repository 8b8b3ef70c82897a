"""
Inventory manager for certscope.

Runs configured collectors concurrently through the registry and turns
each run into a report, so one failing source never hides the records of
the others.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from certscope.collectors.base import CollectorError
from certscope.config.settings import CollectorJob, InventoryConfiguration
from certscope.models import CertificateRecord
from certscope.observability.logging import get_logger
from certscope.plugins.base import PluginError
from certscope.plugins.registry import CollectorRegistry, get_registry

logger = get_logger("plugins.manager")

STATUS_OK = "ok"
STATUS_DEGRADED = "degraded"
STATUS_FAILED = "failed"


@dataclass
class CollectorReport:
    """
    Outcome of running one collector.

    Attributes:
        collector_name: Name of the collector that ran
        records: Certificate records produced
        skipped: (item, reason) pairs for skipped items
        duration_seconds: How long the run took
        error: Failure message if the source could not be read
    """

    collector_name: str
    records: list[CertificateRecord] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)
    duration_seconds: float = 0.0
    error: str | None = None

    @property
    def status(self) -> str:
        if self.error is not None:
            return STATUS_FAILED
        if self.skipped:
            return STATUS_DEGRADED
        return STATUS_OK

    @property
    def record_count(self) -> int:
        return len(self.records)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "collector_name": self.collector_name,
            "status": self.status,
            "record_count": self.record_count,
            "skipped": [{"item": item, "reason": reason} for item, reason in self.skipped],
            "duration_seconds": round(self.duration_seconds, 3),
            "error": self.error,
        }


@dataclass
class InventoryReport:
    """
    Combined result of an inventory run.

    Attributes:
        records: Records from every collector, in job order
        reports: One report per job
    """

    records: list[CertificateRecord] = field(default_factory=list)
    reports: list[CollectorReport] = field(default_factory=list)

    @property
    def failed(self) -> list[CollectorReport]:
        return [r for r in self.reports if r.status == STATUS_FAILED]

    def summary(self) -> dict[str, Any]:
        """Summarize the run by collector status."""
        return {
            "record_count": len(self.records),
            "collector_count": len(self.reports),
            "ok": sum(1 for r in self.reports if r.status == STATUS_OK),
            "degraded": sum(1 for r in self.reports if r.status == STATUS_DEGRADED),
            "failed": len(self.failed),
            "skipped_items": sum(len(r.skipped) for r in self.reports),
        }


class InventoryManager:
    """
    Runs collectors and aggregates their records.

    Collectors run concurrently; items inside one collector are processed
    in order by the collector itself.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the manager.

        Args:
            registry: Collector registry (default: global registry)
        """
        self._registry = registry or get_registry()

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    async def run_job(self, name: str, config: Mapping[str, Any]) -> CollectorReport:
        """
        Run one collector and report the outcome.

        Configuration, source and registry errors produce a failed report
        instead of propagating.

        Args:
            name: Registered collector name
            config: Collector configuration

        Returns:
            CollectorReport
        """
        start_time = time.monotonic()
        logger.collector_started(name)

        try:
            collector = self._registry.load(name)
            result = await collector.collect_detailed(config)
        except (CollectorError, PluginError) as e:
            duration = time.monotonic() - start_time
            logger.collector_failed(name, str(e))
            return CollectorReport(
                collector_name=name,
                duration_seconds=duration,
                error=str(e),
            )

        duration = time.monotonic() - start_time
        logger.collector_completed(
            name, result.record_count, result.skipped_count, duration
        )
        return CollectorReport(
            collector_name=name,
            records=list(result.records),
            skipped=[(o.item, o.reason) for o in result.skipped],
            duration_seconds=duration,
        )

    async def run(
        self,
        jobs: Sequence[CollectorJob] | InventoryConfiguration,
    ) -> InventoryReport:
        """
        Run every enabled job concurrently.

        Args:
            jobs: Collector jobs, or a configuration holding them

        Returns:
            InventoryReport with all records and per-job reports
        """
        if isinstance(jobs, InventoryConfiguration):
            configuration = jobs
        else:
            configuration = InventoryConfiguration(jobs=list(jobs))

        enabled = configuration.enabled_jobs()
        logger.info(
            f"Running {len(enabled)} collectors",
            collectors=[job.name for job in enabled],
        )

        reports = await asyncio.gather(*(
            self.run_job(job.name, configuration.job_config(job)) for job in enabled
        ))

        inventory = InventoryReport(reports=list(reports))
        for report in reports:
            inventory.records.extend(report.records)

        summary = inventory.summary()
        logger.info(
            f"Inventory complete: {summary['record_count']} certificates, "
            f"{summary['failed']} failed collectors",
            **summary,
        )
        return inventory
