"""
Tests for the inventory manager.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from certscope.collectors import BaseCollector, ItemOutcome, SourceError
from certscope.config import CollectorJob, InventoryConfiguration
from certscope.crypto import DecodeError
from certscope.models import build_certificate_record
from certscope.plugins import (
    CollectorRegistry,
    InventoryManager,
    InventoryReport,
)
from certscope.plugins.manager import STATUS_DEGRADED, STATUS_FAILED, STATUS_OK


class HealthyCollector(BaseCollector):
    name = "healthy"

    async def _gather(self, config: dict[str, Any]) -> list[ItemOutcome]:
        record = self.create_record({"domain": "ok.example.com"}, config)
        return [ItemOutcome.ok("ok.example.com", record)]


class PartialCollector(BaseCollector):
    name = "partial"

    async def _gather(self, config: dict[str, Any]) -> list[ItemOutcome]:
        record = build_certificate_record(self.name, {"domain": "partial.example.com"})
        return [
            ItemOutcome.ok("good.pem", record),
            ItemOutcome.skip("bad.pem", DecodeError("Not a valid certificate")),
        ]


class BrokenCollector(BaseCollector):
    name = "broken"

    async def _gather(self, config: dict[str, Any]) -> list[ItemOutcome]:
        raise SourceError(self.name, "Authentication failed")


class StrictCollector(BaseCollector):
    name = "strict"
    required_params = ("token",)

    async def _gather(self, config: dict[str, Any]) -> list[ItemOutcome]:
        return []


@pytest.fixture
def manager() -> InventoryManager:
    registry = CollectorRegistry()
    for factory in (HealthyCollector, PartialCollector, BrokenCollector, StrictCollector):
        registry.register(factory)
    return InventoryManager(registry)


class TestRunJob:
    """Tests for run_job()."""

    def test_ok(self, manager):
        report = asyncio.run(manager.run_job("healthy", {}))
        assert report.status == STATUS_OK
        assert report.record_count == 1
        assert report.error is None
        assert report.duration_seconds >= 0

    def test_degraded(self, manager):
        report = asyncio.run(manager.run_job("partial", {}))
        assert report.status == STATUS_DEGRADED
        assert report.skipped == [("bad.pem", "Not a valid certificate")]
        assert report.to_dict()["skipped"] == [
            {"item": "bad.pem", "reason": "Not a valid certificate"}
        ]

    def test_source_failure(self, manager):
        report = asyncio.run(manager.run_job("broken", {}))
        assert report.status == STATUS_FAILED
        assert report.error == "broken: Authentication failed"
        assert report.records == []

    def test_configuration_failure(self, manager):
        report = asyncio.run(manager.run_job("strict", {}))
        assert report.status == STATUS_FAILED
        assert "token" in report.error

    def test_unknown_collector(self, manager):
        report = asyncio.run(manager.run_job("nope", {}))
        assert report.status == STATUS_FAILED
        assert "not found" in report.error


class TestRun:
    """Tests for run()."""

    def test_failures_do_not_hide_other_records(self, manager):
        jobs = [
            CollectorJob("healthy"),
            CollectorJob("broken"),
            CollectorJob("partial"),
            CollectorJob("strict", enabled=False),
        ]

        inventory = asyncio.run(manager.run(jobs))

        assert isinstance(inventory, InventoryReport)
        assert [r.collector_name for r in inventory.reports] == ["healthy", "broken", "partial"]
        assert [r.domain for r in inventory.records] == [
            "ok.example.com",
            "partial.example.com",
        ]
        assert [r.collector_name for r in inventory.failed] == ["broken"]
        assert inventory.summary() == {
            "record_count": 2,
            "collector_count": 3,
            "ok": 1,
            "degraded": 1,
            "failed": 1,
            "skipped_items": 1,
        }

    def test_configuration_applies_environment(self, manager):
        configuration = InventoryConfiguration(
            environment="staging",
            group="platform",
            jobs=[CollectorJob("healthy")],
        )

        inventory = asyncio.run(manager.run(configuration))

        tags = inventory.records[0].tags
        assert tags["environment"] == "staging"
        assert tags["group"] == "platform"

    def test_no_jobs(self, manager):
        inventory = asyncio.run(manager.run([]))
        assert inventory.records == []
        assert inventory.summary()["collector_count"] == 0
