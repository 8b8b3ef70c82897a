"""
Inventory run configuration for certscope.

Defines which collectors run and with what options, loadable from JSON or
YAML files or from environment variables.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass
class CollectorJob:
    """
    Configuration for one collector run.

    Attributes:
        name: Registered collector name
        enabled: Whether the job runs
        options: Collector configuration keys
    """

    name: str
    enabled: bool = True
    options: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "enabled": self.enabled,
            "options": self.options,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CollectorJob:
        """Create from dictionary."""
        return cls(
            name=data["name"],
            enabled=data.get("enabled", True),
            options=dict(data.get("options") or {}),
        )


@dataclass
class InventoryConfiguration:
    """
    Complete configuration for an inventory run.

    Attributes:
        name: Configuration name
        environment: Environment label applied to every record
        group: Ownership group applied to every record
        jobs: Collector jobs to run
        timeout_seconds: Default live-probe timeout
    """

    name: str = "default"
    environment: str | None = None
    group: str | None = None
    jobs: list[CollectorJob] = field(default_factory=list)
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def enabled_jobs(self) -> list[CollectorJob]:
        """Get jobs that are enabled."""
        return [job for job in self.jobs if job.enabled]

    def job_config(self, job: CollectorJob) -> dict[str, Any]:
        """
        Build the collector configuration for a job.

        Run-level environment, group and timeout are applied first; the
        job's own options take precedence.
        """
        config: dict[str, Any] = {"timeout": self.timeout_seconds}
        if self.environment is not None:
            config["environment"] = self.environment
        if self.group is not None:
            config["group"] = self.group
        config.update(job.options)
        return config

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "environment": self.environment,
            "group": self.group,
            "timeout_seconds": self.timeout_seconds,
            "jobs": [job.to_dict() for job in self.jobs],
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InventoryConfiguration:
        """Create from dictionary."""
        return cls(
            name=data.get("name", "default"),
            environment=data.get("environment"),
            group=data.get("group"),
            jobs=[CollectorJob.from_dict(j) for j in data.get("jobs") or []],
            timeout_seconds=float(data.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
        )

    @classmethod
    def from_json(cls, json_str: str) -> InventoryConfiguration:
        """Create from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> InventoryConfiguration:
        """Load configuration from a .json or YAML file."""
        path = os.path.expanduser(os.fspath(path))
        with open(path, "r", encoding="utf-8") as f:
            if path.endswith(".json"):
                return cls.from_dict(json.load(f))
            return cls.from_dict(yaml.safe_load(f) or {})

    def save(self, path: str | os.PathLike[str]) -> None:
        """Save configuration to a .json or YAML file."""
        path = os.path.expanduser(os.fspath(path))
        Path(path).parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            if path.endswith(".json"):
                json.dump(self.to_dict(), f, indent=2)
            else:
                yaml.safe_dump(self.to_dict(), f, default_flow_style=False)


def load_config_from_env() -> InventoryConfiguration:
    """
    Load configuration from environment variables.

    Environment variables:
        CERTSCOPE_CONFIG_FILE: Path to configuration file
        CERTSCOPE_COLLECTORS: Comma-separated list of collectors
        CERTSCOPE_ENVIRONMENT: Environment label
        CERTSCOPE_GROUP: Ownership group
        CERTSCOPE_TIMEOUT: Live-probe timeout in seconds

    Returns:
        InventoryConfiguration instance
    """
    config_file = os.getenv("CERTSCOPE_CONFIG_FILE")
    if config_file and os.path.exists(config_file):
        return InventoryConfiguration.from_file(config_file)

    config = InventoryConfiguration(
        environment=os.getenv("CERTSCOPE_ENVIRONMENT") or None,
        group=os.getenv("CERTSCOPE_GROUP") or None,
    )

    collectors = os.getenv("CERTSCOPE_COLLECTORS")
    if collectors:
        for name in collectors.split(","):
            if name.strip():
                config.jobs.append(CollectorJob(name=name.strip()))

    timeout = os.getenv("CERTSCOPE_TIMEOUT")
    if timeout:
        config.timeout_seconds = float(timeout)

    return config
