"""
Base collector framework for certscope.

This module provides the abstract base class every certificate source
implements, the error types collectors raise, and the explicit per-item
outcome values used to isolate failures of individual certificates.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping

from certscope.crypto.decoder import DecodedCertificate
from certscope.models import CertificateRecord, build_certificate_record
from certscope.observability.logging import get_logger

logger = logging.getLogger(__name__)
events = get_logger(__name__)


class CollectorError(Exception):
    """Base exception for collector errors."""

    pass


class ConfigurationError(CollectorError):
    """A required configuration parameter is missing or empty."""

    def __init__(self, collector: str, parameter: str) -> None:
        self.collector = collector
        self.parameter = parameter
        super().__init__(
            f"Required parameter '{parameter}' missing for {collector} collector"
        )


class SourceError(CollectorError):
    """
    The source as a whole could not be read.

    Raised for unreachable endpoints, authentication failures and
    enumeration failures. Fatal to one collect() call.
    """

    def __init__(
        self,
        collector: str,
        message: str,
        cause: BaseException | None = None,
    ) -> None:
        self.collector = collector
        self.message = message
        self.cause = cause
        text = f"{collector}: {message}"
        if cause is not None:
            text = f"{text}: {cause}"
        super().__init__(text)


@dataclass(frozen=True)
class ItemOutcome:
    """
    Result of processing one enumerated item.

    Attributes:
        item: Identity of the item (path, ARN, alias, index, ...)
        value: Record(s) or intermediate data produced for the item
        error: Failure that caused the item to be skipped
    """

    item: str
    value: Any = None
    error: BaseException | None = None

    @classmethod
    def ok(cls, item: str, value: Any) -> ItemOutcome:
        return cls(item=item, value=value)

    @classmethod
    def skip(cls, item: str, error: BaseException) -> ItemOutcome:
        return cls(item=item, error=error)

    @property
    def skipped(self) -> bool:
        return self.error is not None

    @property
    def reason(self) -> str:
        return str(self.error) if self.error is not None else ""

    @property
    def records(self) -> tuple[CertificateRecord, ...]:
        """Certificate records carried by this outcome."""
        if isinstance(self.value, CertificateRecord):
            return (self.value,)
        if isinstance(self.value, (list, tuple)):
            return tuple(v for v in self.value if isinstance(v, CertificateRecord))
        return ()


@dataclass
class CollectionResult:
    """
    Result from running one collector.

    Attributes:
        collector_name: Name of the collector that ran
        records: Normalized certificate records
        skipped: Outcomes of items that were skipped
    """

    collector_name: str
    records: list[CertificateRecord] = field(default_factory=list)
    skipped: list[ItemOutcome] = field(default_factory=list)

    @property
    def record_count(self) -> int:
        return len(self.records)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def skipped_items(self) -> list[str]:
        return [outcome.item for outcome in self.skipped]


def as_list(value: Any) -> list[Any]:
    """Wrap a scalar option value in a list."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


class BaseCollector(ABC):
    """
    Abstract base class for certificate collectors.

    Subclasses declare a unique name and their required configuration
    keys, and implement _gather(), which enumerates the source and returns
    one ItemOutcome per item. A failure to reach or enumerate the source
    is raised as SourceError; failures of single items are returned as
    skipped outcomes and never abort the run.

    Attributes:
        name: Unique collector name
        description: Human-readable description
        required_params: Configuration keys that must be present and truthy
    """

    name: str = "base"
    description: str = ""
    required_params: tuple[str, ...] = ()

    def required_parameters(self) -> tuple[str, ...]:
        """Get the ordered configuration keys this collector requires."""
        return tuple(self.required_params)

    def validate(self, config: Mapping[str, Any]) -> None:
        """
        Check required configuration before any I/O.

        Args:
            config: Collector configuration

        Raises:
            ConfigurationError: Naming the first missing parameter
        """
        for param in self.required_parameters():
            if not config.get(param):
                raise ConfigurationError(self.name, param)

    async def collect(self, config: Mapping[str, Any]) -> list[CertificateRecord]:
        """
        Collect certificates from the source.

        Args:
            config: Collector configuration

        Returns:
            Normalized certificate records

        Raises:
            ConfigurationError: If a required parameter is missing
            SourceError: If the source cannot be read at all
        """
        result = await self.collect_detailed(config)
        return result.records

    async def collect_detailed(self, config: Mapping[str, Any]) -> CollectionResult:
        """
        Collect certificates and report which items were skipped.

        Args:
            config: Collector configuration

        Returns:
            CollectionResult with records and skipped items
        """
        config = dict(config or {})
        self.validate(config)

        try:
            outcomes = await self._gather(config)
        except CollectorError:
            raise
        except Exception as e:
            raise SourceError(self.name, "collection failed", e) from e

        result = CollectionResult(collector_name=self.name)
        for outcome in outcomes:
            if outcome.skipped:
                events.item_skipped(self.name, outcome.item, outcome.reason)
                result.skipped.append(outcome)
            else:
                result.records.extend(outcome.records)

        logger.debug(
            f"{self.name}: {result.record_count} certificates, "
            f"{result.skipped_count} skipped"
        )
        return result

    @abstractmethod
    async def _gather(self, config: dict[str, Any]) -> list[ItemOutcome]:
        """
        Enumerate the source and process every item.

        Must be implemented by all collector subclasses.

        Args:
            config: Validated collector configuration

        Returns:
            One outcome per attempted item
        """
        pass

    def process_item(self, item: str, func: Callable[..., Any], *args: Any) -> ItemOutcome:
        """
        Run one item's fetch/decode step at the item boundary.

        Any exception raised for the item, including malformed source
        data, skips that item only.

        Args:
            item: Item identity used in logs and reports
            func: Callable producing the item's record(s)
            *args: Arguments for func

        Returns:
            ItemOutcome holding the value or the failure
        """
        try:
            value = func(*args)
        except Exception as e:
            return ItemOutcome.skip(item, e)
        return ItemOutcome.ok(item, value)

    async def process_item_async(
        self,
        item: str,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> ItemOutcome:
        """Async variant of process_item()."""
        try:
            value = await func(*args)
        except Exception as e:
            return ItemOutcome.skip(item, e)
        return ItemOutcome.ok(item, value)

    def create_record(
        self,
        data: dict[str, Any],
        config: Mapping[str, Any],
    ) -> CertificateRecord:
        """
        Normalize source data into a record tagged with this collector.

        Args:
            data: Loosely structured certificate fields
            config: Collector configuration (environment, group)

        Returns:
            CertificateRecord
        """
        merged = {
            "environment": config.get("environment"),
            "group": config.get("group"),
            **data,
        }
        return build_certificate_record(self.name, merged)

    def record_from_decoded(
        self,
        decoded: DecodedCertificate,
        config: Mapping[str, Any],
        fallback_id: str,
        tags: dict[str, Any] | None = None,
        domain: str | None = None,
        default_issuer: str | None = None,
    ) -> CertificateRecord:
        """
        Build a record from a decoded certificate.

        Args:
            decoded: Output of the decode collaborator
            config: Collector configuration
            fallback_id: Source-scoped identity used when the subject has no CN
            tags: Source-specific provenance tags
            domain: Explicit domain overriding the subject CN
            default_issuer: Issuer used when the certificate names none

        Returns:
            CertificateRecord
        """
        name = domain or decoded.common_name or fallback_id
        return self.create_record(
            {
                "domain": name,
                "issuer": decoded.issuer_name or default_issuer,
                "expiration_date": decoded.not_after,
                "valid_from": decoded.not_before,
                "subject": name,
                "san": decoded.san,
                "fingerprint": decoded.fingerprint,
                "fingerprint256": decoded.fingerprint256,
                "serial_number": decoded.serial_number,
                "fallback_id": fallback_id,
                "tags": tags or {},
            },
            config,
        )
