"""
Certificate record model for certscope.

This module defines the CertificateRecord class, the single normalized
shape every collector produces, and build_certificate_record which turns
loosely structured source data into one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

UNKNOWN_ISSUER = "Unknown"


@dataclass(frozen=True)
class CertificateRecord:
    """
    Represents one X.509 certificate discovered from one source.

    Records are immutable snapshots built once per discovered certificate
    and held only for the duration of a collection run.

    Attributes:
        domain: Primary subject identity (never empty)
        issuer: Issuer common name or organization
        expiration_date: End of the validity window
        valid_from: Start of the validity window
        subject: Subject identity, defaults to domain
        san: Subject alternative names, never empty
        fingerprint: SHA-1 digest of the DER encoding
        fingerprint256: SHA-256 digest of the DER encoding
        serial_number: Serial in the source's native format
        tags: Provenance metadata, always contains "source"
    """

    domain: str
    issuer: str = UNKNOWN_ISSUER
    expiration_date: datetime | None = None
    valid_from: datetime | None = None
    subject: str = ""
    san: tuple[str, ...] = ()
    fingerprint: str | None = None
    fingerprint256: str | None = None
    serial_number: str | None = None
    tags: dict[str, Any] = field(default_factory=dict)

    @property
    def source(self) -> str:
        """Name of the collector that produced this record."""
        return self.tags.get("source", "")

    def days_until_expiry(self, now: datetime | None = None) -> int | None:
        """
        Get the number of whole days until the certificate expires.

        Args:
            now: Reference time (default: current UTC time)

        Returns:
            Days remaining (negative when expired), or None if unknown
        """
        if self.expiration_date is None:
            return None
        now = now or datetime.now(timezone.utc)
        return (self.expiration_date - now).days

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check if the certificate is past its expiration date."""
        if self.expiration_date is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.expiration_date < now

    def to_dict(self) -> dict[str, Any]:
        """
        Convert record to dictionary representation.

        Returns:
            Dictionary suitable for JSON serialization
        """
        return {
            "domain": self.domain,
            "issuer": self.issuer,
            "expiration_date": (
                self.expiration_date.isoformat() if self.expiration_date else None
            ),
            "valid_from": self.valid_from.isoformat() if self.valid_from else None,
            "subject": self.subject,
            "san": list(self.san),
            "fingerprint": self.fingerprint,
            "fingerprint256": self.fingerprint256,
            "serial_number": self.serial_number,
            "tags": dict(self.tags),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CertificateRecord:
        """
        Create a CertificateRecord from a dictionary.

        Args:
            data: Dictionary produced by to_dict()

        Returns:
            New CertificateRecord instance
        """
        tags = dict(data.get("tags") or {})
        return build_certificate_record(
            tags.get("source", ""),
            {**data, "tags": tags},
        )


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a timestamp from the representations sources commonly use.

    Accepts datetime objects (naive values are treated as UTC), epoch
    seconds as numbers or numeric strings, and ISO-8601 strings with an
    optional trailing "Z".

    Args:
        value: Raw timestamp value

    Returns:
        Timezone-aware datetime, or None if the value cannot be parsed
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return parse_timestamp(float(text))
        except ValueError:
            pass
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return parse_timestamp(datetime.fromisoformat(text))
        except ValueError:
            return None

    return None


def _clean_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_san(value: Any) -> list[str]:
    """
    Normalize subject alternative names to an ordered, de-duplicated list.

    Args:
        value: List/tuple/set of names or a comma-separated string

    Returns:
        List of names with "DNS:" prefixes stripped
    """
    if not value:
        return []

    items: Iterable[Any]
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = value
    else:
        items = [value]

    names: list[str] = []
    for item in items:
        name = _clean_str(item)
        if name.upper().startswith("DNS:"):
            name = name[4:].strip()
        if name and name not in names:
            names.append(name)
    return names


def build_certificate_record(source: str, data: dict[str, Any]) -> CertificateRecord:
    """
    Normalize heterogeneous source data into a CertificateRecord.

    Every field has a fallback, so this never raises: partial metadata
    is still useful for inventory. Unknown keys supplied under "tags"
    are preserved and override the default tags, except "source".

    Args:
        source: Name of the producing collector
        data: Loosely structured field bag

    Returns:
        Normalized CertificateRecord
    """
    data = data or {}

    domain = (
        _clean_str(data.get("domain"))
        or _clean_str(data.get("subject"))
        or _clean_str(data.get("fallback_id"))
        or f"{source or 'unknown'}-unknown"
    )

    san = normalize_san(data.get("san")) or [domain]

    serial = data.get("serial_number")
    serial_number = _clean_str(serial) or None

    extra_tags = data.get("tags")
    tags: dict[str, Any] = {
        "source": source,
        "environment": data.get("environment"),
        "group": data.get("group"),
    }
    if isinstance(extra_tags, dict):
        tags.update(extra_tags)
    tags["source"] = source

    return CertificateRecord(
        domain=domain,
        issuer=_clean_str(data.get("issuer")) or UNKNOWN_ISSUER,
        expiration_date=parse_timestamp(data.get("expiration_date")),
        valid_from=parse_timestamp(data.get("valid_from")),
        subject=_clean_str(data.get("subject")) or domain,
        san=tuple(san),
        fingerprint=_clean_str(data.get("fingerprint")) or None,
        fingerprint256=_clean_str(data.get("fingerprint256")) or None,
        serial_number=serial_number,
        tags=tags,
    )
