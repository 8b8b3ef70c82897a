"""
Data models for certscope.

- CertificateRecord: the normalized certificate every collector produces
"""

from certscope.models.certificate import (
    CertificateRecord,
    UNKNOWN_ISSUER,
    build_certificate_record,
    normalize_san,
    parse_timestamp,
)

__all__ = [
    "CertificateRecord",
    "UNKNOWN_ISSUER",
    "build_certificate_record",
    "normalize_san",
    "parse_timestamp",
]
