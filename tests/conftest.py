"""
Pytest configuration and fixtures for certscope tests.

This module provides certificate generation helpers and environment
isolation used across the unit tests.
"""

from __future__ import annotations

import ipaddress
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

PROXY_VARIABLES = (
    "HTTPS_PROXY",
    "https_proxy",
    "HTTP_PROXY",
    "http_proxy",
    "NO_PROXY",
    "no_proxy",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove proxy and keystore settings inherited from the shell."""
    for name in PROXY_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("KEYSTORE_PASSWORD", raising=False)


def make_certificate(
    common_name: str | None = "example.com",
    san: list[str] | None = None,
    issuer_cn: str | None = None,
    organization: str | None = None,
    not_before: datetime | None = None,
    not_after: datetime | None = None,
    serial_number: int = 0x1A2B3C,
) -> tuple[x509.Certificate, ec.EllipticCurvePrivateKey]:
    """
    Build a signed test certificate.

    The certificate is self-signed unless issuer_cn names a different
    issuer; the same key signs in either case.
    """
    key = ec.generate_private_key(ec.SECP256R1())

    subject_attrs = []
    if common_name:
        subject_attrs.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    if organization:
        subject_attrs.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization))
    if not subject_attrs:
        subject_attrs.append(x509.NameAttribute(NameOID.COUNTRY_NAME, "US"))
    subject = x509.Name(subject_attrs)

    if issuer_cn:
        issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, issuer_cn)])
    else:
        issuer = subject

    now = datetime.now(timezone.utc).replace(microsecond=0)
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(serial_number)
        .not_valid_before(not_before or now - timedelta(days=1))
        .not_valid_after(not_after or now + timedelta(days=90))
    )

    if san:
        names: list[x509.GeneralName] = []
        for entry in san:
            try:
                names.append(x509.IPAddress(ipaddress.ip_address(entry)))
            except ValueError:
                names.append(x509.DNSName(entry))
        builder = builder.add_extension(x509.SubjectAlternativeName(names), critical=False)

    cert = builder.sign(key, hashes.SHA256())
    return cert, key


def to_pem(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.PEM)


def to_der(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.DER)


@pytest.fixture
def cert_factory() -> Callable[..., tuple[x509.Certificate, ec.EllipticCurvePrivateKey]]:
    """Return the certificate builder."""
    return make_certificate


@pytest.fixture
def example_cert() -> x509.Certificate:
    """Return a certificate for example.com with two SANs."""
    cert, _ = make_certificate(
        "example.com",
        san=["example.com", "www.example.com"],
        issuer_cn="Example CA",
    )
    return cert


@pytest.fixture
def example_pem(example_cert: x509.Certificate) -> bytes:
    """Return example_cert as PEM."""
    return to_pem(example_cert)


@pytest.fixture
def cert_dir(tmp_path: Path) -> Path:
    """Return an empty directory for certificate files."""
    directory = tmp_path / "certs"
    directory.mkdir()
    return directory
