"""
Certificate decoding for certscope.

Thin layer over the cryptography library (and pyjks for Java keystores)
that turns PEM/DER blobs and PKCS#12, PKCS#7 and JKS containers into
DecodedCertificate values. Decoding happens in-process, so no scratch
files or external commands are involved.
"""

from __future__ import annotations

import hashlib
import re
import struct
from dataclasses import dataclass, field
from datetime import datetime

import jks
from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding, pkcs7, pkcs12
from cryptography.x509.oid import NameOID

PEM_BLOCK_RE = re.compile(
    r"-----BEGIN CERTIFICATE-----[\s\S]*?-----END CERTIFICATE-----"
)


class DecodeError(Exception):
    """A blob could not be decoded as a certificate."""

    pass


@dataclass(frozen=True)
class DecodedCertificate:
    """
    Fields extracted from one X.509 certificate.

    Attributes:
        subject: RFC 4514 subject string
        issuer: RFC 4514 issuer string
        common_name: Subject CN, if any
        issuer_name: Issuer CN, else issuer O, if any
        not_before: Start of validity (UTC)
        not_after: End of validity (UTC)
        serial_number: Colon-delimited lower-case hex serial
        san: DNS names followed by IP addresses
        fingerprint: SHA-1 of the DER encoding, colon-delimited hex
        fingerprint256: SHA-256 of the DER encoding, colon-delimited hex
        der: Raw DER bytes
    """

    subject: str
    issuer: str
    common_name: str | None
    issuer_name: str | None
    not_before: datetime
    not_after: datetime
    serial_number: str
    san: list[str] = field(default_factory=list)
    fingerprint: str = ""
    fingerprint256: str = ""
    der: bytes = b""

    @property
    def is_self_signed(self) -> bool:
        return self.subject == self.issuer


def format_fingerprint(hex_digest: str) -> str:
    """Format a hex digest as colon-delimited upper-case pairs."""
    hex_digest = hex_digest.upper()
    return ":".join(hex_digest[i:i + 2] for i in range(0, len(hex_digest), 2))


def format_serial(serial: int) -> str:
    """Format a serial number the way OpenSSL prints it."""
    hex_serial = format(serial, "x")
    if len(hex_serial) % 2:
        hex_serial = "0" + hex_serial
    return ":".join(hex_serial[i:i + 2] for i in range(0, len(hex_serial), 2))


def extract_pem_blocks(text: str) -> list[str]:
    """
    Find every PEM certificate block in a text.

    Args:
        text: File or command output contents

    Returns:
        PEM blocks in order of appearance
    """
    return PEM_BLOCK_RE.findall(text or "")


def _name_attribute(name: x509.Name, oid: x509.ObjectIdentifier) -> str | None:
    attributes = name.get_attributes_for_oid(oid)
    if not attributes:
        return None
    value = attributes[0].value
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return value.strip() or None


def _subject_alt_names(cert: x509.Certificate) -> list[str]:
    try:
        extension = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return []
    names = [str(n) for n in extension.value.get_values_for_type(x509.DNSName)]
    names.extend(
        str(ip) for ip in extension.value.get_values_for_type(x509.IPAddress)
    )
    return names


def _from_certificate(cert: x509.Certificate) -> DecodedCertificate:
    der = cert.public_bytes(Encoding.DER)
    not_before = cert.not_valid_before_utc
    not_after = cert.not_valid_after_utc
    if not_after < not_before:
        raise DecodeError("Certificate validity window ends before it starts")

    try:
        san = _subject_alt_names(cert)
    except ValueError:
        san = []

    return DecodedCertificate(
        subject=cert.subject.rfc4514_string(),
        issuer=cert.issuer.rfc4514_string(),
        common_name=_name_attribute(cert.subject, NameOID.COMMON_NAME),
        issuer_name=(
            _name_attribute(cert.issuer, NameOID.COMMON_NAME)
            or _name_attribute(cert.issuer, NameOID.ORGANIZATION_NAME)
        ),
        not_before=not_before,
        not_after=not_after,
        serial_number=format_serial(cert.serial_number),
        san=san,
        fingerprint=format_fingerprint(hashlib.sha1(der).hexdigest()),
        fingerprint256=format_fingerprint(hashlib.sha256(der).hexdigest()),
        der=der,
    )


def decode_certificate(blob: bytes | str) -> DecodedCertificate:
    """
    Decode a PEM or DER certificate.

    When the blob holds several PEM blocks the first one is decoded.

    Args:
        blob: Certificate bytes or PEM text

    Returns:
        DecodedCertificate

    Raises:
        DecodeError: If the blob is not a well-formed certificate
    """
    if isinstance(blob, str):
        blob = blob.encode("utf-8")
    if not blob:
        raise DecodeError("Empty certificate data")

    try:
        if b"-----BEGIN CERTIFICATE-----" in blob:
            blocks = extract_pem_blocks(blob.decode("ascii", errors="ignore"))
            if not blocks:
                raise DecodeError("Unterminated PEM certificate block")
            cert = x509.load_pem_x509_certificate(blocks[0].encode("ascii"))
        else:
            cert = x509.load_der_x509_certificate(blob)
    except DecodeError:
        raise
    except ValueError as e:
        raise DecodeError(f"Not a valid certificate: {e}") from e

    return _from_certificate(cert)


def load_pkcs12_certificates(
    data: bytes,
    password: str | None,
) -> list[tuple[str | None, DecodedCertificate]]:
    """
    Decode every certificate in a PKCS#12 container.

    Args:
        data: Raw PKCS#12 bytes
        password: Container password

    Returns:
        (friendly name, certificate) pairs, the key's certificate first

    Raises:
        DecodeError: If the container cannot be opened
    """
    secret = password.encode("utf-8") if password else None
    try:
        bundle = pkcs12.load_pkcs12(data, secret)
    except (ValueError, TypeError) as e:
        raise DecodeError(f"Cannot open PKCS#12 container: {e}") from e

    entries: list[pkcs12.PKCS12Certificate] = []
    if bundle.cert is not None:
        entries.append(bundle.cert)
    entries.extend(bundle.additional_certs)

    result = []
    for entry in entries:
        name = entry.friendly_name.decode("utf-8", errors="replace") if entry.friendly_name else None
        result.append((name, _from_certificate(entry.certificate)))
    return result


def load_pkcs7_certificates(data: bytes) -> list[DecodedCertificate]:
    """
    Decode the certificates carried in a PKCS#7 (.p7b/.p7c) bundle.

    Args:
        data: PEM or DER PKCS#7 bytes

    Returns:
        Decoded certificates in bundle order

    Raises:
        DecodeError: If the bundle cannot be parsed
    """
    try:
        if b"-----BEGIN PKCS7-----" in data:
            certs = pkcs7.load_pem_pkcs7_certificates(data)
        else:
            certs = pkcs7.load_der_pkcs7_certificates(data)
    except ValueError as e:
        raise DecodeError(f"Not a valid PKCS#7 bundle: {e}") from e
    return [_from_certificate(cert) for cert in certs]


def load_jks_certificates(
    data: bytes,
    password: str,
) -> list[tuple[str, DecodedCertificate]]:
    """
    Decode every certificate in a Java KeyStore (JKS or JCEKS).

    Trusted certificate entries yield one certificate each. Private key
    entries yield their certificate chain; chain members after the first
    are named "<alias>#<position>".

    Args:
        data: Raw keystore bytes
        password: Store password

    Returns:
        (alias, certificate) pairs sorted by alias

    Raises:
        DecodeError: If the keystore cannot be opened
    """
    try:
        store = jks.KeyStore.loads(data, password)
    except (jks.util.KeystoreException, struct.error) as e:
        raise DecodeError(f"Cannot open Java keystore: {e}") from e

    result = []
    for alias, entry in sorted(store.certs.items()):
        result.append((alias, decode_certificate(entry.cert)))
    for alias, entry in sorted(store.private_keys.items()):
        for position, (_, der) in enumerate(entry.cert_chain):
            name = alias if position == 0 else f"{alias}#{position}"
            result.append((name, decode_certificate(der)))
    return result
