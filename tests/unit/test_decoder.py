"""
Tests for certificate decoding.
"""

from __future__ import annotations

import hashlib

import jks
import pytest
from cryptography.hazmat.primitives.serialization import (
    BestAvailableEncryption,
    Encoding,
    pkcs7,
    pkcs12,
)

from certscope.crypto import (
    DecodeError,
    decode_certificate,
    extract_pem_blocks,
    format_fingerprint,
    format_serial,
    load_jks_certificates,
    load_pkcs7_certificates,
    load_pkcs12_certificates,
)


class TestFormatting:
    """Tests for fingerprint and serial formatting."""

    def test_format_fingerprint(self):
        assert format_fingerprint("a1b2c3") == "A1:B2:C3"

    def test_format_serial_pads_odd_length(self):
        assert format_serial(0x1A2B3C) == "1a:2b:3c"
        assert format_serial(0xABC) == "0a:bc"


class TestExtractPemBlocks:
    """Tests for extract_pem_blocks."""

    def test_multiple_blocks(self, cert_factory):
        first, _ = cert_factory("one.example.com")
        second, _ = cert_factory("two.example.com")
        text = (
            "# bundle\n"
            + first.public_bytes(Encoding.PEM).decode()
            + "junk\n"
            + second.public_bytes(Encoding.PEM).decode()
        )

        blocks = extract_pem_blocks(text)

        assert len(blocks) == 2
        assert all(b.startswith("-----BEGIN CERTIFICATE-----") for b in blocks)

    def test_no_blocks(self):
        assert extract_pem_blocks("nothing here") == []
        assert extract_pem_blocks("") == []


class TestDecodeCertificate:
    """Tests for decode_certificate."""

    def test_pem(self, example_cert, example_pem):
        """PEM certificates decode with all fields."""
        decoded = decode_certificate(example_pem)
        der = example_cert.public_bytes(Encoding.DER)

        assert decoded.common_name == "example.com"
        assert decoded.issuer_name == "Example CA"
        assert decoded.san == ["example.com", "www.example.com"]
        assert decoded.serial_number == "1a:2b:3c"
        assert decoded.not_after == example_cert.not_valid_after_utc
        assert decoded.fingerprint == format_fingerprint(hashlib.sha1(der).hexdigest())
        assert decoded.fingerprint256 == format_fingerprint(hashlib.sha256(der).hexdigest())
        assert decoded.der == der
        assert not decoded.is_self_signed

    def test_der(self, example_cert):
        """DER certificates decode the same way."""
        decoded = decode_certificate(example_cert.public_bytes(Encoding.DER))
        assert decoded.common_name == "example.com"

    def test_pem_text(self, example_pem):
        """PEM given as text is accepted."""
        assert decode_certificate(example_pem.decode()).common_name == "example.com"

    def test_first_block_wins(self, cert_factory):
        """Only the first PEM block is decoded."""
        first, _ = cert_factory("leaf.example.com")
        second, _ = cert_factory("intermediate.example.com")
        blob = first.public_bytes(Encoding.PEM) + second.public_bytes(Encoding.PEM)
        assert decode_certificate(blob).common_name == "leaf.example.com"

    def test_issuer_organization_fallback(self, cert_factory):
        """Without an issuer CN the organization is used."""
        cert, _ = cert_factory(common_name=None, organization="Example Org")
        decoded = decode_certificate(cert.public_bytes(Encoding.PEM))
        assert decoded.common_name is None
        assert decoded.issuer_name == "Example Org"
        assert decoded.is_self_signed

    def test_ip_san(self, cert_factory):
        """IP addresses follow DNS names."""
        cert, _ = cert_factory("host", san=["10.0.0.1", "host.local"])
        decoded = decode_certificate(cert.public_bytes(Encoding.PEM))
        assert decoded.san == ["host.local", "10.0.0.1"]

    @pytest.mark.parametrize(
        "blob",
        [
            b"",
            b"not a certificate",
            b"-----BEGIN CERTIFICATE-----\nAAAA\n-----END CERTIFICATE-----\n",
            b"-----BEGIN CERTIFICATE-----\nunterminated",
        ],
    )
    def test_garbage_raises_decode_error(self, blob):
        with pytest.raises(DecodeError):
            decode_certificate(blob)


class TestContainers:
    """Tests for PKCS#12, PKCS#7 and Java keystore containers."""

    def test_pkcs12_with_friendly_name(self, cert_factory):
        """The key's certificate comes first with its friendly name."""
        leaf, key = cert_factory("leaf.example.com")
        ca, _ = cert_factory("Example Root")
        data = pkcs12.serialize_key_and_certificates(
            b"tomcat", key, leaf, [ca], BestAvailableEncryption(b"changeit")
        )

        entries = load_pkcs12_certificates(data, "changeit")

        assert [name for name, _ in entries][0] == "tomcat"
        assert [cert.common_name for _, cert in entries] == [
            "leaf.example.com",
            "Example Root",
        ]

    def test_pkcs12_wrong_password(self, cert_factory):
        leaf, key = cert_factory("leaf.example.com")
        data = pkcs12.serialize_key_and_certificates(
            b"tomcat", key, leaf, None, BestAvailableEncryption(b"changeit")
        )
        with pytest.raises(DecodeError):
            load_pkcs12_certificates(data, "wrong")

    def test_pkcs12_garbage(self):
        with pytest.raises(DecodeError):
            load_pkcs12_certificates(b"\x00\x01garbage", "changeit")

    def test_pkcs7(self, cert_factory):
        first, _ = cert_factory("a.example.com")
        second, _ = cert_factory("b.example.com")
        data = pkcs7.serialize_certificates([first, second], Encoding.DER)

        certs = load_pkcs7_certificates(data)

        assert {c.common_name for c in certs} == {"a.example.com", "b.example.com"}

    def test_pkcs7_garbage(self):
        with pytest.raises(DecodeError):
            load_pkcs7_certificates(b"garbage")

    def test_jks_trusted_certificates(self, cert_factory):
        """Trusted entries come back sorted by alias."""
        first, _ = cert_factory("b.example.com")
        second, _ = cert_factory("a.example.com")
        store = jks.KeyStore.new("jks", [
            jks.TrustedCertEntry.new("web", first.public_bytes(Encoding.DER)),
            jks.TrustedCertEntry.new("api", second.public_bytes(Encoding.DER)),
        ])

        entries = load_jks_certificates(store.saves("changeit"), "changeit")

        assert [(alias, cert.common_name) for alias, cert in entries] == [
            ("api", "a.example.com"),
            ("web", "b.example.com"),
        ]

    def test_jks_garbage(self):
        with pytest.raises(DecodeError):
            load_jks_certificates(b"garbage!", "changeit")
