"""
Tests for the host collectors: domain, macos-keychain and
windows-certstore.
"""

from __future__ import annotations

import asyncio
import ssl
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import Encoding

from certscope.collectors import (
    ConfigurationError,
    DomainCollector,
    MacOSKeychainCollector,
    SourceError,
    WindowsCertStoreCollector,
)
from certscope.collectors import windows_certstore
from certscope.collectors.domain import split_host_port


class TestSplitHostPort:
    """Tests for split_host_port."""

    @pytest.mark.parametrize(
        "target,expected",
        [
            ("example.com", ("example.com", 443)),
            ("example.com:8443", ("example.com", 8443)),
            ("[::1]:9443", ("::1", 9443)),
            ("[2001:db8::1]", ("2001:db8::1", 443)),
            ("example.com:https", ("example.com", 443)),
        ],
    )
    def test_split(self, target, expected):
        assert split_host_port(target) == expected


class TestDomainCollector:
    """Tests for DomainCollector against local endpoints."""

    def test_unresponsive_endpoint_is_skipped(self):
        """A silent endpoint is skipped with a timeout reason."""

        async def scenario():
            async def handle(reader, writer):
                await asyncio.sleep(5)
                writer.close()

            server = await asyncio.start_server(handle, "127.0.0.1", 0)
            port = server.sockets[0].getsockname()[1]
            try:
                return port, await DomainCollector().collect_detailed(
                    {"domains": [f"127.0.0.1:{port}"], "timeout": 0.2}
                )
            finally:
                server.close()

        port, result = asyncio.run(scenario())

        assert result.records == []
        assert result.skipped_items == [f"127.0.0.1:{port}"]
        reason = result.skipped[0].reason
        assert "Timeout connecting to" in reason
        assert "0.2s" in reason

    def test_fetches_served_certificate(self, tmp_path, cert_factory):
        cert, key = cert_factory("localhost", san=["localhost", "127.0.0.1"])
        cert_file = tmp_path / "server.pem"
        key_file = tmp_path / "server.key"
        cert_file.write_bytes(cert.public_bytes(Encoding.PEM))
        key_file.write_bytes(
            key.private_bytes(
                Encoding.PEM,
                serialization.PrivateFormat.PKCS8,
                serialization.NoEncryption(),
            )
        )
        server_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        server_context.load_cert_chain(cert_file, key_file)

        async def scenario():
            async def handle(reader, writer):
                try:
                    await reader.read(1)
                finally:
                    writer.close()

            server = await asyncio.start_server(
                handle, "127.0.0.1", 0, ssl=server_context
            )
            port = server.sockets[0].getsockname()[1]
            try:
                return port, await DomainCollector().collect(
                    {"domains": f"127.0.0.1:{port}", "timeout": 5}
                )
            finally:
                server.close()

        port, records = asyncio.run(scenario())

        assert len(records) == 1
        record = records[0]
        assert record.source == "domain"
        assert record.domain == f"127.0.0.1:{port}"
        assert record.subject == "localhost"
        assert record.san == ("localhost", "127.0.0.1")
        assert record.tags["host"] == "127.0.0.1"
        assert record.tags["port"] == port

    def test_one_bad_endpoint_does_not_stop_others(self):
        collector = DomainCollector()

        async def probe(target, timeout, proxy, config):
            if target == "bad.example.com":
                raise SourceError("domain", f"Timeout connecting to {target}")
            return "record"

        with patch.object(collector, "_probe", side_effect=probe):
            outcomes = asyncio.run(
                collector._gather({"domains": ["bad.example.com", "good.example.com"]})
            )

        assert [o.skipped for o in outcomes] == [True, False]

    def test_requires_domains(self):
        with pytest.raises(ConfigurationError):
            asyncio.run(DomainCollector().collect({"domains": []}))


class TestMacOSKeychainCollector:
    """Tests for MacOSKeychainCollector."""

    def _process(self, stdout: bytes, returncode: int = 0, stderr: bytes = b"") -> MagicMock:
        process = MagicMock()
        process.communicate = AsyncMock(return_value=(stdout, stderr))
        process.returncode = returncode
        return process

    def test_parses_exported_blocks(self, example_pem, cert_factory):
        nameless, _ = cert_factory(common_name=None)
        output = example_pem + b"garbage\n" + nameless.public_bytes(Encoding.PEM)
        spawn = AsyncMock(return_value=self._process(output))

        with patch("asyncio.create_subprocess_exec", spawn):
            records = asyncio.run(
                MacOSKeychainCollector().collect({"keychain": "/tmp/login.keychain"})
            )

        assert spawn.call_args.args[:5] == (
            "security", "find-certificate", "-a", "-p", "/tmp/login.keychain"
        )
        assert [r.domain for r in records] == ["example.com", "keychain-cert-1"]
        assert records[1].tags["source"] == "macos-keychain"
        assert records[1].tags["keychain"] == "/tmp/login.keychain"
        assert records[1].tags["keychain_index"] == 1

    def test_tool_failure(self):
        spawn = AsyncMock(return_value=self._process(b"", 44, b"keychain not found"))

        with patch("asyncio.create_subprocess_exec", spawn):
            with pytest.raises(SourceError) as exc_info:
                asyncio.run(MacOSKeychainCollector().collect({}))
        assert "keychain not found" in str(exc_info.value)

    def test_tool_missing(self):
        spawn = AsyncMock(side_effect=FileNotFoundError("security"))

        with patch("asyncio.create_subprocess_exec", spawn):
            with pytest.raises(SourceError):
                asyncio.run(MacOSKeychainCollector().collect({}))


class TestWindowsCertStoreCollector:
    """Tests for WindowsCertStoreCollector."""

    def test_not_windows(self, monkeypatch):
        monkeypatch.setattr(windows_certstore, "sys", MagicMock(platform="linux"))
        with pytest.raises(SourceError) as exc_info:
            asyncio.run(WindowsCertStoreCollector().collect({}))
        assert "only available on Windows" in str(exc_info.value)

    def test_reads_store(self, monkeypatch, example_cert):
        der = example_cert.public_bytes(Encoding.DER)
        enum = MagicMock(return_value=[
            (der, "x509_asn", True),
            (b"\x00", "pkcs_7_asn", True),
        ])
        monkeypatch.setattr(windows_certstore, "sys", MagicMock(platform="win32"))
        monkeypatch.setattr(ssl, "enum_certificates", enum, raising=False)

        result = asyncio.run(
            WindowsCertStoreCollector().collect_detailed({"store": "ROOT"})
        )

        enum.assert_called_once_with("ROOT")
        assert [r.domain for r in result.records] == ["example.com"]
        assert result.records[0].tags["windows_store"] == "ROOT"
        assert result.records[0].tags["windows_location"] == "CurrentUser"
        assert result.skipped_items == ["ROOT#1"]

    def test_store_error(self, monkeypatch):
        monkeypatch.setattr(windows_certstore, "sys", MagicMock(platform="win32"))
        monkeypatch.setattr(
            ssl, "enum_certificates", MagicMock(side_effect=OSError("denied")), raising=False
        )
        with pytest.raises(SourceError):
            asyncio.run(WindowsCertStoreCollector().collect({}))
