"""
Tests for the base collector framework.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from cryptography.hazmat.primitives.serialization import Encoding

from certscope.collectors.base import (
    BaseCollector,
    CollectionResult,
    ConfigurationError,
    ItemOutcome,
    SourceError,
    as_list,
)
from certscope.crypto import DecodeError, decode_certificate
from certscope.models import CertificateRecord, build_certificate_record


class StaticCollector(BaseCollector):
    """Collector that processes a fixed list of item callables."""

    name = "static"
    description = "Static test collector"
    required_params = ("alpha", "beta")

    def __init__(self, items: list[tuple[str, Any]] | None = None, error: Exception | None = None):
        self.items = items or []
        self.error = error
        self.gathered = False

    async def _gather(self, config: dict[str, Any]) -> list[ItemOutcome]:
        self.gathered = True
        if self.error is not None:
            raise self.error
        return [self.process_item(item, func) for item, func in self.items]


def _record(domain: str) -> CertificateRecord:
    return build_certificate_record("static", {"domain": domain})


def _fail(error: Exception):
    def func():
        raise error
    return func


VALID = {"alpha": "a", "beta": "b"}


class TestValidation:
    """Tests for required parameter validation."""

    def test_required_parameters_in_order(self):
        assert StaticCollector().required_parameters() == ("alpha", "beta")

    def test_first_missing_parameter_is_named(self):
        """The first missing key is reported before any I/O."""
        collector = StaticCollector()

        with pytest.raises(ConfigurationError) as exc_info:
            asyncio.run(collector.collect({}))

        assert exc_info.value.parameter == "alpha"
        assert exc_info.value.collector == "static"
        assert "alpha" in str(exc_info.value)
        assert not collector.gathered

    @pytest.mark.parametrize("value", ["", None, []])
    def test_empty_values_are_missing(self, value):
        with pytest.raises(ConfigurationError) as exc_info:
            StaticCollector().validate({"alpha": "a", "beta": value})
        assert exc_info.value.parameter == "beta"

    def test_valid_configuration(self):
        StaticCollector().validate(VALID)


class TestCollect:
    """Tests for collect() and collect_detailed()."""

    def test_failures_are_isolated(self):
        """One bad item never discards the others."""
        collector = StaticCollector([
            ("good-1", lambda: _record("one.example.com")),
            ("bad", _fail(DecodeError("garbage"))),
            ("good-2", lambda: _record("two.example.com")),
        ])

        result = asyncio.run(collector.collect_detailed(VALID))

        assert isinstance(result, CollectionResult)
        assert [r.domain for r in result.records] == ["one.example.com", "two.example.com"]
        assert result.skipped_items == ["bad"]
        assert result.skipped[0].reason == "garbage"
        assert result.record_count == 2
        assert result.skipped_count == 1

    def test_collect_returns_records(self):
        collector = StaticCollector([("only", lambda: _record("a.example.com"))])
        records = asyncio.run(collector.collect(VALID))
        assert [r.domain for r in records] == ["a.example.com"]

    def test_empty_source(self):
        """An empty source is a success with no records."""
        assert asyncio.run(StaticCollector().collect(VALID)) == []

    def test_multi_record_items(self):
        """Items may produce several records."""
        collector = StaticCollector([
            ("keystore", lambda: [_record("a.example.com"), _record("b.example.com")]),
        ])
        assert len(asyncio.run(collector.collect(VALID))) == 2

    def test_source_error_propagates(self):
        collector = StaticCollector(error=SourceError("static", "Folder does not exist: /x"))
        with pytest.raises(SourceError) as exc_info:
            asyncio.run(collector.collect(VALID))
        assert str(exc_info.value) == "static: Folder does not exist: /x"

    def test_unexpected_error_is_wrapped(self):
        """Unexpected source failures become SourceError with the cause."""
        cause = RuntimeError("boom")
        collector = StaticCollector(error=cause)

        with pytest.raises(SourceError) as exc_info:
            asyncio.run(collector.collect(VALID))

        assert exc_info.value.cause is cause
        assert "boom" in str(exc_info.value)

    def test_malformed_item_data_is_skipped(self):
        """Any failure inside one item skips that item only."""
        collector = StaticCollector([
            ("first", lambda: _record("a.example.com")),
            ("shape", _fail(AttributeError("'str' object has no attribute 'get'"))),
            ("index", _fail(IndexError("list index out of range"))),
            ("last", lambda: _record("b.example.com")),
        ])

        result = asyncio.run(collector.collect_detailed(VALID))

        assert [r.domain for r in result.records] == ["a.example.com", "b.example.com"]
        assert result.skipped_items == ["shape", "index"]

    def test_configuration_is_copied(self):
        collector = StaticCollector()
        config = dict(VALID)
        asyncio.run(collector.collect(config))
        assert config == VALID


class TestItemOutcome:
    """Tests for ItemOutcome."""

    def test_ok(self):
        record = _record("a.example.com")
        outcome = ItemOutcome.ok("item", record)
        assert not outcome.skipped
        assert outcome.reason == ""
        assert outcome.records == (record,)

    def test_skip(self):
        outcome = ItemOutcome.skip("item", ValueError("bad"))
        assert outcome.skipped
        assert outcome.reason == "bad"
        assert outcome.records == ()

    def test_intermediate_value_has_no_records(self):
        assert ItemOutcome.ok("namespace/default", ["secret"]).records == ()

    def test_process_item_async(self):
        collector = StaticCollector()

        async def fetch(value):
            return value

        async def failing():
            raise SourceError("static", "Timeout connecting to host:443")

        ok = asyncio.run(collector.process_item_async("a", fetch, 1))
        skipped = asyncio.run(collector.process_item_async("b", failing))

        assert ok.value == 1
        assert skipped.skipped
        assert "Timeout" in skipped.reason


class TestRecordHelpers:
    """Tests for create_record() and record_from_decoded()."""

    def test_create_record_merges_environment(self):
        record = StaticCollector().create_record(
            {"domain": "a.example.com"},
            {"environment": "prod", "group": "edge"},
        )
        assert record.source == "static"
        assert record.tags["environment"] == "prod"
        assert record.tags["group"] == "edge"

    def test_record_from_decoded(self, example_pem):
        decoded = decode_certificate(example_pem)

        record = StaticCollector().record_from_decoded(
            decoded, {}, fallback_id="fallback", tags={"file_name": "x.pem"}
        )

        assert record.domain == "example.com"
        assert record.subject == "example.com"
        assert record.issuer == "Example CA"
        assert record.san == ("example.com", "www.example.com")
        assert record.expiration_date == decoded.not_after
        assert record.fingerprint == decoded.fingerprint
        assert record.tags["file_name"] == "x.pem"

    def test_record_from_decoded_without_cn(self, cert_factory):
        cert, _ = cert_factory(common_name=None)
        decoded = decode_certificate(cert.public_bytes(Encoding.PEM))

        record = StaticCollector().record_from_decoded(
            decoded, {}, fallback_id="pki-cert-2", default_issuer="Fallback Issuer"
        )

        assert record.domain == "pki-cert-2"
        assert record.issuer == "Fallback Issuer"


class TestAsList:
    """Tests for as_list."""

    def test_values(self):
        assert as_list(None) == []
        assert as_list("/etc/ssl") == ["/etc/ssl"]
        assert as_list(["a", "b"]) == ["a", "b"]
        assert as_list(("a",)) == ["a"]
