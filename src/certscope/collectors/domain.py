"""
Live endpoint collector for certscope.

Connects to HTTPS endpoints and records the certificate each one serves.
Every endpoint is probed with a timeout; an endpoint that does not
complete the handshake in time is skipped with a timeout reason instead of
stalling the run.
"""

from __future__ import annotations

import logging
from typing import Any

from certscope.collectors.base import BaseCollector, ItemOutcome, SourceError, as_list
from certscope.crypto.decoder import decode_certificate
from certscope.models import CertificateRecord
from certscope.transport import (
    DEFAULT_PROBE_TIMEOUT,
    ProxySettings,
    TransportTimeout,
    probe_peer_certificate,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = 443


def split_host_port(target: str) -> tuple[str, int]:
    """
    Split "host[:port]" into host and port.

    Bracketed IPv6 literals ("[::1]:8443") are supported. An unparseable
    port falls back to 443.
    """
    target = target.strip()
    if target.startswith("["):
        host, _, rest = target[1:].partition("]")
        port_text = rest[1:] if rest.startswith(":") else ""
    elif target.count(":") == 1:
        host, _, port_text = target.partition(":")
    else:
        host, port_text = target, ""

    try:
        port = int(port_text) if port_text else DEFAULT_PORT
    except ValueError:
        port = DEFAULT_PORT
    return host, port


class DomainCollector(BaseCollector):
    """
    Collects certificates from live TLS endpoints.

    Configuration:
        domains: "host[:port]" or a list of them (required)
        timeout: Seconds to wait per endpoint (default: 10)
    """

    name = "domain"
    description = "Fetch certificates from live HTTPS domains"
    required_params = ("domains",)

    async def _probe(
        self,
        target: str,
        timeout: float,
        proxy: ProxySettings | None,
        config: dict[str, Any],
    ) -> CertificateRecord:
        host, port = split_host_port(target)
        try:
            der = await probe_peer_certificate(host, port, timeout=timeout, proxy=proxy)
        except TransportTimeout as e:
            raise SourceError(self.name, f"Timeout connecting to {target}", e) from e

        decoded = decode_certificate(der)
        return self.create_record(
            {
                "domain": target,
                "issuer": decoded.issuer_name,
                "expiration_date": decoded.not_after,
                "valid_from": decoded.not_before,
                "subject": decoded.common_name or host,
                "san": decoded.san or [host],
                "fingerprint": decoded.fingerprint,
                "fingerprint256": decoded.fingerprint256,
                "serial_number": decoded.serial_number,
                "tags": {"host": host, "port": port},
            },
            config,
        )

    async def _gather(self, config: dict[str, Any]) -> list[ItemOutcome]:
        timeout = float(config.get("timeout") or DEFAULT_PROBE_TIMEOUT)
        proxy = ProxySettings.from_env()

        outcomes = []
        for target in as_list(config["domains"]):
            target = str(target)
            outcome = await self.process_item_async(
                target, self._probe, target, timeout, proxy, config
            )
            if not outcome.skipped:
                logger.debug(f"Fetched certificate for {target}")
            outcomes.append(outcome)
        return outcomes
