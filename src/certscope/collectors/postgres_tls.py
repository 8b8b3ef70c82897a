"""
PostgreSQL TLS collector for certscope.

Locates the server certificate of a PostgreSQL data directory, following
ssl_cert_file in postgresql.conf when it is set.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

from certscope.collectors.base import BaseCollector, ItemOutcome
from certscope.crypto.decoder import decode_certificate
from certscope.models import CertificateRecord

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "/var/lib/postgresql/data"
DEFAULT_CERT_FILE = "server.crt"

SSL_CERT_FILE_RE = re.compile(
    r"^\s*ssl_cert_file\s*=?\s*'?([^'#\n]+?)'?\s*(?:#.*)?$", re.MULTILINE
)


def configured_cert_file(conf_path: Path) -> str | None:
    """
    Read ssl_cert_file from postgresql.conf.

    The last uncommented setting wins, as in PostgreSQL itself.
    """
    if not conf_path.is_file():
        return None
    matches = SSL_CERT_FILE_RE.findall(conf_path.read_text(encoding="utf-8", errors="replace"))
    values = [m.strip() for m in matches if m.strip()]
    return values[-1] if values else None


class PostgresTlsCollector(BaseCollector):
    """
    Collects the TLS server certificate of a PostgreSQL instance.

    Configuration:
        data_dir: Data directory (default: /var/lib/postgresql/data)
        cert_file: Explicit certificate path (default: from postgresql.conf)
    """

    name = "postgres-tls"
    description = "Extract TLS certificates from PostgreSQL configuration"
    required_params = ()

    def resolve_cert_file(self, config: dict[str, Any]) -> Path:
        data_dir = Path(config.get("data_dir") or DEFAULT_DATA_DIR).expanduser()
        if config.get("cert_file"):
            return Path(config["cert_file"]).expanduser()

        cert_file = configured_cert_file(data_dir / "postgresql.conf") or DEFAULT_CERT_FILE
        path = Path(cert_file)
        return path if path.is_absolute() else data_dir / path

    def _parse_certificate(self, cert_path: Path, config: dict[str, Any]) -> CertificateRecord:
        decoded = decode_certificate(cert_path.read_bytes())
        return self.record_from_decoded(
            decoded,
            config,
            fallback_id="postgresql-server",
            tags={"cert_path": str(cert_path), "service": "postgresql"},
        )

    async def _gather(self, config: dict[str, Any]) -> list[ItemOutcome]:
        cert_path = self.resolve_cert_file(config)
        if not cert_path.is_file():
            logger.debug(f"No PostgreSQL server certificate at {cert_path}")
            return []
        return [self.process_item(str(cert_path), self._parse_certificate, cert_path, config)]
