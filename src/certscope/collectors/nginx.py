"""
Nginx configuration collector for certscope.

Finds ssl_certificate directives in Nginx configuration files and decodes
the certificates they reference, tagging each with the server names
declared in the same file.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

from certscope.collectors.base import BaseCollector, ItemOutcome, SourceError
from certscope.crypto.decoder import decode_certificate
from certscope.models import CertificateRecord

logger = logging.getLogger(__name__)

SSL_CERTIFICATE_RE = re.compile(r"^\s*ssl_certificate\s+([^;]+);", re.MULTILINE)
SERVER_NAME_RE = re.compile(r"^\s*server_name\s+([^;]+);", re.MULTILINE)


def _unquote(value: str) -> str:
    return value.strip().strip("'\"")


def parse_nginx_config(content: str) -> tuple[list[str], list[str]]:
    """
    Extract certificate paths and server names from a config file.

    Args:
        content: Configuration file text

    Returns:
        (ssl_certificate paths, server names) in order of appearance
    """
    cert_paths = [_unquote(m) for m in SSL_CERTIFICATE_RE.findall(content)]
    server_names: list[str] = []
    for match in SERVER_NAME_RE.findall(content):
        for name in match.split():
            name = _unquote(name)
            if name and name not in server_names:
                server_names.append(name)
    return cert_paths, server_names


class NginxCollector(BaseCollector):
    """
    Collects certificates referenced by Nginx configuration.

    Configuration:
        config_path: Config file or directory of config files (required)
    """

    name = "nginx"
    description = "Extract certificates from Nginx configuration files"
    required_params = ("config_path",)

    def _find_config_files(self, config_path: Path) -> list[Path]:
        if config_path.is_file():
            return [config_path]
        return sorted(
            p for p in config_path.iterdir()
            if p.is_file() and (p.name.endswith(".conf") or "nginx" in p.name)
        )

    def _read_config(self, config_file: Path) -> tuple[list[str], list[str]]:
        return parse_nginx_config(config_file.read_text(encoding="utf-8"))

    def _parse_certificate(
        self,
        cert_path: Path,
        config_file: Path,
        server_names: list[str],
        config: dict[str, Any],
    ) -> CertificateRecord:
        decoded = decode_certificate(cert_path.read_bytes())
        return self.record_from_decoded(
            decoded,
            config,
            fallback_id=server_names[0] if server_names else cert_path.name,
            tags={
                "cert_path": str(cert_path),
                "server_names": ", ".join(server_names),
                "nginx_config": str(config_file),
            },
        )

    async def _gather(self, config: dict[str, Any]) -> list[ItemOutcome]:
        config_path = Path(config["config_path"]).expanduser()
        if not config_path.exists():
            raise SourceError(self.name, f"Nginx config path does not exist: {config_path}")

        try:
            config_files = self._find_config_files(config_path)
        except OSError as e:
            raise SourceError(self.name, f"Cannot read {config_path}", e) from e

        outcomes: list[ItemOutcome] = []
        for config_file in config_files:
            parsed = self.process_item(str(config_file), self._read_config, config_file)
            if parsed.skipped:
                outcomes.append(parsed)
                continue

            cert_paths, server_names = parsed.value
            for raw_path in cert_paths:
                cert_path = Path(raw_path)
                if not cert_path.is_absolute():
                    cert_path = config_file.parent / cert_path
                outcomes.append(
                    self.process_item(
                        str(cert_path),
                        self._parse_certificate,
                        cert_path,
                        config_file,
                        server_names,
                        config,
                    )
                )

        return outcomes
