"""
Keystore collector for certscope.

Opens PKCS#12 (.p12, .pfx) and Java (JKS, JCEKS) keystores in-process and
reports every certificate they hold. Java keystores are recognised by
extension or magic number; everything else is opened as PKCS#12.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from certscope.collectors.base import BaseCollector, ItemOutcome, as_list
from certscope.crypto.decoder import (
    DecodedCertificate,
    load_jks_certificates,
    load_pkcs12_certificates,
)
from certscope.models import CertificateRecord

logger = logging.getLogger(__name__)

DEFAULT_PASSWORD = "changeit"
JKS_EXTENSIONS = frozenset({".jks"})

# JKS and JCEKS magic numbers
JKS_MAGIC = (b"\xfe\xed\xfe\xed", b"\xce\xce\xce\xce")


def keystore_password(config: dict[str, Any]) -> str:
    """Resolve the keystore password: option, KEYSTORE_PASSWORD, then changeit."""
    return config.get("password") or os.environ.get("KEYSTORE_PASSWORD") or DEFAULT_PASSWORD


def _pkcs12_aliases(data: bytes, password: str) -> list[tuple[str, DecodedCertificate]]:
    return [
        (friendly_name or f"pkcs12-cert-{index}", decoded)
        for index, (friendly_name, decoded) in enumerate(load_pkcs12_certificates(data, password))
    ]


class KeystoreCollector(BaseCollector):
    """
    Collects certificates from PKCS#12 and Java keystores.

    Configuration:
        keystores: Keystore path or list of paths (required)
        password: Store password (default: KEYSTORE_PASSWORD or "changeit")
    """

    name = "keystore"
    description = "Extract certificates from keystores (.jks, .p12, .pfx)"
    required_params = ("keystores",)

    def _open(
        self,
        path: Path,
        data: bytes,
        password: str,
    ) -> list[tuple[str, DecodedCertificate]]:
        """Decode a keystore by extension or magic, as (alias, certificate) pairs."""
        if path.suffix.lower() in JKS_EXTENSIONS or data[:4] in JKS_MAGIC:
            return load_jks_certificates(data, password)
        return _pkcs12_aliases(data, password)

    def _extract(
        self,
        path: Path,
        password: str,
        config: dict[str, Any],
    ) -> list[CertificateRecord]:
        data = path.read_bytes()
        records = []
        for alias, decoded in self._open(path, data, password):
            records.append(
                self.record_from_decoded(
                    decoded,
                    config,
                    fallback_id=alias,
                    tags={"keystore_path": str(path), "keystore_alias": alias},
                )
            )

        logger.debug(f"Extracted {len(records)} certificates from {path}")
        return records

    async def _gather(self, config: dict[str, Any]) -> list[ItemOutcome]:
        password = keystore_password(config)
        outcomes = []
        for keystore in as_list(config["keystores"]):
            path = Path(keystore).expanduser()
            outcomes.append(self.process_item(str(path), self._extract, path, password, config))
        return outcomes
