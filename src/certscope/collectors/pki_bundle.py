"""
PKI bundle collector for certscope.

Reads multi-certificate PEM bundles (CA bundles, chains) and reports every
certificate in them.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from certscope.collectors.base import BaseCollector, ItemOutcome, SourceError, as_list
from certscope.crypto.decoder import DecodeError, decode_certificate, extract_pem_blocks
from certscope.models import CertificateRecord

logger = logging.getLogger(__name__)


class PkiBundleCollector(BaseCollector):
    """
    Collects every certificate from PEM bundle files.

    Configuration:
        bundles: Bundle path or list of paths (required)
    """

    name = "pki-bundle"
    description = "Parse multi-certificate CA bundles"
    required_params = ("bundles",)

    def _parse_block(
        self,
        block: str,
        index: int,
        bundle: Path,
        config: dict[str, Any],
    ) -> CertificateRecord:
        decoded = decode_certificate(block)
        return self.record_from_decoded(
            decoded,
            config,
            fallback_id=f"pki-cert-{index}",
            tags={"bundle_path": str(bundle), "bundle_index": index},
        )

    async def _gather(self, config: dict[str, Any]) -> list[ItemOutcome]:
        outcomes: list[ItemOutcome] = []

        for bundle_name in as_list(config["bundles"]):
            bundle = Path(bundle_name).expanduser()
            if not bundle.is_file():
                raise SourceError(self.name, f"CA bundle file does not exist: {bundle}")

            try:
                content = bundle.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                raise SourceError(self.name, f"Cannot read bundle {bundle}", e) from e

            blocks = extract_pem_blocks(content)
            if not blocks:
                outcomes.append(
                    ItemOutcome.skip(str(bundle), DecodeError("No certificates found in CA bundle"))
                )
                continue

            logger.debug(f"Found {len(blocks)} certificates in {bundle}")
            for index, block in enumerate(blocks):
                outcomes.append(
                    self.process_item(
                        f"{bundle}#{index}", self._parse_block, block, index, bundle, config
                    )
                )

        return outcomes
