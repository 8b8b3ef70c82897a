"""
macOS Keychain collector for certscope.

Exports the certificates of a keychain with the `security` tool and
decodes each PEM block in-process.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from certscope.collectors.base import BaseCollector, ItemOutcome, SourceError
from certscope.crypto.decoder import decode_certificate, extract_pem_blocks
from certscope.models import CertificateRecord

logger = logging.getLogger(__name__)

DEFAULT_KEYCHAIN = "/Library/Keychains/System.keychain"
SECURITY_TOOL = "security"


class MacOSKeychainCollector(BaseCollector):
    """
    Collects certificates from a macOS keychain.

    Configuration:
        keychain: Keychain path (default: /Library/Keychains/System.keychain)
    """

    name = "macos-keychain"
    description = "Extract certificates from macOS Keychain"
    required_params = ()

    async def export_keychain(self, keychain: str) -> str:
        """
        Run `security find-certificate -a -p` against a keychain.

        Raises:
            SourceError: If the tool is missing or exits with an error
        """
        try:
            process = await asyncio.create_subprocess_exec(
                SECURITY_TOOL, "find-certificate", "-a", "-p", keychain,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await process.communicate()
        except OSError as e:
            raise SourceError(self.name, "Failed to access macOS keychain", e) from e

        if process.returncode != 0:
            raise SourceError(
                self.name,
                f"Failed to access macOS keychain: {stderr.decode('utf-8', errors='replace').strip()}",
            )
        return stdout.decode("utf-8", errors="replace")

    def _parse_block(
        self,
        block: str,
        index: int,
        keychain: str,
        config: dict[str, Any],
    ) -> CertificateRecord:
        decoded = decode_certificate(block)
        return self.record_from_decoded(
            decoded,
            config,
            fallback_id=f"keychain-cert-{index}",
            tags={"keychain": keychain, "keychain_index": index},
        )

    async def _gather(self, config: dict[str, Any]) -> list[ItemOutcome]:
        keychain = config.get("keychain") or DEFAULT_KEYCHAIN
        output = await self.export_keychain(keychain)

        blocks = extract_pem_blocks(output)
        logger.debug(f"Keychain {keychain} exported {len(blocks)} certificates")
        return [
            self.process_item(f"{keychain}#{index}", self._parse_block, block, index, keychain, config)
            for index, block in enumerate(blocks)
        ]
