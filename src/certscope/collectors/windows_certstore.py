"""
Windows certificate store collector for certscope.

Reads a system certificate store through ssl.enum_certificates, which is
only available on Windows.
"""

from __future__ import annotations

import logging
import ssl
import sys
from typing import Any

from certscope.collectors.base import BaseCollector, ItemOutcome, SourceError
from certscope.crypto.decoder import DecodeError, decode_certificate
from certscope.models import CertificateRecord

logger = logging.getLogger(__name__)

DEFAULT_STORE = "MY"
DEFAULT_LOCATION = "CurrentUser"
X509_ENCODING = "x509_asn"


class WindowsCertStoreCollector(BaseCollector):
    """
    Collects certificates from a Windows certificate store.

    Configuration:
        store: System store name, e.g. MY, ROOT, CA (default: MY)
        location: Store location recorded in tags (default: CurrentUser)
    """

    name = "windows-certstore"
    description = "Extract certificates from Windows Certificate Store"
    required_params = ()

    def _parse_entry(
        self,
        der: bytes,
        encoding: str,
        index: int,
        store: str,
        location: str,
        config: dict[str, Any],
    ) -> CertificateRecord:
        if encoding != X509_ENCODING:
            raise DecodeError(f"Unsupported certificate encoding {encoding}")
        decoded = decode_certificate(der)
        return self.record_from_decoded(
            decoded,
            config,
            fallback_id=f"windows-cert-{index}",
            tags={
                "windows_store": store,
                "windows_location": location,
                "cert_index": index,
            },
        )

    async def _gather(self, config: dict[str, Any]) -> list[ItemOutcome]:
        if sys.platform != "win32":
            raise SourceError(self.name, "Windows Certificate Store is only available on Windows")

        store = config.get("store") or DEFAULT_STORE
        location = config.get("location") or DEFAULT_LOCATION

        try:
            entries = ssl.enum_certificates(store)
        except (OSError, AttributeError) as e:
            raise SourceError(self.name, f"Failed to open certificate store {store}", e) from e

        logger.debug(f"Store {location}\\{store} holds {len(entries)} entries")
        return [
            self.process_item(
                f"{store}#{index}",
                self._parse_entry,
                der,
                encoding,
                index,
                store,
                location,
                config,
            )
            for index, (der, encoding, _trust) in enumerate(entries)
        ]
