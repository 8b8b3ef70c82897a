"""
Certificate folder collector for certscope.

Scans directories for certificate files and decodes the first certificate
in each one.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from certscope.collectors.base import BaseCollector, ItemOutcome, SourceError, as_list
from certscope.crypto.decoder import (
    DecodeError,
    DecodedCertificate,
    decode_certificate,
    load_pkcs7_certificates,
)
from certscope.models import CertificateRecord

logger = logging.getLogger(__name__)

CERT_EXTENSIONS = frozenset({".pem", ".crt", ".cer", ".cert", ".p7b", ".p7c"})
PKCS7_EXTENSIONS = frozenset({".p7b", ".p7c"})


def decode_certificate_file(path: Path) -> DecodedCertificate:
    """
    Decode the first certificate stored in a file.

    Args:
        path: Certificate file

    Returns:
        DecodedCertificate

    Raises:
        DecodeError: If the file holds no readable certificate
        OSError: If the file cannot be read
    """
    data = path.read_bytes()
    if path.suffix.lower() in PKCS7_EXTENSIONS and b"-----BEGIN CERTIFICATE-----" not in data:
        certs = load_pkcs7_certificates(data)
        if not certs:
            raise DecodeError("No certificate found in PKCS#7 bundle")
        return certs[0]
    return decode_certificate(data)


class CertFolderCollector(BaseCollector):
    """
    Collects certificates from files in local directories.

    Configuration:
        folders: Directory or list of directories (required)
        recursive: Descend into subdirectories (default: False)
    """

    name = "cert-folder"
    description = "Parse certificate files from directories"
    required_params = ("folders",)

    def _find_files(self, folder: Path, recursive: bool) -> list[Path]:
        entries = folder.rglob("*") if recursive else folder.iterdir()
        return sorted(
            p for p in entries
            if p.is_file() and p.suffix.lower() in CERT_EXTENSIONS
        )

    def _parse_file(self, path: Path, config: dict[str, Any]) -> CertificateRecord:
        decoded = decode_certificate_file(path)
        return self.record_from_decoded(
            decoded,
            config,
            fallback_id=path.stem,
            tags={"file_path": str(path), "file_name": path.name},
        )

    async def _gather(self, config: dict[str, Any]) -> list[ItemOutcome]:
        recursive = bool(config.get("recursive", False))
        outcomes: list[ItemOutcome] = []

        for folder_name in as_list(config["folders"]):
            folder = Path(folder_name).expanduser()
            if not folder.is_dir():
                raise SourceError(self.name, f"Folder does not exist: {folder}")

            try:
                files = self._find_files(folder, recursive)
            except OSError as e:
                raise SourceError(self.name, f"Cannot read folder {folder}", e) from e

            logger.debug(f"Found {len(files)} certificate files in {folder}")
            for path in files:
                outcomes.append(self.process_item(str(path), self._parse_file, path, config))

        return outcomes
