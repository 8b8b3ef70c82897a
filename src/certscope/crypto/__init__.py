"""
Certificate decoding for certscope.
"""

from certscope.crypto.decoder import (
    DecodeError,
    DecodedCertificate,
    decode_certificate,
    extract_pem_blocks,
    format_fingerprint,
    format_serial,
    load_jks_certificates,
    load_pkcs12_certificates,
    load_pkcs7_certificates,
)

__all__ = [
    "DecodeError",
    "DecodedCertificate",
    "decode_certificate",
    "extract_pem_blocks",
    "format_fingerprint",
    "format_serial",
    "load_jks_certificates",
    "load_pkcs12_certificates",
    "load_pkcs7_certificates",
]
