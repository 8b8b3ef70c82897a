"""
Cloud provider request helpers for certscope.
"""

from certscope.cloud.aws_signing import (
    ALGORITHM,
    SIGNED_HEADERS,
    AwsCredentials,
    SignedRequest,
    build_canonical_request,
    build_string_to_sign,
    credential_scope,
    derive_signing_key,
    format_amz_date,
    payload_hash,
    service_host,
    sign_request,
)

__all__ = [
    "ALGORITHM",
    "SIGNED_HEADERS",
    "AwsCredentials",
    "SignedRequest",
    "build_canonical_request",
    "build_string_to_sign",
    "credential_scope",
    "derive_signing_key",
    "format_amz_date",
    "payload_hash",
    "service_host",
    "sign_request",
]
