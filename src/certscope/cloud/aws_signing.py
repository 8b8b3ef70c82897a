"""
AWS Signature Version 4 request signing for certscope.

Builds the canonical request, string-to-sign, derived signing key and
Authorization header for JSON-protocol AWS APIs (X-Amz-Target style)
without an SDK. Everything here is pure: no network I/O happens while
signing, the caller attaches the returned headers to its own request.

The signed header set is fixed to host, x-amz-date and x-amz-target, in
that order. Any change to ordering, casing or timestamp format produces a
signature the service rejects.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timezone

ALGORITHM = "AWS4-HMAC-SHA256"
SIGNED_HEADERS = "host;x-amz-date;x-amz-target"
TERMINATOR = "aws4_request"
CONTENT_TYPE = "application/x-amz-json-1.1"


@dataclass(frozen=True)
class AwsCredentials:
    """Long-lived AWS access key pair."""

    access_key_id: str
    secret_access_key: str

    def __repr__(self) -> str:
        return f"AwsCredentials(access_key_id={self.access_key_id!r}, secret_access_key='***')"


@dataclass(frozen=True)
class SignedRequest:
    """
    Result of signing one request.

    Attributes:
        host: Target host the signature is bound to
        amz_date: Request timestamp (YYYYMMDDTHHMMSSZ)
        target: X-Amz-Target API action
        canonical_request: Canonical request string
        string_to_sign: String that was signed
        signature: Hex-encoded HMAC-SHA256 signature
        authorization: Full Authorization header value
    """

    host: str
    amz_date: str
    target: str
    canonical_request: str
    string_to_sign: str
    signature: str
    authorization: str

    def headers(self) -> dict[str, str]:
        """Headers to attach to the outbound request."""
        return {
            "Content-Type": CONTENT_TYPE,
            "X-Amz-Date": self.amz_date,
            "X-Amz-Target": self.target,
            "Authorization": self.authorization,
        }


def format_amz_date(timestamp: datetime) -> str:
    """
    Format a timestamp as an ISO-8601 basic UTC string.

    Naive datetimes are treated as UTC.
    """
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _to_bytes(payload: bytes | str) -> bytes:
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return payload


def payload_hash(payload: bytes | str) -> str:
    """SHA-256 hex digest of the exact payload bytes."""
    return hashlib.sha256(_to_bytes(payload)).hexdigest()


def build_canonical_request(
    method: str,
    path: str,
    host: str,
    amz_date: str,
    target: str,
    hashed_payload: str,
) -> str:
    """
    Build the canonical request string.

    Args:
        method: HTTP method
        path: URI path
        host: Host header value
        amz_date: Request timestamp
        target: X-Amz-Target header value
        hashed_payload: SHA-256 hex digest of the payload

    Returns:
        Newline-joined canonical request
    """
    canonical_headers = (
        f"host:{host}\n"
        f"x-amz-date:{amz_date}\n"
        f"x-amz-target:{target}\n"
    )
    return "\n".join([
        method,
        path,
        "",  # empty query string
        canonical_headers,
        SIGNED_HEADERS,
        hashed_payload,
    ])


def credential_scope(date_stamp: str, region: str, service: str) -> str:
    """Build the date/region/service credential scope."""
    return f"{date_stamp}/{region}/{service}/{TERMINATOR}"


def build_string_to_sign(amz_date: str, scope: str, canonical_request: str) -> str:
    """Build the string-to-sign from the hashed canonical request."""
    return "\n".join([
        ALGORITHM,
        amz_date,
        scope,
        hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
    ])


def _hmac(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def derive_signing_key(
    secret_access_key: str,
    date_stamp: str,
    region: str,
    service: str,
) -> bytes:
    """
    Derive the SigV4 signing key through four chained HMAC-SHA256 steps.

    Args:
        secret_access_key: Secret half of the credential pair
        date_stamp: YYYYMMDD
        region: Region name
        service: Service name

    Returns:
        Raw signing key bytes
    """
    k_date = _hmac(f"AWS4{secret_access_key}".encode("utf-8"), date_stamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, TERMINATOR)


def service_host(service: str, region: str) -> str:
    """Regional endpoint host for a service."""
    return f"{service}.{region}.amazonaws.com"


def sign_request(
    service: str,
    target: str,
    payload: bytes | str,
    region: str,
    credentials: AwsCredentials,
    timestamp: datetime,
    method: str = "POST",
    path: str = "/",
) -> SignedRequest:
    """
    Sign a JSON-protocol API request.

    Args:
        service: Service name (e.g. "acm")
        target: API action target (e.g. "CertificateManager.ListCertificates")
        payload: Serialized request body, exactly as it will be sent
        region: Region name
        credentials: Access key pair
        timestamp: Request time
        method: HTTP method
        path: URI path

    Returns:
        SignedRequest with the header values to send
    """
    host = service_host(service, region)
    amz_date = format_amz_date(timestamp)
    date_stamp = amz_date[:8]

    canonical_request = build_canonical_request(
        method, path, host, amz_date, target, payload_hash(payload)
    )
    scope = credential_scope(date_stamp, region, service)
    string_to_sign = build_string_to_sign(amz_date, scope, canonical_request)

    signing_key = derive_signing_key(
        credentials.secret_access_key, date_stamp, region, service
    )
    signature = hmac.new(
        signing_key, string_to_sign.encode("utf-8"), hashlib.sha256
    ).hexdigest()

    authorization = (
        f"{ALGORITHM} Credential={credentials.access_key_id}/{scope}, "
        f"SignedHeaders={SIGNED_HEADERS}, Signature={signature}"
    )

    return SignedRequest(
        host=host,
        amz_date=amz_date,
        target=target,
        canonical_request=canonical_request,
        string_to_sign=string_to_sign,
        signature=signature,
        authorization=authorization,
    )
