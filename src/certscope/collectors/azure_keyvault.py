"""
Azure Key Vault collector for certscope.

Authenticates with the OAuth2 client-credentials flow and walks the vault's
certificate listing, fetching each certificate bundle. When the bundle
carries the DER certificate it is decoded for exact fields; otherwise the
vault's attributes and policy are used.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote, urlencode

from certscope.collectors.base import BaseCollector, ItemOutcome, SourceError
from certscope.crypto.decoder import decode_certificate, format_fingerprint
from certscope.models import CertificateRecord
from certscope.transport import HttpClient, HttpResponse, TransportError

logger = logging.getLogger(__name__)

API_VERSION = "7.4"
TOKEN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
VAULT_SCOPE = "https://vault.azure.net/.default"
DEFAULT_ISSUER = "Azure Key Vault"

CN_RE = re.compile(r"CN=([^,]+)")


def _epoch_to_iso(value: Any) -> str | None:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc).isoformat()
    except (TypeError, ValueError, OverflowError):
        return None


def _thumbprint(value: str | None) -> str | None:
    """Convert a base64url x5t thumbprint to colon-delimited hex."""
    if not value:
        return None
    padded = value + "=" * (-len(value) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError):
        return None
    return format_fingerprint(raw.hex())


class AzureKeyVaultCollector(BaseCollector):
    """
    Collects certificates from an Azure Key Vault.

    Configuration:
        vault_name: Key Vault name (required)
        client_id: Service principal application ID (required)
        client_secret: Service principal secret (required)
        tenant_id: Directory (tenant) ID (required)
    """

    name = "azure-keyvault"
    description = "Extract certificates from Azure Key Vault"
    required_params = ("vault_name", "client_id", "client_secret", "tenant_id")

    def __init__(self, client: HttpClient | None = None) -> None:
        self._client = client

    @property
    def client(self) -> HttpClient:
        if self._client is None:
            self._client = HttpClient.from_env()
        return self._client

    def _json(self, response: HttpResponse, what: str) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise SourceError(self.name, f"Failed to parse {what}", e) from e
        if not isinstance(data, dict):
            raise SourceError(self.name, f"Unexpected {what}")
        if not response.ok:
            error = data.get("error")
            if isinstance(error, dict):
                detail = error.get("message", "")
            else:
                detail = data.get("error_description") or error or ""
            raise SourceError(
                self.name, f"{what} returned HTTP {response.status} {detail}".rstrip()
            )
        return data

    async def _get_access_token(self, config: dict[str, Any]) -> str:
        form = urlencode({
            "client_id": config["client_id"],
            "client_secret": config["client_secret"],
            "scope": VAULT_SCOPE,
            "grant_type": "client_credentials",
        })
        url = TOKEN_URL.format(tenant=quote(config["tenant_id"], safe=""))
        try:
            response = await self.client.fetch(
                "POST",
                url,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                body=form,
            )
        except TransportError as e:
            raise SourceError(self.name, "Authentication failed", e) from e

        data = self._json(response, "token response")
        token = data.get("access_token")
        if not token:
            raise SourceError(
                self.name,
                f"Authentication failed: {data.get('error_description') or 'Unknown error'}",
            )
        return token

    async def _get(self, url: str, token: str, what: str) -> dict[str, Any]:
        response = await self.client.fetch(
            "GET",
            url,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
        )
        return self._json(response, what)

    async def _list_certificate_ids(self, vault: str, token: str) -> list[str]:
        url: str | None = (
            f"https://{vault}.vault.azure.net/certificates?api-version={API_VERSION}"
        )
        ids: list[str] = []

        while url:
            try:
                page = await self._get(url, token, "certificate list")
            except TransportError as e:
                raise SourceError(self.name, "Failed to list certificates", e) from e
            for entry in page.get("value") or []:
                if entry.get("id"):
                    ids.append(entry["id"])
            url = page.get("nextLink")

        logger.debug(f"Found {len(ids)} certificates in vault {vault}")
        return ids

    async def _describe(
        self,
        cert_id: str,
        token: str,
        config: dict[str, Any],
    ) -> CertificateRecord:
        cert = await self._get(
            f"{cert_id}?api-version={API_VERSION}", token, "certificate details"
        )
        attributes = cert.get("attributes") or {}
        policy = cert.get("policy") or {}
        properties = policy.get("x509_props") or policy.get("x509_certificate_properties") or {}
        leaf_name = cert_id.rstrip("/").split("/")[-1]

        tags = {
            "azure_vault": config["vault_name"],
            "azure_cert_id": cert_id,
            "azure_enabled": attributes.get("enabled"),
            "azure_created": _epoch_to_iso(attributes.get("created")),
        }

        if cert.get("cer"):
            decoded = decode_certificate(base64.b64decode(cert["cer"]))
            return self.record_from_decoded(
                decoded, config, leaf_name, tags, default_issuer=DEFAULT_ISSUER
            )

        subject = properties.get("subject") or leaf_name
        match = CN_RE.search(subject)
        subject_cn = match.group(1).strip() if match else leaf_name
        sans = (properties.get("sans") or properties.get("subject_alternative_names") or {})
        dns_names = sans.get("dns_names") or [subject_cn]
        issuer = (policy.get("issuer") or policy.get("issuer_parameters") or {}).get("name")

        return self.create_record(
            {
                "domain": subject_cn,
                "issuer": issuer or DEFAULT_ISSUER,
                "expiration_date": attributes.get("exp"),
                "valid_from": attributes.get("nbf"),
                "subject": subject_cn,
                "san": dns_names,
                "fingerprint": _thumbprint(cert.get("x5t")),
                "fallback_id": leaf_name,
                "tags": tags,
            },
            config,
        )

    async def _gather(self, config: dict[str, Any]) -> list[ItemOutcome]:
        token = await self._get_access_token(config)
        cert_ids = await self._list_certificate_ids(config["vault_name"], token)

        outcomes = []
        for cert_id in cert_ids:
            outcomes.append(
                await self.process_item_async(cert_id, self._describe, cert_id, token, config)
            )
        return outcomes
