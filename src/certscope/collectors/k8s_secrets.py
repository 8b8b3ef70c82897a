"""
Kubernetes TLS secret collector for certscope.

Reads cluster access details from a kubeconfig file and lists secrets of
type kubernetes.io/tls through the API server, decoding each tls.crt.
"""

from __future__ import annotations

import base64
import logging
import os
import ssl
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import quote

import yaml

from certscope.collectors.base import BaseCollector, ItemOutcome, SourceError
from certscope.crypto.decoder import DecodeError, decode_certificate
from certscope.models import CertificateRecord
from certscope.transport import HttpClient, TransportError

logger = logging.getLogger(__name__)

DEFAULT_KUBECONFIG = Path("~/.kube/config")
TLS_SECRET_SELECTOR = "fieldSelector=type%3Dkubernetes.io%2Ftls"


@dataclass
class ClusterAccess:
    """
    Connection details resolved from a kubeconfig context.

    Attributes:
        server: API server URL
        token: Bearer token
        ca_data: PEM cluster CA bundle
        client_cert_data: PEM client certificate
        client_key_data: PEM client key
        client_cert_file: Path to a client certificate
        client_key_file: Path to a client key
        insecure: Skip server certificate verification
    """

    server: str
    token: str | None = None
    ca_data: str | None = None
    client_cert_data: bytes | None = None
    client_key_data: bytes | None = None
    client_cert_file: str | None = None
    client_key_file: str | None = None
    insecure: bool = False

    def __repr__(self) -> str:
        return f"ClusterAccess(server={self.server!r})"


def _named(entries: list[dict[str, Any]] | None, name: str | None, kind: str) -> dict[str, Any]:
    for entry in entries or []:
        if entry.get("name") == name:
            return entry.get(kind) or {}
    raise KeyError(f"{kind} '{name}' not found in kubeconfig")


def load_kubeconfig(path: str | os.PathLike[str] | None, context: str | None = None) -> ClusterAccess:
    """
    Resolve cluster access from a kubeconfig file.

    Args:
        path: Kubeconfig path (default: ~/.kube/config)
        context: Context name (default: current-context)

    Returns:
        ClusterAccess

    Raises:
        FileNotFoundError: If the file does not exist
        KeyError: If the context, cluster or user is missing
        ValueError: If the file is not a kubeconfig
    """
    config_path = Path(path).expanduser() if path else DEFAULT_KUBECONFIG.expanduser()
    if not config_path.exists():
        raise FileNotFoundError(f"Kubeconfig not found at {config_path}")

    with open(config_path, encoding="utf-8") as f:
        try:
            document = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid kubeconfig {config_path}: {e}") from e

    if not isinstance(document, dict):
        raise ValueError(f"Invalid kubeconfig {config_path}")

    context_name = context or document.get("current-context")
    ctx = _named(document.get("contexts"), context_name, "context")
    cluster = _named(document.get("clusters"), ctx.get("cluster"), "cluster")
    user = _named(document.get("users"), ctx.get("user"), "user")

    server = cluster.get("server")
    if not server:
        raise ValueError(f"Cluster '{ctx.get('cluster')}' has no server")

    ca_data = None
    if cluster.get("certificate-authority-data"):
        ca_data = base64.b64decode(cluster["certificate-authority-data"]).decode("ascii")
    elif cluster.get("certificate-authority"):
        ca_data = Path(cluster["certificate-authority"]).expanduser().read_text()

    def _b64(key: str) -> bytes | None:
        return base64.b64decode(user[key]) if user.get(key) else None

    return ClusterAccess(
        server=server.rstrip("/"),
        token=user.get("token"),
        ca_data=ca_data,
        client_cert_data=_b64("client-certificate-data"),
        client_key_data=_b64("client-key-data"),
        client_cert_file=user.get("client-certificate"),
        client_key_file=user.get("client-key"),
        insecure=bool(cluster.get("insecure-skip-tls-verify")),
    )


def _secret_name(secret: Any) -> str:
    """Secret name for item identity; empty when the entry is malformed."""
    metadata = secret.get("metadata") if isinstance(secret, dict) else None
    if isinstance(metadata, dict):
        return str(metadata.get("name") or "")
    return ""


def _write_temp(data: bytes, suffix: str) -> str:
    fd, path = tempfile.mkstemp(prefix="certscope-k8s-", suffix=suffix)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    return path


def build_ssl_context(access: ClusterAccess) -> ssl.SSLContext:
    """
    Build the TLS context for talking to the API server.

    Inline client identity is written to temporary files only long enough
    for the ssl module to load it.
    """
    context = ssl.create_default_context()
    if access.insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    elif access.ca_data:
        context.load_verify_locations(cadata=access.ca_data)

    if access.client_cert_data and access.client_key_data:
        cert_path = key_path = None
        try:
            cert_path = _write_temp(access.client_cert_data, ".crt")
            key_path = _write_temp(access.client_key_data, ".key")
            context.load_cert_chain(cert_path, key_path)
        finally:
            for path in (cert_path, key_path):
                if path and os.path.exists(path):
                    os.unlink(path)
    elif access.client_cert_file and access.client_key_file:
        context.load_cert_chain(
            os.path.expanduser(access.client_cert_file),
            os.path.expanduser(access.client_key_file),
        )

    return context


class K8sSecretsCollector(BaseCollector):
    """
    Collects certificates from Kubernetes TLS secrets.

    Configuration:
        kubeconfig: Path to kubeconfig (default: ~/.kube/config)
        context: Kubeconfig context (default: current-context)
        namespace: Single namespace to scan (default: all namespaces)
    """

    name = "k8s-secrets"
    description = "Extract certificates from Kubernetes TLS secrets"
    required_params = ()

    def __init__(self, client: HttpClient | None = None) -> None:
        self._client = client

    @property
    def client(self) -> HttpClient:
        if self._client is None:
            self._client = HttpClient.from_env()
        return self._client

    async def _api_get(
        self,
        access: ClusterAccess,
        context: ssl.SSLContext,
        path: str,
    ) -> dict[str, Any]:
        headers = {"Accept": "application/json"}
        if access.token:
            headers["Authorization"] = f"Bearer {access.token}"

        response = await self.client.fetch(
            "GET", f"{access.server}{path}", headers=headers, ssl_context=context
        )
        try:
            data = response.json()
        except ValueError as e:
            raise SourceError(self.name, f"Failed to parse response for {path}", e) from e
        if not response.ok or not isinstance(data, dict):
            message = data.get("message", "") if isinstance(data, dict) else ""
            raise SourceError(
                self.name, f"GET {path} returned HTTP {response.status} {message}".rstrip()
            )
        return data

    async def _list_namespaces(
        self,
        access: ClusterAccess,
        context: ssl.SSLContext,
    ) -> list[str]:
        try:
            data = await self._api_get(access, context, "/api/v1/namespaces")
        except TransportError as e:
            raise SourceError(self.name, "Failed to list namespaces", e) from e
        return [item["metadata"]["name"] for item in data.get("items") or []]

    async def _list_tls_secrets(
        self,
        access: ClusterAccess,
        context: ssl.SSLContext,
        namespace: str,
    ) -> list[dict[str, Any]]:
        path = f"/api/v1/namespaces/{quote(namespace, safe='')}/secrets?{TLS_SECRET_SELECTOR}"
        data = await self._api_get(access, context, path)
        return list(data.get("items") or [])

    def _parse_secret(
        self,
        secret: dict[str, Any],
        namespace: str,
        config: dict[str, Any],
    ) -> CertificateRecord:
        metadata = secret.get("metadata") or {}
        secret_name = metadata.get("name", "")
        encoded = (secret.get("data") or {}).get("tls.crt")
        if not encoded:
            raise DecodeError("secret has no tls.crt")

        decoded = decode_certificate(base64.b64decode(encoded))
        return self.record_from_decoded(
            decoded,
            config,
            fallback_id=secret_name,
            tags={
                "k8s_secret": secret_name,
                "k8s_namespace": metadata.get("namespace") or namespace,
            },
        )

    async def _gather(self, config: dict[str, Any]) -> list[ItemOutcome]:
        try:
            access = load_kubeconfig(config.get("kubeconfig"), config.get("context"))
            context = build_ssl_context(access)
        except (OSError, KeyError, ValueError, ssl.SSLError) as e:
            raise SourceError(self.name, "Cannot load kubeconfig", e) from e

        if config.get("namespace"):
            namespaces = [config["namespace"]]
        else:
            namespaces = await self._list_namespaces(access, context)

        outcomes: list[ItemOutcome] = []
        for namespace in namespaces:
            listing = await self.process_item_async(
                f"namespace/{namespace}",
                self._list_tls_secrets,
                access,
                context,
                namespace,
            )
            if listing.skipped:
                outcomes.append(listing)
                continue

            for index, secret in enumerate(listing.value):
                outcomes.append(
                    self.process_item(
                        f"{namespace}/{_secret_name(secret) or index}",
                        self._parse_secret,
                        secret,
                        namespace,
                        config,
                    )
                )

        return outcomes
