"""
HTTPS transport for certscope network collectors.

Provides a small blocking HTTP client (http.client) with an async wrapper,
a TLS peer-certificate probe for live endpoints, and the proxy routing
convention every network collector shares: when HTTPS_PROXY or HTTP_PROXY
is set, requests are sent to the proxy with the absolute URL as the request
target, and basic proxy credentials are injected when present.
"""

from __future__ import annotations

import asyncio
import base64
import http.client
import json
import logging
import os
import ssl
from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.parse import unquote, urlsplit

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_PROBE_TIMEOUT = 10.0


class TransportError(OSError):
    """Connection-level failure talking to a remote endpoint."""

    pass


class TransportTimeout(TransportError):
    """A network operation did not complete within its timeout."""

    pass


@dataclass(frozen=True)
class ProxySettings:
    """
    Outbound proxy configuration.

    Attributes:
        url: Proxy URL, optionally carrying user:password credentials
        no_proxy: Hosts (or domain suffixes) that bypass the proxy
    """

    url: str
    no_proxy: tuple[str, ...] = ()

    @property
    def scheme(self) -> str:
        return urlsplit(self.url).scheme or "http"

    @property
    def host(self) -> str:
        return urlsplit(self.url).hostname or ""

    @property
    def port(self) -> int:
        parts = urlsplit(self.url)
        if parts.port:
            return parts.port
        return 443 if parts.scheme == "https" else 80

    @property
    def username(self) -> str:
        return unquote(urlsplit(self.url).username or "")

    @property
    def password(self) -> str:
        return unquote(urlsplit(self.url).password or "")

    def authorization_header(self) -> str | None:
        """Basic Proxy-Authorization value, or None without credentials."""
        if not (self.username and self.password):
            return None
        token = base64.b64encode(
            f"{self.username}:{self.password}".encode("utf-8")
        ).decode("ascii")
        return f"Basic {token}"

    def bypasses(self, host: str) -> bool:
        """Check whether a host is excluded from proxying."""
        host = host.lower()
        for entry in self.no_proxy:
            entry = entry.strip().lower().lstrip(".")
            if not entry:
                continue
            if entry == "*" or host == entry or host.endswith(f".{entry}"):
                return True
        return False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ProxySettings | None:
        """
        Read proxy settings from the environment.

        Environment variables:
            HTTPS_PROXY / https_proxy: Preferred proxy URL
            HTTP_PROXY / http_proxy: Fallback proxy URL
            NO_PROXY / no_proxy: Comma-separated bypass list

        Returns:
            ProxySettings, or None when no proxy is configured
        """
        env = os.environ if environ is None else environ
        url = (
            env.get("HTTPS_PROXY")
            or env.get("https_proxy")
            or env.get("HTTP_PROXY")
            or env.get("http_proxy")
        )
        if not url:
            return None
        no_proxy = env.get("NO_PROXY") or env.get("no_proxy") or ""
        return cls(
            url=url,
            no_proxy=tuple(h for h in no_proxy.split(",") if h.strip()),
        )

    def __repr__(self) -> str:
        return f"ProxySettings(host={self.host!r}, port={self.port})"


@dataclass(frozen=True)
class Route:
    """
    Where and how to send one request.

    Attributes:
        scheme: Scheme of the connection actually opened
        host: Host to connect to (target or proxy)
        port: Port to connect to
        target: Request target placed on the request line
        headers: Headers the route requires (Host, Proxy-Authorization)
    """

    scheme: str
    host: str
    port: int
    target: str
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def via_proxy(self) -> bool:
        return "Host" in self.headers


def plan_route(url: str, proxy: ProxySettings | None = None) -> Route:
    """
    Work out the connection and request target for a URL.

    Args:
        url: Absolute target URL
        proxy: Proxy to route through, if any

    Returns:
        Route describing the connection
    """
    parts = urlsplit(url)
    scheme = parts.scheme or "https"
    host = parts.hostname or ""
    port = parts.port or (443 if scheme == "https" else 80)

    if proxy is None or proxy.bypasses(host):
        target = parts.path or "/"
        if parts.query:
            target = f"{target}?{parts.query}"
        return Route(scheme=scheme, host=host, port=port, target=target)

    headers = {"Host": f"{host}:{parts.port}" if parts.port else host}
    auth = proxy.authorization_header()
    if auth:
        headers["Proxy-Authorization"] = auth

    return Route(
        scheme=proxy.scheme,
        host=proxy.host,
        port=proxy.port,
        target=url,
        headers=headers,
    )


@dataclass
class HttpResponse:
    """Response status, headers and raw body bytes."""

    status: int
    headers: dict[str, str]
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON (raises ValueError when malformed)."""
        return json.loads(self.body or b"null")


class HttpClient:
    """
    Minimal HTTPS client honouring the proxy convention.

    Blocking calls go through http.client; fetch() runs them in a worker
    thread so collectors can await them.
    """

    def __init__(
        self,
        proxy: ProxySettings | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            proxy: Proxy settings (default: none)
            timeout: Socket timeout in seconds
            ssl_context: Context for TLS connections (default: system trust)
        """
        self._proxy = proxy
        self._timeout = timeout
        self._ssl_context = ssl_context

    @classmethod
    def from_env(cls, timeout: float = DEFAULT_TIMEOUT) -> HttpClient:
        """Create a client using proxy settings from the environment."""
        return cls(proxy=ProxySettings.from_env(), timeout=timeout)

    @property
    def proxy(self) -> ProxySettings | None:
        return self._proxy

    @property
    def timeout(self) -> float:
        return self._timeout

    def request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None = None,
        body: bytes | str | None = None,
        ssl_context: ssl.SSLContext | None = None,
    ) -> HttpResponse:
        """
        Perform one HTTP exchange.

        Args:
            method: HTTP method
            url: Absolute URL
            headers: Request headers
            body: Request body
            ssl_context: Per-request TLS context override

        Returns:
            HttpResponse (any status code)

        Raises:
            TransportTimeout: If the socket times out
            TransportError: On any other connection failure
        """
        route = plan_route(url, self._proxy)
        context = ssl_context or self._ssl_context

        if route.scheme == "https":
            conn: http.client.HTTPConnection = http.client.HTTPSConnection(
                route.host, route.port, timeout=self._timeout, context=context
            )
        else:
            conn = http.client.HTTPConnection(
                route.host, route.port, timeout=self._timeout
            )

        if isinstance(body, str):
            body = body.encode("utf-8")

        request_headers = {**route.headers, **(headers or {})}
        logger.debug(f"{method} {url} via {route.host}:{route.port}")

        try:
            conn.request(method, route.target, body=body, headers=request_headers)
            response = conn.getresponse()
            data = response.read()
            return HttpResponse(
                status=response.status,
                headers={k.lower(): v for k, v in response.getheaders()},
                body=data,
            )
        except TimeoutError as e:
            raise TransportTimeout(
                f"{method} {url} timed out after {self._timeout:g}s"
            ) from e
        except (OSError, http.client.HTTPException) as e:
            raise TransportError(f"{method} {url} failed: {e}") from e
        finally:
            conn.close()

    async def fetch(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None = None,
        body: bytes | str | None = None,
        ssl_context: ssl.SSLContext | None = None,
    ) -> HttpResponse:
        """Async variant of request(), run in a worker thread."""
        return await asyncio.to_thread(
            self.request, method, url, headers, body, ssl_context
        )


def _probe_context() -> ssl.SSLContext:
    # Inventory wants whatever the endpoint serves, trusted or not.
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


async def _open_tunnel(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    host: str,
    port: int,
    proxy: ProxySettings,
) -> None:
    lines = [f"CONNECT {host}:{port} HTTP/1.1", f"Host: {host}:{port}"]
    auth = proxy.authorization_header()
    if auth:
        lines.append(f"Proxy-Authorization: {auth}")
    writer.write(("\r\n".join(lines) + "\r\n\r\n").encode("ascii"))
    await writer.drain()

    status_line = await reader.readline()
    parts = status_line.decode("latin-1").split(None, 2)
    if len(parts) < 2 or parts[1] != "200":
        raise TransportError(
            f"Proxy refused tunnel to {host}:{port}: {status_line.decode('latin-1').strip()}"
        )
    while True:
        line = await reader.readline()
        if line in (b"\r\n", b"\n", b""):
            break


async def _handshake(
    host: str,
    port: int,
    server_name: str,
    proxy: ProxySettings | None,
) -> bytes:
    context = _probe_context()

    if proxy is None or proxy.bypasses(host):
        reader, writer = await asyncio.open_connection(
            host, port, ssl=context, server_hostname=server_name
        )
    else:
        proxy_ssl = ssl.create_default_context() if proxy.scheme == "https" else None
        reader, writer = await asyncio.open_connection(
            proxy.host, proxy.port, ssl=proxy_ssl
        )
        try:
            await _open_tunnel(reader, writer, host, port, proxy)
            await writer.start_tls(context, server_hostname=server_name)
        except BaseException:
            writer.close()
            raise

    try:
        ssl_object = writer.get_extra_info("ssl_object")
        der = ssl_object.getpeercert(binary_form=True) if ssl_object else None
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug(f"Error closing connection to {host}:{port}: {e}")

    if not der:
        raise TransportError(f"No peer certificate presented by {host}:{port}")
    return der


async def probe_peer_certificate(
    host: str,
    port: int = 443,
    timeout: float = DEFAULT_PROBE_TIMEOUT,
    server_name: str | None = None,
    proxy: ProxySettings | None = None,
) -> bytes:
    """
    Complete a TLS handshake and return the peer's leaf certificate.

    Certificate verification is disabled so expired or self-signed
    endpoints are still inventoried.

    Args:
        host: Endpoint host name or address
        port: Endpoint port
        timeout: Seconds to wait for the certificate
        server_name: SNI name (default: host)
        proxy: Proxy to tunnel through with CONNECT

    Returns:
        DER-encoded peer certificate

    Raises:
        TransportTimeout: If no certificate arrives within the timeout
        TransportError: On connection or handshake failure
    """
    try:
        return await asyncio.wait_for(
            _handshake(host, port, server_name or host, proxy), timeout
        )
    except TimeoutError as e:
        raise TransportTimeout(
            f"Timed out after {timeout:g}s waiting for a certificate from {host}:{port}"
        ) from e
    except TransportError:
        raise
    except OSError as e:
        raise TransportError(f"TLS handshake with {host}:{port} failed: {e}") from e
