"""Outbound mutual-TLS dispatch."""

import ssl
import time

import httpx

from core.exceptions import (
    DispatchError,
    UpstreamCertificateError,
    UpstreamConnectionError,
    UpstreamTimeoutError,
    UpstreamTLSError,
)
from core.headers import encode_headers
from core.request_types import CertificateMaterial, OutboundRequest, UpstreamResponse
from core.tls import build_client_context

SUBMISSION_METHOD = "POST"

# Upstream bodies are relayed as sent, so compression is never requested
CLIENT_HEADERS = {"Accept-Encoding": "identity"}


class UpstreamClient:
    """Send one forward request per call over a freshly built TLS identity.

    No connection pool is shared between calls: each request may present a
    different client certificate.
    """

    def __init__(self, timeout: float = 30.0, ca_bundle: str | None = None) -> None:
        self._timeout = httpx.Timeout(timeout)
        self._ca_bundle = ca_bundle

    def build_context(
        self,
        outbound: OutboundRequest,
        material: CertificateMaterial,
    ) -> ssl.SSLContext:
        return build_client_context(material, outbound.verify_certificate, self._ca_bundle)

    async def dispatch(
        self,
        outbound: OutboundRequest,
        context: ssl.SSLContext,
    ) -> UpstreamResponse:
        """POST the outbound request and buffer the full response."""
        target = outbound.target
        started = time.monotonic()
        try:
            async with httpx.AsyncClient(
                verify=context,
                timeout=self._timeout,
                headers=CLIENT_HEADERS,
                follow_redirects=False,
                trust_env=False,
            ) as client:
                async with client.stream(
                    SUBMISSION_METHOD,
                    target.url,
                    content=outbound.content,
                    headers=encode_headers(outbound.headers),
                ) as response:
                    # Raw bytes: no Content-Encoding is undone on the way back
                    content = b"".join([chunk async for chunk in response.aiter_raw()])
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(
                f"Upstream timeout: {_reason(e)}", target=target.authority
            ) from e
        except httpx.RequestError as e:
            raise classify_transport_error(e, target.authority) from e

        return UpstreamResponse(
            status_code=response.status_code,
            headers=dict(response.headers.items()),
            content=content,
            elapsed=time.monotonic() - started,
        )


def classify_transport_error(error: httpx.RequestError, target: str) -> DispatchError:
    """Map an httpx transport failure onto the dispatch error classes."""
    cause = _ssl_cause(error)
    if isinstance(cause, ssl.SSLCertVerificationError):
        detail = getattr(cause, "verify_message", None) or str(cause)
        return UpstreamCertificateError(
            f"TLS validation failed: {detail}", target=target
        )
    if cause is not None:
        return UpstreamTLSError(
            f"TLS handshake failed: {getattr(cause, 'reason', None) or cause}", target=target
        )
    return UpstreamConnectionError(
        f"Upstream connection error: {_reason(error)}", target=target
    )


def _ssl_cause(error: BaseException) -> ssl.SSLError | None:
    """Find an SSLError in the exception chain, if any."""
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        if isinstance(current, ssl.SSLError):
            return current
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return None


def _reason(error: Exception) -> str:
    return str(error) or type(error).__name__
