"""Write upstream results and proxy errors back to the caller."""

from fastapi import Response
from fastapi.responses import PlainTextResponse

from core.exceptions import AuthenticationError, ProxyError
from core.request_types import UpstreamResponse

FALLBACK_CONTENT_TYPE = "text/xml"


def relay_response(upstream: UpstreamResponse) -> Response:
    """Mirror the upstream status, content type and body."""
    # Passing the header explicitly keeps Starlette from appending a charset
    headers = {"content-type": upstream.content_type or FALLBACK_CONTENT_TYPE}
    # The body is relayed still encoded, so its encoding must travel with it
    if upstream.content_encoding:
        headers["content-encoding"] = upstream.content_encoding
    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        headers=headers,
    )


def error_response(error: ProxyError) -> PlainTextResponse:
    """Single plain-text response for a failed request."""
    if isinstance(error, AuthenticationError):
        message = str(error)
    else:
        message = f"Proxy error: {error}"
    return PlainTextResponse(message, status_code=error.status_code)
