"""FastAPI route handlers."""

from fastapi import Request, Response

from core.exceptions import ProxyError, RequestTooLarge
from core.gate import InboundGate
from core.headers import redact_headers
from core.protocols import RequestLogger
from services.forwarding_service import ForwardingService
from services.relay import error_response, relay_response


async def _read_body(request: Request, max_size: int) -> bytes:
    """Read the full inbound body, enforcing the size limit."""
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_size:
        raise RequestTooLarge("Request body too large")
    raw_body = await request.body()
    if len(raw_body) > max_size:
        raise RequestTooLarge("Request body too large")
    return raw_body


async def handle_forward(
    request: Request,
    gate: InboundGate,
    logger: RequestLogger,
    max_body_size: int,
) -> Response:
    """Gate, forward and relay a single inbound request."""
    logger.log_incoming(request.method, request.url.path, redact_headers(request.headers))

    decision = gate.check(request.method, request.headers)
    if not decision.accepted:
        logger.log_rejected(decision.error.status_code, str(decision.error))
        return error_response(decision.error)

    service: ForwardingService = request.app.state.forwarding_service
    try:
        raw_body = await _read_body(request, max_body_size)
        upstream = await service.forward(raw_body)
    except ProxyError as e:
        logger.log_error(type(e).__name__, e.status_code, str(e))
        return error_response(e)

    return relay_response(upstream)
