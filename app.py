"""FastAPI application factory."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response

from api.handlers import handle_forward
from core.config import ProxyConfig
from core.descriptor import DescriptorBuilder
from core.gate import InboundGate
from core.headers import HeaderBuilder
from core.protocols import RequestLogger
from services.forwarding_service import ForwardingService
from services.upstream import UpstreamClient


def create_app(config: ProxyConfig, logger: RequestLogger) -> FastAPI:
    """Create and configure the FastAPI application."""
    gate = InboundGate(config.proxy.shared_secret, config.proxy.secret_header)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Only immutable collaborators live here; TLS clients are built per request
        app.state.forwarding_service = ForwardingService(
            builder=DescriptorBuilder(
                HeaderBuilder(),
                verify_default=config.upstream.verify_certificate,
            ),
            upstream=UpstreamClient(
                timeout=config.upstream.timeout,
                ca_bundle=config.upstream.ca_bundle,
            ),
            logger=logger,
            debug=config.proxy.debug,
        )
        yield

    app = FastAPI(
        title="mTLS Forward Proxy",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    async def forward(request: Request) -> Response:
        return await handle_forward(request, gate, logger, config.proxy.max_body_size)

    # A plain Starlette route with no method list matches every method,
    # so the gate answers 405 for TRACE, PROPFIND and the like too
    app.add_route("/{path:path}", forward, include_in_schema=False)

    return app
