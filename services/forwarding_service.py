"""Forwarding orchestration for accepted requests."""

from uuid import uuid4

from starlette.concurrency import run_in_threadpool

from core.bundle import decode_bundle
from core.descriptor import DescriptorBuilder
from core.protocols import RequestLogger
from core.request_types import UpstreamResponse
from services.upstream import UpstreamClient

PREVIEW_CHARS = 500


class ForwardingService:
    """Descriptor -> bundle -> TLS identity -> upstream, for one request."""

    def __init__(
        self,
        builder: DescriptorBuilder,
        upstream: UpstreamClient,
        logger: RequestLogger,
        *,
        debug: bool = False,
    ) -> None:
        self._builder = builder
        self._upstream = upstream
        self._logger = logger
        self._debug = debug

    async def forward(self, raw_body: bytes) -> UpstreamResponse:
        descriptor = self._builder.build(raw_body)
        target = descriptor.target.authority
        request_id = uuid4().hex[:8]

        # PKCS#12 decryption and context loading are blocking
        material = await run_in_threadpool(
            decode_bundle, descriptor.bundle_data, descriptor.bundle_password
        )
        outbound = descriptor.outbound
        self._logger.log_forward(
            target,
            request_id=request_id,
            soap_action=outbound.headers.get("SOAPAction"),
            verify=outbound.verify_certificate,
            subject=material.subject,
        )
        context = await run_in_threadpool(self._upstream.build_context, outbound, material)
        response = await self._upstream.dispatch(outbound, context)

        preview = None
        if self._debug:
            preview = response.content[:PREVIEW_CHARS].decode("utf-8", errors="replace")
        self._logger.log_response(
            target,
            response.status_code,
            response.elapsed,
            request_id=request_id,
            preview=preview,
        )
        return response
