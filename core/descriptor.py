"""Parse inbound request bodies into forward request descriptors."""

import json
from typing import Any

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from core.exceptions import InvalidJSON, MalformedRequestError
from core.headers import DEFAULT_CONTENT_TYPE, JSON_CONTENT_TYPE, HeaderBuilder
from core.request_types import ForwardRequestDescriptor, OutboundRequest, TargetUrl

DEFAULT_HTTPS_PORT = 443


class ForwardRequestBody(BaseModel):
    """Wire shape of the inbound JSON document.

    ``pfxBase64``/``pfxPassword`` are accepted for callers written against the
    first version of the gateway.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    target_url: str = Field(
        min_length=1, validation_alias=AliasChoices("targetUrl", "target_url")
    )
    bundle_data: str = Field(
        min_length=1,
        repr=False,
        validation_alias=AliasChoices("bundleData", "pfxBase64"),
    )
    bundle_password: str = Field(
        min_length=1,
        repr=False,
        validation_alias=AliasChoices("bundlePassword", "pfxPassword"),
    )
    payload: Any = None
    body: Any = None
    content_type: str | None = Field(default=None, validation_alias="contentType")
    soap_action: str | None = Field(default=None, validation_alias="soapAction")
    authorization: str | None = None
    verify_upstream_certificate: bool | None = Field(
        default=None, validation_alias="verifyUpstreamCertificate"
    )


class DescriptorBuilder:
    """Build a ForwardRequestDescriptor from a raw inbound body."""

    def __init__(
        self,
        header_builder: HeaderBuilder,
        verify_default: bool | None = None,
    ) -> None:
        self._headers = header_builder
        self._verify_default = verify_default

    def build(self, raw_body: bytes) -> ForwardRequestDescriptor:
        data = self._parse_json(raw_body)
        try:
            request = ForwardRequestBody.model_validate(data)
        except ValidationError as e:
            raise MalformedRequestError(_describe(e)) from None

        target = parse_target_url(request.target_url)
        content, resolved_type = resolve_body(request.payload, request.body)
        headers = self._headers.build_outbound_headers(
            request.content_type or resolved_type,
            soap_action=request.soap_action,
            authorization=request.authorization,
        )

        verify = request.verify_upstream_certificate
        if verify is None:
            verify = self._verify_default
        if verify is None:
            raise MalformedRequestError(
                "verifyUpstreamCertificate must be set (no default is configured)"
            )

        return ForwardRequestDescriptor(
            outbound=OutboundRequest(
                target=target,
                headers=headers,
                content=content,
                verify_certificate=verify,
            ),
            bundle_data=request.bundle_data,
            bundle_password=request.bundle_password,
        )

    @staticmethod
    def _parse_json(raw_body: bytes) -> dict[str, Any]:
        try:
            data = json.loads(raw_body)
        except ValueError as e:
            raise InvalidJSON(f"Invalid JSON: {e}") from None
        if not isinstance(data, dict):
            raise MalformedRequestError("Request body must be a JSON object")
        return data


def parse_target_url(raw: str) -> TargetUrl:
    """Split an absolute https URL into its parts."""
    try:
        url = httpx.URL(raw)
    except httpx.InvalidURL:
        raise MalformedRequestError("targetUrl is not a valid URL") from None
    if url.scheme != "https" or not url.host:
        raise MalformedRequestError("targetUrl must be an absolute https URL")
    return TargetUrl(
        url=str(url),
        scheme=url.scheme,
        host=url.host,
        port=url.port or DEFAULT_HTTPS_PORT,
        path=url.raw_path.decode("ascii"),
    )


def resolve_body(payload: Any, body: Any) -> tuple[bytes, str]:
    """Normalize the supported body conventions to bytes plus a content type.

    A string ``payload`` or ``body`` is sent verbatim; anything else is
    serialized as JSON.
    """
    if payload is not None and body is not None:
        raise MalformedRequestError("Only one of payload or body may be supplied")
    value = payload if payload is not None else body
    if value is None:
        return b"", DEFAULT_CONTENT_TYPE
    if isinstance(value, str):
        return _encode_text(value), DEFAULT_CONTENT_TYPE
    text = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return _encode_text(text), JSON_CONTENT_TYPE


def _encode_text(text: str) -> bytes:
    # JSON allows lone surrogates, UTF-8 does not
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError:
        raise MalformedRequestError("payload is not valid UTF-8 text") from None


def _describe(error: ValidationError) -> str:
    """Summarize validation errors without echoing input values."""
    parts = []
    for err in error.errors():
        field = ".".join(str(p) for p in err["loc"]) or "body"
        parts.append(f"{field}: {err['msg']}")
    return "Invalid request: " + "; ".join(parts)
