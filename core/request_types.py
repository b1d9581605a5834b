"""Shared request data types."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class TargetUrl:
    """Parsed upstream address."""

    url: str
    scheme: str
    host: str
    port: int
    path: str

    @property
    def authority(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class OutboundRequest:
    """Everything the dispatcher sends upstream; carries no credentials."""

    target: TargetUrl
    headers: dict[str, str]
    content: bytes
    verify_certificate: bool


@dataclass(frozen=True)
class ForwardRequestDescriptor:
    """One inbound forward request, validated and normalized."""

    outbound: OutboundRequest
    bundle_data: str = field(repr=False)
    bundle_password: str = field(repr=False)

    @property
    def target(self) -> TargetUrl:
        return self.outbound.target


@dataclass(frozen=True)
class CertificateMaterial:
    """PEM-encoded client identity decoded from a bundle."""

    private_key_pem: bytes = field(repr=False)
    certificate_pem: bytes
    subject: str = ""
    extra_certificates: int = 0


@dataclass(frozen=True)
class UpstreamResponse:
    """Fully buffered upstream response."""

    status_code: int
    headers: dict[str, str]
    content: bytes
    elapsed: float = 0.0

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def content_encoding(self) -> str | None:
        return self.headers.get("content-encoding")
