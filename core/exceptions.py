"""Custom exception hierarchy for the mTLS forwarding proxy.

Every error carries the HTTP status it is surfaced with, and ``str(exc)`` is
always safe to show the caller: bundle contents and passwords never end up in
an exception message.
"""


class ProxyError(Exception):
    """Base exception for all proxy errors."""

    status_code: int = 500


class ConfigurationError(ProxyError):
    """Raised when configuration is missing or invalid."""


class AuthenticationError(ProxyError):
    """Inbound request rejected before its body is read."""


class MethodNotAllowed(AuthenticationError):
    status_code = 405

    def __init__(self, message: str = "Method Not Allowed") -> None:
        super().__init__(message)


class Forbidden(AuthenticationError):
    status_code = 403

    def __init__(self, message: str = "Forbidden: Invalid proxy secret") -> None:
        super().__init__(message)


class MalformedRequestError(ProxyError):
    """Request body is not a valid forward request."""


class RequestTooLarge(MalformedRequestError):
    """Request body exceeds size limit."""

    status_code = 413


class InvalidJSON(MalformedRequestError):
    """Request body is not valid JSON."""


class CredentialExtractionError(ProxyError):
    """Key material could not be extracted from the certificate bundle."""

    def __init__(self, message: str = "could not extract key or certificate") -> None:
        super().__init__(message)


class BundleEncodingError(CredentialExtractionError):
    def __init__(self) -> None:
        super().__init__("could not extract key or certificate: bundle is not valid base64")


class BundleDecryptionError(CredentialExtractionError):
    def __init__(self) -> None:
        super().__init__(
            "could not extract key or certificate: wrong password or corrupt bundle"
        )


class KeyOrCertificateNotFound(CredentialExtractionError):
    def __init__(self) -> None:
        super().__init__("could not extract key or certificate: key or certificate not found")


class DispatchError(ProxyError):
    """Raised when the upstream exchange fails at the transport level.

    Attributes:
        message: Error message (network reason, no caller secrets)
        target: Upstream host the request was addressed to (optional)
    """

    status_code = 502

    def __init__(self, message: str, target: str | None = None) -> None:
        super().__init__(message)
        self.target = target


class UpstreamConnectionError(DispatchError):
    """Raised when unable to connect to the upstream (DNS, refused, reset)."""


class UpstreamTimeoutError(DispatchError):
    """Raised when the upstream request times out."""


class UpstreamTLSError(DispatchError):
    """TLS handshake failed, or the client identity was rejected."""


class UpstreamCertificateError(UpstreamTLSError):
    """Upstream certificate chain failed validation."""
