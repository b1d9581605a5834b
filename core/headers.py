"""Header construction for upstream requests and log redaction."""

import re
from collections.abc import Mapping

from core.exceptions import MalformedRequestError

DEFAULT_CONTENT_TYPE = "text/xml; charset=utf-8"
JSON_CONTENT_TYPE = "application/json"

SENSITIVE_MARKERS = ("secret", "key", "authorization", "password")

# Field values go out as ISO-8859-1; control characters other than tab are refused
_UNSENDABLE = re.compile(r"[^\t\x20-\x7e\x80-\xff]")


class HeaderBuilder:
    """Build the outbound header set for a forward request."""

    def build_outbound_headers(
        self,
        content_type: str,
        soap_action: str | None = None,
        authorization: str | None = None,
    ) -> dict[str, str]:
        """Content-Type always; optional headers only when supplied."""
        headers: dict[str, str] = {"Content-Type": content_type}
        if soap_action:
            headers["SOAPAction"] = soap_action
        if authorization:
            headers["Authorization"] = authorization
        for name, value in headers.items():
            if _UNSENDABLE.search(value):
                raise MalformedRequestError(f"{name} header contains characters that cannot be sent")
        return headers


def encode_headers(headers: Mapping[str, str]) -> list[tuple[bytes, bytes]]:
    """Encode outbound headers for the wire, values as ISO-8859-1."""
    return [(name.encode("ascii"), value.encode("latin-1")) for name, value in headers.items()]


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Mask header values that may carry credentials."""
    redacted = {}
    for key, value in headers.items():
        if any(marker in key.lower() for marker in SENSITIVE_MARKERS):
            redacted[key] = "***"
        else:
            redacted[key] = value
    return redacted
