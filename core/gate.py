"""Inbound gate - method and shared-secret checks."""

import hmac
from collections.abc import Mapping
from dataclasses import dataclass

from core.exceptions import AuthenticationError, Forbidden, MethodNotAllowed

SUBMISSION_METHOD = "POST"


@dataclass(frozen=True)
class GateDecision:
    """Outcome of the inbound checks."""

    accepted: bool
    error: AuthenticationError | None = None


class InboundGate:
    """Decide whether an inbound request may be forwarded.

    Only the method and headers are inspected; the body is never touched here.
    """

    def __init__(self, secret: str, header_name: str) -> None:
        if not secret:
            raise ValueError("shared secret must not be empty")
        self._secret = secret.encode()
        self._header = header_name.lower()

    def check(self, method: str, headers: Mapping[str, str]) -> GateDecision:
        if method != SUBMISSION_METHOD:
            return GateDecision(accepted=False, error=MethodNotAllowed())
        supplied = self._lookup(headers)
        if supplied is None or not hmac.compare_digest(supplied.encode(), self._secret):
            return GateDecision(accepted=False, error=Forbidden())
        return GateDecision(accepted=True)

    def _lookup(self, headers: Mapping[str, str]) -> str | None:
        # Starlette headers are case-insensitive already; plain dicts are not
        value = headers.get(self._header)
        if value is not None:
            return value
        for key, candidate in headers.items():
            if key.lower() == self._header:
                return candidate
        return None
