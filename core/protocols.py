"""Shared protocol definitions."""

from typing import Protocol


class RequestLogger(Protocol):
    """Protocol for request logging (Dashboard, console)."""

    def log_incoming(self, method: str, path: str, headers: dict[str, str]) -> None: ...
    def log_rejected(self, status: int, reason: str) -> None: ...
    def log_forward(
        self,
        target: str,
        *,
        request_id: str,
        soap_action: str | None = None,
        verify: bool,
        subject: str = "",
    ) -> None: ...
    def log_response(
        self,
        target: str,
        status: int,
        elapsed: float,
        *,
        request_id: str,
        preview: str | None = None,
    ) -> None: ...
    def log_error(self, route: str, status: int, message: str) -> None: ...
