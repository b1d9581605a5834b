"""Plain line-per-event logger for headless runs."""

from rich.console import Console
from rich.markup import escape

from core.config import ProxyConfig
from ui.log_utils import format_headers, write_cli_log

console = Console()


class ConsoleLog:
    """RequestLogger that prints one line per event instead of a live layout."""

    def __init__(self, config: ProxyConfig, out: Console | None = None):
        self.config = config
        self._console = out or console

    def log_incoming(self, method: str, path: str, headers: dict[str, str]) -> None:
        self._console.print(f"[dim][Proxy][/dim] {method} {escape(path)}", highlight=False)
        if self.config.proxy.debug:
            self._console.print(
                "        " + format_headers(headers), style="dim", highlight=False, markup=False
            )
        write_cli_log("INCOMING", f"{method} {path}")

    def log_rejected(self, status: int, reason: str) -> None:
        self._console.print(f"[yellow][Proxy] {status}[/yellow] {escape(reason)}", highlight=False)
        write_cli_log("REJECTED", reason, status=status)

    def log_forward(
        self,
        target: str,
        *,
        request_id: str,
        soap_action: str | None = None,
        verify: bool,
        subject: str = "",
    ) -> None:
        line = f"[cyan][Proxy][/cyan] Connecting to {escape(target)}"
        if soap_action:
            line += f" (SOAPAction: {escape(soap_action)})"
        if not verify:
            line += " [yellow]upstream certificate not verified[/yellow]"
        self._console.print(line, highlight=False)
        write_cli_log(
            "FORWARD",
            target,
            id=request_id,
            soap_action=soap_action,
            verify=verify,
            subject=subject or None,
        )

    def log_response(
        self,
        target: str,
        status: int,
        elapsed: float,
        *,
        request_id: str,
        preview: str | None = None,
    ) -> None:
        style = "green" if status < 400 else "yellow"
        self._console.print(
            f"[{style}][Proxy] {status}[/{style}] from {escape(target)} in {elapsed:.3f}s",
            highlight=False,
        )
        write_cli_log(
            "RESPONSE", target, id=request_id, status=status, elapsed=f"{elapsed:.3f}s"
        )
        if preview is not None:
            self._console.print("        " + preview, style="dim", highlight=False, markup=False)
            write_cli_log("BODY", preview.replace("\n", " "))

    def log_error(self, route: str, status: int, message: str) -> None:
        self._console.print(f"[red][Proxy] {status}[/red] {route}: {escape(message)}", highlight=False)
        write_cli_log("ERROR", message[:200], route=route, status=status)
