"""Real-time CLI dashboard for proxy monitoring."""

from datetime import datetime
from threading import Lock

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.config import ProxyConfig
from ui.log_utils import format_headers, write_cli_log

console = Console()


class ForwardInfo:
    """Info about a single forwarded request."""

    def __init__(
        self,
        request_id: str,
        target: str,
        soap_action: str | None,
        verify: bool,
        subject: str,
    ):
        self.request_id = request_id
        self.target = target
        self.soap_action = soap_action or ""
        self.verify = verify
        self.subject = subject[:60] + "..." if len(subject) > 60 else subject
        self.status: int | None = None
        self.elapsed: float | None = None
        self.timestamp = datetime.now()


class Dashboard:
    """Real-time dashboard showing recent forwards and errors."""

    def __init__(self, config: ProxyConfig):
        self.config = config
        self._lock = Lock()
        self._recent: list[ForwardInfo] = []
        self._max_recent = 8
        self._counts = {"forwarded": 0, "rejected": 0, "failed": 0}
        self._errors: list[str] = []
        self._live: Live | None = None

    def start(self) -> "Dashboard":
        """Start the live dashboard."""
        self._live = Live(
            self._build_layout(),
            console=console,
            refresh_per_second=4,
            screen=False,
        )
        self._live.start()
        return self

    def stop(self) -> None:
        """Stop the live dashboard."""
        if self._live:
            self._live.stop()

    def log_incoming(self, method: str, path: str, headers: dict[str, str]) -> None:
        if self.config.proxy.debug:
            write_cli_log("INCOMING", f"{method} {path}", headers=format_headers(headers))
        else:
            write_cli_log("INCOMING", f"{method} {path}")

    def log_rejected(self, status: int, reason: str) -> None:
        with self._lock:
            self._counts["rejected"] += 1
            self._refresh()
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
        """Record a request about to be dispatched."""
        with self._lock:
            self._recent.insert(0, ForwardInfo(request_id, target, soap_action, verify, subject))
            self._recent = self._recent[: self._max_recent]
            self._refresh()
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
        """Record the upstream answer on the row of the forward it belongs to."""
        with self._lock:
            self._counts["forwarded"] += 1
            for info in self._recent:
                if info.request_id == request_id:
                    info.status = status
                    info.elapsed = elapsed
                    break
            self._refresh()
        write_cli_log(
            "RESPONSE", target, id=request_id, status=status, elapsed=f"{elapsed:.3f}s"
        )
        if preview is not None:
            write_cli_log("BODY", preview.replace("\n", " "))

    def log_error(self, route: str, status: int, message: str) -> None:
        """Log an error."""
        with self._lock:
            self._counts["failed"] += 1
            truncated = message[:60] + "..." if len(message) > 60 else message
            self._errors.insert(0, f"{route} {status}: {truncated}")
            self._errors = self._errors[:3]
            self._refresh()
        write_cli_log("ERROR", message[:200], route=route, status=status)

    def _refresh(self) -> None:
        """Refresh the display."""
        if self._live:
            self._live.update(self._build_layout())

    def _build_layout(self) -> Layout:
        """Build the dashboard layout."""
        layout = Layout()

        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="body"),
            Layout(name="footer", size=5),
        )

        layout["header"].update(self._build_header())
        layout["body"].update(self._build_recent_panel())
        layout["footer"].update(self._build_footer())

        return layout

    def _build_header(self) -> Panel:
        """Build header with stats."""
        stats = Text()
        stats.append("mTLS Forward Proxy", style="bold cyan")
        stats.append("  |  ")
        stats.append(f"Forwarded: {self._counts['forwarded']}", style="green")
        stats.append("  |  ")
        stats.append(f"Rejected: {self._counts['rejected']}", style="yellow")
        stats.append("  |  ")
        stats.append(f"Failed: {self._counts['failed']}", style="red")
        stats.append("  |  ")
        stats.append(f"Port: {self.config.proxy.port}", style="dim")

        return Panel(stats, style="cyan")

    def _build_recent_panel(self) -> Panel:
        """Build the recent forwards table."""
        if self._recent:
            table = Table(show_header=True, header_style="bold", expand=True, box=None)
            table.add_column("Time", style="dim", width=8)
            table.add_column("Target", ratio=2)
            table.add_column("Action", ratio=2)
            table.add_column("Client", ratio=2)
            table.add_column("Verify", width=6)
            table.add_column("Status", width=6)
            table.add_column("Elapsed", width=8)

            for info in self._recent:
                status = "[dim]…[/dim]" if info.status is None else str(info.status)
                elapsed = "" if info.elapsed is None else f"{info.elapsed:.2f}s"
                table.add_row(
                    info.timestamp.strftime("%H:%M:%S"),
                    escape(info.target),
                    escape(info.soap_action[:40]),
                    escape(info.subject),
                    "yes" if info.verify else "no",
                    status,
                    elapsed,
                )

            content = table
        else:
            content = Text("Waiting for requests...", style="dim")

        return Panel(content, title="[blue]Recent forwards[/blue]", border_style="blue")

    def _build_footer(self) -> Panel:
        """Build footer with errors and help."""
        if self._errors:
            error_text = Text()
            for err in self._errors:
                error_text.append("! ", style="red bold")
                error_text.append(err + "\n", style="red")
            content = error_text
        else:
            content = Text(
                f"POST to http://localhost:{self.config.proxy.port} "
                f"with the {self.config.proxy.secret_header} header",
                style="dim",
            )

        return Panel(content, title="[dim]Status[/dim]", border_style="dim")
