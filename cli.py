"""CLI entry point for mtls-forward-proxy."""

import sys
from datetime import datetime

from rich.console import Console

from app import create_app
from core.config import ProxyConfig, load_config
from core.exceptions import ConfigurationError
from ui.console_log import ConsoleLog
from ui.dashboard import Dashboard
from ui.log_utils import CLI_LOG_FILE, clear_logs, write_cli_log

console = Console()


def main():
    """Main CLI entry point."""
    args = sys.argv[1:]

    if "--help" in args or "-h" in args:
        _print_help()
        return

    try:
        config = load_config()
    except ConfigurationError as e:
        console.print(f"[red][ERROR][/red] {e}")
        sys.exit(1)

    if "--config" in args:
        _print_config(config)
        return

    headless = "--headless" in args or not console.is_terminal

    import uvicorn

    clear_logs()
    logger = ConsoleLog(config) if headless else Dashboard(config)
    app = create_app(config, logger)

    uvicorn_config = uvicorn.Config(
        app,
        host=config.proxy.host,
        port=config.proxy.port,
        log_level="warning",
    )
    server = uvicorn.Server(uvicorn_config)

    if isinstance(logger, Dashboard):
        logger.start()
    else:
        console.print(f"[Proxy] mTLS Proxy listening on port {config.proxy.port}", highlight=False)
    start_time = datetime.now()
    write_cli_log("STARTUP", "Proxy started", port=config.proxy.port)
    try:
        server.run()
    finally:
        duration = datetime.now() - start_time
        write_cli_log("SHUTDOWN", "Proxy stopped", duration=str(duration))
        if isinstance(logger, Dashboard):
            logger.stop()


def _print_config(config: ProxyConfig) -> None:
    """Print the effective configuration with the secret masked."""
    verify = config.upstream.verify_certificate
    console.print(f"[bold]Listen:[/bold] {config.proxy.host}:{config.proxy.port}")
    console.print(f"[bold]Secret header:[/bold] {config.proxy.secret_header} (value hidden)")
    console.print(f"[bold]Max body:[/bold] {config.proxy.max_body_size} bytes")
    console.print(f"[bold]Upstream timeout:[/bold] {config.upstream.timeout}s")
    console.print(
        "[bold]Verify upstream:[/bold] "
        + ("per request (required)" if verify is None else str(verify).lower())
    )
    console.print(f"[bold]Extra CA bundle:[/bold] {config.upstream.ca_bundle or '-'}")
    console.print(f"[bold]Log file:[/bold] {CLI_LOG_FILE}")


def _print_help():
    """Print help message."""
    help_text = """
[bold cyan]mTLS Forward Proxy[/bold cyan]

Forwards POSTed payloads to a target over mutual TLS, using a client
certificate decoded from a PKCS#12 bundle sent with each request.

[bold]Usage:[/bold]
    mtls-forward-proxy              Start with live dashboard
    mtls-forward-proxy --headless   Start with plain log lines
    mtls-forward-proxy --config     Show effective configuration
    mtls-forward-proxy --help       Show this help

[bold]Environment:[/bold]
    NFSE_PROXY_SECRET         Shared secret (required)
    PORT                      Listen port (default 3000)
    PROXY_HOST                Listen address (default 0.0.0.0)
    PROXY_SECRET_HEADER       Secret header name (default x-proxy-secret)
    PROXY_VERIFY_UPSTREAM     Default for verifyUpstreamCertificate (true/false)
    PROXY_UPSTREAM_CA_BUNDLE  Extra CA file trusted when verifying upstreams
    PROXY_UPSTREAM_TIMEOUT    Upstream timeout in seconds (default 30)
    PROXY_MAX_BODY_SIZE       Inbound body limit in bytes (default 10 MiB)
    PROXY_DEBUG               Log headers and response previews (true/false)
"""
    console.print(help_text)


if __name__ == "__main__":
    main()
