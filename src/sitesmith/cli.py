"""Typer CLI interface for Sitesmith."""

import asyncio
import os
import signal
import sys
from typing import Optional

import httpx
import typer
import uvicorn
from rich.console import Console
from rich.panel import Panel

app = typer.Typer(
    name="sitesmith",
    help="Sitesmith - describe a website, get it built by AI",
    add_completion=False,
)
console = Console()


async def check_service_running(host: str, port: int) -> bool:
    """Check if service is already running on port."""
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.get(f"http://{host}:{port}/health", timeout=2.0)
            return resp.status_code == 200
    except httpx.HTTPError:
        return False


@app.command()
def serve(
    port: int = typer.Option(8080, "--port", help="HTTP/WebSocket port"),
    host: str = typer.Option("localhost", "--host", help="Bind address"),
    database: Optional[str] = typer.Option(
        None, "--database", "-d", help="SQLite database for conversation history"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
    reload: bool = typer.Option(
        False, "--reload", help="Enable auto-reload (dev mode)"
    ),
):
    """Start the Sitesmith service."""
    # Set environment variables BEFORE importing settings to ensure they're picked up
    os.environ["DEBUG"] = "true" if debug else "false"
    os.environ["HOST"] = host
    os.environ["PORT"] = str(port)
    # Sessions call the functions hosted by this same service unless told otherwise
    os.environ.setdefault("FUNCTIONS_BASE_URL", f"http://{host}:{port}/functions/v1")
    if database:
        os.environ["DATABASE_PATH"] = database

    from .config import settings

    if asyncio.run(check_service_running(host, port)):
        console.print(f"[red]Error:[/red] Service already running on port {port}")
        raise typer.Exit(1)

    missing = [
        name
        for name in ("AI_GATEWAY_API_KEY", "REPLICATE_API_KEY")
        if not getattr(settings, name)
    ]
    if missing:
        console.print(
            f"[yellow]Warning:[/yellow] {', '.join(missing)} not set; "
            "the matching generation features will fail."
        )

    # Setup signal handlers for graceful shutdown
    def signal_handler(sig, frame):
        console.print("\n[yellow]Shutting down gracefully...[/yellow]")
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    console.print(
        Panel.fit(
            f"[bold]Sitesmith Service[/bold]\n\n"
            f"🌐 HTTP: http://{host}:{port}\n"
            f"📡 WebSocket: ws://{host}:{port}/ws\n"
            f"🤖 Chat model: {settings.CHAT_MODEL}\n"
            f"🗄️  History: {settings.DATABASE_PATH}\n"
            f"🔍 Debug: {'enabled' if debug else 'disabled'}",
            border_style="green",
        )
    )

    uvicorn.run(
        "sitesmith.main:app",
        host=host,
        port=port,
        log_level="debug" if debug else "info",
        reload=reload,
        access_log=debug,
        # WebSocket keepalive - protocol-level pings
        ws_ping_interval=settings.WS_PROTOCOL_PING_INTERVAL,
        ws_ping_timeout=settings.WS_PROTOCOL_PING_TIMEOUT,
        timeout_keep_alive=120,  # HTTP keepalive 2min
    )


if __name__ == "__main__":
    app()
