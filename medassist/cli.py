"""
MedAssist CLI Tool

Command-line client for a running MedAssist server.

Usage:
    medassist serve                 - Start the API server
    medassist ask "message"         - Send one chat message
    medassist stats                 - Show the fallback chain and model stats
    medassist clear-chats --all     - Forget chat sessions
"""
import os
import subprocess
import sys

import click
import httpx
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from medassist import __version__

# Load environment variables
load_dotenv()

console = Console()

# API Configuration
API_BASE = os.getenv("API_BASE_URL", "http://localhost:8000")


def api_request(method: str, path: str, **kwargs) -> dict:
    """Call the API and return the JSON body, exiting on failure."""
    try:
        response = httpx.request(method, f"{API_BASE}{path}", timeout=120.0, **kwargs)
    except (httpx.ConnectError, httpx.TimeoutException) as e:
        console.print(f"[red]✗ Could not reach API server at {API_BASE}[/red] ({e})")
        console.print("\nStart it with: [yellow]medassist serve[/yellow]")
        sys.exit(1)

    data = response.json()
    if response.status_code != 200:
        console.print(f"[red]✗ {data.get('error', 'Request failed')}[/red]")
        if data.get("detail"):
            console.print(f"[dim]{data['detail']}[/dim]")
        sys.exit(1)
    return data


def format_rate(rate) -> str:
    if rate is None:
        return "-"
    return f"{rate:.0%}"


@click.group()
@click.version_option(version=__version__, prog_name="MedAssist")
def main():
    """
    MedAssist - AI medical guidance with model fallback

    Talks to a running MedAssist API (set API_BASE_URL to point elsewhere).
    """
    pass


@main.command()
@click.option("--port", default=8000, help="Port to run server on")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(port: int, reload: bool):
    """
    Start the MedAssist API server.

    Example:
        medassist serve --port 8080
    """
    console.print(Panel(
        f"[bold cyan]http://localhost:{port}[/bold cyan]\n"
        f"API docs: http://localhost:{port}/docs",
        title="MedAssist API",
        border_style="cyan"
    ))

    cmd = [sys.executable, "-m", "uvicorn", "medassist.main:app", f"--port={port}"]
    if reload:
        cmd.append("--reload")

    try:
        subprocess.run(cmd)
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped[/yellow]")


@main.command()
@click.argument("message")
@click.option("--session", default=None, help="Chat session ID")
def ask(message: str, session: str | None):
    """
    Send a message to the health chatbot.

    Example:
        medassist ask "I have had a headache for two days" --session me
    """
    payload = {"message": message}
    if session:
        payload["sessionId"] = session

    with console.status("[cyan]Thinking...[/cyan]"):
        data = api_request("POST", "/api/v1/chat", json=payload)

    console.print(Panel(
        data["reply"],
        title="Dr. AI",
        subtitle=f"{data['modelUsed']} via {data['provider']}",
        border_style="green"
    ))


@main.command()
def stats():
    """
    Show the fallback chain with per-model statistics.

    Example:
        medassist stats
    """
    data = api_request("GET", "/api/v1/models/stats")

    table = Table(title=f"Model chain (cooldown {data['cooldown_seconds']:.0f}s)")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Model", style="cyan")
    table.add_column("Provider")
    table.add_column("Attempts", justify="right")
    table.add_column("Failures", justify="right")
    table.add_column("Rate limits", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("Status")

    for model in data["models"]:
        if not model["available"]:
            state = "[dim]not configured[/dim]"
        elif model["cooling_down"]:
            state = f"[yellow]cooling {model['cooldown_remaining']:.0f}s[/yellow]"
        else:
            state = "[green]ready[/green]"

        table.add_row(
            str(model["position"]),
            model["name"],
            model["provider"],
            str(model["attempts"]),
            str(model["failures"]),
            str(model["rate_limit_hits"]),
            format_rate(model["success_rate"]),
            state,
        )

    console.print(table)
    console.print(f"\nActive chat sessions: [cyan]{data['active_sessions']}[/cyan]")


@main.command(name="clear-chats")
@click.option("--session", default=None, help="Chat session ID to clear")
@click.option("--all", "clear_all", is_flag=True, help="Clear every chat session")
def clear_chats(session: str | None, clear_all: bool):
    """
    Forget chat history.

    Example:
        medassist clear-chats --session me
        medassist clear-chats --all
    """
    if clear_all and session:
        raise click.UsageError("Use either --session or --all, not both")

    if clear_all:
        data = api_request("POST", "/api/v1/clear-all-chats")
    else:
        payload = {"sessionId": session} if session else {}
        data = api_request("POST", "/api/v1/clear-chat", json=payload)

    console.print(f"[green]✓[/green] {data['message']}")


if __name__ == "__main__":
    main()
