"""Thin CLI wrapper for qorecss_deploy.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import asyncio
import json
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from qorecss_deploy import __version__
from qorecss_deploy.config import Settings, get_settings, print_settings_json

app = typer.Typer(
    name="qore-deploy",
    help="qoreCSS deploy - build hashed stylesheets, rewrite references, purge the CDN",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"qorecss-deploy version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Send log records to stderr through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """qoreCSS deploy - build hashed stylesheets, rewrite references, purge the CDN."""
    configure_logging(get_settings().log_level)


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings))
        return

    cdn_display = settings.configured_cdn_base or "(not set)"
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Working directory:   {settings.work_dir}")
    console.print(f"  Source stylesheet:   {settings.source_css}")
    console.print(f"  HTML document:       {settings.html_file}")
    console.print(f"  Entry point:         {settings.entry_point}")
    console.print(f"  Hash record:         {settings.hash_file}")
    console.print(f"  Build stats:         {settings.stats_file}")
    console.print()
    console.print("[bold]CDN:[/bold]")
    console.print(f"  CDN base URL:        {cdn_display}")
    console.print(f"  Purge base URL:      {settings.purge_base_url}")
    console.print(f"  Repository:          {settings.repository}")
    console.print()
    console.print("[bold]Operational:[/bold]")
    console.print(f"  Offline mode:        {settings.offline}")
    console.print(f"  Log level:           {settings.log_level}")
    console.print()
    console.print("[bold]Network:[/bold]")
    console.print(f"  Socket limit:        {settings.socket_limit}")
    console.print(f"  Queue limit:         {settings.queue_limit}")
    console.print(f"  Request timeout:     {settings.request_timeout}s")
    console.print(f"  Max attempts:        {settings.max_attempts}")


def _run_build(settings: Settings) -> str:
    from qorecss_deploy.builds.processor import ProcessorError
    from qorecss_deploy.builds.service import build

    try:
        return build(settings)
    except FileNotFoundError as e:
        err_console.print(f"[red]File not found: {e.filename}[/red]")
        raise typer.Exit(code=1) from None
    except (ProcessorError, OSError, ValueError) as e:
        err_console.print(f"[red]Build failed: {e}[/red]")
        raise typer.Exit(code=1) from None


def _run_purge(settings: Settings) -> int:
    from qorecss_deploy.cdn.purge import CdnPurgeClient
    from qorecss_deploy.net.retry import NetworkError

    try:
        status = asyncio.run(CdnPurgeClient(settings).run())
    except (NetworkError, ValueError) as e:
        err_console.print(f"[red]Purge failed: {e}[/red]")
        raise typer.Exit(code=1) from None

    if status != 200:
        err_console.print(f"[red]Purge returned status {status}[/red]")
        raise typer.Exit(code=1)
    return status


@app.command("build")
def build_cmd() -> None:
    """Build the hashed stylesheet and update references."""
    settings = get_settings()
    content_hash = _run_build(settings)
    console.print(f"[green]✓ Built core.{content_hash}.min.css[/green]")


@app.command("update-html")
def update_html_cmd() -> None:
    """Rewrite the HTML document to reference the current hash."""
    from qorecss_deploy.builds.hash_record import read_hash_record
    from qorecss_deploy.builds.hashing import (
        canonical_filename,
        compute_integrity_digest,
    )
    from qorecss_deploy.html.rewrite import HtmlRewriter

    settings = get_settings()
    try:
        content_hash = read_hash_record(settings.path_for(settings.hash_file))
        artifact = settings.path_for(canonical_filename(content_hash))
        integrity = (
            compute_integrity_digest(artifact.read_bytes())
            if artifact.exists()
            else None
        )
        HtmlRewriter(settings).update_references(content_hash, integrity=integrity)
    except FileNotFoundError as e:
        err_console.print(f"[red]File not found: {e.filename}[/red]")
        raise typer.Exit(code=1) from None
    except (OSError, ValueError) as e:
        err_console.print(f"[red]HTML update failed: {e}[/red]")
        raise typer.Exit(code=1) from None

    console.print(f"[green]✓ {settings.html_file} now references {content_hash}[/green]")


@app.command("purge")
def purge_cmd() -> None:
    """Purge the current artifact from the CDN cache."""
    status = _run_purge(get_settings())
    console.print(f"[green]✓ Purge returned {status}[/green]")


@app.command("deploy")
def deploy_cmd() -> None:
    """Build, then purge the new artifact from the CDN cache."""
    settings = get_settings()
    content_hash = _run_build(settings)
    console.print(f"[green]✓ Built core.{content_hash}.min.css[/green]")
    status = _run_purge(settings)
    console.print(f"[green]✓ Purge returned {status}[/green]")


@app.command("perf")
def perf_cmd(
    count: Annotated[
        int,
        typer.Option("--count", "-c", min=0, help="Requests per URL"),
    ] = 5,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Sample download times from the CDN and mirror."""
    import httpx

    from qorecss_deploy.cdn.performance import run_sampler
    from qorecss_deploy.net.retry import NetworkError

    settings = get_settings()
    try:
        results = asyncio.run(run_sampler(settings, count))
    except FileNotFoundError as e:
        err_console.print(f"[red]File not found: {e.filename}[/red]")
        raise typer.Exit(code=1) from None
    except (NetworkError, httpx.HTTPStatusError, ValueError) as e:
        err_console.print(f"[red]Sampling failed: {e}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        console.print(json.dumps(results, indent=2))
    else:
        for url, average in results.items():
            console.print(f"Average for {url}: {average:.2f}ms")


if __name__ == "__main__":
    app()
