"""Command-line interface using Typer."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from stream_assets import __version__
from stream_assets.logging import setup_logging

# Setup logging
setup_logging()

app = typer.Typer(
    name="stream-assets",
    help="Stream Assets - video compatibility, conversion and storage CLI",
    add_completion=False,
)

console = Console()

# Exit code when an asynchronous conversion outlives the polling ceiling
EXIT_INDETERMINATE = 3


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"Stream Assets v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Stream Assets - classify, convert and manage stored videos."""
    pass


def _fail(message: str) -> None:
    console.print(f"[bold red]✗ {message}[/bold red]")
    raise typer.Exit(code=1)


def _policy():
    from stream_assets.config import settings
    from stream_assets.services.policy import MediaPolicy

    return MediaPolicy.from_settings(settings)


# =============================================================================
# PRESETS AND CLASSIFICATION
# =============================================================================


@app.command()
def presets(
    limit: Optional[int] = typer.Option(
        None, "--limit", "-l", help="Plan bitrate limit (kbps) to check presets against"
    ),
) -> None:
    """List conversion quality presets."""
    from stream_assets.presets.quality import QUALITY_PRESETS

    table = Table(title="Quality Presets")
    table.add_column("Name", style="cyan")
    table.add_column("Bitrate", justify="right")
    table.add_column("Resolution")
    table.add_column("CRF", justify="right")
    if limit is not None:
        table.add_column("Allowed")

    for name, preset in QUALITY_PRESETS.items():
        row = [name, f"{preset.bitrate_kbps} kbps", preset.resolution, str(preset.crf)]
        if limit is not None:
            row.append("[green]yes[/green]" if preset.bitrate_kbps <= limit else "[red]no[/red]")
        table.add_row(*row)

    console.print(table)


@app.command()
def classify(
    extension: str = typer.Argument(..., help="Container extension, e.g. mp4 or .avi"),
    bitrate: int = typer.Argument(..., help="Asset bitrate in kbps (0 if unknown)"),
    limit: int = typer.Argument(..., help="Plan bitrate limit in kbps"),
) -> None:
    """Classify a container/bitrate pair against a plan limit."""
    from stream_assets.services.compatibility import classify as classify_asset

    canonical = _policy().canonical_container
    result = classify_asset(extension, bitrate, limit, canonical_container=canonical)

    status = "[green]compatible[/green]" if result.compatible else "[red]incompatible[/red]"
    lines = [
        f"[cyan]Status:[/cyan] {status}",
        f"[cyan]Needs conversion:[/cyan] {'Yes' if result.needs_conversion else 'No'}",
    ]
    for message in result.messages:
        lines.append(f"  - {message}")
    console.print(Panel.fit("\n".join(lines), title="Compatibility", border_style="blue"))


# =============================================================================
# ASSET COMMANDS
# =============================================================================


@app.command()
def ingest(
    account_id: int = typer.Argument(..., help="Owning account ID"),
    bucket_id: int = typer.Argument(..., help="Target folder ID"),
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Local video file"),
) -> None:
    """Upload a local video into a folder."""
    from stream_assets.adapters.remote_exec import get_remote_executor
    from stream_assets.db.session import get_session_context
    from stream_assets.domain.errors import AssetServiceError
    from stream_assets.services.assets import AssetService
    from stream_assets.utils import run_async

    console.print(f"[bold blue]Uploading {file.name}...[/bold blue]")
    try:
        with get_session_context() as session:
            service = AssetService(session, get_remote_executor(), _policy())
            account = service.load_account(account_id)
            asset = run_async(service.ingest(account, bucket_id, file))
            console.print(f"[bold green]✓ Stored as {asset.path}[/bold green]")
            console.print(f"[dim]Asset ID: {asset.id}, bitrate: {asset.bitrate_kbps} kbps[/dim]")
            if not asset.compatible:
                console.print("[yellow]Needs conversion before playback[/yellow]")
    except AssetServiceError as e:
        _fail(e.message)


@app.command("list")
def list_assets(
    account_id: int = typer.Argument(..., help="Owning account ID"),
    bucket_id: Optional[int] = typer.Option(None, "--bucket", "-b", help="Folder ID"),
) -> None:
    """List videos with compatibility and conversion status."""
    from stream_assets.adapters.remote_exec import get_remote_executor
    from stream_assets.db.session import get_session_context
    from stream_assets.domain.errors import AssetServiceError
    from stream_assets.services.assets import AssetService
    from stream_assets.services.conversion import ConversionOrchestrator

    try:
        with get_session_context() as session:
            executor = get_remote_executor()
            policy = _policy()
            account = AssetService(session, executor, policy).load_account(account_id)
            orchestrator = ConversionOrchestrator(session, executor, policy=policy)
            views = orchestrator.list_convertible_assets(account, bucket_id)
    except AssetServiceError as e:
        _fail(e.message)
        return

    if not views:
        console.print("[dim]No videos found[/dim]")
        return

    table = Table(title=f"Videos (plan limit {account.bitrate_limit_kbps} kbps)")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Folder")
    table.add_column("Bitrate", justify="right")
    table.add_column("Compatible")
    table.add_column("Status")
    table.add_column("Reasons")

    for view in views:
        table.add_row(
            str(view.id),
            view.name[:40],
            view.bucket,
            str(view.bitrate),
            "[green]yes[/green]" if view.compatible else "[red]no[/red]",
            str(view.conversion_status),
            "; ".join(view.incompatibility_reasons),
        )
    console.print(table)


# =============================================================================
# CONVERSION COMMANDS
# =============================================================================


def _wait_for_task(task_id: str, timeout: float) -> None:
    """Poll a conversion task until it finishes or the ceiling elapses."""
    from celery.exceptions import TimeoutError as CeleryTimeoutError
    from celery.result import AsyncResult

    from stream_assets.worker import celery_app

    console.print(f"[dim]Waiting up to {int(timeout)}s...[/dim]")
    try:
        task_result = AsyncResult(task_id, app=celery_app).get(timeout=timeout)
    except CeleryTimeoutError:
        # The transcode may still finish; its outcome is reconciled later
        console.print(
            f"[bold yellow]? Conversion still running after {int(timeout)}s, "
            f"status indeterminate. Check again with 'status'.[/bold yellow]"
        )
        raise typer.Exit(code=EXIT_INDETERMINATE)

    if task_result.get("success"):
        converted = task_result["converted"]
        console.print(f"[bold green]✓ Converted: {converted['relative_path']}[/bold green]")
    else:
        _fail(task_result.get("message", "Conversion failed"))


@app.command()
def convert(
    account_id: int = typer.Argument(..., help="Owning account ID"),
    asset_id: int = typer.Argument(..., help="Video to convert"),
    quality: Optional[str] = typer.Option(None, "--quality", "-q", help="Preset name"),
    bitrate: Optional[int] = typer.Option(None, "--bitrate", help="Custom bitrate (kbps)"),
    resolution: Optional[str] = typer.Option(None, "--resolution", help="Custom WIDTHxHEIGHT"),
    run_async_job: bool = typer.Option(False, "--async", help="Run on a Celery worker"),
    wait: bool = typer.Option(False, "--wait", "-w", help="Wait for the worker to finish"),
) -> None:
    """Convert a video to a preset or custom bitrate/resolution."""
    from stream_assets.config import settings

    if run_async_job:
        from stream_assets.jobs.conversion_tasks import run_conversion_task

        result = run_conversion_task.delay(
            account_id,
            asset_id,
            quality=quality,
            custom_bitrate=bitrate,
            custom_resolution=resolution,
        )
        console.print(f"[green]Task enqueued: {result.id}[/green]")
        if wait:
            _wait_for_task(result.id, settings.conversion_poll_timeout_seconds)
        return

    from stream_assets.jobs.conversion_tasks import execute_conversion

    console.print(f"[bold blue]Converting video {asset_id}...[/bold blue]")
    outcome = execute_conversion(
        account_id,
        asset_id,
        quality=quality,
        custom_bitrate=bitrate,
        custom_resolution=resolution,
    )
    if not outcome["success"]:
        _fail(outcome["message"])

    converted = outcome["converted"]
    console.print(Panel.fit(
        f"[cyan]Path:[/cyan] {converted['relative_path']}\n"
        f"[cyan]Quality:[/cyan] {converted['quality']}\n"
        f"[cyan]Bitrate:[/cyan] {converted['bitrate']} kbps\n"
        f"[cyan]Duration:[/cyan] {converted['duration']}s\n"
        f"[cyan]Size:[/cyan] {converted['size_bytes']} bytes"
        + ("" if converted["probed"] else "\n[dim]Metadata estimated (probe unavailable)[/dim]"),
        title=f"Converted video {converted['id']}",
        border_style="green",
    ))  # fmt: skip


@app.command()
def status(
    account_id: int = typer.Argument(..., help="Owning account ID"),
    asset_id: int = typer.Argument(..., help="Video ID"),
) -> None:
    """Show the conversion status of a video."""
    from stream_assets.adapters.remote_exec import get_remote_executor
    from stream_assets.db.session import get_session_context
    from stream_assets.domain.errors import AssetServiceError
    from stream_assets.services.assets import AssetService
    from stream_assets.services.conversion import ConversionOrchestrator

    try:
        with get_session_context() as session:
            executor = get_remote_executor()
            policy = _policy()
            account = AssetService(session, executor, policy).load_account(account_id)
            orchestrator = ConversionOrchestrator(session, executor, policy=policy)
            view = orchestrator.get_conversion_status(account, asset_id)
    except AssetServiceError as e:
        _fail(e.message)
        return

    converted_at = view.converted_at.strftime("%Y-%m-%d %H:%M") if view.converted_at else "N/A"
    console.print(Panel.fit(
        f"[cyan]Name:[/cyan] {view.name}\n"
        f"[cyan]Status:[/cyan] {view.status}\n"
        f"[cyan]Bitrate:[/cyan] {view.bitrate} kbps\n"
        f"[cyan]Original format:[/cyan] {view.original_format or 'N/A'}\n"
        f"[cyan]Quality:[/cyan] {view.applied_quality or 'N/A'}\n"
        f"[cyan]Converted:[/cyan] {converted_at}",
        title=f"Video {view.id}",
        border_style="blue",
    ))  # fmt: skip


@app.command()
def remove(
    account_id: int = typer.Argument(..., help="Owning account ID"),
    asset_id: int = typer.Argument(..., help="Video ID"),
    converted_only: bool = typer.Option(
        False, "--converted-only", help="Refuse to delete videos that were not converted"
    ),
) -> None:
    """Delete a video, its remote file and its playlist entries."""
    from stream_assets.adapters.remote_exec import get_remote_executor
    from stream_assets.db.session import get_session_context
    from stream_assets.domain.errors import AssetServiceError
    from stream_assets.services.assets import AssetService
    from stream_assets.services.conversion import ConversionOrchestrator
    from stream_assets.utils import run_async

    try:
        with get_session_context() as session:
            executor = get_remote_executor()
            policy = _policy()
            service = AssetService(session, executor, policy)
            account = service.load_account(account_id)
            if converted_only:
                orchestrator = ConversionOrchestrator(session, executor, policy=policy)
                freed_mb = run_async(orchestrator.remove_converted_asset(account, asset_id))
            else:
                freed_mb = run_async(service.delete_asset(account, asset_id))
    except AssetServiceError as e:
        _fail(e.message)
        return

    console.print(f"[bold green]✓ Video {asset_id} removed, {freed_mb}MB freed[/bold green]")


# =============================================================================
# OPERATIONS
# =============================================================================


@app.command("init-db")
def init_db_command(
    create_tables: bool = typer.Option(
        False, "--create-tables", help="Create tables directly instead of via Alembic"
    ),
) -> None:
    """Check database connectivity (optionally creating tables)."""
    from stream_assets.db.session import init_db

    try:
        init_db(create_tables=create_tables)
    except Exception as e:
        _fail(f"Database unavailable: {e}")
    console.print("[bold green]✓ Database ready[/bold green]")


@app.command()
def worker() -> None:
    """Start a Celery worker (for development)."""
    console.print("[bold blue]Starting Celery worker...[/bold blue]")

    import subprocess
    import sys

    subprocess.run(
        [
            sys.executable, "-m", "celery", "-A", "stream_assets.worker", "worker",
            "--loglevel=info", "-Q", "conversion",
        ],
        check=True,
    )  # fmt: skip


if __name__ == "__main__":
    app()
