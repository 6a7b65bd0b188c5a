import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from ..cache import LocalCache
from ..config import Settings, load_settings, set_config_value
from ..domain.errors import MvnupError
from ..services.acquire import AcquisitionManager
from ..services.check import CheckService, CheckStatus
from ..services.install import InstallService
from ..services.listing import ListService
from ..site.http import HttpClient
from ..system import Activation, Extractor, PlatformQuery
from ..ui.progress import ProgressManager

app = typer.Typer(
    name="mvnup",
    help="Install and update Apache Maven from a mirror.",
    add_completion=False,
)
console = Console()
error_console = Console(stderr=True)

logger = logging.getLogger("mvnup")


def setup_logging(verbosity: int) -> None:
    """0=WARNING, 1=INFO, 2+=DEBUG."""
    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logger.setLevel(level)
    if not logger.handlers:
        handler = RichHandler(
            console=error_console,
            show_time=verbosity >= 2,
            show_path=verbosity >= 3,
            rich_tracebacks=True,
        )
        handler.setLevel(level)
        logger.addHandler(handler)
    else:
        for h in logger.handlers:
            h.setLevel(level)


def get_acquisition(settings: Settings, http: HttpClient) -> AcquisitionManager:
    return AcquisitionManager.create(
        http,
        settings.mirror,
        settings.product_path,
        PlatformQuery(),
        ProgressManager(console),
    )


def get_install_service(settings: Settings, http: HttpClient) -> InstallService:
    return InstallService(
        get_acquisition(settings, http),
        Extractor(),
        Activation(settings.bin_dir),
        settings.cache_dir,
        settings.install_dir,
        settings.receipt_file,
    )


def run(coro_factory, settings: Settings):
    """run ``coro_factory(http)`` on a fresh client, turning our errors into exit code 1."""
    async def runner():
        async with HttpClient(timeout=settings.timeout) as http:
            return await coro_factory(http)

    try:
        return asyncio.run(runner())
    except MvnupError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    mirror: Optional[str] = typer.Option(None, "--mirror", "-m", help="Mirror root url"),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="-v info, -vv debug"),
):
    """check the installed maven against the mirror when no command is given."""
    setup_logging(verbose)
    ctx.obj = load_settings(mirror)
    if ctx.invoked_subcommand is None:
        _check(ctx.obj)


def _check(settings: Settings):
    async def go(http):
        with ProgressManager(console).spinner("checking for updates"):
            return await CheckService(get_acquisition(settings, http)).check()

    result = run(go, settings)
    console.print(f"found installed maven version: {result.installed}, path: {result.path}")
    if result.status is CheckStatus.UP_TO_DATE:
        console.print(f"[green]up to date: {result.installed} ({result.installed_date})[/green]")
    else:
        console.print(
            f"[yellow]update available: {result.installed} ({result.installed_date}) "
            f"-> {result.latest} ({result.latest_date})[/yellow]"
        )


@app.command()
def check(ctx: typer.Context):
    """compare the installed maven with the latest release."""
    _check(ctx.obj)


@app.command(name="list")
def list_versions(
    ctx: typer.Context,
    limit: int = typer.Option(5, "--limit", "-l", help="Number of newest versions to show"),
):
    """list the newest versions and their binaries."""
    settings = ctx.obj

    async def go(http):
        return await ListService(get_acquisition(settings, http), console).list(limit)

    run(go, settings)


@app.command()
def install(
    ctx: typer.Context,
    version: Optional[str] = typer.Option(None, "--version", help="Version or constraint, e.g. '3.8.4' or '<3.8'"),
    path: Optional[str] = typer.Option(None, "--path", "-p", help="Install directory"),
    force: bool = typer.Option(False, "--force", help="Re-download a mismatching cached archive"),
):
    """install a maven version (latest by default) and link it."""
    settings = ctx.obj
    if path:
        settings = settings.model_copy(update={"install_dir": Path(path).expanduser().resolve()})

    async def go(http):
        return await get_install_service(settings, http).install(version, force=force)

    receipt = run(go, settings)
    console.print(Panel.fit(
        f"[bold green]Maven {receipt.version} installed[/bold green]\n"
        f"Home: {receipt.home}\n"
        f"Linked: {settings.bin_dir / 'mvn'} -> {receipt.executable}",
        border_style="green"
    ))


@app.command()
def update(
    ctx: typer.Context,
    version: Optional[str] = typer.Argument(None, help="Target version or constraint (latest by default)"),
    force: bool = typer.Option(False, "--force", help="Re-download a mismatching cached archive"),
):
    """replace the installed maven with a newer version."""
    settings = ctx.obj

    async def go(http):
        return await get_install_service(settings, http).update(version, force=force)

    versions = run(go, settings)
    console.print(f"[green]updated maven: {versions['old']} → {versions['new']}[/green]")


@app.command()
def uninstall(ctx: typer.Context):
    """remove the maven installed by mvnup and its link."""
    settings = ctx.obj

    async def go(http):
        return await get_install_service(settings, http).uninstall()

    receipt = run(go, settings)
    console.print(f"[green]removed maven {receipt.version}[/green]")


@app.command()
def cache(
    ctx: typer.Context,
    action: str = typer.Argument("list", help="Action to perform: 'list' or 'clear'"),
):
    """show or clear downloaded archives."""
    cache_obj = LocalCache(ctx.obj.cache_dir)
    if action == "clear":
        cache_obj.clear()
        console.print("[green]✓ Download cache cleared[/green]")
    elif action == "list":
        for artifact in cache_obj.artifacts():
            console.print(artifact.name)
        console.print(f"[dim]{cache_obj.cache_dir}: {cache_obj.size() / (1024 * 1024):.2f} MB[/dim]")
    else:
        console.print(f"[red]Invalid action '{action}'. Use 'list' or 'clear'.[/red]")
        raise typer.Exit(code=1)


@app.command()
def config(key: str, value: str):
    """set a value in ~/.mvnup/config (e.g. MVNUP_MIRROR)."""
    try:
        set_config_value(key, value)
    except (ValueError, RuntimeError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)
    console.print(f"[green]{key}={value}[/green]")


if __name__ == "__main__":
    app()
