"""Command-line interface for dotforge."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import ConfigStore, Settings
from .errors import ForgeError, PreconditionFailed
from .folders import ManagedFolderRegistry
from .logging_config import level_for_verbosity, setup_logging
from .models import BatchReport, DotfileRecord, DotfileStatus, ManagedFolder
from .orchestrator import SymlinkOrchestrator
from .prompt import ConsoleConfirmer, StaticConfirmer
from .registry import DotfileRegistry

app = typer.Typer(help="Track dotfiles in a managed folder and symlink them back into place")
config_app = typer.Typer(help="Manage dotforge configuration")
filetypes_app = typer.Typer(help="Approved file types used when staging with --approved-only")
ignore_app = typer.Typer(help="Paths that are never staged")
config_app.add_typer(filetypes_app, name="filetypes")
config_app.add_typer(ignore_app, name="ignore")
app.add_typer(config_app, name="config")

console = Console()


def _settings() -> Settings:
    return Settings.from_environment()


def _open_registry(settings: Settings) -> DotfileRegistry:
    return DotfileRegistry(settings.database_path, default_path=ConfigStore(settings).read_default_path())


def _build_orchestrator(settings: Settings, registry: DotfileRegistry, *, assume_yes: bool) -> SymlinkOrchestrator:
    confirmer = StaticConfirmer(True) if assume_yes else ConsoleConfirmer(console)
    return SymlinkOrchestrator(settings, registry, ManagedFolderRegistry(settings), confirmer)


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, PermissionError):
        console.print("[red]Permission denied.[/red] Re-run the command with elevated privileges (e.g. `sudo`).")
        raise typer.Exit(code=1)
    if isinstance(exc, ForgeError):
        console.print(f"[red]{exc}[/red]")
        if exc.hint:
            console.print(f"[yellow]{exc.hint}[/yellow]")
        raise typer.Exit(code=1)
    raise exc


def _format_report(report: BatchReport) -> None:
    if report.empty:
        console.print(f"[yellow]Nothing to {report.operation}.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Path", overflow="fold")
    table.add_column("Result")
    table.add_column("Details", overflow="fold")

    for result in report.results:
        outcome = "[green]ok[/green]" if result.ok else "[red]failed[/red]"
        table.add_row(str(result.path), outcome, result.message)

    console.print(table)
    for result in report.results:
        if result.error is not None and result.error.hint:
            console.print(f"[yellow]{result.path}: {result.error.hint}[/yellow]")
    console.print(report.tally())


def _finish(report: BatchReport) -> None:
    _format_report(report)
    if report.failed:
        raise typer.Exit(code=1)


def _format_records(records: Iterable[DotfileRecord]) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Status")
    table.add_column("Source", overflow="fold")
    table.add_column("Target", overflow="fold")
    table.add_column("Profile")
    table.add_column("Active")

    status_styles = {
        DotfileStatus.STAGED: "yellow",
        DotfileStatus.LINKED: "green",
        DotfileStatus.UNLINKED: "blue",
    }

    for record in records:
        style = status_styles.get(record.status, "white")
        table.add_row(
            f"[{style}]{record.status.value}[/{style}]",
            str(record.source),
            str(record.target),
            record.profile or "",
            "yes" if record.active else "no",
        )

    console.print(table)


@app.callback()
def main(
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Increase log output (-v info, -vv debug)"),
) -> None:
    """dotforge keeps your dotfiles in one place."""

    setup_logging(level_for_verbosity(verbose))


@app.command()
def init(
    path: Optional[Path] = typer.Argument(None, help="Directory to manage (defaults to the current directory)"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Name of the managed folder"),
) -> None:
    """Create a managed folder and register it."""

    try:
        settings = _settings()
        folder_path = settings.normalize(path if path is not None else Path.cwd())
        folder_name = name or folder_path.name
        ManagedFolder(name=folder_name, path=folder_path).state_dir.mkdir(parents=True, exist_ok=True)
        ConfigStore(settings).ensure_dir()

        folder_registry = ManagedFolderRegistry(settings)
        if folder_registry.register(folder_name, folder_path):
            console.print(f"[green]Registered managed folder '{folder_name}' at '{folder_path}'.[/green]")
        else:
            console.print(f"[yellow]Managed folder '{folder_name}' is already registered.[/yellow]")

        with _open_registry(settings):
            pass
        console.print("[green]Forge repository initialized successfully.[/green]")
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def folders(
    remove: Optional[str] = typer.Option(None, "--remove", help="Unregister the managed folder with this name"),
) -> None:
    """List registered managed folders."""

    settings = _settings()
    registry = ManagedFolderRegistry(settings)
    if remove is not None:
        if registry.unregister(remove):
            console.print(f"[green]Managed folder '{remove}' unregistered. Its files were left in place.[/green]")
            return
        console.print(f"[red]No managed folder named '{remove}'.[/red]")
        raise typer.Exit(code=1)

    active = registry.active_folder()
    registered = registry.folders()
    if not registered:
        console.print("[yellow]No managed folders registered. Run 'forge init' first.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Name")
    table.add_column("Path", overflow="fold")
    table.add_column("Active")
    for folder in registered:
        table.add_row(folder.name, str(folder.path), "*" if folder == active else "")
    console.print(table)


@app.command()
def stage(
    paths: list[Path] = typer.Argument(..., help="Files or directories to stage"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Stage every file below a directory"),
    depth: Optional[int] = typer.Option(None, "--depth", "-d", min=1, help="Stage files at most N levels deep"),
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Tag the staged files with a profile"),
    approved_only: bool = typer.Option(
        False,
        "--approved-only",
        help="When traversing directories, only stage approved file types",
    ),
) -> None:
    """Stage files by symlinking them into the managed folder."""

    try:
        if recursive and depth is not None:
            raise PreconditionFailed(
                "--recursive and --depth cannot be combined",
                hint="Use --recursive for unlimited depth or --depth N for a bound.",
            )
        walk_depth = 0 if recursive else depth
        if walk_depth == 0:
            console.print("Staging files recursively")
        elif walk_depth is not None:
            console.print(f"Staging files (max depth: {walk_depth})")
        else:
            console.print("Staging files")

        settings = _settings()
        with _open_registry(settings) as registry:
            orchestrator = _build_orchestrator(settings, registry, assume_yes=False)
            extensions = set(orchestrator.config.filetypes()) if approved_only else None
            report = orchestrator.stage(paths, profile=profile, depth=walk_depth, extensions=extensions)
        _finish(report)
    except typer.Exit:
        raise
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def link(
    paths: Optional[list[Path]] = typer.Argument(None, help="Staged files to link (default: all staged files)"),
) -> None:
    """Move staged files into the managed folder and symlink them back."""

    try:
        console.print("Creating symlinks")
        settings = _settings()
        with _open_registry(settings) as registry:
            report = _build_orchestrator(settings, registry, assume_yes=False).link(paths or None)
        _finish(report)
    except typer.Exit:
        raise
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def unlink(
    paths: list[Path] = typer.Argument(..., help="Linked files to restore"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Restore linked files to their original location."""

    try:
        settings = _settings()
        with _open_registry(settings) as registry:
            report = _build_orchestrator(settings, registry, assume_yes=yes).unlink(paths, assume_yes=yes)
        _finish(report)
    except typer.Exit:
        raise
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def remove(
    paths: list[Path] = typer.Argument(..., help="Tracked files whose managed copy should be deleted"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete the managed copy and stop tracking, keeping the original."""

    try:
        settings = _settings()
        with _open_registry(settings) as registry:
            report = _build_orchestrator(settings, registry, assume_yes=yes).remove(paths, assume_yes=yes)
        _finish(report)
    except typer.Exit:
        raise
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def delete(
    paths: list[Path] = typer.Argument(..., help="Tracked files to delete everywhere"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Permanently delete files from both locations and the registry."""

    try:
        settings = _settings()
        with _open_registry(settings) as registry:
            report = _build_orchestrator(settings, registry, assume_yes=yes).delete(paths, assume_yes=yes)
        _finish(report)
    except typer.Exit:
        raise
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def unstage(
    paths: Optional[list[Path]] = typer.Argument(None, help="Staged files to drop (default: all staged files)"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Unstage everything below a directory"),
) -> None:
    """Remove staging symlinks and stop tracking staged files."""

    try:
        console.print("Unstaging files")
        settings = _settings()
        with _open_registry(settings) as registry:
            report = _build_orchestrator(settings, registry, assume_yes=False).unstage(
                paths or None, recursive=recursive
            )
        _finish(report)
    except typer.Exit:
        raise
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def purge(
    folder: Optional[Path] = typer.Argument(None, help="Folder to purge (default: the active managed folder)"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Include records in subdirectories"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Restore and forget every tracked file under a folder."""

    try:
        settings = _settings()
        with _open_registry(settings) as registry:
            console.print("Start purging tracked files")
            report = _build_orchestrator(settings, registry, assume_yes=yes).purge(
                folder, recursive=recursive, assume_yes=yes
            )
        _finish(report)
    except typer.Exit:
        raise
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command("list")
def list_records(
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Only show one profile"),
    show_all: bool = typer.Option(False, "--all", "-a", help="Include inactive records"),
) -> None:
    """Show tracked files."""

    try:
        settings = _settings()
        with _open_registry(settings) as registry:
            records = registry.records(profile=profile, active=None if show_all else True)
            known_profiles = registry.profiles()
        if not records:
            console.print("[yellow]No dotfiles found.[/yellow]")
            if profile is not None and known_profiles:
                console.print(f"Known profiles: {', '.join(known_profiles)}")
            return
        _format_records(records)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@config_app.command("default-path")
def default_path(value: Optional[str] = typer.Argument(None, help="New default target path")) -> None:
    """Show or set the default target path."""

    settings = _settings()
    store = ConfigStore(settings)
    if value is None:
        console.print(store.read_default_path())
        return
    try:
        store.set_default_path(value)
        with _open_registry(settings) as registry:
            registry.set_setting("default_path", value.strip())
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)
    console.print(f"[green]Default path set to '{value}'.[/green]")


@filetypes_app.command("add")
def filetypes_add(extensions: list[str] = typer.Argument(..., help="Extensions such as .conf or toml")) -> None:
    store = ConfigStore(_settings())
    added = store.add_filetypes(extensions)
    for ext in added:
        console.print(f"[green]File type '{ext}' added to the approved list.[/green]")
    if len(added) < len(extensions):
        console.print("[yellow]Some file types were already approved.[/yellow]")


@filetypes_app.command("remove")
def filetypes_remove(extensions: list[str] = typer.Argument(...)) -> None:
    store = ConfigStore(_settings())
    removed = store.remove_filetypes(extensions)
    for ext in removed:
        console.print(f"[green]File type '{ext}' removed.[/green]")
    if len(removed) < len(extensions):
        console.print("[yellow]Some file types were not in the approved list.[/yellow]")


@filetypes_app.command("list")
def filetypes_list() -> None:
    _print_items("Approved File Types", ConfigStore(_settings()).filetypes())


@ignore_app.command("add")
def ignore_add(paths: list[str] = typer.Argument(..., help="Paths to block from staging")) -> None:
    store = ConfigStore(_settings())
    added = store.add_ignored_paths(paths)
    for path in added:
        console.print(f"[green]Path '{path}' added to the blocked list.[/green]")
    if len(added) < len(paths):
        console.print("[yellow]Some paths were already blocked.[/yellow]")


@ignore_app.command("remove")
def ignore_remove(paths: list[str] = typer.Argument(...)) -> None:
    store = ConfigStore(_settings())
    removed = store.remove_ignored_paths(paths)
    for path in removed:
        console.print(f"[green]Path '{path}' removed from the blocked list.[/green]")
    if len(removed) < len(paths):
        console.print("[yellow]Some paths were not in the blocked list.[/yellow]")


@ignore_app.command("list")
def ignore_list() -> None:
    _print_items("Blocked Paths", [str(path) for path in ConfigStore(_settings()).ignored_paths()])


def _print_items(header: str, items: list[str]) -> None:
    console.print(f"\n{header}:")
    if not items:
        console.print("  No items found.")
        return
    for item in items:
        console.print(f"  - {item}")


def run() -> None:
    """Entry point used for console_script bindings."""

    app()
