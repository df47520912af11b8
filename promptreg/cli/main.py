"""CLI entry point for promptreg."""

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.table import Table

from promptreg import __version__
from promptreg.adapters import create_adapter
from promptreg.cli.common import (
    adapter_options,
    console,
    error_exit,
    get_state,
    handle_errors,
    load_registry,
    run,
)
from promptreg.config import SOURCE_KINDS
from promptreg.logging_config import configure_logging
from promptreg.models import Bundle, Source

app = typer.Typer(
    name="promptreg",
    help="Discover and download prompt, instruction and skill bundles.",
    no_args_is_help=True,
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"promptreg {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Annotated[
        Optional[Path],
        typer.Option(
            "--config", "-c",
            help="Path to registry.toml (default: nearest in parent directories).",
        ),
    ] = None,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v",
            count=True,
            help="Increase log verbosity (-v info, -vv debug).",
        ),
    ] = 0,
    log_format: Annotated[
        str,
        typer.Option("--log-format", help="Log output format: text or json."),
    ] = "text",
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Discover and download prompt, instruction and skill bundles."""
    if log_format not in ("text", "json"):
        raise typer.BadParameter("must be 'text' or 'json'", param_hint="--log-format")
    level = {0: "WARNING", 1: "INFO"}.get(verbose, "DEBUG")
    configure_logging(level=level, fmt=log_format, force=True)
    get_state(ctx).config_path = config


@app.command("sources")
def list_sources(ctx: typer.Context) -> None:
    """Show configured sources.

    Examples:
      promptreg sources
    """
    with handle_errors():
        registry = load_registry(ctx)

    if not registry.sources:
        console.print("[yellow]No sources configured.[/yellow]")
        console.print(
            "[dim]Add one with: promptreg source-add ID --type TYPE --url URL[/dim]"
        )
        return

    table = Table(title=f"Sources ({registry.path})")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("URL")
    table.add_column("Priority", justify="right")
    table.add_column("Enabled")
    for source in sorted(registry.sources.values(), key=lambda s: (s.priority, s.id)):
        table.add_row(
            source.id,
            source.name,
            source.kind,
            source.url,
            str(source.priority),
            "yes" if source.enabled else "[dim]no[/dim]",
        )
    console.print(table)


@app.command("source-add")
def add_source(
    ctx: typer.Context,
    source_id: Annotated[
        str,
        typer.Argument(help="Identifier for the new source.", metavar="ID"),
    ],
    kind: Annotated[
        str,
        typer.Option(
            "--type", "-t",
            help=f"Source type: {', '.join(SOURCE_KINDS)}.",
        ),
    ],
    url: Annotated[
        str,
        typer.Option("--url", "-u", help="Repository URL or local path."),
    ],
    name: Annotated[Optional[str], typer.Option("--name", help="Display name.")] = None,
    token: Annotated[
        Optional[str],
        typer.Option("--token", help="Explicit access token."),
    ] = None,
    branch: Annotated[
        Optional[str],
        typer.Option("--branch", help="Branch for collection and skill sources."),
    ] = None,
    priority: Annotated[
        int,
        typer.Option("--priority", help="Lower values are listed first."),
    ] = 0,
) -> None:
    """Add or replace a source in registry.toml.

    Examples:
      promptreg source-add awesome --type awesome-copilot \\
        --url https://github.com/github/awesome-copilot
      promptreg source-add mine --type local-skills --url ~/work/skills-repo
    """
    if kind not in SOURCE_KINDS:
        error_exit(
            f"Unknown source type '{kind}'. Must be one of: {', '.join(SOURCE_KINDS)}"
        )

    options = {"branch": branch} if branch else {}
    source = Source(
        id=source_id,
        name=name or source_id,
        kind=kind,
        url=url,
        token=token,
        priority=priority,
        config=options,
    )
    with handle_errors():
        registry = load_registry(ctx, create=True)
        create_adapter(source, adapter_options(registry.settings))
        replaced = source_id in registry.sources
        registry.add_source(source)
        registry.save()

    verb = "Updated" if replaced else "Added"
    console.print(f"[green]{verb} source '{source_id}'[/green] in {registry.path}")


@app.command("source-remove")
def remove_source(
    ctx: typer.Context,
    source_id: Annotated[str, typer.Argument(help="Source to remove.", metavar="ID")],
) -> None:
    """Remove a source from registry.toml.

    Examples:
      promptreg source-remove awesome
    """
    with handle_errors():
        registry = load_registry(ctx)
        if not registry.remove_source(source_id):
            error_exit(f"Source '{source_id}' not found")
        registry.save()

    console.print(f"[green]Removed source '{source_id}'[/green]")


def _bundle_table(title: str, bundles: list[Bundle]) -> Table:
    table = Table(title=title)
    table.add_column("Bundle ID", style="cyan")
    table.add_column("Name")
    table.add_column("Version")
    table.add_column("Source")
    table.add_column("Tags")
    table.add_column("Size", justify="right")
    for bundle in bundles:
        table.add_row(
            bundle.id,
            bundle.name,
            bundle.version,
            bundle.source_id,
            ", ".join(bundle.tags),
            bundle.size,
        )
    return table


@app.command("list")
def list_bundles(
    ctx: typer.Context,
    source_id: Annotated[
        Optional[str],
        typer.Argument(help="Only list bundles of this source.", metavar="SOURCE_ID"),
    ] = None,
) -> None:
    """List bundles from all enabled sources, or from one source.

    Examples:
      promptreg list
      promptreg list awesome
    """
    with handle_errors():
        registry = load_registry(ctx)
        options = adapter_options(registry.settings)
        if source_id:
            sources = [registry.get_source(source_id)]
        else:
            sources = registry.enabled_sources()

        bundles: list[Bundle] = []
        for source in sources:
            adapter = create_adapter(source, options)
            bundles.extend(run(adapter.fetch_bundles()))

    if not bundles:
        console.print("[yellow]No bundles found.[/yellow]")
        return
    console.print(_bundle_table(f"Bundles ({len(bundles)})", bundles))


@app.command("validate")
def validate_source(
    ctx: typer.Context,
    source_id: Annotated[
        str,
        typer.Argument(help="Source to check.", metavar="SOURCE_ID"),
    ],
) -> None:
    """Check that a source is reachable and offers bundles.

    Examples:
      promptreg validate awesome
    """
    with handle_errors():
        registry = load_registry(ctx)
        source = registry.get_source(source_id)
        adapter = create_adapter(source, adapter_options(registry.settings))
        result = run(adapter.validate())

    if result.valid:
        found = ""
        if result.bundles_found is not None:
            found = f" ({result.bundles_found} bundles)"
        console.print(f"[green]✓ Source '{source_id}' is valid{found}[/green]")
    else:
        console.print(f"[red]✗ Source '{source_id}' is invalid[/red]")
    for error in result.errors:
        console.print(f"  [red]error:[/red] {error}")
    for warning in result.warnings:
        console.print(f"  [yellow]warning:[/yellow] {warning}")
    if not result.valid:
        raise typer.Exit(1)


@app.command("download")
def download_bundle(
    ctx: typer.Context,
    source_id: Annotated[
        str,
        typer.Argument(help="Source that offers the bundle.", metavar="SOURCE_ID"),
    ],
    bundle_id: Annotated[
        str,
        typer.Argument(help="Bundle to download.", metavar="BUNDLE_ID"),
    ],
    output: Annotated[
        Optional[Path],
        typer.Option(
            "--output", "-o",
            help="Output file (default: ./<bundle-id>.zip).",
        ),
    ] = None,
) -> None:
    """Download a bundle as a ZIP archive.

    Examples:
      promptreg download awesome azure-cloud-development
      promptreg download mine local-skills-repo-pdf -o pdf.zip
    """
    with handle_errors():
        registry = load_registry(ctx)
        source = registry.get_source(source_id)
        adapter = create_adapter(source, adapter_options(registry.settings))
        bundles = run(adapter.fetch_bundles())
        bundle = next((b for b in bundles if b.id == bundle_id), None)
        if bundle is None:
            available = ", ".join(b.id for b in bundles) or "none"
            error_exit(
                f"Bundle '{bundle_id}' not found in source '{source_id}'. "
                f"Available: {available}"
            )
        data = run(adapter.download_bundle(bundle))

    target = output or Path(f"{bundle_id}.zip")
    target.write_bytes(data)
    console.print(
        f"[green]Downloaded '{bundle_id}'[/green] to {target} ({len(data)} bytes)"
    )
