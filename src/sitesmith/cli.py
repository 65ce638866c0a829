"""Command line interface."""

from __future__ import annotations

import shutil
from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table

from sitesmith.config import SiteSettings
from sitesmith.core.engine import Engine
from sitesmith.exceptions import ConfigLoadError, SiteValidationError, StructuralError
from sitesmith.logging_setup import configure_logging, console
from sitesmith.site import configure_blog

app = typer.Typer(name="sitesmith", help="Build the site and its RSS feed.", no_args_is_help=True)

SiteOption = typer.Option(Path("."), "--site", "-s", help="Directory containing the site.")
OutputOption = typer.Option(None, "--output", "-o", help="Output directory (default: _site).")
StrictOption = typer.Option(None, "--strict/--no-strict", help="Reject overlapping rule patterns.")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")) -> None:
    configure_logging("DEBUG" if verbose else None)


def _engine(site: Path, output: Path | None, strict: bool | None) -> Engine:
    try:
        settings = SiteSettings.load(site.resolve(), output_dir=output, strict_patterns=strict)
    except ConfigLoadError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    engine = Engine(settings)
    try:
        configure_blog(engine)
    except StructuralError as exc:
        _print_structural([exc])
        raise typer.Exit(code=1) from exc
    return engine


def _print_structural(errors: list[StructuralError]) -> None:
    console.print(f"[bold red]Site configuration is invalid ({len(errors)} error(s)):[/bold red]")
    for error in errors:
        console.print(f"  • {error}", markup=False)


@app.command()
def build(
    site: Path = SiteOption,
    output: Path | None = OutputOption,
    strict: bool | None = StrictOption,
) -> None:
    """Compile every item and write the site."""
    engine = _engine(site, output, strict)
    try:
        report = engine.build()
    except SiteValidationError as exc:
        _print_structural(exc.errors)
        raise typer.Exit(code=1) from exc

    console.print(
        f"Wrote [bold]{len(report.written)}[/bold] files to {engine.settings.abs_output_dir} "
        f"in {report.duration_seconds:.2f}s"
    )
    if report.errors:
        table = Table(title=f"{len(report.errors)} item(s) failed")
        table.add_column("Item", style="bold cyan")
        table.add_column("Rule")
        table.add_column("Error", style="red")
        for result in report.results:
            if result.error is not None:
                table.add_row(escape(str(result.identifier)), escape(result.rule), escape(str(result.error)))
        console.print(table)
    raise typer.Exit(code=report.exit_code)


@app.command()
def check(
    site: Path = SiteOption,
    output: Path | None = OutputOption,
    strict: bool | None = StrictOption,
) -> None:
    """Validate rules and routes and print the route table without building."""
    engine = _engine(site, output, strict)
    try:
        routes = engine.check()
    except SiteValidationError as exc:
        _print_structural(exc.errors)
        raise typer.Exit(code=1) from exc

    table = Table(title="Routes")
    table.add_column("Item", style="bold cyan")
    table.add_column("Output")
    for identifier, route in sorted(routes.items(), key=lambda pair: pair[1]):
        table.add_row(escape(str(identifier)), escape(route))
    console.print(table)
    console.print("[bold green]Site configuration is valid.[/bold green]")


@app.command()
def clean(site: Path = SiteOption, output: Path | None = OutputOption) -> None:
    """Remove the output directory."""
    try:
        settings = SiteSettings.load(site.resolve(), output_dir=output)
    except ConfigLoadError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    target = settings.abs_output_dir
    if target.resolve() == settings.abs_source_dir.resolve():
        console.print(f"[bold red]Refusing to remove the content directory {target}[/bold red]")
        raise typer.Exit(code=1)
    if target.exists():
        shutil.rmtree(target)
        console.print(f"Removed {target}")
    else:
        console.print(f"Nothing to clean at {target}")


if __name__ == "__main__":
    app()
