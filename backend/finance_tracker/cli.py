"""Command line entry point: import spreadsheets and run the API server."""

from pathlib import Path
from typing import List, Optional

import typer
import uvicorn

from .batch_processor import SourceFile
from .client import TransactionApiClient
from .config import get_settings
from .errors import ParseError, StoreUnavailableError
from .logging_setup import configure_logging
from .main import create_app

app = typer.Typer(add_completion=False, help="Personal finance tracker.")


@app.command("import")
def import_files(
    files: List[Path] = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="CSV or Excel files"
    ),
    api_url: Optional[str] = typer.Option(None, "--api-url", help="Override the API base URL"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate only, send nothing"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Submit without asking"),
    log_level: str = typer.Option("WARNING", "--log-level"),
) -> None:
    """Validate transaction spreadsheets and send the valid rows to the API."""
    configure_logging(log_level)
    settings = get_settings()
    if api_url:
        settings = settings.model_copy(update={"api_base_url": api_url})

    sources = [SourceFile.from_path(path) for path in files]

    with TransactionApiClient(settings) as client:
        with typer.progressbar(length=len(sources), label="Processing files") as bar:
            shown = 0

            def on_progress(fraction: float) -> None:
                nonlocal shown
                completed = round(fraction * len(sources))
                bar.update(completed - shown)
                shown = completed

            try:
                batch = client.process_files(sources, on_progress=on_progress)
            except ParseError as exc:
                typer.secho(f"Could not parse {exc}", err=True, fg=typer.colors.RED)
                raise typer.Exit(code=1)

        typer.echo(f"{len(batch.accepted)} valid rows, {len(batch.rejected)} invalid rows")
        for row_error in batch.rejected:
            typer.echo(f"  {row_error.source} row {row_error.row_position}: {row_error.message}")

        if dry_run or not batch.accepted:
            return
        if not yes and not typer.confirm(f"Submit {len(batch.accepted)} transactions?"):
            raise typer.Abort()

        summary = client.submit_bulk(batch.accepted)

    typer.echo(f"{summary.success_count} succeeded, {summary.error_count} failed")
    for entry in summary.results.errors:
        typer.echo(f"  transaction {entry.index + 1}: {entry.error}")
    if summary.error_count:
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host"),
    port: Optional[int] = typer.Option(None, "--port"),
) -> None:
    """Run the API server."""
    settings = get_settings()
    configure_logging(settings.log_level)
    try:
        api = create_app(settings)
    except StoreUnavailableError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)
    uvicorn.run(api, host=host or settings.host, port=port or settings.port)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
