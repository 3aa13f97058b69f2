"""Command-line interface for richtree."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any

import typer

from .config import DEFAULT_CONFIG_FILENAME, EditorConfig, RichTreeConfig, load_config
from .converters import convert as convert_state
from .exceptions import RichTreeError
from .logger import setup_logger
from .parser import load_document_store, load_editor_state
from .populate import PopulationEngine
from .reader import DocumentReader

app = typer.Typer(
    name="richtree",
    help="Populate references in rich-text editor states and convert them to HTML",
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            help="Verbosity level: 0=silent (default), 1=show hydrations, 2=show dispatch, 3=debug",
            min=0,
            max=3,
        ),
    ] = 0,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help=f"Path to config file (default: {DEFAULT_CONFIG_FILENAME} if present)",
        ),
    ] = None,
) -> None:
    """Global options for richtree commands."""
    setup_logger(verbose)
    ctx.obj = config


def _load_config(ctx: typer.Context) -> RichTreeConfig | None:
    config_path: Path | None = ctx.obj
    if config_path is None:
        default_path = Path(DEFAULT_CONFIG_FILENAME)
        if not default_path.exists():
            return None
        config_path = default_path
    try:
        return load_config(config_path)
    except (RichTreeError, FileNotFoundError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


def _write_output(content: str, output: Path | None) -> None:
    if output:
        output.write_text(content, encoding="utf-8")
        typer.echo(f"Output written to {output}")
    else:
        typer.echo(content)


def _dump_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


@app.command()
def convert(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="Path to the editor state JSON/YAML file")],
    *,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file path")] = None,
) -> None:
    """Convert an editor state to HTML."""
    runtime_config = _load_config(ctx)
    editor = runtime_config.editor if runtime_config else EditorConfig()

    try:
        state = load_editor_state(file)
    except RichTreeError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    _write_output(convert_state(state, editor.converter_set), output)


@app.command()
def populate(  # noqa: PLR0913 - CLI command needs multiple options
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="Path to the editor state JSON/YAML file")],
    *,
    store: Annotated[
        Path, typer.Option("--store", "-s", help="Path to the document store JSON/YAML file")
    ],
    depth: Annotated[int, typer.Option("--depth", "-d", help="Requested depth", min=0)] = 0,
    max_depth: Annotated[
        int | None,
        typer.Option("--max-depth", help="Field max depth (default: editor config's)", min=0),
    ] = None,
    html: Annotated[
        bool, typer.Option("--html", help="Print the populated state as HTML instead of JSON")
    ] = False,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file path")] = None,
) -> None:
    """Populate the references of an editor state from a document store."""
    runtime_config = _load_config(ctx)
    editor = runtime_config.editor if runtime_config else EditorConfig()
    collections = runtime_config.collections if runtime_config else None

    try:
        state = load_editor_state(file)
        document_store = load_document_store(store)
        engine = PopulationEngine(document_store, editor, collections=collections)
        populated = asyncio.run(engine.populate(state, depth, max_depth))
    except RichTreeError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    if html:
        _write_output(convert_state(populated, editor.converter_set), output)
    else:
        _write_output(_dump_json(populated.to_dict()), output)


@app.command()
def read(
    ctx: typer.Context,
    collection: Annotated[str, typer.Argument(help="Collection slug")],
    doc_id: Annotated[str, typer.Argument(help="Document id")],
    *,
    store: Annotated[
        Path, typer.Option("--store", "-s", help="Path to the document store JSON/YAML file")
    ],
    depth: Annotated[int, typer.Option("--depth", "-d", help="Requested depth", min=0)] = 0,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file path")] = None,
) -> None:
    """Read a document through its collection's fields (population and derived fields)."""
    runtime_config = _load_config(ctx)
    if runtime_config is None:
        typer.echo("Error: The read command requires a config file declaring collections", err=True)
        raise typer.Exit(1)

    try:
        document_store = load_document_store(store)
        reader = DocumentReader(document_store, runtime_config.collections)
        document = asyncio.run(reader.read(collection, doc_id, depth=depth))
    except RichTreeError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    _write_output(_dump_json(document), output)


def main() -> int:
    """Main entry point."""
    # Typer handles sys.exit() internally
    app()
    return 0


if __name__ == "__main__":
    main()
