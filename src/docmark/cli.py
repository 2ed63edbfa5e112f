"""
docmark: normalize, check and preview Markdown documents with metadata comments.

Usage:
  docmark normalize [OPTIONS] PATH...
  docmark check [OPTIONS] PATH...
  docmark preview [OPTIONS] PATH
  docmark inspect [OPTIONS] PATH

Examples:
  docmark normalize notes/ -v
  docmark check notes/ report.md
  docmark preview report.md -o report.preview.md
  docmark inspect report.md --config docmark.yaml -vv
"""

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Optional

import typer
from tqdm import tqdm

from docmark.config import ConfigError, ParserConfig, load_config
from docmark.io.store import load_raw, save_raw
from docmark.markdown.document import parse_document, serialize_document
from docmark.markdown.preview import strip_metadata_comments

app = typer.Typer(help=__doc__, no_args_is_help=True)

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="YAML parser configuration")
VERBOSE_OPTION = typer.Option(
    0,
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (-v for INFO, -vv for DEBUG)",
)


def setup_logging(verbose: int):
    """Set up logging based on verbosity level."""
    if verbose == 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:  # verbose >= 2
        level = logging.DEBUG

    logging.basicConfig(level=level, format="%(levelname)s:%(name)s:%(message)s")


def _fail(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


def _load_config(path: Optional[Path]) -> ParserConfig:
    try:
        return load_config(path)
    except ConfigError as e:
        _fail(str(e))


def iter_markdown_files(paths: list[Path]) -> Iterator[Path]:
    """Expand directories into the `*.md` files below them."""
    for path in paths:
        if path.is_dir():
            yield from sorted(path.rglob("*.md"))
        else:
            yield path


def normalize_text(text: str, config: ParserConfig) -> str:
    return serialize_document(parse_document(text, config), config)


@app.command("normalize", help="Rewrite files in their normalized serialized form.")
def normalize(
    paths: list[Path] = typer.Argument(..., help="Markdown files or directories"),
    config_path: Optional[Path] = CONFIG_OPTION,
    verbose: int = VERBOSE_OPTION,
) -> None:
    setup_logging(verbose)
    config = _load_config(config_path)
    files = list(iter_markdown_files(paths))
    changed = 0
    for path in tqdm(files, desc="Normalizing", disable=len(files) < 2):
        try:
            text = load_raw(path)
            normalized = normalize_text(text, config)
            if normalized != text:
                save_raw(path, normalized)
                changed += 1
                logging.info(f"Normalized {path}")
        except OSError as e:
            _fail(f"{path}: {e}")
    typer.echo(f"{changed} of {len(files)} files normalized")


@app.command("check", help="Report files that change when parsed and serialized again.")
def check(
    paths: list[Path] = typer.Argument(..., help="Markdown files or directories"),
    config_path: Optional[Path] = CONFIG_OPTION,
    verbose: int = VERBOSE_OPTION,
) -> None:
    setup_logging(verbose)
    config = _load_config(config_path)
    unstable = []
    for path in iter_markdown_files(paths):
        try:
            text = load_raw(path)
        except OSError as e:
            _fail(f"{path}: {e}")
        if normalize_text(text, config) != text:
            unstable.append(path)
            typer.echo(f"{path}: not normalized")
    if unstable:
        raise typer.Exit(code=1)
    typer.echo("All files normalized")


@app.command("preview", help="Print the document without metadata comments.")
def preview(
    path: Path = typer.Argument(..., help="Markdown file"),
    out: Optional[Path] = typer.Option(None, "--output", "-o", help="Write here instead of stdout"),
    config_path: Optional[Path] = CONFIG_OPTION,
    verbose: int = VERBOSE_OPTION,
) -> None:
    setup_logging(verbose)
    config = _load_config(config_path)
    try:
        rendered = strip_metadata_comments(load_raw(path), config) + "\n"
        if out is None:
            typer.echo(rendered, nl=False)
        else:
            save_raw(out, rendered)
            logging.info(f"Wrote preview to {out}")
    except OSError as e:
        _fail(f"{path}: {e}")


@app.command("inspect", help="Print the parsed document tree as JSON.")
def inspect(
    path: Path = typer.Argument(..., help="Markdown file"),
    config_path: Optional[Path] = CONFIG_OPTION,
    verbose: int = VERBOSE_OPTION,
) -> None:
    setup_logging(verbose)
    config = _load_config(config_path)
    try:
        text = load_raw(path)
    except OSError as e:
        _fail(f"{path}: {e}")
    typer.echo(parse_document(text, config).to_json(), nl=False)


if __name__ == "__main__":
    app()
