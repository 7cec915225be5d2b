"""Command-line interface for codex2mylib."""
from __future__ import annotations

import csv
import logging
from pathlib import Path

import click

from .converter import DEFAULT_COVER_DIRECTORY, convert_file, output_paths

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


@click.group()
def cli():
    """Codex to Mylib conversion utilities."""


@cli.command("convert", help="Convert a Codex XML export to Mylib CSV and images.")
@click.option(
    "-i", "--input", "input_path", required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to Codex XML file.",
)
@click.option(
    "-o", "--output", "output_dir", required=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Directory where to write Mylib files.",
)
@click.option(
    "--cover-target", default=DEFAULT_COVER_DIRECTORY, show_default=True,
    help="Directory where Mylib imports cover images.",
)
@click.option("--verbose", is_flag=True, help="Log every extracted book.")
def convert(input_path: Path, output_dir: Path, cover_target: str, verbose: bool):
    """Convert INPUT into ``<stem>-mylib.csv`` and ``<stem>-mylib-images.txt``."""
    if verbose:
        logging.getLogger("codex2mylib").setLevel(logging.DEBUG)
    logging.getLogger(__name__).info("Input file = %s", input_path)
    csv_path, images_path = output_paths(input_path, output_dir)
    click.echo(f"Will write CSV to '{csv_path}' and images to '{images_path}'")
    try:
        total = convert_file(input_path, output_dir, cover_dir=cover_target)
    except (OSError, csv.Error) as exc:
        raise click.ClickException(f"Fails to convert from '{input_path}': {exc}") from exc
    click.echo(f"Converted {total} books.")


if __name__ == "__main__":  # pragma: no cover
    cli()
