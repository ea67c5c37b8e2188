"""CLI helper functions, decorators, and option definitions for bmfontgen."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from bmfontgen.config import STATE_DIR_NAME
from bmfontgen.exceptions import ConfigurationError
from bmfontgen.fingerprint import DirectoryFingerprintStore
from bmfontgen.generator import BuildReport, BuildStatus
from bmfontgen.schema import FontUnit, load_units_file


def shared_config_options(func):
    """Decorator that adds the config argument and state options to a command."""
    options = [
        click.argument("config_path", type=click.Path(exists=True, dir_okay=False)),
        click.option(
            "--state-dir",
            type=click.Path(file_okay=False),
            default=None,
            help=f"Fingerprint directory (default: {STATE_DIR_NAME}/ next to the config)",
        ),
        click.option(
            "--font",
            "font_names",
            multiple=True,
            help="Only this font unit (repeatable)",
        ),
        click.option("-v", "--verbose", is_flag=True, help="Verbose output"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _setup_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


def _load_config(config_path: str) -> tuple[list[FontUnit], list[ConfigurationError]]:
    """Load the valid units and the per-unit errors; exit if the document itself is bad."""
    try:
        return load_units_file(config_path)
    except ConfigurationError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)


def _select_units(
    units: list[FontUnit],
    errors: list[ConfigurationError],
    names: tuple[str, ...],
) -> tuple[list[FontUnit], list[ConfigurationError]]:
    if not names:
        return units, errors
    known = {unit.name: unit for unit in units}
    invalid = {e.unit: e for e in errors}
    unknown = [n for n in names if n not in known and n not in invalid]
    if unknown:
        click.secho(f"Error: unknown font unit(s): {', '.join(unknown)}", fg="red", err=True)
        sys.exit(1)
    return [known[n] for n in names if n in known], [invalid[n] for n in names if n in invalid]


def _print_invalid(errors: list[ConfigurationError]) -> None:
    for error in errors:
        click.secho(f"Invalid {error.unit}: {error}", fg="red", err=True)


def _open_store(config_path: str, state_dir: str | None) -> DirectoryFingerprintStore:
    directory = Path(state_dir) if state_dir else Path(config_path).resolve().parent / STATE_DIR_NAME
    store = DirectoryFingerprintStore(directory)
    store.open()
    return store


def _print_report(report: BuildReport) -> None:
    """Print one line per size plus a summary."""
    for result in report.results:
        label = result.unit if result.size is None else f"{result.unit} {result.size}px"
        if result.status is BuildStatus.BUILT:
            files = ", ".join(p.name for p in result.outputs)
            click.secho(f"Built {label}: {files}", fg="green")
        elif result.status is BuildStatus.UP_TO_DATE:
            click.echo(f"Up to date {label}: {result.output.name}")
        else:
            click.secho(f"Failed {label}: {result.error}", fg="red", err=True)
        for warning in result.warnings:
            click.secho(f"  Warning: {warning}", fg="yellow")

    click.echo(
        f"Done: {len(report.built)} built, {len(report.up_to_date)} up to date, "
        f"{len(report.failed)} failed."
    )
