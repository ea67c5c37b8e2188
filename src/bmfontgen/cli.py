"""CLI entry point for bmfontgen - build bitmap font atlases from TTF/OTF fonts."""

from __future__ import annotations

import sys

import click

from bmfontgen import __version__
from bmfontgen.cli_helpers import (
    _load_config,
    _open_store,
    _print_invalid,
    _print_report,
    _select_units,
    _setup_logging,
    shared_config_options,
)

# -- CLI group --------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="bmfontgen")
def cli():
    """Build bitmap font atlases (PNG pages + BMFont metrics) from TTF/OTF fonts."""


# -- build -----------------------------------------------------------------------------


@cli.command()
@shared_config_options
@click.option("--force", is_flag=True, help="Rebuild even when up to date")
@click.option("-j", "--jobs", type=int, default=None, help="Parallel jobs (default: auto)")
def build(config_path, state_dir, font_names, verbose, force, jobs):
    """Generate every font unit and size in a JSON config, skipping unchanged ones."""
    _setup_logging(verbose)

    from bmfontgen.generator import Generator

    units, invalid = _select_units(*_load_config(config_path), font_names)
    store = _open_store(config_path, state_dir)
    try:
        report = Generator(store, max_workers=jobs).build_all(units, force=force, invalid=invalid)
    finally:
        store.close()

    _print_report(report)
    if not report.ok:
        sys.exit(1)


# -- status ----------------------------------------------------------------------------


@cli.command()
@shared_config_options
def status(config_path, state_dir, font_names, verbose):
    """Show which sizes are up to date and why the others need rebuilding."""
    _setup_logging(verbose)

    from bmfontgen.exceptions import BmfontgenError
    from bmfontgen.generator import Generator

    units, invalid = _select_units(*_load_config(config_path), font_names)
    _print_invalid(invalid)
    store = _open_store(config_path, state_dir)
    generator = Generator(store)
    try:
        for unit in units:
            for spec in unit.sizes:
                label = f"{unit.name} {spec.size}px"
                try:
                    reason = generator.rebuild_reason(unit, spec)
                except (BmfontgenError, OSError) as e:
                    click.secho(f"  {label}: error: {e}", fg="red")
                    continue
                if reason is None:
                    click.secho(f"  {label}: up to date", fg="green")
                else:
                    click.secho(f"  {label}: needs rebuild ({reason})", fg="yellow")
    finally:
        store.close()
    if invalid:
        sys.exit(1)


# -- outputs ---------------------------------------------------------------------------


@cli.command()
@shared_config_options
def outputs(config_path, state_dir, font_names, verbose):
    """List the files each size declares as outputs."""
    _setup_logging(verbose)

    from bmfontgen.generator import Generator

    units, invalid = _select_units(*_load_config(config_path), font_names)
    _print_invalid(invalid)
    store = _open_store(config_path, state_dir)
    generator = Generator(store)
    try:
        for unit in units:
            for spec in unit.sizes:
                for path in generator.declared_outputs(unit, spec):
                    click.echo(str(path))
    finally:
        store.close()
    if invalid:
        sys.exit(1)


# -- validate --------------------------------------------------------------------------


@cli.command("validate")
@click.argument("fnt_path", type=click.Path(exists=True, dir_okay=False))
def validate_cmd(fnt_path):
    """Validate a written metrics file against its page images."""
    from bmfontgen.validator import validate_file

    issues = validate_file(fnt_path)
    if not issues:
        click.secho(f"Validation passed: {fnt_path}", fg="green")
        return

    click.secho(f"Validation issues in {fnt_path} ({len(issues)}):", fg="yellow")
    for issue in issues:
        click.echo(f"  - {issue}")
    sys.exit(1)
