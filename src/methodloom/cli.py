"""Methodloom CLI entry point."""

# methodloom:service=cli

from __future__ import annotations

import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import TYPE_CHECKING

import click

from methodloom import __version__
from methodloom.config import FAIL_ON_LEVELS, MODES, OUTPUT_FORMATS, MethodloomConfig, load_config

if TYPE_CHECKING:
    from methodloom.playbook.model import Playbook


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _apply_config_log_level(ctx: click.Context, config: MethodloomConfig) -> None:
    """Use the configured level unless ``--verbose``/``--quiet`` was given."""
    if ctx.obj.get("verbose") or ctx.obj.get("quiet"):
        return
    level = logging.getLevelName(config.log_level)
    if isinstance(level, int):
        logging.getLogger().setLevel(level)


# methodloom:service=cli
@click.group()
@click.version_option(version=__version__, prog_name="methodloom")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """Methodloom - methodology playbook enforcement."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    _configure_logging(verbose=verbose, quiet=quiet)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

_playbook_option = click.option(
    "--playbook",
    "playbook_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Playbook file (default: from methodloom.yml, else nearest *_playbook.yaml).",
)

_project_option = click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)

_prefix_option = click.option(
    "--prefix",
    "prefix_pairs",
    multiple=True,
    metavar="ALIAS=CANONICAL",
    help="Document-local prefix alias (repeatable).",
)


def _load_playbook_or_exit(
    playbook_path: Path | None, project_root: Path, config: MethodloomConfig
) -> Playbook:
    from methodloom.playbook import PlaybookConfigError, find_playbook, load_playbook

    path = playbook_path
    if path is None and config.playbook:
        path = project_root / config.playbook
    if path is None:
        path = find_playbook(project_root)
    if path is None:
        click.echo(
            f"Error: no playbook found in {project_root} or its parents "
            f"(use --playbook or set 'playbook' in methodloom.yml)",
            err=True,
        )
        sys.exit(2)

    try:
        return load_playbook(path)
    except PlaybookConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)


def _parse_prefixes(pairs: tuple[str, ...]) -> dict[str, str]:
    prefixes: dict[str, str] = {}
    for pair in pairs:
        alias, sep, canonical = pair.partition("=")
        if not sep or not alias or not canonical:
            msg = f"Invalid --prefix '{pair}', expected ALIAS=CANONICAL"
            raise click.BadParameter(msg, param_hint="--prefix")
        prefixes[alias] = canonical
    return prefixes


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


# methodloom:domain=engine
@main.command()
@click.argument("facts_path", metavar="FACTS", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@_playbook_option
@click.option(
    "--document",
    default=None,
    help="Document identifier used for schema lookup (default: from the facts file).",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(list(OUTPUT_FORMATS)),
    default=None,
    help="Output format (default: methodloom.yml, else rich if TTY, porcelain if piped).",
)
@click.option(
    "--mode",
    type=click.Choice(list(MODES)),
    default=None,
    help="'suggest' renders corrections, 'validate' reports violations only.",
)
@click.option(
    "--fail-on",
    type=click.Choice(list(FAIL_ON_LEVELS)),
    default=None,
    help="Lowest severity that makes the command exit 1 (default: error).",
)
@_project_option
@click.pass_context
def check(
    ctx: click.Context,
    *,
    facts_path: Path,
    playbook_path: Path | None,
    document: str | None,
    fmt: str | None,
    mode: str | None,
    fail_on: str | None,
    project: Path | None,
) -> None:
    """Validate extracted document facts against the methodology playbook.

    Exit codes: 0 = clean or violations below --fail-on,
    1 = violations at or above --fail-on, 2 = configuration or input error.
    """
    from methodloom.engine import (
        FactsError,
        format_json,
        format_markdown,
        format_porcelain,
        format_rich,
        load_facts,
        run_validation,
    )
    from methodloom.playbook import PlaybookConfigError

    project_root = project or Path.cwd()
    config = load_config(project_root)
    _apply_config_log_level(ctx, config)

    fmt = fmt or config.format or ("rich" if sys.stdout.isatty() else "porcelain")
    show_corrections = (mode or config.mode) == "suggest"
    threshold = fail_on or config.fail_on

    playbook = _load_playbook_or_exit(playbook_path, project_root, config)
    try:
        facts = load_facts(facts_path, document=document)
        report = run_validation(playbook, facts)
    except (PlaybookConfigError, FactsError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    if fmt == "json":
        output = format_json(report)
    elif fmt == "porcelain":
        output = format_porcelain(report)
    elif fmt == "markdown":
        output = format_markdown(
            report,
            methodology=playbook.metadata.methodology,
            show_corrections=show_corrections,
        )
    else:
        output = format_rich(report, show_corrections=show_corrections)
    if output:
        click.echo(output)

    if report.fails(threshold):
        sys.exit(1)


# ---------------------------------------------------------------------------
# constraints
# ---------------------------------------------------------------------------


# methodloom:domain=playbook
@main.command()
@_playbook_option
@click.option("--document", default=None, help="Only schemas whose key contains this text.")
@click.option("--property", "property_filter", default=None, help="Only constraints on this property.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@_project_option
@click.pass_context
def constraints(
    ctx: click.Context,
    *,
    playbook_path: Path | None,
    document: str | None,
    property_filter: str | None,
    as_json: bool,
    project: Path | None,
) -> None:
    """List the description-schema constraints of the playbook."""
    from methodloom.playbook import list_constraints

    project_root = project or Path.cwd()
    config = load_config(project_root)
    _apply_config_log_level(ctx, config)
    playbook = _load_playbook_or_exit(playbook_path, project_root, config)

    entries = list_constraints(
        playbook, description_file=document, property_filter=property_filter
    )

    if as_json:
        click.echo(json.dumps([asdict(e) for e in entries], indent=2))
        return

    if not entries:
        click.echo("No constraints found.")
        return

    from rich.console import Console
    from rich.table import Table

    console = Console()
    table = Table(title=f"{playbook.metadata.methodology} constraints")
    table.add_column("id", style="cyan")
    table.add_column("document")
    table.add_column("applies to")
    table.add_column("severity")
    table.add_column("properties")
    for entry in entries:
        table.add_row(
            entry.id,
            entry.description_file,
            entry.applies_to,
            entry.severity,
            ", ".join(entry.properties),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Single-assertion queries
# ---------------------------------------------------------------------------


# methodloom:domain=engine
@main.command()
@click.argument("instance_type")
@click.argument("relation")
@click.argument("target_type")
@_playbook_option
@_prefix_option
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@_project_option
@click.pass_context
def direction(
    ctx: click.Context,
    *,
    instance_type: str,
    relation: str,
    target_type: str,
    playbook_path: Path | None,
    prefix_pairs: tuple[str, ...],
    as_json: bool,
    project: Path | None,
) -> None:
    """Check whether RELATION from INSTANCE_TYPE to TARGET_TYPE is in the preferred direction."""
    from methodloom.engine import check_assertion_direction

    project_root = project or Path.cwd()
    config = load_config(project_root)
    _apply_config_log_level(ctx, config)
    playbook = _load_playbook_or_exit(playbook_path, project_root, config)

    advice = check_assertion_direction(
        playbook,
        instance_type,
        relation,
        target_type,
        prefixes=_parse_prefixes(prefix_pairs),
    )

    if as_json:
        click.echo(json.dumps(asdict(advice), indent=2))
        return

    if advice.is_correct:
        click.echo(f'✓ "{relation}" is stated in the preferred direction')
        return
    click.echo(f"✗ {advice.suggestion}")
    click.echo(f"  Correct relation: {advice.correct_relation}")
    if advice.correct_owner:
        click.echo(f"  Owner: {advice.correct_owner}")


# methodloom:domain=engine
@main.command()
@click.argument("source")
@click.argument("source_type")
@click.argument("relation")
@click.argument("target")
@click.argument("target_type")
@_playbook_option
@_prefix_option
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@_project_option
@click.pass_context
def reformat(
    ctx: click.Context,
    *,
    source: str,
    source_type: str,
    relation: str,
    target: str,
    target_type: str,
    playbook_path: Path | None,
    prefix_pairs: tuple[str, ...],
    as_json: bool,
    project: Path | None,
) -> None:
    """Rewrite one proposed assertion into the preferred relation direction."""
    from methodloom.engine import intercept_and_reformat

    project_root = project or Path.cwd()
    config = load_config(project_root)
    _apply_config_log_level(ctx, config)
    playbook = _load_playbook_or_exit(playbook_path, project_root, config)

    result = intercept_and_reformat(
        playbook,
        source,
        source_type,
        relation,
        target,
        target_type,
        prefixes=_parse_prefixes(prefix_pairs),
    )

    if as_json:
        click.echo(json.dumps(asdict(result), indent=2))
        return

    triple = result.result
    click.echo(f"{triple.source_instance} [ {triple.relation} {triple.target_instance} ]")
    if result.explanation:
        click.echo(result.explanation)
