"""cascadeval CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path

import click
import yaml

from cascadeval import __version__


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", force=True)


@click.group()
@click.version_option(version=__version__, prog_name="cascadeval")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """cascadeval - validate cyclic object graphs against grouped rules."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    _configure_logging(verbose=verbose, quiet=quiet)


@main.command()
@click.argument("document", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--rules",
    "rules_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to rules.yml.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML file with a 'validator' section.",
)
@click.option("--group", "-g", "groups", multiple=True, help="Group to validate (repeatable).")
@click.option("--fail-fast", is_flag=True, default=False, help="Stop at the first violation.")
@click.option(
    "--no-tracking",
    is_flag=True,
    default=False,
    help="Re-validate beans on every visit (unsafe for cyclic documents).",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["text", "json", "porcelain"]),
    default=None,
    help="Output format (default: text if TTY, porcelain if piped).",
)
@click.option("--strict", is_flag=True, default=False, help="Exit 1 if violations found.")
def check(
    *,
    document: Path,
    rules_path: Path,
    config_path: Path | None,
    groups: tuple[str, ...],
    fail_fast: bool,
    no_tracking: bool,
    fmt: str | None,
    strict: bool,
) -> None:
    """Validate a YAML DOCUMENT against the rules in --rules.

    YAML anchors and aliases give the document shared and cyclic structure.
    Exit codes: 0 = clean or violations without --strict,
    1 = violations with --strict, 2 = configuration error.
    """
    from dataclasses import replace

    from cascadeval.config import ValidatorSettings, load_settings
    from cascadeval.errors import ConfigError, ValidationError
    from cascadeval.metadata import load_rules
    from cascadeval.report import format_json, format_porcelain, format_text
    from cascadeval.walker import GraphValidator

    if fmt is None:
        fmt = "text" if sys.stdout.isatty() else "porcelain"

    try:
        settings = load_settings(config_path) if config_path is not None else ValidatorSettings()
        if fail_fast:
            settings = replace(settings, fail_fast=True)
        if no_tracking:
            settings = replace(settings, track_validated_beans=False)
        rule_set = load_rules(rules_path, type_key=settings.type_key)
    except (ConfigError, ValueError, yaml.YAMLError) as exc:
        click.echo(f"Error: Invalid configuration: {exc}", err=True)
        sys.exit(2)

    try:
        with document.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        click.echo(f"Error: Cannot parse {document}: {exc}", err=True)
        sys.exit(2)

    validator = GraphValidator(rule_set, settings)
    start = time.monotonic()
    try:
        violations = validator.validate(data, groups or None)
    except ValidationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)
    elapsed = (time.monotonic() - start) * 1000

    if fmt == "json":
        output = format_json(violations, elapsed_ms=elapsed)
    elif fmt == "porcelain":
        output = format_porcelain(violations)
    else:
        output = format_text(violations, elapsed_ms=elapsed)
    if output:
        click.echo(output)

    if strict and violations:
        sys.exit(1)


@main.command()
@click.argument("rules_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="JSON output.")
def rules(*, rules_path: Path, as_json: bool) -> None:
    """List the rules parsed from RULES_PATH."""
    from cascadeval.metadata import load_rules
    from cascadeval.report import render_rules, rules_to_dict

    try:
        rule_set = load_rules(rules_path)
    except (ValueError, yaml.YAMLError) as exc:
        click.echo(f"Error: Invalid configuration: {exc}", err=True)
        sys.exit(2)

    if as_json:
        click.echo(json.dumps(rules_to_dict(rule_set), ensure_ascii=False, indent=2))
        return

    from rich.console import Console

    render_rules(rule_set, Console())
