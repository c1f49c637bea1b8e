"""tagrules CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import click

from tagrules import __version__
from tagrules.errors import RuleParseError, RulesError

if TYPE_CHECKING:
    from tagrules.session import RuleEngine

_CONFIG_DIR_OPTION = click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("config"),
    show_default=True,
    help="Directory holding .tags, .rules and object files.",
)


@click.group()
@click.version_option(version=__version__, prog_name="tagrules")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """tagrules - declarative tag-matching rule engine."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _fail(exc: Exception, code: int = 2) -> NoReturn:
    click.echo(f"Error: {exc}", err=True)
    sys.exit(code)


def _engine(config_dir: Path) -> RuleEngine:
    from tagrules.session import RuleEngine

    return RuleEngine(config_dir)


def _loaded_engine(config_dir: Path) -> RuleEngine:
    engine = _engine(config_dir)
    try:
        engine.load_tags()
    except RulesError as exc:
        _fail(exc)
    return engine


@main.command()
@_CONFIG_DIR_OPTION
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
def tags(*, config_dir: Path, output_json: bool) -> None:
    """List the tag vocabulary."""
    vocabulary = _loaded_engine(config_dir).vocabulary

    if output_json:
        data = {name: sorted(vocabulary[name]) for name in sorted(vocabulary)}
        click.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return

    if not vocabulary:
        click.echo(f"No tags defined in {config_dir}.")
        return

    from rich.console import Console
    from rich.table import Table

    table = Table(title="Tags", box=None, padding=(0, 1))
    table.add_column("tag", style="cyan")
    table.add_column("values")
    for name in sorted(vocabulary):
        table.add_row(name, ", ".join(sorted(vocabulary[name])))
    Console().print(table)


@main.command()
@click.argument("rule")
@_CONFIG_DIR_OPTION
@click.option("--explain", is_flag=True, help="Show the normalized clauses.")
def check(*, rule: str, config_dir: Path, explain: bool) -> None:
    """Validate RULE against the vocabulary.

    Rules start with '-', so separate them from options with '--':

        tagrules check -- "- colour = red & size ! small"

    Exit codes: 0 = valid, 1 = invalid rule, 2 = configuration error.
    """
    engine = _loaded_engine(config_dir)
    try:
        clauses = engine.compile_rule(rule)
    except RuleParseError as exc:
        _fail(exc, code=1)

    click.echo(f"✓ Valid rule ({len(clauses)} clauses)")
    if explain:
        rendered = sorted(" & ".join(sorted(str(c) for c in clause)) for clause in clauses)
        for line in rendered:
            click.echo(f"  | {line}")


@main.command("add-tag")
@click.argument("file_name")
@click.argument("name")
@click.argument("values", nargs=-1, required=True)
@_CONFIG_DIR_OPTION
def add_tag(*, file_name: str, name: str, values: tuple[str, ...], config_dir: Path) -> None:
    """Add VALUES to tag NAME in FILE_NAME (.tags is appended if missing)."""
    try:
        path = _engine(config_dir).write_tag(file_name, name, values)
    except RulesError as exc:
        _fail(exc, code=1)
    click.echo(f"Wrote tag '{name.strip().lower()}' to {path}.")


@main.command("add-rule")
@click.argument("file_name")
@click.argument("rule")
@_CONFIG_DIR_OPTION
def add_rule(*, file_name: str, rule: str, config_dir: Path) -> None:
    """Validate RULE and append it to FILE_NAME (.rules is appended if missing).

    Separate the rule from options with '--':

        tagrules add-rule matching -- "- colour = red"
    """
    engine = _loaded_engine(config_dir)
    try:
        path = engine.write_rule(file_name, rule)
    except RulesError as exc:
        _fail(exc, code=1)
    click.echo(f"Added rule to {path}.")


def _parse_attribute(raw: str) -> tuple[str, list[str]]:
    name, sep, values = raw.partition("=")
    if not sep or not name.strip():
        msg = f"Invalid attribute {raw!r}, expected NAME=VALUE[,VALUE...]"
        raise click.BadParameter(msg, param_hint="--attr")
    return name.strip(), [v.strip() for v in values.split(",")]


@main.command("add-object")
@click.argument("file_name")
@click.argument("object_id")
@click.option(
    "--attr",
    "attrs",
    multiple=True,
    required=True,
    help="Attribute as NAME=VALUE[,VALUE...]; repeatable.",
)
@_CONFIG_DIR_OPTION
def add_object(*, file_name: str, object_id: str, attrs: tuple[str, ...], config_dir: Path) -> None:
    """Add OBJECT_ID with attributes to FILE_NAME (.yaml is appended if missing)."""
    attributes: dict[str, list[str]] = {}
    for raw in attrs:
        name, values = _parse_attribute(raw)
        attributes.setdefault(name, []).extend(values)

    try:
        path = _engine(config_dir).write_object(file_name, object_id, attributes)
    except RulesError as exc:
        _fail(exc, code=1)
    click.echo(f"Wrote object '{object_id.strip()}' to {path}.")


@main.command()
@_CONFIG_DIR_OPTION
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json", "porcelain"]),
    default=None,
    help="Output format (default: rich if TTY, porcelain if piped).",
)
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Exit 1 if any object matches no rule.",
)
def match(*, config_dir: Path, fmt: str | None, strict: bool) -> None:
    """Match every object against every rule.

    Exit codes: 0 = done, 1 = unmatched objects with --strict,
    2 = configuration error.
    """
    from tagrules.matcher import format_json as _format_json
    from tagrules.matcher import format_porcelain as _format_porcelain
    from tagrules.matcher import format_rich as _format_rich
    from tagrules.matcher import run_match

    if fmt is None:
        fmt = "rich" if sys.stdout.isatty() else "porcelain"

    try:
        result = run_match(config_dir)
    except RulesError as exc:
        _fail(exc)

    formatters = {
        "rich": _format_rich,
        "json": _format_json,
        "porcelain": _format_porcelain,
    }
    output = formatters[fmt](result)
    if output:
        click.echo(output)

    if strict and result.matched_objects < result.objects_scanned:
        sys.exit(1)
