# fsmc/cli.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""Command line entry point: check and graph specification documents."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional

import click

from fsmc import __version__
from fsmc.core.errors import ParseError, ValidationError
from fsmc.core.grammar import MachineDef, MessagesDef
from fsmc.core.parser import Document, parse_document
from fsmc.core.validation import Validator

logger = logging.getLogger("fsmc.cli")

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def load_document(path: Path) -> Document:
    """
    Read and validate a specification document, turning compile errors into
    a click failure with exit status 1.
    """
    text = path.read_text(encoding="utf-8")
    try:
        return parse_document(text, Validator())
    except (ParseError, ValidationError) as err:
        logger.debug("Rejected %s", path, exc_info=True)
        raise click.ClickException(f"{path}: {err}") from err


def describe_machine(machine: MachineDef, messages: Optional[MessagesDef] = None) -> List[str]:
    """Human readable summary of one validated machine."""
    kind = "fallible machine" if machine.is_fallible else "machine"
    lines = [f"{kind} {machine.name} (initial: {machine.initial.type_name})"]
    if machine.is_fallible:
        lines.append(f"  error type: {machine.error_type}, error state: {machine.error_state.type_name}")
    lines.append("  states:")
    for state in machine.states:
        lines.append(f"    {state.type_name} [{state.tag}]")
        for priority, target in enumerate(state.transits, start=1):
            lines.append(f"      {priority}. => {target.type_name}")
    if messages is not None:
        lines.append("  messages:")
        for message in messages.messages:
            lines.append(f"    {message}")
    return lines


def to_dot(machine: MachineDef) -> str:
    """Render a machine as a Graphviz digraph. Edge labels give guard priority."""
    lines = [f'digraph "{machine.name}" {{', "  rankdir=LR;", '  "__start" [shape=point];']
    for state in machine.states:
        shape = "doubleoctagon" if machine.error_state is not None and state.tag == machine.error_state.tag else "box"
        lines.append(f'  "{state.tag}" [label="{state.type_name}", shape={shape}];')
    lines.append(f'  "__start" -> "{machine.initial.tag}";')
    for state in machine.states:
        for priority, target in enumerate(state.transits, start=1):
            lines.append(f'  "{state.tag}" -> "{target.tag}" [label="{priority}"];')
    lines.append("}")
    return "\n".join(lines)


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(sorted(LOG_LEVELS), case_sensitive=False),
    default="warn",
    help="Logging level",
)
@click.version_option(version=__version__)
def cli(log_level: str) -> None:
    """
    fsmc - compile and inspect finite state machine specifications.
    """
    logging.basicConfig(
        level=LOG_LEVELS[log_level.lower()],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def check(file: Path) -> None:
    """Validate FILE and print a summary of every declaration."""
    document = load_document(file)
    messages = {declaration.name: declaration for declaration in document.messages}
    for machine in document.machines:
        for line in describe_machine(machine, messages.get(machine.name)):
            click.echo(line)
    click.echo(f"{file}: {len(document.machines)} machine(s) OK")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--machine", "machine_name", default=None, help="Machine to render (defaults to the first)")
def graph(file: Path, machine_name: Optional[str]) -> None:
    """Print the transition graph of a machine in FILE as Graphviz DOT."""
    document = load_document(file)
    if not document.machines:
        raise click.ClickException(f"{file}: no machine declared")
    if machine_name is None:
        machine = document.machines[0]
    else:
        try:
            machine = document.get_machine(machine_name)
        except KeyError:
            raise click.ClickException(f"{file}: no machine named {machine_name}") from None
    click.echo(to_dot(machine))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
