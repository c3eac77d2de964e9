"""CLI output formatting for JSON and human-readable output."""

from __future__ import annotations

import json
import sys
from typing import Any, NoReturn

import click

from lec.cli.exit_codes import ExitCode


def error_exit(
    message: str,
    code: ExitCode | int,
    json_output: bool = False,
) -> NoReturn:
    """Exit with a formatted error message.

    Args:
        message: Error message to display.
        code: Exit code to use (ExitCode enum or int).
        json_output: Whether to format output as JSON.
    """
    if isinstance(code, ExitCode):
        code_name = code.name
    else:
        code_name = "UNKNOWN_ERROR"

    if json_output:
        click.echo(
            json.dumps(
                {"status": "failed", "error": {"code": code_name, "message": message}}
            ),
            err=True,
        )
    else:
        click.echo(f"Error: {message}", err=True)

    sys.exit(int(code))


def warning_output(message: str, json_output: bool = False) -> None:
    """Print a warning to stderr (suppressed in JSON mode)."""
    if not json_output:
        click.echo(f"Warning: {message}", err=True)


def json_output(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def table(headers: list[tuple[str, int]], rows: list[list[Any]]) -> None:
    """Print fixed-width columns; each header is (title, width)."""
    click.echo(" ".join(f"{title:<{width}}" for title, width in headers).rstrip())
    click.echo("-" * sum(width + 1 for _, width in headers))
    for row in rows:
        cells = []
        for (_, width), value in zip(headers, row, strict=True):
            text = "-" if value is None or value == "" else str(value)
            cells.append(f"{text[:width]:<{width}}")
        click.echo(" ".join(cells).rstrip())
