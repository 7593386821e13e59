"""Styled terminal output shared by the CLI and gitp."""

from __future__ import annotations

import click


def styled(text: str, **kwargs) -> str:
    return click.style(text, **kwargs)


def info(msg: str) -> None:
    click.echo(f"  {msg}")


def success(msg: str) -> None:
    click.echo(f"  {styled(msg, fg='green')}")


def warn(msg: str) -> None:
    click.echo(f"  {styled(msg, fg='yellow')}")


def error(msg: str) -> None:
    click.echo(f"  {styled(msg, fg='red')}", err=True)


def heading(msg: str) -> None:
    click.echo(f"\n  {styled(msg, bold=True)}")
