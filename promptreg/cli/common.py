"""Shared CLI utilities for promptreg commands."""

import asyncio
from collections.abc import Coroutine
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console

from promptreg.adapters import AdapterOptions
from promptreg.config import (
    RegistryConfig,
    Settings,
    load_config,
    load_or_create_config,
)
from promptreg.exceptions import RegistryError
from promptreg.fetcher import HttpSettings

console = Console()

T = TypeVar("T")


@dataclass
class CliState:
    """Global options shared with every command through the typer context."""

    config_path: Path | None = None


def get_state(ctx: typer.Context) -> CliState:
    if not isinstance(ctx.obj, CliState):
        ctx.obj = CliState()
    return ctx.obj


def error_exit(message: str) -> None:
    """Print an error and exit with status 1."""
    console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(1)


@contextmanager
def handle_errors():
    """Turn registry errors into a red message and exit code 1."""
    try:
        yield
    except RegistryError as e:
        error_exit(str(e))


def load_registry(ctx: typer.Context, create: bool = False) -> RegistryConfig:
    path = get_state(ctx).config_path
    if create:
        return load_or_create_config(path)
    return load_config(path)


def adapter_options(settings: Settings) -> AdapterOptions:
    """AdapterOptions built from the [settings] table."""
    return AdapterOptions(
        http=HttpSettings(timeout=settings.timeout, user_agent=settings.user_agent),
        cache_ttl=settings.cache_ttl,
    )


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Drive one adapter coroutine to completion."""
    return asyncio.run(coro)
