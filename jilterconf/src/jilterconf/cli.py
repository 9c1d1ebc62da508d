"""Command-line interface for inspecting the mail filter configuration.

What:
  Provide a Typer application with ``show``, ``check`` and ``lookup``
  commands that read the configuration file the same way filter processes do.

Why:
  Operators need to confirm what the filter will enforce after the management
  system rewrites the file, without attaching a debugger to a running process.
  Going through :class:`~jilterconf.config.store.ConfigStore` guarantees the
  CLI sees exactly what consumers see.

How:
  Each command resolves the file path (``--path``, then ``JILTERCONF_PATH``,
  then the system default), loads it through the store, and prints
  either JSON or a one-line summary.

Interfaces:
  ``app`` (Typer application), ``show``, ``check``, ``lookup``.

Invariants & Safety:
  - Exit codes follow shell expectations (``0`` success, ``1`` failure).
  - Commands never write to the configuration file.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from .config.codec import ConfigLoadError
from .config.schema import Configuration, RateLimit
from .config.store import ConfigStore


app = typer.Typer(help="Inspect the mail filter configuration file")

LOGGER = logging.getLogger("jilterconf.cli")

_PATH_HELP = "Configuration file; defaults to $JILTERCONF_PATH or the system location"


def _load(path: Optional[Path]) -> Configuration:
    store = ConfigStore(path)
    LOGGER.debug("loading configuration from %s", store.path)
    try:
        return store.current()
    except ConfigLoadError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1)


def _limit(limit: Optional[RateLimit]) -> Optional[Dict[str, Any]]:
    if limit is None:
        return None
    return {"burst": limit.burst, "rate": limit.rate}


@app.command()
def show(path: Optional[Path] = typer.Option(None, "--path", "-p", help=_PATH_HELP)) -> None:
    """Print the decoded configuration as JSON."""

    config = _load(path)
    typer.echo(json.dumps(config.to_dict(), indent=2))


@app.command()
def check(path: Optional[Path] = typer.Option(None, "--path", "-p", help=_PATH_HELP)) -> None:
    """Exit with status 0 when the file decodes, 1 otherwise."""

    store = ConfigStore(path)
    try:
        config = store.current()
    except ConfigLoadError as exc:
        typer.echo(f"invalid: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"ok {store.path} version={config.version} {store.cached_checksum}")


@app.command()
def lookup(
    domain: str = typer.Argument(..., help="Mail domain to look up"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help=_PATH_HELP),
) -> None:
    """Print the owner, addresses and rate limits of ``domain``."""

    config = _load(path)
    owner = config.owner_for_domain(domain)
    addresses = config.addresses_for_domain(domain)
    if owner is None and addresses is None:
        typer.echo(f"unknown domain: {domain}", err=True)
        raise typer.Exit(code=1)
    payload: Dict[str, Any] = {
        "domain": domain.lower(),
        "owner": owner,
        "addresses": sorted(addresses or ()),
        "inbound_limit": _limit(config.inbound_limit_for(owner)) if owner else None,
        "outbound_limit": _limit(config.outbound_limit_for(owner)) if owner else None,
        "relay_limit": _limit(config.relay_limit_for(owner)) if owner else None,
    }
    typer.echo(json.dumps(payload, indent=2))


if __name__ == "__main__":  # pragma: no cover - module execution entry point
    app()
