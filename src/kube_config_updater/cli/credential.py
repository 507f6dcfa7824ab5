# src/kube_config_updater/cli/credential.py
from __future__ import annotations

from typing import Optional

import typer

from kube_config_updater.cli import helper
from kube_config_updater.config.loader import load_config
from kube_config_updater.credentials.backend import DEFAULT_ACCOUNT, is_store_unavailable_error
from kube_config_updater.errors import ConfigError, CredentialStoreError, SetupError

app = typer.Typer(help="Manage SSH/sudo passwords in the system keyring")


def _account(server: Optional[str], default: bool) -> str:
    if bool(server) == bool(default):
        raise typer.BadParameter("Pass exactly one of --server NAME or --default")
    return DEFAULT_ACCOUNT if default else server


def _fail(action: str, exc: Exception) -> None:
    typer.echo(f"Could not {action}: {exc}", err=True)
    if is_store_unavailable_error(str(exc)):
        typer.echo(
            "The system keyring is not available. Log in to a desktop session "
            "or start/unlock the Secret Service (e.g. gnome-keyring) and retry.",
            err=True,
        )
    raise typer.Exit(code=1)


@app.command("set")
def set_credential(
    server: Optional[str] = typer.Option(None, "--server", help="Server name from the config"),
    default: bool = typer.Option(False, "--default", help="Fallback password for servers without their own"),
    password: Optional[str] = typer.Option(
        None, "--password", help="Password value (omit to be prompted; avoids shell history)"
    ),
):
    """Store the SSH (and sudo) password for a server or the default account."""
    account = _account(server, default)
    label = helper.account_label(account)
    if password is None:
        password = typer.prompt(f"Password for {label}", hide_input=True, confirmation_prompt=True)

    try:
        helper.make_resolver().set(account, password)
    except CredentialStoreError as exc:
        _fail(f"store credential for {label}", exc)
    typer.echo(f"Stored credential for {label}.")


@app.command("delete")
def delete_credential(
    server: Optional[str] = typer.Option(None, "--server", help="Server name from the config"),
    default: bool = typer.Option(False, "--default", help="The fallback account"),
):
    """Remove a stored password. Deleting a missing entry is not an error."""
    account = _account(server, default)
    label = helper.account_label(account)
    try:
        helper.make_resolver().delete(account)
    except CredentialStoreError as exc:
        _fail(f"delete credential for {label}", exc)
    typer.echo(f"Removed credential for {label}.")


@app.command("list")
def list_credentials(ctx: typer.Context):
    """Show which servers have a stored password. Values are never printed."""
    state: helper.CliState = ctx.obj
    names = []
    try:
        cfg = load_config(state.config_path if state else None)
        names = [s.name for s in cfg.servers]
    except (ConfigError, SetupError) as exc:
        typer.echo(f"warning: {exc}\nShowing the default account only.", err=True)

    try:
        presence = helper.make_resolver().list(names)
    except CredentialStoreError as exc:
        _fail("read the keyring", exc)

    for account, present in presence.items():
        typer.echo(f"{helper.account_label(account):<32} {'set' if present else '-'}")
