# src/kube_config_updater/cli/app.py
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from kube_config_updater.cli import helper
from kube_config_updater.cli.credential import app as credential_cli
from kube_config_updater.config.loader import load_config
from kube_config_updater.errors import ConfigError, SetupError
from kube_config_updater.fetch.executor import RunReport
from kube_config_updater.kube.expiry import CertExpiryGate
from kube_config_updater.kube.models import Expired, Valid
from kube_config_updater.logging.log import init_logging
from kube_config_updater.state.run_state import RunStateStore


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(
    help="Fetch kubeconfigs from k3s servers over SSH and merge them into ~/.kube/config",
    add_completion=False,
)
app.add_typer(credential_cli, name="credential")


def _fatal(exc: Exception) -> None:
    typer.echo(f"error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Config file (default: ~/.kube_config_updater/config.yaml)"
    ),
    servers: Optional[List[str]] = typer.Option(
        None, "--servers", "-s", help="Only process these servers (repeatable, comma lists accepted)"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Evaluate and log every action without writing any file"
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Fetch even when the cached certificate is still valid"
    ),
    log_dir: Optional[Path] = typer.Option(
        None, "--log-dir", "-l", help="Also write a full debug log into this directory"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress (INFO)"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Log everything (DEBUG)"),
):
    """
    Without a sub-command: run the updater once. Safe for cron; prints
    nothing when every cached certificate is still valid.
    """
    logger, run_id, _ = init_logging(log_dir=log_dir, verbose=verbose or dry_run, debug=debug)
    state = helper.CliState(config_path=config, logger=logger, run_id=run_id)
    ctx.obj = state

    if ctx.invoked_subcommand is not None:
        return

    report = run(state, servers=helper.split_names(servers), dry_run=dry_run, force=force)
    if report.should_report:
        typer.echo(report.summary())


def run(state: helper.CliState, *, servers: List[str], dry_run: bool, force: bool) -> RunReport:
    """Setup errors exit 1; per-host problems only show up in the report."""
    try:
        cfg = load_config(state.config_path)
        updater = helper.build_updater(cfg, state=state, dry_run=dry_run, force=force)
    except (ConfigError, SetupError) as exc:
        _fatal(exc)
    return updater.run(servers)


@app.command("status")
def status(ctx: typer.Context):
    """Show cached certificate expiry and the last recorded outcome per server."""
    state: helper.CliState = ctx.obj
    try:
        cfg = load_config(state.config_path)
    except (ConfigError, SetupError) as exc:
        _fatal(exc)

    gate = CertExpiryGate()
    last = RunStateStore(cfg.state_file).read()

    table = Table(title="kube-config-updater")
    table.add_column("Server")
    table.add_column("Context")
    table.add_column("Certificate")
    table.add_column("Last run")
    table.add_column("Updated")
    table.add_column("Error", overflow="fold")

    for server in cfg.servers:
        cert = gate.evaluate(cfg.cache_path(server.name))
        if isinstance(cert, Valid):
            cert_text = f"[green]valid until {cert.expires_at:%Y-%m-%d}[/green]"
        elif isinstance(cert, Expired):
            cert_text = f"[red]expired {cert.expires_at:%Y-%m-%d}[/red]"
        else:
            cert_text = f"[yellow]unknown ({cert.reason})[/yellow]"

        rec = last.get(server.name)
        table.add_row(
            server.name,
            server.context_name or server.name,
            cert_text,
            rec.status.value if rec else "-",
            f"{rec.last_updated:%Y-%m-%d %H:%M}" if rec and rec.last_updated else "-",
            rec.error or "" if rec else "",
        )

    Console().print(table)


def cli() -> None:
    app()
