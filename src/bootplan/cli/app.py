# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/cli/app.py
from __future__ import annotations

from pathlib import Path
from typing import NoReturn, Optional, Tuple

import typer
from pydantic import ValidationError

from bootplan.cloudinit.compiler import compile_plan
from bootplan.cloudinit.registry import verify_scripts
from bootplan.cloudinit.render import render_cloud_config
from bootplan.config.loader import load_intent
from bootplan.config.settings import BootplanSettings, load_settings
from bootplan.errors import BootplanError, ClaimStoreUnavailable, MissingScriptError, PlanValidationError
from bootplan.locking.mutex import ControlPlaneInitMutex
from bootplan.locking.store import claim_store_from_settings
from bootplan.logging.log import init_logging
from bootplan.observers.dispatcher import EventBus
from bootplan.observers.events import new_ctx
from bootplan.observers.jsonfile import JsonFileObserver
from bootplan.observers.logger import LoggerObserver
from bootplan.token.token import auth_token_name, generate_auth_token, generate_join_token, join_token_name

EXIT_LOCK_DENIED = 1
EXIT_VALIDATION = 2
EXIT_STORE_UNAVAILABLE = 3
EXIT_BROKEN_INSTALL = 4


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="MicroK8s bootstrap plan compiler")
lock_app = typer.Typer(help="Inspect and manage the cluster-init lock")
scripts_app = typer.Typer(help="Step payload checks")
token_app = typer.Typer(help="Cluster join and auth tokens")
app.add_typer(lock_app, name="lock")
app.add_typer(scripts_app, name="scripts")
app.add_typer(token_app, name="token")


def _start(settings: BootplanSettings, debug: bool) -> Tuple[EventBus, str]:
    logger, run_id, log_path = init_logging(base_dir=settings.log_dir, verbose=debug)
    events_path = log_path.with_suffix(".jsonl")
    bus = EventBus(observers=[LoggerObserver(logger), JsonFileObserver(events_path)])
    return bus, run_id


def _cluster_key(cluster: str, settings: BootplanSettings) -> str:
    if "/" in cluster:
        return cluster
    return f"{settings.lock_namespace}/{cluster}"


def _fail(msg: str, code: int) -> NoReturn:
    typer.secho(msg, fg=typer.colors.RED, err=True)
    raise typer.Exit(code)


@app.callback()
def main(ctx: typer.Context):
    # `scripts verify` reports per payload itself
    if ctx.invoked_subcommand == "scripts":
        return
    try:
        verify_scripts()
    except MissingScriptError as e:
        _fail(f"broken install: {e}", EXIT_BROKEN_INSTALL)


# ------------------------------------------------------------------------------
# render
# ------------------------------------------------------------------------------

@app.command()
def render(
    intent: Path = typer.Argument(..., help="Bootstrap intent YAML"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write cloud-config here instead of stdout"),
    debug: bool = typer.Option(False, "--debug"),
):
    """Compile an intent file and print the resulting cloud-config."""
    settings = load_settings()
    bus, run_id = _start(settings, debug)

    try:
        doc = load_intent(intent)
    except (ValidationError, PlanValidationError, OSError) as e:
        _fail(f"invalid intent file {intent}: {e}", EXIT_VALIDATION)

    ctx = new_ctx(cluster=doc.cluster.key, run_id=run_id)
    try:
        plan = compile_plan(doc.intent, bus=bus, run_ctx=ctx)
        data = render_cloud_config(plan, bus=bus, run_ctx=ctx)
    except PlanValidationError as e:
        _fail(f"cannot compile {doc.intent.kind} plan for {doc.machine}: {e}", EXIT_VALIDATION)
    except BootplanError as e:
        _fail(f"cannot render {doc.intent.kind} plan for {doc.machine}: {e}", EXIT_BROKEN_INSTALL)

    if out:
        out.write_bytes(data)
        typer.echo(f"wrote {len(data)} bytes to {out}")
    else:
        typer.echo(data.decode("utf-8"), nl=False)


# ------------------------------------------------------------------------------
# lock
# ------------------------------------------------------------------------------

@lock_app.command("acquire")
def lock_acquire(
    cluster: str = typer.Argument(..., help="Cluster name or namespace/name"),
    machine: str = typer.Argument(..., help="Machine claiming the init lock"),
    debug: bool = typer.Option(False, "--debug"),
):
    settings = load_settings()
    bus, run_id = _start(settings, debug)
    key = _cluster_key(cluster, settings)
    mutex = ControlPlaneInitMutex(claim_store_from_settings(settings), bus=bus)

    try:
        acquired = mutex.lock(key, machine, run_ctx=new_ctx(cluster=key, run_id=run_id))
    except ClaimStoreUnavailable as e:
        _fail(f"lock store unavailable: {e}", EXIT_STORE_UNAVAILABLE)

    if not acquired:
        _fail(f"{key} is locked by {mutex.holder(key) or 'another machine'}", EXIT_LOCK_DENIED)
    typer.echo(f"{machine} holds the init lock for {key}")


@lock_app.command("release")
def lock_release(
    cluster: str = typer.Argument(..., help="Cluster name or namespace/name"),
    debug: bool = typer.Option(False, "--debug"),
):
    """Release the init lock no matter who holds it."""
    settings = load_settings()
    bus, run_id = _start(settings, debug)
    key = _cluster_key(cluster, settings)
    mutex = ControlPlaneInitMutex(claim_store_from_settings(settings), bus=bus)

    try:
        mutex.unlock(key, run_ctx=new_ctx(cluster=key, run_id=run_id))
    except ClaimStoreUnavailable as e:
        _fail(f"lock store unavailable: {e}", EXIT_STORE_UNAVAILABLE)
    typer.echo(f"released init lock for {key}")


@lock_app.command("status")
def lock_status(cluster: str = typer.Argument(..., help="Cluster name or namespace/name")):
    settings = load_settings()
    key = _cluster_key(cluster, settings)
    store = claim_store_from_settings(settings)

    try:
        claim = store.get(key)
    except ClaimStoreUnavailable as e:
        _fail(f"lock store unavailable: {e}", EXIT_STORE_UNAVAILABLE)

    if claim is None:
        typer.echo(f"{key}: unlocked")
    else:
        typer.echo(f"{key}: locked by {claim.holder_machine_key or '<unknown>'} since {claim.acquired_at or '?'}")


# ------------------------------------------------------------------------------
# scripts
# ------------------------------------------------------------------------------

@scripts_app.command("verify")
def scripts_verify():
    """Load every step payload shipped with the package."""
    try:
        payloads = verify_scripts()
    except BootplanError as e:
        _fail(str(e), EXIT_VALIDATION)
    for name in payloads:
        typer.echo(f"ok  {name}")
    typer.echo(f"{len(payloads)} step payloads verified")


# ------------------------------------------------------------------------------
# token
# ------------------------------------------------------------------------------

@token_app.command("generate")
def token_generate(cluster: str = typer.Argument(..., help="Cluster name")):
    """Print a fresh join token and auth token, keyed by their secret names."""
    typer.echo(f"{join_token_name(cluster)}: {generate_join_token()}")
    typer.echo(f"{auth_token_name(cluster)}: {generate_auth_token()}")


if __name__ == "__main__":
    app()
