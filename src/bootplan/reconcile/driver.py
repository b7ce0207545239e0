# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/reconcile/driver.py

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol

from ..cloudinit.compiler import compile_plan
from ..cloudinit.registry import verify_scripts
from ..cloudinit.render import render_cloud_config
from ..config.models import BootstrapIntent, ClusterRef
from ..config.settings import BootplanSettings
from ..errors import PlanValidationError
from ..locking.mutex import ControlPlaneInitMutex
from ..locking.store import claim_store_from_settings
from ..observers.dispatcher import EventBus
from ..observers.events import BootstrapDataStored, ReconcileRequeued, new_ctx

log = logging.getLogger("bootplan")

DEFAULT_REQUEUE_SECONDS = 30
DATA_FORMAT = "cloud-config"


class BootstrapDataSink(Protocol):
    """Where rendered bootstrap data ends up (a Secret in a real controller)."""

    def store(self, name: str, data: bytes) -> None: ...


class InMemoryDataSink:
    def __init__(self) -> None:
        self.records: Dict[str, Dict[str, object]] = {}
        self._lock = threading.Lock()

    def store(self, name: str, data: bytes) -> None:
        with self._lock:
            self.records[name] = {"format": DATA_FORMAT, "value": data}

    def get(self, name: str) -> Optional[bytes]:
        with self._lock:
            rec = self.records.get(name)
        return rec["value"] if rec else None


@dataclass(frozen=True)
class ReconcileRequest:
    """
    One bootstrap request as seen by a single reconcile pass.

    init_intent is used by the control plane machine that forms the
    cluster; join_intent by every machine once the cluster is initialized.
    """
    cluster: ClusterRef
    machine: str
    control_plane: bool
    cluster_initialized: bool = False
    init_intent: Optional[BootstrapIntent] = None
    join_intent: Optional[BootstrapIntent] = None


@dataclass(frozen=True)
class ReconcileResult:
    requeue_after: int = 0
    data_secret_name: Optional[str] = None


class BootstrapReconciler:
    """
    Reference driver: lock -> compile -> render -> store.

    Safe to call repeatedly for the same request. Never sleeps; a requeue
    is reported back through ReconcileResult.requeue_after.

    machine_exists lets the caller tell whether the recorded lock holder
    still exists. A holder that is gone has its claim revoked before this
    machine tries to acquire it, but only if that same holder still owns
    the claim at revoke time.

    A claim with no readable holder (its writer died between creating and
    filling it) is never revoked here; it needs `bootplan lock release`.

    Every step payload is loaded on construction, so a broken install fails
    here instead of after a lock has been taken.
    """

    def __init__(
        self,
        mutex: ControlPlaneInitMutex,
        sink: BootstrapDataSink,
        bus: Optional[EventBus] = None,
        requeue_after: int = DEFAULT_REQUEUE_SECONDS,
        machine_exists: Optional[Callable[[str], bool]] = None,
        scripts_dir: Optional[Path] = None,
    ):
        verify_scripts(scripts_dir=scripts_dir)
        self.mutex = mutex
        self.sink = sink
        self.bus = bus
        self.requeue_after = requeue_after
        self.machine_exists = machine_exists
        self.scripts_dir = scripts_dir

    def _requeue(self, request: ReconcileRequest, reason: str, ctx: dict) -> ReconcileResult:
        log.info("requeue %s in %ss: %s", request.machine, self.requeue_after, reason)
        if self.bus:
            self.bus.emit(
                ReconcileRequeued(machine=request.machine, reason=reason, after_s=self.requeue_after, **ctx)
            )
        return ReconcileResult(requeue_after=self.requeue_after)

    def _publish(self, request: ReconcileRequest, intent: Optional[BootstrapIntent], ctx: dict) -> ReconcileResult:
        if intent is None:
            raise PlanValidationError(f"no bootstrap intent given for machine {request.machine}")
        plan = compile_plan(intent, bus=self.bus, run_ctx=ctx, scripts_dir=self.scripts_dir)
        data = render_cloud_config(plan, bus=self.bus, run_ctx=ctx)
        self.sink.store(request.machine, data)
        log.info("stored bootstrap data for %s (%s, %d bytes)", request.machine, intent.kind, len(data))
        if self.bus:
            self.bus.emit(BootstrapDataStored(machine=request.machine, name=request.machine, **ctx))
        return ReconcileResult(data_secret_name=request.machine)

    def _revoke_stale_holder(self, cluster_key: str, ctx: dict) -> None:
        if self.machine_exists is None:
            return
        holder = self.mutex.holder(cluster_key)
        if holder and not self.machine_exists(holder):
            log.warning("init lock holder %s for %s no longer exists, revoking", holder, cluster_key)
            self.mutex.revoke(cluster_key, holder, run_ctx=ctx)

    def reconcile(self, request: ReconcileRequest) -> ReconcileResult:
        cluster_key = request.cluster.key
        ctx = new_ctx(cluster=cluster_key)

        if request.cluster_initialized:
            # nothing left to serialize once the first node is up
            self.mutex.unlock(cluster_key, run_ctx=ctx)
            return self._publish(request, request.join_intent, ctx)

        if not request.control_plane:
            return self._requeue(request, "waiting for control plane to initialize", ctx)

        self._revoke_stale_holder(cluster_key, ctx)

        if not self.mutex.lock(cluster_key, request.machine, run_ctx=ctx):
            return self._requeue(request, "another machine is initializing the cluster", ctx)

        try:
            return self._publish(request, request.init_intent, ctx)
        except Exception:
            log.error("init of %s by %s failed, releasing lock", cluster_key, request.machine)
            try:
                self.mutex.unlock(cluster_key, run_ctx=ctx)
            except Exception as unlock_exc:
                log.warning("could not release init lock for %s: %s", cluster_key, unlock_exc)
            raise


def reconciler_from_settings(
    settings: BootplanSettings,
    sink: BootstrapDataSink,
    bus: Optional[EventBus] = None,
    machine_exists: Optional[Callable[[str], bool]] = None,
) -> BootstrapReconciler:
    """Reconciler over the configured claim store and requeue interval."""
    mutex = ControlPlaneInitMutex(claim_store_from_settings(settings), bus=bus)
    return BootstrapReconciler(
        mutex,
        sink,
        bus=bus,
        requeue_after=settings.requeue_seconds,
        machine_exists=machine_exists,
    )
