# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/cloudinit/compiler.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from ..config.models import (
    BootstrapIntent,
    InitControlPlaneIntent,
    JoinControlPlaneIntent,
    JoinWorkerIntent,
)
from ..observers.dispatcher import EventBus
from ..observers.events import PlanCompiled, PlanFailed, new_ctx
from .controlplane_init import new_init_control_plane
from .controlplane_join import new_join_control_plane
from .plan import ProvisioningPlan
from .worker_join import new_join_worker

log = logging.getLogger("bootplan")


def _dispatch(intent: BootstrapIntent, scripts_dir: Optional[Path]) -> ProvisioningPlan:
    if isinstance(intent, InitControlPlaneIntent):
        return new_init_control_plane(intent, scripts_dir)
    if isinstance(intent, JoinControlPlaneIntent):
        return new_join_control_plane(intent, scripts_dir)
    if isinstance(intent, JoinWorkerIntent):
        return new_join_worker(intent, scripts_dir)
    raise TypeError(f"unsupported bootstrap intent {type(intent).__name__}")


def compile_plan(
    intent: BootstrapIntent,
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
    scripts_dir: Optional[Path] = None,
) -> ProvisioningPlan:
    """
    Compile a bootstrap intent into a provisioning plan.
    Emits PlanCompiled / PlanFailed if an EventBus is provided.

    Validation errors propagate unchanged; they are terminal for this input.
    """
    ctx = run_ctx or new_ctx()
    kind = getattr(intent, "kind", type(intent).__name__)
    try:
        plan = _dispatch(intent, scripts_dir)
    except Exception as e:
        log.error("failed to compile %s plan: %s", kind, e)
        if bus:
            bus.emit(PlanFailed(kind=kind, error=str(e), **ctx))
        raise

    log.debug("compiled %s plan: %d files, %d run commands", kind, len(plan.write_files), len(plan.run_steps))
    if bus:
        bus.emit(PlanCompiled(kind=kind, steps=plan.step_names(), files=len(plan.write_files), **ctx))
    return plan
