# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/observers/events.py

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str                 # ISO timestamp
    run_id: str             # correlates all events of one reconcile / CLI run
    cluster: Optional[str]  # cluster key, "<namespace>/<name>"

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(cluster: Optional[str] = None, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "cluster": cluster,
    }


# ---------------------------------------------------------------------
# Plan compiler / renderer
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PlanCompiled(BaseEvent):
    kind: str
    steps: List[str]
    files: int

@dataclass(frozen=True)
class PlanFailed(BaseEvent):
    kind: str
    error: str

@dataclass(frozen=True)
class PlanRendered(BaseEvent):
    size: int


# ---------------------------------------------------------------------
# Cluster-init lock
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class LockAcquired(BaseEvent):
    machine: str
    reentrant: bool = False

@dataclass(frozen=True)
class LockDenied(BaseEvent):
    machine: str
    holder: Optional[str] = None

@dataclass(frozen=True)
class LockReleased(BaseEvent):
    existed: bool

@dataclass(frozen=True)
class LockStoreFailed(BaseEvent):
    operation: str
    error: str


# ---------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ReconcileRequeued(BaseEvent):
    machine: str
    reason: str
    after_s: int

@dataclass(frozen=True)
class BootstrapDataStored(BaseEvent):
    machine: str
    name: str
