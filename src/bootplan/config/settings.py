# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/config/settings.py

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

LOCK_BACKEND_FILE = "file"
LOCK_BACKEND_CONFIGMAP = "configmap"


@dataclass(frozen=True)
class BootplanSettings:
    lock_backend: str
    lock_dir: Path
    lock_namespace: str
    kube_context: Optional[str]
    requeue_seconds: int
    log_dir: Optional[Path]


def load_settings() -> BootplanSettings:
    # sensible defaults for a workstation; override via env
    backend = os.getenv("BOOTPLAN_LOCK_BACKEND", LOCK_BACKEND_FILE).strip().lower()
    if backend not in (LOCK_BACKEND_FILE, LOCK_BACKEND_CONFIGMAP):
        raise ValueError(f"BOOTPLAN_LOCK_BACKEND must be 'file' or 'configmap' (got '{backend}')")

    log_dir = os.getenv("BOOTPLAN_LOG_DIR")
    return BootplanSettings(
        lock_backend=backend,
        lock_dir=Path(os.getenv("BOOTPLAN_LOCK_DIR", "~/.bootplan/locks")).expanduser(),
        lock_namespace=os.getenv("BOOTPLAN_LOCK_NAMESPACE", "default"),
        kube_context=os.getenv("BOOTPLAN_KUBE_CONTEXT") or None,
        requeue_seconds=int(os.getenv("BOOTPLAN_REQUEUE_SECONDS", "30")),
        log_dir=Path(log_dir).expanduser() if log_dir else None,
    )
