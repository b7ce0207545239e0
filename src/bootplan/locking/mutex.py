# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/locking/mutex.py

from __future__ import annotations

import logging
from typing import Optional

from ..errors import ClaimStoreUnavailable
from ..observers.dispatcher import EventBus
from ..observers.events import (
    LockAcquired,
    LockDenied,
    LockReleased,
    LockStoreFailed,
    new_ctx,
)
from .claim import ClusterInitClaim
from .store import ClaimStore

log = logging.getLogger("bootplan")


class ControlPlaneInitMutex:
    """
    Single-writer lock gating cluster initialization.

    The claim lives only in the injected store, so several processes (or a
    restarted one) sharing the same store agree on the holder. A lost race is
    reported as False; store failures raise ClaimStoreUnavailable. Nothing
    here retries or sleeps.

    Claims are never handed over to another machine automatically. They go
    away only through unlock(), or revoke() for a holder known to be gone.
    """

    def __init__(self, store: ClaimStore, bus: Optional[EventBus] = None):
        self.store = store
        self.bus = bus

    def _emit(self, event) -> None:
        if self.bus:
            self.bus.emit(event)

    def _store_failed(self, operation: str, cluster_key: str, exc: Exception, ctx: dict) -> None:
        log.warning("lock store %s failed for %s: %s", operation, cluster_key, exc)
        self._emit(LockStoreFailed(operation=operation, error=str(exc), **ctx))

    def lock(self, cluster_key: str, machine_key: str, run_ctx: Optional[dict] = None) -> bool:
        """
        Claim the right to initialize cluster_key for machine_key.

        True if the caller holds the claim afterwards (fresh or re-entrant),
        False if another machine holds it.
        """
        ctx = run_ctx or new_ctx(cluster=cluster_key)
        try:
            current = self.store.get(cluster_key)
            if current is None:
                claim = ClusterInitClaim.new(cluster_key, machine_key)
                if self.store.create_if_absent(cluster_key, claim):
                    log.info("machine %s acquired init lock for %s", machine_key, cluster_key)
                    self._emit(LockAcquired(machine=machine_key, **ctx))
                    return True
                # lost the race, find out to whom
                current = self.store.get(cluster_key)
        except ClaimStoreUnavailable as exc:
            self._store_failed("lock", cluster_key, exc, ctx)
            raise

        if current is not None and current.holder_machine_key == machine_key:
            log.debug("machine %s already holds init lock for %s", machine_key, cluster_key)
            self._emit(LockAcquired(machine=machine_key, reentrant=True, **ctx))
            return True

        holder = current.holder_machine_key if current is not None else None
        log.info("init lock for %s is held by %s, %s must wait", cluster_key, holder or "<unknown>", machine_key)
        self._emit(LockDenied(machine=machine_key, holder=holder, **ctx))
        return False

    def unlock(self, cluster_key: str, run_ctx: Optional[dict] = None) -> bool:
        """Drop any claim on cluster_key. Releasing an unclaimed cluster is fine."""
        ctx = run_ctx or new_ctx(cluster=cluster_key)
        try:
            existed = self.store.get(cluster_key) is not None
            ok = self.store.delete(cluster_key)
        except ClaimStoreUnavailable as exc:
            self._store_failed("unlock", cluster_key, exc, ctx)
            raise

        if existed:
            log.info("released init lock for %s", cluster_key)
        self._emit(LockReleased(existed=existed, **ctx))
        return ok

    def revoke(self, cluster_key: str, machine_key: str, run_ctx: Optional[dict] = None) -> bool:
        """
        Drop the claim only if machine_key still holds it.

        Used when the holder is known to be gone. A claim that changed hands
        since the caller looked is left alone and False is returned.
        """
        ctx = run_ctx or new_ctx(cluster=cluster_key)
        try:
            revoked = self.store.delete_if_holder(cluster_key, machine_key)
        except ClaimStoreUnavailable as exc:
            self._store_failed("revoke", cluster_key, exc, ctx)
            raise

        if revoked:
            log.info("revoked init lock for %s held by %s", cluster_key, machine_key)
            self._emit(LockReleased(existed=True, **ctx))
        else:
            log.debug("init lock for %s is no longer held by %s, not revoking", cluster_key, machine_key)
        return revoked

    def holder(self, cluster_key: str) -> Optional[str]:
        """Machine currently holding the claim, or None."""
        claim = self.store.get(cluster_key)
        return claim.holder_machine_key if claim is not None else None
