# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/locking/store.py

from __future__ import annotations

import logging
import os
import threading
import uuid
from pathlib import Path
from typing import Dict, Optional, Protocol

from ..config.settings import LOCK_BACKEND_CONFIGMAP, BootplanSettings
from ..errors import ClaimStoreUnavailable
from .claim import ClusterInitClaim, split_cluster_key

log = logging.getLogger("bootplan")


class ClaimStore(Protocol):
    """
    Durable backing store for cluster-init claims.

    create_if_absent, delete and delete_if_holder must be atomic.
    delete_if_holder only removes a claim still held by machine_key, so a
    revoker never drops a claim someone else took in the meantime.

    Implementations raise ClaimStoreUnavailable for infrastructure failures
    and never for "already exists" / "not found".
    """

    def create_if_absent(self, key: str, claim: ClusterInitClaim) -> bool: ...

    def get(self, key: str) -> Optional[ClusterInitClaim]: ...

    def delete(self, key: str) -> bool: ...

    def delete_if_holder(self, key: str, machine_key: str) -> bool: ...


class InMemoryClaimStore:
    """Thread-safe store for tests and single-process use. Not durable."""

    def __init__(self) -> None:
        self._claims: Dict[str, ClusterInitClaim] = {}
        self._lock = threading.Lock()

    def create_if_absent(self, key: str, claim: ClusterInitClaim) -> bool:
        with self._lock:
            if key in self._claims:
                return False
            self._claims[key] = claim
            return True

    def get(self, key: str) -> Optional[ClusterInitClaim]:
        with self._lock:
            return self._claims.get(key)

    def delete(self, key: str) -> bool:
        with self._lock:
            self._claims.pop(key, None)
            return True

    def delete_if_holder(self, key: str, machine_key: str) -> bool:
        with self._lock:
            claim = self._claims.get(key)
            if claim is None or claim.holder_machine_key != machine_key:
                return False
            del self._claims[key]
            return True


class FileClaimStore:
    """
    One file per claim under a shared directory.

    Creation uses O_CREAT | O_EXCL, which is atomic across processes on a
    local filesystem, and the file outlives the process that wrote it.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory).expanduser()

    def _path(self, key: str) -> Path:
        namespace, name = split_cluster_key(key)
        return self.directory / f"{namespace}__{name}.lock"

    def create_if_absent(self, key: str, claim: ClusterInitClaim) -> bool:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError:
            return False
        except OSError as exc:
            raise ClaimStoreUnavailable(f"cannot create claim {path}: {exc}") from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(claim.to_json())
                f.flush()
                os.fsync(f.fileno())
        except OSError as exc:
            # don't leave a half-written claim behind
            path.unlink(missing_ok=True)
            raise ClaimStoreUnavailable(f"cannot write claim {path}: {exc}") from exc
        return True

    def get(self, key: str) -> Optional[ClusterInitClaim]:
        path = self._path(key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise ClaimStoreUnavailable(f"cannot read claim {path}: {exc}") from exc
        return self._parse(key, raw, path)

    @staticmethod
    def _parse(key: str, raw: str, path: Path) -> ClusterInitClaim:
        try:
            return ClusterInitClaim.from_json(raw)
        except (ValueError, KeyError, TypeError):
            # creator is between open and write, or died there; the claim is still taken
            log.debug("claim %s is not fully written", path)
            return ClusterInitClaim(cluster_key=key, holder_machine_key="", acquired_at="")

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return True
        except OSError as exc:
            raise ClaimStoreUnavailable(f"cannot delete claim {path}: {exc}") from exc
        return True

    def delete_if_holder(self, key: str, machine_key: str) -> bool:
        """
        Move the claim aside (rename is atomic, only one revoker wins), then
        check who held it. A claim that turns out not to be machine_key's is
        linked back unless a new claim already took its place.
        """
        path = self._path(key)
        current = self.get(key)
        if current is None or current.holder_machine_key != machine_key:
            return False

        aside = path.with_name(f"{path.name}.{uuid.uuid4().hex}.revoke")
        try:
            os.rename(path, aside)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise ClaimStoreUnavailable(f"cannot revoke claim {path}: {exc}") from exc

        try:
            taken = self._parse(key, aside.read_text(encoding="utf-8"), aside)
            if taken.holder_machine_key != machine_key:
                try:
                    os.link(aside, path)
                except FileExistsError:
                    log.warning("claim %s was re-created while revoking %s", path, machine_key)
                return False
            return True
        except OSError as exc:
            raise ClaimStoreUnavailable(f"cannot revoke claim {path}: {exc}") from exc
        finally:
            aside.unlink(missing_ok=True)


def claim_store_from_settings(settings: BootplanSettings) -> ClaimStore:
    """Pick the claim store BOOTPLAN_LOCK_BACKEND asks for."""
    if settings.lock_backend == LOCK_BACKEND_CONFIGMAP:
        # needs a kubeconfig only when actually selected
        from .configmap import ConfigMapClaimStore

        return ConfigMapClaimStore(kube_context=settings.kube_context)
    return FileClaimStore(settings.lock_dir)
