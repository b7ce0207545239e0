# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/locking/claim.py

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class ClusterInitClaim:
    """
    Record of which machine holds the right to initialize a cluster.
    At most one exists per cluster key.
    """
    cluster_key: str
    holder_machine_key: str
    acquired_at: str

    @classmethod
    def new(cls, cluster_key: str, machine_key: str, now: Optional[datetime] = None) -> "ClusterInitClaim":
        ts = (now or datetime.now(timezone.utc)).isoformat(timespec="seconds")
        return cls(cluster_key=cluster_key, holder_machine_key=machine_key, acquired_at=ts)

    def to_json(self) -> str:
        return json.dumps(
            {
                "clusterKey": self.cluster_key,
                "machineName": self.holder_machine_key,
                "acquiredAt": self.acquired_at,
            },
            sort_keys=True,
        )

    @classmethod
    def from_json(cls, raw: str) -> "ClusterInitClaim":
        d = json.loads(raw)
        return cls(
            cluster_key=d["clusterKey"],
            holder_machine_key=d["machineName"],
            acquired_at=d.get("acquiredAt", ""),
        )


def split_cluster_key(cluster_key: str) -> tuple[str, str]:
    """'<namespace>/<name>' -> (namespace, name). A bare name lives in 'default'."""
    if "/" in cluster_key:
        namespace, name = cluster_key.split("/", 1)
        return namespace or "default", name
    return "default", cluster_key
