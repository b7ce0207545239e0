# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/cloudinit/worker_join.py

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..config.models import JoinWorkerIntent
from . import registry as steps
from .common import (
    extra_files,
    extra_kubelet_args_file,
    join_urls,
    resolve_install_argument,
    validate_token,
)
from .plan import PlanBuilder, ProvisioningPlan, bare, q

WORKER_FLAG = "--worker"


def new_join_worker(
    intent: JoinWorkerIntent,
    scripts_dir: Optional[Path] = None,
) -> ProvisioningPlan:
    validate_token(intent.token)
    install_arg = resolve_install_argument(
        intent.kubernetes_version, intent.confinement, intent.risk_level
    )

    urls = join_urls(intent.join_node_ips, intent.cluster_agent_port, intent.token)
    proxy = intent.proxy
    creds = intent.snapstore_proxy_creds
    store = intent.snapstore_proxy

    b = PlanBuilder(scripts_dir=scripts_dir)
    b.add_files(extra_files(intent.extra_files))
    b.add_files(extra_kubelet_args_file(intent.extra_kubelet_args))

    b.run(steps.SET_X)
    b.run(steps.SNAPSTORE_HTTP_PROXY, q(creds.http), q(creds.https))
    b.run(steps.SNAPSTORE_PROXY, q(store.scheme), q(store.domain), q(store.id))
    b.run(steps.DISABLE_HOST_SERVICES)
    b.run(steps.INSTALL, q(install_arg))
    b.run(steps.CONFIGURE_CONTAINERD_PROXY, q(proxy.http), q(proxy.https), q(proxy.no_proxy))
    b.run(steps.CONFIGURE_KUBELET)
    b.run(steps.WAIT_READY)
    b.run(steps.CONFIGURE_CLUSTER_AGENT_PORT, q(intent.cluster_agent_port))
    b.run(steps.JOIN, *[q(u) for u in urls], bare(WORKER_FLAG))
    # workers reach the api server through the local proxy
    b.run(steps.CONFIGURE_TRAEFIK, q(intent.endpoint))

    return b.build()
