# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/cloudinit/controlplane_join.py

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..config.models import JoinControlPlaneIntent
from . import registry as steps
from .common import (
    endpoint_type,
    extra_files,
    extra_kubelet_args_file,
    join_urls,
    resolve_install_argument,
    validate_token,
    validate_token_ttl,
)
from .plan import File, PlanBuilder, ProvisioningPlan, bare, q

CAPI_AUTH_TOKEN_PATH = "/capi/etc/token"
AUTH_TOKEN_PERMISSIONS = "0600"

# first argument of the join script; control plane nodes do not join as workers
CONTROL_PLANE_JOIN_MODE = "no"


def new_join_control_plane(
    intent: JoinControlPlaneIntent,
    scripts_dir: Optional[Path] = None,
) -> ProvisioningPlan:
    validate_token(intent.token)
    validate_token_ttl(intent.token_ttl)
    install_arg = resolve_install_argument(
        intent.kubernetes_version, intent.confinement, intent.risk_level
    )

    urls = join_urls(intent.join_node_ips, intent.cluster_agent_port, intent.token)
    proxy = intent.proxy
    creds = intent.snapstore_proxy_creds
    store = intent.snapstore_proxy

    b = PlanBuilder(scripts_dir=scripts_dir)
    b.add_leading_file(
        File(content=intent.auth_token, path=CAPI_AUTH_TOKEN_PATH, permissions=AUTH_TOKEN_PERMISSIONS)
    )
    b.add_files(extra_files(intent.extra_files))
    b.add_files(extra_kubelet_args_file(intent.extra_kubelet_args))
    b.boot(intent.boot_commands)

    b.run(steps.SET_X)
    b.run_raw(intent.pre_commands)
    b.run(steps.SNAPSTORE_HTTP_PROXY, q(creds.http), q(creds.https))
    b.run(steps.SNAPSTORE_PROXY, q(store.scheme), q(store.domain), q(store.id))
    b.run(steps.DISABLE_HOST_SERVICES)
    b.run(steps.INSTALL, q(install_arg), bare(intent.disable_default_cni))
    b.run(steps.CONFIGURE_CONTAINERD_PROXY, q(proxy.http), q(proxy.https), q(proxy.no_proxy))
    b.run(steps.CONFIGURE_KUBELET)
    b.run(steps.WAIT_APISERVER)
    b.run(steps.CONFIGURE_CALICO_IPIP, bare(intent.ip_in_ip))
    b.run(steps.CONFIGURE_CLUSTER_AGENT_PORT, q(intent.cluster_agent_port))
    b.run(steps.CONFIGURE_DQLITE_PORT, q(intent.dqlite_port))
    b.run(steps.WAIT_APISERVER)
    b.run(steps.CONFIGURE_CERT_FOR_LB, q(endpoint_type(intent.endpoint)), q(intent.endpoint))
    b.run(steps.JOIN, bare(CONTROL_PLANE_JOIN_MODE), *[q(u) for u in urls])
    b.run(steps.CONFIGURE_APISERVER)
    b.run(steps.ADD_NODE, bare("--token-ttl"), bare(intent.token_ttl), bare("--token"), q(intent.token))
    b.run_raw(intent.post_commands)

    return b.build()
