# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/cloudinit/controlplane_init.py

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..config.models import InitControlPlaneIntent
from . import registry as steps
from .common import (
    endpoint_type,
    extra_files,
    extra_kubelet_args_file,
    normalize_addons,
    resolve_install_argument,
    validate_token,
    validate_token_ttl,
)
from .plan import File, PlanBuilder, ProvisioningPlan, bare, q

CA_KEY_PATH = "/var/tmp/ca.key"
CA_CERT_PATH = "/var/tmp/ca.crt"
CA_PERMISSIONS = "0600"


def new_init_control_plane(
    intent: InitControlPlaneIntent,
    scripts_dir: Optional[Path] = None,
) -> ProvisioningPlan:
    """
    Plan for the first control plane node, the one that forms the cluster.

    The CA is staged at /var/tmp so `microk8s refresh-certs` picks it up,
    which is what lets a kubeconfig be issued before the node exists.
    """
    validate_token(intent.token)
    validate_token_ttl(intent.token_ttl)
    install_arg = resolve_install_argument(
        intent.kubernetes_version, intent.confinement, intent.risk_level
    )

    addons = normalize_addons(intent.addons)
    proxy = intent.proxy

    b = PlanBuilder(scripts_dir=scripts_dir)
    b.add_leading_file(File(content=intent.ca_key, path=CA_KEY_PATH, permissions=CA_PERMISSIONS))
    b.add_leading_file(File(content=intent.ca_cert, path=CA_CERT_PATH, permissions=CA_PERMISSIONS))
    b.add_files(extra_files(intent.extra_files))
    b.add_files(extra_kubelet_args_file(intent.extra_kubelet_args))

    b.run(steps.SET_X)
    b.run(steps.DISABLE_HOST_SERVICES)
    b.run(steps.INSTALL, q(install_arg))
    b.run(steps.CONFIGURE_CONTAINERD_PROXY, q(proxy.http), q(proxy.https), q(proxy.no_proxy))
    b.run(steps.CONFIGURE_KUBELET)
    b.run(steps.WAIT_READY)
    b.run(steps.REFRESH_CERTS)
    b.run(steps.CONFIGURE_CALICO_IPIP, bare(intent.ip_in_ip))
    b.run(steps.CONFIGURE_CLUSTER_AGENT_PORT, q(intent.cluster_agent_port))
    b.run(steps.CONFIGURE_DQLITE_PORT, q(intent.dqlite_port))
    # port changes restart services
    b.run(steps.WAIT_READY)
    b.run(steps.CONFIGURE_CERT_FOR_LB, q(endpoint_type(intent.endpoint)), q(intent.endpoint))
    b.run(steps.CONFIGURE_APISERVER)
    b.run(steps.ENABLE_ADDONS, *[q(a) for a in addons])
    b.run(steps.ADD_NODE, bare("--token-ttl"), bare(intent.token_ttl), bare("--token"), q(intent.token))

    return b.build()
