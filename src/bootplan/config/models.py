# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/config/models.py

from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# 10 years, the default lifetime of the join token
DEFAULT_TOKEN_TTL = 315569260

DEFAULT_CLUSTER_AGENT_PORT = "25000"
DEFAULT_DQLITE_PORT = "19001"

# Several infra providers only open the etcd ports in their security groups.
REMAPPED_CLUSTER_AGENT_PORT = "30000"
REMAPPED_DQLITE_PORT = "2379"


def ports_for(remap: bool) -> tuple[str, str]:
    """Return (cluster agent port, dqlite port)."""
    if remap:
        return REMAPPED_CLUSTER_AGENT_PORT, REMAPPED_DQLITE_PORT
    return DEFAULT_CLUSTER_AGENT_PORT, DEFAULT_DQLITE_PORT


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class ProxySettings(_Frozen):
    http: Optional[str] = None
    https: Optional[str] = None
    no_proxy: Optional[str] = Field(default=None, alias="no")


class SnapstoreProxy(_Frozen):
    scheme: str = "http"
    domain: str = ""
    id: str = ""


class SnapstoreProxyCreds(_Frozen):
    http: str = ""
    https: str = ""


class WriteFile(_Frozen):
    content: str
    path: str
    permissions: str = "0644"
    owner: str = "root:root"


class InitControlPlaneIntent(_Frozen):
    """Bootstrap the first control plane node; forms the cluster."""

    kind: Literal["init-control-plane"] = "init-control-plane"

    ca_key: str = ""
    ca_cert: str = ""
    endpoint: str = ""
    token: str = ""
    token_ttl: int = DEFAULT_TOKEN_TTL
    kubernetes_version: str
    cluster_agent_port: str = DEFAULT_CLUSTER_AGENT_PORT
    dqlite_port: str = DEFAULT_DQLITE_PORT
    proxy: ProxySettings = ProxySettings()
    addons: List[str] = Field(default_factory=list)
    ip_in_ip: bool = True
    confinement: str = "classic"
    risk_level: str = ""
    extra_files: List[WriteFile] = Field(default_factory=list)
    extra_kubelet_args: List[str] = Field(default_factory=list)


class JoinControlPlaneIntent(_Frozen):
    """Add a control plane node to an existing cluster."""

    kind: Literal["join-control-plane"] = "join-control-plane"

    auth_token: str = ""
    endpoint: str = ""
    token: str = ""
    token_ttl: int = DEFAULT_TOKEN_TTL
    kubernetes_version: str
    cluster_agent_port: str = DEFAULT_CLUSTER_AGENT_PORT
    dqlite_port: str = DEFAULT_DQLITE_PORT
    proxy: ProxySettings = ProxySettings()
    join_node_ips: List[str] = Field(default_factory=list)
    ip_in_ip: bool = True
    confinement: str = "classic"
    risk_level: str = ""
    disable_default_cni: bool = False
    snapstore_proxy: SnapstoreProxy = SnapstoreProxy()
    snapstore_proxy_creds: SnapstoreProxyCreds = SnapstoreProxyCreds()
    extra_files: List[WriteFile] = Field(default_factory=list)
    extra_kubelet_args: List[str] = Field(default_factory=list)
    pre_commands: List[str] = Field(default_factory=list)
    post_commands: List[str] = Field(default_factory=list)
    boot_commands: List[str] = Field(default_factory=list)


class JoinWorkerIntent(_Frozen):
    """Add a worker node to an existing cluster."""

    kind: Literal["join-worker"] = "join-worker"

    token: str = ""
    endpoint: str = ""
    kubernetes_version: str
    cluster_agent_port: str = DEFAULT_CLUSTER_AGENT_PORT
    proxy: ProxySettings = ProxySettings()
    join_node_ips: List[str] = Field(default_factory=list)
    confinement: str = "classic"
    risk_level: str = ""
    snapstore_proxy: SnapstoreProxy = SnapstoreProxy()
    snapstore_proxy_creds: SnapstoreProxyCreds = SnapstoreProxyCreds()
    extra_files: List[WriteFile] = Field(default_factory=list)
    extra_kubelet_args: List[str] = Field(default_factory=list)


BootstrapIntent = Annotated[
    Union[InitControlPlaneIntent, JoinControlPlaneIntent, JoinWorkerIntent],
    Field(discriminator="kind"),
]


class ClusterRef(_Frozen):
    name: str
    namespace: str = "default"

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"


class IntentDocument(BaseModel):
    """
    What an intent file holds: the target cluster/machine plus the intent.

        cluster: {name: demo, namespace: default}
        machine: demo-cp-0
        intent:
          kind: init-control-plane
          kubernetes_version: v1.25.2
    """
    cluster: ClusterRef
    machine: str
    intent: BootstrapIntent
