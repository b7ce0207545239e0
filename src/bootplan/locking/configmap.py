# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/locking/configmap.py
from __future__ import annotations

import logging
from typing import Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from ..errors import ClaimStoreUnavailable
from .claim import ClusterInitClaim, split_cluster_key

log = logging.getLogger("bootplan")

CLAIM_DATA_KEY = "claim"
LOCK_SUFFIX = "-lock"


def lock_configmap_name(cluster_name: str) -> str:
    return f"{cluster_name}{LOCK_SUFFIX}"


class ConfigMapClaimStore:
    """
    Claims stored as ConfigMaps named '<cluster>-lock' in the cluster's
    namespace. The API server rejects a second create with 409, which
    gives us create-if-absent for free.
    """

    def __init__(self, api: Optional[client.CoreV1Api] = None, kube_context: Optional[str] = None):
        if api is None:
            if kube_context:
                config.load_kube_config(context=kube_context)
            else:
                config.load_kube_config()
            api = client.CoreV1Api()
        self.api = api

    def create_if_absent(self, key: str, claim: ClusterInitClaim) -> bool:
        namespace, name = split_cluster_key(key)
        body = client.V1ConfigMap(
            metadata=client.V1ObjectMeta(name=lock_configmap_name(name), namespace=namespace),
            data={CLAIM_DATA_KEY: claim.to_json()},
        )
        try:
            self.api.create_namespaced_config_map(namespace=namespace, body=body)
        except ApiException as exc:
            if exc.status == 409:
                return False
            raise ClaimStoreUnavailable(
                f"cannot create lock configmap {namespace}/{lock_configmap_name(name)}: {exc.status} {exc.reason}"
            ) from exc
        return True

    def _read(self, key: str):
        namespace, name = split_cluster_key(key)
        try:
            return self.api.read_namespaced_config_map(name=lock_configmap_name(name), namespace=namespace)
        except ApiException as exc:
            if exc.status == 404:
                return None
            raise ClaimStoreUnavailable(
                f"cannot read lock configmap {namespace}/{lock_configmap_name(name)}: {exc.status} {exc.reason}"
            ) from exc

    @staticmethod
    def _parse(key: str, cm) -> ClusterInitClaim:
        raw = (cm.data or {}).get(CLAIM_DATA_KEY)
        try:
            return ClusterInitClaim.from_json(raw or "")
        except (ValueError, KeyError, TypeError):
            # hand-edited or truncated; still counts as held
            log.warning("lock configmap for %s has no readable claim data", key)
            return ClusterInitClaim(cluster_key=key, holder_machine_key="", acquired_at="")

    def get(self, key: str) -> Optional[ClusterInitClaim]:
        cm = self._read(key)
        return self._parse(key, cm) if cm is not None else None

    def delete(self, key: str) -> bool:
        namespace, name = split_cluster_key(key)
        try:
            self.api.delete_namespaced_config_map(name=lock_configmap_name(name), namespace=namespace)
        except ApiException as exc:
            if exc.status == 404:
                return True
            raise ClaimStoreUnavailable(
                f"cannot delete lock configmap {namespace}/{lock_configmap_name(name)}: {exc.status} {exc.reason}"
            ) from exc
        return True

    def delete_if_holder(self, key: str, machine_key: str) -> bool:
        """
        Delete only the exact object we read. The resourceVersion
        precondition makes the API server refuse (409) if the claim was
        replaced in between.
        """
        cm = self._read(key)
        if cm is None or self._parse(key, cm).holder_machine_key != machine_key:
            return False

        namespace, name = split_cluster_key(key)
        opts = client.V1DeleteOptions(
            preconditions=client.V1Preconditions(resource_version=cm.metadata.resource_version)
        )
        try:
            self.api.delete_namespaced_config_map(name=lock_configmap_name(name), namespace=namespace, body=opts)
        except ApiException as exc:
            if exc.status in (404, 409):
                return False
            raise ClaimStoreUnavailable(
                f"cannot revoke lock configmap {namespace}/{lock_configmap_name(name)}: {exc.status} {exc.reason}"
            ) from exc
        return True
