# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/cloudinit/registry.py

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

from ..errors import MissingScriptError

log = logging.getLogger("bootplan")

# Where the first-boot agent finds the step payloads on the machine.
REMOTE_SCRIPTS_DIR = "/capi-scripts"

# Where the payloads ship inside this package.
SCRIPTS_DIR = Path(__file__).resolve().parent / "scripts"


@dataclass(frozen=True)
class Step:
    """
    A named provisioning step.

    Script steps are backed by a payload under SCRIPTS_DIR and invoked by
    their remote path. Inline steps are a fixed command line.
    """
    name: str
    script: Optional[str] = None
    command: Optional[str] = None

    @property
    def is_script(self) -> bool:
        return self.script is not None

    def invocation(self) -> str:
        if self.script is not None:
            return script_path(self)
        return self.command or ""


SET_X = Step("set-x", command="set -x")
SNAPSTORE_HTTP_PROXY = Step("snapstore-http-proxy", script="00-configure-snapstore-http-proxy.sh")
SNAPSTORE_PROXY = Step("snapstore-proxy", script="00-configure-snapstore-proxy.sh")
DISABLE_HOST_SERVICES = Step("disable-host-services", script="00-disable-host-services.sh")
INSTALL = Step("install", script="00-install-microk8s.sh")
CONFIGURE_CONTAINERD_PROXY = Step("configure-containerd-proxy", script="10-configure-containerd-proxy.sh")
CONFIGURE_KUBELET = Step("configure-kubelet", script="10-configure-kubelet.sh")
WAIT_READY = Step("wait-ready", command="microk8s status --wait-ready")
WAIT_APISERVER = Step("wait-apiserver", script="50-wait-apiserver.sh")
REFRESH_CERTS = Step("refresh-certs", command="microk8s refresh-certs /var/tmp")
CONFIGURE_CALICO_IPIP = Step("configure-calico-ipip", script="10-configure-calico-ipip.sh")
CONFIGURE_CLUSTER_AGENT_PORT = Step("configure-cluster-agent-port", script="10-configure-cluster-agent-port.sh")
CONFIGURE_DQLITE_PORT = Step("configure-dqlite-port", script="10-configure-dqlite-port.sh")
CONFIGURE_CERT_FOR_LB = Step("configure-cert-for-lb", script="10-configure-cert-for-lb.sh")
CONFIGURE_APISERVER = Step("configure-apiserver", script="10-configure-apiserver.sh")
ENABLE_ADDONS = Step("enable-addons", script="20-microk8s-enable.sh")
JOIN = Step("join", script="20-microk8s-join.sh")
CONFIGURE_TRAEFIK = Step("configure-traefik", script="30-configure-traefik.sh")
ADD_NODE = Step("add-node", command="microk8s add-node")

ALL_STEPS: Tuple[Step, ...] = (
    SET_X,
    SNAPSTORE_HTTP_PROXY,
    SNAPSTORE_PROXY,
    DISABLE_HOST_SERVICES,
    INSTALL,
    CONFIGURE_CONTAINERD_PROXY,
    CONFIGURE_KUBELET,
    WAIT_READY,
    WAIT_APISERVER,
    REFRESH_CERTS,
    CONFIGURE_CALICO_IPIP,
    CONFIGURE_CLUSTER_AGENT_PORT,
    CONFIGURE_DQLITE_PORT,
    CONFIGURE_CERT_FOR_LB,
    CONFIGURE_APISERVER,
    ENABLE_ADDONS,
    JOIN,
    CONFIGURE_TRAEFIK,
    ADD_NODE,
)

STEPS: Dict[str, Step] = {s.name: s for s in ALL_STEPS}


def get_step(name: str) -> Step:
    """Fetch a step by name. Raises KeyError if not found."""
    return STEPS[name]


def script_path(step: Step) -> str:
    if step.script is None:
        raise ValueError(f"Step '{step.name}' is not backed by a script")
    return posixpath.join(REMOTE_SCRIPTS_DIR, step.script)


def must_get_script(step: Step, scripts_dir: Optional[Path] = None) -> str:
    """
    Return the payload of a script step.

    A missing or empty payload is a packaging bug, so this raises
    MissingScriptError instead of returning a default.
    """
    base = scripts_dir or SCRIPTS_DIR
    if step.script is None:
        raise MissingScriptError(f"Step '{step.name}' has no script payload")
    path = base / step.script
    try:
        body = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise MissingScriptError(f"missing script payload {step.script} for step '{step.name}'") from exc
    if not body.strip():
        raise MissingScriptError(f"script payload {step.script} for step '{step.name}' is empty")
    return body


def verify_scripts(steps: Iterable[Step] = ALL_STEPS, scripts_dir: Optional[Path] = None) -> Dict[str, str]:
    """
    Load every script payload. Meant to run once at startup so a broken
    install fails before any plan references a missing step.
    """
    payloads: Dict[str, str] = {}
    for step in steps:
        if not step.is_script:
            continue
        payloads[step.name] = must_get_script(step, scripts_dir)
    log.debug("verified %d step payloads", len(payloads))
    return payloads
