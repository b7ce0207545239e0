# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/cloudinit/render.py

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import yaml

from ..errors import RenderError
from ..observers.dispatcher import EventBus
from ..observers.events import PlanRendered, new_ctx
from .plan import ProvisioningPlan

log = logging.getLogger("bootplan")

CLOUD_CONFIG_HEADER = "#cloud-config\n"


class _CloudConfigDumper(yaml.SafeDumper):
    pass


def _str_presenter(dumper: yaml.SafeDumper, data: str) -> yaml.Node:
    # file contents read better as literal blocks
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_CloudConfigDumper.add_representer(str, _str_presenter)


def cloud_config_document(plan: ProvisioningPlan) -> Dict[str, Any]:
    """The plan as plain data, in the fixed section and field order."""
    return {
        "write_files": [
            {
                "content": f.content,
                "path": f.path,
                "permissions": f.permissions,
                "owner": f.owner,
            }
            for f in plan.write_files
        ],
        "runcmd": list(plan.run_commands),
        "bootcmd": list(plan.boot_commands),
    }


def render_cloud_config(
    plan: ProvisioningPlan,
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
) -> bytes:
    """
    Serialize a plan to cloud-config bytes.

    Same plan in, same bytes out: keys keep insertion order and nothing
    time-dependent is added.
    """
    try:
        body = yaml.dump(
            cloud_config_document(plan),
            Dumper=_CloudConfigDumper,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
            width=float("inf"),
        )
    except yaml.YAMLError as exc:
        log.error("failed to render cloud-config: %s", exc)
        raise RenderError(f"failed to render cloud-config: {exc}") from exc

    data = (CLOUD_CONFIG_HEADER + body).encode("utf-8")
    if bus:
        bus.emit(PlanRendered(size=len(data), **(run_ctx or new_ctx())))
    return data
