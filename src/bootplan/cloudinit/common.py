# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/cloudinit/common.py

from __future__ import annotations

import ipaddress
from typing import Iterable, List, Optional, Sequence

from ..errors import InvalidToken, InvalidTokenTTL
from .plan import File, ROOT_OWNER
from .version import build_install_argument, check_confinement, parse_version

TOKEN_LENGTH = 32

EXTRA_KUBELET_ARGS_PATH = "/var/tmp/extra-kubelet-args"
EXTRA_KUBELET_ARGS_PERMISSIONS = "0400"

ENDPOINT_IP = "IP"
ENDPOINT_DNS = "DNS"

DNS_ADDON = "dns"


def validate_token(token: str) -> None:
    if len(token or "") != TOKEN_LENGTH:
        raise InvalidToken(f"join token must be {TOKEN_LENGTH} characters long (got {len(token or '')})")


def validate_token_ttl(ttl: int) -> None:
    if ttl is None or ttl <= 0:
        raise InvalidTokenTTL(f"join token TTL must be a positive number of seconds (got {ttl})")


def resolve_install_argument(kubernetes_version: str, confinement: str, risk_level: str) -> str:
    """Parse the version, enforce the confinement rule, then build the snap install argument."""
    major, minor = parse_version(kubernetes_version)
    check_confinement(confinement, minor)
    return build_install_argument(confinement, risk_level, major, minor)


def endpoint_type(endpoint: str) -> str:
    """IP if the endpoint is a literal address, otherwise DNS."""
    try:
        ipaddress.ip_address(endpoint)
    except ValueError:
        return ENDPOINT_DNS
    return ENDPOINT_IP


def normalize_addons(addons: Optional[Sequence[str]]) -> List[str]:
    """
    Keep the caller's addons in order and make sure a DNS addon is present.
    Any addon whose name contains "dns" counts, e.g. "dns:10.0.0.10".
    """
    result = list(addons or [])
    if not any(DNS_ADDON in a for a in result):
        result.append(DNS_ADDON)
    return result


def _format_host(host: str) -> str:
    try:
        addr = ipaddress.ip_address(host)
    except ValueError:
        return host
    return f"[{host}]" if addr.version == 6 else host


def join_urls(node_ips: Iterable[str], port: str, token: str) -> List[str]:
    """First url is the primary join target, the rest are fallbacks."""
    return [f"{_format_host(ip)}:{port}/{token}" for ip in node_ips]


def extra_files(files) -> List[File]:
    return [
        File(content=f.content, path=f.path, permissions=f.permissions, owner=f.owner)
        for f in files or []
    ]


def extra_kubelet_args_file(args: Optional[Sequence[str]]) -> List[File]:
    if not args:
        return []
    return [
        File(
            content="\n".join(args),
            path=EXTRA_KUBELET_ARGS_PATH,
            permissions=EXTRA_KUBELET_ARGS_PERMISSIONS,
            owner=ROOT_OWNER,
        )
    ]
