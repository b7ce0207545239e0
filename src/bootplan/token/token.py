# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/token/token.py

from __future__ import annotations

import base64
import secrets
import string

from ..cloudinit.common import TOKEN_LENGTH

_LETTERS = string.ascii_letters


def generate_join_token(length: int = TOKEN_LENGTH) -> str:
    """Random token handed to `microk8s add-node --token` and the join urls."""
    return "".join(secrets.choice(_LETTERS) for _ in range(length))


def generate_auth_token() -> str:
    """Token the cluster agent expects in /capi/etc/token on control plane nodes."""
    return base64.b64encode(secrets.token_bytes(16)).decode("ascii")


def auth_token_name(cluster_name: str) -> str:
    return f"{cluster_name}-capi-auth-token"


def join_token_name(cluster_name: str) -> str:
    return f"{cluster_name}-jointoken"
