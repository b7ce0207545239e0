# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/cloudinit/version.py

from __future__ import annotations

import re
from typing import Tuple

from ..errors import InvalidVersion, UnsupportedConfinement

STRICT = "strict"
CLASSIC = "classic"

# strict confinement snaps are only published from 1.25 onwards
MIN_STRICT_MINOR = 25

_VERSION_RE = re.compile(
    r"^v?(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?"
    r"(?:-(?P<pre>[0-9A-Za-z.\-]+))?(?:\+(?P<meta>[0-9A-Za-z.\-]+))?$"
)


def parse_version(version: str) -> Tuple[int, int]:
    """
    Extract (major, minor) from a kubernetes version string.

    Accepts "v1.25.2", "1.25.2", "1.25", "v1.23.4-alpha2". Missing
    segments default to 0.
    """
    m = _VERSION_RE.match((version or "").strip())
    if not m:
        raise InvalidVersion(f"Invalid kubernetes version '{version}'")
    return int(m.group("major")), int(m.group("minor") or 0)


def check_confinement(confinement: str, minor: int) -> None:
    if confinement == STRICT and minor < MIN_STRICT_MINOR:
        raise UnsupportedConfinement(
            f"strict confinement is only available for 1.{MIN_STRICT_MINOR}+ "
            f"(requested minor version {minor})"
        )


def build_install_argument(confinement: str, risk_level: str, major: int, minor: int) -> str:
    channel = f"{major}.{minor}"
    if confinement == STRICT:
        channel += "-strict"
    if risk_level:
        channel += f"/{risk_level}"

    arg = f"--channel {channel}"
    if confinement != STRICT:
        arg += " --classic"
    return arg
