# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/config/loader.py

import logging
import os
from pathlib import Path

import yaml

from ..errors import PlanValidationError
from .models import IntentDocument

log = logging.getLogger("bootplan")


def _read_mapping(path: Path) -> dict:
    # placeholders are expanded before parsing so they can sit anywhere
    text = os.path.expandvars(path.read_text(encoding="utf-8"))
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise PlanValidationError(f"{path} is not valid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise PlanValidationError(f"{path} must hold a mapping, got {type(data).__name__}")
    return data


def load_intent(path: str | Path) -> IntentDocument:
    """
    Load and validate a bootstrap intent file.

    Secrets (CA key, join token, auth token) are usually kept out of the
    file itself: write ``${ENV_VAR}`` placeholders and export the values,
    ``os.path.expandvars`` resolves them at load time. Unset variables are
    left as-is, so a missing token shows up as a length error.

    The proxy exclusion list is keyed ``"no"`` (quoted, YAML reads a bare
    ``no`` as false) or ``no_proxy``.
    """
    path = Path(path)
    data = _read_mapping(path)
    doc = IntentDocument.model_validate(data)
    log.debug("Loaded %s intent for %s/%s from %s", doc.intent.kind, doc.cluster.key, doc.machine, path)
    return doc
