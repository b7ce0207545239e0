# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/logging/log.py

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

DEFAULT_LOG_DIR = Path.home() / ".bootplan" / "logs"

_FORMAT = "%(asctime)s | %(levelname)-7s | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _run_log_path(base_dir: Path, name: str, run_id: str) -> Path:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return base_dir / f"{name}-{stamp}-{run_id}.log"


def _reset(logger: logging.Logger) -> None:
    # repeated CLI invocations in one process must not stack handlers
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "bootplan",
    verbose: bool = False,
) -> tuple[logging.Logger, str, Path]:
    """
    Set up the "bootplan" logger for one run.

    Everything down to DEBUG goes to a per-run file; the console gets INFO
    (DEBUG with verbose). Returns the logger, a run_id for event contexts,
    and the log file path so the caller can put an events file beside it.
    """
    run_id = str(uuid.uuid4())
    base_dir = Path(base_dir) if base_dir is not None else DEFAULT_LOG_DIR
    base_dir.mkdir(parents=True, exist_ok=True)
    log_path = _run_log_path(base_dir, name, run_id)

    logger = logging.getLogger(name)
    _reset(logger)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)
    handlers = [
        (logging.FileHandler(log_path, encoding="utf-8"), logging.DEBUG),
        (logging.StreamHandler(), logging.DEBUG if verbose else logging.INFO),
    ]
    for handler, level in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.debug("run_id=%s log_file=%s", run_id, log_path)
    return logger, run_id, log_path
