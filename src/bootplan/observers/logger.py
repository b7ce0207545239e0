# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging

from .events import BaseEvent, LockDenied, LockStoreFailed, PlanFailed

_NOTICE_EVENTS = (LockDenied,)
_ERROR_EVENTS = (PlanFailed, LockStoreFailed)


class LoggerObserver:
    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        d = event.dict()
        etype = event.__class__.__name__
        msg = ", ".join(f"{k}={v}" for k, v in d.items() if k not in ("ts",))

        if isinstance(event, _ERROR_EVENTS):
            level = logging.ERROR
        elif isinstance(event, _NOTICE_EVENTS):
            level = logging.INFO
        else:
            level = logging.DEBUG
        self.logger.log(level, "[EVENT] %s: %s", etype, msg)
