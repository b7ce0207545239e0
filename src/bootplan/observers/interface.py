# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/observers/interface.py
from __future__ import annotations

from typing import Protocol

from .events import BaseEvent


class Observer(Protocol):
    """
    Receives plan, lock and reconcile events.

    notify() runs inline on the compiling or locking thread, possibly from
    several reconciles at once, so it should be quick and thread-safe.
    """

    def notify(self, event: BaseEvent) -> None: ...
