# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/cloudinit/plan.py

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from .registry import Step, must_get_script, script_path

# Permissions for staged step payloads.
SCRIPT_PERMISSIONS = "0500"
ROOT_OWNER = "root:root"


@dataclass(frozen=True)
class File:
    content: str
    path: str
    permissions: str = "0644"
    owner: str = ROOT_OWNER


@dataclass(frozen=True)
class Arg:
    """One command-line argument. Quoted args are rendered as a double-quoted string."""
    value: str
    quoted: bool = True

    def render(self) -> str:
        if not self.quoted:
            return self.value
        return json.dumps(self.value, ensure_ascii=False)


def q(value: Optional[str]) -> Arg:
    # absent values keep their slot as "" so argument arity never changes
    return Arg("" if value is None else str(value), quoted=True)


def bare(value: Union[str, bool, int]) -> Arg:
    if isinstance(value, bool):
        value = "true" if value else "false"
    return Arg(str(value), quoted=False)


@dataclass(frozen=True)
class StepInvocation:
    step: Step
    args: Tuple[Arg, ...] = ()

    @property
    def name(self) -> str:
        return self.step.name

    def command(self) -> str:
        parts = [self.step.invocation()]
        parts.extend(a.render() for a in self.args)
        return " ".join(parts)


# Caller-supplied hook commands are carried verbatim as plain strings.
RunItem = Union[StepInvocation, str]

USER_COMMAND = "user-command"


@dataclass(frozen=True)
class ProvisioningPlan:
    """
    Ordered bootstrap plan for a single machine.

    run_steps keeps the typed step invocations so order and argument arity
    can be inspected without parsing command strings.
    """
    write_files: Tuple[File, ...] = ()
    run_steps: Tuple[RunItem, ...] = ()
    boot_commands: Tuple[str, ...] = ()

    @property
    def run_commands(self) -> List[str]:
        return [s.command() if isinstance(s, StepInvocation) else s for s in self.run_steps]

    def step_names(self) -> List[str]:
        return [s.name if isinstance(s, StepInvocation) else USER_COMMAND for s in self.run_steps]

    def invocations(self, name: str) -> List[StepInvocation]:
        return [s for s in self.run_steps if isinstance(s, StepInvocation) and s.name == name]


@dataclass
class PlanBuilder:
    scripts_dir: Optional[Path] = None
    _leading_files: List[File] = field(default_factory=list, init=False)
    _files: List[File] = field(default_factory=list, init=False)
    _steps: List[RunItem] = field(default_factory=list, init=False)
    _boot: List[str] = field(default_factory=list, init=False)

    def add_leading_file(self, file: File) -> "PlanBuilder":
        """Files written ahead of everything else (CA material, auth tokens)."""
        self._leading_files.append(file)
        return self

    def add_files(self, files: Iterable[File]) -> "PlanBuilder":
        self._files.extend(files)
        return self

    def run(self, step: Step, *args: Arg) -> "PlanBuilder":
        self._steps.append(StepInvocation(step=step, args=tuple(args)))
        return self

    def run_raw(self, commands: Iterable[str]) -> "PlanBuilder":
        self._steps.extend(commands)
        return self

    def boot(self, commands: Iterable[str]) -> "PlanBuilder":
        self._boot.extend(commands)
        return self

    def _script_files(self) -> List[File]:
        seen = set()
        staged: List[File] = []
        for s in self._steps:
            if not isinstance(s, StepInvocation) or not s.step.is_script:
                continue
            if s.step.name in seen:
                continue
            seen.add(s.step.name)
            staged.append(
                File(
                    content=must_get_script(s.step, self.scripts_dir),
                    path=script_path(s.step),
                    permissions=SCRIPT_PERMISSIONS,
                    owner=ROOT_OWNER,
                )
            )
        return staged

    def build(self) -> ProvisioningPlan:
        files = [*self._leading_files, *self._script_files(), *self._files]
        return ProvisioningPlan(
            write_files=tuple(files),
            run_steps=tuple(self._steps),
            boot_commands=tuple(self._boot),
        )
