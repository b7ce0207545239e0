# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/bootplan/errors.py


class BootplanError(Exception):
    """Base class for bootplan failures."""

    retryable: bool = False


class PlanValidationError(BootplanError, ValueError):
    """Raised when a bootstrap intent cannot be compiled. Never retried."""


class InvalidToken(PlanValidationError):
    pass


class InvalidTokenTTL(PlanValidationError):
    pass


class InvalidVersion(PlanValidationError):
    pass


class UnsupportedConfinement(PlanValidationError):
    pass


class RenderError(BootplanError, RuntimeError):
    """Raised when a plan cannot be serialized to cloud-config."""


class MissingScriptError(BootplanError, RuntimeError):
    """Raised when a registered step has no payload on disk."""


class ClaimStoreUnavailable(BootplanError, RuntimeError):
    """Raised when the lock backing store cannot be reached. Safe to retry."""

    retryable = True
