"""Error taxonomy for jaxsong.

Every failure carries an ErrorKind plus a message and propagates to the
caller by exception. Negligible regions and selection-rule zeros are not
errors: the evaluators return exactly 0.0 for them.
"""

from __future__ import annotations

import enum


class ErrorKind(enum.Enum):
    CONFIGURATION = "configuration"
    ALLOCATION = "allocation"
    DOMAIN = "domain"
    SELECTION = "selection"
    LIFECYCLE = "lifecycle"


class ProjectionError(Exception):
    """Base class of all errors raised by jaxsong."""

    kind: ErrorKind = ErrorKind.CONFIGURATION

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return f"[{self.kind.value}] {self.message}"


class ConfigurationError(ProjectionError, ValueError):
    """Invalid or inconsistent grid bounds, multipole lists or cutoffs."""

    kind = ErrorKind.CONFIGURATION


class AllocationError(ProjectionError, MemoryError):
    """A sparse table could not be sized or stored."""

    kind = ErrorKind.ALLOCATION


class DomainError(ProjectionError, ValueError):
    """Evaluation requested outside the sampling grid."""

    kind = ErrorKind.DOMAIN


class SelectionRuleError(ProjectionError, ValueError):
    """No l1 satisfies the triangle and parity rules for (L, l, m)."""

    kind = ErrorKind.SELECTION


class LifecycleError(ProjectionError, RuntimeError):
    """Tables used after projection_free."""

    kind = ErrorKind.LIFECYCLE
