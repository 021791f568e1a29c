"""
Error types raised by the decision engine.

- ConfigurationError: operator input that retrying will not fix.
- TransientError: collaborator failures; the caller requeues with backoff.
"""

from __future__ import annotations


class MembershipError(Exception):
    """Base class for all errors raised by the package."""


class ConfigurationError(MembershipError):
    """Raised when the cluster policy cannot be evaluated as configured."""


class TransientError(MembershipError):
    """Raised when a collaborator call failed in a way that may succeed on retry."""


class ClusterUnreachableError(TransientError):
    """The admin client could not fetch the database status."""


class InventoryError(TransientError):
    """Listing pods, volume claims or nodes from the orchestrator failed."""


__all__ = [
    "ClusterUnreachableError",
    "ConfigurationError",
    "InventoryError",
    "MembershipError",
    "TransientError",
]
