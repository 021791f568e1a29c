"""
Public API for the process group replacement engine.
"""

from __future__ import annotations

from .admin import AdminClient, MockAdminClient, TimedAdminClient
from .errors import (
    ClusterUnreachableError,
    ConfigurationError,
    InventoryError,
    MembershipError,
    TransientError,
)
from .policy import ClusterPolicy
from .reconciler import (
    CycleJob,
    CycleOutcome,
    ReplaceFailedProcessGroups,
    UpdateProcessGroups,
    run_cycle,
    run_cycles,
)
from .result import REMOVALS_UPDATED, Requeue
from .status import Cluster, ClusterStatus, ConditionType, ProcessClass, ProcessGroupStatus


__all__ = [
    "REMOVALS_UPDATED",
    "AdminClient",
    "Cluster",
    "ClusterPolicy",
    "ClusterStatus",
    "ClusterUnreachableError",
    "ConditionType",
    "ConfigurationError",
    "CycleJob",
    "CycleOutcome",
    "InventoryError",
    "MembershipError",
    "MockAdminClient",
    "ProcessClass",
    "ProcessGroupStatus",
    "ReplaceFailedProcessGroups",
    "Requeue",
    "TimedAdminClient",
    "TransientError",
    "UpdateProcessGroups",
    "run_cycle",
    "run_cycles",
]
