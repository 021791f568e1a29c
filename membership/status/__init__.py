"""
Cluster status model and the observed world it is derived from.
"""

from __future__ import annotations

from .models import (
    Cluster,
    ClusterStatus,
    ConditionType,
    ProcessClass,
    ProcessGroupStatus,
)
from .world import (
    ContainerStatus,
    DatabaseStatus,
    Inventory,
    Node,
    PersistentVolumeClaim,
    Pod,
    ProcessInfo,
    StaticInventory,
    Taint,
    build_process_map,
)


__all__ = [
    "Cluster",
    "ClusterStatus",
    "ConditionType",
    "ContainerStatus",
    "DatabaseStatus",
    "Inventory",
    "Node",
    "PersistentVolumeClaim",
    "Pod",
    "ProcessClass",
    "ProcessGroupStatus",
    "ProcessInfo",
    "StaticInventory",
    "Taint",
    "build_process_map",
]
