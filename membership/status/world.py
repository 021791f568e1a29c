"""
Observed world handed to the decision engine by its collaborators.

Live process reports come from the database's own status (admin client);
pods, volume claims and nodes come from the orchestrator inventory.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from membership.status.models import ProcessClass


PROCESS_ID_LOCALITY = "process_id"
INSTANCE_ID_LOCALITY = "instance_id"
ZONE_ID_LOCALITY = "zoneid"


@dataclass(slots=True, frozen=True)
class ProcessInfo:
    address: str
    locality: dict[str, str] = field(default_factory=dict)
    excluded: bool = False

    @property
    def process_group_id(self) -> str | None:
        # older processes only report the instance id
        return self.locality.get(PROCESS_ID_LOCALITY) or self.locality.get(INSTANCE_ID_LOCALITY)

    @staticmethod
    def from_dict(row: Mapping[str, Any]) -> ProcessInfo:
        return ProcessInfo(
            address=str(row["address"]),
            locality={str(k): str(v) for k, v in (row.get("locality") or {}).items()},
            excluded=bool(row.get("excluded", False)),
        )


@dataclass(slots=True)
class DatabaseStatus:
    """Point-in-time status snapshot reported by the admin client."""

    available: bool = True
    max_zone_failures_without_losing_data: int | None = None
    max_zone_failures_without_losing_availability: int | None = None
    processes: list[ProcessInfo] = field(default_factory=list)

    @property
    def fault_tolerance(self) -> int | None:
        """Zones the cluster can lose right now; None when the status does not say."""
        values = [
            value
            for value in (
                self.max_zone_failures_without_losing_data,
                self.max_zone_failures_without_losing_availability,
            )
            if value is not None
        ]
        return min(values) if values else None

    @staticmethod
    def from_dict(row: Mapping[str, Any]) -> DatabaseStatus:
        def _optional_int(name: str) -> int | None:
            return int(row[name]) if row.get(name) is not None else None

        return DatabaseStatus(
            available=bool(row.get("available", True)),
            max_zone_failures_without_losing_data=_optional_int(
                "max_zone_failures_without_losing_data"
            ),
            max_zone_failures_without_losing_availability=_optional_int(
                "max_zone_failures_without_losing_availability"
            ),
            processes=[ProcessInfo.from_dict(item) for item in row.get("processes") or []],
        )


def build_process_map(status: DatabaseStatus) -> dict[str, list[ProcessInfo]]:
    """Group live process reports by process group ID, dropping reports without identity."""
    process_map: dict[str, list[ProcessInfo]] = defaultdict(list)
    for process in status.processes:
        process_group_id = process.process_group_id
        if process_group_id is None:
            continue
        process_map[process_group_id].append(process)
    return dict(process_map)


@dataclass(slots=True, frozen=True)
class ContainerStatus:
    name: str
    ready: bool = True
    terminated: bool = False
    restart_count: int = 0


@dataclass(slots=True)
class Pod:
    name: str
    process_group_id: str
    process_class: ProcessClass
    node_name: str | None = None
    ip: str | None = None
    phase: str = "Running"
    annotations: dict[str, str] = field(default_factory=dict)
    containers: list[ContainerStatus] = field(default_factory=list)
    deleting: bool = False

    @staticmethod
    def from_dict(row: Mapping[str, Any]) -> Pod:
        process_group_id = str(row["process_group_id"])
        raw_class = row.get("process_class")
        return Pod(
            name=str(row.get("name") or process_group_id),
            process_group_id=process_group_id,
            process_class=(
                ProcessClass.parse(str(raw_class))
                if raw_class is not None
                else ProcessClass.from_process_group_id(process_group_id)
            ),
            node_name=(str(row["node_name"]) if row.get("node_name") is not None else None),
            ip=(str(row["ip"]) if row.get("ip") is not None else None),
            phase=str(row.get("phase") or "Running"),
            annotations={str(k): str(v) for k, v in (row.get("annotations") or {}).items()},
            containers=[
                ContainerStatus(
                    name=str(item["name"]),
                    ready=bool(item.get("ready", True)),
                    terminated=bool(item.get("terminated", False)),
                    restart_count=int(item.get("restart_count", 0)),
                )
                for item in row.get("containers") or []
            ],
            deleting=bool(row.get("deleting", False)),
        )


@dataclass(slots=True, frozen=True)
class PersistentVolumeClaim:
    name: str
    process_group_id: str


@dataclass(slots=True, frozen=True)
class Taint:
    key: str
    value: str = ""
    effect: str = "NoExecute"
    time_added: int | None = None  # unix seconds; the orchestrator may leave it unset


@dataclass(slots=True)
class Node:
    name: str
    taints: list[Taint] = field(default_factory=list)

    @staticmethod
    def from_dict(row: Mapping[str, Any]) -> Node:
        return Node(
            name=str(row["name"]),
            taints=[
                Taint(
                    key=str(item["key"]),
                    value=str(item.get("value") or ""),
                    effect=str(item.get("effect") or "NoExecute"),
                    time_added=(
                        int(item["time_added"]) if item.get("time_added") is not None else None
                    ),
                )
                for item in row.get("taints") or []
            ],
        )


class Inventory(Protocol):
    """Orchestrator listing calls; failures surface as InventoryError."""

    def list_pods(self) -> list[Pod]: ...

    def list_pvcs(self) -> list[PersistentVolumeClaim]: ...

    def list_nodes(self) -> list[Node]: ...

    def config_map_checksum(self) -> str | None: ...


@dataclass(slots=True)
class StaticInventory:
    """In-memory inventory, used for snapshots and tests."""

    pods: list[Pod] = field(default_factory=list)
    pvcs: list[PersistentVolumeClaim] = field(default_factory=list)
    nodes: list[Node] = field(default_factory=list)
    checksum: str | None = None

    def list_pods(self) -> list[Pod]:
        return list(self.pods)

    def list_pvcs(self) -> list[PersistentVolumeClaim]:
        return list(self.pvcs)

    def list_nodes(self) -> list[Node]:
        return list(self.nodes)

    def config_map_checksum(self) -> str | None:
        return self.checksum
