from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypedDict

from membership.policy import ClusterPolicy


# Only data structures and conversion to/from the persisted mapping form live here.


class ConditionType(StrEnum):
    MISSING_PROCESSES = "MissingProcesses"
    MISSING_POD = "MissingPod"
    MISSING_PVC = "MissingPVC"
    POD_FAILING = "PodFailing"
    POD_PENDING = "PodPending"
    INCORRECT_POD_SPEC = "IncorrectPodSpec"
    INCORRECT_CONFIG_MAP = "IncorrectConfigMap"
    NODE_TAINT_DETECTED = "NodeTaintDetected"
    NODE_TAINT_REPLACING = "NodeTaintReplacing"


class ProcessClass(StrEnum):
    STORAGE = "storage"
    LOG = "log"
    TRANSACTION = "transaction"
    STATELESS = "stateless"
    CLUSTER_CONTROLLER = "cluster_controller"
    PROXY = "proxy"
    COMMIT_PROXY = "commit_proxy"
    GRV_PROXY = "grv_proxy"
    RESOLUTION = "resolution"
    RESOLVER = "resolver"
    MASTER = "master"
    RATEKEEPER = "ratekeeper"
    DATA_DISTRIBUTOR = "data_distributor"
    COORDINATOR = "coordinator"
    ROUTER = "router"
    BACKUP = "backup"
    TEST = "test"

    @property
    def is_stateful(self) -> bool:
        return self in (ProcessClass.STORAGE, ProcessClass.LOG, ProcessClass.TRANSACTION)

    @classmethod
    def parse(cls, raw: str) -> ProcessClass:
        """Known class for `raw`; anything else runs without a volume, like stateless."""
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.STATELESS

    @classmethod
    def from_process_group_id(cls, process_group_id: str) -> ProcessClass:
        """Derive the class from the trailing "<class>-<n>" of IDs like "sample-storage-2"."""
        prefix, _, _ = process_group_id.rpartition("-")
        _, _, name = (prefix or process_group_id).rpartition("-")
        return cls.parse(name)


class ConditionDict(TypedDict):
    type: str
    timestamp: int


class ProcessGroupDict(TypedDict, total=False):
    process_group_id: str
    process_class: str
    addresses: list[str]
    conditions: list[ConditionDict]
    marked_for_removal: bool
    removal_timestamp: int | None
    exclusion_skipped: bool
    excluded: bool
    excluded_timestamp: int | None
    fault_domain: str | None


@dataclass(slots=True)
class ProcessGroupStatus:
    """Persisted state of one process group."""

    process_group_id: str
    process_class: ProcessClass
    addresses: list[str] = field(default_factory=list)
    # condition -> first observed unix time; insertion order is detection order
    conditions: dict[ConditionType, int] = field(default_factory=dict)
    marked_for_removal: bool = False
    removal_timestamp: int | None = None
    exclusion_skipped: bool = False
    excluded: bool = False
    excluded_timestamp: int | None = None
    fault_domain: str | None = None

    def get_condition(self, condition_type: ConditionType) -> int | None:
        return self.conditions.get(condition_type)

    def condition_age(self, condition_type: ConditionType, now: int) -> int | None:
        first_seen = self.conditions.get(condition_type)
        if first_seen is None:
            return None
        return now - first_seen

    def update_condition(self, condition_type: ConditionType, present: bool, now: int) -> bool:
        """
        Record whether a condition currently holds.

        The first detection stores `now`; later detections keep the first
        timestamp; a condition that no longer holds is dropped.

        :return: True if the condition set changed
        """
        if present:
            if condition_type in self.conditions:
                return False
            self.conditions[condition_type] = now
            return True
        return self.conditions.pop(condition_type, None) is not None

    def mark_for_removal(self, now: int) -> None:
        if self.marked_for_removal:
            return
        self.marked_for_removal = True
        self.removal_timestamp = now

    def set_excluded(self, now: int) -> None:
        if self.excluded:
            return
        self.excluded = True
        self.excluded_timestamp = now

    @property
    def is_in_flight(self) -> bool:
        """Marked for removal and still waiting for its data to be excluded."""
        return self.marked_for_removal and not self.excluded

    @staticmethod
    def from_dict(row: Mapping[str, Any]) -> ProcessGroupStatus:
        process_group_id = str(row["process_group_id"])
        raw_class = row.get("process_class")
        conditions: dict[ConditionType, int] = {}
        for item in row.get("conditions") or []:
            conditions.setdefault(ConditionType(item["type"]), int(item["timestamp"]))
        return ProcessGroupStatus(
            process_group_id=process_group_id,
            process_class=(
                ProcessClass.parse(str(raw_class))
                if raw_class is not None
                else ProcessClass.from_process_group_id(process_group_id)
            ),
            addresses=[str(address) for address in row.get("addresses") or []],
            conditions=conditions,
            marked_for_removal=bool(row.get("marked_for_removal", False)),
            removal_timestamp=(
                int(row["removal_timestamp"])
                if row.get("removal_timestamp") is not None
                else None
            ),
            exclusion_skipped=bool(row.get("exclusion_skipped", False)),
            excluded=bool(row.get("excluded", False)),
            excluded_timestamp=(
                int(row["excluded_timestamp"])
                if row.get("excluded_timestamp") is not None
                else None
            ),
            fault_domain=(
                str(row["fault_domain"]) if row.get("fault_domain") is not None else None
            ),
        )

    def to_dict(self) -> ProcessGroupDict:
        return ProcessGroupDict(
            process_group_id=self.process_group_id,
            process_class=str(self.process_class),
            addresses=list(self.addresses),
            conditions=[
                ConditionDict(type=str(condition_type), timestamp=timestamp)
                for condition_type, timestamp in self.conditions.items()
            ],
            marked_for_removal=self.marked_for_removal,
            removal_timestamp=self.removal_timestamp,
            exclusion_skipped=self.exclusion_skipped,
            excluded=self.excluded,
            excluded_timestamp=self.excluded_timestamp,
            fault_domain=self.fault_domain,
        )


@dataclass(slots=True)
class ClusterStatus:
    # discovery order; selection under a cap follows it
    process_groups: list[ProcessGroupStatus] = field(default_factory=list)

    def __iter__(self) -> Iterator[ProcessGroupStatus]:
        return iter(self.process_groups)

    def find(self, process_group_id: str) -> ProcessGroupStatus | None:
        for process_group in self.process_groups:
            if process_group.process_group_id == process_group_id:
                return process_group
        return None

    def removed_ids(self) -> list[str]:
        return [pg.process_group_id for pg in self.process_groups if pg.marked_for_removal]

    def in_flight_count(self) -> int:
        return sum(1 for pg in self.process_groups if pg.is_in_flight)

    @staticmethod
    def from_dict(row: Mapping[str, Any]) -> ClusterStatus:
        return ClusterStatus(
            process_groups=[
                ProcessGroupStatus.from_dict(item) for item in row.get("process_groups") or []
            ]
        )

    def to_dict(self) -> dict[str, Any]:
        return {"process_groups": [pg.to_dict() for pg in self.process_groups]}


@dataclass(slots=True)
class Cluster:
    """A cluster as seen by one reconcile pass: read-only policy plus mutable status."""

    name: str
    policy: ClusterPolicy = field(default_factory=ClusterPolicy)
    status: ClusterStatus = field(default_factory=ClusterStatus)
    namespace: str = "default"
