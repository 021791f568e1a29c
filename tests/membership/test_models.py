from __future__ import annotations

import pytest
from conftest import NOW

from membership.status.models import (
    Cluster,
    ClusterStatus,
    ConditionType,
    ProcessClass,
    ProcessGroupStatus,
)
from membership.status.world import Pod


def _storage(process_group_id: str = "storage-1") -> ProcessGroupStatus:
    return ProcessGroupStatus(process_group_id=process_group_id, process_class=ProcessClass.STORAGE)


def test_update_condition_keeps_first_seen() -> None:
    pg = _storage()

    assert pg.update_condition(ConditionType.MISSING_PROCESSES, True, NOW) is True
    assert pg.update_condition(ConditionType.MISSING_PROCESSES, True, NOW + 60) is False
    assert pg.get_condition(ConditionType.MISSING_PROCESSES) == NOW
    assert pg.condition_age(ConditionType.MISSING_PROCESSES, NOW + 60) == 60


def test_update_condition_clears_instead_of_resetting() -> None:
    pg = _storage()
    pg.update_condition(ConditionType.MISSING_POD, True, NOW)

    assert pg.update_condition(ConditionType.MISSING_POD, False, NOW + 1) is True
    assert pg.update_condition(ConditionType.MISSING_POD, False, NOW + 2) is False
    assert pg.conditions == {}

    pg.update_condition(ConditionType.MISSING_POD, True, NOW + 3)
    assert pg.get_condition(ConditionType.MISSING_POD) == NOW + 3


def test_conditions_keep_detection_order() -> None:
    pg = _storage()
    pg.update_condition(ConditionType.NODE_TAINT_DETECTED, True, NOW)
    pg.update_condition(ConditionType.MISSING_PROCESSES, True, NOW + 1)
    pg.update_condition(ConditionType.NODE_TAINT_REPLACING, True, NOW + 2)

    assert list(pg.conditions) == [
        ConditionType.NODE_TAINT_DETECTED,
        ConditionType.MISSING_PROCESSES,
        ConditionType.NODE_TAINT_REPLACING,
    ]


def test_mark_for_removal_is_monotonic() -> None:
    pg = _storage()
    pg.mark_for_removal(NOW)
    pg.mark_for_removal(NOW + 10)

    assert pg.marked_for_removal is True
    assert pg.removal_timestamp == NOW
    assert pg.is_in_flight is True

    pg.set_excluded(NOW + 20)
    assert pg.is_in_flight is False


def test_status_mapping_form() -> None:
    pg = _storage("storage-2")
    pg.addresses = ["10.1.0.2"]
    pg.update_condition(ConditionType.MISSING_PROCESSES, True, NOW)
    pg.mark_for_removal(NOW)
    status = ClusterStatus(process_groups=[_storage(), pg])

    raw = status.to_dict()

    assert raw["process_groups"][1]["conditions"] == [
        {"type": "MissingProcesses", "timestamp": NOW}
    ]
    assert ClusterStatus.from_dict(raw) == status


def test_duplicate_persisted_conditions_keep_the_first() -> None:
    pg = ProcessGroupStatus.from_dict(
        {
            "process_group_id": "log-3",
            "conditions": [
                {"type": "MissingPod", "timestamp": NOW},
                {"type": "MissingPod", "timestamp": NOW + 5},
            ],
        }
    )

    assert pg.process_class is ProcessClass.LOG
    assert pg.conditions == {ConditionType.MISSING_POD: NOW}


@pytest.mark.parametrize(
    ("process_group_id", "expected"),
    [
        ("storage-12", ProcessClass.STORAGE),
        ("cluster_controller-1", ProcessClass.CLUSTER_CONTROLLER),
        ("stateless-3", ProcessClass.STATELESS),
        ("sample-storage-1", ProcessClass.STORAGE),
        ("prod-east-log-12", ProcessClass.LOG),
        ("commit_proxy-1", ProcessClass.COMMIT_PROXY),
        ("sample-grv_proxy-2", ProcessClass.GRV_PROXY),
        ("resolver-1", ProcessClass.RESOLVER),
        ("coordinator-3", ProcessClass.COORDINATOR),
        ("sample-fancy_role-1", ProcessClass.STATELESS),
    ],
)
def test_process_class_from_id(process_group_id: str, expected: ProcessClass) -> None:
    assert ProcessClass.from_process_group_id(process_group_id) is expected


def test_removed_ids_and_in_flight(cluster: Cluster) -> None:
    storage_2 = cluster.status.find("storage-2")
    storage_3 = cluster.status.find("storage-3")
    assert storage_2 is not None and storage_3 is not None
    storage_2.mark_for_removal(NOW)
    storage_3.mark_for_removal(NOW)
    storage_3.set_excluded(NOW)

    assert cluster.status.removed_ids() == ["storage-2", "storage-3"]
    assert cluster.status.in_flight_count() == 1


def test_database_roles_load_from_snapshots() -> None:
    pg = ProcessGroupStatus.from_dict({"process_group_id": "sample-commit_proxy-1"})
    pod = Pod.from_dict({"process_group_id": "sample-storage-1", "process_class": "Storage"})
    other = Pod.from_dict({"process_group_id": "x-1", "process_class": "fancy_role"})

    assert pg.process_class is ProcessClass.COMMIT_PROXY
    assert pg.process_class.is_stateful is False
    assert pod.process_class is ProcessClass.STORAGE
    assert other.process_class is ProcessClass.STATELESS
