from __future__ import annotations

import pytest
from conftest import HOUR, NOW, World, create_default_cluster, create_world

from membership.errors import ConfigurationError
from membership.policy import ClusterPolicy, FaultDomain, TaintReplacementOption
from membership.status.models import ConditionType, ProcessClass, ProcessGroupStatus
from membership.status.world import ContainerStatus, Node, Pod, Taint, build_process_map
from membership.tracker.pods import LAST_SPEC_HASH_ANNOTATION
from membership.tracker.validate import ConditionTracker


def _validate(world: World, now: int = NOW) -> list[ProcessGroupStatus]:
    return ConditionTracker().validate(
        world.cluster,
        process_map=build_process_map(world.admin_client.get_status()),
        pods=world.inventory.list_pods(),
        pvcs=world.inventory.list_pvcs(),
        nodes=world.inventory.list_nodes(),
        config_map_checksum=world.inventory.config_map_checksum(),
        now=now,
    )


def _apply(world: World, now: int = NOW) -> None:
    world.cluster.status.process_groups = _validate(world, now)


def _group(world: World, process_group_id: str) -> ProcessGroupStatus:
    process_group = world.cluster.status.find(process_group_id)
    assert process_group is not None
    return process_group


def test_healthy_world_has_no_conditions(world: World) -> None:
    process_groups = _validate(world)

    assert [pg.process_group_id for pg in process_groups] == [
        pg.process_group_id for pg in world.cluster.status.process_groups
    ]
    assert all(pg.conditions == {} for pg in process_groups)
    assert process_groups[-4].process_group_id == "storage-1"


def test_missing_process_is_detected_with_first_seen_time(world: World) -> None:
    world.admin_client.missing_processes.add("storage-2")

    _apply(world)

    storage_2 = _group(world, "storage-2")
    assert storage_2.conditions == {ConditionType.MISSING_PROCESSES: NOW}
    # the pod still answers on its IP
    assert storage_2.addresses == ["10.1.0.8"]


def test_condition_timestamp_is_preserved_while_it_holds(world: World) -> None:
    world.admin_client.missing_processes.add("storage-2")
    _apply(world, NOW)
    _apply(world, NOW + HOUR)

    assert _group(world, "storage-2").get_condition(ConditionType.MISSING_PROCESSES) == NOW


def test_condition_is_cleared_when_it_stops_holding(world: World) -> None:
    world.admin_client.missing_processes.add("storage-2")
    _apply(world, NOW)

    world.admin_client.missing_processes.clear()
    _apply(world, NOW + 60)

    assert _group(world, "storage-2").conditions == {}


def test_input_status_is_not_mutated(world: World) -> None:
    world.admin_client.missing_processes.add("storage-2")
    before = world.cluster.status.to_dict()

    _validate(world)

    assert world.cluster.status.to_dict() == before


def test_missing_pod(world: World) -> None:
    world.remove_pod("storage-2")

    _apply(world)

    storage_2 = _group(world, "storage-2")
    assert ConditionType.MISSING_POD in storage_2.conditions
    # the process still reports, so its address stays known
    assert ConditionType.MISSING_PROCESSES not in storage_2.conditions
    assert storage_2.addresses == ["10.1.0.8"]


def test_dark_process_group_loses_addresses(world: World) -> None:
    world.remove_pod("storage-2")
    world.admin_client.missing_processes.add("storage-2")

    _apply(world)

    storage_2 = _group(world, "storage-2")
    assert storage_2.addresses == []
    assert list(storage_2.conditions) == [
        ConditionType.MISSING_PROCESSES,
        ConditionType.MISSING_POD,
    ]


def test_incorrect_pod_spec(world: World) -> None:
    world.pod("storage-2").annotations[LAST_SPEC_HASH_ANNOTATION] = "outdated"

    _apply(world)

    assert _group(world, "storage-2").conditions == {ConditionType.INCORRECT_POD_SPEC: NOW}


def test_policy_change_flags_every_pod_of_the_class(world: World) -> None:
    world.cluster.policy.processes = {"log": {"memory": "16GiB"}}

    _apply(world)

    flagged = [
        pg.process_group_id
        for pg in world.cluster.status.process_groups
        if ConditionType.INCORRECT_POD_SPEC in pg.conditions
    ]
    assert flagged == ["log-1", "log-2", "log-3", "log-4"]


def test_incorrect_config_map(world: World) -> None:
    world.inventory.checksum = "new-checksum"

    _apply(world)

    assert all(
        pg.conditions == {ConditionType.INCORRECT_CONFIG_MAP: NOW}
        for pg in world.cluster.status.process_groups
    )


def test_missing_pvc_only_for_stateful_classes(world: World) -> None:
    world.inventory.pvcs = []

    _apply(world)

    flagged = {
        pg.process_group_id
        for pg in world.cluster.status.process_groups
        if ConditionType.MISSING_PVC in pg.conditions
    }
    assert "stateless-1" not in flagged
    assert {"log-1", "storage-1", "storage-4"} <= flagged


def test_failing_and_pending_pods(world: World) -> None:
    world.pod("storage-1").phase = "Pending"
    world.pod("storage-2").containers = [
        ContainerStatus(name="foundationdb", ready=False, terminated=True, restart_count=3)
    ]

    _apply(world)

    assert ConditionType.POD_PENDING in _group(world, "storage-1").conditions
    assert ConditionType.POD_FAILING in _group(world, "storage-2").conditions


def test_new_pod_is_discovered_at_the_end(world: World) -> None:
    world.inventory.pods.append(
        Pod(
            name="sample-storage-5",
            process_group_id="storage-5",
            process_class=ProcessClass.STORAGE,
            node_name="node-7",
            ip="10.1.0.11",
        )
    )

    _apply(world)

    storage_5 = world.cluster.status.process_groups[-1]
    assert storage_5.process_group_id == "storage-5"
    assert storage_5.process_class is ProcessClass.STORAGE
    assert storage_5.addresses == ["10.1.0.11"]
    assert ConditionType.MISSING_PROCESSES in storage_5.conditions
    assert ConditionType.MISSING_PVC in storage_5.conditions


def test_fault_domain_follows_the_node(world: World) -> None:
    world.pod("storage-2").node_name = "node-42"
    world.inventory.nodes.append(Node(name="node-42"))

    _apply(world)

    assert _group(world, "storage-2").fault_domain == "node-42"


def test_unsupported_fault_domain_source() -> None:
    policy = ClusterPolicy(
        fault_domain=FaultDomain(key="topology.kubernetes.io/zone", value_from="$CUSTOM_ENV")
    )
    world = create_world(create_default_cluster(policy))

    with pytest.raises(ConfigurationError, match="unsupported fault domain source"):
        _validate(world)


# ---- taints ----
def _tainted_world(duration_sec: int = 5) -> World:
    policy = ClusterPolicy(failure_detection_timeout_seconds=10)
    policy.automation_options.replacements.taint_replacement_options = [
        TaintReplacementOption(key="*", duration_seconds=20),
        TaintReplacementOption(key="example.org/maintenance", duration_seconds=duration_sec),
    ]
    return create_world(create_default_cluster(policy))


def test_fresh_taint_is_only_detected() -> None:
    world = _tainted_world()
    world.node("node-7").taints = [Taint(key="example.org/maintenance", time_added=NOW)]

    _apply(world)

    assert _group(world, "storage-1").conditions == {ConditionType.NODE_TAINT_DETECTED: NOW}
    assert _group(world, "storage-2").conditions == {}


def test_old_taint_is_replacing() -> None:
    world = _tainted_world()
    world.node("node-7").taints = [Taint(key="example.org/maintenance", time_added=NOW - 6)]

    _apply(world)

    assert _group(world, "storage-1").conditions == {
        ConditionType.NODE_TAINT_DETECTED: NOW,
        ConditionType.NODE_TAINT_REPLACING: NOW,
    }


def test_taint_without_time_added_uses_detection_time() -> None:
    world = _tainted_world()
    world.node("node-7").taints = [Taint(key="example.org/maintenance")]

    _apply(world, NOW)
    assert list(_group(world, "storage-1").conditions) == [ConditionType.NODE_TAINT_DETECTED]

    _apply(world, NOW + 5)
    assert _group(world, "storage-1").conditions == {
        ConditionType.NODE_TAINT_DETECTED: NOW,
        ConditionType.NODE_TAINT_REPLACING: NOW + 5,
    }


def test_removed_taint_clears_both_conditions() -> None:
    world = _tainted_world()
    world.node("node-7").taints = [Taint(key="example.org/maintenance", time_added=NOW - 60)]
    _apply(world, NOW)

    world.node("node-7").taints = []
    _apply(world, NOW + 1)

    assert _group(world, "storage-1").conditions == {}


def test_taints_are_ignored_without_options(world: World) -> None:
    world.node("node-7").taints = [Taint(key="example.org/maintenance", time_added=NOW - HOUR)]

    _apply(world)

    assert _group(world, "storage-1").conditions == {}
