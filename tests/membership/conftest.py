from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

import pytest
import structlog

from membership.admin.mock import MockAdminClient
from membership.policy import MAIN_CONTAINER_NAME, SIDECAR_CONTAINER_NAME, ClusterPolicy
from membership.status.models import Cluster, ClusterStatus, ProcessClass, ProcessGroupStatus
from membership.status.world import (
    ContainerStatus,
    Node,
    PersistentVolumeClaim,
    Pod,
    StaticInventory,
)
from membership.tracker.pods import (
    LAST_CONFIG_MAP_ANNOTATION,
    LAST_SPEC_HASH_ANNOTATION,
    desired_pod_spec_hash,
)


NOW = 1_700_000_000
HOUR = 3600
CONFIG_MAP_CHECKSUM = "c0ffee"

DEFAULT_PROCESS_GROUP_IDS = (
    "log-1",
    "log-2",
    "log-3",
    "log-4",
    "stateless-1",
    "stateless-2",
    "storage-1",
    "storage-2",
    "storage-3",
    "storage-4",
)


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def create_default_cluster(policy: ClusterPolicy | None = None) -> Cluster:
    process_groups = [
        ProcessGroupStatus(
            process_group_id=process_group_id,
            process_class=ProcessClass.from_process_group_id(process_group_id),
            addresses=[f"10.1.0.{index}"],
            fault_domain=f"node-{index}",
        )
        for index, process_group_id in enumerate(DEFAULT_PROCESS_GROUP_IDS, start=1)
    ]
    return Cluster(
        name="sample",
        policy=policy or ClusterPolicy(),
        status=ClusterStatus(process_groups=process_groups),
    )


def make_pod(cluster: Cluster, process_group: ProcessGroupStatus, **overrides: object) -> Pod:
    index = DEFAULT_PROCESS_GROUP_IDS.index(process_group.process_group_id) + 1
    fields: dict[str, object] = {
        "name": f"{cluster.name}-{process_group.process_group_id}",
        "process_group_id": process_group.process_group_id,
        "process_class": process_group.process_class,
        "node_name": f"node-{index}",
        "ip": f"10.1.0.{index}",
        "annotations": {
            LAST_SPEC_HASH_ANNOTATION: desired_pod_spec_hash(
                cluster.policy, process_group.process_class
            ),
            LAST_CONFIG_MAP_ANNOTATION: CONFIG_MAP_CHECKSUM,
        },
        "containers": [
            ContainerStatus(name=MAIN_CONTAINER_NAME),
            ContainerStatus(name=SIDECAR_CONTAINER_NAME),
        ],
    }
    fields.update(overrides)
    return Pod(**fields)  # type: ignore[arg-type]


@dataclass(slots=True)
class World:
    cluster: Cluster
    inventory: StaticInventory
    admin_client: MockAdminClient

    def pod(self, process_group_id: str) -> Pod:
        for pod in self.inventory.pods:
            if pod.process_group_id == process_group_id:
                return pod
        raise KeyError(process_group_id)

    def node(self, name: str) -> Node:
        for node in self.inventory.nodes:
            if node.name == name:
                return node
        raise KeyError(name)

    def remove_pod(self, process_group_id: str) -> None:
        self.inventory.pods = [
            pod for pod in self.inventory.pods if pod.process_group_id != process_group_id
        ]


def create_world(cluster: Cluster) -> World:
    """Healthy world matching the cluster: every group has a pod, a node and a report."""
    pods = [make_pod(cluster, pg) for pg in cluster.status.process_groups]
    pvcs = [
        PersistentVolumeClaim(name=f"{pod.name}-data", process_group_id=pod.process_group_id)
        for pod in pods
        if pod.process_class.is_stateful
    ]
    nodes = [Node(name=pod.node_name) for pod in pods if pod.node_name]
    return World(
        cluster=cluster,
        inventory=StaticInventory(
            pods=pods, pvcs=pvcs, nodes=nodes, checksum=CONFIG_MAP_CHECKSUM
        ),
        admin_client=MockAdminClient(cluster=cluster),
    )


@pytest.fixture
def cluster() -> Cluster:
    return create_default_cluster()


@pytest.fixture
def world(cluster: Cluster) -> World:
    return create_world(cluster)
