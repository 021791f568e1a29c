"""
Pod inspection helpers used by the condition tracker.

- desired_pod_spec_hash(): hash a pod must carry to count as up to date
- is_failing() / is_pending(): pod lifecycle checks
- public_ips(): addresses a pod answers on when its processes do not report
"""

from __future__ import annotations

import hashlib
import json

from membership.policy import MAIN_CONTAINER_NAME, SIDECAR_CONTAINER_NAME, ClusterPolicy
from membership.status.models import ProcessClass
from membership.status.world import Pod


LAST_SPEC_HASH_ANNOTATION = "membership.io/last-applied-spec"
LAST_CONFIG_MAP_ANNOTATION = "membership.io/last-applied-config-map"

_WATCHED_CONTAINERS = frozenset({MAIN_CONTAINER_NAME, SIDECAR_CONTAINER_NAME})


def desired_pod_spec_hash(policy: ClusterPolicy, process_class: ProcessClass) -> str:
    """sha256 over the canonical JSON of the version and the class settings."""
    payload = {
        "version": policy.version,
        "process_class": str(process_class),
        "settings": policy.processes.get(str(process_class), {}),
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def is_failing(pod: Pod) -> bool:
    if pod.phase == "Failed":
        return True
    return any(
        container.terminated and not container.ready
        for container in pod.containers
        if container.name in _WATCHED_CONTAINERS
    )


def is_pending(pod: Pod) -> bool:
    return pod.phase == "Pending"


def public_ips(pod: Pod | None) -> list[str]:
    if pod is None or not pod.ip:
        return []
    return [pod.ip]
