from __future__ import annotations

from membership.errors import ConfigurationError
from membership.policy import (
    CLUSTER_FAULT_DOMAIN_KEY,
    NO_FAULT_DOMAIN_KEY,
    NODE_NAME_SOURCE,
    FaultDomain,
)
from membership.status.world import Pod


def zone_for_pod(fault_domain: FaultDomain, pod: Pod) -> str | None:
    """
    Zone ID a pod's processes report, following the cluster fault domain.

    Raises:
        ConfigurationError: if the fault domain reads the zone from an unsupported source.
    """
    if fault_domain.key == NO_FAULT_DOMAIN_KEY:
        return pod.name
    if fault_domain.key == CLUSTER_FAULT_DOMAIN_KEY:
        if not fault_domain.value:
            raise ConfigurationError(
                f"fault domain {CLUSTER_FAULT_DOMAIN_KEY} requires a value"
            )
        return fault_domain.value

    source = fault_domain.value_from or NODE_NAME_SOURCE
    if source != NODE_NAME_SOURCE:
        raise ConfigurationError(f"unsupported fault domain source {source}")
    return pod.node_name
