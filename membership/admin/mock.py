from __future__ import annotations

from dataclasses import dataclass, field

from membership.errors import ClusterUnreachableError
from membership.status.models import Cluster
from membership.status.world import (
    INSTANCE_ID_LOCALITY,
    PROCESS_ID_LOCALITY,
    ZONE_ID_LOCALITY,
    DatabaseStatus,
    ProcessInfo,
)


@dataclass(slots=True)
class MockAdminClient:
    """
    Admin client that reports a healthy database built from the cluster status.

    Every process group with an address reports one process; fault tolerance
    defaults to what the redundancy mode asks for. Tests override single fields
    or freeze the whole status.
    """

    cluster: Cluster
    # returned as is when set
    frozen_status: DatabaseStatus | None = None
    max_zone_failures_without_losing_data: int | None = None
    max_zone_failures_without_losing_availability: int | None = None
    # process group IDs that stop reporting
    missing_processes: set[str] = field(default_factory=set)
    unreachable: bool = False
    calls: int = field(default=0, init=False)

    def get_status(self) -> DatabaseStatus:
        self.calls += 1
        if self.unreachable:
            raise ClusterUnreachableError(f"cluster {self.cluster.name} is not reachable")
        if self.frozen_status is not None:
            return self.frozen_status

        desired = self.cluster.policy.desired_fault_tolerance()
        processes: list[ProcessInfo] = []
        for process_group in self.cluster.status.process_groups:
            if process_group.process_group_id in self.missing_processes:
                continue
            if process_group.marked_for_removal and process_group.excluded:
                continue
            for address in process_group.addresses:
                locality = {
                    PROCESS_ID_LOCALITY: process_group.process_group_id,
                    INSTANCE_ID_LOCALITY: process_group.process_group_id,
                }
                if process_group.fault_domain:
                    locality[ZONE_ID_LOCALITY] = process_group.fault_domain
                processes.append(
                    ProcessInfo(address=address, locality=locality, excluded=process_group.excluded)
                )

        return DatabaseStatus(
            available=True,
            max_zone_failures_without_losing_data=(
                desired
                if self.max_zone_failures_without_losing_data is None
                else self.max_zone_failures_without_losing_data
            ),
            max_zone_failures_without_losing_availability=(
                desired
                if self.max_zone_failures_without_losing_availability is None
                else self.max_zone_failures_without_losing_availability
            ),
            processes=processes,
        )
