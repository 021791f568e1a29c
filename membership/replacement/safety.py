from __future__ import annotations

from collections.abc import Sequence

from structlog.typing import FilteringBoundLogger

from membership.admin.client import AdminClient
from membership.logger import get_logger
from membership.status.models import Cluster, ProcessGroupStatus


class SafetyGate:
    """
    Vetoes removals that would endanger availability or durability.

    The check runs against a single status snapshot and holds no lock; the
    cluster may change between the check and the commit.
    """

    def __init__(self, admin_client: AdminClient, log: FilteringBoundLogger | None = None) -> None:
        self._admin_client = admin_client
        self._log = log or get_logger("safety")

    def permit(self, cluster: Cluster, proposed: Sequence[ProcessGroupStatus]) -> bool:
        """
        True if all `proposed` groups may be marked for removal together.

        A veto is a decision, not an error: it is logged and returns False.
        Admin client errors propagate to the caller.
        """
        log = self._log.bind(
            cluster=cluster.name,
            proposed=[pg.process_group_id for pg in proposed],
        )
        status = self._admin_client.get_status()

        if not status.available:
            log.warning("replacement.vetoed", reason="database unavailable")
            return False

        desired = cluster.policy.desired_fault_tolerance()
        tolerance = status.fault_tolerance
        if tolerance is None:
            log.warning("replacement.vetoed", reason="fault tolerance unknown")
            return False
        if tolerance < desired:
            log.warning(
                "replacement.vetoed",
                reason="insufficient fault tolerance",
                fault_tolerance=tolerance,
                desired_fault_tolerance=desired,
            )
            return False

        # groups without an address lose their data without exclusion
        unexcluded_zones = {
            pg.fault_domain or pg.process_group_id for pg in proposed if not pg.addresses
        }
        if len(unexcluded_zones) > tolerance:
            log.warning(
                "replacement.vetoed",
                reason="removal exceeds fault tolerance",
                fault_tolerance=tolerance,
                zones_without_exclusion=sorted(unexcluded_zones),
            )
            return False

        return True
