"""
Reconcile passes over one cluster and the per-cycle driver.

- UpdateProcessGroups: refreshes conditions from inventory and live status.
- ReplaceFailedProcessGroups: marks failed groups for removal when it is safe.
- run_cycle() / run_cycles(): one cycle per cluster, clusters in parallel.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from structlog.typing import FilteringBoundLogger

from membership.admin.client import AdminClient
from membership.logger import get_logger
from membership.replacement.safety import SafetyGate
from membership.replacement.selector import ReplacementSelector
from membership.result import REMOVALS_UPDATED, ReconcileResult, Requeue
from membership.status.models import Cluster
from membership.status.world import Inventory, build_process_map
from membership.tracker.validate import ConditionTracker


class UpdateProcessGroups:
    def __init__(
        self,
        inventory: Inventory,
        admin_client: AdminClient,
        log: FilteringBoundLogger | None = None,
    ) -> None:
        self._inventory = inventory
        self._admin_client = admin_client
        self._tracker = ConditionTracker(log=log)

    def reconcile(self, cluster: Cluster, now: int | None = None) -> ReconcileResult:
        # listing and status errors propagate unchanged; the caller requeues
        pods = self._inventory.list_pods()
        pvcs = self._inventory.list_pvcs()
        nodes = self._inventory.list_nodes()
        checksum = self._inventory.config_map_checksum()
        process_map = build_process_map(self._admin_client.get_status())

        cluster.status.process_groups = self._tracker.validate(
            cluster,
            process_map=process_map,
            pods=pods,
            pvcs=pvcs,
            nodes=nodes,
            config_map_checksum=checksum,
            now=now,
        )
        return None


class ReplaceFailedProcessGroups:
    def __init__(self, admin_client: AdminClient, log: FilteringBoundLogger | None = None) -> None:
        self._log = log or get_logger("replacement")
        self._gate = SafetyGate(admin_client, log=self._log)

    def reconcile(self, cluster: Cluster, now: int | None = None) -> ReconcileResult:
        """
        Mark the selected process groups for removal in `cluster.status`.

        Returns a Requeue when at least one group was marked, None otherwise.
        The safety gate judges the whole batch: a veto marks nothing.
        """
        now = int(time.time()) if now is None else now
        log = self._log.bind(cluster=cluster.name)

        selection = ReplacementSelector(cluster.policy).select(
            cluster.status.process_groups, now=now
        )
        if not selection:
            log.debug(
                "replacement.skipped",
                reason=selection.reason,
                eligible=selection.eligible,
                budget=selection.budget,
            )
            return None

        if not self._gate.permit(cluster, selection.candidates):
            return None

        for process_group in selection.candidates:
            process_group.mark_for_removal(now)
            # no address left to exclude
            process_group.exclusion_skipped = not process_group.addresses
            log.info(
                "replacement.marked",
                process_group_id=process_group.process_group_id,
                conditions=[str(condition) for condition in process_group.conditions],
                exclusion_skipped=process_group.exclusion_skipped,
            )

        return Requeue(REMOVALS_UPDATED)


@dataclass(slots=True, frozen=True)
class CycleOutcome:
    cluster_name: str
    result: ReconcileResult
    removed: tuple[str, ...] = ()


@dataclass(slots=True)
class CycleJob:
    cluster: Cluster
    inventory: Inventory
    admin_client: AdminClient
    now: int | None = field(default=None)


def run_cycle(
    cluster: Cluster,
    inventory: Inventory,
    admin_client: AdminClient,
    now: int | None = None,
) -> CycleOutcome:
    """Refresh conditions, then decide replacements; both passes see the same clock."""
    now = int(time.time()) if now is None else now
    log = get_logger("cycle").bind(cluster=cluster.name)

    UpdateProcessGroups(inventory, admin_client).reconcile(cluster, now=now)
    result = ReplaceFailedProcessGroups(admin_client).reconcile(cluster, now=now)

    removed = tuple(cluster.status.removed_ids())
    log.info(
        "cycle.finished",
        requeue=result is not None,
        message=result.message if result else None,
        removed=list(removed),
    )
    return CycleOutcome(cluster_name=cluster.name, result=result, removed=removed)


async def run_cycles(jobs: Sequence[CycleJob], concurrency: int = 4) -> list[CycleOutcome]:
    """
    Run one cycle for each cluster, at most `concurrency` at a time.

    Clusters share nothing, so their cycles run in worker threads without
    locking. The first failing cycle's error is raised after all finished.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")
    names = [job.cluster.name for job in jobs]
    if len(set(names)) != len(names):
        raise ValueError("Duplicate cluster names are not allowed")

    semaphore = asyncio.Semaphore(concurrency)

    async def _run(job: CycleJob) -> CycleOutcome:
        async with semaphore:
            return await asyncio.to_thread(
                run_cycle, job.cluster, job.inventory, job.admin_client, job.now
            )

    results = await asyncio.gather(*(_run(job) for job in jobs), return_exceptions=True)
    for item in results:
        if isinstance(item, BaseException):
            raise item
    return [item for item in results if isinstance(item, CycleOutcome)]
