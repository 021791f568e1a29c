from __future__ import annotations

import copy
import time
from collections.abc import Iterable, Mapping, Sequence

from structlog.typing import FilteringBoundLogger

from membership.logger import get_logger
from membership.status.models import Cluster, ConditionType, ProcessGroupStatus
from membership.status.world import Node, PersistentVolumeClaim, Pod, ProcessInfo
from membership.tracker.locality import zone_for_pod
from membership.tracker.pods import (
    LAST_CONFIG_MAP_ANNOTATION,
    LAST_SPEC_HASH_ANNOTATION,
    desired_pod_spec_hash,
    is_failing,
    is_pending,
    public_ips,
)
from membership.tracker.taints import TaintEvaluator


class ConditionTracker:
    """Re-derives addresses and conditions of every process group from the observed world."""

    def __init__(self, log: FilteringBoundLogger | None = None) -> None:
        self._log = log or get_logger("tracker")

    def validate(
        self,
        cluster: Cluster,
        process_map: Mapping[str, Sequence[ProcessInfo]],
        pods: Iterable[Pod],
        pvcs: Iterable[PersistentVolumeClaim],
        nodes: Iterable[Node],
        config_map_checksum: str | None,
        now: int | None = None,
    ) -> list[ProcessGroupStatus]:
        """
        Return the updated process group list; `cluster.status` is left untouched.

        Groups keep their discovery order; pods of unknown groups are appended in
        pod order. First-seen timestamps survive for conditions that still hold.

        Raises:
            ConfigurationError: if the fault domain or taint options cannot be evaluated.
        """
        now = int(time.time()) if now is None else now
        policy = cluster.policy
        log = self._log.bind(cluster=cluster.name)
        taints = TaintEvaluator(policy.replacements.taint_replacement_options)

        process_groups = [copy.deepcopy(pg) for pg in cluster.status.process_groups]
        pods_by_group: dict[str, Pod] = {}
        for pod in pods:
            # a pod being deleted is only used when nothing newer exists
            current = pods_by_group.get(pod.process_group_id)
            if current is None or (current.deleting and not pod.deleting):
                pods_by_group[pod.process_group_id] = pod
        claimed = {pvc.process_group_id for pvc in pvcs}
        node_map = {node.name: node for node in nodes}

        known = {pg.process_group_id for pg in process_groups}
        for process_group_id, pod in pods_by_group.items():
            if process_group_id in known:
                continue
            process_groups.append(
                ProcessGroupStatus(
                    process_group_id=process_group_id, process_class=pod.process_class
                )
            )
            known.add(process_group_id)
            log.info("process_group.discovered", process_group_id=process_group_id)

        for process_group in process_groups:
            pod = pods_by_group.get(process_group.process_group_id)
            processes = process_map.get(process_group.process_group_id, ())
            observed = self._observe(
                process_group,
                pod=pod,
                processes=processes,
                has_pvc=process_group.process_group_id in claimed,
                node=node_map.get(pod.node_name) if pod and pod.node_name else None,
                config_map_checksum=config_map_checksum,
                cluster=cluster,
                taints=taints,
                now=now,
            )
            for condition_type, present in observed.items():
                if not process_group.update_condition(condition_type, present, now):
                    continue
                log.info(
                    "condition.added" if present else "condition.cleared",
                    process_group_id=process_group.process_group_id,
                    condition=str(condition_type),
                )

        return process_groups

    @staticmethod
    def _observe(
        process_group: ProcessGroupStatus,
        *,
        pod: Pod | None,
        processes: Sequence[ProcessInfo],
        has_pvc: bool,
        node: Node | None,
        config_map_checksum: str | None,
        cluster: Cluster,
        taints: TaintEvaluator,
        now: int,
    ) -> dict[ConditionType, bool]:
        """Update addresses and locality in place; return which conditions hold now."""
        addresses = _unique([process.address for process in processes]) or public_ips(pod)
        process_group.addresses = addresses
        if pod is not None:
            process_group.fault_domain = zone_for_pod(cluster.policy.fault_domain, pod)

        observed: dict[ConditionType, bool] = {
            ConditionType.MISSING_PROCESSES: not processes,
            ConditionType.MISSING_POD: pod is None,
            ConditionType.MISSING_PVC: process_group.process_class.is_stateful and not has_pvc,
            ConditionType.POD_FAILING: pod is not None and is_failing(pod),
            ConditionType.POD_PENDING: pod is not None and is_pending(pod),
        }

        if pod is not None:
            expected_spec = desired_pod_spec_hash(cluster.policy, process_group.process_class)
            observed[ConditionType.INCORRECT_POD_SPEC] = (
                pod.annotations.get(LAST_SPEC_HASH_ANNOTATION) != expected_spec
            )
            observed[ConditionType.INCORRECT_CONFIG_MAP] = config_map_checksum is not None and (
                pod.annotations.get(LAST_CONFIG_MAP_ANNOTATION) != config_map_checksum
            )
        else:
            # nothing to compare against; the group is already MissingPod
            observed[ConditionType.INCORRECT_POD_SPEC] = False
            observed[ConditionType.INCORRECT_CONFIG_MAP] = False

        verdict = taints.evaluate(
            node,
            now=now,
            detected_since=process_group.get_condition(ConditionType.NODE_TAINT_DETECTED),
        )
        observed[ConditionType.NODE_TAINT_DETECTED] = verdict.detected
        observed[ConditionType.NODE_TAINT_REPLACING] = verdict.replacing
        return observed


def _unique(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            out.append(item)
    return out
