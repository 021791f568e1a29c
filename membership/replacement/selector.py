"""
Replacement selection.

Pure function of the process group list, the cluster policy and the clock:
it never mutates its input. Committing the marks is the reconciler's job.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass

from membership.matching import matches_target
from membership.policy import MAIN_CONTAINER_NAME, SIDECAR_CONTAINER_NAME, ClusterPolicy
from membership.status.models import ConditionType, ProcessGroupStatus


# Conditions that make a process group a replacement candidate once they are
# older than the failure detection timeout. IncorrectPodSpec, IncorrectConfigMap
# and NodeTaintDetected are tracked but healed elsewhere.
REPLACEMENT_CONDITIONS: tuple[ConditionType, ...] = (
    ConditionType.MISSING_PROCESSES,
    ConditionType.MISSING_POD,
    ConditionType.MISSING_PVC,
    ConditionType.POD_FAILING,
    ConditionType.POD_PENDING,
    ConditionType.NODE_TAINT_REPLACING,
)

# crash-loop entries for other containers do not hold the process group back
_WATCHED_CONTAINERS = frozenset({MAIN_CONTAINER_NAME, SIDECAR_CONTAINER_NAME})

REASON_DISABLED = "replacements disabled"
REASON_EMPTY_MONITOR_CONF = "empty monitor conf"
REASON_NOTHING_ELIGIBLE = "no eligible process groups"
REASON_LIMIT_REACHED = "concurrency limit reached"
REASON_SELECTED = "process groups selected"


def grace_period(condition_type: ConditionType, policy: ClusterPolicy) -> int | None:
    """Seconds a condition must persist before it is actionable; None if it never is."""
    if condition_type in REPLACEMENT_CONDITIONS:
        return policy.failure_detection_timeout_seconds
    return None


@dataclass(slots=True, frozen=True)
class Selection:
    candidates: tuple[ProcessGroupStatus, ...]
    reason: str
    eligible: int = 0  # before the concurrency cap
    budget: int | None = None  # None means uncapped

    def __bool__(self) -> bool:
        return bool(self.candidates)


class ReplacementSelector:
    def __init__(self, policy: ClusterPolicy) -> None:
        self._policy = policy

    def is_exempt(self, process_group: ProcessGroupStatus) -> bool:
        """Crash-loop overrides keep a group out of replacement regardless of its conditions."""
        buggify = self._policy.buggify
        process_group_id = process_group.process_group_id
        if matches_target(buggify.crash_loop, process_group_id):
            return True
        return any(
            matches_target(container.targets, process_group_id)
            for container in buggify.crash_loop_containers
            if container.container_name in _WATCHED_CONTAINERS
        )

    def actionable_condition(
        self, process_group: ProcessGroupStatus, now: int
    ) -> ConditionType | None:
        """First condition (in detection order) whose grace period has elapsed."""
        for condition_type, first_seen in process_group.conditions.items():
            period = grace_period(condition_type, self._policy)
            if period is not None and now - first_seen >= period:
                return condition_type
        return None

    def select(
        self,
        process_groups: Sequence[ProcessGroupStatus],
        in_flight: int | None = None,
        now: int | None = None,
    ) -> Selection:
        """
        Pick the process groups to mark for removal in this cycle.

        Args:
            process_groups: groups in discovery order; this order breaks ties under a cap.
            in_flight: groups already marked and not yet excluded; counted from
                `process_groups` when not given.
            now: unix seconds, defaults to the wall clock.
        """
        now = int(time.time()) if now is None else now
        replacements = self._policy.replacements

        if not replacements.enabled:
            return Selection(candidates=(), reason=REASON_DISABLED)
        if self._policy.buggify.empty_monitor_conf:
            return Selection(candidates=(), reason=REASON_EMPTY_MONITOR_CONF)

        eligible = [
            process_group
            for process_group in process_groups
            if not process_group.marked_for_removal
            and not self.is_exempt(process_group)
            and self.actionable_condition(process_group, now) is not None
        ]
        if not eligible:
            return Selection(candidates=(), reason=REASON_NOTHING_ELIGIBLE)

        budget: int | None = None
        if replacements.max_concurrent_replacements is not None:
            if in_flight is None:
                in_flight = sum(1 for pg in process_groups if pg.is_in_flight)
            budget = max(0, replacements.max_concurrent_replacements - in_flight)
            if budget == 0:
                return Selection(
                    candidates=(), reason=REASON_LIMIT_REACHED, eligible=len(eligible), budget=0
                )

        chosen = eligible if budget is None else eligible[:budget]
        return Selection(
            candidates=tuple(chosen),
            reason=REASON_SELECTED,
            eligible=len(eligible),
            budget=budget,
        )
