"""
Per-cluster policy knobs read by the decision engine.

The policy is owned by the cluster definition and is read-only for the core.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from membership.config import read_yaml_mapping
from membership.errors import ConfigurationError


MAIN_CONTAINER_NAME = "foundationdb"
SIDECAR_CONTAINER_NAME = "foundationdb-kubernetes-sidecar"

# Fault domain keys with special handling, everything else is read from the pod.
NO_FAULT_DOMAIN_KEY = "membership.io/none"
CLUSTER_FAULT_DOMAIN_KEY = "membership.io/kubernetes-cluster"
NODE_NAME_SOURCE = "spec.nodeName"

WILDCARD = "*"


class RedundancyMode(StrEnum):
    SINGLE = "single"
    DOUBLE = "double"
    TRIPLE = "triple"
    THREE_DATA_HALL = "three_data_hall"


_DESIRED_FAULT_TOLERANCE: dict[RedundancyMode, int] = {
    RedundancyMode.SINGLE: 0,
    RedundancyMode.DOUBLE: 1,
    RedundancyMode.TRIPLE: 2,
    RedundancyMode.THREE_DATA_HALL: 2,
}


class TaintReplacementOption(BaseModel):
    """Replace process groups on nodes carrying `key` once the taint is older than the duration."""

    key: str = Field(min_length=1)  # exact taint key or "*"
    duration_seconds: int = Field(ge=0)


class ReplacementOptions(BaseModel):

    enabled: bool = Field(default=True)
    # None means no cap on groups marked for removal but not yet excluded
    max_concurrent_replacements: int | None = Field(default=None, ge=0)
    taint_replacement_options: list[TaintReplacementOption] = Field(default_factory=list)


class AutomationOptions(BaseModel):

    replacements: ReplacementOptions = Field(default_factory=ReplacementOptions)


class CrashLoopContainer(BaseModel):

    container_name: str = Field(min_length=1)
    targets: list[str] = Field(default_factory=list)


class BuggifyConfig(BaseModel):
    """Escape hatches that suspend normal failure handling."""

    empty_monitor_conf: bool = Field(default=False)
    crash_loop: list[str] = Field(default_factory=list)
    crash_loop_containers: list[CrashLoopContainer] = Field(default_factory=list)


class FaultDomain(BaseModel):

    key: str = Field(default="kubernetes.io/hostname")
    value: str | None = Field(default=None)
    value_from: str | None = Field(default=None)


class ClusterPolicy(BaseModel):
    """Policy for one cluster: timeouts, replacement caps, overrides and redundancy."""

    version: str = Field(default="7.1.26")
    failure_detection_timeout_seconds: int = Field(default=1800, ge=0)
    redundancy_mode: RedundancyMode = Field(default=RedundancyMode.DOUBLE)
    # overrides the tolerance derived from the redundancy mode
    minimum_fault_tolerance: int | None = Field(default=None, ge=0)
    fault_domain: FaultDomain = Field(default_factory=FaultDomain)
    automation_options: AutomationOptions = Field(default_factory=AutomationOptions)
    buggify: BuggifyConfig = Field(default_factory=BuggifyConfig)
    # settings per process class, hashed into the desired pod spec
    processes: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @field_validator("processes")
    @classmethod
    def _lowercase_process_classes(
        cls, value: dict[str, dict[str, Any]]
    ) -> dict[str, dict[str, Any]]:
        return {str(name).lower(): settings for name, settings in value.items()}

    @property
    def replacements(self) -> ReplacementOptions:
        return self.automation_options.replacements

    def desired_fault_tolerance(self) -> int:
        if self.minimum_fault_tolerance is not None:
            return self.minimum_fault_tolerance
        return _DESIRED_FAULT_TOLERANCE[self.redundancy_mode]

    @classmethod
    def from_yaml(cls, path: Path) -> ClusterPolicy:
        try:
            return cls.model_validate(read_yaml_mapping(path))
        except ValidationError as exc:
            raise ConfigurationError(f"invalid cluster policy in {path}: {exc}") from exc


__all__ = [
    "CLUSTER_FAULT_DOMAIN_KEY",
    "MAIN_CONTAINER_NAME",
    "NODE_NAME_SOURCE",
    "NO_FAULT_DOMAIN_KEY",
    "SIDECAR_CONTAINER_NAME",
    "WILDCARD",
    "AutomationOptions",
    "BuggifyConfig",
    "ClusterPolicy",
    "CrashLoopContainer",
    "FaultDomain",
    "RedundancyMode",
    "ReplacementOptions",
    "TaintReplacementOption",
]
