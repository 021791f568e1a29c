"""
YAML snapshots of a cluster and of the world observed around it.

Cluster file:
    name: sample
    namespace: default
    policy: {...}          # ClusterPolicy fields
    status:
      process_groups: [...]

World file:
    database: {available: true, processes: [...], ...}
    pods: [...]
    pvcs: [...]
    nodes: [...]
    config_map_checksum: abc
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from membership.config import read_yaml_mapping
from membership.errors import ConfigurationError
from membership.policy import ClusterPolicy
from membership.status.models import Cluster, ClusterStatus
from membership.status.world import (
    DatabaseStatus,
    Node,
    PersistentVolumeClaim,
    Pod,
    StaticInventory,
)


def load_cluster(path: Path) -> Cluster:
    """
    Raises:
        ConfigurationError: if the file is unreadable or the policy or status is invalid.
    """
    raw = read_yaml_mapping(path)
    name = raw.get("name") or path.stem
    try:
        return Cluster(
            name=str(name),
            namespace=str(raw.get("namespace") or "default"),
            policy=ClusterPolicy.model_validate(raw.get("policy") or {}),
            status=ClusterStatus.from_dict(raw.get("status") or {}),
        )
    except ValidationError as exc:
        raise ConfigurationError(f"invalid cluster policy in {path}: {exc}") from exc
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"invalid cluster status in {path}: {exc!r}") from exc


def dump_cluster(cluster: Cluster) -> dict[str, Any]:
    return {
        "name": cluster.name,
        "namespace": cluster.namespace,
        "policy": cluster.policy.model_dump(mode="json", exclude_defaults=True),
        "status": cluster.status.to_dict(),
    }


def write_cluster(cluster: Cluster, path: Path) -> None:
    text = yaml.safe_dump(dump_cluster(cluster), sort_keys=False, allow_unicode=True)
    path.write_text(text, encoding="utf-8")


def load_world(path: Path) -> tuple[StaticInventory, DatabaseStatus]:
    raw = read_yaml_mapping(path)
    try:
        inventory = StaticInventory(
            pods=[Pod.from_dict(item) for item in raw.get("pods") or []],
            pvcs=[
                PersistentVolumeClaim(
                    name=str(item.get("name") or item["process_group_id"]),
                    process_group_id=str(item["process_group_id"]),
                )
                for item in raw.get("pvcs") or []
            ],
            nodes=[Node.from_dict(item) for item in raw.get("nodes") or []],
            checksum=(
                str(raw["config_map_checksum"])
                if raw.get("config_map_checksum") is not None
                else None
            ),
        )
        database = DatabaseStatus.from_dict(raw.get("database") or {})
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"invalid world snapshot {path}: {exc!r}") from exc
    return inventory, database
