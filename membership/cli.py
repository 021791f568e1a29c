from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Iterator
from pathlib import Path
from typing import Annotated

import typer

from membership.admin.client import AdminClient
from membership.admin.mock import MockAdminClient
from membership.admin.timed import TimedAdminClient
from membership.config import AppConfig
from membership.errors import ConfigurationError, TransientError
from membership.logger import configure_logging
from membership.reconciler import CycleJob, CycleOutcome, run_cycle, run_cycles
from membership.replacement.selector import ReplacementSelector
from membership.snapshot import load_cluster, load_world, write_cluster
from membership.status.models import Cluster
from membership.status.world import DatabaseStatus


app = typer.Typer(help="Process group replacement decisions for database clusters")

# sysexits.h
EXIT_TEMPFAIL = 75
EXIT_CONFIG = 78

CLUSTER_SUFFIX = ".cluster.yaml"
WORLD_SUFFIX = ".world.yaml"

ConfigOption = Annotated[
    Path | None, typer.Option("--config", "-c", help="Operator settings YAML")
]
NowOption = Annotated[
    int | None, typer.Option("--now", help="Evaluate at this unix time instead of the clock")
]
WriteOption = Annotated[bool, typer.Option(help="Persist the updated status")]


@contextlib.contextmanager
def _exit_codes() -> Iterator[None]:
    """Map package errors to sysexits codes."""
    try:
        yield
    except ConfigurationError as exc:
        typer.echo(f"configuration error: {exc}", err=True)
        raise typer.Exit(EXIT_CONFIG) from exc
    except TransientError as exc:
        typer.echo(f"transient error, retry later: {exc}", err=True)
        raise typer.Exit(EXIT_TEMPFAIL) from exc


def _setup(config: Path | None) -> AppConfig:
    cfg = AppConfig.from_yaml(config)
    try:
        configure_logging(cfg.logging.level, json_output=cfg.logging.json_output)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc
    return cfg


def _admin_client(cfg: AppConfig, cluster: Cluster, database: DatabaseStatus) -> AdminClient:
    return TimedAdminClient(
        MockAdminClient(cluster=cluster, frozen_status=database),
        timeout_sec=cfg.admin.status_timeout_sec,
    )


def _echo_outcome(outcome: CycleOutcome) -> None:
    if outcome.result is None:
        typer.echo(f"{outcome.cluster_name}: no change")
    else:
        typer.echo(f"{outcome.cluster_name}: requeue ({outcome.result.message})")
    typer.echo(f"  marked for removal: {', '.join(outcome.removed) or '-'}")


@app.command()
def evaluate(
    cluster_file: Path,
    world_file: Path,
    config: ConfigOption = None,
    now: NowOption = None,
    write: WriteOption = False,
) -> None:
    """Run one cycle for a cluster against a snapshot of the observed world."""
    with _exit_codes():
        cfg = _setup(config)
        cluster = load_cluster(cluster_file)
        inventory, database = load_world(world_file)
        outcome = run_cycle(cluster, inventory, _admin_client(cfg, cluster, database), now=now)

    _echo_outcome(outcome)
    if write:
        write_cluster(cluster, cluster_file)


def _collect_jobs(cfg: AppConfig, directory: Path, now: int | None) -> dict[Path, CycleJob]:
    jobs: dict[Path, CycleJob] = {}
    seen: dict[str, Path] = {}
    for cluster_file in sorted(directory.glob(f"*{CLUSTER_SUFFIX}")):
        world_file = cluster_file.with_name(
            cluster_file.name.removesuffix(CLUSTER_SUFFIX) + WORLD_SUFFIX
        )
        if not world_file.exists():
            typer.echo(f"skipping {cluster_file.name}: {world_file.name} not found", err=True)
            continue
        cluster = load_cluster(cluster_file)
        if cluster.name in seen:
            raise ConfigurationError(
                f"cluster {cluster.name!r} is defined by both "
                f"{seen[cluster.name].name} and {cluster_file.name}"
            )
        seen[cluster.name] = cluster_file
        inventory, database = load_world(world_file)
        jobs[cluster_file] = CycleJob(
            cluster=cluster,
            inventory=inventory,
            admin_client=_admin_client(cfg, cluster, database),
            now=now,
        )
    return jobs


@app.command("run")
def run_directory(
    directory: Path,
    config: ConfigOption = None,
    now: NowOption = None,
    write: WriteOption = False,
) -> None:
    """Run one cycle for every <name>.cluster.yaml with a matching <name>.world.yaml."""
    with _exit_codes():
        cfg = _setup(config)
        jobs = _collect_jobs(cfg, directory, now)
        if not jobs:
            typer.echo("no clusters found", err=True)
            raise typer.Exit(1)
        outcomes = asyncio.run(
            run_cycles(list(jobs.values()), concurrency=cfg.reconcile.max_parallel_clusters)
        )

    for outcome in outcomes:
        _echo_outcome(outcome)
    if write:
        for cluster_file, job in jobs.items():
            write_cluster(job.cluster, cluster_file)


@app.command()
def conditions(cluster_file: Path, now: NowOption = None) -> None:
    """List process groups with their conditions and how long each has held."""
    with _exit_codes():
        cluster = load_cluster(cluster_file)
    now = int(time.time()) if now is None else now
    selector = ReplacementSelector(cluster.policy)

    for process_group in cluster.status.process_groups:
        flags: list[str] = []
        if process_group.marked_for_removal:
            flags.append("removal")
        if process_group.excluded:
            flags.append("excluded")
        if process_group.exclusion_skipped:
            flags.append("skip-exclusion")
        if selector.is_exempt(process_group):
            flags.append("crash-loop")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        typer.echo(f"{process_group.process_group_id}{suffix}")
        for condition_type, first_seen in process_group.conditions.items():
            typer.echo(f"  {condition_type}: {now - first_seen}s")


def run() -> int:
    app()
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
