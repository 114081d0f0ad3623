"""auto-cluster CLI — command-line interface for auto-cluster.

Commands:
    run             Run the reconcile loop until interrupted
    plan            Compute and print the plan for each archetype
    status          Show the clusters observed for each archetype
    validate        Validate the config file
    config show     Print the loaded config with secrets redacted
"""

from __future__ import annotations

import json
import logging
import signal
import sys
import threading
from datetime import UTC, datetime

import click

from auto_cluster import __version__
from auto_cluster.config import AutoClusterConfig, ConfigError, load_config
from auto_cluster.inventory.status import InventoryError, InventorySource, observe
from auto_cluster.models import format_duration, parse_duration
from auto_cluster.planner.engine import cluster_age, compute_plan, select_primary

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _setup_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)


def _load(config_path: str | None) -> AutoClusterConfig:
    """Load config or exit with status 1."""
    try:
        return load_config(config_path)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _inventory(cfg: AutoClusterConfig, inventory_file: str | None) -> InventorySource:
    if inventory_file is not None:
        from auto_cluster.inventory.loader import load_instances

        try:
            return load_instances(inventory_file)
        except InventoryError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    from auto_cluster.inventory.ec2 import Ec2InventorySource

    try:
        return Ec2InventorySource(
            region=cfg.region,
            profile=cfg.aws.get("profile"),
            endpoint_url=cfg.aws.get("endpoint_url"),
        )
    except ImportError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


config_option = click.option(
    "--config", "config_path", default=None,
    help="Path to auto-cluster.yaml (default: auto-discover)",
)
inventory_option = click.option(
    "--inventory", "inventory_file", default=None,
    help="YAML instance snapshot to use instead of querying EC2",
)


# --- Root group ---


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level", default="info",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    help="Log level (default: info)",
)
def cli(log_level: str) -> None:
    """auto-cluster: keep a fleet of OpenShift clusters at a declared size and age."""
    _setup_logging(log_level)


# --- run command ---


@cli.command()
@config_option
@inventory_option
@click.option(
    "--dry-run/--no-dry-run", default=None,
    help="Log plans without executing them (default: from config, else no)",
)
@click.option(
    "--fail-fast/--no-fail-fast", default=None,
    help="Exit when a reconcile cycle fails (default: from config, else no)",
)
@click.option("--interval", default=None, help="Time between cycles, e.g. 15m")
@click.option("--once", is_flag=True, help="Run a single cycle and exit")
def run(
    config_path: str | None,
    inventory_file: str | None,
    dry_run: bool | None,
    fail_fast: bool | None,
    interval: str | None,
    once: bool,
) -> None:
    """Run the reconcile loop until interrupted."""
    from auto_cluster.controller import Controller, ExecutionError

    cfg = _load(config_path)
    try:
        parsed_interval = parse_duration(interval) if interval is not None else None
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    cfg = cfg.with_overrides(dry_run=dry_run, fail_fast=fail_fast, interval=parsed_interval)

    log = logging.getLogger("auto_cluster")
    log.info("Loaded configuration %s", json.dumps(cfg.redacted(), default=str))

    try:
        inventory = _inventory(cfg, inventory_file) if inventory_file else None
        controller = Controller.from_config(cfg, inventory=inventory)
    except ImportError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    stop = threading.Event()

    def _on_signal(signum: int, _frame: object) -> None:
        log.info("Received %s, shutting down gracefully...", signal.Signals(signum).name)
        stop.set()

    previous = {
        sig: signal.signal(sig, _on_signal) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        controller.run(stop, max_cycles=1 if once else None)
    except ExecutionError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    log.info("Completed graceful shutdown")


# --- plan command ---


@cli.command()
@config_option
@inventory_option
@click.option("--json-output", is_flag=True, help="Output as JSON")
def plan(config_path: str | None, inventory_file: str | None, json_output: bool) -> None:
    """Compute and print the plan for each archetype (never executes)."""
    cfg = _load(config_path)
    source = _inventory(cfg, inventory_file)
    now = datetime.now(tz=UTC)

    plans = []
    failed = False
    for spec in cfg.archetypes:
        try:
            status = observe(source, spec)
        except InventoryError as e:
            click.echo(f"Error: {e}", err=True)
            failed = True
            continue
        plans.append(compute_plan(spec, status, now=now))

    if json_output:
        click.echo(json.dumps([p.model_dump(mode="json") for p in plans], indent=2))
    else:
        for p in plans:
            header = click.style(p.name_prefix, bold=True)
            if p.empty:
                click.echo(f"{header}: " + click.style("up to date", fg="green"))
            else:
                click.echo(f"{header}:")
            if p.create_clusters:
                click.echo(click.style(f"  + create {p.create_clusters} cluster(s)", fg="green"))
            for c in p.delete_clusters:
                click.echo(click.style(f"  - delete {c.name}", fg="red"))
            click.echo(f"  primary: {p.primary.name if p.primary else '(none)'}")

    if failed:
        sys.exit(1)


# --- status command ---


@cli.command()
@config_option
@inventory_option
@click.option("--json-output", is_flag=True, help="Output as JSON")
def status(config_path: str | None, inventory_file: str | None, json_output: bool) -> None:
    """Show the clusters observed for each archetype, oldest first."""
    from auto_cluster.planner.engine import sort_clusters

    cfg = _load(config_path)
    source = _inventory(cfg, inventory_file)
    now = datetime.now(tz=UTC)

    out = []
    failed = False
    for spec in cfg.archetypes:
        try:
            st = observe(source, spec)
        except InventoryError as e:
            click.echo(f"Error: {e}", err=True)
            failed = True
            continue
        newest = select_primary(st.clusters)
        out.append({
            "name_prefix": spec.name_prefix,
            "replicas": spec.replica_count,
            "newest": newest.name if newest else None,
            "clusters": [
                {
                    "name": c.name,
                    "created_on": c.created_on.isoformat(),
                    "age": format_duration(cluster_age(c, now)),
                    "instances": len(c.instances),
                }
                for c in sort_clusters(st.clusters)
            ],
        })

    if json_output:
        click.echo(json.dumps(out, indent=2))
    else:
        for entry in out:
            click.echo(
                click.style(entry["name_prefix"], bold=True)
                + f" ({len(entry['clusters'])}/{entry['replicas']} clusters)"
            )
            for c in entry["clusters"]:
                marker = "*" if c["name"] == entry["newest"] else " "
                click.echo(
                    f" {marker} {c['name']:<24} age {c['age']:<10} "
                    f"{c['instances']} instance(s)"
                )

    if failed:
        sys.exit(1)


# --- validate command ---


@cli.command()
@config_option
def validate(config_path: str | None) -> None:
    """Validate the config file."""
    cfg = _load(config_path)
    click.echo(click.style("OK", fg="green", bold=True) + f" — {cfg.config_path}")
    for spec in cfg.archetypes:
        click.echo(
            f"  {spec.name_prefix}: replicas={spec.replica_count} "
            f"deleteAfter={format_duration(spec.delete_after)} "
            f"oldestPrimary={format_duration(spec.oldest_primary)}"
        )
        if spec.oldest_primary > spec.delete_after:
            click.echo(
                click.style("  warning:", fg="yellow")
                + " oldestPrimary exceeds deleteAfter; clusters are deleted "
                "before they are replaced as primary"
            )


# --- config group ---


@cli.group("config")
def config_group() -> None:
    """Inspect configuration."""


@config_group.command("show")
@config_option
def config_show(config_path: str | None) -> None:
    """Print the loaded config with secrets redacted."""
    cfg = _load(config_path)
    click.echo(json.dumps(cfg.redacted(), indent=2, default=str))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
