"""Controller — the reconcile loop.

Each cycle walks the configured archetypes in order:

  1. Observe the archetype's status from the instance inventory
  2. Compute a plan
  3. Follow the primary (migrate resources, repoint DNS) if it changed
  4. Execute the plan (skipped in dry-run mode, where it is only logged)
  5. Announce clusters that were created

An archetype whose inventory cannot be listed is reported and skipped;
the remaining archetypes still run. Whether a failed cycle stops the
loop is controlled by ``fail_fast`` (default: log and retry next tick).
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from auto_cluster.hooks.notifier import (
    ClusterNotifier,
    build_announcement,
    dispatch_notifications,
)
from auto_cluster.inventory.status import InventoryError, InventorySource, observe
from auto_cluster.models import (
    ActionResult,
    ArchetypePlan,
    ArchetypeReport,
    ArchetypeSpec,
    ArchetypeStatus,
    CycleReport,
)
from auto_cluster.planner.engine import cluster_age, compute_plan
from auto_cluster.runner.executor import PlanExecutor

if TYPE_CHECKING:
    from auto_cluster.config import AutoClusterConfig
    from auto_cluster.hooks.dns import DnsUpdater
    from auto_cluster.hooks.migrate import ResourceMigrator

logger = logging.getLogger(__name__)


class ExecutionError(Exception):
    """Raised by ``Controller.run`` when a cycle fails and ``fail_fast`` is set."""


class Controller:
    """Reconciles every archetype against live inventory on a fixed interval."""

    def __init__(
        self,
        archetypes: tuple[ArchetypeSpec, ...] | list[ArchetypeSpec],
        inventory: InventorySource,
        executor: PlanExecutor,
        notifiers: list[ClusterNotifier] | None = None,
        dns_updater: DnsUpdater | None = None,
        migrator: ResourceMigrator | None = None,
        base_domain: str = "devcluster.openshift.com",
        interval: timedelta = timedelta(minutes=15),
        dry_run: bool = False,
        fail_fast: bool = False,
        clock: Callable[[], datetime] | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self._archetypes = tuple(archetypes)
        self._inventory = inventory
        self._executor = executor
        self._notifiers = notifiers or []
        self._dns = dns_updater
        self._migrator = migrator
        self._base_domain = base_domain
        self._interval = interval
        self._dry_run = dry_run
        self._fail_fast = fail_fast
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._log = log or logger
        self._primaries: dict[str, str] = {}

    @property
    def primaries(self) -> dict[str, str]:
        """Last primary followed per archetype prefix."""
        return dict(self._primaries)

    @classmethod
    def from_config(
        cls,
        config: AutoClusterConfig,
        inventory: InventorySource | None = None,
        log: logging.Logger | None = None,
    ) -> Controller:
        """Wire a controller from a loaded config."""
        from auto_cluster.hooks.helm import HelmChartInstaller
        from auto_cluster.hooks.migrate import ResourceMigrator
        from auto_cluster.hooks.notifier import build_notifiers
        from auto_cluster.runner.tool import OpenShiftInstallTool

        if inventory is None:
            from auto_cluster.inventory.ec2 import Ec2InventorySource

            inventory = Ec2InventorySource(
                region=config.region,
                profile=config.aws.get("profile"),
                endpoint_url=config.aws.get("endpoint_url"),
                log=log,
            )

        installer = None
        if any(a.install.helm_chart for a in config.archetypes):
            installer = HelmChartInstaller(
                oc_path=config.oc_path,
                helm_path=config.helm_path,
                git_path=config.git_path,
                log=log,
            )

        executor = PlanExecutor(
            tool=OpenShiftInstallTool(
                path=config.install_tool,
                timeout=config.tool_timeout,
                log=log,
            ),
            state_dir=config.state_dir,
            pull_secret=config.pull_secret,
            base_domain=config.base_domain,
            region=config.region,
            installer=installer,
            log=log,
        )

        dns_updater = None
        if any(a.dns is not None for a in config.archetypes):
            from auto_cluster.hooks.dns import Route53DnsUpdater

            dns_updater = Route53DnsUpdater(
                profile=config.aws.get("profile"),
                endpoint_url=config.aws.get("endpoint_url"),
                log=log,
            )

        migrator = None
        if any(a.migrate is not None and a.migrate.namespaces for a in config.archetypes):
            migrator = ResourceMigrator(oc_path=config.oc_path, log=log)

        return cls(
            archetypes=config.archetypes,
            inventory=inventory,
            executor=executor,
            notifiers=build_notifiers(config.notifications),
            dns_updater=dns_updater,
            migrator=migrator,
            base_domain=config.base_domain,
            interval=config.interval,
            dry_run=config.dry_run,
            fail_fast=config.fail_fast,
            log=log,
        )

    # --- Loop ---

    def run(
        self,
        stop_event: threading.Event | None = None,
        max_cycles: int | None = None,
    ) -> int:
        """Run cycles until *stop_event* is set (or *max_cycles* have run).

        The first cycle starts immediately; later cycles start ``interval``
        after the previous one finished. Cancellation is only observed
        between cycles; a running cycle always completes.

        Returns the number of cycles run.

        Raises:
            ExecutionError: If a cycle fails and ``fail_fast`` is set.
        """
        stop = stop_event or threading.Event()
        cycles = 0

        while not stop.is_set():
            self._log.info("Running reconcile cycle")
            report = self.reconcile_once()
            cycles += 1

            if report.failed:
                failures = report.failures()
                for line in failures:
                    self._log.error("Reconcile failure: %s", line)
                if self._fail_fast:
                    raise ExecutionError(
                        f"Reconcile cycle failed: {'; '.join(failures)}"
                    )

            if max_cycles is not None and cycles >= max_cycles:
                break

            self._log.info(
                "Ran reconcile cycle, waiting %s before next cycle", self._interval,
            )
            stop.wait(self._interval.total_seconds())

        self._log.info("Reconcile loop stopped after %d cycle(s)", cycles)
        return cycles

    def reconcile_once(self) -> CycleReport:
        """Run one cycle over every archetype."""
        cycle = CycleReport(started_at=self._clock())
        for spec in self._archetypes:
            cycle.archetypes.append(self.reconcile_archetype(spec))
        cycle.finished_at = self._clock()
        return cycle

    def reconcile_archetype(self, spec: ArchetypeSpec) -> ArchetypeReport:
        prefix = spec.name_prefix
        report = ArchetypeReport(name_prefix=prefix, dry_run=self._dry_run)
        self._log.info("Reconciling archetype with name prefix %s", prefix)

        try:
            status = observe(self._inventory, spec)
        except InventoryError as exc:
            self._log.error("Failed to get status for archetype %s: %s", prefix, exc)
            report.error = str(exc)
            return report

        now = self._clock()
        self._log_status(status, now)
        plan = compute_plan(spec, status, now=now)
        report.plan = plan
        self._log.info("%s", plan)

        if self._dry_run:
            self._log.info("Dry run, not executing plan for %s", prefix)
            return report

        try:
            report.actions.extend(self._follow_primary(spec, plan, status))
            report.actions.extend(self._executor.execute(spec, plan, status))
        except Exception as exc:
            self._log.exception("Failed to execute plan for archetype %s", prefix)
            report.error = f"Executor error: {exc}"
            return report

        for name in report.created():
            self._announce(spec, name)

        return report

    # --- Primary / notifications ---

    def _follow_primary(
        self,
        spec: ArchetypeSpec,
        plan: ArchetypePlan,
        status: ArchetypeStatus,
    ) -> list[ActionResult]:
        """Migrate resources and repoint DNS when the primary changes.

        Runs before the plan executes, so a previous primary that is about
        to be deleted can still be migrated from.
        """
        prefix = spec.name_prefix
        primary = plan.primary
        if primary is None:
            return []

        previous = self._primaries.get(prefix)
        if previous == primary.name:
            return []

        self._log.info(
            "Primary for %s changed from %s to %s", prefix, previous, primary.name,
        )
        results: list[ActionResult] = []

        if (
            self._migrator is not None
            and spec.migrate is not None
            and previous is not None
            and previous in status.names()
        ):
            for namespace in spec.migrate.namespaces:
                results.append(self._migrator.migrate(
                    self._executor.cluster_dir(previous),
                    self._executor.cluster_dir(primary.name),
                    namespace,
                ))

        if self._dns is not None and spec.dns is not None:
            results.append(self._dns.point_to(spec.dns, primary.name, self._base_domain))

        if all(r.ok for r in results):
            self._primaries[prefix] = primary.name
        return results

    def _announce(self, spec: ArchetypeSpec, cluster_name: str) -> None:
        if not self._notifiers:
            return
        try:
            announcement = build_announcement(
                self._executor.cluster_dir(cluster_name),
                spec.name_prefix,
                self._base_domain,
            )
        except OSError as exc:
            self._log.warning("Cannot read credentials for %s: %s", cluster_name, exc)
            return
        dispatch_notifications(self._notifiers, announcement)

    def _log_status(self, status: ArchetypeStatus, now: datetime) -> None:
        if not status.clusters:
            self._log.info("No clusters found for %s", status.name_prefix)
        for cluster in status.clusters:
            self._log.info(
                "Cluster %s: %d instance(s), age %s",
                cluster.name,
                len(cluster.instances),
                cluster_age(cluster, now),
            )
