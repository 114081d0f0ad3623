"""PlanExecutor — applies an ArchetypePlan with a ClusterTool.

Creates run before deletes, so a replacement primary is up before the
cluster it replaces is torn down. Every create and delete produces its
own ``ActionResult``; one cluster's failure never stops the others.
Invocations are sequential: each cluster owns its state subdirectory and
provisioning is too heavy to overlap.
"""

from __future__ import annotations

import logging
import random
import secrets
import string
import time
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from auto_cluster.models import (
    ActionKind,
    ActionResult,
    ActionStatus,
    ArchetypePlan,
    ArchetypeSpec,
    ArchetypeStatus,
    ClusterStatus,
)
from auto_cluster.runner.process import CommandResult, ToolError
from auto_cluster.runner.render import render_install_config, write_install_config
from auto_cluster.runner.tool import ClusterTool

if TYPE_CHECKING:
    from auto_cluster.hooks.helm import HelmChartInstaller

logger = logging.getLogger(__name__)

SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
SUFFIX_LENGTH = 4
MAX_NAME_ATTEMPTS = 100


class NameCollisionError(Exception):
    """Raised when no unused cluster name could be generated."""


def make_cluster_name(prefix: str, rng: random.Random | None = None) -> str:
    """``<prefix>-<4 random alphanumerics>``, lower-cased."""
    rng = rng or secrets.SystemRandom()
    suffix = "".join(rng.choice(SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix}-{suffix}".lower()


def unique_cluster_name(
    prefix: str,
    taken: Iterable[str],
    rng: random.Random | None = None,
    max_attempts: int = MAX_NAME_ATTEMPTS,
) -> str:
    """Generate a cluster name not in *taken*, re-rolling on collision."""
    taken = set(taken)
    for _ in range(max_attempts):
        name = make_cluster_name(prefix, rng)
        if name not in taken:
            return name
    raise NameCollisionError(
        f"No unused cluster name for prefix {prefix} after {max_attempts} attempts"
    )


class PlanExecutor:
    """Drives a ClusterTool to carry out archetype plans.

    Each cluster gets ``<state_dir>/<cluster name>``; the rendered
    ``install-config.yaml`` is written there before the tool runs and the
    tool leaves its credentials under ``auth/``.
    """

    def __init__(
        self,
        tool: ClusterTool,
        state_dir: str | Path,
        pull_secret: str,
        base_domain: str = "devcluster.openshift.com",
        region: str = "us-east-1",
        installer: HelmChartInstaller | None = None,
        rng: random.Random | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self._tool = tool
        self._state_dir = Path(state_dir)
        self._pull_secret = pull_secret
        self._base_domain = base_domain
        self._region = region
        self._installer = installer
        self._rng = rng
        self._log = log or logger

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    def cluster_dir(self, cluster_name: str) -> Path:
        return self._state_dir / cluster_name

    def known_names(self, status: ArchetypeStatus) -> set[str]:
        """Names that must not be reused: observed clusters and existing state dirs."""
        names = status.names()
        if self._state_dir.is_dir():
            names.update(p.name for p in self._state_dir.iterdir() if p.is_dir())
        return names

    def execute(
        self,
        spec: ArchetypeSpec,
        plan: ArchetypePlan,
        status: ArchetypeStatus,
    ) -> list[ActionResult]:
        """Apply *plan*. Never raises for per-cluster failures."""
        results: list[ActionResult] = []
        taken = self.known_names(status)

        for i in range(plan.create_clusters):
            try:
                name = unique_cluster_name(spec.name_prefix, taken, self._rng)
            except NameCollisionError as exc:
                self._log.error("Cannot create cluster #%d for %s: %s", i + 1, spec.name_prefix, exc)
                results.append(ActionResult(
                    kind=ActionKind.CREATE,
                    cluster=f"{spec.name_prefix}-#{i + 1}",
                    status=ActionStatus.ERROR,
                    error=str(exc),
                ))
                continue
            taken.add(name)
            created = self.create_cluster(name)
            results.append(created)
            if created.status == ActionStatus.SUCCESS and spec.install.helm_chart:
                results.append(self._install(spec, name))

        for cluster in plan.delete_clusters:
            results.append(self.delete_cluster(cluster))

        return results

    def create_cluster(self, name: str) -> ActionResult:
        """Render the install config and run the tool's create."""
        started = datetime.now(tz=UTC)
        start = time.monotonic()
        self._log.info("Creating cluster %s", name)
        try:
            cluster_dir = self.cluster_dir(name)
            cluster_dir.mkdir(parents=True, exist_ok=False)
            document = render_install_config(
                name, self._pull_secret,
                base_domain=self._base_domain,
                region=self._region,
            )
            write_install_config(cluster_dir, document)
            result = self._tool.create(cluster_dir, name)
        except (OSError, ToolError) as exc:
            self._log.error("Failed to create cluster %s: %s", name, exc)
            return ActionResult(
                kind=ActionKind.CREATE,
                cluster=name,
                status=ActionStatus.ERROR,
                error=str(exc),
                started_at=started,
                duration_ms=(time.monotonic() - start) * 1000,
            )
        return self._to_result(ActionKind.CREATE, name, result, started)

    def delete_cluster(self, cluster: ClusterStatus) -> ActionResult:
        """Run the tool's destroy against the cluster's stored state."""
        started = datetime.now(tz=UTC)
        cluster_dir = self.cluster_dir(cluster.name)
        self._log.info("Deleting cluster %s", cluster.name)
        if not cluster_dir.is_dir():
            self._log.error(
                "Cannot delete cluster %s: state directory %s missing",
                cluster.name, cluster_dir,
            )
            return ActionResult(
                kind=ActionKind.DELETE,
                cluster=cluster.name,
                status=ActionStatus.FAILURE,
                error=f"State directory missing: {cluster_dir}",
                started_at=started,
            )
        try:
            result = self._tool.destroy(cluster_dir, cluster.name)
        except ToolError as exc:
            self._log.error("Failed to delete cluster %s: %s", cluster.name, exc)
            return ActionResult(
                kind=ActionKind.DELETE,
                cluster=cluster.name,
                status=ActionStatus.ERROR,
                error=str(exc),
                started_at=started,
            )
        return self._to_result(ActionKind.DELETE, cluster.name, result, started)

    def _install(self, spec: ArchetypeSpec, name: str) -> ActionResult:
        chart = spec.install.helm_chart or ""
        if self._installer is None:
            return ActionResult(
                kind=ActionKind.INSTALL,
                cluster=name,
                status=ActionStatus.SKIPPED,
                output=f"No installer configured for {chart}",
            )
        namespace = spec.install.namespace or spec.name_prefix
        return self._installer.install(self.cluster_dir(name), name, chart, namespace)

    def _to_result(
        self,
        kind: ActionKind,
        name: str,
        result: CommandResult,
        started: datetime,
    ) -> ActionResult:
        if result.ok:
            self._log.info("%s %s succeeded", kind.value.capitalize(), name)
            return ActionResult(
                kind=kind,
                cluster=name,
                status=ActionStatus.SUCCESS,
                output=result.summary(),
                started_at=started,
                duration_ms=result.duration_ms,
            )
        reason = (
            "timed out" if result.timed_out else f"exited with code {result.returncode}"
        )
        self._log.error("%s %s failed: %s", kind.value.capitalize(), name, reason)
        return ActionResult(
            kind=kind,
            cluster=name,
            status=ActionStatus.FAILURE,
            output=result.summary(),
            error=f"{' '.join(result.args[:2])} {reason}",
            started_at=started,
            duration_ms=result.duration_ms,
        )
