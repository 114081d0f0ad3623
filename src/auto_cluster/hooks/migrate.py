"""ResourceMigrator — copy a namespace's workloads from one cluster to another.

Used when the primary changes: resources are exported from the previous
primary with ``oc get -o json`` and applied to the new one.
"""

from __future__ import annotations

import logging
import os
import subprocess
from datetime import UTC, datetime
from pathlib import Path

from auto_cluster.hooks.helm import kubeconfig_path
from auto_cluster.models import ActionKind, ActionResult, ActionStatus
from auto_cluster.runner.process import ToolError, run_streaming

logger = logging.getLogger(__name__)

MIGRATE_TYPES = (
    "imagestream",
    "configmap",
    "secret",
    "deploymentconfig",
    "deployment",
    "statefulset",
    "pod",
    "service",
    "ingress",
)


class ResourceMigrator:
    """Migrates the resource kinds in ``MIGRATE_TYPES`` between clusters."""

    def __init__(
        self,
        oc_path: str = "oc",
        resource_types: tuple[str, ...] = MIGRATE_TYPES,
        timeout: float | None = 600.0,
        log: logging.Logger | None = None,
    ) -> None:
        self._oc = oc_path
        self._types = resource_types
        self._timeout = timeout
        self._log = log or logger

    def migrate(
        self,
        source_dir: Path,
        target_dir: Path,
        namespace: str,
    ) -> ActionResult:
        """Copy *namespace* from the cluster in *source_dir* to the one in *target_dir*."""
        started = datetime.now(tz=UTC)
        source, target = source_dir.name, target_dir.name
        label = f"{source}->{target}"
        src_env = {"KUBECONFIG": str(kubeconfig_path(source_dir))}
        dst_env = {"KUBECONFIG": str(kubeconfig_path(target_dir))}

        self._log.info("Migrating namespace %s from %s to %s", namespace, source, target)
        try:
            for name, env in ((source, src_env), (target, dst_env)):
                auth = run_streaming(
                    [self._oc, "get", "pods"],
                    env=env, label=name, timeout=self._timeout, log=self._log,
                )
                if not auth.ok:
                    return self._fail(target, f"Failed to authenticate to {name}", started)

            exported = subprocess.run(
                [self._oc, "get", "-n", namespace, ",".join(self._types), "-o", "json"],
                capture_output=True,
                text=True,
                timeout=self._timeout,
                env=_merged_env(src_env),
            )
            if exported.returncode != 0:
                return self._fail(
                    target,
                    f"Failed to export {namespace} from {source}: {exported.stderr.strip()}",
                    started,
                )

            project = subprocess.run(
                [self._oc, "new-project", namespace],
                capture_output=True,
                text=True,
                timeout=self._timeout,
                env=_merged_env(dst_env),
            )
            if project.returncode != 0 and "AlreadyExists" not in project.stderr:
                return self._fail(
                    target,
                    f"Failed to create namespace {namespace} on {target}: "
                    f"{project.stderr.strip()}",
                    started,
                )

            applied = run_streaming(
                [self._oc, "apply", "-n", namespace, "-f", "-"],
                env=dst_env,
                label=label,
                timeout=self._timeout,
                stdin_data=exported.stdout,
                log=self._log,
            )
        except (ToolError, OSError, subprocess.TimeoutExpired) as exc:
            return self._fail(target, str(exc), started)

        if not applied.ok:
            return self._fail(
                target, f"Failed to import {namespace} to {target}", started,
            )

        return ActionResult(
            kind=ActionKind.MIGRATE,
            cluster=target,
            status=ActionStatus.SUCCESS,
            output=f"Migrated {namespace} from {source}",
            started_at=started,
        )

    def _fail(self, cluster: str, error: str, started: datetime) -> ActionResult:
        self._log.error("Migration to %s failed: %s", cluster, error)
        return ActionResult(
            kind=ActionKind.MIGRATE,
            cluster=cluster,
            status=ActionStatus.FAILURE,
            error=error,
            started_at=started,
        )


def _merged_env(extra: dict[str, str]) -> dict[str, str]:
    env = os.environ.copy()
    env.update(extra)
    return env
