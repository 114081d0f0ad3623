"""HelmChartInstaller — one time chart install on a newly created cluster.

Clones the chart's git repository, renders it with ``helm template`` and
applies the manifests with ``oc apply``, authenticating with the
kubeconfig ``openshift-install`` wrote to ``<cluster_dir>/auth/kubeconfig``.
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from auto_cluster.models import ActionKind, ActionResult, ActionStatus
from auto_cluster.runner.process import ToolError, run_streaming

logger = logging.getLogger(__name__)


def kubeconfig_path(cluster_dir: Path) -> Path:
    return cluster_dir / "auth" / "kubeconfig"


class HelmChartInstaller:
    """Installs a Helm chart from a git URI with ``git``, ``helm`` and ``oc``."""

    def __init__(
        self,
        oc_path: str = "oc",
        helm_path: str = "helm",
        git_path: str = "git",
        timeout: float | None = 600.0,
        log: logging.Logger | None = None,
    ) -> None:
        self._oc = oc_path
        self._helm = helm_path
        self._git = git_path
        self._timeout = timeout
        self._log = log or logger

    def install(
        self,
        cluster_dir: Path,
        cluster_name: str,
        chart: str,
        namespace: str,
    ) -> ActionResult:
        started = datetime.now(tz=UTC)
        kubeconfig = kubeconfig_path(cluster_dir)
        if not kubeconfig.is_file():
            return self._fail(cluster_name, f"Kubeconfig not found: {kubeconfig}", started)

        env = {"KUBECONFIG": str(kubeconfig)}
        self._log.info("Installing chart %s on %s (namespace %s)", chart, cluster_name, namespace)

        try:
            auth = run_streaming(
                [self._oc, "get", "pods"],
                env=env, label=cluster_name, timeout=self._timeout, log=self._log,
            )
            if not auth.ok:
                return self._fail(
                    cluster_name, f"Failed to authenticate to {cluster_name}", started,
                )

            with tempfile.TemporaryDirectory(prefix="auto-cluster-chart-") as tmp:
                chart_dir = Path(tmp) / "chart"
                clone = run_streaming(
                    [self._git, "clone", "--depth", "1", chart, str(chart_dir)],
                    label=cluster_name, timeout=self._timeout, log=self._log,
                )
                if not clone.ok:
                    return self._fail(
                        cluster_name, f"Failed to download Helm chart {chart}", started,
                    )

                rendered = subprocess.run(
                    [self._helm, "template", str(chart_dir)],
                    capture_output=True,
                    text=True,
                    timeout=self._timeout,
                )
                if rendered.returncode != 0:
                    return self._fail(
                        cluster_name,
                        f"helm template failed: {rendered.stderr.strip()}",
                        started,
                    )

            applied = run_streaming(
                [self._oc, "apply", "-n", namespace, "-f", "-"],
                env=env,
                label=cluster_name,
                timeout=self._timeout,
                stdin_data=rendered.stdout,
                log=self._log,
            )
        except (ToolError, OSError, subprocess.TimeoutExpired) as exc:
            return self._fail(cluster_name, str(exc), started)

        if not applied.ok:
            return self._fail(
                cluster_name, f"Failed to install {chart} on {cluster_name}", started,
            )

        self._log.info("Installed chart %s on %s", chart, cluster_name)
        return ActionResult(
            kind=ActionKind.INSTALL,
            cluster=cluster_name,
            status=ActionStatus.SUCCESS,
            output=applied.summary(),
            started_at=started,
        )

    def _fail(self, cluster_name: str, error: str, started: datetime) -> ActionResult:
        self._log.error("Install on %s failed: %s", cluster_name, error)
        return ActionResult(
            kind=ActionKind.INSTALL,
            cluster=cluster_name,
            status=ActionStatus.FAILURE,
            error=error,
            started_at=started,
        )
