"""Cluster provisioning tools.

The ClusterTool protocol defines the interface the executor drives.
Any object with ``create()`` and ``destroy()`` methods satisfies the
protocol; no inheritance required.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from auto_cluster.runner.process import CommandResult, run_streaming

logger = logging.getLogger(__name__)


@runtime_checkable
class ClusterTool(Protocol):
    """Protocol for tools that create and destroy clusters from a state directory."""

    def create(self, cluster_dir: Path, cluster_name: str) -> CommandResult:
        """Create the cluster described by ``cluster_dir``."""
        ...

    def destroy(self, cluster_dir: Path, cluster_name: str) -> CommandResult:
        """Destroy the cluster recorded in ``cluster_dir``."""
        ...


class OpenShiftInstallTool:
    """Runs ``openshift-install {create,destroy} cluster --dir <cluster_dir>``.

    Exit code 0 is success. Output is relayed to the log as it is produced.
    Pass ``target=None`` for tools that take ``create --dir`` directly.
    """

    def __init__(
        self,
        path: str = "openshift-install",
        target: str | None = "cluster",
        timeout: float | None = None,
        log_level: str | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self._path = path
        self._target = target
        self._timeout = timeout
        self._log_level = log_level
        self._log = log or logger

    def build_args(self, verb: str, cluster_dir: Path) -> list[str]:
        args = [self._path, verb]
        if self._target:
            args.append(self._target)
        args.extend(["--dir", str(cluster_dir)])
        if self._log_level:
            args.append(f"--log-level={self._log_level}")
        return args

    def create(self, cluster_dir: Path, cluster_name: str) -> CommandResult:
        return self._run("create", cluster_dir, cluster_name)

    def destroy(self, cluster_dir: Path, cluster_name: str) -> CommandResult:
        return self._run("destroy", cluster_dir, cluster_name)

    def _run(self, verb: str, cluster_dir: Path, cluster_name: str) -> CommandResult:
        args = self.build_args(verb, cluster_dir)
        self._log.info("Running %s", " ".join(args))
        return run_streaming(
            args,
            cwd=cluster_dir,
            label=cluster_name,
            timeout=self._timeout,
            log=self._log,
        )
