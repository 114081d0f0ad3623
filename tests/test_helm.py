"""Tests for HelmChartInstaller.

run_streaming and subprocess.run are mocked; no oc, helm or git needed.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from auto_cluster.hooks.helm import HelmChartInstaller, kubeconfig_path
from auto_cluster.models import ActionKind, ActionStatus
from auto_cluster.runner.process import CommandResult, ToolError

CHART = "https://github.com/example/chart.git"


@pytest.fixture()
def cluster_dir(tmp_path: Path) -> Path:
    d = tmp_path / "kscout-ab12"
    (d / "auth").mkdir(parents=True)
    (d / "auth" / "kubeconfig").write_text("apiVersion: v1\n")
    return d


def _result(args, returncode: int = 0, **_) -> CommandResult:
    return CommandResult(args=list(args), returncode=returncode)


def _rendered(returncode: int = 0, stdout: str = "kind: Deployment\n", stderr: str = ""):
    return subprocess.CompletedProcess(
        args=["helm", "template"], returncode=returncode, stdout=stdout, stderr=stderr,
    )


class TestKubeconfigPath:
    def test_path(self, tmp_path: Path) -> None:
        assert kubeconfig_path(tmp_path) == tmp_path / "auth" / "kubeconfig"


class TestInstall:
    def test_success(self, cluster_dir: Path) -> None:
        installer = HelmChartInstaller()
        with (
            patch("auto_cluster.hooks.helm.run_streaming", side_effect=_result) as mock_stream,
            patch("auto_cluster.hooks.helm.subprocess.run", return_value=_rendered()) as mock_run,
        ):
            result = installer.install(cluster_dir, "kscout-ab12", CHART, "kscout")

        assert result.kind == ActionKind.INSTALL
        assert result.status == ActionStatus.SUCCESS

        commands = [c.args[0] for c in mock_stream.call_args_list]
        assert commands[0] == ["oc", "get", "pods"]
        assert commands[1][:5] == ["git", "clone", "--depth", "1", CHART]
        assert commands[2] == ["oc", "apply", "-n", "kscout", "-f", "-"]
        assert mock_run.call_args.args[0][:2] == ["helm", "template"]

        apply_kwargs = mock_stream.call_args_list[2].kwargs
        assert apply_kwargs["stdin_data"] == "kind: Deployment\n"
        assert apply_kwargs["env"] == {"KUBECONFIG": str(cluster_dir / "auth" / "kubeconfig")}

    def test_missing_kubeconfig(self, tmp_path: Path) -> None:
        with patch("auto_cluster.hooks.helm.run_streaming") as mock_stream:
            result = HelmChartInstaller().install(tmp_path, "kscout-ab12", CHART, "kscout")
        assert result.status == ActionStatus.FAILURE
        assert "Kubeconfig not found" in result.error
        mock_stream.assert_not_called()

    def test_auth_failure(self, cluster_dir: Path) -> None:
        with patch(
            "auto_cluster.hooks.helm.run_streaming",
            side_effect=lambda args, **kw: _result(args, returncode=1),
        ) as mock_stream:
            result = HelmChartInstaller().install(cluster_dir, "kscout-ab12", CHART, "kscout")
        assert result.status == ActionStatus.FAILURE
        assert result.error == "Failed to authenticate to kscout-ab12"
        assert mock_stream.call_count == 1

    def test_clone_failure(self, cluster_dir: Path) -> None:
        def fake(args, **kw):
            return _result(args, returncode=128 if args[0] == "git" else 0)

        with patch("auto_cluster.hooks.helm.run_streaming", side_effect=fake):
            result = HelmChartInstaller().install(cluster_dir, "kscout-ab12", CHART, "kscout")
        assert result.error == f"Failed to download Helm chart {CHART}"

    def test_template_failure(self, cluster_dir: Path) -> None:
        with (
            patch("auto_cluster.hooks.helm.run_streaming", side_effect=_result),
            patch(
                "auto_cluster.hooks.helm.subprocess.run",
                return_value=_rendered(returncode=1, stderr="Chart.yaml file is missing\n"),
            ),
        ):
            result = HelmChartInstaller().install(cluster_dir, "kscout-ab12", CHART, "kscout")
        assert result.status == ActionStatus.FAILURE
        assert result.error == "helm template failed: Chart.yaml file is missing"

    def test_apply_failure(self, cluster_dir: Path) -> None:
        def fake(args, **kw):
            return _result(args, returncode=1 if "apply" in args else 0)

        with (
            patch("auto_cluster.hooks.helm.run_streaming", side_effect=fake),
            patch("auto_cluster.hooks.helm.subprocess.run", return_value=_rendered()),
        ):
            result = HelmChartInstaller().install(cluster_dir, "kscout-ab12", CHART, "kscout")
        assert result.error == f"Failed to install {CHART} on kscout-ab12"

    def test_missing_tool(self, cluster_dir: Path) -> None:
        with patch(
            "auto_cluster.hooks.helm.run_streaming",
            side_effect=ToolError("Failed to start oc: not found"),
        ):
            result = HelmChartInstaller().install(cluster_dir, "kscout-ab12", CHART, "kscout")
        assert result.status == ActionStatus.FAILURE
        assert "Failed to start oc" in result.error

    def test_helm_timeout(self, cluster_dir: Path) -> None:
        with (
            patch("auto_cluster.hooks.helm.run_streaming", side_effect=_result),
            patch(
                "auto_cluster.hooks.helm.subprocess.run",
                side_effect=subprocess.TimeoutExpired(cmd="helm", timeout=600),
            ),
        ):
            result = HelmChartInstaller().install(cluster_dir, "kscout-ab12", CHART, "kscout")
        assert result.status == ActionStatus.FAILURE

    def test_custom_tool_paths(self, cluster_dir: Path) -> None:
        installer = HelmChartInstaller(
            oc_path="/opt/oc", helm_path="/opt/helm", git_path="/opt/git", log=MagicMock(),
        )
        with (
            patch("auto_cluster.hooks.helm.run_streaming", side_effect=_result) as mock_stream,
            patch("auto_cluster.hooks.helm.subprocess.run", return_value=_rendered()) as mock_run,
        ):
            installer.install(cluster_dir, "kscout-ab12", CHART, "kscout")
        assert [c.args[0][0] for c in mock_stream.call_args_list] == ["/opt/oc", "/opt/git", "/opt/oc"]
        assert mock_run.call_args.args[0][0] == "/opt/helm"
