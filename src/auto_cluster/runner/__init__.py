"""Plan execution: provisioning tools, subprocess streaming, install-config rendering.

Tools: OpenShiftInstallTool (any ClusterTool works).
"""

from auto_cluster.runner.executor import NameCollisionError, PlanExecutor
from auto_cluster.runner.process import CommandResult, ToolError, run_streaming
from auto_cluster.runner.tool import ClusterTool, OpenShiftInstallTool

__all__ = [
    "ClusterTool",
    "CommandResult",
    "NameCollisionError",
    "OpenShiftInstallTool",
    "PlanExecutor",
    "ToolError",
    "run_streaming",
]
