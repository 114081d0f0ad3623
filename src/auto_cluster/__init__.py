"""auto-cluster: keeps a fleet of OpenShift clusters at a declared size and age."""

__version__ = "0.4.0"

# Optional AWS imports (don't crash if boto3 is missing)
import contextlib

from auto_cluster.config import AutoClusterConfig, ConfigError, find_config, load_config
from auto_cluster.controller import Controller, ExecutionError
from auto_cluster.inventory.grouper import cluster_name_for, group_instances
from auto_cluster.inventory.status import (
    InventoryError,
    InventorySource,
    StaticInventorySource,
    resolve_status,
)
from auto_cluster.models import (
    ActionKind,
    ActionResult,
    ActionStatus,
    ArchetypePlan,
    ArchetypeReport,
    ArchetypeSpec,
    ArchetypeStatus,
    ClusterStatus,
    CycleReport,
    Instance,
)
from auto_cluster.planner.engine import compute_plan
from auto_cluster.runner.executor import NameCollisionError, PlanExecutor
from auto_cluster.runner.tool import ClusterTool, OpenShiftInstallTool

with contextlib.suppress(ImportError):
    from auto_cluster.inventory.ec2 import Ec2InventorySource

__all__ = [
    "ActionKind",
    "ActionResult",
    "ActionStatus",
    "ArchetypePlan",
    "ArchetypeReport",
    "ArchetypeSpec",
    "ArchetypeStatus",
    "AutoClusterConfig",
    "ClusterStatus",
    "ClusterTool",
    "ConfigError",
    "Controller",
    "CycleReport",
    "Ec2InventorySource",
    "ExecutionError",
    "Instance",
    "InventoryError",
    "InventorySource",
    "NameCollisionError",
    "OpenShiftInstallTool",
    "PlanExecutor",
    "StaticInventorySource",
    "cluster_name_for",
    "compute_plan",
    "find_config",
    "group_instances",
    "load_config",
    "resolve_status",
    "__version__",
]
