#!/usr/bin/env python3
"""Demo: three simulated days of an auto-cluster fleet.

Runs the real planner, executor and controller against a simulated cloud:
``openshift-install`` is replaced by a tool that just registers instances,
and the clock advances three hours per cycle. Watch clusters get created,
replaced as primary once they reach ``oldestPrimary``, and deleted at
``deleteAfter``.

Run from the project root:
    python examples/demo_lifecycle.py
"""

from __future__ import annotations

import sys
import tempfile
from datetime import UTC, datetime, timedelta
from pathlib import Path

# Add src to path for running without install
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from auto_cluster.controller import Controller
from auto_cluster.inventory.grouper import group_instances
from auto_cluster.models import ArchetypeSpec, Instance
from auto_cluster.planner.engine import cluster_age, sort_clusters
from auto_cluster.runner.executor import PlanExecutor
from auto_cluster.runner.process import CommandResult


class SimulatedCloud:
    """Instance inventory plus a ClusterTool that edits it."""

    def __init__(self, start: datetime) -> None:
        self.now = start
        self.instances: list[Instance] = []

    def clock(self) -> datetime:
        return self.now

    def list_instances(self) -> list[Instance]:
        return list(self.instances)

    def create(self, cluster_dir: Path, cluster_name: str) -> CommandResult:
        for role in ("master-0", "master-1", "master-2", "worker-0"):
            self.instances.append(
                Instance(name=f"{cluster_name}-x9k2j-{role}", created_at=self.now),
            )
        return CommandResult(args=["openshift-install", "create"], returncode=0)

    def destroy(self, cluster_dir: Path, cluster_name: str) -> CommandResult:
        self.instances = [
            i for i in self.instances if not i.name.startswith(f"{cluster_name}-")
        ]
        return CommandResult(args=["openshift-install", "destroy"], returncode=0)


def main() -> None:
    cloud = SimulatedCloud(datetime(2026, 10, 17, 8, 0, tzinfo=UTC))
    spec = ArchetypeSpec.model_validate({
        "namePrefix": "kscout",
        "replicas": {
            "count": 2,
            "lifecycle": {"deleteAfter": "42h", "oldestPrimary": "12h"},
        },
    })

    print("=" * 70)
    print("  auto-cluster demo: replicas=2 deleteAfter=42h oldestPrimary=12h")
    print("=" * 70)

    with tempfile.TemporaryDirectory(prefix="auto-cluster-demo-") as state_dir:
        executor = PlanExecutor(tool=cloud, state_dir=state_dir, pull_secret="{}")
        controller = Controller(
            archetypes=[spec],
            inventory=cloud,
            executor=executor,
            clock=cloud.clock,
        )

        for hour in range(0, 73, 3):
            report = controller.reconcile_once().archetypes[0]
            plan = report.plan
            changes = []
            if plan.create_clusters:
                changes.append(f"+{', '.join(report.created())}")
            if plan.delete_clusters:
                changes.append(f"-{', '.join(plan.delete_names())}")

            clusters = ", ".join(
                f"{c.name}({cluster_age(c, cloud.now) // timedelta(hours=1)}h)"
                for c in sort_clusters(group_instances(cloud.instances, "kscout"))
            )
            print(f"  t+{hour:>2}h  {' '.join(changes) or 'no change':<32} {clusters}")
            cloud.now += timedelta(hours=3)

    print()


if __name__ == "__main__":
    main()
