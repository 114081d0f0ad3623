"""Group instances into clusters by naming convention.

There is no cluster object in the underlying infrastructure; a cluster is
the shared leading part of its instances' ``Name`` tags. OpenShift names
instances ``<cluster>-<infra id>-<role>-<n>``, so for the prefix ``xyz``
the instance ``xyz25-9kjcx-master-2`` belongs to cluster ``xyz25``.
"""

from __future__ import annotations

from collections.abc import Iterable

from auto_cluster.models import ClusterStatus, Instance


def cluster_name_for(instance_name: str, name_prefix: str) -> str | None:
    """Infer the cluster name of an instance, or ``None`` if it is not ours.

    The name is split on ``-`` and its leading parts are rejoined one at a
    time until the result starts with *name_prefix*. A candidate that is
    exactly the prefix only counts when it is the whole instance name, so
    ``xyz-ab12-master-0`` resolves to ``xyz-ab12`` rather than ``xyz``.
    """
    if not name_prefix or not instance_name.startswith(name_prefix):
        return None

    parts = instance_name.split("-")
    for i in range(1, len(parts) + 1):
        candidate = "-".join(parts[:i])
        if not candidate.startswith(name_prefix):
            continue
        if candidate == name_prefix and i < len(parts):
            continue
        return candidate
    return None


def group_instances(
    instances: Iterable[Instance],
    name_prefix: str,
) -> list[ClusterStatus]:
    """Partition instances into clusters.

    Instances that do not resolve to a cluster are left out; they belong
    to another archetype or to unrelated infrastructure. Each cluster's
    ``created_on`` is its earliest instance launch time. Clusters are
    returned in order of first appearance, instances in input order.
    """
    members: dict[str, list[Instance]] = {}
    for instance in instances:
        name = cluster_name_for(instance.name, name_prefix)
        if name is None:
            continue
        members.setdefault(name, []).append(instance)

    return [
        ClusterStatus(
            name=name,
            created_on=min(i.created_at for i in group),
            instances=tuple(group),
        )
        for name, group in members.items()
    ]
