"""Plan engine — computes the delta between an archetype's spec and status.

Planning is a pure function of ``(spec, status, now)``. Steps:

1. Order clusters by ``(created_on, name)``, oldest first. The newest
   cluster is the candidate primary.
2. Garbage collect: every cluster aged ``>= delete_after`` is deleted.
   A garbage collected candidate leaves the archetype without a primary.
3. Re-elect: a surviving candidate aged ``>= oldest_primary`` is dropped
   and one replacement cluster is created. The replacement is the newest
   cluster once it exists, so it becomes the next primary.
4. Converge on ``replicas.count``: delete the oldest clusters that are not
   already being deleted, or create the shortfall. When there are not
   enough clusters left to delete, the surplus comes off the create count.

Each cluster is deleted at most once, so the garbage collection and
convergence passes never double count a cluster that qualifies for both.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from auto_cluster.models import ArchetypePlan, ArchetypeSpec, ArchetypeStatus, ClusterStatus


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def cluster_age(cluster: ClusterStatus, now: datetime) -> timedelta:
    """How long ago *cluster*'s first instance launched."""
    return _aware(now) - _aware(cluster.created_on)


def sort_clusters(clusters: Iterable[ClusterStatus]) -> list[ClusterStatus]:
    """Oldest first; equal creation times are ordered by name."""
    return sorted(clusters, key=lambda c: (_aware(c.created_on), c.name))


def select_primary(clusters: Iterable[ClusterStatus]) -> ClusterStatus | None:
    """The newest cluster, or ``None`` when there are no clusters."""
    ordered = sort_clusters(clusters)
    return ordered[-1] if ordered else None


def compute_plan(
    spec: ArchetypeSpec,
    status: ArchetypeStatus,
    now: datetime | None = None,
) -> ArchetypePlan:
    """Compute the plan which makes *status* match *spec*.

    Never fails and never mutates *status*. *now* is read once; pass it
    explicitly for reproducible plans.
    """
    now = now or datetime.now(tz=UTC)
    ordered = sort_clusters(status.clusters)
    primary = ordered[-1] if ordered else None

    deleted: list[ClusterStatus] = []
    deleted_names: set[str] = set()

    def _delete(cluster: ClusterStatus) -> None:
        deleted.append(cluster)
        deleted_names.add(cluster.name)

    # Garbage collection
    for cluster in ordered:
        if cluster_age(cluster, now) >= spec.delete_after:
            _delete(cluster)
    if primary is not None and primary.name in deleted_names:
        primary = None

    # Primary re-election
    create = 0
    if primary is not None and cluster_age(primary, now) >= spec.oldest_primary:
        primary = None
        create += 1

    # Replica count convergence
    after_count = len(ordered) + create - len(deleted)
    if after_count > spec.replica_count:
        excess = after_count - spec.replica_count
        for cluster in ordered:
            if excess == 0:
                break
            if cluster.name in deleted_names:
                continue
            _delete(cluster)
            excess -= 1
            if primary is not None and cluster.name == primary.name:
                primary = None
        create -= excess
    elif after_count < spec.replica_count:
        create += spec.replica_count - after_count

    return ArchetypePlan(
        name_prefix=spec.name_prefix,
        delete_clusters=tuple(deleted),
        create_clusters=create,
        primary=primary,
    )
