"""Tests for the plan engine."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from auto_cluster.models import ArchetypeSpec, ArchetypeStatus, ClusterStatus, Instance
from auto_cluster.planner.engine import (
    cluster_age,
    compute_plan,
    select_primary,
    sort_clusters,
)

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)


def _cluster(name: str, age_hours: float) -> ClusterStatus:
    created = NOW - timedelta(hours=age_hours)
    return ClusterStatus(
        name=name,
        created_on=created,
        instances=(Instance(name=f"{name}-x9k2j-master-0", created_at=created),),
    )


def _status(*clusters: ClusterStatus) -> ArchetypeStatus:
    return ArchetypeStatus(name_prefix="kscout", clusters=clusters)


def _spec(
    count: int = 2,
    delete_after: str = "42h",
    oldest_primary: str = "12h",
) -> ArchetypeSpec:
    return ArchetypeSpec.model_validate({
        "namePrefix": "kscout",
        "replicas": {
            "count": count,
            "lifecycle": {"deleteAfter": delete_after, "oldestPrimary": oldest_primary},
        },
    })


# --- Ordering helpers ---


class TestOrdering:
    def test_sort_oldest_first(self):
        a, b, c = _cluster("kscout-a", 5), _cluster("kscout-b", 50), _cluster("kscout-c", 10)
        assert [x.name for x in sort_clusters([a, b, c])] == [
            "kscout-b", "kscout-c", "kscout-a",
        ]

    def test_sort_ties_broken_by_name(self):
        clusters = [_cluster(f"kscout-{n}", 1) for n in "dbeac"]
        assert [c.name for c in sort_clusters(clusters)] == [
            "kscout-a", "kscout-b", "kscout-c", "kscout-d", "kscout-e",
        ]

    def test_primary_is_newest(self):
        clusters = [_cluster("kscout-old", 30), _cluster("kscout-new", 2)]
        primary = select_primary(clusters)
        assert primary is not None
        assert primary.name == "kscout-new"

    def test_primary_tie_uses_last_name(self):
        clusters = [_cluster("kscout-b", 1), _cluster("kscout-a", 1)]
        assert select_primary(clusters).name == "kscout-b"

    def test_no_primary_without_clusters(self):
        assert select_primary([]) is None

    def test_cluster_age(self):
        assert cluster_age(_cluster("kscout-a", 3), NOW) == timedelta(hours=3)

    def test_naive_timestamps_treated_as_utc(self):
        naive = datetime(2026, 10, 17, 10, 0)
        cluster = ClusterStatus(
            name="kscout-a",
            created_on=naive,
            instances=(Instance(name="kscout-a-x-master-0", created_at=naive),),
        )
        assert cluster_age(cluster, NOW) == timedelta(hours=2)


# --- Scenarios ---


class TestComputePlan:
    def test_empty_status_creates_replicas(self):
        plan = compute_plan(_spec(count=2), _status(), now=NOW)
        assert plan.create_clusters == 2
        assert plan.delete_clusters == ()
        assert plan.primary is None

    def test_steady_state_is_empty(self):
        plan = compute_plan(
            _spec(count=2),
            _status(_cluster("kscout-a", 3), _cluster("kscout-b", 1)),
            now=NOW,
        )
        assert plan.empty
        assert plan.primary.name == "kscout-b"

    def test_garbage_collect_and_keep_young_primary(self):
        old, mid, young = (
            _cluster("kscout-old", 50),
            _cluster("kscout-mid", 10),
            _cluster("kscout-young", 5),
        )
        plan = compute_plan(
            _spec(count=2, delete_after="42h", oldest_primary="12h"),
            _status(old, mid, young),
            now=NOW,
        )
        assert plan.delete_names() == ["kscout-old"]
        assert plan.create_clusters == 0
        assert plan.primary.name == "kscout-young"

    def test_excess_equal_age_deletes_by_name(self):
        clusters = [_cluster(f"kscout-{n}", 1) for n in "ecadb"]
        plan = compute_plan(_spec(count=2), _status(*clusters), now=NOW)
        assert plan.delete_names() == ["kscout-a", "kscout-b", "kscout-c"]
        assert plan.create_clusters == 0
        assert plan.primary.name == "kscout-e"

    def test_delete_after_bound_is_inclusive(self):
        plan = compute_plan(
            _spec(count=1, delete_after="42h", oldest_primary="100h"),
            _status(_cluster("kscout-a", 42)),
            now=NOW,
        )
        assert plan.delete_names() == ["kscout-a"]
        assert plan.create_clusters == 1

    def test_oldest_primary_bound_is_inclusive(self):
        plan = compute_plan(
            _spec(count=1, oldest_primary="12h"),
            _status(_cluster("kscout-a", 12)),
            now=NOW,
        )
        assert plan.primary is None
        assert plan.create_clusters == 1

    def test_stale_primary_rolls_oldest_cluster(self):
        plan = compute_plan(
            _spec(count=2),
            _status(_cluster("kscout-a", 20), _cluster("kscout-b", 13)),
            now=NOW,
        )
        assert plan.create_clusters == 1
        assert plan.delete_names() == ["kscout-a"]
        assert plan.primary is None

    def test_stale_single_primary_is_replaced(self):
        plan = compute_plan(
            _spec(count=1),
            _status(_cluster("kscout-a", 13)),
            now=NOW,
        )
        assert plan.create_clusters == 1
        assert plan.delete_names() == ["kscout-a"]

    def test_garbage_collected_primary_is_not_reelected(self):
        plan = compute_plan(
            _spec(count=2),
            _status(_cluster("kscout-a", 50), _cluster("kscout-b", 45)),
            now=NOW,
        )
        assert plan.delete_names() == ["kscout-a", "kscout-b"]
        assert plan.create_clusters == 2
        assert plan.primary is None

    def test_zero_replicas_deletes_everything(self):
        plan = compute_plan(
            _spec(count=0),
            _status(_cluster("kscout-a", 2), _cluster("kscout-b", 1)),
            now=NOW,
        )
        assert sorted(plan.delete_names()) == ["kscout-a", "kscout-b"]
        assert plan.create_clusters == 0
        assert plan.primary is None

    def test_zero_replicas_does_not_replace_stale_primary(self):
        plan = compute_plan(
            _spec(count=0),
            _status(_cluster("kscout-a", 13)),
            now=NOW,
        )
        assert plan.delete_names() == ["kscout-a"]
        assert plan.create_clusters == 0

    def test_zero_replicas_empty_status(self):
        plan = compute_plan(_spec(count=0), _status(), now=NOW)
        assert plan.empty

    def test_cluster_deleted_at_most_once(self):
        plan = compute_plan(
            _spec(count=0),
            _status(_cluster("kscout-a", 50), _cluster("kscout-b", 45), _cluster("kscout-c", 1)),
            now=NOW,
        )
        names = plan.delete_names()
        assert sorted(names) == ["kscout-a", "kscout-b", "kscout-c"]
        assert len(names) == len(set(names))

    def test_oldest_primary_longer_than_delete_after(self):
        plan = compute_plan(
            _spec(count=2, delete_after="10h", oldest_primary="20h"),
            _status(_cluster("kscout-a", 11), _cluster("kscout-b", 5)),
            now=NOW,
        )
        assert plan.delete_names() == ["kscout-a"]
        assert plan.create_clusters == 1
        assert plan.primary.name == "kscout-b"

    def test_zero_oldest_primary_always_replaces(self):
        plan = compute_plan(
            _spec(count=1, oldest_primary="0s"),
            _status(_cluster("kscout-a", 0)),
            now=NOW,
        )
        assert plan.create_clusters == 1
        assert plan.delete_names() == ["kscout-a"]

    def test_shortfall_created(self):
        plan = compute_plan(_spec(count=3), _status(_cluster("kscout-a", 1)), now=NOW)
        assert plan.create_clusters == 2
        assert plan.delete_clusters == ()

    def test_plan_carries_prefix(self):
        plan = compute_plan(_spec(), _status(), now=NOW)
        assert plan.name_prefix == "kscout"

    def test_default_now(self):
        recent = ClusterStatus(
            name="kscout-a",
            created_on=datetime.now(tz=UTC) - timedelta(hours=1),
            instances=(
                Instance(name="kscout-a-x-master-0", created_at=datetime.now(tz=UTC)),
            ),
        )
        plan = compute_plan(_spec(count=1), _status(recent))
        assert plan.empty

    def test_str(self):
        plan = compute_plan(_spec(count=1), _status(_cluster("kscout-a", 50)), now=NOW)
        assert str(plan) == (
            "plan prefix=kscout delete=['kscout-a'] create=1 primary=None"
        )


# --- Properties ---


class TestPlanProperties:
    def test_deterministic(self):
        spec = _spec(count=2)
        status = _status(
            _cluster("kscout-c", 1), _cluster("kscout-a", 1),
            _cluster("kscout-b", 1), _cluster("kscout-d", 50),
        )
        assert compute_plan(spec, status, now=NOW) == compute_plan(spec, status, now=NOW)

    def test_input_order_does_not_matter(self):
        spec = _spec(count=1)
        clusters = [_cluster("kscout-a", 3), _cluster("kscout-b", 2), _cluster("kscout-c", 1)]
        forward = compute_plan(spec, _status(*clusters), now=NOW)
        backward = compute_plan(spec, _status(*reversed(clusters)), now=NOW)
        assert forward == backward

    def test_status_not_mutated(self):
        clusters = (_cluster("kscout-b", 50), _cluster("kscout-a", 1))
        status = _status(*clusters)
        before = status.model_copy(deep=True)
        compute_plan(_spec(count=0), status, now=NOW)
        assert status == before
        assert status.clusters == clusters

    @pytest.mark.parametrize("k", [0, 1, 2, 5])
    def test_monotonic_in_replica_count(self, k: int):
        status = _status(_cluster("kscout-a", 3), _cluster("kscout-b", 1))
        base = compute_plan(_spec(count=2), status, now=NOW)
        more = compute_plan(_spec(count=2 + k), status, now=NOW)
        assert more.create_clusters - base.create_clusters == k

    @pytest.mark.parametrize("ages", [
        [50, 10, 5],
        [1, 1, 1, 1, 1],
        [100, 90, 80],
        [13, 12, 11],
        [],
    ])
    @pytest.mark.parametrize("count", [0, 1, 2, 4])
    def test_converges_to_replica_count(self, ages: list[float], count: int):
        status = _status(*[_cluster(f"kscout-{i}", a) for i, a in enumerate(ages)])
        plan = compute_plan(_spec(count=count), status, now=NOW)
        after = len(status.clusters) - len(plan.delete_clusters) + plan.create_clusters
        assert after == count

    @pytest.mark.parametrize("ages", [[42, 1], [43, 44, 2], [100]])
    def test_expired_clusters_always_deleted(self, ages: list[float]):
        status = _status(*[_cluster(f"kscout-{i}", a) for i, a in enumerate(ages)])
        plan = compute_plan(_spec(count=5), status, now=NOW)
        expired = {c.name for c in status.clusters if cluster_age(c, NOW) >= timedelta(hours=42)}
        assert expired <= set(plan.delete_names())
