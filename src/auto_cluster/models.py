"""Core data models for auto-cluster.

Defines the schemas for:
- Observed infrastructure (instances, clusters, archetype status)
- Desired state (archetype specs and their lifecycle policy)
- Plans (the delta between desired and observed state)
- Execution results (what happened when a plan was applied)
"""

from __future__ import annotations

import enum
import re
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# --- Durations ---

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")

_DURATION_UNITS: dict[str, float] = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
}


def parse_duration(value: Any) -> timedelta:
    """Parse a duration such as ``"42h"``, ``"1h30m"`` or ``900`` (seconds).

    Raises:
        ValueError: If the value is not a recognised duration.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, int | float):
        return timedelta(seconds=value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid duration: {value!r}")

    text = value.strip().replace(" ", "")
    if not text:
        raise ValueError("Duration must not be empty")
    if re.fullmatch(r"\d+(?:\.\d+)?", text):
        return timedelta(seconds=float(text))

    pos = 0
    seconds = 0.0
    for match in _DURATION_RE.finditer(text):
        if match.start() != pos:
            break
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"Invalid duration: {value!r}")
    return timedelta(seconds=seconds)


def format_duration(value: timedelta) -> str:
    """Render a timedelta compactly, e.g. ``42h`` or ``1h30m``."""
    total = int(value.total_seconds())
    if total == 0:
        return "0s"
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if seconds:
        parts.append(f"{seconds}s")
    return "".join(parts)


# --- Enums ---


class ActionKind(enum.StrEnum):
    CREATE = "create"
    DELETE = "delete"
    INSTALL = "install"
    MIGRATE = "migrate"
    DNS = "dns"


class ActionStatus(enum.StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"
    SKIPPED = "skipped"


# --- Observed state ---


def _as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class Instance(BaseModel):
    """A running compute instance, identified by its ``Name`` tag."""

    model_config = ConfigDict(frozen=True)

    name: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _utc_created_at(cls, v: datetime) -> datetime:
        return _as_utc(v)


class ClusterStatus(BaseModel):
    """A logical cluster, inferred from the names of its instances.

    ``created_on`` is the launch time of the earliest member instance.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    created_on: datetime
    instances: tuple[Instance, ...] = Field(min_length=1)

    @field_validator("created_on")
    @classmethod
    def _utc_created_on(cls, v: datetime) -> datetime:
        return _as_utc(v)


class ArchetypeStatus(BaseModel):
    """Observed clusters for one archetype at one point in time."""

    model_config = ConfigDict(frozen=True)

    name_prefix: str = ""
    clusters: tuple[ClusterStatus, ...] = ()

    def names(self) -> set[str]:
        return {c.name for c in self.clusters}


# --- Desired state ---


class _SpecModel(BaseModel):
    """Base for models loaded from camelCase YAML."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")


class Lifecycle(_SpecModel):
    """Cluster ages at which lifecycle operations happen. Both bounds are inclusive."""

    delete_after: timedelta = Field(default=timedelta(hours=42), alias="deleteAfter")
    oldest_primary: timedelta = Field(default=timedelta(hours=12), alias="oldestPrimary")

    @field_validator("delete_after", "oldest_primary", mode="before")
    @classmethod
    def _parse_duration(cls, value: Any) -> timedelta:
        return parse_duration(value)

    @field_validator("delete_after", "oldest_primary")
    @classmethod
    def _non_negative(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            raise ValueError("duration must not be negative")
        return value


class ReplicaPolicy(_SpecModel):
    count: int = Field(default=2, ge=0)
    lifecycle: Lifecycle = Field(default_factory=Lifecycle)


class InstallSpec(_SpecModel):
    """One time setup performed on newly created clusters."""

    helm_chart: str | None = Field(default=None, alias="helmChart")
    namespace: str | None = None


class DnsSpec(_SpecModel):
    """DNS record that follows the primary cluster.

    ``target`` is a template; ``{cluster}`` and ``{base_domain}`` are substituted.
    """

    hosted_zone_id: str = Field(alias="hostedZoneId")
    record_name: str = Field(alias="recordName")
    target: str = "router-default.apps.{cluster}.{base_domain}"
    ttl: int = Field(default=60, ge=1)


class MigrateSpec(_SpecModel):
    namespaces: list[str] = Field(default_factory=list)


class ArchetypeSpec(_SpecModel):
    """Desired state for a family of clusters sharing a name prefix.

    Clusters whose names do not start with ``name_prefix`` are invisible
    to this archetype.
    """

    name_prefix: str = Field(..., pattern=r"^[a-z0-9][a-z0-9-]*$", alias="namePrefix")
    replicas: ReplicaPolicy = Field(default_factory=ReplicaPolicy)
    install: InstallSpec = Field(default_factory=InstallSpec)
    dns: DnsSpec | None = None
    migrate: MigrateSpec | None = None

    @property
    def replica_count(self) -> int:
        return self.replicas.count

    @property
    def delete_after(self) -> timedelta:
        return self.replicas.lifecycle.delete_after

    @property
    def oldest_primary(self) -> timedelta:
        return self.replicas.lifecycle.oldest_primary


# --- Plan ---


class ArchetypePlan(BaseModel):
    """Actions which reconcile an archetype's status with its spec.

    Names for new clusters are assigned at execution time, so the plan
    only carries a count.
    """

    model_config = ConfigDict(frozen=True)

    name_prefix: str
    delete_clusters: tuple[ClusterStatus, ...] = ()
    create_clusters: int = Field(default=0, ge=0)
    primary: ClusterStatus | None = None

    @property
    def empty(self) -> bool:
        return self.create_clusters == 0 and not self.delete_clusters

    def delete_names(self) -> list[str]:
        return [c.name for c in self.delete_clusters]

    def __str__(self) -> str:
        primary = self.primary.name if self.primary is not None else None
        return (
            f"plan prefix={self.name_prefix} delete={self.delete_names()} "
            f"create={self.create_clusters} primary={primary}"
        )


# --- Execution results ---


class ActionResult(BaseModel):
    """Outcome of a single create/delete/hook action."""

    kind: ActionKind
    cluster: str
    status: ActionStatus
    output: str = ""
    error: str | None = None
    started_at: datetime | None = None
    duration_ms: float | None = None

    @property
    def ok(self) -> bool:
        return self.status in (ActionStatus.SUCCESS, ActionStatus.SKIPPED)


class ArchetypeReport(BaseModel):
    """Everything that happened to one archetype during a reconcile cycle."""

    name_prefix: str
    plan: ArchetypePlan | None = None
    actions: list[ActionResult] = Field(default_factory=list)
    error: str | None = None
    dry_run: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None or any(not a.ok for a in self.actions)

    def created(self) -> list[str]:
        return [
            a.cluster for a in self.actions
            if a.kind == ActionKind.CREATE and a.status == ActionStatus.SUCCESS
        ]


class CycleReport(BaseModel):
    """The result of one reconcile cycle across all archetypes."""

    started_at: datetime
    finished_at: datetime | None = None
    archetypes: list[ArchetypeReport] = Field(default_factory=list)

    @property
    def failed(self) -> bool:
        return any(a.failed for a in self.archetypes)

    def failures(self) -> list[str]:
        lines: list[str] = []
        for report in self.archetypes:
            if report.error is not None:
                lines.append(f"{report.name_prefix}: {report.error}")
            for action in report.actions:
                if not action.ok:
                    lines.append(
                        f"{report.name_prefix}: {action.kind} {action.cluster}: "
                        f"{action.error or action.status}"
                    )
        return lines

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


# --- Notifications ---


class ClusterAnnouncement(BaseModel):
    """Access details for a newly created cluster."""

    cluster: str
    name_prefix: str
    console_url: str
    api_url: str
    kubeadmin_password: str = Field(default="", repr=False)
    kubeconfig_path: str | None = None
    created_at: datetime
