"""Ec2InventorySource — lists running EC2 instances via boto3.

Pages through ``describe_instances`` filtered to the ``running`` state and
yields one ``Instance`` per instance that carries a ``Name`` tag.

Requires: ``pip install auto-cluster[aws]``
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from auto_cluster.inventory.status import InventoryError
from auto_cluster.models import Instance

logger = logging.getLogger(__name__)


def _check_boto3_available() -> None:
    """Raise ImportError with helpful message if boto3 is not installed."""
    try:
        import boto3  # noqa: F401
    except ImportError:
        raise ImportError(
            "The 'boto3' package is required for Ec2InventorySource. "
            "Install it with: pip install auto-cluster[aws]"
        ) from None


def build_session(
    region: str | None = None,
    profile: str | None = None,
) -> Any:
    """Build a boto3 Session, falling back to the default credential chain."""
    import boto3

    kwargs: dict[str, Any] = {}
    if region:
        kwargs["region_name"] = region
    if profile:
        kwargs["profile_name"] = profile
    return boto3.Session(**kwargs)


class Ec2InventorySource:
    """Running EC2 instances, named by their ``Name`` tag.

    Pass an existing ``client`` to share one EC2 client across components;
    otherwise one is built from *region*/*profile*/*endpoint_url*.
    """

    def __init__(
        self,
        client: Any = None,
        region: str | None = None,
        profile: str | None = None,
        endpoint_url: str | None = None,
        name_filter: str | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        if client is None:
            _check_boto3_available()
            kwargs: dict[str, Any] = {}
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = build_session(region, profile).client("ec2", **kwargs)
        self._client = client
        self._name_filter = name_filter
        self._log = log or logger

    def _filters(self) -> list[dict[str, Any]]:
        filters: list[dict[str, Any]] = [
            {"Name": "instance-state-name", "Values": ["running"]},
        ]
        if self._name_filter:
            filters.append({"Name": "tag:Name", "Values": [f"{self._name_filter}*"]})
        return filters

    def list_instances(self) -> Iterator[Instance]:
        try:
            paginator = self._client.get_paginator("describe_instances")
            pages = paginator.paginate(Filters=self._filters())
            count = 0
            for page in pages:
                for reservation in page.get("Reservations", []):
                    for raw in reservation.get("Instances", []):
                        instance = self._to_instance(raw)
                        if instance is not None:
                            count += 1
                            yield instance
        except Exception as exc:
            raise InventoryError(f"Failed to get AWS EC2 instances: {exc}") from exc
        self._log.debug("Listed %d running EC2 instances", count)

    @staticmethod
    def _to_instance(raw: dict[str, Any]) -> Instance | None:
        state = raw.get("State", {}).get("Name")
        if state is not None and state != "running":
            return None
        tags = {t.get("Key"): t.get("Value") for t in raw.get("Tags", [])}
        name = tags.get("Name")
        launch_time = raw.get("LaunchTime")
        if not name or launch_time is None:
            return None
        return Instance(name=name, created_at=launch_time)
