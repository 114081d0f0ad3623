"""DNS updaters — point a stable record at the current primary cluster.

Built-in backends:
- Route53DnsUpdater: UPSERT a CNAME via boto3

Custom updaters just need a ``point_to(spec, cluster_name, base_domain)``
method returning an ``ActionResult``.

Requires: ``pip install auto-cluster[aws]``
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from auto_cluster.models import ActionKind, ActionResult, ActionStatus, DnsSpec

logger = logging.getLogger(__name__)


@runtime_checkable
class DnsUpdater(Protocol):
    """Protocol for DNS backends."""

    def point_to(self, spec: DnsSpec, cluster_name: str, base_domain: str) -> ActionResult:
        """Repoint ``spec.record_name`` at *cluster_name*."""
        ...


def record_target(spec: DnsSpec, cluster_name: str, base_domain: str) -> str:
    return spec.target.format(cluster=cluster_name, base_domain=base_domain)


class Route53DnsUpdater:
    """Upserts a CNAME record in a Route53 hosted zone."""

    def __init__(
        self,
        client: Any = None,
        profile: str | None = None,
        endpoint_url: str | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        if client is None:
            from auto_cluster.inventory.ec2 import _check_boto3_available, build_session

            _check_boto3_available()
            kwargs: dict[str, Any] = {}
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = build_session(profile=profile).client("route53", **kwargs)
        self._client = client
        self._log = log or logger

    def build_change_batch(self, spec: DnsSpec, cluster_name: str, base_domain: str) -> dict[str, Any]:
        return {
            "Comment": f"auto-cluster primary {cluster_name}",
            "Changes": [{
                "Action": "UPSERT",
                "ResourceRecordSet": {
                    "Name": spec.record_name,
                    "Type": "CNAME",
                    "TTL": spec.ttl,
                    "ResourceRecords": [
                        {"Value": record_target(spec, cluster_name, base_domain)},
                    ],
                },
            }],
        }

    def point_to(self, spec: DnsSpec, cluster_name: str, base_domain: str) -> ActionResult:
        started = datetime.now(tz=UTC)
        target = record_target(spec, cluster_name, base_domain)
        try:
            response = self._client.change_resource_record_sets(
                HostedZoneId=spec.hosted_zone_id,
                ChangeBatch=self.build_change_batch(spec, cluster_name, base_domain),
            )
        except Exception as exc:
            self._log.error(
                "Failed to point %s at %s: %s", spec.record_name, target, exc,
            )
            status = (
                ActionStatus.FAILURE
                if type(exc).__name__ == "ClientError"
                else ActionStatus.ERROR
            )
            return ActionResult(
                kind=ActionKind.DNS,
                cluster=cluster_name,
                status=status,
                error=f"Route53 error: {exc}",
                started_at=started,
            )

        change_id = response.get("ChangeInfo", {}).get("Id", "")
        self._log.info("Pointed %s at %s (%s)", spec.record_name, target, change_id)
        return ActionResult(
            kind=ActionKind.DNS,
            cluster=cluster_name,
            status=ActionStatus.SUCCESS,
            output=f"{spec.record_name} -> {target}",
            started_at=started,
        )
