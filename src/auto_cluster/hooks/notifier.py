"""New cluster notification dispatch.

Announces clusters after they are created, with the access details
``openshift-install`` leaves in the cluster's state directory.
Fire-and-forget -- failures are warned but never fail the reconcile cycle.

Built-in backends:
- WebhookClusterNotifier: POST JSON to a URL (stdlib only)
- SlackClusterNotifier: POST to Slack incoming webhook

Custom notifiers just need a ``notify(announcement: ClusterAnnouncement) -> None`` method.
"""

from __future__ import annotations

import json
import urllib.request
import warnings
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from auto_cluster.models import ClusterAnnouncement


class NotifierWarning(UserWarning):
    """Emitted when a cluster notifier fails (non-fatal)."""


@runtime_checkable
class ClusterNotifier(Protocol):
    """Protocol for new cluster notifiers."""

    def notify(self, announcement: ClusterAnnouncement) -> None:
        """Send notification for a newly created cluster."""
        ...


def build_announcement(
    cluster_dir: Path,
    name_prefix: str,
    base_domain: str,
) -> ClusterAnnouncement:
    """Collect a new cluster's access details from its state directory.

    A missing ``auth/kubeadmin-password`` leaves the password empty.
    """
    cluster = cluster_dir.name
    auth_dir = cluster_dir / "auth"
    password_file = auth_dir / "kubeadmin-password"
    kubeconfig = auth_dir / "kubeconfig"

    password = ""
    if password_file.is_file():
        password = password_file.read_text(encoding="utf-8").strip()

    return ClusterAnnouncement(
        cluster=cluster,
        name_prefix=name_prefix,
        console_url=f"https://console-openshift-console.apps.{cluster}.{base_domain}",
        api_url=f"https://api.{cluster}.{base_domain}:6443",
        kubeadmin_password=password,
        kubeconfig_path=str(kubeconfig) if kubeconfig.is_file() else None,
        created_at=datetime.now(tz=UTC),
    )


class WebhookClusterNotifier:
    """POST cluster announcements as JSON to a webhook URL.

    Uses stdlib urllib.request -- no extra dependencies required.
    The kubeadmin password is only included when ``include_password`` is set.
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        include_password: bool = False,
    ) -> None:
        self._url = url
        self._headers = headers or {}
        self._timeout = timeout
        self._include_password = include_password

    def notify(self, announcement: ClusterAnnouncement) -> None:
        cluster = announcement.model_dump(mode="json")
        if not self._include_password:
            cluster.pop("kubeadmin_password", None)
        envelope = {
            "type": "cluster_created",
            "cluster": cluster,
            "notified_at": datetime.now(tz=UTC).isoformat(),
        }
        body = json.dumps(envelope, sort_keys=True).encode("utf-8")

        req = urllib.request.Request(
            self._url,
            data=body,
            headers={
                "Content-Type": "application/json",
                **self._headers,
            },
            method="POST",
        )
        urllib.request.urlopen(req, timeout=self._timeout)  # noqa: S310


class SlackClusterNotifier:
    """Send cluster announcements to Slack via incoming webhook.

    Uses stdlib urllib.request -- no extra dependencies required.
    """

    def __init__(
        self,
        webhook_url: str,
        channel: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._webhook_url = webhook_url
        self._channel = channel
        self._timeout = timeout

    def notify(self, announcement: ClusterAnnouncement) -> None:
        text = (
            f"*New cluster:* `{announcement.cluster}`\n"
            f"*Archetype:* `{announcement.name_prefix}`\n"
            f"*Console:* {announcement.console_url}\n"
            f"*API:* {announcement.api_url}\n"
            f"*Username:* `kubeadmin`\n"
            f"*Password:* `{announcement.kubeadmin_password or 'unavailable'}`"
        )

        payload: dict[str, Any] = {"text": text}
        if self._channel:
            payload["channel"] = self._channel

        body = json.dumps(payload).encode("utf-8")

        req = urllib.request.Request(
            self._webhook_url,
            data=body,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        urllib.request.urlopen(req, timeout=self._timeout)  # noqa: S310


def dispatch_notifications(
    notifiers: list[ClusterNotifier],
    announcement: ClusterAnnouncement,
) -> None:
    """Fire-and-forget notification dispatch."""
    for notifier in notifiers:
        try:
            notifier.notify(announcement)
        except Exception as exc:
            warnings.warn(
                f"Cluster notifier {type(notifier).__name__} failed: {exc}",
                NotifierWarning,
                stacklevel=2,
            )


def build_notifiers(config: dict[str, Any]) -> list[ClusterNotifier]:
    """Build notifier instances from the ``notifications`` config block.

    Supported keys:
    - webhook_url: URL for WebhookClusterNotifier
    - webhook_headers: optional headers dict
    - webhook_timeout: optional timeout (default 10.0)
    - webhook_include_password: include the kubeadmin password (default false)
    - slack_webhook_url: Slack incoming webhook URL
    - slack_channel: optional Slack channel override
    """
    notifiers: list[ClusterNotifier] = []

    if config.get("webhook_url") is not None:
        notifiers.append(
            WebhookClusterNotifier(
                url=config["webhook_url"],
                headers=config.get("webhook_headers"),
                timeout=config.get("webhook_timeout", 10.0),
                include_password=bool(config.get("webhook_include_password", False)),
            ),
        )

    if config.get("slack_webhook_url") is not None:
        notifiers.append(
            SlackClusterNotifier(
                webhook_url=config["slack_webhook_url"],
                channel=config.get("slack_channel"),
            ),
        )

    return notifiers
