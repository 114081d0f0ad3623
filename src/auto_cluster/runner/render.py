"""Render the ``install-config.yaml`` consumed by ``openshift-install``."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

INSTALL_CONFIG_FILENAME = "install-config.yaml"

CLUSTER_NETWORK_CIDR = "10.128.0.0/14"
CLUSTER_NETWORK_HOST_PREFIX = 23
MACHINE_CIDR = "10.0.0.0/16"
SERVICE_NETWORK_CIDR = "172.30.0.0/16"


def render_install_config(
    cluster_name: str,
    pull_secret: str,
    base_domain: str = "devcluster.openshift.com",
    region: str = "us-east-1",
    control_plane_replicas: int = 3,
    worker_replicas: int = 3,
) -> dict[str, Any]:
    """Build the install configuration document for a new cluster."""
    return {
        "apiVersion": "v1",
        "baseDomain": base_domain,
        "compute": [{
            "hyperthreading": "Enabled",
            "name": "worker",
            "platform": {},
            "replicas": worker_replicas,
        }],
        "controlPlane": {
            "hyperthreading": "Enabled",
            "name": "master",
            "platform": {},
            "replicas": control_plane_replicas,
        },
        "metadata": {
            "creationTimestamp": None,
            "name": cluster_name,
        },
        "networking": {
            "clusterNetwork": [{
                "cidr": CLUSTER_NETWORK_CIDR,
                "hostPrefix": CLUSTER_NETWORK_HOST_PREFIX,
            }],
            "machineCIDR": MACHINE_CIDR,
            "networkType": "OpenShiftSDN",
            "serviceNetwork": [SERVICE_NETWORK_CIDR],
        },
        "platform": {
            "aws": {"region": region},
        },
        "pullSecret": pull_secret,
    }


def write_install_config(cluster_dir: str | Path, document: dict[str, Any]) -> Path:
    """Write *document* to ``<cluster_dir>/install-config.yaml``.

    ``openshift-install`` consumes (deletes) this file during creation,
    so it is rewritten on every attempt.
    """
    path = Path(cluster_dir) / INSTALL_CONFIG_FILENAME
    path.write_text(
        yaml.safe_dump(document, sort_keys=False, default_flow_style=False),
        encoding="utf-8",
    )
    return path
