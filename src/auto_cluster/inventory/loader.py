"""Instance inventory file loader.

Loads a snapshot of running instances from YAML, for planning offline
or replaying an inventory captured earlier::

    instances:
      - name: kscout-ab12-x9k2j-master-0
        created_at: 2026-10-16T08:00:00Z
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from auto_cluster.inventory.status import InventoryError, StaticInventorySource
from auto_cluster.models import Instance


def load_instances(path: str | Path) -> StaticInventorySource:
    """Load and validate an instance snapshot from a YAML file.

    Raises:
        InventoryError: If the file cannot be read, parsed, or validated.
    """
    path = Path(path)
    if not path.exists():
        raise InventoryError(f"Inventory file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise InventoryError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw, dict) or "instances" not in raw:
        raise InventoryError(f"Inventory file must have a top-level 'instances' key: {path}")

    raw_instances: Any = raw["instances"] or []
    if not isinstance(raw_instances, list):
        raise InventoryError(f"'instances' must be a list: {path}")

    instances: list[Instance] = []
    for i, entry in enumerate(raw_instances):
        try:
            instances.append(Instance(**entry))
        except (ValidationError, TypeError) as e:
            raise InventoryError(f"Invalid instance at index {i} in {path}: {e}") from e

    return StaticInventorySource(instances)
