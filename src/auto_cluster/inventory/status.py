"""Archetype status resolution.

Turns a running-instance inventory into the observed state of one
archetype. Inventory sources may be lazy (e.g. a paginated cloud API),
so errors raised while iterating surface here as ``InventoryError``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Protocol, runtime_checkable

from auto_cluster.inventory.grouper import group_instances
from auto_cluster.models import ArchetypeSpec, ArchetypeStatus, Instance


class InventoryError(Exception):
    """Raised when the instance inventory cannot be listed."""


@runtime_checkable
class InventorySource(Protocol):
    """Protocol for instance inventories.

    Implementations return only instances in the ``running`` state.
    """

    def list_instances(self) -> Iterable[Instance]:
        """Return the running instances."""
        ...


class StaticInventorySource:
    """Inventory backed by a fixed list. Useful for tests and ``--inventory`` files."""

    def __init__(self, instances: Iterable[Instance]) -> None:
        self._instances = list(instances)

    def list_instances(self) -> Iterator[Instance]:
        return iter(self._instances)


def resolve_status(
    inventory: Iterable[Instance],
    spec: ArchetypeSpec,
) -> ArchetypeStatus:
    """Build the observed status of *spec*'s clusters from *inventory*.

    Performs no retries; any error raised by the inventory is wrapped in
    ``InventoryError`` and propagated.
    """
    try:
        instances = list(inventory)
    except InventoryError:
        raise
    except Exception as e:
        raise InventoryError(
            f"Failed to list instances for archetype {spec.name_prefix}: {e}"
        ) from e

    clusters = group_instances(instances, spec.name_prefix)
    return ArchetypeStatus(name_prefix=spec.name_prefix, clusters=tuple(clusters))


def observe(source: InventorySource, spec: ArchetypeSpec) -> ArchetypeStatus:
    """List *source* and resolve *spec*'s status from it."""
    try:
        inventory = source.list_instances()
    except InventoryError:
        raise
    except Exception as e:
        raise InventoryError(
            f"Failed to list instances for archetype {spec.name_prefix}: {e}"
        ) from e
    return resolve_status(inventory, spec)
