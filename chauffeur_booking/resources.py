from __future__ import annotations

from dataclasses import replace
import logging
import threading
from typing import Iterable

from .models import Resource

logger = logging.getLogger(__name__)


class ResourceRegistry:
    """Fixed fleet of schedulable vehicles keyed by resource id.

    Reads return snapshots, so a capacity change or retirement is seen by the
    next query or commit and never rewrites reservations already bound.
    """

    def __init__(self, resources: Iterable[Resource] = ()) -> None:
        self._lock = threading.RLock()
        self._resources: dict[int, Resource] = {}
        for resource in resources:
            self.add_resource(resource)

    def add_resource(self, resource: Resource) -> Resource:
        with self._lock:
            if resource.resource_id in self._resources:
                raise ValueError(f"resource {resource.resource_id} is already registered")
            self._resources[resource.resource_id] = resource
        logger.info("Registered resource %s with capacity %s", resource.resource_id, resource.capacity)
        return resource

    def get(self, resource_id: int) -> Resource | None:
        with self._lock:
            return self._resources.get(resource_id)

    def list_resources(self) -> list[Resource]:
        with self._lock:
            return sorted(self._resources.values(), key=lambda resource: resource.resource_id)

    def list_active_resources(self) -> list[Resource]:
        return [resource for resource in self.list_resources() if resource.active]

    def set_capacity(self, resource_id: int, capacity: int) -> Resource:
        return self._update(resource_id, capacity=capacity)

    def retire_resource(self, resource_id: int) -> Resource:
        return self._update(resource_id, active=False)

    def reactivate_resource(self, resource_id: int) -> Resource:
        return self._update(resource_id, active=True)

    def _update(self, resource_id: int, **changes: object) -> Resource:
        with self._lock:
            current = self._resources.get(resource_id)
            if current is None:
                raise KeyError(f"unknown resource {resource_id}")
            updated = replace(current, **changes)
            self._resources[resource_id] = updated
        logger.info("Updated resource %s: %s", resource_id, changes)
        return updated
