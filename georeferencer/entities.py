"""Tracked map entities and the registry that indexes them."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator

logger = logging.getLogger(__name__)


class EntityKind(Enum):
    """Kind of entity displayed on the map."""

    POINT = "point"
    """Named image point, candidate control point."""

    ROUTE_WAYPOINT = "route_waypoint"
    """Vertex of a route polyline."""

    SPOT = "spot"
    """Named spot marker."""


class Origin(Enum):
    """Where an entity's position comes from. Fixed at creation."""

    IMAGE = "image"
    """Positioned by image pixel coordinates; follows the image overlay."""

    GPS = "gps"
    """Positioned by GPS coordinates; never moved by synchronization."""


@dataclass
class TrackedEntity:
    """A positioned entity on the map.

    Only ``lat`` and ``lng`` change after creation, and only for
    image-origin entities during synchronization.

    Attributes:
        key: Unique registry key.
        kind: Entity kind.
        origin: Position source.
        image_x: Pixel column (image-origin entities).
        image_y: Pixel row (image-origin entities).
        lat: Current displayed latitude, None until placed.
        lng: Current displayed longitude, None until placed.
        group: Owning route id for waypoints.
        name: Display name.
        index: Vertex order within the owning route.
        properties: Extra properties carried into export.
    """

    key: str
    kind: EntityKind
    origin: Origin
    image_x: float | None = None
    image_y: float | None = None
    lat: float | None = None
    lng: float | None = None
    group: str | None = None
    name: str | None = None
    index: int | None = None
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def has_image_coords(self) -> bool:
        return _finite(self.image_x) and _finite(self.image_y)

    @property
    def has_position(self) -> bool:
        return _finite(self.lat) and _finite(self.lng)

    @property
    def position(self) -> tuple[float, float] | None:
        if not self.has_position:
            return None
        return (self.lat, self.lng)


def _finite(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class EntityRegistry:
    """Insertion-ordered collection of tracked entities keyed by ``key``.

    Rendering collaborators read entities from here; the synchronizer
    updates their positions in place.
    """

    def __init__(self, entities: Iterable[TrackedEntity] = ()):
        self._entities: dict[str, TrackedEntity] = {}
        for entity in entities:
            self.add(entity)

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[TrackedEntity]:
        return iter(list(self._entities.values()))

    def __contains__(self, key: object) -> bool:
        return key in self._entities

    def get(self, key: str) -> TrackedEntity | None:
        return self._entities.get(key)

    def add(self, entity: TrackedEntity) -> None:
        """Add an entity, replacing any entity with the same key in place."""
        if entity.key in self._entities:
            logger.debug(f"Replacing entity '{entity.key}'")
        self._entities[entity.key] = entity

    def remove(self, key: str) -> TrackedEntity | None:
        return self._entities.pop(key, None)

    def clear(self) -> None:
        self._entities.clear()

    def by_kind(self, kind: EntityKind) -> list[TrackedEntity]:
        return [e for e in self._entities.values() if e.kind is kind]

    def by_origin(self, origin: Origin) -> list[TrackedEntity]:
        return [e for e in self._entities.values() if e.origin is origin]

    def by_group(self, group: str) -> list[TrackedEntity]:
        """Entities of one route, ordered by vertex index."""
        members = [e for e in self._entities.values() if e.group == group]
        return sorted(members, key=lambda e: e.index if e.index is not None else 0)

    def groups(self, kind: EntityKind = EntityKind.ROUTE_WAYPOINT) -> list[str]:
        """Distinct group ids of ``kind`` entities in insertion order."""
        seen: dict[str, None] = {}
        for entity in self._entities.values():
            if entity.kind is kind and entity.group is not None:
                seen.setdefault(entity.group, None)
        return list(seen)

    def replace_kind(self, kind: EntityKind, entities: Iterable[TrackedEntity]) -> None:
        """Drop every entity of ``kind`` and add ``entities`` in their place.

        Used when a data set is reloaded after a merge.
        """
        for key in [k for k, e in self._entities.items() if e.kind is kind]:
            del self._entities[key]
        for entity in entities:
            if entity.kind is not kind:
                raise ValueError(
                    f"Entity '{entity.key}' has kind {entity.kind.value}, expected {kind.value}"
                )
            self.add(entity)
