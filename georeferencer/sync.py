"""
Position synchronization of image-origin entities.

Entities whose position comes from image pixel coordinates (image points,
route waypoints and spots drawn on the image) must follow the image overlay.
The PositionSynchronizer recomputes their positions after every image
placement change:

- with a fitted transformation, each entity is mapped through the affine
  transform;
- without one, each entity is interpolated into the current image bounds;
- GPS-origin entities are never moved.

Usage Example:
    >>> registry = EntityRegistry()
    >>> notifier = ImageUpdateNotifier()
    >>> synchronizer = PositionSynchronizer(registry, notifier)
    >>> synchronizer.attach()
    >>> synchronizer.set_transformation(result.transformation)
    >>> notifier.notify(placement)   # entities now follow the image
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

from georeferencer.affine import AffineTransformation, apply_affine_transform
from georeferencer.coordinate_math import convert_image_coords_to_gps
from georeferencer.entities import EntityRegistry, Origin, TrackedEntity
from georeferencer.placement import ImagePlacement, ImageUpdateNotifier

logger = logging.getLogger(__name__)


class MarkerRenderer(Protocol):
    """Protocol for drawing an entity at its new position."""

    def render_marker_at(self, entity: TrackedEntity, lat: float, lng: float) -> None:
        """Move or draw the marker of ``entity``."""
        ...


@dataclass
class SyncReport:
    """
    Outcome of one synchronization pass.

    Attributes:
        moved: Keys of entities whose position was set
        skipped: Keys of entities left alone (GPS origin or nothing to sync against)
        failed: Keys of image-origin entities that could not be positioned or rendered
    """

    moved: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "moved": len(self.moved),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
        }


class PositionSynchronizer:
    """Keeps image-origin entities aligned with the image overlay."""

    def __init__(
        self,
        registry: EntityRegistry,
        notifier: ImageUpdateNotifier,
        renderer: Optional[MarkerRenderer] = None,
    ):
        self.registry = registry
        self.notifier = notifier
        self.renderer = renderer
        self.transformation: Optional[AffineTransformation] = None
        self.placement: Optional[ImagePlacement] = None
        self.last_report: Optional[SyncReport] = None
        self._image_update_registered = False

    def attach(self) -> None:
        """Subscribe to image updates. Repeated calls register only once."""
        if self._image_update_registered:
            return
        self.notifier.subscribe(self._on_image_updated)
        self._image_update_registered = True

    @property
    def attached(self) -> bool:
        return self._image_update_registered

    def _on_image_updated(self, placement: ImagePlacement) -> None:
        self.set_placement(placement)
        self.synchronize()

    def set_transformation(self, transformation: Optional[AffineTransformation]) -> None:
        """Replace the current transformation; None reverts to bounds-based sync."""
        self.transformation = transformation

    def set_placement(self, placement: Optional[ImagePlacement]) -> None:
        self.placement = placement

    def apply_transformation(self, transformation: AffineTransformation) -> SyncReport:
        """Set a new transformation and synchronize immediately.

        Raises:
            TypeError: If transformation is None.
        """
        if transformation is None:
            raise TypeError("apply_transformation requires a transformation, got None")
        self.set_transformation(transformation)
        return self.synchronize()

    def _target_position(self, entity: TrackedEntity) -> Optional[Tuple[float, float]]:
        if self.transformation is not None:
            return apply_affine_transform(entity.image_x, entity.image_y, self.transformation)
        return convert_image_coords_to_gps(
            entity.image_x,
            entity.image_y,
            self.placement.bounds,
            self.placement.width,
            self.placement.height,
        )

    def synchronize(self) -> SyncReport:
        """
        Recompute positions of all image-origin entities.

        Running it twice with unchanged inputs yields identical positions.

        Returns:
            SyncReport listing moved, skipped and failed entity keys
        """
        report = SyncReport()

        if self.transformation is None and self.placement is None:
            report.skipped.extend(entity.key for entity in self.registry)
            logger.debug("No transformation or image placement; positions unchanged")
            self.last_report = report
            return report

        for entity in self.registry:
            if entity.origin is not Origin.IMAGE:
                report.skipped.append(entity.key)
                continue

            if not entity.has_image_coords:
                logger.warning(f"Entity '{entity.key}' has no usable image coordinates; skipped")
                report.failed.append(entity.key)
                continue

            position = self._target_position(entity)
            if position is None:
                logger.warning(f"Could not position entity '{entity.key}'; left in place")
                report.failed.append(entity.key)
                continue

            entity.lat, entity.lng = position
            if self.renderer is not None:
                try:
                    self.renderer.render_marker_at(entity, entity.lat, entity.lng)
                except Exception:
                    logger.exception(f"Marker renderer failed for entity '{entity.key}'")
                    report.failed.append(entity.key)
                    continue
            report.moved.append(entity.key)

        mode = "affine" if self.transformation is not None else "image bounds"
        logger.info(
            f"Synchronized positions ({mode}): {len(report.moved)} moved, "
            f"{len(report.skipped)} skipped, {len(report.failed)} failed"
        )
        self.last_report = report
        return report
