"""
Headless model of the corner adjustment screen.

The photo is shown scaled down to fit a viewport. Corners live in display
coordinates while the user drags them and are converted back to source image
coordinates on confirm.
"""

import logging
from typing import List, Optional

from .detect import default_corners
from .pixels import Point2D, Quad
from .rectify import CornersLike

logger = logging.getLogger(__name__)


def fit_scale(
    image_width: int,
    image_height: int,
    viewport_width: float,
    viewport_height: float,
    max_scale: float = 0.85
) -> float:
    """Scale that fits the image in the viewport, capped at ``max_scale``."""
    if image_width <= 0 or image_height <= 0:
        raise ValueError(f"Invalid image size: {image_width}x{image_height}")
    return min(viewport_width / image_width, viewport_height / image_height, max_scale)


class CornerEditor:
    """
    Draggable document corners over a scaled display of the photo.

    Moves are synchronous and clamp to the display canvas.
    """

    def __init__(
        self,
        image_width: int,
        image_height: int,
        scale: float,
        detected: Optional[CornersLike] = None,
        padding: float = 30,
        hit_radius: float = 50
    ):
        if scale <= 0:
            raise ValueError(f"Display scale must be positive, got {scale}")
        self.image_width = image_width
        self.image_height = image_height
        self.scale = scale
        self.hit_radius = hit_radius
        self.dragging_index: Optional[int] = None

        if detected is not None:
            quad = Quad.from_points(detected).scaled(scale)
        else:
            quad = default_corners(self.display_width, self.display_height, padding)
        self.corners: List[Point2D] = list(quad.points)

    @classmethod
    def for_viewport(
        cls,
        image_width: int,
        image_height: int,
        viewport_width: float,
        viewport_height: float,
        detected: Optional[CornersLike] = None,
        **kwargs
    ) -> "CornerEditor":
        scale = fit_scale(image_width, image_height, viewport_width, viewport_height)
        return cls(image_width, image_height, scale, detected=detected, **kwargs)

    @property
    def display_width(self) -> float:
        return self.image_width * self.scale

    @property
    def display_height(self) -> float:
        return self.image_height * self.scale

    def hit_test(self, x: float, y: float) -> Optional[int]:
        """Index of the first corner within the hit radius of (x, y)."""
        touch = Point2D(x, y)
        for i, corner in enumerate(self.corners):
            if corner.distance_to(touch) < self.hit_radius:
                return i
        return None

    def press(self, x: float, y: float) -> Optional[int]:
        """Start dragging the corner under (x, y), if any."""
        self.dragging_index = self.hit_test(x, y)
        if self.dragging_index is not None:
            logger.debug(f"Dragging corner {self.dragging_index}")
        return self.dragging_index

    def move(self, x: float, y: float) -> bool:
        """Move the dragged corner; returns False when nothing is being dragged."""
        if self.dragging_index is None:
            return False
        x = max(0.0, min(x, self.display_width))
        y = max(0.0, min(y, self.display_height))
        self.corners[self.dragging_index] = Point2D(x, y)
        return True

    def release(self):
        self.dragging_index = None

    def confirm(self) -> Quad:
        """Corners in source image coordinates."""
        return Quad(tuple(self.corners)).scaled(1.0 / self.scale)
