"""
Document boundary detection.

Proposes the four corners of the page in a photograph using the classical
edge pipeline: grayscale, Gaussian blur, Canny edges, contour extraction, and
polygon approximation of the largest contour.
"""

import logging
from typing import Optional

import numpy as np

from .config import DetectionConfig
from .pixels import PixelBuffer, Quad, Point2D

logger = logging.getLogger(__name__)


class QuadDetector:
    """
    Finds a 4-sided document outline in an image.

    A miss is not an error: ``detect`` returns None and the caller falls back
    to default corners.
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()

    def detect(self, image: PixelBuffer) -> Optional[Quad]:
        """
        Detect document corners.

        Args:
            image: Photo of a document

        Returns:
            Quad in the coordinate space of ``image``, or None if no 4-vertex
            outline was found
        """
        import cv2

        if image.width == 0 or image.height == 0:
            return None

        working, scale = self._working_copy(image)

        gray = cv2.cvtColor(working, cv2.COLOR_RGBA2GRAY)
        k = self.config.blur_kernel
        blurred = cv2.GaussianBlur(gray, (k, k), 0)
        edges = cv2.Canny(blurred, self.config.canny_low, self.config.canny_high)
        if self.config.edge_dilation > 0:
            kernel = np.ones((3, 3), dtype=np.uint8)
            edges = cv2.dilate(edges, kernel, iterations=self.config.edge_dilation)

        contours, _ = cv2.findContours(edges, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)
        if not contours:
            logger.debug("No contours found")
            return None

        largest = None
        max_area = 0.0
        for contour in contours:
            area = cv2.contourArea(contour)
            if area > max_area:
                max_area = area
                largest = contour

        if largest is None:
            logger.debug("No contour encloses any area")
            return None

        perimeter = cv2.arcLength(largest, True)
        approx = cv2.approxPolyDP(largest, self.config.approx_epsilon * perimeter, True)

        if len(approx) != 4:
            logger.debug(f"Largest contour approximates to {len(approx)} vertices, not 4")
            return None

        corners = Quad.from_points(approx.reshape(4, 2).astype(np.float64))
        if scale != 1.0:
            corners = corners.scaled(1.0 / scale)

        logger.info(f"Detected document outline (area={max_area / (scale * scale):.0f}px)")
        return corners

    def _working_copy(self, image: PixelBuffer):
        """Downscale for detection when a maximum dimension is configured."""
        import cv2

        max_dim = self.config.max_dimension
        longest = max(image.width, image.height)
        if not max_dim or longest <= max_dim:
            return image.pixels, 1.0

        scale = max_dim / longest
        size = (max(1, round(image.width * scale)), max(1, round(image.height * scale)))
        resized = cv2.resize(image.pixels, size, interpolation=cv2.INTER_AREA)
        logger.debug(f"Detecting on {size[0]}x{size[1]} copy (scale={scale:.3f})")
        return resized, scale


def detect(image: PixelBuffer, config: Optional[DetectionConfig] = None) -> Optional[Quad]:
    """Detect document corners with a one-off detector."""
    return QuadDetector(config).detect(image)


def default_corners(width: float, height: float, padding: float = 30) -> Quad:
    """
    Fallback corners when detection misses: the full frame inset by padding.

    The padding shrinks for frames too small to hold it.
    """
    pad = max(0.0, min(float(padding), width / 4.0, height / 4.0))
    return Quad((
        Point2D(pad, pad),
        Point2D(width - pad, pad),
        Point2D(width - pad, height - pad),
        Point2D(pad, height - pad),
    ))
