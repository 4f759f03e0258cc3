"""
Capture-to-page pipeline: detect the document, rectify it, degrade gracefully.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from .config import DetectionConfig
from .detect import QuadDetector, default_corners
from .pixels import PixelBuffer, Quad, DegenerateGeometry
from .rectify import CornersLike, rectify

logger = logging.getLogger(__name__)


@dataclass
class CropResult:
    """Outcome of cropping one captured image."""
    image: PixelBuffer
    corners: Quad
    detected: bool = False
    rectified: bool = False


def propose_corners(
    image: PixelBuffer,
    detector: Optional[QuadDetector] = None
) -> Tuple[Quad, bool]:
    """
    Corners to show the user before adjustment.

    Returns:
        Tuple of (corners, detected); undetected pages get padded full-frame corners
    """
    detector = detector or QuadDetector()
    corners = detector.detect(image)
    if corners is not None:
        return corners, True

    logger.info("No document outline detected, using default corners")
    return default_corners(image.width, image.height, detector.config.default_padding), False


def rectify_or_original(image: PixelBuffer, corners: CornersLike) -> Tuple[PixelBuffer, bool]:
    """
    Rectify, falling back to the unrectified image on degenerate corners.

    Raises:
        InvalidInput: If corners are not exactly 4 points
    """
    try:
        return rectify(image, corners), True
    except DegenerateGeometry as e:
        logger.warning(f"Rectification failed ({e}), keeping original image")
        return image.copy(), False


def detect_and_rectify(
    image: PixelBuffer,
    corners: Optional[CornersLike] = None,
    config: Optional[DetectionConfig] = None
) -> CropResult:
    """
    Crop a captured photo to the document page.

    Args:
        image: Captured photo
        corners: User-confirmed corners in ``image`` coordinates; detected
            (or default) corners are used when None
        config: Detection configuration

    Returns:
        CropResult with the page image and the corners used
    """
    detected = False
    if corners is None:
        quad, detected = propose_corners(image, QuadDetector(config))
    else:
        quad = Quad.from_points(corners)

    page, rectified = rectify_or_original(image, quad)
    return CropResult(image=page, corners=quad, detected=detected, rectified=rectified)
