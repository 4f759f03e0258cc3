"""
Perspective rectification of photographed pages.

Given four document corners, estimates the planar homography onto an
axis-aligned rectangle sized to the page's own proportions and resamples the
photo through it.
"""

import itertools
import logging
from typing import Iterable, Tuple, Union

import numpy as np

from .pixels import PixelBuffer, Quad, PointLike, DegenerateGeometry

logger = logging.getLogger(__name__)

# Smallest triangle area (in normalized units) allowed among any 3 corners
_MIN_TRIANGLE_AREA = 1e-6
_MAX_CONDITION = 1e10

CornersLike = Union[Quad, Iterable[PointLike], np.ndarray]


# ============================================================================
# Corner Ordering and Output Size
# ============================================================================

def order_points(corners: CornersLike) -> Quad:
    """
    Canonicalize corners to top-left, top-right, bottom-right, bottom-left.

    The two points with the smallest y form the top pair and the other two the
    bottom pair; each pair is then ordered by x. Any permutation of the same
    four points gives the same result.

    Raises:
        InvalidInput: If there are not exactly 4 points
    """
    quad = Quad.from_points(corners)
    by_y = sorted(quad.points, key=lambda p: (p.y, p.x))
    top = sorted(by_y[:2], key=lambda p: (p.x, p.y))
    bottom = sorted(by_y[2:], key=lambda p: (p.x, p.y))
    return Quad((top[0], top[1], bottom[1], bottom[0]))


def output_size(ordered: Quad) -> Tuple[int, int]:
    """
    Rectified output size for canonically ordered corners.

    Width is the longer of the top and bottom edges, height the longer of the
    left and right edges.
    """
    tl, tr, br, bl = ordered
    width = max(bl.distance_to(br), tl.distance_to(tr))
    height = max(tr.distance_to(br), tl.distance_to(bl))
    return int(round(width)), int(round(height))


# ============================================================================
# Homography
# ============================================================================

def _normalization(points: np.ndarray) -> np.ndarray:
    """Similarity moving the centroid to the origin with mean distance sqrt(2)."""
    centroid = points.mean(axis=0)
    mean_dist = np.mean(np.linalg.norm(points - centroid, axis=1))
    if not np.isfinite(mean_dist) or mean_dist < 1e-12:
        raise DegenerateGeometry("Corner points coincide")
    s = np.sqrt(2.0) / mean_dist
    return np.array([
        [s, 0.0, -s * centroid[0]],
        [0.0, s, -s * centroid[1]],
        [0.0, 0.0, 1.0],
    ])


def _apply(matrix: np.ndarray, points: np.ndarray) -> np.ndarray:
    homogeneous = np.hstack([points, np.ones((len(points), 1))]) @ matrix.T
    return homogeneous[:, :2] / homogeneous[:, 2:3]


def _check_general_position(points: np.ndarray):
    for a, b, c in itertools.combinations(points, 3):
        area = abs((b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0])) / 2.0
        if area < _MIN_TRIANGLE_AREA:
            raise DegenerateGeometry("Three of the corner points are collinear")


def compute_homography(source: CornersLike, target: CornersLike) -> np.ndarray:
    """
    Solve the 8-DOF homography mapping 4 source points onto 4 target points.

    Points are normalized (Hartley) before the 8x8 linear system is solved,
    which keeps the solve well conditioned for pixel-scale coordinates.

    Args:
        source: 4 points
        target: 4 corresponding points

    Returns:
        3x3 matrix H with ``H @ [x, y, 1]`` proportional to the target point

    Raises:
        DegenerateGeometry: If either point set is degenerate
    """
    src = Quad.from_points(source).to_array()
    dst = Quad.from_points(target).to_array()
    if not (np.all(np.isfinite(src)) and np.all(np.isfinite(dst))):
        raise DegenerateGeometry("Corner coordinates are not finite")

    t_src = _normalization(src)
    t_dst = _normalization(dst)
    src_n = _apply(t_src, src)
    dst_n = _apply(t_dst, dst)
    _check_general_position(src_n)
    _check_general_position(dst_n)

    a = np.zeros((8, 8))
    b = np.zeros(8)
    for i, ((x, y), (u, v)) in enumerate(zip(src_n, dst_n)):
        a[2 * i] = [x, y, 1.0, 0.0, 0.0, 0.0, -u * x, -u * y]
        a[2 * i + 1] = [0.0, 0.0, 0.0, x, y, 1.0, -v * x, -v * y]
        b[2 * i] = u
        b[2 * i + 1] = v

    if np.linalg.cond(a) > _MAX_CONDITION:
        raise DegenerateGeometry("Homography system is ill-conditioned")

    try:
        h = np.linalg.solve(a, b)
    except np.linalg.LinAlgError as e:
        raise DegenerateGeometry(f"Homography system is singular: {e}") from e

    h_norm = np.append(h, 1.0).reshape(3, 3)
    matrix = np.linalg.inv(t_dst) @ h_norm @ t_src
    if not np.all(np.isfinite(matrix)) or abs(matrix[2, 2]) < 1e-12:
        raise DegenerateGeometry("Homography is not finite")
    return matrix / matrix[2, 2]


# ============================================================================
# Rectification
# ============================================================================

def rectify(image: PixelBuffer, corners: CornersLike) -> PixelBuffer:
    """
    Straighten the document bounded by ``corners``.

    Args:
        image: Source photo
        corners: 4 document corners in ``image`` coordinates, any order

    Returns:
        New buffer of exactly the size given by ``output_size``

    Raises:
        InvalidInput: If corners are not exactly 4 points
        DegenerateGeometry: If the corners cannot define a homography
    """
    import cv2

    ordered = order_points(corners)
    if not np.all(np.isfinite(ordered.to_array())):
        raise DegenerateGeometry("Corner coordinates are not finite")

    width, height = output_size(ordered)
    if width < 1 or height < 1:
        raise DegenerateGeometry(f"Corners enclose no area ({width}x{height})")

    # Maps output pixels back into the source photo (inverse warp)
    target = Quad.from_rect(0, 0, width, height)
    inverse = compute_homography(target, ordered)

    warped = cv2.warpPerspective(
        image.pixels,
        inverse,
        (width, height),
        flags=cv2.INTER_LINEAR | cv2.WARP_INVERSE_MAP,
        borderMode=cv2.BORDER_REPLICATE
    )

    logger.info(
        f"Rectified {image.width}x{image.height} -> {width}x{height}"
    )
    return PixelBuffer(width, height, np.ascontiguousarray(warped, dtype=np.uint8))
