"""
Core data types for the document scanning pipeline.

Provides:
- PixelBuffer (RGBA image owned by whichever stage created it)
- Point2D and Quad (document corner geometry)
- Error types shared by every stage
"""

import logging
from dataclasses import dataclass
from typing import Iterable, NamedTuple, Tuple, Union, Mapping, Sequence

import numpy as np

logger = logging.getLogger(__name__)


# ============================================================================
# Errors
# ============================================================================

class DocScanError(Exception):
    """Base class for all scanner errors."""


class DecodeFailure(DocScanError, ValueError):
    """Source bytes are not a decodable image."""


class InvalidInput(DocScanError, ValueError):
    """Malformed geometric input, e.g. a quad without exactly 4 points."""


class DegenerateGeometry(DocScanError, RuntimeError):
    """The corner configuration admits no usable homography."""


class SessionStateError(DocScanError, RuntimeError):
    """An operation was issued in a session state that does not allow it."""


# ============================================================================
# Pixel Buffer
# ============================================================================

@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """
    An RGBA image.

    ``pixels`` is a ``(height, width, 4)`` uint8 array. Transforms never write
    into a buffer they were given; they allocate a new one.
    """
    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Invalid buffer size: {self.width}x{self.height}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"Pixel data must be uint8, got {self.pixels.dtype}")
        if self.pixels.shape != (self.height, self.width, 4):
            raise ValueError(
                f"Pixel data shape {self.pixels.shape} does not match "
                f"{self.width}x{self.height} RGBA"
            )

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PixelBuffer":
        """
        Build a buffer from a grayscale, RGB or RGBA array (copied).

        Args:
            array: ``(h, w)``, ``(h, w, 1)``, ``(h, w, 3)`` or ``(h, w, 4)`` uint8 array

        Returns:
            New PixelBuffer with alpha set to 255 where the source had none
        """
        array = np.asarray(array)
        if array.dtype != np.uint8:
            array = np.clip(array, 0, 255).astype(np.uint8)

        if array.ndim == 3 and array.shape[2] == 1:
            array = array[:, :, 0]

        h, w = array.shape[:2]
        rgba = np.empty((h, w, 4), dtype=np.uint8)

        if array.ndim == 2:
            rgba[:, :, 0] = array
            rgba[:, :, 1] = array
            rgba[:, :, 2] = array
            rgba[:, :, 3] = 255
        elif array.ndim == 3 and array.shape[2] == 3:
            rgba[:, :, :3] = array
            rgba[:, :, 3] = 255
        elif array.ndim == 3 and array.shape[2] == 4:
            rgba[:] = array
        else:
            raise ValueError(f"Unexpected image shape: {array.shape}")

        return cls(width=w, height=h, pixels=rgba)

    @classmethod
    def from_bytes(cls, width: int, height: int, data: bytes) -> "PixelBuffer":
        """Build a buffer from a flat R,G,B,A byte sequence."""
        expected = width * height * 4
        if len(data) != expected:
            raise ValueError(f"Expected {expected} bytes for {width}x{height}, got {len(data)}")
        pixels = np.frombuffer(bytes(data), dtype=np.uint8).reshape(height, width, 4).copy()
        return cls(width=width, height=height, pixels=pixels)

    @classmethod
    def filled(cls, width: int, height: int, color: Sequence[int]) -> "PixelBuffer":
        """Create a buffer of a single RGB or RGBA color."""
        rgba = tuple(color) + (255,) * (4 - len(color))
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:] = rgba
        return cls(width=width, height=height, pixels=pixels)

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.height, self.width)

    @property
    def rgb(self) -> np.ndarray:
        """View of the color channels."""
        return self.pixels[:, :, :3]

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[:, :, 3]

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.width, self.height, self.pixels.copy())

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()

    def equals(self, other: "PixelBuffer") -> bool:
        """Byte-for-byte comparison."""
        return (
            self.width == other.width
            and self.height == other.height
            and np.array_equal(self.pixels, other.pixels)
        )


# ============================================================================
# Geometry
# ============================================================================

class Point2D(NamedTuple):
    """A point in the coordinate space of one specific PixelBuffer."""
    x: float
    y: float

    def scaled(self, sx: float, sy: float) -> "Point2D":
        return Point2D(self.x * sx, self.y * sy)

    def distance_to(self, other: "Point2D") -> float:
        return float(np.hypot(self.x - other.x, self.y - other.y))


PointLike = Union[Point2D, Tuple[float, float], Sequence[float], Mapping[str, float]]


def to_point(value: PointLike) -> Point2D:
    """Coerce a tuple, sequence or ``{"x": .., "y": ..}`` mapping to a Point2D."""
    if isinstance(value, Point2D):
        return value
    if isinstance(value, Mapping):
        return Point2D(float(value["x"]), float(value["y"]))
    x, y = value
    return Point2D(float(x), float(y))


@dataclass(frozen=True)
class Quad:
    """Four corner points of a document page, in any order."""
    points: Tuple[Point2D, Point2D, Point2D, Point2D]

    def __post_init__(self):
        if len(self.points) != 4:
            raise InvalidInput(f"A quad needs exactly 4 points, got {len(self.points)}")

    @classmethod
    def from_points(cls, points: Union["Quad", Iterable[PointLike], np.ndarray]) -> "Quad":
        """
        Build a quad from any iterable of point-likes or an ``(4, 2)`` array.

        Raises:
            InvalidInput: If there are not exactly 4 well-formed points
        """
        if isinstance(points, Quad):
            return points
        if isinstance(points, np.ndarray):
            points = points.reshape(-1, 2).tolist()
        try:
            converted = tuple(to_point(p) for p in points)
        except (TypeError, ValueError, KeyError) as e:
            raise InvalidInput(f"Malformed corner point: {e}") from e
        return cls(converted)

    @classmethod
    def from_rect(cls, x1: float, y1: float, x2: float, y2: float) -> "Quad":
        return cls((Point2D(x1, y1), Point2D(x2, y1), Point2D(x2, y2), Point2D(x1, y2)))

    def __iter__(self):
        return iter(self.points)

    def __len__(self):
        return 4

    def __getitem__(self, index: int) -> Point2D:
        return self.points[index]

    def scaled(self, sx: float, sy: float = None) -> "Quad":
        """Rescale into the coordinate space of a differently sized buffer."""
        if sy is None:
            sy = sx
        return Quad(tuple(p.scaled(sx, sy) for p in self.points))

    def to_array(self) -> np.ndarray:
        return np.array(self.points, dtype=np.float64)

    def to_list(self):
        return [{"x": p.x, "y": p.y} for p in self.points]
