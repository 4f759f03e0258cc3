"""
Filter bank for scanned document pages.

Every filter is a pure function of the original page image: it reads the
buffer it is given and returns a newly allocated one. Switching filters always
starts again from the original, so no rounding error accumulates.

Provides:
- FilterKind enumeration
- apply() dispatcher
- One transform per filter kind
"""

import logging
from enum import Enum
from functools import lru_cache
from typing import Callable, Dict, Optional, Union

import numpy as np

from .config import FilterConfig
from .pixels import PixelBuffer

logger = logging.getLogger(__name__)


# ============================================================================
# Filter Kinds
# ============================================================================

class FilterKind(Enum):
    """Available page filters."""
    ORIGINAL = "original"
    GRAYSCALE = "grayscale"
    ADAPTIVE_THRESHOLD = "adaptive-threshold"
    HIGH_CONTRAST = "high-contrast"
    INVERT = "invert"
    SEPIA = "sepia"
    BRIGHTNESS = "brightness"
    VIBRANT = "vibrant"
    PRINT_BW = "print-bw"

    @classmethod
    def from_name(cls, name: Union[str, "FilterKind"]) -> "FilterKind":
        """
        Look up a filter by its kebab-case name (``"adaptive-threshold"``).

        Underscores and case are tolerated, so ``"PRINT_BW"`` also works.
        """
        if isinstance(name, cls):
            return name
        key = str(name).strip().lower().replace("_", "-")
        for kind in cls:
            if kind.value == key:
                return kind
        raise ValueError(f"Unknown filter: {name!r}")

    @classmethod
    def names(cls):
        return [kind.value for kind in cls]


# ============================================================================
# Helpers
# ============================================================================

def _with_rgb(original: PixelBuffer, rgb: np.ndarray) -> PixelBuffer:
    """New buffer with the given color channels and the original's alpha."""
    pixels = np.empty_like(original.pixels)
    pixels[:, :, :3] = rgb
    pixels[:, :, 3] = original.alpha
    return PixelBuffer(original.width, original.height, pixels)


def _with_gray(original: PixelBuffer, gray: np.ndarray) -> PixelBuffer:
    return _with_rgb(original, gray[:, :, np.newaxis])


def _to_uint8(values: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def channel_mean(image: PixelBuffer) -> np.ndarray:
    """Per-pixel ``floor((R + G + B) / 3)`` as a uint8 array."""
    total = image.rgb.astype(np.uint16).sum(axis=2)
    return (total // 3).astype(np.uint8)


def luminance(image: PixelBuffer) -> np.ndarray:
    """Per-pixel Rec. 601 luma ``0.299R + 0.587G + 0.114B`` as floats."""
    rgb = image.rgb.astype(np.float64)
    return rgb[:, :, 0] * 0.299 + rgb[:, :, 1] * 0.587 + rgb[:, :, 2] * 0.114


@lru_cache(maxsize=8)
def gamma_table(gamma: float) -> np.ndarray:
    """256-entry lookup table for ``255 * (v / 255) ** gamma``."""
    levels = np.arange(256, dtype=np.float64) / 255.0
    return _to_uint8(255.0 * np.power(levels, gamma))


# ============================================================================
# Transforms
# ============================================================================

def original_copy(original: PixelBuffer, config: FilterConfig) -> PixelBuffer:
    return original.copy()


def grayscale(original: PixelBuffer, config: FilterConfig) -> PixelBuffer:
    return _with_gray(original, channel_mean(original))


def adaptive_threshold(original: PixelBuffer, config: FilterConfig) -> PixelBuffer:
    """
    Binarize against the local mean of a square window.

    A pixel turns black when its gray level is below ``mean - C``, where the
    mean is taken over the window clipped to the image (only in-bounds
    samples count). Window sums come from a summed-area table, and the
    comparison is done in integers (``gray * n < sum - C * n``) so the result
    is identical to the naive per-window loop.

    Args:
        original: Page image
        config: Uses ``threshold_window`` and ``threshold_c``

    Returns:
        Image whose color channels are all 0 or 255
    """
    gray = channel_mean(original).astype(np.int64)
    h, w = gray.shape
    if h == 0 or w == 0:
        return original.copy()

    half = config.threshold_window // 2

    integral = np.zeros((h + 1, w + 1), dtype=np.int64)
    integral[1:, 1:] = gray.cumsum(axis=0).cumsum(axis=1)

    ys = np.arange(h)
    xs = np.arange(w)
    y0 = np.clip(ys - half, 0, h - 1)
    y1 = np.clip(ys + half, 0, h - 1) + 1
    x0 = np.clip(xs - half, 0, w - 1)
    x1 = np.clip(xs + half, 0, w - 1) + 1

    window_sum = (
        integral[np.ix_(y1, x1)]
        - integral[np.ix_(y0, x1)]
        - integral[np.ix_(y1, x0)]
        + integral[np.ix_(y0, x0)]
    )
    count = np.outer(y1 - y0, x1 - x0)

    is_dark = gray * count < window_sum - config.threshold_c * count
    binary = np.where(is_dark, 0, 255).astype(np.uint8)
    return _with_gray(original, binary)


def high_contrast(original: PixelBuffer, config: FilterConfig) -> PixelBuffer:
    c = config.contrast
    factor = (259.0 * (c + 255.0)) / (255.0 * (259.0 - c))
    gray = channel_mean(original).astype(np.float64)
    enhanced = factor * (gray - 128.0) + 128.0 - config.contrast_bias
    return _with_gray(original, _to_uint8(enhanced))


def invert(original: PixelBuffer, config: FilterConfig) -> PixelBuffer:
    return _with_rgb(original, 255 - original.rgb)


SEPIA_MATRIX = np.array([
    [0.393, 0.769, 0.189],
    [0.349, 0.686, 0.168],
    [0.272, 0.534, 0.131],
])


def sepia(original: PixelBuffer, config: FilterConfig) -> PixelBuffer:
    toned = original.rgb.astype(np.float64) @ SEPIA_MATRIX.T
    return _with_rgb(original, _to_uint8(toned))


def brightness(original: PixelBuffer, config: FilterConfig) -> PixelBuffer:
    brightened = original.rgb.astype(np.int16) + config.brightness_delta
    return _with_rgb(original, np.clip(brightened, 0, 255).astype(np.uint8))


def vibrant(original: PixelBuffer, config: FilterConfig) -> PixelBuffer:
    """Push each channel away from the pixel's channel mean."""
    rgb = original.rgb.astype(np.float64)
    avg = rgb.mean(axis=2, keepdims=True)
    spread = original.rgb.max(axis=2) > original.rgb.min(axis=2)
    saturated = avg + (rgb - avg) * config.saturation
    result = np.where(spread[:, :, np.newaxis], saturated, rgb)
    return _with_rgb(original, _to_uint8(result))


def print_bw(original: PixelBuffer, config: FilterConfig) -> PixelBuffer:
    """Luma through a gamma curve, darkening midtones for print."""
    levels = _to_uint8(luminance(original))
    return _with_gray(original, gamma_table(config.print_gamma)[levels])


# ============================================================================
# Dispatch
# ============================================================================

Transform = Callable[[PixelBuffer, FilterConfig], PixelBuffer]

_TRANSFORMS: Dict[FilterKind, Transform] = {
    FilterKind.ORIGINAL: original_copy,
    FilterKind.GRAYSCALE: grayscale,
    FilterKind.ADAPTIVE_THRESHOLD: adaptive_threshold,
    FilterKind.HIGH_CONTRAST: high_contrast,
    FilterKind.INVERT: invert,
    FilterKind.SEPIA: sepia,
    FilterKind.BRIGHTNESS: brightness,
    FilterKind.VIBRANT: vibrant,
    FilterKind.PRINT_BW: print_bw,
}

_unmapped = set(FilterKind) - set(_TRANSFORMS)
if _unmapped:
    raise ImportError(f"Filters without a transform: {sorted(k.value for k in _unmapped)}")


def apply(
    original: PixelBuffer,
    kind: Union[FilterKind, str],
    config: Optional[FilterConfig] = None
) -> PixelBuffer:
    """
    Apply a filter to an original page image.

    Args:
        original: Unfiltered page image (never modified)
        kind: Filter to apply (FilterKind or its name)
        config: Filter parameters (defaults if None)

    Returns:
        Newly allocated filtered image
    """
    kind = FilterKind.from_name(kind)
    config = config or FilterConfig()
    result = _TRANSFORMS[kind](original, config)
    logger.debug(f"Applied {kind.value} filter to {original.width}x{original.height} image")
    return result
