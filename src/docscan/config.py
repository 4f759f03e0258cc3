"""
Configuration and constants for the document scanning pipeline.

This module provides:
- Filter bank parameters
- Edge detection parameters
- Preview/export resolution bounds for editing sessions
- Export encoding settings
"""

import os
from dataclasses import dataclass, field
from typing import Optional
import logging

logger = logging.getLogger("docscan")


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class FilterConfig:
    """Filter bank parameters."""
    threshold_window: int = 15
    threshold_c: int = 10
    contrast: float = 2.2
    contrast_bias: int = 20  # Darkening applied after the contrast stretch
    brightness_delta: int = 40
    saturation: float = 1.5
    print_gamma: float = 1.4


@dataclass
class DetectionConfig:
    """Document edge detection configuration."""
    blur_kernel: int = 5
    canny_low: int = 75
    canny_high: int = 200
    approx_epsilon: float = 0.02  # Fraction of the contour perimeter
    edge_dilation: int = 1  # 3x3 dilation passes closing gaps in Canny edges; 0 disables
    max_dimension: Optional[int] = None  # None = detect at full resolution
    default_padding: int = 30


@dataclass
class SessionConfig:
    """Editing session resolution bounds."""
    preview_max_dimension: int = 1000
    export_max_dimension: int = 2500


@dataclass
class ExportConfig:
    """Export configuration."""
    jpeg_quality: int = 85
    thumbnail_quality: int = 40
    thumbnail_max_dimension: int = 300
    pdf_dpi: int = 150  # Used both to render imported PDFs and to size exported pages


@dataclass
class ScannerConfig:
    """Main scanner configuration."""
    filters: FilterConfig = field(default_factory=FilterConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    debug_mode: bool = False


# ============================================================================
# Default Configuration Instance
# ============================================================================

def _env_int(name: str) -> Optional[int]:
    value = os.environ.get(name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={value!r}")
        return None


def get_config() -> ScannerConfig:
    """Get the default scanner configuration with environment overrides."""
    config = ScannerConfig()

    if os.environ.get("DOCSCAN_DEBUG", "").lower() == "true":
        config.debug_mode = True

    preview_max = _env_int("DOCSCAN_PREVIEW_MAX")
    if preview_max:
        config.session.preview_max_dimension = preview_max

    export_max = _env_int("DOCSCAN_EXPORT_MAX")
    if export_max:
        config.session.export_max_dimension = export_max

    quality = _env_int("DOCSCAN_JPEG_QUALITY")
    if quality:
        config.export.jpeg_quality = max(1, min(100, quality))

    return config
