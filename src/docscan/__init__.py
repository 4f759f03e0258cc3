"""
Document Scanner
================

Turns photographed or imported document pages into clean, straightened page
images and exports them as JPEGs or a multi-page PDF.

Main components:
- Document edge detection (Canny + contour approximation)
- Perspective rectification (4-point homography)
- Filter bank (grayscale, adaptive threshold, contrast and tone filters)
- Editing sessions with preview/export resolutions
- JPEG and PDF export
"""

__version__ = "1.0.0"
__author__ = "Document Scanner Team"

from .pixels import (
    PixelBuffer, Point2D, Quad,
    DocScanError, DecodeFailure, InvalidInput, DegenerateGeometry, SessionStateError,
)
from .filters import FilterKind, apply
from .detect import QuadDetector, detect, default_corners
from .rectify import order_points, output_size, compute_homography, rectify
from .pipeline import detect_and_rectify, CropResult
from .corners import CornerEditor
from .session import PageSession, SessionState, PageAsset, LoadReport, SaveResult
from .io import decode_image, load_image, iter_pdf_pages, iter_folder_images, PageSource
from .export import ImageExporter, PdfExporter, DocumentExporter, SavedDocument

__all__ = [
    # Data
    "PixelBuffer", "Point2D", "Quad",
    # Errors
    "DocScanError", "DecodeFailure", "InvalidInput", "DegenerateGeometry", "SessionStateError",
    # Filters
    "FilterKind", "apply",
    # Geometry
    "QuadDetector", "detect", "default_corners",
    "order_points", "output_size", "compute_homography", "rectify",
    "detect_and_rectify", "CropResult", "CornerEditor",
    # Session
    "PageSession", "SessionState", "PageAsset", "LoadReport", "SaveResult",
    # IO
    "decode_image", "load_image", "iter_pdf_pages", "iter_folder_images", "PageSource",
    # Export
    "ImageExporter", "PdfExporter", "DocumentExporter", "SavedDocument",
]
