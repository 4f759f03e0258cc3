"""
Export module for scanned documents.

Provides:
- JPEG/PNG encoding of pixel buffers (Pillow)
- Thumbnails
- Image export (one JPEG per page)
- PDF export (one page per image, using fpdf2)
- SavedDocument records for the document library
"""

import io
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .config import ExportConfig
from .pixels import PixelBuffer

logger = logging.getLogger(__name__)

_EXTENSION_RE = re.compile(r"\.(jpg|jpeg|png|pdf)$", re.IGNORECASE)


# ============================================================================
# Encoding
# ============================================================================

def to_pil(image: PixelBuffer, mode: str = "RGB"):
    """Convert a buffer to a PIL image (alpha dropped for RGB)."""
    from PIL import Image

    pil_image = Image.fromarray(image.pixels)
    return pil_image if mode == "RGBA" else pil_image.convert(mode)


def encode_jpeg(image: PixelBuffer, quality: int = 85) -> bytes:
    """
    Encode a buffer as JPEG.

    Args:
        image: Page image
        quality: JPEG quality (1-100)

    Returns:
        JPEG bytes
    """
    quality = max(1, min(100, int(quality)))
    stream = io.BytesIO()
    to_pil(image).save(stream, format="JPEG", quality=quality)
    return stream.getvalue()


def encode_png(image: PixelBuffer) -> bytes:
    stream = io.BytesIO()
    to_pil(image, mode="RGBA").save(stream, format="PNG")
    return stream.getvalue()


def make_thumbnail(image: PixelBuffer, max_dimension: int = 300, quality: int = 40) -> bytes:
    """Small low-quality JPEG preview of a page."""
    pil_image = to_pil(image)
    pil_image.thumbnail((max_dimension, max_dimension))
    stream = io.BytesIO()
    pil_image.save(stream, format="JPEG", quality=quality)
    return stream.getvalue()


# ============================================================================
# Naming
# ============================================================================

def strip_extension(name: str) -> str:
    """Drop a trailing image/PDF extension from a document name."""
    return _EXTENSION_RE.sub("", name)


def default_document_name(now: Optional[datetime] = None) -> str:
    """``Scan_YYYYMMDD_HHMMSS`` for documents without a name."""
    now = now or datetime.now()
    return now.strftime("Scan_%Y%m%d_%H%M%S")


def display_date(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return now.strftime("%d/%m/%Y %H:%M")


# ============================================================================
# Exporters
# ============================================================================

class ImageExporter:
    """Write each page as a JPEG."""

    def __init__(self, output_dir: Union[str, Path], name: str, quality: int = 85):
        self.output_dir = Path(output_dir)
        self.name = strip_extension(name)
        self.quality = quality

    def export(self, pages: List[PixelBuffer]) -> List[Path]:
        """
        Returns:
            Paths of the written files, in page order
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)

        paths = []
        for i, page in enumerate(pages, 1):
            suffix = "" if len(pages) == 1 else f"_p{i}"
            path = self.output_dir / f"{self.name}{suffix}.jpg"
            path.write_bytes(encode_jpeg(page, self.quality))
            paths.append(path)

        logger.info(f"Exported {len(paths)} JPEG page(s) to: {self.output_dir}")
        return paths


class PdfExporter:
    """Assemble pages into one PDF, each page sized to its image."""

    def __init__(self, output_path: Union[str, Path], quality: int = 85, dpi: int = 150):
        self.output_path = Path(output_path)
        self.quality = quality
        self.dpi = dpi

    def page_size_pt(self, image: PixelBuffer) -> Tuple[float, float]:
        return image.width * 72.0 / self.dpi, image.height * 72.0 / self.dpi

    def render(self, pages: List[PixelBuffer]) -> bytes:
        """Build the PDF in memory."""
        from fpdf import FPDF

        if not pages:
            raise ValueError("Cannot build a PDF without pages")

        pdf = FPDF(unit="pt")
        pdf.set_auto_page_break(auto=False)
        pdf.set_margins(0, 0, 0)

        for page in pages:
            w_pt, h_pt = self.page_size_pt(page)
            pdf.add_page(format=(w_pt, h_pt))
            jpeg = io.BytesIO(encode_jpeg(page, self.quality))
            pdf.image(jpeg, x=0, y=0, w=w_pt, h=h_pt)

        return bytes(pdf.output())

    def export(self, pages: List[PixelBuffer]) -> Path:
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self.output_path.write_bytes(self.render(pages))
        logger.info(f"Exported {len(pages)}-page PDF to: {self.output_path}")
        return self.output_path


# ============================================================================
# Saved Documents
# ============================================================================

@dataclass
class SavedDocument:
    """What the document library stores for one saved scan."""
    name: str
    date: str
    kind: str
    paths: List[Path] = field(default_factory=list)
    thumbnail: bytes = b""
    page_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Record fields; ``save_json`` writes paths as strings and the thumbnail as base64."""
        return {
            "name": self.name,
            "date": self.date,
            "type": self.kind,
            "paths": list(self.paths),
            "thumbnail": self.thumbnail,
            "page_count": self.page_count,
        }


class DocumentExporter:
    """Convenience exporter producing a SavedDocument for either format."""

    FORMATS = ("image", "pdf")

    def __init__(
        self,
        output_dir: Union[str, Path],
        fmt: str = "image",
        name: Optional[str] = None,
        config: Optional[ExportConfig] = None,
        now: Optional[datetime] = None
    ):
        if fmt not in self.FORMATS:
            raise ValueError(f"Unknown export format: {fmt}")
        self.output_dir = Path(output_dir)
        self.fmt = fmt
        self.config = config or ExportConfig()
        self.now = now or datetime.now()
        self.name = strip_extension(name) if name else default_document_name(self.now)

    def export(self, pages: List[PixelBuffer]) -> SavedDocument:
        if not pages:
            raise ValueError("Nothing to export")

        if self.fmt == "pdf":
            pdf_path = self.output_dir / f"{self.name}.pdf"
            paths = [PdfExporter(pdf_path, self.config.jpeg_quality, self.config.pdf_dpi).export(pages)]
            display_name = f"{self.name}.pdf"
        else:
            paths = ImageExporter(self.output_dir, self.name, self.config.jpeg_quality).export(pages)
            display_name = f"{self.name}.jpg"

        thumbnail = make_thumbnail(
            pages[0],
            self.config.thumbnail_max_dimension,
            self.config.thumbnail_quality
        )

        return SavedDocument(
            name=display_name,
            date=display_date(self.now),
            kind=self.fmt,
            paths=paths,
            thumbnail=thumbnail,
            page_count=len(pages)
        )
