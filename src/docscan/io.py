"""
I/O utilities for the document scanning pipeline.

Handles:
- Image decoding (bytes, files, data URLs) into RGBA pixel buffers
- Lazy page sequences for PDF imports and image folders
- JSON serialization of saved-document records
- Directory management
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, Union

import numpy as np

from .pixels import PixelBuffer, DecodeFailure

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.tiff', '.tif', '.bmp', '.webp')


# ============================================================================
# Image Decoding
# ============================================================================

def decode_image(data: bytes) -> PixelBuffer:
    """
    Decode encoded image bytes (JPEG, PNG, ...) into an RGBA buffer.

    Raises:
        DecodeFailure: If the bytes are not a decodable image
    """
    import cv2

    if not data:
        raise DecodeFailure("Empty image data")

    encoded = np.frombuffer(data, dtype=np.uint8)
    img = cv2.imdecode(encoded, cv2.IMREAD_COLOR)
    if img is None:
        raise DecodeFailure(f"Could not decode {len(data)} bytes as an image")

    rgba = cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)
    logger.debug(f"Decoded image: {rgba.shape[1]}x{rgba.shape[0]}")
    return PixelBuffer(rgba.shape[1], rgba.shape[0], rgba)


def load_image(image_path: Union[str, Path]) -> PixelBuffer:
    """
    Load an image from file.

    Raises:
        FileNotFoundError: If image file doesn't exist
        DecodeFailure: If image cannot be decoded
    """
    image_path = Path(image_path)
    if not image_path.exists():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    try:
        return decode_image(image_path.read_bytes())
    except DecodeFailure as e:
        raise DecodeFailure(f"Could not decode image: {image_path}") from e


def decode_data_url(data_url: str) -> PixelBuffer:
    """Decode a ``data:image/...;base64,`` URL."""
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith("data:") or ";base64" not in header:
        raise DecodeFailure("Not a base64 data URL")
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeFailure(f"Invalid base64 payload: {e}") from e
    return decode_image(data)


def pil_to_buffer(pil_image) -> PixelBuffer:
    """Convert a PIL image to an RGBA buffer."""
    rgba = np.array(pil_image.convert("RGBA"), dtype=np.uint8)
    return PixelBuffer(rgba.shape[1], rgba.shape[0], rgba)


# ============================================================================
# Page Sources
# ============================================================================

@dataclass
class PageSource:
    """One page waiting to be decoded; ``load`` does the work."""
    label: str
    load: Callable[[], PixelBuffer]


PageInput = Union[PixelBuffer, PageSource, bytes, str, Path]


def _load_page_source(source: PageSource) -> PixelBuffer:
    """Run a lazy page loader; whatever breaks it is a failure of that page alone."""
    try:
        return source.load()
    except (DecodeFailure, FileNotFoundError):
        raise
    except Exception as e:
        raise DecodeFailure(f"Failed to load {source.label}: {e}") from e


def load_source(source: PageInput) -> PixelBuffer:
    """
    Decode whatever a capture/import collaborator handed over.

    Strings starting with ``data:`` are data URLs; other strings are paths.
    """
    if isinstance(source, PixelBuffer):
        return source
    if isinstance(source, PageSource):
        return _load_page_source(source)
    if isinstance(source, (bytes, bytearray, memoryview)):
        return decode_image(bytes(source))
    if isinstance(source, str) and source.startswith("data:"):
        return decode_data_url(source)
    if isinstance(source, (str, Path)):
        return load_image(source)
    raise TypeError(f"Unsupported page source: {type(source).__name__}")


def describe_source(source: PageInput, index: int) -> str:
    if isinstance(source, PageSource):
        return source.label
    if isinstance(source, Path) or (isinstance(source, str) and not source.startswith("data:")):
        return str(source)
    return f"page {index + 1}"


# ============================================================================
# PDF Pages
# ============================================================================

def get_pdf_page_count(pdf_path: Union[str, Path]) -> int:
    """Get the number of pages in a PDF file."""
    from pdf2image import pdfinfo_from_path

    info = pdfinfo_from_path(str(pdf_path))
    return int(info.get('Pages', 0))


def _render_pdf_page(pdf_path: Path, page_number: int, dpi: int) -> PixelBuffer:
    from pdf2image import convert_from_path
    from pdf2image.exceptions import PDFPageCountError, PDFPopplerTimeoutError, PDFSyntaxError

    try:
        pil_images = convert_from_path(
            str(pdf_path),
            dpi=dpi,
            first_page=page_number,
            last_page=page_number
        )
    except (PDFPageCountError, PDFSyntaxError, PDFPopplerTimeoutError, OSError, ValueError) as e:
        raise DecodeFailure(f"Failed to render page {page_number} of {pdf_path}: {e}") from e

    if not pil_images:
        raise DecodeFailure(f"Page {page_number} of {pdf_path} rendered no image")
    return pil_to_buffer(pil_images[0])


def iter_pdf_pages(pdf_path: Union[str, Path], dpi: int = 150) -> Iterator[PageSource]:
    """
    Lazily render a PDF one page at a time.

    Each yielded source renders its page only when loaded, so a broken page
    fails on its own. The sequence is finite and cannot be restarted without
    calling this again.

    Raises:
        FileNotFoundError: If the PDF doesn't exist
        DecodeFailure: If the page count cannot be read
    """
    pdf_path = Path(pdf_path)
    if not pdf_path.exists():
        raise FileNotFoundError(f"PDF file not found: {pdf_path}")

    try:
        page_count = get_pdf_page_count(pdf_path)
    except ImportError:
        raise
    except Exception as e:
        if "poppler" in str(e).lower():
            raise RuntimeError(
                "Poppler is not installed. Install with:\n"
                "  macOS: brew install poppler\n"
                "  Linux: sudo apt-get install poppler-utils"
            ) from e
        raise DecodeFailure(f"Failed to read PDF: {pdf_path}: {e}") from e

    logger.info(f"Rendering {page_count} PDF pages from {pdf_path} at {dpi} DPI")
    for page_number in range(1, page_count + 1):
        yield PageSource(
            label=f"{pdf_path.name} page {page_number}",
            load=lambda n=page_number: _render_pdf_page(pdf_path, n, dpi)
        )


# ============================================================================
# Image Folders
# ============================================================================

def iter_folder_images(
    folder_path: Union[str, Path],
    extensions: tuple = IMAGE_EXTENSIONS
) -> Iterator[PageSource]:
    """Yield one lazily-decoded source per image file, sorted by name."""
    folder_path = Path(folder_path)
    if not folder_path.is_dir():
        raise NotADirectoryError(f"Not a directory: {folder_path}")

    image_files = sorted(
        f for f in folder_path.iterdir()
        if f.suffix.lower() in extensions
    )
    logger.info(f"Found {len(image_files)} images in {folder_path}")

    for img_path in image_files:
        yield PageSource(label=img_path.name, load=lambda p=img_path: load_image(p))


def detect_input_type(input_path: Union[str, Path]) -> str:
    """
    Detect the type of input file or directory.

    Returns:
        One of: 'pdf', 'image', 'image_folder', 'unknown'
    """
    input_path = Path(input_path)

    if input_path.is_dir():
        has_images = any(
            f.suffix.lower() in IMAGE_EXTENSIONS
            for f in input_path.iterdir()
        )
        return 'image_folder' if has_images else 'unknown'

    if not input_path.exists():
        return 'unknown'

    suffix = input_path.suffix.lower()
    if suffix == '.pdf':
        return 'pdf'
    elif suffix in IMAGE_EXTENSIONS:
        return 'image'

    return 'unknown'


# ============================================================================
# JSON Serialization
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that writes bytes as base64 and paths as strings."""

    def default(self, obj):
        if isinstance(obj, (bytes, bytearray)):
            return base64.b64encode(bytes(obj)).decode("ascii")
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


def save_json(
    data: Any,
    output_path: Union[str, Path],
    indent: int = 2
) -> Path:
    """Save data to a JSON file, creating parent directories."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=False, cls=EnhancedJSONEncoder)

    logger.debug(f"Saved JSON: {output_path}")
    return output_path


def load_json(json_path: Union[str, Path]) -> Any:
    json_path = Path(json_path)
    if not json_path.exists():
        raise FileNotFoundError(f"JSON file not found: {json_path}")

    with open(json_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def ensure_dir(path: Union[str, Path]) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
