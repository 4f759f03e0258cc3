#!/usr/bin/env python
"""
Command-line interface for the document scanner.

Usage:
    docscan --input <image|pdf|folder> --output <output_dir> [options]

Examples:
    # Scan a photo, detect the page and save it as a black & white JPEG
    docscan --input photo.jpg --output ./scans --filter adaptive-threshold

    # Turn a folder of photos into one PDF
    docscan --input ./photos --output ./scans --format pdf

    # Use known corners instead of detection
    docscan --input photo.jpg --output ./scans --corners 120,80,980,95,1010,1400,90,1380
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from . import __version__

logger = logging.getLogger("docscan")


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    from .filters import FilterKind

    parser = argparse.ArgumentParser(
        prog="docscan",
        description="Document Scanner - straighten, clean up and export photographed documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Scan a photo with automatic edge detection:
    docscan --input photo.jpg --output ./scans

  Export an imported PDF as print-ready black & white:
    docscan --input document.pdf --output ./scans --filter print-bw --format pdf

  Skip edge detection and keep the full frame:
    docscan --input photo.jpg --output ./scans --no-detect
        """
    )

    parser.add_argument(
        "--input", "-i",
        required=True,
        help="Input image, PDF file or folder of images"
    )

    parser.add_argument(
        "--output", "-o",
        required=True,
        help="Output directory for generated files"
    )

    parser.add_argument(
        "--filter", "-f",
        default=FilterKind.ORIGINAL.value,
        choices=FilterKind.names(),
        help="Filter applied to every page (default: original)"
    )

    parser.add_argument(
        "--format",
        default="image",
        choices=["image", "pdf"],
        help="Output format (default: image)"
    )

    parser.add_argument(
        "--name",
        default=None,
        help="Document name (default: input name, or Scan_<timestamp>)"
    )

    parser.add_argument(
        "--corners",
        default=None,
        help="Document corners as x1,y1,x2,y2,x3,y3,x4,y4 in source pixels (single image only)"
    )

    parser.add_argument(
        "--no-detect",
        action="store_true",
        help="Disable edge detection and perspective correction for images"
    )

    parser.add_argument(
        "--quality",
        type=int,
        default=None,
        help="JPEG quality 1-100 (default: 85)"
    )

    parser.add_argument(
        "--dpi",
        type=int,
        default=None,
        help="DPI for rendering PDF input and sizing PDF output (default: 150)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def parse_corners(value: str) -> List[tuple]:
    """Parse ``x1,y1,...,x4,y4`` into 4 (x, y) tuples."""
    try:
        numbers = [float(v) for v in value.replace(" ", "").split(",") if v]
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Corners must be numbers: {e}")
    if len(numbers) != 8:
        raise argparse.ArgumentTypeError(f"Expected 8 numbers for 4 corners, got {len(numbers)}")
    return list(zip(numbers[0::2], numbers[1::2]))


def collect_pages(args, config) -> Optional[list]:
    """Turn the input path into page sources, cropping single images."""
    from .io import detect_input_type, iter_pdf_pages, iter_folder_images, load_image
    from .pipeline import detect_and_rectify

    input_path = Path(args.input)
    input_type = detect_input_type(input_path)
    logger.info(f"Input type detected: {input_type}")

    if args.corners and input_type != "image":
        logger.warning(f"--corners only applies to a single image input; ignoring it for {input_type}")

    if input_type == "pdf":
        # Imported PDF pages are already flat; they skip cropping
        return iter_pdf_pages(input_path, dpi=config.export.pdf_dpi)

    if input_type == "image_folder":
        if args.no_detect:
            return iter_folder_images(input_path)
        return [_cropped(source, config) for source in iter_folder_images(input_path)]

    if input_type == "image":
        image = load_image(input_path)
        if args.no_detect and not args.corners:
            return [image]
        corners = parse_corners(args.corners) if args.corners else None
        result = detect_and_rectify(image, corners, config.detection)
        return [result.image]

    logger.error(f"Unsupported input: {input_path}")
    return None


def _cropped(source, config):
    """Wrap a folder page so it is detected and rectified when loaded."""
    from .io import PageSource
    from .pipeline import detect_and_rectify

    return PageSource(
        label=source.label,
        load=lambda: detect_and_rectify(source.load(), None, config.detection).image
    )


def run_scan(args) -> int:
    """Run the scanner."""
    from .config import get_config
    from .export import DocumentExporter
    from .io import ensure_dir, save_json
    from .session import PageSession

    start_time = time.time()

    config = get_config()
    if config.debug_mode and not args.quiet:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug logging enabled by DOCSCAN_DEBUG")
    if args.quality is not None:
        config.export.jpeg_quality = max(1, min(100, args.quality))
    if args.dpi is not None:
        config.export.pdf_dpi = args.dpi

    output_dir = ensure_dir(args.output)
    pages = collect_pages(args, config)
    if pages is None:
        return 1

    session = PageSession(config)
    report = session.load(pages, progress=lambda done, total: logger.debug(
        f"Loaded page {done}" + (f" of {total}" if total else "")
    ))
    session.set_filter(args.filter)

    input_path = Path(args.input)
    name = args.name or (input_path.stem if input_path.is_file() else None)
    exporter = DocumentExporter(output_dir, fmt=args.format, name=name, config=config.export)

    result = session.save(exporter)
    saved = result.artifact
    save_json(saved.to_dict(), output_dir / f"{Path(saved.name).stem}.json")

    elapsed = time.time() - start_time

    if not args.quiet:
        print("\n" + "=" * 60)
        print("SCAN COMPLETE")
        print("=" * 60)
        print(f"Source: {input_path}")
        print(f"Output: {output_dir}")
        print(f"Document: {saved.name} ({saved.kind})")
        print(f"Pages saved: {saved.page_count}")
        if report.failures:
            print(f"Pages skipped: {len(report.failures)}")
            for failure in report.failures:
                print(f"  - {failure.label}: {failure.error}")
        print(f"Filter: {result.filter.value}")
        print(f"Processing time: {elapsed:.2f}s")
        print("=" * 60)

    return 0


def main():
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    if args.corners:
        try:
            parse_corners(args.corners)
        except argparse.ArgumentTypeError as e:
            parser.error(str(e))

    try:
        exit_code = run_scan(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Scan failed: {e}")
        if args.verbose:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
