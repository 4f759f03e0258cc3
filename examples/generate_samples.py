#!/usr/bin/env python
"""
Generate synthetic document photos for trying out the scanner.

This script creates:
- A text page photographed at an angle on a dark desk
- A flat page under uneven lighting (for the adaptive threshold filter)
- A receipt on a light background with low edge contrast

Usage:
    python examples/generate_samples.py
    docscan --input examples/sample_photos/skewed_page.png --output ./scans
"""

import numpy as np
from pathlib import Path


def create_text_page(width: int = 850, height: int = 1100):
    """Create a flat white page with a title and paragraph lines."""
    import cv2

    img = np.ones((height, width, 3), dtype=np.uint8) * 255

    cv2.putText(img, "Quarterly Report", (200, 80),
                cv2.FONT_HERSHEY_DUPLEX, 1.5, (0, 0, 0), 2)

    y = 160
    for i in range(20):
        cv2.putText(img, f"Line {i + 1}: revenue, costs and notes for the period.",
                    (50, y), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 0, 0), 1)
        y += 32

    # Signature box
    cv2.rectangle(img, (500, 900), (780, 1020), (0, 0, 0), 1)
    cv2.putText(img, "Signed", (520, 1000), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 0, 0), 1)

    return img


def photograph(page, corners, canvas_size, background):
    """Warp a flat page onto the given corners of a canvas."""
    import cv2

    h, w = page.shape[:2]
    src = np.float32([[0, 0], [w, 0], [w, h], [0, h]])
    dst = np.float32(corners)
    matrix = cv2.getPerspectiveTransform(src, dst)
    return cv2.warpPerspective(page, matrix, canvas_size, borderValue=background)


def create_skewed_photo():
    """Text page shot at an angle on a dark desk."""
    page = create_text_page()
    corners = [[160, 110], [930, 170], [980, 1290], [110, 1240]]
    return photograph(page, corners, (1100, 1400), (40, 35, 30))


def create_uneven_lighting_page():
    """Flat page with a shadow falling across one side."""
    page = create_text_page().astype(np.float32)
    h, w = page.shape[:2]

    # Brightness falls from 100% on the right to 45% on the left
    ramp = np.linspace(0.45, 1.0, w, dtype=np.float32)
    shaded = page * ramp[np.newaxis, :, np.newaxis]
    return np.clip(shaded, 0, 255).astype(np.uint8)


def create_receipt_photo():
    """Narrow receipt on a light gray table, slightly rotated."""
    import cv2

    receipt = np.ones((900, 380, 3), dtype=np.uint8) * 250
    y = 60
    for item, price in [("Coffee", "3.50"), ("Bagel", "2.75"), ("Juice", "4.10"), ("Total", "10.35")]:
        cv2.putText(receipt, item, (30, y), cv2.FONT_HERSHEY_SIMPLEX, 0.8, (30, 30, 30), 2)
        cv2.putText(receipt, price, (260, y), cv2.FONT_HERSHEY_SIMPLEX, 0.8, (30, 30, 30), 2)
        y += 60

    corners = [[330, 90], [700, 140], [610, 1010], [240, 960]]
    return photograph(receipt, corners, (1000, 1100), (170, 170, 165))


def main():
    import cv2

    samples_dir = Path(__file__).parent / "sample_photos"
    samples_dir.mkdir(exist_ok=True)

    samples = [
        ("skewed_page", create_skewed_photo()),
        ("uneven_lighting", create_uneven_lighting_page()),
        ("receipt", create_receipt_photo()),
    ]

    for name, img in samples:
        img_path = samples_dir / f"{name}.png"
        cv2.imwrite(str(img_path), img)
        print(f"Created: {img_path}")

    print("\nSample generation complete!")


if __name__ == "__main__":
    main()
