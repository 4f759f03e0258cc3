"""
Tests for document detection and perspective rectification.
"""

import itertools

import pytest
import numpy as np
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def white_page_on_black():
    """1000x1400 black frame with a white page spanning (100,100)-(900,1300)."""
    from docscan.pixels import PixelBuffer

    img = np.zeros((1400, 1000), dtype=np.uint8)
    img[100:1301, 100:901] = 255
    return PixelBuffer.from_array(img)


@pytest.fixture
def skewed_page():
    """A white page photographed at an angle, with a dark stripe near its top."""
    import cv2
    from docscan.pixels import PixelBuffer

    page = np.full((600, 400, 3), 255, dtype=np.uint8)
    page[60:90, 40:360] = (30, 30, 30)

    src = np.float32([[0, 0], [400, 0], [400, 600], [0, 600]])
    dst = np.float32([[150, 120], [620, 160], [660, 820], [110, 780]])
    matrix = cv2.getPerspectiveTransform(src, dst)
    photo = cv2.warpPerspective(page, matrix, (800, 950), borderValue=(20, 20, 20))
    return PixelBuffer.from_array(photo), dst


class TestOrdering:
    """Test corner canonicalization."""

    corners = [(110, 95), (905, 130), (880, 1290), (95, 1310)]

    def test_order_points(self):
        from docscan.rectify import order_points

        ordered = order_points(self.corners)

        assert [tuple(p) for p in ordered] == [(110, 95), (905, 130), (880, 1290), (95, 1310)]

    def test_all_permutations_agree(self):
        from docscan.rectify import order_points

        expected = order_points(self.corners)
        for permutation in itertools.permutations(self.corners):
            assert order_points(permutation) == expected

    def test_accepts_mappings(self):
        from docscan.rectify import order_points

        ordered = order_points([{"x": x, "y": y} for x, y in reversed(self.corners)])

        assert ordered[0] == (110, 95)

    def test_output_size(self):
        from docscan.pixels import Quad
        from docscan.rectify import output_size

        assert output_size(Quad.from_rect(100, 100, 900, 1300)) == (800, 1200)

    def test_output_size_uses_longer_edges(self):
        from docscan.rectify import order_points, output_size

        # Top edge 200, bottom edge 300; left edge 100, right edge ~141.4
        ordered = order_points([(0, 0), (200, 0), (300, 100), (0, 100)])

        assert output_size(ordered) == (300, 141)

    @pytest.mark.parametrize("count", [0, 3, 5])
    def test_wrong_point_count(self, count):
        from docscan.pixels import InvalidInput
        from docscan.rectify import order_points

        with pytest.raises(InvalidInput):
            order_points([(i, i * 2) for i in range(count)])


class TestHomography:
    """Test homography estimation."""

    def test_maps_corners(self):
        from docscan.rectify import compute_homography

        src = [(12, 30), (410, 55), (395, 620), (20, 580)]
        dst = [(0, 0), (400, 0), (400, 600), (0, 600)]

        matrix = compute_homography(src, dst)

        for (x, y), (u, v) in zip(src, dst):
            p = matrix @ np.array([x, y, 1.0])
            assert p[0] / p[2] == pytest.approx(u, abs=1e-6)
            assert p[1] / p[2] == pytest.approx(v, abs=1e-6)

    def test_identity(self):
        from docscan.rectify import compute_homography

        square = [(0, 0), (50, 0), (50, 50), (0, 50)]

        np.testing.assert_allclose(compute_homography(square, square), np.eye(3), atol=1e-9)

    def test_collinear_corners(self):
        from docscan.pixels import DegenerateGeometry
        from docscan.rectify import compute_homography

        with pytest.raises(DegenerateGeometry):
            compute_homography([(0, 0), (100, 0), (200, 0), (50, 100)],
                               [(0, 0), (100, 0), (100, 100), (0, 100)])


class TestRectify:
    """Test perspective rectification."""

    def test_identity_rectangle(self):
        from docscan.pixels import PixelBuffer, Quad
        from docscan.rectify import rectify

        rng = np.random.default_rng(3)
        image = PixelBuffer(60, 40, rng.integers(0, 256, size=(40, 60, 4), dtype=np.uint8))

        result = rectify(image, Quad.from_rect(0, 0, 60, 40))

        assert (result.width, result.height) == (60, 40)
        diff = np.abs(result.pixels.astype(int) - image.pixels.astype(int))
        assert diff.max() <= 1

    def test_white_page_scenario(self, white_page_on_black):
        from docscan.rectify import rectify

        corners = [(100, 100), (900, 100), (900, 1300), (100, 1300)]

        result = rectify(white_page_on_black, corners)

        assert (result.width, result.height) == (800, 1200)
        assert np.all(result.rgb == 255)

    def test_permutations_give_same_output(self, skewed_page):
        from docscan.rectify import rectify

        photo, corners = skewed_page
        corners = [tuple(c) for c in corners]
        reference = rectify(photo, corners)

        for permutation in itertools.permutations(corners):
            assert rectify(photo, permutation).equals(reference)

    def test_straightens_skewed_page(self, skewed_page):
        from docscan.rectify import rectify

        photo, corners = skewed_page

        result = rectify(photo, corners)

        # The page is mostly white and the stripe lands near the top
        h, w = result.height, result.width
        assert np.median(result.rgb) == 255
        stripe_row = int(75 / 600 * h)
        assert result.rgb[stripe_row, w // 2].max() < 100
        assert result.rgb[h // 2, w // 2].min() > 200

    def test_does_not_modify_source(self, skewed_page):
        from docscan.rectify import rectify

        photo, corners = skewed_page
        snapshot = photo.pixels.copy()

        rectify(photo, corners)

        np.testing.assert_array_equal(photo.pixels, snapshot)

    def test_invalid_corner_count(self, white_page_on_black):
        from docscan.pixels import InvalidInput
        from docscan.rectify import rectify

        with pytest.raises(InvalidInput):
            rectify(white_page_on_black, [(0, 0), (10, 0), (10, 10)])

    def test_coincident_corners(self, white_page_on_black):
        from docscan.pixels import DegenerateGeometry
        from docscan.rectify import rectify

        with pytest.raises(DegenerateGeometry):
            rectify(white_page_on_black, [(50, 50)] * 4)

    def test_collinear_corners(self, white_page_on_black):
        from docscan.pixels import DegenerateGeometry
        from docscan.rectify import rectify

        with pytest.raises(DegenerateGeometry):
            rectify(white_page_on_black, [(0, 0), (100, 0), (200, 0), (50, 100)])

    def test_non_finite_corners(self, white_page_on_black):
        from docscan.pixels import DegenerateGeometry
        from docscan.rectify import rectify

        with pytest.raises(DegenerateGeometry):
            rectify(white_page_on_black, [(0, 0), (100, 0), (100, float("nan")), (0, 100)])


class TestDetection:
    """Test document outline detection."""

    def assert_near(self, quad, expected, tolerance):
        from docscan.rectify import order_points

        found = order_points(quad)
        for point, (x, y) in zip(found, expected):
            assert abs(point.x - x) <= tolerance and abs(point.y - y) <= tolerance, (found, expected)

    def test_white_page_scenario(self, white_page_on_black):
        from docscan.detect import detect

        quad = detect(white_page_on_black)

        assert quad is not None
        self.assert_near(quad, [(100, 100), (900, 100), (900, 1300), (100, 1300)], tolerance=5)

    def test_detect_on_downscaled_copy(self, white_page_on_black):
        from docscan.config import DetectionConfig
        from docscan.detect import QuadDetector

        quad = QuadDetector(DetectionConfig(max_dimension=500)).detect(white_page_on_black)

        assert quad is not None
        self.assert_near(quad, [(100, 100), (900, 100), (900, 1300), (100, 1300)], tolerance=15)

    def test_skewed_page(self, skewed_page):
        from docscan.detect import detect

        photo, corners = skewed_page

        quad = detect(photo)

        assert quad is not None
        self.assert_near(quad, [(150, 120), (620, 160), (660, 820), (110, 780)], tolerance=10)

    @pytest.mark.parametrize("color", [(0, 0, 0), (255, 255, 255), (120, 200, 40)])
    def test_uniform_image_returns_none(self, color):
        from docscan.detect import detect
        from docscan.pixels import PixelBuffer

        assert detect(PixelBuffer.filled(300, 200, color)) is None

    def test_round_blob_returns_none(self):
        import cv2
        from docscan.detect import detect
        from docscan.pixels import PixelBuffer

        img = np.zeros((400, 400), dtype=np.uint8)
        cv2.circle(img, (200, 200), 120, 255, -1)

        assert detect(PixelBuffer.from_array(img)) is None

    def test_empty_image(self):
        from docscan.detect import detect
        from docscan.pixels import PixelBuffer

        empty = PixelBuffer(0, 0, np.zeros((0, 0, 4), dtype=np.uint8))

        assert detect(empty) is None

    def test_default_corners(self):
        from docscan.detect import default_corners

        quad = default_corners(400, 300, padding=30)

        assert [tuple(p) for p in quad] == [(30, 30), (370, 30), (370, 270), (30, 270)]

    def test_default_corners_tiny_frame(self):
        from docscan.detect import default_corners

        quad = default_corners(40, 20, padding=30)

        assert quad[0] == (5, 5)
        assert quad[2] == (35, 15)


class TestPipeline:
    """Test detect-then-rectify with fallbacks."""

    def test_detected_page(self, white_page_on_black):
        from docscan.pipeline import detect_and_rectify

        result = detect_and_rectify(white_page_on_black)

        assert result.detected and result.rectified
        assert abs(result.image.width - 800) <= 10
        assert abs(result.image.height - 1200) <= 10

    def test_detection_miss_uses_padded_frame(self):
        from docscan.pipeline import detect_and_rectify
        from docscan.pixels import PixelBuffer

        result = detect_and_rectify(PixelBuffer.filled(300, 200, (200, 200, 200)))

        assert not result.detected
        assert result.rectified
        assert (result.image.width, result.image.height) == (240, 140)

    def test_user_corners_take_precedence(self, white_page_on_black):
        from docscan.pipeline import detect_and_rectify

        result = detect_and_rectify(white_page_on_black, [(0, 0), (500, 0), (500, 400), (0, 400)])

        assert not result.detected
        assert (result.image.width, result.image.height) == (500, 400)

    def test_degenerate_corners_keep_original(self, white_page_on_black):
        from docscan.pipeline import detect_and_rectify

        result = detect_and_rectify(white_page_on_black, [(10, 10), (20, 20), (30, 30), (40, 40)])

        assert not result.rectified
        assert result.image.equals(white_page_on_black)
        assert result.image.pixels is not white_page_on_black.pixels

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_corners_keep_original(self, bad):
        from docscan.pipeline import detect_and_rectify
        from docscan.pixels import PixelBuffer

        image = PixelBuffer.filled(50, 40, (120, 130, 140))

        result = detect_and_rectify(image, [(0, 0), (bad, 0), (50, 40), (0, 40)])

        assert not result.rectified
        assert result.image.equals(image)

    def test_malformed_corners_raise(self, white_page_on_black):
        from docscan.pixels import InvalidInput
        from docscan.pipeline import detect_and_rectify

        with pytest.raises(InvalidInput):
            detect_and_rectify(white_page_on_black, [(0, 0), (1, 1)])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
