"""
Tests for the filter bank.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def naive_adaptive_threshold(rgb, window=15, c=10):
    """Reference per-window loop over the clipped neighbourhood."""
    gray = rgb.astype(np.int64).sum(axis=2) // 3
    h, w = gray.shape
    half = window // 2
    out = np.zeros((h, w), dtype=np.uint8)
    for y in range(h):
        for x in range(w):
            region = gray[max(0, y - half):min(h, y + half + 1), max(0, x - half):min(w, x + half + 1)]
            mean = region.sum() / region.size
            out[y, x] = 0 if gray[y, x] < mean - c else 255
    return out


class TestFilters:
    """Test individual filter transforms."""

    @pytest.fixture
    def photo(self):
        """A random RGBA image with non-trivial alpha."""
        from docscan.pixels import PixelBuffer

        rng = np.random.default_rng(42)
        pixels = rng.integers(0, 256, size=(37, 53, 4), dtype=np.uint8)
        return PixelBuffer(53, 37, pixels)

    @pytest.fixture
    def text_page(self):
        """A light page with dark text-like strokes and a lighting gradient."""
        from docscan.pixels import PixelBuffer

        h, w = 120, 160
        shade = np.linspace(150, 250, w).astype(np.uint8)
        gray = np.tile(shade, (h, 1))
        gray[30:34, 20:140] = 40
        gray[60:64, 20:120] = 40
        gray[90:94, 20:150] = 40
        return PixelBuffer.from_array(gray)

    def pixel(self, rgb):
        from docscan.pixels import PixelBuffer

        return PixelBuffer.from_array(np.array([[rgb]], dtype=np.uint8))

    def test_original_is_identical_copy(self, photo):
        from docscan.filters import apply, FilterKind

        result = apply(photo, FilterKind.ORIGINAL)

        assert result.equals(photo)
        assert result.pixels is not photo.pixels

    def test_filters_never_modify_original(self, photo):
        from docscan.filters import apply, FilterKind

        snapshot = photo.pixels.copy()
        for kind in FilterKind:
            apply(photo, kind)

        np.testing.assert_array_equal(photo.pixels, snapshot)

    def test_no_compounding_between_filters(self, photo):
        """Switching A then B gives the same as applying B directly."""
        from docscan.filters import apply, FilterKind

        for first in FilterKind:
            for second in FilterKind:
                apply(photo, first)
                switched = apply(photo, second)
                direct = apply(photo, second)
                assert switched.equals(direct), (first, second)

    def test_every_kind_preserves_size_and_alpha(self, photo):
        from docscan.filters import apply, FilterKind

        for kind in FilterKind:
            result = apply(photo, kind)
            assert (result.width, result.height) == (photo.width, photo.height)
            np.testing.assert_array_equal(result.alpha, photo.alpha)

    def test_grayscale(self, photo):
        from docscan.filters import apply, FilterKind

        result = apply(photo, FilterKind.GRAYSCALE)

        r, g, b = (result.pixels[:, :, i] for i in range(3))
        np.testing.assert_array_equal(r, g)
        np.testing.assert_array_equal(g, b)
        expected = photo.rgb.astype(np.int32).sum(axis=2) // 3
        np.testing.assert_array_equal(r, expected)

    def test_grayscale_floors(self):
        from docscan.filters import apply, FilterKind

        result = apply(self.pixel((10, 20, 31)), FilterKind.GRAYSCALE)

        assert tuple(result.pixels[0, 0, :3]) == (20, 20, 20)

    def test_adaptive_threshold_is_binary(self, photo):
        from docscan.filters import apply, FilterKind

        result = apply(photo, FilterKind.ADAPTIVE_THRESHOLD)

        assert set(np.unique(result.rgb)) <= {0, 255}

    def test_adaptive_threshold_matches_naive_window(self, photo):
        """Summed-area table result equals the clipped-window loop, borders included."""
        from docscan.filters import apply, FilterKind

        result = apply(photo, FilterKind.ADAPTIVE_THRESHOLD)
        expected = naive_adaptive_threshold(photo.rgb)

        np.testing.assert_array_equal(result.pixels[:, :, 0], expected)

    def test_adaptive_threshold_small_image(self):
        """Images smaller than the window use whatever samples exist."""
        from docscan.filters import apply, FilterKind
        from docscan.pixels import PixelBuffer

        rng = np.random.default_rng(7)
        image = PixelBuffer(5, 3, rng.integers(0, 256, size=(3, 5, 4), dtype=np.uint8))

        result = apply(image, FilterKind.ADAPTIVE_THRESHOLD)

        np.testing.assert_array_equal(result.pixels[:, :, 0], naive_adaptive_threshold(image.rgb))

    def test_adaptive_threshold_uniform_is_white(self):
        from docscan.filters import apply, FilterKind
        from docscan.pixels import PixelBuffer

        result = apply(PixelBuffer.filled(40, 30, (90, 90, 90)), FilterKind.ADAPTIVE_THRESHOLD)

        assert np.all(result.rgb == 255)

    def test_adaptive_threshold_keeps_text_under_uneven_light(self, text_page):
        from docscan.filters import apply, FilterKind

        result = apply(text_page, FilterKind.ADAPTIVE_THRESHOLD)

        assert np.all(result.pixels[31:33, 25:135, 0] == 0)
        assert np.all(result.pixels[5:20, :, 0] == 255)

    def test_high_contrast(self):
        from docscan.filters import apply, FilterKind

        mid = apply(self.pixel((128, 128, 128)), FilterKind.HIGH_CONTRAST)
        dark = apply(self.pixel((0, 0, 0)), FilterKind.HIGH_CONTRAST)
        bright = apply(self.pixel((255, 255, 255)), FilterKind.HIGH_CONTRAST)

        assert tuple(mid.pixels[0, 0, :3]) == (108, 108, 108)
        assert tuple(dark.pixels[0, 0, :3]) == (0, 0, 0)
        assert tuple(bright.pixels[0, 0, :3]) == (237, 237, 237)

    def test_invert(self, photo):
        from docscan.filters import apply, FilterKind

        inverted = apply(photo, FilterKind.INVERT)

        np.testing.assert_array_equal(inverted.rgb, 255 - photo.rgb)
        assert apply(inverted, FilterKind.INVERT).equals(photo)

    def test_sepia(self):
        from docscan.filters import apply, FilterKind

        white = apply(self.pixel((255, 255, 255)), FilterKind.SEPIA)
        black = apply(self.pixel((0, 0, 0)), FilterKind.SEPIA)

        assert tuple(white.pixels[0, 0, :3]) == (255, 255, 239)
        assert tuple(black.pixels[0, 0, :3]) == (0, 0, 0)

    def test_brightness(self):
        from docscan.filters import apply, FilterKind

        result = apply(self.pixel((100, 220, 0)), FilterKind.BRIGHTNESS)

        assert tuple(result.pixels[0, 0, :3]) == (140, 255, 40)

    def test_vibrant(self):
        from docscan.filters import apply, FilterKind

        colorful = apply(self.pixel((100, 150, 200)), FilterKind.VIBRANT)
        gray = apply(self.pixel((90, 90, 90)), FilterKind.VIBRANT)
        extreme = apply(self.pixel((10, 128, 250)), FilterKind.VIBRANT)

        assert tuple(colorful.pixels[0, 0, :3]) == (75, 150, 225)
        assert tuple(gray.pixels[0, 0, :3]) == (90, 90, 90)
        r, _, b = extreme.pixels[0, 0, :3]
        assert r == 0 and b == 255

    def test_print_bw(self):
        from docscan.filters import apply, FilterKind

        for value in (0, 64, 128, 200, 255):
            result = apply(self.pixel((value, value, value)), FilterKind.PRINT_BW)
            expected = int(round(255 * (value / 255) ** 1.4))
            assert tuple(result.pixels[0, 0, :3]) == (expected,) * 3

    def test_print_bw_darkens_midtones(self, photo):
        from docscan.filters import apply, FilterKind, luminance

        result = apply(photo, FilterKind.PRINT_BW)

        assert np.all(result.pixels[:, :, 0] <= np.rint(luminance(photo)) + 1)

    def test_gamma_table(self):
        from docscan.filters import gamma_table

        table = gamma_table(1.4)

        assert table.shape == (256,)
        assert table[0] == 0 and table[255] == 255
        assert np.all(np.diff(table.astype(int)) >= 0)

    def test_custom_config(self):
        from docscan.config import FilterConfig
        from docscan.filters import apply, FilterKind

        result = apply(self.pixel((100, 100, 100)), FilterKind.BRIGHTNESS, FilterConfig(brightness_delta=-30))

        assert tuple(result.pixels[0, 0, :3]) == (70, 70, 70)


class TestFilterKind:
    """Test filter selection."""

    def test_from_name(self):
        from docscan.filters import FilterKind

        assert FilterKind.from_name("adaptive-threshold") is FilterKind.ADAPTIVE_THRESHOLD
        assert FilterKind.from_name("PRINT_BW") is FilterKind.PRINT_BW
        assert FilterKind.from_name(FilterKind.SEPIA) is FilterKind.SEPIA

    def test_unknown_name(self):
        from docscan.filters import FilterKind

        with pytest.raises(ValueError):
            FilterKind.from_name("posterize")

    def test_apply_accepts_name(self):
        from docscan.filters import apply
        from docscan.pixels import PixelBuffer

        image = PixelBuffer.filled(4, 4, (10, 20, 30))

        result = apply(image, "invert")

        assert tuple(result.pixels[0, 0, :3]) == (245, 235, 225)

    def test_names_cover_all_kinds(self):
        from docscan.filters import FilterKind

        assert len(FilterKind.names()) == len(FilterKind) == 9


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
