"""Tests for distance transforms, dilation, blur, tracing and stroking."""

import math

import numpy as np
from PIL import Image, ImageDraw

from bmfontgen.morphology import (
    blur,
    blur_extent,
    dilate,
    distances_to,
    expand,
    from_values,
    signed_distances,
    stroke,
    threshold,
    trace_boundaries,
    zigzag,
)
from bmfontgen.schema import JoinStyle


def _square(size=12, inner=(4, 4, 7, 7)):
    img = Image.new("L", (size, size), 0)
    ImageDraw.Draw(img).rectangle(inner, fill=255)
    return img


def _centre_mask(size=5):
    mask = np.zeros((size, size), dtype=bool)
    mask[size // 2, size // 2] = True
    return mask


class TestBasics:
    def test_threshold(self):
        img = from_values(np.array([[0.0, 0.49, 0.51, 1.0]]))
        assert img.size == (4, 1)
        assert threshold(img, 128).tolist() == [[False, False, True, True]]

    def test_from_values_clamps(self):
        img = from_values(np.array([[-1.0, 2.0, -np.inf, np.inf]]))
        assert list(img.tobytes()) == [0, 255, 0, 255]

    def test_from_values_empty(self):
        assert from_values(np.zeros((0, 3))).size == (3, 0)

    def test_expand(self):
        img = Image.new("L", (2, 2), 255)
        grown = expand(img, 1, 2, 3, 4)
        assert grown.size == (6, 8)
        assert grown.getpixel((0, 0)) == 0
        assert grown.getpixel((1, 2)) == 255

    def test_expand_empty(self):
        assert expand(Image.new("L", (0, 0)), 1, 1, 1, 1).size == (2, 2)


class TestDistances:
    def test_euclidean_single_point(self):
        d = distances_to(_centre_mask(), JoinStyle.ROUND)
        assert d[2, 2] == 0
        assert d[0, 2] == 2
        assert math.isclose(d[0, 0], math.sqrt(8))

    def test_chessboard(self):
        d = distances_to(_centre_mask(), JoinStyle.MITER)
        assert d[0, 0] == 2
        assert d[0, 2] == 2

    def test_octagonal(self):
        d = distances_to(_centre_mask(), JoinStyle.BEVEL)
        assert d[0, 2] == 2
        assert math.isclose(d[0, 0], 2 + 2 / 3)
        assert math.isclose(d[0, 1], 2 + 1 / 3)

    def test_signed_sign(self):
        values = signed_distances(threshold(_square(), 128))
        assert values.shape == (12, 12)
        assert values[5, 5] > 0
        assert values[0, 0] < 0

    def test_signed_step(self):
        values = signed_distances(threshold(_square(24, (8, 8, 15, 15)), 128), step=2)
        assert values.shape == (12, 12)
        # Distances are expressed in output pixels
        assert values[0, 0] < -4

    def test_signed_edge_is_half_pixel(self):
        values = signed_distances(threshold(_square(), 128))
        assert values[4, 5] == 0.5
        assert values[3, 5] == -0.5

    def test_signed_without_ink(self):
        values = signed_distances(np.zeros((6, 6), dtype=bool), step=2)
        assert values.shape == (3, 3)
        assert np.all(values == -np.inf)


class TestDilate:
    def test_zero_radius_is_copy(self):
        img = _square()
        assert dilate(img, 0, JoinStyle.ROUND, 128).tobytes() == img.tobytes()

    def test_grows_by_radius(self):
        grown = dilate(_square(), 2, JoinStyle.ROUND, 128)
        assert grown.getpixel((2, 5)) == 255
        assert grown.getpixel((0, 5)) == 0

    def test_never_shrinks(self):
        img = _square()
        grown = dilate(img, 1.5, JoinStyle.BEVEL, 128)
        assert np.all(np.asarray(grown) >= np.asarray(img))

    def test_join_styles_differ_at_corners(self):
        img = _square(14, (5, 5, 8, 8))
        miter = dilate(img, 3, JoinStyle.MITER, 128)
        round_ = dilate(img, 3, JoinStyle.ROUND, 128)
        bevel = dilate(img, 3, JoinStyle.BEVEL, 128)
        corner = (2, 2)
        assert miter.getpixel(corner) == 255
        assert round_.getpixel(corner) < miter.getpixel(corner)
        assert bevel.getpixel(corner) < miter.getpixel(corner)

    def test_large_glyph(self):
        img = _square(256, (40, 40, 215, 215))
        grown = dilate(img, 8, JoinStyle.ROUND, 128)
        assert grown.getpixel((32, 128)) == 255
        assert grown.getpixel((30, 128)) == 0


class TestBlur:
    def test_no_blur(self):
        img = _square()
        assert blur(img, 1, 3) is img
        assert blur(img, 5, 0) is img
        assert blur_extent(0, 2) == 0

    def test_extent(self):
        assert blur_extent(3, 1) == 1
        assert blur_extent(5, 2) == 4

    def test_spreads(self):
        blurred = blur(_square(), 3, 1)
        assert blurred.getpixel((3, 5)) > 0


class TestTrace:
    def test_square_boundary(self):
        contours = trace_boundaries(threshold(_square(), 128))
        assert len(contours) == 1
        xs = [x for x, _ in contours[0]]
        ys = [y for _, y in contours[0]]
        assert min(xs) == 4.5 and max(xs) == 7.5
        assert min(ys) == 4.5 and max(ys) == 7.5

    def test_two_regions(self):
        img = Image.new("L", (10, 4), 0)
        draw = ImageDraw.Draw(img)
        draw.rectangle((0, 0, 2, 2), fill=255)
        draw.rectangle((6, 0, 8, 2), fill=255)
        contours = trace_boundaries(threshold(img, 128))
        assert len(contours) == 2
        assert contours[0][0] == (0.5, 0.5)
        assert contours[1][0] == (6.5, 0.5)

    def test_diagonal_pixels_are_one_region(self):
        mask = np.eye(3, dtype=bool)
        assert len(trace_boundaries(mask)) == 1

    def test_single_pixel(self):
        assert trace_boundaries(_centre_mask(3)) == [[(1.5, 1.5)]]

    def test_empty(self):
        assert trace_boundaries(np.zeros((4, 4), dtype=bool)) == []


class TestZigzag:
    def test_even_vertex_count(self):
        square = [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)]
        line = zigzag(square, 3.0, 1.0)
        assert len(line) % 2 == 0
        assert len(line) == round(40 / 1.5) + round(40 / 1.5) % 2

    def test_alternates_sides(self):
        line = zigzag([(0.0, 0.0), (20.0, 0.0), (20.0, 0.001), (0.0, 0.001)], 4.0, 1.0)
        top = [y for _, y in line[:4]]
        assert top[0] * top[1] < 0

    def test_zero_amplitude_stays_on_path(self):
        line = zigzag([(0.0, 0.0), (8.0, 0.0), (8.0, 8.0), (0.0, 8.0)], 2.0, 0.0)
        for x, y in line:
            assert math.isclose(x, 0) or math.isclose(x, 8) or math.isclose(y, 0) or math.isclose(y, 8)


class TestStroke:
    def test_draws_along_path(self):
        square = [(3.0, 3.0), (13.0, 3.0), (13.0, 13.0), (3.0, 13.0)]
        img = stroke([square], 2.0, JoinStyle.ROUND, (16, 16))
        assert img.size == (16, 16)
        assert img.getpixel((8, 3)) > 200
        assert img.getpixel((8, 8)) == 0

    def test_miter_fills_corner(self):
        square = [(4.0, 4.0), (12.0, 4.0), (12.0, 12.0), (4.0, 12.0)]
        miter = stroke([square], 4.0, JoinStyle.MITER, (16, 16))
        bevel = stroke([square], 4.0, JoinStyle.BEVEL, (16, 16))
        assert miter.getpixel((2, 2)) > bevel.getpixel((2, 2))
