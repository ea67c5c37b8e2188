"""Bitmap operations behind the effects: dilation, distance transforms,
blurring and polyline stroking.

Masks are boolean numpy arrays indexed ``[y, x]``; distance transforms and
connected components come from ``scipy.ndimage``. Images go in and come out
as Pillow "L" images.
"""

from __future__ import annotations

import math

import numpy as np
from PIL import Image, ImageDraw, ImageFilter
from scipy import ndimage

from bmfontgen.config import MITER_LIMIT, STROKE_SUPERSAMPLE
from bmfontgen.schema import JoinStyle

Contour = list[tuple[float, float]]

# Clockwise neighbour offsets with y pointing down, starting east
_NEIGHBOURS = ((1, 0), (1, 1), (0, 1), (-1, 1), (-1, 0), (-1, -1), (0, -1), (1, -1))

_EIGHT_CONNECTED = np.ones((3, 3), dtype=bool)


def from_values(values: np.ndarray) -> Image.Image:
    """Build an "L" image from a 2D array of floats in [0, 1]."""
    data = np.clip(np.rint(np.asarray(values, dtype=np.float64) * 255), 0, 255)
    if data.size == 0:
        return Image.new("L", (data.shape[1], data.shape[0]), 0)
    return Image.fromarray(data.astype(np.uint8))


def threshold(img: Image.Image, cutoff: int) -> np.ndarray:
    """Binary mask of the pixels at or above ``cutoff``."""
    return np.asarray(img, dtype=np.uint8) >= cutoff


def expand(img: Image.Image, left: int, top: int, right: int, bottom: int) -> Image.Image:
    """Grow an image by transparent (zero) margins."""
    canvas = Image.new(img.mode, (img.width + left + right, img.height + top + bottom), 0)
    if img.width and img.height:
        canvas.paste(img, (left, top))
    return canvas


# -- Distance transforms ----------------------------------------------------


def distances_to(mask: np.ndarray, join: JoinStyle = JoinStyle.ROUND) -> np.ndarray:
    """Distance from every pixel to the nearest ``True`` pixel.

    ``round`` measures Euclidean distance, ``miter`` the chessboard metric
    (square growth) and ``bevel`` the octagonal chamfer metric with weights
    (1, 4/3), taken towards the Euclidean-nearest ink pixel.
    """
    background = ~mask
    if join is JoinStyle.ROUND:
        return ndimage.distance_transform_edt(background)
    if join is JoinStyle.MITER:
        return ndimage.distance_transform_cdt(background, metric="chessboard").astype(np.float64)

    _, (nearest_y, nearest_x) = ndimage.distance_transform_edt(background, return_indices=True)
    ys, xs = np.indices(mask.shape)
    dy = np.abs(ys - nearest_y)
    dx = np.abs(xs - nearest_x)
    return np.maximum(dx, dy) + np.minimum(dx, dy) / 3.0


def signed_distances(mask: np.ndarray, step: int = 1) -> np.ndarray:
    """Signed distance (positive inside) sampled every ``step`` pixels.

    Samples sit at the centre of each ``step`` x ``step`` block and distances
    are returned in units of blocks, so a mask rendered ``step`` times larger
    than the output yields distances in output pixels.
    """
    height, width = mask.shape
    rows = slice(step // 2, (height // step) * step, step)
    cols = slice(step // 2, (width // step) * step, step)
    sampled = mask[rows, cols]

    # Without any ink (or without any background) one side is unbounded
    if not mask.any():
        return np.full(sampled.shape, -np.inf)
    if mask.all():
        return np.full(sampled.shape, np.inf)

    to_outside = ndimage.distance_transform_edt(mask)[rows, cols]
    to_inside = ndimage.distance_transform_edt(~mask)[rows, cols]
    distance = np.where(sampled, to_outside - 0.5, -(to_inside - 0.5))
    return distance / step


# -- Dilation and blur ------------------------------------------------------


def dilate(coverage: Image.Image, radius: float, join: JoinStyle, cutoff: int) -> Image.Image:
    """Grow the thresholded coverage by ``radius`` pixels, anti-aliased at the rim.

    ``round`` grows by a Euclidean disc, ``miter`` by a square (corners stay
    sharp), ``bevel`` by an octagon (corners cut).
    """
    raw = np.asarray(coverage, dtype=np.uint8)
    mask = raw >= cutoff
    if radius <= 0 or not mask.any():
        return coverage.copy()

    grown = np.clip(radius + 1.0 - distances_to(mask, join), 0.0, 1.0)
    return from_values(np.maximum(raw / 255.0, grown))


def blur_extent(kernel_size: int, passes: int) -> int:
    """How far (in pixels) repeated box blurs spread ink outwards."""
    if kernel_size <= 1 or passes <= 0:
        return 0
    return passes * math.ceil((kernel_size - 1) / 2)


def blur(img: Image.Image, kernel_size: int, passes: int) -> Image.Image:
    """Apply ``passes`` box blurs, each spanning ``kernel_size`` pixels."""
    if kernel_size <= 1 or passes <= 0:
        return img
    radius = (kernel_size - 1) / 2
    for _ in range(passes):
        img = img.filter(ImageFilter.BoxBlur(radius))
    return img


# -- Outlines and strokes ---------------------------------------------------


def trace_boundaries(mask: np.ndarray) -> list[Contour]:
    """Outer boundary of every 8-connected region, as pixel-centre polylines.

    Moore-neighbour tracing; holes are not traced. Regions come in the
    row-major order of their first pixel.
    """
    labels, count = ndimage.label(mask, structure=_EIGHT_CONNECTED)
    contours: list[Contour] = []
    for index in range(1, count + 1):
        region = labels == index
        start = int(np.flatnonzero(region)[0])
        contours.append(_moore_trace(region, start))
    return contours


def _moore_trace(region: np.ndarray, start: int) -> Contour:
    height, width = region.shape

    def inside(x: int, y: int) -> bool:
        return 0 <= x < width and 0 <= y < height and bool(region[y, x])

    sx, sy = start % width, start // width
    points = [(sx + 0.5, sy + 0.5)]
    # The start is the first region pixel in row-major order, so west is empty
    x, y, back = sx, sy, 4
    first_move: tuple[int, int, int] | None = None
    for _ in range(4 * width * height + 4):
        found = None
        for k in range(1, 9):
            direction = (back + k) % 8
            dx, dy = _NEIGHBOURS[direction]
            if inside(x + dx, y + dy):
                found = direction
                break
        if found is None:
            break

        # Direction from the new pixel back to the last empty neighbour checked
        px, py = x + _NEIGHBOURS[(found - 1) % 8][0], y + _NEIGHBOURS[(found - 1) % 8][1]
        nx, ny = x + _NEIGHBOURS[found][0], y + _NEIGHBOURS[found][1]
        back = _NEIGHBOURS.index((px - nx, py - ny))

        move = (nx, ny, back)
        if first_move is None:
            first_move = move
        elif (x, y) == (sx, sy) and move == first_move:
            break
        x, y = nx, ny
        points.append((x + 0.5, y + 0.5))
    if len(points) > 1 and points[-1] == points[0]:
        points.pop()
    return points


def _unit(dx: float, dy: float) -> tuple[float, float] | None:
    length = math.hypot(dx, dy)
    if length < 1e-9:
        return None
    return (dx / length, dy / length)


def zigzag(contour: Contour, wavelength: float, amplitude: float) -> Contour:
    """Replace a closed polyline by a zigzag that follows it.

    Vertices are laid every half wavelength along the path and pushed
    alternately ``amplitude`` to either side; the vertex count is even so the
    closed line alternates all the way round.
    """
    if len(contour) < 2:
        return list(contour)

    segments = []
    total = 0.0
    for i, start in enumerate(contour):
        end = contour[(i + 1) % len(contour)]
        length = math.hypot(end[0] - start[0], end[1] - start[1])
        if length > 0:
            segments.append((start, end, length))
            total += length
    if total == 0:
        return list(contour)

    count = max(2, round(total / (wavelength / 2)))
    count += count % 2
    step = total / count

    points: Contour = []
    index, walked = 0, 0.0
    for i in range(count):
        target = i * step
        while index < len(segments) - 1 and walked + segments[index][2] < target:
            walked += segments[index][2]
            index += 1
        (x0, y0), (x1, y1), length = segments[index]
        t = (target - walked) / length
        nx, ny = -(y1 - y0) / length, (x1 - x0) / length
        side = amplitude if i % 2 == 0 else -amplitude
        points.append((x0 + (x1 - x0) * t + nx * side, y0 + (y1 - y0) * t + ny * side))
    return points


def _draw_join(draw, vertex, d1, d2, half: float, join: JoinStyle) -> None:
    vx, vy = vertex
    if join is JoinStyle.ROUND:
        draw.ellipse((vx - half, vy - half, vx + half, vy + half), fill=255)
        return

    n1 = (-d1[1], d1[0])
    n2 = (-d2[1], d2[0])
    # The outer side of the turn is opposite the direction we turn towards
    side = -1.0 if d1[0] * d2[1] - d1[1] * d2[0] > 0 else 1.0
    a = (vx + side * n1[0] * half, vy + side * n1[1] * half)
    b = (vx + side * n2[0] * half, vy + side * n2[1] * half)

    if join is JoinStyle.MITER:
        mid = _unit(n1[0] + n2[0], n1[1] + n2[1])
        if mid is not None:
            cos_half = mid[0] * n1[0] + mid[1] * n1[1]
            if cos_half > 1e-6 and 1.0 / cos_half <= MITER_LIMIT:
                length = half / cos_half
                tip = (vx + side * mid[0] * length, vy + side * mid[1] * length)
                draw.polygon([vertex, a, tip, b], fill=255)
                return
    draw.polygon([vertex, a, b], fill=255)


def stroke(
    contours: list[Contour],
    width: float,
    join: JoinStyle,
    size: tuple[int, int],
    supersample: int = STROKE_SUPERSAMPLE,
) -> Image.Image:
    """Stroke closed polylines ``width`` pixels wide into an "L" coverage image.

    Segments are drawn as quads and corners with the requested join, all at
    ``supersample`` times the resolution and box-filtered down.
    """
    big = Image.new("L", (size[0] * supersample, size[1] * supersample), 0)
    draw = ImageDraw.Draw(big)
    half = width * supersample / 2

    for contour in contours:
        pts = [(x * supersample, y * supersample) for x, y in contour]
        if len(pts) == 1:
            x, y = pts[0]
            draw.ellipse((x - half, y - half, x + half, y + half), fill=255)
            continue

        directions = []
        for i, start in enumerate(pts):
            end = pts[(i + 1) % len(pts)]
            directions.append(_unit(end[0] - start[0], end[1] - start[1]))

        for i, start in enumerate(pts):
            d = directions[i]
            if d is None:
                continue
            end = pts[(i + 1) % len(pts)]
            nx, ny = -d[1] * half, d[0] * half
            draw.polygon(
                [
                    (start[0] + nx, start[1] + ny),
                    (end[0] + nx, end[1] + ny),
                    (end[0] - nx, end[1] - ny),
                    (start[0] - nx, start[1] - ny),
                ],
                fill=255,
            )

        for i, vertex in enumerate(pts):
            d_in = directions[i - 1]
            d_out = directions[i]
            if d_in is None or d_out is None:
                continue
            _draw_join(draw, vertex, d_in, d_out, half, join)

    if supersample == 1:
        return big
    return big.resize(size, Image.Resampling.BOX)
