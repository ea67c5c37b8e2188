"""Render a font's characters at one pixel size into coverage bitmaps.

FreeType (through Pillow's ImageFont) does the actual rasterization; fontTools
supplies what FreeType through Pillow does not expose: the cmap to detect
missing characters, glyph outlines for stroke effects, the face name and
kerning pairs.

Usage:
    result = rasterize("roboto.ttf", 32, parse_characters("abc"))
    result.glyphs[ord("a")].coverage  # 8-bit "L" image, 255 = fully inside
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path

from fontTools.pens.basePen import BasePen
from fontTools.ttLib import TTFont, TTLibError
from PIL import Image, ImageDraw, ImageFont

from bmfontgen.config import (
    BOLD_STROKE,
    CURVE_TOLERANCE,
    ITALIC_SHEAR,
    PLACEHOLDER_HEIGHT,
    PLACEHOLDER_WIDTH,
)
from bmfontgen.exceptions import FontLoadError, GlyphMissingError
from bmfontgen.filters import split_by_cmap
from bmfontgen.utils import face_name

logger = logging.getLogger(__name__)

Contour = list[tuple[float, float]]


@dataclass
class GlyphRaster:
    """Coverage bitmap and metrics of one character.

    Offsets are relative to the pen position on the top line of the font
    (ascender), matching the BMFont convention: ``yoffset`` grows downwards.
    ``contours`` are closed polylines in the bitmap's pixel coordinates.
    """

    codepoint: int
    coverage: Image.Image
    xoffset: int
    yoffset: int
    xadvance: int
    contours: list[Contour] | None = None
    missing: bool = False

    @property
    def width(self) -> int:
        return self.coverage.width

    @property
    def height(self) -> int:
        return self.coverage.height

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0


@dataclass
class RasterResult:
    """All glyphs of one font at one size plus the font-wide metrics."""

    face: str
    size: int
    line_height: int
    base: int
    glyphs: dict[int, GlyphRaster]
    kerning: dict[tuple[int, int], int] = field(default_factory=dict)
    missing: list[GlyphMissingError] = field(default_factory=list)


# -- Font loading -----------------------------------------------------------


def _candidate_names(input_font: str) -> list[str]:
    """Filenames to try for a logical font name such as 'Arial Black'."""
    names = [input_font]
    if not Path(input_font).suffix:
        compact = input_font.replace(" ", "")
        underscored = input_font.replace(" ", "_")
        for base in (compact, underscored, input_font):
            for ext in (".ttf", ".otf", ".ttc"):
                name = base + ext
                if name not in names:
                    names.append(name)
    return names


def open_font(input_font: str, size: int) -> ImageFont.FreeTypeFont:
    """Open a font file, or an installed font by logical name, at ``size`` px.

    Raises:
        FontLoadError: If no candidate can be opened and decoded.
    """
    if Path(input_font).is_file():
        candidates = [input_font]
    else:
        candidates = _candidate_names(input_font)

    last_error: Exception | None = None
    for candidate in candidates:
        try:
            return ImageFont.truetype(candidate, size=size)
        except (OSError, ValueError) as e:
            last_error = e

    if Path(input_font).is_file():
        reason = f"cannot decode font file ({last_error})"
    else:
        reason = "not a font file and no installed font by that name"
    raise FontLoadError(input_font, reason)


def resolve_font_path(input_font: str) -> str | None:
    """Filesystem path behind a font source, or None when it cannot be found."""
    if Path(input_font).is_file():
        return input_font
    try:
        pil_font = open_font(input_font, 12)
    except FontLoadError:
        return None
    path = getattr(pil_font, "path", None)
    if isinstance(path, (str, Path)) and Path(path).is_file():
        return str(path)
    return None


def _load_ttfont(path: str | None) -> TTFont | None:
    if path is None:
        return None
    try:
        return TTFont(path, fontNumber=0, lazy=True)
    except (TTLibError, OSError, AssertionError) as e:
        logger.info("fontTools cannot read %s (%s); no cmap, outlines or kerning", path, e)
        return None


# -- Outlines ---------------------------------------------------------------


def _flatten_quadratic(p0, p1, p2, tolerance: float) -> Contour:
    """Flatten a quadratic Bezier by recursive subdivision (endpoint excluded)."""
    mid_x = (p0[0] + 2 * p1[0] + p2[0]) / 4
    mid_y = (p0[1] + 2 * p1[1] + p2[1]) / 4
    chord_x = (p0[0] + p2[0]) / 2
    chord_y = (p0[1] + p2[1]) / 2
    if math.hypot(mid_x - chord_x, mid_y - chord_y) <= tolerance:
        return [p0]

    q1 = ((p0[0] + p1[0]) / 2, (p0[1] + p1[1]) / 2)
    r1 = ((p1[0] + p2[0]) / 2, (p1[1] + p2[1]) / 2)
    mid = (mid_x, mid_y)
    return _flatten_quadratic(p0, q1, mid, tolerance) + _flatten_quadratic(mid, r1, p2, tolerance)


def _flatten_cubic(p0, p1, p2, p3, tolerance: float) -> Contour:
    """Flatten a cubic Bezier with De Casteljau subdivision (endpoint excluded)."""
    mid_x = 0.125 * (p0[0] + 3 * p1[0] + 3 * p2[0] + p3[0])
    mid_y = 0.125 * (p0[1] + 3 * p1[1] + 3 * p2[1] + p3[1])
    chord_x = (p0[0] + p3[0]) / 2
    chord_y = (p0[1] + p3[1]) / 2
    if math.hypot(mid_x - chord_x, mid_y - chord_y) <= tolerance:
        return [p0]

    def half(a, b):
        return ((a[0] + b[0]) / 2, (a[1] + b[1]) / 2)

    q1, q2, q3 = half(p0, p1), half(p1, p2), half(p2, p3)
    r1, r2 = half(q1, q2), half(q2, q3)
    mid = half(r1, r2)
    return _flatten_cubic(p0, q1, r1, mid, tolerance) + _flatten_cubic(mid, r2, q3, p3, tolerance)


class _PolylinePen(BasePen):
    """Collects glyph contours as polylines in pixel space.

    Font units are scaled by ``scale`` and flipped so y grows downwards from
    the font's top line (``ascent`` pixels above the baseline).
    """

    def __init__(self, glyph_set, scale: float, ascent: int, tolerance: float) -> None:
        super().__init__(glyph_set)
        self.scale = scale
        self.ascent = ascent
        self.tolerance = tolerance
        self.contours: list[Contour] = []
        self._current: Contour = []

    def _map(self, pt) -> tuple[float, float]:
        return (pt[0] * self.scale, self.ascent - pt[1] * self.scale)

    def _moveTo(self, pt) -> None:
        self._current = [self._map(pt)]

    def _lineTo(self, pt) -> None:
        self._current.append(self._map(pt))

    def _curveToOne(self, pt1, pt2, pt3) -> None:
        start = self._current[-1]
        points = _flatten_cubic(start, self._map(pt1), self._map(pt2), self._map(pt3), self.tolerance)
        self._current.extend(points[1:])
        self._current.append(self._map(pt3))

    def _qCurveToOne(self, pt1, pt2) -> None:
        start = self._current[-1]
        points = _flatten_quadratic(start, self._map(pt1), self._map(pt2), self.tolerance)
        self._current.extend(points[1:])
        self._current.append(self._map(pt2))

    def _closePath(self) -> None:
        self._finish()

    def _endPath(self) -> None:
        self._finish()

    def _finish(self) -> None:
        if len(self._current) >= 2:
            if self._current[0] == self._current[-1]:
                self._current.pop()
            self.contours.append(self._current)
        self._current = []


def _glyph_contours(
    ttfont: TTFont,
    glyph_name: str,
    size: int,
    ascent: int,
) -> list[Contour] | None:
    try:
        glyph_set = ttfont.getGlyphSet()
        units_per_em = ttfont["head"].unitsPerEm
        pen = _PolylinePen(glyph_set, size / units_per_em, ascent, CURVE_TOLERANCE)
        glyph_set[glyph_name].draw(pen)
    except (KeyError, TTLibError) as e:
        logger.debug("No outline for glyph %s: %s", glyph_name, e)
        return None
    return pen.contours


def _shift_contours(contours: list[Contour] | None, dx: float, dy: float) -> list[Contour] | None:
    if contours is None:
        return None
    return [[(x + dx, y + dy) for x, y in contour] for contour in contours]


# -- Kerning ----------------------------------------------------------------


def _x_advance(value) -> int:
    if value is None:
        return 0
    return getattr(value, "XAdvance", 0) or 0


def _pair_lookups(gpos) -> list:
    """PairPos subtables of the lookups behind the 'kern' feature."""
    table = gpos.table
    if table.FeatureList is None or table.LookupList is None:
        return []
    indices: list[int] = []
    for record in table.FeatureList.FeatureRecord:
        if record.FeatureTag == "kern":
            for index in record.Feature.LookupListIndex:
                if index not in indices:
                    indices.append(index)

    subtables = []
    for index in sorted(indices):
        lookup = table.LookupList.Lookup[index]
        for subtable in lookup.SubTable:
            if lookup.LookupType == 9:
                if subtable.ExtensionLookupType != 2:
                    continue
                subtable = subtable.ExtSubTable
            elif lookup.LookupType != 2:
                continue
            subtables.append(subtable)
    return subtables


def _gpos_pairs(gpos, wanted: set[str]) -> dict[tuple[str, str], int]:
    pairs: dict[tuple[str, str], int] = {}
    for subtable in _pair_lookups(gpos):
        covered = subtable.Coverage.glyphs
        if subtable.Format == 1:
            for i, first in enumerate(covered):
                if first not in wanted:
                    continue
                for record in subtable.PairSet[i].PairValueRecord:
                    if record.SecondGlyph in wanted:
                        pairs.setdefault((first, record.SecondGlyph), _x_advance(record.Value1))
        elif subtable.Format == 2:
            class1 = subtable.ClassDef1.classDefs if subtable.ClassDef1 else {}
            class2 = subtable.ClassDef2.classDefs if subtable.ClassDef2 else {}
            for first in covered:
                if first not in wanted:
                    continue
                row = subtable.Class1Record[class1.get(first, 0)].Class2Record
                for second in wanted:
                    amount = _x_advance(row[class2.get(second, 0)].Value1)
                    if amount:
                        pairs.setdefault((first, second), amount)
    return pairs


def _kern_table_pairs(kern, wanted: set[str]) -> dict[tuple[str, str], int]:
    pairs: dict[tuple[str, str], int] = {}
    for table in getattr(kern, "kernTables", []):
        for (first, second), amount in getattr(table, "kernTable", {}).items():
            if first in wanted and second in wanted:
                pairs.setdefault((first, second), amount)
    return pairs


def read_kerning(
    ttfont: TTFont,
    cmap: dict[int, str],
    codepoints: list[int],
    size: int,
) -> dict[tuple[int, int], int]:
    """Pairwise kerning in pixels among the requested codepoints.

    GPOS 'kern' lookups win over the legacy kern table when both exist.
    Pairs that round to zero pixels are dropped.
    """
    by_glyph: dict[str, list[int]] = {}
    for codepoint in codepoints:
        name = cmap.get(codepoint)
        if name is not None:
            by_glyph.setdefault(name, []).append(codepoint)
    wanted = set(by_glyph)
    if not wanted:
        return {}

    if "GPOS" in ttfont:
        glyph_pairs = _gpos_pairs(ttfont["GPOS"], wanted)
    elif "kern" in ttfont:
        glyph_pairs = _kern_table_pairs(ttfont["kern"], wanted)
    else:
        return {}

    scale = size / ttfont["head"].unitsPerEm
    result: dict[tuple[int, int], int] = {}
    for (first, second), amount in glyph_pairs.items():
        pixels = round(amount * scale)
        if pixels == 0:
            continue
        for a in by_glyph[first]:
            for b in by_glyph[second]:
                result[(a, b)] = pixels
    return dict(sorted(result.items()))


# -- Rendering --------------------------------------------------------------


def _shear(
    coverage: Image.Image,
    baseline: int,
    shear: float,
) -> tuple[Image.Image, int]:
    """Slant a coverage bitmap around its baseline row.

    Returns (image, left_pad); rows above the baseline move right and rows
    below move left.
    """
    h = coverage.height
    left_pad = max(0, math.ceil(shear * (h - baseline)))
    right_pad = max(0, math.ceil(shear * baseline))
    width = coverage.width + left_pad + right_pad
    data = (1, shear, -left_pad - shear * baseline, 0, 1, 0)
    slanted = coverage.transform(
        (width, h), Image.Transform.AFFINE, data, resample=Image.Resampling.BILINEAR
    )
    return slanted, left_pad


def _render_char(
    pil_font: ImageFont.FreeTypeFont,
    codepoint: int,
    *,
    ascent: int,
    bold: bool,
    italic: bool,
    mono: bool,
) -> GlyphRaster:
    char = chr(codepoint)
    stroke = BOLD_STROKE if bold else 0
    left, top, right, bottom = pil_font.getbbox(char, stroke_width=stroke)
    xadvance = round(pil_font.getlength(char)) + stroke

    width, height = right - left, bottom - top
    if width <= 0 or height <= 0:
        return GlyphRaster(codepoint, Image.new("L", (0, 0)), 0, 0, xadvance)

    img = Image.new("L", (width, height), 0)
    draw = ImageDraw.Draw(img)
    if mono:
        draw.fontmode = "1"
    draw.text((-left, -top), char, font=pil_font, fill=255, stroke_width=stroke, stroke_fill=255)

    xoffset, yoffset = left, top
    if italic:
        img, left_pad = _shear(img, ascent - top, ITALIC_SHEAR)
        xoffset -= left_pad
    return GlyphRaster(codepoint, img, xoffset, yoffset, xadvance)


def _placeholder(codepoint: int, size: int, ascent: int) -> GlyphRaster:
    """Hollow box standing in for a character the font does not have."""
    width = max(2, round(size * PLACEHOLDER_WIDTH))
    height = max(2, min(round(size * PLACEHOLDER_HEIGHT), ascent or size))
    line = max(1, size // 16)
    img = Image.new("L", (width, height), 0)
    ImageDraw.Draw(img).rectangle((0, 0, width - 1, height - 1), outline=255, width=line)
    margin = max(1, size // 10)
    contour = [(0.5, 0.5), (width - 0.5, 0.5), (width - 0.5, height - 0.5), (0.5, height - 0.5)]
    return GlyphRaster(
        codepoint,
        img,
        xoffset=margin,
        yoffset=max(0, ascent - height),
        xadvance=width + 2 * margin,
        contours=[contour],
        missing=True,
    )


def rasterize(
    input_font: str,
    size: int,
    codepoints: tuple[int, ...] | list[int],
    *,
    bold: bool = False,
    italic: bool = False,
    mono: bool = False,
) -> RasterResult:
    """Rasterize the requested codepoints of a font at ``size`` pixels per em.

    Args:
        input_font: Font file path or installed font name.
        size: Pixel size (em height).
        codepoints: Characters to render, in order.
        bold: Synthesize bold with a 1px stroke.
        italic: Synthesize italic with a horizontal shear.
        mono: Render without anti-aliasing.

    Raises:
        FontLoadError: If the font cannot be opened.
    """
    pil_font = open_font(input_font, size)
    ascent, descent = pil_font.getmetrics()

    font_path = getattr(pil_font, "path", None)
    ttfont = _load_ttfont(str(font_path) if isinstance(font_path, (str, Path)) else None)
    try:
        cmap = ttfont.getBestCmap() if ttfont is not None else None
        present, missing_codepoints = split_by_cmap(codepoints, cmap)

        glyphs: dict[int, GlyphRaster] = {}
        for codepoint in present:
            glyph = _render_char(
                pil_font, codepoint, ascent=ascent, bold=bold, italic=italic, mono=mono
            )
            if ttfont is not None and cmap is not None and codepoint in cmap and not glyph.is_empty:
                contours = _glyph_contours(ttfont, cmap[codepoint], size, ascent)
                glyph.contours = _shift_contours(contours, -glyph.xoffset, -glyph.yoffset)
                if italic and glyph.contours is not None:
                    baseline = ascent - glyph.yoffset
                    glyph.contours = [
                        [(x + ITALIC_SHEAR * (baseline - y), y) for x, y in contour]
                        for contour in glyph.contours
                    ]
            logger.debug(
                "  U+%04X: %dx%d advance %d", codepoint, glyph.width, glyph.height, glyph.xadvance
            )
            glyphs[codepoint] = glyph

        missing: list[GlyphMissingError] = []
        for codepoint in missing_codepoints:
            error = GlyphMissingError(codepoint, input_font)
            logger.warning("%s; using placeholder", error)
            missing.append(error)
            glyphs[codepoint] = _placeholder(codepoint, size, ascent)

        kerning = read_kerning(ttfont, cmap, present, size) if ttfont is not None and cmap else {}
        fallback_name = pil_font.getname()[0] or Path(input_font).stem
        face = face_name(ttfont, fallback_name)
    finally:
        if ttfont is not None:
            ttfont.close()

    ordered = {cp: glyphs[cp] for cp in codepoints if cp in glyphs}
    return RasterResult(
        face=face,
        size=size,
        line_height=ascent + descent,
        base=ascent,
        glyphs=ordered,
        kerning=kerning,
        missing=missing,
    )
