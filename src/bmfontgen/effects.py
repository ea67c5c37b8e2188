"""Ordered effect compositing: coverage bitmap in, RGBA glyph out.

Effects are layered bottom to top in list order with standard "over"
compositing, except shadows: every shadow layer goes beneath all other
layers wherever it appears in the list.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

from PIL import Image, ImageChops

from bmfontgen.config import OUTLINE_THRESHOLD
from bmfontgen.morphology import (
    blur,
    blur_extent,
    dilate,
    expand,
    from_values,
    signed_distances,
    stroke,
    threshold,
    trace_boundaries,
    zigzag,
)
from bmfontgen.rasterizer import GlyphRaster
from bmfontgen.schema import (
    BLACK,
    Color,
    ColorEffect,
    DistanceFieldEffect,
    EffectSpec,
    GradientEffect,
    OutlineEffect,
    ShadowEffect,
    ZigzagEffect,
)

logger = logging.getLogger(__name__)

DEFAULT_EFFECTS: tuple[EffectSpec, ...] = (ColorEffect(color=BLACK),)


@dataclass
class CompositedGlyph:
    """Final RGBA pixels of one glyph and its placement metrics."""

    codepoint: int
    image: Image.Image
    xoffset: int
    yoffset: int
    xadvance: int

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0


@dataclass(frozen=True)
class Growth:
    """Pixels an effect adds on each side of the coverage box."""

    left: int = 0
    top: int = 0
    right: int = 0
    bottom: int = 0

    def union(self, other: Growth) -> Growth:
        return Growth(
            max(self.left, other.left),
            max(self.top, other.top),
            max(self.right, other.right),
            max(self.bottom, other.bottom),
        )


def effect_growth(effect: EffectSpec) -> Growth:
    """How far one effect can draw outside the raw coverage box."""
    if isinstance(effect, OutlineEffect):
        n = math.ceil(effect.width)
        return Growth(n, n, n, n)
    if isinstance(effect, ShadowEffect):
        r = blur_extent(effect.blur_kernel_size, effect.blur_passes)
        dx, dy = effect.x_distance, effect.y_distance
        return Growth(r + max(0, -dx), r + max(0, -dy), r + max(0, dx), r + max(0, dy))
    if isinstance(effect, DistanceFieldEffect):
        n = math.ceil(effect.spread)
        return Growth(n, n, n, n)
    if isinstance(effect, ZigzagEffect):
        n = math.ceil(effect.width / 2 + effect.amplitude)
        return Growth(n, n, n, n)
    return Growth()


def total_growth(effects: Sequence[EffectSpec]) -> Growth:
    growth = Growth()
    for effect in effects:
        growth = growth.union(effect_growth(effect))
    return growth


# -- Layers -----------------------------------------------------------------


def _gamma_alpha(coverage: Image.Image, gamma: float) -> Image.Image:
    """Map coverage to alpha as ``coverage ** (1 / gamma)``."""
    if gamma == 1.0:
        return coverage
    lut = [round(255 * (i / 255) ** (1 / gamma)) for i in range(256)]
    return coverage.point(lut)


def _scale_alpha(alpha: Image.Image, factor: float) -> Image.Image:
    if factor >= 1.0:
        return alpha
    lut = [round(i * factor) for i in range(256)]
    return alpha.point(lut)


def _tint(alpha: Image.Image, color: Color, opacity: float = 1.0) -> Image.Image:
    """Solid ``color`` layer whose alpha is ``alpha`` x color alpha x opacity."""
    layer = Image.new("RGBA", alpha.size, color.rgb + (0,))
    layer.putalpha(_scale_alpha(alpha, color.a / 255 * opacity))
    return layer


def _color_layer(coverage: Image.Image, effect: ColorEffect, gamma: float) -> Image.Image:
    return _tint(_gamma_alpha(coverage, gamma), effect.color)


def _outline_layer(coverage: Image.Image, effect: OutlineEffect) -> Image.Image:
    grown = dilate(coverage, effect.width, effect.join, OUTLINE_THRESHOLD)
    return _tint(grown, effect.color)


def _shadow_layer(coverage: Image.Image, effect: ShadowEffect) -> Image.Image:
    shifted = Image.new("L", coverage.size, 0)
    shifted.paste(coverage, (effect.x_distance, effect.y_distance))
    blurred = blur(shifted, effect.blur_kernel_size, effect.blur_passes)
    return _tint(blurred, effect.color, effect.opacity)


def _gradient_position(row: int, top: int, height: int, effect: GradientEffect) -> float:
    span = height * effect.scale
    rel = (row + 0.5 - top - effect.offset) / span
    if effect.cyclic:
        phase = rel % 2.0
        return phase if phase <= 1.0 else 2.0 - phase
    return max(0.0, min(1.0, rel))


def _gradient_layer(
    coverage: Image.Image,
    box: tuple[int, int, int, int],
    effect: GradientEffect,
    gamma: float,
) -> Image.Image:
    top, height = box[1], box[3] - box[1]
    column = Image.new("RGBA", (1, coverage.height))
    start, end = effect.top_color.rgba, effect.bottom_color.rgba
    for y in range(coverage.height):
        t = _gradient_position(y, top, height, effect)
        column.putpixel((0, y), tuple(round(a + (b - a) * t) for a, b in zip(start, end)))

    layer = column.resize(coverage.size, Image.Resampling.NEAREST)
    alpha = ImageChops.multiply(layer.getchannel("A"), _gamma_alpha(coverage, gamma))
    layer.putalpha(alpha)
    return layer


def _distance_field_layer(coverage: Image.Image, effect: DistanceFieldEffect) -> Image.Image:
    """Alpha holds 0.5 + distance / (2 * spread), positive inside the glyph."""
    scale = effect.scale
    width, height = coverage.size
    hires = coverage
    if scale > 1:
        hires = coverage.resize((width * scale, height * scale), Image.Resampling.BILINEAR)
    mask = threshold(hires, OUTLINE_THRESHOLD)
    distances = signed_distances(mask, step=scale)
    alpha = from_values(0.5 + distances / (2 * effect.spread))

    layer = Image.new("RGBA", alpha.size, effect.color.rgb + (0,))
    layer.putalpha(alpha)
    return layer


def _zigzag_layer(
    coverage: Image.Image,
    raster: GlyphRaster,
    origin: tuple[int, int],
    effect: ZigzagEffect,
) -> Image.Image:
    if raster.contours:
        ox, oy = origin
        contours = [[(x + ox, y + oy) for x, y in c] for c in raster.contours]
    else:
        contours = trace_boundaries(threshold(coverage, OUTLINE_THRESHOLD))

    lines = [zigzag(c, effect.wavelength, effect.amplitude) for c in contours]
    mask = stroke(lines, effect.width, effect.join, coverage.size)
    return _tint(mask, effect.color)


# -- Pipeline ---------------------------------------------------------------


def composite(
    raster: GlyphRaster,
    effects: Sequence[EffectSpec],
    gamma: float = 1.0,
) -> CompositedGlyph:
    """Apply ``effects`` in order to one glyph's coverage.

    An empty effect list means an opaque black fill. The returned image is
    large enough for every effect's growth; offsets move by the left/top
    growth so the glyph's ink stays where the font puts it.
    """
    if raster.is_empty:
        return CompositedGlyph(
            raster.codepoint, Image.new("RGBA", (0, 0)), 0, 0, raster.xadvance
        )

    effects = tuple(effects) or DEFAULT_EFFECTS
    growth = total_growth(effects)
    coverage = expand(raster.coverage, growth.left, growth.top, growth.right, growth.bottom)
    box = (growth.left, growth.top, growth.left + raster.width, growth.top + raster.height)

    body = Image.new("RGBA", coverage.size, (0, 0, 0, 0))
    backdrop = Image.new("RGBA", coverage.size, (0, 0, 0, 0))

    for effect in effects:
        if isinstance(effect, ShadowEffect):
            backdrop = Image.alpha_composite(backdrop, _shadow_layer(coverage, effect))
        elif isinstance(effect, DistanceFieldEffect):
            body = _distance_field_layer(coverage, effect)
            coverage = body.getchannel("A")
        elif isinstance(effect, ColorEffect):
            body = Image.alpha_composite(body, _color_layer(coverage, effect, gamma))
        elif isinstance(effect, OutlineEffect):
            body = Image.alpha_composite(body, _outline_layer(coverage, effect))
        elif isinstance(effect, GradientEffect):
            body = Image.alpha_composite(body, _gradient_layer(coverage, box, effect, gamma))
        elif isinstance(effect, ZigzagEffect):
            origin = (growth.left, growth.top)
            body = Image.alpha_composite(body, _zigzag_layer(coverage, raster, origin, effect))
        else:
            msg = f"Unknown effect type: {type(effect).__name__}"
            raise TypeError(msg)

    image = Image.alpha_composite(backdrop, body)
    logger.debug(
        "U+%04X composited to %dx%d with %d effect(s)",
        raster.codepoint,
        image.width,
        image.height,
        len(effects),
    )
    return CompositedGlyph(
        codepoint=raster.codepoint,
        image=image,
        xoffset=raster.xoffset - growth.left,
        yoffset=raster.yoffset - growth.top,
        xadvance=raster.xadvance,
    )
