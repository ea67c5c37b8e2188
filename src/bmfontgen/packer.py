"""Shelf packing of composited glyphs onto fixed-size pages.

Glyphs go onto the current page tallest first. Each page is filled with
horizontal shelves: a glyph joins the first shelf with enough width left, a
new shelf opens below the last one when none has room, and a new page starts
when there is no height left for another shelf. Identical input always gives
identical page and slot assignments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from PIL import Image

from bmfontgen.config import GLYPH_SPACING
from bmfontgen.effects import CompositedGlyph
from bmfontgen.exceptions import GlyphTooLargeError
from bmfontgen.schema import Padding, PageSize

logger = logging.getLogger(__name__)


@dataclass
class Placement:
    """Where one glyph's cell (padding included) sits on its page."""

    glyph: CompositedGlyph
    page: int
    x: int
    y: int
    width: int
    height: int

    @property
    def codepoint(self) -> int:
        return self.glyph.codepoint


@dataclass
class Page:
    """One RGBA texture page and the glyphs placed on it."""

    index: int
    width: int
    height: int
    image: Image.Image = field(repr=False)
    placements: list[Placement] = field(default_factory=list)

    @property
    def codepoints(self) -> list[int]:
        return [p.codepoint for p in self.placements]


@dataclass
class _Shelf:
    y: int
    height: int
    cursor: int = 0


def _new_page(index: int, page_size: PageSize) -> Page:
    image = Image.new("RGBA", (page_size.width, page_size.height), (0, 0, 0, 0))
    return Page(index=index, width=page_size.width, height=page_size.height, image=image)


def cell_size(glyph: CompositedGlyph, padding: Padding) -> tuple[int, int]:
    """Glyph size plus padding on every side."""
    return (
        glyph.width + padding.left + padding.right,
        glyph.height + padding.top + padding.bottom,
    )


def pack(
    glyphs: Sequence[CompositedGlyph],
    page_size: PageSize,
    padding: Padding | None = None,
    *,
    size: int | None = None,
    spacing: int = GLYPH_SPACING,
) -> list[Page]:
    """Pack glyphs onto as many pages as needed.

    Glyphs without pixels (such as space) take no room; they are recorded on
    the first page with an empty cell so every glyph appears exactly once.

    Args:
        glyphs: Composited glyphs in character-set order.
        page_size: Page dimensions.
        padding: Extra empty pixels around each glyph inside its cell.
        size: Pixel size being packed, only used in error messages.
        spacing: Empty pixels between neighbouring cells.

    Raises:
        GlyphTooLargeError: If a padded glyph is wider or taller than a page.
    """
    padding = padding or Padding()

    cells: list[tuple[int, int]] = []
    for glyph in glyphs:
        width, height = cell_size(glyph, padding)
        if not glyph.is_empty and (width > page_size.width or height > page_size.height):
            raise GlyphTooLargeError(
                glyph.codepoint, size, width, height, page_size.width, page_size.height
            )
        cells.append((width, height))

    order = sorted(
        (i for i, glyph in enumerate(glyphs) if not glyph.is_empty),
        key=lambda i: (-cells[i][1], i),
    )

    pages = [_new_page(0, page_size)]
    shelves: list[_Shelf] = []

    for i in order:
        glyph = glyphs[i]
        width, height = cells[i]
        page = pages[-1]

        shelf = next(
            (s for s in shelves if s.height >= height and s.cursor + width <= page.width),
            None,
        )
        if shelf is None:
            y = shelves[-1].y + shelves[-1].height + spacing if shelves else 0
            if y + height > page.height:
                page = _new_page(len(pages), page_size)
                pages.append(page)
                shelves = []
                y = 0
            shelf = _Shelf(y=y, height=height)
            shelves.append(shelf)

        x = shelf.cursor
        shelf.cursor += width + spacing
        page.placements.append(Placement(glyph, page.index, x, shelf.y, width, height))
        page.image.paste(glyph.image, (x + padding.left, shelf.y + padding.top))

    for glyph in glyphs:
        if glyph.is_empty:
            pages[0].placements.append(Placement(glyph, 0, 0, 0, 0, 0))

    logger.info(
        "Packed %d glyph(s) onto %d %dx%d page(s)",
        len(glyphs),
        len(pages),
        page_size.width,
        page_size.height,
    )
    return pages
