"""Shared fixtures for bmfontgen tests."""

import os

import pytest
from PIL import Image, ImageDraw

from bmfontgen.rasterizer import GlyphRaster, RasterResult
from bmfontgen.schema import load_font_unit

# -- Paths ------------------------------------------------------------------

# DejaVu Sans ships with most Linux distributions
SYSTEM_FONT = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"

HAS_SYSTEM_FONT = os.path.exists(SYSTEM_FONT)

skip_no_font = pytest.mark.skipif(not HAS_SYSTEM_FONT, reason="DejaVu Sans not found")


# -- Synthetic glyphs -------------------------------------------------------


def make_square(codepoint=65, size=6, margin=0, xadvance=None):
    """A glyph whose coverage is a filled square, optionally inside a blank margin."""
    total = size + 2 * margin
    img = Image.new("L", (total, total), 0)
    if size:
        ImageDraw.Draw(img).rectangle(
            (margin, margin, margin + size - 1, margin + size - 1), fill=255
        )
    return GlyphRaster(
        codepoint=codepoint,
        coverage=img,
        xoffset=1,
        yoffset=2,
        xadvance=xadvance if xadvance is not None else total + 2,
    )


def make_space(codepoint=32, xadvance=4):
    return GlyphRaster(codepoint, Image.new("L", (0, 0)), 0, 0, xadvance)


def fake_raster(codepoints, size, *, missing=()):
    """A RasterResult with one square per codepoint, sized from the pixel size.

    Space gets an empty glyph like a real font would.
    """
    glyphs = {}
    for i, cp in enumerate(codepoints):
        if cp == 32:
            glyphs[cp] = make_space(cp, xadvance=size // 3)
        else:
            glyphs[cp] = make_square(cp, size=max(1, size // 2 + i % 3))
    return RasterResult(
        face="Fake Sans",
        size=size,
        line_height=size + size // 4,
        base=size,
        glyphs=glyphs,
        kerning={},
        missing=list(missing),
    )


class FakeRasterizer:
    """Records every call and returns squares instead of font glyphs."""

    def __init__(self, fail_for=()):
        self.calls = []
        self.fail_for = set(fail_for)

    def __call__(self, input_font, size, codepoints, **style):
        from bmfontgen.exceptions import FontLoadError

        self.calls.append((input_font, size))
        if input_font in self.fail_for:
            raise FontLoadError(input_font, "test failure")
        return fake_raster(codepoints, size)


# -- Fixtures ---------------------------------------------------------------


@pytest.fixture()
def square_glyph():
    """A 6x6 solid square glyph for 'A'."""
    return make_square()


@pytest.fixture()
def fake_rasterizer():
    return FakeRasterizer()


@pytest.fixture()
def font_file(tmp_path):
    """A stand-in font file; its bytes are part of the fingerprint."""
    path = tmp_path / "fake.ttf"
    path.write_bytes(b"not really a font")
    return path


@pytest.fixture()
def unit_data(tmp_path, font_file):
    """Raw dict of a small font unit writing into tmp_path/out."""
    return {
        "name": "fake",
        "inputFont": str(font_file),
        "outputFile": str(tmp_path / "out" / "fake.fnt"),
        "characters": "AB ",
        "sizes": [8, 16],
    }


@pytest.fixture()
def font_unit(unit_data):
    return load_font_unit(unit_data)
