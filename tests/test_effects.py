"""Tests for effect growth and ordered compositing."""

from PIL import Image

from bmfontgen.effects import Growth, composite, effect_growth, total_growth
from bmfontgen.schema import (
    Color,
    ColorEffect,
    DistanceFieldEffect,
    GradientEffect,
    OutlineEffect,
    ShadowEffect,
    ZigzagEffect,
)
from tests.conftest import make_space, make_square

RED = Color(r=255, g=0, b=0)
BLUE = Color(r=0, g=0, b=255)


class TestGrowth:
    def test_color_adds_nothing(self):
        assert effect_growth(ColorEffect()) == Growth()

    def test_outline(self):
        assert effect_growth(OutlineEffect(width=2.5)) == Growth(3, 3, 3, 3)

    def test_shadow_offset_side(self):
        g = effect_growth(ShadowEffect(x_distance=3, y_distance=-2, blur_kernel_size=3))
        assert g == Growth(left=1, top=3, right=4, bottom=1)

    def test_union(self):
        g = total_growth([OutlineEffect(width=1), ShadowEffect(x_distance=4, y_distance=0)])
        assert g == Growth(1, 1, 4, 1)


class TestComposite:
    def test_default_is_opaque_black(self, square_glyph):
        glyph = composite(square_glyph, [])
        assert glyph.image.mode == "RGBA"
        assert glyph.image.size == (6, 6)
        assert glyph.image.getpixel((3, 3)) == (0, 0, 0, 255)
        assert (glyph.xoffset, glyph.yoffset) == (1, 2)

    def test_empty_glyph(self):
        glyph = composite(make_space(xadvance=5), [OutlineEffect()])
        assert glyph.is_empty
        assert glyph.xadvance == 5

    def test_color(self, square_glyph):
        glyph = composite(square_glyph, [ColorEffect(color=RED)])
        assert glyph.image.getpixel((0, 0)) == (255, 0, 0, 255)

    def test_outline_grows_and_moves_offsets(self, square_glyph):
        glyph = composite(square_glyph, [OutlineEffect(width=2, color=BLUE)])
        assert glyph.image.size == (10, 10)
        assert (glyph.xoffset, glyph.yoffset) == (-1, 0)
        assert glyph.image.getpixel((0, 5))[3] == 255

    def test_order_matters(self, square_glyph):
        outline = OutlineEffect(width=2, color=BLUE)
        fill = ColorEffect(color=RED)
        color_then_outline = composite(square_glyph, [fill, outline])
        outline_then_color = composite(square_glyph, [outline, fill])

        centre = (5, 5)
        assert color_then_outline.image.getpixel(centre) == (0, 0, 255, 255)
        assert outline_then_color.image.getpixel(centre) == (255, 0, 0, 255)
        # The rim is outline-only in both
        assert color_then_outline.image.getpixel((0, 5)) == outline_then_color.image.getpixel((0, 5))

    def test_shadow_always_beneath(self, square_glyph):
        shadow = ShadowEffect(color=BLUE, opacity=1.0, x_distance=2, y_distance=2)
        fill = ColorEffect(color=RED)
        after = composite(square_glyph, [fill, shadow])
        before = composite(square_glyph, [shadow, fill])
        assert after.image.tobytes() == before.image.tobytes()
        # Overlap shows the glyph, the offset tail shows the shadow
        assert after.image.getpixel((3, 3)) == (255, 0, 0, 255)
        assert after.image.getpixel((7, 7)) == (0, 0, 255, 255)

    def test_shadow_opacity(self, square_glyph):
        glyph = composite(square_glyph, [ShadowEffect(opacity=0.5, x_distance=3, y_distance=0)])
        alpha = glyph.image.getpixel((8, 3))[3]
        assert 120 <= alpha <= 135

    def test_gradient_top_to_bottom(self):
        raster = make_square(size=10)
        glyph = composite(raster, [GradientEffect(top_color=RED, bottom_color=BLUE)])
        top = glyph.image.getpixel((5, 0))
        bottom = glyph.image.getpixel((5, 9))
        assert top[0] > 200 and top[2] < 50
        assert bottom[2] > 200 and bottom[0] < 50

    def test_gradient_cyclic_repeats(self):
        raster = make_square(size=12)
        effect = GradientEffect(top_color=RED, bottom_color=BLUE, scale=0.5, cyclic=True)
        glyph = composite(raster, [effect])
        # Triangle wave: the bottom row comes back to the top color
        assert glyph.image.getpixel((5, 11))[0] > 200

    def test_distance_field(self):
        raster = make_square(size=8, margin=2)
        glyph = composite(raster, [DistanceFieldEffect(spread=2)])
        assert glyph.image.size == (16, 16)
        alpha = glyph.image.getchannel("A")
        assert alpha.getpixel((8, 8)) > 128
        assert alpha.getpixel((0, 0)) < 128
        assert glyph.image.getpixel((8, 8))[:3] == (255, 255, 255)

    def test_distance_field_then_outline_uses_field(self):
        raster = make_square(size=8, margin=2)
        field_only = composite(raster, [DistanceFieldEffect(spread=2)])
        glyph = composite(raster, [DistanceFieldEffect(spread=2), OutlineEffect(width=1)])
        assert glyph.image.size == (16, 16)
        # One pixel outside the shape: a soft field value, solid once outlined
        assert field_only.image.getpixel((3, 8))[3] < 128
        assert glyph.image.getpixel((3, 8)) == (0, 0, 0, 255)

    def test_zigzag_from_traced_boundary(self):
        raster = make_square(size=10, margin=2)
        glyph = composite(raster, [ZigzagEffect(width=1, amplitude=1, wavelength=3)])
        alpha = glyph.image.getchannel("A")
        assert alpha.getbbox() is not None
        # The zigzag follows the edge, the centre stays empty
        assert alpha.getpixel((glyph.width // 2, glyph.height // 2)) == 0

    def test_zigzag_uses_contours(self):
        raster = make_square(size=10)
        raster.contours = [[(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)]]
        glyph = composite(raster, [ZigzagEffect(width=1, amplitude=0.5)])
        assert glyph.image.getchannel("A").getbbox() is not None

    def test_gamma(self):
        raster = make_square(size=4)
        raster.coverage = Image.new("L", (4, 4), 64)
        plain = composite(raster, [ColorEffect()], gamma=1.0)
        boosted = composite(raster, [ColorEffect()], gamma=2.2)
        assert boosted.image.getpixel((1, 1))[3] > plain.image.getpixel((1, 1))[3]
