"""Write packed pages as PNG files and the BMFont text metrics file.

Output is a pure function of the packed state: identical pages and metrics
always produce byte-identical files.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path

from bmfontgen.config import CHANNEL_ALL, GLYPH_SPACING, METRICS_SUFFIX, PAGE_SUFFIX
from bmfontgen.exceptions import AtlasWriteError
from bmfontgen.packer import Page
from bmfontgen.rasterizer import RasterResult
from bmfontgen.schema import AdvancePadding, Padding, Settings
from bmfontgen.utils import atomic_write_bytes

logger = logging.getLogger(__name__)


@dataclass
class FontMetrics:
    """Font-wide values for the ``info`` and ``common`` lines."""

    face: str
    size: int
    line_height: int
    base: int
    bold: bool = False
    italic: bool = False
    mono: bool = False
    padding: Padding = field(default_factory=Padding)
    advance_padding: AdvancePadding = field(default_factory=AdvancePadding)
    kerning: dict[tuple[int, int], int] = field(default_factory=dict)

    @classmethod
    def from_raster(cls, raster: RasterResult, settings: Settings) -> FontMetrics:
        return cls(
            face=raster.face,
            size=raster.size,
            line_height=raster.line_height,
            base=raster.base,
            bold=settings.bold,
            italic=settings.italic,
            mono=settings.mono,
            padding=settings.padding,
            advance_padding=settings.advance_padding,
            kerning=dict(raster.kerning),
        )


def page_paths(output_path: str | Path, page_count: int) -> list[Path]:
    """Image paths for a metrics file: ``name.png``, or ``name1.png``... when paged."""
    output = Path(output_path)
    stem = output.name[: -len(METRICS_SUFFIX)] if output.name.endswith(METRICS_SUFFIX) else output.stem
    if page_count <= 1:
        return [output.with_name(stem + PAGE_SUFFIX)]
    return [output.with_name(f"{stem}{i}{PAGE_SUFFIX}") for i in range(1, page_count + 1)]


def _quote(value: str) -> str:
    return '"' + value.replace('"', "'") + '"'


def render_metrics(pages: list[Page], metrics: FontMetrics, page_names: list[str]) -> str:
    """BMFont text format for the packed pages."""
    pad = metrics.padding
    width = pages[0].width if pages else 0
    height = pages[0].height if pages else 0

    lines = [
        f"info face={_quote(metrics.face)} size={metrics.size} bold={int(metrics.bold)} "
        f'italic={int(metrics.italic)} charset="" unicode=1 stretchH=100 smooth=1 '
        f"aa={0 if metrics.mono else 1} padding={pad.top},{pad.right},{pad.bottom},{pad.left} "
        f"spacing={GLYPH_SPACING},{GLYPH_SPACING}",
        f"common lineHeight={metrics.line_height + metrics.advance_padding.y} "
        f"base={metrics.base} scaleW={width} scaleH={height} pages={len(pages)} packed=0",
    ]
    for index, name in enumerate(page_names):
        lines.append(f"page id={index} file={_quote(name)}")

    placements = sorted(
        (p for page in pages for p in page.placements), key=lambda p: p.codepoint
    )
    lines.append(f"chars count={len(placements)}")
    for p in placements:
        glyph = p.glyph
        if glyph.is_empty:
            xoffset = yoffset = 0
        else:
            xoffset = glyph.xoffset - pad.left
            yoffset = glyph.yoffset - pad.top
        lines.append(
            f"char id={p.codepoint} x={p.x} y={p.y} width={p.width} height={p.height} "
            f"xoffset={xoffset} yoffset={yoffset} "
            f"xadvance={glyph.xadvance + metrics.advance_padding.x} "
            f"page={p.page} chnl={CHANNEL_ALL}"
        )

    if metrics.kerning:
        lines.append(f"kernings count={len(metrics.kerning)}")
        for (first, second), amount in sorted(metrics.kerning.items()):
            lines.append(f"kerning first={first} second={second} amount={amount}")

    return "\n".join(lines) + "\n"


def encode_page(page: Page) -> bytes:
    buffer = io.BytesIO()
    page.image.save(buffer, format="PNG", optimize=False)
    return buffer.getvalue()


def write_atlas(pages: list[Page], metrics: FontMetrics, output_path: str | Path) -> list[Path]:
    """Write page images, then the metrics file; return every path written.

    The metrics file goes last so an interrupted write leaves it missing.

    Raises:
        AtlasWriteError: If any file cannot be written.
    """
    output = Path(output_path)
    images = page_paths(output, len(pages))
    written: list[Path] = []

    for page, path in zip(pages, images):
        _write(path, encode_page(page))
        written.append(path)

    text = render_metrics(pages, metrics, [p.name for p in images])
    _write(output, text.encode("utf-8"))
    written.append(output)

    logger.info("Wrote %s (%d page(s))", output, len(pages))
    return written


def _write(path: Path, data: bytes) -> None:
    try:
        atomic_write_bytes(path, data)
    except OSError as e:
        raise AtlasWriteError(str(path), e.strerror or str(e)) from e
