"""Exception hierarchy for bmfontgen."""

from __future__ import annotations


class BmfontgenError(Exception):
    """Base exception for all bmfontgen errors."""


class ConfigurationError(BmfontgenError):
    """Invalid font unit, size or effect settings.

    Raised before any rasterization happens; fatal for the affected font unit.
    """

    def __init__(self, message: str, unit: str | None = None) -> None:
        self.unit = unit
        prefix = f"Font '{unit}': " if unit else ""
        super().__init__(f"{prefix}{message}")


class FontLoadError(BmfontgenError):
    """The font source could not be opened or decoded."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Failed to load font '{source}': {reason}")


class GlyphMissingError(BmfontgenError):
    """A requested codepoint has no glyph in the font.

    Recoverable: the rasterizer substitutes a placeholder and collects these
    instead of raising them.
    """

    def __init__(self, codepoint: int, source: str) -> None:
        self.codepoint = codepoint
        self.source = source
        super().__init__(f"No glyph for U+{codepoint:04X} ({_printable(codepoint)}) in '{source}'")


class GlyphTooLargeError(BmfontgenError):
    """A glyph (padding and effect growth included) does not fit on one page."""

    def __init__(
        self,
        codepoint: int,
        size: int | None,
        width: int,
        height: int,
        page_width: int,
        page_height: int,
    ) -> None:
        self.codepoint = codepoint
        self.size = size
        self.width = width
        self.height = height
        self.page_width = page_width
        self.page_height = page_height
        at_size = f" at size {size}" if size is not None else ""
        super().__init__(
            f"Glyph U+{codepoint:04X} ({_printable(codepoint)}){at_size} is {width}x{height}, "
            f"larger than the {page_width}x{page_height} page"
        )


class AtlasWriteError(BmfontgenError, OSError):
    """Writing a page image or metrics file failed."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write '{path}': {reason}")


def _printable(codepoint: int) -> str:
    char = chr(codepoint)
    return repr(char) if char.isprintable() else "unprintable"
