"""Character set presets, parsing and cmap filtering."""

import unicodedata

from bmfontgen.config import DEFAULT_CHARACTERS, DIGIT_CHARACTERS, LATIN1_CHARACTERS, NEHE_CHARACTERS

CHARSET_PRESETS: dict[str, str] = {
    "ascii": DEFAULT_CHARACTERS,
    "nehe": NEHE_CHARACTERS,
    "latin1": LATIN1_CHARACTERS,
    "digits": DIGIT_CHARACTERS,
}


def get_charset(name: str) -> str:
    """Return the characters of a named preset.

    Raises:
        ValueError: If name is not a known preset.
    """
    try:
        return CHARSET_PRESETS[name]
    except KeyError:
        valid = ", ".join(sorted(CHARSET_PRESETS))
        msg = f"Unknown charset '{name}', expected one of: {valid}"
        raise ValueError(msg) from None


def is_printable_char(char: str) -> bool:
    """Check if a character is printable and not a control character.

    Space is considered printable. Control characters (Cc category) are not.
    """
    if len(char) != 1:
        return False
    if char == " ":
        return True
    category = unicodedata.category(char)
    return category != "Cc" and char.isprintable()


def parse_characters(text: str) -> tuple[int, ...]:
    """Turn a character string into an ordered tuple of unique codepoints.

    Order of first appearance is kept; duplicates and control characters are
    dropped.
    """
    seen: set[int] = set()
    result: list[int] = []
    for char in text:
        if not is_printable_char(char):
            continue
        codepoint = ord(char)
        if codepoint in seen:
            continue
        seen.add(codepoint)
        result.append(codepoint)
    return tuple(result)


def split_by_cmap(
    codepoints: tuple[int, ...] | list[int],
    cmap: dict[int, str] | None,
) -> tuple[list[int], list[int]]:
    """Split requested codepoints into (present, missing) against a font cmap.

    Space is always treated as present since it never needs ink. A ``None``
    cmap (font not readable by fontTools) reports everything as present and
    leaves detection to the renderer.
    """
    if cmap is None:
        return list(codepoints), []

    present: list[int] = []
    missing: list[int] = []
    for codepoint in codepoints:
        if codepoint in cmap or codepoint == 0x20:
            present.append(codepoint)
        else:
            missing.append(codepoint)
    return present, missing
