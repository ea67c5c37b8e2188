"""Constants and defaults for bmfontgen."""

# Default character set: printable ASCII (space through tilde)
DEFAULT_CHARACTERS = "".join(chr(cp) for cp in range(32, 127))

# Named character presets usable in place of an explicit string
NEHE_CHARACTERS = DEFAULT_CHARACTERS
LATIN1_CHARACTERS = DEFAULT_CHARACTERS + "".join(chr(cp) for cp in range(0xA1, 0x100) if cp != 0xAD)
DIGIT_CHARACTERS = "0123456789"

# Page defaults (powers of two)
DEFAULT_PAGE_WIDTH = 512
DEFAULT_PAGE_HEIGHT = 512

# Pixels left empty between neighbouring cells on a page
GLYPH_SPACING = 1

# Coverage cutoff (0-255) when a mask must be binary (outline, zigzag fallback)
OUTLINE_THRESHOLD = 128

# Supersampling factor for vector strokes
STROKE_SUPERSAMPLE = 4

# Miter joins longer than this multiple of the half stroke width fall back to bevel
MITER_LIMIT = 4.0

# Synthetic styles
ITALIC_SHEAR = 0.2
BOLD_STROKE = 1

# Placeholder box for codepoints missing from the font (fractions of the em size)
PLACEHOLDER_WIDTH = 0.5
PLACEHOLDER_HEIGHT = 0.7

# Flatness tolerance (pixels) when converting outline curves to polylines
CURVE_TOLERANCE = 0.1

# BMFont channel mask: glyph data present in all four channels
CHANNEL_ALL = 15

# Build state
STATE_DIR_NAME = ".bmfontgen"
FINGERPRINT_FORMAT_VERSION = 1

METRICS_SUFFIX = ".fnt"
PAGE_SUFFIX = ".png"
