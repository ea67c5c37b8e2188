"""Pydantic v2 models for font units, sizes, settings and effects.

Every model is frozen: a resolved configuration is handed to the generator
and never mutated during a build.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from bmfontgen.config import (
    DEFAULT_CHARACTERS,
    DEFAULT_PAGE_HEIGHT,
    DEFAULT_PAGE_WIDTH,
    METRICS_SUFFIX,
)
from bmfontgen.exceptions import ConfigurationError
from bmfontgen.filters import get_charset, parse_characters


class _Model(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )


class Color(_Model):
    """8-bit RGBA color.

    Accepts ``"rrggbb"``, ``"#rrggbb"``, ``"rrggbbaa"`` or a 3/4 item list.
    """

    r: int = Field(ge=0, le=255)
    g: int = Field(ge=0, le=255)
    b: int = Field(ge=0, le=255)
    a: int = Field(default=255, ge=0, le=255)

    @model_validator(mode="before")
    @classmethod
    def parse_shorthand(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _parse_hex(value)
        if isinstance(value, (list, tuple)):
            if len(value) not in (3, 4):
                msg = f"Color needs 3 or 4 components, got {len(value)}"
                raise ValueError(msg)
            return dict(zip("rgba", value))
        return value

    @property
    def rgba(self) -> tuple[int, int, int, int]:
        return (self.r, self.g, self.b, self.a)

    @property
    def rgb(self) -> tuple[int, int, int]:
        return (self.r, self.g, self.b)

    def to_hex(self) -> str:
        return f"{self.r:02x}{self.g:02x}{self.b:02x}{self.a:02x}"


def _parse_hex(value: str) -> dict[str, int]:
    text = value.strip().lstrip("#")
    if len(text) not in (6, 8):
        msg = f"Invalid color '{value}', expected rrggbb or rrggbbaa"
        raise ValueError(msg)
    try:
        channels = [int(text[i : i + 2], 16) for i in range(0, len(text), 2)]
    except ValueError:
        msg = f"Invalid color '{value}', not hexadecimal"
        raise ValueError(msg) from None
    return dict(zip("rgba", channels))


BLACK = Color(r=0, g=0, b=0)
WHITE = Color(r=255, g=255, b=255)


class JoinStyle(str, Enum):
    """Corner treatment where an outline or stroke turns."""

    ROUND = "round"
    MITER = "miter"
    BEVEL = "bevel"


# -- Effects ----------------------------------------------------------------


class ColorEffect(_Model):
    """Solid fill of the glyph coverage."""

    type: Literal["color"] = "color"
    color: Color = BLACK


class OutlineEffect(_Model):
    """Coverage dilated by ``width`` pixels and filled with ``color``."""

    type: Literal["outline"] = "outline"
    width: float = Field(default=2.0, ge=0)
    color: Color = BLACK
    join: JoinStyle = JoinStyle.ROUND


class ShadowEffect(_Model):
    """Blurred, offset copy of the coverage drawn beneath the glyph."""

    type: Literal["shadow"] = "shadow"
    color: Color = BLACK
    opacity: float = Field(default=0.6, ge=0, le=1)
    x_distance: int = 2
    y_distance: int = 2
    blur_kernel_size: int = Field(default=0, ge=0)
    blur_passes: int = Field(default=1, ge=0)


class GradientEffect(_Model):
    """Vertical two-color fill across the glyph's height."""

    type: Literal["gradient"] = "gradient"
    top_color: Color = Color(r=0, g=255, b=255)
    bottom_color: Color = Color(r=0, g=0, b=255)
    offset: float = 0.0
    scale: float = Field(default=1.0, gt=0)
    cyclic: bool = False


class DistanceFieldEffect(_Model):
    """Signed distance field in the alpha channel, ``color`` in RGB."""

    type: Literal["distance_field"] = "distance_field"
    color: Color = WHITE
    scale: int = Field(default=1, ge=1)
    spread: float = Field(default=1.0, gt=0)


class ZigzagEffect(_Model):
    """Zigzag line stroked along the glyph outline."""

    type: Literal["zigzag"] = "zigzag"
    width: float = Field(default=2.0, gt=0)
    color: Color = BLACK
    wavelength: float = Field(default=3.0, gt=0)
    amplitude: float = Field(default=1.0, ge=0)
    join: JoinStyle = JoinStyle.BEVEL


EffectSpec = Annotated[
    Union[
        ColorEffect,
        OutlineEffect,
        ShadowEffect,
        GradientEffect,
        DistanceFieldEffect,
        ZigzagEffect,
    ],
    Field(discriminator="type"),
]


# -- Settings ---------------------------------------------------------------


class Padding(_Model):
    """Empty pixels added around every glyph cell on the page."""

    top: int = Field(default=0, ge=0)
    bottom: int = Field(default=0, ge=0)
    left: int = Field(default=0, ge=0)
    right: int = Field(default=0, ge=0)


class AdvancePadding(_Model):
    """Extra pixels added to each glyph's advance and to the line height."""

    x: int = 0
    y: int = 0


class PageSize(_Model):
    width: int = Field(default=DEFAULT_PAGE_WIDTH, gt=0)
    height: int = Field(default=DEFAULT_PAGE_HEIGHT, gt=0)


class Settings(_Model):
    """Rendering style, layout and the ordered effect list."""

    bold: bool = False
    italic: bool = False
    mono: bool = False
    gamma: float = Field(default=1.0, gt=0)
    padding: Padding = Padding()
    advance_padding: AdvancePadding = AdvancePadding()
    page_size: PageSize = PageSize()
    effects: tuple[EffectSpec, ...] = ()


# -- Font units -------------------------------------------------------------


class SizeSpec(_Model):
    """One pixel size to generate, optionally with its own output path."""

    size: int = Field(gt=0)
    output: Path | None = None

    @model_validator(mode="before")
    @classmethod
    def from_int(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return {"size": value}
        return value


class FontUnit(_Model):
    """One font-generation unit: a source, its characters and its sizes."""

    name: str = Field(min_length=1)
    input_font: str = Field(min_length=1)
    output_file: Path
    characters: str = DEFAULT_CHARACTERS
    sizes: tuple[SizeSpec, ...] = Field(min_length=1)
    settings: Settings = Settings()

    @model_validator(mode="before")
    @classmethod
    def expand_charset(cls, value: Any) -> Any:
        if isinstance(value, dict) and "charset" in value:
            data = dict(value)
            preset = data.pop("charset")
            if "characters" in data:
                msg = "Give either 'characters' or 'charset', not both"
                raise ValueError(msg)
            data["characters"] = get_charset(preset)
            return data
        return value

    @field_validator("characters")
    @classmethod
    def characters_not_empty(cls, v: str) -> str:
        if not parse_characters(v):
            msg = "Character set is empty"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def output_paths_unique(self) -> "FontUnit":
        seen: dict[Path, int] = {}
        for spec in self.sizes:
            path = self.output_path(spec)
            if path in seen:
                msg = (
                    f"Sizes {seen[path]} and {spec.size} both write to '{path}'"
                )
                raise ValueError(msg)
            seen[path] = spec.size
        return self

    @property
    def codepoints(self) -> tuple[int, ...]:
        return parse_characters(self.characters)

    def output_path(self, spec: SizeSpec) -> Path:
        """Resolve the metrics file path for one size.

        ``out/roboto.fnt`` at size 16 becomes ``out/roboto16px.fnt``; an
        override without a ``.fnt`` suffix gets one appended.
        """
        if spec.output is not None:
            path = Path(spec.output)
            if path.suffix == METRICS_SUFFIX:
                return path
            return path.with_name(path.name + METRICS_SUFFIX)

        base = Path(self.output_file)
        stem = base.name
        if stem.endswith(METRICS_SUFFIX):
            stem = stem[: -len(METRICS_SUFFIX)]
        return base.with_name(f"{stem}{spec.size}px{METRICS_SUFFIX}")


class FontConfig(_Model):
    """A whole configuration document: every font unit of a build."""

    fonts: tuple[FontUnit, ...] = Field(min_length=1)

    @model_validator(mode="before")
    @classmethod
    def single_unit(cls, value: Any) -> Any:
        if isinstance(value, dict) and "fonts" not in value:
            return {"fonts": [value]}
        return value

    @model_validator(mode="after")
    def names_unique(self) -> "FontConfig":
        names = [unit.name for unit in self.fonts]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            msg = f"Duplicate font unit names: {', '.join(duplicates)}"
            raise ValueError(msg)
        return self


# -- Loading ----------------------------------------------------------------


def _resolve_paths(data: Any, base_dir: Path) -> Any:
    """Anchor relative paths of one raw font unit dict at ``base_dir``."""
    if not isinstance(data, dict):
        return data

    data = dict(data)
    for key in ("output_file", "outputFile"):
        if isinstance(data.get(key), str) and not Path(data[key]).is_absolute():
            data[key] = str(base_dir / data[key])

    for key in ("input_font", "inputFont"):
        source = data.get(key)
        if isinstance(source, str) and not Path(source).is_absolute():
            candidate = base_dir / source
            if candidate.is_file():
                data[key] = str(candidate)

    sizes = data.get("sizes")
    if isinstance(sizes, list):
        resolved = []
        for spec in sizes:
            if isinstance(spec, dict) and isinstance(spec.get("output"), str):
                spec = dict(spec)
                if not Path(spec["output"]).is_absolute():
                    spec["output"] = str(base_dir / spec["output"])
            resolved.append(spec)
        data["sizes"] = resolved
    return data


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error["loc"])
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)


def load_font_unit(data: dict[str, Any], base_dir: Path | None = None) -> FontUnit:
    """Validate one raw font unit dict.

    Raises:
        ConfigurationError: If any field is missing or out of its domain.
    """
    if base_dir is not None:
        data = _resolve_paths(data, base_dir)
    try:
        return FontUnit.model_validate(data)
    except ValidationError as e:
        name = data.get("name") if isinstance(data, dict) else None
        raise ConfigurationError(_format_validation_error(e), unit=name) from e


def _unit_entries(data: Any) -> list[Any]:
    """Raw font units of a document, checking only the document's shape."""
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a JSON object")
    if "fonts" not in data:
        return [data]

    unexpected = sorted(set(data) - {"fonts"})
    if unexpected:
        raise ConfigurationError(f"Unexpected top-level key(s): {', '.join(unexpected)}")
    fonts = data["fonts"]
    if not isinstance(fonts, list) or not fonts:
        raise ConfigurationError("'fonts' must be a non-empty list of font units")
    return fonts


def load_units(
    data: Any, base_dir: Path | None = None
) -> tuple[list[FontUnit], list[ConfigurationError]]:
    """Validate every font unit of a document on its own.

    A unit that fails validation is returned as a ConfigurationError naming it
    (by ``name``, or ``#<position>`` when it has none) and never hides the
    valid units around it.

    Raises:
        ConfigurationError: For problems with the document as a whole: not an
            object, no units, or duplicate unit names.
    """
    entries = _unit_entries(data)
    names = [e["name"] for e in entries if isinstance(e, dict) and isinstance(e.get("name"), str)]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigurationError(f"Duplicate font unit names: {', '.join(duplicates)}")

    units: list[FontUnit] = []
    errors: list[ConfigurationError] = []
    for position, entry in enumerate(entries, start=1):
        try:
            units.append(load_font_unit(entry, base_dir))
        except ConfigurationError as e:
            errors.append(e if e.unit else ConfigurationError(str(e), unit=f"#{position}"))
    return units, errors


def load_config(data: Any, base_dir: Path | None = None) -> FontConfig:
    """Validate a configuration document (``{"fonts": [...]}`` or one unit).

    Strict: the first invalid unit raises.
    """
    units, errors = load_units(data, base_dir)
    if errors:
        raise errors[0]
    return FontConfig(fonts=tuple(units))


def _read_json(filepath: Path) -> Any:
    try:
        return json.loads(filepath.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in '{filepath}': {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read '{filepath}': {e}") from e


def load_config_file(path: str | Path) -> FontConfig:
    """Read a JSON configuration file; relative paths resolve next to it."""
    filepath = Path(path)
    return load_config(_read_json(filepath), base_dir=filepath.parent.resolve())


def load_units_file(
    path: str | Path,
) -> tuple[list[FontUnit], list[ConfigurationError]]:
    """Like :func:`load_units` for a JSON file; relative paths resolve next to it."""
    filepath = Path(path)
    return load_units(_read_json(filepath), base_dir=filepath.parent.resolve())
