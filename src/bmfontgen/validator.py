"""Consistency checks for a written BMFont metrics file and its pages."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from PIL import Image, UnidentifiedImageError

REQUIRED_TAGS = ("info", "common", "page", "chars")
PAIR_PATTERN = re.compile(r'(\w+)=("[^"]*"|\S+)')


def _convert(value: str) -> Any:
    if value.startswith('"') and value.endswith('"'):
        return value[1:-1]
    if "," in value:
        try:
            return tuple(int(v) for v in value.split(","))
        except ValueError:
            return value
    try:
        return int(value)
    except ValueError:
        return value


def parse_line(line: str) -> tuple[str, dict[str, Any]]:
    """Split one metrics line into its tag and key/value fields."""
    tag, _, rest = line.strip().partition(" ")
    return tag, {key: _convert(value) for key, value in PAIR_PATTERN.findall(rest)}


def parse_metrics(text: str) -> dict[str, Any]:
    """Parse BMFont text metrics into a dict.

    Keys: ``info``, ``common`` (dicts), ``pages``, ``chars``, ``kernings``
    (lists of dicts), ``chars_count`` and ``kernings_count`` (declared counts).
    """
    data: dict[str, Any] = {"pages": [], "chars": [], "kernings": []}
    for raw in text.splitlines():
        if not raw.strip():
            continue
        tag, fields = parse_line(raw)
        if tag in ("info", "common"):
            data[tag] = fields
        elif tag == "page":
            data["pages"].append(fields)
        elif tag == "char":
            data["chars"].append(fields)
        elif tag == "kerning":
            data["kernings"].append(fields)
        elif tag in ("chars", "kernings"):
            data[f"{tag}_count"] = fields.get("count")
    return data


def validate_metrics(data: dict[str, Any], base_dir: Path | None = None) -> list[str]:
    """Run all checks on parsed metrics. Returns list of issues (empty = valid)."""
    issues: list[str] = []

    _check_required(data, issues)
    _check_counts(data, issues)
    _check_page_ids(data, issues)
    _check_char_rects(data, issues)
    if base_dir is not None:
        _check_page_files(data, base_dir, issues)

    return issues


def validate_file(path: str | Path) -> list[str]:
    """Load a metrics file, then validate it against the pages beside it."""
    filepath = Path(path)

    if not filepath.exists():
        return [f"File not found: {path}"]

    try:
        text = filepath.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return [f"Unreadable metrics file: {e}"]

    return validate_metrics(parse_metrics(text), filepath.parent)


# --- Individual checks ---


def _check_required(data: dict[str, Any], issues: list[str]) -> None:
    for tag in ("info", "common"):
        if tag not in data:
            issues.append(f"Missing '{tag}' line")
    if not data["pages"]:
        issues.append("Missing 'page' line")
    if "chars_count" not in data:
        issues.append("Missing 'chars' line")


def _check_counts(data: dict[str, Any], issues: list[str]) -> None:
    common = data.get("common", {})
    declared_pages = common.get("pages")
    if declared_pages is not None and declared_pages != len(data["pages"]):
        issues.append(f"common declares {declared_pages} page(s), found {len(data['pages'])}")

    declared_chars = data.get("chars_count")
    if declared_chars is not None and declared_chars != len(data["chars"]):
        issues.append(f"chars count={declared_chars} but {len(data['chars'])} char line(s)")

    declared_kernings = data.get("kernings_count")
    if declared_kernings is not None and declared_kernings != len(data["kernings"]):
        issues.append(
            f"kernings count={declared_kernings} but {len(data['kernings'])} kerning line(s)"
        )

    ids = [c.get("id") for c in data["chars"]]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        issues.append(f"Duplicate char ids: {', '.join(str(d) for d in duplicates)}")


def _check_page_ids(data: dict[str, Any], issues: list[str]) -> None:
    ids = [p.get("id") for p in data["pages"]]
    if ids != list(range(len(ids))):
        issues.append(f"Page ids must be 0..{len(ids) - 1} in order, got {ids}")


def _check_char_rects(data: dict[str, Any], issues: list[str]) -> None:
    common = data.get("common", {})
    width, height = common.get("scaleW"), common.get("scaleH")
    page_count = len(data["pages"])

    for char in data["chars"]:
        cid = char.get("id")
        page = char.get("page", 0)
        if not isinstance(page, int) or not 0 <= page < max(page_count, 1):
            issues.append(f"Char {cid}: page {page} out of range")
        if not isinstance(width, int) or not isinstance(height, int):
            continue
        x, y = char.get("x", 0), char.get("y", 0)
        w, h = char.get("width", 0), char.get("height", 0)
        if x < 0 or y < 0 or x + w > width or y + h > height:
            issues.append(f"Char {cid}: rect {x},{y} {w}x{h} outside {width}x{height} page")


def _check_page_files(data: dict[str, Any], base_dir: Path, issues: list[str]) -> None:
    common = data.get("common", {})
    expected = (common.get("scaleW"), common.get("scaleH"))
    for page in data["pages"]:
        name = page.get("file")
        if not name:
            issues.append(f"Page {page.get('id')}: no file name")
            continue
        path = base_dir / name
        if not path.exists():
            issues.append(f"Page file not found: {name}")
            continue
        try:
            with Image.open(path) as img:
                size = img.size
        except (OSError, UnidentifiedImageError) as e:
            issues.append(f"Page file {name} unreadable: {e}")
            continue
        if size != expected:
            issues.append(f"Page file {name} is {size[0]}x{size[1]}, expected {expected[0]}x{expected[1]}")
