"""Font name lookup, file hashing and atomic writes."""

import contextlib
import hashlib
import os
import tempfile
from pathlib import Path

from fontTools.ttLib import TTFont


def _get_name_entry(font: TTFont, name_id: int) -> str | None:
    """Extract a string from the font's name table by nameID."""
    if "name" not in font:
        return None
    name_table = font["name"]
    record = name_table.getName(name_id, 3, 1, 0x0409)  # Windows, Unicode BMP, English
    if record is None:
        record = name_table.getName(name_id, 1, 0, 0)  # Mac, Roman, English
    if record is None:
        return None
    return str(record)


def face_name(font: TTFont | None, fallback: str) -> str:
    """Face name for the metrics file: typographic family, family, then full name."""
    if font is not None:
        for name_id in (16, 1, 4):
            name = _get_name_entry(font, name_id)
            if name and name.strip():
                return name.strip()
    return fallback


def sha256_file(path: str | Path, chunk_size: int = 1 << 16) -> str:
    """Hex sha256 of a file's bytes."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def atomic_write_bytes(path: str | Path, data: bytes) -> None:
    """Write data so readers see either the old file or the complete new one.

    Uses write-to-temp + os.replace; the temp file is removed when the write
    fails and the error propagates.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, target)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise
