"""Content fingerprints of generation inputs and their persistent store.

A size is up to date when every output it declared last time still exists and
the digest of its current inputs equals the digest stored after the last
successful build. Timestamps play no part: touching the font file without
changing its bytes keeps the build up to date.
"""

from __future__ import annotations

import contextlib
import hashlib
import json
import logging
import shutil
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from bmfontgen.config import FINGERPRINT_FORMAT_VERSION
from bmfontgen.rasterizer import resolve_font_path
from bmfontgen.schema import FontUnit, SizeSpec
from bmfontgen.utils import atomic_write_bytes, sha256_file

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FingerprintRecord:
    """Digest of one size's inputs and the files its build produced."""

    digest: str
    outputs: tuple[str, ...] = ()

    def to_dict(self, key: str) -> dict:
        return {
            "version": FINGERPRINT_FORMAT_VERSION,
            "key": key,
            "digest": self.digest,
            "outputs": list(self.outputs),
        }


class FingerprintStore(Protocol):
    """Key-value store of fingerprint records, keyed by output path."""

    def open(self) -> None: ...

    def read(self, key: str) -> FingerprintRecord | None: ...

    def write(self, key: str, record: FingerprintRecord) -> None: ...

    def forget(self, key: str) -> None: ...

    def close(self) -> None: ...


class _KeyLocks:
    """One lock per key so writers of different keys never wait on each other."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def __call__(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock


class MemoryFingerprintStore:
    """In-process store, for tests and one-shot builds."""

    def __init__(self) -> None:
        self._records: dict[str, FingerprintRecord] = {}
        self._lock_for = _KeyLocks()

    def open(self) -> None:
        pass

    def read(self, key: str) -> FingerprintRecord | None:
        return self._records.get(key)

    def write(self, key: str, record: FingerprintRecord) -> None:
        with self._lock_for(key):
            self._records[key] = record

    def forget(self, key: str) -> None:
        with self._lock_for(key):
            self._records.pop(key, None)

    def close(self) -> None:
        pass

    def __enter__(self) -> MemoryFingerprintStore:
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class DirectoryFingerprintStore:
    """One JSON record per key in a state directory.

    Records are replaced atomically, so readers never lock and never see a
    partial record. A ``VERSION`` file marks the record format; when it does
    not match, every record is discarded on ``open``.
    """

    VERSION_FILE = "VERSION"

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self._lock_for = _KeyLocks()

    def open(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        marker = self.directory / self.VERSION_FILE
        expected = str(FINGERPRINT_FORMAT_VERSION)
        try:
            current = marker.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            current = None

        if current != expected:
            if current is not None:
                logger.info(
                    "Fingerprint store format %s != %s, clearing %s",
                    current,
                    expected,
                    self.directory,
                )
            for path in self.directory.iterdir():
                if path.is_dir():
                    shutil.rmtree(path)
                elif path.name != self.VERSION_FILE:
                    path.unlink()
            atomic_write_bytes(marker, expected.encode("utf-8"))

    def _record_path(self, key: str) -> Path:
        name = hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]
        return self.directory / f"{name}.json"

    def read(self, key: str) -> FingerprintRecord | None:
        """Stored record for ``key``; unreadable or foreign records count as absent."""
        path = self._record_path(key)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable fingerprint %s: %s", path, e)
            return None

        if not isinstance(data, dict):
            return None
        if data.get("version") != FINGERPRINT_FORMAT_VERSION or data.get("key") != key:
            return None
        digest = data.get("digest")
        if not isinstance(digest, str):
            return None
        return FingerprintRecord(digest=digest, outputs=tuple(data.get("outputs") or ()))

    def write(self, key: str, record: FingerprintRecord) -> None:
        payload = json.dumps(record.to_dict(key), indent=2, sort_keys=True).encode("utf-8")
        with self._lock_for(key):
            atomic_write_bytes(self._record_path(key), payload)

    def forget(self, key: str) -> None:
        with self._lock_for(key), contextlib.suppress(FileNotFoundError):
            self._record_path(key).unlink()

    def close(self) -> None:
        pass

    def __enter__(self) -> DirectoryFingerprintStore:
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()


# -- Fingerprints -----------------------------------------------------------


def font_identity(input_font: str) -> dict[str, str]:
    """What identifies a font source: its name, plus its bytes when it resolves to a file."""
    identity = {"source": input_font}
    path = resolve_font_path(input_font)
    if path is not None:
        identity["sha256"] = sha256_file(path)
    return identity


def fingerprint_payload(unit: FontUnit, spec: SizeSpec) -> dict:
    """Canonical description of every input that affects one size's outputs."""
    return {
        "format": FINGERPRINT_FORMAT_VERSION,
        "font": font_identity(unit.input_font),
        "characters": list(unit.codepoints),
        "size": spec.size,
        "output": str(unit.output_path(spec)),
        "settings": unit.settings.model_dump(mode="json"),
    }


def compute_fingerprint(unit: FontUnit, spec: SizeSpec) -> str:
    """Hex sha256 of the canonical JSON of a size's inputs."""
    raw = json.dumps(fingerprint_payload(unit, spec), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def rebuild_reason(
    unit: FontUnit,
    spec: SizeSpec,
    previous: FingerprintRecord | str | None,
    declared_outputs: list[Path] | tuple[Path, ...],
    current: str | None = None,
) -> str | None:
    """Why a size must be regenerated, or None when it is up to date."""
    for path in declared_outputs:
        if not Path(path).exists():
            return f"output {path} is missing"
    if previous is None:
        return "no previous fingerprint"

    previous_digest = previous.digest if isinstance(previous, FingerprintRecord) else previous
    if current is None:
        current = compute_fingerprint(unit, spec)
    if current != previous_digest:
        return "inputs changed"
    return None


def should_rebuild(
    unit: FontUnit,
    spec: SizeSpec,
    previous: FingerprintRecord | str | None,
    declared_outputs: list[Path] | tuple[Path, ...],
) -> bool:
    """True when an output is missing, nothing was stored, or the inputs changed."""
    return rebuild_reason(unit, spec, previous, declared_outputs) is not None
