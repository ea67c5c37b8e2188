"""Tests for hashing, atomic writes and face name lookup."""

import hashlib

import pytest

from bmfontgen.utils import atomic_write_bytes, face_name, sha256_file
from tests.conftest import SYSTEM_FONT, skip_no_font


class TestSha256File:
    def test_matches_hashlib(self, tmp_path):
        path = tmp_path / "data.bin"
        path.write_bytes(b"abc" * 100_000)
        assert sha256_file(path) == hashlib.sha256(b"abc" * 100_000).hexdigest()

    def test_empty(self, tmp_path):
        path = tmp_path / "empty"
        path.write_bytes(b"")
        assert sha256_file(path) == hashlib.sha256(b"").hexdigest()


class TestAtomicWrite:
    def test_writes_and_creates_parents(self, tmp_path):
        target = tmp_path / "a" / "b" / "file.txt"
        atomic_write_bytes(target, b"hello")
        assert target.read_bytes() == b"hello"

    def test_replaces(self, tmp_path):
        target = tmp_path / "file.txt"
        target.write_bytes(b"old")
        atomic_write_bytes(target, b"new")
        assert target.read_bytes() == b"new"

    def test_no_temp_files_left(self, tmp_path):
        atomic_write_bytes(tmp_path / "file.txt", b"x")
        assert [p.name for p in tmp_path.iterdir()] == ["file.txt"]

    def test_failure_cleans_up(self, tmp_path):
        target = tmp_path / "dir"
        target.mkdir()
        (target / "keep").write_text("x", encoding="utf-8")
        # Replacing a non-empty directory with a file fails
        with pytest.raises(OSError):
            atomic_write_bytes(target, b"data")
        assert sorted(p.name for p in tmp_path.iterdir()) == ["dir"]


class TestFaceName:
    def test_fallback_without_font(self):
        assert face_name(None, "fallback") == "fallback"

    @skip_no_font
    def test_family_name(self):
        from fontTools.ttLib import TTFont

        with TTFont(SYSTEM_FONT, lazy=True) as font:
            assert face_name(font, "fallback") == "DejaVu Sans"
