"""Tests for the metrics file validator."""

from PIL import Image

from bmfontgen.validator import parse_line, parse_metrics, validate_file, validate_metrics

VALID = """\
info face="Test" size=16 bold=0 italic=0 charset="" unicode=1 stretchH=100 smooth=1 aa=1 padding=0,0,0,0 spacing=1,1
common lineHeight=19 base=15 scaleW=32 scaleH=32 pages=1 packed=0
page id=0 file="test.png"
chars count=2
char id=32 x=0 y=0 width=0 height=0 xoffset=0 yoffset=0 xadvance=4 page=0 chnl=15
char id=65 x=0 y=0 width=8 height=10 xoffset=1 yoffset=3 xadvance=9 page=0 chnl=15
kernings count=1
kerning first=65 second=65 amount=-1
"""


def _write(tmp_path, text=VALID, page_size=(32, 32)):
    Image.new("RGBA", page_size).save(tmp_path / "test.png")
    path = tmp_path / "test.fnt"
    path.write_text(text, encoding="utf-8")
    return path


class TestParse:
    def test_parse_line(self):
        tag, fields = parse_line('page id=0 file="my font.png"')
        assert tag == "page"
        assert fields == {"id": 0, "file": "my font.png"}

    def test_parse_metrics(self):
        data = parse_metrics(VALID)
        assert data["info"]["face"] == "Test"
        assert data["common"]["scaleW"] == 32
        assert data["chars_count"] == 2
        assert len(data["chars"]) == 2
        assert data["kernings"][0]["amount"] == -1


class TestValidateMetrics:
    def test_valid(self):
        assert validate_metrics(parse_metrics(VALID)) == []

    def test_missing_common(self):
        text = "\n".join(l for l in VALID.splitlines() if not l.startswith("common"))
        issues = validate_metrics(parse_metrics(text))
        assert any("common" in i for i in issues)

    def test_char_count_mismatch(self):
        issues = validate_metrics(parse_metrics(VALID.replace("chars count=2", "chars count=3")))
        assert any("chars count=3" in i for i in issues)

    def test_duplicate_ids(self):
        text = VALID.replace("char id=32", "char id=65")
        issues = validate_metrics(parse_metrics(text))
        assert any("Duplicate" in i for i in issues)

    def test_rect_outside_page(self):
        issues = validate_metrics(parse_metrics(VALID.replace("x=0 y=0 width=8", "x=30 y=0 width=8")))
        assert any("outside" in i for i in issues)

    def test_page_out_of_range(self):
        text = VALID.replace("xadvance=9 page=0", "xadvance=9 page=1")
        issues = validate_metrics(parse_metrics(text))
        assert any("page 1 out of range" in i for i in issues)

    def test_page_count_mismatch(self):
        issues = validate_metrics(parse_metrics(VALID.replace("pages=1", "pages=2")))
        assert any("declares 2 page" in i for i in issues)


class TestValidateFile:
    def test_valid(self, tmp_path):
        assert validate_file(_write(tmp_path)) == []

    def test_not_found(self, tmp_path):
        issues = validate_file(tmp_path / "nope.fnt")
        assert issues == [f"File not found: {tmp_path / 'nope.fnt'}"]

    def test_page_file_missing(self, tmp_path):
        path = tmp_path / "test.fnt"
        path.write_text(VALID, encoding="utf-8")
        issues = validate_file(path)
        assert any("Page file not found" in i for i in issues)

    def test_page_size_mismatch(self, tmp_path):
        issues = validate_file(_write(tmp_path, page_size=(64, 32)))
        assert any("expected 32x32" in i for i in issues)
