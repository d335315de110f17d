"""
Tests for drawtext font discovery.
"""

from gifvision.render import fonts
from gifvision.render.fonts import find_available_font


class TestFindAvailableFont:

    def test_readable_override(self, tmp_path):
        font = tmp_path / "custom.ttf"
        font.write_bytes(b"\x00\x01\x00\x00")
        assert find_available_font(str(font)) == str(font)

    def test_candidates_then_directory_scan(self, tmp_path, monkeypatch):
        nested = tmp_path / "fonts" / "sub"
        nested.mkdir(parents=True)
        (nested / "b.ttf").write_bytes(b"x")
        (nested / "a.TTF").write_bytes(b"x")
        (nested / "readme.txt").write_text("not a font")

        monkeypatch.setattr(fonts, "FONT_CANDIDATES", [str(tmp_path / "missing.ttf")])
        monkeypatch.setattr(fonts, "FONT_DIRECTORIES", [str(tmp_path / "fonts")])

        assert find_available_font(str(tmp_path / "bad-override.ttf")) == str(nested / "a.TTF")

    def test_nothing_found(self, tmp_path, monkeypatch):
        monkeypatch.setattr(fonts, "FONT_CANDIDATES", [])
        monkeypatch.setattr(fonts, "FONT_DIRECTORIES", [str(tmp_path / "nowhere")])
        assert find_available_font() is None
