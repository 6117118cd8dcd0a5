"""Tests for file name splitting, categories and pattern compilation."""

import pytest

from pantransfer.rules import categorize_extension, compile_pattern, split_name
from pantransfer.rules.patterns import sanitize_flags


class TestSplitName:
    """Tests for split_name."""

    @pytest.mark.parametrize(
        "name,base,extension",
        [
            ("Movie.1080p.mkv", "Movie.1080p", "mkv"),
            ("dataset.pkg.tar.zst", "dataset", "pkg.tar.zst"),
            ("backup.tar.gz", "backup", "tar.gz"),
            ("archive.7z.001", "archive", "7z.001"),
            ("photo.JPG", "photo", "JPG"),
            (".bashrc", ".bashrc", ""),
            ("name.", "name.", ""),
            ("README", "README", ""),
            ("", "", ""),
        ],
    )
    def test_split(self, name, base, extension):
        """Test base and extension for a range of names."""
        parts = split_name(name)
        assert (parts.base, parts.extension) == (base, extension)

    def test_suffix(self):
        """Test suffix includes the dot only when there is an extension."""
        assert split_name("a.mkv").suffix == ".mkv"
        assert split_name("README").suffix == ""


class TestCategorizeExtension:
    """Tests for categorize_extension."""

    def test_audio_is_media(self):
        """Test audio files also count as media."""
        assert categorize_extension("mp3") == {"audio", "media"}

    def test_video_is_media(self):
        """Test video files also count as media."""
        assert categorize_extension("MKV") == {"video", "media"}

    def test_compound_extension(self):
        """Test compound extensions are categorized by their components."""
        assert "archive" in categorize_extension("tar.gz")
        assert "archive" in categorize_extension("7z.002")

    def test_unknown_is_other(self):
        """Test unknown or missing extensions fall into other."""
        assert categorize_extension("xyz") == {"other"}
        assert categorize_extension("") == {"other"}


class TestPatterns:
    """Tests for pattern compilation."""

    def test_bad_pattern_returns_none(self):
        """Test malformed patterns compile to None."""
        assert compile_pattern("(") is None
        assert compile_pattern("") is None

    def test_bad_flag_returns_none(self):
        """Test unknown flags compile to None."""
        assert compile_pattern("abc", "x") is None

    def test_ignore_case_flag(self):
        """Test the i flag makes matching case-insensitive."""
        assert compile_pattern("sample", "i").search("SAMPLE.mkv")
        assert not compile_pattern("sample", "").search("SAMPLE.mkv")

    def test_compiled_patterns_are_cached(self):
        """Test the same pattern and flags give the same object."""
        assert compile_pattern("abc", "gi") is compile_pattern("abc", "gi")

    def test_special_replacement_tokens(self):
        """Test $& and $$ in replacement templates."""
        pattern = compile_pattern("b", "g")
        assert pattern.replace("abc", "[$&]") == "a[b]c"
        assert pattern.replace("abc", "$$") == "a$c"

    def test_sticky_flag_anchors_at_start(self):
        """Test the y flag only matches at the start of the name."""
        pattern = compile_pattern("sample", "yi")
        assert pattern.search("Sample.mkv")
        assert not pattern.search("Movie.sample.mkv")

    def test_sticky_replace(self):
        """Test sticky replacement only touches leading, back-to-back matches."""
        assert compile_pattern("a", "y").replace("aab a", "x") == "xab a"
        assert compile_pattern("a", "gy").replace("aab a", "x") == "xxb a"
        assert compile_pattern("a", "gy").replace("baa", "x") == "baa"

    @pytest.mark.parametrize(
        "flags,expected",
        [("gix", "gi"), ("ggi", "gi"), ("", "g"), (None, "g"), ("x", "g")],
    )
    def test_sanitize_flags(self, flags, expected):
        """Test unknown and duplicate flags are dropped."""
        assert sanitize_flags(flags) == expected
