"""Tests for glob translation and PatternMatcher."""
import pytest

from stagebackup.rules.patterns import (
    PatternMatcher,
    base_name,
    glob_match,
    has_magic,
    translate_glob,
)


class TestGlobMatch:
    """Tests for single-pattern glob matching."""

    @pytest.mark.parametrize(
        "pattern,name",
        [
            ("*.txt", "a.txt"),
            ("a?c", "abc"),
            ("[abc]x", "bx"),
            ("[a-c]x", "cx"),
            ("[^a-c]x", "dx"),
            ("\\*", "*"),
            ("docs/*.md", "docs/api.md"),
            ("*", ""),
            ("a*b*c", "abxbc"),
        ],
    )
    def test_matches(self, pattern, name):
        """Test patterns that should match."""
        assert glob_match(pattern, name)

    @pytest.mark.parametrize(
        "pattern,name",
        [
            ("*.txt", "docs/a.txt"),
            ("a?c", "a/c"),
            ("[^a-c]x", "bx"),
            ("\\*", "x"),
            ("*.txt", "a.txt.bak"),
            ("a", "A"),
        ],
    )
    def test_does_not_match(self, pattern, name):
        """Test patterns that should not match."""
        assert not glob_match(pattern, name)

    def test_star_does_not_cross_separator(self):
        """Test that * stops at /."""
        assert glob_match("*/*", "docs/api.md")
        assert not glob_match("*", "docs/api.md")

    def test_double_star_is_not_recursive(self):
        """Test that ** behaves like two single stars."""
        assert glob_match("**.md", "api.md")
        assert not glob_match("**.md", "docs/api.md")

    def test_bang_is_literal_in_class(self):
        """Test that only ^ negates a bracket class."""
        assert glob_match("[!a]", "!")
        assert glob_match("[!a]", "a")
        assert not glob_match("[!a]", "b")

    def test_escaped_class_characters(self):
        """Test escapes inside a bracket class."""
        assert glob_match("[\\]]", "]")
        assert glob_match("[\\-]", "-")

    def test_regex_characters_are_literal(self):
        """Test that regex metacharacters outside classes are literal."""
        assert glob_match("a.b", "a.b")
        assert not glob_match("a.b", "axb")
        assert glob_match("(x)+", "(x)+")

    def test_reversed_range_matches_nothing(self):
        """Test that a reversed range is accepted but empty."""
        assert translate_glob("[z-a]") is not None
        assert not glob_match("[z-a]", "m")


class TestMalformedPatterns:
    """Tests for patterns that never match."""

    @pytest.mark.parametrize("pattern", ["[", "[abc", "a\\", "[]", "[a-]", "[\\"])
    def test_translate_returns_none(self, pattern):
        """Test malformed patterns compile to None."""
        assert translate_glob(pattern) is None

    def test_malformed_pattern_never_matches(self):
        """Test that a malformed pattern matches nothing, not even itself."""
        assert not glob_match("[", "[")
        matcher = PatternMatcher(["[unclosed"])
        assert not matcher.matches("[unclosed")


class TestHelpers:
    """Tests for has_magic and base_name."""

    def test_has_magic(self):
        """Test metacharacter detection."""
        assert has_magic("*.txt")
        assert has_magic("a?")
        assert has_magic("[ab]")
        assert has_magic("a\\b")
        assert not has_magic("docs/api.md")

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("", "."),
            ("/", "/"),
            ("///", "/"),
            ("a", "a"),
            ("docs/api.md", "api.md"),
            ("docs/", "docs"),
            ("/var/log/app.log", "app.log"),
        ],
    )
    def test_base_name(self, path, expected):
        """Test base name extraction."""
        assert base_name(path) == expected


class TestPatternMatcher:
    """Tests for PatternMatcher."""

    def test_empty_matcher(self):
        """Test that an empty matcher matches nothing."""
        matcher = PatternMatcher()
        assert not matcher.matches("a.txt")
        assert len(matcher) == 0
        assert not matcher

    def test_matches_base_name(self):
        """Test that a pattern hides nested files through their base name."""
        matcher = PatternMatcher(["*.log"])
        assert matcher.matches("var/app.log")
        assert matcher.matches("app.log")
        assert not matcher.matches("var/app.txt")

    def test_matches_full_path(self):
        """Test that a pattern with a separator matches the full path."""
        matcher = PatternMatcher(["build/*.o"])
        assert matcher.matches("build/output.o")
        assert not matcher.matches("src/build/output.o")

    def test_get_matching_patterns(self):
        """Test listing the patterns that hit a path."""
        matcher = PatternMatcher(["*.md", "docs/*", "*.txt"])
        assert matcher.get_matching_patterns("docs/api.md") == ["*.md", "docs/*"]

    def test_remove_first(self):
        """Test retiring patterns from the front."""
        matcher = PatternMatcher(["a", "b", "c"])
        assert matcher.remove_first(2) == ["a", "b"]
        assert matcher.get_patterns() == ["c"]

    def test_remove_first_beyond_length(self):
        """Test that removing more than held empties the matcher."""
        matcher = PatternMatcher(["a"])
        assert matcher.remove_first(5) == ["a"]
        assert len(matcher) == 0

    def test_add_and_clear(self):
        """Test appending and clearing patterns."""
        matcher = PatternMatcher()
        matcher.add_glob_pattern("*.tmp")
        assert matcher
        assert matcher.matches("x.tmp")
        matcher.clear()
        assert not matcher.matches("x.tmp")
