import pytest
from pathlib import Path
import sys

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from repograph.processor.normalizer import JS_STYLE, line_of, strip_comments


class TestStripComments:
    """Test comment normalization."""

    def test_line_comment_blanked(self):
        """Test that a line comment becomes spaces."""
        source = "a(); // call b()\nc();"
        result = strip_comments(source)

        assert "b()" not in result
        assert result.startswith("a();")
        assert result.endswith("\nc();")

    def test_block_comment_keeps_newlines(self):
        """Test that block comments keep their line breaks."""
        source = "x /* one\ntwo\nthree */ y"
        result = strip_comments(source)

        assert result.count("\n") == 2
        assert "two" not in result
        assert result.endswith(" y")

    @pytest.mark.parametrize("source", [
        "function f() {}\n// function g() {}\n/* h() */ k();",
        "/* unterminated\nblock",
        "let s = 'it\\'s'; // tail\n",
        "const t = `multi\nline ${x}`; /* c */",
    ])
    def test_length_and_lines_preserved(self, source):
        """Test that offsets and line numbers survive normalization."""
        result = strip_comments(source)

        assert len(result) == len(source)
        assert [i for i, ch in enumerate(result) if ch == "\n"] == [i for i, ch in enumerate(source) if ch == "\n"]

    def test_comment_markers_inside_strings_kept(self):
        """Test that '//' inside a string literal is not a comment."""
        source = 'const url = "http://example.com"; // real comment'
        result = strip_comments(source)

        assert '"http://example.com"' in result
        assert "real comment" not in result

    def test_unterminated_block_runs_to_end(self):
        """Test that an unterminated block comment swallows the rest."""
        result = strip_comments("a();\n/* never closed\nb();")

        assert "b()" not in result
        assert result.startswith("a();\n")

    def test_blank_strings(self):
        """Test that string contents are blanked but quotes kept."""
        source = 'require(ok, "call(me) {");'
        result = strip_comments(source, blank_strings=True)

        assert len(result) == len(source)
        assert "call(me)" not in result
        assert "{" not in result
        assert result.count('"') == 2

    def test_escaped_quote_in_string(self):
        """Test that an escaped quote does not end the string."""
        source = 'x("a\\"b(c)"); y();'
        result = strip_comments(source, blank_strings=True)

        assert "b(c)" not in result
        assert result.endswith(" y();")


class TestRegexLiterals:
    """Test JavaScript regex literal handling."""

    def test_slashes_in_regex_not_a_comment(self):
        """Test that "//" inside a regex literal is kept."""
        source = r"const URL = /https?:\/\//; a(); // note"
        result = strip_comments(source, JS_STYLE)

        assert r"/https?:\/\//; a();" in result
        assert "note" not in result

    def test_backtick_in_regex_not_a_template(self):
        """Test that a backtick inside a regex does not open a template string."""
        source = "const TICK = /`/g;\nfunction f() { g(); }"
        result = strip_comments(source, JS_STYLE, blank_strings=True)

        assert len(result) == len(source)
        assert result.endswith("\nfunction f() { g(); }")
        assert "`" not in result

    def test_regex_body_blanked_with_strings(self):
        """Test that brackets inside a regex are blanked for structure scans."""
        source = "if (/[{(]/.test(s)) { run(); }"
        result = strip_comments(source, JS_STYLE, blank_strings=True)

        assert result.count("{") == 1
        assert result.endswith(".test(s)) { run(); }")

    @pytest.mark.parametrize("source", [
        "x = a / b / c;",
        "y = f(a) / 2; // half",
        "z = arr[0] / arr[1];",
    ])
    def test_division_untouched(self, source):
        """Test that division is not mistaken for a regex literal."""
        result = strip_comments(source, JS_STYLE, blank_strings=True)

        assert result.split(";")[0] == source.split(";")[0]

    def test_c_style_has_no_regex_literals(self):
        """Test that the default syntax still treats "//" as a comment."""
        result = strip_comments("x = /a//b", blank_strings=True)

        assert result.rstrip() == "x = /a"


class TestLineOf:
    """Test offset to line conversion."""

    def test_line_of(self):
        """Test 0-based line numbers."""
        text = "a\nb\nc"

        assert line_of(text, 0) == 0
        assert line_of(text, 2) == 1
        assert line_of(text, 4) == 2
        assert line_of(text, -5) == 0
