"""
Comment stripping that preserves byte-for-byte line alignment.

Every character inside a comment is replaced with a space while newlines
are kept, so offsets and line numbers computed on the normalized text are
valid for the original text too.
"""
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple

# a "/" opens a regex literal only where an operand is expected
REGEX_LITERAL = (
    r"(?P<regex>(?:(?<=[=(,:\[!&|?{};+\-*%~^>])|(?<=\breturn)|(?<![^\n]))[ \t]*"
    r"/(?![/*])(?P<regex_body>(?:\\.|\[(?:\\.|[^\]\\\n])*\]|[^/\\\n\[])+)/[A-Za-z]*)"
)


@dataclass(frozen=True)
class CommentSyntax:
    """Comment and string delimiters of a language family."""
    line_prefix: str = "//"
    block_start: str = "/*"
    block_end: str = "*/"
    quotes: Tuple[str, ...] = ('"', "'", "`")
    regex_literals: bool = False


C_STYLE = CommentSyntax()
JS_STYLE = CommentSyntax(regex_literals=True)


@lru_cache(maxsize=None)
def _compile(syntax: CommentSyntax) -> "re.Pattern[str]":
    alternatives = []
    for quote in syntax.quotes:
        q = re.escape(quote)
        if quote == "`":
            # template strings may span lines
            alternatives.append(f"(?P<s{len(alternatives)}>{q}(?:\\\\[\\s\\S]|[^{q}\\\\])*{q}?)")
        else:
            alternatives.append(f"(?P<s{len(alternatives)}>{q}(?:\\\\.|[^{q}\\\\\\n])*{q}?)")
    if syntax.regex_literals:
        alternatives.append(REGEX_LITERAL)
    alternatives.append(
        f"(?P<comment>{re.escape(syntax.block_start)}[\\s\\S]*?(?:{re.escape(syntax.block_end)}|\\Z)"
        f"|{re.escape(syntax.line_prefix)}[^\\n]*)"
    )
    return re.compile("|".join(alternatives))


def _blank(text: str) -> str:
    return re.sub(r"[^\n]", " ", text)


def _escaped_end(text: str) -> bool:
    backslashes = len(text[:-1]) - len(text[:-1].rstrip("\\"))
    return backslashes % 2 == 1


def strip_comments(source: str, syntax: CommentSyntax = C_STYLE, blank_strings: bool = False) -> str:
    """
    Blank out comments.

    String literals (and regex literals when the syntax has them) are left
    untouched unless ``blank_strings`` is set, in which case their contents
    are blanked too (the delimiters are kept). The structural scanners use
    that form so braces and call-like text inside literals do not count.
    """
    pattern = _compile(syntax)

    def replace(match: "re.Match[str]") -> str:
        text = match.group(0)
        if match.group("comment") is not None:
            return _blank(text)
        if match.groupdict().get("regex") is not None:
            if not blank_strings:
                return text
            start = match.start("regex_body") - match.start()
            end = match.end("regex_body") - match.start()
            return text[:start] + _blank(text[start:end]) + text[end:]
        if blank_strings and len(text) > 1:
            closed = text[-1] == text[0] and not _escaped_end(text)
            inner = text[1:-1] if closed else text[1:]
            return text[0] + _blank(inner) + (text[-1] if closed else "")
        return text

    return pattern.sub(replace, source)


def line_of(text: str, index: int) -> int:
    """0-based line number of ``index`` (count of newlines before it)."""
    return text.count("\n", 0, max(0, index))
