import re
from typing import Optional, Tuple

from ..types import ExtractedDefinition, NodeLabel
from .base_extractor import BaseExtractor, ScanContext, find_block_end, split_top_level
from .keywords import JAVASCRIPT_NON_METHODS
from .normalizer import JS_STYLE

IDENT = r"[A-Za-z_$][\w$]*"
NOT_MEMBER = r"(?<![\w$.])"
MEMBER_MODIFIERS = r"(?:public|private|protected|static|async|readonly|override|abstract|declare|get|set)"

IMPORT_RES = (
    re.compile(r"\bimport\s+(?:type\s+)?(?:[\w$*{}\s,]+?\s+from\s+)?[\"']([^\"'\n]+)[\"']"),
    re.compile(r"\bexport\s+(?:type\s+)?(?:\*(?:\s+as\s+[\w$]+)?|\{[^}]*\})\s*from\s+[\"']([^\"'\n]+)[\"']"),
    re.compile(r"(?<![\w$.])require\s*\(\s*[\"']([^\"'\n]+)[\"']\s*\)"),
    re.compile(r"(?<![\w$.])import\s*\(\s*[\"']([^\"'\n]+)[\"']\s*\)"),
)
NAMESPACE_RE = re.compile(rf"{NOT_MEMBER}(export\s+)?(?:declare\s+)?(?:namespace|module)\s+({IDENT}(?:\.{IDENT})*)\s*\{{")
CLASS_RE = re.compile(
    rf"{NOT_MEMBER}(export\s+)?(?:default\s+)?(?:declare\s+)?(?:abstract\s+)?class\s+({IDENT})\s*([^{{;]*)\{{"
)
INTERFACE_RE = re.compile(rf"{NOT_MEMBER}(export\s+)?(?:declare\s+)?interface\s+({IDENT})\s*([^{{;]*)\{{")
ENUM_RE = re.compile(rf"{NOT_MEMBER}(export\s+)?(?:declare\s+)?(?:const\s+)?enum\s+({IDENT})\s*\{{")
FUNCTION_RE = re.compile(
    rf"{NOT_MEMBER}(export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*({IDENT})\s*(?:<[^>(]*>)?\s*\("
)
VARIABLE_FUNCTION_RE = re.compile(
    rf"{NOT_MEMBER}(export\s+)?(?:const|let|var)\s+({IDENT})\s*(?::[^=;]+)?=\s*(?:async\s+)?"
    rf"(function\b\s*\*?\s*(?:{IDENT})?\s*\(|\(|{IDENT}\s*=>)"
)
METHOD_RE = re.compile(
    rf"(?:(?<=[;{{}}])|^)[ \t\r\n]*(?:@[\w$.]+(?:\([^)]*\))?[ \t\r\n]*)*"
    rf"((?:{MEMBER_MODIFIERS}[ \t]+)*)(\*?[ \t]*#?{IDENT})[ \t]*(?:<[^>(]*>)?[ \t]*\(",
    re.M,
)
FIELD_ARROW_RE = re.compile(
    rf"(?:(?<=[;{{}}])|^)[ \t\r\n]*((?:{MEMBER_MODIFIERS}[ \t]+)*)(#?{IDENT})[ \t]*(?::[^=;]+)?=[ \t]*(?:async[ \t]+)?"
    rf"(\(|{IDENT}[ \t]*=>)",
    re.M,
)
EXTENDS_RE = re.compile(r"\bextends\s+([\s\S]+?)(?=\bimplements\b|$)")
IMPLEMENTS_RE = re.compile(r"\bimplements\s+([\s\S]+)$")
ARROW_AFTER_PARAMS_RE = re.compile(r"\s*(?::\s*[^=;{]+?)?\s*=>")


class JavaScriptExtractor(BaseExtractor):
    """Structural scanner for JavaScript and TypeScript sources."""

    comment_syntax = JS_STYLE
    attribute_top_level_calls = True

    def __init__(self, language: str = "javascript"):
        self.language = language

    def _scan(self, ctx: ScanContext):
        for pattern in IMPORT_RES:
            for match in pattern.finditer(ctx.code):
                ctx.add_import(match.group(1))

        self._scan_namespaces(ctx)
        self._scan_types(ctx)
        self._scan_functions(ctx)

    def _scan_namespaces(self, ctx: ScanContext):
        for match in NAMESPACE_RE.finditer(ctx.structure):
            open_index = match.end() - 1
            close_index = ctx.block_end(open_index)
            definition = ctx.add_definition(
                NodeLabel.MODULE, match.group(2), match.start(), close_index,
                is_exported=bool(match.group(1)), name_index=match.start(2),
            )
            ctx.add_container(definition, open_index, close_index)

    def _scan_types(self, ctx: ScanContext):
        text = ctx.structure
        for match in CLASS_RE.finditer(text):
            if match.group(2) in ("extends", "implements"):
                # anonymous class expression
                continue
            open_index = match.end() - 1
            close_index = ctx.block_end(open_index)
            definition = ctx.add_definition(
                NodeLabel.CLASS, match.group(2), match.start(), close_index,
                is_exported=bool(match.group(1)), name_index=match.start(2),
            )
            ctx.add_container(definition, open_index, close_index)

            suffix = _strip_generics(match.group(3) or "")
            extends = EXTENDS_RE.search(suffix)
            if extends:
                ctx.add_heritage(definition, split_top_level(extends.group(1)), "extends")
            implements = IMPLEMENTS_RE.search(suffix)
            if implements:
                ctx.add_heritage(definition, split_top_level(implements.group(1)), "implements")

            if definition is not None:
                self._scan_members(ctx, definition, open_index, close_index)

        for match in INTERFACE_RE.finditer(text):
            open_index = match.end() - 1
            close_index = ctx.block_end(open_index)
            definition = ctx.add_definition(
                NodeLabel.INTERFACE, match.group(2), match.start(), close_index,
                is_exported=bool(match.group(1)), name_index=match.start(2),
            )
            extends = EXTENDS_RE.search(_strip_generics(match.group(3) or ""))
            if extends:
                ctx.add_heritage(definition, split_top_level(extends.group(1)), "extends")

        for match in ENUM_RE.finditer(text):
            open_index = match.end() - 1
            ctx.add_definition(
                NodeLabel.ENUM, match.group(2), match.start(), ctx.block_end(open_index),
                is_exported=bool(match.group(1)), name_index=match.start(2),
            )

    def _scan_members(self, ctx: ScanContext, owner: ExtractedDefinition, open_index: int, close_index: int):
        text = ctx.structure
        for match in METHOD_RE.finditer(text, open_index + 1, close_index):
            raw_name = match.group(2)
            name = raw_name.lstrip("*").strip().lstrip("#")
            name_index = match.start(2) + raw_name.index(name)
            if name in JAVASCRIPT_NON_METHODS or ctx.depth_between(open_index + 1, name_index) != 0:
                continue
            params_open = match.end() - 1
            params_close = find_block_end(text, params_open, "(", ")")
            body_open, body_close = self.body_after(ctx, params_close + 1)
            label = NodeLabel.CONSTRUCTOR if name == "constructor" else NodeLabel.METHOD
            definition = ctx.add_definition(
                label, name, name_index, body_close,
                is_exported=_member_is_public(match.group(1), raw_name),
                name_index=name_index,
            )
            ctx.add_scope(definition, body_open, body_close)

        for match in FIELD_ARROW_RE.finditer(text, open_index + 1, close_index):
            raw_name = match.group(2)
            name = raw_name.lstrip("#")
            name_index = match.start(2) + raw_name.index(name)
            if ctx.depth_between(open_index + 1, name_index) != 0:
                continue
            body = self._arrow_body(ctx, match.start(3))
            if body is None:
                continue
            definition = ctx.add_definition(
                NodeLabel.METHOD, name, name_index, body[1],
                is_exported=_member_is_public(match.group(1), raw_name),
                name_index=name_index,
            )
            ctx.add_scope(definition, *body)

    def _scan_functions(self, ctx: ScanContext):
        text = ctx.structure
        for match in FUNCTION_RE.finditer(text):
            params_close = find_block_end(text, match.end() - 1, "(", ")")
            body_open, body_close = self.body_after(ctx, params_close + 1)
            definition = ctx.add_definition(
                NodeLabel.FUNCTION, match.group(2), match.start(), body_close,
                is_exported=bool(match.group(1)), name_index=match.start(2),
            )
            ctx.add_scope(definition, body_open, body_close)

        for match in VARIABLE_FUNCTION_RE.finditer(text):
            head = match.group(3)
            head_index = match.start(3)
            if head.startswith("function"):
                params_close = find_block_end(text, match.end() - 1, "(", ")")
                body = self.body_after(ctx, params_close + 1)
                if body[0] < 0:
                    continue
            else:
                body = self._arrow_body(ctx, head_index)
                if body is None:
                    continue
            definition = ctx.add_definition(
                NodeLabel.FUNCTION, match.group(2), match.start(), body[1],
                is_exported=bool(match.group(1)), name_index=match.start(2),
            )
            ctx.add_scope(definition, *body)

    def _arrow_body(self, ctx: ScanContext, head_index: int) -> Optional[Tuple[int, int]]:
        """Body of an arrow function whose parameters start at ``head_index``."""
        text = ctx.structure
        if text.startswith("(", head_index):
            params_close = find_block_end(text, head_index, "(", ")")
            arrow = ARROW_AFTER_PARAMS_RE.match(text, params_close + 1)
            if not arrow:
                return None
            body_start = arrow.end()
        else:
            arrow_index = text.find("=>", head_index)
            if arrow_index < 0:
                return None
            body_start = arrow_index + 2

        while body_start < len(text) and text[body_start].isspace():
            body_start += 1
        if body_start < len(text) and text[body_start] == "{":
            return body_start, ctx.block_end(body_start)
        # expression body: the scope opens just before the expression
        return body_start - 1, _expression_end(text, body_start)


def _member_is_public(modifiers: str, raw_name: str) -> bool:
    return "#" not in raw_name and not re.search(r"\b(private|protected)\b", modifiers or "")


def _strip_generics(text: str) -> str:
    """Drop <...> argument lists so they cannot hide an implements clause."""
    result = []
    depth = 0
    for ch in text:
        if ch == "<":
            depth += 1
        elif ch == ">" and depth:
            depth -= 1
        elif depth == 0:
            result.append(ch)
    return "".join(result)


def _expression_end(text: str, start: int) -> int:
    """End of an expression statement: ';', newline or closing bracket at depth 0."""
    depth = 0
    for i in range(start, len(text)):
        ch = text[i]
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            if depth == 0:
                return max(start, i - 1)
            depth -= 1
        elif depth == 0 and ch in ";,\n":
            return i
    return len(text) - 1
