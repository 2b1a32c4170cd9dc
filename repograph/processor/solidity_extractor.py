import re

from ..types import NodeLabel
from .base_extractor import BaseExtractor, ScanContext, find_block_end, split_top_level

IDENT = r"[A-Za-z_]\w*"

IMPORT_RE = re.compile(r"\bimport\s+(?:[^;]*?from\s+)?[\"']([^\"']+)[\"']\s*;")
CONTAINER_RE = re.compile(rf"\b(abstract\s+contract|contract|interface|library)\s+({IDENT})\b([^{{;]*)")
HERITAGE_RE = re.compile(r"\bis\s+([\s\S]+)")
STRUCT_ENUM_RE = re.compile(rf"\b(struct|enum)\s+({IDENT})\s*\{{")
EVENT_ERROR_RE = re.compile(rf"\b(event|error)\s+({IDENT})\s*\(")
MODIFIER_RE = re.compile(rf"\bmodifier\s+({IDENT})\s*(?:\([^)]*\))?\s*([^{{;]*)")
FUNCTION_RE = re.compile(rf"\bfunction\s+({IDENT})\s*\(")
SIGNATURE_TAIL_RE = re.compile(r"[^{;]*")
CONSTRUCTOR_RE = re.compile(r"\bconstructor\s*\([^)]*\)\s*([^{;]*)")
SPECIAL_RE = re.compile(r"(?<![\w.])(fallback|receive)\s*\([^)]*\)\s*([^{;]*)")

CONTAINER_LABELS = {
    "contract": NodeLabel.CLASS,
    "abstract contract": NodeLabel.CLASS,
    "interface": NodeLabel.INTERFACE,
    "library": NodeLabel.MODULE,
}


class SolidityExtractor(BaseExtractor):
    """Structural scanner for Solidity sources."""

    language = "solidity"

    def _scan(self, ctx: ScanContext):
        for match in IMPORT_RE.finditer(ctx.code):
            ctx.add_import(match.group(1))

        self._scan_containers(ctx)
        self._scan_types(ctx)
        self._scan_callables(ctx)

    def _scan_containers(self, ctx: ScanContext):
        text = ctx.structure
        for match in CONTAINER_RE.finditer(text):
            kind = " ".join(match.group(1).split())
            name = match.group(2)
            suffix = match.group(3) or ""
            end = match.end()
            if end < len(text) and text[end] == ";":
                continue
            if end < len(text) and text[end] == "{":
                open_index, close_index = end, ctx.block_end(end)
            else:
                open_index, close_index = -1, len(text) - 1

            definition = ctx.add_definition(
                CONTAINER_LABELS[kind], name, match.start(), close_index,
                is_exported=True, name_index=match.start(2),
            )
            ctx.add_container(definition, open_index, close_index)

            heritage = HERITAGE_RE.search(suffix)
            if heritage:
                ctx.add_heritage(definition, split_top_level(heritage.group(1)), "extends")

    def _scan_types(self, ctx: ScanContext):
        for match in STRUCT_ENUM_RE.finditer(ctx.structure):
            label = NodeLabel.STRUCT if match.group(1) == "struct" else NodeLabel.ENUM
            open_index = match.end() - 1
            close_index = ctx.block_end(open_index)
            definition = ctx.add_definition(
                label, match.group(2), match.start(), close_index,
                is_exported=True, name_index=match.start(2),
            )
            if label is NodeLabel.STRUCT:
                ctx.add_container(definition, open_index, close_index)

        for match in EVENT_ERROR_RE.finditer(ctx.structure):
            terminator = ctx.structure.find(";", match.end())
            end_index = terminator if terminator >= 0 else len(ctx.structure) - 1
            ctx.add_definition(
                NodeLabel.CODE_ELEMENT, match.group(2), match.start(), end_index,
                is_exported=True, name_index=match.start(2),
            )

    def _scan_callables(self, ctx: ScanContext):
        text = ctx.structure

        for match in MODIFIER_RE.finditer(text):
            self._add_callable(ctx, NodeLabel.METHOD, match.group(1), match.start(),
                               match.end(), match.group(2), match.start(1))

        for match in FUNCTION_RE.finditer(text):
            label = NodeLabel.METHOD if ctx.owner_of(match.start()) else NodeLabel.FUNCTION
            # parameters may themselves be function types with parentheses
            params_close = find_block_end(text, match.end() - 1, "(", ")")
            tail = SIGNATURE_TAIL_RE.match(text, params_close + 1).group(0)
            self._add_callable(ctx, label, match.group(1), match.start(),
                               params_close + 1, tail, match.start(1))

        for match in CONSTRUCTOR_RE.finditer(text):
            self._add_callable(ctx, NodeLabel.CONSTRUCTOR, "constructor", match.start(),
                               match.end(), match.group(1), match.start())

        for match in SPECIAL_RE.finditer(text):
            # receive()/fallback() must be external; anything else is a plain call
            if "external" not in match.group(2):
                continue
            self._add_callable(ctx, NodeLabel.METHOD, match.group(1), match.start(),
                               match.end(), match.group(2), match.start(1))

    def _add_callable(self, ctx: ScanContext, label: NodeLabel, name: str, start: int,
                      signature_end: int, signature_tail: str, name_index: int):
        open_index, close_index = self.body_after(ctx, signature_end)
        definition = ctx.add_definition(
            label, name, start, close_index,
            is_exported=self.is_exported_by_keywords(signature_tail),
            name_index=name_index,
        )
        ctx.add_scope(definition, open_index, close_index)
