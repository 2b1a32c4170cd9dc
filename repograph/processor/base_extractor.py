"""
Shared machinery for the regex/brace based structural extractors.

Extractors are scanners, not parsers: definitions come from ordered regex
passes, bodies are delimited by brace-depth counting, and call sites are
attributed to the innermost enclosing body. Nothing here raises for
malformed input; an unmatched brace simply scopes to end-of-text.
"""
import re
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Set, Tuple

from ..types import (
    ExtractedCall,
    ExtractedDefinition,
    ExtractedHeritage,
    ExtractionResult,
    NodeLabel,
)
from .identity import generate_file_id, generate_id
from .keywords import get_call_exclusions
from .normalizer import C_STYLE, CommentSyntax, line_of, strip_comments

CALL_PATTERN = re.compile(r"(?<![\w$])([A-Za-z_$][\w$]*)\s*\(")
EXPORT_KEYWORDS = re.compile(r"\b(public|external)\b")


def find_block_end(text: str, open_index: int, open_char: str = "{", close_char: str = "}") -> int:
    """Index of the bracket closing the one at ``open_index``, else the last index."""
    depth = 0
    for i in range(open_index, len(text)):
        ch = text[i]
        if ch == open_char:
            depth += 1
        elif ch == close_char:
            depth -= 1
            if depth == 0:
                return i
    return len(text) - 1


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """Split on ``separator`` outside (), [], {} and <> nesting."""
    parts = []
    depth = 0
    current = []
    for ch in text:
        if ch in "([{<":
            depth += 1
        elif ch in ")]}>":
            depth = max(0, depth - 1)
        if ch == separator and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


_PARENT_NAME = re.compile(r"[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*")


def parent_name_of(clause: str) -> Optional[str]:
    """Leading type name of a heritage entry, ignoring arguments and generics."""
    match = _PARENT_NAME.match(clause.strip())
    if not match:
        return None
    return match.group(0).split(".")[-1]


@dataclass
class _Region:
    definition: ExtractedDefinition
    open_index: int
    close_index: int

    def contains(self, index: int) -> bool:
        return self.open_index < index <= self.close_index


class ScanContext:
    """Per-file accumulator shared by an extractor's passes."""

    def __init__(self, file_path: str, code: str, structure: str):
        self.file_path = file_path
        self.code = code
        self.structure = structure
        self.file_id = generate_file_id(file_path)
        self.definitions: List[ExtractedDefinition] = []
        self.imports: List[str] = []
        self.heritage: List[ExtractedHeritage] = []
        self._seen: Set[Tuple[NodeLabel, str, int]] = set()
        self._ids: Set[str] = set()
        self._name_offsets: Set[int] = set()
        self._containers: List[_Region] = []
        self._scopes: List[_Region] = []

    def line_of(self, index: int) -> int:
        return line_of(self.structure, index)

    def block_end(self, open_index: int) -> int:
        return find_block_end(self.structure, open_index)

    def depth_between(self, start: int, end: int) -> int:
        return self.structure.count("{", start, end) - self.structure.count("}", start, end)

    def owner_of(self, index: int) -> Optional[_Region]:
        """Innermost container whose body directly holds ``index``."""
        enclosing = [region for region in self._containers if region.contains(index)]
        if not enclosing:
            return None
        innermost = max(enclosing, key=lambda region: region.open_index)
        if self.depth_between(innermost.open_index + 1, index) != 0:
            return None
        return innermost

    def add_definition(self, label: NodeLabel, name: str, start_index: int,
                       end_index: Optional[int] = None, is_exported: bool = True,
                       name_index: Optional[int] = None) -> Optional[ExtractedDefinition]:
        """Record a definition unless this (label, name, start) was already seen."""
        key = (label, name, start_index)
        if key in self._seen:
            return None
        self._seen.add(key)
        if name_index is not None:
            self._name_offsets.add(name_index)

        owner = self.owner_of(start_index)
        start_line = self.line_of(start_index)
        disambiguator = owner.definition.name if owner else None
        node_id = generate_id(label, self.file_path, name, disambiguator)
        if node_id in self._ids:
            # overloads: same name in the same owner
            owner_name = disambiguator or ""
            node_id = generate_id(label, self.file_path, name, f"{owner_name}@{start_line}")
            if node_id in self._ids:
                # several overloads on one line
                node_id = generate_id(label, self.file_path, name, f"{owner_name}@{start_line}:{start_index}")
        self._ids.add(node_id)

        definition = ExtractedDefinition(
            id=node_id,
            label=label,
            name=name,
            start_line=start_line,
            end_line=self.line_of(end_index if end_index is not None else start_index),
            is_exported=is_exported,
            start_index=start_index,
            owner_id=owner.definition.id if owner else None,
        )
        self.definitions.append(definition)
        return definition

    def add_container(self, definition: Optional[ExtractedDefinition], open_index: int, close_index: int):
        if definition is not None and open_index >= 0:
            self._containers.append(_Region(definition, open_index, close_index))

    def add_scope(self, definition: Optional[ExtractedDefinition], open_index: int, close_index: int):
        if definition is not None and 0 <= open_index < close_index:
            self._scopes.append(_Region(definition, open_index, close_index))

    def add_import(self, path: str):
        path = path.strip()
        if path and path not in self.imports:
            self.imports.append(path)

    def add_heritage(self, definition: Optional[ExtractedDefinition], clauses: List[str], kind: str):
        if definition is None:
            return
        for clause in clauses:
            parent = parent_name_of(clause)
            if parent and parent != definition.name:
                self.heritage.append(ExtractedHeritage(
                    class_id=definition.id,
                    class_name=definition.name,
                    parent_name=parent,
                    kind=kind,
                ))

    def scan_calls(self, exclusions: FrozenSet[str], top_level_source: Optional[str] = None) -> List[ExtractedCall]:
        """
        Attribute each ``identifier(`` to its innermost enclosing body.

        Names at definition sites, excluded keywords and a body's own name
        are skipped. Sites outside every body go to ``top_level_source`` or
        are dropped when it is None.
        """
        calls = []
        for match in CALL_PATTERN.finditer(self.structure):
            name = match.group(1)
            index = match.start(1)
            if index in self._name_offsets or name in exclusions:
                continue
            enclosing = [region for region in self._scopes if region.contains(index)]
            if enclosing:
                region = max(enclosing, key=lambda r: r.open_index)
                if name == region.definition.name:
                    continue
                calls.append(ExtractedCall(called_name=name, source_id=region.definition.id))
            elif top_level_source is not None:
                calls.append(ExtractedCall(called_name=name, source_id=top_level_source))
        return calls

    def result(self, language: str, calls: List[ExtractedCall]) -> ExtractionResult:
        return ExtractionResult(
            file_path=self.file_path,
            language=language,
            definitions=sorted(self.definitions, key=lambda d: d.start_index),
            imports=list(self.imports),
            calls=calls,
            heritage=list(self.heritage),
        )


class BaseExtractor:
    """Contract: extract(file_path, source) -> ExtractionResult."""

    language: str = ""
    comment_syntax: CommentSyntax = C_STYLE
    # attribute sites outside every body to the File node
    attribute_top_level_calls: bool = False

    def extract(self, file_path: str, source: str) -> ExtractionResult:
        code = strip_comments(source, self.comment_syntax)
        structure = strip_comments(source, self.comment_syntax, blank_strings=True)
        ctx = ScanContext(file_path, code, structure)

        self._scan(ctx)

        top_level = ctx.file_id if self.attribute_top_level_calls else None
        calls = ctx.scan_calls(self.call_exclusions, top_level)
        return ctx.result(self.language, calls)

    @property
    def call_exclusions(self) -> FrozenSet[str]:
        return get_call_exclusions(self.language)

    def _scan(self, ctx: ScanContext):
        raise NotImplementedError

    @staticmethod
    def body_after(ctx: ScanContext, index: int) -> Tuple[int, int]:
        """
        Brace-delimited body starting at or after ``index``.

        Returns (-1, end) when a ";" comes first (a bodiless declaration) or
        no brace follows at all, with end at the ";" or at end-of-text.
        """
        text = ctx.structure
        for i in range(index, len(text)):
            ch = text[i]
            if ch == "{":
                return i, ctx.block_end(i)
            if ch == ";":
                return -1, i
        return -1, len(text) - 1 if text else 0

    @staticmethod
    def is_exported_by_keywords(signature_tail: str) -> bool:
        return bool(EXPORT_KEYWORDS.search(signature_tail or ""))

