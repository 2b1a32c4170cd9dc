"""
Builds one knowledge graph from per-file extraction results.

Symbolic references (calls, imports, heritage) are resolved against
global name and path indexes here; anything that cannot be resolved is
dropped, so every emitted edge joins two nodes of the same graph.
"""
import posixpath
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from ..config import settings
from ..processor.extractor_registry import IMPORT_EXTENSION_CANDIDATES
from ..processor.identity import generate_file_id
from ..types import (
    CONTAINER_LABELS,
    TYPE_LABELS,
    ExtractionResult,
    GraphNode,
    GraphRelationship,
    KnowledgeGraph,
    NodeLabel,
    RelationshipType,
)
from ..utils.logger import app_logger


class TieBreakPolicy(Enum):
    """How to pick among several definitions sharing a called name."""
    SAME_FILE_FIRST = "same_file_first"
    FIRST_DECLARED = "first_declared"
    UNIQUE_ONLY = "unique_only"


# (file_path, node_id, label) in file-then-declaration order
Candidate = Tuple[str, str, NodeLabel]


def choose_candidate(candidates: List[Candidate], caller_file: str, policy: TieBreakPolicy) -> Optional[str]:
    """Apply ``policy`` to ``candidates``; None means drop the reference."""
    if not candidates:
        return None
    same_file = [c for c in candidates if c[0] == caller_file]

    if policy is TieBreakPolicy.FIRST_DECLARED:
        return candidates[0][1]
    if policy is TieBreakPolicy.UNIQUE_ONLY:
        if len(same_file) == 1:
            return same_file[0][1]
        if not same_file and len(candidates) == 1:
            return candidates[0][1]
        return None
    return (same_file or candidates)[0][1]


def resolve_import_path(importer: str, raw_path: str, known_paths: Dict[str, str],
                        language: Optional[str] = None) -> Optional[str]:
    """
    Map a raw import string to an ingested file path.

    Relative paths are normalised against the importer's directory; other
    paths are tried as archive-root relative and then as a path suffix
    (archives usually carry a top-level folder).
    """
    raw_path = raw_path.strip().replace("\\", "/")
    if not raw_path:
        return None

    relative = raw_path.startswith(".")
    if relative:
        joined = posixpath.join(posixpath.dirname(importer), raw_path)
    else:
        joined = raw_path.lstrip("/")
    candidate = posixpath.normpath(joined)
    if candidate.startswith("..") or candidate == ".":
        return None

    extensions = IMPORT_EXTENSION_CANDIDATES.get(language or "", ())
    attempts = [candidate]
    attempts.extend(candidate + ext for ext in extensions)
    attempts.extend(posixpath.join(candidate, "index" + ext) for ext in extensions)

    for attempt in attempts:
        if attempt in known_paths:
            return attempt

    if not relative:
        for attempt in attempts:
            suffix = "/" + attempt
            for path in known_paths:
                if path.endswith(suffix):
                    return path
    return None


class GraphBuilder:
    """Merges per-file extraction results into a KnowledgeGraph."""

    def __init__(self, tie_break: Optional[TieBreakPolicy] = None, max_content_chars: Optional[int] = None):
        self.logger = app_logger.bind(component="graph_builder")
        self.tie_break = tie_break or TieBreakPolicy(settings.resolution_tie_break)
        self.max_content_chars = max_content_chars if max_content_chars is not None else settings.max_content_chars

    def build(self, results: Iterable[ExtractionResult], file_contents: Optional[Dict[str, str]] = None) -> KnowledgeGraph:
        """Build the graph; ``results`` order defines file order for tie-breaks."""
        results = list(results)
        file_contents = file_contents or {}
        graph = KnowledgeGraph()

        self._add_nodes(graph, results, file_contents)
        self._add_structure(graph, results)

        name_index, type_index = self._build_indexes(results)
        calls = self._resolve_calls(graph, results, name_index)
        imports = self._resolve_imports(graph, results)
        heritage = self._resolve_heritage(graph, results, type_index)

        self.logger.info(
            f"Built graph: {graph.node_count} nodes, {graph.edge_count} edges "
            f"(calls={calls}, imports={imports}, heritage={heritage})"
        )
        return graph

    def _add_nodes(self, graph: KnowledgeGraph, results: List[ExtractionResult], file_contents: Dict[str, str]):
        for result in results:
            content = file_contents.get(result.file_path, "")
            lines = content.split("\n")
            graph.add_node(GraphNode(
                id=generate_file_id(result.file_path),
                label=NodeLabel.FILE,
                name=posixpath.basename(result.file_path),
                file_path=result.file_path,
                start_line=0,
                end_line=max(0, len(lines) - 1),
                is_exported=False,
                content=self._cap(content),
            ))

            for definition in result.definitions:
                excerpt = "\n".join(lines[definition.start_line:definition.end_line + 1])
                graph.add_node(GraphNode(
                    id=definition.id,
                    label=definition.label,
                    name=definition.name,
                    file_path=result.file_path,
                    start_line=definition.start_line,
                    end_line=definition.end_line,
                    is_exported=definition.is_exported,
                    content=self._cap(excerpt),
                ))

    def _add_structure(self, graph: KnowledgeGraph, results: List[ExtractionResult]):
        for result in results:
            file_id = generate_file_id(result.file_path)
            for definition in result.definitions:
                graph.add_relationship(GraphRelationship(file_id, definition.id, RelationshipType.CONTAINS))
                if definition.owner_id:
                    owner = graph.get_node(definition.owner_id)
                    if owner is not None and owner.label in CONTAINER_LABELS:
                        graph.add_relationship(
                            GraphRelationship(definition.owner_id, definition.id, RelationshipType.DEFINES)
                        )

    def _build_indexes(self, results: List[ExtractionResult]):
        name_index: Dict[str, List[Candidate]] = {}
        type_index: Dict[str, List[Candidate]] = {}
        seen = set()
        for result in results:
            for definition in result.definitions:
                if definition.id in seen:
                    continue
                seen.add(definition.id)
                candidate = (result.file_path, definition.id, definition.label)
                name_index.setdefault(definition.name, []).append(candidate)
                if definition.label in TYPE_LABELS:
                    type_index.setdefault(definition.name, []).append(candidate)
        return name_index, type_index

    def _resolve_calls(self, graph: KnowledgeGraph, results: List[ExtractionResult],
                       name_index: Dict[str, List[Candidate]]) -> int:
        resolved = 0
        dropped = 0
        for result in results:
            for call in result.calls:
                target_id = choose_candidate(name_index.get(call.called_name, []), result.file_path, self.tie_break)
                if target_id is None or target_id == call.source_id:
                    dropped += 1
                    continue
                if graph.add_relationship(GraphRelationship(call.source_id, target_id, RelationshipType.CALLS)):
                    resolved += 1
        self.logger.debug(f"Calls resolved={resolved} dropped={dropped}")
        return resolved

    def _resolve_imports(self, graph: KnowledgeGraph, results: List[ExtractionResult]) -> int:
        known_paths = {result.file_path: generate_file_id(result.file_path) for result in results}
        resolved = 0
        for result in results:
            source_id = known_paths[result.file_path]
            for raw_path in result.imports:
                target_path = resolve_import_path(result.file_path, raw_path, known_paths, result.language)
                if target_path is None or target_path == result.file_path:
                    continue
                if graph.add_relationship(
                    GraphRelationship(source_id, known_paths[target_path], RelationshipType.IMPORTS)
                ):
                    resolved += 1
        return resolved

    def _resolve_heritage(self, graph: KnowledgeGraph, results: List[ExtractionResult],
                          type_index: Dict[str, List[Candidate]]) -> int:
        resolved = 0
        for result in results:
            for heritage in result.heritage:
                target_id = choose_candidate(type_index.get(heritage.parent_name, []), result.file_path, self.tie_break)
                if target_id is None or target_id == heritage.class_id:
                    continue
                relationship_type = RelationshipType.IMPLEMENTS if heritage.kind == "implements" else RelationshipType.EXTENDS
                child = graph.get_node(heritage.class_id)
                parent = graph.get_node(target_id)
                if (relationship_type is RelationshipType.EXTENDS and child is not None and parent is not None
                        and child.label is NodeLabel.CLASS and parent.label is NodeLabel.INTERFACE):
                    relationship_type = RelationshipType.IMPLEMENTS
                if graph.add_relationship(GraphRelationship(heritage.class_id, target_id, relationship_type)):
                    resolved += 1
        return resolved

    def _cap(self, text: str) -> str:
        if self.max_content_chars and len(text) > self.max_content_chars:
            return text[:self.max_content_chars]
        return text
