from typing import List, Dict, Any, Optional, Tuple, Iterator
from dataclasses import dataclass, field
from enum import Enum


class NodeLabel(Enum):
    """Structural element kinds."""
    FILE = "File"
    MODULE = "Module"
    CLASS = "Class"
    INTERFACE = "Interface"
    STRUCT = "Struct"
    ENUM = "Enum"
    FUNCTION = "Function"
    METHOD = "Method"
    CONSTRUCTOR = "Constructor"
    CODE_ELEMENT = "CodeElement"


class RelationshipType(Enum):
    """Relationship kinds between structural elements."""
    CONTAINS = "CONTAINS"
    DEFINES = "DEFINES"
    CALLS = "CALLS"
    IMPORTS = "IMPORTS"
    EXTENDS = "EXTENDS"
    IMPLEMENTS = "IMPLEMENTS"


# Labels that can own members and appear as heritage targets
CONTAINER_LABELS = frozenset({
    NodeLabel.CLASS, NodeLabel.INTERFACE, NodeLabel.MODULE, NodeLabel.STRUCT,
})
TYPE_LABELS = frozenset({NodeLabel.CLASS, NodeLabel.INTERFACE})


@dataclass
class FileEntry:
    """A decoded archive entry handed to the extraction stage."""
    path: str
    content: str


@dataclass
class GraphNode:
    """Represents a node in the knowledge graph."""
    id: str
    label: NodeLabel
    name: str
    file_path: str
    start_line: int
    end_line: int
    is_exported: bool = False
    content: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "label": self.label.value,
            "name": self.name,
            "file_path": self.file_path,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "is_exported": self.is_exported,
            "content": self.content,
        }


@dataclass
class GraphRelationship:
    """Represents a directed edge in the knowledge graph."""
    source_id: str
    target_id: str
    type: RelationshipType

    @property
    def key(self) -> Tuple[str, str, RelationshipType]:
        return (self.source_id, self.target_id, self.type)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "source_id": self.source_id,
            "target_id": self.target_id,
            "type": self.type.value,
        }


class KnowledgeGraph:
    """
    Nodes unique by id plus an ordered sequence of relationships.

    Append-only while the builder runs; callers treat it as immutable once
    returned. Relationships are deduplicated on (source, target, type) and
    must reference nodes that are already present.
    """

    def __init__(self):
        self._nodes: Dict[str, GraphNode] = {}
        self._relationships: List[GraphRelationship] = []
        self._relationship_keys = set()

    def add_node(self, node: GraphNode) -> bool:
        """Add a node; returns False when the id is already present."""
        if node.id in self._nodes:
            return False
        self._nodes[node.id] = node
        return True

    def add_relationship(self, relationship: GraphRelationship) -> bool:
        """Add an edge; returns False for duplicates or dangling endpoints."""
        if relationship.source_id not in self._nodes or relationship.target_id not in self._nodes:
            return False
        if relationship.key in self._relationship_keys:
            return False
        self._relationship_keys.add(relationship.key)
        self._relationships.append(relationship)
        return True

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        return self._nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    @property
    def nodes(self) -> List[GraphNode]:
        return list(self._nodes.values())

    @property
    def relationships(self) -> List[GraphRelationship]:
        return list(self._relationships)

    def iter_nodes(self) -> Iterator[GraphNode]:
        return iter(self._nodes.values())

    def iter_relationships(self) -> Iterator[GraphRelationship]:
        return iter(self._relationships)

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._relationships)

    def find_nodes(self, name: Optional[str] = None, label: Optional[NodeLabel] = None) -> List[GraphNode]:
        """In-memory lookup used when no store is available."""
        return [
            node for node in self._nodes.values()
            if (name is None or node.name == name) and (label is None or node.label == label)
        ]

    def stats(self) -> Dict[str, Any]:
        """Count nodes by label and relationships by type."""
        node_counts: Dict[str, int] = {}
        for node in self._nodes.values():
            node_counts[node.label.value] = node_counts.get(node.label.value, 0) + 1

        rel_counts: Dict[str, int] = {}
        for rel in self._relationships:
            rel_counts[rel.type.value] = rel_counts.get(rel.type.value, 0) + 1

        return {"nodes": node_counts, "relationships": rel_counts}

    def to_dict(self) -> Dict[str, Any]:
        """Get the complete graph data for visualization."""
        return {
            "nodes": [node.to_dict() for node in self._nodes.values()],
            "relationships": [rel.to_dict() for rel in self._relationships],
            "metadata": {"node_count": self.node_count, "edge_count": self.edge_count},
        }


@dataclass
class ExtractedDefinition:
    """A definition found by an extractor, before graph assembly."""
    id: str
    label: NodeLabel
    name: str
    start_line: int
    end_line: int
    is_exported: bool
    start_index: int
    owner_id: Optional[str] = None


@dataclass
class ExtractedCall:
    """Unresolved call site: a called name and its enclosing scope's id."""
    called_name: str
    source_id: str


@dataclass
class ExtractedHeritage:
    """Unresolved inheritance or implementation clause."""
    class_id: str
    class_name: str
    parent_name: str
    kind: str  # "extends" or "implements"


@dataclass
class ExtractionResult:
    """Everything one extractor pass produced for one file."""
    file_path: str
    language: Optional[str] = None
    definitions: List[ExtractedDefinition] = field(default_factory=list)
    imports: List[str] = field(default_factory=list)
    calls: List[ExtractedCall] = field(default_factory=list)
    heritage: List[ExtractedHeritage] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "file_path": self.file_path,
            "language": self.language,
            "definitions": [
                {
                    "id": d.id,
                    "label": d.label.value,
                    "name": d.name,
                    "start_line": d.start_line,
                    "end_line": d.end_line,
                    "is_exported": d.is_exported,
                    "owner_id": d.owner_id,
                }
                for d in self.definitions
            ],
            "imports": list(self.imports),
            "calls": [{"called_name": c.called_name, "source_id": c.source_id} for c in self.calls],
            "heritage": [
                {"class_name": h.class_name, "parent_name": h.parent_name, "kind": h.kind}
                for h in self.heritage
            ],
        }
