from typing import Any, Iterable, Tuple

from ..config import settings
from ..types import KnowledgeGraph

NODE_COLUMNS = ("id", "label", "name", "filePath", "startLine", "endLine", "isExported", "content")
EDGE_COLUMNS = ("sourceId", "targetId", "type")


def escape_csv_field(value: Any, delimiter: str = ",") -> str:
    """
    Render one field for a bulk-load table.

    Fields holding the delimiter, a quote or a line break are wrapped in
    quotes with inner quotes doubled; a source excerpt that slips through
    unquoted shifts every row after it.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if delimiter in text or '"' in text or "\n" in text or "\r" in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def _row(values: Iterable[Any], delimiter: str) -> str:
    return delimiter.join(escape_csv_field(value, delimiter) for value in values) + "\n"


def serialize_nodes(graph: KnowledgeGraph, delimiter: str = ",") -> str:
    rows = [_row(NODE_COLUMNS, delimiter)]
    for node in graph.iter_nodes():
        rows.append(_row((
            node.id,
            node.label.value,
            node.name,
            node.file_path,
            node.start_line,
            node.end_line,
            node.is_exported,
            node.content,
        ), delimiter))
    return "".join(rows)


def serialize_relationships(graph: KnowledgeGraph, delimiter: str = ",") -> str:
    rows = [_row(EDGE_COLUMNS, delimiter)]
    for rel in graph.iter_relationships():
        rows.append(_row((rel.source_id, rel.target_id, rel.type.value), delimiter))
    return "".join(rows)


def serialize_graph(graph: KnowledgeGraph, delimiter: str = None) -> Tuple[str, str]:
    """Return (node_table, edge_table) with header rows."""
    delimiter = delimiter or settings.csv_delimiter
    return serialize_nodes(graph, delimiter), serialize_relationships(graph, delimiter)
