from .graph_builder import GraphBuilder, TieBreakPolicy, resolve_import_path
from .tabular_serializer import escape_csv_field, serialize_graph

__all__ = [
    "GraphBuilder",
    "TieBreakPolicy",
    "resolve_import_path",
    "escape_csv_field",
    "serialize_graph",
]
