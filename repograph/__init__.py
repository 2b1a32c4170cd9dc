"""
repograph - structural knowledge graphs from uploaded source archives.

Extracts definitions, imports, calls and heritage from source text with
bracket/line based scanning, resolves them into one knowledge graph and
bulk-loads the graph into an embedded Kuzu store for querying.
"""

__version__ = "0.1.0"
