import asyncio
import json
from pathlib import Path
from typing import Optional

from fastmcp import FastMCP

from ..graph.kuzu_store import StoreNotReadyError
from ..pipeline.orchestrator import PipelineError, PipelineProgress
from ..pipeline.worker import IngestionWorker
from ..types import NodeLabel
from ..utils.logger import app_logger


class RepoGraphMCP:
    """MCP server exposing archive ingestion and graph queries."""

    def __init__(self, worker: Optional[IngestionWorker] = None):
        self.logger = app_logger.bind(component="mcp_server")
        self.mcp = FastMCP("RepoGraph")
        self.worker = worker or IngestionWorker()
        self._register_tools()

    def _register_tools(self):
        """Register all MCP tools."""

        @self.mcp.tool()
        async def ingest_archive(archive_path: str) -> str:
            """Ingest a zip archive of source code into the knowledge graph.

            Args:
                archive_path: Path to the .zip archive

            Returns:
                Status message with graph statistics
            """
            path = Path(archive_path).expanduser()
            if not path.is_file():
                return f"❌ Archive not found: {archive_path}"
            return await self.ingest(path)

        @self.mcp.tool()
        async def execute_query(query: str) -> str:
            """Run a Cypher query against the loaded graph.

            Nodes live in the CodeNode table (id, label, name, filePath,
            startLine, endLine, isExported, content); edges in CodeRelation
            with a ``type`` column.

            Args:
                query: Cypher query text

            Returns:
                Result rows as JSON
            """
            return self.query(query)

        @self.mcp.tool()
        async def graph_stats() -> str:
            """Get node and relationship counts of the ingested graph.

            Returns:
                Statistics summary
            """
            return self.format_stats()

        @self.mcp.tool()
        async def find_definitions(name: str, label: str = None) -> str:
            """Find definitions by name in the in-memory graph.

            Works even when the graph store failed to load.

            Args:
                name: Exact element name
                label: Optional node label filter (Class, Function, Method, ...)

            Returns:
                Matching definitions with their locations
            """
            return self.find_definitions(name, label)

    async def ingest(self, archive) -> str:
        events = []

        def record(progress: PipelineProgress):
            events.append(progress)
            self.logger.debug(f"[{progress.phase.value}] {progress.percent:.0f}% {progress.message}")

        try:
            result = await asyncio.wrap_future(self.worker.submit(archive, record))
        except PipelineError as e:
            self.logger.error(f"Error ingesting archive: {e}")
            return f"❌ Error ingesting archive: {str(e)}"

        stats = result.graph.stats()
        lines = [
            "✅ Ingestion complete",
            f"📁 Files: {stats['nodes'].get(NodeLabel.FILE.value, 0)}",
            f"🔗 Nodes: {result.graph.node_count}",
            f"↔️ Relationships: {result.graph.edge_count}",
        ]
        if result.store_available:
            lines.append(f"🗄️ Store loaded: {result.load_result.count} nodes")
        else:
            lines.append("⚠️ Graph store unavailable; in-memory graph only")
        return "\n".join(lines)

    def query(self, query: str) -> str:
        try:
            rows = self.worker.run_query(query)
        except StoreNotReadyError as e:
            return f"❌ {e}"
        except Exception as e:
            self.logger.error(f"Error executing query: {e}")
            return f"❌ Error executing query: {str(e)}"
        return json.dumps(rows, indent=2, default=str)

    def format_stats(self) -> str:
        result = self.worker.result
        if result is None:
            return "No archive has been ingested yet."

        stats = result.graph.stats()
        formatted = "📊 Graph Statistics\n" + "=" * 50 + "\n\n"
        formatted += f"Total Nodes: {result.graph.node_count}\n"
        for label, count in sorted(stats["nodes"].items()):
            formatted += f"   - {label}: {count}\n"
        formatted += f"Total Relationships: {result.graph.edge_count}\n"
        for rel_type, count in sorted(stats["relationships"].items()):
            formatted += f"   - {rel_type}: {count}\n"

        if self.worker.is_database_ready():
            store_stats = self.worker.get_database_stats()
            formatted += f"\nStore: {store_stats['nodes']} nodes, {store_stats['edges']} edges\n"
        else:
            formatted += "\nStore: unavailable\n"
        return formatted

    def find_definitions(self, name: str, label: Optional[str] = None) -> str:
        result = self.worker.result
        if result is None:
            return "No archive has been ingested yet."
        try:
            node_label = NodeLabel(label) if label else None
        except ValueError:
            return f"❌ Unknown label: {label}"

        nodes = result.graph.find_nodes(name=name, label=node_label)
        if not nodes:
            return f"No definitions named '{name}'"
        return "\n".join(
            f"{node.label.value} {node.name} ({node.file_path}:{node.start_line + 1}-{node.end_line + 1})"
            for node in nodes
        )

    def get_server(self):
        """Get the FastMCP server instance."""
        return self.mcp
