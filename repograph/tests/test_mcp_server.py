import asyncio
import pytest
from pathlib import Path
import sys

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

pytest.importorskip("kuzu")
pytest.importorskip("fastmcp")

from repograph.graph.kuzu_store import KuzuGraphStore
from repograph.mcp.server import RepoGraphMCP
from repograph.pipeline.worker import IngestionWorker


@pytest.fixture
def server():
    mcp_server = RepoGraphMCP(IngestionWorker(store=KuzuGraphStore(":memory:")))
    yield mcp_server
    mcp_server.worker.shutdown()


class TestRepoGraphMCP:
    """Test the MCP server's tool implementations."""

    def test_server_instance(self, server):
        """Test that the FastMCP server is exposed."""
        assert server.get_server() is server.mcp

    def test_stats_before_ingest(self, server):
        """Test messages before anything was ingested."""
        assert "No archive" in server.format_stats()
        assert "not ready" in server.query("MATCH (n) RETURN n")

    def test_ingest_and_query(self, server, sample_archive):
        """Test ingestion followed by stats, query and lookup."""
        message = asyncio.run(server.ingest(sample_archive))

        assert "Ingestion complete" in message
        assert "Files: 4" in message
        assert "Total Nodes" in server.format_stats()
        assert '"name": "B"' in server.query(
            "MATCH (n:CodeNode) WHERE n.label = 'Class' RETURN n.name AS name ORDER BY name"
        )
        assert "Method f (project-main/b.sol:4-4)" in server.find_definitions("f")
        assert "Unknown label" in server.find_definitions("f", "Nope")

    def test_ingest_bad_archive(self, server):
        """Test that ingestion errors become messages."""
        message = asyncio.run(server.ingest(b"not a zip"))

        assert "Error ingesting archive" in message
