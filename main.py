#!/usr/bin/env python3
"""
RepoGraph - source archive ingestion and knowledge graph server

Ingests a zip archive of Solidity / JavaScript / TypeScript sources into a
knowledge graph backed by an embedded Kuzu database, either from the
command line or through an MCP server.
"""

import argparse
import json
import sys

from repograph.config import settings
from repograph.mcp.server import RepoGraphMCP
from repograph.pipeline.orchestrator import PipelineError, PipelineProgress
from repograph.pipeline.worker import IngestionWorker
from repograph.processor.extractor_registry import supported_extensions
from repograph.processor.keywords import KEYWORDS_VERSION
from repograph.utils.logger import app_logger


def _print_progress(progress: PipelineProgress):
    detail = f" ({progress.detail})" if progress.detail else ""
    print(f"[{progress.phase.value:<15}] {progress.percent:5.1f}% {progress.message}{detail}")


def run_ingest(args) -> int:
    worker = IngestionWorker()
    try:
        result = worker.submit(args.archive, _print_progress).result()
        print(json.dumps(result.graph.stats(), indent=2))

        if args.query and not result.store_available:
            app_logger.warning("Graph store unavailable; skipping queries")
            return 0
        for query in args.query or []:
            print(json.dumps(worker.run_query(query), indent=2, default=str))
        return 0
    except PipelineError as e:
        app_logger.error(f"Ingestion failed: {e}")
        return 1
    except Exception as e:
        app_logger.error(f"Query failed: {e}")
        return 1
    finally:
        worker.shutdown()


def run_serve(args) -> int:
    app_logger.info("Starting RepoGraph MCP Server")
    app_logger.info(f"Supported extensions: {', '.join(supported_extensions())}")
    app_logger.info(f"Call keyword tables: v{KEYWORDS_VERSION}")

    try:
        server = RepoGraphMCP().get_server()
        if args.stdio:
            app_logger.info("Using stdio transport")
            server.run(transport="stdio")
        else:
            app_logger.info(f"Using HTTP transport on {args.host}:{args.port}")
            server.run(transport="http", host=args.host, port=args.port)
    except KeyboardInterrupt:
        app_logger.info("Shutting down...")
    except Exception as e:
        app_logger.error(f"Error starting server: {e}")
        return 1
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="RepoGraph - source archive knowledge graph")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Ingest a zip archive and print graph statistics")
    ingest.add_argument("archive", help="Path to the .zip archive")
    ingest.add_argument("--query", action="append", help="Cypher query to run after loading (repeatable)")

    serve = subparsers.add_parser("serve", help="Run the MCP server")
    serve.add_argument("--stdio", action="store_true", help="Use stdio transport")
    serve.add_argument("--http", action="store_true", help="Use HTTP transport (default)")
    serve.add_argument("--port", type=int, default=settings.mcp_port, help="Port for HTTP transport")
    serve.add_argument("--host", default=settings.mcp_host, help="Host for HTTP transport")

    args = parser.parse_args()
    handler = run_ingest if args.command == "ingest" else run_serve
    sys.exit(handler(args))


if __name__ == "__main__":
    main()
