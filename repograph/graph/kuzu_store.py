import shutil
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import kuzu

from ..config import settings
from ..utils.logger import app_logger


class StoreNotReadyError(RuntimeError):
    """Raised when the store is queried before a load has completed."""


@dataclass
class LoadResult:
    """Outcome of a bulk load."""
    success: bool
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "count": self.count}


class KuzuGraphStore:
    """
    Embedded Kuzu database holding one ingested graph.

    One store per session: ``reset()`` swaps in a fresh database for a new
    archive. Only ``load()`` writes; queries are refused until it succeeds.
    """

    def __init__(self, database_path: Optional[str] = None, delimiter: Optional[str] = None):
        self.logger = app_logger.bind(component="kuzu_store")
        self.database_path = database_path or settings.kuzu_database_path
        self.delimiter = delimiter or settings.csv_delimiter
        self.node_table = settings.node_table_name
        self.edge_table = settings.edge_table_name
        self._db = None
        self._conn = None
        self._ready = False
        self._loading = False
        self._lock = threading.Lock()

    @property
    def in_memory(self) -> bool:
        return self.database_path in ("", ":memory:")

    def initialize(self):
        """Open the database and create the schema."""
        if self._conn is not None:
            return
        try:
            if self.in_memory:
                self._db = kuzu.Database(":memory:")
            else:
                Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)
                self._db = kuzu.Database(self.database_path)
            self._conn = kuzu.Connection(self._db)
            self._create_schema()
            self.logger.info(f"Opened Kuzu database at {self.database_path}")
        except Exception as e:
            self.logger.error(f"Failed to open Kuzu database: {e}")
            self._db = None
            self._conn = None
            raise

    def _create_schema(self):
        self._conn.execute(
            f"CREATE NODE TABLE IF NOT EXISTS {self.node_table} ("
            "id STRING, label STRING, name STRING, filePath STRING, "
            "startLine INT64, endLine INT64, isExported BOOLEAN, content STRING, "
            "PRIMARY KEY (id))"
        )
        self._conn.execute(
            f"CREATE REL TABLE IF NOT EXISTS {self.edge_table} "
            f"(FROM {self.node_table} TO {self.node_table}, type STRING)"
        )

    def load(self, node_table: str, edge_table: str, expected_count: Optional[int] = None) -> LoadResult:
        """
        Bulk-load serialized node and edge tables.

        Never raises: any failure is logged and reported as
        ``LoadResult(success=False)`` so callers can keep the in-memory graph.
        """
        with self._lock:
            self._loading = True
            self._ready = False
            try:
                self.initialize()
                with tempfile.TemporaryDirectory(prefix="repograph-") as tmp_dir:
                    nodes_path = Path(tmp_dir) / "nodes.csv"
                    edges_path = Path(tmp_dir) / "edges.csv"
                    nodes_path.write_text(node_table, encoding="utf-8")
                    edges_path.write_text(edge_table, encoding="utf-8")

                    # edges reference node ids, so nodes go first
                    if _has_rows(node_table):
                        self._conn.execute(self._copy_statement(self.node_table, nodes_path))
                    if _has_rows(edge_table):
                        self._conn.execute(self._copy_statement(self.edge_table, edges_path))

                count = self._count_nodes()
                if expected_count is not None and count != expected_count:
                    self.logger.warning(f"Node count mismatch after load: store={count} graph={expected_count}")
                self._ready = True
                self.logger.info(f"Loaded {count} nodes into Kuzu")
                return LoadResult(success=True, count=count)
            except Exception as e:
                self.logger.error(f"Kuzu bulk load failed, continuing without store: {e}")
                return LoadResult(success=False, count=0)
            finally:
                self._loading = False

    def _copy_statement(self, table: str, path: Path) -> str:
        # parallel CSV splitting breaks multi-line quoted fields
        options = "HEADER=true, PARALLEL=false"
        if self.delimiter != ",":
            options += f", DELIM='{self.delimiter}'"
        return f'COPY {table} FROM "{path.as_posix()}" ({options})'

    def _count_nodes(self) -> int:
        result = self._conn.execute(f"MATCH (n:{self.node_table}) RETURN count(n) AS cnt")
        if result.has_next():
            return int(result.get_next()[0])
        return 0

    def is_ready(self) -> bool:
        return self._ready and not self._loading

    def execute_query(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run a Cypher query; rows come back keyed by column name."""
        with self._lock:
            # a reset or load may have run since the caller last checked
            if not self.is_ready() or self._conn is None:
                raise StoreNotReadyError("Graph store is not ready; ingest an archive first")
            result = self._conn.execute(query, params or {})
            columns = result.get_column_names()
            rows = []
            while result.has_next():
                rows.append(dict(zip(columns, result.get_next())))
            return rows

    def get_stats(self) -> Dict[str, int]:
        """Node and edge counts; zeros when the store is unavailable."""
        if not self.is_ready():
            return {"nodes": 0, "edges": 0}
        try:
            nodes = self.execute_query(f"MATCH (n:{self.node_table}) RETURN count(n) AS cnt")
            edges = self.execute_query(f"MATCH ()-[r:{self.edge_table}]->() RETURN count(r) AS cnt")
            return {"nodes": int(nodes[0]["cnt"]), "edges": int(edges[0]["cnt"])}
        except Exception as e:
            self.logger.error(f"Failed to read store stats: {e}")
            return {"nodes": 0, "edges": 0}

    def reset(self):
        """Drop the current database and start empty."""
        with self._lock:
            self._close_handles()
            if not self.in_memory:
                path = Path(self.database_path)
                if path.is_dir():
                    shutil.rmtree(path)
                elif path.exists():
                    path.unlink()
            self.logger.info("Reset graph store")

    def close(self):
        with self._lock:
            self._close_handles()

    def _close_handles(self):
        self._ready = False
        if self._conn is not None:
            self._conn.close()
        if self._db is not None:
            self._db.close()
        self._conn = None
        self._db = None


def _has_rows(table: str) -> bool:
    _, _, body = table.partition("\n")
    return bool(body.strip())
