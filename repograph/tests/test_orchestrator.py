import threading
import pytest
from pathlib import Path
import sys

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

pytest.importorskip("kuzu")

from pydantic import ValidationError

from repograph.graph.kuzu_store import KuzuGraphStore, StoreNotReadyError
from repograph.pipeline.orchestrator import (
    IngestionPipeline,
    PipelineCancelledError,
    PipelineError,
    PipelinePhase,
    PipelineProgress,
    ProgressChannel,
)
from repograph.pipeline.worker import IngestionWorker
from repograph.processor.solidity_extractor import SolidityExtractor
from repograph.scanner.archive_scanner import ArchiveReadError
from repograph.types import NodeLabel, RelationshipType

PHASE_ORDER = [
    PipelinePhase.EXTRACT_ARCHIVE,
    PipelinePhase.PARSE_FILES,
    PipelinePhase.BUILD_GRAPH,
    PipelinePhase.LOAD_STORE,
    PipelinePhase.READY,
]


class BrokenCopyStore(KuzuGraphStore):
    """Store whose bulk copy statement is invalid."""

    def _copy_statement(self, table, path):
        return f"COPY {table} FROM 'does/not/exist.csv' (HEADER=true)"


class TestIngestionPipeline:
    """Test the end-to-end pipeline."""

    def test_run_end_to_end(self, sample_archive):
        """Test that a zipped archive becomes a loaded graph."""
        events = []
        result = IngestionPipeline(store=KuzuGraphStore(":memory:")).run(sample_archive, events.append)

        try:
            stats = result.graph.stats()
            assert stats["nodes"]["File"] == 4
            assert stats["nodes"]["Class"] == 3
            assert result.load_result.success
            assert result.load_result.count == result.graph.node_count
            assert result.store.is_ready()

            rows = result.store.execute_query(
                "MATCH (a:CodeNode)-[r:CodeRelation]->(b:CodeNode) "
                "WHERE r.type = 'EXTENDS' RETURN a.name AS child, b.name AS parent"
            )
            assert rows == [{"child": "B", "parent": "A"}]
        finally:
            result.store.close()

    def test_progress_events_in_phase_order(self, inheritance_files):
        """Test that progress follows phase order and ends at ready."""
        events = []
        pipeline = IngestionPipeline(store=KuzuGraphStore(":memory:"))
        result = pipeline.run(inheritance_files, events.append)
        result.store.close()

        phases = [PHASE_ORDER.index(event.phase) for event in events]
        assert phases == sorted(phases)
        assert {event.phase for event in events} == set(PHASE_ORDER)
        assert events[-1].phase is PipelinePhase.READY
        assert events[-1].percent == 100
        percents = [event.percent for event in events]
        assert percents == sorted(percents)

    def test_store_failure_degrades(self, inheritance_files):
        """Test that a failed load keeps the in-memory graph."""
        events = []
        result = IngestionPipeline(store=BrokenCopyStore(":memory:")).run(inheritance_files, events.append)

        assert not result.load_result.success
        assert not result.store_available
        assert result.graph.node_count == 6
        assert [n.name for n in result.graph.find_nodes(label=NodeLabel.METHOD)] == ["g", "f"]
        assert events[-1].phase is PipelinePhase.READY
        assert events[-1].detail
        with pytest.raises(StoreNotReadyError):
            result.store.execute_query("MATCH (n:CodeNode) RETURN n.id")
        result.store.close()

    def test_unreadable_archive_is_fatal(self):
        """Test that a bad archive ends in the error phase."""
        events = []

        with pytest.raises(PipelineError) as exc_info:
            IngestionPipeline(store=KuzuGraphStore(":memory:")).run(b"not a zip", events.append)

        assert isinstance(exc_info.value.__cause__, ArchiveReadError)
        assert events[-1].phase is PipelinePhase.ERROR
        assert events[-1].percent == 0
        assert events[-1].detail

    def test_extractor_failure_degrades_file(self, monkeypatch, inheritance_files):
        """Test that a crashing extractor leaves a bare File node."""
        def explode(self, file_path, source):
            raise RuntimeError("boom")

        monkeypatch.setattr(SolidityExtractor, "extract", explode)
        result = IngestionPipeline(store=KuzuGraphStore(":memory:")).run(inheritance_files)
        result.store.close()

        assert result.graph.stats()["nodes"] == {"File": 2}
        assert result.graph.edge_count == 0

    def test_failing_callback_does_not_break_run(self, inheritance_files):
        """Test that callback exceptions are contained."""
        def callback(progress):
            raise ValueError("listener bug")

        result = IngestionPipeline(store=KuzuGraphStore(":memory:")).run(inheritance_files, callback)
        result.store.close()

        assert result.graph.node_count == 6

    def test_cancelled_before_start(self, inheritance_files):
        """Test that a set cancel event abandons the run."""
        cancel = threading.Event()
        cancel.set()
        events = []

        with pytest.raises(PipelineCancelledError):
            IngestionPipeline(store=KuzuGraphStore(":memory:")).run(inheritance_files, events.append, cancel)
        assert events == []

    def test_results_keep_input_order(self):
        """Test that parallel extraction preserves file order."""
        files = {f"f{i:02d}.js": f"function fn{i}() {{}}\n" for i in range(20)}
        result = IngestionPipeline(store=KuzuGraphStore(":memory:"), max_workers=8).run(files)
        result.store.close()

        functions = [n.name for n in result.graph.find_nodes(label=NodeLabel.FUNCTION)]
        assert functions == [f"fn{i}" for i in range(20)]


class TestPipelineProgress:
    """Test progress event validation."""

    def test_percent_bounds(self):
        """Test that percent must lie within 0..100."""
        with pytest.raises(ValidationError):
            PipelineProgress(phase=PipelinePhase.READY, percent=101, message="x")
        with pytest.raises(ValidationError):
            PipelineProgress(phase=PipelinePhase.READY, percent=-1, message="x")

    def test_phase_values(self):
        """Test wire names of the phases."""
        assert [phase.value for phase in PHASE_ORDER] == [
            "extract-archive", "parse-files", "build-graph", "load-store", "ready",
        ]


class TestProgressChannel:
    """Test callback delivery."""

    def test_order_preserved(self):
        """Test that events arrive in emit order."""
        received = []
        channel = ProgressChannel(received.append)
        for percent in range(50):
            channel.emit(PipelineProgress(phase=PipelinePhase.PARSE_FILES, percent=percent, message="p"))
        channel.close()

        assert [event.percent for event in received] == list(range(50))

    def test_suppress(self):
        """Test that suppressed channels drop events."""
        received = []
        channel = ProgressChannel(received.append)
        channel.suppress()
        channel.emit(PipelineProgress(phase=PipelinePhase.READY, percent=100, message="done"))
        channel.close()

        assert received == []

    def test_no_callback(self):
        """Test that a channel without a callback is a no-op."""
        channel = ProgressChannel()
        channel.emit(PipelineProgress(phase=PipelinePhase.READY, percent=100, message="done"))
        channel.close()


class TestIngestionWorker:
    """Test the off-thread worker facade."""

    def test_submit_and_query(self, inheritance_files):
        """Test a run through the worker and a follow-up query."""
        worker = IngestionWorker(store=KuzuGraphStore(":memory:"))
        try:
            result = worker.submit(inheritance_files).result(timeout=60)

            assert worker.result is result
            assert worker.is_database_ready()
            assert worker.get_database_stats() == {"nodes": 6, "edges": result.graph.edge_count}
            rows = worker.run_query("MATCH (n:CodeNode) WHERE n.label = 'Method' RETURN n.name AS name ORDER BY name")
            assert [row["name"] for row in rows] == ["f", "g"]
            calls = [r for r in result.graph.iter_relationships() if r.type is RelationshipType.CALLS]
            assert len(calls) == 1
        finally:
            worker.shutdown()

    def test_query_before_ingest(self):
        """Test that querying an idle worker raises StoreNotReadyError."""
        worker = IngestionWorker(store=KuzuGraphStore(":memory:"))
        try:
            assert not worker.is_database_ready()
            with pytest.raises(StoreNotReadyError):
                worker.run_query("MATCH (n) RETURN n")
        finally:
            worker.shutdown()

    def test_terminate_discards_result(self, inheritance_files):
        """Test that terminate drops the result and store."""
        worker = IngestionWorker(store=KuzuGraphStore(":memory:"))
        try:
            worker.submit(inheritance_files).result(timeout=60)
            worker.terminate()

            assert worker.result is None
            assert not worker.is_database_ready()

            worker.submit(inheritance_files).result(timeout=60)
            assert worker.is_database_ready()
        finally:
            worker.shutdown()
