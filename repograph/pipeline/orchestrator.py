"""
Ingestion pipeline.

Runs archive extraction, per-file parsing, graph building and the store
load in order, emitting a progress event at every phase transition. This
is the only place that knows about phase ordering.
"""
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from ..config import settings
from ..graph.graph_builder import GraphBuilder
from ..graph.kuzu_store import KuzuGraphStore, LoadResult
from ..graph.tabular_serializer import serialize_graph
from ..processor.extractor_registry import get_extractor
from ..scanner.archive_scanner import ArchiveScanner, ArchiveSource
from ..types import ExtractionResult, FileEntry, KnowledgeGraph
from ..utils.logger import app_logger


class PipelinePhase(str, Enum):
    EXTRACT_ARCHIVE = "extract-archive"
    PARSE_FILES = "parse-files"
    BUILD_GRAPH = "build-graph"
    LOAD_STORE = "load-store"
    READY = "ready"
    ERROR = "error"


class PipelineProgress(BaseModel):
    """A progress notification."""
    phase: PipelinePhase
    percent: float = Field(ge=0, le=100)
    message: str
    detail: Optional[str] = None


class PipelineError(Exception):
    """Raised after the terminal error event has been emitted."""


class PipelineCancelledError(PipelineError):
    """Raised when a run is abandoned between phases."""


ProgressCallback = Callable[[PipelineProgress], None]


@dataclass
class PipelineResult:
    """Everything a finished run hands back to the caller."""
    graph: KnowledgeGraph
    file_contents: Dict[str, str] = field(default_factory=dict)
    load_result: LoadResult = field(default_factory=lambda: LoadResult(success=False))
    store: Optional[KuzuGraphStore] = None

    @property
    def store_available(self) -> bool:
        return self.load_result.success


class ProgressChannel:
    """
    Delivers progress callbacks on a dedicated thread.

    Delivery is fire-and-forget and keeps emit order. A failing callback is
    logged and never reaches the pipeline.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.logger = app_logger.bind(component="progress")
        self.callback = callback
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="progress") if callback else None
        self._suppressed = threading.Event()

    def emit(self, progress: PipelineProgress):
        if self._executor is None or self._suppressed.is_set():
            return
        self._executor.submit(self._deliver, progress)

    def _deliver(self, progress: PipelineProgress):
        if self._suppressed.is_set():
            return
        try:
            self.callback(progress)
        except Exception as e:
            self.logger.error(f"Progress callback failed: {e}")

    def suppress(self):
        """Drop pending and future events."""
        self._suppressed.set()

    def close(self, wait: bool = True):
        if self._executor is not None:
            self._executor.shutdown(wait=wait)


class IngestionPipeline:
    """archive -> files -> extraction results -> graph -> store."""

    def __init__(self, store: Optional[KuzuGraphStore] = None, scanner: Optional[ArchiveScanner] = None,
                 builder: Optional[GraphBuilder] = None, max_workers: Optional[int] = None):
        self.logger = app_logger.bind(component="pipeline")
        self.store = store if store is not None else KuzuGraphStore()
        self.scanner = scanner or ArchiveScanner()
        self.builder = builder or GraphBuilder()
        self.max_workers = max_workers or settings.max_workers

    def run(self, archive: ArchiveSource, on_progress: Optional[ProgressCallback] = None,
            cancel_event: Optional[threading.Event] = None) -> PipelineResult:
        """
        Run every phase to completion.

        Raises PipelineError (wrapping the cause) after emitting the
        terminal ``error`` event. A failed store load is not an error: the
        result then carries ``load_result.success == False`` and the
        in-memory graph.
        """
        channel = ProgressChannel(on_progress)
        try:
            return self._run(archive, channel, cancel_event)
        except PipelineCancelledError:
            channel.suppress()
            raise
        except Exception as e:
            self.logger.error(f"Ingestion failed: {e}")
            channel.emit(PipelineProgress(
                phase=PipelinePhase.ERROR, percent=0, message="Ingestion failed", detail=str(e),
            ))
            raise PipelineError(str(e)) from e
        finally:
            channel.close()

    def _run(self, archive: ArchiveSource, channel: ProgressChannel,
             cancel_event: Optional[threading.Event]) -> PipelineResult:
        _check_cancelled(cancel_event)
        channel.emit(PipelineProgress(phase=PipelinePhase.EXTRACT_ARCHIVE, percent=0, message="Reading archive..."))
        files = self.scanner.read_archive(archive)
        file_contents = {entry.path: entry.content for entry in files}
        channel.emit(PipelineProgress(
            phase=PipelinePhase.EXTRACT_ARCHIVE, percent=15, message=f"Found {len(files)} files",
        ))

        _check_cancelled(cancel_event)
        channel.emit(PipelineProgress(phase=PipelinePhase.PARSE_FILES, percent=15, message="Parsing files..."))
        results = self._extract_all(files, channel)

        _check_cancelled(cancel_event)
        channel.emit(PipelineProgress(phase=PipelinePhase.BUILD_GRAPH, percent=60, message="Building graph..."))
        graph = self.builder.build(results, file_contents)
        channel.emit(PipelineProgress(
            phase=PipelinePhase.BUILD_GRAPH, percent=80,
            message=f"Graph built: {graph.node_count} nodes, {graph.edge_count} relationships",
        ))

        _check_cancelled(cancel_event)
        channel.emit(PipelineProgress(phase=PipelinePhase.LOAD_STORE, percent=80, message="Loading graph store..."))
        load_result = self._load_store(graph)
        channel.emit(PipelineProgress(
            phase=PipelinePhase.LOAD_STORE, percent=95,
            message=f"Loaded {load_result.count} nodes" if load_result.success else "Graph store unavailable",
        ))

        _check_cancelled(cancel_event)
        channel.emit(PipelineProgress(
            phase=PipelinePhase.READY, percent=100,
            message=f"Ready: {graph.node_count} nodes, {graph.edge_count} relationships",
            detail=None if load_result.success else "Continuing with the in-memory graph only",
        ))
        return PipelineResult(graph=graph, file_contents=file_contents, load_result=load_result, store=self.store)

    def _extract_all(self, files: List[FileEntry], channel: ProgressChannel) -> List[ExtractionResult]:
        """Extract every file in parallel; results keep input order."""
        results: List[Optional[ExtractionResult]] = [None] * len(files)
        if not files:
            return []

        last_percent = -1
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(self.extract_file, entry): index for index, entry in enumerate(files)}
            for done, future in enumerate(as_completed(futures), start=1):
                results[futures[future]] = future.result()
                percent = 15 + int(45 * done / len(files))
                if percent != last_percent:
                    last_percent = percent
                    channel.emit(PipelineProgress(
                        phase=PipelinePhase.PARSE_FILES, percent=percent,
                        message=f"Parsed {done}/{len(files)} files", detail=files[futures[future]].path,
                    ))
        return results

    def extract_file(self, entry: FileEntry) -> ExtractionResult:
        """Extract one file; a failing extractor degrades it to a bare File node."""
        extractor = get_extractor(entry.path)
        if extractor is None:
            return ExtractionResult(file_path=entry.path)
        try:
            return extractor.extract(entry.path, entry.content)
        except Exception as e:
            self.logger.error(f"Error extracting {entry.path}: {e}")
            return ExtractionResult(file_path=entry.path, language=extractor.language)

    def _load_store(self, graph: KnowledgeGraph) -> LoadResult:
        try:
            node_table, edge_table = serialize_graph(graph, self.store.delimiter)
            self.store.reset()
        except Exception as e:
            self.logger.error(f"Failed to prepare graph store: {e}")
            return LoadResult(success=False, count=0)
        return self.store.load(node_table, edge_table, expected_count=graph.node_count)


def _check_cancelled(cancel_event: Optional[threading.Event]):
    if cancel_event is not None and cancel_event.is_set():
        raise PipelineCancelledError("Ingestion was terminated")
