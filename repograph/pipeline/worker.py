import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from ..graph.kuzu_store import KuzuGraphStore
from ..scanner.archive_scanner import ArchiveSource
from ..utils.logger import app_logger
from .orchestrator import IngestionPipeline, PipelineCancelledError, PipelineResult, ProgressCallback


class IngestionWorker:
    """
    Runs ingestion off the calling thread and answers store queries.

    ``terminate()`` abandons the current run: its remaining progress events
    are dropped, its result is discarded and a fresh store takes its place.
    """

    def __init__(self, store: Optional[KuzuGraphStore] = None):
        self.logger = app_logger.bind(component="worker")
        self.store = store if store is not None else KuzuGraphStore()
        self.result: Optional[PipelineResult] = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ingestion")
        self._cancel = threading.Event()
        self._lock = threading.Lock()

    def submit(self, archive: ArchiveSource, on_progress: Optional[ProgressCallback] = None) -> "Future[PipelineResult]":
        """Queue a pipeline run; the future resolves to its PipelineResult."""
        with self._lock:
            cancel = self._cancel
            store = self.store
            executor = self._executor

        def guarded(progress):
            if not cancel.is_set() and on_progress is not None:
                on_progress(progress)

        def task() -> PipelineResult:
            result = IngestionPipeline(store=store).run(archive, guarded, cancel_event=cancel)
            if cancel.is_set():
                store.close()
                raise PipelineCancelledError("Ingestion was terminated")
            with self._lock:
                self.result = result
            return result

        return executor.submit(task)

    def run_query(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return self.store.execute_query(query, params)

    def is_database_ready(self) -> bool:
        return self.store.is_ready()

    def get_database_stats(self) -> Dict[str, int]:
        return self.store.get_stats()

    def terminate(self):
        """Abandon in-flight work; the worker stays usable for a new run."""
        with self._lock:
            self._cancel.set()
            self._executor.shutdown(wait=False, cancel_futures=True)
            self.result = None
            self.store = KuzuGraphStore(self.store.database_path, self.store.delimiter)
            self._cancel = threading.Event()
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ingestion")
        self.logger.info("Ingestion worker terminated")

    def shutdown(self):
        self._executor.shutdown(wait=True)
        self.store.close()
