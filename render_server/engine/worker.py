import functools
import logging
import os
import queue
import threading
from typing import Any, Callable, Dict, List, Optional

from .errors import NotFoundError, NotReadyError, QueueFullError
from .filtergraph import FilterGraph, compile_filter_graph
from .media import DEFAULT_CHUNK_SIZE, fetch
from .render import DEFAULT_MAX_OUTPUT, render
from .schemas import PHASE_PROGRESS, Job, JobStatus, RenderRequest
from .store import InMemoryJobStore, JobStore
from .utils import make_work_dir


log = logging.getLogger(__name__)

Fetcher = Callable[[str, str], Any]
Renderer = Callable[[str, FilterGraph, str], Any]

SOURCE_NAME = "source.mp4"
OUTPUT_NAME = "out.mp4"


class JobManager:
    """
    FIFO render queue drained by `concurrency` worker threads (one by default,
    so encodes never overlap). Submitting only touches the store and the
    queue and never waits on a render.
    """

    def __init__(
        self,
        store: Optional[JobStore] = None,
        work_root: Optional[str] = None,
        concurrency: int = 1,
        queue_size: int = 0,
        fetcher: Optional[Fetcher] = None,
        renderer: Optional[Renderer] = None,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.store = store if store is not None else InMemoryJobStore()
        self.work_root = work_root
        self.concurrency = concurrency
        self.queue_size = queue_size
        self.fetcher: Fetcher = fetcher or fetch
        self.renderer: Renderer = renderer or render
        self.q: "queue.Queue[Optional[str]]" = queue.Queue(maxsize=queue_size)
        self.threads: List[threading.Thread] = []
        self._submit_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings, store: Optional[JobStore] = None) -> "JobManager":
        return cls(
            store=store,
            work_root=settings.work_root,
            concurrency=settings.render_concurrency,
            queue_size=settings.queue_max_size,
            fetcher=functools.partial(
                fetch, timeout=settings.fetch_timeout, chunk_size=settings.fetch_chunk_size or DEFAULT_CHUNK_SIZE
            ),
            renderer=functools.partial(
                render, engine=settings.ffmpeg_bin, max_output=settings.max_engine_output or DEFAULT_MAX_OUTPUT
            ),
        )

    def start(self) -> None:
        if any(t.is_alive() for t in self.threads):
            return
        self.threads = [
            threading.Thread(target=self._run, name=f"render-worker-{i}", daemon=True)
            for i in range(self.concurrency)
        ]
        for t in self.threads:
            t.start()
        log.info("Started %d render worker(s)", self.concurrency)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Let queued jobs finish, then shut the workers down."""
        # Sentinels go in under the submit lock so a bounded queue never fills
        # between submit's capacity check and its put.
        with self._submit_lock:
            for _ in self.threads:
                self.q.put(None)
        for t in self.threads:
            t.join(timeout)
        self.threads = []

    def join(self) -> None:
        """Block until every submitted job has been processed."""
        self.q.join()

    def submit(self, req: RenderRequest) -> Job:
        with self._submit_lock:
            if self.q.full():
                raise QueueFullError(self.queue_size)
            job = self.store.create(req)
            self.q.put_nowait(job.id)
        log.info("Queued job %s (%d clips from %s)", job.id, len(req.clips), req.source_url)
        return job

    def get(self, job_id: str) -> Optional[Job]:
        return self.store.get(job_id)

    def status(self, job_id: str) -> Dict[str, Any]:
        job = self.store.get(job_id)
        if job is None:
            raise NotFoundError(job_id)
        return job.status_document()

    def artifact(self, job_id: str) -> str:
        job = self.store.get(job_id)
        if job is None:
            raise NotFoundError(job_id)
        if job.status is not JobStatus.COMPLETED or not job.output_path:
            raise NotReadyError(job_id, job.status.value)
        return job.output_path

    def _run(self) -> None:
        while True:
            job_id = self.q.get()
            try:
                if job_id is None:
                    return
                self._process(job_id)
            except Exception:
                log.exception("Worker error while handling job %s", job_id)
            finally:
                self.q.task_done()

    def _advance(self, job_id: str, status: JobStatus, **fields: Any) -> None:
        self.store.update(job_id, status=status, progress=PHASE_PROGRESS[status], **fields)
        log.info("Job %s -> %s", job_id, status.value)

    def _process(self, job_id: str) -> None:
        job = self.store.get(job_id)
        if job is None:
            log.warning("Dropping unknown job %s", job_id)
            return
        req = job.request

        try:
            work_dir = make_work_dir(self.work_root)
            self._advance(job_id, JobStatus.DOWNLOADING, work_dir=work_dir)
            source_path = os.path.join(work_dir, SOURCE_NAME)
            self.fetcher(req.source_url, source_path)

            graph = compile_filter_graph(req.clips, req.width, req.height, req.fps)
            self._advance(job_id, JobStatus.PREPARING)

            output_path = os.path.join(work_dir, OUTPUT_NAME)
            self._advance(job_id, JobStatus.RENDERING)
            self.renderer(source_path, graph, output_path)

            self._advance(job_id, JobStatus.COMPLETED, output_path=output_path)
        except Exception as e:
            log.exception("Job %s failed", job_id)
            self._advance(job_id, JobStatus.FAILED, error=str(e) or type(e).__name__)
