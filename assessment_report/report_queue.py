import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from .model import Subject
from .pdf import RenderedReport

logger = logging.getLogger(__name__)


@dataclass
class ReportJob:
    id: str
    subject: Subject
    status: str = "submitted"
    result: Optional[RenderedReport] = None
    error: Optional[str] = None
    future: Optional[Future] = field(default=None, repr=False)


class ReportQueue:
    """
    Threaded queue so several reports can render without blocking the UI.
    Each builder call lays out its own document, so jobs share no engine state.
    """

    def __init__(self, max_workers: int = 2):
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="report")
        self.jobs: Dict[str, ReportJob] = {}
        self.lock = threading.Lock()

    def submit(self, subject: Subject, builder: Callable[[Subject], RenderedReport]) -> str:
        job_id = uuid.uuid4().hex[:12]
        job = ReportJob(id=job_id, subject=subject, status="queued")
        with self.lock:
            self.jobs[job_id] = job
        job.future = self.executor.submit(self._run_job, job_id, builder)
        return job_id

    def _run_job(self, job_id: str, builder: Callable[[Subject], RenderedReport]) -> None:
        with self.lock:
            job = self.jobs[job_id]
            job.status = "running"
        try:
            report = builder(job.subject)
        except Exception as exc:
            logger.exception("Report job %s failed", job_id)
            with self.lock:
                job.status = "failed"
                job.error = str(exc)
            return
        with self.lock:
            job.status = "completed"
            job.result = report

    def get(self, job_id: str) -> Optional[ReportJob]:
        with self.lock:
            return self.jobs.get(job_id)

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[ReportJob]:
        job = self.get(job_id)
        if job is not None and job.future is not None:
            job.future.result(timeout=timeout)
        return self.get(job_id)

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)
