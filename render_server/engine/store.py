"""
Job store: the single source of truth for job state.

Intake creates records and the worker patches them, so every read returns a
copy taken under the lock and every update is applied as one atomic merge.
"""

import dataclasses
import threading
import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .errors import InvalidTransitionError, NotFoundError
from .schemas import STATUS_ORDER, Job, JobStatus, RenderRequest


class JobStore(ABC):
    """Interface for job tables keyed by job id."""

    @abstractmethod
    def create(self, request: RenderRequest) -> Job:
        ...

    @abstractmethod
    def get(self, job_id: str) -> Optional[Job]:
        ...

    @abstractmethod
    def update(self, job_id: str, **patch: Any) -> Job:
        ...

    def __contains__(self, job_id: object) -> bool:
        return isinstance(job_id, str) and self.get(job_id) is not None


def check_transition(job: Job, patch: Dict[str, Any]) -> None:
    """
    Reject patches that would move a job out of a terminal state, regress
    or skip a phase, or lower its progress (except the reset on failure).
    """
    target = patch.get("status", job.status)
    if not isinstance(target, JobStatus):
        raise ValueError(f"status must be a JobStatus, got {target!r}")
    if job.is_terminal:
        raise InvalidTransitionError(job.id, job.status.value, target.value)
    # output_path belongs to completion and error to failure, each set once.
    if patch.get("output_path") is not None and target is not JobStatus.COMPLETED:
        raise ValueError("output_path may only be set on completion")
    if patch.get("error") is not None and target is not JobStatus.FAILED:
        raise ValueError("error may only be set on failure")
    if target is JobStatus.FAILED:
        return
    # Stay, or advance exactly one phase.
    if STATUS_ORDER.index(target) - STATUS_ORDER.index(job.status) not in (0, 1):
        raise InvalidTransitionError(job.id, job.status.value, target.value)
    if "progress" in patch and patch["progress"] < job.progress:
        raise InvalidTransitionError(job.id, f"progress {job.progress}", f"progress {patch['progress']}")


class InMemoryJobStore(JobStore):
    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    def create(self, request: RenderRequest) -> Job:
        with self._lock:
            job_id = str(uuid.uuid4())
            while job_id in self._jobs:
                job_id = str(uuid.uuid4())
            job = Job(id=job_id, request=request)
            self._jobs[job_id] = job
            return dataclasses.replace(job)

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return dataclasses.replace(job) if job else None

    def update(self, job_id: str, **patch: Any) -> Job:
        """Merge `patch` into the record; fields not named are left as they are."""
        unknown = set(patch) - {f.name for f in dataclasses.fields(Job)}
        if unknown or "id" in patch:
            raise ValueError(f"Cannot patch job fields: {sorted(unknown | ({'id'} & set(patch)))}")
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFoundError(job_id)
            check_transition(job, patch)
            patch.setdefault("updated_at", time.time())
            updated = dataclasses.replace(job, **patch)
            self._jobs[job_id] = updated
            return dataclasses.replace(updated)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
