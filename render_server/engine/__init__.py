"""
Render engine: trims an ordered clip list out of a remote source video,
concatenates the clips and encodes the result on a single background worker.
"""

from .filtergraph import FilterGraph, compile_filter_graph
from .schemas import ClipSpec, Job, JobStatus, RenderRequest
from .store import InMemoryJobStore, JobStore
from .worker import JobManager

__all__ = [
    "ClipSpec",
    "FilterGraph",
    "InMemoryJobStore",
    "Job",
    "JobManager",
    "JobStatus",
    "JobStore",
    "RenderRequest",
    "compile_filter_graph",
]
