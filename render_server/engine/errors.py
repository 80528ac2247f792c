"""
Render job error types.

All errors inherit from RenderServiceError so the HTTP surface and the
worker can catch them in one place.
"""

from typing import Optional


class RenderServiceError(Exception):
    """Base exception for all render service failures."""
    pass


class ValidationError(RenderServiceError):
    """Malformed or incomplete render request, or invalid clip bounds."""
    pass


class FetchError(RenderServiceError):
    """Source asset could not be retrieved or the transfer was interrupted."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class RenderEngineError(RenderServiceError):
    """The external render engine exited with a non-zero status."""

    def __init__(self, returncode: int, diagnostics: str = ""):
        self.returncode = returncode
        self.diagnostics = diagnostics
        message = f"ffmpeg failed (code {returncode})"
        if diagnostics:
            message += f":\n{diagnostics}"
        super().__init__(message)


class NotFoundError(RenderServiceError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class NotReadyError(RenderServiceError):
    def __init__(self, job_id: str, status: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Job {job_id} is not ready (status: {status})")


class InvalidTransitionError(RenderServiceError):
    """Raised when a patch would regress a job or move it out of a terminal state."""

    def __init__(self, job_id: str, current: str, target: str):
        self.job_id = job_id
        self.current = current
        self.target = target
        super().__init__(f"Invalid transition for job {job_id}: {current} -> {target}")


class QueueFullError(RenderServiceError):
    def __init__(self, max_size: int):
        self.max_size = max_size
        super().__init__(f"Render queue is full ({max_size} jobs waiting)")
