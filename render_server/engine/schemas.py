from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from .errors import ValidationError


DEFAULT_WIDTH = 1920
DEFAULT_HEIGHT = 1080
DEFAULT_FPS = 30


class JobStatus(str, Enum):
    QUEUED = "queued"
    DOWNLOADING = "downloading"
    PREPARING = "preparing"
    RENDERING = "rendering"
    COMPLETED = "completed"
    FAILED = "failed"


# Forward order of the happy path; FAILED is reachable from any non-terminal state.
STATUS_ORDER: List[JobStatus] = [
    JobStatus.QUEUED,
    JobStatus.DOWNLOADING,
    JobStatus.PREPARING,
    JobStatus.RENDERING,
    JobStatus.COMPLETED,
]

TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

# Advisory progress reported on entering each phase.
PHASE_PROGRESS: Dict[JobStatus, int] = {
    JobStatus.QUEUED: 0,
    JobStatus.DOWNLOADING: 5,
    JobStatus.PREPARING: 12,
    JobStatus.RENDERING: 20,
    JobStatus.COMPLETED: 100,
    JobStatus.FAILED: 0,
}


@dataclass(frozen=True)
class ClipSpec:
    """
    One trim range of the source, in seconds.

    Values are carried as decoded from the payload; the filter graph
    compiler checks that they are finite numbers with end > start.
    """
    start: float
    end: float


@dataclass(frozen=True)
class RenderRequest:
    source_url: str
    clips: Tuple[ClipSpec, ...]
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    fps: float = DEFAULT_FPS

    def __post_init__(self) -> None:
        # Own an immutable copy so neither callers nor store snapshots share it.
        object.__setattr__(self, "clips", tuple(self.clips))

    @classmethod
    def from_payload(cls, data: Any) -> "RenderRequest":
        """
        Decode a JSON payload ({sourceUrl, clips, width?, height?, fps?}).

        Raises ValidationError on any shape mismatch so nothing malformed
        reaches the queue.
        """
        if not isinstance(data, dict):
            raise ValidationError("Invalid payload. Need sourceUrl and non-empty clips[]")

        source_url = data.get("sourceUrl")
        clips = data.get("clips")
        if not source_url or not isinstance(clips, list) or len(clips) == 0:
            raise ValidationError("Invalid payload. Need sourceUrl and non-empty clips[]")
        if not isinstance(source_url, str):
            raise ValidationError("sourceUrl must be a string")
        parsed = urlparse(source_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError(f"sourceUrl must be an http(s) URL: {source_url!r}")

        specs: List[ClipSpec] = []
        for idx, clip in enumerate(clips):
            if not isinstance(clip, dict):
                raise ValidationError(f"clips[{idx}] must be an object with start and end")
            specs.append(ClipSpec(start=clip.get("start"), end=clip.get("end")))

        return cls(
            source_url=source_url,
            clips=tuple(specs),
            width=int(_dimension(data.get("width"), "width", DEFAULT_WIDTH, integral=True)),
            height=int(_dimension(data.get("height"), "height", DEFAULT_HEIGHT, integral=True)),
            fps=_dimension(data.get("fps"), "fps", DEFAULT_FPS),
        )


def _dimension(value: Any, name: str, default: float, integral: bool = False) -> float:
    # Absent or zero falls back to the default, matching `value || default`.
    if value is None or (is_number(value) and value == 0):
        return default
    if not is_number(value) or value < 0 or value != value or value == float("inf"):
        raise ValidationError(f"{name} must be a positive number")
    if integral:
        if float(value) != int(value):
            raise ValidationError(f"{name} must be a whole number")
        return int(value)
    return value


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class Job:
    id: str
    request: RenderRequest
    status: JobStatus = JobStatus.QUEUED
    progress: int = 0
    output_path: Optional[str] = None
    error: Optional[str] = None
    work_dir: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def status_document(self, download_prefix: str = "/download") -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "progress": self.progress,
            "downloadUrl": f"{download_prefix}/{self.id}" if self.output_path else None,
            "error": self.error,
        }
