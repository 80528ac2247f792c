import os
import tempfile
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False
    work_root: Optional[str] = None
    ffmpeg_bin: Optional[str] = None
    render_concurrency: int = 1
    queue_max_size: int = 100
    fetch_timeout: float = 60.0
    fetch_chunk_size: int = 1024 * 1024
    max_engine_output: int = 10 * 1024 * 1024
    max_content_length: int = 25 * 1024 * 1024
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    download_name: str = "export.mp4"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """Build settings from the environment, seeded from a .env file if present."""
        if dotenv:
            load_dotenv()
        origins = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]
        settings = cls(
            host=os.environ.get("HOST", "0.0.0.0"),
            port=_env_int("PORT", 8080),
            debug=_env_bool("DEBUG"),
            work_root=os.environ.get("WORK_ROOT") or tempfile.gettempdir(),
            ffmpeg_bin=os.environ.get("FFMPEG_BIN") or None,
            render_concurrency=_env_int("RENDER_CONCURRENCY", 1),
            queue_max_size=_env_int("QUEUE_MAX_SIZE", 100),
            fetch_timeout=_env_float("FETCH_TIMEOUT", 60.0),
            fetch_chunk_size=_env_int("FETCH_CHUNK_SIZE", 1024 * 1024),
            max_engine_output=_env_int("MAX_ENGINE_OUTPUT", 10 * 1024 * 1024),
            max_content_length=_env_int("MAX_CONTENT_LENGTH", 25 * 1024 * 1024),
            cors_origins=origins or ["*"],
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            download_name=os.environ.get("DOWNLOAD_NAME", "export.mp4"),
        )
        if settings.render_concurrency < 1:
            raise ValueError("RENDER_CONCURRENCY must be at least 1")
        if settings.queue_max_size < 0:
            raise ValueError("QUEUE_MAX_SIZE must be >= 0")
        return settings
