import logging
import os
import subprocess
from typing import List, Optional

import imageio_ffmpeg

from .errors import RenderEngineError
from .filtergraph import FilterGraph


log = logging.getLogger(__name__)

DEFAULT_MAX_OUTPUT = 10 * 1024 * 1024

# Fixed output encoding: H.264 + AAC, yuv420p, moov atom up front for streaming.
OUTPUT_CODEC_ARGS = [
    "-c:v", "libx264",
    "-preset", "veryfast",
    "-crf", "20",
    "-movflags", "+faststart",
    "-pix_fmt", "yuv420p",
    "-c:a", "aac",
    "-b:a", "192k",
]


def ffmpeg_bin(explicit: Optional[str] = None) -> str:
    """FFMPEG_BIN wins, then the imageio-ffmpeg bundled binary, then PATH."""
    exe = explicit or os.environ.get("FFMPEG_BIN")
    if exe:
        return exe
    try:
        return imageio_ffmpeg.get_ffmpeg_exe()
    except RuntimeError:
        return "ffmpeg"


def build_ffmpeg_args(engine: str, source_path: str, graph: FilterGraph, output_path: str) -> List[str]:
    video_map, audio_map = graph.output_maps
    return [
        engine,
        "-y", "-nostdin", "-hide_banner",
        "-i", source_path,
        "-filter_complex", graph.render(),
        "-map", video_map,
        "-map", audio_map,
        *OUTPUT_CODEC_ARGS,
        output_path,
    ]


def _run_ffmpeg(cmd: List[str], max_output: int = DEFAULT_MAX_OUTPUT) -> None:
    """
    Run ffmpeg to completion and raise with the stderr tail on failure.

    Only the last `max_output` bytes of diagnostics are kept in memory.
    """
    log.debug("Running %s", " ".join(cmd))
    try:
        proc = subprocess.Popen(cmd, stdin=subprocess.DEVNULL, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE)
    except OSError as e:
        raise RenderEngineError(-1, f"could not start {cmd[0]}: {e}") from e

    tail = bytearray()
    with proc:
        for chunk in iter(lambda: proc.stderr.read(64 * 1024), b""):
            tail += chunk
            if len(tail) > max_output:
                del tail[:-max_output]
        returncode = proc.wait()

    if returncode != 0:
        diagnostics = tail.decode("utf-8", errors="ignore")
        log.warning("ffmpeg exited with code %d", returncode)
        raise RenderEngineError(returncode, diagnostics)


def render(
    source_path: str,
    graph: FilterGraph,
    output_path: str,
    engine: Optional[str] = None,
    max_output: int = DEFAULT_MAX_OUTPUT,
) -> str:
    """Encode `source_path` through `graph` into `output_path`; blocks until ffmpeg exits."""
    cmd = build_ffmpeg_args(ffmpeg_bin(engine), source_path, graph, output_path)
    _run_ffmpeg(cmd, max_output=max_output)
    return output_path
