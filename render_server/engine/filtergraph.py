"""
Filter graph compiler: ordered clips + output geometry -> ffmpeg filter program.

The graph is built as typed stages (Filter / FilterChain) and only turned
into ffmpeg's filter_complex text by FilterGraph.render(), at the point where
the engine is invoked.

For N clips the program is:

    [0:v]trim=start=S:end=E,setpts=PTS-STARTPTS[v{i}]        (per clip)
    [0:a]atrim=start=S:end=E,asetpts=PTS-STARTPTS[a{i}]      (per clip)
    [v0]..[vN-1]concat=n=N:v=1:a=0[vout]
    [a0]..[aN-1]concat=n=N:v=0:a=1[aout]
    [vout]scale=W:H:force_original_aspect_ratio=decrease,pad=W:H:(ow-iw)/2:(oh-ih)/2,fps=F[vfinal]
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .errors import ValidationError
from .schemas import DEFAULT_FPS, DEFAULT_HEIGHT, DEFAULT_WIDTH, ClipSpec, is_number
from .utils import format_seconds


VIDEO_CONCAT_LABEL = "vout"
AUDIO_OUT_LABEL = "aout"
VIDEO_OUT_LABEL = "vfinal"


@dataclass(frozen=True)
class Filter:
    name: str
    args: Tuple[Tuple[Optional[str], str], ...] = ()

    def render(self) -> str:
        if not self.args:
            return self.name
        parts = [value if key is None else f"{key}={value}" for key, value in self.args]
        return f"{self.name}=" + ":".join(parts)


def make_filter(name: str, *positional: object, **options: object) -> Filter:
    """Positional args are emitted first, then key=value options in call order."""
    args = [(None, str(v)) for v in positional]
    args += [(k, str(v)) for k, v in options.items()]
    return Filter(name=name, args=tuple(args))


@dataclass(frozen=True)
class FilterChain:
    inputs: Tuple[str, ...]
    filters: Tuple[Filter, ...]
    outputs: Tuple[str, ...]

    def render(self) -> str:
        ins = "".join(f"[{label}]" for label in self.inputs)
        outs = "".join(f"[{label}]" for label in self.outputs)
        return ins + ",".join(f.render() for f in self.filters) + outs


@dataclass(frozen=True)
class FilterGraph:
    chains: Tuple[FilterChain, ...]
    video_label: str = VIDEO_OUT_LABEL
    audio_label: str = AUDIO_OUT_LABEL

    def render(self) -> str:
        return ";".join(chain.render() for chain in self.chains)

    @property
    def output_maps(self) -> Tuple[str, str]:
        return f"[{self.video_label}]", f"[{self.audio_label}]"


def validate_clips(clips: Sequence[ClipSpec]) -> None:
    """Fail fast on the first bad clip; no graph is produced for invalid input."""
    if not clips:
        raise ValidationError("clips must not be empty")
    for idx, clip in enumerate(clips):
        for name in ("start", "end"):
            value = getattr(clip, name)
            if not is_number(value) or not math.isfinite(value):
                raise ValidationError(f"clips[{idx}].{name} must be a number")
        if clip.start < 0:
            raise ValidationError(f"clips[{idx}].start must be >= 0")
        if clip.end <= clip.start:
            raise ValidationError(f"clips[{idx}]: end must be > start")


def _validate_geometry(width: int, height: int, fps: float) -> None:
    for name, value in (("width", width), ("height", height), ("fps", fps)):
        if not is_number(value) or not math.isfinite(value) or value <= 0:
            raise ValidationError(f"{name} must be a positive number")


def _trim_chains(idx: int, clip: ClipSpec) -> Tuple[FilterChain, FilterChain]:
    start, end = format_seconds(clip.start), format_seconds(clip.end)
    video = FilterChain(
        inputs=("0:v",),
        filters=(make_filter("trim", start=start, end=end), make_filter("setpts", "PTS-STARTPTS")),
        outputs=(f"v{idx}",),
    )
    audio = FilterChain(
        inputs=("0:a",),
        filters=(make_filter("atrim", start=start, end=end), make_filter("asetpts", "PTS-STARTPTS")),
        outputs=(f"a{idx}",),
    )
    return video, audio


def compile_filter_graph(
    clips: Sequence[ClipSpec],
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
    fps: float = DEFAULT_FPS,
) -> FilterGraph:
    """
    Compile the ordered clip list into a single trim/concat/scale graph.

    Pure and deterministic: identical input yields an identical graph.
    Raises ValidationError before building anything if a clip is invalid.
    """
    validate_clips(clips)
    _validate_geometry(width, height, fps)

    chains = []
    for idx, clip in enumerate(clips):
        chains.extend(_trim_chains(idx, clip))

    n = len(clips)
    # Video-only and audio-only concat take different stream-count signatures.
    chains.append(FilterChain(
        inputs=tuple(f"v{i}" for i in range(n)),
        filters=(make_filter("concat", n=n, v=1, a=0),),
        outputs=(VIDEO_CONCAT_LABEL,),
    ))
    chains.append(FilterChain(
        inputs=tuple(f"a{i}" for i in range(n)),
        filters=(make_filter("concat", n=n, v=0, a=1),),
        outputs=(AUDIO_OUT_LABEL,),
    ))

    w, h, rate = int(width), int(height), format_seconds(fps)
    chains.append(FilterChain(
        inputs=(VIDEO_CONCAT_LABEL,),
        filters=(
            make_filter("scale", w, h, force_original_aspect_ratio="decrease"),
            make_filter("pad", w, h, "(ow-iw)/2", "(oh-ih)/2"),
            make_filter("fps", rate),
        ),
        outputs=(VIDEO_OUT_LABEL,),
    ))

    return FilterGraph(chains=tuple(chains))
