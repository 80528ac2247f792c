import sys

import pytest

from render_server.engine import render as render_mod
from render_server.engine.errors import RenderEngineError
from render_server.engine.filtergraph import compile_filter_graph
from render_server.engine.schemas import ClipSpec


@pytest.fixture()
def graph():
    return compile_filter_graph([ClipSpec(0, 5), ClipSpec(10, 12)])


def test_build_ffmpeg_args(graph):
    args = render_mod.build_ffmpeg_args("/usr/bin/ffmpeg", "/w/source.mp4", graph, "/w/out.mp4")
    assert args == [
        "/usr/bin/ffmpeg",
        "-y", "-nostdin", "-hide_banner",
        "-i", "/w/source.mp4",
        "-filter_complex", graph.render(),
        "-map", "[vfinal]",
        "-map", "[aout]",
        "-c:v", "libx264",
        "-preset", "veryfast",
        "-crf", "20",
        "-movflags", "+faststart",
        "-pix_fmt", "yuv420p",
        "-c:a", "aac",
        "-b:a", "192k",
        "/w/out.mp4",
    ]


def test_ffmpeg_bin_resolution(mocker, monkeypatch):
    monkeypatch.setenv("FFMPEG_BIN", "/opt/ffmpeg")
    assert render_mod.ffmpeg_bin("/explicit/ffmpeg") == "/explicit/ffmpeg"
    assert render_mod.ffmpeg_bin() == "/opt/ffmpeg"

    monkeypatch.delenv("FFMPEG_BIN")
    mocker.patch("render_server.engine.render.imageio_ffmpeg.get_ffmpeg_exe", return_value="/bundled/ffmpeg")
    assert render_mod.ffmpeg_bin() == "/bundled/ffmpeg"

    mocker.patch("render_server.engine.render.imageio_ffmpeg.get_ffmpeg_exe", side_effect=RuntimeError("none"))
    assert render_mod.ffmpeg_bin() == "ffmpeg"


def test_run_ffmpeg_success_is_silent():
    render_mod._run_ffmpeg([sys.executable, "-c", "import sys; sys.stderr.write('progress...')"])


def test_run_ffmpeg_failure_carries_diagnostics():
    script = "import sys; sys.stderr.write('Invalid argument'); sys.exit(3)"
    with pytest.raises(RenderEngineError) as exc_info:
        render_mod._run_ffmpeg([sys.executable, "-c", script])
    assert exc_info.value.returncode == 3
    assert exc_info.value.diagnostics == "Invalid argument"
    assert "ffmpeg failed (code 3)" in str(exc_info.value)


def test_run_ffmpeg_keeps_only_output_tail():
    script = "import sys; sys.stderr.write('a' * 200000 + 'THE-END'); sys.exit(1)"
    with pytest.raises(RenderEngineError) as exc_info:
        render_mod._run_ffmpeg([sys.executable, "-c", script], max_output=100)
    diagnostics = exc_info.value.diagnostics
    assert len(diagnostics) == 100
    assert diagnostics.endswith("THE-END")


def test_run_ffmpeg_missing_binary(tmp_path):
    with pytest.raises(RenderEngineError, match="could not start"):
        render_mod._run_ffmpeg([str(tmp_path / "no-such-ffmpeg"), "-version"])


def test_render_invokes_engine_with_compiled_graph(mocker, graph):
    run = mocker.patch("render_server.engine.render._run_ffmpeg")
    out = render_mod.render("/w/source.mp4", graph, "/w/out.mp4", engine="/e/ffmpeg", max_output=1234)
    assert out == "/w/out.mp4"
    cmd = run.call_args.args[0]
    assert cmd[0] == "/e/ffmpeg"
    assert cmd[cmd.index("-filter_complex") + 1] == graph.render()
    assert run.call_args.kwargs == {"max_output": 1234}
