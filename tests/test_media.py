import os

import pytest
import requests

from render_server.engine.errors import FetchError
from render_server.engine.media import fetch


class FakeResponse:
    def __init__(self, chunks=(), status_code=200, reason="OK", headers=None, error=None):
        self.chunks = list(chunks)
        self.status_code = status_code
        self.reason = reason
        self.headers = headers or {}
        self.error = error

    @property
    def ok(self):
        return self.status_code < 400

    def iter_content(self, chunk_size=1):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def test_fetch_streams_body_to_nested_path(mocker, tmp_path):
    get = mocker.patch(
        "render_server.engine.media.requests.get",
        return_value=FakeResponse([b"abc", b"", b"def"], headers={"Content-Length": "6"}),
    )
    dest = tmp_path / "job" / "nested" / "source.mp4"

    result = fetch("https://x/video.mp4", str(dest), timeout=5, chunk_size=3)

    assert result == str(dest)
    assert dest.read_bytes() == b"abcdef"
    get.assert_called_once_with("https://x/video.mp4", stream=True, timeout=5)


def test_fetch_uses_injected_session(mocker, tmp_path):
    session = mocker.Mock()
    session.get.return_value = FakeResponse([b"xyz"])
    fetch("https://x/video.mp4", str(tmp_path / "s.mp4"), session=session)
    assert (tmp_path / "s.mp4").read_bytes() == b"xyz"


def test_fetch_non_success_status(mocker, tmp_path):
    mocker.patch(
        "render_server.engine.media.requests.get",
        return_value=FakeResponse(status_code=404, reason="Not Found"),
    )
    dest = tmp_path / "source.mp4"
    with pytest.raises(FetchError) as exc_info:
        fetch("https://x/missing.mp4", str(dest))
    assert exc_info.value.status_code == 404
    assert "Download failed: 404 Not Found" in str(exc_info.value)
    assert not dest.exists()


def test_fetch_stream_error_removes_partial_file(mocker, tmp_path):
    mocker.patch(
        "render_server.engine.media.requests.get",
        return_value=FakeResponse([b"partial"], error=requests.exceptions.ChunkedEncodingError("reset")),
    )
    dest = tmp_path / "source.mp4"
    with pytest.raises(FetchError, match="reset"):
        fetch("https://x/video.mp4", str(dest))
    assert not dest.exists()


def test_fetch_short_body_is_an_error(mocker, tmp_path):
    mocker.patch(
        "render_server.engine.media.requests.get",
        return_value=FakeResponse([b"1234"], headers={"Content-Length": "10"}),
    )
    dest = tmp_path / "source.mp4"
    with pytest.raises(FetchError, match="truncated"):
        fetch("https://x/video.mp4", str(dest))
    assert not os.path.exists(dest)


def test_fetch_ignores_length_for_encoded_bodies(mocker, tmp_path):
    mocker.patch(
        "render_server.engine.media.requests.get",
        return_value=FakeResponse([b"decoded-body"], headers={"Content-Length": "4", "Content-Encoding": "gzip"}),
    )
    fetch("https://x/video.mp4", str(tmp_path / "source.mp4"))
    assert (tmp_path / "source.mp4").read_bytes() == b"decoded-body"


def test_fetch_unreachable_host(mocker, tmp_path):
    mocker.patch(
        "render_server.engine.media.requests.get",
        side_effect=requests.exceptions.ConnectionError("Name or service not known"),
    )
    with pytest.raises(FetchError, match="Download failed"):
        fetch("https://unreachable.invalid/video.mp4", str(tmp_path / "source.mp4"))
