import logging
import os
from pathlib import Path
from typing import Optional

import requests

from .errors import FetchError
from .utils import ensure_dir


log = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024


def fetch(
    url: str,
    dest_path: str,
    timeout: float = 60,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    session: Optional[requests.Session] = None,
) -> str:
    """
    Stream `url` to `dest_path`, creating parent directories as needed.

    Raises FetchError on a non-success response or if the transfer breaks
    off; a partially written file is removed rather than left truncated.
    """
    ensure_dir(Path(dest_path).parent)
    http = session or requests
    written = 0
    try:
        with http.get(url, stream=True, timeout=timeout) as r:
            if not r.ok:
                raise FetchError(f"Download failed: {r.status_code} {r.reason}", status_code=r.status_code)
            expected = _expected_length(r)
            with open(dest_path, "wb") as f:
                for chunk in r.iter_content(chunk_size=chunk_size):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
            if expected is not None and written != expected:
                raise FetchError(f"Download truncated: got {written} of {expected} bytes")
    except FetchError:
        _discard(dest_path)
        raise
    except (requests.RequestException, OSError) as e:
        _discard(dest_path)
        raise FetchError(f"Download failed: {e}") from e

    log.info("Fetched %s -> %s (%d bytes)", url, dest_path, written)
    return dest_path


def _expected_length(r: requests.Response) -> Optional[int]:
    # Content-Length describes the encoded body; iter_content yields decoded bytes.
    if r.headers.get("Content-Encoding"):
        return None
    raw = r.headers.get("Content-Length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
