import threading
from pathlib import Path

import pytest

from render_server.config import Settings
from render_server.engine import InMemoryJobStore, JobManager


def fake_fetch(url: str, dest_path: str) -> str:
    Path(dest_path).parent.mkdir(parents=True, exist_ok=True)
    Path(dest_path).write_bytes(b"source-bytes")
    return dest_path


def fake_render(source_path: str, graph, output_path: str) -> str:
    Path(output_path).write_bytes(b"rendered:" + graph.render().encode("utf-8"))
    return output_path


@pytest.fixture()
def settings(tmp_path):
    return Settings(work_root=str(tmp_path / "work"), queue_max_size=0)


@pytest.fixture()
def store():
    return InMemoryJobStore()


@pytest.fixture()
def make_manager(tmp_path, store):
    """Factory for managers with fake fetch/render; stops every worker on teardown."""
    managers = []

    def _make(fetcher=fake_fetch, renderer=fake_render, start=True, **kwargs):
        kwargs.setdefault("store", store)
        kwargs.setdefault("work_root", str(tmp_path / "work"))
        manager = JobManager(fetcher=fetcher, renderer=renderer, **kwargs)
        managers.append(manager)
        if start:
            manager.start()
        return manager

    yield _make
    for m in managers:
        m.stop(timeout=5)


@pytest.fixture()
def manager(make_manager):
    return make_manager()


@pytest.fixture()
def app_client(settings, manager):
    from render_server.app import create_app

    app = create_app(settings=settings, manager=manager)
    app.config.update({"TESTING": True})
    return app.test_client()


@pytest.fixture()
def gate():
    """An event a fake fetcher can wait on to hold a job mid-pipeline."""
    event = threading.Event()
    yield event
    event.set()
