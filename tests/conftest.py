from pathlib import Path
from typing import Any, List, Optional

import pytest

from dbx_shell import config, utils
from dbx_shell.core.bridge import ExecutionBackend
from dbx_shell.core.session import Session
from dbx_shell.interactive import main as interactive_main
from dbx_shell.interactive.surface_provider import BufferSurfaceProvider
from dbx_shell.management import connection_manager


class RecordingBackend(ExecutionBackend):
    """A fake execution backend that records every call it receives."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.page_results: List[int] = []
        self.layout_payload: Any = "[]"
        self.fail_with: Optional[Exception] = None
        self.surface: Any = None
        self.buffer: Optional[int] = None

    def _record(self, *call):
        self.calls.append(call)
        if self.fail_with is not None:
            raise self.fail_with

    def calls_to(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]

    def register_connection(self, connection_id, url, kind):
        self._record("register_connection", connection_id, url, kind)

    def execute(self, connection_id, query, generation):
        self._record("execute", connection_id, query, generation)

    def page(self, connection_id, page_index, generation):
        self._record("page", connection_id, page_index, generation)
        if self.page_results:
            return self.page_results.pop(0)
        return page_index

    def history(self, connection_id, history_id, generation):
        self._record("history", connection_id, history_id, generation)

    def layout(self, connection_id):
        self._record("layout", connection_id)
        return self.layout_payload

    def save(self, connection_id, fmt, destination):
        self._record("save", connection_id, fmt, destination)

    def set_results_buffer(self, surface, buffer):
        self.surface = surface
        self.buffer = buffer
        self.calls.append(("set_results_buffer", buffer))

    def close_results(self):
        self._record("close_results")


@pytest.fixture
def clean_dbx_home(tmp_path: Path, monkeypatch):
    """
    Creates a pristine, isolated ~/.dbx home for each test and redirects all
    parts of the application to use it.
    """
    temp_dbx_home = tmp_path / ".dbx"
    temp_dbx_home.mkdir()

    monkeypatch.setattr(utils, "DBX_HOME", temp_dbx_home)
    monkeypatch.setattr(config, "DBX_HOME", temp_dbx_home)
    monkeypatch.setattr(connection_manager, "DBX_HOME", temp_dbx_home)
    monkeypatch.setattr(interactive_main, "DBX_HOME", temp_dbx_home)

    yield temp_dbx_home


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def provider() -> BufferSurfaceProvider:
    return BufferSurfaceProvider()


@pytest.fixture
def session(backend, provider) -> Session:
    """A session with two connections over the recording backend."""
    return Session(
        backend=backend,
        provider=provider,
        connections=[
            {"name": "warehouse", "type": "sqlite", "url": "warehouse.db"},
            {"name": "analytics", "type": "pg", "url": "postgresql://localhost/a"},
        ],
    )
