import csv
import io
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import structlog
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine

from ..core.bridge import ExecutionBackend
from ..state import APP_STATE
from ..utils import resolve_path

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = 100
RENDER_WIDTH = 160


@dataclass
class ResultSet:
    """The rows of the last query run on a connection."""

    query: str
    columns: List[str]
    rows: List[Sequence[Any]]

    def last_page(self, page_size: int) -> int:
        return max(0, (len(self.rows) - 1) // page_size)


@dataclass
class HistoryEntry:
    id: str
    query: str


@dataclass
class ConnectionState:
    engine: Engine
    kind: str
    history: List[HistoryEntry] = field(default_factory=list)
    result: Optional[ResultSet] = None


def build_sqlalchemy_url(url: str, kind: str) -> str:
    """
    Turns a connection url into a SQLAlchemy url. Full urls pass through; a bare
    path is accepted for sqlite connections.
    """
    if "://" in url:
        return url
    if kind == "sqlite":
        return f"sqlite:///{url}"
    raise ValueError(f"Connection url for kind '{kind}' must be a full database url.")


def render_page(result: ResultSet, page_index: int, page_size: int) -> List[str]:
    """Renders one page of a result set as plain text lines."""
    start = page_index * page_size
    rows = result.rows[start : start + page_size]

    table = Table(box=box.ROUNDED, show_lines=False)
    for column in result.columns:
        table.add_column(escape(str(column)), overflow="fold")
    for row in rows:
        table.add_row(*("NULL" if value is None else escape(str(value)) for value in row))

    out = io.StringIO()
    Console(file=out, width=RENDER_WIDTH, color_system=None).print(table)
    lines = out.getvalue().splitlines()
    lines.append(
        f"Page {page_index + 1}/{result.last_page(page_size) + 1} "
        f"({len(result.rows)} rows)"
    )
    return lines


class SqlAlchemyBackend(ExecutionBackend):
    """
    An in-process execution backend for any SQLAlchemy-compatible database.

    Keeps the last result and the query history of each connection in memory,
    and renders pages into the results surface handed to it by the session.
    """

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE):
        self.page_size = page_size
        self.connections: Dict[str, ConnectionState] = {}
        self.surface: Any = None
        self.buffer: Optional[int] = None

    def _state(self, connection_id: str) -> ConnectionState:
        state = self.connections.get(connection_id)
        if state is None:
            raise KeyError(f"connection '{connection_id}' is not registered")
        return state

    def _deliver(self, generation: int, lines: List[str]) -> None:
        if self.surface is None:
            logger.debug("backend.deliver.no_surface", generation=generation)
            return
        self.surface.deliver(generation, lines)

    def register_connection(self, connection_id: str, url: str, kind: str) -> None:
        previous = self.connections.get(connection_id)
        if previous is not None:
            previous.engine.dispose()
        engine = create_engine(build_sqlalchemy_url(url, kind))
        self.connections[connection_id] = ConnectionState(engine=engine, kind=kind)
        logger.info("backend.connection.registered", connection_id=connection_id, kind=kind)

    def _run(self, connection_id: str, query: str, generation: int) -> ResultSet:
        state = self._state(connection_id)
        log = logger.bind(connection_id=connection_id, generation=generation)
        log.info("backend.query.begin")
        try:
            with state.engine.begin() as conn:
                proxy = conn.exec_driver_sql(query)
                if proxy.returns_rows:
                    result = ResultSet(
                        query=query,
                        columns=list(proxy.keys()),
                        rows=[tuple(row) for row in proxy.all()],
                    )
                else:
                    result = ResultSet(
                        query=query, columns=["rows_affected"], rows=[(proxy.rowcount,)]
                    )
        except Exception as e:
            log.error("backend.query.failed", error=str(e), exc_info=APP_STATE.verbose_mode)
            self._deliver(generation, [f"Error: {e}"])
            raise

        log.info("backend.query.success", row_count=len(result.rows))
        state.result = result
        self._deliver(generation, render_page(result, 0, self.page_size))
        return result

    def execute(self, connection_id: str, query: str, generation: int) -> None:
        self._run(connection_id, query, generation)
        state = self._state(connection_id)
        state.history.append(
            HistoryEntry(id=f"{connection_id}-{len(state.history) + 1}", query=query)
        )

    def page(self, connection_id: str, page_index: int, generation: int) -> int:
        result = self._state(connection_id).result
        if result is None:
            raise ValueError("there are no results to page through")
        index = min(max(int(page_index), 0), result.last_page(self.page_size))
        self._deliver(generation, render_page(result, index, self.page_size))
        return index

    def history(self, connection_id: str, history_id: str, generation: int) -> None:
        state = self._state(connection_id)
        entry = next((h for h in state.history if h.id == history_id), None)
        if entry is None:
            raise KeyError(f"history entry '{history_id}' does not exist")
        self._run(connection_id, entry.query, generation)

    def layout(self, connection_id: str) -> str:
        state = self._state(connection_id)
        inspector = inspect(state.engine)
        database = state.engine.url.database or ""

        nodes: List[Dict[str, Any]] = []
        for schema in inspector.get_schema_names():
            tables = sorted(
                inspector.get_table_names(schema=schema)
                + inspector.get_view_names(schema=schema)
            )
            nodes.append(
                {
                    "name": schema,
                    "schema": schema,
                    "database": database,
                    "type": "record",
                    "children": [
                        {
                            "name": table,
                            "schema": schema,
                            "database": database,
                            "type": "table",
                            "children": [],
                        }
                        for table in tables
                    ],
                }
            )

        if state.history:
            nodes.append(
                {
                    "name": "history",
                    "schema": "",
                    "database": database,
                    "type": "record",
                    "children": [
                        {
                            "name": entry.id,
                            "schema": "",
                            "database": database,
                            "type": "history",
                            "children": [],
                        }
                        for entry in state.history
                    ],
                }
            )
        return json.dumps(nodes)

    def save(self, connection_id: str, fmt: str, destination: str) -> None:
        result = self._state(connection_id).result
        if result is None:
            raise ValueError("there are no results to save")

        path = resolve_path(destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        if fmt == "csv":
            with open(path, "w", newline="") as f:
                writer = csv.writer(f)
                writer.writerow(result.columns)
                writer.writerows(result.rows)
        elif fmt == "json":
            records = [dict(zip(result.columns, row)) for row in result.rows]
            path.write_text(json.dumps(records, indent=2, default=str))
        else:
            raise ValueError(f"unsupported save format '{fmt}' (use csv or json)")
        logger.info("backend.results.saved", connection_id=connection_id, path=str(path))

    def set_results_buffer(self, surface: Any, buffer: int) -> None:
        self.surface = surface
        self.buffer = buffer

    def close_results(self) -> None:
        logger.debug("backend.results.closed", buffer=self.buffer)
        self.surface = None
        self.buffer = None
