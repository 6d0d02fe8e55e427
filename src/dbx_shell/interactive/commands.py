from abc import ABC
from dataclasses import dataclass
from typing import Any, List, Optional

from ..core.models import ActivateOutcome, LayoutNode
from ..core.session import Session
from ..errors import UnknownConnection


@dataclass
class ResultsView:
    """The visible contents of the results buffer after an output command."""

    lines: List[str]
    page_index: int


@dataclass
class LayoutView:
    connection_id: str
    nodes: List[LayoutNode]


def snapshot(session: Session) -> ResultsView:
    surface = session.surface
    lines = surface.provider.get_lines(surface.buffer) if surface.buffer is not None else []
    return ResultsView(lines=lines, page_index=session.page_index)


class Command(ABC):
    """Abstract base class for all executable REPL commands."""

    # Commands that write into the results surface.
    produces_output: bool = False

    def __init__(self, on: Optional[str] = None):
        self.on = on

    def execute(self, session: Session) -> Any:
        raise NotImplementedError


class QueryCommand(Command):
    """A raw SQL statement, e.g. `select * from users`."""

    produces_output = True

    def __init__(self, query: str, on: Optional[str] = None):
        super().__init__(on)
        self.query = query

    def execute(self, session: Session) -> Any:
        session.execute(self.query, self.on)
        return snapshot(session)


class PageCommand(Command):
    produces_output = True

    def __init__(self, direction: int, on: Optional[str] = None):
        super().__init__(on)
        self.direction = direction

    def execute(self, session: Session) -> Any:
        if self.direction > 0:
            session.page_next(self.on)
        else:
            session.page_prev(self.on)
        return snapshot(session)


class HistoryCommand(Command):
    produces_output = True

    def __init__(self, history_id: str, on: Optional[str] = None):
        super().__init__(on)
        self.history_id = history_id

    def execute(self, session: Session) -> Any:
        session.history(self.history_id, self.on)
        return snapshot(session)


class ConnectionsCommand(Command):
    def execute(self, session: Session) -> Any:
        return session.list_connections()


class UseCommand(Command):
    def __init__(self, connection_id: str):
        super().__init__()
        self.connection_id = connection_id

    def execute(self, session: Session) -> Any:
        if session.set_active(self.connection_id) is ActivateOutcome.UNKNOWN:
            return f"No connection '{self.connection_id}'; still using '{session.active_id}'."
        return f"Now using '{self.connection_id}'."


class DetailsCommand(Command):
    def __init__(self, connection_id: Optional[str] = None):
        super().__init__()
        self.connection_id = connection_id

    def execute(self, session: Session) -> Any:
        details = session.connection_details(self.connection_id)
        if details is None:
            raise UnknownConnection(self.connection_id or session.active_id or "")
        return details


class LayoutCommand(Command):
    def execute(self, session: Session) -> Any:
        connection_id = session.registry.resolve(self.on)
        return LayoutView(connection_id=connection_id, nodes=session.layout(connection_id))


class SaveCommand(Command):
    def __init__(self, fmt: str, destination: str, on: Optional[str] = None):
        super().__init__(on)
        self.fmt = fmt
        self.destination = destination

    def execute(self, session: Session) -> Any:
        session.save(self.fmt, self.destination, self.on)
        return f"Results saved to '{self.destination}'."


class OpenCommand(Command):
    produces_output = True

    def execute(self, session: Session) -> Any:
        session.open()
        return snapshot(session)


class CloseCommand(Command):
    def execute(self, session: Session) -> Any:
        session.close()
        return "Results closed."


HELP_TEXT = """\
Type SQL to run it on the active connection. Dot-commands:
  .connections              list connections
  .use ID                   make a connection active
  .details [ID]             show a connection
  .next / .prev             page through the last result
  .history ID               re-run a history entry (ids are listed by .layout)
  .layout                   show schemas, tables and history
  .save csv|json PATH       save the last result
  .open / .close            show or dismiss the results view
  .help                     show this help
Commands that target a connection accept `--on ID`."""


class HelpCommand(Command):
    def execute(self, session: Session) -> Any:
        return HELP_TEXT
