from typing import Iterable, List, Optional, Tuple

import structlog

from .bridge import BackendBridge, ExecutionBackend
from .models import ActivateOutcome, AddOutcome, ConnectionDescriptor, LayoutNode
from .paging import PagingCursor
from .registry import ConnectionRegistry, DescriptorInput
from .surface import DisplaySurfaceController, SurfaceProvider, WindowCommand

logger = structlog.get_logger(__name__)


class Session:
    """
    One interactive exploration session.

    Ties the connection registry, the backend bridge, the paging cursor and
    the results surface together. Nearly every command takes an optional
    connection id and falls back to the active connection when it is omitted.
    The cursor and the surface are shared by all connections.
    """

    def __init__(
        self,
        backend: ExecutionBackend,
        provider: SurfaceProvider,
        connections: Optional[Iterable[DescriptorInput]] = None,
        window_command: WindowCommand = None,
    ):
        self.bridge = BackendBridge(backend)
        self.registry = ConnectionRegistry(self.bridge, connections)
        self.cursor = PagingCursor()
        self.surface = DisplaySurfaceController(provider, self.bridge, window_command)

    @property
    def active_id(self) -> Optional[str]:
        return self.registry.active_id

    @property
    def page_index(self) -> int:
        return self.cursor.index

    def add_connection(self, connection: DescriptorInput) -> AddOutcome:
        return self.registry.add(connection)

    def set_active(self, connection_id: Optional[str]) -> ActivateOutcome:
        return self.registry.set_active(connection_id)

    def list_connections(self) -> List[ConnectionDescriptor]:
        return self.registry.list()

    def connection_details(
        self, connection_id: Optional[str] = None
    ) -> Optional[ConnectionDescriptor]:
        return self.registry.get(connection_id)

    def execute(self, query: str, connection_id: Optional[str] = None) -> int:
        """Runs a query on the connection and returns the generation of its output."""
        connection_id = self.registry.resolve(connection_id)
        generation = self.surface.prepare_for_output()
        self.cursor.reset()
        logger.info("session.execute", connection_id=connection_id, generation=generation)
        self.bridge.execute(connection_id, query, generation)
        return generation

    def _page(self, delta: int, connection_id: Optional[str]) -> int:
        connection_id = self.registry.resolve(connection_id)
        generation = self.surface.prepare_for_output()
        return self.cursor.advance(
            delta,
            lambda requested: self.bridge.page(connection_id, requested, generation),
        )

    def page_next(self, connection_id: Optional[str] = None) -> int:
        return self._page(1, connection_id)

    def page_prev(self, connection_id: Optional[str] = None) -> int:
        return self._page(-1, connection_id)

    def history(self, history_id: str, connection_id: Optional[str] = None) -> int:
        connection_id = self.registry.resolve(connection_id)
        generation = self.surface.prepare_for_output()
        self.cursor.reset()
        logger.info(
            "session.history",
            connection_id=connection_id,
            history_id=history_id,
            generation=generation,
        )
        self.bridge.history(connection_id, history_id, generation)
        return generation

    def layout(self, connection_id: Optional[str] = None) -> List[LayoutNode]:
        """Returns the schema and history tree of a connection."""
        return self.bridge.layout(self.registry.resolve(connection_id))

    def save(
        self, fmt: str, destination: str, connection_id: Optional[str] = None
    ) -> None:
        connection_id = self.registry.resolve(connection_id)
        logger.info(
            "session.save", connection_id=connection_id, format=fmt, destination=destination
        )
        self.bridge.save(connection_id, fmt, destination)

    def open(self, window: Optional[int] = None) -> Tuple[int, int]:
        return self.surface.ensure_open(window)

    def close(self) -> None:
        self.surface.close()
