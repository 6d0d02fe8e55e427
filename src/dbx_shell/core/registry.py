from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import structlog

from ..errors import UnknownConnection
from .bridge import BackendBridge
from .models import ActivateOutcome, AddOutcome, ConnectionDescriptor

logger = structlog.get_logger(__name__)

DescriptorInput = Union[ConnectionDescriptor, Mapping[str, Any]]


class ConnectionRegistry:
    """
    Holds every known connection descriptor, keyed by its derived id, and
    tracks which one is active.

    Each successful registration is announced to the backend through the bridge.
    Until the first connection is registered the active id is None.
    """

    def __init__(
        self,
        bridge: BackendBridge,
        connections: Optional[Iterable[DescriptorInput]] = None,
    ):
        self.bridge = bridge
        self._connections: Dict[str, ConnectionDescriptor] = {}
        self.active_id: Optional[str] = None

        for raw in connections or []:
            descriptor = ConnectionDescriptor.from_mapping(raw)
            # A repeated id in the initial set replaces the earlier entry.
            self.bridge.register_connection(
                descriptor.id, descriptor.url, descriptor.kind
            )
            self._connections[descriptor.id] = descriptor
            if self.active_id is None or descriptor.id < self.active_id:
                self.active_id = descriptor.id

        logger.info(
            "registry.initialized",
            connection_count=len(self._connections),
            active_id=self.active_id,
        )

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def add(self, raw: DescriptorInput) -> AddOutcome:
        """
        Registers a new connection. Adding a connection whose derived id is
        already known is a no-op and does not re-register it with the backend.
        """
        descriptor = ConnectionDescriptor.from_mapping(raw)
        log = logger.bind(connection_id=descriptor.id)

        for existing in self._connections.values():
            if existing.id == descriptor.id:
                log.debug("registry.connection.duplicate")
                return AddOutcome.DUPLICATE

        self.bridge.register_connection(descriptor.id, descriptor.url, descriptor.kind)
        self._connections[descriptor.id] = descriptor
        if self.active_id is None:
            self.active_id = descriptor.id
        log.info("registry.connection.added")
        return AddOutcome.INSERTED

    def set_active(self, connection_id: Optional[str]) -> ActivateOutcome:
        if not connection_id or connection_id not in self._connections:
            logger.warning(
                "registry.set_active.unknown_id", connection_id=connection_id
            )
            return ActivateOutcome.UNKNOWN
        self.active_id = connection_id
        logger.info("registry.set_active", connection_id=connection_id)
        return ActivateOutcome.ACTIVATED

    def list(self) -> List[ConnectionDescriptor]:
        return sorted(self._connections.values(), key=lambda c: c.name)

    def get(self, connection_id: Optional[str] = None) -> Optional[ConnectionDescriptor]:
        """Returns the descriptor for the id (or the active id), or None if unknown."""
        connection_id = connection_id or self.active_id
        if connection_id is None:
            return None
        return self._connections.get(connection_id)

    def require(self, connection_id: Optional[str] = None) -> ConnectionDescriptor:
        descriptor = self.get(connection_id)
        if descriptor is None:
            raise UnknownConnection(connection_id or self.active_id or "")
        return descriptor

    def resolve(self, connection_id: Optional[str] = None) -> str:
        """Resolves an optional explicit id to a registered one, falling back to the active id."""
        return self.require(connection_id).id
