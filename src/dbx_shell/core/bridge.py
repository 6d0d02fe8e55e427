from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Union

import structlog
from pydantic import TypeAdapter, ValidationError

from ..errors import BackendError, DbxError
from ..state import APP_STATE
from .models import LayoutNode

logger = structlog.get_logger(__name__)

_layout_adapter = TypeAdapter(List[LayoutNode])


class ExecutionBackend(ABC):
    """
    The "contract" for the engine that actually runs queries.

    Commands that produce output are fire-and-forget: the backend renders its
    results later by calling `deliver(generation, lines)` on the results surface
    it was handed through `set_results_buffer`, tagging each delivery with the
    generation of the command that caused it.
    """

    @abstractmethod
    def register_connection(self, connection_id: str, url: str, kind: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def execute(self, connection_id: str, query: str, generation: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def page(self, connection_id: str, page_index: int, generation: int) -> int:
        """Displays the requested page and returns the index actually shown."""
        raise NotImplementedError

    @abstractmethod
    def history(self, connection_id: str, history_id: str, generation: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def layout(self, connection_id: str) -> Union[str, bytes]:
        """Returns a JSON array of layout nodes."""
        raise NotImplementedError

    @abstractmethod
    def save(self, connection_id: str, fmt: str, destination: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_results_buffer(self, surface: Any, buffer: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def close_results(self) -> None:
        raise NotImplementedError


class BackendBridge:
    """
    Forwards connection-scoped commands to an ExecutionBackend.

    Every failure coming out of the backend is re-raised as a BackendError so
    callers only ever see dbx errors; nothing is swallowed here.
    """

    def __init__(self, backend: ExecutionBackend):
        self.backend = backend

    def _forward(
        self,
        operation: str,
        connection_id: Optional[str],
        call: Callable[..., Any],
        *args: Any,
    ) -> Any:
        log = logger.bind(operation=operation, connection_id=connection_id)
        log.debug("bridge.forward.begin")
        try:
            return call(*args)
        except DbxError:
            raise
        except Exception as e:
            log.error(
                "bridge.forward.failed",
                error=str(e),
                exc_info=APP_STATE.verbose_mode,
            )
            raise BackendError(operation, connection_id, str(e)) from e

    def register_connection(self, connection_id: str, url: str, kind: str) -> None:
        self._forward(
            "register_connection",
            connection_id,
            self.backend.register_connection,
            connection_id,
            url,
            kind,
        )

    def execute(self, connection_id: str, query: str, generation: int) -> None:
        self._forward(
            "execute", connection_id, self.backend.execute, connection_id, query, generation
        )

    def page(self, connection_id: str, page_index: int, generation: int) -> int:
        result = self._forward(
            "page", connection_id, self.backend.page, connection_id, page_index, generation
        )
        try:
            return int(result)
        except (TypeError, ValueError) as e:
            raise BackendError(
                "page", connection_id, f"returned a non-integer page index {result!r}"
            ) from e

    def history(self, connection_id: str, history_id: str, generation: int) -> None:
        self._forward(
            "history",
            connection_id,
            self.backend.history,
            connection_id,
            history_id,
            generation,
        )

    def layout(self, connection_id: str) -> List[LayoutNode]:
        raw = self._forward("layout", connection_id, self.backend.layout, connection_id)
        try:
            if isinstance(raw, (str, bytes)):
                return _layout_adapter.validate_json(raw)
            return _layout_adapter.validate_python(raw)
        except ValidationError as e:
            raise BackendError(
                "layout", connection_id, f"returned a malformed layout: {e}"
            ) from e

    def save(self, connection_id: str, fmt: str, destination: str) -> None:
        self._forward(
            "save", connection_id, self.backend.save, connection_id, fmt, destination
        )

    def set_results_buffer(self, surface: Any, buffer: int) -> None:
        self._forward(
            "set_results_buffer", None, self.backend.set_results_buffer, surface, buffer
        )

    def close_results(self) -> None:
        self._forward("close_results", None, self.backend.close_results)
