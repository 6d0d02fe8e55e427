import time
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Tuple, Union

import structlog

from ..errors import DbxError, SurfaceError
from .bridge import BackendBridge

logger = structlog.get_logger(__name__)

DEFAULT_WINDOW_COMMAND = "bo 15split"
LOADING_PLACEHOLDER = "Loading..."
WINDOW_OPTIONS = {
    "wrap": False,
    "winfixheight": True,
    "winfixwidth": True,
    "number": False,
}

WindowCommand = Union[str, Callable[[], int], None]


class SurfaceProvider(ABC):
    """The "contract" for the toolkit that owns windows and buffers."""

    @abstractmethod
    def run_command(self, command: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def current_window(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def create_buffer(self) -> int:
        """Creates an unlisted scratch buffer."""
        raise NotImplementedError

    @abstractmethod
    def bind_buffer(self, window: int, buffer: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def focus_window(self, window: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_buffer_name(self, buffer: int, name: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_lines(self, buffer: int, lines: List[str]) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_lines(self, buffer: int) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def set_writable(self, buffer: int, writable: bool) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_window_option(self, window: int, option: str, value: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def is_window_valid(self, window: int) -> bool:
        raise NotImplementedError

    @abstractmethod
    def is_buffer_valid(self, buffer: int) -> bool:
        raise NotImplementedError


def make_window_opener(
    provider: SurfaceProvider, window_command: WindowCommand = None
) -> Callable[[], int]:
    """
    Turns the configured window command into a function that opens a window
    and returns its handle. A string is run as an editor command, a callable
    is used as-is, and None falls back to a fixed-size bottom split.
    """
    if callable(window_command):
        return window_command

    command = window_command or DEFAULT_WINDOW_COMMAND

    def open_window() -> int:
        provider.run_command(command)
        return provider.current_window()

    return open_window


class DisplaySurfaceController:
    """
    Owns the single results window and buffer shared by every connection.

    Handles are created lazily and replaced whenever the provider reports them
    invalid. Each output-producing command bumps `generation`; the backend's
    delivery is only written when it carries the latest generation, so a slow
    response to an older command can never overwrite a newer one.
    """

    def __init__(
        self,
        provider: SurfaceProvider,
        bridge: BackendBridge,
        window_command: WindowCommand = None,
    ):
        self.provider = provider
        self.bridge = bridge
        self.open_window = make_window_opener(provider, window_command)
        self.window: Optional[int] = None
        self.buffer: Optional[int] = None
        self.generation: int = 0

    def ensure_open(self, window: Optional[int] = None) -> Tuple[int, int]:
        if window is None:
            window = self.window
        buffer = self.buffer
        try:
            if window is None or not self.provider.is_window_valid(window):
                window = self.open_window()
                if window is None:
                    raise SurfaceError("The window command did not return a window.")
                logger.debug("surface.window.opened", window=window)

            if buffer is None or not self.provider.is_buffer_valid(buffer):
                buffer = self.provider.create_buffer()
                logger.debug("surface.buffer.created", buffer=buffer)

            self.provider.bind_buffer(window, buffer)
            self.provider.focus_window(window)
            self.provider.set_buffer_name(
                buffer, f"dbx-results-{time.perf_counter_ns()}"
            )
            for option, value in WINDOW_OPTIONS.items():
                self.provider.set_window_option(window, option, value)
        except DbxError:
            raise
        except Exception as e:
            raise SurfaceError(f"Could not open the results surface: {e}") from e

        self.window = window
        self.buffer = buffer

        self.bridge.set_results_buffer(self, buffer)
        return window, buffer

    def _write(self, lines: List[str]) -> None:
        self.provider.set_writable(self.buffer, True)
        self.provider.set_lines(self.buffer, lines)
        self.provider.set_writable(self.buffer, False)

    def prepare_for_output(self) -> int:
        """Clears the surface to a loading placeholder and returns the new generation."""
        self.ensure_open()
        self.generation += 1
        try:
            self._write([LOADING_PLACEHOLDER])
        except Exception as e:
            raise SurfaceError(f"Could not clear the results buffer: {e}") from e
        return self.generation

    def deliver(self, generation: int, lines: List[str]) -> bool:
        """
        Writes a backend result into the buffer. Returns False, leaving the
        buffer untouched, when the delivery is stale or the buffer is gone.
        """
        log = logger.bind(generation=generation, current=self.generation)
        if generation != self.generation:
            log.debug("surface.delivery.stale")
            return False
        if self.buffer is None or not self.provider.is_buffer_valid(self.buffer):
            log.debug("surface.delivery.no_buffer")
            return False
        self._write(list(lines))
        return True

    def close(self) -> None:
        self.bridge.close_results()
