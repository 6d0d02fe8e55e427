from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from ..core.surface import SurfaceProvider
from ..errors import SurfaceError

logger = structlog.get_logger(__name__)


@dataclass
class Buffer:
    name: str = ""
    lines: List[str] = field(default_factory=list)
    writable: bool = True


@dataclass
class Window:
    buffer: Optional[int] = None
    options: Dict[str, Any] = field(default_factory=dict)
    opened_by: str = ""


class BufferSurfaceProvider(SurfaceProvider):
    """
    An in-memory window/buffer toolkit for the terminal shell.

    Windows and buffers are plain integer handles. Closing a window or wiping a
    buffer invalidates its handle, just like a user closing them in an editor.
    """

    def __init__(self):
        self.windows: Dict[int, Window] = {}
        self.buffers: Dict[int, Buffer] = {}
        self.current: Optional[int] = None
        self.commands: List[str] = []
        self._next_handle = 1000

    def _handle(self) -> int:
        self._next_handle += 1
        return self._next_handle

    def _window(self, window: int) -> Window:
        if window not in self.windows:
            raise SurfaceError(f"Invalid window id: {window}")
        return self.windows[window]

    def _buffer(self, buffer: int) -> Buffer:
        if buffer not in self.buffers:
            raise SurfaceError(f"Invalid buffer id: {buffer}")
        return self.buffers[buffer]

    def open_window(self, opened_by: str = "") -> int:
        handle = self._handle()
        self.windows[handle] = Window(opened_by=opened_by)
        self.current = handle
        return handle

    def run_command(self, command: str) -> None:
        # Every command this toolkit understands opens a split.
        logger.debug("surface_provider.command", command=command)
        self.commands.append(command)
        self.open_window(opened_by=command)

    def current_window(self) -> int:
        if self.current is None:
            raise SurfaceError("There is no current window.")
        return self.current

    def create_buffer(self) -> int:
        handle = self._handle()
        self.buffers[handle] = Buffer()
        return handle

    def bind_buffer(self, window: int, buffer: int) -> None:
        self._buffer(buffer)
        self._window(window).buffer = buffer

    def focus_window(self, window: int) -> None:
        self._window(window)
        self.current = window

    def set_buffer_name(self, buffer: int, name: str) -> None:
        self._buffer(buffer).name = name

    def set_lines(self, buffer: int, lines: List[str]) -> None:
        target = self._buffer(buffer)
        if not target.writable:
            raise SurfaceError("Buffer is not modifiable.")
        target.lines = list(lines)

    def set_writable(self, buffer: int, writable: bool) -> None:
        self._buffer(buffer).writable = writable

    def set_window_option(self, window: int, option: str, value: Any) -> None:
        self._window(window).options[option] = value

    def is_window_valid(self, window: int) -> bool:
        return window in self.windows

    def is_buffer_valid(self, buffer: int) -> bool:
        return buffer in self.buffers

    def close_window(self, window: int) -> None:
        self.windows.pop(window, None)
        if self.current == window:
            self.current = None

    def wipe_buffer(self, buffer: int) -> None:
        self.buffers.pop(buffer, None)
        for win in self.windows.values():
            if win.buffer == buffer:
                win.buffer = None

    def get_lines(self, buffer: int) -> List[str]:
        return list(self._buffer(buffer).lines)
