from typing import Callable

import structlog

logger = structlog.get_logger(__name__)


class PagingCursor:
    """
    The index of the page currently shown for the most recent result.

    One cursor is shared by every connection in a session. The backend is the
    authority on the final index: `advance` always adopts whatever it reports.
    """

    def __init__(self):
        self.index: int = 0

    def reset(self) -> None:
        self.index = 0

    def advance(self, delta: int, pager: Callable[[int], int]) -> int:
        requested = self.index + delta
        self.index = pager(requested)
        logger.debug("paging.advanced", requested=requested, index=self.index)
        return self.index
