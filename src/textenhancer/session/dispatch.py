"""Cancellable handles for remote rewrite calls."""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Awaitable, Callable

from ..core.parameters import RewriteParameters
from ..core.results import FailureKind, RewriteFailure, RewriteOutcome

__all__ = ["RequestDispatcher", "RequestHandle"]

LOGGER = logging.getLogger(__name__)

Runner = Callable[["RequestHandle"], Awaitable[RewriteOutcome]]


class RequestHandle:
    """Task plus cancellation token for a single dispatch."""

    def __init__(self, request_id: str, parameters: RewriteParameters) -> None:
        self.request_id = request_id
        self.parameters = parameters
        self._task: asyncio.Task[RewriteOutcome] | None = None
        self._cancelled = False

    def __repr__(self) -> str:
        return f"RequestHandle({self.request_id!r}, cancelled={self._cancelled})"

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def attach(self, task: asyncio.Task[RewriteOutcome]) -> None:
        self._task = task

    def done(self) -> bool:
        return self._task is None or self._task.done()

    def cancel(self) -> bool:
        """Request cancellation; returns ``False`` if the call already finished."""

        if self._cancelled:
            return False
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
            LOGGER.debug("Cancelled %s", self.request_id)
            return True
        return False

    async def wait(self) -> RewriteOutcome:
        """Await the outcome; a cancelled call yields a ``CANCELLED`` failure."""

        if self._task is None:
            return RewriteFailure(FailureKind.CANCELLED, "Request was never started")
        try:
            return await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise
            return RewriteFailure(FailureKind.CANCELLED, "Request was cancelled")


class RequestDispatcher:
    """Keeps at most one request in flight, cancelling the previous one first."""

    def __init__(self) -> None:
        self._current: RequestHandle | None = None
        self._ids = itertools.count(1)

    @property
    def current(self) -> RequestHandle | None:
        return self._current

    def dispatch(self, parameters: RewriteParameters, runner: Runner) -> RequestHandle:
        """Start ``runner`` as a task on the running loop."""

        self.cancel_current()
        handle = RequestHandle(f"req-{next(self._ids)}", parameters)
        task = asyncio.get_running_loop().create_task(runner(handle), name=handle.request_id)
        handle.attach(task)
        self._current = handle
        LOGGER.debug("Dispatched %s", handle.request_id)
        return handle

    def cancel_current(self) -> bool:
        handle = self._current
        self._current = None
        if handle is None:
            return False
        return handle.cancel()

    def finish(self, handle: RequestHandle) -> None:
        if self._current is handle:
            self._current = None
