"""One-shot startup barrier for a record store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Generic, TypeVar

from sheet_tables.errors import InitializationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GateState(Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class ReadinessGate(Generic[T]):
    """Runs a startup coroutine exactly once and lets callers wait on it.

    The startup runs on the first wait; concurrent waiters share that run.
    The gate settles once, to READY with the startup's result or to FAILED.
    FAILED is terminal: startup is never retried and every wait raises
    InitializationError chained to the original failure.
    """

    def __init__(self, startup: Callable[[], Awaitable[T]], name: str = "store") -> None:
        self._startup = startup
        self.name = name
        self.state = GateState.PENDING
        self._task: asyncio.Task[None] | None = None
        self._result: T | None = None
        self._error: BaseException | None = None

    async def _run(self) -> None:
        try:
            self._result = await self._startup()
        except asyncio.CancelledError:
            self._error = InitializationError(f"Startup of {self.name} was cancelled")
            self.state = GateState.FAILED
            raise
        except Exception as e:
            logger.exception("Startup of %s failed", self.name)
            self._error = e
            self.state = GateState.FAILED
        else:
            logger.info("%s is ready", self.name)
            self.state = GateState.READY

    def _raise_failure(self) -> None:
        error = self._error
        if isinstance(error, InitializationError):
            raise InitializationError(str(error)) from error
        raise InitializationError(f"Startup of {self.name} failed: {error}") from error

    async def wait(self) -> T:
        """Wait for startup and return its result.

        Raises:
            InitializationError: If startup failed.
        """
        if self.state is GateState.READY:
            return self._result  # type: ignore[return-value]
        if self.state is GateState.FAILED:
            self._raise_failure()
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if self.state is not GateState.FAILED:
                raise
        if self.state is GateState.FAILED:
            self._raise_failure()
        return self._result  # type: ignore[return-value]

    @property
    def started(self) -> bool:
        return self._task is not None

    @property
    def settled(self) -> bool:
        return self.state is not GateState.PENDING
