"""
Future / Settable abstractions and their asyncio-backed implementation.

Both backends run orchestration code on an asyncio loop (Temporal's
deterministic workflow loop, or the harness loop), so engine handles and
user-created promises are wrapped the same way.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from .context import Context
from .encoded import decode_as
from .errors import AlreadyResolvedError, CanceledError


@dataclass(frozen=True)
class WorkflowExecution:
    """Identity of a started workflow run."""

    id: str
    run_id: str


class Future(ABC):
    """Handle to a value that resolves exactly once."""

    @abstractmethod
    async def get(self, ctx: Context, result_type: Optional[type] = None) -> Any:
        """Wait for resolution and return the value (or raise its error)."""

    @abstractmethod
    def is_ready(self) -> bool:
        """True once the future is resolved."""


class Settable(ABC):
    """Write side of a user-created future."""

    @abstractmethod
    def set_value(self, value: Any) -> None: ...

    @abstractmethod
    def set_error(self, error: BaseException) -> None: ...

    @abstractmethod
    def set(self, value: Any, error: Optional[BaseException]) -> None: ...

    @abstractmethod
    def chain(self, future: Future) -> None:
        """Forward the eventual resolution of another future."""


class ChildWorkflowFuture(Future):
    """Future of a child workflow result."""

    @abstractmethod
    def get_child_workflow_execution(self) -> Future:
        """Future resolving to a WorkflowExecution once the child started."""

    @abstractmethod
    def signal_child_workflow(self, ctx: Context, signal_name: str, data: Any) -> Future: ...


class LoopFuture(Future):
    """Future backed by an asyncio future or task on the running loop."""

    def __init__(self, inner: "asyncio.Future[Any]"):
        self._inner = inner

    @property
    def inner(self) -> "asyncio.Future[Any]":
        return self._inner

    def is_ready(self) -> bool:
        return self._inner.done()

    async def get(self, ctx: Context, result_type: Optional[type] = None) -> Any:
        ctx.scope.raise_if_cancelled()
        # Shield so cancelling one waiter leaves the shared result intact.
        waiter = asyncio.shield(self._inner)
        remove = ctx.scope.on_cancel(waiter.cancel)
        try:
            value = await waiter
        except asyncio.CancelledError:
            if ctx.cancelled or self._inner.cancelled():
                raise CanceledError("context cancelled") from None
            raise
        finally:
            remove()
        return decode_as(value, result_type)


class LoopSettable(Settable):
    """Settable writing into an asyncio future."""

    def __init__(self, inner: "asyncio.Future[Any]"):
        self._inner = inner
        self._chained = False

    def _check(self) -> None:
        if self._inner.done() or self._chained:
            raise AlreadyResolvedError("future already resolved")

    def set_value(self, value: Any) -> None:
        self._check()
        self._inner.set_result(value)

    def set_error(self, error: BaseException) -> None:
        self._check()
        self._inner.set_exception(error)

    def set(self, value: Any, error: Optional[BaseException]) -> None:
        if error is not None:
            self.set_error(error)
        else:
            self.set_value(value)

    def chain(self, future: Future) -> None:
        if not isinstance(future, LoopFuture):
            raise TypeError(f"cannot chain {type(future).__name__}")
        self._check()
        self._chained = True

        def forward(source: "asyncio.Future[Any]") -> None:
            if self._inner.done():
                return
            if source.cancelled():
                self._inner.set_exception(CanceledError("chained future cancelled"))
            elif source.exception() is not None:
                self._inner.set_exception(source.exception())
            else:
                self._inner.set_result(source.result())

        future.inner.add_done_callback(forward)


def new_loop_future() -> "tuple[LoopFuture, LoopSettable]":
    """Create a future/settable pair on the running loop."""
    inner = asyncio.get_running_loop().create_future()
    return LoopFuture(inner), LoopSettable(inner)
