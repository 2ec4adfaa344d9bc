"""
Execution context threaded through every engine call.

A Context is never mutated: option application derives a new one with
dataclasses.replace. Only the CancelScope is shared between a context and the
contexts derived from it.
"""

import asyncio
import dataclasses
import weakref
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional

from .errors import CanceledError
from .options import ActivityOptions, ChildWorkflowOptions


class CancelScope:
    """Cancellation token shared by a context and its derivations."""

    def __init__(self, parent: Optional["CancelScope"] = None):
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []
        # Children are held weakly: a scope lives as long as its contexts.
        self._children: "weakref.WeakSet[CancelScope]" = weakref.WeakSet()
        if parent is not None:
            parent._children.add(self)
            if parent.cancelled:
                self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def child(self) -> "CancelScope":
        return CancelScope(parent=self)

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register a callback run once on cancellation.

        Runs immediately if the scope is already cancelled. Returns a function
        that unregisters the callback.
        """
        if self._cancelled:
            callback()
            return lambda: None
        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove

    def link(self, future: "asyncio.Future[Any]") -> None:
        """Cancel ``future`` with this scope until the future completes."""
        remove = self.on_cancel(future.cancel)
        future.add_done_callback(lambda _: remove())

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()
        for child in list(self._children):
            child.cancel()

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise CanceledError("context cancelled")


@dataclass(frozen=True)
class Context:
    """
    Opaque, immutable execution context.

    Backends subclass it to carry engine-specific state; orchestration code
    only uses the methods below and the Workflow operations.
    """

    values: Mapping[Any, Any] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    activity_options: ActivityOptions = field(default_factory=ActivityOptions)
    child_options: ChildWorkflowOptions = field(default_factory=ChildWorkflowOptions)
    scope: CancelScope = field(default_factory=CancelScope)

    def value(self, key: Any, default: Any = None) -> Any:
        return self.values.get(key, default)

    @property
    def cancelled(self) -> bool:
        return self.scope.cancelled

    def derive(self, **changes: Any) -> "Context":
        """Return a copy with the given fields replaced."""
        if "values" in changes:
            changes["values"] = dict(changes["values"])
        if "headers" in changes:
            changes["headers"] = dict(changes["headers"])
        return dataclasses.replace(self, **changes)
