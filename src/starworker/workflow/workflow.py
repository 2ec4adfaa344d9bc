"""
The deterministic operations available to orchestration code.

Every operation takes the current Context first. Operations that apply
options return a derived Context and leave their input untouched.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Tuple, Union

from .context import CancelScope, Context
from .future import ChildWorkflowFuture, Future, LoopFuture, Settable, new_loop_future
from .options import ActivityOptions, ChildWorkflowOptions


@dataclass(frozen=True)
class WorkflowInfo:
    """Identity of the running workflow instance."""

    execution_id: str
    run_id: str
    workflow_type: str = ""
    domain: str = ""
    task_list: str = ""


Duration = Union[float, timedelta]


class Workflow(ABC):
    """Engine-agnostic workflow primitives."""

    @abstractmethod
    def get_logger(self, ctx: Context) -> Union[logging.Logger, logging.LoggerAdapter]: ...

    @abstractmethod
    def get_info(self, ctx: Context) -> WorkflowInfo: ...

    @abstractmethod
    def execute_activity(self, ctx: Context, activity: Any, *args: Any) -> Future:
        """Schedule an activity (by name or registered function)."""

    @abstractmethod
    def execute_child_workflow(self, ctx: Context, child_workflow: Any, *args: Any) -> ChildWorkflowFuture:
        """Start a child workflow (by name or registered function)."""

    # -------------------------------------------------------------------------
    # Context derivation
    # -------------------------------------------------------------------------

    def with_value(self, parent: Context, key: Any, val: Any) -> Context:
        return parent.derive(values={**parent.values, key: val})

    def with_headers(self, parent: Context, headers: dict) -> Context:
        return parent.derive(headers={**parent.headers, **headers})

    def with_cancel(self, parent: Context) -> Tuple[Context, Callable[[], None]]:
        """Derive a context whose cancellation is linked to the parent."""
        scope = parent.scope.child()
        return parent.derive(scope=scope), scope.cancel

    def new_disconnected_context(self, parent: Context) -> Tuple[Context, Callable[[], None]]:
        """Derive a context that ignores the parent's cancellation."""
        scope = CancelScope()
        return parent.derive(scope=scope), scope.cancel

    def with_task_list(self, ctx: Context, name: str) -> Context:
        return ctx.derive(activity_options=ctx.activity_options.model_copy(update={"task_list": name}))

    def with_activity_options(self, ctx: Context, options: ActivityOptions) -> Context:
        return ctx.derive(activity_options=options)

    def with_child_options(self, ctx: Context, options: ChildWorkflowOptions) -> Context:
        return ctx.derive(child_options=options)

    def with_workflow_domain(self, ctx: Context, name: str) -> Context:
        return ctx.derive(child_options=ctx.child_options.model_copy(update={"domain": name}))

    def with_workflow_task_list(self, ctx: Context, name: str) -> Context:
        return ctx.derive(child_options=ctx.child_options.model_copy(update={"task_list": name}))

    # -------------------------------------------------------------------------
    # Handlers, errors, futures, time
    # -------------------------------------------------------------------------

    @abstractmethod
    def set_query_handler(self, ctx: Context, query_type: str, handler: Callable[..., Any]) -> None: ...

    @abstractmethod
    def set_signal_handler(self, ctx: Context, signal_name: str, handler: Callable[..., Any]) -> None: ...

    @abstractmethod
    def new_custom_error(self, reason: str, *details: Any) -> Exception: ...

    def new_future(self, ctx: Context) -> Tuple[Future, Settable]:
        return new_loop_future()

    def go(self, ctx: Context, fn: Callable[[Context], Awaitable[Any]]) -> Future:
        """
        Spawn a cooperative execution path on the workflow loop.

        The returned future joins the path; its error is delivered there.
        """
        task = asyncio.ensure_future(fn(ctx))
        ctx.scope.link(task)
        return LoopFuture(task)

    @abstractmethod
    async def side_effect(self, ctx: Context, fn: Callable[[], Any]) -> Any:
        """Run a non-deterministic function once and record its result."""

    @abstractmethod
    def now(self, ctx: Context) -> datetime: ...

    @abstractmethod
    async def sleep(self, ctx: Context, duration: Duration) -> None: ...
