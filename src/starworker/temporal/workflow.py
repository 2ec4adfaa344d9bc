"""
Temporal implementation of the workflow primitives.

Orchestration code runs on Temporal's deterministic workflow loop, so the
asyncio-backed LoopFuture wraps engine handles directly. Engine failures are
translated into the abstraction's errors when a future is read:
cancellation becomes CanceledError, an ApplicationError cause becomes a
CustomError carrying its type as reason.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from temporalio import activity, workflow
from temporalio.exceptions import ActivityError, ApplicationError, CancelledError, ChildWorkflowError

from ..workflow.context import Context
from ..workflow.encoded import to_payload_value
from ..workflow.errors import CanceledError, CustomError
from ..workflow.future import ChildWorkflowFuture, Future, LoopFuture, WorkflowExecution
from ..workflow.options import RegisterOptions
from ..workflow.worker import RegistrationTable, registration_name
from ..workflow.workflow import Duration, Workflow, WorkflowInfo
from .options import activity_kwargs, child_workflow_kwargs
from .propagation import headers_scope


SIDE_EFFECT_ACTIVITY = "starworker.side_effect"
SIDE_EFFECT_TIMEOUT = timedelta(seconds=30)


@dataclass(frozen=True)
class TemporalContext(Context):
    """Context of code running inside a Temporal workflow execution."""


def translate_error(error: BaseException) -> BaseException:
    """Engine error -> abstraction error (unchanged when there is no mapping)."""
    if isinstance(error, (ActivityError, ChildWorkflowError)) and error.cause is not None:
        cause = error.cause
        if isinstance(cause, CancelledError):
            return CanceledError(str(cause) or "cancelled")
        if isinstance(cause, ApplicationError):
            return CustomError(cause.type or "application-error", *cause.details)
    if isinstance(error, CancelledError):
        return CanceledError(str(error) or "cancelled")
    return error


class TemporalFuture(LoopFuture):
    """LoopFuture whose engine errors are translated on read."""

    async def get(self, ctx: Context, result_type: Optional[type] = None) -> Any:
        try:
            return await super().get(ctx, result_type)
        except (ActivityError, ChildWorkflowError, CancelledError) as e:
            translated = translate_error(e)
            if translated is e:
                raise
            raise translated from e


class TemporalChildWorkflowFuture(TemporalFuture, ChildWorkflowFuture):
    def __init__(self, result: "asyncio.Future[Any]", started: "asyncio.Future[Any]"):
        super().__init__(result)
        self._started = started

    def get_child_workflow_execution(self) -> Future:
        async def execution() -> WorkflowExecution:
            handle = await self._started
            return WorkflowExecution(id=handle.id, run_id=handle.first_execution_run_id or "")

        return TemporalFuture(asyncio.ensure_future(execution()))

    def signal_child_workflow(self, ctx: Context, signal_name: str, data: Any) -> Future:
        async def signal() -> None:
            handle = await self._started
            with headers_scope(ctx.headers):
                await handle.signal(signal_name, data)

        return TemporalFuture(asyncio.ensure_future(signal()))


def _failed(error: BaseException) -> TemporalFuture:
    inner = asyncio.get_running_loop().create_future()
    inner.set_exception(error)
    return TemporalFuture(inner)


class TemporalWorkflow(Workflow):
    """
    Workflow primitives on top of temporalio.workflow.

    Activities and child workflows are addressed by registered name or by
    the registered function; functions are resolved through the tables of
    the workers created by the same backend.
    """

    def __init__(self) -> None:
        self._tables: List[RegistrationTable] = []
        # Closures awaiting their side-effect local activity, by deterministic key.
        self._side_effects: Dict[str, Callable[[], Any]] = {}

    def add_tables(self, *tables: RegistrationTable) -> None:
        self._tables.extend(tables)

    @activity.defn(name=SIDE_EFFECT_ACTIVITY)
    async def run_side_effect(self, key: str) -> Any:
        """Local activity running a side-effect closure registered by this workflow."""
        fn = self._side_effects.get(key)
        if fn is None:
            raise ApplicationError(f"side effect {key} is not pending", non_retryable=True)
        return to_payload_value(fn())

    def _name(self, kind: str, target: Any) -> str:
        if isinstance(target, str):
            return target
        for table in self._tables:
            if table.kind != kind:
                continue
            entry = table.lookup(target)
            if entry is not None:
                return entry.name
        return registration_name(target, RegisterOptions())

    def get_logger(self, ctx: Context) -> logging.LoggerAdapter:
        return workflow.logger

    def get_info(self, ctx: Context) -> WorkflowInfo:
        info = workflow.info()
        return WorkflowInfo(
            execution_id=info.workflow_id,
            run_id=info.run_id,
            workflow_type=info.workflow_type,
            domain=info.namespace,
            task_list=info.task_queue,
        )

    def execute_activity(self, ctx: Context, activity: Any, *args: Any) -> Future:
        name = self._name("activity", activity)
        try:
            kwargs = activity_kwargs(ctx.activity_options)
            with headers_scope(ctx.headers):
                handle = workflow.start_activity(name, args=list(args), **kwargs)
        except Exception as e:
            return _failed(e)
        ctx.scope.link(handle)
        return TemporalFuture(handle)

    def execute_child_workflow(self, ctx: Context, child_workflow: Any, *args: Any) -> ChildWorkflowFuture:
        name = self._name("workflow", child_workflow)
        info = workflow.info()
        try:
            kwargs = child_workflow_kwargs(ctx.child_options, info.namespace, str(workflow.uuid4()))
        except Exception as e:
            failed = _failed(e).inner
            return TemporalChildWorkflowFuture(failed, failed)

        with headers_scope(ctx.headers):
            started = asyncio.ensure_future(workflow.start_child_workflow(name, args=list(args), **kwargs))

        async def result() -> Any:
            handle = await started
            return await handle

        task = asyncio.ensure_future(result())
        ctx.scope.link(task)
        return TemporalChildWorkflowFuture(task, started)

    def set_query_handler(self, ctx: Context, query_type: str, handler: Callable[..., Any]) -> None:
        workflow.set_query_handler(query_type, handler)

    def set_signal_handler(self, ctx: Context, signal_name: str, handler: Callable[..., Any]) -> None:
        workflow.set_signal_handler(signal_name, handler)

    def new_custom_error(self, reason: str, *details: Any) -> Exception:
        return CustomError(reason, *details)

    async def side_effect(self, ctx: Context, fn: Callable[[], Any]) -> Any:
        key = str(workflow.uuid4())
        self._side_effects[key] = fn
        try:
            handle = workflow.start_local_activity(
                SIDE_EFFECT_ACTIVITY, key, start_to_close_timeout=SIDE_EFFECT_TIMEOUT,
            )
            ctx.scope.link(handle)
            return await TemporalFuture(handle).get(ctx)
        finally:
            self._side_effects.pop(key, None)

    def now(self, ctx: Context) -> datetime:
        return workflow.now()

    async def sleep(self, ctx: Context, duration: Duration) -> None:
        seconds = duration.total_seconds() if isinstance(duration, timedelta) else float(duration)
        if seconds < 0:
            raise ValueError("sleep duration must not be negative")
        timer = asyncio.ensure_future(asyncio.sleep(seconds))
        ctx.scope.link(timer)
        await TemporalFuture(timer).get(ctx)
