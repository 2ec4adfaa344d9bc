"""
Temporal Worker for starworker

The Worker polls the Temporal server for tasks and executes:
- the script workflow (starworker) and any plugin workflows
- plugin activities and the side-effect local activity

Usage:
    python -m starworker.temporal.worker [--config worker.yaml]

Or programmatically:
    from starworker.temporal import run_worker
    await run_worker(config)
"""

import argparse
import asyncio
import dataclasses
import functools
import inspect
import logging
import sys
import typing
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, Optional

from temporalio import activity, workflow
from temporalio.client import Client
from temporalio.exceptions import ApplicationError
from temporalio.worker import UnsandboxedWorkflowRunner
from temporalio.worker import Worker as TemporalPoller

from ..plugins import builtin_plugins
from ..service.plugin import Plugin
from ..service.service import StarService
from ..workflow.errors import CanceledError, ConfigurationError, CustomError, StarworkerError
from ..workflow.options import ActivityOptions, RegisterOptions
from ..workflow.worker import Backend, RegistrationTable, Worker, validate_workflow_function
from .client import connect
from .config import WorkerConfig, load_config
from .propagation import current_headers
from .workflow import TemporalContext, TemporalWorkflow

logger = logging.getLogger(__name__)


# =============================================================================
# Registration adapters
# =============================================================================


async def _execute(fn: Callable[..., Any], ctx: TemporalContext, args: Iterable[Any]) -> Any:
    """
    Run a workflow function and translate abstraction errors for Temporal.

    A cancellation request of the execution cancels the context scope; the
    function then winds down through CanceledError at its next primitive.
    """
    task = asyncio.ensure_future(fn(ctx, *args))
    try:
        while True:
            try:
                return await asyncio.shield(task)
            except asyncio.CancelledError:
                if task.done():
                    raise
                workflow.logger.info("Cancellation requested, cancelling workflow context")
                ctx.scope.cancel()
    except CustomError as e:
        raise ApplicationError(str(e), *e.details, type=e.reason, non_retryable=True) from e
    except CanceledError as e:
        raise asyncio.CancelledError(str(e)) from e
    except StarworkerError as e:
        raise ApplicationError(str(e), type=type(e).__name__, non_retryable=True) from e


def workflow_adapter(
    name: str,
    fn: Callable[..., Any],
    signature: inspect.Signature,
    activity_options: Optional[ActivityOptions] = None,
) -> type:
    """
    Build the @workflow.defn class for one registered workflow function.

    Each execution starts from a context carrying the worker's default
    activity options.

    The run method takes the function's parameters after the context, with
    the same type hints, so payloads decode into the declared types.
    """
    try:
        hints = typing.get_type_hints(fn)
    except (NameError, TypeError):
        hints = {}
    params = list(signature.parameters.values())[1:]

    async def run(self, *args: Any) -> Any:
        ctx = TemporalContext(headers=current_headers(), activity_options=activity_options or ActivityOptions())
        return await _execute(fn, ctx, args)

    run.__signature__ = signature.replace(
        parameters=[inspect.Parameter("self", inspect.Parameter.POSITIONAL_OR_KEYWORD)]
        + [p.replace(annotation=hints.get(p.name, p.annotation)) for p in params],
        return_annotation=hints.get("return", signature.return_annotation),
    )
    run.__annotations__ = {p.name: hints[p.name] for p in params if p.name in hints}
    if "return" in hints:
        run.__annotations__["return"] = hints["return"]

    class_name = "".join(part.capitalize() for part in name.replace("-", ".").split(".") if part) or "Script"
    run.__qualname__ = f"{class_name}Workflow.run"
    cls = type(f"{class_name}Workflow", (), {"run": workflow.run(run), "__module__": __name__})
    return workflow.defn(name=name)(cls)


def activity_adapter(name: str, fn: Callable[..., Any]) -> Callable[..., Any]:
    """Wrap an activity function so each registration gets its own definition."""
    if inspect.iscoroutinefunction(fn):
        async def wrapper(*args: Any) -> Any:
            return await fn(*args)
    else:
        def wrapper(*args: Any) -> Any:
            return fn(*args)

    functools.update_wrapper(wrapper, fn, updated=())
    return activity.defn(name=name)(wrapper)


# =============================================================================
# Worker
# =============================================================================


class TemporalWorker(Worker):
    """
    Worker bound to one location, namespace (domain) and task queue (task list).

    Registrations are collected first; start() connects and builds the
    Temporal worker from them.
    """

    def __init__(
        self,
        config: WorkerConfig,
        client: Optional[Client] = None,
        workflow: Optional[TemporalWorkflow] = None,
    ):
        self.config = config
        self.workflows = RegistrationTable("workflow")
        self.activities = RegistrationTable("activity")
        self.workflow = workflow or TemporalWorkflow()
        self.workflow.add_tables(self.workflows, self.activities)
        self._client = client
        self._workflow_classes: Dict[str, type] = {}
        self._activity_defs: Dict[str, Callable[..., Any]] = {}
        self._poller: Optional[TemporalPoller] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    def register_workflow_with_options(self, fn: Callable[..., Any], options: RegisterOptions) -> None:
        signature = validate_workflow_function(fn)
        entry = self.workflows.add(fn, options)
        self._workflow_classes[entry.name] = workflow_adapter(
            entry.name, fn, signature, self.config.activity_options(),
        )

    def register_activity_with_options(self, fn: Callable[..., Any], options: RegisterOptions) -> None:
        if not callable(fn):
            raise TypeError(f"activity must be callable, got {type(fn).__name__}")
        entry = self.activities.add(fn, options)
        self._activity_defs[entry.name] = activity_adapter(entry.name, fn)

    async def start(self) -> None:
        if self._poller is not None:
            return
        if self._client is None:
            self._client = await connect(self.config)
        self._executor = ThreadPoolExecutor(max_workers=self.config.max_concurrent_activities)
        # UnsandboxedWorkflowRunner: scripts run in lupa, which the sandbox cannot import.
        self._poller = TemporalPoller(
            self._client,
            task_queue=self.config.task_list,
            workflows=list(self._workflow_classes.values()),
            activities=[*self._activity_defs.values(), self.workflow.run_side_effect],
            activity_executor=self._executor,
            max_concurrent_activities=self.config.max_concurrent_activities,
            workflow_runner=UnsandboxedWorkflowRunner(),
        )
        logger.info(
            f"Worker ready on task queue '{self.config.task_list}' "
            f"({len(self._workflow_classes)} workflows, {len(self._activity_defs)} activities)"
        )

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        await self.start()
        worker_task = asyncio.create_task(self._poller.run())
        if stop_event is None:
            await worker_task
            return

        stopper = asyncio.create_task(stop_event.wait())
        done, _ = await asyncio.wait({worker_task, stopper}, return_when=asyncio.FIRST_COMPLETED)
        if stopper in done:
            logger.info("Stop requested, shutting down worker...")
            await self.stop()
        else:
            stopper.cancel()
        await worker_task

    async def stop(self) -> None:
        if self._poller is not None:
            await self._poller.shutdown()
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None


class TemporalBackend(Backend):
    """Backend creating TemporalWorkers that share one TemporalWorkflow."""

    def __init__(self, client: Optional[Client] = None):
        self._client = client
        self._workflow = TemporalWorkflow()

    @property
    def workflow(self) -> TemporalWorkflow:
        return self._workflow

    def register_worker(
        self,
        location: str,
        domain: str,
        task_list: str,
        config: Optional[WorkerConfig] = None,
    ) -> TemporalWorker:
        """
        Create a worker; the location is validated here, at startup.

        Raises:
            ConfigurationError: unsupported location or empty domain/task list
        """
        config = dataclasses.replace(
            config or WorkerConfig(), location=location, domain=domain, task_list=task_list,
        ).validate()
        return TemporalWorker(config, client=self._client, workflow=self._workflow)


# =============================================================================
# Process entry points
# =============================================================================


async def run_worker(
    config: Optional[WorkerConfig] = None,
    plugins: Optional[Iterable[Plugin]] = None,
    stop_event: Optional[asyncio.Event] = None,
) -> None:
    """
    Run a starworker worker (blocking).

    This connects to the Temporal server and starts polling for tasks.
    Runs until interrupted (Ctrl+C) or until stop_event is set.

    Args:
        config: Optional configuration (environment / STARWORKER_CONFIG otherwise)
        plugins: Plugin set (bundled plugins selected by config.plugins otherwise)
        stop_event: Optional event ending the run
    """
    config = config or load_config()
    if plugins is None:
        plugins = builtin_plugins(config.plugins or None)

    backend = TemporalBackend()
    worker = backend.register_worker(config.location, config.domain, config.task_list, config)
    service = StarService(plugins, backend.workflow)
    service.register(worker)

    logger.info(f"Starting worker on queue '{config.task_list}' with plugins {service.plugins.ids()}...")

    try:
        await worker.run(stop_event)
    except asyncio.CancelledError:
        logger.info("Worker cancelled, shutting down...")
    finally:
        logger.info("Worker stopped.")


def main(argv: Optional[list] = None) -> int:
    """Entry point for running the worker from the command line."""
    parser = argparse.ArgumentParser(description="starworker Temporal worker")
    parser.add_argument("--config", "-c", help="YAML config file (defaults to STARWORKER_* variables)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = load_config(args.config)
        asyncio.run(run_worker(config))
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nWorker interrupted by user.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
