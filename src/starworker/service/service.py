"""
Script service: the workflow that runs a script function.

Engine-agnostic. A backend registers StarService.run as a workflow; each run
builds the plugin modules and a fresh ScriptEnvironment from the sources
carried in the request, so replay sees exactly the code of the first run.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Union

from ..star.runtime import ScriptEnvironment, ScriptThread
from ..workflow.context import Context
from ..workflow.options import RegisterOptions
from ..workflow.worker import Registry
from ..workflow.workflow import Workflow
from .plugin import Plugin, PluginRegistry, RunInfo

logger = logging.getLogger(__name__)


WORKFLOW_NAME = "starworker"


@dataclass
class ScriptRequest:
    """Input of the script workflow."""

    path: str
    function: str
    sources: Dict[str, str] = field(default_factory=dict)
    args: List[Any] = field(default_factory=list)
    kwargs: Dict[str, Any] = field(default_factory=dict)
    environ: Dict[str, str] = field(default_factory=dict)


class StarService:
    """
    Runs script functions as workflows.

    Usage:
        service = StarService([CadPlugin(), JsonPlugin()], backend.workflow)
        service.register(worker)
    """

    def __init__(
        self,
        plugins: Union[PluginRegistry, Iterable[Plugin], Mapping[str, Plugin]],
        workflow: Workflow,
    ):
        self.plugins = plugins if isinstance(plugins, PluginRegistry) else PluginRegistry(plugins)
        self.workflow = workflow

    def register(self, registry: Registry) -> None:
        """Register the script workflow and every plugin's activities/workflows."""
        registry.register_workflow_with_options(self.run, RegisterOptions(name=WORKFLOW_NAME))
        self.plugins.register(registry)

    async def run(self, ctx: Context, request: Union[ScriptRequest, Mapping[str, Any]]) -> Any:
        if isinstance(request, Mapping):
            request = ScriptRequest(**request)
        w = self.workflow
        wf_logger = w.get_logger(ctx)
        info = w.get_info(ctx)

        run_info = RunInfo(info=info, environ=dict(request.environ), storage={})
        modules = self.plugins.create_modules(run_info)
        thread = ScriptThread(
            name=f"{info.execution_id}/{info.run_id}",
            ctx=ctx,
            workflow=w,
            logger=wf_logger,
            storage=run_info.storage,
        )
        env = ScriptEnvironment(request.sources, modules, thread)

        wf_logger.info(f"Running {request.path}:{request.function}")
        try:
            await env.load(request.path)
            result = await env.call(request.path, request.function, request.args, request.kwargs)
        except Exception as e:
            wf_logger.error(f"Script {request.path}:{request.function} failed: {e}")
            raise
        wf_logger.info(f"Finished {request.path}:{request.function}")
        return result
