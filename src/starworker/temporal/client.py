"""
Temporal Client for starworker

Provides connection to the Temporal server and script workflow management.
"""

import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from temporalio.client import Client, WorkflowHandle
from temporalio.common import RetryPolicy

from ..plugins.progress import QUERY_NAME as PROGRESS_QUERY
from ..service.service import WORKFLOW_NAME, ScriptRequest
from ..star.runtime import load_sources
from .config import WorkerConfig, load_config
from .converter import data_converter
from .propagation import HeadersInterceptor, headers_scope

logger = logging.getLogger(__name__)


async def connect(config: WorkerConfig) -> Client:
    """
    Open a Temporal client for the configured location.

    grpc:// connects in plaintext, grpcs:// with TLS. The client carries the
    logging data converter and the header interceptor.

    Raises:
        ConfigurationError: unsupported location
    """
    location = config.parsed_location
    logger.info(f"Connecting to Temporal at {location.target} ({location.scheme})...")
    return await Client.connect(
        location.target,
        namespace=config.domain,
        tls=location.tls,
        data_converter=data_converter(),
        interceptors=[HeadersInterceptor()],
    )


class StarClient:
    """
    Client for running scripts on a starworker deployment.

    Usage:
        async with StarClient() as client:
            handle = await client.run_script("scripts", "/app.lua", "main", args=[1, 2])
            result = await handle.result()
    """

    def __init__(self, config: Optional[WorkerConfig] = None):
        self.config = config or load_config()
        self._client: Optional[Client] = None

    async def connect(self) -> "StarClient":
        """Connect to Temporal server."""
        self._client = await connect(self.config)
        return self

    async def close(self) -> None:
        """Close connection (the Temporal client handles cleanup)."""
        self._client = None

    async def __aenter__(self) -> "StarClient":
        return await self.connect()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def client(self) -> Client:
        """Get underlying Temporal client."""
        if self._client is None:
            raise RuntimeError("Client not connected. Use 'async with StarClient()' or call connect()")
        return self._client

    async def run_script(
        self,
        root_directory: Union[str, Path],
        path: str,
        function: str,
        args: Sequence[Any] = (),
        kwargs: Optional[Mapping[str, Any]] = None,
        *,
        environ: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        workflow_id: Optional[str] = None,
        execution_timeout: Optional[timedelta] = None,
    ) -> WorkflowHandle:
        """
        Start the script workflow for path:function.

        Args:
            root_directory: Directory holding the script and everything it requires
            path: Root-relative script path
            function: Global function to call
            args: Positional arguments (JSON values)
            kwargs: Keyword arguments, passed as a trailing kw{} table
            environ: Values exposed to plugins through RunInfo
            headers: Metadata propagated to every activity and child workflow
            workflow_id: Optional custom workflow ID

        Returns:
            WorkflowHandle for tracking and querying the workflow
        """
        request = ScriptRequest(
            path=path,
            function=function,
            sources=load_sources(root_directory),
            args=list(args),
            kwargs=dict(kwargs or {}),
            environ=dict(environ or {}),
        )
        wf_id = workflow_id or f"starworker-{Path(path).stem}-{function}"
        with headers_scope(headers):
            handle = await self.client.start_workflow(
                WORKFLOW_NAME,
                request,
                id=wf_id,
                task_queue=self.config.task_list,
                execution_timeout=execution_timeout,
                retry_policy=RetryPolicy(
                    maximum_attempts=1,  # Scripts should not auto-retry
                ),
            )
        logger.info(f"Started {path}:{function} as workflow {handle.id}")
        return handle

    async def get_progress(self, workflow_id: str) -> Any:
        """Latest value reported through progress.report."""
        handle = self.client.get_workflow_handle(workflow_id)
        return await handle.query(PROGRESS_QUERY)

    async def get_workflow_status(self, workflow_id: str) -> Dict[str, Any]:
        """Get status of a script workflow."""
        handle = self.client.get_workflow_handle(workflow_id)
        desc = await handle.describe()
        return {
            "workflow_id": workflow_id,
            "status": desc.status.name if desc.status else None,
            "start_time": desc.start_time.isoformat() if desc.start_time else None,
            "close_time": desc.close_time.isoformat() if desc.close_time else None,
        }

    async def cancel(self, workflow_id: str) -> None:
        """Cancel a running script workflow."""
        handle = self.client.get_workflow_handle(workflow_id)
        await handle.cancel()
