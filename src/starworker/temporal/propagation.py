"""
Header propagation across Temporal boundaries.

The metadata map of the current Context travels in one Temporal header
(HEADER_KEY) holding the whole map. Outbound calls read it from a contextvar
that TemporalWorkflow / StarClient set around the call; inbound workflow and
activity executions restore it before user code runs.
"""

import contextvars
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional, Type

import temporalio.activity
import temporalio.client
import temporalio.converter
import temporalio.worker
import temporalio.workflow
from temporalio.api.common.v1 import Payload

HEADER_KEY = "starworker-headers"

_headers: contextvars.ContextVar[Optional[Dict[str, str]]] = contextvars.ContextVar(
    "starworker_headers", default=None
)


def current_headers() -> Dict[str, str]:
    """Headers of the execution currently running (empty when none)."""
    return dict(_headers.get() or {})


@contextmanager
def headers_scope(headers: Optional[Mapping[str, str]]) -> Iterator[None]:
    """Make ``headers`` the outbound headers for calls issued in the block."""
    token = _headers.set(dict(headers) if headers else None)
    try:
        yield
    finally:
        _headers.reset(token)


def _set_header(input: Any, payload_converter: temporalio.converter.PayloadConverter) -> None:
    values = _headers.get()
    if values:
        input.headers = {**input.headers, HEADER_KEY: payload_converter.to_payload(values)}


@contextmanager
def _restore_header(input: Any, payload_converter: temporalio.converter.PayloadConverter) -> Iterator[None]:
    payload: Optional[Payload] = input.headers.get(HEADER_KEY)
    values = payload_converter.from_payload(payload, Dict[str, str]) if payload else None
    with headers_scope(values):
        yield


class HeadersInterceptor(temporalio.client.Interceptor, temporalio.worker.Interceptor):
    """
    Client and worker interceptor carrying the header map.

    Registered on the client, it is picked up by workers built from that client.
    """

    def __init__(
        self,
        payload_converter: temporalio.converter.PayloadConverter = temporalio.converter.default().payload_converter,
    ) -> None:
        self._payload_converter = payload_converter

    def intercept_client(
        self, next: temporalio.client.OutboundInterceptor
    ) -> temporalio.client.OutboundInterceptor:
        return _ClientOutbound(next, self._payload_converter)

    def intercept_activity(
        self, next: temporalio.worker.ActivityInboundInterceptor
    ) -> temporalio.worker.ActivityInboundInterceptor:
        return _ActivityInbound(next)

    def workflow_interceptor_class(
        self, input: temporalio.worker.WorkflowInterceptorClassInput
    ) -> Type["_WorkflowInbound"]:
        return _WorkflowInbound


class _ClientOutbound(temporalio.client.OutboundInterceptor):
    def __init__(
        self,
        next: temporalio.client.OutboundInterceptor,
        payload_converter: temporalio.converter.PayloadConverter,
    ) -> None:
        super().__init__(next)
        self._payload_converter = payload_converter

    async def start_workflow(
        self, input: temporalio.client.StartWorkflowInput
    ) -> temporalio.client.WorkflowHandle[Any, Any]:
        _set_header(input, self._payload_converter)
        return await super().start_workflow(input)

    async def query_workflow(self, input: temporalio.client.QueryWorkflowInput) -> Any:
        _set_header(input, self._payload_converter)
        return await super().query_workflow(input)

    async def signal_workflow(self, input: temporalio.client.SignalWorkflowInput) -> None:
        _set_header(input, self._payload_converter)
        await super().signal_workflow(input)


class _ActivityInbound(temporalio.worker.ActivityInboundInterceptor):
    async def execute_activity(self, input: temporalio.worker.ExecuteActivityInput) -> Any:
        with _restore_header(input, temporalio.activity.payload_converter()):
            return await self.next.execute_activity(input)


class _WorkflowInbound(temporalio.worker.WorkflowInboundInterceptor):
    def init(self, outbound: temporalio.worker.WorkflowOutboundInterceptor) -> None:
        self.next.init(_WorkflowOutbound(outbound))

    async def execute_workflow(self, input: temporalio.worker.ExecuteWorkflowInput) -> Any:
        with _restore_header(input, temporalio.workflow.payload_converter()):
            return await self.next.execute_workflow(input)

    async def handle_signal(self, input: temporalio.worker.HandleSignalInput) -> None:
        with _restore_header(input, temporalio.workflow.payload_converter()):
            return await self.next.handle_signal(input)

    async def handle_query(self, input: temporalio.worker.HandleQueryInput) -> Any:
        with _restore_header(input, temporalio.workflow.payload_converter()):
            return await self.next.handle_query(input)


class _WorkflowOutbound(temporalio.worker.WorkflowOutboundInterceptor):
    def start_activity(
        self, input: temporalio.worker.StartActivityInput
    ) -> temporalio.workflow.ActivityHandle:
        _set_header(input, temporalio.workflow.payload_converter())
        return self.next.start_activity(input)

    def start_local_activity(
        self, input: temporalio.worker.StartLocalActivityInput
    ) -> temporalio.workflow.ActivityHandle:
        _set_header(input, temporalio.workflow.payload_converter())
        return self.next.start_local_activity(input)

    async def start_child_workflow(
        self, input: temporalio.worker.StartChildWorkflowInput
    ) -> temporalio.workflow.ChildWorkflowHandle:
        _set_header(input, temporalio.workflow.payload_converter())
        return await self.next.start_child_workflow(input)

    async def signal_child_workflow(self, input: temporalio.worker.SignalChildWorkflowInput) -> None:
        _set_header(input, temporalio.workflow.payload_converter())
        return await self.next.signal_child_workflow(input)

    async def signal_external_workflow(self, input: temporalio.worker.SignalExternalWorkflowInput) -> None:
        _set_header(input, temporalio.workflow.payload_converter())
        return await self.next.signal_external_workflow(input)
