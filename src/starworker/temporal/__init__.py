"""
Temporal backend for starworker

- config: WorkerConfig, location parsing (grpc / grpcs)
- client: connection and StarClient for starting scripts
- worker: TemporalWorker, TemporalBackend, run_worker
- workflow: the workflow primitives on temporalio.workflow
- propagation / converter: header interceptor and logging payload converter
"""

from .config import Location, WorkerConfig, load_config, parse_location
from .client import StarClient, connect
from .converter import LoggingPayloadConverter, data_converter
from .propagation import HEADER_KEY, HeadersInterceptor, current_headers, headers_scope
from .workflow import TemporalContext, TemporalFuture, TemporalWorkflow
from .worker import TemporalBackend, TemporalWorker, main, run_worker

__all__ = [
    # Configuration
    "Location",
    "WorkerConfig",
    "load_config",
    "parse_location",
    # Client
    "StarClient",
    "connect",
    # Conversion and propagation
    "LoggingPayloadConverter",
    "data_converter",
    "HEADER_KEY",
    "HeadersInterceptor",
    "current_headers",
    "headers_scope",
    # Workflow primitives
    "TemporalContext",
    "TemporalFuture",
    "TemporalWorkflow",
    # Infrastructure
    "TemporalBackend",
    "TemporalWorker",
    "main",
    "run_worker",
]
