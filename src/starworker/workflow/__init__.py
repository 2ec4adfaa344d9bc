"""
Engine-agnostic workflow abstraction.

Orchestration code (the script service and plugins) is written against these
interfaces only; starworker.temporal and starworker.testing implement them.
"""

from .context import CancelScope, Context
from .errors import (
    INVALID_ARGUMENT,
    UNIMPLEMENTED,
    AlreadyResolvedError,
    CanceledError,
    CodecError,
    ConfigurationError,
    CustomError,
    DecodeError,
    RegistrationError,
    StarworkerError,
)
from .future import ChildWorkflowFuture, Future, LoopFuture, LoopSettable, Settable, WorkflowExecution
from .options import ActivityOptions, ChildWorkflowOptions, RegisterOptions, RetryPolicy
from .worker import Backend, Registry, RegistrationTable, Worker
from .workflow import Workflow, WorkflowInfo

__all__ = [
    "CancelScope",
    "Context",
    "INVALID_ARGUMENT",
    "UNIMPLEMENTED",
    "AlreadyResolvedError",
    "CanceledError",
    "CodecError",
    "ConfigurationError",
    "CustomError",
    "DecodeError",
    "RegistrationError",
    "StarworkerError",
    "ChildWorkflowFuture",
    "Future",
    "LoopFuture",
    "LoopSettable",
    "Settable",
    "WorkflowExecution",
    "ActivityOptions",
    "ChildWorkflowOptions",
    "RegisterOptions",
    "RetryPolicy",
    "Backend",
    "Registry",
    "RegistrationTable",
    "Worker",
    "Workflow",
    "WorkflowInfo",
]
