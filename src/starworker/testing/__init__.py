"""
Script test harness.

StarTestEnvironment runs script functions on an in-process simulated engine
with mockable activities and child workflows.
"""

from .environment import StarTestEnvironment
from .simulated import (
    Call,
    Expectation,
    NotRegisteredError,
    SimulatedContext,
    SimulatedEngine,
    SimulatedWorker,
    SimulatedWorkflow,
    UnexpectedCallError,
)

__all__ = [
    "StarTestEnvironment",
    "Call",
    "Expectation",
    "NotRegisteredError",
    "SimulatedContext",
    "SimulatedEngine",
    "SimulatedWorker",
    "SimulatedWorkflow",
    "UnexpectedCallError",
]
