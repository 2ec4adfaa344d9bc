"""
Worker registration surface and the backend factory.

RegistrationTable holds the name -> function tables of a worker and is shared
by every backend, so duplicate handling and naming rules are identical.
"""

import asyncio
import inspect
import logging
import typing
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .context import Context
from .errors import RegistrationError
from .options import RegisterOptions
from .workflow import Workflow

logger = logging.getLogger(__name__)


def registration_name(fn: Callable[..., Any], options: RegisterOptions) -> str:
    """Resolve the registered name of a function."""
    if options.name:
        return options.name
    if options.enable_short_name:
        return fn.__name__
    return f"{fn.__module__}.{fn.__qualname__}"


def validate_workflow_function(fn: Callable[..., Any]) -> inspect.Signature:
    """
    Check the shape of a workflow function.

    It must be an ``async def`` whose first positional parameter receives the
    Context. Raises RegistrationError otherwise.
    """
    if not callable(fn):
        raise RegistrationError(f"workflow must be a function, got {type(fn).__name__}")
    if not inspect.iscoroutinefunction(fn):
        raise RegistrationError(f"workflow {fn!r} must be declared with 'async def'")
    signature = inspect.signature(fn)
    params = list(signature.parameters.values())
    positional = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    if not params or params[0].kind not in positional:
        raise RegistrationError(
            f"workflow {fn!r} must have at least one argument (context)"
        )
    try:
        hints = typing.get_type_hints(fn)
    except (NameError, TypeError):
        hints = {}
    annotation = hints.get(params[0].name, params[0].annotation)
    if isinstance(annotation, str):
        # unresolvable forward reference
        valid = annotation.rsplit(".", 1)[-1].endswith("Context")
    else:
        valid = annotation is inspect.Parameter.empty or (
            isinstance(annotation, type) and issubclass(annotation, Context)
        )
    if not valid:
        raise RegistrationError(
            f"first argument of workflow {fn!r} must be a Context, got {annotation!r}"
        )
    return signature


@dataclass(frozen=True)
class Registration:
    name: str
    fn: Callable[..., Any]
    options: RegisterOptions


class RegistrationTable:
    """Name -> registration table rejecting duplicates unless allowed."""

    def __init__(self, kind: str):
        self.kind = kind
        self._entries: Dict[str, Registration] = {}

    def add(self, fn: Callable[..., Any], options: RegisterOptions) -> Registration:
        name = registration_name(fn, options)
        if name in self._entries and not options.disable_already_registered_check:
            raise RegistrationError(f"{self.kind} '{name}' is already registered")
        entry = Registration(name=name, fn=fn, options=options)
        self._entries[name] = entry
        logger.debug(f"Registered {self.kind} '{name}'")
        return entry

    def get(self, name: str) -> Optional[Registration]:
        return self._entries.get(name)

    def lookup(self, target: Any) -> Optional[Registration]:
        """Find a registration by name or by the registered function."""
        if isinstance(target, str):
            return self._entries.get(target)
        for entry in self._entries.values():
            if entry.fn is target:
                return entry
        return None

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __iter__(self):
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)


class Registry(ABC):
    """What plugins see at worker startup."""

    def register_workflow(self, fn: Callable[..., Any]) -> None:
        self.register_workflow_with_options(fn, RegisterOptions())

    def register_activity(self, fn: Callable[..., Any]) -> None:
        self.register_activity_with_options(fn, RegisterOptions())

    @abstractmethod
    def register_workflow_with_options(self, fn: Callable[..., Any], options: RegisterOptions) -> None: ...

    @abstractmethod
    def register_activity_with_options(self, fn: Callable[..., Any], options: RegisterOptions) -> None: ...


class Worker(Registry):
    """Registration plus the poll/run lifecycle."""

    @abstractmethod
    async def start(self) -> None: ...

    @abstractmethod
    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run until stop_event is set (or forever)."""

    @abstractmethod
    async def stop(self) -> None: ...


class Backend(ABC):
    """Constructs workers for one concrete engine."""

    @property
    @abstractmethod
    def workflow(self) -> Workflow:
        """The engine's implementation of the workflow primitives."""

    @abstractmethod
    def register_worker(self, location: str, domain: str, task_list: str, config: Any = None) -> Worker: ...
