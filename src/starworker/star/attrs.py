"""
Attribute resolution shared by every script-visible module.

A module exposes two tables: builtins (name -> Builtin) and properties
(name -> factory evaluated against the module on each access). Lookup order
is builtins, then properties; enumeration is the union of both.
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Mapping

from .errors import AttributeNotFoundError


@dataclass(frozen=True)
class Builtin:
    """
    Script-callable function.

    ``fn(thread, *args, **kwargs)`` receives the calling ScriptThread first,
    then the script's positional arguments and keyword options.
    """

    name: str
    fn: Callable[..., Any]

    def __call__(self, thread: Any, *args: Any, **kwargs: Any) -> Any:
        return self.fn(thread, *args, **kwargs)


PropertyFactory = Callable[[Any], Any]


def resolve_attr(
    receiver: Any,
    name: str,
    builtins: Mapping[str, Builtin],
    properties: Mapping[str, PropertyFactory],
) -> Any:
    """Resolve ``receiver.name`` against the two tables."""
    builtin = builtins.get(name)
    if builtin is not None:
        return builtin
    factory = properties.get(name)
    if factory is not None:
        return factory(receiver)
    raise AttributeNotFoundError(f"{receiver} has no attribute '{name}'")


def attr_names(builtins: Mapping[str, Builtin], properties: Mapping[str, PropertyFactory]) -> List[str]:
    return sorted(set(builtins) | set(properties))


class ScriptModule:
    """Base for plugin modules; subclasses set the two tables."""

    name = "module"
    builtins: Mapping[str, Builtin] = {}
    properties: Mapping[str, PropertyFactory] = {}

    def attr(self, name: str) -> Any:
        return resolve_attr(self, name, self.builtins, self.properties)

    def attr_names(self) -> List[str]:
        return attr_names(self.builtins, self.properties)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<module {self.name}>"
