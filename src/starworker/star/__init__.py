"""
Embedded scripting layer (sandboxed Lua via lupa).
"""

from .attrs import Builtin, PropertyFactory, ScriptModule, attr_names, resolve_attr
from .errors import AttributeNotFoundError, ScriptError, ScriptNotFoundError
from .runtime import Pending, ScriptEnvironment, ScriptThread, load_sources, normalize_path

__all__ = [
    "Builtin",
    "PropertyFactory",
    "ScriptModule",
    "attr_names",
    "resolve_attr",
    "AttributeNotFoundError",
    "ScriptError",
    "ScriptNotFoundError",
    "Pending",
    "ScriptEnvironment",
    "ScriptThread",
    "load_sources",
    "normalize_path",
]
