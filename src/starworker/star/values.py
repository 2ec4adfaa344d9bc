"""
Lua <-> Python value conversion.

Lua tables become lists when their keys are exactly 1..n, dicts otherwise.
Dict keys are sorted so the converted value never depends on Lua's hash
iteration order.
"""

from typing import Any, Dict, List

from lupa.lua54 import LuaRuntime, lua_type

from ..workflow.errors import CodecError


def _sort_key(key: Any) -> tuple:
    return (type(key).__name__, key)


def to_python(value: Any) -> Any:
    """Convert a Lua value (as returned by lupa) into plain Python data."""
    kind = lua_type(value)
    if kind is None:
        return value
    if kind == "table":
        items = sorted(((to_python(k), v) for k, v in value.items()), key=lambda kv: _sort_key(kv[0]))
        keys = [k for k, _ in items]
        if keys and keys == list(range(1, len(keys) + 1)):
            return [to_python(v) for _, v in items]
        if not keys:
            return []
        result: Dict[Any, Any] = {}
        for k, v in items:
            result[k] = to_python(v)
        return result
    raise CodecError(f"cannot convert Lua {kind} to a Python value")


def to_lua(lua: LuaRuntime, value: Any) -> Any:
    """Convert plain Python data into Lua values (lists/dicts become tables)."""
    if isinstance(value, (list, tuple)):
        table = lua.table()
        for index, item in enumerate(value, start=1):
            table[index] = to_lua(lua, item)
        return table
    if isinstance(value, dict):
        table = lua.table()
        for key, item in value.items():
            table[key] = to_lua(lua, item)
        return table
    return value


def to_python_args(args: Any, count: int) -> List[Any]:
    """Convert the first ``count`` entries of a packed Lua argument table."""
    return [to_python(args[index]) for index in range(1, count + 1)]
