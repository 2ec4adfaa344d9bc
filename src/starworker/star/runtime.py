"""
Sandboxed Lua environment for one workflow instance.

Script code runs inside a Lua coroutine. A builtin that needs the engine
returns a Pending; the Lua call shim yields it to the driver in
ScriptEnvironment._drive, which awaits it on the workflow loop and resumes the
coroutine with ("ok", value) or ("error", exception). The script therefore
suspends only at engine primitives, and engine calls are issued in the order
the script makes them.

Sandbox: no os/io/debug/package/load/dofile/coroutine/next, math without
random, pairs iterating in sorted key order, tostring without addresses, print
routed to the workflow logger.
"""

import logging
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Dict, Mapping, Optional, Sequence, Tuple, Union

from lupa.lua54 import LuaRuntime, lua_type

from ..workflow.context import Context
from ..workflow.errors import INVALID_ARGUMENT, CustomError
from ..workflow.workflow import Workflow
from .attrs import Builtin, ScriptModule
from .errors import ScriptError, ScriptNotFoundError
from .values import to_lua, to_python, to_python_args

logger = logging.getLogger(__name__)


# Names a plugin ID may not take: they are sandbox globals.
RESERVED_GLOBALS = frozenset({
    "assert", "error", "ipairs", "pcall", "xpcall", "select", "tonumber",
    "tostring", "type", "rawequal", "rawget", "rawlen", "rawset",
    "setmetatable", "getmetatable", "pairs", "unpack", "string", "table",
    "utf8", "math", "print", "kw", "dir", "require", "_VERSION",
})


_PRELUDE = r"""
return function(invoke, resolve, module_names, log, read_source)
  local KW = {}
  local pack, unpack, concat, sort = table.pack, table.unpack, table.concat, table.sort
  local yield, create, resume, status = coroutine.yield, coroutine.create, coroutine.resume, coroutine.status
  local raw_next, raw_tostring, raw_type, raw_load = next, tostring, type, load
  local setmetatable, getmetatable, error, select = setmetatable, getmetatable, error, select

  local function copy(source, skip)
    local result = {}
    for k, v in raw_next, source do
      if not (skip and skip[k]) then result[k] = v end
    end
    return result
  end

  local function stable_tostring(v)
    local t = raw_type(v)
    if t == "table" then
      local mt = getmetatable(v)
      if mt ~= nil and (raw_type(mt) ~= "table" or mt.__tostring ~= nil) then
        return raw_tostring(v)
      end
      return "table"
    elseif t == "function" or t == "thread" then
      return t
    end
    return raw_tostring(v)
  end

  local function key_less(a, b)
    local ta, tb = raw_type(a), raw_type(b)
    if ta ~= tb then return ta < tb end
    if ta == "number" or ta == "string" then return a < b end
    if ta == "boolean" then return (not a) and b end
    return false
  end

  local function sorted_keys(t)
    local keys = {}
    for k in raw_next, t do keys[#keys + 1] = k end
    sort(keys, key_less)
    return keys
  end

  local function sorted_pairs(t)
    local keys = sorted_keys(t)
    local i = 0
    return function()
      i = i + 1
      local k = keys[i]
      if k ~= nil then return k, t[k] end
    end, t, nil
  end

  -- Builtin results: ("ok", v), ("error", e) or ("await", pending).
  local function settle(state, value)
    while state == "await" do
      state, value = yield(value)
    end
    if state == "error" then error(value, 0) end
    return value
  end

  local function call(fn, ...)
    local args = pack(...)
    local n = args.n
    local kwargs = nil
    if n > 0 and raw_type(args[n]) == "table" and getmetatable(args[n]) == KW then
      kwargs = args[n]
      n = n - 1
    end
    return settle(invoke(fn, args, n, kwargs))
  end

  local modules = setmetatable({}, {__mode = "k"})

  local function proxy(module)
    local p = setmetatable({}, {
      __index = function(_, name)
        local state, value = resolve(module, name)
        if state == "builtin" then
          return function(...) return call(value, ...) end
        end
        return settle(state, value)
      end,
      __newindex = function(_, name)
        error("cannot assign module attribute '" .. raw_tostring(name) .. "'", 2)
      end,
      __tostring = function() return raw_tostring(module) end,
      __metatable = false,
    })
    modules[p] = module
    return p
  end

  local base = {
    assert = assert, error = error, ipairs = ipairs, pcall = pcall, xpcall = xpcall,
    select = select, tonumber = tonumber, tostring = stable_tostring, type = raw_type,
    rawequal = rawequal, rawget = rawget, rawlen = rawlen, rawset = rawset,
    setmetatable = setmetatable, getmetatable = getmetatable,
    pairs = sorted_pairs, unpack = unpack,
    string = copy(string), table = copy(table), utf8 = copy(utf8),
    math = copy(math, {random = true, randomseed = true}),
    _VERSION = _VERSION,
  }

  function base.kw(t)
    if t == nil then t = {} end
    if raw_type(t) ~= "table" then error("kw expects a table", 2) end
    return setmetatable(t, KW)
  end

  function base.print(...)
    local parts = {}
    for i = 1, select("#", ...) do parts[i] = stable_tostring((select(i, ...))) end
    log(concat(parts, "\t"))
  end

  function base.dir(v)
    local module = modules[v]
    if module ~= nil then return module_names(module) end
    if raw_type(v) ~= "table" then error("dir expects a table or module", 2) end
    return sorted_keys(v)
  end

  local loaded, loading, envs = {}, {}, {}

  local function require_module(path)
    local state, name, source = read_source(path)
    if state == "error" then error(name, 0) end
    local cached = loaded[name]
    if cached ~= nil then return cached end
    if loading[name] then error("cyclic require of " .. name, 2) end
    local env = setmetatable({}, {__index = base})
    local chunk, err = raw_load(source, "@" .. name, "t", env)
    if chunk == nil then error(err, 0) end
    loading[name] = true
    local ok, result = pcall(chunk)
    loading[name] = nil
    if not ok then error(result, 0) end
    envs[name] = env
    if result == nil then result = env end
    loaded[name] = result
    return result
  end

  base.require = require_module

  local api = {}
  function api.install(name, module) base[name] = proxy(module) end
  function api.main(path) require_module(path) end
  function api.lookup(path, name)
    local state, normalized = read_source(path)
    if state == "error" then return nil end
    local env = envs[normalized]
    if env == nil then return nil end
    return rawget(env, name)
  end
  api.kw = base.kw
  -- The thread stays boxed in a table: lupa does not hand Lua threads back
  -- to Lua as threads.
  function api.create(fn) return {co = create(fn)} end
  function api.resume(box, ...)
    local co = box.co
    local r = pack(resume(co, ...))
    return status(co), r[1], r[2]
  end
  return api
end
"""


class Pending:
    """Engine wait handed back by a builtin; awaited by the driver."""

    def __init__(self, awaitable: Awaitable[Any]):
        self.awaitable = awaitable


@dataclass
class ScriptThread:
    """
    Per-execution state visible to builtins.

    ``ctx`` is the ambient context of the script's path of execution; builtins
    derive from it locally and never replace it. ``storage`` is the instance
    storage shared with RunInfo.
    """

    name: str
    ctx: Context
    workflow: Workflow
    logger: Union[logging.Logger, logging.LoggerAdapter]
    storage: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.name


def normalize_path(path: str) -> str:
    """Root-relative, normalized script path (always starting with '/')."""
    if not isinstance(path, str) or not path:
        raise ScriptNotFoundError(f"invalid script path: {path!r}")
    return posixpath.normpath("/" + path.lstrip("/"))


def load_sources(root_directory: Union[str, Path]) -> Dict[str, str]:
    """Read every file below a root directory into {"/relative/path": text}."""
    root = Path(root_directory)
    if not root.is_dir():
        raise ScriptNotFoundError(f"script root {root} is not a directory")
    sources: Dict[str, str] = {}
    for file in sorted(root.rglob("*")):
        if file.is_file():
            sources["/" + file.relative_to(root).as_posix()] = file.read_text(encoding="utf-8")
    return sources


def _attribute_filter(obj: Any, attr_name: Any, is_setting: bool) -> Any:
    """Scripts may read public attributes of Python objects, nothing else."""
    if is_setting or not isinstance(attr_name, str) or attr_name.startswith("_"):
        raise AttributeError(f"access to '{attr_name}' is not allowed")
    return attr_name


class ScriptEnvironment:
    """One Lua runtime with plugin modules installed as globals."""

    def __init__(
        self,
        sources: Mapping[str, str],
        modules: Mapping[str, ScriptModule],
        thread: ScriptThread,
    ):
        self.sources = {normalize_path(path): text for path, text in sources.items()}
        self.thread = thread
        self.lua = LuaRuntime(
            unpack_returned_tuples=True,
            register_eval=False,
            register_builtins=False,
            attribute_filter=_attribute_filter,
        )
        self._api = self.lua.execute(_PRELUDE)(
            self._invoke, self._resolve, self._module_names, self._log, self._read_source,
        )
        for name, module in modules.items():
            self._api.install(name, module)

    # -------------------------------------------------------------------------
    # Callbacks from Lua; they never raise into Lua
    # -------------------------------------------------------------------------

    def _invoke(self, builtin: Builtin, args: Any, count: int, kwargs: Any) -> Tuple[str, Any]:
        try:
            py_args = to_python_args(args, count)
            py_kwargs = self._keyword_options(builtin, kwargs)
            result = builtin(self.thread, *py_args, **py_kwargs)
        except Exception as e:
            return "error", e
        if isinstance(result, Pending):
            return "await", result
        return "ok", to_lua(self.lua, result)

    def _resolve(self, module: ScriptModule, name: str) -> Tuple[str, Any]:
        try:
            value = module.attr(name)
        except Exception as e:
            return "error", e
        if isinstance(value, Builtin):
            return "builtin", value
        return "ok", to_lua(self.lua, value)

    def _module_names(self, module: ScriptModule) -> Any:
        return to_lua(self.lua, module.attr_names())

    def _log(self, message: str) -> None:
        self.thread.logger.info(f"[script] {message}")

    def _read_source(self, path: str) -> Tuple[str, Any, Optional[str]]:
        try:
            name = normalize_path(path)
            if name not in self.sources:
                raise ScriptNotFoundError(f"script {name} not found")
        except ScriptNotFoundError as e:
            return "error", e, None
        return "ok", name, self.sources[name]

    def _keyword_options(self, builtin: Builtin, kwargs: Any) -> Dict[str, Any]:
        if kwargs is None:
            return {}
        options = to_python(kwargs)
        if options == []:
            return {}
        if not isinstance(options, dict) or not all(isinstance(k, str) for k in options):
            err = CustomError(INVALID_ARGUMENT, f"{builtin.name}: keyword options must be a table of named values")
            self.thread.logger.error(f"builtin-error: {builtin.name}: {err}")
            raise err
        return options

    # -------------------------------------------------------------------------
    # Driver
    # -------------------------------------------------------------------------

    async def _drive(self, fn: Any, *args: Any) -> Any:
        co = self._api.create(fn)
        state, ok, value = self._api.resume(co, *args)
        while True:
            if not ok:
                if isinstance(value, BaseException):
                    raise value
                raise ScriptError(str(value))
            if state == "dead":
                return value
            if not isinstance(value, Pending):
                raise ScriptError(f"script yielded unexpected value {value!r}")
            try:
                result = await value.awaitable
            except Exception as e:
                state, ok, value = self._api.resume(co, "error", e)
            else:
                state, ok, value = self._api.resume(co, "ok", to_lua(self.lua, result))

    async def load(self, path: str) -> None:
        """Execute a script file's top-level code (once)."""
        await self._drive(self._api.main, normalize_path(path))

    async def call(
        self,
        path: str,
        function: str,
        args: Sequence[Any] = (),
        kwargs: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Call a global function of a loaded script and return a Python value."""
        fn = self._api.lookup(normalize_path(path), function)
        if lua_type(fn) != "function":
            raise ScriptError(f"{path}: function '{function}' not found")
        lua_args = [to_lua(self.lua, arg) for arg in args]
        if kwargs:
            lua_args.append(self._api.kw(to_lua(self.lua, dict(kwargs))))
        result = await self._drive(fn, *lua_args)
        return to_python(result)
