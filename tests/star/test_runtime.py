"""
Tests for the sandboxed Lua environment.

Drives ScriptEnvironment directly with plain modules; no engine involved.
"""

import asyncio
import logging

import pytest

from conftest import TESTDATA
from starworker.star import (
    Builtin,
    Pending,
    ScriptEnvironment,
    ScriptError,
    ScriptModule,
    ScriptNotFoundError,
    ScriptThread,
    load_sources,
    normalize_path,
)
from starworker.workflow import Context, CustomError


async def _later(value):
    await asyncio.sleep(0)
    return value


def _echo(thread, *args, **kwargs):
    return {"args": list(args), "kwargs": kwargs}


def _wait(thread, value):
    return Pending(_later(value))


def _explode(thread):
    raise CustomError("exploded", "detail")


class ToolsModule(ScriptModule):
    name = "tools"
    builtins = {
        "echo": Builtin("echo", _echo),
        "wait": Builtin("wait", _wait),
        "explode": Builtin("explode", _explode),
    }
    properties = {"answer": lambda receiver: 42}


TOOLS = """
function call_echo()
  return tools.echo(1, "two", kw{b = true, a = 1})
end

function waits()
  local first = tools.wait("a")
  local second = tools.wait("b")
  return first .. second
end

function catches()
  local ok, err = pcall(tools.explode)
  return {ok, err.reason}
end

function answer()
  return tools.answer
end
"""


@pytest.fixture
def thread():
    return ScriptThread(name="test", ctx=Context(), workflow=None, logger=logging.getLogger("tests.script"))


def make_env(thread, extra=None, modules=None):
    sources = load_sources(TESTDATA)
    sources["/tools.lua"] = TOOLS
    sources.update(extra or {})
    return ScriptEnvironment(sources, modules if modules is not None else {"tools": ToolsModule()}, thread)


class TestPaths:
    def test_normalize(self):
        assert normalize_path("app.lua") == "/app.lua"
        assert normalize_path("/lib/../app.lua") == "/app.lua"

    def test_invalid_path(self):
        with pytest.raises(ScriptNotFoundError):
            normalize_path("")

    def test_load_sources(self, testdata):
        sources = load_sources(testdata)

        assert "/app.lua" in sources
        assert "/lib.lua" in sources

    def test_load_sources_missing_root(self, tmp_path):
        with pytest.raises(ScriptNotFoundError):
            load_sources(tmp_path / "nope")


class TestCalls:
    """Builtin invocation, suspension and error transport."""

    @pytest.mark.asyncio
    async def test_arguments_and_keyword_options(self, thread):
        env = make_env(thread)
        await env.load("/tools.lua")

        result = await env.call("/tools.lua", "call_echo")

        assert result == {"args": [1, "two"], "kwargs": {"a": 1, "b": True}}

    @pytest.mark.asyncio
    async def test_pending_results_resume_in_order(self, thread):
        env = make_env(thread)
        await env.load("/tools.lua")

        assert await env.call("/tools.lua", "waits") == "ab"

    @pytest.mark.asyncio
    async def test_python_error_caught_by_pcall(self, thread):
        env = make_env(thread)
        await env.load("/tools.lua")

        assert await env.call("/tools.lua", "catches") == [False, "exploded"]

    @pytest.mark.asyncio
    async def test_property(self, thread):
        env = make_env(thread)
        await env.load("/tools.lua")

        assert await env.call("/tools.lua", "answer") == 42

    @pytest.mark.asyncio
    async def test_lua_error_becomes_script_error(self, thread):
        env = make_env(thread, modules={})
        await env.load("/app.lua")

        with pytest.raises(ScriptError, match="boom"):
            await env.call("/app.lua", "fail")

    @pytest.mark.asyncio
    async def test_unknown_function(self, thread):
        env = make_env(thread, modules={})
        await env.load("/app.lua")

        with pytest.raises(ScriptError, match="not found"):
            await env.call("/app.lua", "nothing_here")

    @pytest.mark.asyncio
    async def test_missing_script(self, thread):
        env = make_env(thread, modules={})

        with pytest.raises(ScriptNotFoundError):
            await env.load("/missing.lua")

    @pytest.mark.asyncio
    async def test_missing_require(self, thread):
        env = make_env(thread, modules={})
        await env.load("/app.lua")

        with pytest.raises(ScriptNotFoundError):
            await env.call("/app.lua", "require_missing")

    @pytest.mark.asyncio
    async def test_syntax_error(self, thread):
        env = make_env(thread, extra={"/broken.lua": "function ("}, modules={})

        with pytest.raises(ScriptError):
            await env.load("/broken.lua")

    @pytest.mark.asyncio
    async def test_failed_require_can_be_retried(self, thread):
        """A module failing at load time reports its own error every time."""
        env = make_env(thread, extra={
            "/failing.lua": 'error("broken at load")',
            "/loader.lua": (
                "function require_twice()\n"
                '  local _, first = pcall(require, "failing.lua")\n'
                '  local _, second = pcall(require, "failing.lua")\n'
                "  return {first, second}\n"
                "end\n"
            ),
        }, modules={})
        await env.load("/loader.lua")

        first, second = await env.call("/loader.lua", "require_twice")

        assert "broken at load" in first
        assert second == first

    @pytest.mark.asyncio
    async def test_load_then_call_resumes_driver(self, thread):
        env = make_env(thread, modules={})
        await env.load("/app.lua")

        assert await env.call("/app.lua", "plus", [2, 3]) == 5
        assert await env.call("/app.lua", "double", [4]) == 8


class TestSandbox:
    """Determinism and removed globals."""

    @pytest.mark.asyncio
    async def test_removed_globals(self, thread):
        env = make_env(thread, modules={})
        await env.load("/app.lua")

        removed = await env.call("/app.lua", "removed")

        assert set(removed.values()) == {"nil"}

    @pytest.mark.asyncio
    async def test_pairs_sorted(self, thread):
        env = make_env(thread, modules={})
        await env.load("/app.lua")

        assert await env.call("/app.lua", "keys", [{"b": 1, "c": 2, "a": 3}]) == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_tostring_address_free(self, thread):
        env = make_env(thread, modules={})
        await env.load("/app.lua")

        assert await env.call("/app.lua", "shown") == "table,function"

    @pytest.mark.asyncio
    async def test_print_goes_to_logger(self, thread, caplog):
        env = make_env(thread, modules={})
        await env.load("/app.lua")

        with caplog.at_level(logging.INFO, logger="tests.script"):
            assert await env.call("/app.lua", "shout", [1, "x"]) == 2

        assert "[script] shout\t1\tx" in caplog.messages


class TestValues:
    @pytest.mark.asyncio
    async def test_empty_table_is_list(self, thread):
        env = make_env(thread, modules={})
        await env.load("/app.lua")

        assert await env.call("/app.lua", "empty") == []

    @pytest.mark.asyncio
    async def test_table_with_keys_is_dict(self, thread):
        env = make_env(thread, modules={})
        await env.load("/app.lua")

        assert await env.call("/app.lua", "record") == {"a": [1, 2], "b": 1}
