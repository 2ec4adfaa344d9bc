"""
Shared fixtures: the Lua fixture root and a small plugin used by the tests.

testplugin exposes ``testplugin.stringify(...)``, which runs the registered
``stringify_activity`` and returns its result.
"""

import json
import logging
from pathlib import Path
from typing import Any

import pytest

from starworker.plugins import CadPlugin, HashlibPlugin, JsonPlugin, ProgressPlugin
from starworker.service import Plugin, RunInfo
from starworker.star import Builtin, Pending, ScriptModule, ScriptThread
from starworker.testing import StarTestEnvironment
from starworker.workflow import Context, RegisterOptions

TESTDATA = Path(__file__).parent / "testdata"


def stringify_activity(*args: Any) -> str:
    return "(" + ", ".join(json.dumps(arg) for arg in args) + ")"


async def child_flow(ctx: Context, x: int) -> int:
    return x * 10


def _stringify(thread: ScriptThread, *args: Any) -> Pending:
    future = thread.workflow.execute_activity(thread.ctx, "stringify_activity", *args)
    return Pending(future.get(thread.ctx))


class StringifyModule(ScriptModule):
    name = "testplugin"
    builtins = {"stringify": Builtin("stringify", _stringify)}


class StringifyPlugin(Plugin):
    id = "testplugin"

    def create(self, run_info: RunInfo) -> ScriptModule:
        return StringifyModule()

    def register(self, registry) -> None:
        registry.register_activity_with_options(stringify_activity, RegisterOptions(name="stringify_activity"))
        registry.register_workflow_with_options(child_flow, RegisterOptions(name="child_flow"))


@pytest.fixture
def testdata() -> Path:
    return TESTDATA


@pytest.fixture
def plugins():
    return [CadPlugin(), HashlibPlugin(), JsonPlugin(), ProgressPlugin(), StringifyPlugin()]


@pytest.fixture
def env(plugins) -> StarTestEnvironment:
    """Harness over tests/testdata with every bundled plugin plus testplugin."""
    return StarTestEnvironment(TESTDATA, plugins)


@pytest.fixture
def script_logger() -> logging.Logger:
    return logging.getLogger("tests.script")
