"""
Tests for the simulated workflow primitives used by the harness.
"""

import asyncio
from datetime import timedelta

import pytest

from starworker.testing import SimulatedContext, SimulatedEngine, SimulatedWorker, SimulatedWorkflow
from starworker.testing.simulated import EPOCH
from starworker.workflow import CanceledError, Context, CustomError, RegisterOptions, WorkflowExecution


def slow_activity(value):
    return value


@pytest.fixture
def w():
    worker = SimulatedWorker()
    w = SimulatedWorkflow(SimulatedEngine(worker))

    async def echo_child(ctx: Context, value):
        received = []
        w.set_signal_handler(ctx, "poke", received.append)
        await w.sleep(ctx, 1)
        return {"value": value, "signals": received}

    worker.register_activity_with_options(slow_activity, RegisterOptions(name="slow"))
    worker.register_workflow_with_options(echo_child, RegisterOptions(name="echo_child"))
    return w


@pytest.fixture
def ctx():
    return SimulatedContext()


class TestTime:
    @pytest.mark.asyncio
    async def test_sleep_advances_virtual_clock(self, w, ctx):
        assert w.now(ctx) == EPOCH

        await w.sleep(ctx, timedelta(minutes=5))
        await w.sleep(ctx, 30)

        assert w.now(ctx) == EPOCH + timedelta(minutes=5, seconds=30)

    @pytest.mark.asyncio
    async def test_sleep_on_cancelled_context(self, w, ctx):
        ctx.scope.cancel()

        with pytest.raises(CanceledError):
            await w.sleep(ctx, 1)

    @pytest.mark.asyncio
    async def test_negative_sleep(self, w, ctx):
        with pytest.raises(ValueError):
            await w.sleep(ctx, -1)


class TestPaths:
    @pytest.mark.asyncio
    async def test_go_joins_result(self, w, ctx):
        async def path(inner):
            return await w.execute_activity(inner, "slow", 5).get(inner)

        assert await w.go(ctx, path).get(ctx) == 5

    @pytest.mark.asyncio
    async def test_go_error_delivered_to_joiner(self, w, ctx):
        async def path(inner):
            raise CustomError("path-failed")

        with pytest.raises(CustomError, match="path-failed"):
            await w.go(ctx, path).get(ctx)

    @pytest.mark.asyncio
    async def test_cancel_reaches_spawned_path(self, w, ctx):
        started = asyncio.Event()

        async def path(inner):
            started.set()
            future, _ = w.new_future(inner)
            return await future.get(inner)

        cancellable, cancel = w.with_cancel(ctx)
        joined = w.go(cancellable, path)
        await started.wait()
        cancel()

        with pytest.raises(CanceledError):
            await joined.get(ctx)

    @pytest.mark.asyncio
    async def test_finished_calls_release_the_scope(self, w, ctx):
        async def path(inner):
            return await w.execute_activity(inner, "slow", "p").get(inner)

        for value in range(3):
            await w.execute_activity(ctx, "slow", value).get(ctx)
        await w.go(ctx, path).get(ctx)
        await w.execute_child_workflow(ctx, "echo_child", "v").get(ctx)
        await asyncio.sleep(0)

        assert ctx.scope._callbacks == []

    @pytest.mark.asyncio
    async def test_activity_by_registered_function(self, w, ctx):
        assert await w.execute_activity(ctx, slow_activity, "x").get(ctx) == "x"
        assert w.engine.activity_calls[0].name == "slow"


class TestChildWorkflows:
    @pytest.mark.asyncio
    async def test_execution_and_signals(self, w, ctx):
        child_ctx = w.with_child_options(ctx, ctx.child_options.model_copy(update={"workflow_id": "child-1"}))

        future = w.execute_child_workflow(child_ctx, "echo_child", "v")
        execution = await future.get_child_workflow_execution().get(ctx)
        await future.signal_child_workflow(ctx, "poke", "hello").get(ctx)

        assert isinstance(execution, WorkflowExecution)
        assert execution.id == "child-1"
        assert await future.get(ctx) == {"value": "v", "signals": ["hello"]}


class TestMisc:
    @pytest.mark.asyncio
    async def test_side_effect_value_encoded(self, w, ctx):
        assert await w.side_effect(ctx, lambda: (1, 2)) == [1, 2]

    def test_custom_error(self, w):
        err = w.new_custom_error("reason", 1, "two")

        assert isinstance(err, CustomError)
        assert err.reason == "reason"
        assert err.details == (1, "two")

    def test_plain_context_rejected(self, w):
        with pytest.raises(TypeError):
            w.get_info(Context())

    def test_info(self, w, ctx):
        assert w.get_info(ctx).execution_id == "default-test-workflow-id"
