"""
Tests for the script test harness

Runs the Lua fixtures in tests/testdata on the simulated engine.
"""

from unittest.mock import ANY

import pytest

from conftest import StringifyPlugin
from starworker.plugins import CadPlugin
from starworker.service import DuplicatePluginError
from starworker.testing import StarTestEnvironment, UnexpectedCallError
from starworker.workflow import INVALID_ARGUMENT, UNIMPLEMENTED, CustomError, DecodeError


class TestScenarios:
    """End-to-end runs through the script workflow."""

    def test_plus_returns_sum(self, env):
        """A plain script function returns its value."""
        env.execute_function("/app.lua", "plus", args=[2, 3])

        assert env.get_result(int) == 5

    def test_builtin_runs_registered_activity(self, env):
        """testplugin.stringify executes the real stringify_activity."""
        env.execute_function("/app.lua", "stringify", args=["foo", 100])

        assert env.get_result(str) == '("foo", 100)'
        assert [call.name for call in env.activity_calls] == ["stringify_activity"]

    def test_unsupported_keyword_is_invalid_argument(self, env):
        """An unknown option fails the call before the activity is issued."""
        expectation = env.on_activity("stringify_activity").returns("never").times(0)

        env.execute_function("/app.lua", "bad_option")

        with pytest.raises(CustomError) as exc_info:
            env.get_result()
        assert exc_info.value.reason == INVALID_ARGUMENT
        assert "unsupported key: foo" in str(exc_info.value)
        assert expectation.calls == 0
        assert env.activity_calls == []
        env.assert_expectations()

    def test_duplicate_plugin_ids_rejected(self, testdata):
        """Two plugins with one ID never reach script execution."""
        with pytest.raises(DuplicatePluginError):
            StarTestEnvironment(testdata, [CadPlugin(), StringifyPlugin(), CadPlugin()])


class TestMocks:
    """Expectations on activities and child workflows."""

    def test_mocked_activity_result(self, env):
        env.on_activity("stringify_activity", "foo", 100).returns("mocked")

        env.execute_function("/app.lua", "stringify", args=["foo", 100])

        assert env.get_result(str) == "mocked"
        env.assert_expectations()

    def test_matcher_with_any(self, env):
        """unittest.mock.ANY matches any single argument."""
        env.on_activity("step", ANY).returns("done").times(2)

        env.execute_function("/app.lua", "sequence")

        assert env.get_result() == ["done", "done"]
        env.assert_expectations()

    def test_predicate_matcher(self, env):
        env.on_activity("step", matcher=lambda arg: arg == "one").returns(1)
        env.on_activity("step", matcher=lambda arg: arg == "two").returns(2)

        env.execute_function("/app.lua", "sequence")

        assert env.get_result() == [1, 2]

    def test_calls_recorded_in_script_order(self, env):
        env.on_activity("step").returns(None).times(2)

        env.execute_function("/app.lua", "sequence")

        assert [call.args for call in env.activity_calls] == [("one",), ("two",)]

    def test_unmet_expectation_fails_assertion(self, env):
        env.on_activity("step").returns("x").times(3)

        env.execute_function("/app.lua", "sequence")

        with pytest.raises(AssertionError, match="expected 3 call"):
            env.assert_expectations()

    def test_extra_call_fails(self, env):
        """A consumed expectation rejects further calls."""
        env.on_activity("step").returns("x").times(1)

        env.execute_function("/app.lua", "sequence")

        with pytest.raises(UnexpectedCallError):
            env.get_result()
        with pytest.raises(AssertionError, match="unexpected activity call 'step'"):
            env.assert_expectations()

    def test_mocked_error_reaches_pcall(self, env):
        """Activity errors surface in the script and can be caught."""
        env.on_activity("flaky").raises(CustomError("boom-reason"))

        env.execute_function("/app.lua", "guarded", args=["flaky"])

        assert env.get_result() == [False, "boom-reason"]

    def test_unknown_activity_fails_call(self, env):
        env.execute_function("/app.lua", "run_activity", args=["nobody"])

        with pytest.raises(Exception, match="not registered"):
            env.get_result()

    def test_child_workflow_runs_registered_function(self, env):
        env.execute_function("/app.lua", "run_child", args=["child_flow", 2])

        assert env.get_result(int) == 20
        assert [call.name for call in env.workflow_calls] == ["child_flow"]

    def test_mocked_child_workflow(self, env):
        env.on_workflow("child_flow", 2).returns(99)

        env.execute_function("/app.lua", "run_child", args=["child_flow", 2])

        assert env.get_result(int) == 99
        env.assert_expectations()


class TestResults:
    """Result decoding and execution identity."""

    def test_decode_mismatch(self, env):
        env.execute_function("/app.lua", "plus", args=[2, 3])

        with pytest.raises(DecodeError):
            env.get_result(str)

    def test_result_before_execution(self, env):
        with pytest.raises(RuntimeError):
            env.get_result()

    def test_keyword_arguments(self, env):
        env.execute_function("/app.lua", "greet", args=["bob"], kwargs={"punct": "!"})

        assert env.get_result(str) == "hello bob!"

    def test_required_module(self, env):
        env.execute_function("/app.lua", "double", args=[21])

        assert env.get_result(int) == 42

    def test_execution_identity(self, testdata, plugins):
        env = StarTestEnvironment(testdata, plugins, workflow_id="wf-1", run_id="run-1")

        env.execute_function("/app.lua", "identity")

        assert env.get_result() == ["wf-1", "run-1"]

    def test_headers_option_unimplemented(self, env):
        env.execute_function("/app.lua", "with_headers")

        with pytest.raises(CustomError) as exc_info:
            env.get_result()
        assert exc_info.value.reason == UNIMPLEMENTED
        assert env.activity_calls == []

    def test_progress_query(self, env):
        env.execute_function("/app.lua", "report", args=[3])

        assert env.get_result(int) == 3
        assert env.query("progress") == 3

    def test_missing_query_handler(self, env):
        env.execute_function("/app.lua", "plus", args=[1, 1])

        with pytest.raises(KeyError):
            env.query("progress")
