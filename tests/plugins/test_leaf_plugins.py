"""
Tests for the hashlib, json and progress modules and the plugin catalogue.
"""

import hashlib

import pytest

from starworker.plugins import CATALOGUE, builtin_plugins
from starworker.service import PluginError


class TestHashlib:
    def test_hex_digests(self, env):
        env.execute_function("/app.lua", "digest", args=["abc"])

        assert env.get_result() == [
            hashlib.md5(b"abc").hexdigest(),
            hashlib.sha256(b"abc").hexdigest(),
        ]


class TestJson:
    def test_dumps_sorts_keys(self, env):
        env.execute_function("/app.lua", "dump", args=[{"b": 1, "a": [1, 2]}])

        assert env.get_result(str) == '{"a":[1,2],"b":1}'

    def test_loads(self, env):
        env.execute_function("/app.lua", "roundtrip", args=['{"x": [1, 2], "y": "z"}'])

        assert env.get_result() == {"x": [1, 2], "y": "z"}


class TestProgress:
    def test_no_report_no_query(self, env):
        """The query handler appears with the first report."""
        env.execute_function("/app.lua", "report", args=[0])

        assert env.get_result() is None
        with pytest.raises(KeyError):
            env.query("progress")


class TestCatalogue:
    def test_all_plugins_by_default(self):
        assert [plugin.id for plugin in builtin_plugins()] == list(CATALOGUE)

    def test_selection(self):
        assert [plugin.id for plugin in builtin_plugins(["json", "cad"])] == ["json", "cad"]

    def test_unknown_id(self):
        with pytest.raises(PluginError, match="nope"):
            builtin_plugins(["cad", "nope"])
