"""
starworker: durable workflows written as sandboxed Lua scripts.

- workflow: engine-agnostic workflow primitives
- star: the embedded Lua runtime
- service / plugins: the script workflow and the modules scripts see
- temporal: Temporal backend (optional extra)
- testing: in-process harness for script tests
"""

__version__ = "0.1.0"
