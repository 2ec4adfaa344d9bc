from ..workflow.errors import StarworkerError


class ScriptError(StarworkerError):
    """A Lua error raised by script code (syntax or runtime)."""


class AttributeNotFoundError(StarworkerError, AttributeError):
    """Module attribute lookup failed."""


class ScriptNotFoundError(StarworkerError):
    """A script path is not part of the loaded sources."""
