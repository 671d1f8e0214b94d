"""Exceptions raised inside the plugin pipeline.

Public entry points (detection, execution, message processing) convert these
into result values; they only surface directly from registry write paths.
"""


class PluginError(Exception):
    """Base class for plugin pipeline errors."""


class ManifestValidationError(PluginError, ValueError):
    """Plugin definition or manifest is malformed."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Invalid plugin manifest: {', '.join(errors)}")


class DuplicatePluginError(PluginError, ValueError):
    """A plugin with the same name is already registered."""


class PluginNotFoundError(PluginError):
    """Plugin is unknown or inactive."""


class FunctionNotFoundError(PluginError):
    """Manifest does not define the requested function."""


class ParameterValidationError(PluginError, ValueError):
    """Call parameters do not satisfy the function schema."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Parameter validation failed: {', '.join(errors)}")


class UnsupportedRuntimeError(PluginError):
    """Plugin declares a runtime the executor cannot dispatch."""


class PluginRuntimeError(PluginError):
    """Runtime strategy failed (HTTP error, empty response, script error)."""


class SandboxViolationError(PluginRuntimeError):
    """Script source uses a construct the sandbox does not allow."""
