"""Script runtime: run the manifest's embedded code in the sandbox."""

from typing import Any, Dict

from skillbox.plugins.errors import PluginRuntimeError
from skillbox.plugins.events import status_event
from skillbox.plugins.manifest import PluginFunction, PluginManifest
from skillbox.plugins.runtimes.base import ExecutionContext
from skillbox.plugins.sandbox import run_script


async def execute_script(
    manifest: PluginManifest,
    function: PluginFunction,
    parameters: Dict[str, Any],
    context: ExecutionContext,
) -> Any:
    if not manifest.code:
        raise PluginRuntimeError("No code defined for script plugin")

    await context.emit(status_event("in_progress", "Executing script plugin..."))

    return await run_script(
        manifest.code,
        function.name,
        parameters,
        context.config,
        context.http,
        plugin_name=context.plugin_name,
    )
