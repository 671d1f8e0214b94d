"""Plugin pipeline for Skillbox: registry, detection, execution and chat integration.

Imports are lazy so light components (manifest, config, discovery) can be used
without pulling in the HTTP and sandbox stack.
"""

__all__ = [
    "PluginManifest",
    "PluginRegistry",
    "PluginRecord",
    "PluginConfigService",
    "PluginDiscovery",
    "FunctionCallDetector",
    "PluginExecutor",
    "ChatPluginIntegration",
]


def __getattr__(name):
    if name == "PluginManifest":
        from skillbox.plugins.manifest import PluginManifest
        return PluginManifest
    if name in ("PluginRegistry", "PluginRecord"):
        from skillbox.plugins import registry
        return getattr(registry, name)
    if name == "PluginConfigService":
        from skillbox.plugins.config import PluginConfigService
        return PluginConfigService
    if name == "PluginDiscovery":
        from skillbox.plugins.discovery import PluginDiscovery
        return PluginDiscovery
    if name == "FunctionCallDetector":
        from skillbox.plugins.detector import FunctionCallDetector
        return FunctionCallDetector
    if name == "PluginExecutor":
        from skillbox.plugins.executor import PluginExecutor
        return PluginExecutor
    if name == "ChatPluginIntegration":
        from skillbox.plugins.integration import ChatPluginIntegration
        return ChatPluginIntegration
    raise AttributeError(f"module 'skillbox.plugins' has no attribute {name!r}")
