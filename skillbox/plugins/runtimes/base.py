"""Shared types for runtime strategies."""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from skillbox.plugins.events import EventCallback, PluginEvent, emit_event
from skillbox.plugins.http import PluginHttpClient
from skillbox.plugins.manifest import PluginFunction, PluginManifest


@dataclass
class ExecutionContext:
    """Everything a runtime strategy may use besides the manifest and parameters."""

    user_id: str
    http: PluginHttpClient
    config: Dict[str, Any] = field(default_factory=dict)
    plugin_name: str = "plugin"
    assistant_id: Optional[str] = None
    conversation_id: Optional[str] = None
    event_emitter: Optional[EventCallback] = None

    @property
    def timeout(self) -> float:
        """Request timeout in seconds: config ``timeout`` or the client default."""
        return float(self.config.get("timeout") or self.http.default_timeout)

    async def emit(self, event: PluginEvent) -> None:
        await emit_event(self.event_emitter, event)


RuntimeStrategy = Callable[
    [PluginManifest, PluginFunction, Dict[str, Any], ExecutionContext],
    Awaitable[Any],
]


def overlay_config(function: PluginFunction, payload: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    """Fill declared parameters the call left unset from the resolved config."""
    for key, value in config.items():
        if key in function.parameters and payload.get(key) is None:
            payload[key] = value
    return payload
