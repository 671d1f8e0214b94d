"""Plugin lifecycle events emitted while a function call executes."""

import logging
from typing import Any, Awaitable, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

EventType = Literal["status", "message", "progress", "error"]
EventStatus = Literal["pending", "in_progress", "completed", "error"]


class PluginEventData(BaseModel):
    """Event payload. Extra keys are kept as-is."""

    model_config = ConfigDict(extra="allow")

    status: Optional[EventStatus] = None
    description: Optional[str] = None
    done: Optional[bool] = None
    progress: Optional[float] = None  # 0-100
    content: Optional[str] = None
    error: Optional[str] = None


class PluginEvent(BaseModel):
    """Lifecycle notification: purely observational, never changes plugin state."""

    type: EventType
    data: PluginEventData

    def to_dict(self) -> dict:
        return self.model_dump(exclude_none=True)


EventCallback = Callable[[PluginEvent], Awaitable[None]]


def status_event(status: EventStatus, description: str, done: bool = False, **extra: Any) -> PluginEvent:
    return PluginEvent(
        type="status",
        data=PluginEventData(status=status, description=description, done=done, **extra),
    )


def message_event(content: str, done: bool = False, **extra: Any) -> PluginEvent:
    return PluginEvent(type="message", data=PluginEventData(content=content, done=done, **extra))


def error_event(description: str, error: str, **extra: Any) -> PluginEvent:
    return PluginEvent(
        type="error",
        data=PluginEventData(status="error", description=description, error=error, done=True, **extra),
    )


async def emit_event(callback: Optional[EventCallback], event: PluginEvent) -> None:
    """Deliver an event to the sink, if any. Sink failures are logged, never raised."""
    if callback is None:
        return
    try:
        await callback(event)
    except Exception as e:
        logger.error(f"Failed to emit plugin event: {e}")
