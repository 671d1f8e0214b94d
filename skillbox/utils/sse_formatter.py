"""SSE (Server-Sent Events) message formatting utilities."""

import json
import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)


def format_sse_message(event_type: str, data: Any) -> Dict[str, str]:
    """
    Format a message as Server-Sent Events (SSE) format.

    Args:
        event_type: Event type (e.g., 'plugin_event', 'result')
        data: Event data (will be JSON-serialized if not a string)

    Returns:
        Dict with 'event' and 'data' keys for EventSourceResponse
    """
    if isinstance(data, str):
        data = {"content": data}

    logger.debug(f"SSE: {event_type}")
    return {"event": event_type, "data": json.dumps(data, ensure_ascii=False, default=str)}
