"""Chat-plugin integration - runs the detected calls of a chat message and rewrites it."""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from skillbox.plugins.detector import ChatContext, FunctionCall, FunctionCallDetector
from skillbox.plugins.events import EventCallback, PluginEvent, emit_event, error_event
from skillbox.plugins.executor import PluginCallRequest, PluginExecutor

logger = logging.getLogger(__name__)

GENERIC_SUMMARIES = ("Function executed successfully", "No result data")

REPLACEMENTS = {
    "flux": "✅ **Image generated** ({ms}ms)",
    "image-generator": "✅ **Image generated** ({ms}ms)",
    "audio-generator": "🎵 **Audio generated** ({ms}ms)",
    "video-generator": "🎬 **Video generated** ({ms}ms)",
    "n8n": "⚡ **Workflow executed** ({ms}ms)",
    "automation": "⚡ **Workflow executed** ({ms}ms)",
}
DEFAULT_REPLACEMENT = "✅ **{function}** completed ({ms}ms)"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMessage(CamelModel):
    id: str
    content: str
    role: Literal["user", "assistant"] = "user"
    timestamp: str = Field(default_factory=_now)
    user_id: str
    assistant_id: Optional[str] = None
    conversation_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class PluginExecutionSummary(CamelModel):
    plugin_id: str
    plugin_name: str
    function_name: str
    success: bool
    execution_time_ms: int
    error: Optional[str] = None
    result_summary: Optional[str] = None


class PluginChatResponse(CamelModel):
    original_message: ChatMessage
    processed_message: ChatMessage
    function_calls: List[FunctionCall] = Field(default_factory=list)
    plugin_results: List[PluginExecutionSummary] = Field(default_factory=list)
    events: List[PluginEvent] = Field(default_factory=list)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# ============================================================================
# Result summaries
# ============================================================================

def _lookup(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _first_image_url(data: Dict[str, Any]) -> Optional[str]:
    images = data.get("images")
    if isinstance(images, list) and images and isinstance(images[0], dict):
        return images[0].get("url")
    return None


def summarize_result(data: Any) -> str:
    """Describe raw result data in one chat-friendly string."""
    if not data:
        return "No result data"
    if not isinstance(data, dict):
        return "Function executed successfully"

    image_url = data.get("image_url") or _lookup(data, "data", "image_url") or _first_image_url(data)
    if image_url:
        meta = data.get("metadata") or _lookup(data, "data", "metadata")
        if isinstance(meta, dict):
            summary = "**Details:**\n"
            if meta.get("width") and meta.get("height"):
                summary += f"📏 Größe: {meta['width']}×{meta['height']}\n"
            if meta.get("seed"):
                summary += f"🎲 Seed: {meta['seed']}\n"
            if meta.get("model"):
                summary += f"🤖 Model: {meta['model']}\n"
            if meta.get("provider"):
                summary += f"⚡ Provider: {meta['provider']}\n"
        else:
            summary = "Bild wurde erfolgreich generiert."
        return f"{summary}\n![Generated Image]({image_url})"

    if isinstance(data.get("images"), list):
        return f"Generated {len(data['images'])} image(s)"
    if data.get("audio_url"):
        return "Generated audio file"
    if data.get("video_url"):
        return "Generated video file"
    if data.get("workflow_result"):
        return "Workflow completed with result"
    if "success" in data:
        return "Operation completed successfully" if data["success"] else "Operation failed"

    return "Function executed successfully"


def build_replacement(call: FunctionCall, result: PluginExecutionSummary) -> str:
    """Text that replaces a call's span in the processed message."""
    if not result.success:
        return f"❌ **{call.plugin_name}** failed: {result.error}"

    if result.result_summary and result.result_summary not in GENERIC_SUMMARIES:
        return result.result_summary

    template = REPLACEMENTS.get(call.plugin_name, DEFAULT_REPLACEMENT)
    return template.format(ms=result.execution_time_ms, function=call.function_name)


# ============================================================================
# Integration
# ============================================================================

class ChatPluginIntegration:
    """Detects function calls in a chat message, executes them and rewrites the message."""

    def __init__(self, detector: FunctionCallDetector, executor: PluginExecutor):
        self.detector = detector
        self.executor = executor

    @staticmethod
    def _context(message: ChatMessage) -> ChatContext:
        return ChatContext(
            user_id=message.user_id,
            assistant_id=message.assistant_id,
            conversation_id=message.conversation_id,
        )

    async def process_message(
        self, message: ChatMessage, event_callback: Optional[EventCallback] = None
    ) -> PluginChatResponse:
        """Process a chat message for plugin function calls.

        Calls run concurrently and settle independently, so events of
        different calls interleave; each carries ``plugin_id``,
        ``function_name`` and ``call_index`` in its data. Never raises: on an
        unexpected error an ``error`` event goes to the callback and the
        envelope built so far is returned.
        """
        response = PluginChatResponse(
            original_message=message,
            processed_message=message.model_copy(deep=True),
        )

        try:
            calls = await self.detector.detect_function_calls(message.content, self._context(message))
            response.function_calls = calls

            if not calls:
                logger.debug("No function calls detected in message")
                return response

            logger.info(f"Processing {len(calls)} function calls")

            outcomes = await asyncio.gather(
                *(
                    self._execute_call(call, message, self._call_emitter(response, event_callback, call, index))
                    for index, call in enumerate(calls)
                ),
                return_exceptions=True,
            )

            for call, outcome in zip(calls, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error(f"Function call {call.plugin_name}.{call.function_name} failed: {outcome}")
                    outcome = PluginExecutionSummary(
                        plugin_id=call.plugin_id,
                        plugin_name=call.plugin_name,
                        function_name=call.function_name,
                        success=False,
                        execution_time_ms=0,
                        error=str(outcome) or "Unknown error",
                    )
                response.plugin_results.append(outcome)

            response.processed_message = self.build_processed_message(
                message, calls, response.plugin_results
            )
            logger.info(f"Processed message with {len(response.plugin_results)} plugin results")

        except Exception as e:
            logger.error(f"Error processing message for plugins: {e}", exc_info=True)
            await emit_event(
                event_callback,
                error_event("Failed to process plugin functions", str(e) or "Unknown error"),
            )

        return response

    @staticmethod
    def _call_emitter(
        response: PluginChatResponse,
        event_callback: Optional[EventCallback],
        call: FunctionCall,
        index: int,
    ) -> EventCallback:
        """Emitter for one call. Tags every event with the call it belongs to."""
        tags = {"plugin_id": call.plugin_id, "function_name": call.function_name, "call_index": index}

        async def emit(event: PluginEvent) -> None:
            tagged = event.model_copy(update={"data": event.data.model_copy(update=tags)})
            response.events.append(tagged)
            await emit_event(event_callback, tagged)

        return emit

    async def _execute_call(
        self, call: FunctionCall, message: ChatMessage, emitter: EventCallback
    ) -> PluginExecutionSummary:
        start_time = time.monotonic()
        result = await self.executor.execute_plugin(PluginCallRequest(
            plugin_id=call.plugin_id,
            function_name=call.function_name,
            parameters=call.parameters,
            user_id=message.user_id,
            assistant_id=message.assistant_id,
            conversation_id=message.conversation_id,
            event_emitter=emitter,
        ))

        return PluginExecutionSummary(
            plugin_id=call.plugin_id,
            plugin_name=call.plugin_name,
            function_name=call.function_name,
            success=result.success,
            execution_time_ms=int((time.monotonic() - start_time) * 1000),
            error=result.error,
            result_summary=summarize_result(result.data) if result.success else None,
        )

    @staticmethod
    def build_processed_message(
        message: ChatMessage,
        calls: List[FunctionCall],
        results: List[PluginExecutionSummary],
    ) -> ChatMessage:
        """Splice each call's span with its replacement, last span first."""
        content = message.content
        paired = sorted(zip(calls, results), key=lambda pair: pair[0].start_index, reverse=True)

        for call, result in paired:
            replacement = build_replacement(call, result)
            content = content[:call.start_index] + replacement + content[call.end_index:]

        metadata = {
            **(message.metadata or {}),
            "hasPluginResults": True,
            "pluginExecutions": len(results),
            "successfulExecutions": sum(1 for r in results if r.success),
        }
        return message.model_copy(update={"content": content, "metadata": metadata}, deep=True)

    async def has_plugin_functions(self, message: ChatMessage) -> bool:
        """Check if a message contains plugin function calls."""
        calls = await self.detector.detect_function_calls(message.content, self._context(message))
        return len(calls) > 0

    async def preview_function_calls(self, message: ChatMessage) -> List[FunctionCall]:
        """Detect function calls without executing them."""
        return await self.detector.detect_function_calls(message.content, self._context(message))
