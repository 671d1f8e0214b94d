"""Plugin execution REST API endpoints."""

import asyncio
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from skillbox.constants import TEST_MESSAGE
from skillbox.dependencies import ServiceContainer, get_services, get_user_id
from skillbox.models.requests import (
    DetectFunctionsRequest,
    ExecuteFunctionRequest,
    IncomingMessage,
    ProcessMessageRequest,
)
from skillbox.plugins.detector import ChatContext
from skillbox.plugins.events import PluginEvent
from skillbox.plugins.integration import ChatMessage
from skillbox.routers.common import parse_body, server_error_response, unauthorized_response
from skillbox.utils import format_sse_message

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plugin-execution", tags=["plugin-execution"])


def to_chat_message(incoming: IncomingMessage, user_id: str) -> ChatMessage:
    return ChatMessage(
        id=incoming.id or f"msg_{int(time.time() * 1000)}",
        content=incoming.content,
        role=incoming.role,
        timestamp=incoming.timestamp or datetime.now(timezone.utc).isoformat(),
        user_id=user_id,
        assistant_id=incoming.assistant_id,
        conversation_id=incoming.conversation_id,
        metadata=incoming.metadata,
    )


@router.post("/process-message")
async def process_message(request: Request, services: ServiceContainer = Depends(get_services)):
    """
    Process a chat message for plugin function calls.

    Request Body (ProcessMessageRequest):
        - message: {content, id?, role?, timestamp?, assistantId?, conversationId?, metadata?}
        - enableExecution: bool (default true); false only previews the detected calls

    Returns:
        {success, data: {originalMessage, processedMessage, functionCalls, pluginResults, events}}
    """
    user_id = get_user_id(request)
    if not user_id:
        return unauthorized_response()

    body = await parse_body(request, ProcessMessageRequest)
    if isinstance(body, JSONResponse):
        return body

    message = to_chat_message(body.message, user_id)

    try:
        if body.enable_execution:
            result = await services.integration.process_message(message)
            return {"success": True, "data": result.to_dict()}

        calls = await services.integration.preview_function_calls(message)
        return {
            "success": True,
            "data": {
                "originalMessage": message.model_dump(by_alias=True, exclude_none=True),
                "functionCalls": [call.model_dump(by_alias=True) for call in calls],
                "preview": True,
            },
        }
    except Exception as e:
        logger.error(f"Error processing message: {e}", exc_info=True)
        return server_error_response("Failed to process message", e)


@router.post("/process-message/stream")
async def process_message_stream(request: Request, services: ServiceContainer = Depends(get_services)):
    """
    Process a chat message and stream plugin events.

    Response Stream:
        ```
        event: plugin_event
        data: {"type": "status", "data": {"status": "pending", ...}}

        event: result
        data: {"originalMessage": ..., "processedMessage": ..., ...}
        ```
    """
    user_id = get_user_id(request)
    if not user_id:
        return unauthorized_response()

    body = await parse_body(request, ProcessMessageRequest)
    if isinstance(body, JSONResponse):
        return body

    message = to_chat_message(body.message, user_id)
    queue: asyncio.Queue = asyncio.Queue()

    async def on_event(event: PluginEvent) -> None:
        await queue.put(format_sse_message("plugin_event", event.to_dict()))

    async def run() -> None:
        try:
            result = await services.integration.process_message(message, on_event)
            await queue.put(format_sse_message("result", result.to_dict()))
        except Exception as e:
            logger.error(f"Error streaming plugin execution: {e}", exc_info=True)
            await queue.put(format_sse_message("error", {"error": str(e)}))
        finally:
            await queue.put(None)

    async def stream():
        task = asyncio.create_task(run())
        try:
            while True:
                item = await queue.get()
                if item is None:
                    break
                yield item
        finally:
            if not task.done():
                task.cancel()

    return EventSourceResponse(stream(), media_type="text/event-stream")


@router.post("/execute")
async def execute_function(request: Request, services: ServiceContainer = Depends(get_services)):
    """Execute a specific plugin function directly."""
    user_id = get_user_id(request)
    if not user_id:
        return unauthorized_response()

    body = await parse_body(request, ExecuteFunctionRequest)
    if isinstance(body, JSONResponse):
        return body

    try:
        result = await services.executor.execute_function(
            body.plugin_id,
            body.function_name,
            body.parameters,
            ChatContext(
                user_id=user_id,
                assistant_id=body.assistant_id,
                conversation_id=body.conversation_id,
            ),
        )
        return {"success": True, "data": result.model_dump(mode="json", exclude_none=True)}
    except Exception as e:
        logger.error(f"Error executing plugin: {e}", exc_info=True)
        return server_error_response("Failed to execute plugin", e)


@router.post("/detect-functions")
async def detect_functions(request: Request, services: ServiceContainer = Depends(get_services)):
    """Detect function calls in a message without executing them."""
    user_id = get_user_id(request)
    if not user_id:
        return unauthorized_response()

    body = await parse_body(request, DetectFunctionsRequest)
    if isinstance(body, JSONResponse):
        return body

    context = ChatContext(
        user_id=user_id,
        assistant_id=body.assistant_id,
        conversation_id=body.conversation_id,
    )
    calls = await services.detector.detect_function_calls(body.message, context)
    return {
        "success": True,
        "data": {
            "message": body.message,
            "functionCalls": [call.model_dump(by_alias=True) for call in calls],
            "count": len(calls),
            "user": {"id": user_id},
        },
    }


@router.get("/test")
async def test_plugin_execution(request: Request, services: ServiceContainer = Depends(get_services)):
    """Run detection on a sample message to verify the pipeline. Authentication is optional."""
    user_id = get_user_id(request)
    context = ChatContext(user_id=user_id or "anonymous")

    calls = await services.detector.detect_function_calls(TEST_MESSAGE, context)
    return {
        "success": True,
        "data": {
            "testMessage": TEST_MESSAGE,
            "detectedCalls": [call.model_dump(by_alias=True) for call in calls],
            "callCount": len(calls),
            "pluginExecutionSystemStatus": "operational",
            "authenticated": user_id is not None,
            "user": {"id": user_id} if user_id else None,
        },
    }


@router.get("/logs")
async def get_execution_logs(request: Request):
    """Plugin execution logs. Executions are only logged, so the list is always empty."""
    if not get_user_id(request):
        return unauthorized_response()

    return {
        "success": True,
        "data": {
            "logs": [],
            "total": 0,
            "message": "Plugin execution logs will be available in a future version",
        },
    }
