"""Plugin executor - validates a function call and dispatches it to its runtime."""

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from skillbox.plugins.detector import ChatContext
from skillbox.plugins.errors import (
    FunctionNotFoundError,
    ParameterValidationError,
    PluginNotFoundError,
    UnsupportedRuntimeError,
)
from skillbox.plugins.events import (
    EventCallback,
    PluginEvent,
    emit_event,
    error_event,
    status_event,
)
from skillbox.plugins.http import PluginHttpClient
from skillbox.plugins.registry import PluginRegistry
from skillbox.plugins.runtimes import RUNTIMES, ExecutionContext, RuntimeStrategy
from skillbox.plugins.validation import validate_parameters

logger = logging.getLogger(__name__)


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class PluginCallRequest:
    """A single function call to execute."""

    plugin_id: str
    function_name: str
    user_id: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    assistant_id: Optional[str] = None
    conversation_id: Optional[str] = None
    event_emitter: Optional[EventCallback] = None


class PluginExecutionResult(BaseModel):
    """Outcome of one execution. Failures are values, never exceptions."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    events: List[PluginEvent] = Field(default_factory=list)
    cost_cents: Optional[int] = None
    execution_time_ms: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ExecutionRecorder:
    """Records execution lifecycle transitions. Only logs; nothing is persisted."""

    def start(self, request: PluginCallRequest) -> str:
        execution_id = str(uuid.uuid4())
        logger.info(
            f"[{execution_id}] {ExecutionStatus.PENDING.value}: "
            f"{request.plugin_id}:{request.function_name} (user={request.user_id})"
        )
        return execution_id

    def running(self, execution_id: str) -> None:
        logger.debug(f"[{execution_id}] {ExecutionStatus.RUNNING.value}")

    def completed(self, execution_id: str, execution_time_ms: int) -> None:
        logger.info(f"[{execution_id}] {ExecutionStatus.COMPLETED.value} in {execution_time_ms}ms")

    def failed(self, execution_id: str, error: str, execution_time_ms: int) -> None:
        logger.error(f"[{execution_id}] {ExecutionStatus.FAILED.value} after {execution_time_ms}ms: {error}")


class PluginExecutor:
    """Executes plugin function calls.

    Every call emits lifecycle events in order: ``pending``, ``in_progress``,
    any runtime-specific events, then ``completed`` or an ``error`` event.
    """

    def __init__(
        self,
        registry: PluginRegistry,
        http_client: Optional[PluginHttpClient] = None,
        recorder: Optional[ExecutionRecorder] = None,
        runtimes: Optional[Dict[Any, RuntimeStrategy]] = None,
    ):
        self.registry = registry
        self.http = http_client or PluginHttpClient()
        self.recorder = recorder or ExecutionRecorder()
        self.runtimes = runtimes if runtimes is not None else dict(RUNTIMES)

    async def execute_plugin(self, request: PluginCallRequest) -> PluginExecutionResult:
        """Execute one function call; all failures resolve to an unsuccessful result."""
        start_time = time.monotonic()
        execution_id = self.recorder.start(request)
        events: List[PluginEvent] = []

        async def emit(event: PluginEvent) -> None:
            events.append(event)
            await emit_event(request.event_emitter, event)

        metadata = {
            "plugin_id": request.plugin_id,
            "function_name": request.function_name,
            "execution_id": execution_id,
        }

        try:
            await emit(status_event("pending", "Initializing plugin execution..."))

            plugin = await self.registry.find_by_id(request.plugin_id)
            if not plugin or not plugin.is_active:
                raise PluginNotFoundError(f"Plugin not found or inactive: {request.plugin_id}")

            function = plugin.manifest.get_function(request.function_name)
            if function is None:
                raise FunctionNotFoundError(
                    f"Function '{request.function_name}' not found in plugin '{plugin.name}'"
                )

            errors = validate_parameters(function, request.parameters)
            if errors:
                raise ParameterValidationError(errors)

            config = {
                **plugin.manifest.config_defaults(),
                **await self.registry.resolve_config(plugin.id, request.user_id),
            }
            context = ExecutionContext(
                user_id=request.user_id,
                http=self.http,
                config=config,
                plugin_name=plugin.name,
                assistant_id=request.assistant_id,
                conversation_id=request.conversation_id,
                event_emitter=emit,
            )

            await emit(status_event("in_progress", f"Executing {function.name}..."))
            self.recorder.running(execution_id)

            strategy = self.runtimes.get(plugin.runtime_type)
            if strategy is None:
                raise UnsupportedRuntimeError(f"Unsupported runtime type: {plugin.runtime_type.value}")

            data = await strategy(plugin.manifest, function, request.parameters, context)

            execution_time_ms = int((time.monotonic() - start_time) * 1000)
            self.recorder.completed(execution_id, execution_time_ms)
            await emit(status_event("completed", "Plugin execution completed successfully", done=True))

            logger.info(
                f"Plugin execution completed: {request.plugin_id}:{request.function_name} "
                f"in {execution_time_ms}ms"
            )
            return PluginExecutionResult(
                success=True,
                data=data,
                events=events,
                execution_time_ms=execution_time_ms,
                metadata=metadata,
            )

        except Exception as e:
            execution_time_ms = int((time.monotonic() - start_time) * 1000)
            message = str(e) or type(e).__name__
            self.recorder.failed(execution_id, message, execution_time_ms)
            await emit(error_event(f"Plugin execution failed: {message}", message))

            logger.error(
                f"Plugin execution failed: {request.plugin_id}:{request.function_name}: {message}",
                exc_info=not isinstance(e, (PluginNotFoundError, FunctionNotFoundError, ParameterValidationError)),
            )
            return PluginExecutionResult(
                success=False,
                error=message,
                events=events,
                execution_time_ms=execution_time_ms,
                metadata=metadata,
            )

    async def execute_function(
        self,
        plugin_id: str,
        function_name: str,
        parameters: Dict[str, Any],
        context: ChatContext,
        event_emitter: Optional[EventCallback] = None,
    ) -> PluginExecutionResult:
        """Execute a function directly, outside of message processing."""
        return await self.execute_plugin(PluginCallRequest(
            plugin_id=plugin_id,
            function_name=function_name,
            parameters=parameters,
            user_id=context.user_id,
            assistant_id=context.assistant_id,
            conversation_id=context.conversation_id,
            event_emitter=event_emitter,
        ))
