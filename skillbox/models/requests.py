"""Request models for API endpoints."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelRequest(BaseModel):
    """Accepts camelCase (as sent by the web client) and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IncomingMessage(CamelRequest):
    """Chat message as posted by the client; the user comes from the auth header."""

    id: Optional[str] = None
    content: str = Field(..., min_length=1, description="Message text")
    role: Literal["user", "assistant"] = "user"
    timestamp: Optional[str] = None
    assistant_id: Optional[str] = None
    conversation_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("content")
    @classmethod
    def content_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("content cannot be empty")
        return v


class ProcessMessageRequest(CamelRequest):
    """Body of POST /api/plugin-execution/process-message."""

    message: IncomingMessage
    enable_execution: bool = True


class ExecuteFunctionRequest(CamelRequest):
    """Body of POST /api/plugin-execution/execute."""

    plugin_id: str = Field(..., min_length=1)
    function_name: str = Field(..., min_length=1)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    assistant_id: Optional[str] = None
    conversation_id: Optional[str] = None


class DetectFunctionsRequest(CamelRequest):
    """Body of POST /api/plugin-execution/detect-functions."""

    message: str = Field(..., min_length=1)
    assistant_id: Optional[str] = None
    conversation_id: Optional[str] = None


class PluginConfigUpdate(CamelRequest):
    """Body of PUT /api/plugins/{plugin_id}/config.

    Without ``user_id`` the global configuration is replaced.
    """

    config: Dict[str, Any]
    user_id: Optional[str] = None


class AssistantPluginEntry(CamelRequest):
    plugin_id: str
    is_enabled: bool = True
    sort_order: int = 0
    config_override: Optional[Dict[str, Any]] = None


class AssistantPluginsUpdate(CamelRequest):
    """Body of PUT /api/plugins/assistants/{assistant_id}; replaces all assignments."""

    plugins: List[AssistantPluginEntry] = Field(default_factory=list)
