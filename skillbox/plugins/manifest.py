"""Plugin manifest models - describe a plugin's functions, parameters and runtime."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from skillbox.plugins.errors import ManifestValidationError


class PluginType(str, Enum):
    """Plugin categories used for natural-language routing and display."""

    IMAGE_GENERATION = "image_generation"
    AUDIO_GENERATION = "audio_generation"
    VIDEO_GENERATION = "video_generation"
    AUTOMATION = "automation"
    API_TOOL = "api_tool"
    CUSTOM = "custom"


class RuntimeType(str, Enum):
    """Execution strategies a plugin can declare."""

    API_CALL = "api_call"
    PYTHON = "python"  # sandboxed script
    WEBHOOK = "webhook"
    NODEJS = "nodejs"  # legacy definitions only, not executable


class ParameterSpec(BaseModel):
    """Schema of a single function parameter."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(default="string", description="string | number | boolean | enum | array | object")
    required: bool = False
    default: Any = None
    description: Optional[str] = None
    values: Optional[List[Any]] = Field(default=None, description="Allowed values for enum parameters")
    items: Optional[Dict[str, Any]] = None
    properties: Optional[Dict[str, Any]] = None
    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def has_default(self) -> bool:
        """True when the manifest declares a default (including an explicit null)."""
        return "default" in self.model_fields_set


class PluginFunction(BaseModel):
    """A callable function exposed by a plugin."""

    model_config = ConfigDict(extra="allow")

    name: str
    description: str
    parameters: Dict[str, ParameterSpec]

    def default_parameters(self) -> Dict[str, Any]:
        """Return the declared defaults of all parameters that have one."""
        return {
            key: spec.default
            for key, spec in self.parameters.items()
            if spec.has_default
        }


class PluginEndpoints(BaseModel):
    """Remote endpoints used by the api_call and webhook runtimes."""

    model_config = ConfigDict(extra="allow")

    execute: Optional[str] = None
    webhook: Optional[str] = None
    health: Optional[str] = None


class ConfigField(BaseModel):
    """Declarative configuration field (API keys, timeouts, model names)."""

    model_config = ConfigDict(extra="allow")

    type: str = "string"
    required: bool = False
    default: Any = None
    secret: bool = False
    description: Optional[str] = None
    values: Optional[List[Any]] = None
    min: Optional[float] = None
    max: Optional[float] = None


class PluginManifest(BaseModel):
    """Declarative plugin manifest stored with every plugin."""

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    display_name: Optional[str] = None
    version: str = "1.0.0"
    description: Optional[str] = None
    author: Optional[str] = None
    runtime: Optional[RuntimeType] = None
    functions: List[PluginFunction] = Field(default_factory=list)
    config_schema: Optional[Dict[str, ConfigField]] = None
    endpoints: Optional[PluginEndpoints] = None
    code: Optional[str] = Field(default=None, description="Script source for the python runtime")
    requirements: Optional[List[str]] = None
    permissions: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None

    def get_function(self, name: str) -> Optional[PluginFunction]:
        """Find a function by exact name."""
        return next((f for f in self.functions if f.name == name), None)

    def config_defaults(self) -> Dict[str, Any]:
        """Defaults declared by the config schema, keyed by field name."""
        return {
            key: field.default
            for key, field in (self.config_schema or {}).items()
            if "default" in field.model_fields_set
        }

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the on-disk manifest shape."""
        return self.model_dump(mode="json", exclude_unset=True)


def validate_plugin_manifest(manifest: PluginManifest) -> List[str]:
    """Check the semantic rules a manifest must satisfy before registration.

    Returns:
        List of human-readable errors, empty when the manifest is valid
    """
    errors: List[str] = []

    if not manifest.name:
        errors.append("Plugin name is required")
    if not manifest.display_name:
        errors.append("Plugin display name is required")
    if not manifest.version:
        errors.append("Plugin version is required")
    if not manifest.runtime:
        errors.append("Plugin runtime is required")
    if not manifest.functions:
        errors.append("Plugin must have at least one function")

    for index, func in enumerate(manifest.functions):
        if not func.name:
            errors.append(f"Function {index}: name is required")
        if not func.description:
            errors.append(f"Function {index}: description is required")

    return errors


def parse_manifest(data: Dict[str, Any]) -> PluginManifest:
    """Parse raw manifest data, translating pydantic errors.

    Raises:
        ManifestValidationError: If the data does not match the manifest schema
    """
    try:
        return PluginManifest(**data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            location = ".".join(str(loc) for loc in error["loc"])
            errors.append(f"{location}: {error['msg']}")
        raise ManifestValidationError(errors) from e
