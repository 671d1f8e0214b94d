"""Function call detection - finds plugin invocations in free chat text.

Two sources of calls are recognised:

1. Explicit syntax: ``use flux.image_gen(prompt="a cat", width=512)``. The verb
   is one of use/call/execute/run, the reference is ``plugin`` or
   ``plugin.function`` (function defaults to ``generate``), and the argument
   string is either a JSON object or comma separated ``key=value`` pairs.
2. Natural language: a pluggable, ordered list of detection strategies. The
   shipped strategies recognise image generation requests (German and English)
   and flag automation requests.

Detected calls are de-duplicated by text span, so every character of the
message belongs to at most one call.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from skillbox.plugins.manifest import ParameterSpec, PluginFunction, PluginType
from skillbox.plugins.registry import PluginRecord, PluginRegistry

logger = logging.getLogger(__name__)

EXPLICIT_CALL_PATTERN = re.compile(
    r"(?:use|call|execute|run)\s+"
    r"([a-zA-Z_][a-zA-Z0-9_]*(?:\.[a-zA-Z_][a-zA-Z0-9_]*)?)"
    r"\s*\(([^)]*)\)",
    re.IGNORECASE,
)

DEFAULT_FUNCTION_NAME = "generate"

# Longest numeric prefix, the way JavaScript's parseFloat reads numbers
_FLOAT_PREFIX = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class FunctionCall(BaseModel):
    """A detected, not yet executed plugin function call."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    plugin_id: str
    plugin_name: str
    function_name: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    original_text: str
    start_index: int
    end_index: int

    def overlaps(self, other: "FunctionCall") -> bool:
        return self.start_index < other.end_index and other.start_index < self.end_index


@dataclass
class ChatContext:
    """Who is chatting with whom; decides which plugins are available."""

    user_id: str
    assistant_id: Optional[str] = None
    conversation_id: Optional[str] = None
    available_plugin_ids: List[str] = field(default_factory=list)


# ============================================================================
# Parameter parsing
# ============================================================================

def parse_float(value: str) -> Optional[float]:
    """Parse the leading number of a string; None when there is none."""
    match = _FLOAT_PREFIX.match(value)
    if not match:
        return None
    number = float(match.group(0))
    return int(number) if number.is_integer() else number


def convert_parameter_value(value: str, spec: ParameterSpec) -> Any:
    """Coerce a raw ``key=value`` string to the declared parameter type."""
    if spec.type == "number":
        number = parse_float(value)
        return spec.default if number is None else number
    if spec.type == "boolean":
        return value.lower() == "true"
    if spec.type == "array":
        try:
            return json.loads(value)
        except ValueError:
            return [v.strip() for v in value.split(",")]
    if spec.type == "object":
        try:
            return json.loads(value)
        except ValueError:
            return spec.default or {}
    return value


def parse_parameters(params_str: str, function: PluginFunction) -> Dict[str, Any]:
    """Parse an explicit call's argument string over the function's defaults.

    Malformed input never raises; it falls back to the declared defaults.
    """
    defaults = function.default_parameters()
    if not params_str.strip():
        return defaults

    try:
        if params_str.strip().startswith("{"):
            parsed = json.loads(params_str)
            if not isinstance(parsed, dict):
                raise ValueError("argument object is not a mapping")
            return {**defaults, **parsed}

        params = {}
        for pair in (p.strip() for p in params_str.split(",")):
            key, sep, raw_value = pair.partition("=")
            key = key.strip()
            if not key or not sep:
                continue
            clean_value = re.sub(r"^[\"']|[\"']$", "", raw_value.strip())
            spec = function.parameters.get(key)
            if spec is not None:
                params[key] = convert_parameter_value(clean_value, spec)

        return {**defaults, **params}

    except ValueError:
        logger.warning(f"Failed to parse function parameters: {params_str}")
        return defaults


def remove_overlapping_calls(calls: Sequence[FunctionCall]) -> List[FunctionCall]:
    """Keep calls in start order, dropping any call that overlaps an earlier kept one.

    The sort is stable, so between an explicit and a natural-language call that
    start at the same offset the explicit one (collected first) survives.
    """
    unique: List[FunctionCall] = []
    for call in sorted(calls, key=lambda c: c.start_index):
        if not any(call.overlaps(existing) for existing in unique):
            unique.append(call)
    return unique


# ============================================================================
# Natural-language strategies
# ============================================================================

class DetectionStrategy(ABC):
    """A natural-language detector for one plugin category."""

    plugin_type: PluginType

    def candidates(self, plugins: Sequence[PluginRecord]) -> List[PluginRecord]:
        return [p for p in plugins if p.plugin_type == self.plugin_type]

    @abstractmethod
    def detect(self, message: str, plugins: Sequence[PluginRecord]) -> List[FunctionCall]:
        """Return calls for the message given the available plugins."""
        ...


class ImageGenerationStrategy(DetectionStrategy):
    """Recognises "draw/generate/create an image of X" in German and English.

    Patterns are tried in order and the first matching one decides; its first
    group is the image subject, sent as the ``prompt`` parameter.
    """

    plugin_type = PluginType.IMAGE_GENERATION
    FUNCTION_NAMES = ("image_gen", "generate")
    MIN_PROMPT_LENGTH = 3

    PATTERNS = [
        # German
        re.compile(
            r"(?:erstelle|generiere|erzeuge|mache|kreiere)\s+(?:ein|eine)?\s*"
            r"(?:bild|foto|grafik|image)\s+(?:von|über|mit|zeigend)?\s*(.+)",
            re.IGNORECASE,
        ),
        re.compile(r"(?:zeichne|male|skizziere)\s+(?:mir\s+)?(.+)", re.IGNORECASE),
        re.compile(
            r"(?:kannst du|bitte|könntest du)\s*(?:erstelle|generiere|erzeuge)\s*(?:ein|eine)?\s*"
            r"(?:bild|foto|grafik|image)\s+(.+)",
            re.IGNORECASE,
        ),
        # English
        re.compile(
            r"(?:generate|create|make)\s+(?:an?\s+)?image\s+(?:of|showing|with)\s+(.+)",
            re.IGNORECASE,
        ),
        re.compile(r"(?:draw|paint|sketch)\s+(?:me\s+)?(.+)", re.IGNORECASE),
        re.compile(
            r"(?:can you|please)\s+(?:generate|create|make)\s+(?:an?\s+)?(?:image|picture)\s+(.+)",
            re.IGNORECASE,
        ),
    ]

    def detect(self, message: str, plugins: Sequence[PluginRecord]) -> List[FunctionCall]:
        image_plugins = self.candidates(plugins)
        if not image_plugins:
            logger.debug("No image generation plugins available")
            return []

        for pattern in self.PATTERNS:
            match = pattern.search(message)
            if not match:
                continue

            logger.debug(f"Matched image pattern: {pattern.pattern}")
            prompt = (match.group(1) or "").strip()
            if len(prompt) <= self.MIN_PROMPT_LENGTH:
                return []

            plugin = image_plugins[0]
            function = next(
                (f for f in plugin.manifest.functions if f.name in self.FUNCTION_NAMES), None
            )
            if function is None:
                return []

            logger.info(f"Detected image generation request: '{prompt}' using plugin: {plugin.name}")
            return [FunctionCall(
                plugin_id=plugin.id,
                plugin_name=plugin.name,
                function_name=function.name,
                parameters={**function.default_parameters(), "prompt": prompt},
                original_text=match.group(0),
                start_index=match.start(),
                end_index=match.end(),
            )]

        logger.debug("No image generation patterns matched")
        return []


class AutomationIntentStrategy(DetectionStrategy):
    """Flags workflow/automation requests.

    Only logs the intent; no call is synthesised until automation plugins
    declare how free text maps onto their parameters.
    """

    plugin_type = PluginType.AUTOMATION
    KEYWORDS = ("workflow", "automation", "n8n", "trigger", "execute", "run workflow")

    def detect(self, message: str, plugins: Sequence[PluginRecord]) -> List[FunctionCall]:
        if not self.candidates(plugins):
            return []

        lowered = message.lower()
        if any(keyword in lowered for keyword in self.KEYWORDS):
            logger.info("Automation request detected but no specific implementation yet")
        return []


def default_strategies() -> List[DetectionStrategy]:
    return [ImageGenerationStrategy(), AutomationIntentStrategy()]


# ============================================================================
# Detector
# ============================================================================

class FunctionCallDetector:
    """Detects explicit and natural-language plugin calls in chat messages."""

    def __init__(
        self,
        registry: PluginRegistry,
        strategies: Optional[List[DetectionStrategy]] = None,
    ):
        """
        Args:
            registry: Plugin registry used to resolve available plugins
            strategies: Natural-language strategies, tried in order
        """
        self.registry = registry
        self.strategies = strategies if strategies is not None else default_strategies()

    async def detect_function_calls(self, message: str, context: ChatContext) -> List[FunctionCall]:
        """Detect function calls in a message.

        Never raises: any failure is logged and yields an empty list.
        """
        try:
            plugins = await self.get_available_plugins(context)
            if not plugins:
                return []

            calls = self.detect_explicit_calls(message, plugins)
            for strategy in self.strategies:
                calls.extend(strategy.detect(message, plugins))

            unique_calls = remove_overlapping_calls(calls)
            logger.info(
                f"Detected {len(unique_calls)} function calls in message "
                f"(user={context.user_id}, assistant={context.assistant_id})"
            )
            return unique_calls

        except Exception as e:
            logger.error(f"Error detecting function calls: {e}", exc_info=True)
            return []

    def detect_explicit_calls(self, message: str, plugins: Sequence[PluginRecord]) -> List[FunctionCall]:
        """Find ``verb plugin.function(args)`` calls against the available plugins."""
        calls = []

        for match in EXPLICIT_CALL_PATTERN.finditer(message):
            function_ref, params_str = match.group(1), match.group(2)
            plugin_name, _, function_name = function_ref.partition(".")
            function_name = function_name or DEFAULT_FUNCTION_NAME

            plugin = next(
                (
                    p for p in plugins
                    if p.name == plugin_name or p.display_name.lower() == plugin_name.lower()
                ),
                None,
            )
            if plugin is None:
                continue

            function = plugin.manifest.get_function(function_name)
            if function is None:
                continue

            calls.append(FunctionCall(
                plugin_id=plugin.id,
                plugin_name=plugin.name,
                function_name=function.name,
                parameters=parse_parameters(params_str, function),
                original_text=match.group(0),
                start_index=match.start(),
                end_index=match.end(),
            ))

        return calls

    async def get_available_plugins(self, context: ChatContext) -> List[PluginRecord]:
        """Resolve the plugins a chat context may use.

        Explicit plugin ids win, then the assistant's enabled assignments in
        sort order, then every public active plugin.
        """
        if context.available_plugin_ids:
            plugins = []
            for plugin_id in context.available_plugin_ids:
                plugin = await self.registry.find_by_id(plugin_id)
                if plugin and plugin.is_active:
                    plugins.append(plugin)
            return plugins

        if context.assistant_id:
            try:
                assignments = await self.registry.get_assistant_plugins(context.assistant_id)
            except Exception as e:
                logger.error(f"Error loading assistant plugins: {e}")
                return []
            plugins = [a.plugin for a in assignments if a.is_enabled and a.plugin.is_active]
            logger.info(f"Found {len(plugins)} active plugins for assistant {context.assistant_id}")
            return plugins

        return [p for p in await self.registry.find_all() if p.is_public and p.is_active]

    async def is_plugin_function_available(
        self, plugin_name: str, function_name: str, context: ChatContext
    ) -> bool:
        """Check whether a plugin function can be called in this context."""
        try:
            plugins = await self.get_available_plugins(context)
        except Exception as e:
            logger.error(f"Error checking plugin function availability: {e}")
            return False

        plugin = next((p for p in plugins if p.name == plugin_name), None)
        if plugin is None or not plugin.is_active:
            return False
        return plugin.manifest.get_function(function_name) is not None
