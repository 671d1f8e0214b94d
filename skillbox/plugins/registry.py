"""Plugin registry - tracks registered plugins, their configs and assistant assignments."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from skillbox.plugins.config import PluginConfigService
from skillbox.plugins.errors import DuplicatePluginError, ManifestValidationError
from skillbox.plugins.manifest import (
    PluginManifest,
    PluginType,
    RuntimeType,
    parse_manifest,
    validate_plugin_manifest,
)

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class PluginRecord:
    """A registered plugin."""

    id: str
    name: str
    display_name: str
    plugin_type: PluginType
    runtime_type: RuntimeType
    manifest: PluginManifest
    description: Optional[str] = None
    version: str = "1.0.0"
    author: Optional[str] = None
    config_schema: Optional[Dict[str, Any]] = None
    is_active: bool = True
    is_public: bool = False
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)
    created_by: Optional[str] = None
    updated_by: Optional[str] = None

    def to_dict(self) -> dict:
        """Serialize to the plugin definition file / API response shape."""
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "version": self.version,
            "author": self.author,
            "plugin_type": self.plugin_type.value,
            "runtime_type": self.runtime_type.value,
            "config_schema": self.config_schema or {},
            "manifest": self.manifest.to_dict(),
            "is_active": self.is_active,
            "is_public": self.is_public,
        }


@dataclass
class AssistantPlugin:
    """Assignment of a plugin to an assistant."""

    assistant_id: str
    plugin_id: str
    is_enabled: bool = True
    sort_order: int = 0
    config_override: Optional[Dict[str, Any]] = None
    plugin: Optional[PluginRecord] = field(default=None, repr=False)

    def to_dict(self) -> dict:
        return {
            "assistant_id": self.assistant_id,
            "plugin_id": self.plugin_id,
            "is_enabled": self.is_enabled,
            "sort_order": self.sort_order,
            "config_override": self.config_override,
            "plugin": self.plugin.to_dict() if self.plugin else None,
        }


def build_record(definition: Dict[str, Any], created_by: Optional[str] = None) -> PluginRecord:
    """Build and validate a PluginRecord from a plugin definition.

    A definition carries the record fields plus a nested ``manifest``. When the
    nested manifest is absent the definition itself is used as the manifest.

    Raises:
        ManifestValidationError: If the definition or manifest is invalid
    """
    errors = []
    name = definition.get("name")
    if not name:
        errors.append("Plugin name is required")

    manifest_data = dict(definition.get("manifest") or definition)
    manifest_data.setdefault("name", name)
    manifest_data.setdefault("display_name", definition.get("display_name") or name)
    if definition.get("runtime_type"):
        manifest_data.setdefault("runtime", definition["runtime_type"])
    manifest = parse_manifest(manifest_data)

    errors.extend(validate_plugin_manifest(manifest))
    if errors:
        raise ManifestValidationError(errors)

    try:
        plugin_type = PluginType(definition.get("plugin_type") or PluginType.API_TOOL.value)
        runtime_type = RuntimeType(definition.get("runtime_type") or manifest.runtime.value)
    except ValueError as e:
        raise ManifestValidationError([str(e)]) from e

    return PluginRecord(
        id=definition.get("id") or str(uuid.uuid4()),
        name=name,
        display_name=definition.get("display_name") or name,
        description=definition.get("description"),
        version=definition.get("version") or manifest.version,
        author=definition.get("author"),
        plugin_type=plugin_type,
        runtime_type=runtime_type,
        manifest=manifest,
        config_schema=definition.get("config_schema") or None,
        is_active=definition.get("is_active", True),
        is_public=definition.get("is_public", False),
        created_by=created_by,
    )


class PluginRegistry:
    """Central registry for all plugins.

    Plugin records live in memory; activation flags, configs and assistant
    assignments are persisted through the PluginConfigService.
    """

    UPDATABLE_FIELDS = (
        "display_name", "description", "version", "author", "plugin_type",
        "runtime_type", "config_schema", "is_active", "is_public",
    )

    def __init__(self, config_service: Optional[PluginConfigService] = None):
        self._plugins: Dict[str, PluginRecord] = {}
        self.config_service = config_service or PluginConfigService()

    # ------------------------------------------------------------------
    # Plugin records
    # ------------------------------------------------------------------

    async def create_plugin(
        self, definition: Dict[str, Any], created_by: Optional[str] = None
    ) -> PluginRecord:
        """Validate and register a plugin definition."""
        record = build_record(definition, created_by=created_by)

        if await self.find_by_name(record.name):
            raise DuplicatePluginError(f"Plugin with name '{record.name}' already exists")
        if record.id in self._plugins:
            raise DuplicatePluginError(f"Plugin with id '{record.id}' already exists")

        if not self.config_service.is_active(record.id):
            record.is_active = False
        self._plugins[record.id] = record
        logger.info(f"Registered plugin: {record.display_name} ({record.id})")
        return record

    async def update_plugin(
        self, plugin_id: str, changes: Dict[str, Any], updated_by: Optional[str] = None
    ) -> Optional[PluginRecord]:
        """Apply a partial update. A new manifest is validated before anything changes."""
        record = self._plugins.get(plugin_id)
        if not record:
            return None

        manifest = None
        if changes.get("manifest") is not None:
            manifest = parse_manifest(changes["manifest"])
            errors = validate_plugin_manifest(manifest)
            if errors:
                raise ManifestValidationError(errors)

        for key in self.UPDATABLE_FIELDS:
            if key not in changes:
                continue
            value = changes[key]
            if key == "plugin_type":
                value = PluginType(value)
            elif key == "runtime_type":
                value = RuntimeType(value)
            setattr(record, key, value)

        if manifest is not None:
            record.manifest = manifest
        if "is_active" in changes:
            self.config_service.set_active(plugin_id, bool(changes["is_active"]))

        record.updated_at = _now()
        record.updated_by = updated_by
        logger.info(f"Updated plugin: {record.display_name} ({record.id})")
        return record

    async def delete_plugin(self, plugin_id: str) -> bool:
        """Remove a plugin together with its configs and assignments."""
        record = self._plugins.get(plugin_id)
        if not record:
            return False

        try:
            self.config_service.forget_plugin(plugin_id)
        except (OSError, KeyError, TypeError) as e:
            logger.warning(f"Could not clean up state for plugin {plugin_id}, continuing: {e}")

        del self._plugins[plugin_id]
        logger.info(f"Deleted plugin: {record.display_name} ({record.id})")
        return True

    async def set_active(self, plugin_id: str, active: bool) -> Optional[PluginRecord]:
        """Soft-enable or soft-disable a plugin."""
        record = self._plugins.get(plugin_id)
        if not record:
            return None
        record.is_active = active
        record.updated_at = _now()
        self.config_service.set_active(plugin_id, active)
        return record

    async def find_by_id(self, plugin_id: str) -> Optional[PluginRecord]:
        """Get a plugin by ID."""
        return self._plugins.get(plugin_id)

    async def find_by_name(self, name: str) -> Optional[PluginRecord]:
        """Get a plugin by its unique name."""
        return next((p for p in self._plugins.values() if p.name == name), None)

    async def find_all(self) -> List[PluginRecord]:
        """Get all plugins ordered by display name."""
        return sorted(self._plugins.values(), key=lambda p: p.display_name)

    async def find_active(self) -> List[PluginRecord]:
        """Get all active plugins ordered by display name."""
        return [p for p in await self.find_all() if p.is_active]

    def count(self) -> int:
        """Get total number of registered plugins."""
        return len(self._plugins)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    async def resolve_config(self, plugin_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        """Effective configuration: global config overridden by the user's config."""
        return self.config_service.resolve_config(plugin_id, user_id)

    async def get_config(self, plugin_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        return self.config_service.get_config(plugin_id, user_id)

    async def update_config(
        self, plugin_id: str, config_data: Dict[str, Any], user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        return self.config_service.update_config(plugin_id, config_data, user_id)

    # ------------------------------------------------------------------
    # Assistant assignments
    # ------------------------------------------------------------------

    async def assign_plugin(
        self,
        assistant_id: str,
        plugin_id: str,
        is_enabled: bool = True,
        sort_order: int = 0,
        config_override: Optional[Dict[str, Any]] = None,
    ) -> Optional[AssistantPlugin]:
        """Assign a plugin to an assistant, replacing an existing assignment."""
        plugin = self._plugins.get(plugin_id)
        if not plugin:
            return None

        assignment = AssistantPlugin(
            assistant_id=assistant_id,
            plugin_id=plugin_id,
            is_enabled=is_enabled,
            sort_order=sort_order,
            config_override=config_override,
            plugin=plugin,
        )
        self.config_service.upsert_assignment(assistant_id, {
            "plugin_id": plugin_id,
            "is_enabled": is_enabled,
            "sort_order": sort_order,
            "config_override": config_override,
        })
        return assignment

    async def unassign_plugin(self, assistant_id: str, plugin_id: str) -> bool:
        return self.config_service.remove_assignment(assistant_id, plugin_id)

    async def get_assistant_plugins(self, assistant_id: str) -> List[AssistantPlugin]:
        """Get an assistant's assignments ordered by sort order.

        Assignments whose plugin is no longer registered are skipped.
        """
        assignments = []
        for entry in self.config_service.get_assignments(assistant_id):
            plugin = self._plugins.get(entry["plugin_id"])
            if plugin is None:
                logger.debug(f"Skipping assignment of unknown plugin {entry['plugin_id']}")
                continue
            assignments.append(AssistantPlugin(
                assistant_id=assistant_id,
                plugin_id=entry["plugin_id"],
                is_enabled=entry.get("is_enabled", True),
                sort_order=entry.get("sort_order", 0),
                config_override=entry.get("config_override"),
                plugin=plugin,
            ))
        return assignments
