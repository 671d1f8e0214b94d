"""Plugin state service - manages plugins/config.json."""

import json
import logging
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class PluginConfig:
    """One stored configuration record; `user_id=None` is the global record."""

    plugin_id: str
    config_data: Dict[str, Any]
    user_id: Optional[str] = None
    is_active: bool = True


class PluginConfigService:
    """Manages persisted plugin state: configs, assistant assignments, soft-disables.

    Config format:
    {
        "inactive": ["keyword-generator"],
        "configs": {
            "flux": {
                "global": {"api_key": "...", "timeout": 60},
                "users": {"user-1": {"model_name": "flux-pro"}}
            }
        },
        "assignments": {
            "assistant-1": [
                {"plugin_id": "flux", "is_enabled": true, "sort_order": 0, "config_override": null}
            ]
        }
    }

    With ``config_file=None`` the state only lives in memory.
    """

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = config_file
        self._config: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        """Load state from file, creating defaults if not found."""
        if self.config_file and self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
                data.setdefault("inactive", [])
                data.setdefault("configs", {})
                data.setdefault("assignments", {})
                return data
            except (json.JSONDecodeError, IOError) as e:
                logger.error(f"Error loading plugin config: {e}")

        return {"inactive": [], "configs": {}, "assignments": {}}

    def _save(self) -> None:
        """Save state to file."""
        if not self.config_file:
            return
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w", encoding="utf-8") as f:
            json.dump(self._config, f, indent=2, ensure_ascii=False)
        logger.debug(f"Saved plugin config to {self.config_file}")

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def is_active(self, plugin_id: str) -> bool:
        """Check if a plugin has not been soft-disabled."""
        return plugin_id not in self._config["inactive"]

    def configured_plugin_ids(self) -> List[str]:
        """Ids of all plugins that have a stored config."""
        return list(self._config["configs"])

    def set_active(self, plugin_id: str, active: bool) -> None:
        """Soft-enable or soft-disable a plugin."""
        inactive = self._config["inactive"]
        if active and plugin_id in inactive:
            inactive.remove(plugin_id)
        elif not active and plugin_id not in inactive:
            inactive.append(plugin_id)
        else:
            return
        self._save()
        logger.info(f"{'Enabled' if active else 'Disabled'} plugin: {plugin_id}")

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_config(self, plugin_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Get the stored config for (plugin, user); ``user_id=None`` is the global record."""
        entry = self._config["configs"].get(plugin_id)
        if not entry:
            return None
        if user_id is None:
            config = entry.get("global")
        else:
            config = entry.get("users", {}).get(user_id)
        return deepcopy(config) if config is not None else None

    def update_config(
        self, plugin_id: str, config_data: Dict[str, Any], user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Insert or replace the config for (plugin, user)."""
        entry = self._config["configs"].setdefault(plugin_id, {"global": None, "users": {}})
        if user_id is None:
            entry["global"] = deepcopy(config_data)
        else:
            entry.setdefault("users", {})[user_id] = deepcopy(config_data)
        self._save()
        logger.info(f"Updated config for plugin: {plugin_id} (user={user_id or 'global'})")
        return deepcopy(config_data)

    def list_configs(self, plugin_id: str) -> List[PluginConfig]:
        """All stored configs of a plugin, the global record first."""
        entry = self._config["configs"].get(plugin_id) or {}
        active = self.is_active(plugin_id)
        configs = []
        if entry.get("global") is not None:
            configs.append(PluginConfig(plugin_id, deepcopy(entry["global"]), None, active))
        for user_id, data in sorted(entry.get("users", {}).items()):
            configs.append(PluginConfig(plugin_id, deepcopy(data), user_id, active))
        return configs

    def resolve_config(self, plugin_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        """Merge the global config with the user override; user values win."""
        resolved = self.get_config(plugin_id) or {}
        if user_id:
            user_config = self.get_config(plugin_id, user_id)
            if user_config:
                resolved = {**resolved, **user_config}
        return resolved

    # ------------------------------------------------------------------
    # Assistant assignments
    # ------------------------------------------------------------------

    def get_assignments(self, assistant_id: str) -> List[Dict[str, Any]]:
        """Get raw assignment entries for an assistant, ordered by sort_order."""
        entries = self._config["assignments"].get(assistant_id, [])
        return sorted(deepcopy(entries), key=lambda e: e.get("sort_order", 0))

    def all_assignments(self) -> Dict[str, List[Dict[str, Any]]]:
        """Get every assistant's assignment entries."""
        return deepcopy(self._config["assignments"])

    def upsert_assignment(self, assistant_id: str, entry: Dict[str, Any]) -> None:
        """Insert or replace the assignment of ``entry['plugin_id']``."""
        entries = self._config["assignments"].setdefault(assistant_id, [])
        entries[:] = [e for e in entries if e["plugin_id"] != entry["plugin_id"]]
        entries.append(deepcopy(entry))
        self._save()
        logger.info(f"Assigned plugin {entry['plugin_id']} to assistant {assistant_id}")

    def remove_assignment(self, assistant_id: str, plugin_id: str) -> bool:
        """Remove one assignment. Returns True if it existed."""
        entries = self._config["assignments"].get(assistant_id, [])
        remaining = [e for e in entries if e["plugin_id"] != plugin_id]
        if len(remaining) == len(entries):
            return False
        self._config["assignments"][assistant_id] = remaining
        self._save()
        return True

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def forget_plugin(self, plugin_id: str) -> None:
        """Drop every config, assignment and flag that refers to a plugin."""
        self._config["configs"].pop(plugin_id, None)
        for assistant_id, entries in self._config["assignments"].items():
            self._config["assignments"][assistant_id] = [
                e for e in entries if e["plugin_id"] != plugin_id
            ]
        if plugin_id in self._config["inactive"]:
            self._config["inactive"].remove(plugin_id)
        self._save()

    def reload(self) -> None:
        """Reload state from disk."""
        self._config = self._load()
