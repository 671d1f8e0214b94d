"""Plugin discovery - scans directories for plugin definition files and syncs the registry."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from skillbox.plugins.errors import PluginError
from skillbox.plugins.registry import PluginRecord, PluginRegistry

logger = logging.getLogger(__name__)


@dataclass
class DefinitionFile:
    """A plugin definition found on disk."""

    path: Path
    source: str  # "bundled" | "installed" | "external"
    data: Dict[str, Any]

    @property
    def name(self) -> str:
        return self.data.get("name") or self.path.stem


@dataclass
class SyncReport:
    """Outcome of a registry/filesystem synchronisation."""

    imported: int = 0
    exported: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"imported": self.imported, "exported": self.exported, "errors": self.errors}


class PluginDiscovery:
    """Discovers plugin definitions (JSON or YAML) and keeps the registry in sync with them."""

    SUFFIXES = (".json", ".yaml", ".yml")
    SKIP_MARKERS = ("template", "example")
    STATE_FILE_NAMES = ("config.json",)

    def __init__(self, search_paths: List[Tuple[Path, str]], export_dir: Optional[Path] = None):
        """Initialize discovery with search paths.

        Args:
            search_paths: List of (path, source_label) tuples, searched in order
            export_dir: Directory that receives definitions of plugins created at runtime
        """
        self.search_paths = search_paths
        self.export_dir = export_dir

    def discover_all(self) -> List[DefinitionFile]:
        """Discover all plugin definitions from the configured search paths.

        Returns:
            Definitions in search order; for duplicate names the first found wins
        """
        discovered = []
        seen_names = set()

        for search_path, source in self.search_paths:
            if not search_path.exists():
                logger.debug(f"Plugin search path does not exist: {search_path}")
                continue

            for definition in self._scan_directory(search_path, source):
                if definition.name in seen_names:
                    logger.warning(
                        f"Duplicate plugin '{definition.name}' found at {definition.path}, "
                        f"skipping (first-found wins)"
                    )
                    continue
                seen_names.add(definition.name)
                discovered.append(definition)

        logger.info(f"Discovered {len(discovered)} plugin definition(s)")
        return discovered

    def _scan_directory(self, search_path: Path, source: str) -> List[DefinitionFile]:
        definitions = []

        for item in sorted(search_path.iterdir()):
            if not item.is_file() or item.suffix not in self.SUFFIXES:
                continue
            if item.name in self.STATE_FILE_NAMES:
                continue
            if any(marker in item.name for marker in self.SKIP_MARKERS):
                continue

            data = self.load_file(item)
            if data is not None:
                definitions.append(DefinitionFile(path=item, source=source, data=data))

        return definitions

    def load_file(self, path: Path) -> Optional[Dict[str, Any]]:
        """Read a definition file, returning None if it cannot be parsed."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.suffix == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in {path}: {e}")
            return None
        except yaml.YAMLError as e:
            logger.error(f"Invalid YAML in {path}: {e}")
            return None
        except OSError as e:
            logger.error(f"Error reading {path}: {e}")
            return None

        if not isinstance(data, dict):
            logger.error(f"Plugin definition {path} is not a mapping")
            return None
        return data

    async def import_all(self, registry: PluginRegistry) -> SyncReport:
        """Register every discovered definition whose name is not yet known."""
        report = SyncReport()

        for definition in self.discover_all():
            if await registry.find_by_name(definition.name):
                logger.debug(f"Plugin {definition.name} already registered, skipping import")
                continue
            try:
                # File plugins keep a stable id across restarts
                await registry.create_plugin({"id": definition.name, **definition.data})
                report.imported += 1
                logger.info(f"Imported plugin: {definition.name} ({definition.source})")
            except (PluginError, ValueError) as e:
                report.errors.append(f"Import failed for {definition.name}: {e}")
                logger.error(f"Failed to import plugin {definition.path}: {e}")

        return report

    async def export_missing(self, registry: PluginRegistry) -> SyncReport:
        """Write a definition file for every registered plugin that has none."""
        report = SyncReport()
        if not self.export_dir:
            return report

        on_disk = {d.name for d in self.discover_all()}
        for plugin in await registry.find_all():
            if plugin.name in on_disk:
                continue
            try:
                self.export_plugin(plugin)
                report.exported += 1
            except OSError as e:
                report.errors.append(f"Export failed for {plugin.name}: {e}")
                logger.error(f"Failed to export plugin {plugin.name}: {e}")

        return report

    def export_plugin(self, plugin: PluginRecord) -> Path:
        """Write one plugin definition as JSON into the export directory."""
        self.export_dir.mkdir(parents=True, exist_ok=True)
        path = self.export_dir / f"{plugin.name}.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(plugin.to_dict(), f, indent=2, ensure_ascii=False)
        logger.debug(f"Exported plugin to file: {path}")
        return path

    async def sync(self, registry: PluginRegistry) -> SyncReport:
        """Import new definitions, then export plugins that exist only in the registry."""
        imported = await self.import_all(registry)
        exported = await self.export_missing(registry)
        report = SyncReport(
            imported=imported.imported,
            exported=exported.exported,
            errors=imported.errors + exported.errors,
        )
        logger.info(
            f"Plugin sync completed: {report.imported} imported, "
            f"{report.exported} exported, {len(report.errors)} error(s)"
        )
        return report
