"""Service container and FastAPI dependencies.

All services are built once at startup by ``build_services`` and stored on
``app.state.services``; route handlers receive them through ``get_services``.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from fastapi import Request

from skillbox.constants import (
    BUNDLED_PLUGINS_DIR,
    EXTRA_PLUGIN_PATHS,
    INSTALLED_PLUGINS_DIR,
    PLUGIN_DEFAULT_TIMEOUT,
    PLUGIN_STATE_FILE,
    USER_ID_HEADER,
)
from skillbox.plugins.config import PluginConfigService
from skillbox.plugins.detector import FunctionCallDetector
from skillbox.plugins.discovery import PluginDiscovery
from skillbox.plugins.executor import PluginExecutor
from skillbox.plugins.http import PluginHttpClient
from skillbox.plugins.integration import ChatPluginIntegration
from skillbox.plugins.registry import PluginRegistry

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Every long-lived service of the plugin pipeline."""

    config_service: PluginConfigService
    registry: PluginRegistry
    discovery: PluginDiscovery
    http: PluginHttpClient
    executor: PluginExecutor
    detector: FunctionCallDetector
    integration: ChatPluginIntegration


def default_search_paths() -> List[Tuple[Path, str]]:
    """Plugin definition directories in priority order."""
    paths = [(BUNDLED_PLUGINS_DIR, "bundled"), (INSTALLED_PLUGINS_DIR, "installed")]
    paths.extend((path, "external") for path in EXTRA_PLUGIN_PATHS)
    return paths


def build_services(
    state_file: Optional[Path] = PLUGIN_STATE_FILE,
    search_paths: Optional[List[Tuple[Path, str]]] = None,
    export_dir: Optional[Path] = INSTALLED_PLUGINS_DIR,
    default_timeout: float = PLUGIN_DEFAULT_TIMEOUT,
) -> ServiceContainer:
    """Wire the pipeline. Pass ``state_file=None`` to keep plugin state in memory only."""
    config_service = PluginConfigService(state_file)
    registry = PluginRegistry(config_service)
    discovery = PluginDiscovery(
        search_paths if search_paths is not None else default_search_paths(),
        export_dir=export_dir,
    )
    http = PluginHttpClient(default_timeout=default_timeout)
    executor = PluginExecutor(registry, http_client=http)
    detector = FunctionCallDetector(registry)
    integration = ChatPluginIntegration(detector, executor)

    logger.info("Created plugin services")
    return ServiceContainer(
        config_service=config_service,
        registry=registry,
        discovery=discovery,
        http=http,
        executor=executor,
        detector=detector,
        integration=integration,
    )


# ============================================================================
# FastAPI dependencies
# ============================================================================

def get_services(request: Request) -> ServiceContainer:
    """Get the service container built at startup."""
    return request.app.state.services


def get_user_id(request: Request) -> Optional[str]:
    """User id set by the upstream auth middleware, if any."""
    user_id = request.headers.get(USER_ID_HEADER)
    return user_id.strip() if user_id and user_id.strip() else None

