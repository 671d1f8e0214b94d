"""Plugin management REST API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from skillbox.dependencies import ServiceContainer, get_services
from skillbox.models.requests import AssistantPluginsUpdate, PluginConfigUpdate
from skillbox.routers.common import parse_body

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plugins", tags=["plugins"])


@router.get("/")
async def list_plugins(services: ServiceContainer = Depends(get_services)):
    """List all registered plugins and their status."""
    plugins = await services.registry.find_all()
    return {"plugins": [plugin.to_dict() for plugin in plugins]}


@router.post("/sync")
async def sync_plugins(services: ServiceContainer = Depends(get_services)):
    """Import new definition files and export runtime-only plugins."""
    report = await services.discovery.sync(services.registry)
    return {"message": "Plugin sync completed", **report.to_dict()}


@router.get("/assistants/{assistant_id}")
async def get_assistant_plugins(assistant_id: str, services: ServiceContainer = Depends(get_services)):
    """List the plugins assigned to an assistant, in sort order."""
    assignments = await services.registry.get_assistant_plugins(assistant_id)
    return {"assistantId": assistant_id, "plugins": [a.to_dict() for a in assignments]}


@router.put("/assistants/{assistant_id}")
async def update_assistant_plugins(
    assistant_id: str, request: Request, services: ServiceContainer = Depends(get_services)
):
    """Replace the plugin assignments of an assistant."""
    body = await parse_body(request, AssistantPluginsUpdate)
    if isinstance(body, JSONResponse):
        return body

    registry = services.registry
    for entry in body.plugins:
        if not await registry.find_by_id(entry.plugin_id):
            raise HTTPException(status_code=404, detail=f"Plugin '{entry.plugin_id}' not found")

    for existing in await registry.get_assistant_plugins(assistant_id):
        await registry.unassign_plugin(assistant_id, existing.plugin_id)

    for entry in body.plugins:
        await registry.assign_plugin(
            assistant_id,
            entry.plugin_id,
            is_enabled=entry.is_enabled,
            sort_order=entry.sort_order,
            config_override=entry.config_override,
        )

    assignments = await registry.get_assistant_plugins(assistant_id)
    logger.info(f"Updated {len(assignments)} plugin assignment(s) for assistant {assistant_id}")
    return {"assistantId": assistant_id, "plugins": [a.to_dict() for a in assignments]}


@router.get("/{plugin_id}")
async def get_plugin(plugin_id: str, services: ServiceContainer = Depends(get_services)):
    """Get detailed information about a specific plugin."""
    plugin = await services.registry.find_by_id(plugin_id)
    if not plugin:
        raise HTTPException(status_code=404, detail=f"Plugin '{plugin_id}' not found")
    return plugin.to_dict()


@router.post("/{plugin_id}/enable")
async def enable_plugin(plugin_id: str, services: ServiceContainer = Depends(get_services)):
    """Enable a plugin. Takes effect for the next detected call."""
    plugin = await services.registry.set_active(plugin_id, True)
    if not plugin:
        raise HTTPException(status_code=404, detail=f"Plugin '{plugin_id}' not found")
    return {"message": f"Plugin '{plugin_id}' enabled", "plugin": plugin.to_dict()}


@router.post("/{plugin_id}/disable")
async def disable_plugin(plugin_id: str, services: ServiceContainer = Depends(get_services)):
    """Disable a plugin. In-flight executions are not affected."""
    plugin = await services.registry.set_active(plugin_id, False)
    if not plugin:
        raise HTTPException(status_code=404, detail=f"Plugin '{plugin_id}' not found")
    return {"message": f"Plugin '{plugin_id}' disabled", "plugin": plugin.to_dict()}


@router.put("/{plugin_id}/config")
async def update_plugin_config(
    plugin_id: str, request: Request, services: ServiceContainer = Depends(get_services)
):
    """Replace the global or a user's configuration of a plugin."""
    body = await parse_body(request, PluginConfigUpdate)
    if isinstance(body, JSONResponse):
        return body

    if not await services.registry.find_by_id(plugin_id):
        raise HTTPException(status_code=404, detail=f"Plugin '{plugin_id}' not found")

    await services.registry.update_config(plugin_id, body.config, body.user_id)
    scope = f"user '{body.user_id}'" if body.user_id else "global"
    return {"message": f"Configuration updated for plugin '{plugin_id}' ({scope})"}
