"""Direct API runtime: POST the call's parameters to the plugin's execute endpoint."""

import logging
from typing import Any, Dict
from urllib.parse import urlparse

from skillbox.plugins.errors import PluginRuntimeError
from skillbox.plugins.events import message_event, status_event
from skillbox.plugins.manifest import PluginFunction, PluginManifest
from skillbox.plugins.runtimes.base import ExecutionContext, overlay_config

logger = logging.getLogger(__name__)

DEFAULT_AUTH_SCHEME = "Key"


def build_api_payload(function: PluginFunction, parameters: Dict[str, Any], config: Dict[str, Any]) -> Dict[str, Any]:
    payload = {key: value for key, value in parameters.items() if value is not None}
    return overlay_config(function, payload, config)


def build_api_headers(config: Dict[str, Any]) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    api_key = config.get("api_key")
    if api_key:
        scheme = config.get("auth_scheme") or DEFAULT_AUTH_SCHEME
        headers["Authorization"] = f"{scheme} {api_key}"
    return headers


async def handle_image_response(data: Dict[str, Any], context: ExecutionContext) -> Dict[str, Any]:
    """Post every generated image to the chat and normalise the payload."""
    images = data["images"]

    for image in images:
        await context.emit(message_event(f"![Generated Image]({image.get('url')})"))

    total_pixels = sum(
        (image.get("width") or 0) * (image.get("height") or 0)
        for image in images
        if isinstance(image, dict)
    )
    return {
        "images": images,
        "metadata": {
            "generated_images": len(images),
            "count": len(images),
            "total_pixels": total_pixels,
        },
    }


async def execute_api_call(
    manifest: PluginManifest,
    function: PluginFunction,
    parameters: Dict[str, Any],
    context: ExecutionContext,
) -> Any:
    endpoint = manifest.endpoints.execute if manifest.endpoints else None
    if not endpoint:
        raise PluginRuntimeError("No execute endpoint defined for API call plugin")

    url = endpoint
    model_name = context.config.get("model_name")
    if model_name:
        url = url.replace("{model_name}", str(model_name))

    payload = build_api_payload(function, parameters, context.config)
    headers = build_api_headers(context.config)

    await context.emit(status_event("in_progress", f"Making API call to {urlparse(url).hostname}..."))
    logger.info(f"Calling {url} for {manifest.name}.{function.name}")

    data = await context.http.post_json(url, payload, headers=headers, timeout=context.timeout)

    if isinstance(data, dict) and isinstance(data.get("images"), list):
        return await handle_image_response(data, context)
    return data
