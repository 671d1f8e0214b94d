"""Webhook runtime: GET an automation webhook (n8n) with the call as query parameters."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List
from urllib.parse import urlparse

from skillbox.plugins.errors import PluginRuntimeError
from skillbox.plugins.events import message_event, status_event
from skillbox.plugins.manifest import PluginFunction, PluginManifest
from skillbox.plugins.runtimes.base import ExecutionContext, overlay_config
from skillbox.plugins.validation import KEYWORD_ALIASES
from skillbox.utils.text_repair import repair_mojibake

logger = logging.getLogger(__name__)

WEBHOOK_HEADERS = {
    "Content-Type": "application/json; charset=utf-8",
    "Accept": "application/json; charset=utf-8",
    "User-Agent": "Skillbox-Plugin-System/1.0",
}

KEYWORD_SOURCE = "Google Autosuggest"


def build_webhook_payload(
    function: PluginFunction, parameters: Dict[str, Any], config: Dict[str, Any]
) -> Dict[str, Any]:
    """Fold keyword aliases into ``q`` and pass everything else through."""
    payload: Dict[str, Any] = {}

    keyword = next((parameters[a] for a in KEYWORD_ALIASES if parameters.get(a)), None)
    if keyword:
        payload["q"] = keyword

    for key, value in parameters.items():
        if value is not None and key not in KEYWORD_ALIASES:
            payload[key] = value

    return overlay_config(function, payload, config)


def to_query_params(payload: Dict[str, Any]) -> Dict[str, str]:
    """Render payload values as query strings (booleans lowercase, containers as JSON)."""
    params = {}
    for key, value in payload.items():
        if value is None:
            continue
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        elif isinstance(value, (list, dict)):
            params[key] = json.dumps(value, ensure_ascii=False)
        else:
            params[key] = str(value)
    return params


def format_keyword_list(keywords: List[str]) -> str:
    return "\n".join(f"{index}. {keyword}" for index, keyword in enumerate(keywords, start=1))


async def execute_webhook(
    manifest: PluginManifest,
    function: PluginFunction,
    parameters: Dict[str, Any],
    context: ExecutionContext,
) -> Any:
    webhook_url = context.config.get("n8n_webhook_url") or (
        manifest.endpoints.execute if manifest.endpoints else None
    )
    if not webhook_url:
        raise PluginRuntimeError("No webhook URL configured for webhook plugin")

    params = to_query_params(build_webhook_payload(function, parameters, context.config))

    headers = dict(WEBHOOK_HEADERS)
    api_token = context.config.get("api_token")
    if api_token:
        headers["Authorization"] = f"Bearer {api_token}"

    await context.emit(status_event("in_progress", f"Calling webhook: {urlparse(webhook_url).hostname}..."))
    logger.info(f"Calling webhook for {manifest.name}.{function.name}")

    data = await context.http.get_json(webhook_url, params=params, headers=headers, timeout=context.timeout)
    if data is None or data == "":
        raise PluginRuntimeError("Empty response from webhook")

    result = data
    raw_keywords = data.get("Keywords") if isinstance(data, dict) else None

    if isinstance(raw_keywords, list):
        keywords = [repair_mojibake(str(keyword)) for keyword in raw_keywords]
        keyword_list = format_keyword_list(keywords)

        await context.emit(message_event(
            f"🔍 **Keyword-Recherche Ergebnisse:**\n\n{keyword_list}\n\n"
            f"💡 **Tipp:** Diese Keywords eignen sich perfekt für SEO-optimierte Blog-Artikel!"
        ))

        result = {
            "keywords": keywords,
            "count": len(keywords),
            "formatted_list": keyword_list,
            "metadata": {
                "source": KEYWORD_SOURCE,
                "generated_at": datetime.now(timezone.utc).isoformat(),
            },
        }

    generated = len(raw_keywords) if isinstance(raw_keywords, list) else 0
    await context.emit(status_event(
        "completed", f"Webhook executed successfully - Generated {generated} keywords", done=True
    ))
    return result
