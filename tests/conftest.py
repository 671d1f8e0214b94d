"""Shared fixtures: a small plugin catalogue loaded through discovery."""

import json

import pytest

from skillbox.dependencies import build_services

WEATHER_PLUGIN = {
    "name": "weather",
    "display_name": "Weather",
    "description": "Current weather for a city",
    "plugin_type": "api_tool",
    "runtime_type": "api_call",
    "is_public": True,
    "manifest": {
        "runtime": "api_call",
        "functions": [
            {
                "name": "get",
                "description": "Current weather for a city",
                "parameters": {
                    "city": {"type": "string", "required": True},
                    "units": {"type": "enum", "values": ["metric", "imperial"], "default": "metric"},
                    "detailed": {"type": "boolean", "default": False},
                },
            }
        ],
        "endpoints": {"execute": "https://weather.example.com/v1/current"},
    },
}

PAINTER_PLUGIN = {
    "name": "painter",
    "display_name": "Painter",
    "description": "Text to image",
    "plugin_type": "image_generation",
    "runtime_type": "api_call",
    "is_public": True,
    "manifest": {
        "runtime": "api_call",
        "functions": [
            {
                "name": "generate",
                "description": "Generate an image",
                "parameters": {
                    "prompt": {"type": "string", "required": True},
                    "width": {"type": "number", "default": 1024, "min": 64, "max": 2048},
                },
            }
        ],
        "endpoints": {"execute": "https://fal.run/fal-ai/{model_name}"},
        "config_schema": {"model_name": {"type": "string", "default": "flux/dev"}},
    },
}

KEYWORDS_PLUGIN = {
    "name": "keywords",
    "display_name": "Keywords",
    "description": "Keyword research workflow",
    "plugin_type": "automation",
    "runtime_type": "webhook",
    "is_public": True,
    "manifest": {
        "runtime": "webhook",
        "functions": [
            {
                "name": "generate_keywords",
                "description": "Keyword ideas for a seed keyword",
                "parameters": {
                    "keyword": {"type": "string"},
                    "seed_keyword": {"type": "string"},
                    "query": {"type": "string"},
                    "q": {"type": "string"},
                    "language": {"type": "string", "default": "de"},
                },
            }
        ],
        "endpoints": {"execute": "https://n8n.example.com/webhook/keywords"},
    },
}

TEXT_TOOLS_CODE = '''
def word_count(params):
    text = params["text"]
    console.log("Counting words:", len(text.split()))
    return {"success": True, "words": len(text.split()), "characters": len(text)}
'''

TEXT_TOOLS_PLUGIN = {
    "name": "text_tools",
    "display_name": "Text Tools",
    "plugin_type": "custom",
    "runtime_type": "python",
    "is_public": True,
    "manifest": {
        "runtime": "python",
        "functions": [
            {
                "name": "word_count",
                "description": "Count words",
                "parameters": {"text": {"type": "string", "required": True}},
            }
        ],
        "code": TEXT_TOOLS_CODE,
    },
}

NOTES_PLUGIN = {
    "name": "notes",
    "display_name": "Notes",
    "plugin_type": "api_tool",
    "runtime_type": "api_call",
    "is_public": False,
    "manifest": {
        "runtime": "api_call",
        "functions": [
            {
                "name": "save",
                "description": "Save a note",
                "parameters": {"text": {"type": "string", "required": True}},
            }
        ],
        "endpoints": {"execute": "https://notes.example.com/save"},
    },
}

ALL_PLUGINS = [WEATHER_PLUGIN, PAINTER_PLUGIN, KEYWORDS_PLUGIN, TEXT_TOOLS_PLUGIN, NOTES_PLUGIN]


def write_definitions(directory, definitions):
    directory.mkdir(parents=True, exist_ok=True)
    for definition in definitions:
        path = directory / f"{definition['name']}.json"
        path.write_text(json.dumps(definition), encoding="utf-8")
    return directory


@pytest.fixture
def plugin_dir(tmp_path):
    return write_definitions(tmp_path / "plugins", ALL_PLUGINS)


@pytest.fixture
def services(plugin_dir):
    """Services with in-memory state; plugins are not imported yet."""
    return build_services(
        state_file=None,
        search_paths=[(plugin_dir, "bundled")],
        export_dir=None,
        default_timeout=5,
    )


@pytest.fixture
async def loaded_services(services):
    report = await services.discovery.import_all(services.registry)
    assert report.errors == []
    return services


@pytest.fixture
def registry(loaded_services):
    return loaded_services.registry
